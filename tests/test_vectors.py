from __future__ import annotations

import jax.numpy as jnp
import pytest

from lsq_jit.core.errors import ShapeMismatch
from lsq_jit.core.matrix3 import Matrix3
from lsq_jit.core.types import VariableAssignments
from lsq_jit.core.vectors import TangentTuple, TensorVector, Vector3, Vector5, Vector9


def test_vector3_arithmetic():
    a = Vector3(1.0, 2.0, 3.0)
    b = Vector3(-1.0, 0.5, 2.0)

    assert a + b == Vector3(0.0, 2.5, 5.0)
    assert a - b == Vector3(2.0, 1.5, 1.0)
    assert 2.0 * a == Vector3(2.0, 4.0, 6.0)
    assert a / 2.0 == Vector3(0.5, 1.0, 1.5)
    assert a.dot(b) == pytest.approx(6.0)
    assert a.squared_norm == pytest.approx(14.0)
    assert (a.x, a.y, a.z) == (1.0, 2.0, 3.0)


def test_fixed_dimension_is_enforced():
    with pytest.raises(ShapeMismatch):
        Vector3(1.0, 2.0)
    with pytest.raises(ShapeMismatch):
        Vector5.from_scalars([0.0] * 6)
    with pytest.raises(ShapeMismatch):
        Vector3(1.0, 2.0, 3.0).dot(Vector9.zero())


def test_standard_basis_vectors():
    basis = Vector5.standard_basis()
    assert len(basis) == 5
    assert sum(basis[1:], basis[0]) == Vector5(1.0, 1.0, 1.0, 1.0, 1.0)


def test_tensor_vector_ops():
    a = TensorVector(jnp.arange(6.0).reshape(2, 3))
    b = TensorVector(jnp.ones((2, 3)))

    assert a.dimension == 6
    assert a.tangent_shape == (2, 3)
    assert float((a + b).tensor[1, 2]) == 6.0
    assert float(a.dot(b)) == pytest.approx(15.0)
    assert float(a.squared_norm) == pytest.approx(55.0)
    assert jnp.array_equal(a.tangent_from_flat(a.flat_array()).tensor, a.tensor)

    with pytest.raises(ShapeMismatch):
        a + TensorVector(jnp.ones((3, 2)))


def test_tangent_tuple_flat_round_trip():
    t = TangentTuple((Vector3(1.0, 2.0, 3.0), Matrix3.identity(), TensorVector(jnp.array([7.0, 8.0]))))
    assert t.dimension == 3 + 9 + 2

    flat = t.flat_array()
    assert flat.shape == (14,)
    # Matrix3 contributes its column-major vec
    assert jnp.array_equal(flat[3:12], Matrix3.identity().flat_array())

    back = t.tangent_from_flat(flat)
    assert float(back[0].y) == 2.0
    assert back[1] == Matrix3.identity()
    assert float((back - t).squared_norm) == 0.0

    with pytest.raises(ShapeMismatch):
        t.tangent_from_flat(jnp.zeros(13))


def test_tangent_tuple_vector_space():
    a = TangentTuple((Vector3(1.0, 0.0, 0.0), Vector5(0.0, 1.0, 0.0, 0.0, 0.0)))
    b = a.scaled(3.0)
    assert float(b.squared_norm) == pytest.approx(18.0)
    assert float(a.dot(b)) == pytest.approx(6.0)

    with pytest.raises(ShapeMismatch):
        a + TangentTuple((Vector3.zero(),))


def test_variable_assignments_store_and_move():
    values = VariableAssignments()
    a = values.store(Vector3(0.0, 0.0, 0.0))
    m = values.store(Matrix3.identity())

    assert a.node == 0 and a.kind == "Vector3"
    assert m.node == 1 and m.kind == "Matrix3"
    assert values.values_at((m, a)) == (Matrix3.identity(), Vector3.zero())

    values.move((a, m), (Vector3(1.0, 2.0, 3.0), Matrix3.identity()))
    assert values[a] == Vector3(1.0, 2.0, 3.0)
    assert values[m][0, 0] == 2.0

    with pytest.raises(ShapeMismatch):
        values[a] = Vector5.zero()
    with pytest.raises(ShapeMismatch):
        values.move((a,), ())
