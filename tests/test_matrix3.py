from __future__ import annotations

import jax
import jax.numpy as jnp
import numpy as np
import pytest

from lsq_jit.core.errors import ShapeMismatch
from lsq_jit.core.matrix3 import Matrix3, matmul, matvec, matvec_transposed
from lsq_jit.core.vectors import Vector3


def _random_matrix(rng: np.random.Generator) -> Matrix3:
    return Matrix3.from_scalars(float(v) for v in rng.normal(size=9))


def _random_vector(rng: np.random.Generator) -> Vector3:
    return Vector3(*(float(v) for v in rng.normal(size=3)))


def _to_numpy(m: Matrix3) -> np.ndarray:
    return np.array([[float(m[i, j]) for j in range(3)] for i in range(3)])


def test_row_major_construction_round_trip():
    seq = [1.5, -2.0, 3.25, 4.0, 5.5, -6.0, 7.0, 8.125, 9.0]
    m = Matrix3.from_scalars(seq)

    read_back = [m[row, col] for row in range(3) for col in range(3)]
    assert read_back == seq


def test_vec_is_column_major():
    m = Matrix3(1.0, 2.0, 3.0,
                4.0, 5.0, 6.0,
                7.0, 8.0, 9.0)
    assert m.vec.scalars == (1.0, 4.0, 7.0, 2.0, 5.0, 8.0, 3.0, 6.0, 9.0)
    assert m.scalars == m.vec.scalars
    assert m.tangent_from_flat(m.flat_array()) == m


def test_from_rows_and_columns():
    r0, r1, r2 = Vector3(1.0, 2.0, 3.0), Vector3(4.0, 5.0, 6.0), Vector3(7.0, 8.0, 9.0)
    by_rows = Matrix3.from_rows(r0, r1, r2)
    by_cols = Matrix3.from_columns(r0, r1, r2)

    assert by_rows == Matrix3(1.0, 2.0, 3.0, 4.0, 5.0, 6.0, 7.0, 8.0, 9.0)
    assert by_cols == by_rows.transposed()
    assert by_rows.row(1) == r1
    assert by_cols.column(2) == r2


def test_matmul_associative_and_identity():
    rng = np.random.default_rng(0)
    A, B, C = (_random_matrix(rng) for _ in range(3))

    left = matmul(A, matmul(B, C))
    right = matmul(matmul(A, B), C)
    assert np.allclose(_to_numpy(left), _to_numpy(right), atol=1e-12)

    assert matmul(A, Matrix3.identity()) == A
    assert matmul(Matrix3.identity(), A) == A
    assert np.allclose(_to_numpy(matmul(A, B)), _to_numpy(A) @ _to_numpy(B), atol=1e-12)


def test_matmul_is_columnwise_matvec():
    rng = np.random.default_rng(1)
    A, B = _random_matrix(rng), _random_matrix(rng)
    AB = matmul(A, B)
    for j in range(3):
        # bit-for-bit, not just approximately
        assert AB.column(j) == matvec(A, B.column(j))


def test_double_transpose_and_zero():
    rng = np.random.default_rng(2)
    A = _random_matrix(rng)
    assert A.transposed().transposed() == A
    assert A + Matrix3.zero() == A
    assert A - A == Matrix3.zero()
    assert A.row_count == A.column_count == 3


def test_matvec_transposed_is_adjoint():
    rng = np.random.default_rng(3)
    for _ in range(10):
        A = _random_matrix(rng)
        v = _random_vector(rng)
        w = _random_vector(rng)

        lhs = matvec(A, v).dot(w)
        rhs = v.dot(matvec_transposed(A, w))
        assert lhs == pytest.approx(rhs, abs=1e-9)

        # no transpose is materialised, but the arithmetic is the same
        assert matvec_transposed(A, w) == matvec(A.transposed(), w)


def test_standard_basis_orthonormal():
    basis = Matrix3.standard_basis()
    assert len(basis) == 9

    for k, e in enumerate(basis):
        assert e[k // 3, k % 3] == 1.0
        assert e.squared_norm == 1.0
        for other in basis[k + 1:]:
            assert e.dot(other) == 0.0


def test_scalar_arithmetic():
    m = Matrix3(1.0, 2.0, 3.0, 4.0, 5.0, 6.0, 7.0, 8.0, 9.0)
    assert 2.0 * m == m + m
    assert m * 2.0 == m.scaled(2.0)
    assert (m / 2.0)[2, 2] == 4.5
    assert (-m)[0, 1] == -2.0
    assert m.moved(Matrix3.identity())[1, 1] == 6.0


def test_index_out_of_range_fails_fast():
    m = Matrix3.identity()
    with pytest.raises(IndexError):
        m[3, 0]
    with pytest.raises(IndexError):
        m[0, -1]
    with pytest.raises(IndexError):
        m.with_entry(2, 3, 1.0)


def test_from_scalars_requires_nine():
    with pytest.raises(ShapeMismatch):
        Matrix3.from_scalars([1.0] * 8)


def test_grad_through_matrix3():
    """Matrix3 is a pytree, so jax.grad returns a Matrix3 of partials."""
    rng = np.random.default_rng(4)
    A = _random_matrix(rng)
    v = _random_vector(rng)

    g = jax.grad(lambda m: m.squared_norm)(A)
    assert isinstance(g, Matrix3)
    assert jnp.allclose(g.flat_array(), 2.0 * A.flat_array())

    # d/dA of w·(A v) is the outer product w vᵀ
    w = _random_vector(rng)
    g2 = jax.grad(lambda m: matvec(m, v).dot(w))(A)
    expected = np.outer(np.asarray(w.flat_array()), np.asarray(v.flat_array()))
    assert np.allclose(_to_numpy(g2), expected)
