# Copyright (c) 2025.
# This file is part of LSQ-JIT, released under the MIT License.
"""
Euclidean vector types for LSQ-JIT.

Every value that flows through a linearized factor or the CGLS solver is one
of the vector types defined here. They all share a small vector-space API:

    • ``+``, ``-``, unary ``-``, scalar ``*`` and ``/``
    • ``dot(other)`` and ``squared_norm`` (= ``dot(self)``)
    • ``scaled(by)`` and ``moved(along)``
    • ``flat_array()`` / ``tangent_from_flat(flat)`` for moving between the
      structured value and the flat JAX array used by Jacobians
    • ``dimension`` and ``tangent_shape``

Classes
-------
FixedVector
    Base class for vectors whose dimension is fixed per class
    (`Vector3`, `Vector5`, `Vector9`). Scalars are stored as a
    plain tuple, so arithmetic on Python floats is exact and reproducible,
    and arithmetic on JAX tracers is differentiable.

TensorVector
    A vector whose scalars live in a JAX array of arbitrary shape, used for
    image patches and dense right-hand sides.

TangentTuple
    The input vector of a multi-variable factor: one tangent vector per
    adjacent variable, kept in edge order.

Notes
-----
All types are registered as JAX pytrees, so functions of them can be passed
straight to `jax.grad`, `jax.jacfwd` or `jax.jit`. Pytree unflattening
bypasses the constructors because JAX may rebuild these objects with
placeholder leaves.

Euclidean vectors are their own tangent space: ``moved(along)`` is plain
addition and ``zero_tangent()`` is the zero vector of the same type.
"""

from __future__ import annotations

from typing import Any, ClassVar, Iterable, Iterator, Tuple

import jax.numpy as jnp
from jax.tree_util import register_pytree_node_class

from .errors import ShapeMismatch


class FixedVector:
    """Vector of ``dimension`` scalars, with ``dimension`` fixed by the subclass."""

    __slots__ = ("scalars",)

    dimension: ClassVar[int] = 0

    def __init__(self, *scalars: Any) -> None:
        if len(scalars) != self.dimension:
            raise ShapeMismatch(
                f"{type(self).__name__} expects {self.dimension} scalars, got {len(scalars)}"
            )
        self.scalars: Tuple[Any, ...] = tuple(scalars)

    # --- Construction ---

    @classmethod
    def from_scalars(cls, scalars: Iterable[Any]):
        return cls(*scalars)

    @classmethod
    def zero(cls):
        return cls(*([0.0] * cls.dimension))

    @classmethod
    def standard_basis(cls):
        """The ``dimension`` unit vectors, in coordinate order."""
        basis = []
        for k in range(cls.dimension):
            scalars = [0.0] * cls.dimension
            scalars[k] = 1.0
            basis.append(cls(*scalars))
        return basis

    @property
    def tangent_shape(self) -> Tuple[int, ...]:
        return (self.dimension,)

    # --- Vector space ---

    def _check_same_type(self, other: Any) -> bool:
        return type(other) is type(self)

    def __add__(self, other):
        if not self._check_same_type(other):
            return NotImplemented
        return type(self)(*(a + b for a, b in zip(self.scalars, other.scalars)))

    def __sub__(self, other):
        if not self._check_same_type(other):
            return NotImplemented
        return type(self)(*(a - b for a, b in zip(self.scalars, other.scalars)))

    def __neg__(self):
        return type(self)(*(-a for a in self.scalars))

    def __mul__(self, scalar):
        if isinstance(scalar, FixedVector):
            return NotImplemented
        return type(self)(*(a * scalar for a in self.scalars))

    def __rmul__(self, scalar):
        if isinstance(scalar, FixedVector):
            return NotImplemented
        return type(self)(*(scalar * a for a in self.scalars))

    def __truediv__(self, scalar):
        return type(self)(*(a / scalar for a in self.scalars))

    def dot(self, other) -> Any:
        if not self._check_same_type(other):
            raise ShapeMismatch(
                f"cannot dot {type(self).__name__} with {type(other).__name__}"
            )
        total = 0.0
        for a, b in zip(self.scalars, other.scalars):
            total = total + a * b
        return total

    @property
    def squared_norm(self) -> Any:
        return self.dot(self)

    def scaled(self, by) -> "FixedVector":
        return self * by

    def moved(self, along) -> "FixedVector":
        return self + along

    # --- Flat array interop ---

    def zero_tangent(self):
        return type(self).zero()

    def flat_array(self) -> jnp.ndarray:
        return jnp.asarray(self.scalars)

    def tangent_from_flat(self, flat: jnp.ndarray):
        if flat.shape != (self.dimension,):
            raise ShapeMismatch(
                f"{type(self).__name__} needs a flat array of shape ({self.dimension},), "
                f"got {flat.shape}"
            )
        return type(self)(*(flat[i] for i in range(self.dimension)))

    # --- Python protocol ---

    def __len__(self) -> int:
        return self.dimension

    def __iter__(self) -> Iterator[Any]:
        return iter(self.scalars)

    def __getitem__(self, index: int) -> Any:
        return self.scalars[index]

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return all(bool(a == b) for a, b in zip(self.scalars, other.scalars))

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"{type(self).__name__}({', '.join(repr(s) for s in self.scalars)})"

    # --- Pytree ---

    def tree_flatten(self):
        return self.scalars, None

    @classmethod
    def tree_unflatten(cls, aux_data, children):
        obj = object.__new__(cls)
        obj.scalars = tuple(children)
        return obj


@register_pytree_node_class
class Vector3(FixedVector):
    __slots__ = ()
    dimension: ClassVar[int] = 3

    @property
    def x(self):
        return self.scalars[0]

    @property
    def y(self):
        return self.scalars[1]

    @property
    def z(self):
        return self.scalars[2]


@register_pytree_node_class
class Vector5(FixedVector):
    __slots__ = ()
    dimension: ClassVar[int] = 5


@register_pytree_node_class
class Vector9(FixedVector):
    __slots__ = ()
    dimension: ClassVar[int] = 9


@register_pytree_node_class
class TensorVector:
    """
    Vector backed by a JAX array of any shape.

    The flat layout is the array's C-order ravel, which is also the layout
    of the leading axes of any Jacobian whose output is a `TensorVector`.
    """

    __slots__ = ("tensor",)

    def __init__(self, tensor: Any) -> None:
        self.tensor = jnp.asarray(tensor)

    @property
    def shape(self) -> Tuple[int, ...]:
        return tuple(self.tensor.shape)

    @property
    def tangent_shape(self) -> Tuple[int, ...]:
        return self.shape

    @property
    def dimension(self) -> int:
        return int(self.tensor.size)

    def _other_tensor(self, other: Any) -> jnp.ndarray:
        if not isinstance(other, TensorVector):
            raise ShapeMismatch(f"expected TensorVector, got {type(other).__name__}")
        if other.shape != self.shape:
            raise ShapeMismatch(f"TensorVector shapes differ: {self.shape} vs {other.shape}")
        return other.tensor

    def __add__(self, other):
        return TensorVector(self.tensor + self._other_tensor(other))

    def __sub__(self, other):
        return TensorVector(self.tensor - self._other_tensor(other))

    def __neg__(self):
        return TensorVector(-self.tensor)

    def __mul__(self, scalar):
        return TensorVector(self.tensor * scalar)

    __rmul__ = __mul__

    def __truediv__(self, scalar):
        return TensorVector(self.tensor / scalar)

    def dot(self, other) -> jnp.ndarray:
        return jnp.sum(self.tensor * self._other_tensor(other))

    @property
    def squared_norm(self) -> jnp.ndarray:
        return jnp.sum(self.tensor * self.tensor)

    def scaled(self, by) -> "TensorVector":
        return self * by

    def moved(self, along) -> "TensorVector":
        return self + along

    def zero_tangent(self) -> "TensorVector":
        return TensorVector(jnp.zeros_like(self.tensor))

    def flat_array(self) -> jnp.ndarray:
        return jnp.reshape(self.tensor, (-1,))

    def tangent_from_flat(self, flat: jnp.ndarray) -> "TensorVector":
        if flat.shape != (self.dimension,):
            raise ShapeMismatch(
                f"TensorVector{self.shape} needs a flat array of shape ({self.dimension},), "
                f"got {flat.shape}"
            )
        return TensorVector(jnp.reshape(flat, self.shape))

    def __repr__(self) -> str:
        return f"TensorVector(shape={self.shape})"

    def tree_flatten(self):
        return (self.tensor,), None

    @classmethod
    def tree_unflatten(cls, aux_data, children):
        obj = object.__new__(cls)
        obj.tensor = children[0]
        return obj


@register_pytree_node_class
class TangentTuple:
    """
    Ordered tangent vectors of a factor's adjacent variables.

    This is the ``InputVector`` of a `LinearizedFactor`. The flat layout
    concatenates each component's flat array in edge order, which matches
    the column blocks of the factor's Jacobian.
    """

    __slots__ = ("components",)

    def __init__(self, components: Iterable[Any]) -> None:
        self.components = tuple(components)

    @property
    def dimension(self) -> int:
        return sum(c.dimension for c in self.components)

    @property
    def tangent_shape(self) -> Tuple[int, ...]:
        return (self.dimension,)

    def _zip(self, other: Any):
        if not isinstance(other, TangentTuple) or len(other) != len(self):
            raise ShapeMismatch(
                f"TangentTuple arity mismatch: {len(self)} vs "
                f"{len(other) if isinstance(other, TangentTuple) else type(other).__name__}"
            )
        return zip(self.components, other.components)

    def __add__(self, other):
        return TangentTuple(a + b for a, b in self._zip(other))

    def __sub__(self, other):
        return TangentTuple(a - b for a, b in self._zip(other))

    def __neg__(self):
        return TangentTuple(-a for a in self.components)

    def __mul__(self, scalar):
        return TangentTuple(a.scaled(scalar) for a in self.components)

    __rmul__ = __mul__

    def __truediv__(self, scalar):
        return TangentTuple(a / scalar for a in self.components)

    def dot(self, other) -> Any:
        total = 0.0
        for a, b in self._zip(other):
            total = total + a.dot(b)
        return total

    @property
    def squared_norm(self) -> Any:
        total = 0.0
        for a in self.components:
            total = total + a.squared_norm
        return total

    def scaled(self, by) -> "TangentTuple":
        return self * by

    def moved(self, along) -> "TangentTuple":
        return self + along

    def zero_tangent(self) -> "TangentTuple":
        return TangentTuple(c.zero_tangent() for c in self.components)

    def flat_array(self) -> jnp.ndarray:
        if not self.components:
            return jnp.zeros((0,))
        return jnp.concatenate([c.flat_array() for c in self.components])

    def tangent_from_flat(self, flat: jnp.ndarray) -> "TangentTuple":
        """Split ``flat`` into per-component tangents shaped like ``self``."""
        if flat.shape != (self.dimension,):
            raise ShapeMismatch(
                f"TangentTuple needs a flat array of shape ({self.dimension},), got {flat.shape}"
            )
        parts = []
        offset = 0
        for c in self.components:
            parts.append(c.tangent_from_flat(flat[offset:offset + c.dimension]))
            offset += c.dimension
        return TangentTuple(parts)

    def __len__(self) -> int:
        return len(self.components)

    def __iter__(self) -> Iterator[Any]:
        return iter(self.components)

    def __getitem__(self, index: int) -> Any:
        return self.components[index]

    def __repr__(self) -> str:
        return f"TangentTuple({', '.join(repr(c) for c in self.components)})"

    def tree_flatten(self):
        return self.components, None

    @classmethod
    def tree_unflatten(cls, aux_data, children):
        obj = object.__new__(cls)
        obj.components = tuple(children)
        return obj
