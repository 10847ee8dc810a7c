# Copyright (c) 2025.
# This file is part of LSQ-JIT, released under the MIT License.
"""
Dense 3x3 matrix kernel for LSQ-JIT.

`Matrix3` stores its nine entries in named slots ``s00 .. s22`` (row, column)
and implements the small set of products that Jacobian assembly and adjoint
computations need:

    matvec(A, v)             ->  A v
    matvec_transposed(A, v)  ->  Aᵀ v, without building Aᵀ
    matmul(A, B)             ->  A B, one `matvec` per column of B

Scalar ordering
---------------
Two orderings are in play and must not be mixed up:

    • Construction (`Matrix3(...)`, `Matrix3.from_scalars`) reads scalars in
      **row-major** order: ``s00, s01, s02, s10, ...``.
    • The flattened views (`vec`, `scalars`, `flat_array`) are
      **column-major**: ``s00, s10, s20, s01, ...``.

The flattened view is what Jacobians are taken against, so a Jacobian
column ``k`` of a function of a `Matrix3` corresponds to entry
``(k % 3, k // 3)``.

Like the vector types, `Matrix3` is a JAX pytree: its entries may be Python
floats (exact, reproducible arithmetic) or JAX tracers (differentiable).
"""

from __future__ import annotations

import operator
from dataclasses import dataclass, replace
from typing import Any, ClassVar, Iterable, List, Tuple

import jax.numpy as jnp
from jax.tree_util import register_pytree_node_class

from .errors import ShapeMismatch
from .vectors import Vector3, Vector9

_FIELDS = (
    "s00", "s01", "s02",
    "s10", "s11", "s12",
    "s20", "s21", "s22",
)


def _slot(row: Any, col: Any) -> str:
    row, col = operator.index(row), operator.index(col)
    if not (0 <= row < 3 and 0 <= col < 3):
        raise IndexError(f"Matrix3 index out of range: ({row}, {col})")
    return f"s{row}{col}"


@register_pytree_node_class
@dataclass(frozen=True, eq=True)
class Matrix3:
    """3x3 real matrix; positional arguments are row-major."""

    s00: Any
    s01: Any
    s02: Any
    s10: Any
    s11: Any
    s12: Any
    s20: Any
    s21: Any
    s22: Any

    dimension: ClassVar[int] = 9

    # --- Construction ---

    @classmethod
    def from_scalars(cls, scalars: Iterable[Any]) -> "Matrix3":
        """Build from nine scalars in row-major order."""
        scalars = tuple(scalars)
        if len(scalars) != 9:
            raise ShapeMismatch(f"Matrix3 expects 9 scalars, got {len(scalars)}")
        return cls(*scalars)

    @classmethod
    def from_rows(cls, row0: Vector3, row1: Vector3, row2: Vector3) -> "Matrix3":
        return cls(
            row0.x, row0.y, row0.z,
            row1.x, row1.y, row1.z,
            row2.x, row2.y, row2.z,
        )

    @classmethod
    def from_columns(cls, col0: Vector3, col1: Vector3, col2: Vector3) -> "Matrix3":
        return cls(
            col0.x, col1.x, col2.x,
            col0.y, col1.y, col2.y,
            col0.z, col1.z, col2.z,
        )

    @classmethod
    def zero(cls) -> "Matrix3":
        return cls(0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0)

    @classmethod
    def identity(cls) -> "Matrix3":
        return cls(1.0, 0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0, 1.0)

    @classmethod
    def standard_basis(cls) -> List["Matrix3"]:
        """Nine unit matrices; entry ``k`` has its 1 at ``(k // 3, k % 3)``."""
        basis = []
        for k in range(9):
            basis.append(cls.zero().with_entry(k // 3, k % 3, 1.0))
        return basis

    # --- Shape ---

    @property
    def row_count(self) -> int:
        return 3

    @property
    def column_count(self) -> int:
        return 3

    @property
    def tangent_shape(self) -> Tuple[int, ...]:
        return (9,)

    # --- Element access ---

    def __getitem__(self, index: Tuple[int, int]) -> Any:
        row, col = index
        return getattr(self, _slot(row, col))

    def with_entry(self, row: int, col: int, value: Any) -> "Matrix3":
        """Copy of ``self`` with entry ``(row, col)`` set to ``value``."""
        return replace(self, **{_slot(row, col): value})

    def row(self, i: int) -> Vector3:
        return Vector3(self[i, 0], self[i, 1], self[i, 2])

    def column(self, j: int) -> Vector3:
        return Vector3(self[0, j], self[1, j], self[2, j])

    # --- Flattened views (column-major) ---

    @property
    def scalars(self) -> Tuple[Any, ...]:
        return (
            self.s00, self.s10, self.s20,
            self.s01, self.s11, self.s21,
            self.s02, self.s12, self.s22,
        )

    @property
    def vec(self) -> Vector9:
        return Vector9(*self.scalars)

    def flat_array(self) -> jnp.ndarray:
        return jnp.asarray(self.scalars)

    def tangent_from_flat(self, flat: jnp.ndarray) -> "Matrix3":
        """Inverse of `flat_array`: read ``flat`` as a column-major 3x3."""
        if flat.shape != (9,):
            raise ShapeMismatch(f"Matrix3 needs a flat array of shape (9,), got {flat.shape}")
        return Matrix3.from_columns(
            Vector3(flat[0], flat[1], flat[2]),
            Vector3(flat[3], flat[4], flat[5]),
            Vector3(flat[6], flat[7], flat[8]),
        )

    def zero_tangent(self) -> "Matrix3":
        return Matrix3.zero()

    # --- Vector space ---

    def _entries(self) -> Tuple[Any, ...]:
        return tuple(getattr(self, name) for name in _FIELDS)

    def __add__(self, other):
        if not isinstance(other, Matrix3):
            return NotImplemented
        return Matrix3(*(a + b for a, b in zip(self._entries(), other._entries())))

    def __sub__(self, other):
        if not isinstance(other, Matrix3):
            return NotImplemented
        return Matrix3(*(a - b for a, b in zip(self._entries(), other._entries())))

    def __neg__(self):
        return Matrix3(*(-a for a in self._entries()))

    def __mul__(self, scalar):
        if isinstance(scalar, Matrix3):
            return NotImplemented
        return Matrix3(*(a * scalar for a in self._entries()))

    def __rmul__(self, scalar):
        if isinstance(scalar, Matrix3):
            return NotImplemented
        return Matrix3(*(scalar * a for a in self._entries()))

    def __truediv__(self, scalar):
        return Matrix3(*(a / scalar for a in self._entries()))

    def dot(self, other: "Matrix3") -> Any:
        return (
            self.s00 * other.s00
            + self.s01 * other.s01
            + self.s02 * other.s02
            + self.s10 * other.s10
            + self.s11 * other.s11
            + self.s12 * other.s12
            + self.s20 * other.s20
            + self.s21 * other.s21
            + self.s22 * other.s22
        )

    @property
    def squared_norm(self) -> Any:
        return self.dot(self)

    def scaled(self, by) -> "Matrix3":
        return self * by

    def moved(self, along: "Matrix3") -> "Matrix3":
        return self + along

    def transposed(self) -> "Matrix3":
        return Matrix3(
            self.s00, self.s10, self.s20,
            self.s01, self.s11, self.s21,
            self.s02, self.s12, self.s22,
        )

    # --- Pytree ---

    def tree_flatten(self):
        return self._entries(), None

    @classmethod
    def tree_unflatten(cls, aux_data, children):
        return cls(*children)


def matvec(lhs: Matrix3, rhs: Vector3) -> Vector3:
    """``lhs @ rhs`` for a column 3-vector."""
    return Vector3(
        lhs.s00 * rhs.x + lhs.s01 * rhs.y + lhs.s02 * rhs.z,
        lhs.s10 * rhs.x + lhs.s11 * rhs.y + lhs.s12 * rhs.z,
        lhs.s20 * rhs.x + lhs.s21 * rhs.y + lhs.s22 * rhs.z,
    )


def matvec_transposed(lhs: Matrix3, rhs: Vector3) -> Vector3:
    """``lhs.T @ rhs``; same rounding as ``matvec(lhs.transposed(), rhs)``."""
    return Vector3(
        lhs.s00 * rhs.x + lhs.s10 * rhs.y + lhs.s20 * rhs.z,
        lhs.s01 * rhs.x + lhs.s11 * rhs.y + lhs.s21 * rhs.z,
        lhs.s02 * rhs.x + lhs.s12 * rhs.y + lhs.s22 * rhs.z,
    )


def matmul(lhs: Matrix3, rhs: Matrix3) -> Matrix3:
    """
    ``lhs @ rhs``, computed one column of ``rhs`` at a time.

    Each result column is exactly ``matvec(lhs, rhs.column(j))``.
    """
    if rhs.row_count != lhs.column_count:
        raise ShapeMismatch("matmul: inner dimensions differ")
    v1 = matvec(lhs, rhs.column(0))
    v2 = matvec(lhs, rhs.column(1))
    v3 = matvec(lhs, rhs.column(2))
    return Matrix3.from_columns(v1, v2, v3)
