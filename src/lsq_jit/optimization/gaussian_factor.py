# Copyright (c) 2025.
# This file is part of LSQ-JIT, released under the MIT License.
"""
Linear-operator contract consumed by the iterative solvers.

A `GaussianFactor` is a linear (or locally linearized) map from an input
tangent space to an error space. CGLS only ever talks to it through:

    apply_linear_forward(p)    ->  A p
    apply_linear_transpose(r)  ->  Aᵀ r
    error_vector(x)            ->  A x - b

plus ``squared_norm`` / ``scaled`` on the vectors involved. The Jacobian
`A` is never required to exist as a dense matrix.

Adjoint contract
----------------
For all ``p`` and ``r``:

    ⟨apply_linear_forward(p), r⟩ == ⟨p, apply_linear_transpose(r)⟩

An implementation that breaks this still "converges", just to the wrong
point. `adjoint_gap` measures the violation for a given pair and is what
the tests use to check implementations.
"""

from __future__ import annotations

from typing import Any, Protocol, Sequence, runtime_checkable

import jax.numpy as jnp


@runtime_checkable
class EuclideanVector(Protocol):
    """Vector-space operations the solvers rely on."""

    def __add__(self, other: Any) -> Any: ...

    def __sub__(self, other: Any) -> Any: ...

    def scaled(self, by: Any) -> Any: ...

    def dot(self, other: Any) -> Any: ...

    @property
    def squared_norm(self) -> Any: ...

    def flat_array(self) -> jnp.ndarray: ...


@runtime_checkable
class GaussianFactor(Protocol):
    """A linear operator between an input tangent space and an error space."""

    @property
    def edges(self) -> Sequence[Any]: ...

    def error_vector(self, x: Any) -> Any: ...

    def apply_linear_forward(self, p: Any) -> Any: ...

    def apply_linear_transpose(self, r: Any) -> Any: ...


def adjoint_gap(f: GaussianFactor, p: Any, r: Any) -> float:
    """``|⟨A p, r⟩ - ⟨p, Aᵀ r⟩|`` for the operator ``f``."""
    lhs = f.apply_linear_forward(p).dot(r)
    rhs = p.dot(f.apply_linear_transpose(r))
    return abs(float(lhs) - float(rhs))
