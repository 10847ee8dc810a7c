# Copyright (c) 2025.
# This file is part of LSQ-JIT, released under the MIT License.
"""
Euclidean measurement factors for LSQ-JIT.

Each factor type pairs a plain residual function with a `NonlinearFactor`
dataclass that knows its edges and measurement parameters:

    • `prior_residual` / `PriorFactor`:
          r = x - target

    • `between_residual` / `BetweenFactor`:
          r = (x1 - x0) - measurement

Both work on any of the Euclidean value types (`FixedVector`
subclasses, `TensorVector`, `Matrix3`), and both are linearized by the
default autodiff strategy.

Weighting
---------
An optional scalar ``weight`` is interpreted as information (1 / σ²), so the
residual is scaled by ``sqrt(weight)``. `sigma_to_weight` converts a
standard deviation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import jax.numpy as jnp

from ..core.errors import ShapeMismatch
from ..optimization.linearization import NonlinearFactor


def _apply_weight(residual: Any, weight: Optional[float]) -> Any:
    """
    Optional weighting of residuals.

    If weight is:
      - None:   no change
      - scalar: r' = sqrt(w) * r
    """
    if weight is None:
        return residual
    return residual.scaled(jnp.sqrt(weight))


def sigma_to_weight(sigma: float) -> float:
    """w = 1 / sigma^2"""
    return 1.0 / (sigma * sigma)


def prior_residual(x: Any, target: Any) -> Any:
    return x - target


def between_residual(x0: Any, x1: Any, measurement: Any) -> Any:
    return (x1 - x0) - measurement


def _check_arity(factor: NonlinearFactor, expected: int) -> None:
    if len(factor.edges) != expected:
        raise ShapeMismatch(
            f"{type(factor).__name__} needs {expected} edge(s), got {len(factor.edges)}"
        )


@dataclass
class PriorFactor(NonlinearFactor):
    """Pulls one variable towards ``target``."""
    target: Any
    weight: Optional[float] = None

    def __post_init__(self) -> None:
        self.edges = tuple(self.edges)
        _check_arity(self, 1)

    def error_vector(self, x: Any) -> Any:
        return _apply_weight(prior_residual(x, self.target), self.weight)


@dataclass
class BetweenFactor(NonlinearFactor):
    """Constrains the difference ``x1 - x0`` to ``measurement``."""
    measurement: Any
    weight: Optional[float] = None

    def __post_init__(self) -> None:
        self.edges = tuple(self.edges)
        _check_arity(self, 2)

    def error_vector(self, x0: Any, x1: Any) -> Any:
        return _apply_weight(between_residual(x0, x1, self.measurement), self.weight)
