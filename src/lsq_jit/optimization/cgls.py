# Copyright (c) 2025.
# This file is part of LSQ-JIT, released under the MIT License.
"""
Conjugate Gradient Least Squares (CGLS) for LSQ-JIT.

CGLS minimises ``||A x - b||²`` for a linear operator given only through
its forward and transpose applications (see
`optimization.gaussian_factor.GaussianFactor`). The normal-equations matrix
``AᵀA`` is never formed.

Reference: Björck, *Numerical Methods for Least Squares Problems* (1996),
Algorithm 7.4.1.

Iteration
---------
Starting from ``x0``:

    r0 = -f.error_vector(x0)            (= b - A x0)
    p0 = s0 = f.apply_linear_transpose(r0)
    γ0 = ||s0||²

and for each step k:

    q  = A p
    α  = γ / ||q||²
    x += α p
    r -= α q
    s  = Aᵀ r
    β  = ||s||² / γ,   γ = ||s||²
    p  = s + β p

Termination
-----------
CONVERGED
    ``α² ||p||² < precision`` after the update of ``p`` (a step-size test,
    not a residual test), or a zero denominator: ``γ == 0`` or
    ``||q||² == 0`` means the residual is already orthogonal to the range
    of A and there is nothing left to do.

MAX_ITERATIONS_REACHED
    ``step`` reached ``max_iteration``. The current estimate is returned
    and a warning is logged.

The solver's ``step`` counter is shared across calls to `CGLS.optimize` on
the same instance and only goes back to zero on `CGLS.reset`. A `CGLS`
instance must not be used by two solves at once.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

from .gaussian_factor import EuclideanVector, GaussianFactor
from ..logging_config import get_logger

logger = get_logger(__name__)


class CGLSStatus(enum.Enum):
    INITIALIZING = "initializing"
    ITERATING = "iterating"
    CONVERGED = "converged"
    MAX_ITERATIONS_REACHED = "max_iterations_reached"


@dataclass
class CGLSConfig:
    precision: float = 1e-10    # early exit when α²·||p||² drops below this
    max_iteration: int = 400    # ceiling on the solver's step counter


@dataclass
class CGLS:
    """
    Stateful CGLS solver.

    Usage:
        solver = CGLS(CGLSConfig(precision=1e-10, max_iteration=400))
        x = solver.optimize(linear_factor, x0)
        solver.status   # CGLSStatus of the last solve
        solver.step     # steps taken so far, across calls
    """
    config: CGLSConfig = field(default_factory=CGLSConfig)
    step: int = 0
    status: CGLSStatus = CGLSStatus.INITIALIZING

    @property
    def precision(self) -> float:
        return self.config.precision

    @property
    def max_iteration(self) -> int:
        return self.config.max_iteration

    def reset(self) -> None:
        self.step = 0
        self.status = CGLSStatus.INITIALIZING

    def optimize(self, f: GaussianFactor, initial: EuclideanVector) -> EuclideanVector:
        """
        Minimise ``||f.error_vector(x)||²`` starting at ``initial``.

        Returns the refined estimate; ``initial`` itself is not modified.
        """
        self.status = CGLSStatus.INITIALIZING
        self.step += 1

        x = initial
        r = f.error_vector(x).scaled(-1.0)
        p = f.apply_linear_transpose(r)
        s = p
        gamma = float(s.squared_norm)
        logger.debug("CGLS start: step=%d gamma=%.3e", self.step, gamma)

        self.status = CGLSStatus.ITERATING
        while self.step < self.max_iteration:
            if gamma == 0.0:
                return self._converged(x, "residual has no component in the range of A")

            q = f.apply_linear_forward(p)
            q_norm = float(q.squared_norm)
            if q_norm == 0.0:
                return self._converged(x, "search direction is in the null space of A")

            alpha = gamma / q_norm
            x = x + p.scaled(alpha)
            r = r - q.scaled(alpha)
            s = f.apply_linear_transpose(r)

            gamma_next = float(s.squared_norm)
            beta = gamma_next / gamma
            gamma = gamma_next
            p = s + p.scaled(beta)

            if alpha * alpha * float(p.squared_norm) < self.precision:
                return self._converged(x, "early exit, update below precision")
            self.step += 1

        self.status = CGLSStatus.MAX_ITERATIONS_REACHED
        logger.warning(
            "CGLS reached max_iteration=%d without converging (gamma=%.3e)",
            self.max_iteration,
            gamma,
        )
        return x

    def _converged(self, x: Any, reason: str) -> Any:
        self.status = CGLSStatus.CONVERGED
        logger.info("CGLS converged at step %d: %s", self.step, reason)
        return x


def cgls(f: GaussianFactor, x0: EuclideanVector, cfg: CGLSConfig | None = None) -> EuclideanVector:
    """
    One-shot CGLS solve with a fresh solver.

    Args:
        f: linear operator
        x0: initial estimate, in ``f``'s input vector type
        cfg: precision / iteration limits

    Returns:
        x_opt: refined estimate
    """
    solver = CGLS(config=cfg or CGLSConfig())
    return solver.optimize(f, x0)
