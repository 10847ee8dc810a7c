# Copyright (c) 2025.
# This file is part of LSQ-JIT, released under the MIT License.
"""
Linearization bridge: nonlinear factors -> linear operators.

A nonlinear factor is an error function ``f(v_1, ..., v_k)`` over the
variables listed in its ``edges``. Linearizing it at the current values
``x0`` produces a `LinearizedFactor` that CGLS can consume:

    error     = -f(x0)
    H         = [∂f/∂v_1 | ∂f/∂v_2 | ... | ∂f/∂v_k]   (blocks in edge order)

    error_vector(δ)           = H·δ - error  ≈ f(x0 ⊕ δ)
    apply_linear_forward(δ)   = H·δ
    apply_linear_transpose(r) = Hᵀ·r, split back into per-variable tangents

Key Pieces
----------
NonlinearFactor
    Base dataclass for factor types. Subclasses implement
    ``error_vector(*values)``.

Linearizer
    Strategy protocol, ``linearize(factor, values) -> LinearizedFactor``.
    A factor type may set the class attribute ``linearizer`` to supply its
    own (e.g. hand-derived or externally computed) Jacobian; otherwise
    `JacfwdLinearizer` differentiates ``error_vector`` with `jax.jacfwd`.

LinearizedFactor
    The immutable ``(error, H, edges)`` operator. Shapes are validated at
    construction, never at use.

linearize / linearize_all
    Read values from a `VariableAssignments` and linearize one factor, or
    a whole collection in parallel.

Notes
-----
Differentiation happens in the tangent space at ``x0``: the error function
is evaluated at ``v_i.moved(δ_i)`` and differentiated with respect to the
flat increment ``δ`` at zero. For the Euclidean value types this is the
ordinary Jacobian.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, ClassVar, List, Optional, Protocol, Sequence, Tuple

import jax
import jax.numpy as jnp

from ..core.errors import ShapeMismatch
from ..core.types import NodeId, TypedID, VariableAssignments
from ..core.vectors import TangentTuple, TensorVector
from ..logging_config import get_logger

logger = get_logger(__name__)


class Linearizer(Protocol):
    """Strategy that turns a factor and its current values into a `LinearizedFactor`."""

    def linearize(self, factor: "NonlinearFactor", values: Sequence[Any]) -> "LinearizedFactor": ...


@dataclass(frozen=True, eq=False)
class LinearizedFactor:
    """
    Linear approximation of a factor at a fixed linearization point.

    - error: ``-f(x0)``, in the factor's error vector type
    - jacobian: shape ``error.tangent_shape + (zero_input.dimension,)``
    - edges: adjacent variable ids, in the order of H's column blocks
    - zero_input: zero tangent of each adjacent variable; fixes the
      structure of the input vectors this operator accepts
    """
    error: Any
    jacobian: jnp.ndarray
    edges: Tuple[TypedID, ...]
    zero_input: TangentTuple

    def __post_init__(self) -> None:
        jacobian = jnp.asarray(self.jacobian)
        expected = tuple(self.error.tangent_shape) + (self.zero_input.dimension,)
        if tuple(jacobian.shape) != expected:
            raise ShapeMismatch(
                f"Jacobian shape {tuple(jacobian.shape)} does not match "
                f"error shape + input dimension {expected}"
            )
        if len(self.edges) != len(self.zero_input):
            raise ShapeMismatch(
                f"{len(self.edges)} edges but {len(self.zero_input)} input blocks"
            )
        object.__setattr__(self, "jacobian", jacobian)
        object.__setattr__(self, "edges", tuple(self.edges))

    @classmethod
    def from_dense(
        cls,
        jacobian: jnp.ndarray,
        rhs: jnp.ndarray,
        edge: Optional[TypedID] = None,
    ) -> "LinearizedFactor":
        """
        Operator for ``min ||A x - b||²`` over a single `TensorVector` variable.

        jacobian: A, shape (m, n)
        rhs: b, shape (m,)
        """
        jacobian = jnp.asarray(jacobian)
        if jacobian.ndim != 2:
            raise ShapeMismatch(f"dense Jacobian must be 2-D, got shape {jacobian.shape}")
        if edge is None:
            edge = TypedID(node=NodeId(0), kind="TensorVector")
        return cls(
            error=TensorVector(rhs),
            jacobian=jacobian,
            edges=(edge,),
            zero_input=TangentTuple((TensorVector(jnp.zeros((jacobian.shape[1],), jacobian.dtype)),)),
        )

    @property
    def input_dimension(self) -> int:
        return self.zero_input.dimension

    @property
    def matrix(self) -> jnp.ndarray:
        """H as a 2-D ``(error dimension, input dimension)`` array."""
        return jnp.reshape(self.jacobian, (self.error.dimension, self.input_dimension))

    def _flat_input(self, p: TangentTuple) -> jnp.ndarray:
        flat = p.flat_array()
        if flat.shape != (self.input_dimension,):
            raise ShapeMismatch(
                f"input has dimension {flat.shape[0]}, operator expects {self.input_dimension}"
            )
        return flat

    def apply_linear_forward(self, p: TangentTuple) -> Any:
        return self.error.tangent_from_flat(self.matrix @ self._flat_input(p))

    def apply_linear_transpose(self, r: Any) -> TangentTuple:
        # r·H == Hᵀ·r without forming Hᵀ
        return self.zero_input.tangent_from_flat(r.flat_array() @ self.matrix)

    def error_vector(self, x: TangentTuple) -> Any:
        return self.apply_linear_forward(x) - self.error

    def error_at(self, x: TangentTuple) -> float:
        return 0.5 * float(self.error_vector(x).squared_norm)


@dataclass
class NonlinearFactor:
    """
    Base class for factors over ``edges``.

    Subclasses implement ``error_vector(*values)``, taking one value per
    edge in order. Set the class attribute ``linearizer`` to override how
    the factor is linearized.
    """
    edges: Tuple[TypedID, ...]

    linearizer: ClassVar[Optional[Linearizer]] = None

    def error_vector(self, *values: Any) -> Any:
        raise NotImplementedError

    def error_at(self, *values: Any) -> float:
        return 0.5 * float(self.error_vector(*values).squared_norm)


@dataclass(frozen=True)
class JacfwdLinearizer:
    """Default strategy: forward-mode autodiff of ``error_vector`` in the tangent space."""

    def linearize(self, factor: NonlinearFactor, values: Sequence[Any]) -> LinearizedFactor:
        values = tuple(values)
        zero_input = TangentTuple(v.zero_tangent() for v in values)

        def local_error(delta_flat: jnp.ndarray) -> jnp.ndarray:
            delta = zero_input.tangent_from_flat(delta_flat)
            moved = [v.moved(d) for v, d in zip(values, delta)]
            return factor.error_vector(*moved).flat_array()

        f0 = factor.error_vector(*values)
        delta0 = jnp.zeros((zero_input.dimension,))
        H = jax.jacfwd(local_error)(delta0)  # (m, n)
        H = jnp.reshape(H, tuple(f0.tangent_shape) + (zero_input.dimension,))

        return LinearizedFactor(
            error=f0.scaled(-1.0),
            jacobian=H,
            edges=tuple(factor.edges),
            zero_input=zero_input,
        )


DEFAULT_LINEARIZER = JacfwdLinearizer()


def hstack_jacobians(blocks: Sequence[jnp.ndarray]) -> jnp.ndarray:
    """
    Concatenate per-variable Jacobian blocks along the input axis.

    Each block has shape ``error_shape + (d_i,)``; the result has shape
    ``error_shape + (sum d_i,)``.
    """
    blocks = [jnp.asarray(b) for b in blocks]
    lead = {tuple(b.shape[:-1]) for b in blocks}
    if len(lead) != 1:
        raise ShapeMismatch(f"Jacobian blocks disagree on error shape: {sorted(lead)}")
    return jnp.concatenate(blocks, axis=-1)


def linearize(
    factor: NonlinearFactor,
    assignments: VariableAssignments,
    linearizer: Optional[Linearizer] = None,
) -> LinearizedFactor:
    """
    Linearize ``factor`` at the values currently stored in ``assignments``.

    The strategy is, in order of preference: ``linearizer`` if given, the
    factor's own ``linearizer`` class attribute, `JacfwdLinearizer`.
    """
    values = assignments.values_at(factor.edges)
    strategy = linearizer or type(factor).linearizer or DEFAULT_LINEARIZER
    return strategy.linearize(factor, values)


def linearize_all(
    factors: Sequence[NonlinearFactor],
    assignments: VariableAssignments,
    max_workers: Optional[int] = None,
) -> List[LinearizedFactor]:
    """
    Linearize every factor at the same assignment.

    Factors are independent, so the work is spread over a thread pool; each
    task writes only its own slot of the pre-sized output list. The result
    is in the same order as ``factors``. The assignment must not be
    modified while this runs.
    """
    factors = list(factors)
    out: List[Optional[LinearizedFactor]] = [None] * len(factors)

    def work(i: int) -> None:
        out[i] = linearize(factors[i], assignments)

    if max_workers == 1 or len(factors) < 2:
        for i in range(len(factors)):
            work(i)
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = [executor.submit(work, i) for i in range(len(factors))]
            for future in futures:
                future.result()

    logger.debug("linearized %d factors", len(factors))
    return out  # type: ignore[return-value]
