# Copyright (c) 2025.
# This file is part of LSQ-JIT, released under the MIT License.
"""
Variable identifiers and the variable-assignment store.

The optimization core never owns a factor graph. It only needs two things
from whatever container the caller uses:

    • a way to read the current value of each variable a factor touches, so
      the linearization bridge can evaluate the factor there;
    • a way to write refined values back after a solve.

`VariableAssignments` is the minimal store that provides both. Values are
any of the vector types in `core.vectors` or a `core.matrix3.Matrix3`.

Classes
-------
TypedID
    A node id tagged with the kind of value stored under it
    (e.g. ``"Vector3"``). Factors list their adjacent variables as a tuple
    of `TypedID`s, the factor's ``edges``.

VariableAssignments
    Ordered map ``TypedID -> value``. Ids are assigned densely in insertion
    order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, NewType, Tuple

from .errors import ShapeMismatch

NodeId = NewType("NodeId", int)


@dataclass(frozen=True)
class TypedID:
    """Identifier of one stored variable."""
    node: NodeId
    kind: str      # name of the value type, e.g. "Vector3", "Matrix3"


@dataclass
class VariableAssignments:
    """Current values of all variables, keyed by `TypedID`."""

    values: Dict[TypedID, Any] = field(default_factory=dict)

    def store(self, value: Any, kind: str | None = None) -> TypedID:
        tid = TypedID(node=NodeId(len(self.values)), kind=kind or type(value).__name__)
        self.values[tid] = value
        return tid

    def __getitem__(self, tid: TypedID) -> Any:
        return self.values[tid]

    def __setitem__(self, tid: TypedID, value: Any) -> None:
        if tid not in self.values:
            raise KeyError(tid)
        old = self.values[tid]
        if old.tangent_shape != value.tangent_shape:
            raise ShapeMismatch(
                f"variable {tid} has shape {old.tangent_shape}, cannot assign {value.tangent_shape}"
            )
        self.values[tid] = value

    def __contains__(self, tid: object) -> bool:
        return tid in self.values

    def __len__(self) -> int:
        return len(self.values)

    def __iter__(self) -> Iterator[TypedID]:
        return iter(self.values)

    def values_at(self, edges: Iterable[TypedID]) -> Tuple[Any, ...]:
        return tuple(self.values[e] for e in edges)

    def move(self, edges: Iterable[TypedID], along: Iterable[Any]) -> None:
        """Apply one tangent increment per edge, ``x_e <- x_e.moved(d_e)``."""
        edges = tuple(edges)
        along = tuple(along)
        if len(edges) != len(along):
            raise ShapeMismatch(f"{len(edges)} edges but {len(along)} increments")
        for e, d in zip(edges, along):
            self[e] = self.values[e].moved(d)
