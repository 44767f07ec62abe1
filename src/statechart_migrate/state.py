"""Typed snapshot models and the tagged state-value variant.

Persisted snapshots are plain JSON documents, so they are described with
``TypedDict`` the same way checkpointed graph state is. The state value itself is
parsed into :class:`LeafValue` / :class:`CompoundValue` before the reconciler walks it.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal, NotRequired, TypedDict

from statechart_migrate.errors import MalformedSnapshotError

StateValue = str | dict[str, "StateValue"]


class PersistedSnapshot(TypedDict, total=False):
    """Snapshot written by the actor runtime.

    Only ``value`` and ``context`` are inspected; every other field is passed
    through untouched.
    """

    value: StateValue
    context: dict[str, Any]
    status: str
    output: Any
    error: Any
    children: dict[str, Any]
    historyValue: dict[str, Any]
    version: str


class MachineSnapshot(TypedDict):
    """Initial snapshot computed from a machine definition."""

    value: StateValue
    context: dict[str, Any]
    status: str


class Operation(TypedDict):
    """A single JSON-Patch step."""

    op: Literal["add", "remove", "replace"]
    path: str
    value: NotRequired[Any]


@dataclass(frozen=True)
class LeafValue:
    """A bare state name."""

    name: str


@dataclass(frozen=True)
class CompoundValue:
    """Active child per region (parallel) or the single active child (compound)."""

    children: dict[str, LeafValue | CompoundValue]


def parse_state_value(value: Any) -> LeafValue | CompoundValue:
    """Convert a persisted JSON state value into the tagged variant.

    Raises:
        MalformedSnapshotError: If any level is neither a string nor a mapping
    """

    if isinstance(value, str):
        return LeafValue(value)
    if isinstance(value, Mapping):
        return CompoundValue({str(key): parse_state_value(child) for key, child in value.items()})
    raise MalformedSnapshotError(
        f"State value must be a state name or a mapping, got {type(value).__name__}"
    )


__all__ = [
    "CompoundValue",
    "LeafValue",
    "MachineSnapshot",
    "Operation",
    "PersistedSnapshot",
    "StateValue",
    "parse_state_value",
]
