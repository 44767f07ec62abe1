"""Exception hierarchy for snapshot migrations."""

from __future__ import annotations

from typing import Any


class MigrationError(Exception):
    """Base class for every failure raised by statechart_migrate."""


class MalformedDefinitionError(MigrationError):
    """The machine definition lacks the structure needed to derive state paths."""


class MalformedSnapshotError(MigrationError):
    """A persisted state value is neither a state name nor a mapping of regions."""


class UnresolvablePatchError(MigrationError):
    """An operation could not be applied to the snapshot copy.

    Attributes:
        operation: The operation that failed, when it could be identified
        index: Position of that operation in the applied sequence
    """

    def __init__(
        self,
        message: str,
        *,
        operation: dict[str, Any] | None = None,
        index: int | None = None,
    ):
        super().__init__(message)
        self.operation = operation
        self.index = index


__all__ = [
    "MalformedDefinitionError",
    "MalformedSnapshotError",
    "MigrationError",
    "UnresolvablePatchError",
]
