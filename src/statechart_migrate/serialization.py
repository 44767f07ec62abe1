"""JSON helpers for snapshots, operation lists and machine documents."""

from __future__ import annotations

import json
from dataclasses import asdict, is_dataclass
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any

from statechart_migrate.machine import StateMachine, create_machine


def to_serializable(value: Any) -> Any:
    """Convert dataclasses / datetimes into JSON-friendly types.

    Context factories may build defaults from rich Python objects; snapshots are
    persisted as plain JSON, so the output of a migration is normalised first.
    Decimals keep their exact digits: integral ones become ints, others strings.
    """

    if is_dataclass(value) and not isinstance(value, type):
        return {key: to_serializable(val) for key, val in asdict(value).items()}
    if isinstance(value, dict):
        return {str(k): to_serializable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_serializable(item) for item in value]
    if isinstance(value, datetime):
        return value.astimezone(UTC).isoformat()
    if isinstance(value, Decimal):
        if value.is_finite() and value == value.to_integral_value():
            return int(value)
        return str(value)
    if isinstance(value, Enum):
        return value.value
    return value


def load_json(path: str | Path) -> Any:
    """Read a JSON document from ``path``."""

    return json.loads(Path(path).read_text(encoding="utf-8"))


def dump_json(value: Any) -> str:
    """Render ``value`` as indented JSON, keeping the document's key order."""

    return json.dumps(to_serializable(value), indent=2)


def load_machine(path: str | Path) -> StateMachine:
    """Read a machine definition document from ``path`` and build its machine.

    Raises:
        FileNotFoundError: If ``path`` does not exist
        json.JSONDecodeError: If the file is not valid JSON
        MalformedDefinitionError: If the document fails schema validation
    """

    return create_machine(load_json(path))


__all__ = ["dump_json", "load_json", "load_machine", "to_serializable"]
