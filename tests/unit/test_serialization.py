"""Unit tests for JSON serialization helpers."""

import json
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum

import pytest

from statechart_migrate.errors import MalformedDefinitionError
from statechart_migrate.machine import StateMachine
from statechart_migrate.serialization import dump_json, load_json, load_machine, to_serializable


class Tier(Enum):
    FREE = "free"


@dataclass
class Limits:
    quota: Decimal
    seats: Decimal
    tier: Tier


def test_to_serializable_converts_rich_values():
    value = {
        "limits": Limits(quota=Decimal("0.1"), seats=Decimal("5"), tier=Tier.FREE),
        "created": datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC),
        "tags": ("a", "b"),
    }

    assert to_serializable(value) == {
        "limits": {"quota": "0.1", "seats": 5, "tier": "free"},
        "created": "2024-01-02T03:04:05+00:00",
        "tags": ["a", "b"],
    }


def test_dump_keeps_key_order(tmp_path):
    path = tmp_path / "snapshot.json"
    snapshot = {"value": "idle", "context": {"b": 1, "a": 2}, "status": "active"}
    path.write_text(dump_json(snapshot), encoding="utf-8")

    loaded = json.loads(path.read_text(encoding="utf-8"))
    assert load_json(path) == snapshot
    assert list(loaded) == ["value", "context", "status"]
    assert list(loaded["context"]) == ["b", "a"]


def test_load_machine_builds_state_machine(tmp_path):
    path = tmp_path / "machine.json"
    path.write_text(
        json.dumps(
            {
                "id": "door",
                "initial": "closed",
                "context": {"opened": 0},
                "states": {"closed": {}, "open": {}},
            }
        ),
        encoding="utf-8",
    )

    machine = load_machine(path)

    assert isinstance(machine, StateMachine)
    assert machine.id == "door"
    assert set(machine.id_map) == {"door", "door.closed", "door.open"}
    assert machine.initial_snapshot()["value"] == "closed"


def test_load_machine_rejects_invalid_definition(tmp_path):
    path = tmp_path / "machine.json"
    path.write_text(json.dumps({"id": "m", "initial": "gone", "states": {}}), encoding="utf-8")

    with pytest.raises(MalformedDefinitionError, match="Invalid machine definition"):
        load_machine(path)


def test_load_machine_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_machine(tmp_path / "missing.json")
