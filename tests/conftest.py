"""Pytest configuration and fixtures."""

import pytest

from statechart_migrate.machine import StateMachine, create_machine


@pytest.fixture
def simple_machine() -> StateMachine:
    """Flat machine with an added context field."""
    return create_machine(
        {
            "id": "test",
            "initial": "idle",
            "context": {"count": 0, "newProp": "default"},
            "states": {"idle": {}, "active": {}},
        }
    )


@pytest.fixture
def nested_machine() -> StateMachine:
    """Compound machine where child2 was replaced by child3."""
    return create_machine(
        {
            "id": "nested",
            "initial": "parent",
            "context": {"data": "", "newData": ""},
            "states": {
                "parent": {
                    "initial": "child1",
                    "states": {"child1": {}, "child3": {}},
                }
            },
        }
    )


@pytest.fixture
def parallel_machine() -> StateMachine:
    """Two parallel regions, each with inactive/active states."""
    return create_machine(
        {
            "id": "parallel",
            "type": "parallel",
            "states": {
                "foo": {
                    "initial": "inactive",
                    "states": {"inactive": {}, "active": {}, "newState": {}},
                },
                "bar": {
                    "initial": "inactive",
                    "states": {"inactive": {}, "active": {}},
                },
            },
        }
    )
