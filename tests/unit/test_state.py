"""Unit tests for state value parsing."""

import pytest

from statechart_migrate.errors import MalformedSnapshotError
from statechart_migrate.state import CompoundValue, LeafValue, parse_state_value


def test_parse_leaf():
    assert parse_state_value("idle") == LeafValue("idle")


def test_parse_nested_parallel_value():
    parsed = parse_state_value({"foo": "active", "bar": {"inner": "done"}})

    assert parsed == CompoundValue(
        {
            "foo": LeafValue("active"),
            "bar": CompoundValue({"inner": LeafValue("done")}),
        }
    )


@pytest.mark.parametrize("value", [None, 3, ["idle"], {"parent": None}])
def test_parse_rejects_other_shapes(value):
    with pytest.raises(MalformedSnapshotError):
        parse_state_value(value)
