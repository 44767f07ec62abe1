"""Tests for the command-line interface."""

import json

import pytest
from typer.testing import CliRunner

from statechart_migrate.cli import app

runner = CliRunner()

MACHINE = {
    "id": "nested",
    "initial": "parent",
    "context": {"data": "", "newData": ""},
    "states": {
        "parent": {
            "initial": "child1",
            "states": {"child1": {"on": {"NEXT": "child3"}}, "child3": {}},
        }
    },
}

SNAPSHOT = {
    "value": {"parent": "child2"},
    "context": {"data": "kept", "legacy": True},
    "status": "active",
}


@pytest.fixture
def files(tmp_path):
    machine_path = tmp_path / "machine.json"
    snapshot_path = tmp_path / "snapshot.json"
    machine_path.write_text(json.dumps(MACHINE), encoding="utf-8")
    snapshot_path.write_text(json.dumps(SNAPSHOT), encoding="utf-8")
    return tmp_path, machine_path, snapshot_path


def test_generate_writes_operations(files):
    tmp_path, machine_path, snapshot_path = files
    output = tmp_path / "operations.json"

    result = runner.invoke(
        app, ["generate", str(machine_path), str(snapshot_path), "-o", str(output)]
    )

    assert result.exit_code == 0, result.output
    assert json.loads(output.read_text(encoding="utf-8")) == [
        {"op": "replace", "path": "/value/parent", "value": "child1"},
        {"op": "add", "path": "/context/newData", "value": ""},
    ]


def test_generate_honours_remove_policy(files):
    tmp_path, machine_path, snapshot_path = files
    config = tmp_path / "statechart-migrate.toml"
    config.write_text('[migration]\ncontext_removal = "remove"\n', encoding="utf-8")
    output = tmp_path / "operations.json"

    result = runner.invoke(
        app,
        ["generate", str(machine_path), str(snapshot_path), "-c", str(config), "-o", str(output)],
    )

    assert result.exit_code == 0, result.output
    assert {"op": "remove", "path": "/context/legacy"} in json.loads(
        output.read_text(encoding="utf-8")
    )


def test_apply_stored_operations(files):
    tmp_path, _machine_path, snapshot_path = files
    operations = tmp_path / "operations.json"
    operations.write_text(
        json.dumps([{"op": "replace", "path": "/value/parent", "value": "child1"}]),
        encoding="utf-8",
    )
    output = tmp_path / "migrated.json"

    result = runner.invoke(app, ["apply", str(snapshot_path), str(operations), "-o", str(output)])

    assert result.exit_code == 0, result.output
    migrated = json.loads(output.read_text(encoding="utf-8"))
    assert migrated["value"] == {"parent": "child1"}
    assert migrated["context"] == SNAPSHOT["context"]


def test_apply_reports_unresolvable_operations(files):
    tmp_path, _machine_path, snapshot_path = files
    operations = tmp_path / "operations.json"
    operations.write_text(
        json.dumps([{"op": "add", "path": "/context/missing/child", "value": 1}]),
        encoding="utf-8",
    )

    result = runner.invoke(app, ["apply", str(snapshot_path), str(operations)])

    assert result.exit_code == 1
    assert "Error" in result.output


def test_migrate_in_one_step(files):
    tmp_path, machine_path, snapshot_path = files
    output = tmp_path / "migrated.json"

    result = runner.invoke(
        app, ["migrate", str(machine_path), str(snapshot_path), "-o", str(output)]
    )

    assert result.exit_code == 0, result.output
    assert json.loads(output.read_text(encoding="utf-8")) == {
        "value": {"parent": "child1"},
        "context": {"data": "kept", "legacy": True, "newData": ""},
        "status": "active",
    }


def test_migrate_with_python_machine_and_input(files, monkeypatch):
    tmp_path, _machine_path, snapshot_path = files
    (tmp_path / "sample_machines.py").write_text(
        "MACHINE = {\n"
        "    'id': 'nested',\n"
        "    'initial': 'parent',\n"
        "    'context': lambda input: {'data': '', 'owner': input['owner']},\n"
        "    'states': {'parent': {'initial': 'child1', 'states': {'child1': {}}}},\n"
        "}\n",
        encoding="utf-8",
    )
    monkeypatch.syspath_prepend(str(tmp_path))
    output = tmp_path / "migrated.json"

    result = runner.invoke(
        app,
        [
            "migrate",
            "sample_machines:MACHINE",
            str(snapshot_path),
            "--input",
            '{"owner": "ada"}',
            "-o",
            str(output),
        ],
    )

    assert result.exit_code == 0, result.output
    migrated = json.loads(output.read_text(encoding="utf-8"))
    assert migrated["context"]["owner"] == "ada"
    assert migrated["value"] == {"parent": "child1"}


def test_invalid_machine_definition_exits_with_error(files):
    tmp_path, _machine_path, snapshot_path = files
    machine_path = tmp_path / "broken.json"
    machine_path.write_text(
        json.dumps({"id": "m", "initial": "nope", "states": {}}), encoding="utf-8"
    )

    result = runner.invoke(app, ["generate", str(machine_path), str(snapshot_path)])

    assert result.exit_code == 1
    assert "Invalid machine definition" in result.output


def test_missing_snapshot_file_is_a_usage_error(files):
    tmp_path, machine_path, _snapshot_path = files

    result = runner.invoke(app, ["generate", str(machine_path), str(tmp_path / "nope.json")])

    assert result.exit_code == 2


def test_invalid_input_json_is_a_usage_error(files):
    _tmp_path, machine_path, snapshot_path = files

    result = runner.invoke(
        app, ["generate", str(machine_path), str(snapshot_path), "--input", "{not json"]
    )

    assert result.exit_code == 2


def test_missing_machine_file_is_a_usage_error(files):
    tmp_path, _machine_path, snapshot_path = files

    result = runner.invoke(app, ["generate", str(tmp_path / "gone.json"), str(snapshot_path)])

    assert result.exit_code == 2


def test_apply_keeps_snapshot_key_order(files):
    tmp_path, _machine_path, snapshot_path = files
    operations = tmp_path / "operations.json"
    operations.write_text("[]", encoding="utf-8")
    output = tmp_path / "migrated.json"

    result = runner.invoke(app, ["apply", str(snapshot_path), str(operations), "-o", str(output)])

    assert result.exit_code == 0, result.output
    migrated = json.loads(output.read_text(encoding="utf-8"))
    assert list(migrated) == ["value", "context", "status"]
