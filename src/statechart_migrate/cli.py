"""CLI entry point for generating and applying snapshot migrations."""

import importlib
import json
import logging
from pathlib import Path
from typing import Any

import typer

from statechart_migrate.config import Config, default_config, load_config
from statechart_migrate.errors import MigrationError
from statechart_migrate.machine import StateMachine, create_machine
from statechart_migrate.migrations import apply_migrations, generate_migrations, migrate
from statechart_migrate.serialization import dump_json, load_json, load_machine

logger = logging.getLogger(__name__)

app = typer.Typer(help="Migrate persisted state machine snapshots to a newer definition")


def _setup(config: Path | None) -> Config:
    """Load configuration and configure logging from it."""

    try:
        cfg = load_config(config) if config is not None else default_config()
    except (FileNotFoundError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e

    log_level = getattr(logging, cfg.logging.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.debug(f"Logging configured at level: {cfg.logging.log_level}")
    return cfg


def _read_document(path: Path, label: str) -> Any:
    try:
        return load_json(path)
    except FileNotFoundError as e:
        raise typer.BadParameter(f"{label} file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise typer.BadParameter(f"{label} file is not valid JSON: {path} ({e})") from e


def resolve_machine(reference: str) -> StateMachine:
    """Load a machine from a JSON file or a ``package.module:attribute`` reference.

    Python references may point at a :class:`StateMachine` or at a definition
    mapping; only those can carry a context factory that consumes ``--input``.
    """

    path = Path(reference)
    if path.suffix == ".json" or path.exists():
        try:
            return load_machine(path)
        except FileNotFoundError as e:
            raise typer.BadParameter(f"Machine file not found: {path}") from e
        except json.JSONDecodeError as e:
            raise typer.BadParameter(f"Machine file is not valid JSON: {path} ({e})") from e

    module_name, sep, attribute = reference.partition(":")
    if not sep or not attribute:
        raise typer.BadParameter(
            f"Machine must be a JSON file or a 'module:attribute' reference, got {reference!r}"
        )
    try:
        target = getattr(importlib.import_module(module_name), attribute)
    except (ImportError, AttributeError) as e:
        raise typer.BadParameter(f"Cannot import machine {reference!r}: {e}") from e

    if isinstance(target, StateMachine):
        return target
    return create_machine(target)


def _parse_input(raw: str | None) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise typer.BadParameter(f"--input must be a JSON value: {e}") from e


def _emit(payload: Any, output: Path | None) -> None:
    rendered = dump_json(payload)
    if output is None:
        typer.echo(rendered)
        return
    output.write_text(rendered + "\n", encoding="utf-8")
    typer.echo(f"Wrote {output}")


@app.command()
def generate(
    machine: str = typer.Argument(..., help="Machine JSON file or 'module:attribute'."),
    snapshot: Path = typer.Argument(..., help="Persisted snapshot JSON file."),
    input: str | None = typer.Option(
        None, "--input", "-i", help="JSON runtime input for a computed initial context."
    ),
    config: Path | None = typer.Option(None, "--config", "-c", help="Path to configuration file"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write operations here."),
) -> None:
    """Print the operations that migrate SNAPSHOT to MACHINE."""

    cfg = _setup(config)
    persisted = _read_document(snapshot, "Snapshot")
    try:
        operations = generate_migrations(
            resolve_machine(machine), persisted, _parse_input(input), policy=cfg.policy()
        )
    except MigrationError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e

    logger.info(f"Generated {len(operations)} migration(s) for {snapshot}")
    _emit(operations, output)


@app.command()
def apply(
    snapshot: Path = typer.Argument(..., help="Persisted snapshot JSON file."),
    operations: Path = typer.Argument(..., help="Operation list produced by 'generate'."),
    config: Path | None = typer.Option(None, "--config", "-c", help="Path to configuration file"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write the snapshot here."),
) -> None:
    """Apply a stored operation list to SNAPSHOT and print the result."""

    _setup(config)
    persisted = _read_document(snapshot, "Snapshot")
    migrations = _read_document(operations, "Operations")
    if not isinstance(migrations, list):
        raise typer.BadParameter(f"Operations file must contain a JSON list: {operations}")

    try:
        migrated = apply_migrations(persisted, migrations)
    except MigrationError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e

    _emit(migrated, output)


@app.command(name="migrate")
def migrate_command(
    machine: str = typer.Argument(..., help="Machine JSON file or 'module:attribute'."),
    snapshot: Path = typer.Argument(..., help="Persisted snapshot JSON file."),
    input: str | None = typer.Option(
        None, "--input", "-i", help="JSON runtime input for a computed initial context."
    ),
    config: Path | None = typer.Option(None, "--config", "-c", help="Path to configuration file"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write the snapshot here."),
    show_operations: bool = typer.Option(
        False, "--show-operations", help="Print the generated operations to stderr."
    ),
) -> None:
    """Generate and apply migrations for SNAPSHOT in one step."""

    cfg = _setup(config)
    persisted = _read_document(snapshot, "Snapshot")
    try:
        result = migrate(
            resolve_machine(machine), persisted, _parse_input(input), policy=cfg.policy()
        )
    except MigrationError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e

    if show_operations:
        typer.echo(dump_json(result.operations), err=True)
    _emit(result.snapshot, output)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
