"""Reconcile persisted state machine snapshots with newer machine definitions."""

from statechart_migrate.config import Config, MigrationPolicy, load_config
from statechart_migrate.errors import (
    MalformedDefinitionError,
    MalformedSnapshotError,
    MigrationError,
    UnresolvablePatchError,
)
from statechart_migrate.machine import MachineConfig, StateMachine, StateNode, create_machine
from statechart_migrate.migrations import (
    MigrationResult,
    apply_migrations,
    generate_migrations,
    migrate,
)
from statechart_migrate.serialization import load_machine
from statechart_migrate.state import Operation, PersistedSnapshot, StateValue
from statechart_migrate.validator import build_valid_paths

__all__ = [
    "Config",
    "MachineConfig",
    "MalformedDefinitionError",
    "MalformedSnapshotError",
    "MigrationError",
    "MigrationPolicy",
    "MigrationResult",
    "Operation",
    "PersistedSnapshot",
    "StateMachine",
    "StateNode",
    "StateValue",
    "UnresolvablePatchError",
    "apply_migrations",
    "build_valid_paths",
    "create_machine",
    "generate_migrations",
    "load_config",
    "load_machine",
    "migrate",
]
