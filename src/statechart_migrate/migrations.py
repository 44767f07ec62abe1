"""Migration generation and application for persisted machine snapshots.

A snapshot saved under an older machine definition may point at states that no
longer exist and may lack context fields the newer definition expects. The
generator compares the snapshot against the new definition and returns JSON-Patch
operations that repair it:

- invalid branches of the state value are replaced with the new definition's
  initial value for the same position (parent before children)
- context keys introduced by the new definition are added with their defaults
- context keys dropped by the new definition are kept or removed per policy

Values of context keys present on both sides are never touched.
"""

from __future__ import annotations

import copy
import json
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, cast

import jsonpatch
import jsonpointer
from jsonpointer import JsonPointer

from statechart_migrate.config import MigrationPolicy
from statechart_migrate.errors import (
    MalformedDefinitionError,
    MalformedSnapshotError,
    UnresolvablePatchError,
)
from statechart_migrate.machine import MachineDefinition, StateNode
from statechart_migrate.state import (
    CompoundValue,
    LeafValue,
    Operation,
    PersistedSnapshot,
    StateValue,
    parse_state_value,
)
from statechart_migrate.validator import build_valid_paths, state_path

logger = logging.getLogger(__name__)

VALUE_KEY = "value"
CONTEXT_KEY = "context"


def _pointer(*parts: str) -> str:
    return JsonPointer.from_parts(list(parts)).path


CONTEXT_PREFIX = _pointer(CONTEXT_KEY)


def _dump(value: Any) -> str:
    return json.dumps(value, indent=2, default=str)


class _StateValueWalker:
    """Depth-first walk of a persisted state value against the new state tree."""

    def __init__(
        self,
        machine: MachineDefinition,
        valid_paths: frozenset[str],
        initial_value: StateValue,
    ):
        self.machine = machine
        self.valid_paths = valid_paths
        self.initial_value = initial_value
        self.operations: list[Operation] = []

    def walk(
        self,
        value: LeafValue | CompoundValue,
        segments: tuple[str, ...],
        node: StateNode,
    ) -> None:
        logger.debug(f"Handling state value at path: /{'/'.join(segments)}")
        if isinstance(value, LeafValue):
            self._check_leaf(value, segments, node)
            return

        if not node.is_parallel:
            # A compound node has exactly one active child; otherwise repair the node itself
            keys = list(value.children)
            if len(keys) != 1 or keys[0] not in node.states:
                logger.debug(f"Active children {keys} are not valid under '{node.id}'")
                self._emit("replace", segments, self._initial_value_at(segments, node))
                return

        for key, child in value.children.items():
            child_segments = (*segments, key)
            child_node = node.states.get(key)

            if child_node is None:
                logger.debug(f"Region '{key}' no longer exists under '{node.id}'")
                self._emit("remove", child_segments)
                continue

            if child_node.is_atomic:
                if node.is_parallel:
                    if child != CompoundValue({}):
                        logger.debug(f"Region '{child_node.id}' no longer has child states")
                        self._emit("replace", child_segments, {})
                    continue
                logger.debug(f"State '{child_node.id}' no longer has child states")
                self._emit("replace", segments, key)
                return

            self.walk(child, child_segments, child_node)

    def _check_leaf(self, leaf: LeafValue, segments: tuple[str, ...], node: StateNode) -> None:
        full_path = state_path(self.machine.id, *segments, leaf.name)
        logger.debug(f"Checking state validity: {full_path}")
        # A parallel node is active in all regions at once and never as a bare name
        if full_path in self.valid_paths and leaf.name in node.states and not node.is_parallel:
            return

        logger.debug(f"Invalid state found: {full_path}")
        replacement = self._initial_value_at(segments, node)
        logger.debug(f"Initial state for replacement: {replacement}")
        self._emit("replace", segments, replacement)

    def _initial_value_at(self, segments: tuple[str, ...], node: StateNode) -> StateValue:
        """Initial value for the subtree at ``segments``.

        Read from the new initial snapshot when it passes through the same ancestors,
        otherwise resolved from the state node itself.
        """

        value: Any = self.initial_value
        for key in segments:
            if not isinstance(value, Mapping) or key not in value:
                return node.initial_value()
            value = value[key]
        return copy.deepcopy(value)

    def _emit(self, op: str, segments: tuple[str, ...], value: Any = None) -> None:
        operation: dict[str, Any] = {"op": op, "path": _pointer(VALUE_KEY, *segments)}
        if op != "remove":
            operation["value"] = value
        self.operations.append(cast(Operation, operation))


def state_value_operations(
    machine: MachineDefinition,
    persisted_value: Any,
    initial_value: StateValue,
    valid_paths: frozenset[str] | None = None,
) -> list[Operation]:
    """Operations that make every active state in ``persisted_value`` valid for ``machine``.

    Raises:
        MalformedSnapshotError: If ``persisted_value`` is not a valid state value shape
        MalformedDefinitionError: If ``machine`` does not expose its state index
    """

    paths = valid_paths if valid_paths is not None else build_valid_paths(machine)
    root = machine.get_state_node(())
    if root is None:
        raise MalformedDefinitionError(f"Machine '{machine.id}' has no root state node")

    walker = _StateValueWalker(machine, paths, initial_value)
    walker.walk(parse_state_value(persisted_value), (), root)
    return walker.operations


def _addresses_object_key(document: Any, parts: Sequence[str]) -> bool:
    """True when every container on the way to ``parts`` is an object in ``document``."""

    container = document
    for key in parts[:-1]:
        if not isinstance(container, Mapping) or key not in container:
            return False
        container = container[key]
    return isinstance(container, Mapping)


def context_operations(
    persisted_context: Any,
    initial_context: Mapping[str, Any],
    policy: MigrationPolicy | None = None,
) -> list[Operation]:
    """Structural add/remove operations between the persisted and new default context.

    Changed values are not reported: once a key exists, the persisted value wins.
    List contents are treated as values, so only object keys count as structure.

    Raises:
        MalformedSnapshotError: If ``persisted_context`` is neither ``None`` nor a mapping
    """

    if persisted_context is not None and not isinstance(persisted_context, Mapping):
        raise MalformedSnapshotError(
            f"Persisted context must be a mapping, got {type(persisted_context).__name__}"
        )

    policy = policy or MigrationPolicy()
    old_context = persisted_context if persisted_context is not None else {}
    new_context = dict(initial_context)
    patch = jsonpatch.make_patch(old_context, new_context)

    operations: list[Operation] = []

    def add(path: str) -> None:
        parts = JsonPointer(path).parts
        if not parts or not _addresses_object_key(old_context, parts):
            return
        value = jsonpointer.resolve_pointer(new_context, path)
        operations.append({"op": "add", "path": CONTEXT_PREFIX + path, "value": value})

    def remove(path: str) -> None:
        parts = JsonPointer(path).parts
        if policy.context_removal != "remove":
            logger.debug(f"Preserving context field no longer declared: {path}")
            return
        if not parts or not _addresses_object_key(old_context, parts):
            return
        operations.append({"op": "remove", "path": CONTEXT_PREFIX + path})

    for raw in patch.patch:
        op = raw["op"]
        if op == "add":
            add(raw["path"])
        elif op == "remove":
            remove(raw["path"])
        elif op == "move":
            remove(raw["from"])
            add(raw["path"])
        elif op == "copy":
            add(raw["path"])
        # replace/test: an existing value always wins over the new default

    return operations


def generate_migrations(
    machine: MachineDefinition,
    persisted_snapshot: PersistedSnapshot | Mapping[str, Any],
    input: Any = None,
    *,
    policy: MigrationPolicy | None = None,
) -> list[Operation]:
    """Generate the operations that bring ``persisted_snapshot`` in line with ``machine``.

    Args:
        machine: The new machine definition
        persisted_snapshot: Snapshot saved under an older definition; not modified
        input: Runtime input for definitions whose initial context is computed
        policy: Context-removal policy; defaults to preserving unknown fields

    Returns:
        State-value operations (tree-walk order) followed by context operations

    Raises:
        MalformedDefinitionError: If ``machine`` does not expose its state index
        MalformedSnapshotError: If the persisted state value or context has an invalid shape
    """

    if not isinstance(persisted_snapshot, Mapping):
        raise MalformedSnapshotError(
            f"Persisted snapshot must be a mapping, got {type(persisted_snapshot).__name__}"
        )

    verbose = logger.isEnabledFor(logging.DEBUG)
    logger.debug("Generating migrations")
    if verbose:
        logger.debug(f"Persisted snapshot: {_dump(persisted_snapshot)}")

    valid_paths = build_valid_paths(machine)
    logger.debug(f"Valid states: {sorted(valid_paths)}")

    initial_snapshot = machine.initial_snapshot(input)
    if verbose:
        logger.debug(f"Initial snapshot: {_dump(initial_snapshot)}")

    if VALUE_KEY in persisted_snapshot:
        value_operations = state_value_operations(
            machine,
            persisted_snapshot[VALUE_KEY],
            initial_snapshot["value"],
            valid_paths,
        )
    else:
        value_operations = [
            {"op": "add", "path": _pointer(VALUE_KEY), "value": initial_snapshot["value"]}
        ]

    persisted_context = persisted_snapshot.get(CONTEXT_KEY)
    if persisted_context is not None:
        context_ops = context_operations(persisted_context, initial_snapshot["context"], policy)
    else:
        context_ops = [{"op": "add", "path": CONTEXT_PREFIX, "value": initial_snapshot["context"]}]
    logger.debug(f"Context operations: {context_ops}")

    all_operations = [*value_operations, *context_ops]
    logger.debug(f"All generated migrations: {all_operations}")
    return all_operations


def apply_migrations(
    persisted_snapshot: PersistedSnapshot | Mapping[str, Any],
    migrations: Sequence[Operation | Mapping[str, Any]],
) -> PersistedSnapshot:
    """Apply ``migrations`` to a deep copy of ``persisted_snapshot``.

    Operations are applied in order with JSON-Patch semantics. The input snapshot
    and operation list are left untouched.

    Raises:
        UnresolvablePatchError: If any operation cannot be applied; nothing is returned
    """

    if not isinstance(persisted_snapshot, Mapping):
        raise MalformedSnapshotError(
            f"Persisted snapshot must be a mapping, got {type(persisted_snapshot).__name__}"
        )

    logger.debug(f"Applying migrations: {list(migrations)}")
    migrated: Any = copy.deepcopy(dict(persisted_snapshot))
    operations = copy.deepcopy(list(migrations))

    for index, operation in enumerate(operations):
        try:
            migrated = jsonpatch.apply_patch(migrated, [operation], in_place=True)
        except (jsonpatch.JsonPatchException, jsonpointer.JsonPointerException) as exc:
            described = dict(operation) if isinstance(operation, Mapping) else None
            raise UnresolvablePatchError(
                f"Migration {index} could not be applied: {exc}",
                operation=described,
                index=index,
            ) from exc

    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(f"Migrated snapshot: {_dump(migrated)}")
    return cast(PersistedSnapshot, migrated)


@dataclass(frozen=True)
class MigrationResult:
    """Generated operations together with the snapshot they produce."""

    operations: list[Operation]
    snapshot: PersistedSnapshot


def migrate(
    machine: MachineDefinition,
    persisted_snapshot: PersistedSnapshot | Mapping[str, Any],
    input: Any = None,
    *,
    policy: MigrationPolicy | None = None,
) -> MigrationResult:
    """Generate migrations for ``persisted_snapshot`` and apply them immediately."""

    operations = generate_migrations(machine, persisted_snapshot, input, policy=policy)
    return MigrationResult(
        operations=operations,
        snapshot=apply_migrations(persisted_snapshot, operations),
    )


__all__ = [
    "MigrationResult",
    "apply_migrations",
    "context_operations",
    "generate_migrations",
    "migrate",
    "state_value_operations",
]
