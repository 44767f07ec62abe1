"""Machine definitions consumed by the migration generator.

A definition is a tree of named states in the familiar statechart document shape::

    {
        "id": "checkout",
        "initial": "cart",
        "context": {"items": []},
        "states": {"cart": {}, "payment": {"initial": "card", "states": {...}}},
    }

Only the structure matters here. Transitions, actions and guards are accepted and
ignored, since executing the machine is the runtime's job.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from statechart_migrate.errors import MalformedDefinitionError
from statechart_migrate.state import MachineSnapshot, StateValue

logger = logging.getLogger(__name__)

DEFAULT_MACHINE_ID = "(machine)"

NodeType = Literal["atomic", "compound", "parallel", "final"]
ContextFactory = Callable[[Any], Mapping[str, Any]]


class StateNodeConfig(BaseModel):
    """Schema for one state node in a definition document."""

    model_config = ConfigDict(extra="ignore")

    type: NodeType | None = None
    initial: str | None = None
    states: dict[str, StateNodeConfig] = Field(default_factory=dict)

    @model_validator(mode="after")
    def check_structure(self) -> StateNodeConfig:
        if self.initial is not None and self.initial not in self.states:
            raise ValueError(f"initial state '{self.initial}' is not one of the child states")
        if self.type in ("parallel", "compound") and not self.states:
            raise ValueError(f"{self.type} state must declare child states")
        if self.type in ("atomic", "final") and self.states:
            raise ValueError(f"{self.type} state cannot declare child states")
        return self


class MachineConfig(StateNodeConfig):
    """Schema for the root of a definition document."""

    model_config = ConfigDict(extra="ignore", arbitrary_types_allowed=True)

    id: str = DEFAULT_MACHINE_ID
    context: dict[str, Any] | ContextFactory | None = None


StateNodeConfig.model_rebuild()
MachineConfig.model_rebuild()


@dataclass(eq=False)
class StateNode:
    """Resolved state node with its position in the tree."""

    key: str
    path: tuple[str, ...]
    machine_id: str
    type: NodeType
    initial: str | None = None
    states: dict[str, StateNode] = field(default_factory=dict)
    parent: StateNode | None = field(default=None, repr=False)

    @property
    def id(self) -> str:
        """Dotted identifier, e.g. ``checkout.payment.card``."""
        return ".".join((self.machine_id, *self.path))

    @property
    def is_atomic(self) -> bool:
        return not self.states

    @property
    def is_parallel(self) -> bool:
        return self.type == "parallel"

    @property
    def initial_child(self) -> StateNode | None:
        """Declared initial child, or the first declared child when none is set."""

        if not self.states:
            return None
        if self.initial is not None:
            return self.states[self.initial]
        return next(iter(self.states.values()))

    def initial_value(self) -> StateValue:
        """State value this node resolves to when entered through its initial states."""

        if self.is_parallel:
            return {key: region.initial_value() for key, region in self.states.items()}
        child = self.initial_child
        if child is None:
            return {}
        if child.is_atomic:
            return child.key
        return {child.key: child.initial_value()}


class MachineDefinition(Protocol):
    """Narrow interface the validator and reconciler rely on."""

    id: str
    id_map: Mapping[str, StateNode]

    def get_state_node(self, path: Sequence[str]) -> StateNode | None: ...

    def initial_snapshot(self, input: Any = None) -> MachineSnapshot: ...


class StateMachine:
    """Structural view of a machine definition."""

    def __init__(self, config: MachineConfig):
        self.config = config
        self.id = config.id
        self.root = self._build_node(config, key=config.id, path=(), parent=None)
        self.id_map: dict[str, StateNode] = {}
        self._index(self.root)

    def _build_node(
        self,
        node_config: StateNodeConfig,
        *,
        key: str,
        path: tuple[str, ...],
        parent: StateNode | None,
    ) -> StateNode:
        node_type: NodeType = node_config.type or ("compound" if node_config.states else "atomic")
        node = StateNode(
            key=key,
            path=path,
            machine_id=self.id,
            type=node_type,
            initial=node_config.initial,
            parent=parent,
        )
        for child_key, child_config in node_config.states.items():
            node.states[child_key] = self._build_node(
                child_config, key=child_key, path=(*path, child_key), parent=node
            )
        return node

    def _index(self, node: StateNode) -> None:
        self.id_map[node.id] = node
        for child in node.states.values():
            self._index(child)

    def get_state_node(self, path: Sequence[str]) -> StateNode | None:
        """Walk child names from the root; ``None`` when the path leaves the tree."""

        node = self.root
        for key in path:
            child = node.states.get(key)
            if child is None:
                return None
            node = child
        return node

    def initial_snapshot(self, input: Any = None) -> MachineSnapshot:
        """Compute the snapshot a fresh actor of this definition would start from.

        Args:
            input: Runtime input handed to a context factory, if the definition has one

        Returns:
            Initial state value, resolved context and ``active`` status

        Raises:
            MalformedDefinitionError: If a context factory returns something other than a mapping
        """

        context = self.config.context
        if context is None:
            resolved: Any = {}
        elif callable(context):
            resolved = context(input)
        else:
            resolved = copy.deepcopy(context)

        if not isinstance(resolved, Mapping):
            raise MalformedDefinitionError(
                f"Context factory for machine '{self.id}' returned {type(resolved).__name__}, "
                "expected a mapping"
            )

        return {
            "value": self.root.initial_value(),
            "context": dict(resolved),
            "status": "active",
        }

    def __repr__(self) -> str:
        return f"StateMachine(id={self.id!r}, states={len(self.id_map)})"


def create_machine(config: Mapping[str, Any] | MachineConfig) -> StateMachine:
    """Validate a definition document and build its :class:`StateMachine`.

    Raises:
        MalformedDefinitionError: If the document fails schema validation
    """

    if isinstance(config, MachineConfig):
        machine_config = config
    else:
        try:
            machine_config = MachineConfig.model_validate(
                dict(config) if isinstance(config, Mapping) else config
            )
        except ValidationError as exc:
            raise MalformedDefinitionError(f"Invalid machine definition: {exc}") from exc

    machine = StateMachine(machine_config)
    logger.debug(f"Built machine '{machine.id}' with {len(machine.id_map)} state nodes")
    return machine


__all__ = [
    "DEFAULT_MACHINE_ID",
    "MachineConfig",
    "MachineDefinition",
    "StateMachine",
    "StateNode",
    "StateNodeConfig",
    "create_machine",
]
