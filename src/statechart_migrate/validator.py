"""Valid state-path derivation."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from statechart_migrate.errors import MalformedDefinitionError

PATH_SEPARATOR = "/"


def state_path(machine_id: str, *segments: str) -> str:
    """Join a machine id and child names into a canonical slash-delimited path.

    Only the dotted machine id is split; child names are state keys and are kept
    verbatim, so a persisted name such as ``"a.b"`` never aliases the path ``a/b``.
    """

    return PATH_SEPARATOR.join((*machine_id.split("."), *segments))


def build_valid_paths(machine: Any) -> frozenset[str]:
    """Collect the canonical path of every state node in ``machine``.

    Nodes that know their position (``machine_id`` and ``path``) are joined from
    those parts, the same way persisted state values are addressed. Bare dotted
    identifiers (``shop.cart.empty``) are normalised to ``shop/cart/empty``.

    Raises:
        MalformedDefinitionError: If the definition does not expose an ``id_map`` index
    """

    id_map = getattr(machine, "id_map", None)
    if not isinstance(id_map, Mapping):
        raise MalformedDefinitionError("Unable to find id_map on machine")

    paths = set()
    for node_id, node in id_map.items():
        segments = getattr(node, "path", None)
        machine_id = getattr(node, "machine_id", None)
        if isinstance(segments, tuple) and isinstance(machine_id, str):
            paths.add(state_path(machine_id, *segments))
        else:
            paths.add(str(node_id).replace(".", PATH_SEPARATOR))
    return frozenset(paths)


__all__ = ["PATH_SEPARATOR", "build_valid_paths", "state_path"]
