"""Prerequisite evaluation for skill tree nodes.

A node's incoming connections form one group, combined by the node's own
``prerequisite_logic``:

  AND  every incoming connection individually satisfied
  OR   at least one incoming connection satisfied
  SUM  sum of source ranks >= the node's ``prerequisite_threshold``

Per-connection ``required_rank`` applies to AND/OR only. Anything that
cannot be resolved (missing source, missing target, unknown logic) fails
closed.

Every public function accepts either a ``Tree`` or a prebuilt
``TreeIndex``; the cascade resolver passes an index whose ranks it is
rewriting so each check sees the current state.
"""

from __future__ import annotations

from dataclasses import dataclass

from skilltree_planner.graph.tree_index import TreeIndex
from skilltree_planner.models.constants import PrerequisiteLogic
from skilltree_planner.models.tree import Connection, Tree


TreeLike = Tree | TreeIndex


@dataclass(frozen=True, slots=True)
class PrerequisiteInfo:
    """One incoming connection as seen from its target node."""

    node_id: str
    required_rank: int
    satisfied: bool


def as_index(tree: TreeLike) -> TreeIndex:
    if isinstance(tree, TreeIndex):
        return tree
    return TreeIndex(tree)


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


def _source_rank_total(index: TreeIndex, incoming: list[Connection]) -> int:
    total = 0
    for conn in incoming:
        source = index.node(conn.from_node_id)
        if source is not None:
            total += source.current_rank
    return total


def is_satisfied(tree: TreeLike, node_id: str) -> bool:
    """True if the node's incoming connections satisfy its logic."""
    index = as_index(tree)
    node = index.node(node_id)
    if node is None:
        return False
    incoming = index.incoming(node_id)
    if not incoming:
        return True

    logic = node.prerequisite_logic
    if logic is PrerequisiteLogic.AND:
        return all(is_connection_satisfied(index, conn) for conn in incoming)
    if logic is PrerequisiteLogic.OR:
        return any(is_connection_satisfied(index, conn) for conn in incoming)
    if logic is PrerequisiteLogic.SUM:
        return _source_rank_total(index, incoming) >= node.prerequisite_threshold
    # Unknown logic value.
    return False


def is_connection_satisfied(tree: TreeLike, connection: Connection) -> bool:
    """Satisfaction of a single edge.

    Under SUM there is no per-edge threshold: an edge counts as satisfied
    exactly when its whole group passes.
    """
    index = as_index(tree)
    target = index.node(connection.to_node_id)
    if target is None:
        return False
    source = index.node(connection.from_node_id)
    if source is None:
        return False
    if target.prerequisite_logic is PrerequisiteLogic.SUM:
        return is_satisfied(index, connection.to_node_id)
    return source.current_rank >= connection.required_rank


# ---------------------------------------------------------------------------
# Graph queries
# ---------------------------------------------------------------------------


def prerequisites_of(tree: TreeLike, node_id: str) -> list[PrerequisiteInfo]:
    """Every incoming connection of ``node_id`` with its satisfaction."""
    index = as_index(tree)
    return [
        PrerequisiteInfo(
            node_id=conn.from_node_id,
            required_rank=conn.required_rank,
            satisfied=is_connection_satisfied(index, conn),
        )
        for conn in index.incoming(node_id)
    ]


def dependents_of(tree: TreeLike, node_id: str) -> list[str]:
    """Target ids of the connections leaving ``node_id``."""
    return [conn.to_node_id for conn in as_index(tree).outgoing(node_id)]


# ---------------------------------------------------------------------------
# Human-readable unmet descriptions
# ---------------------------------------------------------------------------


def _label(index: TreeIndex, node_id: str) -> str:
    node = index.node(node_id)
    return node.name if node is not None else node_id


def _describe_connection(index: TreeIndex, conn: Connection) -> str:
    source = index.node(conn.from_node_id)
    if source is None:
        return f"Missing node {conn.from_node_id}"
    return (
        f"Requires {source.name} rank {conn.required_rank} "
        f"(has {source.current_rank})"
    )


def unmet_prerequisites(tree: TreeLike, node_id: str) -> list[str]:
    """Describe why ``node_id`` is locked. Empty when it is not."""
    index = as_index(tree)
    node = index.node(node_id)
    if node is None:
        return [f"Unknown node {node_id}"]
    if is_satisfied(index, node_id):
        return []

    incoming = index.incoming(node_id)
    logic = node.prerequisite_logic
    if logic is PrerequisiteLogic.AND:
        return [
            _describe_connection(index, conn)
            for conn in incoming
            if not is_connection_satisfied(index, conn)
        ]
    if logic is PrerequisiteLogic.OR:
        parts = [
            f"{_label(index, conn.from_node_id)} rank {conn.required_rank}"
            for conn in incoming
        ]
        return ["One of: " + " OR ".join(parts)]
    if logic is PrerequisiteLogic.SUM:
        sources = ", ".join(_label(index, conn.from_node_id) for conn in incoming)
        total = _source_rank_total(index, incoming)
        return [f"Total rank {total}/{node.prerequisite_threshold} from {sources}"]
    return [f"Unsupported prerequisite logic {logic!r}"]
