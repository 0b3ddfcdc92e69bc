"""Skill tree data model: trees own nodes and connections.

Every type here is a frozen value. Operations that "change" a tree build a
new one with ``dataclasses.replace`` and reuse every untouched node and
connection, so a rejected operation can hand back the very same object.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from skilltree_planner.models.constants import (
    DEFAULT_COST_PER_RANK,
    DEFAULT_NODE_NAME,
    DEFAULT_POOL_SOURCE,
    DEFAULT_TOTAL_POINTS,
    DEFAULT_TREE_NAME,
    PrerequisiteLogic,
)


@dataclass(frozen=True, slots=True)
class PointPool:
    """Budget for one tree. ``spent <= total`` is reported, not enforced."""

    total: int = DEFAULT_TOTAL_POINTS
    spent: int = 0
    source: str = DEFAULT_POOL_SOURCE

    @property
    def available(self) -> int:
        return self.total - self.spent


@dataclass(frozen=True, slots=True)
class Node:
    """A rankable skill.

    ``cost_per_rank[i]`` is the price of going from rank i to i+1; the last
    entry repeats for every rank past the end of the sequence.
    """

    id: str
    name: str = DEFAULT_NODE_NAME
    description: str = ""
    max_rank: int = 1
    current_rank: int = 0
    cost_per_rank: tuple[int, ...] = DEFAULT_COST_PER_RANK
    prerequisite_logic: PrerequisiteLogic = PrerequisiteLogic.AND
    prerequisite_threshold: int = 1   # SUM only
    tags: tuple[str, ...] = ()
    # Editor-only fields (position, icon, type, event); never read by the engine.
    presentation: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Plain strings ("or", "SUM") become enum members; unrecognised values
        # are kept as given and evaluate as unsatisfied.
        parsed = PrerequisiteLogic.parse(self.prerequisite_logic)
        if parsed is not None and parsed is not self.prerequisite_logic:
            object.__setattr__(self, "prerequisite_logic", parsed)

    def with_rank(self, rank: int) -> Node:
        return replace(self, current_rank=rank)


@dataclass(frozen=True, slots=True)
class Connection:
    """Directed prerequisite edge ``from_node_id -> to_node_id``.

    ``required_rank`` only matters when the target uses AND/OR logic.
    """

    id: str
    from_node_id: str
    to_node_id: str
    required_rank: int = 1


@dataclass(frozen=True, slots=True)
class Tree:
    """One independent skill graph with its own point budget."""

    id: str
    name: str = DEFAULT_TREE_NAME
    description: str = ""
    point_pool: PointPool = field(default_factory=PointPool)
    nodes: tuple[Node, ...] = ()
    connections: tuple[Connection, ...] = ()

    # --- Identity lookup ---------------------------------------------------

    def find_node(self, node_id: str) -> Node | None:
        """Return the first node with ``node_id``, or None."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def find_connection(self, connection_id: str) -> Connection | None:
        for conn in self.connections:
            if conn.id == connection_id:
                return conn
        return None

    def node_index(self, node_id: str) -> int:
        """Position of the first node with ``node_id``, or -1."""
        for i, node in enumerate(self.nodes):
            if node.id == node_id:
                return i
        return -1

    # --- Copy-on-write helpers ---------------------------------------------

    def with_node(self, node: Node) -> Tree:
        """Replace the first node sharing ``node.id``."""
        index = self.node_index(node.id)
        if index == -1:
            return self
        nodes = list(self.nodes)
        nodes[index] = node
        return replace(self, nodes=tuple(nodes))

    def with_spent(self, spent: int) -> Tree:
        return replace(self, point_pool=replace(self.point_pool, spent=spent))
