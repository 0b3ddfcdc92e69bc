"""Allocation ledger: may a point be spent on, or refunded from, a node?

Both checks answer with a ``Decision`` rather than raising, so callers can
show the reason next to a disabled button.
"""

from __future__ import annotations

from dataclasses import dataclass

from skilltree_planner.engine.cascade import resolve
from skilltree_planner.engine.config import EngineConfig
from skilltree_planner.engine.costs import cost_of_next_rank, refund_value_of_current_rank
from skilltree_planner.engine.status import node_status
from skilltree_planner.graph.tree_index import TreeIndex
from skilltree_planner.models.constants import NodeStatus
from skilltree_planner.models.tree import Tree


REASON_TREE_NOT_FOUND = "Tree not found"
REASON_NODE_NOT_FOUND = "Node not found"
REASON_MAX_RANK = "Maximum rank reached"
REASON_NO_POINTS = "Not enough points"
REASON_LOCKED = "Prerequisites not met"
REASON_INVALID = "Invalid node state"
REASON_REFUNDS_DISABLED = "Refunds are disabled"
REASON_NOTHING_ALLOCATED = "No points allocated"
REASON_WILL_CASCADE = "Will cascade to dependent nodes"


@dataclass(frozen=True, slots=True)
class Decision:
    """Boolean-with-reason answer.

    ``reason`` may be set on an allowed decision as an advisory note (a
    refund that will cascade); ``affected_nodes`` lists who it touches.
    """

    allowed: bool
    reason: str | None = None
    affected_nodes: tuple[str, ...] = ()


def can_allocate(
    tree: Tree | None, node_id: str, config: EngineConfig | None = None
) -> Decision:
    """Check rank ceiling and budget; play mode also checks status."""
    config = config or EngineConfig()
    if tree is None:
        return Decision(False, REASON_TREE_NOT_FOUND)
    index = TreeIndex(tree)
    node = index.node(node_id)
    if node is None:
        return Decision(False, REASON_NODE_NOT_FOUND)

    if config.is_play:
        status = node_status(index, node_id)
        if status is NodeStatus.LOCKED:
            return Decision(False, REASON_LOCKED)
        if status is NodeStatus.MAXED:
            return Decision(False, REASON_MAX_RANK)
        if status is NodeStatus.INVALID:
            return Decision(False, REASON_INVALID)
    elif node.current_rank >= node.max_rank:
        return Decision(False, REASON_MAX_RANK)

    if tree.point_pool.available < cost_of_next_rank(node):
        return Decision(False, REASON_NO_POINTS)
    return Decision(True)


def can_refund(
    tree: Tree | None, node_id: str, config: EngineConfig | None = None
) -> Decision:
    """Refunds are never blocked by dependents.

    When the refund would cascade, the decision stays allowed and lists the
    nodes that the cascade would reset.
    """
    config = config or EngineConfig()
    if not config.allow_refunds:
        return Decision(False, REASON_REFUNDS_DISABLED)
    if tree is None:
        return Decision(False, REASON_TREE_NOT_FOUND)
    node = tree.find_node(node_id)
    if node is None:
        return Decision(False, REASON_NODE_NOT_FOUND)
    if node.current_rank <= 0:
        return Decision(False, REASON_NOTHING_ALLOCATED)
    if not config.cascades:
        return Decision(True)

    affected = cascade_preview(tree, node_id)
    if affected:
        return Decision(True, REASON_WILL_CASCADE, affected)
    return Decision(True)


def cascade_preview(tree: Tree, node_id: str) -> tuple[str, ...]:
    """Nodes a one-rank refund of ``node_id`` would force back to rank 0."""
    node = tree.find_node(node_id)
    if node is None or node.current_rank <= 0:
        return ()
    lowered = tree.with_node(node.with_rank(node.current_rank - 1))
    lowered = lowered.with_spent(
        tree.point_pool.spent - refund_value_of_current_rank(node)
    )
    return tuple(n for n in resolve(lowered).refunded if n != node_id)
