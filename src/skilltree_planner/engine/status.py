"""Node status derivation.

Status is never stored: it is recomputed from rank and prerequisite state
on every query, so a node can drop back to LOCKED when the graph changes
under it mid-simulation.
"""

from __future__ import annotations

from skilltree_planner.graph.prerequisites import TreeLike, as_index, is_satisfied
from skilltree_planner.models.constants import NodeStatus


def node_status(tree: TreeLike | None, node_id: str) -> NodeStatus:
    if tree is None:
        return NodeStatus.INVALID
    index = as_index(tree)
    node = index.node(node_id)
    if node is None:
        return NodeStatus.INVALID

    if not is_satisfied(index, node_id):
        return NodeStatus.LOCKED
    if node.current_rank == 0:
        return NodeStatus.UNLOCKABLE
    if node.current_rank >= node.max_rank:
        return NodeStatus.MAXED
    return NodeStatus.ACTIVE


def all_node_statuses(tree: TreeLike | None) -> dict[str, NodeStatus]:
    """Status for every node id in the tree, in tree order."""
    if tree is None:
        return {}
    index = as_index(tree)
    return {node.id: node_status(index, node.id) for node in index.nodes()}
