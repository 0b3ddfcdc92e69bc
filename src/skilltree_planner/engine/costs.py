"""Rank cost schedule.

The cost of rank i -> i+1 is ``cost_per_rank[min(i, len - 1)]``: once the
schedule runs out, its last entry is charged for every further rank. The
same clamping applies when pricing a refund of the current rank.
"""

from __future__ import annotations

from skilltree_planner.models.tree import Node, Tree


def _rank_cost(node: Node, rank_index: int) -> int:
    if not node.cost_per_rank:
        return 0
    return node.cost_per_rank[min(rank_index, len(node.cost_per_rank) - 1)]


def cost_of_next_rank(node: Node) -> int:
    return _rank_cost(node, node.current_rank)


def refund_value_of_current_rank(node: Node) -> int:
    if node.current_rank <= 0:
        return 0
    return _rank_cost(node, node.current_rank - 1)


def cumulative_cost(node: Node) -> int:
    """Total paid for ranks 0..current_rank-1."""
    return sum(_rank_cost(node, i) for i in range(node.current_rank))


def calculate_spent_points(tree: Tree) -> int:
    """What ``point_pool.spent`` should be given the nodes' ranks."""
    return sum(cumulative_cost(node) for node in tree.nodes)
