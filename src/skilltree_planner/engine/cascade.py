"""Cascading refunds after a prerequisite is weakened.

``resolve`` repeats full passes over the tree. Each pass re-evaluates every
allocated node against the state left by the passes (and nodes) before it,
and resets any node whose prerequisites no longer hold to rank 0, returning
its whole cumulative cost to the pool. A pass that changes nothing ends the
loop. Each changing pass lowers the total allocated rank, so the loop
terminates after at most ``len(nodes) + 1`` passes.

No attempt is made to find a minimal set of refunds; OR logic keeps a node
alive whenever another parent still satisfies it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from skilltree_planner.engine.costs import cumulative_cost
from skilltree_planner.graph.prerequisites import is_satisfied
from skilltree_planner.graph.tree_index import TreeIndex
from skilltree_planner.models.tree import Tree

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CascadeResult:
    tree: Tree
    refunded: tuple[str, ...] = ()   # node ids forced to rank 0, in refund order
    passes: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.refunded)


def resolve(tree: Tree) -> CascadeResult:
    """Force every allocated node with unmet prerequisites back to rank 0.

    Returns the input tree object itself when nothing had to change.
    """
    index = TreeIndex(tree)
    spent = tree.point_pool.spent
    refunded: list[str] = []
    passes = 0

    changed = True
    while changed:
        changed = False
        passes += 1
        for node in list(index.nodes()):
            if node.current_rank <= 0:
                continue
            if is_satisfied(index, node.id):
                continue
            returned = cumulative_cost(node)
            logger.debug(
                "Cascade refund of %s in tree %s: rank %d -> 0, %d points returned",
                node.id, tree.id, node.current_rank, returned,
            )
            spent -= returned
            index.set_rank(node.id, 0)
            refunded.append(node.id)
            changed = True

    if refunded:
        logger.debug(
            "Cascade in tree %s settled after %d passes; refunded %s",
            tree.id, passes, ", ".join(refunded),
        )
    return CascadeResult(
        tree=index.to_tree(spent=spent),
        refunded=tuple(refunded),
        passes=passes,
    )
