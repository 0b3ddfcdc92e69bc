"""Point allocation, refund, and reset on a single tree.

Each operation returns a ``MutationResult``. A rejected operation hands
back the input tree object unchanged together with the reason; an applied
one returns a new tree. Callers tell them apart with ``result.applied``
(or ``result.tree is tree``); nothing here raises for a rejected intent.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace

from skilltree_planner.engine.cascade import resolve
from skilltree_planner.engine.config import EngineConfig
from skilltree_planner.engine.costs import cost_of_next_rank, refund_value_of_current_rank
from skilltree_planner.engine.ledger import REASON_NODE_NOT_FOUND, can_allocate, can_refund
from skilltree_planner.models.tree import Tree

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MutationResult:
    tree: Tree
    reason: str | None = None
    cascaded: tuple[str, ...] = ()   # nodes reset by the cascade resolver
    applied: bool = True

    @classmethod
    def rejected(cls, tree: Tree, reason: str) -> MutationResult:
        return cls(tree=tree, reason=reason, applied=False)


def allocate(
    tree: Tree, node_id: str, config: EngineConfig | None = None
) -> MutationResult:
    """Buy the next rank of ``node_id``."""
    config = config or EngineConfig()
    decision = can_allocate(tree, node_id, config)
    if not decision.allowed:
        logger.debug(
            "Allocate %s in tree %s rejected: %s", node_id, tree.id, decision.reason
        )
        return MutationResult.rejected(tree, decision.reason or "Rejected")

    node = tree.find_node(node_id)
    if node is None:
        return MutationResult.rejected(tree, REASON_NODE_NOT_FOUND)
    cost = cost_of_next_rank(node)
    updated = tree.with_node(node.with_rank(node.current_rank + 1))
    updated = updated.with_spent(tree.point_pool.spent + cost)
    logger.debug(
        "Allocated %s in tree %s: rank %d -> %d for %d points",
        node_id, tree.id, node.current_rank, node.current_rank + 1, cost,
    )
    return MutationResult(tree=updated)


def refund(
    tree: Tree, node_id: str, config: EngineConfig | None = None
) -> MutationResult:
    """Sell back one rank of ``node_id``, cascading to dependents if needed."""
    config = config or EngineConfig()
    decision = can_refund(tree, node_id, config)
    if not decision.allowed:
        logger.debug(
            "Refund %s in tree %s rejected: %s", node_id, tree.id, decision.reason
        )
        return MutationResult.rejected(tree, decision.reason or "Rejected")

    node = tree.find_node(node_id)
    if node is None:
        return MutationResult.rejected(tree, REASON_NODE_NOT_FOUND)
    value = refund_value_of_current_rank(node)
    updated = tree.with_node(node.with_rank(node.current_rank - 1))
    updated = updated.with_spent(tree.point_pool.spent - value)
    logger.debug(
        "Refunded %s in tree %s: rank %d -> %d, %d points returned",
        node_id, tree.id, node.current_rank, node.current_rank - 1, value,
    )

    if not config.cascades:
        return MutationResult(tree=updated)
    cascade = resolve(updated)
    return MutationResult(
        tree=cascade.tree,
        reason=decision.reason,
        cascaded=cascade.refunded,
    )


def reset(tree: Tree) -> MutationResult:
    """Return every rank to 0 and empty the pool's ``spent``."""
    if tree.point_pool.spent == 0 and all(n.current_rank == 0 for n in tree.nodes):
        return MutationResult.rejected(tree, "Nothing to reset")
    nodes = tuple(
        node if node.current_rank == 0 else node.with_rank(0) for node in tree.nodes
    )
    logger.debug("Reset tree %s", tree.id)
    return MutationResult(
        tree=replace(tree, nodes=nodes, point_pool=replace(tree.point_pool, spent=0))
    )
