"""Validation and allocation engine interfaces."""

from skilltree_planner.engine.allocation import MutationResult, allocate, refund, reset
from skilltree_planner.engine.cascade import CascadeResult, resolve
from skilltree_planner.engine.config import EngineConfig
from skilltree_planner.engine.costs import (
    calculate_spent_points,
    cost_of_next_rank,
    cumulative_cost,
    refund_value_of_current_rank,
)
from skilltree_planner.engine.ledger import Decision, can_allocate, can_refund
from skilltree_planner.engine.status import all_node_statuses, node_status
from skilltree_planner.engine.structure import (
    ReachabilityReport,
    ValidationIssue,
    ValidationReport,
    check_reachability,
    detect_cycle,
    validate_project,
    validate_tree,
)

__all__ = [
    "CascadeResult",
    "Decision",
    "EngineConfig",
    "MutationResult",
    "ReachabilityReport",
    "ValidationIssue",
    "ValidationReport",
    "all_node_statuses",
    "allocate",
    "calculate_spent_points",
    "can_allocate",
    "can_refund",
    "check_reachability",
    "cost_of_next_rank",
    "cumulative_cost",
    "detect_cycle",
    "node_status",
    "refund",
    "refund_value_of_current_rank",
    "reset",
    "resolve",
    "validate_project",
    "validate_tree",
]
