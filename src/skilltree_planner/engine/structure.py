"""Structural validation of trees and projects.

Read-only, allocation-independent checks. Errors mean the graph is not
well formed and must not be simulated (editing stays possible); warnings
are advisory and never block allocation or refund.

Codes
-----
  ERR_DUPLICATE_NODE_ID           node id used more than once in a tree
  ERR_DUPLICATE_TREE_ID           tree id used more than once in a project
  ERR_INVALID_CONNECTION_SOURCE   connection starts at an unknown node
  ERR_INVALID_CONNECTION_TARGET   connection ends at an unknown node
  ERR_CYCLIC_DEPENDENCY           connections form a cycle (one witness)
  ERR_RANK_OUT_OF_BOUNDS          current_rank outside [0, max_rank]
  ERR_TREE_NOT_FOUND              requested tree id absent from the project
  WARN_POINT_POOL_MISMATCH        stored spent != recomputed spent
  WARN_POINT_POOL_OVERSPENT       spent > total
  WARN_ORPHANED_NODE              node with no connections in a connected tree
  WARN_UNREACHABLE_NODE           node that can never be unlocked (opt-in)
"""

from __future__ import annotations

import logging
from collections import Counter, deque
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any, Literal

from skilltree_planner.engine.costs import calculate_spent_points
from skilltree_planner.graph.tree_index import TreeIndex
from skilltree_planner.models.constants import PrerequisiteLogic
from skilltree_planner.models.project import Project
from skilltree_planner.models.tree import Tree

logger = logging.getLogger(__name__)


ERR_DUPLICATE_NODE_ID = "ERR_DUPLICATE_NODE_ID"
ERR_DUPLICATE_TREE_ID = "ERR_DUPLICATE_TREE_ID"
ERR_INVALID_CONNECTION_SOURCE = "ERR_INVALID_CONNECTION_SOURCE"
ERR_INVALID_CONNECTION_TARGET = "ERR_INVALID_CONNECTION_TARGET"
ERR_CYCLIC_DEPENDENCY = "ERR_CYCLIC_DEPENDENCY"
ERR_RANK_OUT_OF_BOUNDS = "ERR_RANK_OUT_OF_BOUNDS"
ERR_TREE_NOT_FOUND = "ERR_TREE_NOT_FOUND"
WARN_POINT_POOL_MISMATCH = "WARN_POINT_POOL_MISMATCH"
WARN_POINT_POOL_OVERSPENT = "WARN_POINT_POOL_OVERSPENT"
WARN_ORPHANED_NODE = "WARN_ORPHANED_NODE"
WARN_UNREACHABLE_NODE = "WARN_UNREACHABLE_NODE"


@dataclass(frozen=True, slots=True)
class ValidationIssue:
    """A single machine-readable finding."""

    severity: Literal["error", "warning"]
    code: str
    message: str
    tree_id: str | None = None
    node_id: str | None = None
    connection_id: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class ValidationReport:
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def codes(self) -> list[str]:
        return [issue.code for issue in (*self.errors, *self.warnings)]

    def extend(self, other: ValidationReport) -> None:
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)

    def add_error(self, code: str, message: str, **kwargs: Any) -> None:
        self.errors.append(ValidationIssue("error", code, message, **kwargs))

    def add_warning(self, code: str, message: str, **kwargs: Any) -> None:
        self.warnings.append(ValidationIssue("warning", code, message, **kwargs))


@dataclass(frozen=True, slots=True)
class ReachabilityReport:
    unreachable: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Graph analysis
# ---------------------------------------------------------------------------


def detect_cycle(tree: Tree) -> list[str] | None:
    """Return one cycle as an ordered list of node ids, or None.

    Depth-first over from->to edges, roots taken in node order and
    neighbours in connection order. On reaching a node that is still on the
    recursion stack, the witness is the current path from that node on.
    """
    adjacency: dict[str, list[str]] = {node.id: [] for node in tree.nodes}
    for conn in tree.connections:
        if conn.from_node_id in adjacency:
            adjacency[conn.from_node_id].append(conn.to_node_id)

    visited: set[str] = set()
    on_stack: set[str] = set()
    path: list[str] = []

    def _dfs(start: str) -> list[str] | None:
        # Explicit frame stack; long chains must not hit the recursion limit.
        visited.add(start)
        on_stack.add(start)
        path.append(start)
        frames: list[tuple[str, Iterator[str]]] = [(start, iter(adjacency.get(start, [])))]
        while frames:
            node_id, neighbours = frames[-1]
            for neighbour in neighbours:
                if neighbour not in visited:
                    visited.add(neighbour)
                    on_stack.add(neighbour)
                    path.append(neighbour)
                    frames.append((neighbour, iter(adjacency.get(neighbour, []))))
                    break
                if neighbour in on_stack:
                    return path[path.index(neighbour):]
            else:
                frames.pop()
                path.pop()
                on_stack.discard(node_id)
        return None

    for node in tree.nodes:
        if node.id not in visited:
            cycle = _dfs(node.id)
            if cycle is not None:
                return cycle
    return None


def check_reachability(tree: Tree) -> ReachabilityReport:
    """Optimistic static estimate of which nodes can ever be unlocked.

    Roots are reachable. From there, a target becomes reachable once its
    logic could pass with every reachable parent maxed: AND needs every
    parent reachable, OR and SUM need any one. SUM deliberately does not
    check that the parents' max ranks can reach the threshold. Point budget
    is ignored.
    """
    index = TreeIndex(tree)
    reachable: set[str] = set()
    queue: deque[str] = deque()

    for node in index.nodes():
        if index.is_root(node.id):
            reachable.add(node.id)
            queue.append(node.id)

    while queue:
        current = queue.popleft()
        for conn in index.outgoing(current):
            target_id = conn.to_node_id
            if target_id in reachable:
                continue
            target = index.node(target_id)
            if target is None:
                continue
            parents = [c.from_node_id for c in index.incoming(target_id)]
            if target.prerequisite_logic is PrerequisiteLogic.AND:
                can_reach = all(p in reachable for p in parents)
            elif target.prerequisite_logic in (PrerequisiteLogic.OR, PrerequisiteLogic.SUM):
                can_reach = any(p in reachable for p in parents)
            else:
                can_reach = False
            if can_reach:
                reachable.add(target_id)
                queue.append(target_id)

    return ReachabilityReport(
        unreachable=tuple(node.id for node in tree.nodes if node.id not in reachable)
    )


# ---------------------------------------------------------------------------
# Tree checks
# ---------------------------------------------------------------------------


def _check_identifiers(tree: Tree, report: ValidationReport) -> None:
    counts = Counter(node.id for node in tree.nodes)
    for node_id, count in counts.items():
        if count > 1:
            report.add_error(
                ERR_DUPLICATE_NODE_ID,
                f"Duplicate node ID: {node_id}",
                tree_id=tree.id,
                node_id=node_id,
                details={"count": count},
            )


def _check_connections(tree: Tree, report: ValidationReport) -> None:
    node_ids = {node.id for node in tree.nodes}
    for conn in tree.connections:
        if conn.from_node_id not in node_ids:
            report.add_error(
                ERR_INVALID_CONNECTION_SOURCE,
                f"Connection references non-existent source node: {conn.from_node_id}",
                tree_id=tree.id,
                connection_id=conn.id,
                details={"from_node_id": conn.from_node_id},
            )
        if conn.to_node_id not in node_ids:
            report.add_error(
                ERR_INVALID_CONNECTION_TARGET,
                f"Connection references non-existent target node: {conn.to_node_id}",
                tree_id=tree.id,
                connection_id=conn.id,
                details={"to_node_id": conn.to_node_id},
            )


def _check_ranks(tree: Tree, report: ValidationReport) -> None:
    for node in tree.nodes:
        if not 0 <= node.current_rank <= node.max_rank:
            report.add_error(
                ERR_RANK_OUT_OF_BOUNDS,
                f"Node {node.id} has rank {node.current_rank} outside 0..{node.max_rank}",
                tree_id=tree.id,
                node_id=node.id,
                details={"current_rank": node.current_rank, "max_rank": node.max_rank},
            )


def _check_point_pool(tree: Tree, report: ValidationReport) -> None:
    pool = tree.point_pool
    calculated = calculate_spent_points(tree)
    if calculated != pool.spent:
        report.add_warning(
            WARN_POINT_POOL_MISMATCH,
            f"Point pool mismatch: spent={pool.spent}, calculated={calculated}",
            tree_id=tree.id,
            details={"stored": pool.spent, "calculated": calculated},
        )
    if pool.spent > pool.total:
        report.add_warning(
            WARN_POINT_POOL_OVERSPENT,
            f"Point pool overspent: spent={pool.spent}, total={pool.total}",
            tree_id=tree.id,
            details={"spent": pool.spent, "total": pool.total},
        )


def _check_orphans(tree: Tree, report: ValidationReport) -> None:
    if len(tree.nodes) < 2 or not tree.connections:
        return
    connected: set[str] = set()
    for conn in tree.connections:
        connected.add(conn.from_node_id)
        connected.add(conn.to_node_id)
    for node in tree.nodes:
        if node.id not in connected:
            report.add_warning(
                WARN_ORPHANED_NODE,
                f"Node has no connections: {node.name}",
                tree_id=tree.id,
                node_id=node.id,
            )


def validate_tree(tree: Tree, *, include_reachability: bool = False) -> ValidationReport:
    """Run every structural check on one tree."""
    report = ValidationReport()
    _check_identifiers(tree, report)
    _check_connections(tree, report)

    cycle = detect_cycle(tree)
    if cycle is not None:
        report.add_error(
            ERR_CYCLIC_DEPENDENCY,
            "Cyclic dependency detected: " + " -> ".join([*cycle, cycle[0]]),
            tree_id=tree.id,
            details={"cycle": cycle},
        )

    _check_ranks(tree, report)
    _check_point_pool(tree, report)
    _check_orphans(tree, report)

    if include_reachability:
        for node_id in check_reachability(tree).unreachable:
            report.add_warning(
                WARN_UNREACHABLE_NODE,
                f"Node can never be unlocked: {node_id}",
                tree_id=tree.id,
                node_id=node_id,
            )

    if report.errors:
        logger.info(
            "Tree %s has %d structural error(s): %s",
            tree.id, len(report.errors), ", ".join(i.code for i in report.errors),
        )
    return report


def validate_tree_in_project(
    project: Project, tree_id: str, *, include_reachability: bool = False
) -> ValidationReport:
    tree = project.find_tree(tree_id)
    if tree is None:
        report = ValidationReport()
        report.add_error(ERR_TREE_NOT_FOUND, "Tree not found", tree_id=tree_id)
        return report
    return validate_tree(tree, include_reachability=include_reachability)


def validate_project(
    project: Project, *, include_reachability: bool = False
) -> ValidationReport:
    """Validate every tree, then check tree ids across the project."""
    report = ValidationReport()
    for tree in project.trees:
        report.extend(validate_tree(tree, include_reachability=include_reachability))

    counts = Counter(tree.id for tree in project.trees)
    for tree_id, count in counts.items():
        if count > 1:
            report.add_error(
                ERR_DUPLICATE_TREE_ID,
                f"Duplicate tree ID: {tree_id}",
                tree_id=tree_id,
                details={"count": count},
            )
    return report
