"""Project-level editing and simulation actions.

Each action takes a ``Project`` and returns an ``ActionResult``. A rejected
action returns the same project object with ``ok=False`` and a message;
an applied action returns a new project whose ``modified_at`` is stamped.
Trees, nodes, and connections untouched by an action are shared between
the old and new project values.

Interaction state (mode, selection, pending connection) lives in an
``InteractionContext`` the caller owns; helpers at the bottom of this
module return updated copies of it.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, replace
from typing import Any

from skilltree_planner.engine.allocation import MutationResult, allocate, refund, reset
from skilltree_planner.engine.config import EngineConfig
from skilltree_planner.engine.costs import cumulative_cost
from skilltree_planner.models.constants import (
    DEFAULT_COST_PER_RANK,
    DEFAULT_NODE_NAME,
    DEFAULT_TREE_NAME,
    Mode,
    PrerequisiteLogic,
)
from skilltree_planner.models.project import (
    ConnectionMode,
    InteractionContext,
    Project,
    ProjectMetadata,
    utc_now_iso,
)
from skilltree_planner.models.tree import Connection, Node, PointPool, Tree

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ActionResult:
    project: Project
    ok: bool = True
    message: str | None = None
    created_id: str | None = None
    cascaded: tuple[str, ...] = ()


def _rejected(project: Project, message: str) -> ActionResult:
    logger.debug("Action rejected: %s", message)
    return ActionResult(project=project, ok=False, message=message)


def generate_id(prefix: str, taken: Iterable[str] = ()) -> str:
    """Random id of the form ``<prefix>_<12 hex chars>`` not in ``taken``."""
    existing = set(taken)
    while True:
        candidate = f"{prefix}_{uuid.uuid4().hex[:12]}"
        if candidate not in existing:
            return candidate


def _touch(project: Project, **changes: Any) -> Project:
    metadata = replace(project.metadata, modified_at=utc_now_iso())
    return replace(project, metadata=metadata, **changes)


def _with_tree(project: Project, tree: Tree) -> Project:
    index = project.tree_index(tree.id)
    trees = list(project.trees)
    trees[index] = tree
    return _touch(project, trees=tuple(trees))


# ---------------------------------------------------------------------------
# Project
# ---------------------------------------------------------------------------


def create_project(name: str = "", description: str = "", author: str = "") -> Project:
    metadata = ProjectMetadata(description=description, author=author)
    if name:
        metadata = replace(metadata, name=name)
    return Project(metadata=metadata)


def update_metadata(
    project: Project,
    *,
    name: str | None = None,
    description: str | None = None,
    author: str | None = None,
) -> ActionResult:
    changes = {
        key: value
        for key, value in (("name", name), ("description", description), ("author", author))
        if value is not None
    }
    metadata = replace(project.metadata, **changes, modified_at=utc_now_iso())
    return ActionResult(project=replace(project, metadata=metadata))


def update_settings(
    project: Project,
    *,
    allow_refunds: bool | None = None,
    cascade_refunds: bool | None = None,
) -> ActionResult:
    settings = project.settings
    if allow_refunds is not None:
        settings = replace(settings, allow_refunds=allow_refunds)
    if cascade_refunds is not None:
        settings = replace(settings, cascade_refunds=cascade_refunds)
    return ActionResult(project=_touch(project, settings=settings))


# ---------------------------------------------------------------------------
# Trees
# ---------------------------------------------------------------------------


def add_tree(
    project: Project,
    *,
    name: str = DEFAULT_TREE_NAME,
    description: str = "",
    total_points: int | None = None,
) -> ActionResult:
    tree_id = generate_id("tree", (t.id for t in project.trees))
    pool = PointPool() if total_points is None else PointPool(total=total_points)
    tree = Tree(id=tree_id, name=name or DEFAULT_TREE_NAME, description=description, point_pool=pool)
    logger.debug("Added tree %s", tree_id)
    return ActionResult(
        project=_touch(project, trees=(*project.trees, tree)),
        created_id=tree_id,
    )


def remove_tree(project: Project, tree_id: str) -> ActionResult:
    if project.tree_index(tree_id) == -1:
        return _rejected(project, f"Tree not found: {tree_id}")
    trees = tuple(t for t in project.trees if t.id != tree_id)
    return ActionResult(project=_touch(project, trees=trees))


def update_tree(
    project: Project,
    tree_id: str,
    *,
    name: str | None = None,
    description: str | None = None,
    total_points: int | None = None,
    point_source: str | None = None,
) -> ActionResult:
    tree = project.find_tree(tree_id)
    if tree is None:
        return _rejected(project, f"Tree not found: {tree_id}")
    if total_points is not None and total_points < 0:
        return _rejected(project, "total_points must be >= 0")

    pool = tree.point_pool
    if total_points is not None:
        pool = replace(pool, total=total_points)
    if point_source is not None:
        pool = replace(pool, source=point_source)
    updated = replace(
        tree,
        name=tree.name if name is None else name,
        description=tree.description if description is None else description,
        point_pool=pool,
    )
    return ActionResult(project=_with_tree(project, updated))


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------


_NODE_FIELDS = frozenset({
    "name", "description", "max_rank", "cost_per_rank", "tags",
    "prerequisite_logic", "prerequisite_threshold", "presentation",
})


def _check_node_fields(changes: dict[str, Any]) -> str | None:
    """Return a rejection message for out-of-range node fields."""
    unknown = set(changes) - _NODE_FIELDS
    if unknown:
        return f"Unknown node fields: {', '.join(sorted(unknown))}"
    if "max_rank" in changes and changes["max_rank"] < 1:
        return "max_rank must be >= 1"
    if "cost_per_rank" in changes:
        costs = changes["cost_per_rank"]
        if not costs:
            return "cost_per_rank must not be empty"
        if any(c < 0 for c in costs):
            return "cost_per_rank entries must be >= 0"
    if "prerequisite_threshold" in changes and changes["prerequisite_threshold"] < 0:
        return "prerequisite_threshold must be >= 0"
    if "prerequisite_logic" in changes and PrerequisiteLogic.parse(changes["prerequisite_logic"]) is None:
        return f"Unknown prerequisite logic: {changes['prerequisite_logic']!r}"
    return None


def _normalise_node_fields(changes: dict[str, Any]) -> dict[str, Any]:
    out = dict(changes)
    if "cost_per_rank" in out:
        out["cost_per_rank"] = tuple(int(c) for c in out["cost_per_rank"])
    if "tags" in out:
        out["tags"] = tuple(out["tags"])
    if "presentation" in out:
        out["presentation"] = dict(out["presentation"])
    if "prerequisite_logic" in out:
        out["prerequisite_logic"] = PrerequisiteLogic.parse(out["prerequisite_logic"])
    return out


def add_node(project: Project, tree_id: str, **fields: Any) -> ActionResult:
    """Add a node at rank 0; ``fields`` are any editable node fields."""
    tree = project.find_tree(tree_id)
    if tree is None:
        return _rejected(project, f"Tree not found: {tree_id}")
    problem = _check_node_fields(fields)
    if problem:
        return _rejected(project, problem)

    node_id = generate_id("node", (n.id for n in tree.nodes))
    values = _normalise_node_fields(fields)
    values.setdefault("name", DEFAULT_NODE_NAME)
    values.setdefault("cost_per_rank", DEFAULT_COST_PER_RANK)
    node = Node(id=node_id, **values)
    updated = replace(tree, nodes=(*tree.nodes, node))
    logger.debug("Added node %s to tree %s", node_id, tree_id)
    return ActionResult(project=_with_tree(project, updated), created_id=node_id)


def remove_node(project: Project, tree_id: str, node_id: str) -> ActionResult:
    """Remove a node and every connection touching it.

    Points spent on the removed node go back to the pool. Dependents keep
    their ranks; no cascade runs.
    """
    tree = project.find_tree(tree_id)
    if tree is None:
        return _rejected(project, f"Tree not found: {tree_id}")
    node = tree.find_node(node_id)
    if node is None:
        return _rejected(project, f"Node not found: {node_id}")

    index = tree.node_index(node_id)
    nodes = tree.nodes[:index] + tree.nodes[index + 1:]
    connections = tuple(
        c for c in tree.connections
        if c.from_node_id != node_id and c.to_node_id != node_id
    )
    updated = replace(tree, nodes=nodes, connections=connections)
    updated = updated.with_spent(tree.point_pool.spent - cumulative_cost(node))
    return ActionResult(project=_with_tree(project, updated))


def update_node(project: Project, tree_id: str, node_id: str, **changes: Any) -> ActionResult:
    """Edit node fields.

    Lowering ``max_rank`` below the current rank clamps the rank, and any
    change to ranks or the cost schedule re-prices the node's spent points
    so the pool stays consistent.
    """
    tree = project.find_tree(tree_id)
    if tree is None:
        return _rejected(project, f"Tree not found: {tree_id}")
    node = tree.find_node(node_id)
    if node is None:
        return _rejected(project, f"Node not found: {node_id}")
    problem = _check_node_fields(changes)
    if problem:
        return _rejected(project, problem)

    edited = replace(node, **_normalise_node_fields(changes))
    if edited.current_rank > edited.max_rank:
        edited = edited.with_rank(edited.max_rank)
    delta = cumulative_cost(edited) - cumulative_cost(node)
    updated = tree.with_node(edited)
    if delta:
        updated = updated.with_spent(tree.point_pool.spent + delta)
    return ActionResult(project=_with_tree(project, updated))


# ---------------------------------------------------------------------------
# Connections
# ---------------------------------------------------------------------------


def add_connection(
    project: Project,
    tree_id: str,
    from_node_id: str,
    to_node_id: str,
    required_rank: int = 1,
) -> ActionResult:
    tree = project.find_tree(tree_id)
    if tree is None:
        return _rejected(project, f"Tree not found: {tree_id}")
    if tree.find_node(from_node_id) is None or tree.find_node(to_node_id) is None:
        return _rejected(project, "Both endpoints must exist in the tree")
    if from_node_id == to_node_id:
        return _rejected(project, "A node cannot require itself")
    if required_rank < 1:
        return _rejected(project, "required_rank must be >= 1")
    if any(
        c.from_node_id == from_node_id and c.to_node_id == to_node_id
        for c in tree.connections
    ):
        return _rejected(project, "Connection already exists")

    conn_id = generate_id("conn", (c.id for c in tree.connections))
    conn = Connection(
        id=conn_id,
        from_node_id=from_node_id,
        to_node_id=to_node_id,
        required_rank=required_rank,
    )
    updated = replace(tree, connections=(*tree.connections, conn))
    return ActionResult(project=_with_tree(project, updated), created_id=conn_id)


def remove_connection(project: Project, tree_id: str, connection_id: str) -> ActionResult:
    tree = project.find_tree(tree_id)
    if tree is None:
        return _rejected(project, f"Tree not found: {tree_id}")
    if tree.find_connection(connection_id) is None:
        return _rejected(project, f"Connection not found: {connection_id}")
    connections = tuple(c for c in tree.connections if c.id != connection_id)
    return ActionResult(project=_with_tree(project, replace(tree, connections=connections)))


def update_connection(
    project: Project, tree_id: str, connection_id: str, *, required_rank: int
) -> ActionResult:
    tree = project.find_tree(tree_id)
    if tree is None:
        return _rejected(project, f"Tree not found: {tree_id}")
    conn = tree.find_connection(connection_id)
    if conn is None:
        return _rejected(project, f"Connection not found: {connection_id}")
    if required_rank < 1:
        return _rejected(project, "required_rank must be >= 1")
    connections = tuple(
        replace(c, required_rank=required_rank) if c.id == connection_id else c
        for c in tree.connections
    )
    return ActionResult(project=_with_tree(project, replace(tree, connections=connections)))


# ---------------------------------------------------------------------------
# Allocation
# ---------------------------------------------------------------------------


def _apply_mutation(project: Project, result: MutationResult) -> ActionResult:
    if not result.applied:
        return _rejected(project, result.reason or "Rejected")
    return ActionResult(
        project=_with_tree(project, result.tree),
        message=result.reason,
        cascaded=result.cascaded,
    )


def allocate_point(
    project: Project,
    tree_id: str,
    node_id: str,
    context: InteractionContext | None = None,
) -> ActionResult:
    tree = project.find_tree(tree_id)
    if tree is None:
        return _rejected(project, "Tree not found")
    config = EngineConfig.for_project(project.settings, context)
    return _apply_mutation(project, allocate(tree, node_id, config))


def refund_point(
    project: Project,
    tree_id: str,
    node_id: str,
    context: InteractionContext | None = None,
) -> ActionResult:
    tree = project.find_tree(tree_id)
    if tree is None:
        return _rejected(project, "Tree not found")
    config = EngineConfig.for_project(project.settings, context)
    return _apply_mutation(project, refund(tree, node_id, config))


def reset_tree(project: Project, tree_id: str) -> ActionResult:
    tree = project.find_tree(tree_id)
    if tree is None:
        return _rejected(project, "Tree not found")
    return _apply_mutation(project, reset(tree))


# ---------------------------------------------------------------------------
# Interaction context
# ---------------------------------------------------------------------------


def set_mode(context: InteractionContext, mode: Mode | str) -> InteractionContext:
    return replace(context, mode=Mode.parse(mode), connection_mode=ConnectionMode())


def set_active_tree(context: InteractionContext, tree_id: str | None) -> InteractionContext:
    return replace(context, active_tree_id=tree_id, selected_node_id=None)


def select_node(context: InteractionContext, node_id: str | None) -> InteractionContext:
    return replace(context, selected_node_id=node_id)


def start_connection(
    context: InteractionContext, from_node_id: str, required_rank: int = 1
) -> InteractionContext:
    return replace(
        context,
        connection_mode=ConnectionMode(
            active=True,
            from_node_id=from_node_id,
            required_rank=max(1, required_rank),
        ),
    )


def cancel_connection(context: InteractionContext) -> InteractionContext:
    return replace(context, connection_mode=ConnectionMode())


def finish_connection(
    project: Project, context: InteractionContext, to_node_id: str
) -> tuple[ActionResult, InteractionContext]:
    """Complete a pending connection in the active tree."""
    pending = context.connection_mode
    if not pending.active or pending.from_node_id is None:
        return _rejected(project, "No connection in progress"), context
    if context.active_tree_id is None:
        return _rejected(project, "No active tree"), cancel_connection(context)
    result = add_connection(
        project,
        context.active_tree_id,
        pending.from_node_id,
        to_node_id,
        pending.required_rank,
    )
    return result, cancel_connection(context)
