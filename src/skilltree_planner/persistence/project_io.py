"""Project import/export.

Documents look like ``{"version": "1.0.0", "project": {...}}``; a bare
project object is accepted on import too. Absent optional fields take the
same defaults as freshly created objects. Missing identity fields (``id``,
``name``) and a missing or empty ``cost_per_rank`` are hard errors.

Dangling connection endpoints, cycles and duplicate ids are *not* import
errors: they are structural problems the validator reports, and the
project must still load so it can be repaired in the editor.

Import never raises on a bad document; it returns an ``ImportResult``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from skilltree_planner.models.constants import (
    CURRENT_VERSION,
    DEFAULT_POOL_SOURCE,
    DEFAULT_TOTAL_POINTS,
    PrerequisiteLogic,
)
from skilltree_planner.models.project import (
    GlobalPointPool,
    Project,
    ProjectMetadata,
    ProjectSettings,
    utc_now_iso,
)
from skilltree_planner.models.tree import Connection, Node, PointPool, Tree

logger = logging.getLogger(__name__)

IMPORTED_PROJECT_NAME = "Imported Project"

_NODE_KEYS = frozenset({
    "id", "name", "description", "max_rank", "current_rank", "cost_per_rank",
    "prerequisite_logic", "prerequisite_threshold", "tags",
})


@dataclass(slots=True)
class ImportResult:
    success: bool = False
    project: Project | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _required_str(data: dict[str, Any], key: str, prefix: str, errors: list[str]) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        errors.append(f"{prefix}.{key} is missing or invalid")
        return ""
    return value


def _optional_int(
    data: dict[str, Any],
    key: str,
    default: int,
    prefix: str,
    errors: list[str],
    minimum: int = 0,
) -> int:
    if key not in data or data[key] is None:
        return default
    value = data[key]
    if not _is_int(value) or value < minimum:
        errors.append(f"{prefix}.{key} must be an integer >= {minimum}")
        return default
    return value


def _as_object(value: Any, prefix: str, errors: list[str]) -> dict[str, Any] | None:
    if not isinstance(value, dict):
        errors.append(f"{prefix} must be an object")
        return None
    return value


def _as_list(data: dict[str, Any], key: str, prefix: str, errors: list[str]) -> list[Any]:
    value = data.get(key, [])
    if not isinstance(value, list):
        errors.append(f"{prefix}.{key} must be an array")
        return []
    return value


# ---------------------------------------------------------------------------
# dict -> model
# ---------------------------------------------------------------------------


def node_from_dict(data: Any, prefix: str, errors: list[str]) -> Node | None:
    obj = _as_object(data, prefix, errors)
    if obj is None:
        return None
    start = len(errors)

    node_id = _required_str(obj, "id", prefix, errors)
    name = _required_str(obj, "name", prefix, errors)

    costs_raw = obj.get("cost_per_rank")
    costs: tuple[int, ...] = ()
    if not isinstance(costs_raw, list) or not costs_raw:
        errors.append(f"{prefix}.cost_per_rank must be a non-empty array")
    elif not all(_is_int(c) and c >= 0 for c in costs_raw):
        errors.append(f"{prefix}.cost_per_rank entries must be integers >= 0")
    else:
        costs = tuple(costs_raw)

    max_rank = _optional_int(obj, "max_rank", 1, prefix, errors, minimum=1)
    current_rank = _optional_int(obj, "current_rank", 0, prefix, errors)
    threshold = _optional_int(obj, "prerequisite_threshold", 1, prefix, errors)

    logic = PrerequisiteLogic.AND
    if obj.get("prerequisite_logic") is not None:
        parsed = PrerequisiteLogic.parse(obj["prerequisite_logic"])
        if parsed is None:
            errors.append(
                f"{prefix}.prerequisite_logic must be one of AND, OR, SUM"
            )
        else:
            logic = parsed

    tags_raw = obj.get("tags", [])
    tags = tuple(str(t) for t in tags_raw) if isinstance(tags_raw, list) else ()
    presentation = {k: v for k, v in obj.items() if k not in _NODE_KEYS}

    if len(errors) > start:
        return None
    return Node(
        id=node_id,
        name=name,
        description=str(obj.get("description") or ""),
        max_rank=max_rank,
        current_rank=current_rank,
        cost_per_rank=costs,
        prerequisite_logic=logic,
        prerequisite_threshold=threshold,
        tags=tags,
        presentation=presentation,
    )


def connection_from_dict(data: Any, prefix: str, errors: list[str]) -> Connection | None:
    obj = _as_object(data, prefix, errors)
    if obj is None:
        return None
    start = len(errors)
    conn_id = _required_str(obj, "id", prefix, errors)
    from_id = _required_str(obj, "from_node_id", prefix, errors)
    to_id = _required_str(obj, "to_node_id", prefix, errors)
    required_rank = _optional_int(obj, "required_rank", 1, prefix, errors, minimum=1)
    if len(errors) > start:
        return None
    return Connection(
        id=conn_id, from_node_id=from_id, to_node_id=to_id, required_rank=required_rank
    )


def tree_from_dict(data: Any, prefix: str, errors: list[str]) -> Tree | None:
    obj = _as_object(data, prefix, errors)
    if obj is None:
        return None
    start = len(errors)
    tree_id = _required_str(obj, "id", prefix, errors)
    name = _required_str(obj, "name", prefix, errors)

    pool = PointPool()
    if obj.get("point_pool") is not None:
        pool_obj = _as_object(obj["point_pool"], f"{prefix}.point_pool", errors)
        if pool_obj is not None:
            pool_prefix = f"{prefix}.point_pool"
            pool = PointPool(
                total=_optional_int(pool_obj, "total", DEFAULT_TOTAL_POINTS, pool_prefix, errors),
                spent=_optional_int(pool_obj, "spent", 0, pool_prefix, errors),
                source=str(pool_obj.get("source") or DEFAULT_POOL_SOURCE),
            )

    nodes = [
        node_from_dict(raw, f"{prefix}.nodes[{i}]", errors)
        for i, raw in enumerate(_as_list(obj, "nodes", prefix, errors))
    ]
    connections = [
        connection_from_dict(raw, f"{prefix}.connections[{i}]", errors)
        for i, raw in enumerate(_as_list(obj, "connections", prefix, errors))
    ]
    if len(errors) > start:
        return None
    return Tree(
        id=tree_id,
        name=name,
        description=str(obj.get("description") or ""),
        point_pool=pool,
        nodes=tuple(n for n in nodes if n is not None),
        connections=tuple(c for c in connections if c is not None),
    )


def _metadata_from_dict(data: Any) -> ProjectMetadata:
    obj = data if isinstance(data, dict) else {}
    now = utc_now_iso()
    return ProjectMetadata(
        name=str(obj.get("name") or IMPORTED_PROJECT_NAME),
        description=str(obj.get("description") or ""),
        author=str(obj.get("author") or ""),
        created_at=str(obj.get("created_at") or now),
        modified_at=now,
    )


def _settings_from_dict(data: Any) -> ProjectSettings:
    obj = data if isinstance(data, dict) else {}
    pool = obj.get("global_point_pool")
    pool = pool if isinstance(pool, dict) else {}
    return ProjectSettings(
        allow_refunds=obj.get("allow_refunds") is not False,
        cascade_refunds=bool(obj.get("cascade_refunds", False)),
        global_point_pool=GlobalPointPool(
            enabled=bool(pool.get("enabled", False)),
            total=pool.get("total", 0) if _is_int(pool.get("total")) else 0,
            spent=pool.get("spent", 0) if _is_int(pool.get("spent")) else 0,
        ),
    )


def project_from_dict(data: Any, errors: list[str]) -> Project | None:
    obj = _as_object(data, "project", errors)
    if obj is None:
        return None
    start = len(errors)
    if not isinstance(obj.get("trees", []), list):
        errors.append("project.trees must be an array")
        return None
    trees = [
        tree_from_dict(raw, f"trees[{i}]", errors)
        for i, raw in enumerate(obj.get("trees", []))
    ]
    if len(errors) > start:
        return None
    return Project(
        version=CURRENT_VERSION,
        metadata=_metadata_from_dict(obj.get("metadata")),
        settings=_settings_from_dict(obj.get("settings")),
        trees=tuple(t for t in trees if t is not None),
    )


# ---------------------------------------------------------------------------
# model -> dict
# ---------------------------------------------------------------------------


def node_to_dict(node: Node) -> dict[str, Any]:
    data: dict[str, Any] = dict(node.presentation)
    data.update({
        "id": node.id,
        "name": node.name,
        "description": node.description,
        "max_rank": node.max_rank,
        "current_rank": node.current_rank,
        "cost_per_rank": list(node.cost_per_rank),
        "prerequisite_logic": str(
            getattr(node.prerequisite_logic, "value", node.prerequisite_logic)
        ),
        "prerequisite_threshold": node.prerequisite_threshold,
        "tags": list(node.tags),
    })
    return data


def connection_to_dict(conn: Connection) -> dict[str, Any]:
    return {
        "id": conn.id,
        "from_node_id": conn.from_node_id,
        "to_node_id": conn.to_node_id,
        "required_rank": conn.required_rank,
    }


def tree_to_dict(tree: Tree) -> dict[str, Any]:
    return {
        "id": tree.id,
        "name": tree.name,
        "description": tree.description,
        "point_pool": {
            "total": tree.point_pool.total,
            "spent": tree.point_pool.spent,
            "source": tree.point_pool.source,
        },
        "nodes": [node_to_dict(n) for n in tree.nodes],
        "connections": [connection_to_dict(c) for c in tree.connections],
    }


def project_to_dict(project: Project) -> dict[str, Any]:
    meta = project.metadata
    settings = project.settings
    return {
        "version": project.version,
        "metadata": {
            "name": meta.name,
            "description": meta.description,
            "author": meta.author,
            "created_at": meta.created_at,
            "modified_at": meta.modified_at,
        },
        "settings": {
            "global_point_pool": {
                "enabled": settings.global_point_pool.enabled,
                "total": settings.global_point_pool.total,
                "spent": settings.global_point_pool.spent,
            },
            "allow_refunds": settings.allow_refunds,
            "cascade_refunds": settings.cascade_refunds,
        },
        "trees": [tree_to_dict(t) for t in project.trees],
    }


def _build_only_dict(project: Project) -> dict[str, Any]:
    """Minimal export: who has which ranks, and the budgets."""
    return {
        "version": project.version,
        "metadata": {"name": project.metadata.name, "exported_at": utc_now_iso()},
        "trees": [
            {
                "id": tree.id,
                "name": tree.name,
                "nodes": [
                    {
                        "id": n.id,
                        "name": n.name,
                        "current_rank": n.current_rank,
                        "max_rank": n.max_rank,
                    }
                    for n in tree.nodes
                ],
                "point_pool": {
                    "total": tree.point_pool.total,
                    "spent": tree.point_pool.spent,
                },
            }
            for tree in project.trees
        ],
    }


# ---------------------------------------------------------------------------
# JSON documents
# ---------------------------------------------------------------------------


def export_project(project: Project, *, pretty: bool = False, build_only: bool = False) -> str:
    body = _build_only_dict(project) if build_only else project_to_dict(project)
    document = {"version": CURRENT_VERSION, "project": body}
    if pretty:
        return json.dumps(document, indent=2)
    return json.dumps(document)


def _version_key(version: str) -> tuple[int, ...]:
    parts: list[int] = []
    for piece in version.split(".")[:3]:
        try:
            parts.append(int(piece))
        except ValueError:
            parts.append(0)
    while len(parts) < 3:
        parts.append(0)
    return tuple(parts)


def import_project(text: str) -> ImportResult:
    result = ImportResult()
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        result.errors.append(f"Invalid JSON: {exc}")
        return result
    if not isinstance(data, dict):
        result.errors.append("Data must be an object")
        return result

    payload = data.get("project", data)
    version = data.get("version")
    if isinstance(version, str) and version != CURRENT_VERSION:
        direction = "older" if _version_key(version) < _version_key(CURRENT_VERSION) else "newer"
        result.warnings.append(
            f"Version mismatch: file is {version} ({direction}), current is {CURRENT_VERSION}"
        )
        logger.info("Migrating project document from %s to %s", version, CURRENT_VERSION)

    project = project_from_dict(payload, result.errors)
    if project is None or result.errors:
        logger.debug("Import failed with %d error(s)", len(result.errors))
        return result
    result.success = True
    result.project = project
    return result


def load_project(path: Path) -> ImportResult:
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        return ImportResult(errors=[f"Cannot read {path}: {exc}"])
    return import_project(text)


def save_project(project: Project, path: Path, *, pretty: bool = True) -> None:
    path.write_text(export_project(project, pretty=pretty), encoding="utf-8")
