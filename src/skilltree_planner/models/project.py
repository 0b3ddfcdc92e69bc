"""Project container and the explicit interaction context.

A project bundles independent trees with document metadata and the
refund policy. Interaction state (mode, selection, pending connection) is
not part of the project; callers pass an ``InteractionContext`` around.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

from skilltree_planner.models.constants import (
    CURRENT_VERSION,
    DEFAULT_PROJECT_NAME,
    Mode,
)
from skilltree_planner.models.tree import Tree


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True, slots=True)
class ProjectMetadata:
    name: str = DEFAULT_PROJECT_NAME
    description: str = ""
    author: str = ""
    created_at: str = field(default_factory=utc_now_iso)
    modified_at: str = field(default_factory=utc_now_iso)


@dataclass(frozen=True, slots=True)
class GlobalPointPool:
    """Project-wide pool. Carried through import/export; trees budget locally."""

    enabled: bool = False
    total: int = 0
    spent: int = 0


@dataclass(frozen=True, slots=True)
class ProjectSettings:
    allow_refunds: bool = True
    cascade_refunds: bool = False   # cascade in edit mode too
    global_point_pool: GlobalPointPool = field(default_factory=GlobalPointPool)


@dataclass(frozen=True, slots=True)
class Project:
    """Serialisable snapshot of every tree plus document settings."""

    version: str = CURRENT_VERSION
    metadata: ProjectMetadata = field(default_factory=ProjectMetadata)
    settings: ProjectSettings = field(default_factory=ProjectSettings)
    trees: tuple[Tree, ...] = ()

    def find_tree(self, tree_id: str) -> Tree | None:
        for tree in self.trees:
            if tree.id == tree_id:
                return tree
        return None

    def tree_index(self, tree_id: str) -> int:
        for i, tree in enumerate(self.trees):
            if tree.id == tree_id:
                return i
        return -1


@dataclass(frozen=True, slots=True)
class ConnectionMode:
    """Pending "draw a connection from X" gesture."""

    active: bool = False
    from_node_id: str | None = None
    required_rank: int = 1


@dataclass(frozen=True, slots=True)
class InteractionContext:
    """Per-session UI state, owned by the caller rather than a module global."""

    mode: Mode = Mode.EDIT
    active_tree_id: str | None = None
    selected_node_id: str | None = None
    connection_mode: ConnectionMode = field(default_factory=ConnectionMode)
