"""Configuration knobs for allocation and refund.

Defaults describe a player simulating a build: prerequisites enforced,
refunds allowed, refunds always cascade. Editors switch to ``Mode.EDIT``.
"""

from __future__ import annotations

from dataclasses import dataclass

from skilltree_planner.models.constants import Mode
from skilltree_planner.models.project import InteractionContext, ProjectSettings


@dataclass(frozen=True, slots=True)
class EngineConfig:
    """Policy for a single allocate/refund call."""

    mode: Mode = Mode.PLAY
    allow_refunds: bool = True
    cascade_refunds: bool = False   # Edit mode only; play mode always cascades

    def __post_init__(self) -> None:
        if not isinstance(self.mode, Mode):
            raise ValueError(f"mode must be a Mode, got {self.mode!r}")

    @property
    def is_play(self) -> bool:
        return self.mode is Mode.PLAY

    @property
    def cascades(self) -> bool:
        """Whether a refund runs the cascade resolver afterwards."""
        return self.is_play or self.cascade_refunds

    @classmethod
    def for_project(
        cls,
        settings: ProjectSettings,
        context: InteractionContext | None = None,
    ) -> EngineConfig:
        mode = context.mode if context is not None else Mode.EDIT
        return cls(
            mode=mode,
            allow_refunds=settings.allow_refunds,
            cascade_refunds=settings.cascade_refunds,
        )
