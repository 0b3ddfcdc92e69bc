"""Defaults and closed enumerations shared by the model and the engine."""

from enum import Enum


# Document version stamped on every exported project.
CURRENT_VERSION = "1.0.0"

DEFAULT_PROJECT_NAME = "Untitled Project"
DEFAULT_TREE_NAME = "New Tree"
DEFAULT_NODE_NAME = "New Skill"
DEFAULT_TOTAL_POINTS = 20
DEFAULT_COST_PER_RANK: tuple[int, ...] = (1,)
DEFAULT_POOL_SOURCE = "local"


class PrerequisiteLogic(str, Enum):
    """How a node combines its incoming connections."""

    AND = "AND"
    OR = "OR"
    SUM = "SUM"

    @classmethod
    def parse(cls, value: object) -> "PrerequisiteLogic | None":
        """Map a raw document value onto the enum, or None if unrecognised."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                return None
        return None


class NodeStatus(str, Enum):
    """Derived, never stored. See ``engine.status``."""

    LOCKED = "locked"
    UNLOCKABLE = "unlockable"
    ACTIVE = "active"
    MAXED = "maxed"
    INVALID = "invalid"


class Mode(str, Enum):
    """Edit mode relaxes prerequisite checks; play mode simulates a build."""

    EDIT = "edit"
    PLAY = "play"

    @classmethod
    def parse(cls, value: "str | Mode") -> "Mode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"mode must be 'edit' or 'play', got {value!r}") from None
