"""
yeet.engine.events — ActivityEvent envelope
============================================

The immutable, in-memory form of one ``activity_log`` row.  A list of
these is the sole input to requirement evaluation.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Any

from yeet.errors import ValidationError

__all__ = [
    "ActivityEvent",
    "ENGINE_ACTIVITY_TYPES",
    "is_engine_activity_type",
    "validate_activity_type",
    "puzzle_solved_type",
]

_ACTIVITY_TYPE_RE = re.compile(r"^[a-z0-9][a-z0-9_:\-]{0,63}$")

# Written only by engine services; never accepted from clients
ENGINE_ACTIVITY_TYPES: frozenset[str] = frozenset({
    "account_created",
    "easter_egg_triggered",
    "easter_egg_discovery",
    "unlockable_unlocked",
})
_ENGINE_ACTIVITY_PREFIXES = ("puzzle_solved:",)


def validate_activity_type(activity_type: str) -> str:
    """Return *activity_type* unchanged if well-formed, else raise.

    Well-formed: lowercase letters, digits, ``_``, ``:`` and ``-``,
    1–64 characters, not starting with punctuation.
    """
    if not isinstance(activity_type, str) or not _ACTIVITY_TYPE_RE.match(activity_type):
        raise ValidationError(f"Malformed activity type: {activity_type!r}")
    return activity_type


def is_engine_activity_type(activity_type: str) -> bool:
    """True for the activity types that only the engine itself may record."""
    return (
        activity_type in ENGINE_ACTIVITY_TYPES
        or activity_type.startswith(_ENGINE_ACTIVITY_PREFIXES)
    )


def puzzle_solved_type(puzzle_type: str) -> str:
    """Activity type emitted when a puzzle of *puzzle_type* is solved."""
    return f"puzzle_solved:{puzzle_type}"


@dataclass(frozen=True, slots=True)
class ActivityEvent:
    """One user action.  Never mutated once built."""

    user_id: int
    activity_type: str
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    metadata: Mapping[str, Any] = field(default_factory=dict)
    event_id: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata or {})))
