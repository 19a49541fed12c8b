"""
yeet.engine.requirements — Requirement variants and their interpreter
======================================================================

An Unlockable's ``required_actions`` is an ordered list of requirement
values drawn from a closed set of frozen dataclasses.  Each variant has
exactly one handler in :data:`REQUIREMENT_HANDLERS`; :func:`is_satisfied`
refuses anything else.

This module is pure calculation — no database I/O.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from yeet.engine.events import ActivityEvent, validate_activity_type
from yeet.errors import ValidationError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Variants
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class HasEventOfType:
    """At least one event of ``activity_type``."""

    activity_type: str

    def describe(self) -> str:
        return self.activity_type


@dataclass(frozen=True, slots=True)
class HasEventWithMetadata:
    """At least one event of ``activity_type`` whose metadata contains
    every key/value pair in ``match``.
    """

    activity_type: str
    match: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "match", MappingProxyType(dict(self.match or {})))

    def describe(self) -> str:
        pairs = ", ".join(f"{k}={v}" for k, v in sorted(self.match.items()))
        return f"{self.activity_type}[{pairs}]"

    def __hash__(self) -> int:
        return hash((self.activity_type, tuple(sorted(self.match.items()))))


@dataclass(frozen=True, slots=True)
class HasEventCount:
    """At least ``count`` events of ``activity_type``."""

    activity_type: str
    count: int

    def describe(self) -> str:
        return f"{self.activity_type}x{self.count}"


Requirement = HasEventOfType | HasEventWithMetadata | HasEventCount


# ---------------------------------------------------------------------------
# Handlers: pure functions (requirement, events) → bool
# ---------------------------------------------------------------------------
def _check_event_of_type(req: HasEventOfType, events: list[ActivityEvent]) -> bool:
    return any(e.activity_type == req.activity_type for e in events)


def _check_event_with_metadata(
    req: HasEventWithMetadata, events: list[ActivityEvent]
) -> bool:
    for e in events:
        if e.activity_type != req.activity_type:
            continue
        if all(e.metadata.get(k) == v for k, v in req.match.items()):
            return True
    return False


def _check_event_count(req: HasEventCount, events: list[ActivityEvent]) -> bool:
    seen = 0
    for e in events:
        if e.activity_type == req.activity_type:
            seen += 1
            if seen >= req.count:
                return True
    return False


REQUIREMENT_HANDLERS: dict[type, Callable[[Any, list[ActivityEvent]], bool]] = {
    HasEventOfType: _check_event_of_type,
    HasEventWithMetadata: _check_event_with_metadata,
    HasEventCount: _check_event_count,
}


def is_satisfied(requirement: Requirement, events: Iterable[ActivityEvent]) -> bool:
    """True when at least one event (or enough events) matches *requirement*."""
    handler = REQUIREMENT_HANDLERS.get(type(requirement))
    if handler is None:
        raise TypeError(f"Unknown requirement variant: {type(requirement).__name__}")
    return handler(requirement, list(events))


# ---------------------------------------------------------------------------
# Parsing: catalog files describe requirements as plain mappings
# ---------------------------------------------------------------------------
def parse_requirement(raw: Any) -> Requirement:
    """Build a requirement from its config form.

    Accepted forms::

        "upload_portfolio"                                  # HasEventOfType
        {"type": "portfolio_upload"}                        # HasEventOfType
        {"type": "portfolio_upload", "metadata": {...}}     # HasEventWithMetadata
        {"type": "collaboration_completed", "count": 3}     # HasEventCount
    """
    if isinstance(raw, str):
        return HasEventOfType(validate_activity_type(raw))
    if not isinstance(raw, Mapping):
        raise ValidationError(f"Requirement must be a string or mapping, got {raw!r}")

    unknown = set(raw) - {"type", "metadata", "count"}
    if unknown:
        raise ValidationError(f"Unknown requirement keys: {sorted(unknown)}")
    if "metadata" in raw and "count" in raw:
        raise ValidationError("A requirement takes either 'metadata' or 'count', not both")

    activity_type = validate_activity_type(raw.get("type", ""))
    if "metadata" in raw:
        match = raw["metadata"]
        if not isinstance(match, Mapping) or not match:
            raise ValidationError("Requirement 'metadata' must be a non-empty mapping")
        return HasEventWithMetadata(activity_type, dict(match))
    if "count" in raw:
        count = raw["count"]
        if not isinstance(count, int) or isinstance(count, bool) or count < 1:
            raise ValidationError(f"Requirement 'count' must be a positive integer, got {count!r}")
        return HasEventCount(activity_type, count)
    return HasEventOfType(activity_type)
