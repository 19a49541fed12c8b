"""
yeet.engine.evaluator — Requirement evaluation
===============================================

Pure function of (catalog, activity history, unlocked ids).  No database
access and no hidden state, so progress can be recomputed from scratch at
any time and evaluation order across Unlockables does not matter.

Per Unlockable not yet unlocked:

1. Any prerequisite missing from ``unlocked`` → progress 0 (locked).
2. Otherwise ``round_half_up(100 * completed / len(required_actions))``;
   an empty ``required_actions`` list counts as 100.
3. Progress ≥ 100 → eligible.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal

from yeet.constants import round_half_up
from yeet.engine.events import ActivityEvent
from yeet.engine.requirements import is_satisfied
from yeet.engine.unlockables import Unlockable, UnlockableCatalog

LOCKED = 0
COMPLETE = 100


@dataclass(frozen=True, slots=True)
class EvaluationResult:
    unlocked: frozenset[str]
    eligible: frozenset[str]
    # unlockable_id → percent, for every Unlockable not yet unlocked
    progress: dict[str, int] = field(default_factory=dict)
    # Subset of ``progress`` whose prerequisites are unmet
    locked: frozenset[str] = frozenset()


def prerequisites_met(unlockable: Unlockable, unlocked: Iterable[str]) -> bool:
    have = unlocked if isinstance(unlocked, (set, frozenset)) else set(unlocked)
    return unlockable.prerequisites <= have


def progress_for(unlockable: Unlockable, events: list[ActivityEvent]) -> int:
    """Completion percent of *unlockable*'s requirements (prerequisites ignored)."""
    total = len(unlockable.required_actions)
    if total == 0:
        return COMPLETE
    completed = sum(1 for req in unlockable.required_actions if is_satisfied(req, events))
    return round_half_up(Decimal(100 * completed) / Decimal(total))


def evaluate(
    catalog: UnlockableCatalog,
    events: Iterable[ActivityEvent],
    unlocked: Iterable[str],
) -> EvaluationResult:
    """Compute progress and eligibility for every Unlockable in *catalog*."""
    history = list(events)
    have = frozenset(unlocked)

    eligible: set[str] = set()
    locked: set[str] = set()
    progress: dict[str, int] = {}

    for uid, unlockable in catalog.items():
        if uid in have:
            continue
        if not prerequisites_met(unlockable, have):
            progress[uid] = LOCKED
            locked.add(uid)
            continue
        percent = progress_for(unlockable, history)
        progress[uid] = percent
        if percent >= COMPLETE:
            eligible.add(uid)

    return EvaluationResult(
        unlocked=have,
        eligible=frozenset(eligible),
        progress=progress,
        locked=frozenset(locked),
    )
