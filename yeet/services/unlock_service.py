"""
yeet.services.unlock_service — Unlock coordinator
==================================================

State machine per (user, Unlockable)::

    Locked ──prerequisites met──▶ Eligible ──attempt_unlock──▶ Unlocked

``Eligible → Unlocked`` is the only write path.  Inside one unit of work
it inserts the ``user_unlocks`` row under a SAVEPOINT, awards the reward
points, raises the tier floor and records an ``unlockable_unlocked``
activity event.  The unique ``(user_id, unlockable_id)`` constraint picks
exactly one winner when two attempts race: the loser's INSERT fails, its
SAVEPOINT rolls back, and it reports ``already_unlocked`` without
touching points.

Capability grants (premium access, special abilities) are written
*after* the commit, each in its own transaction, idempotent per
``(user_id, grant_kind)``.  A failed grant is logged and left for
:func:`repair_capability_grants`; it never rolls back the unlock.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from yeet.constants import round_half_up
from yeet.database.engine import unit_of_work
from yeet.database.models import ActivityType, CapabilityGrant, UserUnlock
from yeet.engine.abilities import activate_abilities
from yeet.engine.evaluator import EvaluationResult, evaluate, progress_for
from yeet.engine.unlockables import Unlockable, UnlockableCatalog, UnlockableCategory
from yeet.errors import NotFoundError, TransientStorageError
from yeet.services.activity_service import list_events, record
from yeet.services.ledger_service import award, promote_tier_floor
from yeet.services.user_service import get_user

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from yeet.engine.cache import ProgressCache

logger = logging.getLogger(__name__)


class UnlockReason(enum.StrEnum):
    UNLOCKED = "unlocked"
    ALREADY_UNLOCKED = "already_unlocked"
    PREREQUISITES_NOT_MET = "prerequisites_not_met"
    REQUIREMENTS_INCOMPLETE = "requirements_incomplete"
    NOT_UNLOCKED = "not_unlocked"


@dataclass(frozen=True, slots=True)
class UnlockOutcome:
    unlockable_id: str
    success: bool
    reason: UnlockReason
    already_unlocked: bool = False
    rewards_granted: dict | None = None
    progress: int = 0
    missing_prerequisites: tuple[str, ...] = ()
    new_points: int | None = None
    new_tier: str | None = None
    promoted: bool = False
    grants_written: tuple[str, ...] = ()

    def as_dict(self) -> dict:
        return {
            "unlockable_id": self.unlockable_id,
            "success": self.success,
            "already_unlocked": self.already_unlocked,
            "reason": self.reason.value,
            "rewards_granted": self.rewards_granted,
            "progress": self.progress,
            "missing_prerequisites": list(self.missing_prerequisites),
            "new_points": self.new_points,
            "new_tier": self.new_tier,
            "promoted": self.promoted,
            "grants_written": list(self.grants_written),
        }


@dataclass(frozen=True, slots=True)
class UseOutcome:
    unlockable_id: str
    success: bool
    reason: UnlockReason
    usage_count: int = 0
    effects: dict = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def load_unlocked_ids(session: Session, user_id: int) -> set[str]:
    """Ids the user has unlocked, read from the authoritative table."""
    return set(session.scalars(
        select(UserUnlock.unlockable_id).where(UserUnlock.user_id == user_id)
    ).all())


def evaluate_user(session: Session, catalog: UnlockableCatalog, user_id: int) -> EvaluationResult:
    """Evaluate *user_id* against *catalog* from current stored state."""
    get_user(session, user_id)
    return evaluate(catalog, list_events(session, user_id), load_unlocked_ids(session, user_id))


def _require(catalog: UnlockableCatalog, unlockable_id: str) -> Unlockable:
    try:
        return catalog[unlockable_id]
    except KeyError:
        raise NotFoundError(f"Unknown unlockable: {unlockable_id!r}") from None


# ---------------------------------------------------------------------------
# Unlock
# ---------------------------------------------------------------------------
def attempt_unlock(
    engine: Engine,
    catalog: UnlockableCatalog,
    user_id: int,
    unlockable_id: str,
    cache: ProgressCache | None = None,
) -> UnlockOutcome:
    """Try to move *unlockable_id* to Unlocked for *user_id*.

    Business-rule failures come back as an :class:`UnlockOutcome` with
    ``success=False``.  Unknown ids raise :class:`NotFoundError`.
    """
    unlockable = _require(catalog, unlockable_id)

    with unit_of_work(engine) as session:
        get_user(session, user_id)
        unlocked = load_unlocked_ids(session, user_id)
        if unlockable_id in unlocked:
            return UnlockOutcome(
                unlockable_id, success=False, reason=UnlockReason.ALREADY_UNLOCKED,
                already_unlocked=True, progress=100,
            )

        missing = tuple(sorted(unlockable.prerequisites - unlocked))
        if missing:
            return UnlockOutcome(
                unlockable_id, success=False, reason=UnlockReason.PREREQUISITES_NOT_MET,
                missing_prerequisites=missing,
            )

        progress = progress_for(unlockable, list_events(session, user_id))
        if progress < 100:
            return UnlockOutcome(
                unlockable_id, success=False, reason=UnlockReason.REQUIREMENTS_INCOMPLETE,
                progress=progress,
            )

        try:
            with session.begin_nested():   # SAVEPOINT
                session.add(UserUnlock(
                    user_id=user_id,
                    unlockable_id=unlockable_id,
                    unlocked_at=datetime.now(UTC),
                    usage_count=0,
                ))
                session.flush()
        except IntegrityError:
            # Lost the race; the SAVEPOINT is gone, the outer txn is intact
            logger.info("Concurrent unlock of %s for user %s lost the race", unlockable_id, user_id)
            return UnlockOutcome(
                unlockable_id, success=False, reason=UnlockReason.ALREADY_UNLOCKED,
                already_unlocked=True, progress=100,
            )

        rewards = unlockable.rewards
        awarded = award(
            session,
            user_id,
            rewards.points,
            f"Unlocked {unlockable.category.value}: {unlockable.name}",
            {"unlockable_id": unlockable_id, "rarity": unlockable.rarity},
        )
        final = awarded
        if rewards.tier_floor is not None:
            final = promote_tier_floor(session, user_id, rewards.tier_floor)
        record(
            session,
            user_id,
            ActivityType.UNLOCKABLE_UNLOCKED.value,
            {
                "unlockable_id": unlockable_id,
                "category": unlockable.category.value,
                "rarity": unlockable.rarity,
                "points": rewards.points,
            },
        )
        outcome = UnlockOutcome(
            unlockable_id,
            success=True,
            reason=UnlockReason.UNLOCKED,
            rewards_granted=rewards.as_dict(),
            progress=100,
            new_points=final.new_points,
            new_tier=final.new_tier.value,
            promoted=awarded.promoted or final.promoted,
        )

    logger.info(
        "User %s unlocked %s %s (+%d points, circle %s)",
        user_id, unlockable.category.value, unlockable_id, rewards.points, outcome.new_tier,
    )
    if cache is not None:
        cache.invalidate(user_id)

    written = grant_capabilities(
        engine, user_id, rewards.capability_kinds(), source=f"unlock:{unlockable_id}"
    )
    return replace(outcome, grants_written=tuple(written))


def unlock_eligible(
    engine: Engine,
    catalog: UnlockableCatalog,
    user_id: int,
    categories: tuple[UnlockableCategory, ...] = (UnlockableCategory.ACHIEVEMENT,),
    cache: ProgressCache | None = None,
) -> list[UnlockOutcome]:
    """Unlock everything in *categories* the user is currently eligible for.

    Called after an activity is recorded; achievements are awarded
    automatically while ART KEYS wait for an explicit unlock.
    """
    with unit_of_work(engine) as session:
        result = evaluate_user(session, catalog, user_id)
    outcomes = []
    for uid in sorted(result.eligible):
        if catalog[uid].category not in categories:
            continue
        outcome = attempt_unlock(engine, catalog, user_id, uid, cache=cache)
        if outcome.success:
            outcomes.append(outcome)
    return outcomes


# ---------------------------------------------------------------------------
# Capability grants (best effort)
# ---------------------------------------------------------------------------
def _insert_grant(
    session: Session,
    user_id: int,
    grant_kind: str,
    source: str,
    expires_at: datetime | None,
) -> bool:
    """Insert one grant; False if it already existed."""
    try:
        with session.begin_nested():
            session.add(CapabilityGrant(
                user_id=user_id,
                grant_kind=grant_kind,
                source=source,
                granted_at=datetime.now(UTC),
                expires_at=expires_at,
            ))
            session.flush()
    except IntegrityError:
        return False
    return True


def grant_capabilities(
    engine: Engine,
    user_id: int,
    grant_kinds: list[str],
    source: str,
    expires_at: datetime | None = None,
) -> list[str]:
    """Write each grant in its own transaction; returns the kinds written.

    Failures are logged at WARNING and skipped.
    """
    written: list[str] = []
    for kind in grant_kinds:
        try:
            with unit_of_work(engine) as session:
                if _insert_grant(session, user_id, kind, source, expires_at):
                    written.append(kind)
        except (SQLAlchemyError, TransientStorageError):
            logger.warning(
                "Capability grant %s for user %s failed; left for repair",
                kind, user_id, exc_info=True,
            )
    return written


def repair_capability_grants(engine: Engine, catalog: UnlockableCatalog, user_id: int) -> list[str]:
    """Re-issue grants for every unlocked Unlockable.  Idempotent."""
    with unit_of_work(engine) as session:
        unlocked = sorted(load_unlocked_ids(session, user_id))
    written: list[str] = []
    for uid in unlocked:
        unlockable = catalog.get(uid)
        if unlockable is None:
            continue
        written.extend(grant_capabilities(
            engine, user_id, unlockable.rewards.capability_kinds(), source=f"unlock:{uid}"
        ))
    if written:
        logger.info("Repaired %d capability grants for user %s", len(written), user_id)
    return written


# ---------------------------------------------------------------------------
# Using an unlocked ART KEY
# ---------------------------------------------------------------------------
def use_unlockable(
    engine: Engine,
    catalog: UnlockableCatalog,
    user_id: int,
    unlockable_id: str,
    context: str | None = None,
) -> UseOutcome:
    """Bump usage counters and return the activated ability effects."""
    unlockable = _require(catalog, unlockable_id)
    with unit_of_work(engine) as session:
        get_user(session, user_id)
        result = session.execute(
            update(UserUnlock)
            .where(UserUnlock.user_id == user_id, UserUnlock.unlockable_id == unlockable_id)
            .values(usage_count=UserUnlock.usage_count + 1, last_used_at=datetime.now(UTC))
        )
        if result.rowcount == 0:
            return UseOutcome(unlockable_id, success=False, reason=UnlockReason.NOT_UNLOCKED)
        usage_count = session.scalar(
            select(UserUnlock.usage_count).where(
                UserUnlock.user_id == user_id, UserUnlock.unlockable_id == unlockable_id
            )
        )
    effects = activate_abilities(unlockable, context)
    logger.debug("User %s used %s (%d uses)", user_id, unlockable_id, usage_count)
    return UseOutcome(
        unlockable_id,
        success=True,
        reason=UnlockReason.UNLOCKED,
        usage_count=usage_count,
        effects=effects.as_dict(),
    )


# ---------------------------------------------------------------------------
# Collection summary
# ---------------------------------------------------------------------------
def _percent(part: int, whole: int) -> int:
    if whole == 0:
        return 0
    return round_half_up(Decimal(100 * part) / Decimal(whole))


def collection_summary(
    session: Session,
    catalog: UnlockableCatalog,
    user_id: int,
    evaluation: EvaluationResult | None = None,
) -> dict[str, Any]:
    """Unlocked / available / in-progress lists per category.

    Secret Unlockables are left out of every list until unlocked and only
    counted in ``hidden``.
    """
    get_user(session, user_id)
    rows = {
        row.unlockable_id: row
        for row in session.scalars(select(UserUnlock).where(UserUnlock.user_id == user_id))
    }
    if evaluation is None:
        evaluation = evaluate(catalog, list_events(session, user_id), set(rows))

    summary: dict[str, Any] = {}
    for category in UnlockableCategory:
        members = catalog.by_category(category)
        unlocked, available, in_progress = [], [], []
        hidden = 0
        for u in members:
            row = rows.get(u.id)
            if row is not None:
                unlocked.append({
                    **u.public_dict(),
                    "unlocked_at": row.unlocked_at.isoformat() if row.unlocked_at else None,
                    "usage_count": row.usage_count,
                    "last_used_at": row.last_used_at.isoformat() if row.last_used_at else None,
                })
                continue
            if u.is_secret:
                hidden += 1
                continue
            pct = evaluation.progress.get(u.id, 0)
            if u.id in evaluation.eligible:
                available.append({**u.public_dict(), "progress": 100})
            elif pct > 0:
                in_progress.append({**u.public_dict(), "progress": pct})
        summary[category.value] = {
            "unlocked": unlocked,
            "available": available,
            "in_progress": in_progress,
            "hidden": hidden,
            "total": len(members),
            "percent_complete": _percent(len(unlocked), len(members)),
        }
    return summary
