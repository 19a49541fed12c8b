"""
yeet.services.ledger_service — Circle points ledger
====================================================

``award`` runs inside the caller's transaction:

1. ``UPDATE users SET points = points + :delta`` — a single atomic
   statement, so concurrent awards serialize on the row lock instead of
   racing a read-modify-write.
2. Re-read the total and derive the circle:
   ``max(tier_for_points(points), tier_floor)``.
3. Persist the circle if it moved (``promoted``).
4. Append a ``points_ledger`` audit row.

Negative deltas are rejected outright; administrative corrections are a
separate, privileged path that does not exist in this service.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from yeet.constants import (
    CAPABILITY_MIN_TIER,
    CIRCLE_RATE_LIMITS,
    CIRCLE_TIERS,
    max_tier,
    next_tier_info,
    tier_for_points,
    tier_rank,
)
from yeet.database.models import CircleTier, PointsLedger, User
from yeet.errors import InvariantViolation, NotFoundError
from yeet.services.user_service import get_user

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AwardResult:
    new_points: int
    new_tier: CircleTier
    promoted: bool
    previous_tier: CircleTier


def _check_delta(delta: Any) -> int:
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise InvariantViolation(f"Points delta must be an integer, got {delta!r}")
    if delta < 0:
        raise InvariantViolation(f"Points delta must be non-negative, got {delta}")
    return delta


def _sync_tier(session: Session, user_id: int) -> tuple[int, CircleTier, CircleTier]:
    """Re-derive and persist ``circle_tier``; returns (points, old, new)."""
    row = session.execute(
        select(User.points, User.circle_tier, User.tier_floor).where(User.id == user_id)
    ).one()
    if row.points < 0:
        raise InvariantViolation(f"User {user_id} would hold negative points ({row.points})")
    old_tier = CircleTier(row.circle_tier)
    new_tier = max_tier(tier_for_points(row.points), row.tier_floor)
    if new_tier != old_tier:
        session.execute(
            update(User).where(User.id == user_id).values(circle_tier=new_tier.value)
        )
    return row.points, old_tier, new_tier


def award(
    session: Session,
    user_id: int,
    delta: int,
    reason: str,
    metadata: Mapping[str, Any] | None = None,
) -> AwardResult:
    """Add *delta* circle points to *user_id* and re-derive the circle."""
    _check_delta(delta)

    result = session.execute(
        update(User).where(User.id == user_id).values(points=User.points + delta)
    )
    if result.rowcount == 0:
        raise NotFoundError(f"Unknown user: {user_id}")

    points, old_tier, new_tier = _sync_tier(session, user_id)
    promoted = new_tier != old_tier

    session.add(PointsLedger(
        user_id=user_id,
        delta=delta,
        reason=reason,
        metadata_=dict(metadata or {}),
        balance_after=points,
        tier_after=new_tier.value,
    ))
    session.flush()

    if promoted:
        logger.info(
            "User %s promoted %s → %s at %d points (%s)",
            user_id, old_tier, new_tier, points, reason,
        )
    return AwardResult(
        new_points=points, new_tier=new_tier, promoted=promoted, previous_tier=old_tier
    )


def promote_tier_floor(session: Session, user_id: int, floor: str | CircleTier) -> AwardResult:
    """Raise the user's circle to at least *floor*.  Never downgrades."""
    target = CircleTier(floor)
    user = session.execute(
        select(User).where(User.id == user_id).with_for_update()
    ).scalar_one_or_none()
    if user is None:
        raise NotFoundError(f"Unknown user: {user_id}")

    if tier_rank(target) > tier_rank(user.tier_floor):
        user.tier_floor = target.value
        session.flush()

    points, old_tier, new_tier = _sync_tier(session, user_id)
    if new_tier != old_tier:
        logger.info("User %s raised to %s by tier floor %s", user_id, new_tier, target)
    return AwardResult(
        new_points=points,
        new_tier=new_tier,
        promoted=new_tier != old_tier,
        previous_tier=old_tier,
    )


def circle_summary(session: Session, user_id: int) -> dict:
    """Current circle, points, permissions and distance to the next circle."""
    user = get_user(session, user_id)
    tier = CircleTier(user.circle_tier)
    row = next(r for r in CIRCLE_TIERS if r["tier"] == tier)
    nxt = next_tier_info(user.points)
    # A tier floor can put the circle above the points-derived next tier
    if nxt is not None and tier_rank(nxt["tier"]) <= tier_rank(tier):
        later = [r for r in CIRCLE_TIERS if tier_rank(r["tier"]) > tier_rank(tier)]
        nxt = (
            {
                "tier": later[0]["tier"].value,
                "title": later[0]["title"],
                "min_points": later[0]["min_points"],
                "points_needed": max(0, later[0]["min_points"] - user.points),
            }
            if later else None
        )
    return {
        "user_id": user.id,
        "username": user.username,
        "points": user.points,
        "circle": tier.value,
        "title": row["title"],
        "color": row["color"],
        "tier_floor": user.tier_floor,
        "next_circle": nxt,
        "permissions": {
            cap: tier_rank(tier) >= tier_rank(min_tier)
            for cap, min_tier in CAPABILITY_MIN_TIER.items()
        },
        "rate_limit": CIRCLE_RATE_LIMITS[tier],
    }


def ledger_history(session: Session, user_id: int, limit: int = 50) -> list[PointsLedger]:
    return list(session.scalars(
        select(PointsLedger)
        .where(PointsLedger.user_id == user_id)
        .order_by(PointsLedger.created_at.desc(), PointsLedger.id.desc())
        .limit(limit)
    ).all())


def leaderboard(session: Session, limit: int = 20, offset: int = 0) -> tuple[int, list[User]]:
    """Users ranked by points, highest first; ties broken by id.

    Returns ``(total_users, page)``.
    """
    total = session.scalar(select(func.count()).select_from(User)) or 0
    rows = session.scalars(
        select(User).order_by(User.points.desc(), User.id).offset(offset).limit(limit)
    ).all()
    return total, list(rows)
