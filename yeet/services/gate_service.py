"""
yeet.services.gate_service — Tier authorization gate
=====================================================

Guard-clause checks for request handlers (challenge creation, premium
content, puzzle difficulty).  Both functions return a plain ``bool`` and
never raise: an unknown user, an unknown tier or a storage failure all
come back as ``False`` (the latter logged), so callers can translate
``False`` straight into a 403.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from yeet.constants import CAPABILITY_MIN_TIER, tier_rank
from yeet.database.models import CapabilityGrant, User
from yeet.errors import YeetError

logger = logging.getLogger(__name__)


def _current_tier(session: Session, user_id: int) -> str | None:
    return session.scalar(select(User.circle_tier).where(User.id == user_id))


def has_tier(session: Session, user_id: int, min_tier: str) -> bool:
    """True when the user's circle is *min_tier* or higher."""
    try:
        tier = _current_tier(session, user_id)
        if tier is None:
            return False
        return tier_rank(tier) >= tier_rank(min_tier)
    except ValueError:
        logger.warning("Tier check with unknown tier %r for user %s", min_tier, user_id)
        return False
    except (SQLAlchemyError, YeetError):
        logger.warning("Tier check failed for user %s", user_id, exc_info=True)
        return False


def has_capability(
    session: Session,
    user_id: int,
    capability: str,
    now: datetime | None = None,
) -> bool:
    """True when the circle grants *capability* or a live grant exists.

    *capability* is either a circle permission name (``mentor``,
    ``access_premium`` …) or a grant kind (``premium:literary_archives``,
    ``ability:precision_mode``).
    """
    current = now or datetime.now(UTC)
    try:
        min_tier = CAPABILITY_MIN_TIER.get(capability)
        if min_tier is not None:
            tier = _current_tier(session, user_id)
            if tier is not None and tier_rank(tier) >= tier_rank(min_tier):
                return True

        grant_id = session.scalar(
            select(CapabilityGrant.id).where(
                CapabilityGrant.user_id == user_id,
                CapabilityGrant.grant_kind == capability,
                or_(CapabilityGrant.expires_at.is_(None), CapabilityGrant.expires_at > current),
            )
        )
        return grant_id is not None
    except (SQLAlchemyError, YeetError, ValueError):
        logger.warning("Capability check %s failed for user %s", capability, user_id, exc_info=True)
        return False


def has_premium_access(session: Session, user_id: int, content: str) -> bool:
    """Premium content check used by the content-delivery layer.

    ``all_premium_content`` grants everything; the ``access_premium``
    circle permission does too.
    """
    return (
        has_capability(session, user_id, f"premium:{content}")
        or has_capability(session, user_id, "premium:all_premium_content")
        or has_capability(session, user_id, "access_premium")
    )


def list_capabilities(session: Session, user_id: int, now: datetime | None = None) -> list[dict]:
    current = now or datetime.now(UTC)
    rows = session.scalars(
        select(CapabilityGrant)
        .where(
            CapabilityGrant.user_id == user_id,
            or_(CapabilityGrant.expires_at.is_(None), CapabilityGrant.expires_at > current),
        )
        .order_by(CapabilityGrant.grant_kind)
    ).all()
    return [
        {
            "grant_kind": r.grant_kind,
            "source": r.source,
            "granted_at": r.granted_at.isoformat() if r.granted_at else None,
            "expires_at": r.expires_at.isoformat() if r.expires_at else None,
        }
        for r in rows
    ]
