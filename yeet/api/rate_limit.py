"""
yeet.api.rate_limit — Per-Circle Request Rate Limiting
========================================================

Higher circles get more headroom: each authenticated user may make
``CIRCLE_RATE_LIMITS[circle]`` requests per 15-minute sliding window.

Uses a DB-backed sliding-window counter keyed by user ID (JWT ``sub``
claim), so the budget survives restarts and is shared across workers.
Returns HTTP 429 with a ``Retry-After`` header when the limit is exceeded.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from fastapi import Depends, HTTPException, status
from sqlalchemy import Engine, delete, func, select
from sqlalchemy.orm import Session

from yeet.api.deps import get_current_user_id, get_engine
from yeet.constants import CIRCLE_RATE_LIMITS
from yeet.database.models import CircleTier, RateLimitEvent, User

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 900


def limit_for_circle(circle_tier: str | None) -> int:
    """Request budget for *circle_tier*; unknown circles get the beginner budget."""
    return CIRCLE_RATE_LIMITS.get(circle_tier or "", CIRCLE_RATE_LIMITS[CircleTier.BEGINNER])


class CircleRateLimiter:
    """Sliding-window rate limiter keyed by user ID.

    DB-backed only — uses the ``rate_limit_events`` table.  The limit is
    looked up from the user's current circle on every check, so a
    promotion takes effect on the next request.
    """

    def __init__(self, window_seconds: int = DEFAULT_WINDOW_SECONDS, *, engine: Engine) -> None:
        self.window_seconds = window_seconds
        self.engine = engine

    def _normalize_dt(self, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    def _prune(self, session: Session, user_id: int, cutoff: datetime) -> None:
        session.execute(
            delete(RateLimitEvent).where(
                RateLimitEvent.user_id == user_id,
                RateLimitEvent.timestamp < cutoff,
            )
        )

    def check(self, user_id: int) -> tuple[bool, dict[str, Any]]:
        """Check if the user is within their circle's budget.

        Returns (allowed, info) where info contains:
          - remaining: requests remaining in the window
          - reset: seconds until the oldest request expires
          - limit: the max requests per window
        """
        now = datetime.now(UTC)
        cutoff = now - timedelta(seconds=self.window_seconds)

        with Session(self.engine) as session:
            self._prune(session, user_id, cutoff)
            limit = limit_for_circle(
                session.scalar(select(User.circle_tier).where(User.id == user_id))
            )
            timestamps = session.scalars(
                select(RateLimitEvent.timestamp)
                .where(RateLimitEvent.user_id == user_id)
                .order_by(RateLimitEvent.timestamp.asc())
            ).all()
            session.commit()

        count = len(timestamps)
        if count >= limit:
            oldest = self._normalize_dt(timestamps[0])
            reset = (oldest + timedelta(seconds=self.window_seconds) - now).total_seconds()
            return False, {
                "remaining": 0,
                "reset": max(1, int(reset) + 1),
                "limit": limit,
            }

        return True, {
            "remaining": limit - count,
            "reset": self.window_seconds,
            "limit": limit,
        }

    def record(self, user_id: int) -> dict[str, Any]:
        """Record a request and return updated rate-limit info."""
        now = datetime.now(UTC)
        cutoff = now - timedelta(seconds=self.window_seconds)

        with Session(self.engine) as session:
            self._prune(session, user_id, cutoff)
            session.add(RateLimitEvent(user_id=user_id, timestamp=now))
            session.flush()

            count = session.scalar(
                select(func.count()).select_from(
                    select(RateLimitEvent.id)
                    .where(RateLimitEvent.user_id == user_id)
                    .subquery()
                )
            ) or 0
            limit = limit_for_circle(
                session.scalar(select(User.circle_tier).where(User.id == user_id))
            )
            session.commit()

        return {
            "remaining": max(0, limit - count),
            "reset": self.window_seconds,
            "limit": limit,
        }

    def reset(self, user_id: int | None = None) -> None:
        """Clear rate limit state. If user_id is None, clear all."""
        with Session(self.engine) as session:
            if user_id is None:
                session.execute(delete(RateLimitEvent))
            else:
                session.execute(delete(RateLimitEvent).where(RateLimitEvent.user_id == user_id))
            session.commit()


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------
_limiter: CircleRateLimiter | None = None


def get_rate_limiter() -> CircleRateLimiter:
    """Return the global rate limiter instance."""
    if _limiter is None:
        raise RuntimeError("Rate limiter not configured — call configure_rate_limiter() first")
    return _limiter


def configure_rate_limiter(*, engine: Engine, window_seconds: int = DEFAULT_WINDOW_SECONDS) -> None:
    """Configure the global limiter to use durable DB-backed storage."""
    global _limiter
    _limiter = CircleRateLimiter(window_seconds=window_seconds, engine=engine)


# ---------------------------------------------------------------------------
# FastAPI dependency: chains after get_current_user_id
# ---------------------------------------------------------------------------
async def rate_limited_user(
    user_id: int = Depends(get_current_user_id),
    engine: Engine = Depends(get_engine),
) -> int:
    """Validate the JWT *and* enforce the per-circle request budget.

    Use ``Depends(rate_limited_user)`` in place of
    ``Depends(get_current_user_id)`` on any engine router.
    """
    limiter = get_rate_limiter()

    allowed, info = await asyncio.to_thread(limiter.check, user_id)
    if not allowed:
        logger.warning(
            "Rate limit exceeded for user %s: %d requests per %ds window",
            user_id, info["limit"], limiter.window_seconds,
        )
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "error": "rate_limit_exceeded",
                "message": (
                    f"Rate limit exceeded: {info['limit']} requests"
                    f" per {limiter.window_seconds // 60} minutes for your circle."
                ),
                "retry_after": info["reset"],
            },
            headers={"Retry-After": str(info["reset"])},
        )

    await asyncio.to_thread(limiter.record, user_id)
    return user_id
