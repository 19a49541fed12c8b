"""
yeet.services.activity_service — Append-only activity log
==========================================================

``record`` is the only write path into ``activity_log``; rows are never
updated.  Client-submitted events go through ``record_client_activity``,
which refuses the types the engine reserves for itself.  ``list_events``
turns a user's history back into immutable
:class:`~yeet.engine.events.ActivityEvent` values for the evaluator.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from yeet.database.models import ActivityLog
from yeet.engine.events import ActivityEvent, is_engine_activity_type, validate_activity_type
from yeet.errors import ValidationError
from yeet.services.user_service import get_user

logger = logging.getLogger(__name__)


def record(
    session: Session,
    user_id: int,
    activity_type: str,
    metadata: Mapping[str, Any] | None = None,
    occurred_at: datetime | None = None,
) -> int:
    """Append one activity event and return its id.

    Raises :class:`ValidationError` for a malformed type, non-mapping
    metadata, or an unknown user.
    """
    validate_activity_type(activity_type)
    if metadata is not None and not isinstance(metadata, Mapping):
        raise ValidationError("metadata must be a mapping")
    get_user(session, user_id)

    row = ActivityLog(
        user_id=user_id,
        activity_type=activity_type,
        metadata_=dict(metadata or {}),
        occurred_at=occurred_at or datetime.now(UTC),
    )
    session.add(row)
    session.flush()
    logger.debug("Recorded %s for user %s (event %s)", activity_type, user_id, row.id)
    return row.id


def record_client_activity(
    session: Session,
    user_id: int,
    activity_type: str,
    metadata: Mapping[str, Any] | None = None,
    occurred_at: datetime | None = None,
) -> int:
    """:func:`record` for client-submitted events.

    Puzzle solves, easter-egg discoveries, unlocks and account creation
    are only ever recorded by the services that verify them.
    """
    validate_activity_type(activity_type)
    if is_engine_activity_type(activity_type):
        logger.warning("User %s tried to submit engine activity %s", user_id, activity_type)
        raise ValidationError(f"Activity type {activity_type!r} cannot be submitted directly")
    return record(session, user_id, activity_type, metadata, occurred_at)


def list_events(session: Session, user_id: int) -> list[ActivityEvent]:
    """Full history of *user_id*, oldest first."""
    rows = session.scalars(
        select(ActivityLog)
        .where(ActivityLog.user_id == user_id)
        .order_by(ActivityLog.occurred_at, ActivityLog.id)
    ).all()
    return [
        ActivityEvent(
            user_id=row.user_id,
            activity_type=row.activity_type,
            occurred_at=row.occurred_at,
            metadata=row.metadata_ or {},
            event_id=row.id,
        )
        for row in rows
    ]


def count_by_type(session: Session, user_id: int) -> dict[str, int]:
    """activity_type → number of events, for profile displays."""
    rows = session.execute(
        select(ActivityLog.activity_type, func.count().label("cnt"))
        .where(ActivityLog.user_id == user_id)
        .group_by(ActivityLog.activity_type)
    ).all()
    return {row.activity_type: row.cnt for row in rows}
