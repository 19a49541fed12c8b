"""
yeet.services.user_service — User lookup and creation
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from sqlalchemy.orm import Session

from yeet.database.models import ActivityLog, ActivityType, CircleTier, User
from yeet.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def get_user(session: Session, user_id: int) -> User:
    """Fetch a User row or raise :class:`NotFoundError`."""
    user = session.get(User, user_id)
    if user is None:
        raise NotFoundError(f"Unknown user: {user_id}")
    return user


def get_or_create_user(session: Session, user_id: int, username: str) -> User:
    """Fetch or insert a User row.

    A new user starts in the beginner circle with zero points and gets an
    ``account_created`` activity event.
    """
    user = session.get(User, user_id)
    if user is not None:
        return user
    if not username or not username.strip():
        raise ValidationError("username must not be blank")

    user = User(
        id=user_id,
        username=username.strip(),
        points=0,
        circle_tier=CircleTier.BEGINNER.value,
        tier_floor=CircleTier.BEGINNER.value,
    )
    session.add(user)
    session.flush()
    session.add(ActivityLog(
        user_id=user.id,
        activity_type=ActivityType.ACCOUNT_CREATED.value,
        metadata_={},
        occurred_at=datetime.now(UTC),
    ))
    logger.info("Created user %s (%s)", user.id, user.username)
    return user
