"""
yeet.database.models — SQLAlchemy 2.0 Data Models
==================================================

Persistent state of the unlock & reputation engine.

Tables:
- users              — Community members with circle points and tier
- activity_log       — Append-only user action journal (evaluation input)
- points_ledger      — Audit trail of every points award
- user_unlocks       — Unlocked ART KEYS / achievements / easter eggs
- capability_grants  — Premium-access and ability flags granted by unlocks
- puzzle_challenges  — Ephemeral puzzle instances awaiting a solution
- rate_limit_events  — Sliding-window request log for per-circle throttling

Unlockable *definitions* are not stored here; they are static
configuration (see :mod:`yeet.engine.unlockables`).
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    BigInteger,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Yeet ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class CircleTier(enum.StrEnum):
    """The six Creative Circles, lowest first.

    Declaration order is the tier order; compare with
    :func:`yeet.constants.tier_rank`, never with ``<`` on the strings.
    """
    BEGINNER = "beginner"
    APPRENTICE = "apprentice"
    ARTIST = "artist"
    MASTER = "master"
    VIRTUOSO = "virtuoso"
    CREATOR = "creator"


class ActivityType(enum.StrEnum):
    """Activity types the platform itself emits.

    The activity log accepts any well-formed type string; these are the
    ones engine code writes or the built-in catalog refers to.
    """
    ACCOUNT_CREATED = "account_created"
    PORTFOLIO_UPLOAD = "portfolio_upload"
    CONTENT_READ = "content_read"
    COLLABORATION_COMPLETED = "collaboration_completed"
    MENTORSHIP_PROVIDED = "mentorship_provided"
    CHALLENGE_COMPLETED = "challenge_completed"
    STORY_PUBLISHED = "story_published"
    EVENT_ORGANIZED = "event_organized"
    MEDITATION_SESSION = "meditation_session"
    FLOW_STATE = "flow_state"
    STREAK_MILESTONE = "streak_milestone"
    COMMUNITY_INSPIRED = "community_inspired"
    TRADITION_PRESERVED = "tradition_preserved"
    EASTER_EGG_TRIGGERED = "easter_egg_triggered"
    EASTER_EGG_DISCOVERY = "easter_egg_discovery"
    UNLOCKABLE_UNLOCKED = "unlockable_unlocked"


class PuzzleType(enum.StrEnum):
    CARNATIC_SEQUENCE = "carnatic_sequence"
    QUANTUM_CIPHER = "quantum_cipher"
    RHYTHM_PATTERN = "rhythm_pattern"
    LITERARY_CODE = "literary_code"


class PuzzleDifficulty(enum.StrEnum):
    NOVICE = "novice"
    APPRENTICE = "apprentice"
    VIRTUOSO = "virtuoso"
    MASTER = "master"


# ---------------------------------------------------------------------------
# Users: identity plus the two reputation fields
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    username: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    circle_tier: Mapped[str] = mapped_column(
        String(20), nullable=False, default=CircleTier.BEGINNER.value
    )
    # Highest tier granted directly by an unlock reward; circle_tier never
    # drops below it.
    tier_floor: Mapped[str] = mapped_column(
        String(20), nullable=False, default=CircleTier.BEGINNER.value
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    activity_logs: Mapped[list[ActivityLog]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )
    unlocks: Mapped[list[UserUnlock]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_users_points_desc", "points"),
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} name={self.username!r} tier={self.circle_tier}>"


# ---------------------------------------------------------------------------
# ActivityLog: append-only event journal
# ---------------------------------------------------------------------------
class ActivityLog(Base):
    __tablename__ = "activity_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    activity_type: Mapped[str] = mapped_column(String(64), nullable=False)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSONB, nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    user: Mapped[User] = relationship(back_populates="activity_logs")

    __table_args__ = (
        Index("ix_activity_log_user_time", "user_id", "occurred_at"),
        Index("ix_activity_log_type_time", "activity_type", "occurred_at"),
    )

    def __repr__(self) -> str:
        return f"<ActivityLog id={self.id} user={self.user_id} type={self.activity_type}>"


# ---------------------------------------------------------------------------
# PointsLedger: audit row per award
# ---------------------------------------------------------------------------
class PointsLedger(Base):
    __tablename__ = "points_ledger"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    delta: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSONB, nullable=True)
    balance_after: Mapped[int] = mapped_column(Integer, nullable=False)
    tier_after: Mapped[str] = mapped_column(String(20), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_points_ledger_user_time", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<PointsLedger id={self.id} user={self.user_id} delta={self.delta}>"


# ---------------------------------------------------------------------------
# UserUnlock: existence of the row *is* the unlock state
# ---------------------------------------------------------------------------
class UserUnlock(Base):
    __tablename__ = "user_unlocks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    unlockable_id: Mapped[str] = mapped_column(String(64), nullable=False)
    unlocked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    usage_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_used_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    user: Mapped[User] = relationship(back_populates="unlocks")

    __table_args__ = (
        UniqueConstraint("user_id", "unlockable_id", name="uq_user_unlocks_user_unlockable"),
    )

    def __repr__(self) -> str:
        return f"<UserUnlock user={self.user_id} unlockable={self.unlockable_id!r}>"


# ---------------------------------------------------------------------------
# CapabilityGrant: premium access / ability flags
# ---------------------------------------------------------------------------
class CapabilityGrant(Base):
    """A non-point reward consumed by the content-delivery layer.

    ``grant_kind`` is namespaced: ``premium:<content>`` or
    ``ability:<name>``.  ``expires_at`` of ``None`` means permanent.
    """
    __tablename__ = "capability_grants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    grant_kind: Mapped[str] = mapped_column(String(100), nullable=False)
    source: Mapped[str] = mapped_column(String(100), nullable=False)
    granted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        UniqueConstraint("user_id", "grant_kind", name="uq_capability_grants_user_kind"),
    )

    def __repr__(self) -> str:
        return f"<CapabilityGrant user={self.user_id} kind={self.grant_kind!r}>"


# ---------------------------------------------------------------------------
# PuzzleChallenge: ephemeral; deleted when solved
# ---------------------------------------------------------------------------
class PuzzleChallenge(Base):
    __tablename__ = "puzzle_challenges"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    puzzle_type: Mapped[str] = mapped_column(String(30), nullable=False)
    difficulty: Mapped[str] = mapped_column(String(20), nullable=False)
    challenge_data: Mapped[dict] = mapped_column(JSONB, nullable=False)
    hints: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    solution_digest: Mapped[str] = mapped_column(String(64), nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_puzzle_challenges_user", "user_id"),
        Index("ix_puzzle_challenges_expires", "expires_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<PuzzleChallenge id={self.id} type={self.puzzle_type!r} "
            f"attempts={self.attempts}/{self.max_attempts}>"
        )


# ---------------------------------------------------------------------------
# RateLimitEvent: durable request events for per-circle throttling
# ---------------------------------------------------------------------------
class RateLimitEvent(Base):
    __tablename__ = "rate_limit_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_rate_limit_events_user_ts", "user_id", timestamp.desc()),
    )

    def __repr__(self) -> str:
        return f"<RateLimitEvent user={self.user_id} ts={self.timestamp}>"
