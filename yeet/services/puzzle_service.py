"""
yeet.services.puzzle_service — Puzzle persistence and verification
===================================================================

``generate`` stores a new challenge with only the SHA-256 digest of its
normalised solution.  ``verify`` walks a small state machine:

* unknown id, or a puzzle owned by someone else → :class:`NotFoundError`
* expired, or ``attempts >= max_attempts`` → terminal rejection, even for
  a correct answer; the row is discarded
* otherwise the attempt is counted (persisted even when wrong), the
  digests compared, and on a match the fixed ``puzzle_points`` award is
  made, a ``puzzle_solved:{type}`` event recorded and the row deleted.

Expiry is checked on access; nothing sweeps in the background except
:func:`purge_expired`, which callers may schedule.
"""

from __future__ import annotations

import enum
import hmac
import logging
import random
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from yeet.constants import PUZZLE_DIFFICULTY_TIER, puzzle_points
from yeet.database.models import CircleTier, PuzzleChallenge, PuzzleDifficulty, PuzzleType
from yeet.engine.events import puzzle_solved_type
from yeet.engine.puzzles import generate_puzzle, solution_digest
from yeet.errors import NotFoundError, ValidationError
from yeet.services.activity_service import record
from yeet.services.ledger_service import award
from yeet.services.user_service import get_user

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_TTL_SECONDS = 900


class VerifyReason(enum.StrEnum):
    CORRECT = "correct"
    INCORRECT = "incorrect"
    EXPIRED = "expired"
    ATTEMPTS_EXHAUSTED = "attempts_exhausted"


@dataclass(frozen=True, slots=True)
class PuzzleVerification:
    correct: bool
    points_awarded: int
    reason: VerifyReason
    attempts_remaining: int = 0
    new_points: int | None = None
    new_tier: str | None = None

    @property
    def terminal(self) -> bool:
        return self.reason in (VerifyReason.EXPIRED, VerifyReason.ATTEMPTS_EXHAUSTED)


def _as_utc(dt: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=UTC)


def _parse_enum(enum_cls, value: str, what: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(f"Unknown {what}: {value!r}") from None


def required_tier(difficulty: str | PuzzleDifficulty) -> CircleTier:
    return PUZZLE_DIFFICULTY_TIER[_parse_enum(PuzzleDifficulty, difficulty, "puzzle difficulty")]


def generate(
    session: Session,
    user_id: int,
    puzzle_type: str,
    difficulty: str,
    *,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ttl_seconds: int = DEFAULT_TTL_SECONDS,
    rng: random.Random | None = None,
    now: datetime | None = None,
) -> PuzzleChallenge:
    """Create and persist a puzzle for *user_id*.

    The tier check for *difficulty* is the caller's job (see
    :func:`required_tier` and :func:`yeet.services.gate_service.has_tier`);
    the HTTP route turns a refusal into a 403.
    """
    ptype = _parse_enum(PuzzleType, puzzle_type, "puzzle type")
    level = _parse_enum(PuzzleDifficulty, difficulty, "puzzle difficulty")
    if max_attempts < 1:
        raise ValidationError("max_attempts must be at least 1")
    get_user(session, user_id)

    puzzle = generate_puzzle(ptype, level, rng)
    created = now or datetime.now(UTC)
    # The per-type time limit caps the TTL
    lifetime = min(ttl_seconds, puzzle.time_limit) if ttl_seconds > 0 else puzzle.time_limit
    challenge = PuzzleChallenge(
        id=str(uuid.uuid4()),
        user_id=user_id,
        puzzle_type=ptype.value,
        difficulty=level.value,
        challenge_data=puzzle.challenge_data,
        hints=list(puzzle.hints),
        solution_digest=solution_digest(puzzle.solution),
        attempts=0,
        max_attempts=max_attempts,
        created_at=created,
        expires_at=created + timedelta(seconds=lifetime),
    )
    session.add(challenge)
    session.flush()
    logger.info(
        "Generated %s/%s puzzle %s for user %s", ptype.value, level.value, challenge.id, user_id
    )
    return challenge


def _load_owned(session: Session, user_id: int, puzzle_id: str) -> PuzzleChallenge:
    try:
        uuid.UUID(puzzle_id)
    except (TypeError, ValueError):
        raise ValidationError(f"Malformed puzzle id: {puzzle_id!r}") from None
    # Row lock serialises concurrent verifies of one puzzle; attempts is re-read
    challenge = session.execute(
        select(PuzzleChallenge)
        .where(PuzzleChallenge.id == puzzle_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if challenge is None or challenge.user_id != user_id:
        raise NotFoundError(f"Unknown puzzle: {puzzle_id}")
    return challenge


def verify(
    session: Session,
    user_id: int,
    puzzle_id: str,
    solution: str,
    now: datetime | None = None,
) -> PuzzleVerification:
    """Check *solution* against the stored digest.  Runs in the caller's txn."""
    if not isinstance(solution, str) or not solution.strip():
        raise ValidationError("Solution must be a non-empty string")
    challenge = _load_owned(session, user_id, puzzle_id)
    current = now or datetime.now(UTC)

    if current >= _as_utc(challenge.expires_at):
        logger.info("Puzzle %s expired before verification", puzzle_id)
        session.delete(challenge)
        return PuzzleVerification(False, 0, VerifyReason.EXPIRED)
    if challenge.attempts >= challenge.max_attempts:
        logger.info("Puzzle %s rejected: %d attempts used", puzzle_id, challenge.attempts)
        session.delete(challenge)
        return PuzzleVerification(False, 0, VerifyReason.ATTEMPTS_EXHAUSTED)

    challenge.attempts += 1
    remaining = challenge.max_attempts - challenge.attempts

    if not hmac.compare_digest(solution_digest(solution), challenge.solution_digest):
        session.flush()
        logger.debug("Puzzle %s: wrong answer (%d left)", puzzle_id, remaining)
        return PuzzleVerification(False, 0, VerifyReason.INCORRECT, attempts_remaining=remaining)

    points = puzzle_points(challenge.difficulty, challenge.puzzle_type)
    result = award(
        session,
        user_id,
        points,
        f"Solved {challenge.puzzle_type} puzzle",
        {"puzzle_id": puzzle_id, "difficulty": challenge.difficulty},
    )
    record(
        session,
        user_id,
        puzzle_solved_type(challenge.puzzle_type),
        {
            "puzzle_id": puzzle_id,
            "difficulty": challenge.difficulty,
            "attempts": challenge.attempts,
        },
    )
    session.delete(challenge)
    session.flush()
    logger.info(
        "User %s solved %s puzzle %s (+%d points)", user_id, challenge.puzzle_type, puzzle_id, points
    )
    return PuzzleVerification(
        True, points, VerifyReason.CORRECT,
        attempts_remaining=remaining,
        new_points=result.new_points,
        new_tier=result.new_tier.value,
    )


def list_open(session: Session, user_id: int, now: datetime | None = None) -> list[PuzzleChallenge]:
    """Unexpired puzzles still waiting on *user_id*."""
    current = now or datetime.now(UTC)
    rows = session.scalars(
        select(PuzzleChallenge)
        .where(PuzzleChallenge.user_id == user_id)
        .order_by(PuzzleChallenge.created_at.desc())
    ).all()
    return [
        r for r in rows
        if _as_utc(r.expires_at) > current and r.attempts < r.max_attempts
    ]


def purge_expired(session: Session, now: datetime | None = None) -> int:
    """Delete every expired challenge; returns the number removed."""
    current = now or datetime.now(UTC)
    result = session.execute(
        delete(PuzzleChallenge)
        .where(PuzzleChallenge.expires_at <= current)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount:
        logger.info("Purged %d expired puzzles", result.rowcount)
    return result.rowcount
