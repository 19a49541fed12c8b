"""
yeet.api.routes.puzzles — Puzzle generation and verification
==============================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy import Engine
from sqlalchemy.orm import Session

from yeet.api.deps import get_catalog, get_config, get_engine, get_progress_cache
from yeet.api.rate_limit import rate_limited_user
from yeet.config import YeetConfig
from yeet.database.engine import run_db, run_in_transaction
from yeet.database.models import PuzzleChallenge
from yeet.engine.cache import ProgressCache
from yeet.engine.unlockables import UnlockableCatalog
from yeet.services import gate_service, puzzle_service, unlock_service

router = APIRouter(prefix="/puzzles", tags=["puzzles"])


class PuzzleCreate(BaseModel):
    puzzle_type: str
    difficulty: str = "novice"


class PuzzleAnswer(BaseModel):
    solution: str


def _challenge_dict(c: PuzzleChallenge) -> dict:
    return {
        "id": c.id,
        "puzzle_type": c.puzzle_type,
        "difficulty": c.difficulty,
        "challenge": c.challenge_data,
        "hints": c.hints or [],
        "attempts": c.attempts,
        "max_attempts": c.max_attempts,
        "expires_at": c.expires_at.isoformat() if c.expires_at else None,
    }


def _generate(session: Session, user_id: int, body: PuzzleCreate, cfg: YeetConfig) -> dict | None:
    if not gate_service.has_tier(session, user_id, puzzle_service.required_tier(body.difficulty)):
        return None
    challenge = puzzle_service.generate(
        session,
        user_id,
        body.puzzle_type,
        body.difficulty,
        max_attempts=cfg.puzzle_max_attempts,
        ttl_seconds=cfg.puzzle_ttl_seconds,
    )
    return _challenge_dict(challenge)


# ---------------------------------------------------------------------------
# POST /puzzles
# ---------------------------------------------------------------------------
@router.post("", status_code=201)
async def generate_puzzle(
    body: PuzzleCreate,
    user_id: int = Depends(rate_limited_user),
    engine: Engine = Depends(get_engine),
    cfg: YeetConfig = Depends(get_config),
):
    """Generate a puzzle; the difficulty is gated by the caller's circle."""
    created = await run_db(run_in_transaction, engine, _generate, user_id, body, cfg)
    if created is None:
        raise HTTPException(
            status.HTTP_403_FORBIDDEN,
            detail={
                "error": "circle_too_low",
                "difficulty": body.difficulty,
                "required_circle": puzzle_service.required_tier(body.difficulty).value,
            },
        )
    return created


# ---------------------------------------------------------------------------
# GET /puzzles
# ---------------------------------------------------------------------------
@router.get("")
async def list_puzzles(
    user_id: int = Depends(rate_limited_user),
    engine: Engine = Depends(get_engine),
):
    def _open(session: Session) -> list[dict]:
        return [_challenge_dict(c) for c in puzzle_service.list_open(session, user_id)]

    return {"puzzles": await run_db(run_in_transaction, engine, _open)}


# ---------------------------------------------------------------------------
# POST /puzzles/{puzzle_id}/verify
# ---------------------------------------------------------------------------
@router.post("/{puzzle_id}/verify")
async def verify_puzzle(
    puzzle_id: str,
    body: PuzzleAnswer,
    user_id: int = Depends(rate_limited_user),
    engine: Engine = Depends(get_engine),
    catalog: UnlockableCatalog = Depends(get_catalog),
    cache: ProgressCache = Depends(get_progress_cache),
):
    """Check an answer.  Wrong, expired and exhausted answers are 400s."""
    result = await run_db(
        run_in_transaction, engine, puzzle_service.verify, user_id, puzzle_id, body.solution
    )
    payload = {
        "correct": result.correct,
        "reason": result.reason.value,
        "points_awarded": result.points_awarded,
        "attempts_remaining": result.attempts_remaining,
    }
    if not result.correct:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=payload)

    cache.invalidate(user_id)
    unlocked = await run_db(unlock_service.unlock_eligible, engine, catalog, user_id, cache=cache)
    return {
        **payload,
        "new_points": result.new_points,
        "new_circle": result.new_tier,
        "achievements_unlocked": [o.as_dict() for o in unlocked],
    }
