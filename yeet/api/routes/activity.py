"""
yeet.api.routes.activity — Activity recording
===============================================

Recording an activity is the trigger for achievement evaluation: every
achievement the user became eligible for is unlocked in the same request.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import Engine

from yeet.api.deps import get_catalog, get_engine, get_progress_cache
from yeet.api.rate_limit import rate_limited_user
from yeet.database.engine import run_db, run_in_transaction
from yeet.engine.cache import ProgressCache
from yeet.engine.unlockables import UnlockableCatalog
from yeet.services import activity_service, unlock_service

router = APIRouter(prefix="/activity", tags=["activity"])


class ActivityCreate(BaseModel):
    activity_type: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    occurred_at: datetime | None = None


# ---------------------------------------------------------------------------
# POST /activity
# ---------------------------------------------------------------------------
@router.post("", status_code=201)
async def record_activity(
    body: ActivityCreate,
    user_id: int = Depends(rate_limited_user),
    engine: Engine = Depends(get_engine),
    catalog: UnlockableCatalog = Depends(get_catalog),
    cache: ProgressCache = Depends(get_progress_cache),
):
    event_id = await run_db(
        run_in_transaction,
        engine,
        activity_service.record_client_activity,
        user_id,
        body.activity_type,
        body.metadata,
        body.occurred_at,
    )
    cache.invalidate(user_id)
    unlocked = await run_db(unlock_service.unlock_eligible, engine, catalog, user_id, cache=cache)
    return {
        "event_id": event_id,
        "achievements_unlocked": [o.as_dict() for o in unlocked],
    }


# ---------------------------------------------------------------------------
# GET /activity/summary
# ---------------------------------------------------------------------------
@router.get("/summary")
async def activity_summary(
    user_id: int = Depends(rate_limited_user),
    engine: Engine = Depends(get_engine),
):
    """Number of recorded events per activity type."""
    counts = await run_db(run_in_transaction, engine, activity_service.count_by_type, user_id)
    return {"counts": counts, "total": sum(counts.values())}
