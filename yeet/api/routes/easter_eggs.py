"""
yeet.api.routes.easter_eggs — Hidden trigger discovery
========================================================
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy import Engine

from yeet.api.deps import get_catalog, get_engine, get_progress_cache
from yeet.api.rate_limit import rate_limited_user
from yeet.database.engine import run_db
from yeet.engine.cache import ProgressCache
from yeet.engine.unlockables import UnlockableCatalog
from yeet.services import easter_egg_service

router = APIRouter(prefix="/easter-eggs", tags=["easter-eggs"])


class TriggerRequest(BaseModel):
    trigger_method: str
    trigger_data: dict[str, Any] = Field(default_factory=dict)


@router.post("/trigger")
async def trigger(
    body: TriggerRequest,
    user_id: int = Depends(rate_limited_user),
    engine: Engine = Depends(get_engine),
    catalog: UnlockableCatalog = Depends(get_catalog),
    cache: ProgressCache = Depends(get_progress_cache),
):
    """A non-matching trigger is a normal ``triggered: false`` response."""
    result = await run_db(
        easter_egg_service.trigger_easter_egg,
        engine,
        catalog,
        user_id,
        body.trigger_method,
        body.trigger_data,
        cache=cache,
    )
    return result.as_dict()


@router.get("/hints")
async def hints(
    limit: int = Query(5, ge=1, le=20),
    user_id: int = Depends(rate_limited_user),
    engine: Engine = Depends(get_engine),
    catalog: UnlockableCatalog = Depends(get_catalog),
):
    return {
        "hints": await run_db(
            easter_egg_service.discovery_hints, engine, catalog, user_id, limit
        )
    }
