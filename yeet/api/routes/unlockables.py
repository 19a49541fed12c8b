"""
yeet.api.routes.unlockables — ART KEYS, achievements and collection
=====================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy import Engine

from yeet.api.deps import get_catalog, get_engine, get_progress_cache
from yeet.api.rate_limit import rate_limited_user
from yeet.database.engine import run_db, run_in_transaction
from yeet.engine.cache import ProgressCache
from yeet.engine.unlockables import UnlockableCatalog, UnlockableCategory
from yeet.errors import NotFoundError
from yeet.services import unlock_service

router = APIRouter(prefix="/unlockables", tags=["unlockables"])


class UseRequest(BaseModel):
    context: str | None = None


def _progress(engine: Engine, catalog: UnlockableCatalog, cache: ProgressCache, user_id: int):
    return cache.get_or_compute(
        user_id,
        lambda: run_in_transaction(engine, unlock_service.evaluate_user, catalog, user_id),
    )


# ---------------------------------------------------------------------------
# GET /unlockables
# ---------------------------------------------------------------------------
@router.get("")
async def list_unlockables(
    category: UnlockableCategory | None = None,
    user_id: int = Depends(rate_limited_user),
    catalog: UnlockableCatalog = Depends(get_catalog),
):
    """Public catalogue; secret entries are left out."""
    members = catalog.by_category(category) if category else list(catalog.values())
    visible = [u.public_dict() for u in members if not u.is_secret]
    return {"unlockables": visible, "total": len(visible), "hidden": len(members) - len(visible)}


# ---------------------------------------------------------------------------
# GET /unlockables/collection
# ---------------------------------------------------------------------------
@router.get("/collection")
async def get_collection(
    user_id: int = Depends(rate_limited_user),
    engine: Engine = Depends(get_engine),
    catalog: UnlockableCatalog = Depends(get_catalog),
    cache: ProgressCache = Depends(get_progress_cache),
):
    evaluation = await run_db(_progress, engine, catalog, cache, user_id)
    return await run_db(
        run_in_transaction, engine, unlock_service.collection_summary, catalog, user_id, evaluation
    )


# ---------------------------------------------------------------------------
# GET /unlockables/progress
# ---------------------------------------------------------------------------
@router.get("/progress")
async def get_progress(
    user_id: int = Depends(rate_limited_user),
    engine: Engine = Depends(get_engine),
    catalog: UnlockableCatalog = Depends(get_catalog),
    cache: ProgressCache = Depends(get_progress_cache),
):
    """Progress percentages for everything not yet unlocked.

    May lag recent activity by up to the cache TTL.
    """
    result = await run_db(_progress, engine, catalog, cache, user_id)
    visible = {
        uid: pct for uid, pct in result.progress.items()
        if not catalog[uid].is_secret
    }
    return {
        "progress": visible,
        "eligible": sorted(result.eligible),
        "locked": sorted(uid for uid in result.locked if not catalog[uid].is_secret),
        "unlocked": sorted(result.unlocked),
    }


# ---------------------------------------------------------------------------
# GET /unlockables/{unlockable_id}
# ---------------------------------------------------------------------------
@router.get("/{unlockable_id}")
async def get_unlockable(
    unlockable_id: str,
    user_id: int = Depends(rate_limited_user),
    engine: Engine = Depends(get_engine),
    catalog: UnlockableCatalog = Depends(get_catalog),
):
    unlockable = catalog.get(unlockable_id)
    if unlockable is None:
        raise NotFoundError(f"Unknown unlockable: {unlockable_id!r}")
    if unlockable.is_secret:
        unlocked = await run_db(
            run_in_transaction, engine, unlock_service.load_unlocked_ids, user_id
        )
        if unlockable_id not in unlocked:
            raise NotFoundError(f"Unknown unlockable: {unlockable_id!r}")
    return unlockable.public_dict()


# ---------------------------------------------------------------------------
# POST /unlockables/{unlockable_id}/unlock
# ---------------------------------------------------------------------------
@router.post("/{unlockable_id}/unlock")
async def unlock(
    unlockable_id: str,
    user_id: int = Depends(rate_limited_user),
    engine: Engine = Depends(get_engine),
    catalog: UnlockableCatalog = Depends(get_catalog),
    cache: ProgressCache = Depends(get_progress_cache),
):
    """Unlock an ART KEY (or any Unlockable) the user has earned.

    Already-unlocked, prerequisites-not-met and requirements-incomplete
    all come back as 400 with the outcome in ``detail``.
    """
    outcome = await run_db(
        unlock_service.attempt_unlock, engine, catalog, user_id, unlockable_id, cache=cache
    )
    if not outcome.success:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=outcome.as_dict())
    return outcome.as_dict()


# ---------------------------------------------------------------------------
# POST /unlockables/{unlockable_id}/use
# ---------------------------------------------------------------------------
@router.post("/{unlockable_id}/use")
async def use(
    unlockable_id: str,
    body: UseRequest | None = None,
    user_id: int = Depends(rate_limited_user),
    engine: Engine = Depends(get_engine),
    catalog: UnlockableCatalog = Depends(get_catalog),
):
    context = body.context if body else None
    outcome = await run_db(
        unlock_service.use_unlockable, engine, catalog, user_id, unlockable_id, context
    )
    if not outcome.success:
        raise HTTPException(
            status.HTTP_403_FORBIDDEN,
            detail={"unlockable_id": unlockable_id, "reason": outcome.reason.value},
        )
    return {
        "unlockable_id": unlockable_id,
        "usage_count": outcome.usage_count,
        "effects": outcome.effects,
    }
