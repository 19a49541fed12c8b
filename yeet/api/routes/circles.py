"""
yeet.api.routes.circles — Circle status, ledger and capability gate
=====================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import Engine
from sqlalchemy.orm import Session

from yeet.api.deps import get_catalog, get_engine
from yeet.api.rate_limit import rate_limited_user
from yeet.constants import CIRCLE_TIERS
from yeet.database.engine import run_db, run_in_transaction
from yeet.engine.unlockables import UnlockableCatalog
from yeet.services import gate_service, ledger_service, unlock_service

router = APIRouter(tags=["circles"])


# ---------------------------------------------------------------------------
# GET /circles
# ---------------------------------------------------------------------------
@router.get("/circles")
def list_circles():
    """The six circles with their point thresholds."""
    return {
        "circles": [
            {
                "tier": row["tier"].value,
                "title": row["title"],
                "min_points": row["min_points"],
                "color": row["color"],
            }
            for row in CIRCLE_TIERS
        ]
    }


# ---------------------------------------------------------------------------
# GET /circles/leaderboard
# ---------------------------------------------------------------------------
@router.get("/circles/leaderboard")
async def get_leaderboard(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    user_id: int = Depends(rate_limited_user),
    engine: Engine = Depends(get_engine),
):
    """Paginated ranking by circle points."""
    offset = (page - 1) * page_size

    def _page(session: Session) -> dict:
        total, rows = ledger_service.leaderboard(session, page_size, offset)
        return {
            "total": total,
            "page": page,
            "page_size": page_size,
            "users": [
                {
                    "rank": offset + i + 1,
                    "user_id": u.id,
                    "username": u.username,
                    "points": u.points,
                    "circle": u.circle_tier,
                }
                for i, u in enumerate(rows)
            ],
        }

    return await run_db(run_in_transaction, engine, _page)


# ---------------------------------------------------------------------------
# GET /circles/me
# ---------------------------------------------------------------------------
@router.get("/circles/me")
async def my_circle(
    user_id: int = Depends(rate_limited_user),
    engine: Engine = Depends(get_engine),
):
    return await run_db(run_in_transaction, engine, ledger_service.circle_summary, user_id)


# ---------------------------------------------------------------------------
# GET /circles/me/ledger
# ---------------------------------------------------------------------------
@router.get("/circles/me/ledger")
async def my_ledger(
    limit: int = Query(50, ge=1, le=200),
    user_id: int = Depends(rate_limited_user),
    engine: Engine = Depends(get_engine),
):
    def _history(session: Session) -> list[dict]:
        return [
            {
                "delta": row.delta,
                "reason": row.reason,
                "balance_after": row.balance_after,
                "circle_after": row.tier_after,
                "created_at": row.created_at.isoformat() if row.created_at else None,
            }
            for row in ledger_service.ledger_history(session, user_id, limit)
        ]

    return {"entries": await run_db(run_in_transaction, engine, _history)}


# ---------------------------------------------------------------------------
# Capabilities
# ---------------------------------------------------------------------------
@router.get("/capabilities")
async def my_capabilities(
    user_id: int = Depends(rate_limited_user),
    engine: Engine = Depends(get_engine),
):
    grants = await run_db(run_in_transaction, engine, gate_service.list_capabilities, user_id)
    return {"grants": grants}


@router.get("/capabilities/{capability}")
async def check_capability(
    capability: str,
    user_id: int = Depends(rate_limited_user),
    engine: Engine = Depends(get_engine),
):
    """403 unless the caller's circle or a live grant allows *capability*."""
    allowed = await run_db(
        run_in_transaction, engine, gate_service.has_capability, user_id, capability
    )
    if not allowed:
        raise HTTPException(status.HTTP_403_FORBIDDEN, f"Capability {capability!r} not granted")
    return {"capability": capability, "allowed": True}


@router.post("/capabilities/repair")
async def repair_capabilities(
    user_id: int = Depends(rate_limited_user),
    engine: Engine = Depends(get_engine),
    catalog: UnlockableCatalog = Depends(get_catalog),
):
    """Re-issue grants that a failed best-effort write left behind."""
    written = await run_db(unlock_service.repair_capability_grants, engine, catalog, user_id)
    return {"grants_written": written}


# ---------------------------------------------------------------------------
# GET /content/{content}/access
# ---------------------------------------------------------------------------
@router.get("/content/{content}/access")
async def content_access(
    content: str,
    user_id: int = Depends(rate_limited_user),
    engine: Engine = Depends(get_engine),
):
    allowed = await run_db(
        run_in_transaction, engine, gate_service.has_premium_access, user_id, content
    )
    if not allowed:
        raise HTTPException(status.HTTP_403_FORBIDDEN, f"No access to premium content {content!r}")
    return {"content": content, "allowed": True}
