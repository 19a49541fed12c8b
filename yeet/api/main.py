"""
yeet.api.main — FastAPI application entry point
=================================================

Run with::

    uvicorn yeet.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from yeet.api.deps import get_catalog, get_engine  # noqa: E402
from yeet.api.rate_limit import configure_rate_limiter  # noqa: E402
from yeet.api.routes.activity import router as activity_router  # noqa: E402
from yeet.api.routes.circles import router as circles_router  # noqa: E402
from yeet.api.routes.easter_eggs import router as easter_eggs_router  # noqa: E402
from yeet.api.routes.puzzles import router as puzzles_router  # noqa: E402
from yeet.api.routes.unlockables import router as unlockables_router  # noqa: E402
from yeet.database.engine import init_db  # noqa: E402
from yeet.errors import (  # noqa: E402
    InvariantViolation,
    NotFoundError,
    TransientStorageError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env with safe defaults.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — validate the catalogue, warm the DB engine."""
    # A malformed catalogue (cycle, unknown prerequisite …) aborts startup here
    catalog = get_catalog()
    engine = get_engine()
    init_db(engine)
    configure_rate_limiter(engine=engine)
    logger.info(
        "Yeet API started — %d unlockables, engine ready (%s)",
        len(catalog), engine.url.database,
    )
    yield
    logger.info("Yeet API shutting down")


app = FastAPI(
    title="Yeet Unlock & Reputation API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Engine errors → HTTP
# ---------------------------------------------------------------------------
@app.exception_handler(NotFoundError)
async def _not_found(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


@app.exception_handler(ValidationError)
async def _invalid(request: Request, exc: ValidationError):
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


@app.exception_handler(TransientStorageError)
async def _storage(request: Request, exc: TransientStorageError):
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Storage temporarily unavailable", "retryable": True},
    )


@app.exception_handler(InvariantViolation)
async def _invariant(request: Request, exc: InvariantViolation):
    logger.error("Invariant violation on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal error", "retryable": False},
    )


# Mount routers
app.include_router(unlockables_router, prefix="/api")
app.include_router(activity_router, prefix="/api")
app.include_router(puzzles_router, prefix="/api")
app.include_router(easter_eggs_router, prefix="/api")
app.include_router(circles_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
