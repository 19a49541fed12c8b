"""
yeet.api.deps — FastAPI dependency injection
=============================================
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, status
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine

from yeet.config import YeetConfig, load_catalog, load_config
from yeet.database.engine import create_db_engine, unit_of_work
from yeet.engine.cache import ProgressCache
from yeet.engine.unlockables import UnlockableCatalog
from yeet.errors import ValidationError
from yeet.services.user_service import get_or_create_user

_WEAK_SECRETS = frozenset({
    "yeet-dev-secret-change-me",
    "change-me",
    "secret",
    "dev",
    "",
})

_MIN_SECRET_LENGTH = 32

JWT_ALGORITHM = "HS256"


def _load_jwt_secret() -> str:
    """Load and validate JWT_SECRET from the environment.

    Raises RuntimeError at import time if the secret is missing, blank,
    too short (< 32 chars), or a known weak default.
    """
    secret = os.getenv("JWT_SECRET", "")
    if not secret:
        raise RuntimeError(
            "JWT_SECRET environment variable is not set. "
            "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(64))\""
        )
    if secret in _WEAK_SECRETS:
        raise RuntimeError(
            f"JWT_SECRET is set to a known weak default ('{secret}'). "
            "Please set a strong, unique secret."
        )
    if len(secret) < _MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET is too short ({len(secret)} chars). "
            f"Minimum length is {_MIN_SECRET_LENGTH} characters."
        )
    return secret


JWT_SECRET: str = _load_jwt_secret()


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> YeetConfig:
    return load_config(os.getenv("YEET_CONFIG", "config.yaml"))


@lru_cache(maxsize=1)
def get_catalog() -> UnlockableCatalog:
    """The process-wide Unlockable catalogue; validated once, then read-only."""
    return load_catalog(get_config())


@lru_cache(maxsize=1)
def get_progress_cache() -> ProgressCache:
    return ProgressCache(ttl_seconds=get_config().progress_cache_ttl_seconds)


def get_current_user_id(
    authorization: Annotated[str | None, Header()] = None,
    engine: Engine = Depends(get_engine),
) -> int:
    """Validate the JWT and return the caller's user id. Raises 401 if invalid.

    First contact from a valid token creates the user row (beginner
    circle, zero points).
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing token")
    token = authorization.split(" ", 1)[1]
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except InvalidTokenError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")
    try:
        user_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token subject")

    username = payload.get("username") or f"user-{user_id}"
    try:
        with unit_of_work(engine) as session:
            get_or_create_user(session, user_id, username)
    except ValidationError as exc:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, str(exc))
    return user_id
