"""
yeet.config — YAML Configuration Loader
========================================

Reads ``config.yaml`` for deployment settings (identity, API port, puzzle
and cache tuning, optional Unlockable catalogue file).  Secrets and the
database DSN stay in the environment (``JWT_SECRET``, ``DATABASE_URL``).

Usage::

    from yeet.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.community_name)    # "YEET Creative Circles"
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml

from yeet.engine.definitions import default_catalog
from yeet.engine.unlockables import UnlockableCatalog, load_catalog_file


@dataclass(frozen=True, slots=True)
class YeetConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    community_name: str
    community_motto: str

    # API
    api_port: int

    # Puzzles
    puzzle_max_attempts: int = 3
    puzzle_ttl_seconds: int = 900

    # Displayed progress may be this stale; 0 disables the cache
    progress_cache_ttl_seconds: int = 30

    # Optional YAML catalogue; the built-in one is used when unset
    unlockables_path: str | None = None


def load_config(path: str | Path = "config.yaml") -> YeetConfig:
    """Read *path* and return a :class:`YeetConfig` instance.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh)

    puzzles = raw.get("puzzles") or {}
    return YeetConfig(
        community_name=raw["community_name"],
        community_motto=raw["community_motto"],
        api_port=int(raw["api_port"]),
        puzzle_max_attempts=int(puzzles.get("max_attempts", 3)),
        puzzle_ttl_seconds=int(puzzles.get("ttl_seconds", 900)),
        progress_cache_ttl_seconds=int(raw.get("progress_cache_ttl_seconds", 30)),
        unlockables_path=raw.get("unlockables_path") or None,
    )


def load_catalog(cfg: YeetConfig) -> UnlockableCatalog:
    """The Unlockable catalogue selected by *cfg*; fails loudly if malformed."""
    if cfg.unlockables_path:
        return load_catalog_file(cfg.unlockables_path)
    return default_catalog()
