"""
Yeet — Progressive Unlock & Reputation Engine
===============================================
Tracks what community members do, turns it into circle points, and
unlocks ART KEYS, achievements and easter eggs once their requirements
and prerequisites are met.  Puzzles add a gated, verifiable way to earn
points; the six Creative Circles gate what a member may do next.

Package layout::

    yeet/
    ├── config.py          # YAML → typed Python config, catalogue selection
    ├── constants.py       # Circle tier table, permissions, puzzle rewards
    ├── errors.py          # Exception hierarchy
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine, unit of work, async helper
    │   └── models.py      # ORM models
    ├── engine/
    │   ├── events.py      # ActivityEvent value type
    │   ├── requirements.py # Requirement variants + interpreter
    │   ├── unlockables.py # Unlockable definitions + validated catalogue
    │   ├── definitions.py # Built-in ART KEYS, achievements, easter eggs
    │   ├── evaluator.py   # Pure progress / eligibility evaluation
    │   ├── puzzles.py     # Puzzle generators
    │   ├── easter_eggs.py # Trigger matching
    │   ├── abilities.py   # Effects of using an ART KEY
    │   └── cache.py       # Short-lived progress cache
    ├── services/
    │   ├── activity_service.py   # Append-only activity log
    │   ├── ledger_service.py     # Points award + circle promotion
    │   ├── unlock_service.py     # Unlock coordinator, grants, collection
    │   ├── puzzle_service.py     # Puzzle persistence + verification
    │   ├── easter_egg_service.py # Easter-egg discovery
    │   ├── gate_service.py       # Tier / capability checks
    │   └── user_service.py       # User lookup and creation
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # JWT identity, engine, catalogue
        ├── rate_limit.py  # Per-circle request budget
        └── routes/        # REST endpoints
"""

__version__ = "0.1.0"
