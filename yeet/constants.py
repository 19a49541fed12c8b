"""
yeet.constants — Shared Constants & Tier Table
===============================================

Single source of truth for the Creative Circle tier table, the per-tier
permission flags and the puzzle reward tables.  Import from here instead
of duplicating in services and routes.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from yeet.database.models import CircleTier, PuzzleDifficulty, PuzzleType

# ---------------------------------------------------------------------------
# Circle tier table: ascending, [min_points, max_points)
# ---------------------------------------------------------------------------
CIRCLE_TIERS: list[dict] = [
    {"tier": CircleTier.BEGINNER, "title": "Beginner", "min_points": 0, "max_points": 100, "color": "#90EE90"},
    {"tier": CircleTier.APPRENTICE, "title": "Apprentice", "min_points": 100, "max_points": 500, "color": "#87CEEB"},
    {"tier": CircleTier.ARTIST, "title": "Artist", "min_points": 500, "max_points": 1500, "color": "#FF7F7F"},
    {"tier": CircleTier.MASTER, "title": "Master", "min_points": 1500, "max_points": 5000, "color": "#FFD700"},
    {"tier": CircleTier.VIRTUOSO, "title": "Virtuoso", "min_points": 5000, "max_points": 15000, "color": "#40E0D0"},
    {"tier": CircleTier.CREATOR, "title": "Creator", "min_points": 15000, "max_points": None, "color": "#C0C0C0"},
]

TIER_ORDER: list[CircleTier] = [row["tier"] for row in CIRCLE_TIERS]


def tier_rank(tier: str | CircleTier) -> int:
    """1-based ordinal of *tier*.  Raises ``ValueError`` for unknown names."""
    return TIER_ORDER.index(CircleTier(tier)) + 1


def tier_for_points(points: int) -> CircleTier:
    """Return the tier whose ``[min_points, max_points)`` range holds *points*.

    THE canonical implementation — the points ledger, the circle summary
    endpoint and the tests all go through here.
    """
    if points < 0:
        raise ValueError(f"points must be non-negative, got {points}")
    for row in CIRCLE_TIERS:
        upper = row["max_points"]
        if upper is None or points < upper:
            return row["tier"]
    return CIRCLE_TIERS[-1]["tier"]


def max_tier(*tiers: str | CircleTier) -> CircleTier:
    """The highest of *tiers*."""
    return max((CircleTier(t) for t in tiers), key=tier_rank)


def next_tier_info(points: int) -> dict | None:
    """Next tier above the one *points* falls in, or None at the top."""
    current = tier_rank(tier_for_points(points))
    if current >= len(CIRCLE_TIERS):
        return None
    row = CIRCLE_TIERS[current]
    return {
        "tier": row["tier"].value,
        "title": row["title"],
        "min_points": row["min_points"],
        "points_needed": row["min_points"] - points,
    }


# ---------------------------------------------------------------------------
# Circle permissions: minimum tier per capability
# ---------------------------------------------------------------------------
CAPABILITY_MIN_TIER: dict[str, CircleTier] = {
    "create_challenges": CircleTier.ARTIST,
    "mentor": CircleTier.MASTER,
    "access_premium": CircleTier.VIRTUOSO,
    "host_events": CircleTier.VIRTUOSO,
    "moderate": CircleTier.CREATOR,
}

# Requests per window allowed per tier
CIRCLE_RATE_LIMITS: dict[CircleTier, int] = {
    CircleTier.BEGINNER: 50,
    CircleTier.APPRENTICE: 75,
    CircleTier.ARTIST: 100,
    CircleTier.MASTER: 150,
    CircleTier.VIRTUOSO: 200,
    CircleTier.CREATOR: 300,
}


# ---------------------------------------------------------------------------
# Puzzle tables
# ---------------------------------------------------------------------------
PUZZLE_BASE_POINTS: dict[PuzzleDifficulty, int] = {
    PuzzleDifficulty.NOVICE: 10,
    PuzzleDifficulty.APPRENTICE: 25,
    PuzzleDifficulty.VIRTUOSO: 50,
    PuzzleDifficulty.MASTER: 100,
}

PUZZLE_TYPE_MULTIPLIER: dict[PuzzleType, Decimal] = {
    PuzzleType.CARNATIC_SEQUENCE: Decimal("1.5"),
    PuzzleType.QUANTUM_CIPHER: Decimal("2.0"),
    PuzzleType.RHYTHM_PATTERN: Decimal("1.3"),
    PuzzleType.LITERARY_CODE: Decimal("1.8"),
}

# Tier needed to request a puzzle of each difficulty
PUZZLE_DIFFICULTY_TIER: dict[PuzzleDifficulty, CircleTier] = {
    PuzzleDifficulty.NOVICE: CircleTier.BEGINNER,
    PuzzleDifficulty.APPRENTICE: CircleTier.APPRENTICE,
    PuzzleDifficulty.VIRTUOSO: CircleTier.ARTIST,
    PuzzleDifficulty.MASTER: CircleTier.MASTER,
}


def round_half_up(value: Decimal) -> int:
    """Round to the nearest integer, ties away from zero (2.5 → 3)."""
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def puzzle_points(difficulty: str | PuzzleDifficulty, puzzle_type: str | PuzzleType) -> int:
    """Points for solving a puzzle: base(difficulty) × multiplier(type).

    Fractional results are rounded half-up (rhythm/apprentice: 32.5 → 33).
    """
    base = PUZZLE_BASE_POINTS[PuzzleDifficulty(difficulty)]
    mult = PUZZLE_TYPE_MULTIPLIER[PuzzleType(puzzle_type)]
    return round_half_up(base * mult)
