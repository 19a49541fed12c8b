"""
tests/test_constants.py — Circle tier table and puzzle reward maths
=====================================================================
"""

from __future__ import annotations

import pytest

from yeet.constants import (
    CIRCLE_TIERS,
    max_tier,
    next_tier_info,
    puzzle_points,
    tier_for_points,
    tier_rank,
)
from yeet.database.models import CircleTier


class TestTierForPoints:
    @pytest.mark.parametrize("points,expected", [
        (0, CircleTier.BEGINNER),
        (99, CircleTier.BEGINNER),
        (100, CircleTier.APPRENTICE),
        (499, CircleTier.APPRENTICE),
        (500, CircleTier.ARTIST),
        (1500, CircleTier.MASTER),
        (5000, CircleTier.VIRTUOSO),
        (14999, CircleTier.VIRTUOSO),
        (15000, CircleTier.CREATOR),
        (10**9, CircleTier.CREATOR),
    ])
    def test_boundaries(self, points, expected):
        assert tier_for_points(points) is expected

    def test_negative_points_rejected(self):
        with pytest.raises(ValueError):
            tier_for_points(-1)

    def test_monotonic_in_points(self):
        ranks = [tier_rank(tier_for_points(p)) for p in range(0, 20000, 50)]
        assert ranks == sorted(ranks)

    def test_table_is_contiguous(self):
        for lower, upper in zip(CIRCLE_TIERS, CIRCLE_TIERS[1:]):
            assert lower["max_points"] == upper["min_points"]


class TestTierHelpers:
    def test_rank_order(self):
        assert tier_rank("beginner") == 1
        assert tier_rank(CircleTier.CREATOR) == 6

    def test_rank_unknown(self):
        with pytest.raises(ValueError):
            tier_rank("legend")

    def test_max_tier(self):
        assert max_tier("artist", "apprentice", CircleTier.MASTER) is CircleTier.MASTER

    def test_next_tier_info(self):
        info = next_tier_info(420)
        assert info["tier"] == "artist"
        assert info["points_needed"] == 80
        assert next_tier_info(15000) is None


class TestPuzzlePoints:
    @pytest.mark.parametrize("difficulty,puzzle_type,expected", [
        ("novice", "carnatic_sequence", 15),
        ("novice", "quantum_cipher", 20),
        ("novice", "rhythm_pattern", 13),
        ("apprentice", "rhythm_pattern", 33),
        ("virtuoso", "literary_code", 90),
        ("master", "quantum_cipher", 200),
    ])
    def test_base_times_multiplier_rounded_half_up(self, difficulty, puzzle_type, expected):
        assert puzzle_points(difficulty, puzzle_type) == expected
