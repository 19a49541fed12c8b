"""
tests/test_catalog.py — Unlockable parsing and prerequisite-graph validation
==============================================================================
"""

from __future__ import annotations

import pytest

from yeet.database.models import CircleTier
from yeet.engine.definitions import default_catalog
from yeet.engine.unlockables import (
    UnlockableCategory,
    build_catalog,
    load_catalog_file,
    parse_unlockable,
)
from yeet.errors import InvariantViolation, ValidationError


def _key(uid: str, *prereqs: str, **extra) -> dict:
    return {
        "id": uid,
        "category": "ability-key",
        "prerequisites": list(prereqs),
        "required_actions": ["portfolio_upload"],
        **extra,
    }


class TestGraphValidation:
    def test_valid_chain_loads(self):
        catalog = build_catalog([_key("a"), _key("b", "a"), _key("c", "a", "b")])
        assert len(catalog) == 3
        assert catalog["c"].prerequisites == frozenset({"a", "b"})

    def test_self_edge_rejected(self):
        with pytest.raises(InvariantViolation, match="itself"):
            build_catalog([_key("a", "a")])

    def test_unknown_prerequisite_rejected(self):
        with pytest.raises(InvariantViolation, match="unknown prerequisites"):
            build_catalog([_key("a", "ghost")])

    def test_two_cycle_rejected(self):
        with pytest.raises(InvariantViolation, match="cycle"):
            build_catalog([_key("a", "b"), _key("b", "a")])

    def test_long_cycle_reports_path(self):
        with pytest.raises(InvariantViolation) as exc_info:
            build_catalog([_key("a", "c"), _key("b", "a"), _key("c", "b"), _key("d")])
        message = str(exc_info.value)
        assert "->" in message
        for uid in ("a", "b", "c"):
            assert uid in message

    def test_duplicate_id_rejected(self):
        with pytest.raises(InvariantViolation, match="Duplicate"):
            build_catalog([_key("a"), _key("a")])

    def test_advances_unknown_rejected(self):
        egg = {
            "id": "egg",
            "category": "easter-egg",
            "trigger": {"method": "text_sequence", "value": "Sa"},
            "advances": "nowhere",
        }
        with pytest.raises(InvariantViolation, match="advances"):
            build_catalog([egg])


class TestParseUnlockable:
    def test_rewards_and_grants(self):
        u = parse_unlockable(_key(
            "k",
            rewards={
                "points": 250,
                "tier_floor": "artist",
                "premium_access": ["texts"],
                "special_abilities": ["focus"],
            },
        ))
        assert u.rewards.points == 250
        assert u.rewards.tier_floor is CircleTier.ARTIST
        assert u.rewards.capability_kinds() == ["premium:texts", "ability:focus"]

    def test_missing_category(self):
        with pytest.raises(ValidationError):
            parse_unlockable({"id": "x"})

    def test_unknown_category(self):
        with pytest.raises(ValidationError):
            parse_unlockable({"id": "x", "category": "trophy"})

    def test_negative_points_rejected(self):
        with pytest.raises(ValidationError):
            parse_unlockable(_key("k", rewards={"points": -5}))

    def test_unknown_tier_floor_rejected(self):
        with pytest.raises(ValidationError):
            parse_unlockable(_key("k", rewards={"tier_floor": "legend"}))

    def test_trigger_only_on_easter_eggs(self):
        with pytest.raises(ValidationError, match="trigger"):
            parse_unlockable(_key("k", trigger={"method": "text_sequence", "value": "Sa"}))


class TestDefaultCatalog:
    def test_loads_all_categories(self):
        catalog = default_catalog()
        assert {u.id for u in catalog.by_category(UnlockableCategory.ABILITY_KEY)} == {
            "first_note",
            "quantum_observer",
            "precision_focus",
            "harmony_weaver",
            "storyteller_sage",
            "hidden_path_finder",
            "lotus_bloom",
        }
        assert "first_steps_sa" in catalog
        assert len(catalog.by_category(UnlockableCategory.EASTER_EGG)) == 5

    def test_easter_eggs_are_secret_with_triggers(self):
        for egg in default_catalog().by_category(UnlockableCategory.EASTER_EGG):
            assert egg.is_secret
            assert egg.trigger is not None

    def test_catalog_is_read_only(self):
        catalog = default_catalog()
        with pytest.raises(TypeError):
            catalog["new"] = catalog["first_note"]


class TestLoadCatalogFile:
    def test_reads_yaml(self, tmp_path):
        path = tmp_path / "unlockables.yaml"
        path.write_text(
            "unlockables:\n"
            "  - id: first_upload\n"
            "    category: achievement\n"
            "    required_actions: [portfolio_upload]\n"
            "    rewards: {points: 100}\n",
            encoding="utf-8",
        )
        catalog = load_catalog_file(path)
        assert catalog["first_upload"].rewards.points == 100

    def test_missing_top_level_list(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("first_upload: {}\n", encoding="utf-8")
        with pytest.raises(ValidationError):
            load_catalog_file(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_catalog_file(tmp_path / "nope.yaml")
