"""
tests/test_requirements.py — Requirement variants and parsing
==============================================================
"""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from yeet.engine.events import ActivityEvent
from yeet.engine.requirements import (
    REQUIREMENT_HANDLERS,
    HasEventCount,
    HasEventOfType,
    HasEventWithMetadata,
    is_satisfied,
    parse_requirement,
)
from yeet.errors import ValidationError


def _ev(activity_type: str, **metadata) -> ActivityEvent:
    return ActivityEvent(user_id=1, activity_type=activity_type, metadata=metadata)


class TestIsSatisfied:
    def test_event_of_type(self):
        req = HasEventOfType("portfolio_upload")
        assert is_satisfied(req, [_ev("content_read"), _ev("portfolio_upload")])
        assert not is_satisfied(req, [_ev("content_read")])

    def test_event_with_metadata_requires_every_pair(self):
        req = HasEventWithMetadata("portfolio_upload", {"category": "music", "public": True})
        assert not is_satisfied(req, [_ev("portfolio_upload", category="music")])
        assert is_satisfied(req, [_ev("portfolio_upload", category="music", public=True, extra=1)])

    def test_metadata_match_is_frozen(self):
        source = {"category": "music"}
        req = HasEventWithMetadata("portfolio_upload", source)
        before = hash(req)

        source["category"] = "film"
        with pytest.raises(TypeError):
            req.match["category"] = "film"

        assert req.match == {"category": "music"}
        assert hash(req) == before
        assert req == HasEventWithMetadata("portfolio_upload", {"category": "music"})

    def test_metadata_on_other_type_does_not_count(self):
        req = HasEventWithMetadata("portfolio_upload", {"category": "music"})
        assert not is_satisfied(req, [_ev("content_read", category="music")])

    def test_event_count_threshold(self):
        req = HasEventCount("meditation_session", 3)
        events = [_ev("meditation_session"), _ev("flow_state"), _ev("meditation_session")]
        assert not is_satisfied(req, events)
        assert is_satisfied(req, events + [_ev("meditation_session")])

    def test_empty_history_satisfies_nothing(self):
        for req in (
            HasEventOfType("x"),
            HasEventWithMetadata("x", {"a": 1}),
            HasEventCount("x", 1),
        ):
            assert not is_satisfied(req, [])

    def test_unknown_variant_raises(self):
        @dataclass(frozen=True)
        class HasNothing:
            activity_type: str

        with pytest.raises(TypeError, match="HasNothing"):
            is_satisfied(HasNothing("x"), [])

    def test_every_variant_has_a_handler(self):
        assert set(REQUIREMENT_HANDLERS) == {HasEventOfType, HasEventWithMetadata, HasEventCount}


class TestParseRequirement:
    def test_plain_string(self):
        assert parse_requirement("portfolio_upload") == HasEventOfType("portfolio_upload")

    def test_mapping_forms(self):
        assert parse_requirement({"type": "content_read"}) == HasEventOfType("content_read")
        assert parse_requirement(
            {"type": "content_read", "metadata": {"topic": "quantum"}}
        ) == HasEventWithMetadata("content_read", {"topic": "quantum"})
        assert parse_requirement(
            {"type": "collaboration_completed", "count": 3}
        ) == HasEventCount("collaboration_completed", 3)

    def test_puzzle_solved_type_is_well_formed(self):
        assert parse_requirement("puzzle_solved:carnatic_sequence").activity_type == (
            "puzzle_solved:carnatic_sequence"
        )

    @pytest.mark.parametrize("raw", [
        "",
        "Upload Portfolio",
        42,
        {"type": "x", "metadata": {}},
        {"type": "x", "count": 0},
        {"type": "x", "count": True},
        {"type": "x", "count": 2, "metadata": {"a": 1}},
        {"type": "x", "bogus": 1},
    ])
    def test_rejects_malformed(self, raw):
        with pytest.raises(ValidationError):
            parse_requirement(raw)
