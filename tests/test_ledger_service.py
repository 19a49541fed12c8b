"""
tests/test_ledger_service.py — Points ledger and circle promotion
===================================================================

Uses an in-memory SQLite database via the shared conftest fixtures.
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from yeet.constants import tier_rank
from yeet.database.engine import run_in_transaction
from yeet.database.models import CircleTier, PointsLedger, User
from yeet.errors import InvariantViolation, NotFoundError
from yeet.services import ledger_service

from conftest import make_user


class TestAward:
    def test_award_adds_points_and_writes_ledger_row(self, db_engine, user_id):
        with Session(db_engine) as session:
            result = ledger_service.award(session, user_id, 40, "test award", {"k": "v"})
            session.commit()

        assert result.new_points == 40
        assert result.new_tier is CircleTier.BEGINNER
        assert not result.promoted
        with Session(db_engine) as session:
            row = session.scalars(select(PointsLedger)).one()
            assert row.delta == 40
            assert row.balance_after == 40
            assert row.tier_after == "beginner"

    def test_crossing_threshold_promotes(self, db_engine, user_id):
        with Session(db_engine) as session:
            ledger_service.award(session, user_id, 90, "a")
            result = ledger_service.award(session, user_id, 10, "b")
            session.commit()
        assert result.promoted
        assert result.previous_tier is CircleTier.BEGINNER
        assert result.new_tier is CircleTier.APPRENTICE

    def test_zero_delta_is_allowed(self, db_engine, user_id):
        with Session(db_engine) as session:
            result = ledger_service.award(session, user_id, 0, "nothing")
        assert result.new_points == 0

    @pytest.mark.parametrize("delta", [-1, 1.5, "10", True, None])
    def test_rejects_bad_delta(self, db_engine, user_id, delta):
        with Session(db_engine) as session:
            with pytest.raises(InvariantViolation):
                ledger_service.award(session, user_id, delta, "bad")
            assert session.get(User, user_id).points == 0

    def test_unknown_user(self, db_engine):
        with Session(db_engine) as session:
            with pytest.raises(NotFoundError):
                ledger_service.award(session, 424242, 10, "ghost")

    def test_tier_never_decreases_over_awards(self, db_engine, user_id):
        seen = []
        with Session(db_engine) as session:
            for delta in (0, 60, 0, 45, 400, 0, 1100, 3500, 10000):
                seen.append(ledger_service.award(session, user_id, delta, "step").new_tier)
            session.commit()
        assert seen[-1] is CircleTier.CREATOR
        ranks = [tier_rank(t) for t in seen]
        assert ranks == sorted(ranks)


class TestTierFloor:
    def test_floor_raises_circle(self, db_engine, user_id):
        with Session(db_engine) as session:
            result = ledger_service.promote_tier_floor(session, user_id, "artist")
            session.commit()
        assert result.promoted
        assert result.new_tier is CircleTier.ARTIST
        with Session(db_engine) as session:
            user = session.get(User, user_id)
            assert user.circle_tier == "artist"
            assert user.tier_floor == "artist"

    def test_floor_never_downgrades(self, db_engine):
        uid = make_user(db_engine, user_id=2000, username="master", points=2000, tier="master")
        with Session(db_engine) as session:
            result = ledger_service.promote_tier_floor(session, uid, "apprentice")
            session.commit()
        assert not result.promoted
        assert result.new_tier is CircleTier.MASTER

    def test_points_cannot_pull_circle_below_floor(self, db_engine, user_id):
        with Session(db_engine) as session:
            ledger_service.promote_tier_floor(session, user_id, "master")
            result = ledger_service.award(session, user_id, 10, "small")
            session.commit()
        assert result.new_tier is CircleTier.MASTER


class TestCircleSummary:
    def test_summary_for_new_user(self, db_engine, user_id):
        with Session(db_engine) as session:
            summary = ledger_service.circle_summary(session, user_id)
        assert summary["circle"] == "beginner"
        assert summary["next_circle"]["tier"] == "apprentice"
        assert summary["next_circle"]["points_needed"] == 100
        assert summary["rate_limit"] == 50
        assert summary["permissions"]["create_challenges"] is False

    def test_next_circle_skips_past_floor(self, db_engine, user_id):
        with Session(db_engine) as session:
            ledger_service.promote_tier_floor(session, user_id, "artist")
            session.commit()
        with Session(db_engine) as session:
            summary = ledger_service.circle_summary(session, user_id)
        assert summary["circle"] == "artist"
        assert summary["next_circle"]["tier"] == "master"
        assert summary["permissions"]["create_challenges"] is True

    def test_history_newest_first(self, db_engine, user_id):
        with Session(db_engine) as session:
            ledger_service.award(session, user_id, 5, "first")
            ledger_service.award(session, user_id, 7, "second")
            session.commit()
        with Session(db_engine) as session:
            rows = ledger_service.ledger_history(session, user_id)
        assert [r.reason for r in rows] == ["second", "first"]


class TestLeaderboard:
    def test_ranked_by_points_then_id(self, db_engine):
        make_user(db_engine, user_id=1, username="a", points=50)
        make_user(db_engine, user_id=2, username="b", points=900, tier="artist")
        make_user(db_engine, user_id=3, username="c", points=50)

        with Session(db_engine) as session:
            total, rows = ledger_service.leaderboard(session)

        assert total == 3
        assert [u.id for u in rows] == [2, 1, 3]

    def test_pagination(self, db_engine):
        for i in range(5):
            make_user(db_engine, user_id=i + 1, username=f"u{i}", points=i * 10)

        with Session(db_engine) as session:
            total, rows = ledger_service.leaderboard(session, limit=2, offset=2)

        assert total == 5
        assert [u.points for u in rows] == [20, 10]


class TestConcurrentAwards:
    def test_parallel_awards_lose_no_updates(self, file_engine):
        uid = make_user(file_engine)
        start = threading.Barrier(4)

        def _award_many(n: int) -> None:
            start.wait(timeout=10)
            for _ in range(n):
                run_in_transaction(file_engine, ledger_service.award, uid, 7, "parallel")

        with ThreadPoolExecutor(max_workers=4) as pool:
            for future in [pool.submit(_award_many, 25) for _ in range(4)]:
                future.result(timeout=120)

        with Session(file_engine) as session:
            assert session.get(User, uid).points == 700
            balances = session.scalars(select(PointsLedger.balance_after)).all()
        # Each award saw every previously committed award
        assert sorted(balances) == list(range(7, 701, 7))
