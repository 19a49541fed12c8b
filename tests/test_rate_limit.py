"""
tests/test_rate_limit.py — Per-Circle Request Rate Limiting Tests
===================================================================
Every authenticated endpoint is limited per user, with the budget taken
from the user's circle; the limiter answers 429 with ``Retry-After``.
"""

from __future__ import annotations

import pytest

from yeet.api import rate_limit as rl_mod
from yeet.api.rate_limit import CircleRateLimiter, limit_for_circle
from yeet.database.models import CircleTier

from conftest import make_token, make_user


class TestLimitForCircle:
    def test_budgets_grow_with_circle(self):
        budgets = [limit_for_circle(t.value) for t in CircleTier]
        assert budgets == [50, 75, 100, 150, 200, 300]

    def test_unknown_or_missing_circle_gets_beginner_budget(self):
        assert limit_for_circle(None) == 50
        assert limit_for_circle("legend") == 50


# ---------------------------------------------------------------------------
# Unit tests for the CircleRateLimiter core (DB-backed)
# ---------------------------------------------------------------------------
class TestCircleRateLimiter:
    @pytest.fixture(autouse=True)
    def _limiter(self, db_engine):
        self.limiter = CircleRateLimiter(window_seconds=60, engine=db_engine)
        self.engine = db_engine

    def test_blocks_beginner_after_budget(self):
        uid = make_user(self.engine)
        for _ in range(50):
            self.limiter.record(uid)

        allowed, info = self.limiter.check(uid)
        assert not allowed
        assert info["remaining"] == 0
        assert info["limit"] == 50
        assert info["reset"] > 0

    def test_higher_circle_has_more_headroom(self):
        uid = make_user(self.engine, points=2000, tier="master")
        for _ in range(50):
            self.limiter.record(uid)

        allowed, info = self.limiter.check(uid)
        assert allowed
        assert info["remaining"] == 100

    def test_remaining_count_decreases(self):
        uid = make_user(self.engine)
        _, info = self.limiter.check(uid)
        assert info["remaining"] == 50

        info = self.limiter.record(uid)
        assert info["remaining"] == 49
        _, info = self.limiter.check(uid)
        assert info["remaining"] == 49

    def test_separate_users_have_separate_limits(self):
        a = make_user(self.engine, user_id=1, username="a")
        b = make_user(self.engine, user_id=2, username="b")
        for _ in range(50):
            self.limiter.record(a)

        assert not self.limiter.check(a)[0]
        assert self.limiter.check(b)[0]

    def test_reset_specific_and_all(self):
        a = make_user(self.engine, user_id=1, username="a")
        b = make_user(self.engine, user_id=2, username="b")
        self.limiter.record(a)
        self.limiter.record(b)

        self.limiter.reset(a)
        assert self.limiter.check(a)[1]["remaining"] == 50
        assert self.limiter.check(b)[1]["remaining"] == 49

        self.limiter.reset()
        assert self.limiter.check(b)[1]["remaining"] == 50


# ---------------------------------------------------------------------------
# Integration tests with FastAPI TestClient
# ---------------------------------------------------------------------------
class TestRateLimitDependency:
    @pytest.fixture
    def small_budget(self, monkeypatch):
        monkeypatch.setitem(rl_mod.CIRCLE_RATE_LIMITS, CircleTier.BEGINNER, 3)

    def _auth_headers(self, token: str) -> dict:
        return {"Authorization": f"Bearer {token}"}

    def test_returns_429_with_retry_after(self, client, small_budget):
        headers = self._auth_headers(make_token())
        for _ in range(3):
            assert client.get("/api/circles/me", headers=headers).status_code == 200

        resp = client.get("/api/circles/me", headers=headers)

        assert resp.status_code == 429
        assert int(resp.headers["Retry-After"]) > 0
        detail = resp.json()["detail"]
        assert detail["error"] == "rate_limit_exceeded"
        assert detail["retry_after"] > 0

    def test_users_limited_independently(self, client, small_budget):
        first = self._auth_headers(make_token(sub="1"))
        second = self._auth_headers(make_token(sub="2", username="other"))
        for _ in range(3):
            client.get("/api/circles/me", headers=first)

        assert client.get("/api/circles/me", headers=first).status_code == 429
        assert client.get("/api/circles/me", headers=second).status_code == 200

    def test_health_not_limited(self, client, small_budget):
        for _ in range(10):
            assert client.get("/api/health").status_code == 200
