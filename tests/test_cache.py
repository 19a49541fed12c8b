"""
tests/test_cache.py — ProgressCache Unit Tests
================================================
"""

from __future__ import annotations

from unittest.mock import MagicMock

from yeet.engine.cache import ProgressCache
from yeet.engine.evaluator import EvaluationResult


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _result(*unlocked: str) -> EvaluationResult:
    return EvaluationResult(unlocked=frozenset(unlocked), eligible=frozenset())


class TestProgressCache:
    def test_hit_within_ttl(self):
        clock = FakeClock()
        cache = ProgressCache(ttl_seconds=30, clock=clock)
        cache.put(1, _result("K1"))
        clock.now = 29.9
        assert cache.get(1) == _result("K1")

    def test_expires_after_ttl(self):
        clock = FakeClock()
        cache = ProgressCache(ttl_seconds=30, clock=clock)
        cache.put(1, _result())
        clock.now = 30
        assert cache.get(1) is None
        assert len(cache) == 0

    def test_get_or_compute_only_computes_on_miss(self):
        cache = ProgressCache(ttl_seconds=30, clock=FakeClock())
        compute = MagicMock(return_value=_result("K1"))
        cache.get_or_compute(7, compute)
        cache.get_or_compute(7, compute)
        compute.assert_called_once()

    def test_invalidate_forces_recompute(self):
        cache = ProgressCache(ttl_seconds=30, clock=FakeClock())
        compute = MagicMock(side_effect=[_result(), _result("K1")])
        cache.get_or_compute(7, compute)
        cache.invalidate(7)
        assert cache.get_or_compute(7, compute) == _result("K1")

    def test_zero_ttl_disables_caching(self):
        cache = ProgressCache(ttl_seconds=0)
        cache.put(1, _result())
        assert cache.get(1) is None

    def test_clear(self):
        cache = ProgressCache(ttl_seconds=30, clock=FakeClock())
        cache.put(1, _result())
        cache.put(2, _result())
        cache.clear()
        assert len(cache) == 0

    def test_invalidate_during_compute_discards_stale_result(self):
        cache = ProgressCache(ttl_seconds=30, clock=FakeClock())

        def _compute():
            # Another request unlocks something while this one evaluates
            cache.invalidate(7)
            return _result()

        assert cache.get_or_compute(7, _compute) == _result()
        assert cache.get(7) is None

        fresh = MagicMock(return_value=_result("K1"))
        assert cache.get_or_compute(7, fresh) == _result("K1")
        assert cache.get(7) == _result("K1")
