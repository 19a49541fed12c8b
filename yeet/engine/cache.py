"""
yeet.engine.cache — Short-lived progress cache
===============================================

Displayed progress (the collection page, the progress endpoint) may be a
few seconds stale.  The unlock decision never reads from here; the unlock
service re-reads authoritative state inside its transaction and calls
:meth:`ProgressCache.invalidate` after every write that can change a
user's progress.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

from yeet.engine.evaluator import EvaluationResult

logger = logging.getLogger(__name__)


class ProgressCache:
    """Thread-safe per-user TTL cache of :class:`EvaluationResult`.

    Usage:
        cache = ProgressCache(ttl_seconds=30)
        result = cache.get_or_compute(user_id, lambda: evaluate_user(...))
        cache.invalidate(user_id)
    """

    def __init__(self, ttl_seconds: float = 30.0, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        # user_id → (expires_at, result)
        self._entries: dict[int, tuple[float, EvaluationResult]] = {}
        # Bumped by every invalidate/clear; a compute that straddles one is not stored
        self._generation = 0

    def get(self, user_id: int) -> EvaluationResult | None:
        with self._lock:
            entry = self._entries.get(user_id)
            if entry is None:
                return None
            expires_at, result = entry
            if self._clock() >= expires_at:
                del self._entries[user_id]
                return None
            return result

    def put(
        self, user_id: int, result: EvaluationResult, generation: int | None = None
    ) -> None:
        """Store *result*.  With *generation*, skip the write if the cache
        was invalidated since that generation was read.
        """
        if self._ttl <= 0:
            return
        with self._lock:
            if generation is not None and generation != self._generation:
                return
            self._entries[user_id] = (self._clock() + self._ttl, result)

    def get_or_compute(
        self, user_id: int, compute: Callable[[], EvaluationResult]
    ) -> EvaluationResult:
        cached = self.get(user_id)
        if cached is not None:
            return cached
        with self._lock:
            generation = self._generation
        # Computed outside the lock; a concurrent miss just evaluates twice
        result = compute()
        self.put(user_id, result, generation)
        return result

    def invalidate(self, user_id: int) -> None:
        with self._lock:
            self._entries.pop(user_id, None)
            self._generation += 1

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._generation += 1
        logger.debug("Progress cache cleared")

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
