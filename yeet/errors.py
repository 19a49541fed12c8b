"""
yeet.errors — Engine exception hierarchy
=========================================

Business-rule outcomes (prerequisites unmet, already unlocked, puzzle
expired …) are *not* exceptions; services return typed outcome objects
for those.  Exceptions are reserved for:

* :class:`ValidationError` — malformed input, unknown ids.  Not retried.
* :class:`TransientStorageError` — lock contention / connectivity loss.
  Safe to retry the whole operation.
* :class:`InvariantViolation` — a write that would corrupt state, or a
  malformed Unlockable catalog.  The surrounding transaction aborts.
"""

from __future__ import annotations


class YeetError(Exception):
    """Base class for all engine errors."""


class ValidationError(YeetError, ValueError):
    """Raised when caller-supplied input is malformed or refers to nothing."""


class NotFoundError(ValidationError):
    """Raised when an id is well-formed but unknown (user, unlockable, puzzle)."""


class TransientStorageError(YeetError):
    """Raised when the backing store is unavailable; the caller may retry."""


class InvariantViolation(YeetError):
    """Raised when an operation would break an engine invariant."""
