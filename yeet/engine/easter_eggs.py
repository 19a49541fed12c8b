"""
yeet.engine.easter_eggs — Trigger matching for easter-egg Unlockables
======================================================================

Pure functions.  Which payload key each trigger method reads:

=================  ============  ==========================================
method             payload key   match
=================  ============  ==========================================
konami_code        sequence      exact
text_sequence      text          exact after trimming outer whitespace
click_pattern      pattern       exact
quantum_alignment  pattern       exact
time_based         (clock)       ``now`` formatted ``HH:MM:SS`` (UTC)
=================  ============  ==========================================
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from yeet.engine.unlockables import Unlockable, UnlockableCatalog
from yeet.errors import ValidationError

TRIGGER_METHODS: frozenset[str] = frozenset({
    "konami_code",
    "text_sequence",
    "click_pattern",
    "time_based",
    "quantum_alignment",
})

_PAYLOAD_KEY = {
    "konami_code": "sequence",
    "text_sequence": "text",
    "click_pattern": "pattern",
    "quantum_alignment": "pattern",
}


def trigger_matches(
    egg: Unlockable,
    method: str,
    trigger_data: Mapping[str, Any],
    now: datetime,
) -> bool:
    if egg.trigger is None or egg.trigger.method != method:
        return False
    if method == "time_based":
        return now.strftime("%H:%M:%S") == egg.trigger.value
    supplied = trigger_data.get(_PAYLOAD_KEY[method])
    if not isinstance(supplied, str):
        return False
    if method == "text_sequence":
        supplied = supplied.strip()
    return supplied == egg.trigger.value


def find_triggered_egg(
    catalog: UnlockableCatalog,
    method: str,
    trigger_data: Mapping[str, Any],
    now: datetime,
) -> Unlockable | None:
    """First easter egg in *catalog* fired by this trigger, or None.

    Raises :class:`ValidationError` for an unknown *method*.
    """
    if method not in TRIGGER_METHODS:
        raise ValidationError(f"Unknown trigger method: {method!r}")
    for egg in catalog.easter_eggs_for(method):
        if trigger_matches(egg, method, trigger_data, now):
            return egg
    return None
