"""
yeet.services.easter_egg_service — Easter-egg discovery
========================================================

A matching trigger records ``easter_egg_triggered`` (and, for eggs that
advance an ART KEY, ``easter_egg_discovery``), then goes through the
regular unlock coordinator, so a rediscovered egg is a no-op reported as
``already_discovered``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from yeet.database.engine import unit_of_work
from yeet.database.models import ActivityType
from yeet.engine.easter_eggs import find_triggered_egg
from yeet.engine.unlockables import Unlockable, UnlockableCatalog, UnlockableCategory
from yeet.services.activity_service import record
from yeet.services.unlock_service import UnlockOutcome, attempt_unlock, load_unlocked_ids
from yeet.services.user_service import get_user

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from yeet.engine.cache import ProgressCache

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EasterEggResult:
    triggered: bool
    egg: Unlockable | None = None
    already_discovered: bool = False
    unlock: UnlockOutcome | None = None

    def as_dict(self) -> dict:
        data: dict[str, Any] = {
            "triggered": self.triggered,
            "already_discovered": self.already_discovered,
        }
        if self.egg is not None:
            data["easter_egg"] = {
                "id": self.egg.id,
                "name": self.egg.name,
                "symbol": self.egg.symbol,
                "advances": self.egg.advances,
            }
            if self.unlock is not None and self.unlock.success:
                data["secret_message"] = self.egg.rewards.secret_message
                data["points_awarded"] = self.egg.rewards.points
        return data


def trigger_easter_egg(
    engine: Engine,
    catalog: UnlockableCatalog,
    user_id: int,
    trigger_method: str,
    trigger_data: Mapping[str, Any],
    now: datetime | None = None,
    cache: ProgressCache | None = None,
) -> EasterEggResult:
    """Check a client-reported trigger and unlock the egg it fires."""
    egg = find_triggered_egg(catalog, trigger_method, trigger_data, now or datetime.now(UTC))
    if egg is None:
        return EasterEggResult(triggered=False)

    with unit_of_work(engine) as session:
        get_user(session, user_id)
        if egg.id in load_unlocked_ids(session, user_id):
            return EasterEggResult(triggered=True, egg=egg, already_discovered=True)
        record(
            session,
            user_id,
            ActivityType.EASTER_EGG_TRIGGERED.value,
            {"egg_id": egg.id, "method": trigger_method},
        )
        if egg.advances is not None:
            record(
                session,
                user_id,
                ActivityType.EASTER_EGG_DISCOVERY.value,
                {"egg_id": egg.id, "art_key_progress": egg.advances},
            )

    outcome = attempt_unlock(engine, catalog, user_id, egg.id, cache=cache)
    if outcome.success:
        logger.info("User %s discovered easter egg %s", user_id, egg.id)
    return EasterEggResult(
        triggered=True,
        egg=egg,
        already_discovered=outcome.already_unlocked,
        unlock=outcome,
    )


def discovery_hints(
    engine: Engine, catalog: UnlockableCatalog, user_id: int, limit: int = 5
) -> list[dict]:
    """Descriptions of easter eggs the user has not found yet."""
    with unit_of_work(engine) as session:
        found = load_unlocked_ids(session, user_id)
    return [
        {"hint": egg.description, "method": egg.trigger.method if egg.trigger else None}
        for egg in catalog.by_category(UnlockableCategory.EASTER_EGG)
        if egg.id not in found
    ][:limit]
