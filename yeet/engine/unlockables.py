"""
yeet.engine.unlockables — Unlockable definitions and the immutable catalog
===========================================================================

ART KEYS, achievements and easter eggs are one mechanism: an
:class:`Unlockable` gated by ``prerequisites`` (other Unlockable ids) and
``required_actions`` (requirement variants).  Definitions are static
configuration, parsed once at startup into an :class:`UnlockableCatalog`
and passed explicitly to the evaluator and the unlock service.

Loading validates the prerequisite graph: unknown ids, self-edges and
cycles raise :class:`~yeet.errors.InvariantViolation` so a bad catalog
fails startup instead of leaving keys silently unreachable.

Usage::

    from yeet.engine.unlockables import load_catalog_file

    catalog = load_catalog_file("unlockables.yaml")
    key = catalog["first_note"]
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from yeet.database.models import CircleTier
from yeet.engine.requirements import Requirement, parse_requirement
from yeet.errors import InvariantViolation, ValidationError

logger = logging.getLogger(__name__)


class UnlockableCategory(enum.StrEnum):
    ABILITY_KEY = "ability-key"
    ACHIEVEMENT = "achievement"
    EASTER_EGG = "easter-egg"


@dataclass(frozen=True, slots=True)
class Rewards:
    """What an unlock grants.

    ``tier_floor`` promotes the user's circle to at least that tier.
    ``premium_access`` and ``special_abilities`` become capability grants
    (``premium:<name>`` / ``ability:<name>``).
    """

    points: int = 0
    tier_floor: CircleTier | None = None
    premium_access: tuple[str, ...] = ()
    special_abilities: tuple[str, ...] = ()
    secret_message: str | None = None

    def capability_kinds(self) -> list[str]:
        return [f"premium:{p}" for p in self.premium_access] + [
            f"ability:{a}" for a in self.special_abilities
        ]

    def as_dict(self) -> dict:
        return {
            "points": self.points,
            "tier_floor": self.tier_floor.value if self.tier_floor else None,
            "premium_access": list(self.premium_access),
            "special_abilities": list(self.special_abilities),
        }


@dataclass(frozen=True, slots=True)
class EasterEggTrigger:
    """How an easter egg is discovered (method + expected value)."""

    method: str
    value: str


@dataclass(frozen=True, slots=True)
class Unlockable:
    id: str
    category: UnlockableCategory
    name: str
    required_actions: tuple[Requirement, ...] = ()
    prerequisites: frozenset[str] = frozenset()
    rewards: Rewards = field(default_factory=Rewards)
    is_secret: bool = False
    description: str = ""
    symbol: str = ""
    rarity: str = "common"
    trigger: EasterEggTrigger | None = None
    # Another Unlockable this one advances (easter eggs only)
    advances: str | None = None

    def public_dict(self) -> dict:
        return {
            "id": self.id,
            "category": self.category.value,
            "name": self.name,
            "description": self.description,
            "symbol": self.symbol,
            "rarity": self.rarity,
            "is_secret": self.is_secret,
            "prerequisites": sorted(self.prerequisites),
            "required_actions": [r.describe() for r in self.required_actions],
            "rewards": self.rewards.as_dict(),
        }


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------
class UnlockableCatalog(Mapping[str, Unlockable]):
    """Read-only, id-indexed set of Unlockables with a validated DAG."""

    __slots__ = ("_by_id",)

    def __init__(self, unlockables: Iterable[Unlockable]) -> None:
        by_id: dict[str, Unlockable] = {}
        for u in unlockables:
            if u.id in by_id:
                raise InvariantViolation(f"Duplicate unlockable id: {u.id!r}")
            by_id[u.id] = u
        _validate_graph(by_id)
        self._by_id = MappingProxyType(by_id)

    def __getitem__(self, key: str) -> Unlockable:
        return self._by_id[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._by_id)

    def __len__(self) -> int:
        return len(self._by_id)

    def by_category(self, category: UnlockableCategory | str) -> list[Unlockable]:
        cat = UnlockableCategory(category)
        return [u for u in self._by_id.values() if u.category == cat]

    def easter_eggs_for(self, method: str) -> list[Unlockable]:
        return [
            u for u in self._by_id.values()
            if u.trigger is not None and u.trigger.method == method
        ]

    def __repr__(self) -> str:
        return f"<UnlockableCatalog size={len(self)}>"


def _validate_graph(by_id: Mapping[str, Unlockable]) -> None:
    """Reject unknown prerequisites, self-edges and cycles."""
    for u in by_id.values():
        if u.id in u.prerequisites:
            raise InvariantViolation(f"Unlockable {u.id!r} lists itself as a prerequisite")
        missing = sorted(p for p in u.prerequisites if p not in by_id)
        if missing:
            raise InvariantViolation(
                f"Unlockable {u.id!r} has unknown prerequisites: {missing}"
            )
        if u.advances is not None and u.advances not in by_id:
            raise InvariantViolation(
                f"Unlockable {u.id!r} advances unknown unlockable {u.advances!r}"
            )

    # Iterative three-colour DFS
    white, grey, black = 0, 1, 2
    colour = dict.fromkeys(by_id, white)
    for root in by_id:
        if colour[root] != white:
            continue
        stack: list[tuple[str, Iterator[str]]] = [(root, iter(sorted(by_id[root].prerequisites)))]
        colour[root] = grey
        path = [root]
        while stack:
            node, children = stack[-1]
            child = next(children, None)
            if child is None:
                colour[node] = black
                stack.pop()
                path.pop()
                continue
            if colour[child] == grey:
                cycle = path[path.index(child):] + [child]
                raise InvariantViolation(
                    "Prerequisite cycle: " + " -> ".join(cycle)
                )
            if colour[child] == white:
                colour[child] = grey
                path.append(child)
                stack.append((child, iter(sorted(by_id[child].prerequisites))))


# ---------------------------------------------------------------------------
# Parsing from plain config data
# ---------------------------------------------------------------------------
def _str_tuple(raw: Any, what: str) -> tuple[str, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list) or not all(isinstance(x, str) for x in raw):
        raise ValidationError(f"{what} must be a list of strings")
    return tuple(raw)


def parse_unlockable(raw: Mapping[str, Any]) -> Unlockable:
    """Build one :class:`Unlockable` from its mapping form."""
    try:
        uid = raw["id"]
        category = UnlockableCategory(raw["category"])
    except KeyError as exc:
        raise ValidationError(f"Unlockable is missing required key {exc}") from exc
    except ValueError as exc:
        raise ValidationError(f"Unlockable {raw.get('id')!r}: {exc}") from exc

    rewards_raw = raw.get("rewards") or {}
    points = rewards_raw.get("points", 0)
    if not isinstance(points, int) or isinstance(points, bool) or points < 0:
        raise ValidationError(f"Unlockable {uid!r}: reward points must be a non-negative integer")
    floor_raw = rewards_raw.get("tier_floor")
    try:
        floor = CircleTier(floor_raw) if floor_raw else None
    except ValueError as exc:
        raise ValidationError(f"Unlockable {uid!r}: unknown tier {floor_raw!r}") from exc

    trigger_raw = raw.get("trigger")
    trigger = None
    if trigger_raw is not None:
        if category != UnlockableCategory.EASTER_EGG:
            raise ValidationError(f"Unlockable {uid!r}: only easter eggs take a trigger")
        trigger = EasterEggTrigger(method=str(trigger_raw["method"]), value=str(trigger_raw["value"]))

    return Unlockable(
        id=uid,
        category=category,
        name=raw.get("name", uid),
        required_actions=tuple(parse_requirement(r) for r in raw.get("required_actions") or []),
        prerequisites=frozenset(_str_tuple(raw.get("prerequisites"), f"{uid}.prerequisites")),
        rewards=Rewards(
            points=points,
            tier_floor=floor,
            premium_access=_str_tuple(rewards_raw.get("premium_access"), f"{uid}.premium_access"),
            special_abilities=_str_tuple(
                rewards_raw.get("special_abilities"), f"{uid}.special_abilities"
            ),
            secret_message=rewards_raw.get("secret_message"),
        ),
        is_secret=bool(raw.get("is_secret", False)),
        description=raw.get("description", ""),
        symbol=raw.get("symbol", ""),
        rarity=raw.get("rarity", "common"),
        trigger=trigger,
        advances=raw.get("advances"),
    )


def build_catalog(raw_items: Iterable[Mapping[str, Any]]) -> UnlockableCatalog:
    """Parse and validate a sequence of Unlockable mappings."""
    catalog = UnlockableCatalog(parse_unlockable(r) for r in raw_items)
    logger.info(
        "Unlockable catalog loaded: %d ability keys, %d achievements, %d easter eggs",
        len(catalog.by_category(UnlockableCategory.ABILITY_KEY)),
        len(catalog.by_category(UnlockableCategory.ACHIEVEMENT)),
        len(catalog.by_category(UnlockableCategory.EASTER_EGG)),
    )
    return catalog


def load_catalog_file(path: str | Path) -> UnlockableCatalog:
    """Read a YAML catalog (top-level key ``unlockables``) from *path*."""
    catalog_path = Path(path)
    if not catalog_path.exists():
        raise FileNotFoundError(f"Unlockable catalog not found: {catalog_path.resolve()}")
    with open(catalog_path, encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or {}
    items = raw.get("unlockables") if isinstance(raw, dict) else None
    if not isinstance(items, list):
        raise ValidationError(f"{catalog_path}: expected a top-level 'unlockables' list")
    return build_catalog(items)
