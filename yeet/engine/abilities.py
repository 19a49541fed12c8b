"""
yeet.engine.abilities — Effects activated by using an unlocked ART KEY
"""

from __future__ import annotations

from dataclasses import dataclass, field

from yeet.engine.unlockables import Unlockable

ACTIVATION_SECONDS = 3600

# ability name → (effect type, description, icon)
KNOWN_EFFECTS: dict[str, tuple[str, str, str]] = {
    "melody_generation_hints": (
        "musical_enhancement", "Enhanced melodic composition suggestions", "🎵",
    ),
    "reality_shaping_insights": (
        "quantum_awareness", "Heightened awareness of quantum possibilities", "🔮",
    ),
    "enhanced_focus_mode": (
        "precision_boost", "Athletic-grade mental focus activated", "🎯",
    ),
    "harmony_suggestions": (
        "collaboration_enhancement", "Improved collaboration matchmaking and suggestions", "🤝",
    ),
}


@dataclass(frozen=True, slots=True)
class AbilityEffects:
    context: str
    effects: list[dict] = field(default_factory=list)
    duration_seconds: int = ACTIVATION_SECONDS

    @property
    def description(self) -> str:
        return f"{len(self.effects)} special abilities activated for the next hour"

    def as_dict(self) -> dict:
        return {
            "context": self.context,
            "effects": self.effects,
            "duration_seconds": self.duration_seconds,
            "description": self.description,
        }


def activate_abilities(unlockable: Unlockable, context: str | None = None) -> AbilityEffects:
    effects = []
    for ability in unlockable.rewards.special_abilities:
        kind, description, icon = KNOWN_EFFECTS.get(
            ability, ("general_enhancement", ability.replace("_", " "), "✨")
        )
        effects.append({"ability": ability, "type": kind, "description": description, "icon": icon})
    return AbilityEffects(context=context or "general", effects=effects)
