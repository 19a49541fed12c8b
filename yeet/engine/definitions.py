"""
yeet.engine.definitions — Built-in Unlockable catalogue
========================================================

The ART KEYS, achievements and easter eggs the platform ships with.
Stored as plain mappings in the same shape a YAML catalogue uses, so
:func:`default_catalog` goes through exactly the same parsing and DAG
validation as an operator-supplied file.

Requirement shorthand:

* ``"meditation_session"`` — at least one event of that type
* ``{"type": ..., "metadata": {...}}`` — an event whose metadata matches
* ``{"type": ..., "count": n}`` — at least *n* events of that type
"""

from __future__ import annotations

from yeet.database.models import ActivityType as A
from yeet.database.models import PuzzleType
from yeet.engine.events import puzzle_solved_type
from yeet.engine.unlockables import UnlockableCatalog, build_catalog


def _egg_seen(egg_id: str) -> dict:
    return {"type": A.EASTER_EGG_TRIGGERED.value, "metadata": {"egg_id": egg_id}}


def _egg_progress(key_id: str) -> dict:
    return {"type": A.EASTER_EGG_DISCOVERY.value, "metadata": {"art_key_progress": key_id}}


# ---------------------------------------------------------------------------
# ART KEYS
# ---------------------------------------------------------------------------
ART_KEYS: list[dict] = [
    {
        "id": "first_note",
        "category": "ability-key",
        "name": "First Note of Sa",
        "description": "Unlock the fundamental frequency of creation through Carnatic music",
        "symbol": "🎵 ॐ",
        "rarity": "common",
        "required_actions": [
            puzzle_solved_type(PuzzleType.CARNATIC_SEQUENCE),
            {"type": A.PORTFOLIO_UPLOAD.value, "metadata": {"category": "music"}},
        ],
        "rewards": {
            "points": 100,
            "premium_access": ["carnatic_masterclass_basic"],
            "special_abilities": ["melody_generation_hints"],
        },
    },
    {
        "id": "quantum_observer",
        "category": "ability-key",
        "name": "Quantum Observer",
        "description": 'Master the art of conscious observation from "The Quantum Lotus"',
        "symbol": "🔮 👁️",
        "rarity": "rare",
        "prerequisites": ["first_note"],
        "required_actions": [
            puzzle_solved_type(PuzzleType.QUANTUM_CIPHER),
            {"type": A.CONTENT_READ.value, "metadata": {"topic": "quantum"}},
            A.MEDITATION_SESSION.value,
        ],
        "rewards": {
            "points": 250,
            "tier_floor": "artist",
            "premium_access": ["quantum_philosophy_texts", "consciousness_tools"],
            "special_abilities": ["reality_shaping_insights", "pattern_recognition_boost"],
        },
    },
    {
        "id": "precision_focus",
        "category": "ability-key",
        "name": "Archer's Precision",
        "description": "Channel the mental discipline of competitive shooting into artistic practice",
        "symbol": "🎯 🧘",
        "rarity": "epic",
        "prerequisites": ["quantum_observer"],
        "required_actions": [
            {"type": A.CHALLENGE_COMPLETED.value, "metadata": {"theme": "precision"}},
            {"type": A.MEDITATION_SESSION.value, "count": 5},
            A.FLOW_STATE.value,
        ],
        "rewards": {
            "points": 500,
            "premium_access": ["precision_training_advanced", "flow_state_tools"],
            "special_abilities": ["enhanced_focus_mode", "precision_feedback_system"],
        },
    },
    {
        "id": "harmony_weaver",
        "category": "ability-key",
        "name": "Harmony Weaver",
        "description": "Create collaborative works that blend diverse artistic voices",
        "symbol": "🤝 🎼",
        "rarity": "rare",
        "prerequisites": ["first_note"],
        "required_actions": [
            A.COLLABORATION_COMPLETED.value,
            A.MENTORSHIP_PROVIDED.value,
            {"type": A.COLLABORATION_COMPLETED.value, "metadata": {"cross_cultural": True}},
        ],
        "rewards": {
            "points": 300,
            "premium_access": ["collaboration_tools_advanced", "cultural_exchange_programs"],
            "special_abilities": ["harmony_suggestions", "collaboration_matchmaking"],
        },
    },
    {
        "id": "storyteller_sage",
        "category": "ability-key",
        "name": "Storyteller Sage",
        "description": "Master the art of narrative and share wisdom through creative expression",
        "symbol": "📚 🌟",
        "rarity": "epic",
        "prerequisites": ["harmony_weaver"],
        "required_actions": [
            A.STORY_PUBLISHED.value,
            A.COMMUNITY_INSPIRED.value,
            A.TRADITION_PRESERVED.value,
        ],
        "rewards": {
            "points": 400,
            "tier_floor": "master",
            "premium_access": ["storytelling_workshops", "literary_archives"],
            "special_abilities": ["narrative_structure_hints", "cultural_context_insights"],
        },
    },
    {
        "id": "hidden_path_finder",
        "category": "ability-key",
        "name": "Hidden Path Finder",
        "description": "Discover the secret ways and easter eggs hidden throughout the platform",
        "symbol": "🔍 ✨",
        "rarity": "mythical",
        "is_secret": True,
        "prerequisites": ["quantum_observer"],
        "required_actions": [
            {"type": A.EASTER_EGG_DISCOVERY.value, "count": 3},
            puzzle_solved_type(PuzzleType.LITERARY_CODE),
            _egg_progress("hidden_path_finder"),
        ],
        "rewards": {
            "points": 1000,
            "premium_access": ["secret_archives", "developer_insights"],
            "special_abilities": ["easter_egg_detector", "hidden_content_access"],
        },
    },
    {
        "id": "lotus_bloom",
        "category": "ability-key",
        "name": "Blooming Lotus of Infinite Possibilities",
        "description": "Achieve the fusion of art, science and spirituality",
        "symbol": "🪷 ∞",
        "rarity": "legendary",
        "is_secret": True,
        "prerequisites": ["precision_focus", "storyteller_sage", "hidden_path_finder"],
        "required_actions": [
            puzzle_solved_type(PuzzleType.RHYTHM_PATTERN),
            _egg_progress("lotus_bloom"),
            {"type": A.COMMUNITY_INSPIRED.value, "count": 10},
        ],
        "rewards": {
            "points": 2000,
            "tier_floor": "creator",
            "premium_access": ["all_premium_content", "creator_tools_unlimited"],
            "special_abilities": ["reality_creation_mode", "cosmic_inspiration_channel"],
        },
    },
]


# ---------------------------------------------------------------------------
# Achievements
# ---------------------------------------------------------------------------
ACHIEVEMENTS: list[dict] = [
    {
        "id": "first_steps_sa",
        "category": "achievement",
        "name": "First Steps in Sa",
        "description": "Begin your musical journey with the fundamental note",
        "symbol": "🎵",
        "rarity": "bronze",
        "required_actions": [
            {"type": A.PORTFOLIO_UPLOAD.value, "metadata": {"category": "music"}},
        ],
        "rewards": {"points": 50, "special_abilities": ["musical_notation_helper"]},
    },
    {
        "id": "quantum_apprentice",
        "category": "achievement",
        "name": "Quantum Apprentice",
        "description": "Grasp the basic principles of quantum consciousness",
        "symbol": "🔮",
        "rarity": "silver",
        "required_actions": [
            {"type": A.CONTENT_READ.value, "metadata": {"topic": "quantum"}},
            puzzle_solved_type(PuzzleType.QUANTUM_CIPHER),
        ],
        "rewards": {
            "points": 150,
            "premium_access": ["quantum_basics_course"],
            "special_abilities": ["quantum_insight_mode"],
        },
    },
    {
        "id": "community_harmonizer",
        "category": "achievement",
        "name": "Community Harmonizer",
        "description": "Bring artists together in collaboration",
        "symbol": "🤝",
        "rarity": "gold",
        "required_actions": [
            {"type": A.COLLABORATION_COMPLETED.value, "count": 3},
            {"type": A.MENTORSHIP_PROVIDED.value, "count": 2},
            A.EVENT_ORGANIZED.value,
        ],
        "rewards": {
            "points": 400,
            "tier_floor": "master",
            "special_abilities": ["collaboration_insights", "community_pulse_reading"],
        },
    },
    {
        "id": "precision_master",
        "category": "achievement",
        "name": "Precision Master",
        "description": "Achieve perfect focus and precision in artistic practice",
        "symbol": "🎯",
        "rarity": "platinum",
        "required_actions": [
            {"type": A.CHALLENGE_COMPLETED.value, "metadata": {"theme": "precision"}},
            {"type": A.STREAK_MILESTONE.value, "metadata": {"days": 30}},
            {"type": A.MENTORSHIP_PROVIDED.value, "metadata": {"topic": "precision"}},
        ],
        "rewards": {
            "points": 800,
            "premium_access": ["advanced_precision_tools", "flow_state_training"],
            "special_abilities": ["precision_mode", "flow_state_indicator"],
        },
    },
    {
        "id": "lotus_enlightened",
        "category": "achievement",
        "name": "Lotus Enlightened",
        "description": "Reach the highest state of artistic and spiritual integration",
        "symbol": "🪷",
        "rarity": "diamond",
        "prerequisites": [k["id"] for k in ART_KEYS],
        "required_actions": [
            {"type": A.COMMUNITY_INSPIRED.value, "count": 100},
            {"type": A.PORTFOLIO_UPLOAD.value, "metadata": {"masterpiece": True}},
        ],
        "rewards": {
            "points": 2000,
            "tier_floor": "creator",
            "premium_access": ["all_premium_content"],
            "special_abilities": ["enlightenment_mode", "cosmic_inspiration"],
        },
    },
]


# ---------------------------------------------------------------------------
# Easter eggs: discovered through trigger_easter_egg()
# ---------------------------------------------------------------------------
EASTER_EGGS: list[dict] = [
    {
        "id": "quantum_konami",
        "name": "Quantum Konami Sequence",
        "description": "Some sequences transcend games and enter the realm of consciousness",
        "trigger": {"method": "konami_code", "value": "↑↑↓↓←→←→BA"},
        "advances": "quantum_observer",
        "rewards": {
            "points": 150,
            "secret_message": "The observer collapses the wave function of infinite possibilities into reality",
        },
    },
    {
        "id": "carnatic_sa_meditation",
        "name": "Infinite Sa Meditation",
        "description": "The foundational note holds infinite power when repeated with devotion",
        "trigger": {"method": "text_sequence", "value": "Sa Sa Sa Sa Sa"},
        "advances": "first_note",
        "rewards": {
            "points": 100,
            "secret_message": "Sa is the eternal sound, the foundation of all music and creation",
        },
    },
    {
        "id": "precision_triple_click",
        "name": "Archer's Triple Focus",
        "description": "The center holds the key to perfect concentration",
        "trigger": {"method": "click_pattern", "value": "triple_click_center"},
        "advances": "precision_focus",
        "rewards": {
            "points": 75,
            "secret_message": "In the stillness between heartbeats, the arrow finds its true path",
        },
    },
    {
        "id": "lotus_midnight_bloom",
        "name": "Midnight Lotus Bloom",
        "description": "Some transformations happen when the world sleeps",
        "trigger": {"method": "time_based", "value": "00:00:00"},
        "advances": "lotus_bloom",
        "rewards": {
            "points": 300,
            "secret_message": "In the darkest hour, the lotus blooms with infinite light",
        },
    },
    {
        "id": "hidden_path_sequence",
        "name": "The Hidden Path Revelation",
        "description": "The journey matters more than the destination, but the sequence unlocks understanding",
        "trigger": {
            "method": "quantum_alignment",
            "value": "security->portfolio->challenges->circles->home",
        },
        "advances": "hidden_path_finder",
        "rewards": {
            "points": 500,
            "secret_message": "The path reveals itself only to those who seek with pure intention",
        },
    },
]

for _egg in EASTER_EGGS:
    _egg.setdefault("category", "easter-egg")
    _egg.setdefault("symbol", "🥚")
    _egg.setdefault("rarity", "rare")
    _egg.setdefault("is_secret", True)
    _egg.setdefault("required_actions", [_egg_seen(_egg["id"])])


def default_catalog() -> UnlockableCatalog:
    """Parse and validate the built-in catalogue."""
    return build_catalog([*ART_KEYS, *ACHIEVEMENTS, *EASTER_EGGS])
