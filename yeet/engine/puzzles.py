"""
yeet.engine.puzzles — Artistic puzzle generation and solution digests
======================================================================

Pure calculation, no database I/O.  Each generator has fixed content per
``(puzzle_type, difficulty)`` (the raga / tala / passage pools below) and
draws the instance from an injectable :class:`random.Random`, so tests can
seed it.

Only :func:`solution_digest` of a solution ever leaves this module
towards storage.
"""

from __future__ import annotations

import hashlib
import random
import re
from collections.abc import Callable
from dataclasses import dataclass, field

from yeet.database.models import PuzzleDifficulty, PuzzleType

D = PuzzleDifficulty


@dataclass(frozen=True, slots=True)
class GeneratedPuzzle:
    puzzle_type: PuzzleType
    difficulty: PuzzleDifficulty
    challenge_data: dict
    solution: str
    hints: list[str] = field(default_factory=list)
    time_limit: int = 180


# ---------------------------------------------------------------------------
# Solution normalisation
# ---------------------------------------------------------------------------
_WS_RE = re.compile(r"\s+")
_DASH_RE = re.compile(r"\s*-\s*")


def normalize_solution(solution: str) -> str:
    """Lowercase, collapse whitespace, and tighten spaces around ``-``."""
    collapsed = _WS_RE.sub(" ", solution).strip().lower()
    return _DASH_RE.sub("-", collapsed)


def solution_digest(solution: str) -> str:
    """SHA-256 hex digest of the normalised solution."""
    return hashlib.sha256(normalize_solution(solution).encode("utf-8")).hexdigest()


def _hidden_count(difficulty: PuzzleDifficulty) -> int:
    return 3 if difficulty in (D.VIRTUOSO, D.MASTER) else 2


# ---------------------------------------------------------------------------
# Carnatic sequence: complete the arohanam of a raga
# ---------------------------------------------------------------------------
RAGAS: dict[PuzzleDifficulty, dict[str, list[str]]] = {
    D.NOVICE: {
        "Bilahari": ["Sa", "Ri", "Ga", "Pa", "Dha", "Sa"],
        "Hamsadhwani": ["Sa", "Ri", "Ga", "Pa", "Ni", "Sa"],
    },
    D.APPRENTICE: {
        "Shankarabharanam": ["Sa", "Ri", "Ga", "Ma", "Pa", "Dha", "Ni", "Sa"],
        "Mohanam": ["Sa", "Ri", "Ga", "Pa", "Dha", "Sa"],
    },
    D.VIRTUOSO: {
        "Todi": ["Sa", "Ri", "Ga", "Ma", "Pa", "Dha", "Ni", "Sa"],
        "Bhairavi": ["Sa", "Ri", "Ga", "Ma", "Pa", "Dha", "Pa", "Sa"],
    },
    D.MASTER: {
        "Varali": ["Sa", "Ga", "Ri", "Ga", "Ma", "Pa", "Dha", "Ni", "Sa"],
        "Simhendramadhyamam": ["Sa", "Ri", "Ga", "Ma", "Pa", "Dha", "Ni", "Sa"],
    },
}


def _carnatic(difficulty: PuzzleDifficulty, rng: random.Random) -> GeneratedPuzzle:
    raga = rng.choice(sorted(RAGAS[difficulty]))
    sequence = RAGAS[difficulty][raga]
    hidden = _hidden_count(difficulty)
    return GeneratedPuzzle(
        puzzle_type=PuzzleType.CARNATIC_SEQUENCE,
        difficulty=difficulty,
        challenge_data={
            "raga": raga,
            "partial_sequence": sequence[:-hidden],
            "missing": hidden,
            "instruction": (
                f"Complete the arohanam of raga {raga} with the {hidden} missing "
                "swaras, separated by '-'"
            ),
        },
        solution="-".join(sequence[-hidden:]),
        hints=[
            f"The arohanam of {raga} has {len(sequence)} swaras",
            "Every ascent returns home to Sa",
        ],
        time_limit=300 if difficulty == D.MASTER else 180,
    )


# ---------------------------------------------------------------------------
# Quantum cipher: Caesar-shifted passage
# ---------------------------------------------------------------------------
CIPHER_PASSAGES: dict[PuzzleDifficulty, list[str]] = {
    D.NOVICE: [
        "Awareness observes the dance of consciousness",
        "The observer shapes what is seen",
    ],
    D.APPRENTICE: [
        "Entanglement binds distant petals of one lotus",
        "Every measurement is a quiet act of creation",
    ],
    D.VIRTUOSO: [
        "Collapse is the moment a possibility chooses to be real",
        "Stillness holds every note before it is sung",
    ],
    D.MASTER: [
        "The quantum lotus blooms in superposition of all possibilities",
        "In the silence between observations the universe composes itself",
    ],
}

CIPHER_SHIFTS: dict[PuzzleDifficulty, tuple[int, ...]] = {
    D.NOVICE: (3,),
    D.APPRENTICE: (5, 7),
    D.VIRTUOSO: (7, 11),
    D.MASTER: (13, 17, 19),
}


def caesar_shift(text: str, shift: int) -> str:
    out = []
    for ch in text:
        if "a" <= ch <= "z":
            out.append(chr((ord(ch) - 97 + shift) % 26 + 97))
        elif "A" <= ch <= "Z":
            out.append(chr((ord(ch) - 65 + shift) % 26 + 65))
        else:
            out.append(ch)
    return "".join(out)


def _quantum_cipher(difficulty: PuzzleDifficulty, rng: random.Random) -> GeneratedPuzzle:
    message = rng.choice(CIPHER_PASSAGES[difficulty])
    shift = rng.choice(CIPHER_SHIFTS[difficulty])
    challenge = {
        "encrypted_text": caesar_shift(message, shift),
        "instruction": "Decode the wisdom hidden in this passage",
        "literary_context": "From 'The Quantum Lotus' philosophical tradition",
    }
    # The two lower tiers are told the shift outright
    if difficulty in (D.NOVICE, D.APPRENTICE):
        challenge["shift"] = shift
    return GeneratedPuzzle(
        puzzle_type=PuzzleType.QUANTUM_CIPHER,
        difficulty=difficulty,
        challenge_data=challenge,
        solution=message,
        hints=[
            "Each letter has been moved the same distance along the alphabet",
            "Spaces and punctuation are untouched",
            "The lotus represents awakening consciousness",
        ],
        time_limit=600 if difficulty == D.MASTER else 300,
    )


# ---------------------------------------------------------------------------
# Rhythm pattern: finish one cycle of a tala
# ---------------------------------------------------------------------------
TALAS: dict[PuzzleDifficulty, dict[str, list[str]]] = {
    D.NOVICE: {
        "Adi Tala": ["ta", "ka", "di", "mi", "ta", "ka", "jha", "nu"],
    },
    D.APPRENTICE: {
        "Rupaka": ["ta", "ka", "ta", "ka", "di", "mi"],
        "Jhampa": ["ta", "ka", "di", "mi", "ta", "ka", "ta", "ki", "ta", "dhom"],
    },
    D.VIRTUOSO: {
        "Ata": ["ta", "ka", "di", "mi", "ta", "ka", "di", "mi", "ta", "ka", "ta", "ka", "di", "mi"],
        "Eka": ["ta", "ka", "di", "mi"],
    },
    D.MASTER: {
        "Sankeerna": ["ta", "ka", "di", "mi", "ta", "ka", "ta", "ki", "ta"],
        "Misra Chapu": ["ta", "ki", "ta", "ta", "ka", "di", "mi"],
    },
}


def _rhythm(difficulty: PuzzleDifficulty, rng: random.Random) -> GeneratedPuzzle:
    tala = rng.choice(sorted(TALAS[difficulty]))
    pattern = TALAS[difficulty][tala]
    hidden = _hidden_count(difficulty)
    total = len(pattern)
    return GeneratedPuzzle(
        puzzle_type=PuzzleType.RHYTHM_PATTERN,
        difficulty=difficulty,
        challenge_data={
            "tala": tala,
            "pattern": pattern[:-hidden] + ["?"] * hidden,
            "missing_beats": list(range(total - hidden, total)),
            "instruction": (
                f"Complete this {tala} cycle; answer with the missing syllables "
                "separated by '-'"
            ),
        },
        solution="-".join(pattern[-hidden:]),
        hints=[
            f"{tala} has {total} beats per cycle",
            "Maintain the subdivisions and accents",
        ],
        time_limit=240 if difficulty == D.MASTER else 120,
    )


# ---------------------------------------------------------------------------
# Literary code: restore the masked words of a passage
# ---------------------------------------------------------------------------
LITERARY_PASSAGES: dict[PuzzleDifficulty, list[tuple[str, tuple[int, ...]]]] = {
    # (passage, indexes of the words to mask)
    D.NOVICE: [
        ("The lotus rises clean from muddy water", (1,)),
        ("Every song begins with a single note", (6,)),
    ],
    D.APPRENTICE: [
        ("A story travels further than the voice that first told it", (1,)),
        ("The guru and the disciple tune the same string", (7,)),
    ],
    D.VIRTUOSO: [
        ("Tradition is a river that keeps its name while changing its water", (0, 3)),
        ("The archer breathes out and the arrow remembers the target", (1, 6)),
    ],
    D.MASTER: [
        ("What the observer calls chance the poet calls rhythm and the sage calls grace", (2, 8, 13)),
        ("In every raga the silence between swaras carries as much meaning as the sound", (2, 4, 13)),
    ],
}


def _literary(difficulty: PuzzleDifficulty, rng: random.Random) -> GeneratedPuzzle:
    passage, masked = rng.choice(LITERARY_PASSAGES[difficulty])
    words = passage.split()
    shown = ["____" if i in masked else w for i, w in enumerate(words)]
    return GeneratedPuzzle(
        puzzle_type=PuzzleType.LITERARY_CODE,
        difficulty=difficulty,
        challenge_data={
            "passage": " ".join(shown),
            "missing": len(masked),
            "instruction": "Restore the missing words in order, separated by spaces",
        },
        solution=" ".join(words[i] for i in masked),
        hints=[
            f"The first missing word starts with '{words[masked[0]][0].upper()}'",
            "Read the passage aloud and listen for its cadence",
        ],
        time_limit=420 if difficulty == D.MASTER else 240,
    )


PUZZLE_GENERATORS: dict[PuzzleType, Callable[[PuzzleDifficulty, random.Random], GeneratedPuzzle]] = {
    PuzzleType.CARNATIC_SEQUENCE: _carnatic,
    PuzzleType.QUANTUM_CIPHER: _quantum_cipher,
    PuzzleType.RHYTHM_PATTERN: _rhythm,
    PuzzleType.LITERARY_CODE: _literary,
}

_system_rng = random.SystemRandom()


def generate_puzzle(
    puzzle_type: str | PuzzleType,
    difficulty: str | PuzzleDifficulty,
    rng: random.Random | None = None,
) -> GeneratedPuzzle:
    """Build a new puzzle instance.  Raises ``ValueError`` on unknown names."""
    ptype = PuzzleType(puzzle_type)
    level = PuzzleDifficulty(difficulty)
    return PUZZLE_GENERATORS[ptype](level, rng or _system_rng)
