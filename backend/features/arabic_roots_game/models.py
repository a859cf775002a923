"""Domain values shared by the round generators, scoring and session layers."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple

LetterTriple = Tuple[str, str, str]


def normalize_root(text: str) -> str:
    """Drop whitespace and fold the tatweel form of heh (هـ) into a plain heh."""
    return "".join(text.split()).replace("هـ", "ه").replace("ـ", "")


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class GameMode(str, Enum):
    ROOTS = "roots"
    QUTRAB = "qutrab"


class VariantKey(str, Enum):
    """Vowel mark placed on the first letter of a Qutrab word."""

    FATHA = "fatha"
    DAMMA = "damma"
    KASRA = "kasra"


class SessionStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    LEVEL_COMPLETE = "level_complete"
    EXIT_REQUESTED = "exit_requested"
    EXITED = "exited"


@dataclass(frozen=True)
class RootEntry:
    """One trilateral root of the lexicon."""

    root: str
    meaning: str
    meaning_en: str
    examples: Tuple[str, ...]
    difficulty: Difficulty
    hint: str = ""
    success_message: str = ""
    poetry_example: Optional[str] = None

    @property
    def letters(self) -> LetterTriple:
        return (self.root[0], self.root[1], self.root[2])


@dataclass(frozen=True)
class QutrabVariant:
    word: str
    meaning: str
    example: Optional[str] = None


@dataclass(frozen=True)
class QutrabTriangle:
    """A base word whose meaning changes with the vowel on its first letter."""

    id: int
    base: str
    fatha: QutrabVariant
    damma: QutrabVariant
    kasra: QutrabVariant
    difficulty: Difficulty

    def variant(self, key: VariantKey) -> QutrabVariant:
        return getattr(self, VariantKey(key).value)


@dataclass(frozen=True)
class Proverb:
    text: str
    meaning: str = ""


@dataclass(frozen=True)
class RoundData:
    """A roots-mode round. Replaced wholesale on rotation or advance."""

    letters: LetterTriple
    permutations: Tuple[str, ...]
    valid_roots: Tuple[str, ...]
    meanings: Dict[str, str]
    difficulty: Difficulty
    success_messages: Dict[str, str] = field(default_factory=dict)
    poetry_examples: Dict[str, str] = field(default_factory=dict)
    used_fallback: bool = False


@dataclass(frozen=True)
class QutrabRoundData:
    triangle: QutrabTriangle
    words: Tuple[Tuple[VariantKey, str], ...]
    meanings: Tuple[Tuple[VariantKey, str], ...]


@dataclass(frozen=True)
class Match:
    """A player's pairing of a word card with a meaning card."""

    word_key: VariantKey
    meaning_key: VariantKey

    @property
    def is_correct(self) -> bool:
        return self.word_key == self.meaning_key


@dataclass(frozen=True)
class RootsScore:
    points_earned: int
    correct: int
    incorrect: int
    missed: int
    streak_bonus: int

    @property
    def is_perfect(self) -> bool:
        return self.correct > 0 and self.incorrect == 0 and self.missed == 0


@dataclass(frozen=True)
class QutrabScore:
    points_earned: int
    correct: int
    streak_bonus: int

    @property
    def is_perfect(self) -> bool:
        return self.correct == 3


@dataclass(frozen=True)
class Hint:
    title: str
    text: str
    meaning: Optional[str] = None


@dataclass(frozen=True)
class SessionSnapshot:
    """The part of a session that survives a pause or an app relaunch."""

    difficulty: Difficulty
    level: int
    round_in_level: int
    score: int
    streak: int
    is_paused: bool = True
