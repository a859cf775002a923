"""Picks the three letters of a roots-mode round."""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import AbstractSet, Iterable, Optional

from .config import VALID_ROOT_RANGES
from .errors import EmptyCandidatePool
from .models import Difficulty, LetterTriple, RootEntry
from .permutations import canonical_combo, classify, fisher_yates, permute

DEFAULT_MAX_ATTEMPTS = 100


@dataclass(frozen=True)
class SelectionPolicy:
    """Inclusive bounds on how many valid roots a triple may produce."""

    min_valid: int
    max_valid: int
    max_attempts: int = DEFAULT_MAX_ATTEMPTS

    @classmethod
    def for_difficulty(cls, difficulty: Difficulty, max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> "SelectionPolicy":
        low, high = VALID_ROOT_RANGES[Difficulty(difficulty).value]
        return cls(min_valid=low, max_valid=high, max_attempts=max_attempts)

    def accepts(self, valid_count: int) -> bool:
        return self.min_valid <= valid_count <= self.max_valid


@dataclass(frozen=True)
class Selection:
    letters: LetterTriple
    used_fallback: bool = False
    # True when the attempt budget ran out before a triple satisfied the policy.
    exhausted: bool = False


class LetterSelector:
    def __init__(self, lexicon, rng: Optional[random.Random] = None, max_attempts: int = DEFAULT_MAX_ATTEMPTS):
        self._lexicon = lexicon
        self._rng = rng or random.Random()
        self._max_attempts = max_attempts

    def _shuffled(self, entry: RootEntry) -> LetterTriple:
        return tuple(fisher_yates(entry.letters, self._rng))  # type: ignore[return-value]

    def select(
        self,
        difficulty: Difficulty,
        used_combos: Iterable[str] = (),
        policy: Optional[SelectionPolicy] = None,
    ) -> Selection:
        """Draw a triple for ``difficulty`` that has not been played this session.

        Tries up to ``policy.max_attempts`` random entries of the tier. When
        none fits, the letters of an unused entry (or any entry) of the tier are
        returned so the game can always continue.
        """
        tier = Difficulty(difficulty)
        policy = policy or SelectionPolicy.for_difficulty(tier, self._max_attempts)
        used: AbstractSet[str] = used_combos if isinstance(used_combos, (set, frozenset)) else set(used_combos)
        pool = self._lexicon.entries_by_difficulty(tier)

        if not pool:
            everything = self._lexicon.all_entries()
            if not everything:
                raise EmptyCandidatePool("The roots lexicon is empty, no round can be generated")
            logging.warning(f"No roots for difficulty '{tier.value}', drawing from the whole lexicon")
            return Selection(letters=self._shuffled(self._rng.choice(everything)), used_fallback=True)

        for _ in range(policy.max_attempts):
            entry = self._rng.choice(pool)
            letters = self._shuffled(entry)
            if canonical_combo(letters) in used:
                continue
            if policy.accepts(len(classify(permute(letters), self._lexicon))):
                return Selection(letters=letters)

        unused = [entry for entry in pool if canonical_combo(entry.letters) not in used]
        entry = self._rng.choice(unused or pool)
        logging.warning(
            f"Letter selection for '{tier.value}' exhausted {policy.max_attempts} attempts, "
            f"falling back to '{entry.root}' ({len(unused)} unused entries left)"
        )
        return Selection(letters=self._shuffled(entry), used_fallback=True, exhausted=True)
