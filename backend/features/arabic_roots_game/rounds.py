"""Round generation for both game modes."""
from __future__ import annotations

import logging
import random
from typing import Iterable, Optional

from .errors import EmptyCandidatePool
from .models import Difficulty, QutrabRoundData, RoundData, VariantKey
from .permutations import classify, fisher_yates, permute
from .selector import LetterSelector

SUCCESS_MESSAGE_FALLBACK = "أحسنت! '{root}' جذر صحيح."


class RoundGenerator:
    """Builds a roots-mode round from the selector's letters and the lexicon."""

    def __init__(self, lexicon, selector: LetterSelector):
        self._lexicon = lexicon
        self._selector = selector

    def generate(self, difficulty: Difficulty, used_roots: Iterable[str] = ()) -> RoundData:
        tier = Difficulty(difficulty)
        selection = self._selector.select(tier, used_roots)
        permutations = permute(selection.letters)
        valid_roots = classify(permutations, self._lexicon)

        meanings, success_messages, poetry_examples = {}, {}, {}
        for root in valid_roots:
            entry = self._lexicon.lookup(root)
            meanings[root] = entry.meaning
            success_messages[root] = entry.success_message or SUCCESS_MESSAGE_FALLBACK.format(root=root)
            if entry.poetry_example:
                poetry_examples[root] = entry.poetry_example

        return RoundData(
            letters=selection.letters,
            permutations=permutations,
            valid_roots=valid_roots,
            meanings=meanings,
            difficulty=tier,
            success_messages=success_messages,
            poetry_examples=poetry_examples,
            used_fallback=selection.used_fallback,
        )


class QutrabRoundGenerator:
    def __init__(self, catalog, rng: Optional[random.Random] = None):
        self._catalog = catalog
        self._rng = rng or random.Random()

    def generate(self, difficulty: Optional[Difficulty] = None, used_ids: Iterable[int] = ()) -> QutrabRoundData:
        """Pick an unplayed triangle and shuffle its words and meanings independently.

        When every triangle of the tier was played, unplayed triangles of any
        tier are used, and once the catalog is exhausted repeats are allowed.
        """
        everything = self._catalog.all()
        if not everything:
            raise EmptyCandidatePool("The Qutrab catalog is empty, no round can be generated")

        used = set(used_ids)
        pool = self._catalog.by_difficulty(difficulty) if difficulty is not None else everything
        candidates = [t for t in pool if t.id not in used]
        if not candidates:
            candidates = [t for t in everything if t.id not in used]
            if candidates:
                logging.info(f"No unplayed triangles for '{difficulty}', drawing from other difficulties")
            else:
                logging.warning("Every Qutrab triangle has been played, repeating from the full catalog")
                candidates = list(everything)

        triangle = self._rng.choice(candidates)
        words = fisher_yates([(key, triangle.variant(key).word) for key in VariantKey], self._rng)
        meanings = fisher_yates([(key, triangle.variant(key).meaning) for key in VariantKey], self._rng)
        return QutrabRoundData(triangle=triangle, words=tuple(words), meanings=tuple(meanings))
