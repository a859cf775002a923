"""Orderings of a three-letter set and their classification against the lexicon."""
from __future__ import annotations

import random
from typing import Iterable, List, Sequence, Tuple, TypeVar

from .models import LetterTriple

T = TypeVar("T")

# Index order of the six orderings shown to the player.
PERMUTATION_ORDER: Tuple[Tuple[int, int, int], ...] = (
    (0, 1, 2),
    (0, 2, 1),
    (1, 0, 2),
    (1, 2, 0),
    (2, 0, 1),
    (2, 1, 0),
)


def _check_triple(letters: Sequence[str]) -> LetterTriple:
    if len(letters) != 3 or any(not isinstance(ch, str) or len(ch) != 1 for ch in letters):
        raise ValueError(f"Expected exactly three single letters, got {letters!r}")
    return (letters[0], letters[1], letters[2])


def permute(letters: Sequence[str]) -> Tuple[str, ...]:
    """Return the six orderings of ``letters``.

    Repeated letters still yield six entries, so some strings may repeat.
    """
    triple = _check_triple(letters)
    return tuple("".join(triple[i] for i in order) for order in PERMUTATION_ORDER)


def classify(permutations: Iterable[str], lexicon) -> Tuple[str, ...]:
    """Keep the permutations the lexicon knows, in their original order, without duplicates."""
    seen = set()
    valid = []
    for candidate in permutations:
        if candidate in seen:
            continue
        seen.add(candidate)
        if lexicon.is_valid(candidate):
            valid.append(candidate)
    return tuple(valid)


def canonical_combo(letters: Sequence[str]) -> str:
    """Key shared by every ordering of the same three letters."""
    return "".join(sorted(_check_triple(letters)))


def fisher_yates(items: Iterable[T], rng: random.Random) -> List[T]:
    """Return a shuffled copy of ``items`` using the injected random source."""
    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled
