"""Read-only lookups over the roots lexicon and the Qutrab catalog."""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Dict, Iterable, Iterator, Optional, Tuple

from . import content
from .errors import ContentError
from .models import Difficulty, QutrabTriangle, RootEntry, normalize_root


class LexiconStore:
    """Maps normalised roots to their entries, grouped by difficulty."""

    def __init__(self, entries: Iterable[RootEntry]):
        self._entries: Dict[str, RootEntry] = {}
        self._by_difficulty: Dict[Difficulty, Tuple[RootEntry, ...]] = {}
        grouped: Dict[Difficulty, list] = {tier: [] for tier in Difficulty}
        for entry in entries:
            key = normalize_root(entry.root)
            if key in self._entries:
                # First record wins, later duplicates are spreadsheet noise.
                logging.warning(f"Duplicate root '{key}' in lexicon, keeping the first entry")
                continue
            self._entries[key] = entry
            grouped[Difficulty(entry.difficulty)].append(entry)
        self._by_difficulty = {tier: tuple(items) for tier, items in grouped.items()}

    def lookup(self, root: str) -> Optional[RootEntry]:
        return self._entries.get(normalize_root(root))

    def is_valid(self, root: str) -> bool:
        return normalize_root(root) in self._entries

    def entries_by_difficulty(self, tier: Difficulty) -> Tuple[RootEntry, ...]:
        return self._by_difficulty.get(Difficulty(tier), ())

    def all_entries(self) -> Tuple[RootEntry, ...]:
        return tuple(self._entries.values())

    def stats(self) -> Dict[str, int]:
        """Total number of roots plus a count per difficulty tier."""
        summary = {"total": len(self._entries)}
        for tier in Difficulty:
            summary[tier.value] = len(self._by_difficulty.get(tier, ()))
        return summary

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, root: object) -> bool:
        return isinstance(root, str) and self.is_valid(root)

    def __iter__(self) -> Iterator[RootEntry]:
        return iter(self._entries.values())


class QutrabCatalog:
    def __init__(self, triangles: Iterable[QutrabTriangle]):
        self._triangles: Dict[int, QutrabTriangle] = {}
        for triangle in triangles:
            if triangle.id in self._triangles:
                raise ContentError(f"Duplicate qutrab triangle id {triangle.id}")
            self._triangles[triangle.id] = triangle

    def get(self, triangle_id: int) -> Optional[QutrabTriangle]:
        return self._triangles.get(triangle_id)

    def by_difficulty(self, tier: Difficulty) -> Tuple[QutrabTriangle, ...]:
        tier = Difficulty(tier)
        return tuple(t for t in self._triangles.values() if t.difficulty == tier)

    def all(self) -> Tuple[QutrabTriangle, ...]:
        return tuple(self._triangles.values())

    def __len__(self) -> int:
        return len(self._triangles)


@lru_cache(maxsize=1)
def default_lexicon() -> LexiconStore:
    return LexiconStore(content.load_roots())


@lru_cache(maxsize=1)
def default_catalog() -> QutrabCatalog:
    return QutrabCatalog(content.load_triangles())
