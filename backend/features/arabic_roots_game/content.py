"""
Loaders for the bundled datasets.

The roots lexicon is a spreadsheet export, so its records keep the Arabic
column headers. Each file is parsed into pydantic models first and only then
turned into the frozen domain values from ``models``.
"""
from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .config import DATA_DIR
from .errors import ContentError
from .models import Difficulty, Proverb, QutrabTriangle, QutrabVariant, RootEntry, normalize_root

ROOTS_FILE = "roots.json"
QUTRAB_FILE = "qutrab.json"
PROVERBS_FILE = "proverbs.json"
ROOT_FACTS_FILE = "root_facts.json"

# Placeholder the spreadsheet uses for an empty cell.
EMPTY_CELL = "-"


def map_difficulty(label: Optional[str]) -> Difficulty:
    """Map an Arabic level label (with or without its colour emoji) to a tier.

    Unknown or empty labels fall back to medium.
    """
    text = (label or "").strip()
    if "سهل" in text or "🟢" in text or text == Difficulty.EASY.value:
        return Difficulty.EASY
    if "صعب" in text or "🔴" in text or text == Difficulty.HARD.value:
        return Difficulty.HARD
    return Difficulty.MEDIUM


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    text = value.strip()
    if not text or text == EMPTY_CELL:
        return None
    return text


class RootRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    root: str = Field(..., alias="الجذر")
    meaning: str = Field(..., alias="الشرح المختصر")
    meaning_en: str = Field("", alias="المعنى بالإنجليزية")
    examples: Union[str, List[str]] = Field("", alias="أمثلة توضيحية")
    level: str = Field("", alias="المستوى")
    hint: str = Field("", alias="التلميح")
    success_message: str = Field("", alias="أحسنت!")
    poetry_example: Optional[str] = Field(None, alias="الأمثلة الشعرية")

    @field_validator("root")
    @classmethod
    def _three_letters(cls, value: str) -> str:
        normalized = normalize_root(value)
        if len(normalized) != 3:
            raise ValueError(f"root must have exactly three letters, got {value!r}")
        return normalized

    def to_entry(self) -> RootEntry:
        if isinstance(self.examples, str):
            examples = tuple(part.strip() for part in self.examples.replace(",", "،").split("،") if part.strip())
        else:
            examples = tuple(item.strip() for item in self.examples if item.strip())
        return RootEntry(
            root=self.root,
            meaning=self.meaning.strip(),
            meaning_en=self.meaning_en.strip(),
            examples=examples,
            difficulty=map_difficulty(self.level),
            hint=_clean(self.hint) or "",
            success_message=_clean(self.success_message) or "",
            poetry_example=_clean(self.poetry_example),
        )


class VariantRecord(BaseModel):
    word: str
    meaning: str
    example: Optional[str] = None


class TriangleRecord(BaseModel):
    id: int
    base: str
    difficulty: str = "medium"
    fatha: VariantRecord
    damma: VariantRecord
    kasra: VariantRecord

    def to_triangle(self) -> QutrabTriangle:
        def variant(record: VariantRecord) -> QutrabVariant:
            return QutrabVariant(word=record.word, meaning=record.meaning, example=_clean(record.example))

        return QutrabTriangle(
            id=self.id,
            base=self.base.strip(),
            fatha=variant(self.fatha),
            damma=variant(self.damma),
            kasra=variant(self.kasra),
            difficulty=map_difficulty(self.difficulty),
        )


class ProverbRecord(BaseModel):
    text: str
    meaning: str = ""


def _read_json(path: Path) -> Any:
    try:
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)
    except FileNotFoundError as exc:
        raise ContentError(f"Dataset not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise ContentError(f"Dataset {path.name} is not valid JSON: {exc}") from exc


def _records(payload: Any, source: str) -> List[Any]:
    # Spreadsheet exports wrap rows in a single sheet key.
    if isinstance(payload, dict) and len(payload) == 1:
        payload = next(iter(payload.values()))
    if not isinstance(payload, list):
        raise ContentError(f"Dataset {source} must contain a list of records")
    return payload


def parse_roots(payload: Any, source: str = ROOTS_FILE) -> Tuple[RootEntry, ...]:
    entries = []
    for index, raw in enumerate(_records(payload, source)):
        try:
            entries.append(RootRecord.model_validate(raw).to_entry())
        except ValidationError as exc:
            raise ContentError(f"Invalid root record #{index} in {source}: {exc}") from exc
    return tuple(entries)


def parse_triangles(payload: Any, source: str = QUTRAB_FILE) -> Tuple[QutrabTriangle, ...]:
    triangles = []
    for index, raw in enumerate(_records(payload, source)):
        try:
            triangles.append(TriangleRecord.model_validate(raw).to_triangle())
        except ValidationError as exc:
            raise ContentError(f"Invalid qutrab record #{index} in {source}: {exc}") from exc
    return tuple(triangles)


def parse_proverbs(payload: Any, source: str = PROVERBS_FILE) -> Tuple[Proverb, ...]:
    proverbs = []
    for index, raw in enumerate(_records(payload, source)):
        try:
            record = ProverbRecord.model_validate(raw)
        except ValidationError as exc:
            raise ContentError(f"Invalid proverb #{index} in {source}: {exc}") from exc
        proverbs.append(Proverb(text=record.text.strip(), meaning=record.meaning.strip()))
    return tuple(proverbs)


def parse_root_facts(payload: Any, source: str = ROOT_FACTS_FILE) -> Dict[str, str]:
    if not isinstance(payload, dict):
        raise ContentError(f"Dataset {source} must map roots to facts")
    facts = {}
    for root, fact in payload.items():
        if not isinstance(fact, str) or not fact.strip():
            raise ContentError(f"Empty fact for root {root!r} in {source}")
        facts[normalize_root(root)] = fact.strip()
    return facts


def load_roots(data_dir: Path = DATA_DIR) -> Tuple[RootEntry, ...]:
    entries = parse_roots(_read_json(data_dir / ROOTS_FILE))
    logging.info(f"Loaded {len(entries)} roots from {data_dir / ROOTS_FILE}")
    return entries


def load_triangles(data_dir: Path = DATA_DIR) -> Tuple[QutrabTriangle, ...]:
    triangles = parse_triangles(_read_json(data_dir / QUTRAB_FILE))
    logging.info(f"Loaded {len(triangles)} qutrab triangles from {data_dir / QUTRAB_FILE}")
    return triangles


@lru_cache(maxsize=None)
def load_proverbs(data_dir: Path = DATA_DIR) -> Tuple[Proverb, ...]:
    return parse_proverbs(_read_json(data_dir / PROVERBS_FILE))


@lru_cache(maxsize=None)
def load_root_facts(data_dir: Path = DATA_DIR) -> Dict[str, str]:
    return parse_root_facts(_read_json(data_dir / ROOT_FACTS_FILE))
