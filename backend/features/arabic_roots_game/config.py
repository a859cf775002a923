# backend/features/arabic_roots_game/config.py
"""
Central settings for the Arabic roots / Qutrab game feature.

Values that operators may want to tune (database location, escalation
thresholds, selector attempt budget) are read from the environment, with a
`.env` file honoured through python-dotenv. Difficulty profiles mirror the
tables the mobile client ships with.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple

from dotenv import load_dotenv

# --- Load environment overrides from .env ---
load_dotenv()

# --- Paths ---
FEATURE_ROOT = Path(__file__).resolve().parent
DATA_DIR = FEATURE_ROOT / "data"

# --- Constants ---
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"

MODE_ROOTS = "roots"
MODE_QUTRAB = "qutrab"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True)
class DifficultyProfile:
    """Per-difficulty knobs for one game mode."""

    label_ar: str
    rounds_per_level: int
    base_points: int
    hint_cost: int


ROOTS_PROFILES: Dict[str, DifficultyProfile] = {
    "easy": DifficultyProfile(label_ar="سهل", rounds_per_level=3, base_points=10, hint_cost=10),
    "medium": DifficultyProfile(label_ar="متوسط", rounds_per_level=4, base_points=15, hint_cost=10),
    "hard": DifficultyProfile(label_ar="صعب", rounds_per_level=5, base_points=25, hint_cost=10),
}

QUTRAB_PROFILES: Dict[str, DifficultyProfile] = {
    "easy": DifficultyProfile(label_ar="سهل", rounds_per_level=5, base_points=10, hint_cost=10),
    "medium": DifficultyProfile(label_ar="متوسط", rounds_per_level=7, base_points=15, hint_cost=10),
    "hard": DifficultyProfile(label_ar="صعب", rounds_per_level=10, base_points=25, hint_cost=10),
}

# Inclusive [min, max] count of valid roots a letter triple may produce.
VALID_ROOT_RANGES: Dict[str, Tuple[int, int]] = {
    "easy": (1, 2),
    "medium": (1, 3),
    "hard": (1, 4),
}


@dataclass(frozen=True)
class GameSettings:
    """Runtime settings resolved from the environment."""

    db_path: Optional[str] = None
    default_player_id: int = 1
    default_difficulty: str = "easy"
    selection_max_attempts: int = 100
    # Level number after which the next tier starts, e.g. level 4 plays medium.
    escalation_thresholds: Dict[str, Tuple[int, str]] = field(
        default_factory=lambda: {"easy": (3, "medium"), "medium": (6, "hard")}
    )
    # Qutrab mode keeps variety high by drawing from the whole catalog.
    qutrab_ignores_difficulty: bool = True
    roots_profiles: Dict[str, DifficultyProfile] = field(default_factory=lambda: dict(ROOTS_PROFILES))
    qutrab_profiles: Dict[str, DifficultyProfile] = field(default_factory=lambda: dict(QUTRAB_PROFILES))

    def profile(self, mode: str, difficulty: str) -> DifficultyProfile:
        table = self.roots_profiles if mode == MODE_ROOTS else self.qutrab_profiles
        try:
            return table[difficulty]
        except KeyError as exc:
            raise ValueError(f"Unsupported difficulty '{difficulty}' for mode '{mode}'") from exc


def load_settings() -> GameSettings:
    """Build settings from environment variables."""

    db_path = os.getenv("ARABIC_GAME_DB_PATH") or None
    easy_until = _env_int("ARABIC_GAME_EASY_UNTIL_LEVEL", 3)
    medium_until = _env_int("ARABIC_GAME_MEDIUM_UNTIL_LEVEL", 6)
    return GameSettings(
        db_path=db_path,
        default_player_id=_env_int("ARABIC_GAME_DEFAULT_PLAYER_ID", 1),
        default_difficulty=os.getenv("ARABIC_GAME_DEFAULT_DIFFICULTY", "easy"),
        selection_max_attempts=_env_int("ARABIC_GAME_SELECTION_ATTEMPTS", 100),
        escalation_thresholds={"easy": (easy_until, "medium"), "medium": (medium_until, "hard")},
    )
