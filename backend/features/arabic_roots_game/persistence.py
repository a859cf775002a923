"""
Progress storage for the game.

The session layer only talks to the ``ProgressStore`` protocol. Two stores are
provided: a SQLite one with forward-only migrations, and an in-memory one used
when no database path is configured (and in tests).
"""
from __future__ import annotations

import logging
import sqlite3
from copy import deepcopy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Dict, List, Optional, Protocol, Tuple, Union

from .config import GameSettings
from .errors import PersistenceFailure
from .models import Difficulty, SessionSnapshot

SCHEMA_VERSION = 1
DEFAULT_PLAYER_NAME = "اللاعب"


@dataclass(frozen=True)
class Player:
    id: int
    name: str


@dataclass(frozen=True)
class GlobalScores:
    total_score: int = 0
    total_streak: int = 0
    roots_high_score: int = 0
    qutrab_high_score: int = 0

    def high_score(self, mode: str) -> int:
        return self.qutrab_high_score if mode == "qutrab" else self.roots_high_score


@dataclass(frozen=True)
class GameHistoryEntry:
    mode: str
    score: int
    max_streak: int
    levels_completed: int
    played_at: str


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ProgressStore(Protocol):
    def get_session(self, mode: str, player_id: int) -> Optional[SessionSnapshot]: ...

    def save_session(self, mode: str, player_id: int, snapshot: SessionSnapshot) -> None: ...

    def clear_session(self, mode: str, player_id: int) -> None: ...

    def record_completed_level(self, player_id: int, mode: str, level_id: int) -> None: ...

    def record_high_score(self, player_id: int, mode: str, score: int) -> None: ...

    def add_to_total_score(self, player_id: int, delta: int) -> int: ...

    def record_streak(self, player_id: int, streak: int) -> None: ...

    def append_game_history(
        self, player_id: int, mode: str, score: int, max_streak: int, levels_completed: int
    ) -> None: ...

    def get_global_scores(self, player_id: int) -> GlobalScores: ...

    def completed_levels(self, player_id: int, mode: str) -> List[int]: ...

    def game_history(self, player_id: int, mode: Optional[str] = None) -> List[GameHistoryEntry]: ...

    def has_active_game(self, player_id: int) -> bool: ...

    def create_player(self, name: str) -> Player: ...

    def get_player(self, player_id: int) -> Optional[Player]: ...


class SQLiteProgressStore:
    """Relational store: players, global scores, saved sessions, completed levels and history."""

    def __init__(self, db_path: Union[Path, str]) -> None:
        if isinstance(db_path, Path):
            db_path.parent.mkdir(parents=True, exist_ok=True)
            target = str(db_path)
        else:
            target = db_path
        # FastAPI runs sync endpoints in a thread pool, access is serialised by the lock.
        self._conn = sqlite3.connect(target, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = Lock()
        try:
            self._apply_migrations()
        except sqlite3.Error as exc:
            raise PersistenceFailure(f"Could not initialise progress database {target}: {exc}") from exc

    def _apply_migrations(self) -> None:
        current = int(self._conn.execute("PRAGMA user_version").fetchone()[0])
        if current > SCHEMA_VERSION:
            raise PersistenceFailure(f"Database schema version {current} is newer than supported {SCHEMA_VERSION}.")
        for version in range(current + 1, SCHEMA_VERSION + 1):
            if version == 1:
                self._migrate_to_v1()
            with self._conn:
                self._conn.execute(f"PRAGMA user_version = {version}")
            logging.info(f"Progress database migrated to schema version {version}")

    def _migrate_to_v1(self) -> None:
        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS players (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
                """)
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS global_scores (
                    player_id INTEGER PRIMARY KEY,
                    total_score INTEGER NOT NULL DEFAULT 0,
                    total_streak INTEGER NOT NULL DEFAULT 0,
                    roots_high_score INTEGER NOT NULL DEFAULT 0,
                    qutrab_high_score INTEGER NOT NULL DEFAULT 0,
                    updated_at TEXT NOT NULL
                )
                """)
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS game_sessions (
                    player_id INTEGER NOT NULL,
                    mode TEXT NOT NULL,
                    difficulty TEXT NOT NULL,
                    current_level INTEGER NOT NULL,
                    round_in_level INTEGER NOT NULL,
                    score INTEGER NOT NULL,
                    streak INTEGER NOT NULL,
                    is_paused INTEGER NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (player_id, mode)
                )
                """)
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS completed_levels (
                    player_id INTEGER NOT NULL,
                    mode TEXT NOT NULL,
                    level_id INTEGER NOT NULL,
                    completed_at TEXT NOT NULL,
                    UNIQUE (player_id, mode, level_id)
                )
                """)
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS game_history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    player_id INTEGER NOT NULL,
                    mode TEXT NOT NULL,
                    score INTEGER NOT NULL,
                    max_streak INTEGER NOT NULL,
                    levels_completed INTEGER NOT NULL,
                    played_at TEXT NOT NULL
                )
                """)

    def _ensure_player(self, player_id: int) -> None:
        self._conn.execute(
            "INSERT OR IGNORE INTO players (id, name, created_at) VALUES (?, ?, ?)",
            (player_id, DEFAULT_PLAYER_NAME, _now()),
        )
        self._conn.execute(
            "INSERT OR IGNORE INTO global_scores (player_id, updated_at) VALUES (?, ?)",
            (player_id, _now()),
        )

    def create_player(self, name: str) -> Player:
        with self._lock, self._conn:
            cursor = self._conn.execute("INSERT INTO players (name, created_at) VALUES (?, ?)", (name, _now()))
            player_id = int(cursor.lastrowid)
            self._ensure_player(player_id)
        return Player(id=player_id, name=name)

    def get_player(self, player_id: int) -> Optional[Player]:
        with self._lock:
            row = self._conn.execute("SELECT id, name FROM players WHERE id = ?", (player_id,)).fetchone()
        if row is None:
            return None
        return Player(id=int(row["id"]), name=str(row["name"]))

    def get_session(self, mode: str, player_id: int) -> Optional[SessionSnapshot]:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM game_sessions WHERE player_id = ? AND mode = ?",
                (player_id, mode),
            ).fetchone()
        if row is None:
            return None
        return SessionSnapshot(
            difficulty=Difficulty(row["difficulty"]),
            level=int(row["current_level"]),
            round_in_level=int(row["round_in_level"]),
            score=int(row["score"]),
            streak=int(row["streak"]),
            is_paused=bool(row["is_paused"]),
        )

    def save_session(self, mode: str, player_id: int, snapshot: SessionSnapshot) -> None:
        with self._lock, self._conn:
            self._ensure_player(player_id)
            self._conn.execute(
                """
                INSERT OR REPLACE INTO game_sessions (
                    player_id, mode, difficulty, current_level, round_in_level,
                    score, streak, is_paused, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    player_id,
                    mode,
                    Difficulty(snapshot.difficulty).value,
                    snapshot.level,
                    snapshot.round_in_level,
                    snapshot.score,
                    snapshot.streak,
                    int(snapshot.is_paused),
                    _now(),
                ),
            )

    def clear_session(self, mode: str, player_id: int) -> None:
        with self._lock, self._conn:
            self._conn.execute("DELETE FROM game_sessions WHERE player_id = ? AND mode = ?", (player_id, mode))

    def has_active_game(self, player_id: int) -> bool:
        with self._lock:
            row = self._conn.execute(
                "SELECT COUNT(*) FROM game_sessions WHERE player_id = ?", (player_id,)
            ).fetchone()
        return int(row[0]) > 0

    def record_completed_level(self, player_id: int, mode: str, level_id: int) -> None:
        with self._lock, self._conn:
            self._ensure_player(player_id)
            self._conn.execute(
                "INSERT OR IGNORE INTO completed_levels (player_id, mode, level_id, completed_at) VALUES (?, ?, ?, ?)",
                (player_id, mode, level_id, _now()),
            )

    def completed_levels(self, player_id: int, mode: str) -> List[int]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT level_id FROM completed_levels WHERE player_id = ? AND mode = ? ORDER BY level_id",
                (player_id, mode),
            ).fetchall()
        return [int(row["level_id"]) for row in rows]

    def record_high_score(self, player_id: int, mode: str, score: int) -> None:
        column = "qutrab_high_score" if mode == "qutrab" else "roots_high_score"
        with self._lock, self._conn:
            self._ensure_player(player_id)
            self._conn.execute(
                f"UPDATE global_scores SET {column} = MAX({column}, ?), updated_at = ? WHERE player_id = ?",
                (score, _now(), player_id),
            )

    def add_to_total_score(self, player_id: int, delta: int) -> int:
        with self._lock, self._conn:
            self._ensure_player(player_id)
            self._conn.execute(
                "UPDATE global_scores SET total_score = total_score + ?, updated_at = ? WHERE player_id = ?",
                (delta, _now(), player_id),
            )
            row = self._conn.execute(
                "SELECT total_score FROM global_scores WHERE player_id = ?", (player_id,)
            ).fetchone()
        return int(row["total_score"])

    def record_streak(self, player_id: int, streak: int) -> None:
        with self._lock, self._conn:
            self._ensure_player(player_id)
            self._conn.execute(
                "UPDATE global_scores SET total_streak = MAX(total_streak, ?), updated_at = ? WHERE player_id = ?",
                (streak, _now(), player_id),
            )

    def get_global_scores(self, player_id: int) -> GlobalScores:
        with self._lock:
            row = self._conn.execute("SELECT * FROM global_scores WHERE player_id = ?", (player_id,)).fetchone()
        if row is None:
            return GlobalScores()
        return GlobalScores(
            total_score=int(row["total_score"]),
            total_streak=int(row["total_streak"]),
            roots_high_score=int(row["roots_high_score"]),
            qutrab_high_score=int(row["qutrab_high_score"]),
        )

    def append_game_history(
        self, player_id: int, mode: str, score: int, max_streak: int, levels_completed: int
    ) -> None:
        with self._lock, self._conn:
            self._ensure_player(player_id)
            self._conn.execute(
                """
                INSERT INTO game_history (player_id, mode, score, max_streak, levels_completed, played_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (player_id, mode, score, max_streak, levels_completed, _now()),
            )

    def game_history(self, player_id: int, mode: Optional[str] = None) -> List[GameHistoryEntry]:
        query = "SELECT * FROM game_history WHERE player_id = ?"
        params: Tuple = (player_id,)
        if mode is not None:
            query += " AND mode = ?"
            params = (player_id, mode)
        with self._lock:
            rows = self._conn.execute(query + " ORDER BY id DESC", params).fetchall()
        return [
            GameHistoryEntry(
                mode=str(row["mode"]),
                score=int(row["score"]),
                max_streak=int(row["max_streak"]),
                levels_completed=int(row["levels_completed"]),
                played_at=str(row["played_at"]),
            )
            for row in rows
        ]

    def close(self) -> None:
        self._conn.close()


@dataclass
class _PlayerRecord:
    player: Player
    scores: Dict[str, int] = field(
        default_factory=lambda: {
            "total_score": 0,
            "total_streak": 0,
            "roots_high_score": 0,
            "qutrab_high_score": 0,
        }
    )
    completed: Dict[str, set] = field(default_factory=dict)
    history: List[GameHistoryEntry] = field(default_factory=list)


class InMemoryProgressStore:
    """Thread-safe key-value store with the same behaviour as the SQLite store."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._sessions: Dict[Tuple[str, int], SessionSnapshot] = {}
        self._players: Dict[int, _PlayerRecord] = {}
        self._next_player_id = 1

    def _record(self, player_id: int) -> _PlayerRecord:
        record = self._players.get(player_id)
        if record is None:
            record = _PlayerRecord(player=Player(id=player_id, name=DEFAULT_PLAYER_NAME))
            self._players[player_id] = record
            self._next_player_id = max(self._next_player_id, player_id + 1)
        return record

    def create_player(self, name: str) -> Player:
        with self._lock:
            player = Player(id=self._next_player_id, name=name)
            self._players[player.id] = _PlayerRecord(player=player)
            self._next_player_id += 1
            return player

    def get_player(self, player_id: int) -> Optional[Player]:
        with self._lock:
            record = self._players.get(player_id)
            return record.player if record else None

    def get_session(self, mode: str, player_id: int) -> Optional[SessionSnapshot]:
        with self._lock:
            return self._sessions.get((mode, player_id))

    def save_session(self, mode: str, player_id: int, snapshot: SessionSnapshot) -> None:
        with self._lock:
            self._record(player_id)
            self._sessions[(mode, player_id)] = snapshot

    def clear_session(self, mode: str, player_id: int) -> None:
        with self._lock:
            self._sessions.pop((mode, player_id), None)

    def has_active_game(self, player_id: int) -> bool:
        with self._lock:
            return any(pid == player_id for _, pid in self._sessions)

    def record_completed_level(self, player_id: int, mode: str, level_id: int) -> None:
        with self._lock:
            self._record(player_id).completed.setdefault(mode, set()).add(level_id)

    def completed_levels(self, player_id: int, mode: str) -> List[int]:
        with self._lock:
            record = self._players.get(player_id)
            return sorted(record.completed.get(mode, ())) if record else []

    def record_high_score(self, player_id: int, mode: str, score: int) -> None:
        key = "qutrab_high_score" if mode == "qutrab" else "roots_high_score"
        with self._lock:
            scores = self._record(player_id).scores
            scores[key] = max(scores[key], score)

    def add_to_total_score(self, player_id: int, delta: int) -> int:
        with self._lock:
            scores = self._record(player_id).scores
            scores["total_score"] += delta
            return scores["total_score"]

    def record_streak(self, player_id: int, streak: int) -> None:
        with self._lock:
            scores = self._record(player_id).scores
            scores["total_streak"] = max(scores["total_streak"], streak)

    def get_global_scores(self, player_id: int) -> GlobalScores:
        with self._lock:
            record = self._players.get(player_id)
            return GlobalScores(**record.scores) if record else GlobalScores()

    def append_game_history(
        self, player_id: int, mode: str, score: int, max_streak: int, levels_completed: int
    ) -> None:
        entry = GameHistoryEntry(
            mode=mode, score=score, max_streak=max_streak, levels_completed=levels_completed, played_at=_now()
        )
        with self._lock:
            self._record(player_id).history.append(entry)

    def game_history(self, player_id: int, mode: Optional[str] = None) -> List[GameHistoryEntry]:
        with self._lock:
            record = self._players.get(player_id)
            entries = deepcopy(record.history) if record else []
        return [e for e in reversed(entries) if mode is None or e.mode == mode]


def build_store(settings: GameSettings) -> ProgressStore:
    """SQLite when a database path is configured, otherwise the in-memory store."""
    if settings.db_path:
        logging.info(f"Using SQLite progress store at {settings.db_path}")
        if settings.db_path == ":memory:":
            return SQLiteProgressStore(settings.db_path)
        return SQLiteProgressStore(Path(settings.db_path))
    logging.info("No ARABIC_GAME_DB_PATH configured, progress is kept in memory")
    return InMemoryProgressStore()
