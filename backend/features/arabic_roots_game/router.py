"""Arabic roots and Qutrab triangle word game feature module."""
from __future__ import annotations

import logging
import random
import uuid
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Callable, Dict, List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from .config import DifficultyProfile, GameSettings, load_settings
from .content import load_proverbs, load_root_facts
from .errors import EmptyCandidatePool, InvalidSubmission, InvalidTransition
from .lexicon import default_catalog, default_lexicon
from .models import Difficulty, GameMode, SessionStatus
from .persistence import build_store
from .rounds import QutrabRoundGenerator, RoundGenerator
from .selector import LetterSelector
from .session import GameSession

router = APIRouter(prefix="/arabic-roots", tags=["Arabic Roots Game"])


class CreateSessionRequest(BaseModel):
    """Schema for starting or resuming a game."""

    mode: str = GameMode.ROOTS.value
    player_id: Optional[int] = Field(default=None, alias="playerId")
    difficulty: Optional[str] = None
    resume: bool = False
    seed: Optional[int] = Field(default=None, description="Optional seed for reproducible rounds.")

    model_config = ConfigDict(populate_by_name=True)


class MatchPayload(BaseModel):
    word_key: str = Field(alias="wordKey")
    meaning_key: str = Field(alias="meaningKey")

    model_config = ConfigDict(populate_by_name=True)


class SubmitRequest(BaseModel):
    """Roots mode sends ``selected``; Qutrab mode sends ``matches``."""

    selected: Optional[List[str]] = None
    matches: Optional[List[MatchPayload]] = None

    model_config = ConfigDict(populate_by_name=True)


@dataclass
class _SessionEntry:
    session: GameSession
    lock: Lock = field(default_factory=Lock)


class SessionRegistry:
    """Thread-safe in-memory registry of live game sessions."""

    def __init__(self) -> None:
        self._sessions: Dict[str, _SessionEntry] = {}
        self._lock = Lock()

    def add(self, session_id: str, session: GameSession) -> None:
        with self._lock:
            self._sessions[session_id] = _SessionEntry(session=session)

    def get(self, session_id: str) -> _SessionEntry:
        with self._lock:
            if session_id not in self._sessions:
                raise HTTPException(status_code=404, detail="Game session not found, please start a new game.")
            return self._sessions[session_id]

    def discard(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


SETTINGS: GameSettings = load_settings()
PROGRESS_STORE = build_store(SETTINGS)
SESSION_REGISTRY = SessionRegistry()


def _parse_mode(raw: str) -> GameMode:
    try:
        return GameMode(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unsupported game mode: {raw}") from None


def _parse_difficulty(raw: Optional[str]) -> Optional[Difficulty]:
    if raw is None:
        return None
    try:
        return Difficulty(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unsupported difficulty: {raw}") from None


def _build_generator(mode: GameMode, rng: random.Random):
    if mode == GameMode.ROOTS:
        lexicon = default_lexicon()
        selector = LetterSelector(lexicon, rng, max_attempts=SETTINGS.selection_max_attempts)
        return RoundGenerator(lexicon, selector)
    return QutrabRoundGenerator(default_catalog(), rng)


def _session_kwargs(session_id: str) -> Dict[str, Any]:
    return {
        "settings": SETTINGS,
        "proverbs": load_proverbs(),
        "root_facts": load_root_facts(),
        "on_exit": lambda _session: SESSION_REGISTRY.discard(session_id),
    }


def _session_payload(session_id: str, session: GameSession, **extra: Any) -> Dict[str, Any]:
    return {"success": True, "sessionId": session_id, "session": session.public_view(), **extra}


def _run(session_id: str, operation: Callable[[GameSession], Dict[str, Any]]) -> Dict[str, Any]:
    """Run one operation on a session under its lock, mapping game errors to HTTP errors."""
    entry = SESSION_REGISTRY.get(session_id)
    with entry.lock:
        try:
            extra = operation(entry.session) or {}
        except (InvalidSubmission, InvalidTransition) as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except EmptyCandidatePool as exc:
            logging.error(f"Session {session_id} could not generate a round: {exc}", exc_info=True)
            raise HTTPException(status_code=500, detail="No game content is available.") from exc
        return _session_payload(session_id, entry.session, **extra)


def _profile_payload(profile: DifficultyProfile) -> Dict[str, Any]:
    return {
        "label": profile.label_ar,
        "roundsPerLevel": profile.rounds_per_level,
        "basePoints": profile.base_points,
        "hintCost": profile.hint_cost,
    }


@router.get("/game-config")
def get_game_config() -> Dict[str, Any]:
    return {
        "success": True,
        "modes": {
            GameMode.ROOTS.value: {key: _profile_payload(p) for key, p in SETTINGS.roots_profiles.items()},
            GameMode.QUTRAB.value: {key: _profile_payload(p) for key, p in SETTINGS.qutrab_profiles.items()},
        },
        "escalation": [
            {"from": tier, "afterLevel": after_level, "to": next_tier}
            for tier, (after_level, next_tier) in SETTINGS.escalation_thresholds.items()
        ],
        "defaultDifficulty": SETTINGS.default_difficulty,
        "lexicon": default_lexicon().stats(),
        "qutrabTriangles": len(default_catalog()),
    }


@router.post("/sessions")
def create_session(payload: CreateSessionRequest) -> Dict[str, Any]:
    mode = _parse_mode(payload.mode)
    difficulty = _parse_difficulty(payload.difficulty)
    player_id = payload.player_id if payload.player_id is not None else SETTINGS.default_player_id
    rng = random.Random(payload.seed)
    generator = _build_generator(mode, rng)
    session_id = str(uuid.uuid4())

    try:
        if payload.resume:
            session = GameSession.resume_saved(
                mode, player_id, PROGRESS_STORE, generator, **_session_kwargs(session_id)
            )
            if session is None:
                raise HTTPException(status_code=404, detail="No saved game to resume.")
        else:
            session = GameSession(mode, player_id, PROGRESS_STORE, generator, **_session_kwargs(session_id))
            session.start(difficulty)
    except EmptyCandidatePool as exc:
        logging.error(f"Could not start {mode.value} game: {exc}", exc_info=True)
        raise HTTPException(status_code=500, detail="No game content is available.") from exc

    SESSION_REGISTRY.add(session_id, session)
    logging.info(f"Created {mode.value} session {session_id} for player {player_id}")
    return _session_payload(session_id, session)


@router.get("/sessions/{session_id}")
def fetch_session(session_id: str) -> Dict[str, Any]:
    return _run(session_id, lambda session: None)


@router.post("/sessions/{session_id}/rotate")
def rotate_letters(session_id: str) -> Dict[str, Any]:
    return _run(session_id, lambda session: {"usedFallback": session.rotate().used_fallback})


@router.post("/sessions/{session_id}/submit")
def submit_answer(session_id: str, payload: SubmitRequest) -> Dict[str, Any]:
    matches = None
    if payload.matches is not None:
        matches = [(m.word_key, m.meaning_key) for m in payload.matches]

    def operation(session: GameSession) -> None:
        session.submit(selection=payload.selected, matches=matches)

    return _run(session_id, operation)


@router.post("/sessions/{session_id}/hint")
def use_hint(session_id: str) -> Dict[str, Any]:
    def operation(session: GameSession) -> Dict[str, Any]:
        hint = session.use_hint()
        return {"hint": {"title": hint.title, "text": hint.text, "meaning": hint.meaning}}

    return _run(session_id, operation)


@router.post("/sessions/{session_id}/advance-round")
def advance_round(session_id: str) -> Dict[str, Any]:
    def operation(session: GameSession) -> Dict[str, Any]:
        return {"levelComplete": session.advance_round() == SessionStatus.LEVEL_COMPLETE}

    return _run(session_id, operation)


@router.post("/sessions/{session_id}/advance-level")
def advance_level(session_id: str) -> Dict[str, Any]:
    return _run(session_id, lambda session: session.advance_level())


@router.post("/sessions/{session_id}/pause")
def pause_session(session_id: str) -> Dict[str, Any]:
    return _run(session_id, lambda session: {"saved": session.pause()})


@router.post("/sessions/{session_id}/resume")
def resume_session(session_id: str) -> Dict[str, Any]:
    return _run(session_id, lambda session: session.resume())


@router.post("/sessions/{session_id}/reset")
def reset_session(session_id: str) -> Dict[str, Any]:
    return _run(session_id, lambda session: {"cleared": session.reset()})


@router.post("/sessions/{session_id}/exit")
def exit_session(session_id: str) -> Dict[str, Any]:
    def operation(session: GameSession) -> Dict[str, Any]:
        session.request_exit()
        return {"saved": session.confirm_exit()}

    return _run(session_id, operation)


@router.get("/roots/{root}")
def lookup_root(root: str) -> Dict[str, Any]:
    entry = default_lexicon().lookup(root)
    if entry is None:
        raise HTTPException(status_code=404, detail=f"'{root}' is not a root in the lexicon.")
    facts = load_root_facts()
    return {
        "success": True,
        "root": entry.root,
        "meaning": entry.meaning,
        "meaningEn": entry.meaning_en,
        "examples": list(entry.examples),
        "difficulty": entry.difficulty.value,
        "hint": entry.hint,
        "poetryExample": entry.poetry_example,
        "fact": facts.get(entry.root),
    }


@router.get("/players/{player_id}/progress")
def player_progress(player_id: int) -> Dict[str, Any]:
    try:
        scores = PROGRESS_STORE.get_global_scores(player_id)
        history = PROGRESS_STORE.game_history(player_id)
        completed = {mode.value: PROGRESS_STORE.completed_levels(player_id, mode.value) for mode in GameMode}
        active = PROGRESS_STORE.has_active_game(player_id)
    except Exception as exc:
        logging.error(f"Could not read progress for player {player_id}: {exc}", exc_info=True)
        raise HTTPException(status_code=500, detail="Progress is temporarily unavailable.") from exc
    return {
        "success": True,
        "playerId": player_id,
        "totalScore": scores.total_score,
        "bestStreak": scores.total_streak,
        "highScores": {GameMode.ROOTS.value: scores.roots_high_score, GameMode.QUTRAB.value: scores.qutrab_high_score},
        "completedLevels": completed,
        "hasActiveGame": active,
        "history": [
            {
                "mode": item.mode,
                "score": item.score,
                "maxStreak": item.max_streak,
                "levelsCompleted": item.levels_completed,
                "playedAt": item.played_at,
            }
            for item in history
        ],
    }
