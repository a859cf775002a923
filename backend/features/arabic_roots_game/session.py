"""
Game session state machine.

A ``GameSession`` owns the counters of one player's run in one mode and moves
between the ``SessionStatus`` states in response to player actions. Rounds
come from the injected generator, points from ``scoring``, and progress is
written through a ``ProgressStore`` at pause, submit, level-completion and exit
boundaries. Store failures are logged and never interrupt play.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple, Union

from .config import GameSettings, load_settings
from .errors import InvalidSubmission, InvalidTransition
from .models import (
    Difficulty,
    GameMode,
    Hint,
    Match,
    Proverb,
    QutrabRoundData,
    QutrabScore,
    RootsScore,
    RoundData,
    SessionSnapshot,
    SessionStatus,
    VariantKey,
    normalize_root,
)
from .permutations import canonical_combo
from .scoring import (
    apply_hint_cost,
    build_hints,
    next_streak,
    qutrab_feedback,
    score_qutrab,
    score_roots,
    to_match,
)


@dataclass(frozen=True)
class SubmitOutcome:
    """What the player sees right after an answer is checked."""

    result: Union[RootsScore, QutrabScore]
    score: int
    streak: int
    new_high_score: bool
    # Roots mode: success messages for the roots the player got right.
    success_messages: Tuple[Tuple[str, str], ...] = ()
    # Qutrab mode: popup title and body.
    feedback: Optional[Tuple[str, str]] = None


class GameSession:
    def __init__(
        self,
        mode: GameMode,
        player_id: int,
        store,
        generator,
        *,
        settings: Optional[GameSettings] = None,
        proverbs: Sequence[Proverb] = (),
        root_facts: Optional[Mapping[str, str]] = None,
        on_exit: Optional[Callable[["GameSession"], None]] = None,
    ):
        self.mode = GameMode(mode)
        self.player_id = player_id
        self._store = store
        self._generator = generator
        self._settings = settings or load_settings()
        self._proverbs = tuple(proverbs)
        self._root_facts = dict(root_facts or {})
        self._on_exit = on_exit

        self.status = SessionStatus.NOT_STARTED
        self.difficulty = Difficulty(self._settings.default_difficulty)
        self._clear_progress()
        self.high_score = self._fetch_high_score()
        self._status_before_exit: Optional[SessionStatus] = None

    # --- store access ---

    def _persist(self, action: str, *args) -> bool:
        try:
            getattr(self._store, action)(*args)
        except Exception:
            logging.warning(
                f"Progress store '{action}' failed for player {self.player_id} ({self.mode.value}), continuing",
                exc_info=True,
            )
            return False
        return True

    def _fetch_high_score(self) -> int:
        try:
            return self._store.get_global_scores(self.player_id).high_score(self.mode.value)
        except Exception:
            logging.warning(f"Could not read high score for player {self.player_id}", exc_info=True)
            return 0

    # --- internal helpers ---

    def _clear_progress(self) -> None:
        self.level = 1
        self.round_in_level = 0
        self.score = 0
        self.streak = 0
        self.max_streak = 0
        self.hints_used = 0
        self.levels_completed = 0
        self.used_roots: Set[str] = set()
        self.used_triangle_ids: Set[int] = set()
        self.revealed = False
        self.rotation_pending = False
        self.current_round: Optional[Union[RoundData, QutrabRoundData]] = None
        self.last_outcome: Optional[SubmitOutcome] = None
        self._selection: Set[str] = set()
        self._matches: List[Match] = []
        self._pending_word: Optional[VariantKey] = None
        # Part of ``score`` already added to the player's lifetime total.
        self._banked_score = 0

    def _profile(self):
        return self._settings.profile(self.mode.value, self.difficulty.value)

    def _require_mode(self, mode: GameMode, operation: str) -> None:
        if self.mode != mode:
            raise InvalidTransition(f"'{operation}' is only available in {mode.value} mode")

    def _require_status(self, operation: str, *allowed: SessionStatus) -> None:
        if self.status not in allowed:
            raise InvalidTransition(f"Cannot {operation} while the session is {self.status.value}")

    def _require_open_round(self, operation: str) -> None:
        self._require_status(operation, SessionStatus.IN_PROGRESS)
        if self.revealed:
            raise InvalidTransition(f"Cannot {operation} after the answers were revealed")

    def _new_round(self) -> None:
        if self.mode == GameMode.ROOTS:
            round_data = self._generator.generate(self.difficulty, self.used_roots)
            self.used_roots.add(canonical_combo(round_data.letters))
        else:
            difficulty = None if self._settings.qutrab_ignores_difficulty else self.difficulty
            round_data = self._generator.generate(difficulty, self.used_triangle_ids)
            self.used_triangle_ids.add(round_data.triangle.id)
        self.current_round = round_data
        self.revealed = False
        self.rotation_pending = False
        self.hints_used = 0
        self.last_outcome = None
        self._selection = set()
        self._matches = []
        self._pending_word = None

    def _bank_score(self) -> bool:
        delta = self.score - self._banked_score
        if delta <= 0:
            return True
        ok = self._persist("add_to_total_score", self.player_id, delta)
        if ok:
            self._banked_score = self.score
        return ok

    # --- lifecycle ---

    def start(self, difficulty: Optional[Difficulty] = None) -> None:
        self._require_status(
            "start",
            SessionStatus.NOT_STARTED,
            SessionStatus.IN_PROGRESS,
            SessionStatus.PAUSED,
            SessionStatus.LEVEL_COMPLETE,
        )
        self.difficulty = Difficulty(difficulty or self._settings.default_difficulty)
        self._clear_progress()
        self._new_round()
        self.status = SessionStatus.IN_PROGRESS
        logging.info(f"Player {self.player_id} started {self.mode.value} game on {self.difficulty.value}")

    @classmethod
    def resume_saved(
        cls,
        mode: GameMode,
        player_id: int,
        store,
        generator,
        **kwargs: Any,
    ) -> Optional["GameSession"]:
        """Rebuild a session from the stored snapshot, or return None if nothing was saved.

        Snapshots not marked as paused are ignored. The counters survive, while
        the round itself and the used-root history are fresh.
        """
        session = cls(mode, player_id, store, generator, **kwargs)
        try:
            snapshot = store.get_session(session.mode.value, player_id)
        except Exception:
            logging.warning(f"Could not load saved {session.mode.value} session for player {player_id}", exc_info=True)
            return None
        if snapshot is None or not snapshot.is_paused:
            return None

        session.difficulty = Difficulty(snapshot.difficulty)
        session.level = max(1, snapshot.level)
        session.round_in_level = max(0, snapshot.round_in_level)
        session.score = max(0, snapshot.score)
        session.streak = max(0, snapshot.streak)
        session.max_streak = session.streak
        # Every paused snapshot is written after the score was banked.
        session._banked_score = session.score
        session._new_round()
        session.status = SessionStatus.IN_PROGRESS
        logging.info(f"Player {player_id} resumed {session.mode.value} game at level {session.level}")
        return session

    def reset(self) -> bool:
        """Discard saved and in-memory progress, back to the difficulty picker."""
        cleared = self._persist("clear_session", self.mode.value, self.player_id)
        self._clear_progress()
        self.status = SessionStatus.NOT_STARTED
        self._status_before_exit = None
        return cleared

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            difficulty=self.difficulty,
            level=self.level,
            round_in_level=self.round_in_level,
            score=self.score,
            streak=self.streak,
            is_paused=self.status == SessionStatus.PAUSED,
        )

    @property
    def is_paused(self) -> bool:
        return self.status == SessionStatus.PAUSED

    def pause(self) -> bool:
        self._require_status("pause", SessionStatus.IN_PROGRESS)
        self.status = SessionStatus.PAUSED
        banked = self._bank_score()
        saved = self._persist("save_session", self.mode.value, self.player_id, self.snapshot())
        return banked and saved

    def resume(self) -> None:
        self._require_status("resume", SessionStatus.PAUSED)
        self.status = SessionStatus.IN_PROGRESS

    # --- roots mode input ---

    def begin_rotation(self) -> None:
        self._require_mode(GameMode.ROOTS, "rotate")
        self._require_open_round("rotate")
        if self.rotation_pending:
            raise InvalidTransition("A rotation is already in progress")
        self.rotation_pending = True

    def complete_rotation(self) -> RoundData:
        self._require_status("rotate", SessionStatus.IN_PROGRESS)
        if not self.rotation_pending:
            raise InvalidTransition("No rotation in progress")
        self._new_round()
        return self.current_round

    def rotate(self) -> RoundData:
        """Swap the current letters for a fresh triple at the same difficulty."""
        self.begin_rotation()
        return self.complete_rotation()

    def toggle_selection(self, root: str) -> bool:
        """Select or deselect one of the six orderings; returns whether it is now selected."""
        self._require_mode(GameMode.ROOTS, "select a root")
        self._require_open_round("select a root")
        if root not in self.current_round.permutations:
            raise InvalidSubmission(f"'{root}' is not one of the current orderings")
        if root in self._selection:
            self._selection.discard(root)
            return False
        self._selection.add(root)
        return True

    @property
    def selection(self) -> Tuple[str, ...]:
        return tuple(p for p in self.current_round.permutations if p in self._selection) if self.current_round else ()

    def use_hint(self) -> Hint:
        self._require_mode(GameMode.ROOTS, "use a hint")
        self._require_open_round("use a hint")
        hints = build_hints(self.current_round)
        if self.hints_used >= len(hints):
            raise InvalidTransition("No hints left for this round")
        self.score = apply_hint_cost(self.score, self._profile().hint_cost)
        hint = hints[self.hints_used]
        self.hints_used += 1
        return hint

    # --- qutrab mode input ---

    def select_word(self, key: VariantKey) -> bool:
        """Pick a word card; ignored (False) if it is already matched."""
        self._require_mode(GameMode.QUTRAB, "select a word")
        self._require_open_round("select a word")
        key = VariantKey(key)
        if any(m.word_key == key for m in self._matches):
            return False
        self._pending_word = key
        return True

    def match_meaning(self, key: VariantKey) -> Optional[Match]:
        """Pair the picked word with a meaning card; ignored (None) without a picked word."""
        self._require_mode(GameMode.QUTRAB, "match a meaning")
        self._require_open_round("match a meaning")
        key = VariantKey(key)
        if self._pending_word is None or any(m.meaning_key == key for m in self._matches):
            return None
        match = Match(word_key=self._pending_word, meaning_key=key)
        self._matches.append(match)
        self._pending_word = None
        return match

    @property
    def matches(self) -> Tuple[Match, ...]:
        return tuple(self._matches)

    # --- answers and progression ---

    def submit(
        self,
        selection: Optional[Iterable[str]] = None,
        matches: Optional[Iterable[Union[Match, Tuple[str, str]]]] = None,
    ) -> SubmitOutcome:
        self._require_open_round("submit")
        base_points = self._profile().base_points

        if self.mode == GameMode.ROOTS:
            chosen = set(self._selection if selection is None else selection)
            if not chosen:
                raise InvalidSubmission("Select at least one root before checking the answers")
            unknown = chosen - set(self.current_round.permutations)
            if unknown:
                raise InvalidSubmission(f"Not part of the current round: {', '.join(sorted(unknown))}")
            result = score_roots(self.current_round, chosen, self.streak, base_points)
            self._selection = chosen
            correct_roots = [r for r in self.current_round.valid_roots if r in chosen]
            success = tuple((r, self.current_round.success_messages[r]) for r in correct_roots)
            feedback = None
        else:
            pairs = list(self._matches if matches is None else matches)
            result = score_qutrab(pairs, self.streak, base_points)
            self._matches = [to_match(p) for p in pairs]
            self._pending_word = None
            success = ()
            feedback = qutrab_feedback(self.current_round.triangle, result.correct)

        self.score += result.points_earned
        self.streak = next_streak(self.streak, result.is_perfect)
        if self.streak > self.max_streak:
            self.max_streak = self.streak
            self._persist("record_streak", self.player_id, self.streak)
        new_high = self.score > self.high_score
        if new_high:
            self.high_score = self.score
            self._persist("record_high_score", self.player_id, self.mode.value, self.score)
        self.revealed = True

        self.last_outcome = SubmitOutcome(
            result=result,
            score=self.score,
            streak=self.streak,
            new_high_score=new_high,
            success_messages=success,
            feedback=feedback,
        )
        return self.last_outcome

    def advance_round(self) -> SessionStatus:
        self._require_status("advance the round", SessionStatus.IN_PROGRESS)
        if not self.revealed:
            raise InvalidTransition("Check the answers before moving to the next round")

        if self.round_in_level + 1 < self._profile().rounds_per_level:
            self.round_in_level += 1
            self._new_round()
            return self.status

        self.status = SessionStatus.LEVEL_COMPLETE
        self.levels_completed += 1
        self._persist("record_completed_level", self.player_id, self.mode.value, self.level)
        self._bank_score()
        self._persist(
            "append_game_history",
            self.player_id,
            self.mode.value,
            self.score,
            self.max_streak,
            self.levels_completed,
        )
        self._persist("save_session", self.mode.value, self.player_id, self._next_level_checkpoint())
        logging.info(f"Player {self.player_id} completed {self.mode.value} level {self.level} with {self.score} points")
        return self.status

    def _escalated_difficulty(self, next_level: int) -> Difficulty:
        if self.mode != GameMode.ROOTS:
            return self.difficulty
        threshold = self._settings.escalation_thresholds.get(self.difficulty.value)
        if threshold is None:
            return self.difficulty
        after_level, next_tier = threshold
        return Difficulty(next_tier) if next_level > after_level else self.difficulty

    def _next_level_checkpoint(self) -> SessionSnapshot:
        """Saved at level completion so a restart picks up at the start of the next level."""
        next_level = self.level + 1
        return SessionSnapshot(
            difficulty=self._escalated_difficulty(next_level),
            level=next_level,
            round_in_level=0,
            score=self.score,
            streak=self.streak,
            is_paused=True,
        )

    def advance_level(self) -> None:
        self._require_status("advance the level", SessionStatus.LEVEL_COMPLETE)
        next_level = self.level + 1
        next_difficulty = self._escalated_difficulty(next_level)
        if next_difficulty != self.difficulty:
            logging.info(f"Player {self.player_id} moves up to {next_difficulty.value} at level {next_level}")
        self.level = next_level
        self.difficulty = next_difficulty
        self.round_in_level = 0
        self._new_round()
        self.status = SessionStatus.IN_PROGRESS

    # --- exit ---

    def request_exit(self) -> None:
        self._require_status(
            "exit",
            SessionStatus.IN_PROGRESS,
            SessionStatus.PAUSED,
            SessionStatus.LEVEL_COMPLETE,
        )
        self._status_before_exit = self.status
        self.status = SessionStatus.EXIT_REQUESTED

    def cancel_exit(self) -> None:
        self._require_status("cancel the exit", SessionStatus.EXIT_REQUESTED)
        self.status = self._status_before_exit or SessionStatus.IN_PROGRESS
        self._status_before_exit = None

    def confirm_exit(self) -> bool:
        """Save progress and leave. Returns False when any save failed; the exit happens anyway."""
        self._require_status("confirm the exit", SessionStatus.EXIT_REQUESTED)
        if self._status_before_exit == SessionStatus.LEVEL_COMPLETE:
            snapshot = self._next_level_checkpoint()
        else:
            snapshot = SessionSnapshot(
                difficulty=self.difficulty,
                level=self.level,
                round_in_level=self.round_in_level,
                score=self.score,
                streak=self.streak,
                is_paused=True,
            )
        banked = self._bank_score()
        saved = self._persist("save_session", self.mode.value, self.player_id, snapshot)
        streak_saved = self._persist("record_streak", self.player_id, self.streak)
        ok = saved and banked and streak_saved
        if not ok:
            logging.error(f"Player {self.player_id} exited with unsaved {self.mode.value} progress")
        self.status = SessionStatus.EXITED
        self._status_before_exit = None
        if self._on_exit is not None:
            self._on_exit(self)
        return ok

    # --- content ---

    def current_proverb(self) -> Optional[Proverb]:
        if not self._proverbs:
            return None
        return self._proverbs[(self.level - 1) % len(self._proverbs)]

    def root_fact(self, root: str) -> Optional[str]:
        return self._root_facts.get(normalize_root(root))

    def public_view(self) -> Dict[str, Any]:
        """JSON-ready state for the client. Answers stay hidden until the round is revealed."""
        profile = self._profile()
        view: Dict[str, Any] = {
            "mode": self.mode.value,
            "playerId": self.player_id,
            "status": self.status.value,
            "difficulty": self.difficulty.value,
            "level": self.level,
            "roundInLevel": self.round_in_level,
            "roundsPerLevel": profile.rounds_per_level,
            "score": self.score,
            "streak": self.streak,
            "maxStreak": self.max_streak,
            "highScore": self.high_score,
            "isPaused": self.is_paused,
            "revealed": self.revealed,
            "hintsUsed": self.hints_used,
            "hintCost": profile.hint_cost,
            "round": None,
        }
        proverb = self.current_proverb()
        view["proverb"] = {"text": proverb.text, "meaning": proverb.meaning} if proverb else None

        round_data = self.current_round
        if isinstance(round_data, RoundData):
            view["round"] = {
                "letters": list(round_data.letters),
                "permutations": list(round_data.permutations),
                "selected": list(self.selection),
                "hintsAvailable": len(build_hints(round_data)),
            }
            if self.revealed:
                view["round"]["validRoots"] = list(round_data.valid_roots)
                view["round"]["meanings"] = dict(round_data.meanings)
                view["round"]["poetryExamples"] = dict(round_data.poetry_examples)
        elif isinstance(round_data, QutrabRoundData):
            view["round"] = {
                "base": round_data.triangle.base,
                "words": [{"key": key.value, "word": word} for key, word in round_data.words],
                "meanings": [{"key": key.value, "meaning": meaning} for key, meaning in round_data.meanings],
                "matches": [{"wordKey": m.word_key.value, "meaningKey": m.meaning_key.value} for m in self._matches],
            }
            if self.revealed:
                triangle = round_data.triangle
                view["round"]["examples"] = {
                    key.value: triangle.variant(key).example for key in VariantKey
                }

        outcome = self.last_outcome
        if outcome is not None:
            result = outcome.result
            view["lastResult"] = {
                "pointsEarned": result.points_earned,
                "correct": result.correct,
                "streakBonus": result.streak_bonus,
                "isPerfect": result.is_perfect,
                "newHighScore": outcome.new_high_score,
            }
            if isinstance(result, RootsScore):
                view["lastResult"].update(incorrect=result.incorrect, missed=result.missed)
                view["lastResult"]["successMessages"] = [
                    {"root": root, "message": message} for root, message in outcome.success_messages
                ]
            if outcome.feedback is not None:
                view["lastResult"]["feedback"] = {"title": outcome.feedback[0], "content": outcome.feedback[1]}
        return view
