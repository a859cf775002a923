"""Point calculation for both modes, plus the hint list shown during a roots round."""
from __future__ import annotations

from typing import Iterable, Sequence, Tuple

from .errors import InvalidSubmission
from .models import Hint, Match, QutrabScore, QutrabTriangle, RootsScore, RoundData, VariantKey

# Streak bonus is a tenth of base points per streak step, rounded down.
STREAK_BONUS_DIVISOR = 10
QUTRAB_MATCHES_REQUIRED = 3

DIFFICULTY_LABELS_AR = {"easy": "سهل", "medium": "متوسط", "hard": "صعب"}


def streak_bonus(streak: int, base_points: int) -> int:
    if streak <= 0:
        return 0
    return streak * base_points // STREAK_BONUS_DIVISOR


def next_streak(streak: int, perfect: bool) -> int:
    return streak + 1 if perfect else 0


def score_roots(round_data: RoundData, selected: Iterable[str], streak: int, base_points: int) -> RootsScore:
    """Score a roots-mode submission.

    Correct picks earn the base points, wrong picks cost half of it and
    missed roots a quarter (both rounded down). The bonus uses the streak as
    it was before this round. The total is never negative.
    """
    chosen = set(selected)
    valid = set(round_data.valid_roots)
    correct = len(chosen & valid)
    incorrect = len(chosen - valid)
    missed = len(valid - chosen)
    bonus = streak_bonus(streak, base_points)
    raw = correct * base_points - incorrect * (base_points // 2) - missed * (base_points // 4) + bonus
    return RootsScore(
        points_earned=max(0, raw),
        correct=correct,
        incorrect=incorrect,
        missed=missed,
        streak_bonus=bonus,
    )


def apply_hint_cost(score: int, cost: int) -> int:
    return max(0, score - cost)


def build_hints(round_data: RoundData) -> Tuple[Hint, ...]:
    """Hints in the order they are unlocked: count, tier, first letter, then one meaning per root."""
    valid = round_data.valid_roots
    hints = [
        Hint(title="عدد الجذور الصحيحة", text=f"يوجد {len(valid)} جذر/جذور صحيحة من بين الستة"),
        Hint(
            title="مستوى الصعوبة",
            text=f"هذا السؤال من المستوى {DIFFICULTY_LABELS_AR[round_data.difficulty.value]}",
        ),
    ]
    if valid:
        hints.append(Hint(title="الحرف الأول", text=f'أحد الجذور الصحيحة يبدأ بحرف "{valid[0][0]}"'))
    for root in valid:
        meaning = round_data.meanings.get(root)
        if meaning:
            hints.append(Hint(title="تلميح معنى", text=meaning, meaning="هذا المعنى يشير إلى أحد الجذور الصحيحة"))
    return tuple(hints)


def to_match(match) -> Match:
    """Accept a ``Match`` or a ``(word_key, meaning_key)`` pair."""
    if isinstance(match, Match):
        return match
    word_key, meaning_key = match
    return Match(word_key=VariantKey(word_key), meaning_key=VariantKey(meaning_key))


def score_qutrab(matches: Sequence, streak: int, base_points: int) -> QutrabScore:
    """Score a Qutrab submission of exactly three word/meaning pairs."""
    try:
        pairs = [to_match(m) for m in matches]
    except (TypeError, ValueError) as exc:
        raise InvalidSubmission(f"Malformed Qutrab match: {exc}") from exc
    if len(pairs) != QUTRAB_MATCHES_REQUIRED:
        raise InvalidSubmission(f"Qutrab rounds need exactly {QUTRAB_MATCHES_REQUIRED} matches, got {len(pairs)}")
    if len({p.word_key for p in pairs}) != len(pairs) or len({p.meaning_key for p in pairs}) != len(pairs):
        raise InvalidSubmission("Each word and each meaning may be matched only once")

    correct = sum(1 for p in pairs if p.is_correct)
    bonus = streak_bonus(streak, base_points)
    return QutrabScore(points_earned=correct * base_points + bonus, correct=correct, streak_bonus=bonus)


def qutrab_feedback(triangle: QutrabTriangle, correct: int) -> Tuple[str, str]:
    """Title and body of the popup shown right after a Qutrab answer is checked."""
    meanings = (
        f"الفتحة: {triangle.fatha.meaning}\n"
        f"الضمة: {triangle.damma.meaning}\n"
        f"الكسرة: {triangle.kasra.meaning}"
    )
    if correct == QUTRAB_MATCHES_REQUIRED:
        return f'أحسنت! مثلث قطرب "{triangle.base}" ✅', meanings
    if correct > 0:
        title = f"جيد! {correct}/{QUTRAB_MATCHES_REQUIRED} إجابات صحيحة"
    else:
        title = "حاول مرة أخرى!"
    return title, f'مثلث "{triangle.base}":\n{meanings}'
