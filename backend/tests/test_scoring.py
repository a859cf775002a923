import unittest
from itertools import combinations

from backend.features.arabic_roots_game.errors import InvalidSubmission
from backend.features.arabic_roots_game.lexicon import default_catalog, default_lexicon
from backend.features.arabic_roots_game.models import Difficulty, Match, RoundData, VariantKey
from backend.features.arabic_roots_game.permutations import classify, permute
from backend.features.arabic_roots_game.scoring import (
    apply_hint_cost,
    build_hints,
    next_streak,
    qutrab_feedback,
    score_qutrab,
    score_roots,
    streak_bonus,
)


def _round(letters, valid_roots=None, difficulty=Difficulty.EASY) -> RoundData:
    perms = permute(letters)
    valid = classify(perms, default_lexicon()) if valid_roots is None else tuple(valid_roots)
    return RoundData(
        letters=tuple(letters),
        permutations=perms,
        valid_roots=valid,
        meanings={root: f"meaning {root}" for root in valid},
        difficulty=difficulty,
    )


class RootsScoringTest(unittest.TestCase):
    def test_single_correct_answer_on_easy(self) -> None:
        round_data = _round(["ك", "ت", "ب"])
        self.assertEqual(round_data.valid_roots, ("كتب",))

        result = score_roots(round_data, {"كتب"}, streak=0, base_points=10)

        self.assertEqual(result.points_earned, 10)
        self.assertEqual((result.correct, result.incorrect, result.missed), (1, 0, 0))
        self.assertEqual(result.streak_bonus, 0)
        self.assertTrue(result.is_perfect)

    def test_one_wrong_pick_costs_half_the_base_points(self) -> None:
        result = score_roots(_round(["ك", "ت", "ب"]), {"كتب", "كبت"}, streak=0, base_points=10)

        self.assertEqual((result.correct, result.incorrect, result.missed), (1, 1, 0))
        self.assertEqual(result.points_earned, 5)
        self.assertFalse(result.is_perfect)

    def test_missed_roots_cost_a_quarter(self) -> None:
        round_data = _round(["ح", "ر", "ب"], valid_roots=("حرب", "ربح", "بحر"))

        result = score_roots(round_data, {"حرب"}, streak=0, base_points=25)

        self.assertEqual(result.missed, 2)
        self.assertEqual(result.points_earned, 25 - 2 * 6)

    def test_streak_bonus_uses_the_streak_before_the_round(self) -> None:
        result = score_roots(_round(["ك", "ت", "ب"]), {"كتب"}, streak=3, base_points=15)

        self.assertEqual(result.streak_bonus, 4)
        self.assertEqual(result.points_earned, 19)

    def test_points_are_never_negative(self) -> None:
        round_data = _round(["ح", "ر", "ب"], valid_roots=("حرب", "ربح", "بحر"))
        perms = round_data.permutations
        for base_points in (10, 15, 25):
            for size in range(0, 7):
                for chosen in combinations(perms, size):
                    with self.subTest(base_points=base_points, chosen=chosen):
                        result = score_roots(round_data, chosen, streak=0, base_points=base_points)
                        self.assertGreaterEqual(result.points_earned, 0)

    def test_streak_law(self) -> None:
        self.assertEqual(next_streak(0, True), 1)
        self.assertEqual(next_streak(4, True), 5)
        self.assertEqual(next_streak(4, False), 0)
        self.assertEqual(streak_bonus(0, 25), 0)
        self.assertEqual(streak_bonus(1, 25), 2)

    def test_hint_cost_is_floored_at_zero(self) -> None:
        self.assertEqual(apply_hint_cost(25, 10), 15)
        self.assertEqual(apply_hint_cost(4, 10), 0)


class HintTest(unittest.TestCase):
    def test_hint_order(self) -> None:
        round_data = _round(["ح", "ر", "ب"], valid_roots=("حرب", "ربح"), difficulty=Difficulty.HARD)

        hints = build_hints(round_data)

        self.assertEqual(len(hints), 5)
        self.assertIn("2", hints[0].text)
        self.assertIn("صعب", hints[1].text)
        self.assertIn('"ح"', hints[2].text)
        self.assertEqual(hints[3].text, "meaning حرب")
        self.assertEqual(hints[4].text, "meaning ربح")


class QutrabScoringTest(unittest.TestCase):
    def test_all_correct_hilm(self) -> None:
        triangle = default_catalog().get(1)
        self.assertEqual(triangle.base, "حلم")
        matches = [Match(key, key) for key in VariantKey]

        result = score_qutrab(matches, streak=2, base_points=10)

        self.assertEqual(result.correct, 3)
        self.assertEqual(result.streak_bonus, 2)
        self.assertEqual(result.points_earned, 3 * 10 + 2)
        self.assertTrue(result.is_perfect)

    def test_pairs_of_strings_are_accepted(self) -> None:
        result = score_qutrab([("fatha", "damma"), ("damma", "fatha"), ("kasra", "kasra")], streak=0, base_points=15)

        self.assertEqual(result.correct, 1)
        self.assertEqual(result.points_earned, 15)
        self.assertFalse(result.is_perfect)

    def test_requires_exactly_three_matches(self) -> None:
        with self.assertRaises(InvalidSubmission):
            score_qutrab([Match(VariantKey.FATHA, VariantKey.FATHA)], streak=0, base_points=10)

    def test_rejects_reused_keys(self) -> None:
        matches = [
            Match(VariantKey.FATHA, VariantKey.FATHA),
            Match(VariantKey.FATHA, VariantKey.DAMMA),
            Match(VariantKey.KASRA, VariantKey.KASRA),
        ]
        with self.assertRaises(InvalidSubmission):
            score_qutrab(matches, streak=0, base_points=10)

    def test_rejects_unknown_keys(self) -> None:
        with self.assertRaises(InvalidSubmission):
            score_qutrab([("sukun", "fatha"), ("damma", "damma"), ("kasra", "kasra")], streak=0, base_points=10)

    def test_feedback_titles(self) -> None:
        triangle = default_catalog().get(1)

        title, body = qutrab_feedback(triangle, 3)
        self.assertEqual(title, 'أحسنت! مثلث قطرب "حلم" ✅')
        self.assertIn("الكسرة: الأناة وضبط النفس", body)

        self.assertEqual(qutrab_feedback(triangle, 2)[0], "جيد! 2/3 إجابات صحيحة")
        title, body = qutrab_feedback(triangle, 0)
        self.assertEqual(title, "حاول مرة أخرى!")
        self.assertTrue(body.startswith('مثلث "حلم":'))


if __name__ == "__main__":
    unittest.main()
