import random
import unittest

from backend.features.arabic_roots_game.lexicon import LexiconStore
from backend.features.arabic_roots_game.models import Difficulty, RootEntry
from backend.features.arabic_roots_game.permutations import (
    canonical_combo,
    classify,
    fisher_yates,
    permute,
)


def _entry(root: str) -> RootEntry:
    return RootEntry(root=root, meaning=root, meaning_en="", examples=(), difficulty=Difficulty.EASY)


class PermuteTest(unittest.TestCase):
    def test_distinct_letters_give_six_distinct_orderings_in_fixed_order(self) -> None:
        result = permute(["ك", "ت", "ب"])

        self.assertEqual(result, ("كتب", "كبت", "تكب", "تبك", "بكت", "بتك"))
        self.assertEqual(len(set(result)), 6)

    def test_repeated_letters_keep_six_slots(self) -> None:
        result = permute(("م", "د", "د"))

        self.assertEqual(len(result), 6)
        self.assertEqual(len(set(result)), 3)

    def test_rejects_anything_but_three_single_letters(self) -> None:
        for bad in (["ك", "ت"], ["ك", "ت", "ب", "س"], ["كت", "ب", "س"]):
            with self.subTest(letters=bad):
                with self.assertRaises(ValueError):
                    permute(bad)


class ClassifyTest(unittest.TestCase):
    def setUp(self) -> None:
        self.lexicon = LexiconStore([_entry("حمل"), _entry("لحم"), _entry("حلم"), _entry("مدد")])

    def test_keeps_permutation_order(self) -> None:
        valid = classify(permute(["ح", "ل", "م"]), self.lexicon)

        self.assertEqual(valid, ("حلم", "حمل", "لحم"))

    def test_valid_roots_are_a_subset_of_the_permutations(self) -> None:
        perms = permute(["ل", "م", "ح"])
        valid = classify(perms, self.lexicon)

        self.assertTrue(set(valid) <= set(perms))
        self.assertTrue(all(self.lexicon.is_valid(root) for root in valid))

    def test_duplicate_orderings_are_reported_once(self) -> None:
        valid = classify(permute(["م", "د", "د"]), self.lexicon)

        self.assertEqual(valid, ("مدد",))


class CombinationHelpersTest(unittest.TestCase):
    def test_canonical_combo_is_shared_by_every_ordering(self) -> None:
        combos = {canonical_combo(list(p)) for p in permute(["ع", "ل", "م"])}

        self.assertEqual(len(combos), 1)

    def test_fisher_yates_returns_a_permutation_without_touching_the_input(self) -> None:
        items = [1, 2, 3, 4, 5]

        shuffled = fisher_yates(items, random.Random(7))

        self.assertEqual(sorted(shuffled), items)
        self.assertEqual(items, [1, 2, 3, 4, 5])

    def test_fisher_yates_is_reproducible_with_a_seed(self) -> None:
        first = fisher_yates(range(10), random.Random(42))
        second = fisher_yates(range(10), random.Random(42))

        self.assertEqual(first, second)


if __name__ == "__main__":
    unittest.main()
