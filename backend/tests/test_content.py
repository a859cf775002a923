import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from backend.features.arabic_roots_game import content
from backend.features.arabic_roots_game.config import GameSettings, load_settings
from backend.features.arabic_roots_game.errors import ContentError
from backend.features.arabic_roots_game.lexicon import LexiconStore, QutrabCatalog, default_catalog, default_lexicon
from backend.features.arabic_roots_game.models import Difficulty, VariantKey, normalize_root


class BundledDatasetTest(unittest.TestCase):
    def test_lexicon_loads_every_difficulty(self) -> None:
        stats = default_lexicon().stats()

        self.assertGreater(stats["total"], 0)
        self.assertEqual(stats["total"], stats["easy"] + stats["medium"] + stats["hard"])
        for tier in Difficulty:
            self.assertGreater(stats[tier.value], 0)

    def test_lexicon_contains_kataba_but_not_its_anagram(self) -> None:
        lexicon = default_lexicon()

        self.assertTrue(lexicon.is_valid("كتب"))
        self.assertFalse(lexicon.is_valid("كبت"))
        self.assertIsNone(lexicon.lookup("كبت"))
        self.assertEqual(lexicon.lookup("ك ت ب").difficulty, Difficulty.EASY)

    def test_spreadsheet_fields_are_carried_over(self) -> None:
        entry = default_lexicon().lookup("علم")

        self.assertEqual(entry.meaning_en, "Knowledge")
        self.assertIn("عالِم", entry.examples)
        self.assertTrue(entry.success_message.startswith("أحسنت!"))
        self.assertIsNotNone(entry.poetry_example)
        self.assertIsNone(default_lexicon().lookup("قرأ").poetry_example)

    def test_catalog_has_twenty_triangles(self) -> None:
        catalog = default_catalog()

        self.assertEqual(len(catalog), 20)
        hilm = catalog.get(1)
        self.assertEqual(hilm.base, "حلم")
        self.assertEqual(hilm.variant(VariantKey.KASRA).meaning, "الأناة وضبط النفس")

    def test_proverbs_and_facts_load(self) -> None:
        proverbs = content.load_proverbs()
        facts = content.load_root_facts()

        self.assertEqual(len(proverbs), 10)
        self.assertEqual(proverbs[0].text, "العلم نور والجهل ظلام")
        self.assertIn("كتب", facts)


class ParsingTest(unittest.TestCase):
    def test_difficulty_labels(self) -> None:
        self.assertEqual(content.map_difficulty("🟢 سهل"), Difficulty.EASY)
        self.assertEqual(content.map_difficulty("🟡"), Difficulty.MEDIUM)
        self.assertEqual(content.map_difficulty("صعب"), Difficulty.HARD)
        self.assertEqual(content.map_difficulty("hard"), Difficulty.HARD)
        self.assertEqual(content.map_difficulty(""), Difficulty.MEDIUM)
        self.assertEqual(content.map_difficulty(None), Difficulty.MEDIUM)

    def test_normalize_root_strips_spaces_and_tatweel(self) -> None:
        self.assertEqual(normalize_root(" ك ت ب "), "كتب")
        self.assertEqual(normalize_root("و ج هـ"), "وجه")

    def test_root_record_with_arabic_keys(self) -> None:
        entries = content.parse_roots(
            [
                {
                    "الجذر": "د ر س",
                    "الشرح المختصر": "التعلم",
                    "أمثلة توضيحية": "دَرَسَ، مَدرَسة",
                    "المستوى": "🔴 صعب",
                    "الأمثلة الشعرية": "-",
                }
            ]
        )

        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0].root, "درس")
        self.assertEqual(entries[0].examples, ("دَرَسَ", "مَدرَسة"))
        self.assertEqual(entries[0].difficulty, Difficulty.HARD)
        self.assertIsNone(entries[0].poetry_example)

    def test_malformed_root_record_raises_content_error(self) -> None:
        with self.assertRaises(ContentError):
            content.parse_roots([{"الجذر": "كت", "الشرح المختصر": "x"}])
        with self.assertRaises(ContentError):
            content.parse_roots([{"الجذر": "كتب"}])
        with self.assertRaises(ContentError):
            content.parse_roots("not a list")

    def test_missing_dataset_raises_content_error(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(ContentError):
                content.load_roots(Path(tmp))

    def test_invalid_json_raises_content_error(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            (Path(tmp) / content.QUTRAB_FILE).write_text("{not json", encoding="utf-8")
            with self.assertRaises(ContentError):
                content.load_triangles(Path(tmp))

    def test_duplicate_triangle_ids_are_rejected(self) -> None:
        record = {
            "id": 1,
            "base": "حلم",
            "fatha": {"word": "حَلَم", "meaning": "a"},
            "damma": {"word": "حُلُم", "meaning": "b"},
            "kasra": {"word": "حِلْم", "meaning": "c"},
        }
        triangles = content.parse_triangles([record, dict(record)])

        with self.assertRaises(ContentError):
            QutrabCatalog(triangles)

    def test_duplicate_roots_keep_the_first_entry(self) -> None:
        entries = content.parse_roots(
            [
                {"الجذر": "كتب", "الشرح المختصر": "first"},
                {"الجذر": "ك ت ب", "الشرح المختصر": "second"},
            ]
        )

        lexicon = LexiconStore(entries)

        self.assertEqual(len(lexicon), 1)
        self.assertEqual(lexicon.lookup("كتب").meaning, "first")


class SettingsTest(unittest.TestCase):
    def test_environment_overrides(self) -> None:
        env = {
            "ARABIC_GAME_DB_PATH": ":memory:",
            "ARABIC_GAME_EASY_UNTIL_LEVEL": "2",
            "ARABIC_GAME_SELECTION_ATTEMPTS": "25",
        }
        with mock.patch.dict(os.environ, env):
            settings = load_settings()

        self.assertEqual(settings.db_path, ":memory:")
        self.assertEqual(settings.escalation_thresholds["easy"], (2, "medium"))
        self.assertEqual(settings.selection_max_attempts, 25)

    def test_non_integer_override_is_rejected(self) -> None:
        with mock.patch.dict(os.environ, {"ARABIC_GAME_SELECTION_ATTEMPTS": "many"}):
            with self.assertRaises(ValueError):
                load_settings()

    def test_profiles_match_the_mobile_tables(self) -> None:
        settings = GameSettings()

        self.assertEqual(settings.profile("roots", "easy").rounds_per_level, 3)
        self.assertEqual(settings.profile("roots", "hard").base_points, 25)
        self.assertEqual(settings.profile("qutrab", "medium").rounds_per_level, 7)
        self.assertEqual(settings.profile("roots", "medium").hint_cost, 10)
        with self.assertRaises(ValueError):
            settings.profile("roots", "legendary")


class DatasetFileTest(unittest.TestCase):
    def test_bundled_roots_file_uses_sheet_wrapper(self) -> None:
        raw = json.loads((content.DATA_DIR / content.ROOTS_FILE).read_text(encoding="utf-8"))

        self.assertEqual(list(raw), ["Feuil1"])


if __name__ == "__main__":
    unittest.main()
