import sys
from pathlib import Path
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from gmdirector.application.services.seed_policy import derive_run_seed, derive_seed


class SeedPolicyTests(unittest.TestCase):
    def test_same_context_same_seed(self) -> None:
        context = {"seed": 101, "scenario": {"turns": 600, "start": "world"}}
        self.assertEqual(derive_seed("gm.sim.playthrough", context), derive_seed("gm.sim.playthrough", context))

    def test_context_key_order_does_not_change_seed(self) -> None:
        context_a = {"a": 1, "b": {"x": 2, "y": 3}}
        context_b = {"b": {"y": 3, "x": 2}, "a": 1}
        self.assertEqual(derive_seed("gm.run", context_a), derive_seed("gm.run", context_b))

    def test_namespace_changes_seed(self) -> None:
        context = {"value": 10}
        self.assertNotEqual(derive_seed("gm.run", context), derive_seed("gm.sim.playthrough", context))

    def test_non_finite_float_in_context_raises(self) -> None:
        with self.assertRaises(ValueError):
            derive_seed("gm.run", {"boredom": float("nan")})

    def test_numeric_run_ids_are_used_directly(self) -> None:
        self.assertEqual(12345, derive_run_seed(12345))
        self.assertEqual(12345, derive_run_seed("12345"))
        self.assertEqual(2**32 - 1, derive_run_seed(-1))

    def test_text_run_ids_are_hashed_stably(self) -> None:
        first = derive_run_seed("caves-of-dawn")
        self.assertEqual(first, derive_run_seed(" caves-of-dawn "))
        self.assertNotEqual(first, derive_run_seed("caves-of-dusk"))
        self.assertTrue(0 <= first < 2**32)


if __name__ == "__main__":
    unittest.main()
