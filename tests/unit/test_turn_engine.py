import sys
from pathlib import Path
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from gmdirector.application.services.mood import apply_mood_impulse, label_mood
from gmdirector.application.services.turn_engine import TurnEngine
from gmdirector.domain.models.gm_state import GmState, InterestingEvent, MoodLabel


class TurnEngineTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = TurnEngine()
        self.state = GmState.create(1)

    def test_first_tick_starts_calm_and_neutral(self) -> None:
        self.assertTrue(self.engine.tick(self.state, turn=0, mode="world"))

        self.assertEqual(1, self.state.stats.total_turns)
        self.assertEqual({"world": 1}, self.state.stats.mode_turns)
        self.assertEqual(1, self.state.boredom.turns_since_last_interesting_event)
        self.assertLess(self.state.boredom.level, 0.01)
        self.assertEqual(MoodLabel.NEUTRAL, self.state.mood.primary)
        self.assertEqual(0, self.state.debug.last_tick_turn)

    def test_boredom_converges_towards_one_without_interesting_events(self) -> None:
        for turn in range(1000):
            self.engine.tick(self.state, turn=turn, mode="dungeon")

        self.assertGreater(self.state.boredom.level, 0.99)
        self.assertEqual(1000, self.state.boredom.turns_since_last_interesting_event)
        self.assertEqual(MoodLabel.STERN, self.state.mood.primary)
        self.assertLess(self.state.mood.valence, -0.45)
        self.assertGreater(self.state.mood.arousal, 0.7)

    def test_same_turn_ticks_converge_on_held_target(self) -> None:
        for held, expected_label in ((0, MoodLabel.NEUTRAL), (100, MoodLabel.NEUTRAL), (200, MoodLabel.STERN)):
            with self.subTest(held=held):
                state = GmState.create(1)
                self.engine.tick(state, turn=0, mode="world")
                state.boredom.turns_since_last_interesting_event = held
                for _ in range(60):
                    self.engine.tick(state, turn=0, mode="world")

                self.assertAlmostEqual(held / 200, state.boredom.level, delta=0.03)
                self.assertEqual(expected_label, state.mood.primary)

    def test_boredom_level_is_monotone_while_nothing_happens(self) -> None:
        levels = []
        for turn in range(50):
            self.engine.tick(self.state, turn=turn, mode="world")
            levels.append(self.state.boredom.level)
        self.assertEqual(sorted(levels), levels)

    def test_repeated_tick_for_same_turn_does_not_count_twice(self) -> None:
        self.engine.tick(self.state, turn=5, mode="town")
        level_after_first = self.state.boredom.level

        self.assertFalse(self.engine.tick(self.state, turn=5, mode="town"))

        self.assertEqual(1, self.state.stats.total_turns)
        self.assertEqual(1, self.state.boredom.turns_since_last_interesting_event)
        self.assertEqual(1, self.state.debug.counters.ticks)
        self.assertGreaterEqual(self.state.boredom.level, level_after_first)

    def test_interesting_event_on_current_turn_keeps_timer_at_zero(self) -> None:
        self.state.boredom.turns_since_last_interesting_event = 0
        self.state.boredom.last_interesting_event = InterestingEvent(type="combat.kill", scope="world", turn=7)

        self.engine.tick(self.state, turn=7, mode="world")
        self.assertEqual(0, self.state.boredom.turns_since_last_interesting_event)

        self.engine.tick(self.state, turn=8, mode="world")
        self.assertEqual(1, self.state.boredom.turns_since_last_interesting_event)

    def test_transient_mood_decays_each_new_turn(self) -> None:
        self.state.mood.transient_valence = 0.5
        self.engine.tick(self.state, turn=1, mode="world")
        self.assertAlmostEqual(0.45, self.state.mood.transient_valence)


class MoodTests(unittest.TestCase):
    def test_label_quadrants(self) -> None:
        self.assertEqual(MoodLabel.CALM, label_mood(0.9, 0.1))
        self.assertEqual(MoodLabel.CURIOUS, label_mood(0.5, 0.4))
        self.assertEqual(MoodLabel.BORED, label_mood(-0.5, 0.4))
        self.assertEqual(MoodLabel.NEUTRAL, label_mood(-0.175, 0.5))
        self.assertEqual(MoodLabel.PLAYFUL, label_mood(0.5, 0.8))
        self.assertEqual(MoodLabel.STERN, label_mood(-0.5, 0.8))
        self.assertEqual(MoodLabel.RESTLESS, label_mood(0.0, 0.8))

    def test_boredom_amplifies_negative_impulses(self) -> None:
        state = GmState.create(1)
        state.boredom.level = 1.0

        apply_mood_impulse(state, -0.1, 0.1)

        self.assertAlmostEqual(-0.15, state.mood.transient_valence)
        self.assertAlmostEqual(0.15, state.mood.transient_arousal)
        self.assertEqual(MoodLabel.NEUTRAL, state.mood.primary)

    def test_boredom_mutes_positive_impulses(self) -> None:
        state = GmState.create(1)
        state.boredom.level = 1.0

        apply_mood_impulse(state, 0.2, 0.0)

        self.assertAlmostEqual(0.1, state.mood.transient_valence)

    def test_transient_mood_is_clamped(self) -> None:
        state = GmState.create(1)
        for _ in range(100):
            apply_mood_impulse(state, 0.3, 0.3)
        self.assertEqual(1.0, state.mood.transient_valence)
        self.assertEqual(1.0, state.mood.transient_arousal)


if __name__ == "__main__":
    unittest.main()
