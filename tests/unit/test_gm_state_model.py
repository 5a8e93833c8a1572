import json
import sys
from pathlib import Path
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from gmdirector.domain import constants
from gmdirector.domain.models.gm_state import (
    ActionStatus,
    Delivery,
    GmState,
    MechanicId,
    MoodLabel,
    SchedulerAction,
    Tally,
    TraitId,
)


class GmStateModelTests(unittest.TestCase):
    def test_default_state_is_json_serializable(self) -> None:
        state = GmState.create(99)
        payload = json.loads(json.dumps(state.to_dict()))

        self.assertEqual(constants.SCHEMA_VERSION, payload["schema_version"])
        self.assertEqual(99, payload["run_seed"])
        self.assertEqual(set(item.value for item in TraitId), set(payload["traits"]))
        self.assertEqual(set(item.value for item in MechanicId), set(payload["mechanics"]))
        self.assertIsNone(payload["last_action_turn"])

    def test_loader_repairs_malformed_substructures(self) -> None:
        state = GmState.from_dict(
            {
                "run_seed": 7,
                "mood": {"primary": "furious", "valence": 4.0, "arousal": "x"},
                "boredom": {"level": -3, "turns_since_last_interesting_event": -5},
                "stats": {"total_turns": "12", "mode_turns": {"town": -1, "world": 3.9}},
                "traits": {"trollSlayer": {"seen": None, "positive": 2}},
                "mechanics": "broken",
                "families": {"": {"seen": 3}, "troll": {"seen": 2}},
                "rng": {"algo": "xorshift", "state": 55, "calls": 3},
                "debug": {"last_events": [{"type": "a"}, "junk"], "last_tick_turn": -4},
                "last_action_turn": -1,
            }
        )

        self.assertEqual(MoodLabel.NEUTRAL, state.mood.primary)
        self.assertEqual(1.0, state.mood.valence)
        self.assertEqual(0.0, state.mood.arousal)
        self.assertEqual(0.0, state.boredom.level)
        self.assertEqual(0, state.boredom.turns_since_last_interesting_event)
        self.assertEqual(12, state.stats.total_turns)
        self.assertEqual({"town": 0, "world": 3}, state.stats.mode_turns)
        self.assertEqual(0, state.traits[TraitId.TROLL_SLAYER].seen)
        self.assertEqual(2, state.traits[TraitId.TROLL_SLAYER].positive)
        self.assertEqual(set(MechanicId), set(state.mechanics))
        self.assertEqual(["troll"], list(state.families))
        self.assertTrue(state.rng.pristine)
        self.assertEqual([{"type": "a"}], state.debug.last_events)
        self.assertIsNone(state.debug.last_tick_turn)
        self.assertIsNone(state.last_action_turn)

    def test_scheduler_queue_is_deduplicated_and_completed(self) -> None:
        state = GmState.from_dict(
            {
                "scheduler": {
                    "actions": {
                        "b": {"kind": "x", "status": "scheduled"},
                        "a": {"kind": "y", "status": "bogus", "delivery": "teleport"},
                    },
                    "queue": ["b", "b", "ghost"],
                    "history": [{"turn": 3, "id": "b"}, {"turn": -1, "id": "a"}],
                }
            }
        )

        self.assertEqual(["b", "a"], state.scheduler.queue)
        self.assertEqual(ActionStatus.SCHEDULED, state.scheduler.actions["a"].status)
        self.assertEqual(Delivery.AUTO, state.scheduler.actions["a"].delivery)
        self.assertEqual([{"turn": 3, "id": "b"}], state.scheduler.history)

    def test_normalize_keeps_valid_values_and_clamps_invalid_ones(self) -> None:
        state = GmState.create(1)
        state.boredom.level = 0.42
        state.mood.valence = -7.0
        state.stats.total_turns = -3

        state.normalize()

        self.assertEqual(0.42, state.boredom.level)
        self.assertEqual(-1.0, state.mood.valence)
        self.assertEqual(0, state.stats.total_turns)

    def test_normalize_repairs_existing_objects(self) -> None:
        state = GmState.create(1)
        mood = state.mood
        quest_board = state.mechanics[MechanicId.QUEST_BOARD]
        troll_slayer = state.traits[TraitId.TROLL_SLAYER]
        queue = state.scheduler.queue
        state.families["wolf"] = Tally(seen=2)
        wolf = state.families["wolf"]
        mood.arousal = 3.0
        quest_board.dismiss = -2
        state.families[""] = Tally(seen=1)

        state.normalize()

        self.assertIs(mood, state.mood)
        self.assertIs(quest_board, state.mechanics[MechanicId.QUEST_BOARD])
        self.assertIs(troll_slayer, state.traits[TraitId.TROLL_SLAYER])
        self.assertIs(queue, state.scheduler.queue)
        self.assertIs(wolf, state.families["wolf"])
        self.assertEqual(1.0, mood.arousal)
        self.assertEqual(0, quest_board.dismiss)
        self.assertEqual(["wolf"], list(state.families))

    def test_debug_rings_are_bounded_newest_first(self) -> None:
        state = GmState.create(1)
        for turn in range(constants.MAX_DEBUG_EVENTS + 5):
            state.debug.push_event({"type": "t", "turn": turn})
        for turn in range(constants.MAX_INTENT_HISTORY + 5):
            state.debug.push_intent({"kind": "none", "turn": turn})

        self.assertEqual(constants.MAX_DEBUG_EVENTS, len(state.debug.last_events))
        self.assertEqual(constants.MAX_DEBUG_EVENTS + 4, state.debug.last_events[0]["turn"])
        self.assertEqual(constants.MAX_INTENT_HISTORY, len(state.debug.intent_history))
        self.assertEqual(state.debug.intent_history[0], state.debug.last_intent)

    def test_tally_score(self) -> None:
        self.assertEqual(0.0, Tally().score)
        self.assertEqual(0.5, Tally(seen=4, positive=3, negative=1).score)

    def test_action_window_with_open_end(self) -> None:
        action = SchedulerAction(id="x", kind="k", earliest_turn=5, latest_turn=0)
        self.assertFalse(action.in_window(4))
        self.assertTrue(action.in_window(10_000))


if __name__ == "__main__":
    unittest.main()
