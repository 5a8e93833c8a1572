import sys
from pathlib import Path
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from gmdirector.application.services.scheduler import Scheduler
from gmdirector.domain.models.gm_state import ActionStatus, Delivery, GmState


class SchedulerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.scheduler = Scheduler()
        self.state = GmState.create(1)

    def _add(self, action_id: str, **changes):
        defaults = {"kind": "test", "earliest_turn": 0, "latest_turn": 0}
        defaults.update(changes)
        return self.scheduler.upsert(self.state, action_id, **defaults)

    def _deliver(self, turn: int):
        action = self.scheduler.pick_next(self.state, turn)
        if action is not None:
            self.scheduler.consume(self.state, action, turn)
        return action

    def test_upsert_creates_once_and_updates_in_place(self) -> None:
        self._add("a", priority=1)
        self._add("a", priority=7, delivery="confirm", status="bogus")

        action = self.state.scheduler.actions["a"]
        self.assertEqual(["a"], self.state.scheduler.queue)
        self.assertEqual(7, action.priority)
        self.assertEqual(Delivery.CONFIRM, action.delivery)
        self.assertEqual(ActionStatus.SCHEDULED, action.status)

    def test_upsert_rejects_blank_ids_and_unknown_fields(self) -> None:
        self.assertIsNone(self.scheduler.upsert(self.state, "  ", kind="x"))
        with self.assertRaises(ValueError):
            self.scheduler.upsert(self.state, "a", colour="red")

    def test_priority_then_earliest_then_created_then_id(self) -> None:
        self._add("low", priority=1)
        self._add("late", priority=5, earliest_turn=3)
        self._add("b-early", priority=5, earliest_turn=1, created_turn=2)
        self._add("a-early", priority=5, earliest_turn=1, created_turn=2)
        self._add("c-early", priority=5, earliest_turn=1, created_turn=1)

        self.assertEqual("c-early", self.scheduler.pick_next(self.state, 10).id)
        self.state.scheduler.actions["c-early"].status = ActionStatus.CANCELLED
        self.assertEqual("a-early", self.scheduler.pick_next(self.state, 10).id)

    def test_pick_next_does_not_consume(self) -> None:
        self._add("a")
        self.assertEqual("a", self.scheduler.pick_next(self.state, 5).id)
        self.assertEqual("a", self.scheduler.pick_next(self.state, 5).id)
        self.assertEqual([], self.state.scheduler.history)

    def test_actions_wait_for_their_window(self) -> None:
        self._add("a", earliest_turn=50, latest_turn=60)
        self.assertIsNone(self.scheduler.pick_next(self.state, 49))
        self.assertEqual("a", self.scheduler.pick_next(self.state, 50).id)

    def test_actions_past_their_window_expire(self) -> None:
        self._add("a", earliest_turn=0, latest_turn=5)

        self.assertIsNone(self.scheduler.pick_next(self.state, 10))
        self.assertEqual(ActionStatus.EXPIRED, self.state.scheduler.actions["a"].status)

    def test_consume_records_history_and_marks_action(self) -> None:
        self._add("a")
        self._deliver(12)

        action = self.state.scheduler.actions["a"]
        self.assertEqual(ActionStatus.CONSUMED, action.status)
        self.assertEqual(12, action.consumed_turn)
        self.assertEqual(12, self.state.last_action_turn)
        self.assertEqual(12, self.state.scheduler.last_auto_turn)
        self.assertEqual([{"turn": 12, "id": "a"}], self.state.scheduler.history)
        self.assertIsNone(self._deliver(40))

    def test_auto_actions_respect_minimum_spacing(self) -> None:
        self._add("a")
        self._add("b")
        self._deliver(10)

        self.assertIsNone(self.scheduler.pick_next(self.state, 29))
        self.assertEqual("b", self.scheduler.pick_next(self.state, 30).id)

    def test_confirm_actions_skip_auto_spacing(self) -> None:
        self._add("a")
        self._add("b", delivery=Delivery.CONFIRM)
        self._deliver(10)

        self.assertEqual("b", self.scheduler.pick_next(self.state, 11).id)

    def test_one_action_per_turn_unless_allowed(self) -> None:
        self._add("a", delivery=Delivery.CONFIRM)
        self._add("b", delivery=Delivery.CONFIRM)
        self._deliver(10)
        self.assertIsNone(self.scheduler.pick_next(self.state, 10))

        self._add("b", allow_multiple_per_turn=True)
        self.assertEqual("b", self.scheduler.pick_next(self.state, 10).id)

    def test_window_cap_limits_deliveries(self) -> None:
        for index in range(5):
            self._add(f"a{index}", delivery=Delivery.CONFIRM)
        for turn in range(4):
            self.assertIsNotNone(self._deliver(turn))

        self.assertEqual(4, self.scheduler.count_recent(self.state.scheduler, 100))
        self.assertIsNone(self.scheduler.pick_next(self.state, 100))
        self.assertEqual("a4", self.scheduler.pick_next(self.state, 204).id)

    def test_history_is_bounded_newest_first(self) -> None:
        scheduler = Scheduler(max_per_window=10_000)
        for turn in range(250):
            action = scheduler.upsert(self.state, f"x{turn}", kind="k", delivery=Delivery.MARKER)
            scheduler.consume(self.state, action, turn)

        self.assertEqual(200, len(self.state.scheduler.history))
        self.assertEqual(249, self.state.scheduler.history[0]["turn"])


if __name__ == "__main__":
    unittest.main()
