from __future__ import annotations

import logging
from dataclasses import fields
from typing import Any, Optional

from gmdirector.domain import constants
from gmdirector.domain.models.gm_state import (
    ActionStatus,
    Delivery,
    GmState,
    SchedulerAction,
    SchedulerState,
    parse_enum,
)

logger = logging.getLogger(__name__)

_ACTION_FIELDS = {item.name for item in fields(SchedulerAction)} - {"id"}
_DELIVERABLE = (ActionStatus.SCHEDULED, ActionStatus.READY)


class Scheduler:
    """Arbitrates scheduled narrative actions under global rate limits."""

    def __init__(
        self,
        *,
        min_auto_spacing: int = constants.SCHEDULER_MIN_AUTO_SPACING,
        window_turns: int = constants.SCHEDULER_WINDOW_TURNS,
        max_per_window: int = constants.SCHEDULER_MAX_PER_WINDOW,
    ) -> None:
        self.min_auto_spacing = max(0, int(min_auto_spacing))
        self.window_turns = max(1, int(window_turns))
        self.max_per_window = max(1, int(max_per_window))

    def upsert(self, state: GmState, action_id: str, **changes: Any) -> Optional[SchedulerAction]:
        key = str(action_id or "").strip()
        if not key:
            return None
        unknown = set(changes) - _ACTION_FIELDS
        if unknown:
            raise ValueError(f"Unknown scheduler action fields: {sorted(unknown)}")

        sched = state.scheduler
        action = sched.actions.get(key)
        if action is None:
            action = SchedulerAction(id=key, kind=str(changes.get("kind") or ""))
            sched.actions[key] = action
            sched.queue.append(key)

        for name, value in changes.items():
            if name == "status":
                value = parse_enum(ActionStatus, value, ActionStatus.SCHEDULED)
            elif name == "delivery":
                value = parse_enum(Delivery, value, Delivery.AUTO)
            setattr(action, name, value)
        return action

    def count_recent(self, sched: SchedulerState, turn: int) -> int:
        low = turn - self.window_turns
        return sum(1 for row in sched.history if low <= int(row.get("turn", -1)) <= turn)

    def can_deliver(self, state: GmState, action: SchedulerAction, turn: int) -> bool:
        if not action.allow_multiple_per_turn and state.last_action_turn == turn:
            return False
        if action.delivery == Delivery.AUTO:
            last_auto = state.scheduler.last_auto_turn
            if last_auto is not None and turn - last_auto < self.min_auto_spacing:
                return False
        return self.count_recent(state.scheduler, turn) < self.max_per_window

    def expire_stale(self, state: GmState, turn: int) -> int:
        expired = 0
        for action_id in state.scheduler.queue:
            action = state.scheduler.actions.get(action_id)
            if action is None or action.status not in _DELIVERABLE:
                continue
            if 0 < action.latest_turn < turn:
                action.status = ActionStatus.EXPIRED
                expired += 1
                logger.debug("Scheduler action expired", extra={"action_id": action_id, "turn": turn})
        return expired

    def pick_next(self, state: GmState, turn: int) -> Optional[SchedulerAction]:
        """Best deliverable action for ``turn``, or None. Does not consume it."""

        turn = max(0, int(turn))
        self.expire_stale(state, turn)
        best: Optional[SchedulerAction] = None
        for action_id in state.scheduler.queue:
            action = state.scheduler.actions.get(action_id)
            if action is None or action.status not in _DELIVERABLE:
                continue
            if not action.in_window(turn):
                continue
            if not self.can_deliver(state, action, turn):
                continue
            if best is None or self._outranks(action, best):
                best = action
        return best

    @staticmethod
    def _outranks(candidate: SchedulerAction, best: SchedulerAction) -> bool:
        if candidate.priority != best.priority:
            return candidate.priority > best.priority
        if candidate.earliest_turn != best.earliest_turn:
            return candidate.earliest_turn < best.earliest_turn
        if candidate.created_turn != best.created_turn:
            return candidate.created_turn < best.created_turn
        return candidate.id < best.id

    def consume(self, state: GmState, action: SchedulerAction, turn: int) -> None:
        turn = max(0, int(turn))
        action.status = ActionStatus.CONSUMED
        action.consumed_turn = turn
        state.last_action_turn = turn

        sched = state.scheduler
        sched.history.insert(0, {"turn": turn, "id": action.id})
        del sched.history[constants.SCHEDULER_HISTORY_LIMIT:]
        if action.delivery == Delivery.AUTO:
            sched.last_auto_turn = turn
        logger.debug(
            "Scheduler action consumed",
            extra={"action_id": action.id, "kind": action.kind, "turn": turn},
        )
