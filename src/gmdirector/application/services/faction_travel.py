from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from gmdirector.application.dtos import NO_INTENT, ChannelDecision, EncounterIntent, GuardFineIntent, Intent
from gmdirector.application.services.intent_log import record_decision
from gmdirector.application.services.scheduler import Scheduler
from gmdirector.domain.models.gm_state import ActionStatus, Delivery, GmState, SchedulerAction, Tally

logger = logging.getLogger(__name__)

CHANNEL = "faction_travel"


class FactionEventKind(str, Enum):
    GUARD_FINE = "guard_fine"
    BANDIT_BOUNTY = "bandit_bounty"
    TROLL_HUNT = "troll_hunt"

    @classmethod
    def parse(cls, raw: Any) -> Optional["FactionEventKind"]:
        key = str(raw or "").strip().lower()
        return _KIND_ALIASES.get(key)


_KIND_ALIASES = {
    "guard_fine": FactionEventKind.GUARD_FINE,
    "guard": FactionEventKind.GUARD_FINE,
    "guard_fine_event": FactionEventKind.GUARD_FINE,
    "bandit_bounty": FactionEventKind.BANDIT_BOUNTY,
    "bandit": FactionEventKind.BANDIT_BOUNTY,
    "bounty": FactionEventKind.BANDIT_BOUNTY,
    "troll_hunt": FactionEventKind.TROLL_HUNT,
    "troll": FactionEventKind.TROLL_HUNT,
    "trolls": FactionEventKind.TROLL_HUNT,
}


@dataclass(frozen=True)
class FactionEventRule:
    kind: FactionEventKind
    slot: str
    action_id: str
    action_kind: str
    priority: int
    delivery: Delivery
    min_seen: int
    min_score: float
    window: Tuple[int, int]
    intent: Intent

    def payload(self) -> Dict[str, Any]:
        return self.intent.to_dict()


RULES: Dict[FactionEventKind, FactionEventRule] = {
    FactionEventKind.GUARD_FINE: FactionEventRule(
        kind=FactionEventKind.GUARD_FINE,
        slot="guardFine",
        action_id="fe:guardFine",
        action_kind="travel.guardFine",
        priority=300,
        delivery=Delivery.CONFIRM,
        min_seen=3,
        min_score=0.6,
        window=(30, 240),
        intent=GuardFineIntent(),
    ),
    FactionEventKind.BANDIT_BOUNTY: FactionEventRule(
        kind=FactionEventKind.BANDIT_BOUNTY,
        slot="banditBounty",
        action_id="fe:banditBounty",
        action_kind="travel.banditBounty",
        priority=200,
        delivery=Delivery.AUTO,
        min_seen=8,
        min_score=0.8,
        window=(50, 300),
        intent=EncounterIntent(encounter_id="gm_bandit_bounty"),
    ),
    FactionEventKind.TROLL_HUNT: FactionEventRule(
        kind=FactionEventKind.TROLL_HUNT,
        slot="trollHunt",
        action_id="fe:trollHunt",
        action_kind="travel.trollHunt",
        priority=100,
        delivery=Delivery.AUTO,
        min_seen=4,
        min_score=0.7,
        window=(40, 260),
        intent=EncounterIntent(encounter_id="gm_troll_hunt"),
    ),
}

_RULES_BY_ACTION = {rule.action_id: rule for rule in RULES.values()}
_OCCUPIED = (ActionStatus.SCHEDULED, ActionStatus.READY, ActionStatus.CONSUMED)


class FactionTravel:
    """Rare scripted travel encounters unlocked by faction reputation."""

    def __init__(self, scheduler: Scheduler) -> None:
        self.scheduler = scheduler

    def slot_is_free(self, state: GmState, kind: FactionEventKind) -> bool:
        action = state.scheduler.actions.get(RULES[kind].action_id)
        return action is None or action.status not in _OCCUPIED

    def maybe_schedule(self, state: GmState, turn: int) -> list:
        """Schedule every faction event whose threshold is met; returns the kinds scheduled."""

        turn = max(0, int(turn))
        scheduled = []
        for kind in (FactionEventKind.BANDIT_BOUNTY, FactionEventKind.GUARD_FINE, FactionEventKind.TROLL_HUNT):
            if not self.slot_is_free(state, kind):
                continue
            source = self._source_tally(state, kind)
            rule = RULES[kind]
            if source is None or source.seen < rule.min_seen or source.score < rule.min_score:
                continue
            self._schedule(state, rule, turn, earliest=turn + rule.window[0], latest=turn + rule.window[1])
            scheduled.append(kind)
            logger.info("Faction travel event scheduled", extra={"event_kind": kind.value, "turn": turn})
        return scheduled

    @staticmethod
    def _source_tally(state: GmState, kind: FactionEventKind) -> Optional[Tally]:
        if kind == FactionEventKind.BANDIT_BOUNTY:
            return state.factions.get("bandit")
        if kind == FactionEventKind.TROLL_HUNT:
            return state.families.get("troll") or state.factions.get("trolls")

        best: Optional[Tally] = None
        for key in ("guard", "town"):
            candidate = state.factions.get(key)
            if candidate is None:
                continue
            if best is None or (candidate.seen, candidate.score) > (best.seen, best.score):
                best = candidate
        return best

    def _schedule(self, state: GmState, rule: FactionEventRule, turn: int, *, earliest: int, latest: int) -> SchedulerAction:
        return self.scheduler.upsert(
            state,
            rule.action_id,
            kind=rule.action_kind,
            status=ActionStatus.SCHEDULED,
            priority=rule.priority,
            delivery=rule.delivery,
            allow_multiple_per_turn=False,
            created_turn=turn,
            earliest_turn=earliest,
            latest_turn=latest,
            payload=rule.payload(),
            consumed_turn=None,
        )

    def force(self, state: GmState, kind: Any, turn: int) -> Intent:
        """Schedule ``kind`` for delivery on exactly ``turn``, ignoring reputation thresholds."""

        parsed = FactionEventKind.parse(kind)
        if parsed is None:
            logger.warning("Unknown faction travel event kind", extra={"event_kind": str(kind)})
            return NO_INTENT
        turn = max(0, int(turn))
        rule = RULES[parsed]
        self._schedule(state, rule, turn, earliest=turn, latest=turn)
        record_decision(state, ChannelDecision(channel=CHANNEL, intent=rule.intent, reason="forced"), turn)
        return rule.intent

    def next_event(self, state: GmState, turn: int) -> ChannelDecision:
        turn = max(0, int(turn))
        action = self.scheduler.pick_next(state, turn)
        if action is None:
            return ChannelDecision(channel=CHANNEL, intent=NO_INTENT, reason="no.action")
        rule = _RULES_BY_ACTION.get(action.id)
        if rule is None:
            return ChannelDecision(channel=CHANNEL, intent=NO_INTENT, reason="no.action")
        self.scheduler.consume(state, action, turn)
        return record_decision(state, ChannelDecision(channel=CHANNEL, intent=rule.intent), turn)

    def slot_projection(self, state: GmState) -> Dict[str, Dict[str, Any]]:
        slots = {}
        for rule in RULES.values():
            action = state.scheduler.actions.get(rule.action_id)
            if action is None or action.status not in _OCCUPIED:
                slots[rule.slot] = {"status": "none", "earliest_turn": None, "latest_turn": None}
                continue
            status = "consumed" if action.status == ActionStatus.CONSUMED else "scheduled"
            slots[rule.slot] = {
                "status": status,
                "earliest_turn": action.earliest_turn,
                "latest_turn": action.latest_turn,
            }
        return slots
