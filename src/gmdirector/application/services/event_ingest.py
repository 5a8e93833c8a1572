from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from gmdirector.application.services.faction_travel import FactionTravel
from gmdirector.application.services.mood import apply_mood_impulse
from gmdirector.domain import constants
from gmdirector.domain.events import TelemetryEvent
from gmdirector.domain.models.gm_state import GmState, InterestingEvent, MechanicId, Tally, TraitId, parse_enum

logger = logging.getLogger(__name__)

MOOD_IMPULSES = {
    "encounter.exit": (0.02, 0.01),
    "quest.complete": (0.03, 0.0),
}

CARAVAN_EVENTS = ("caravan.accepted", "caravan.completed", "caravan.attacked")
GUARD_FINE_EVENTS = ("gm.guardFine.pay", "gm.guardFine.refuse")


def _lower_tags(tags: Iterable) -> List[str]:
    return [str(tag).lower() for tag in tags or [] if tag is not None]


def family_key_from_tags(tags: Iterable) -> Optional[str]:
    lowered = _lower_tags(tags)
    for prefix in ("kind:", "race:"):
        for tag in lowered:
            if tag.startswith(prefix):
                family = tag[len(prefix):].strip()
                if family:
                    return family
    return None


def faction_keys_from_tags(tags: Iterable) -> List[str]:
    keys: List[str] = []
    for tag in _lower_tags(tags):
        if not tag.startswith("faction:"):
            continue
        key = tag[len("faction:"):].strip()
        if key and key not in keys:
            keys.append(key)
    return keys


def _bump(tally: Tally, turn: int, *, seen: int = 0, positive: int = 0, negative: int = 0) -> None:
    if seen or positive or negative:
        tally.record(turn, seen=seen, positive=positive, negative=negative)


class EventIngest:
    """Folds telemetry into mood, boredom, stats and reputation."""

    def __init__(self, faction_travel: FactionTravel) -> None:
        self.faction_travel = faction_travel

    def apply(self, state: GmState, event: TelemetryEvent) -> None:
        if not state.enabled:
            return

        turn = max(0, int(event.turn))
        event_type = str(event.type or "")
        scope = event.scope or state.last_mode or "unknown"
        stats = state.stats

        if event_type == "mode.enter":
            stats.mode_entries[scope] = stats.mode_entries.get(scope, 0) + 1
        elif event_type == "encounter.enter":
            stats.encounter_starts += 1
        elif event_type == "encounter.exit":
            stats.encounter_completions += 1

        counters = state.debug.counters
        counters.events += 1
        if event.interesting:
            counters.interesting_events += 1
        state.debug.push_event({"type": event_type, "scope": scope, "turn": turn, "payload": event.payload})

        if event.interesting:
            state.boredom.turns_since_last_interesting_event = 0
            state.boredom.last_interesting_event = InterestingEvent(type=event_type, scope=scope, turn=turn)

        impulse = MOOD_IMPULSES.get(event_type)
        if impulse is not None:
            apply_mood_impulse(state, *impulse)

        if event_type == "combat.kill":
            self._apply_combat_kill(state, event.tags, turn)
        elif event_type == "quest.complete":
            self._apply_quest_complete(state, event.tags, turn)
        elif event_type in CARAVAN_EVENTS:
            self._apply_caravan_event(state, event, turn)
        elif event_type == "mechanic":
            self._apply_mechanic_usage(state, event, turn)
        elif event_type in GUARD_FINE_EVENTS:
            self.apply_guard_fine_outcome(state, event_type, turn)

        self.faction_travel.maybe_schedule(state, turn)
        logger.debug("Director event", extra={"event_type": event_type, "scope": scope, "turn": turn})

    def _apply_combat_kill(self, state: GmState, tags: Iterable, turn: int) -> None:
        lowered = set(_lower_tags(tags))
        traits = state.traits
        in_settlement = bool(lowered & {"context:town", "context:castle"})

        if lowered & {"kind:troll", "race:troll"}:
            _bump(traits[TraitId.TROLL_SLAYER], turn, seen=1, positive=1)
        if "faction:bandit" in lowered and in_settlement:
            _bump(traits[TraitId.TOWN_PROTECTOR], turn, seen=1, positive=1)
        if lowered & {"faction:guard", "faction:town"} and in_settlement:
            _bump(traits[TraitId.TOWN_PROTECTOR], turn, seen=1, negative=1)
        if lowered & {"caravan", "caravanguard"}:
            _bump(traits[TraitId.CARAVAN_ALLY], turn, seen=1, negative=1)

        family = family_key_from_tags(tags)
        if family:
            _bump(state.families.setdefault(family, Tally()), turn, seen=1, positive=1)
        for key in faction_keys_from_tags(tags):
            _bump(state.factions.setdefault(key, Tally()), turn, seen=1, positive=1)

    def _apply_quest_complete(self, state: GmState, tags: Iterable, turn: int) -> None:
        lowered = set(_lower_tags(tags))
        rules = (
            (TraitId.TROLL_SLAYER, {"trollhunt", "trollslayer"}, {"trollhelp"}),
            (TraitId.TOWN_PROTECTOR, {"towndefense", "townhelp"}, {"attacktown"}),
            (TraitId.CARAVAN_ALLY, {"caravanhelp", "escortcaravan"}, set()),
        )
        for trait, good, bad in rules:
            positive = 1 if lowered & good else 0
            negative = 1 if lowered & bad else 0
            if positive or negative:
                _bump(state.traits[trait], turn, seen=1, positive=positive, negative=negative)

    def _apply_caravan_event(self, state: GmState, event: TelemetryEvent, turn: int) -> None:
        seen = positive = negative = 0
        if event.type == "caravan.accepted":
            if str(event.reason or "") == "escort":
                seen, positive = 1, 1
        elif event.type == "caravan.completed":
            if event.success is True:
                seen, positive = 1, 2
            elif event.success is False:
                seen, negative = 1, 1
        elif event.type == "caravan.attacked":
            seen, negative = 1, 1
        _bump(state.traits[TraitId.CARAVAN_ALLY], turn, seen=seen, positive=positive, negative=negative)

    def _apply_mechanic_usage(self, state: GmState, event: TelemetryEvent, turn: int) -> None:
        mechanic = parse_enum(MechanicId, event.mechanic)
        if mechanic is None:
            return
        usage = state.mechanics[mechanic]
        action = str(event.action or "")
        if action == "seen":
            usage.seen += 1
        elif action == "tried":
            usage.tried += 1
        elif action == "success":
            usage.tried += 1
            usage.success += 1
        elif action == "failure":
            usage.tried += 1
            usage.failure += 1
        elif action == "dismiss":
            usage.dismiss += 1
        else:
            return
        if usage.first_seen_turn is None:
            usage.first_seen_turn = turn
        usage.last_used_turn = turn

    def apply_guard_fine_outcome(self, state: GmState, event_type: str, turn: int) -> None:
        """Pay costs standing with guard and town; refusing builds heat that cools off later."""

        flags = state.story_flags
        affected = [state.factions[key] for key in ("guard", "town") if key in state.factions]

        def bump(positive: int, negative: int) -> None:
            for tally in affected:
                tally.record(turn, seen=1, positive=positive, negative=negative)

        if flags.guard_fine_refusals > 0 and flags.guard_fine_last_refusal_turn is not None:
            age = turn - flags.guard_fine_last_refusal_turn
            pending = min(flags.guard_fine_refusals, flags.guard_fine_refusals - flags.guard_fine_refusals_decayed)
            if age > constants.GUARD_FINE_HEAT_TURNS and pending > 0:
                bump(0, pending)
                flags.guard_fine_refusals_decayed += pending
                flags.guard_fine_heat_last_decay_turn = turn

        if event_type == "gm.guardFine.pay":
            bump(0, 1)
            flags.guard_fine_paid = True
        elif event_type == "gm.guardFine.refuse":
            bump(1, 0)
            flags.guard_fine_refusals += 1
            flags.guard_fine_last_refusal_turn = turn
