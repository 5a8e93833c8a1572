from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Union

from gmdirector.application.dtos import NO_INTENT, ChannelDecision, DirectorProfile, Intent
from gmdirector.application.services.event_bus import EventBus
from gmdirector.application.services.event_ingest import EventIngest
from gmdirector.application.services.faction_travel import FactionTravel
from gmdirector.application.services.intent_channels import IntentChannels
from gmdirector.application.services.profile import build_profile
from gmdirector.application.services.rng_stream import RngStream
from gmdirector.application.services.scheduler import Scheduler
from gmdirector.application.services.state_store import StateStore
from gmdirector.application.services.turn_engine import TurnEngine
from gmdirector.domain.events import DirectorReset, FactionTravelConsumed, IntentDecided, TelemetryEvent
from gmdirector.domain.models.gm_state import GmState

logger = logging.getLogger(__name__)


class GameMaster:
    """Host-facing facade: one session, one state store, every director call routed through here."""

    def __init__(
        self,
        store: StateStore,
        *,
        event_bus: Optional[EventBus] = None,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        self.store = store
        self.event_bus = event_bus or EventBus()
        self.scheduler = scheduler or Scheduler()
        self.faction_travel = FactionTravel(self.scheduler)
        self.turn_engine = TurnEngine()
        self.event_ingest = EventIngest(self.faction_travel)
        self.channels = IntentChannels()

    @property
    def state(self) -> GmState:
        return self.store.ensure()

    @property
    def enabled(self) -> bool:
        return self.state.enabled

    def set_enabled(self, enabled: bool) -> None:
        state = self.store.ensure()
        state.enabled = bool(enabled)
        self.store.mark_dirty()
        self.store.persist(force=True, turn=state.debug.last_tick_turn)
        logger.info("Director %s", "enabled" if state.enabled else "disabled")

    def tick(self, *, turn: int, mode: str) -> None:
        state = self.store.ensure()
        if not state.enabled:
            return
        if self.turn_engine.tick(state, turn=turn, mode=mode):
            self.store.mark_dirty()
        self.store.maybe_persist(turn)

    def on_event(self, event: Union[TelemetryEvent, Mapping[str, Any]]) -> None:
        state = self.store.ensure()
        if not state.enabled:
            return
        if isinstance(event, Mapping):
            event = TelemetryEvent.from_mapping(event, default_turn=state.debug.last_tick_turn or 0)
        if not isinstance(event, TelemetryEvent) or not event.type.strip():
            logger.debug("Malformed telemetry event ignored", extra={"event_repr": repr(event)[:120]})
            return
        self.event_ingest.apply(state, event)
        self.store.mark_dirty()
        self.store.maybe_persist(event.turn)

    def get_entrance_intent(self, *, mode: str, turn: int) -> Intent:
        state = self.store.ensure()
        if not state.enabled:
            return NO_INTENT
        return self._publish(self.channels.entrance(state, mode=mode, turn=turn), turn)

    def get_mechanic_hint(self, *, mode: str, turn: int) -> Intent:
        state = self.store.ensure()
        if not state.enabled:
            return NO_INTENT
        return self._publish(self.channels.mechanic_hint(state, mode=mode, turn=turn), turn)

    def get_faction_travel_event(self, *, turn: int) -> Intent:
        """Deliver at most one scheduled faction event; a delivery is persisted immediately."""

        state = self.store.ensure()
        if not state.enabled:
            return NO_INTENT
        decision = self.faction_travel.next_event(state, turn)
        if decision.emitted:
            self.store.mark_dirty()
            self.store.persist(force=True, turn=turn)
            consumed = state.scheduler.history[0] if state.scheduler.history else {}
            action = state.scheduler.actions.get(str(consumed.get("id", "")))
            self.event_bus.publish(
                FactionTravelConsumed(
                    action_id=action.id if action else "",
                    kind=action.kind if action else "",
                    turn=int(turn),
                )
            )
        self.event_bus.publish(
            IntentDecided(channel=decision.channel, turn=int(turn), intent=decision.intent.to_dict(), reason=decision.reason)
        )
        return decision.intent

    def force_faction_travel_event(self, kind: str, *, turn: int) -> Intent:
        state = self.store.ensure()
        if not state.enabled:
            return NO_INTENT
        intent = self.faction_travel.force(state, kind, turn)
        self.store.mark_dirty()
        self.store.persist(force=True, turn=turn)
        return intent

    def faction_event_slots(self) -> Dict[str, Dict[str, Any]]:
        return self.faction_travel.slot_projection(self.store.ensure())

    def profile(self) -> DirectorProfile:
        return build_profile(self.store.ensure())

    def next_uint32(self) -> int:
        value = RngStream(self.store.ensure()).next_uint32()
        self.store.mark_dirty()
        return value

    def next_float(self) -> float:
        value = RngStream(self.store.ensure()).next_float()
        self.store.mark_dirty()
        return value

    def reset(self) -> GmState:
        state = self.store.reset()
        self.event_bus.publish(DirectorReset(run_seed=state.run_seed))
        return state

    def flush(self) -> bool:
        state = self.store.ensure()
        return self.store.persist(force=True, turn=state.debug.last_tick_turn)

    def snapshot(self) -> Dict[str, Any]:
        state = self.store.ensure()
        payload = state.to_dict()
        payload["story_flags"]["faction_events"] = self.faction_travel.slot_projection(state)
        payload["profile"] = build_profile(state).to_dict()
        return payload

    def _publish(self, decision: ChannelDecision, turn: int) -> Intent:
        self.store.mark_dirty()
        self.event_bus.publish(
            IntentDecided(channel=decision.channel, turn=int(turn), intent=decision.intent.to_dict(), reason=decision.reason)
        )
        self.store.maybe_persist(turn)
        return decision.intent
