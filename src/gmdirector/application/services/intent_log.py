from __future__ import annotations

from typing import Any, Dict

from gmdirector.application.dtos import ChannelDecision
from gmdirector.domain.models.gm_state import GmState


def intent_debug_entry(state: GmState, decision: ChannelDecision, turn: int) -> Dict[str, Any]:
    intent = decision.intent.to_dict()
    return {
        "channel": decision.channel,
        "kind": intent.get("kind", "none"),
        "topic": intent.get("topic"),
        "target": intent.get("target"),
        "encounter_id": intent.get("encounter_id"),
        "reason": decision.reason,
        "turn": max(0, int(turn)),
        "mood": state.mood.primary.value,
        "boredom": round(state.boredom.level, 4),
    }


def record_decision(state: GmState, decision: ChannelDecision, turn: int) -> ChannelDecision:
    """Append the decision (emitted or not) to the bounded intent history."""

    state.debug.push_intent(intent_debug_entry(state, decision, turn))
    return decision
