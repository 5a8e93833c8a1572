from __future__ import annotations

import logging

from gmdirector.application.services.mood import refresh_mood
from gmdirector.domain import constants
from gmdirector.domain.models.gm_state import GmState

logger = logging.getLogger(__name__)


class TurnEngine:
    """Per-turn bookkeeping: boredom timer, smoothing, mode stats and mood."""

    BASELINE_VALENCE_CALM = 0.15
    BASELINE_VALENCE_BORED = -0.5
    BASELINE_AROUSAL_CALM = 0.25
    BASELINE_AROUSAL_BORED = 0.75

    def tick(self, state: GmState, *, turn: int, mode: str) -> bool:
        """Advance bookkeeping for ``turn``; returns True when the turn index is new.

        Calling again with the same turn only re-smooths boredom and re-derives mood.
        """

        turn = max(0, int(turn))
        mode_key = str(mode or state.last_mode or "unknown")
        is_new_turn = turn != state.debug.last_tick_turn
        boredom = state.boredom

        if is_new_turn:
            state.debug.counters.ticks += 1
            last_interesting = boredom.last_interesting_event
            if last_interesting is None or last_interesting.turn != turn:
                boredom.turns_since_last_interesting_event += 1

        raw_turns = min(constants.MAX_TURNS_BORED, max(0, boredom.turns_since_last_interesting_event))
        target = raw_turns / constants.MAX_TURNS_BORED
        level = boredom.level + constants.BOREDOM_SMOOTHING_ALPHA * (target - boredom.level)
        boredom.level = min(1.0, max(0.0, level))

        mood = state.mood
        if is_new_turn:
            state.stats.total_turns += 1
            state.stats.mode_turns[mode_key] = state.stats.mode_turns.get(mode_key, 0) + 1
            mood.transient_valence *= constants.MOOD_TRANSIENT_DECAY
            mood.transient_arousal *= constants.MOOD_TRANSIENT_DECAY

        b = boredom.level
        mood.baseline_valence = self.BASELINE_VALENCE_CALM + (self.BASELINE_VALENCE_BORED - self.BASELINE_VALENCE_CALM) * b
        mood.baseline_arousal = self.BASELINE_AROUSAL_CALM + (self.BASELINE_AROUSAL_BORED - self.BASELINE_AROUSAL_CALM) * b
        refresh_mood(state, turn)

        if mode:
            state.last_mode = mode_key
        state.debug.last_tick_turn = turn

        if is_new_turn:
            logger.debug(
                "Director tick",
                extra={"turn": turn, "mode": mode_key, "boredom": round(b, 4), "mood": mood.primary.value},
            )
        return is_new_turn
