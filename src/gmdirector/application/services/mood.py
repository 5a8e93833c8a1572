from __future__ import annotations

from gmdirector.domain.models.gm_state import GmState, MoodLabel


def _clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, float(value)))


def label_mood(valence: float, arousal: float) -> MoodLabel:
    if arousal < 0.2:
        return MoodLabel.CALM
    if arousal < 0.6:
        if valence > 0.2:
            return MoodLabel.CURIOUS
        if valence < -0.2:
            return MoodLabel.BORED
        return MoodLabel.NEUTRAL
    if valence > 0.2:
        return MoodLabel.PLAYFUL
    if valence < -0.2:
        return MoodLabel.STERN
    return MoodLabel.RESTLESS


def refresh_mood(state: GmState, turn: int) -> None:
    """Recompute final valence/arousal from baseline plus transient and relabel."""

    mood = state.mood
    mood.valence = _clamp(mood.baseline_valence + mood.transient_valence, -1.0, 1.0)
    mood.arousal = _clamp(mood.baseline_arousal + mood.transient_arousal, 0.0, 1.0)
    mood.primary = label_mood(mood.valence, mood.arousal)
    mood.last_updated_turn = max(0, int(turn))


def apply_mood_impulse(state: GmState, base_valence: float, base_arousal: float) -> None:
    """Nudge the transient mood; boredom amplifies bad news and mutes good news.

    The final mood is re-derived on the next tick.
    """

    boredom = _clamp(state.boredom.level, 0.0, 1.0)
    scale = 1.0
    if base_valence < 0:
        scale = 0.5 + boredom
    elif base_valence > 0:
        scale = 1.0 - 0.5 * boredom

    mood = state.mood
    mood.transient_valence = _clamp(mood.transient_valence + base_valence * scale, -1.0, 1.0)
    mood.transient_arousal = _clamp(mood.transient_arousal + base_arousal * scale, -1.0, 1.0)
