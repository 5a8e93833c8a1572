from __future__ import annotations

import logging
from typing import Optional

from gmdirector.application.dtos import NO_INTENT, ChannelDecision, FlavorIntent, Intent, NudgeIntent
from gmdirector.application.services.intent_log import record_decision
from gmdirector.application.services.mood import label_mood
from gmdirector.application.services.profile import build_profile
from gmdirector.domain import constants
from gmdirector.domain.models.gm_state import GmState, KnowledgeState, MechanicId, MechanicUsage, MoodLabel

logger = logging.getLogger(__name__)

ENTRANCE_CHANNEL = "entrance"
MECHANIC_HINT_CHANNEL = "mechanic_hint"

HINT_CANDIDATES = (MechanicId.QUEST_BOARD, MechanicId.FOLLOWERS, MechanicId.FISHING, MechanicId.LOCKPICKING)
TOWN_FRIENDLY = (MechanicId.QUEST_BOARD, MechanicId.FOLLOWERS)

_RESTLESS_MOODS = (MoodLabel.STERN, MoodLabel.RESTLESS, MoodLabel.BORED)
_OPEN_MOODS = (MoodLabel.CURIOUS, MoodLabel.PLAYFUL, MoodLabel.NEUTRAL)


def mechanic_knowledge(usage: MechanicUsage, turn: int) -> KnowledgeState:
    if usage.seen <= 0 and usage.tried <= 0:
        return KnowledgeState.UNSEEN
    if usage.tried == 0:
        if usage.dismiss >= constants.MECH_DISINTEREST_DISMISS:
            return KnowledgeState.DISINTERESTED
        return KnowledgeState.SEEN_NOT_TRIED

    if usage.last_used_turn is None:
        age = constants.MECH_DISINTEREST_AGE + 1
    else:
        age = turn - usage.last_used_turn
    if usage.dismiss >= constants.MECH_DISINTEREST_DISMISS and age > constants.MECH_RECENT_TURNS:
        return KnowledgeState.DISINTERESTED
    if age <= constants.MECH_RECENT_TURNS:
        return KnowledgeState.TRIED_RECENTLY
    if age > constants.MECH_DISINTEREST_AGE:
        return KnowledgeState.DISINTERESTED
    return KnowledgeState.TRIED_LONG_AGO


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


class IntentChannels:
    """Entrance flavor and mechanic hint channels, each with its own cooldown rails."""

    def entrance(self, state: GmState, *, mode: str, turn: int) -> ChannelDecision:
        turn = max(0, int(turn))
        mode_key = str(mode or state.last_mode or "unknown")
        in_town = mode_key in constants.TOWN_SCOPES

        last = state.last_entrance_intent_turn
        if not in_town and last is not None and turn - last < constants.ENTRANCE_COOLDOWN_TURNS:
            return self._none(state, ENTRANCE_CHANNEL, "cooldown.turn", turn)

        mood_label = label_mood(state.mood.valence, state.mood.arousal)
        state.mood.primary = mood_label
        profile = build_profile(state)
        boredom = profile.boredom_level

        entries = state.stats.mode_entries.get(mode_key, 0)
        if in_town and entries > 1 and (entries - 1) % constants.ENTRANCE_TOWN_ENTRY_PERIOD != 0:
            return self._none(state, ENTRANCE_CHANNEL, "rarity.entryPeriod", turn)

        variety = self._variety_topic(profile, boredom, mode_key)
        intent: Optional[Intent] = None

        if mood_label in _RESTLESS_MOODS and boredom > 0.5:
            if profile.top_families:
                intent = FlavorIntent(topic=f"family:{profile.top_families[0].key}", strength="medium", mode=mode_key)
            else:
                intent = FlavorIntent(topic=variety or "general_rumor", strength="low", mode=mode_key)
        elif mood_label in _OPEN_MOODS and boredom > 0.3:
            intent = FlavorIntent(topic=variety or "general_rumor", strength="low", mode=mode_key)

        if intent is None and profile.total_turns < 50 and boredom > 0.2:
            if not state.story_flags.first_entrance_flavor_shown:
                intent = FlavorIntent(topic="general_rumor", strength="low", mode=mode_key)
                state.story_flags.first_entrance_flavor_shown = True

        if intent is None:
            return self._none(state, ENTRANCE_CHANNEL, "no.intent", turn)

        state.last_entrance_intent_turn = turn
        state.last_action_turn = turn
        return self._emit(state, ENTRANCE_CHANNEL, intent, turn)

    @staticmethod
    def _variety_topic(profile, boredom: float, mode_key: str) -> Optional[str]:
        if profile.total_turns < 100 or boredom <= 0.5 or not profile.top_modes:
            return None
        dominant = profile.top_modes[0]
        if dominant.turns <= 0 or dominant.turns / profile.total_turns < 0.7:
            return None
        if dominant.mode == "dungeon" and mode_key != "town":
            return "variety:try_town"
        if dominant.mode == "town" and mode_key != "dungeon":
            return "variety:try_dungeon"
        if dominant.mode in ("town", "dungeon") and mode_key != "world":
            return "variety:try_world"
        return None

    def mechanic_hint(self, state: GmState, *, mode: str, turn: int) -> ChannelDecision:
        turn = max(0, int(turn))
        stats = state.stats
        town_entries = stats.mode_entries.get("town", 0)
        if stats.total_turns < 30 and town_entries < 2:
            return self._none(state, MECHANIC_HINT_CHANNEL, "earlyGame", turn)

        last = state.last_hint_intent_turn
        if last is not None:
            if turn == last:
                last_entry = state.last_hint_intent_town_entry
                if last_entry is None:
                    last_entry = town_entries
                if town_entries - last_entry < constants.HINT_TOWN_ENTRY_PERIOD:
                    return self._none(state, MECHANIC_HINT_CHANNEL, "cooldown.entry", turn)
            elif turn - last < constants.HINT_COOLDOWN_TURNS:
                return self._none(state, MECHANIC_HINT_CHANNEL, "cooldown.turn", turn)

        boredom = min(1.0, max(0.0, state.boredom.level))
        in_town = str(mode or state.last_mode or "") == "town"

        best: Optional[MechanicId] = None
        best_score = -1
        best_seen = -1
        for mechanic in HINT_CANDIDATES:
            usage = state.mechanics[mechanic]
            if usage.tried != 0:
                continue
            knowledge = mechanic_knowledge(usage, turn)
            if knowledge in (KnowledgeState.DISINTERESTED, KnowledgeState.TRIED_RECENTLY):
                continue

            score = 5
            if knowledge == KnowledgeState.SEEN_NOT_TRIED:
                score += 3
            if in_town and mechanic in TOWN_FRIENDLY:
                score += 1
            score += _round_half_up(boredom * 2)
            if usage.seen > 5:
                score += 1

            if score > best_score or (score == best_score and usage.seen > best_seen):
                best, best_score, best_seen = mechanic, score, usage.seen

        if best is None:
            return self._none(state, MECHANIC_HINT_CHANNEL, "no.mechanic", turn)

        state.last_hint_intent_turn = turn
        state.last_hint_intent_town_entry = town_entries
        state.last_action_turn = turn
        return self._emit(state, MECHANIC_HINT_CHANNEL, NudgeIntent(target=f"mechanic:{best.value}"), turn)

    @staticmethod
    def _none(state: GmState, channel: str, reason: str, turn: int) -> ChannelDecision:
        logger.debug("Intent suppressed", extra={"channel": channel, "reason": reason, "turn": turn})
        return record_decision(state, ChannelDecision(channel=channel, intent=NO_INTENT, reason=reason), turn)

    @staticmethod
    def _emit(state: GmState, channel: str, intent: Intent, turn: int) -> ChannelDecision:
        logger.debug("Intent emitted", extra={"channel": channel, "intent_kind": intent.kind, "turn": turn})
        return record_decision(state, ChannelDecision(channel=channel, intent=intent), turn)
