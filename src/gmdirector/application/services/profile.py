from __future__ import annotations

from typing import Dict, List

from gmdirector.application.dtos import DirectorProfile, ModeShare, Standing
from gmdirector.domain import constants
from gmdirector.domain.models.gm_state import GmState, Tally


def _standing(key: str, tally: Tally) -> Standing:
    return Standing(key=key, seen=tally.seen, positive=tally.positive, negative=tally.negative, score=tally.score)


def ranked_standings(rows: Dict[str, Tally], limit: int = constants.PROFILE_TOP_STANDINGS) -> List[Standing]:
    """Entries with at least one sighting, by seen desc, then |score| desc, then key."""

    standings = [_standing(key, tally) for key, tally in rows.items() if tally.seen > 0]
    standings.sort(key=lambda row: (-row.seen, -abs(row.score), row.key))
    return standings[:limit]


def _trait_remembered(tally: Tally, current_turn) -> bool:
    if current_turn is None or tally.last_updated_turn is None:
        return True
    return current_turn - tally.last_updated_turn <= constants.TRAIT_FORGET_TURNS


def active_traits(state: GmState) -> List[Standing]:
    current_turn = state.debug.last_tick_turn
    active = []
    for trait, tally in state.traits.items():
        if tally.seen < constants.TRAIT_MIN_SAMPLES:
            continue
        if tally.positive + tally.negative <= 0 or abs(tally.score) < constants.TRAIT_MIN_SCORE:
            continue
        if not _trait_remembered(tally, current_turn):
            continue
        active.append(_standing(trait.value, tally))
    active.sort(key=lambda row: (-abs(row.score), row.key))
    return active


def build_profile(state: GmState) -> DirectorProfile:
    top_modes = [ModeShare(mode=mode, turns=turns) for mode, turns in state.stats.mode_turns.items()]
    top_modes.sort(key=lambda row: (-row.turns, row.mode))
    return DirectorProfile(
        total_turns=state.stats.total_turns,
        boredom_level=min(1.0, max(0.0, state.boredom.level)),
        top_modes=top_modes[: constants.PROFILE_TOP_MODES],
        top_families=ranked_standings(state.families),
        top_factions=ranked_standings(state.factions),
        active_traits=active_traits(state),
    )
