import sys
from pathlib import Path
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from gmdirector.application.services.profile import active_traits, build_profile
from gmdirector.domain.models.gm_state import GmState, Tally, TraitId


class ProfileTests(unittest.TestCase):
    def setUp(self) -> None:
        self.state = GmState.create(1)

    def test_top_lists_are_ranked_and_capped(self) -> None:
        self.state.stats.mode_turns = {"camp": 5, "town": 30, "world": 40, "dungeon": 50}
        for seen, family in enumerate(("rat", "bat", "wolf", "bear", "troll", "ogre", "wyrm"), start=1):
            self.state.families[family] = Tally(seen=seen, positive=seen)
        self.state.families["ghost"] = Tally()

        profile = build_profile(self.state)

        self.assertEqual(["dungeon", "world", "town"], [row.mode for row in profile.top_modes])
        self.assertEqual(["wyrm", "ogre", "troll", "bear", "wolf"], [row.key for row in profile.top_families])

    def test_ties_break_on_score_strength_then_key(self) -> None:
        self.state.factions["c"] = Tally(seen=3, positive=2, negative=1)
        self.state.factions["b"] = Tally(seen=3, positive=1, negative=2)
        self.state.factions["a"] = Tally(seen=3, positive=3)

        self.assertEqual(["a", "b", "c"], [row.key for row in build_profile(self.state).top_factions])

    def test_active_traits_strongest_first(self) -> None:
        self.state.traits[TraitId.TROLL_SLAYER] = Tally(seen=4, positive=3, negative=1)
        self.state.traits[TraitId.TOWN_PROTECTOR] = Tally(seen=3, negative=3)
        self.state.traits[TraitId.CARAVAN_ALLY] = Tally(seen=5, positive=5)

        traits = active_traits(self.state)

        self.assertEqual(["caravanAlly", "townProtector", "trollSlayer"], [row.key for row in traits])
        self.assertEqual(-1.0, traits[1].score)

    def test_weak_sparse_or_forgotten_traits_are_inactive(self) -> None:
        self.state.debug.last_tick_turn = 400
        self.state.traits[TraitId.TROLL_SLAYER] = Tally(seen=2, positive=2, last_updated_turn=390)
        self.state.traits[TraitId.TOWN_PROTECTOR] = Tally(seen=5, positive=3, negative=2, last_updated_turn=390)
        self.state.traits[TraitId.CARAVAN_ALLY] = Tally(seen=5, positive=5, last_updated_turn=50)

        self.assertEqual([], active_traits(self.state))


if __name__ == "__main__":
    unittest.main()
