import json
import sys
import tempfile
from pathlib import Path
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from gmdirector.application.services.state_store import StateStore
from gmdirector.domain.models.gm_state import GmState
from gmdirector.infrastructure.file_state_repo import FileGmStateRepository


class FileGmStateRepositoryTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name) / "gm"
        self.repository = FileGmStateRepository(self.root)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_missing_file_loads_nothing(self) -> None:
        self.assertIsNone(self.repository.load())

    def test_save_writes_envelope_atomically(self) -> None:
        payload = GmState.create(3).to_dict()

        self.repository.save(payload)

        envelope = json.loads(self.repository.path.read_text(encoding="utf-8"))
        self.assertEqual(payload, envelope["payload"])
        self.assertIsInstance(envelope["stored_at"], int)
        self.assertEqual([self.repository.path.name], [item.name for item in self.root.iterdir()])
        self.assertEqual(payload, self.repository.load())

    def test_corrupt_or_foreign_files_load_nothing(self) -> None:
        self.repository.path.write_text("{not json", encoding="utf-8")
        with self.assertLogs("gmdirector.infrastructure.file_state_repo", level="WARNING"):
            self.assertIsNone(self.repository.load())

        self.repository.path.write_text(json.dumps({"payload": [1, 2]}), encoding="utf-8")
        with self.assertLogs("gmdirector.infrastructure.file_state_repo", level="WARNING"):
            self.assertIsNone(self.repository.load())

    def test_record_keys_are_separate_files(self) -> None:
        other = FileGmStateRepository(self.root, record_key="GM_STATE_OTHER")
        self.repository.save({"run_seed": 1})
        other.save({"run_seed": 2})

        self.assertEqual(1, self.repository.load()["run_seed"])
        self.assertEqual(2, other.load()["run_seed"])

    def test_clear_is_idempotent(self) -> None:
        self.repository.save({"run_seed": 1})
        self.repository.clear()
        self.repository.clear()
        self.assertIsNone(self.repository.load())

    def test_state_store_round_trip(self) -> None:
        store = StateStore(self.repository, run_seed=21)
        store.ensure().stats.total_turns = 17
        store.persist(force=True, turn=17)

        reloaded = StateStore(FileGmStateRepository(self.root), run_seed=21).ensure()

        self.assertEqual(17, reloaded.stats.total_turns)
        self.assertEqual(store.ensure().rng.state, reloaded.rng.state)


if __name__ == "__main__":
    unittest.main()
