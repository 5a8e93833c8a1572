from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Optional

from gmdirector.application.services.rng_stream import RngStream
from gmdirector.domain import constants
from gmdirector.domain.models.gm_state import GmState
from gmdirector.domain.repositories import GmStateRepository

logger = logging.getLogger(__name__)


class StateStore:
    """Owns the single live GmState and its (debounced) durable copy."""

    def __init__(
        self,
        repository: Optional[GmStateRepository],
        *,
        run_seed: int,
        persist_every_turns: int = 5,
        persist_min_interval_s: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.repository = repository
        self.run_seed = int(run_seed) & constants.UINT32_MASK
        self.persist_every_turns = max(1, int(persist_every_turns))
        self.persist_min_interval_s = max(0.0, float(persist_min_interval_s))
        self._clock = clock
        self._state: Optional[GmState] = None
        self._dirty = False
        self._last_persist_turn: Optional[int] = None
        self._last_persist_at: Optional[float] = None

    @property
    def dirty(self) -> bool:
        return self._dirty

    def ensure(self) -> GmState:
        if self._state is None:
            self._state = self.load()
        self._state.normalize()
        if RngStream(self._state).ensure_seeded():
            self._dirty = True
        return self._state

    def load(self) -> GmState:
        raw = self._read_record()
        if raw is None:
            return self._fresh()
        if not self._accepts(raw):
            return self._fresh()
        state = GmState.from_dict(raw)
        state.run_seed = self.run_seed
        logger.info("Director state restored", extra={"run_seed": self.run_seed})
        return state

    def _read_record(self) -> Optional[Dict[str, Any]]:
        if self.repository is None:
            return None
        try:
            raw = self.repository.load()
        except Exception:
            logger.warning("Director state could not be read; starting fresh", exc_info=True)
            return None
        if raw is not None and not isinstance(raw, dict):
            logger.warning("Director snapshot discarded: not an object", extra={"snapshot_type": type(raw).__name__})
            return None
        return raw

    def _accepts(self, raw: Dict[str, Any]) -> bool:
        try:
            version = int(raw.get("schema_version", 0))
            stored_seed = int(raw.get("run_seed"))
        except Exception:
            logger.info("Director snapshot discarded: malformed header")
            return False
        if version > constants.SCHEMA_VERSION:
            logger.info(
                "Director snapshot discarded: newer schema",
                extra={"snapshot_version": version, "schema_version": constants.SCHEMA_VERSION},
            )
            return False
        if (stored_seed & constants.UINT32_MASK) != self.run_seed:
            logger.info(
                "Director snapshot discarded: different run",
                extra={"snapshot_seed": stored_seed, "run_seed": self.run_seed},
            )
            return False
        return True

    def _fresh(self) -> GmState:
        state = GmState.create(self.run_seed)
        RngStream(state).ensure_seeded()
        self._dirty = True
        return state

    def mark_dirty(self) -> None:
        self._dirty = True

    def maybe_persist(self, turn: int) -> bool:
        if not self._dirty:
            return False
        if self._last_persist_turn is not None:
            turns_elapsed = int(turn) - self._last_persist_turn
            seconds_elapsed = self._clock() - (self._last_persist_at or 0.0)
            if turns_elapsed < self.persist_every_turns and seconds_elapsed < self.persist_min_interval_s:
                return False
        return self.persist(turn=turn)

    def persist(self, *, turn: Optional[int] = None, force: bool = False) -> bool:
        """Write the snapshot now; failures are logged and reported as False."""

        if self._state is None or self.repository is None:
            return False
        if not (self._dirty or force):
            return False
        try:
            self.repository.save(self._state.to_dict())
        except Exception:
            logger.warning("Director state could not be persisted", exc_info=True, extra={"turn": turn})
            return False
        self._dirty = False
        self._last_persist_turn = int(turn) if turn is not None else self._state.debug.last_tick_turn
        self._last_persist_at = self._clock()
        return True

    def reset(self) -> GmState:
        if self.repository is not None:
            try:
                self.repository.clear()
            except Exception:
                logger.warning("Director state could not be cleared", exc_info=True)
        self._state = self._fresh()
        self._last_persist_turn = None
        self._last_persist_at = None
        logger.info("Director state reset", extra={"run_seed": self.run_seed})
        return self._state
