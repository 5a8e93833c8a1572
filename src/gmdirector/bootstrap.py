import logging
import os
from typing import Optional

from gmdirector.application.services.event_bus import EventBus
from gmdirector.application.services.game_master import GameMaster
from gmdirector.application.services.seed_policy import derive_run_seed
from gmdirector.application.services.state_store import StateStore
from gmdirector.domain.repositories import GmStateRepository
from gmdirector.infrastructure.db.sql_state_repo import SqlGmStateRepository, create_session_factory
from gmdirector.infrastructure.file_state_repo import FileGmStateRepository
from gmdirector.infrastructure.inmemory.inmemory_state_repo import InMemoryGmStateRepository

logger = logging.getLogger(__name__)


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        logger.warning("Ignoring invalid integer setting", extra={"setting": name})
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        logger.warning("Ignoring invalid float setting", extra={"setting": name})
        return default


def build_state_repository() -> GmStateRepository:
    database_url = os.getenv("GM_DATABASE_URL", "").strip()
    if database_url:
        repository = SqlGmStateRepository(create_session_factory(database_url))
        repository.ensure_schema()
        return repository

    state_dir = os.getenv("GM_STATE_DIR", "").strip()
    if state_dir:
        return FileGmStateRepository(state_dir)

    return InMemoryGmStateRepository()


def resolve_run_seed(run_id: Optional[str] = None) -> int:
    return derive_run_seed(run_id if run_id is not None else os.getenv("GM_RUN_ID", "0"))


def create_game_master(
    *,
    repository: Optional[GmStateRepository] = None,
    run_id: Optional[str] = None,
    event_bus: Optional[EventBus] = None,
) -> GameMaster:
    store = StateStore(
        repository if repository is not None else build_state_repository(),
        run_seed=resolve_run_seed(run_id),
        persist_every_turns=_env_int("GM_PERSIST_EVERY_TURNS", 5),
        persist_min_interval_s=_env_float("GM_PERSIST_MIN_INTERVAL_S", 2.0),
    )
    master = GameMaster(store, event_bus=event_bus)
    if os.getenv("GM_ENABLED", "").strip():
        desired = _env_flag("GM_ENABLED", True)
        if master.enabled != desired:
            master.set_enabled(desired)
    return master
