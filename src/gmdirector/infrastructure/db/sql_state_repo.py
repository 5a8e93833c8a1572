import json
import logging
import time
from typing import Any, Dict, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker

from gmdirector.domain import constants
from gmdirector.domain.repositories import GmStateRepository

logger = logging.getLogger(__name__)


def create_session_factory(database_url: str) -> sessionmaker:
    engine = create_engine(database_url, future=True, pool_pre_ping=True)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


class SqlGmStateRepository(GmStateRepository):
    """Director snapshot stored as one JSON row in ``gm_state``."""

    def __init__(self, session_factory: sessionmaker, *, record_key: str = constants.STATE_RECORD_KEY) -> None:
        self.SessionLocal = session_factory
        self.record_key = str(record_key).strip() or constants.STATE_RECORD_KEY

    def ensure_schema(self) -> None:
        with self.SessionLocal.begin() as session:
            session.execute(
                text(
                    """
                    CREATE TABLE IF NOT EXISTS gm_state (
                        record_key VARCHAR(64) NOT NULL PRIMARY KEY,
                        payload TEXT NOT NULL,
                        updated_at INTEGER NOT NULL
                    )
                    """
                )
            )

    def load(self) -> Optional[Dict[str, Any]]:
        with self.SessionLocal() as session:
            row = session.execute(
                text("SELECT payload FROM gm_state WHERE record_key = :key"),
                {"key": self.record_key},
            ).first()
        if row is None:
            return None
        try:
            payload = json.loads(row.payload)
        except Exception:
            logger.warning("Director state row is not valid JSON", exc_info=True, extra={"record_key": self.record_key})
            return None
        if not isinstance(payload, dict):
            logger.warning("Director state row is not an object", extra={"record_key": self.record_key})
            return None
        return payload

    def save(self, payload: Dict[str, Any]) -> None:
        with self.SessionLocal.begin() as session:
            dialect = session.bind.dialect.name if session.bind is not None else "mysql"
            if dialect == "mysql":
                statement = text(
                    """
                    INSERT INTO gm_state (record_key, payload, updated_at)
                    VALUES (:key, :payload, :updated_at)
                    ON DUPLICATE KEY UPDATE
                        payload = VALUES(payload),
                        updated_at = VALUES(updated_at)
                    """
                )
            else:
                statement = text(
                    """
                    INSERT INTO gm_state (record_key, payload, updated_at)
                    VALUES (:key, :payload, :updated_at)
                    ON CONFLICT(record_key) DO UPDATE SET
                        payload = excluded.payload,
                        updated_at = excluded.updated_at
                    """
                )
            session.execute(
                statement,
                {
                    "key": self.record_key,
                    "payload": json.dumps(payload, ensure_ascii=False, sort_keys=True),
                    "updated_at": int(time.time()),
                },
            )

    def clear(self) -> None:
        with self.SessionLocal.begin() as session:
            session.execute(text("DELETE FROM gm_state WHERE record_key = :key"), {"key": self.record_key})
