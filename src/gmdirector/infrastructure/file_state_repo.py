import json
import logging
import os
import time
from pathlib import Path
from typing import Any

from gmdirector.domain import constants
from gmdirector.domain.repositories import GmStateRepository

logger = logging.getLogger(__name__)


class FileGmStateRepository(GmStateRepository):
    """One JSON envelope per record key, replaced atomically on every save."""

    def __init__(self, root_dir: str | Path, *, record_key: str = constants.STATE_RECORD_KEY) -> None:
        self.root_dir = Path(root_dir)
        self.record_key = str(record_key).strip() or constants.STATE_RECORD_KEY
        self.root_dir.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self.root_dir / f"{self.record_key}.json"

    def load(self) -> dict[str, Any] | None:
        if not self.path.exists():
            return None
        try:
            envelope = json.loads(self.path.read_text(encoding="utf-8"))
        except Exception:
            logger.warning("Director state file is unreadable", exc_info=True, extra={"path": str(self.path)})
            return None
        payload = envelope.get("payload") if isinstance(envelope, dict) else None
        if not isinstance(payload, dict):
            logger.warning("Director state file has no payload object", extra={"path": str(self.path)})
            return None
        return payload

    def save(self, payload: dict[str, Any]) -> None:
        envelope = {
            "stored_at": int(time.time()),
            "payload": payload,
        }
        tmp_path = self.path.with_suffix(".tmp")
        tmp_path.write_text(json.dumps(envelope, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp_path, self.path)

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            return
