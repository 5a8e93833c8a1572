from __future__ import annotations

import copy
from typing import Any, Dict, Optional

from gmdirector.domain.repositories import GmStateRepository


class InMemoryGmStateRepository(GmStateRepository):
    def __init__(self, payload: Optional[Dict[str, Any]] = None) -> None:
        self._payload = copy.deepcopy(payload) if payload is not None else None
        self.save_count = 0

    def load(self) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self._payload) if self._payload is not None else None

    def save(self, payload: Dict[str, Any]) -> None:
        self._payload = copy.deepcopy(payload)
        self.save_count += 1

    def clear(self) -> None:
        self._payload = None
