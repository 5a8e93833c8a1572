from abc import ABC, abstractmethod
from typing import Any, Dict, Optional


class GmStateRepository(ABC):
    """Durable home of the single director snapshot."""

    @abstractmethod
    def load(self) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    @abstractmethod
    def save(self, payload: Dict[str, Any]) -> None:
        raise NotImplementedError

    @abstractmethod
    def clear(self) -> None:
        raise NotImplementedError
