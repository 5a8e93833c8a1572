from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional


@dataclass
class TelemetryEvent:
    """A gameplay occurrence reported to the director."""

    type: str
    turn: int
    scope: Optional[str] = None
    interesting: bool = True
    tags: List[str] = field(default_factory=list)
    payload: Any = None
    reason: Optional[str] = None
    success: Optional[bool] = None
    mechanic: Optional[str] = None
    action: Optional[str] = None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], *, default_turn: int = 0) -> "TelemetryEvent":
        """Adapt a loose host mapping; an explicit ``turn`` wins over ``default_turn``."""

        data = raw if isinstance(raw, Mapping) else {}
        turn = default_turn
        if data.get("turn") is not None:
            try:
                turn = max(0, int(data.get("turn")))
            except Exception:
                turn = default_turn
        raw_tags = data.get("tags")
        tags = [str(tag) for tag in raw_tags if tag is not None] if isinstance(raw_tags, (list, tuple)) else []
        scope = data.get("scope")
        success = data.get("success")
        return cls(
            type=str(data.get("type") or ""),
            turn=max(0, int(turn)),
            scope=str(scope) if scope else None,
            interesting=data.get("interesting") is not False,
            tags=tags,
            payload=data.get("payload"),
            reason=str(data["reason"]) if data.get("reason") is not None else None,
            success=success if isinstance(success, bool) else None,
            mechanic=str(data["mechanic"]) if data.get("mechanic") else None,
            action=str(data["action"]) if data.get("action") else None,
        )


@dataclass
class IntentDecided:
    channel: str
    turn: int
    intent: Dict[str, Any]
    reason: Optional[str]


@dataclass
class FactionTravelConsumed:
    action_id: str
    kind: str
    turn: int


@dataclass
class DirectorReset:
    run_seed: int
