from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Union


@dataclass(frozen=True)
class NoIntent:
    kind: str = "none"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class FlavorIntent:
    topic: str
    strength: str
    mode: str
    kind: str = "flavor"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class NudgeIntent:
    target: str
    strength: str = "low"
    kind: str = "nudge"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class GuardFineIntent:
    kind: str = "guard_fine"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class EncounterIntent:
    encounter_id: str
    kind: str = "encounter"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


Intent = Union[NoIntent, FlavorIntent, NudgeIntent, GuardFineIntent, EncounterIntent]

NO_INTENT = NoIntent()


@dataclass(frozen=True)
class ChannelDecision:
    channel: str
    intent: Intent
    reason: Optional[str] = None

    @property
    def emitted(self) -> bool:
        return not isinstance(self.intent, NoIntent)


@dataclass(frozen=True)
class ModeShare:
    mode: str
    turns: int


@dataclass(frozen=True)
class Standing:
    key: str
    seen: int
    positive: int
    negative: int
    score: float


@dataclass(frozen=True)
class DirectorProfile:
    total_turns: int
    boredom_level: float
    top_modes: List[ModeShare] = field(default_factory=list)
    top_families: List[Standing] = field(default_factory=list)
    top_factions: List[Standing] = field(default_factory=list)
    active_traits: List[Standing] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
