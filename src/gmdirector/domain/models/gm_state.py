from __future__ import annotations

import math
from dataclasses import dataclass, field, fields, is_dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar

from gmdirector.domain import constants


class MoodLabel(str, Enum):
    CALM = "calm"
    CURIOUS = "curious"
    BORED = "bored"
    NEUTRAL = "neutral"
    PLAYFUL = "playful"
    STERN = "stern"
    RESTLESS = "restless"


class MechanicId(str, Enum):
    QUEST_BOARD = "questBoard"
    FOLLOWERS = "followers"
    FISHING = "fishing"
    LOCKPICKING = "lockpicking"


class TraitId(str, Enum):
    TROLL_SLAYER = "trollSlayer"
    TOWN_PROTECTOR = "townProtector"
    CARAVAN_ALLY = "caravanAlly"


class KnowledgeState(str, Enum):
    UNSEEN = "unseen"
    SEEN_NOT_TRIED = "seenNotTried"
    TRIED_RECENTLY = "triedRecently"
    TRIED_LONG_AGO = "triedLongAgo"
    DISINTERESTED = "disinterested"


class ActionStatus(str, Enum):
    SCHEDULED = "scheduled"
    READY = "ready"
    CONSUMED = "consumed"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class Delivery(str, Enum):
    AUTO = "auto"
    CONFIRM = "confirm"
    MARKER = "marker"


_E = TypeVar("_E", bound=Enum)


def parse_enum(enum_cls: Type[_E], raw: Any, default: Optional[_E] = None) -> Optional[_E]:
    if isinstance(raw, enum_cls):
        return raw
    try:
        return enum_cls(str(raw).strip())
    except Exception:
        return default


def _enum_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _as_int(raw: Any, default: int = 0) -> int:
    if isinstance(raw, bool):
        return int(raw)
    try:
        value = float(raw)
    except Exception:
        return default
    if not math.isfinite(value):
        return default
    return int(value)


def _count(raw: Any) -> int:
    return max(0, _as_int(raw, 0))


def _turn(raw: Any) -> Optional[int]:
    if raw is None:
        return None
    value = _as_int(raw, -1)
    return value if value >= 0 else None


def _bounded(raw: Any, default: float, low: float, high: float) -> float:
    if isinstance(raw, bool):
        return default
    try:
        value = float(raw)
    except Exception:
        return default
    if not math.isfinite(value):
        return default
    return min(high, max(low, value))


def _mapping(raw: Any) -> Mapping[str, Any]:
    return raw if isinstance(raw, Mapping) else {}


def _as_row(value: Any) -> Any:
    return value.to_dict() if hasattr(value, "to_dict") else value


def _dict_rows(raw: Any, limit: int) -> List[Dict[str, Any]]:
    if not isinstance(raw, list):
        return []
    return [dict(row) for row in raw if isinstance(row, Mapping)][:limit]


def _repair_into(current: Any, repaired: Any) -> Any:
    """Copy repaired values onto ``current``, keeping every existing container object."""

    if is_dataclass(current) and type(current) is type(repaired):
        for item in fields(current):
            setattr(current, item.name, _repair_into(getattr(current, item.name), getattr(repaired, item.name)))
        return current
    if isinstance(current, dict) and isinstance(repaired, dict):
        for key in [key for key in current if key not in repaired]:
            del current[key]
        for key, value in repaired.items():
            current[key] = _repair_into(current[key], value) if key in current else value
        return current
    if isinstance(current, list) and isinstance(repaired, list):
        current[:] = repaired
        return current
    return repaired


@dataclass
class Tally:
    """Reputation counter used for traits, families and factions."""

    seen: int = 0
    positive: int = 0
    negative: int = 0
    last_updated_turn: Optional[int] = None

    @property
    def score(self) -> float:
        total = self.positive + self.negative
        if total <= 0:
            return 0.0
        return (self.positive - self.negative) / total

    def record(self, turn: Optional[int], *, seen: int = 0, positive: int = 0, negative: int = 0) -> None:
        self.seen += max(0, int(seen))
        self.positive += max(0, int(positive))
        self.negative += max(0, int(negative))
        self.last_updated_turn = _turn(turn)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seen": self.seen,
            "positive": self.positive,
            "negative": self.negative,
            "last_updated_turn": self.last_updated_turn,
        }

    @classmethod
    def from_dict(cls, raw: Any) -> "Tally":
        data = _mapping(raw)
        return cls(
            seen=_count(data.get("seen")),
            positive=_count(data.get("positive")),
            negative=_count(data.get("negative")),
            last_updated_turn=_turn(data.get("last_updated_turn")),
        )


@dataclass
class MechanicUsage:
    seen: int = 0
    tried: int = 0
    success: int = 0
    failure: int = 0
    dismiss: int = 0
    first_seen_turn: Optional[int] = None
    last_used_turn: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seen": self.seen,
            "tried": self.tried,
            "success": self.success,
            "failure": self.failure,
            "dismiss": self.dismiss,
            "first_seen_turn": self.first_seen_turn,
            "last_used_turn": self.last_used_turn,
        }

    @classmethod
    def from_dict(cls, raw: Any) -> "MechanicUsage":
        data = _mapping(raw)
        return cls(
            seen=_count(data.get("seen")),
            tried=_count(data.get("tried")),
            success=_count(data.get("success")),
            failure=_count(data.get("failure")),
            dismiss=_count(data.get("dismiss")),
            first_seen_turn=_turn(data.get("first_seen_turn")),
            last_used_turn=_turn(data.get("last_used_turn")),
        )


@dataclass
class Mood:
    primary: MoodLabel = MoodLabel.NEUTRAL
    valence: float = 0.0
    arousal: float = 0.0
    baseline_valence: float = 0.0
    baseline_arousal: float = 0.0
    transient_valence: float = 0.0
    transient_arousal: float = 0.0
    last_updated_turn: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "primary": _enum_value(self.primary),
            "valence": self.valence,
            "arousal": self.arousal,
            "baseline_valence": self.baseline_valence,
            "baseline_arousal": self.baseline_arousal,
            "transient_valence": self.transient_valence,
            "transient_arousal": self.transient_arousal,
            "last_updated_turn": self.last_updated_turn,
        }

    @classmethod
    def from_dict(cls, raw: Any) -> "Mood":
        data = _mapping(raw)
        return cls(
            primary=parse_enum(MoodLabel, data.get("primary"), MoodLabel.NEUTRAL),
            valence=_bounded(data.get("valence"), 0.0, -1.0, 1.0),
            arousal=_bounded(data.get("arousal"), 0.0, 0.0, 1.0),
            baseline_valence=_bounded(data.get("baseline_valence"), 0.0, -1.0, 1.0),
            baseline_arousal=_bounded(data.get("baseline_arousal"), 0.0, 0.0, 1.0),
            transient_valence=_bounded(data.get("transient_valence"), 0.0, -1.0, 1.0),
            transient_arousal=_bounded(data.get("transient_arousal"), 0.0, -1.0, 1.0),
            last_updated_turn=_turn(data.get("last_updated_turn")),
        )


@dataclass
class InterestingEvent:
    type: str
    scope: str
    turn: int

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "scope": self.scope, "turn": self.turn}

    @classmethod
    def from_dict(cls, raw: Any) -> Optional["InterestingEvent"]:
        if not isinstance(raw, Mapping):
            return None
        turn = _turn(raw.get("turn"))
        if turn is None:
            return None
        return cls(type=str(raw.get("type") or ""), scope=str(raw.get("scope") or ""), turn=turn)


@dataclass
class Boredom:
    level: float = 0.0
    turns_since_last_interesting_event: int = 0
    last_interesting_event: Optional[InterestingEvent] = None

    def to_dict(self) -> Dict[str, Any]:
        event = self.last_interesting_event
        return {
            "level": self.level,
            "turns_since_last_interesting_event": self.turns_since_last_interesting_event,
            "last_interesting_event": event.to_dict() if isinstance(event, InterestingEvent) else None,
        }

    @classmethod
    def from_dict(cls, raw: Any) -> "Boredom":
        data = _mapping(raw)
        return cls(
            level=_bounded(data.get("level"), 0.0, 0.0, 1.0),
            turns_since_last_interesting_event=_count(data.get("turns_since_last_interesting_event")),
            last_interesting_event=InterestingEvent.from_dict(data.get("last_interesting_event")),
        )


@dataclass
class Stats:
    total_turns: int = 0
    mode_turns: Dict[str, int] = field(default_factory=dict)
    mode_entries: Dict[str, int] = field(default_factory=dict)
    encounter_starts: int = 0
    encounter_completions: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_turns": self.total_turns,
            "mode_turns": dict(self.mode_turns),
            "mode_entries": dict(self.mode_entries),
            "encounter_starts": self.encounter_starts,
            "encounter_completions": self.encounter_completions,
        }

    @classmethod
    def from_dict(cls, raw: Any) -> "Stats":
        data = _mapping(raw)
        return cls(
            total_turns=_count(data.get("total_turns")),
            mode_turns={str(key): _count(value) for key, value in _mapping(data.get("mode_turns")).items()},
            mode_entries={str(key): _count(value) for key, value in _mapping(data.get("mode_entries")).items()},
            encounter_starts=_count(data.get("encounter_starts")),
            encounter_completions=_count(data.get("encounter_completions")),
        )


@dataclass
class RngState:
    algo: str = constants.GM_RNG_ALGO
    state: int = 0
    calls: int = 0

    @property
    def pristine(self) -> bool:
        return self.state == 0 and self.calls == 0

    def to_dict(self) -> Dict[str, Any]:
        return {"algo": self.algo, "state": self.state, "calls": self.calls}

    @classmethod
    def from_dict(cls, raw: Any) -> "RngState":
        data = _mapping(raw)
        if data.get("algo", constants.GM_RNG_ALGO) != constants.GM_RNG_ALGO:
            return cls()
        return cls(
            state=_as_int(data.get("state"), 0) & constants.UINT32_MASK,
            calls=_count(data.get("calls")) & constants.UINT32_MASK,
        )


@dataclass
class SchedulerAction:
    id: str
    kind: str
    status: ActionStatus = ActionStatus.SCHEDULED
    priority: int = 0
    delivery: Delivery = Delivery.AUTO
    allow_multiple_per_turn: bool = False
    created_turn: int = 0
    earliest_turn: int = 0
    latest_turn: int = 0
    payload: Dict[str, Any] = field(default_factory=dict)
    consumed_turn: Optional[int] = None

    def in_window(self, turn: int) -> bool:
        if turn < self.earliest_turn:
            return False
        return self.latest_turn <= 0 or turn <= self.latest_turn

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind,
            "status": _enum_value(self.status),
            "priority": self.priority,
            "delivery": _enum_value(self.delivery),
            "allow_multiple_per_turn": bool(self.allow_multiple_per_turn),
            "created_turn": self.created_turn,
            "earliest_turn": self.earliest_turn,
            "latest_turn": self.latest_turn,
            "payload": dict(self.payload) if isinstance(self.payload, Mapping) else {},
            "consumed_turn": self.consumed_turn,
        }

    @classmethod
    def from_dict(cls, action_id: str, raw: Any) -> "SchedulerAction":
        data = _mapping(raw)
        return cls(
            id=action_id,
            kind=str(data.get("kind") or ""),
            status=parse_enum(ActionStatus, data.get("status"), ActionStatus.SCHEDULED),
            priority=_as_int(data.get("priority"), 0),
            delivery=parse_enum(Delivery, data.get("delivery"), Delivery.AUTO),
            allow_multiple_per_turn=data.get("allow_multiple_per_turn") is True,
            created_turn=_count(data.get("created_turn")),
            earliest_turn=_count(data.get("earliest_turn")),
            latest_turn=_count(data.get("latest_turn")),
            payload=dict(_mapping(data.get("payload"))),
            consumed_turn=_turn(data.get("consumed_turn")),
        )


@dataclass
class SchedulerState:
    actions: Dict[str, SchedulerAction] = field(default_factory=dict)
    queue: List[str] = field(default_factory=list)
    history: List[Dict[str, Any]] = field(default_factory=list)
    last_auto_turn: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "actions": {action_id: action.to_dict() for action_id, action in self.actions.items()},
            "queue": list(self.queue),
            "history": [dict(row) for row in self.history],
            "last_auto_turn": self.last_auto_turn,
        }

    @classmethod
    def from_dict(cls, raw: Any) -> "SchedulerState":
        data = _mapping(raw)
        actions: Dict[str, SchedulerAction] = {}
        for key, value in _mapping(data.get("actions")).items():
            action_id = str(key).strip()
            if action_id and isinstance(value, Mapping):
                actions[action_id] = SchedulerAction.from_dict(action_id, value)

        queue: List[str] = []
        raw_queue = data.get("queue")
        for action_id in raw_queue if isinstance(raw_queue, list) else []:
            action_id = str(action_id)
            if action_id in actions and action_id not in queue:
                queue.append(action_id)
        queue.extend(action_id for action_id in sorted(actions) if action_id not in queue)

        history = []
        for row in _dict_rows(data.get("history"), constants.SCHEDULER_HISTORY_LIMIT):
            turn = _turn(row.get("turn"))
            if turn is not None:
                history.append({"turn": turn, "id": str(row.get("id") or "")})

        return cls(actions=actions, queue=queue, history=history, last_auto_turn=_turn(data.get("last_auto_turn")))


@dataclass
class StoryFlags:
    first_entrance_flavor_shown: bool = False
    guard_fine_paid: bool = False
    guard_fine_refusals: int = 0
    guard_fine_last_refusal_turn: Optional[int] = None
    guard_fine_refusals_decayed: int = 0
    guard_fine_heat_last_decay_turn: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "first_entrance_flavor_shown": bool(self.first_entrance_flavor_shown),
            "guard_fine_paid": bool(self.guard_fine_paid),
            "guard_fine_refusals": self.guard_fine_refusals,
            "guard_fine_last_refusal_turn": self.guard_fine_last_refusal_turn,
            "guard_fine_refusals_decayed": self.guard_fine_refusals_decayed,
            "guard_fine_heat_last_decay_turn": self.guard_fine_heat_last_decay_turn,
        }

    @classmethod
    def from_dict(cls, raw: Any) -> "StoryFlags":
        data = _mapping(raw)
        refusals = _count(data.get("guard_fine_refusals"))
        return cls(
            first_entrance_flavor_shown=data.get("first_entrance_flavor_shown") is True,
            guard_fine_paid=data.get("guard_fine_paid") is True,
            guard_fine_refusals=refusals,
            guard_fine_last_refusal_turn=_turn(data.get("guard_fine_last_refusal_turn")),
            guard_fine_refusals_decayed=min(refusals, _count(data.get("guard_fine_refusals_decayed"))),
            guard_fine_heat_last_decay_turn=_turn(data.get("guard_fine_heat_last_decay_turn")),
        )


@dataclass
class DebugCounters:
    ticks: int = 0
    events: int = 0
    interesting_events: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"ticks": self.ticks, "events": self.events, "interesting_events": self.interesting_events}

    @classmethod
    def from_dict(cls, raw: Any) -> "DebugCounters":
        data = _mapping(raw)
        return cls(
            ticks=_count(data.get("ticks")),
            events=_count(data.get("events")),
            interesting_events=_count(data.get("interesting_events")),
        )


@dataclass
class DebugState:
    last_tick_turn: Optional[int] = None
    counters: DebugCounters = field(default_factory=DebugCounters)
    last_event: Optional[Dict[str, Any]] = None
    last_events: List[Dict[str, Any]] = field(default_factory=list)
    last_intent: Optional[Dict[str, Any]] = None
    intent_history: List[Dict[str, Any]] = field(default_factory=list)

    def push_event(self, entry: Dict[str, Any]) -> None:
        self.last_event = entry
        self.last_events.insert(0, entry)
        del self.last_events[constants.MAX_DEBUG_EVENTS:]

    def push_intent(self, entry: Dict[str, Any]) -> None:
        self.last_intent = entry
        self.intent_history.insert(0, entry)
        del self.intent_history[constants.MAX_INTENT_HISTORY:]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "last_tick_turn": self.last_tick_turn,
            "counters": self.counters.to_dict(),
            "last_event": dict(self.last_event) if isinstance(self.last_event, Mapping) else None,
            "last_events": [dict(row) for row in self.last_events],
            "last_intent": dict(self.last_intent) if isinstance(self.last_intent, Mapping) else None,
            "intent_history": [dict(row) for row in self.intent_history],
        }

    @classmethod
    def from_dict(cls, raw: Any) -> "DebugState":
        data = _mapping(raw)
        last_event = data.get("last_event")
        last_intent = data.get("last_intent")
        return cls(
            last_tick_turn=_turn(data.get("last_tick_turn")),
            counters=DebugCounters.from_dict(data.get("counters")),
            last_event=dict(last_event) if isinstance(last_event, Mapping) else None,
            last_events=_dict_rows(data.get("last_events"), constants.MAX_DEBUG_EVENTS),
            last_intent=dict(last_intent) if isinstance(last_intent, Mapping) else None,
            intent_history=_dict_rows(data.get("intent_history"), constants.MAX_INTENT_HISTORY),
        )


def _tally_map(raw: Any) -> Dict[str, Tally]:
    rows: Dict[str, Tally] = {}
    for key, value in _mapping(raw).items():
        name = str(key).strip()
        if name:
            rows[name] = Tally.from_dict(value)
    return rows


@dataclass
class GmState:
    """Everything the director remembers about one run."""

    run_seed: int = 0
    schema_version: int = constants.SCHEMA_VERSION
    enabled: bool = True
    rng: RngState = field(default_factory=RngState)
    scheduler: SchedulerState = field(default_factory=SchedulerState)
    mood: Mood = field(default_factory=Mood)
    boredom: Boredom = field(default_factory=Boredom)
    stats: Stats = field(default_factory=Stats)
    traits: Dict[TraitId, Tally] = field(default_factory=lambda: {trait: Tally() for trait in TraitId})
    mechanics: Dict[MechanicId, MechanicUsage] = field(
        default_factory=lambda: {mechanic: MechanicUsage() for mechanic in MechanicId}
    )
    families: Dict[str, Tally] = field(default_factory=dict)
    factions: Dict[str, Tally] = field(default_factory=dict)
    story_flags: StoryFlags = field(default_factory=StoryFlags)
    debug: DebugState = field(default_factory=DebugState)
    last_mode: str = "world"
    last_action_turn: Optional[int] = None
    last_entrance_intent_turn: Optional[int] = None
    last_hint_intent_turn: Optional[int] = None
    last_hint_intent_town_entry: Optional[int] = None

    @classmethod
    def create(cls, run_seed: int) -> "GmState":
        return cls(run_seed=int(run_seed) & constants.UINT32_MASK)

    def normalize(self) -> "GmState":
        """Repair every substructure in place; returns self."""

        return _repair_into(self, GmState.from_dict(self.to_dict()))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema_version": self.schema_version,
            "enabled": bool(self.enabled),
            "run_seed": self.run_seed,
            "rng": self.rng.to_dict(),
            "scheduler": self.scheduler.to_dict(),
            "mood": self.mood.to_dict(),
            "boredom": self.boredom.to_dict(),
            "stats": self.stats.to_dict(),
            "traits": {str(_enum_value(key)): _as_row(tally) for key, tally in self.traits.items()},
            "mechanics": {str(_enum_value(key)): _as_row(usage) for key, usage in self.mechanics.items()},
            "families": {key: _as_row(tally) for key, tally in self.families.items()},
            "factions": {key: _as_row(tally) for key, tally in self.factions.items()},
            "story_flags": self.story_flags.to_dict(),
            "debug": self.debug.to_dict(),
            "last_mode": self.last_mode,
            "last_action_turn": self.last_action_turn,
            "last_entrance_intent_turn": self.last_entrance_intent_turn,
            "last_hint_intent_turn": self.last_hint_intent_turn,
            "last_hint_intent_town_entry": self.last_hint_intent_town_entry,
        }

    @classmethod
    def from_dict(cls, raw: Any) -> "GmState":
        data = _mapping(raw)
        traits = _mapping(data.get("traits"))
        mechanics = _mapping(data.get("mechanics"))
        return cls(
            run_seed=_as_int(data.get("run_seed"), 0) & constants.UINT32_MASK,
            schema_version=constants.SCHEMA_VERSION,
            enabled=data.get("enabled") is not False,
            rng=RngState.from_dict(data.get("rng")),
            scheduler=SchedulerState.from_dict(data.get("scheduler")),
            mood=Mood.from_dict(data.get("mood")),
            boredom=Boredom.from_dict(data.get("boredom")),
            stats=Stats.from_dict(data.get("stats")),
            traits={trait: Tally.from_dict(traits.get(trait.value)) for trait in TraitId},
            mechanics={mechanic: MechanicUsage.from_dict(mechanics.get(mechanic.value)) for mechanic in MechanicId},
            families=_tally_map(data.get("families")),
            factions=_tally_map(data.get("factions")),
            story_flags=StoryFlags.from_dict(data.get("story_flags")),
            debug=DebugState.from_dict(data.get("debug")),
            last_mode=str(data.get("last_mode") or "world"),
            last_action_turn=_turn(data.get("last_action_turn")),
            last_entrance_intent_turn=_turn(data.get("last_entrance_intent_turn")),
            last_hint_intent_turn=_turn(data.get("last_hint_intent_turn")),
            last_hint_intent_town_entry=_turn(data.get("last_hint_intent_town_entry")),
        )
