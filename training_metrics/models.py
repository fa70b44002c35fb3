"""
Training Metrics — Data models

Frozen dataclasses for the records the store hands us. A set is either
planned (is_completed=False, no actual values) or executed (is_completed
with actual reps/weight filled in at completion time). Every "mutation"
elsewhere in the package goes through dataclasses.replace.

from_dict() is the boundary: it accepts the app store's camelCase records
(and snake_case), and raises InvalidRecordError on anything malformed.
"""
import math
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum

from training_metrics.errors import InvalidRecordError


class SetType(str, Enum):
    WARMUP = "warmup"
    WORKING = "working"
    DROPSET = "dropset"
    FAILURE = "failure"
    REST_PAUSE = "rest_pause"
    EMOM = "emom"
    AMRAP = "amrap"
    TABATA = "tabata"
    TEMPO = "tempo"
    ISOMETRIC = "isometric"


class SessionStatus(str, Enum):
    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RESERVED = "reserved"


# ═════════════════════════════════════════════════════════════════════
# PARSING HELPERS
# ═════════════════════════════════════════════════════════════════════

def _mapping(record, kind: str) -> dict:
    if not isinstance(record, dict):
        raise InvalidRecordError(f"{kind} record must be a mapping, got {type(record).__name__}")
    return record


def _pick(record: dict, snake: str, camel: str | None = None, default=None):
    if snake in record and record[snake] is not None:
        return record[snake]
    if camel and camel in record and record[camel] is not None:
        return record[camel]
    return default


def _list(record: dict, snake: str, camel: str | None = None) -> list:
    value = _pick(record, snake, camel, default=[])
    if not isinstance(value, (list, tuple)):
        raise InvalidRecordError(f"{camel or snake} must be a list, got {type(value).__name__}")
    return list(value)


def _num(value, name: str):
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidRecordError(f"{name} must be a number, got {value!r}")
    if isinstance(value, int):
        return value
    try:
        n = float(value)
    except (TypeError, ValueError):
        raise InvalidRecordError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(n):
        raise InvalidRecordError(f"{name} must be a finite number, got {value!r}")
    return n


def _int(value, name: str):
    n = _num(value, name)
    if n is None:
        return None
    if n != int(n):
        raise InvalidRecordError(f"{name} must be a whole number, got {value!r}")
    return int(n)


def parse_timestamp(value) -> datetime | None:
    """ISO string / date / datetime → naive UTC datetime (None passes through)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        ts = value
    elif isinstance(value, date):
        ts = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        try:
            ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            raise InvalidRecordError(f"invalid timestamp: {value!r}")
    else:
        raise InvalidRecordError(f"invalid timestamp: {value!r}")
    if ts.tzinfo is not None:
        try:
            ts = ts.astimezone(timezone.utc).replace(tzinfo=None)
        except OverflowError:
            raise InvalidRecordError(f"timestamp out of range: {value!r}")
    return ts


def _enum(enum_cls, value, name: str, default):
    if value is None:
        return default
    try:
        return enum_cls(value)
    except (TypeError, ValueError):
        raise InvalidRecordError(f"unknown {name}: {value!r}")


def _required(record: dict, snake: str, camel: str | None = None) -> str:
    value = _pick(record, snake, camel)
    if value in (None, ""):
        raise InvalidRecordError(f"record is missing required field {camel or snake!r}")
    return str(value)


# ═════════════════════════════════════════════════════════════════════
# SESSION RECORDS
# ═════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SetEntry:
    id: str
    set_number: int = 1
    type: SetType = SetType.WORKING
    target_reps: int | None = None
    actual_reps: int | None = None
    target_weight: float | None = None
    actual_weight: float | None = None
    rpe: float | None = None          # 1-10
    rir: float | None = None          # 0-5+
    intensity: float | None = None    # explicit 1-10 override
    rest_seconds: int | None = None
    notes: str | None = None
    is_completed: bool = False
    completed_at: datetime | None = None
    block_id: str | None = None

    @property
    def is_warmup(self) -> bool:
        return self.type == SetType.WARMUP

    @classmethod
    def from_dict(cls, record: dict) -> "SetEntry":
        record = _mapping(record, "set")
        return cls(
            id=_required(record, "id"),
            set_number=_int(_pick(record, "set_number", "setNumber", 1), "setNumber"),
            type=_enum(SetType, _pick(record, "type"), "set type", SetType.WORKING),
            target_reps=_int(_pick(record, "target_reps", "targetReps"), "targetReps"),
            actual_reps=_int(_pick(record, "actual_reps", "actualReps"), "actualReps"),
            target_weight=_num(_pick(record, "target_weight", "targetWeight"), "targetWeight"),
            actual_weight=_num(_pick(record, "actual_weight", "actualWeight"), "actualWeight"),
            rpe=_num(_pick(record, "rpe"), "rpe"),
            rir=_num(_pick(record, "rir"), "rir"),
            intensity=_num(_pick(record, "intensity"), "intensity"),
            rest_seconds=_int(_pick(record, "rest_seconds", "restSeconds"), "restSeconds"),
            notes=_pick(record, "notes"),
            is_completed=bool(_pick(record, "is_completed", "isCompleted", False)),
            completed_at=parse_timestamp(_pick(record, "completed_at", "completedAt")),
            block_id=_pick(record, "block_id", "blockId"),
        )


@dataclass(frozen=True)
class ExerciseEntry:
    id: str
    exercise_id: str
    sets: tuple[SetEntry, ...] = ()
    order: int = 0
    block_type: str | None = None
    notes: str | None = None
    strength_focus: bool = False

    @classmethod
    def from_dict(cls, record: dict) -> "ExerciseEntry":
        record = _mapping(record, "exercise")
        return cls(
            id=_required(record, "id"),
            exercise_id=_required(record, "exercise_id", "exerciseId"),
            sets=tuple(SetEntry.from_dict(s) for s in _list(record, "sets")),
            order=_int(_pick(record, "order", default=0), "order"),
            block_type=_pick(record, "block_type", "blockType"),
            notes=_pick(record, "notes"),
            strength_focus=bool(_pick(record, "strength_focus", "strengthFocus", False)),
        )


@dataclass(frozen=True)
class WorkoutSession:
    id: str
    athlete_id: str
    status: SessionStatus = SessionStatus.PLANNED
    exercises: tuple[ExerciseEntry, ...] = ()
    created_at: datetime | None = None
    scheduled_date: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    pre_session_fatigue: int | None = None   # 1-10
    # Cached totals, recomputed on completion. Read paths that need
    # freshness go through analytics.resolve_session_volume().
    total_volume: float | None = None
    total_sets: int | None = None
    total_reps: int | None = None
    avg_intensity: float | None = None
    duration_minutes: int | None = None

    @classmethod
    def from_dict(cls, record: dict) -> "WorkoutSession":
        record = _mapping(record, "session")
        return cls(
            id=_required(record, "id"),
            athlete_id=_required(record, "athlete_id", "athleteId"),
            status=_enum(SessionStatus, _pick(record, "status"), "session status", SessionStatus.PLANNED),
            exercises=tuple(ExerciseEntry.from_dict(e) for e in _list(record, "exercises")),
            created_at=parse_timestamp(_pick(record, "created_at", "createdAt")),
            scheduled_date=parse_timestamp(_pick(record, "scheduled_date", "scheduledDate")),
            started_at=parse_timestamp(_pick(record, "started_at", "startedAt")),
            completed_at=parse_timestamp(_pick(record, "completed_at", "completedAt")),
            pre_session_fatigue=_int(_pick(record, "pre_session_fatigue", "preSessionFatigue"), "preSessionFatigue"),
            total_volume=_num(_pick(record, "total_volume", "totalVolume"), "totalVolume"),
            total_sets=_int(_pick(record, "total_sets", "totalSets"), "totalSets"),
            total_reps=_int(_pick(record, "total_reps", "totalReps"), "totalReps"),
            avg_intensity=_num(_pick(record, "avg_intensity", "avgIntensity"), "avgIntensity"),
            duration_minutes=_int(_pick(record, "duration_minutes", "durationMinutes"), "durationMinutes"),
        )


# ═════════════════════════════════════════════════════════════════════
# CATALOG, ATHLETES, PLANS
# ═════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Exercise:
    id: str
    name: str
    muscle_groups: tuple[str, ...] = ()
    is_bodyweight: bool = False

    @classmethod
    def from_dict(cls, record: dict) -> "Exercise":
        record = _mapping(record, "catalog exercise")
        return cls(
            id=_required(record, "id"),
            name=str(_pick(record, "name", default="")),
            muscle_groups=tuple(str(m) for m in _list(record, "muscle_groups", "muscleGroups")),
            is_bodyweight=bool(_pick(record, "is_bodyweight", "isBodyweight", False)),
        )


@dataclass(frozen=True)
class OneRMRecord:
    """The athlete's confirmed 1RM for one exercise. Only ever set by the user."""
    exercise_id: str
    current_one_rm: float
    strength_focus_sessions: int = 0
    source: str | None = None
    last_update: datetime | None = None

    @classmethod
    def from_dict(cls, record: dict, exercise_id: str | None = None) -> "OneRMRecord":
        record = _mapping(record, "1RM")
        return cls(
            exercise_id=exercise_id or _required(record, "exercise_id", "exerciseId"),
            current_one_rm=_num(_pick(record, "current_one_rm", "currentOneRM", 0), "currentOneRM"),
            strength_focus_sessions=_int(
                _pick(record, "strength_focus_sessions", "strengthFocusSessions", 0), "strengthFocusSessions"),
            source=_pick(record, "source"),
            last_update=parse_timestamp(_pick(record, "last_update", "lastUpdate")),
        )


def _one_rm_records(value) -> tuple:
    """Store keeps these keyed by exercise id; a plain list is accepted too."""
    if value is None:
        return ()
    if isinstance(value, dict):
        return tuple(OneRMRecord.from_dict(r, exercise_id=str(k)) for k, r in value.items())
    if isinstance(value, (list, tuple)):
        return tuple(OneRMRecord.from_dict(r) for r in value)
    raise InvalidRecordError(f"oneRMRecords must be a mapping or list, got {type(value).__name__}")


@dataclass(frozen=True)
class Athlete:
    id: str
    name: str = ""
    weight_kg: float | None = None
    one_rm_records: tuple[OneRMRecord, ...] = ()

    def one_rm_record(self, exercise_id: str) -> OneRMRecord | None:
        return next((r for r in self.one_rm_records if r.exercise_id == exercise_id), None)

    def one_rm(self, exercise_id: str) -> float | None:
        record = self.one_rm_record(exercise_id)
        return record.current_one_rm if record else None

    @classmethod
    def from_dict(cls, record: dict) -> "Athlete":
        record = _mapping(record, "athlete")
        return cls(
            id=_required(record, "id"),
            name=str(_pick(record, "name", default="")),
            weight_kg=_num(_pick(record, "weight_kg", "weightKg"), "weightKg"),
            one_rm_records=_one_rm_records(_pick(record, "one_rm_records", "oneRMRecords")),
        )


@dataclass(frozen=True)
class DayPlan:
    day_of_week: str
    session_type: str | None = None
    intensity: float | None = None

    @classmethod
    def from_dict(cls, record: dict) -> "DayPlan":
        record = _mapping(record, "day plan")
        return cls(
            day_of_week=_required(record, "day_of_week", "dayOfWeek"),
            session_type=_pick(record, "session_type", "sessionType"),
            intensity=_num(_pick(record, "intensity"), "intensity"),
        )


@dataclass(frozen=True)
class TrainingPlan:
    athlete_id: str
    sessions_per_week: int
    weekly_volume: float = 0
    id: str = ""
    day_plans: tuple[DayPlan, ...] = ()
    current_microcycle: int | None = None

    @classmethod
    def from_dict(cls, record: dict) -> "TrainingPlan":
        record = _mapping(record, "plan")
        metadata = _mapping(_pick(record, "metadata", default={}), "plan metadata")
        microcycle = _pick(record, "current_microcycle", "currentMicrocycle")
        if microcycle is None:
            microcycle = _pick(metadata, "current_microcycle", "currentMicrocycle")
        return cls(
            id=str(_pick(record, "id", default="")),
            athlete_id=_required(record, "athlete_id", "athleteId"),
            sessions_per_week=_int(_pick(record, "sessions_per_week", "sessionsPerWeek", 0), "sessionsPerWeek"),
            weekly_volume=_num(_pick(record, "weekly_volume", "weeklyVolume", 0), "weeklyVolume"),
            day_plans=tuple(DayPlan.from_dict(d) for d in _list(record, "day_plans", "dayPlans")),
            current_microcycle=_int(microcycle, "currentMicrocycle"),
        )


@dataclass(frozen=True)
class PlannedSession:
    """A calendar slot from the plan; only the date matters for adherence."""
    scheduled_date: datetime | None = None
    athlete_id: str | None = None

    @classmethod
    def from_dict(cls, record: dict) -> "PlannedSession":
        record = _mapping(record, "planned session")
        return cls(
            scheduled_date=parse_timestamp(_pick(record, "scheduled_date", "scheduledDate")),
            athlete_id=_pick(record, "athlete_id", "athleteId"),
        )


@dataclass(frozen=True)
class WeekRange:
    start: datetime
    end: datetime

    def contains(self, ts: datetime) -> bool:
        return self.start <= ts <= self.end


# ═════════════════════════════════════════════════════════════════════
# BULK LOADERS
# ═════════════════════════════════════════════════════════════════════

def _records(records, kind: str) -> list:
    if records is None:
        return []
    if not isinstance(records, (list, tuple)):
        raise InvalidRecordError(f"{kind} must be a list of records, got {type(records).__name__}")
    return list(records)


def load_sessions(records: list[dict]) -> list[WorkoutSession]:
    return [WorkoutSession.from_dict(r) for r in _records(records, "sessions")]


def load_exercises(records: list[dict]) -> list[Exercise]:
    return [Exercise.from_dict(r) for r in _records(records, "exercises")]


def load_plans(records: list[dict]) -> list[TrainingPlan]:
    return [TrainingPlan.from_dict(r) for r in _records(records, "plans")]


def load_athletes(records: list[dict]) -> list[Athlete]:
    return [Athlete.from_dict(r) for r in _records(records, "athletes")]
