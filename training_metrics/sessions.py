"""
Training Metrics — Session lifecycle

    planned ──start──▶ in_progress ──finish──▶ completed
       │
       └──cancel──▶ cancelled

completed and cancelled are terminal. Sets and exercises can only be
edited while a session is planned or in_progress.

Every operation returns Transitioned(session) or Rejected(reason, session);
an invalid move is never a silent no-op. Rejections are logged at WARNING
on the injected logger and recorded in the flight recorder if one is given.
"""
import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime

from training_metrics.analytics import can_complete_session, refresh_session_totals, resolve_now
from training_metrics.config import DEFAULT_CONFIG, TrainingConfig
from training_metrics.errors import OperationCancelled
from training_metrics.models import ExerciseEntry, SessionStatus, SetEntry, SetType, WorkoutSession
from training_metrics.observability import CancellationToken, FlightRecorder, assert_not_cancelled
from training_metrics.rounding import round_half_up

module_logger = logging.getLogger(__name__)

EDITABLE = (SessionStatus.PLANNED, SessionStatus.IN_PROGRESS)

DEFAULT_TARGET_REPS = 10
DEFAULT_REST_SECONDS = 90


@dataclass(frozen=True)
class Transitioned:
    session: WorkoutSession

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Rejected:
    reason: str
    session: WorkoutSession

    @property
    def ok(self) -> bool:
        return False


def _new_id() -> str:
    return str(uuid.uuid4())


def _first_given(*values, default):
    """First value that is not None; an explicit 0 is a real target."""
    return next((v for v in values if v is not None), default)


def _reject(session, action, reason, logger, recorder) -> Rejected:
    (logger or module_logger).warning("%s rejected for session %s: %s", action, session.id, reason)
    if recorder is not None:
        recorder.record(run_id=session.id, phase=action, event="REJECTED", source="data", details=reason)
    return Rejected(reason=reason, session=session)


def _accept(session, action, logger, recorder) -> Transitioned:
    (logger or module_logger).debug("%s: session %s is %s", action, session.id, session.status.value)
    if recorder is not None:
        recorder.record(run_id=session.id, phase=action, event="SUCCESS")
    return Transitioned(session=session)


def _guarded_commit(session, action, token, logger, recorder):
    """Abort guard: check the token right before the new state is returned."""
    try:
        assert_not_cancelled(token, f"{action} {session.id}")
    except OperationCancelled:
        (logger or module_logger).info("%s aborted for session %s", action, session.id)
        if recorder is not None:
            recorder.record(run_id=session.id, phase=action, event="ABORT", source="abort")
        raise


# ═════════════════════════════════════════════════════════════════════
# 1. LIFECYCLE TRANSITIONS
# ═════════════════════════════════════════════════════════════════════

def start_session(
    session: WorkoutSession,
    now: datetime | None = None,
    logger: logging.Logger | None = None,
    recorder: FlightRecorder | None = None,
    token: CancellationToken | None = None,
):
    if session.status != SessionStatus.PLANNED:
        return _reject(session, "start_session", f"cannot start a {session.status.value} session", logger, recorder)
    if recorder is not None:
        recorder.record(run_id=session.id, phase="start_session", event="START")
    started = replace(session, status=SessionStatus.IN_PROGRESS, started_at=resolve_now(now))
    _guarded_commit(session, "start_session", token, logger, recorder)
    return _accept(started, "start_session", logger, recorder)


def finish_session(
    session: WorkoutSession,
    now: datetime | None = None,
    config: TrainingConfig = DEFAULT_CONFIG,
    logger: logging.Logger | None = None,
    recorder: FlightRecorder | None = None,
    token: CancellationToken | None = None,
):
    """
    in_progress → completed. Stamps completed_at and duration_minutes and
    rebuilds the cached totals from the sets. A session with no completed
    set cannot be finished.
    """
    if session.status != SessionStatus.IN_PROGRESS:
        return _reject(session, "finish_session", f"cannot finish a {session.status.value} session", logger, recorder)
    ok, reason = can_complete_session(session)
    if not ok:
        return _reject(session, "finish_session", reason, logger, recorder)
    if recorder is not None:
        recorder.record(run_id=session.id, phase="finish_session", event="START")

    completed_at = resolve_now(now)
    duration = None
    if session.started_at is not None:
        duration = max(0, round_half_up((completed_at - session.started_at).total_seconds() / 60))
    finished = refresh_session_totals(
        replace(session, status=SessionStatus.COMPLETED, completed_at=completed_at, duration_minutes=duration),
        config,
    )
    _guarded_commit(session, "finish_session", token, logger, recorder)
    return _accept(finished, "finish_session", logger, recorder)


def cancel_session(
    session: WorkoutSession,
    logger: logging.Logger | None = None,
    recorder: FlightRecorder | None = None,
):
    if session.status != SessionStatus.PLANNED:
        return _reject(session, "cancel_session", f"cannot cancel a {session.status.value} session", logger, recorder)
    return _accept(replace(session, status=SessionStatus.CANCELLED), "cancel_session", logger, recorder)


# ═════════════════════════════════════════════════════════════════════
# 2. SET EDITS
# ═════════════════════════════════════════════════════════════════════

def _edit_exercise(session, action, exercise_entry_id, edit, logger, recorder):
    """
    Apply edit(exercise) → new exercise, or a str rejection reason.
    Shared guard for every set/exercise edit.
    """
    if session.status not in EDITABLE:
        return _reject(session, action, f"cannot edit a {session.status.value} session", logger, recorder)
    for i, ex in enumerate(session.exercises):
        if ex.id == exercise_entry_id:
            result = edit(ex)
            if isinstance(result, str):
                return _reject(session, action, result, logger, recorder)
            exercises = session.exercises[:i] + (result,) + session.exercises[i + 1:]
            return _accept(replace(session, exercises=exercises), action, logger, recorder)
    return _reject(session, action, f"exercise entry {exercise_entry_id} not found", logger, recorder)


def _edit_set(ex: ExerciseEntry, set_id: str, change):
    for i, s in enumerate(ex.sets):
        if s.id == set_id:
            return replace(ex, sets=ex.sets[:i] + (change(s),) + ex.sets[i + 1:])
    return f"set {set_id} not found"


def complete_set(
    session: WorkoutSession,
    exercise_entry_id: str,
    set_id: str,
    actual_weight: float | None = None,
    actual_reps: int | None = None,
    rpe: float | None = None,
    rir: float | None = None,
    intensity: float | None = None,
    notes: str | None = None,
    now: datetime | None = None,
    logger: logging.Logger | None = None,
    recorder: FlightRecorder | None = None,
):
    """Mark a set executed with its actual values."""
    completed_at = resolve_now(now)

    def change(s: SetEntry) -> SetEntry:
        return replace(
            s,
            actual_weight=actual_weight if actual_weight is not None else s.actual_weight,
            actual_reps=actual_reps if actual_reps is not None else s.actual_reps,
            rpe=rpe if rpe is not None else s.rpe,
            rir=rir if rir is not None else s.rir,
            intensity=intensity if intensity is not None else s.intensity,
            notes=notes if notes is not None else s.notes,
            is_completed=True,
            completed_at=completed_at,
        )

    return _edit_exercise(session, "complete_set", exercise_entry_id,
                          lambda ex: _edit_set(ex, set_id, change), logger, recorder)


def uncomplete_set(
    session: WorkoutSession,
    exercise_entry_id: str,
    set_id: str,
    logger: logging.Logger | None = None,
    recorder: FlightRecorder | None = None,
):
    """Revert a set to planned: actual values and completion time are cleared."""
    def change(s: SetEntry) -> SetEntry:
        return replace(s, is_completed=False, completed_at=None, actual_weight=None, actual_reps=None)

    return _edit_exercise(session, "uncomplete_set", exercise_entry_id,
                          lambda ex: _edit_set(ex, set_id, change), logger, recorder)


def add_set(
    session: WorkoutSession,
    exercise_entry_id: str,
    target_reps: int | None = None,
    target_weight: float | None = None,
    rest_seconds: int | None = None,
    set_type: SetType = SetType.WORKING,
    set_id: str | None = None,
    logger: logging.Logger | None = None,
    recorder: FlightRecorder | None = None,
):
    """Append a planned set; missing targets are copied from the last set."""
    def edit(ex: ExerciseEntry) -> ExerciseEntry:
        last = ex.sets[-1] if ex.sets else None
        new = SetEntry(
            id=set_id or _new_id(),
            set_number=len(ex.sets) + 1,
            type=SetType(set_type),
            target_reps=_first_given(target_reps, last and last.target_reps, default=DEFAULT_TARGET_REPS),
            target_weight=_first_given(target_weight, last and last.actual_weight, last and last.target_weight, default=0),
            rest_seconds=_first_given(rest_seconds, last and last.rest_seconds, default=DEFAULT_REST_SECONDS),
        )
        return replace(ex, sets=ex.sets + (new,))

    return _edit_exercise(session, "add_set", exercise_entry_id, edit, logger, recorder)


def remove_set(
    session: WorkoutSession,
    exercise_entry_id: str,
    set_id: str,
    logger: logging.Logger | None = None,
    recorder: FlightRecorder | None = None,
):
    """Drop a set and renumber the rest. The last remaining set is never removed."""
    def edit(ex: ExerciseEntry):
        if len(ex.sets) <= 1:
            return "cannot remove the last set of an exercise"
        if not any(s.id == set_id for s in ex.sets):
            return f"set {set_id} not found"
        kept = [s for s in ex.sets if s.id != set_id]
        return replace(ex, sets=tuple(replace(s, set_number=i + 1) for i, s in enumerate(kept)))

    return _edit_exercise(session, "remove_set", exercise_entry_id, edit, logger, recorder)


# ═════════════════════════════════════════════════════════════════════
# 3. EXERCISE EDITS
# ═════════════════════════════════════════════════════════════════════

def add_exercise(
    session: WorkoutSession,
    exercise_id: str,
    target_reps: int | None = None,
    target_weight: float | None = None,
    rest_seconds: int | None = None,
    set_type: SetType = SetType.WORKING,
    entry_id: str | None = None,
    logger: logging.Logger | None = None,
    recorder: FlightRecorder | None = None,
):
    """Append a catalog exercise with one planned set."""
    if session.status not in EDITABLE:
        return _reject(session, "add_exercise", f"cannot edit a {session.status.value} session", logger, recorder)
    entry = ExerciseEntry(
        id=entry_id or _new_id(),
        exercise_id=exercise_id,
        order=len(session.exercises),
        sets=(SetEntry(
            id=_new_id(),
            set_number=1,
            type=SetType(set_type),
            target_reps=_first_given(target_reps, default=DEFAULT_TARGET_REPS),
            target_weight=target_weight,
            rest_seconds=_first_given(rest_seconds, default=DEFAULT_REST_SECONDS),
        ),),
    )
    return _accept(replace(session, exercises=session.exercises + (entry,)), "add_exercise", logger, recorder)


def _renumbered(exercises) -> tuple:
    return tuple(replace(ex, order=i) for i, ex in enumerate(exercises))


def remove_exercise(
    session: WorkoutSession,
    exercise_entry_id: str,
    logger: logging.Logger | None = None,
    recorder: FlightRecorder | None = None,
):
    if session.status not in EDITABLE:
        return _reject(session, "remove_exercise", f"cannot edit a {session.status.value} session", logger, recorder)
    kept = [ex for ex in session.exercises if ex.id != exercise_entry_id]
    if len(kept) == len(session.exercises):
        return _reject(session, "remove_exercise", f"exercise entry {exercise_entry_id} not found", logger, recorder)
    return _accept(replace(session, exercises=_renumbered(kept)), "remove_exercise", logger, recorder)


def reorder_exercises(
    session: WorkoutSession,
    exercise_entry_id: str,
    new_index: int,
    logger: logging.Logger | None = None,
    recorder: FlightRecorder | None = None,
):
    """Move one exercise entry to new_index; order fields are rewritten 0..n-1."""
    if session.status not in EDITABLE:
        return _reject(session, "reorder_exercises", f"cannot edit a {session.status.value} session", logger, recorder)
    exercises = list(session.exercises)
    current = next((i for i, ex in enumerate(exercises) if ex.id == exercise_entry_id), None)
    if current is None:
        return _reject(session, "reorder_exercises", f"exercise entry {exercise_entry_id} not found", logger, recorder)
    if not 0 <= new_index < len(exercises):
        return _reject(session, "reorder_exercises", f"index {new_index} out of range", logger, recorder)
    moved = exercises.pop(current)
    exercises.insert(new_index, moved)
    return _accept(replace(session, exercises=_renumbered(exercises)), "reorder_exercises", logger, recorder)
