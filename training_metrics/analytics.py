"""
Training Metrics — Analytics Engine

Set → exercise → session → week/month. Everything here is a pure function
of the records passed in: no caching, no hidden state, same input gives
the same output.

Only completed sets contribute. Warmup sets are left out unless the
TrainingConfig includes them, and the same filter is used at every level
so exercise volumes always add up to the session volume.
"""
import logging
from dataclasses import replace
from datetime import datetime, time, timedelta, timezone

import numpy as np
import pandas as pd

from training_metrics.config import (
    DEFAULT_CONFIG,
    DEFAULT_INTENSITY,
    FATIGUE_LOAD_BASELINE,
    FATIGUE_NO_LOAD_FACTOR,
    MAX_INTENSITY,
    MIN_INTENSITY,
    TOP_EXERCISES_LIMIT,
    TrainingConfig,
    VolumeDisplay,
)
from training_metrics.models import (
    ExerciseEntry,
    SessionStatus,
    SetEntry,
    WeekRange,
    WorkoutSession,
    parse_timestamp,
)
from training_metrics.one_rm import best_e1rm
from training_metrics.rounding import round_half_up

logger = logging.getLogger(__name__)

SET_FRAME_COLUMNS = [
    "session_id", "athlete_id", "completed_at", "exercise_id", "exercise_entry_id",
    "block_id", "set_number", "set_type", "weight", "reps", "volume", "intensity", "fatigue",
]


def _counts(s: SetEntry, config: TrainingConfig) -> bool:
    return s.is_completed and (config.include_warmup or not s.is_warmup)


def _counted_sets(exercise: ExerciseEntry, config: TrainingConfig) -> list[SetEntry]:
    return [s for s in exercise.sets if _counts(s, config)]


# ═══════════════════════════════════════════════════════════════════════
# 1. SET LEVEL — volume, intensity, fatigue
# ═══════════════════════════════════════════════════════════════════════

def calculate_set_volume(s: SetEntry) -> float:
    """actual weight × actual reps; 0 for planned sets or missing values."""
    if not s.is_completed:
        return 0
    return (s.actual_weight or 0) * (s.actual_reps or 0)


def get_set_intensity(s: SetEntry) -> float:
    """
    Resolve a set's intensity on the 1-10 scale.

    Precedence: RPE → explicit intensity → 10 − RIR → 7. This is the only
    place the fallback chain lives; everything else calls this.
    """
    if s.rpe is not None and s.rpe > 0:
        return min(MAX_INTENSITY, max(MIN_INTENSITY, s.rpe))
    if s.intensity is not None and s.intensity > 0:
        return min(MAX_INTENSITY, max(MIN_INTENSITY, s.intensity))
    if s.rir is not None and s.rir >= 0:
        return min(MAX_INTENSITY, max(MIN_INTENSITY, 10 - s.rir))
    return DEFAULT_INTENSITY


def get_set_target_intensity(s: SetEntry) -> float | None:
    """Planned intensity shown before a set is done (None if nothing prescribed)."""
    if s.rir is not None and s.rir >= 0:
        return 10 - s.rir
    if s.rpe is not None and not s.is_completed:
        return s.rpe
    return None


def get_set_fatigue(s: SetEntry) -> float:
    """
    Fatigue contribution: intensity × ln(1 + reps) × load factor.

    Load factor is sqrt(weight / 100) for loaded sets and 0.5 otherwise.
    Planned sets contribute nothing.
    """
    if not s.is_completed:
        return 0.0
    intensity = get_set_intensity(s)
    reps = s.actual_reps if s.actual_reps is not None else (s.target_reps if s.target_reps is not None else 1)
    weight = s.actual_weight if s.actual_weight is not None else (s.target_weight or 0)
    load_factor = float(np.sqrt(weight / FATIGUE_LOAD_BASELINE)) if weight > 0 else FATIGUE_NO_LOAD_FACTOR
    return float(intensity * np.log1p(max(reps, 0)) * load_factor)


def intensity_label(intensity: float) -> str:
    if intensity < 5:
        return "Light"
    elif intensity < 7:
        return "Moderate"
    elif intensity < 8.5:
        return "Hard"
    return "Max Effort"


def fatigue_label(fatigue: float) -> str:
    if fatigue < 5:
        return "Low"
    elif fatigue < 10:
        return "Moderate"
    elif fatigue < 15:
        return "High"
    return "Very High"


def format_volume(volume: float, display=VolumeDisplay.KG_TOTAL) -> str:
    if VolumeDisplay(display) == VolumeDisplay.TONNAGE:
        return f"{volume / 1000:.2f}t"
    if volume >= 1000:
        return f"{volume / 1000:.1f}K kg"
    return f"{round_half_up(volume)} kg"


# ═══════════════════════════════════════════════════════════════════════
# 2. EXERCISE LEVEL
# ═══════════════════════════════════════════════════════════════════════

def calculate_exercise_volume(exercise: ExerciseEntry, config: TrainingConfig = DEFAULT_CONFIG) -> float:
    return sum(calculate_set_volume(s) for s in _counted_sets(exercise, config))


def get_exercise_intensity_fatigue(exercise: ExerciseEntry, config: TrainingConfig = DEFAULT_CONFIG) -> dict:
    """
    Per-exercise intensity/fatigue.

    Before anything is completed this returns a target-only result: zeros
    plus the mean planned intensity (or None) for pre-workout display.
    Otherwise plain means/sums over the completed sets.
    """
    done = _counted_sets(exercise, config)
    if not done:
        targets = [t for t in (get_set_target_intensity(s) for s in exercise.sets) if t is not None]
        return {
            "avg_intensity": 0,
            "avg_fatigue": 0,
            "total_fatigue": 0,
            "completed_sets": 0,
            "target_intensity": float(np.mean(targets)) if targets else None,
        }
    intensities = [get_set_intensity(s) for s in done]
    fatigues = [get_set_fatigue(s) for s in done]
    total_fatigue = float(sum(fatigues))
    return {
        "avg_intensity": sum(intensities) / len(done),
        "avg_fatigue": total_fatigue / len(done),
        "total_fatigue": total_fatigue,
        "completed_sets": len(done),
        "target_intensity": None,
    }


# ═══════════════════════════════════════════════════════════════════════
# 3. SESSION LEVEL
# ═══════════════════════════════════════════════════════════════════════

def calculate_session_totals(session: WorkoutSession, config: TrainingConfig = DEFAULT_CONFIG) -> dict:
    total_volume = 0
    total_sets = 0
    total_reps = 0
    completed_exercises = 0
    for ex in session.exercises:
        done = _counted_sets(ex, config)
        if done:
            completed_exercises += 1
        for s in done:
            total_volume += calculate_set_volume(s)
            total_sets += 1
            total_reps += s.actual_reps or 0
    return {
        "total_volume": total_volume,
        "total_sets": total_sets,
        "total_reps": total_reps,
        "completed_exercises": completed_exercises,
    }


def get_session_intensity_fatigue(session: WorkoutSession, config: TrainingConfig = DEFAULT_CONFIG) -> dict:
    """Session roll-up; averages are weighted by completed sets, not exercises."""
    total_intensity = 0.0
    total_fatigue = 0.0
    total_volume = 0
    completed_sets = 0
    completed_exercises = 0
    peak = 0

    for ex in session.exercises:
        metrics = get_exercise_intensity_fatigue(ex, config)
        if metrics["completed_sets"] == 0:
            continue
        completed_exercises += 1
        completed_sets += metrics["completed_sets"]
        total_intensity += metrics["avg_intensity"] * metrics["completed_sets"]
        total_fatigue += metrics["total_fatigue"]
        for s in _counted_sets(ex, config):
            peak = max(peak, get_set_intensity(s))
            total_volume += calculate_set_volume(s)

    return {
        "avg_intensity": total_intensity / completed_sets if completed_sets else 0,
        "avg_fatigue": total_fatigue / completed_sets if completed_sets else 0,
        "total_fatigue": total_fatigue,
        "total_volume": total_volume,
        "completed_sets": completed_sets,
        "completed_exercises": completed_exercises,
        "peak_intensity": peak if peak > 0 else None,
    }


def compute_session_stats(session: WorkoutSession, config: TrainingConfig = DEFAULT_CONFIG) -> dict:
    """Everything the session summary card needs, recomputed from the sets."""
    totals = calculate_session_totals(session, config)
    load = get_session_intensity_fatigue(session, config)

    counted = [(ex, s) for ex in session.exercises for s in _counted_sets(ex, config)]
    loads = [s.actual_weight for _, s in counted if (s.actual_weight or 0) > 0]
    rpes = [s.rpe for _, s in counted if s.rpe is not None]

    e1rms = [v for v in (best_e1rm(ex.sets, config=config) for ex in session.exercises) if v is not None]

    volume_by_exercise = {}
    volume_by_block = {}
    for ex, s in counted:
        vol = calculate_set_volume(s)
        volume_by_exercise[ex.exercise_id] = volume_by_exercise.get(ex.exercise_id, 0) + vol
        block = s.block_id or ex.block_type or "main"
        volume_by_block[block] = volume_by_block.get(block, 0) + vol

    return {
        **totals,
        "avg_intensity": load["avg_intensity"],
        "peak_intensity": load["peak_intensity"],
        "avg_fatigue": load["avg_fatigue"],
        "total_fatigue": load["total_fatigue"],
        "top_set_load": max(loads) if loads else None,
        "best_e1rm": max(e1rms) if e1rms else None,
        "avg_rpe": round_half_up(sum(rpes) / len(rpes), 1) if rpes else None,
        "max_rpe": max(rpes) if rpes else None,
        "volume_by_exercise": volume_by_exercise,
        "volume_by_block": volume_by_block,
    }


def refresh_session_totals(session: WorkoutSession, config: TrainingConfig = DEFAULT_CONFIG) -> WorkoutSession:
    """Copy of the session with its cached totals rebuilt from the sets."""
    totals = calculate_session_totals(session, config)
    load = get_session_intensity_fatigue(session, config)
    return replace(
        session,
        total_volume=totals["total_volume"],
        total_sets=totals["total_sets"],
        total_reps=totals["total_reps"],
        avg_intensity=round_half_up(load["avg_intensity"], 1) if load["completed_sets"] else None,
    )


def resolve_session_volume(session: WorkoutSession, config: TrainingConfig = DEFAULT_CONFIG) -> float:
    """
    Volume for reporting. Recomputed from sets whenever any set is
    completed; the cached total is only used for sessions stored without
    set detail.
    """
    has_sets = any(s.is_completed for ex in session.exercises for s in ex.sets)
    if has_sets:
        return calculate_session_totals(session, config)["total_volume"]
    return session.total_volume or 0


def session_progress(session: WorkoutSession) -> int:
    """Percent of all sets (planned or done) that are completed."""
    total = sum(len(ex.sets) for ex in session.exercises)
    if total == 0:
        return 0
    done = sum(1 for ex in session.exercises for s in ex.sets if s.is_completed)
    return round_half_up(done / total * 100)


def can_complete_session(session: WorkoutSession) -> tuple[bool, str | None]:
    if not session.exercises:
        return False, "Session has no exercises"
    if not any(s.is_completed for ex in session.exercises for s in ex.sets):
        return False, "No sets completed"
    return True, None


# ═══════════════════════════════════════════════════════════════════════
# 4. TABULAR VIEW — one row per completed set
# ═══════════════════════════════════════════════════════════════════════

def sessions_to_dataframe(sessions: list[WorkoutSession], config: TrainingConfig = DEFAULT_CONFIG) -> pd.DataFrame:
    """
    Flatten completed sessions to a set-level DataFrame.

    Only sessions with status completed are included, and only the sets
    that count under the config.
    """
    rows = []
    for session in sessions:
        if session.status != SessionStatus.COMPLETED:
            continue
        for ex in session.exercises:
            for s in _counted_sets(ex, config):
                rows.append({
                    "session_id": session.id,
                    "athlete_id": session.athlete_id,
                    "completed_at": session.completed_at,
                    "exercise_id": ex.exercise_id,
                    "exercise_entry_id": ex.id,
                    "block_id": s.block_id or ex.block_type or "main",
                    "set_number": s.set_number,
                    "set_type": s.type.value,
                    "weight": s.actual_weight or 0,
                    "reps": s.actual_reps or 0,
                    "volume": calculate_set_volume(s),
                    "intensity": get_set_intensity(s),
                    "fatigue": get_set_fatigue(s),
                })
    df = pd.DataFrame(rows, columns=SET_FRAME_COLUMNS)
    df["completed_at"] = pd.to_datetime(df["completed_at"])
    return df


def top_exercises_by_volume(
    sessions: list[WorkoutSession],
    limit: int = TOP_EXERCISES_LIMIT,
    config: TrainingConfig = DEFAULT_CONFIG,
) -> list[dict]:
    df = sessions_to_dataframe(sessions, config)
    if df.empty:
        return []
    top = (
        df.groupby("exercise_id")
        .agg(volume=("volume", "sum"), sets=("set_number", "count"))
        .reset_index()
        .sort_values(["volume", "exercise_id"], ascending=[False, True])
        .head(limit)
    )
    return [
        {"exercise_id": row.exercise_id, "volume": float(row.volume), "sets": int(row.sets)}
        for row in top.itertuples(index=False)
    ]


# ═══════════════════════════════════════════════════════════════════════
# 5. TIME SERIES — weekly / monthly buckets for charts
# ═══════════════════════════════════════════════════════════════════════

def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def resolve_now(now) -> datetime:
    return _utcnow() if now is None else parse_timestamp(now)


def week_start(dt: datetime) -> datetime:
    """Monday 00:00 of the ISO week containing dt."""
    monday = dt.date() - timedelta(days=dt.weekday())
    return datetime.combine(monday, time.min)


def get_week_range(dt: datetime):
    start = week_start(dt)
    return WeekRange(start=start, end=start + timedelta(days=7) - timedelta(microseconds=1))


def _week_key(dt: datetime) -> str:
    return week_start(dt).date().isoformat()


def _week_keys(weeks_back: int, now) -> list[str]:
    """Every week start in the window, oldest first, gaps included."""
    current = pd.Timestamp(week_start(resolve_now(now)))
    starts = pd.date_range(end=current, periods=max(int(weeks_back), 0), freq="7D")
    return [ts.date().isoformat() for ts in starts]


def get_weekly_load_series(
    sessions: list[WorkoutSession],
    weeks_back: int | None = None,
    now=None,
    config: TrainingConfig = DEFAULT_CONFIG,
) -> list[dict]:
    """
    One entry per week for the last `weeks_back` weeks, ascending, with
    empty weeks present so charts stay continuous.

    Intensity and fatigue are running means over the week's sessions:
    new = (old × (n − 1) + x) / n, with n the week's session count.
    """
    if weeks_back is None:
        weeks_back = config.lookback_weeks
    weeks = {
        key: {
            "week_start": key,
            "total_volume": 0,
            "avg_intensity": None,
            "avg_fatigue": None,
            "completed_sessions": 0,
            "total_sets": 0,
        }
        for key in _week_keys(weeks_back, now)
    }

    skipped = 0
    for session in sessions:
        if session.status != SessionStatus.COMPLETED or session.completed_at is None:
            continue
        week = weeks.get(_week_key(session.completed_at))
        if week is None:
            skipped += 1
            continue

        metrics = get_session_intensity_fatigue(session, config)
        week["completed_sessions"] += 1
        n = week["completed_sessions"]
        week["total_volume"] += resolve_session_volume(session, config)
        week["total_sets"] += metrics["completed_sets"]

        if metrics["avg_intensity"] > 0:
            old = week["avg_intensity"]
            week["avg_intensity"] = metrics["avg_intensity"] if old is None else (old * (n - 1) + metrics["avg_intensity"]) / n
        if metrics["avg_fatigue"] > 0:
            old = week["avg_fatigue"]
            week["avg_fatigue"] = metrics["avg_fatigue"] if old is None else (old * (n - 1) + metrics["avg_fatigue"]) / n

    if skipped:
        logger.debug("weekly load series: %d completed sessions outside the %d-week window", skipped, weeks_back)
    return sorted(weeks.values(), key=lambda w: w["week_start"])


def get_weekly_volume_series(
    sessions: list[WorkoutSession],
    weeks_back: int | None = None,
    now=None,
    config: TrainingConfig = DEFAULT_CONFIG,
) -> list[dict]:
    return [
        {"week_start": w["week_start"], "volume": w["total_volume"]}
        for w in get_weekly_load_series(sessions, weeks_back, now, config)
    ]


def get_weekly_intensity_fatigue_series(
    sessions: list[WorkoutSession],
    weeks_back: int | None = None,
    now=None,
    config: TrainingConfig = DEFAULT_CONFIG,
) -> list[dict]:
    return [
        {"week_start": w["week_start"], "avg_intensity": w["avg_intensity"], "avg_fatigue": w["avg_fatigue"]}
        for w in get_weekly_load_series(sessions, weeks_back, now, config)
    ]


def get_weekly_adherence_series(
    planned_sessions: list,
    sessions: list[WorkoutSession],
    weeks_back: int | None = None,
    now=None,
    config: TrainingConfig = DEFAULT_CONFIG,
) -> list[dict]:
    """
    Planned vs completed per week.

    Planned slots count by scheduled date; completed sessions by completion
    date, falling back to the scheduled date. A week with nothing planned
    but something done scores 100: bonus sessions never penalize.
    """
    if weeks_back is None:
        weeks_back = config.lookback_weeks
    weeks = {
        key: {"week_start": key, "planned": 0, "completed": 0, "adherence_rate": 0}
        for key in _week_keys(weeks_back, now)
    }

    for planned in planned_sessions:
        if planned.scheduled_date is None:
            continue
        week = weeks.get(_week_key(planned.scheduled_date))
        if week is not None:
            week["planned"] += 1

    for session in sessions:
        if session.status != SessionStatus.COMPLETED:
            continue
        when = session.completed_at or session.scheduled_date
        if when is None:
            continue
        week = weeks.get(_week_key(when))
        if week is not None:
            week["completed"] += 1

    for week in weeks.values():
        if week["planned"] > 0:
            week["adherence_rate"] = round_half_up(week["completed"] / week["planned"] * 100)
        elif week["completed"] > 0:
            week["adherence_rate"] = 100

    return sorted(weeks.values(), key=lambda w: w["week_start"])


def get_monthly_volume_series(
    sessions: list[WorkoutSession],
    months_back: int | None = None,
    now=None,
    config: TrainingConfig = DEFAULT_CONFIG,
) -> list[dict]:
    """
    Calendar-month buckets, oldest first, empty months included.

    Counted the same way as the weekly series: every completed session in
    the month, volume through resolve_session_volume (so sessions stored
    with only a cached total still count), sets from the counted sets.
    """
    if months_back is None:
        months_back = config.lookback_months
    periods = pd.period_range(end=pd.Period(resolve_now(now), freq="M"), periods=max(int(months_back), 0), freq="M")
    rows = [
        {
            "completed_at": session.completed_at,
            "volume": resolve_session_volume(session, config),
            "sets": calculate_session_totals(session, config)["total_sets"],
        }
        for session in sessions
        if session.status == SessionStatus.COMPLETED and session.completed_at is not None
    ]
    df = pd.DataFrame(rows, columns=["completed_at", "volume", "sets"])
    if not df.empty:
        df["month"] = pd.to_datetime(df["completed_at"]).dt.to_period("M")
        monthly = df.groupby("month").agg(
            volume=("volume", "sum"),
            sessions=("volume", "size"),
            sets=("sets", "sum"),
        )
    else:
        monthly = pd.DataFrame(columns=["volume", "sessions", "sets"])
    monthly = monthly.reindex(periods, fill_value=0)
    return [
        {
            "month_start": period.start_time.date().isoformat(),
            "volume": float(row.volume),
            "sessions": int(row.sessions),
            "sets": int(row.sets),
        }
        for period, row in zip(monthly.index, monthly.itertuples(index=False))
    ]
