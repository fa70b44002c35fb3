"""
Training Metrics — Performance guards

1RM progression suggestions, overtraining risk and heavy-load warnings.
Everything here only suggests: an athlete's recorded 1RM changes when the
user confirms it, never as a side effect of these functions.
"""
import logging

import numpy as np

from training_metrics.analytics import get_set_intensity, get_weekly_load_series
from training_metrics.config import (
    DEFAULT_CONFIG,
    DEFAULT_INTENSITY,
    DEFAULT_TREND_WEEKS,
    ELEVATED_INTENSITY,
    HIGH_FREQUENCY,
    HIGH_INTENSITY,
    INTENSITY_BASELINE_MARGIN,
    LOAD_WARNING_THRESHOLDS,
    MIN_STRENGTH_FOCUS_SESSIONS,
    ONE_RM_DECREASE_INTENSITY,
    ONE_RM_DECREASE_PCT,
    ONE_RM_DECREASE_RATIO,
    ONE_RM_INCREASE_RATIO,
    OVERTRAINING_FLOOR,
    OVERTRAINING_LEVELS,
    VERY_HIGH_FREQUENCY,
    VOLUME_RISE_RATIO,
    VOLUME_SPIKE_RATIO,
    WEIGHT_INCREMENT,
    TrainingConfig,
)
from training_metrics.models import Athlete, Exercise, OneRMRecord, SetEntry, WorkoutSession
from training_metrics.one_rm import estimate_one_rm, get_effective_load, recommended_increment
from training_metrics.rounding import round_half_up

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════
# 1. 1RM PROGRESSION — keep / increase / decrease / set_initial
# ═══════════════════════════════════════════════════════════════════════

def average_set_intensity(sets: list[SetEntry]) -> float:
    """Mean intensity of completed sets, 1 dp; 7 when nothing is completed."""
    values = [get_set_intensity(s) for s in sets if s.is_completed]
    if not values:
        return DEFAULT_INTENSITY
    return round_half_up(float(np.mean(values)), 1)


def _recommendation(exercise_id, exercise_name, suggested, current, action, rationale,
                    confidence, based_on_sets, avg_intensity, change_absolute=0) -> dict:
    change_percent = change_absolute / current * 100 if current else 0
    return {
        "exercise_id": exercise_id,
        "exercise_name": exercise_name,
        "suggested_one_rm": suggested,
        "current_one_rm": current,
        "change_percent": round_half_up(change_percent, 1),
        "change_absolute": change_absolute,
        "action": action,
        "rationale": rationale,
        "confidence": confidence,
        "based_on_sets": based_on_sets,
        "average_intensity": avg_intensity,
    }


def analyze_one_rm_progression(
    exercise_id: str,
    sets: list[SetEntry],
    current_one_rm: float | None = None,
    strength_focus_sessions: int = 0,
    athlete_weight: float | None = None,
    is_bodyweight: bool = False,
    exercise_name: str | None = None,
) -> dict:
    """
    Suggest what to do with the recorded 1RM after recent sets.

    - no recorded 1RM → "set_initial" with the best conservative estimate
    - fewer than 1 strength-focus session → "keep"
    - best estimate > current × 1.05 → "increase" by max(2.5, 2.5%)
    - avg intensity ≥ 9 and best < current × 0.95 → "decrease" by 5%,
      rounded to 2.5
    - otherwise "keep"
    """
    completed = [s for s in sets if s.is_completed and s.actual_reps and s.actual_weight]
    estimates = [
        estimate_one_rm(get_effective_load(s.actual_weight, is_bodyweight, athlete_weight), s.actual_reps)
        for s in completed
    ]
    estimates = [e for e in estimates if e > 0]

    if not estimates:
        return _recommendation(
            exercise_id, exercise_name, current_one_rm or 0, current_one_rm, "keep",
            "Not enough recent data for a recommendation. Log more sets with weight.",
            confidence=0, based_on_sets=0, avg_intensity=0,
        )

    best = max(estimates)
    avg = average_set_intensity(completed)
    n = len(estimates)

    if not current_one_rm:
        return _recommendation(
            exercise_id, exercise_name, best, None, "set_initial",
            f"Based on {n} recent sets. Best estimate: {best:g}kg. Confirm to set it as your starting 1RM.",
            confidence=0.8 if n >= 3 else 0.6, based_on_sets=n, avg_intensity=avg,
        )

    if strength_focus_sessions < MIN_STRENGTH_FOCUS_SESSIONS:
        return _recommendation(
            exercise_id, exercise_name, current_one_rm, current_one_rm, "keep",
            "Keep the current 1RM. Progression advice needs at least one strength-focus session.",
            confidence=0.5, based_on_sets=n, avg_intensity=avg,
        )

    if best > current_one_rm * ONE_RM_INCREASE_RATIO:
        increment = recommended_increment(current_one_rm)
        return _recommendation(
            exercise_id, exercise_name, current_one_rm + increment, current_one_rm, "increase",
            f"Recent performance ({best:g}kg estimated) is above your current 1RM. "
            f"Average intensity {avg:.1f}/10. Suggest +{increment:g}kg.",
            confidence=0.85 if avg >= 7 else 0.7, based_on_sets=n, avg_intensity=avg,
            change_absolute=increment,
        )

    if avg >= ONE_RM_DECREASE_INTENSITY and best < current_one_rm * ONE_RM_DECREASE_RATIO:
        decrease = round_half_up(current_one_rm * ONE_RM_DECREASE_PCT / WEIGHT_INCREMENT) * WEIGHT_INCREMENT
        return _recommendation(
            exercise_id, exercise_name, current_one_rm - decrease, current_one_rm, "decrease",
            f"Very high intensity ({avg:.1f}/10) but performance below the current 1RM. "
            f"Consider -{decrease:g}kg to keep training quality up.",
            confidence=0.6, based_on_sets=n, avg_intensity=avg,
            change_absolute=-decrease,
        )

    advice = "Consider raising intensity in the next sessions." if avg < 7 else "Keep it up."
    return _recommendation(
        exercise_id, exercise_name, current_one_rm, current_one_rm, "keep",
        f"Performance is consistent with your current 1RM. {advice}",
        confidence=0.75, based_on_sets=n, avg_intensity=avg,
    )


def analyze_session_for_one_rm(
    session: WorkoutSession,
    one_rm_records: dict[str, OneRMRecord] | Athlete,
    catalog: list[Exercise] | dict | None = None,
    athlete_weight: float | None = None,
) -> list[dict]:
    """
    1RM suggestions for the strength-focus exercises of one session.

    one_rm_records is keyed by exercise id; an Athlete works too and also
    supplies the bodyweight when athlete_weight is not given.
    """
    if isinstance(one_rm_records, Athlete):
        athlete_weight = athlete_weight if athlete_weight is not None else one_rm_records.weight_kg
        one_rm_records = {r.exercise_id: r for r in one_rm_records.one_rm_records}
    if isinstance(catalog, dict):
        index = catalog
    else:
        index = {e.id: e for e in catalog or []}

    recommendations = []
    for entry in session.exercises:
        if not entry.strength_focus:
            continue
        record = one_rm_records.get(entry.exercise_id)
        exercise = index.get(entry.exercise_id)
        rec = analyze_one_rm_progression(
            entry.exercise_id,
            list(entry.sets),
            current_one_rm=record.current_one_rm if record else None,
            strength_focus_sessions=record.strength_focus_sessions if record else 0,
            athlete_weight=athlete_weight,
            is_bodyweight=exercise.is_bodyweight if exercise else False,
            exercise_name=exercise.name if exercise else None,
        )
        if rec["action"] != "keep" or rec["based_on_sets"] > 0:
            recommendations.append(rec)
    logger.debug("session %s: %d 1RM suggestions", session.id, len(recommendations))
    return recommendations


# ═══════════════════════════════════════════════════════════════════════
# 2. OVERTRAINING RISK
# ═══════════════════════════════════════════════════════════════════════

def detect_overtraining(
    weekly_volumes: list[float],
    recent_intensity: float = DEFAULT_INTENSITY,
    sessions_per_week: int = 3,
    average_intensity: float = DEFAULT_INTENSITY,
) -> dict:
    """
    Score 0-100 from four additive signals: last week's volume vs the mean
    of the weeks before it (+30 above 1.5×, +15 above 1.25×), intensity
    (+25 above 8.5, +10 above 7.5), frequency (+25 above 6 sessions, +15
    above 5) and intensity over the athlete's baseline (+20 above +1.5).
    """
    factors = []
    score = 0

    if len(weekly_volumes) >= 2:
        recent = weekly_volumes[-1]
        baseline = float(np.mean(weekly_volumes[:-1]))
        if baseline > 0:
            ratio = recent / baseline
            pct = round_half_up((ratio - 1) * 100)
            if ratio > VOLUME_SPIKE_RATIO:
                score += 30
                factors.append(f"Volume spike: {pct}% above average")
            elif ratio > VOLUME_RISE_RATIO:
                score += 15
                factors.append(f"Volume increase: {pct}% above average")

    if recent_intensity > HIGH_INTENSITY:
        score += 25
        factors.append(f"High intensity: {recent_intensity:g}/10")
    elif recent_intensity > ELEVATED_INTENSITY:
        score += 10
        factors.append(f"Elevated intensity: {recent_intensity:g}/10")

    if sessions_per_week > VERY_HIGH_FREQUENCY:
        score += 25
        factors.append(f"Very high frequency: {sessions_per_week} sessions/week")
    elif sessions_per_week > HIGH_FREQUENCY:
        score += 15
        factors.append(f"High frequency: {sessions_per_week} sessions/week")

    if recent_intensity > average_intensity + INTENSITY_BASELINE_MARGIN:
        score += 20
        factors.append(f"Intensity above baseline: +{recent_intensity - average_intensity:.1f}")

    level, recommendation = OVERTRAINING_FLOOR
    for threshold, name, advice in OVERTRAINING_LEVELS:
        if score >= threshold:
            level, recommendation = name, advice
            break
    return {"level": level, "score": score, "factors": factors, "recommendation": recommendation}


def overtraining_from_sessions(
    sessions: list[WorkoutSession],
    weeks_back: int = DEFAULT_TREND_WEEKS,
    now=None,
    config: TrainingConfig = DEFAULT_CONFIG,
) -> dict:
    """
    detect_overtraining() fed from the weekly load series: the current week
    against the `weeks_back - 1` weeks before it. Weeks with no intensity
    data fall back to 7.
    """
    series = get_weekly_load_series(sessions, weeks_back, now, config)
    if not series:
        return detect_overtraining([])
    current = series[-1]
    earlier = [w["avg_intensity"] for w in series[:-1] if w["avg_intensity"] is not None]
    recent = current["avg_intensity"] if current["avg_intensity"] is not None else DEFAULT_INTENSITY
    return detect_overtraining(
        [w["total_volume"] for w in series],
        recent_intensity=round_half_up(recent, 1),
        sessions_per_week=current["completed_sessions"],
        average_intensity=round_half_up(float(np.mean(earlier)), 1) if earlier else DEFAULT_INTENSITY,
    )


# ═══════════════════════════════════════════════════════════════════════
# 3. LOAD WARNINGS — proposed weight vs recorded 1RM
# ═══════════════════════════════════════════════════════════════════════

def check_load_warning(
    exercise_id: str,
    proposed_weight: float,
    athlete: Athlete,
    thresholds: dict = LOAD_WARNING_THRESHOLDS,
) -> dict | None:
    """info ≥ 85%, warning ≥ 95%, danger ≥ 105% of the recorded 1RM; None below or without a 1RM."""
    one_rm = athlete.one_rm(exercise_id)
    if not one_rm or proposed_weight is None or proposed_weight <= 0:
        return None

    pct = proposed_weight / one_rm * 100
    shown = round_half_up(pct)
    if pct >= thresholds["danger"]:
        severity, message = "danger", f"Weight exceeds 1RM ({shown}% of {one_rm:g}kg)"
    elif pct >= thresholds["warning"]:
        severity, message = "warning", f"Weight is very high ({shown}% of {one_rm:g}kg 1RM)"
    elif pct >= thresholds["info"]:
        severity, message = "info", f"High intensity ({shown}% of 1RM)"
    else:
        return None

    return {
        "exercise_id": exercise_id,
        "proposed_weight": proposed_weight,
        "current_one_rm": one_rm,
        "percentage_of_rm": shown,
        "severity": severity,
        "message": message,
    }


def get_load_warnings(
    loads: list[tuple[str, float]],
    athlete: Athlete,
    thresholds: dict = LOAD_WARNING_THRESHOLDS,
) -> list[dict]:
    """Warnings for (exercise_id, weight) pairs, in input order."""
    warnings = [check_load_warning(exercise_id, weight, athlete, thresholds) for exercise_id, weight in loads]
    return [w for w in warnings if w is not None]


def session_load_warnings(
    session: WorkoutSession,
    athlete: Athlete,
    thresholds: dict = LOAD_WARNING_THRESHOLDS,
) -> list[dict]:
    """Load warnings for the heaviest pending (not completed) set of each exercise."""
    loads = []
    for entry in session.exercises:
        pending = [s.target_weight for s in entry.sets if not s.is_completed and s.target_weight]
        if pending:
            loads.append((entry.exercise_id, max(pending)))
    return get_load_warnings(loads, athlete, thresholds)
