"""
Training Metrics — Plan adherence and weekly score

Compares what the plan asked for in a week (session count, volume) with
what the athlete completed, and folds both into a 0-100 weekly score:

    score = min(adherence %, 100) × 0.6 + max(0, 100 − |volume deviation %|) × 0.4

Planned is the plan's sessions_per_week, so extra sessions never push the
session component past 100.
"""
import logging
from datetime import timedelta

from training_metrics.analytics import get_week_range, resolve_now, resolve_session_volume
from training_metrics.config import (
    ADHERENCE_FLOOR_LEVEL,
    ADHERENCE_LEVELS,
    DEFAULT_CONFIG,
    DEFAULT_TREND_WEEKS,
    DELOAD_MICROCYCLE,
    LOW_ADHERENCE_PCT,
    ON_TRACK_SCORE,
    SESSION_WEIGHT,
    VOLUME_DEVIATION_ALERT,
    VOLUME_WEIGHT,
    TrainingConfig,
)
from training_metrics.models import SessionStatus, TrainingPlan, WeekRange, WorkoutSession
from training_metrics.rounding import round_half_up

logger = logging.getLogger(__name__)


def calculate_volume_deviation(actual: float, target: float) -> int:
    """Percent over (+) or under (−) the volume target; 0 when there is no target."""
    if not target:
        return 0
    return round_half_up((actual - target) / target * 100)


def calculate_weekly_score(percentage: float, deviation: float) -> int:
    volume_accuracy = max(0, 100 - abs(deviation))
    return round_half_up(min(percentage, 100) * SESSION_WEIGHT + volume_accuracy * VOLUME_WEIGHT)


def build_weekly_adherence(planned: int, completed: int, volume_target: float, volume_actual: float) -> dict:
    """Weekly adherence record from raw counts."""
    percentage = round_half_up(completed / planned * 100) if planned > 0 else 0
    deviation = calculate_volume_deviation(volume_actual, volume_target)
    return {
        "planned": planned,
        "completed": completed,
        "percentage": min(percentage, 100),
        "volume_target": volume_target,
        "volume_actual": volume_actual,
        "volume_deviation": deviation,
        "weekly_score": calculate_weekly_score(percentage, deviation),
    }


def calculate_weekly_adherence(
    plan: TrainingPlan,
    sessions: list[WorkoutSession],
    week_range: WeekRange | None = None,
    now=None,
    config: TrainingConfig = DEFAULT_CONFIG,
) -> dict:
    """
    Adherence for one week (the week containing `now` by default).

    Counts the plan athlete's completed sessions whose completed_at falls
    in the week. Volume is recomputed from the sets where they exist.
    """
    week = week_range or get_week_range(resolve_now(now))
    done = [
        s for s in sessions
        if s.athlete_id == plan.athlete_id
        and s.status == SessionStatus.COMPLETED
        and s.completed_at is not None
        and week.contains(s.completed_at)
    ]
    volume_actual = sum(resolve_session_volume(s, config) for s in done)
    return build_weekly_adherence(plan.sessions_per_week, len(done), plan.weekly_volume or 0, volume_actual)


def _score_of(adherence) -> float:
    if isinstance(adherence, dict):
        return adherence.get("weekly_score") or 0
    return adherence or 0


def get_adherence_level(adherence) -> str:
    """excellent / good / warning / poor, from a score or an adherence record."""
    score = _score_of(adherence)
    for threshold, level in ADHERENCE_LEVELS:
        if score >= threshold:
            return level
    return ADHERENCE_FLOOR_LEVEL


def is_on_track(adherence) -> bool:
    return _score_of(adherence) >= ON_TRACK_SCORE


def calculate_adherence_trend(
    plan: TrainingPlan,
    sessions: list[WorkoutSession],
    weeks_back: int = DEFAULT_TREND_WEEKS,
    now=None,
    config: TrainingConfig = DEFAULT_CONFIG,
) -> list[dict]:
    """Adherence for each of the last `weeks_back` weeks, oldest first."""
    current = get_week_range(resolve_now(now))
    trend = []
    for i in range(weeks_back - 1, -1, -1):
        shift = timedelta(weeks=i)
        week = WeekRange(start=current.start - shift, end=current.end - shift)
        trend.append({
            "week_start": week.start.date().isoformat(),
            "adherence": calculate_weekly_adherence(plan, sessions, week, config=config),
        })
    return trend


def generate_adherence_recommendations(plan: TrainingPlan, adherence: dict) -> list[str]:
    recommendations = []

    if adherence["percentage"] < LOW_ADHERENCE_PCT:
        recommendations.append("📉 Low adherence this week. Consider reducing training days.")

    if adherence["volume_deviation"] < -VOLUME_DEVIATION_ALERT:
        recommendations.append("⚠️ Volume significantly below target. Increase intensity or add sets.")
    elif adherence["volume_deviation"] > VOLUME_DEVIATION_ALERT:
        recommendations.append("💪 Volume above target. Monitor recovery and fatigue.")

    if plan.current_microcycle == DELOAD_MICROCYCLE:
        recommendations.append("🔄 End of microcycle. Consider a deload week.")

    if not recommendations:
        logger.debug("athlete %s on track: score %s", plan.athlete_id, adherence.get("weekly_score"))
        return ["✅ Training on track!"]
    return recommendations
