"""
Training Metrics — Trends, movement balance and recommendations

Rule-based, deterministic: the same week of data always produces the same
trends and the same recommendation list, in the same order.
"""
from training_metrics.analytics import calculate_exercise_volume, resolve_session_volume
from training_metrics.config import (
    ADHERENCE_TREND_PCT,
    DEFAULT_CONFIG,
    LOW_ADHERENCE_PCT,
    MOVEMENT_PATTERN_RULES,
    MOVEMENT_PATTERNS,
    PUSH_PULL_MAX_RATIO,
    PUSH_PULL_MIN_RATIO,
    TREND_MIN_CHANGE_PCT,
    VOLUME_DEVIATION_ALERT,
    TrainingConfig,
)
from training_metrics.models import Exercise, WorkoutSession
from training_metrics.rounding import round_half_up


# ═════════════════════════════════════════════════════════════════════
# 1. TRENDS
# ═════════════════════════════════════════════════════════════════════

def calculate_change_percent(current: float, previous: float) -> int | None:
    """Rounded % change, or None when there is no previous value to compare."""
    if previous is None or previous <= 0:
        return None
    return round_half_up((current - previous) / previous * 100)


def trend_direction(change: float, threshold: float = TREND_MIN_CHANGE_PCT) -> str:
    if change >= threshold:
        return "up"
    if change <= -threshold:
        return "down"
    return "stable"


def _describe(metric: str, change: int) -> str:
    amount = abs(change)
    if metric == "sessions":
        return f"{amount}% {'more' if change > 0 else 'fewer'} sessions than last week"
    if metric == "volume":
        return f"Volume {'increased' if change > 0 else 'decreased'} by {amount}%"
    return f"{metric.capitalize()} {'up' if change > 0 else 'down'} {amount}%"


def compute_trend(metric: str, current: float, previous: float, threshold: float = TREND_MIN_CHANGE_PCT) -> dict | None:
    """
    Trend record for one metric, or None when it isn't worth reporting
    (no previous value, or a change smaller than the threshold).
    """
    change = calculate_change_percent(current, previous)
    if change is None or abs(change) < threshold:
        return None
    return {
        "metric": metric,
        "direction": trend_direction(change, threshold),
        "percent_change": abs(change),
        "description": _describe(metric, change),
    }


def compare_weeks(
    current_sessions: list[WorkoutSession],
    previous_sessions: list[WorkoutSession],
    config: TrainingConfig = DEFAULT_CONFIG,
) -> list[dict]:
    """Session-count and volume trends, this week vs last."""
    trends = []
    sessions = compute_trend("sessions", len(current_sessions), len(previous_sessions))
    if sessions:
        trends.append(sessions)
    volume = compute_trend(
        "volume",
        sum(resolve_session_volume(s, config) for s in current_sessions),
        sum(resolve_session_volume(s, config) for s in previous_sessions),
    )
    if volume:
        trends.append(volume)
    return trends


def adherence_trends(adherence: dict) -> list[dict]:
    trends = []
    deviation = adherence["volume_deviation"]
    if deviation != 0:
        trends.append({
            "metric": "volume",
            "direction": "up" if deviation > 0 else "down",
            "percent_change": abs(deviation),
            "description": (
                f"Volume {deviation}% above target" if deviation > 0
                else f"Volume {abs(deviation)}% below target"
            ),
        })
    if adherence["percentage"] < ADHERENCE_TREND_PCT:
        trends.append({
            "metric": "adherence",
            "direction": "down",
            "percent_change": 100 - adherence["percentage"],
            "description": f"Adherence at {adherence['percentage']}% this week",
        })
    return trends


# ═════════════════════════════════════════════════════════════════════
# 2. MOVEMENT PATTERNS
# ═════════════════════════════════════════════════════════════════════

def classify_movement_pattern(exercise: Exercise) -> str:
    name = (exercise.name or "").lower()
    muscles = [m.lower() for m in exercise.muscle_groups or ()]
    for pattern, keywords in MOVEMENT_PATTERN_RULES:
        if any(k in name for k in keywords["name"]):
            return pattern
        if any(k in m for m in muscles for k in keywords["muscles"]):
            return pattern
    return "other"


def _catalog_index(catalog) -> dict:
    if isinstance(catalog, dict):
        return catalog
    return {e.id: e for e in catalog}


def movement_pattern_distribution(
    sessions: list[WorkoutSession],
    catalog,
    config: TrainingConfig = DEFAULT_CONFIG,
) -> list[dict]:
    """
    Exercise entries per movement pattern, most frequent first.

    Entries whose exercise isn't in the catalog are skipped; patterns with
    no entries are left out.
    """
    index = _catalog_index(catalog)
    counts = {p: {"count": 0, "volume": 0} for p in MOVEMENT_PATTERNS}
    total = 0
    for session in sessions:
        for entry in session.exercises:
            exercise = index.get(entry.exercise_id)
            if exercise is None:
                continue
            bucket = counts[classify_movement_pattern(exercise)]
            bucket["count"] += 1
            bucket["volume"] += calculate_exercise_volume(entry, config)
            total += 1

    patterns = [
        {
            "pattern": pattern,
            "count": data["count"],
            "volume": data["volume"],
            "percentage": round_half_up(data["count"] / total * 100) if total else 0,
        }
        for pattern, data in counts.items()
        if data["count"] > 0
    ]
    return sorted(patterns, key=lambda p: p["count"], reverse=True)


def detect_pattern_imbalance(patterns: list[dict]) -> dict | None:
    """Push:pull ratio outside 0.67-1.5 → {ratio, dominant}; None otherwise."""
    by_pattern = {p["pattern"]: p["count"] for p in patterns}
    push = by_pattern.get("push", 0)
    pull = by_pattern.get("pull", 0)
    if not push or not pull:
        return None
    ratio = push / pull
    if ratio > PUSH_PULL_MAX_RATIO:
        return {"ratio": ratio, "dominant": "push"}
    if ratio < PUSH_PULL_MIN_RATIO:
        return {"ratio": ratio, "dominant": "pull"}
    return None


# ═════════════════════════════════════════════════════════════════════
# 3. RECOMMENDATIONS & WEEKLY SUMMARY
# ═════════════════════════════════════════════════════════════════════

def generate_recommendations(adherence: dict, patterns: list[dict]) -> list[str]:
    """Every rule is checked; several can fire in the same week."""
    recommendations = []

    if adherence["percentage"] < LOW_ADHERENCE_PCT:
        recommendations.append("Low adherence this week. Consider reducing training frequency.")

    deviation = adherence["volume_deviation"]
    if abs(deviation) > VOLUME_DEVIATION_ALERT:
        if deviation > 0:
            recommendations.append("Volume significantly above target. Monitor recovery.")
        else:
            recommendations.append("Volume below target. Consider increasing intensity or session count.")

    imbalance = detect_pattern_imbalance(patterns)
    if imbalance:
        missing = "pulling" if imbalance["dominant"] == "push" else "pushing"
        recommendations.append(f"Consider adding more {missing} exercises for balance.")

    return recommendations


def calculate_weekly_analytics(
    sessions: list[WorkoutSession],
    adherence: dict,
    exercises,
    config: TrainingConfig = DEFAULT_CONFIG,
) -> dict:
    patterns = movement_pattern_distribution(sessions, exercises, config)
    return {
        "weekly_score": adherence.get("weekly_score") or 0,
        "volume_deviation": adherence["volume_deviation"],
        "movement_patterns": patterns,
        "trends": adherence_trends(adherence),
        "recommendations": generate_recommendations(adherence, patterns),
    }
