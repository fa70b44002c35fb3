#!/usr/bin/env python3
"""
Training Metrics — Weekly report

Reads a store export ({sessions, plans, exercises, athletes}) and prints
this week's adherence, score tier, the weekly volume series, top
exercises, overtraining risk, 1RM suggestions and recommendations.

Usage:
    python -m training_metrics.report export.json
    python -m training_metrics.report export.json --athlete a1 --weeks 12
    python -m training_metrics.report export.json --json

Settings come from TRAINING_METRICS_* environment variables.
"""
import argparse
import json
import logging
import sys

from training_metrics.adherence import (
    calculate_weekly_adherence,
    generate_adherence_recommendations,
    get_adherence_level,
    is_on_track,
)
from training_metrics.analytics import (
    format_volume,
    get_week_range,
    get_weekly_load_series,
    resolve_now,
    top_exercises_by_volume,
)
from training_metrics.config import TrainingConfig, config_from_env
from training_metrics.errors import TrainingMetricsError
from training_metrics.insights import calculate_weekly_analytics
from training_metrics.models import SessionStatus, load_athletes, load_exercises, load_plans, load_sessions
from training_metrics.performance import analyze_session_for_one_rm, overtraining_from_sessions

logger = logging.getLogger(__name__)


def load_export(path: str) -> dict:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise TrainingMetricsError(f"{path}: expected a JSON object with sessions/plans/exercises")
    return data


def _select_athlete(plans, sessions, athlete_id):
    if athlete_id:
        return athlete_id
    athletes = {p.athlete_id for p in plans} or {s.athlete_id for s in sessions}
    if len(athletes) == 1:
        return athletes.pop()
    return None


def _one_rm_suggestions(sessions, athlete, exercises) -> list[dict]:
    if athlete is None:
        return []
    return [rec for s in sessions for rec in analyze_session_for_one_rm(s, athlete, exercises)]


def build_report(data: dict, athlete_id: str | None = None, weeks: int | None = None,
                 now=None, config: TrainingConfig | None = None) -> dict:
    config = config or config_from_env()
    weeks = weeks or config.lookback_weeks
    now = resolve_now(now)

    sessions = load_sessions(data.get("sessions"))
    plans = load_plans(data.get("plans"))
    exercises = load_exercises(data.get("exercises"))
    athletes = load_athletes(data.get("athletes"))

    athlete_id = _select_athlete(plans, sessions, athlete_id)
    athlete = next((a for a in athletes if a.id == athlete_id), None)
    if athlete_id:
        sessions = [s for s in sessions if s.athlete_id == athlete_id]
    plan = next((p for p in plans if p.athlete_id == athlete_id), None)
    logger.info("report for athlete %s: %d sessions, plan %s", athlete_id or "(all)", len(sessions),
                plan.id if plan else "none")

    week = get_week_range(now)
    this_week = [
        s for s in sessions
        if s.status == SessionStatus.COMPLETED and s.completed_at and week.contains(s.completed_at)
    ]

    report = {
        "athlete_id": athlete_id,
        "week_start": week.start.date().isoformat(),
        "sessions_this_week": len(this_week),
        "weekly_series": get_weekly_load_series(sessions, weeks, now, config),
        "top_exercises": top_exercises_by_volume(sessions, config=config),
        "overtraining": overtraining_from_sessions(sessions, now=now, config=config),
        "one_rm_suggestions": _one_rm_suggestions(this_week, athlete, exercises),
        "adherence": None,
        "level": None,
        "on_track": None,
        "analytics": None,
        "recommendations": [],
    }

    if plan is None:
        logger.warning("no training plan for athlete %s; skipping adherence", athlete_id)
        return report

    adherence = calculate_weekly_adherence(plan, sessions, week, config=config)
    analytics = calculate_weekly_analytics(this_week, adherence, exercises, config)
    report.update(
        adherence=adherence,
        level=get_adherence_level(adherence),
        on_track=is_on_track(adherence),
        analytics=analytics,
        recommendations=generate_adherence_recommendations(plan, adherence) + analytics["recommendations"],
    )
    return report


def print_report(report: dict, config: TrainingConfig):
    print(f"📊 Training report — week of {report['week_start']}")
    print(f"   Athlete: {report['athlete_id'] or 'all'}")
    print(f"   Sessions this week: {report['sessions_this_week']}")

    adherence = report["adherence"]
    if adherence:
        print("\n🎯 Adherence:")
        print(f"   Sessions: {adherence['completed']}/{adherence['planned']} ({adherence['percentage']}%)")
        print(f"   Volume: {format_volume(adherence['volume_actual'], config.volume_display)}"
              f" / {format_volume(adherence['volume_target'], config.volume_display)}"
              f" ({adherence['volume_deviation']:+d}%)")
        print(f"   Weekly score: {adherence['weekly_score']} ({report['level']})"
              f"{'' if report['on_track'] else ' ⚠️  off track'}")

    print("\n📈 Weekly volume:")
    for w in report["weekly_series"]:
        intensity = f"{w['avg_intensity']:.1f}" if w["avg_intensity"] is not None else "-"
        print(f"   {w['week_start']} | {w['completed_sessions']} sessions | "
              f"{format_volume(w['total_volume'], config.volume_display)} | RPE {intensity}")

    if report["top_exercises"]:
        print("\n🏆 Top exercises:")
        for row in report["top_exercises"]:
            print(f"   {row['exercise_id']}: {format_volume(row['volume'], config.volume_display)} ({row['sets']} sets)")

    risk = report["overtraining"]
    print(f"\n🫀 Overtraining risk: {risk['level']} ({risk['score']}/100)")
    for factor in risk["factors"]:
        print(f"   - {factor}")
    if risk["level"] != "low":
        print(f"   {risk['recommendation']}")

    if report["one_rm_suggestions"]:
        print("\n🏋️ 1RM suggestions (confirm before applying):")
        for rec in report["one_rm_suggestions"]:
            name = rec["exercise_name"] or rec["exercise_id"]
            print(f"   {name}: {rec['action']} → {rec['suggested_one_rm']:g}kg")

    if report["analytics"] and report["analytics"]["movement_patterns"]:
        print("\n🧭 Movement patterns:")
        for p in report["analytics"]["movement_patterns"]:
            print(f"   {p['pattern']}: {p['count']} ({p['percentage']}%)")

    if report["recommendations"]:
        print("\n💡 Recommendations:")
        for rec in report["recommendations"]:
            print(f"   {rec}")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Weekly training report from a store export")
    parser.add_argument("export", help="Path to the JSON export")
    parser.add_argument("--athlete", help="Athlete id (defaults to the only athlete in the export)")
    parser.add_argument("--weeks", type=int, help="Weeks in the volume series")
    parser.add_argument("--json", action="store_true", help="Print the report as JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = config_from_env()
        report = build_report(load_export(args.export), args.athlete, args.weeks, config=config)
    except (OSError, json.JSONDecodeError, TrainingMetricsError) as e:
        print(f"❌ Report FAILED: {e}")
        return 1

    if args.json:
        print(json.dumps(report, indent=2, ensure_ascii=False, default=str))
    else:
        print_report(report, config)
    return 0


if __name__ == "__main__":
    sys.exit(main())
