"""
Tests for the analytics engine — set metrics, session aggregation and
weekly/monthly series.
Run: pytest tests/ -v
"""
from datetime import datetime

import pandas as pd
import pytest

NOW = datetime(2026, 3, 18, 12, 0)  # Wednesday; week starts Monday 2026-03-16


def _make_set(weight=100, reps=5, rpe=None, rir=None, intensity=None, completed=True,
              set_type="working", set_id="x", block_id=None):
    from training_metrics.models import SetEntry, SetType
    return SetEntry(
        id=set_id, type=SetType(set_type),
        actual_weight=weight if completed else None, actual_reps=reps if completed else None,
        target_weight=weight, target_reps=reps,
        rpe=rpe, rir=rir, intensity=intensity, is_completed=completed, block_id=block_id,
    )


def _make_exercise(sets, exercise_id="bench", entry_id="e1", block_type=None):
    from training_metrics.models import ExerciseEntry
    return ExerciseEntry(id=entry_id, exercise_id=exercise_id, sets=tuple(sets), block_type=block_type)


def _make_session(exercises=(), status="completed", completed_at=NOW, session_id="s1", **kw):
    from training_metrics.models import SessionStatus, WorkoutSession
    return WorkoutSession(id=session_id, athlete_id=kw.pop("athlete_id", "a1"), status=SessionStatus(status),
                          exercises=tuple(exercises), completed_at=completed_at, **kw)


def _scenario_session(**kw):
    """3 × 100 kg × 5 @ RPE 8."""
    sets = [_make_set(100, 5, rpe=8, set_id=f"x{i}") for i in range(3)]
    return _make_session([_make_exercise(sets)], **kw)


# ═══════════════════════════════════════════════════════════════════════
# SET LEVEL
# ═══════════════════════════════════════════════════════════════════════

class TestSetIntensity:
    """The one place the RPE → intensity → RIR → 7 fallback lives."""

    def test_rpe_wins(self):
        from training_metrics.analytics import get_set_intensity
        assert get_set_intensity(_make_set(rpe=8, rir=4)) == 8

    def test_explicit_intensity_before_rir(self):
        from training_metrics.analytics import get_set_intensity
        assert get_set_intensity(_make_set(intensity=9, rir=4)) == 9

    def test_rir(self):
        from training_metrics.analytics import get_set_intensity
        assert get_set_intensity(_make_set(rir=4)) == 6
        assert get_set_intensity(_make_set(rir=0)) == 10

    def test_default(self):
        from training_metrics.analytics import get_set_intensity
        assert get_set_intensity(_make_set()) == 7

    def test_clamped(self):
        from training_metrics.analytics import get_set_intensity
        assert get_set_intensity(_make_set(rpe=11)) == 10
        assert get_set_intensity(_make_set(rir=12)) == 1

    def test_zero_rpe_falls_through(self):
        from training_metrics.analytics import get_set_intensity
        assert get_set_intensity(_make_set(rpe=0, rir=2)) == 8

    def test_target_intensity(self):
        from training_metrics.analytics import get_set_target_intensity
        assert get_set_target_intensity(_make_set(rir=2, completed=False)) == 8
        assert get_set_target_intensity(_make_set(rpe=7, completed=False)) == 7
        assert get_set_target_intensity(_make_set(completed=False)) is None


class TestSetVolumeAndFatigue:

    def test_volume(self):
        from training_metrics.analytics import calculate_set_volume
        assert calculate_set_volume(_make_set(100, 5)) == 500
        assert calculate_set_volume(_make_set(100, 5, completed=False)) == 0
        assert calculate_set_volume(_make_set(None, 5)) == 0

    def test_fatigue(self):
        import math
        from training_metrics.analytics import get_set_fatigue
        # 8 × ln(6) × sqrt(100/100)
        assert get_set_fatigue(_make_set(100, 5, rpe=8)) == pytest.approx(8 * math.log(6))

    def test_unloaded_fatigue(self):
        import math
        from training_metrics.analytics import get_set_fatigue
        assert get_set_fatigue(_make_set(0, 10, rpe=6)) == pytest.approx(6 * math.log(11) * 0.5)

    def test_planned_set_has_no_fatigue(self):
        from training_metrics.analytics import get_set_fatigue
        assert get_set_fatigue(_make_set(100, 5, rpe=8, completed=False)) == 0

    def test_labels(self):
        from training_metrics.analytics import fatigue_label, intensity_label
        assert intensity_label(4) == "Light"
        assert intensity_label(8) == "Hard"
        assert intensity_label(9) == "Max Effort"
        assert fatigue_label(14.3) == "High"
        assert fatigue_label(2) == "Low"

    def test_format_volume(self):
        from training_metrics.analytics import format_volume
        assert format_volume(1500) == "1.5K kg"
        assert format_volume(800) == "800 kg"
        assert format_volume(12340, "tonnage") == "12.34t"


# ═══════════════════════════════════════════════════════════════════════
# EXERCISE / SESSION LEVEL
# ═══════════════════════════════════════════════════════════════════════

class TestExerciseAggregation:

    def test_target_only_before_any_set(self):
        from training_metrics.analytics import get_exercise_intensity_fatigue
        ex = _make_exercise([_make_set(rir=2, completed=False), _make_set(rir=4, completed=False)])
        result = get_exercise_intensity_fatigue(ex)
        assert result["completed_sets"] == 0
        assert result["avg_intensity"] == 0
        assert result["target_intensity"] == 7

    def test_means_over_completed_sets(self):
        from training_metrics.analytics import get_exercise_intensity_fatigue
        ex = _make_exercise([_make_set(rpe=8), _make_set(rpe=6), _make_set(rpe=10, completed=False)])
        result = get_exercise_intensity_fatigue(ex)
        assert result["completed_sets"] == 2
        assert result["avg_intensity"] == 7
        assert result["target_intensity"] is None

    def test_warmups_excluded_by_default(self):
        from training_metrics.analytics import calculate_exercise_volume
        from training_metrics.config import TrainingConfig
        ex = _make_exercise([_make_set(60, 5, set_type="warmup"), _make_set(100, 5)])
        assert calculate_exercise_volume(ex) == 500
        assert calculate_exercise_volume(ex, TrainingConfig(include_warmup=True)) == 800


class TestSessionStats:
    """3 × 100 × 5 @ RPE 8 → 1500 volume, intensity 8, Brzycki e1RM 113."""

    def test_scenario(self):
        from training_metrics.analytics import compute_session_stats
        stats = compute_session_stats(_scenario_session())
        assert stats["total_volume"] == 1500
        assert stats["total_sets"] == 3
        assert stats["total_reps"] == 15
        assert stats["avg_intensity"] == 8
        assert stats["best_e1rm"] == 113
        assert stats["top_set_load"] == 100
        assert stats["avg_rpe"] == 8
        assert stats["volume_by_exercise"] == {"bench": 1500}
        assert stats["volume_by_block"] == {"main": 1500}

    def test_idempotent(self):
        from training_metrics.analytics import compute_session_stats
        session = _scenario_session()
        assert compute_session_stats(session) == compute_session_stats(session)

    def test_exercise_volumes_add_up(self):
        from training_metrics.analytics import calculate_exercise_volume, calculate_session_totals
        session = _make_session([
            _make_exercise([_make_set(100, 5), _make_set(60, 5, set_type="warmup")], entry_id="e1"),
            _make_exercise([_make_set(50, 10), _make_set(50, 10, completed=False)], "row", "e2"),
        ])
        totals = calculate_session_totals(session)
        assert totals["total_volume"] == sum(calculate_exercise_volume(ex) for ex in session.exercises)
        assert totals["total_volume"] == 1000
        assert totals["completed_exercises"] == 2

    def test_set_weighted_intensity(self):
        """One exercise with 3 sets @ 9 and one with 1 set @ 5 → (27 + 5) / 4."""
        from training_metrics.analytics import get_session_intensity_fatigue
        session = _make_session([
            _make_exercise([_make_set(rpe=9, set_id=f"a{i}") for i in range(3)], entry_id="e1"),
            _make_exercise([_make_set(rpe=5)], "row", "e2"),
        ])
        result = get_session_intensity_fatigue(session)
        assert result["avg_intensity"] == 8
        assert result["peak_intensity"] == 9
        assert result["completed_sets"] == 4

    def test_empty_session(self):
        from training_metrics.analytics import compute_session_stats
        stats = compute_session_stats(_make_session())
        assert stats["total_volume"] == 0
        assert stats["avg_intensity"] == 0
        assert stats["peak_intensity"] is None
        assert stats["best_e1rm"] is None
        assert stats["avg_rpe"] is None

    def test_block_volume(self):
        from training_metrics.analytics import compute_session_stats
        session = _make_session([
            _make_exercise([_make_set(100, 5, block_id="A"), _make_set(100, 5)], block_type="strength"),
        ])
        assert compute_session_stats(session)["volume_by_block"] == {"A": 500, "strength": 500}


class TestCachedTotals:

    def test_refresh_rebuilds_cache(self):
        from training_metrics.analytics import refresh_session_totals
        stale = _scenario_session(total_volume=999, total_sets=1)
        fresh = refresh_session_totals(stale)
        assert fresh.total_volume == 1500
        assert fresh.total_sets == 3
        assert fresh.total_reps == 15
        assert fresh.avg_intensity == 8
        assert stale.total_volume == 999  # input untouched

    def test_resolve_prefers_sets(self):
        from training_metrics.analytics import resolve_session_volume
        assert resolve_session_volume(_scenario_session(total_volume=999)) == 1500

    def test_resolve_falls_back_to_cache(self):
        from training_metrics.analytics import resolve_session_volume
        assert resolve_session_volume(_make_session(total_volume=2500)) == 2500
        assert resolve_session_volume(_make_session()) == 0

    def test_progress_and_completion(self):
        from training_metrics.analytics import can_complete_session, session_progress
        session = _make_session([_make_exercise([_make_set(), _make_set(completed=False)])], status="in_progress")
        assert session_progress(session) == 50
        assert can_complete_session(session) == (True, None)
        assert can_complete_session(_make_session()) == (False, "Session has no exercises")
        planned_only = _make_session([_make_exercise([_make_set(completed=False)])])
        assert can_complete_session(planned_only) == (False, "No sets completed")


# ═══════════════════════════════════════════════════════════════════════
# TIME SERIES
# ═══════════════════════════════════════════════════════════════════════

class TestWeeklySeries:

    def test_week_start(self):
        from training_metrics.analytics import week_start
        assert week_start(NOW) == datetime(2026, 3, 16)
        assert week_start(datetime(2026, 3, 22, 23, 59)) == datetime(2026, 3, 16)

    def test_eight_ascending_weeks_with_gaps(self):
        from training_metrics.analytics import get_weekly_load_series
        series = get_weekly_load_series([], weeks_back=8, now=NOW)
        starts = [w["week_start"] for w in series]
        assert len(series) == 8
        assert starts == sorted(starts)
        assert starts[0] == "2026-01-26"
        assert starts[-1] == "2026-03-16"
        assert all(w["avg_intensity"] is None and w["total_volume"] == 0 for w in series)

    def test_running_mean(self):
        from training_metrics.analytics import get_weekly_load_series
        sessions = [
            _make_session([_make_exercise([_make_set(100, 5, rpe=8)])], session_id="s1",
                          completed_at=datetime(2026, 3, 16, 9)),
            _make_session([_make_exercise([_make_set(100, 5, rpe=6)])], session_id="s2",
                          completed_at=datetime(2026, 3, 17, 9)),
        ]
        week = get_weekly_load_series(sessions, weeks_back=2, now=NOW)[-1]
        assert week["completed_sessions"] == 2
        assert week["avg_intensity"] == 7
        assert week["total_volume"] == 1000
        assert week["total_sets"] == 2

    def test_ignores_incomplete_and_out_of_window(self):
        from training_metrics.analytics import get_weekly_volume_series
        sessions = [
            _scenario_session(session_id="old", completed_at=datetime(2025, 1, 6)),
            _scenario_session(session_id="planned", status="planned"),
            _scenario_session(session_id="ok"),
        ]
        series = get_weekly_volume_series(sessions, weeks_back=4, now=NOW)
        assert [w["volume"] for w in series] == [0, 0, 0, 1500]

    def test_intensity_fatigue_series(self):
        from training_metrics.analytics import get_weekly_intensity_fatigue_series
        series = get_weekly_intensity_fatigue_series([_scenario_session()], weeks_back=1, now=NOW)
        assert series[0]["avg_intensity"] == 8
        assert series[0]["avg_fatigue"] > 0

    def test_adherence_series(self):
        from training_metrics.analytics import get_weekly_adherence_series
        from training_metrics.models import PlannedSession
        planned = [
            PlannedSession(scheduled_date=datetime(2026, 3, 16)),
            PlannedSession(scheduled_date=datetime(2026, 3, 18)),
        ]
        sessions = [
            _make_session(session_id="a", completed_at=datetime(2026, 3, 16, 18)),
            _make_session(session_id="bonus", completed_at=datetime(2026, 3, 10, 18)),
            _make_session(session_id="sched", completed_at=None, scheduled_date=datetime(2026, 3, 11)),
        ]
        series = get_weekly_adherence_series(planned, sessions, weeks_back=3, now=NOW)
        assert [w["week_start"] for w in series] == ["2026-03-02", "2026-03-09", "2026-03-16"]
        assert series[0]["adherence_rate"] == 0
        assert series[1] == {"week_start": "2026-03-09", "planned": 0, "completed": 2, "adherence_rate": 100}
        assert series[2]["adherence_rate"] == 50

    def test_monthly_series(self):
        from training_metrics.analytics import get_monthly_volume_series
        sessions = [
            _scenario_session(session_id="feb", completed_at=datetime(2026, 2, 10)),
            _scenario_session(session_id="mar", completed_at=datetime(2026, 3, 2)),
            _scenario_session(session_id="mar2", completed_at=datetime(2026, 3, 9)),
        ]
        series = get_monthly_volume_series(sessions, months_back=3, now=NOW)
        assert [m["month_start"] for m in series] == ["2026-01-01", "2026-02-01", "2026-03-01"]
        assert series[0] == {"month_start": "2026-01-01", "volume": 0.0, "sessions": 0, "sets": 0}
        assert series[1]["volume"] == 1500
        assert series[2]["sessions"] == 2
        assert series[2]["sets"] == 6

    def test_monthly_series_counts_cached_totals(self):
        """A session stored with only its cached total shows up in both charts."""
        from training_metrics.analytics import get_monthly_volume_series, get_weekly_volume_series
        cached = _make_session(completed_at=datetime(2026, 3, 17), total_volume=2500)
        sessions = [cached, _scenario_session(session_id="mar", completed_at=datetime(2026, 3, 2))]
        monthly = get_monthly_volume_series(sessions, months_back=1, now=NOW)
        weekly = get_weekly_volume_series(sessions, weeks_back=1, now=NOW)
        assert weekly[-1]["volume"] == 2500
        assert monthly == [{"month_start": "2026-03-01", "volume": 4000.0, "sessions": 2, "sets": 3}]

    def test_monthly_series_skips_unfinished(self):
        from training_metrics.analytics import get_monthly_volume_series
        sessions = [
            _scenario_session(session_id="planned", status="planned"),
            _scenario_session(session_id="undated", completed_at=None),
        ]
        series = get_monthly_volume_series(sessions, months_back=1, now=NOW)
        assert series == [{"month_start": "2026-03-01", "volume": 0.0, "sessions": 0, "sets": 0}]

    def test_adherence_series_window_from_config(self):
        from training_metrics.analytics import get_weekly_adherence_series
        from training_metrics.config import TrainingConfig
        assert len(get_weekly_adherence_series([], [], now=NOW)) == 8
        series = get_weekly_adherence_series([], [], now=NOW, config=TrainingConfig(lookback_weeks=3))
        assert [w["week_start"] for w in series] == ["2026-03-02", "2026-03-09", "2026-03-16"]

    def test_monthly_series_empty(self):
        from training_metrics.analytics import get_monthly_volume_series
        series = get_monthly_volume_series([], months_back=6, now=NOW)
        assert len(series) == 6
        assert all(m["volume"] == 0 for m in series)


class TestDataFrame:

    def test_one_row_per_counted_set(self):
        from training_metrics.analytics import SET_FRAME_COLUMNS, sessions_to_dataframe
        session = _make_session([
            _make_exercise([_make_set(60, 5, set_type="warmup"), _make_set(100, 5, rpe=8)]),
        ])
        df = sessions_to_dataframe([session, _scenario_session(status="planned", session_id="p")])
        assert list(df.columns) == SET_FRAME_COLUMNS
        assert len(df) == 1
        assert df["volume"].iloc[0] == 500
        assert pd.api.types.is_datetime64_any_dtype(df["completed_at"])

    def test_top_exercises(self):
        from training_metrics.analytics import top_exercises_by_volume
        session = _make_session([
            _make_exercise([_make_set(100, 5)], "bench", "e1"),
            _make_exercise([_make_set(140, 5), _make_set(140, 5)], "squat", "e2"),
            _make_exercise([_make_set(20, 10)], "curl", "e3"),
        ])
        top = top_exercises_by_volume([session], limit=2)
        assert top == [
            {"exercise_id": "squat", "volume": 1400.0, "sets": 2},
            {"exercise_id": "bench", "volume": 500.0, "sets": 1},
        ]

    def test_top_exercises_empty(self):
        from training_metrics.analytics import top_exercises_by_volume
        assert top_exercises_by_volume([]) == []
