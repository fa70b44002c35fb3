"""
Tests for record parsing and TrainingConfig — the boundary where store
data and settings enter the package.
"""
from datetime import datetime

import pytest


# ═══════════════════════════════════════════════════════════════════════
# RECORD PARSING
# ═══════════════════════════════════════════════════════════════════════

SESSION_RECORD = {
    "id": "s1",
    "athleteId": "a1",
    "status": "completed",
    "completedAt": "2026-03-10T10:00:00Z",
    "totalVolume": 1500,
    "exercises": [
        {
            "id": "e1",
            "exerciseId": "bench",
            "order": 0,
            "sets": [
                {"id": "x1", "setNumber": 1, "type": "warmup", "actualWeight": 60, "actualReps": 5,
                 "isCompleted": True},
                {"id": "x2", "setNumber": 2, "actualWeight": 100, "actualReps": 5, "rpe": 8,
                 "isCompleted": True, "completedAt": "2026-03-10T09:40:00+00:00"},
            ],
        }
    ],
}


class TestSessionFromDict:

    def test_camel_case_record(self):
        from training_metrics.models import SessionStatus, SetType, WorkoutSession
        s = WorkoutSession.from_dict(SESSION_RECORD)
        assert s.athlete_id == "a1"
        assert s.status == SessionStatus.COMPLETED
        assert s.total_volume == 1500
        ex = s.exercises[0]
        assert ex.exercise_id == "bench"
        assert ex.sets[0].type == SetType.WARMUP
        assert ex.sets[0].is_warmup
        assert ex.sets[1].actual_weight == 100
        assert ex.sets[1].rpe == 8
        assert ex.sets[1].type == SetType.WORKING

    def test_snake_case_record(self):
        from training_metrics.models import WorkoutSession
        s = WorkoutSession.from_dict({"id": "s2", "athlete_id": "a9", "total_sets": 4})
        assert s.athlete_id == "a9"
        assert s.total_sets == 4
        assert s.exercises == ()

    def test_timestamps_are_naive_utc(self):
        from training_metrics.models import parse_timestamp
        assert parse_timestamp("2026-03-10T10:00:00Z") == datetime(2026, 3, 10, 10, 0)
        assert parse_timestamp("2026-03-10T12:00:00+02:00") == datetime(2026, 3, 10, 10, 0)
        assert parse_timestamp("2026-03-10") == datetime(2026, 3, 10)
        assert parse_timestamp(None) is None

    def test_missing_id_raises(self):
        from training_metrics.errors import InvalidRecordError
        from training_metrics.models import WorkoutSession
        with pytest.raises(InvalidRecordError, match="id"):
            WorkoutSession.from_dict({"athleteId": "a1"})

    def test_unknown_status_raises(self):
        from training_metrics.errors import InvalidRecordError
        from training_metrics.models import WorkoutSession
        with pytest.raises(InvalidRecordError, match="status"):
            WorkoutSession.from_dict({"id": "s", "athleteId": "a", "status": "paused"})

    def test_non_numeric_weight_raises(self):
        from training_metrics.errors import InvalidRecordError
        from training_metrics.models import SetEntry
        with pytest.raises(InvalidRecordError):
            SetEntry.from_dict({"id": "x", "actualWeight": "heavy"})
        with pytest.raises(InvalidRecordError):
            SetEntry.from_dict({"id": "x", "actualReps": True})

    def test_bad_timestamp_raises(self):
        from training_metrics.errors import InvalidRecordError
        from training_metrics.models import parse_timestamp
        with pytest.raises(InvalidRecordError):
            parse_timestamp("last tuesday")

    def test_invalid_record_is_value_error(self):
        """Callers that only know about ValueError still catch bad records."""
        from training_metrics.models import SetEntry
        with pytest.raises(ValueError):
            SetEntry.from_dict("not a dict")


class TestMalformedRecords:

    @pytest.mark.parametrize("field,value", [
        ("setNumber", "nan"),
        ("actualReps", "nan"),
        ("actualWeight", float("nan")),
        ("actualWeight", float("inf")),
        ("restSeconds", "-inf"),
    ])
    def test_non_finite_numbers_rejected(self, field, value):
        from training_metrics.errors import InvalidRecordError
        from training_metrics.models import SetEntry
        with pytest.raises(InvalidRecordError, match="finite"):
            SetEntry.from_dict({"id": "x", field: value})

    def test_fractional_count_rejected(self):
        from training_metrics.errors import InvalidRecordError
        from training_metrics.models import SetEntry
        with pytest.raises(InvalidRecordError, match="whole number"):
            SetEntry.from_dict({"id": "x", "actualReps": "5.7"})
        assert SetEntry.from_dict({"id": "x", "actualReps": 5.0}).actual_reps == 5
        assert SetEntry.from_dict({"id": "x", "actualReps": "8"}).actual_reps == 8

    def test_large_integers_pass_through(self):
        from training_metrics.models import WorkoutSession
        s = WorkoutSession.from_dict({"id": "s", "athleteId": "a", "totalVolume": 10 ** 30})
        assert s.total_volume == 10 ** 30

    @pytest.mark.parametrize("loader", ["load_sessions", "load_exercises", "load_plans", "load_athletes"])
    def test_non_mapping_entries_rejected(self, loader):
        from training_metrics import models
        from training_metrics.errors import InvalidRecordError
        with pytest.raises(InvalidRecordError, match="mapping"):
            getattr(models, loader)([5])

    @pytest.mark.parametrize("cls_name", ["DayPlan", "PlannedSession", "Exercise", "Athlete"])
    def test_from_dict_requires_mapping(self, cls_name):
        from training_metrics import models
        from training_metrics.errors import InvalidRecordError
        with pytest.raises(InvalidRecordError):
            getattr(models, cls_name).from_dict(["not", "a", "record"])

    @pytest.mark.parametrize("record", [
        {"id": "e", "exerciseId": "bench", "sets": 3},
        {"id": "e", "exerciseId": "bench", "sets": "x1"},
    ])
    def test_sets_must_be_a_list(self, record):
        from training_metrics.errors import InvalidRecordError
        from training_metrics.models import ExerciseEntry
        with pytest.raises(InvalidRecordError, match="list"):
            ExerciseEntry.from_dict(record)

    def test_other_list_fields(self):
        from training_metrics.errors import InvalidRecordError
        from training_metrics.models import Exercise, TrainingPlan, WorkoutSession
        with pytest.raises(InvalidRecordError):
            WorkoutSession.from_dict({"id": "s", "athleteId": "a", "exercises": {"id": "e"}})
        with pytest.raises(InvalidRecordError):
            Exercise.from_dict({"id": "bench", "muscleGroups": "chest"})
        with pytest.raises(InvalidRecordError):
            TrainingPlan.from_dict({"athleteId": "a", "dayPlans": 7})
        with pytest.raises(InvalidRecordError):
            TrainingPlan.from_dict({"athleteId": "a", "metadata": [4]})

    def test_collection_must_be_a_list(self):
        from training_metrics.errors import InvalidRecordError
        from training_metrics.models import load_sessions
        with pytest.raises(InvalidRecordError, match="sessions"):
            load_sessions({"id": "s1"})


class TestAthleteFromDict:

    def test_one_rm_records_keyed_by_exercise(self):
        from training_metrics.models import Athlete
        athlete = Athlete.from_dict({
            "id": "a1", "weightKg": 82,
            "oneRMRecords": {"bench": {"currentOneRM": 100, "strengthFocusSessions": 2, "source": "manual",
                                       "lastUpdate": "2026-03-01T08:00:00Z"}},
        })
        record = athlete.one_rm_record("bench")
        assert record.current_one_rm == 100
        assert record.strength_focus_sessions == 2
        assert record.last_update == datetime(2026, 3, 1, 8, 0)
        assert athlete.one_rm("bench") == 100
        assert athlete.one_rm("squat") is None

    def test_one_rm_records_as_list(self):
        from training_metrics.models import Athlete
        athlete = Athlete.from_dict({"id": "a1", "one_rm_records": [{"exerciseId": "squat", "currentOneRM": 140}]})
        assert athlete.one_rm("squat") == 140
        assert athlete.one_rm_record("squat").strength_focus_sessions == 0

    def test_bad_one_rm_records(self):
        from training_metrics.errors import InvalidRecordError
        from training_metrics.models import Athlete
        with pytest.raises(InvalidRecordError):
            Athlete.from_dict({"id": "a1", "oneRMRecords": 100})
        with pytest.raises(InvalidRecordError):
            Athlete.from_dict({"id": "a1", "oneRMRecords": {"bench": {"currentOneRM": "nan"}}})


class TestPlanFromDict:

    def test_microcycle_from_metadata(self):
        from training_metrics.models import TrainingPlan
        plan = TrainingPlan.from_dict({
            "id": "p1", "athleteId": "a1", "sessionsPerWeek": 4, "weeklyVolume": 10000,
            "metadata": {"currentMicrocycle": 4},
            "dayPlans": [{"dayOfWeek": "monday", "sessionType": "strength", "intensity": 8}],
        })
        assert plan.sessions_per_week == 4
        assert plan.weekly_volume == 10000
        assert plan.current_microcycle == 4
        assert plan.day_plans[0].day_of_week == "monday"

    def test_defaults(self):
        from training_metrics.models import TrainingPlan
        plan = TrainingPlan.from_dict({"athleteId": "a1"})
        assert plan.sessions_per_week == 0
        assert plan.weekly_volume == 0
        assert plan.current_microcycle is None

    def test_bulk_loaders(self):
        from training_metrics.models import load_exercises, load_sessions
        assert len(load_sessions([SESSION_RECORD, SESSION_RECORD])) == 2
        assert load_sessions(None) == []
        catalog = load_exercises([{"id": "bench", "name": "Bench Press", "muscleGroups": ["chest"]}])
        assert catalog[0].muscle_groups == ("chest",)


# ═══════════════════════════════════════════════════════════════════════
# CONFIG
# ═══════════════════════════════════════════════════════════════════════

class TestLoadConfig:

    def test_defaults(self):
        from training_metrics.config import DEFAULT_CONFIG, OneRMMethod, load_config
        cfg = load_config(None)
        assert cfg is DEFAULT_CONFIG
        assert cfg.one_rm_method == OneRMMethod.BRZYCKI
        assert cfg.include_warmup is False
        assert cfg.lookback_weeks == 8

    def test_camel_case_keys(self):
        from training_metrics.config import OneRMMethod, VolumeDisplay, load_config
        cfg = load_config({"oneRMMethod": "Epley", "volumeDisplay": "tonnage", "includeWarmup": "true"})
        assert cfg.one_rm_method == OneRMMethod.EPLEY
        assert cfg.volume_display == VolumeDisplay.TONNAGE
        assert cfg.include_warmup is True

    def test_unknown_key_rejected(self):
        from training_metrics.config import load_config
        from training_metrics.errors import ConfigError
        with pytest.raises(ConfigError, match="unknown config key"):
            load_config({"theme": "dark"})

    @pytest.mark.parametrize("mapping", [
        {"oneRMMethod": "lombardi"},
        {"lookbackWeeks": 0},
        {"lookbackMonths": "six"},
        {"includeWarmup": "maybe"},
    ])
    def test_invalid_values_rejected(self, mapping):
        from training_metrics.config import load_config
        from training_metrics.errors import ConfigError
        with pytest.raises(ConfigError):
            load_config(mapping)

    def test_from_env(self):
        from training_metrics.config import OneRMMethod, config_from_env
        cfg = config_from_env({
            "TRAINING_METRICS_LOOKBACK_WEEKS": "12",
            "TRAINING_METRICS_ONE_RM_METHOD": "epley",
            "UNRELATED": "x",
        })
        assert cfg.lookback_weeks == 12
        assert cfg.one_rm_method == OneRMMethod.EPLEY

    def test_empty_env_gives_defaults(self):
        from training_metrics.config import DEFAULT_CONFIG, config_from_env
        assert config_from_env({}) == DEFAULT_CONFIG

    def test_config_is_frozen(self):
        from dataclasses import FrozenInstanceError
        from training_metrics.config import DEFAULT_CONFIG
        with pytest.raises(FrozenInstanceError):
            DEFAULT_CONFIG.include_warmup = True


class TestRounding:

    def test_half_up(self):
        from training_metrics.rounding import round_half_up
        assert round_half_up(112.5) == 113
        assert round_half_up(2.5) == 3
        assert round_half_up(-2.5) == -2
        assert round_half_up(7.25, 1) == pytest.approx(7.3)

    def test_increment(self):
        from training_metrics.rounding import round_to_increment
        assert round_to_increment(85.7, 2.5) == 85.0
        assert round_to_increment(86.3, 2.5) == 87.5
