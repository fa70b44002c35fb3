"""
Training Metrics — Configuration

Fixed product constants for the metrics core plus the per-consumer
TrainingConfig. Constants are module-level and never mutated; anything a
coach can switch lives in TrainingConfig and is validated on the way in.
"""
import os
from dataclasses import dataclass, replace
from enum import Enum

from training_metrics.errors import ConfigError

# ── Set-level defaults ───────────────────────────────────────────────
DEFAULT_INTENSITY = 7          # 1-10 scale, used when no RPE/intensity/RIR
MIN_INTENSITY = 1
MAX_INTENSITY = 10
FATIGUE_LOAD_BASELINE = 100.0  # load factor = sqrt(weight / baseline)
FATIGUE_NO_LOAD_FACTOR = 0.5   # bodyweight / unloaded sets

# ── 1RM estimation ───────────────────────────────────────────────────
DEFAULT_BODYWEIGHT = 70.0      # unit-agnostic, when athlete weight unknown
ONE_RM_REP_CAP = 10            # formulas pass weight through beyond this
ONE_RM_MAX_REP_CAP = 12        # hard ceiling for exercise-specific caps
LOMBARDI_EXPONENT = 0.10
WEIGHT_INCREMENT = 2.5         # smallest practical plate jump
MIN_PROGRESSION_STEP = 2.5
PROGRESSION_PCT = 0.025

# ── Adherence & scoring ──────────────────────────────────────────────
SESSION_WEIGHT = 0.6
VOLUME_WEIGHT = 0.4
ADHERENCE_LEVELS = [           # (min score, level), checked top-down
    (90, "excellent"),
    (70, "good"),
    (50, "warning"),
]
ADHERENCE_FLOOR_LEVEL = "poor"
ON_TRACK_SCORE = 70
LOW_ADHERENCE_PCT = 70
ADHERENCE_TREND_PCT = 80
VOLUME_DEVIATION_ALERT = 20    # |deviation| % that triggers advice
DELOAD_MICROCYCLE = 4

# ── Trends & balance ─────────────────────────────────────────────────
TREND_MIN_CHANGE_PCT = 5
PUSH_PULL_MAX_RATIO = 1.5
PUSH_PULL_MIN_RATIO = 0.67

# ── 1RM progression ──────────────────────────────────────────────────
ONE_RM_INCREASE_RATIO = 1.05   # best e1RM above current × this → increase
ONE_RM_DECREASE_RATIO = 0.95   # below this at very high effort → decrease
ONE_RM_DECREASE_INTENSITY = 9
ONE_RM_DECREASE_PCT = 0.05
MIN_STRENGTH_FOCUS_SESSIONS = 1

# ── Overtraining & load warnings ─────────────────────────────────────
VOLUME_SPIKE_RATIO = 1.5
VOLUME_RISE_RATIO = 1.25
HIGH_INTENSITY = 8.5
ELEVATED_INTENSITY = 7.5
VERY_HIGH_FREQUENCY = 6        # sessions/week strictly above this
HIGH_FREQUENCY = 5
INTENSITY_BASELINE_MARGIN = 1.5
OVERTRAINING_LEVELS = [        # (min score, level, advice), checked top-down
    (70, "critical", "Consider a deload week. Reduce volume by 40-50% and intensity."),
    (50, "high", "Monitor recovery closely. Consider reducing volume next week."),
    (30, "moderate", "Ensure adequate sleep and nutrition. Normal training can continue."),
]
OVERTRAINING_FLOOR = ("low", "Training load appears sustainable.")
LOAD_WARNING_THRESHOLDS = {    # % of 1RM
    "info": 85,
    "warning": 95,
    "danger": 105,
}

# ── Time series ──────────────────────────────────────────────────────
DEFAULT_LOOKBACK_WEEKS = 8
DEFAULT_LOOKBACK_MONTHS = 6
DEFAULT_TREND_WEEKS = 4
TOP_EXERCISES_LIMIT = 5

# ═════════════════════════════════════════════════════════════════════
# MOVEMENT PATTERNS — checked in this order, first match wins
#
# For each pattern the exercise name is tested against "name" keywords,
# then each muscle group against "muscles" keywords (all lowercase
# substring matches). Anything unmatched is "other".
# ═════════════════════════════════════════════════════════════════════

MOVEMENT_PATTERN_RULES = [
    ("push", {
        "name": ["press", "push"],
        "muscles": ["chest", "shoulder", "tricep"],
    }),
    ("pull", {
        "name": ["row", "pull", "curl"],
        "muscles": ["back", "bicep"],
    }),
    ("hinge", {
        "name": ["deadlift", "rdl", "hip thrust"],
        "muscles": ["hamstring", "glute"],
    }),
    ("squat", {
        "name": ["squat", "lunge"],
        "muscles": ["quad"],
    }),
    ("core", {
        "name": [],
        "muscles": ["core", "abs"],
    }),
    ("carry", {
        "name": ["carry", "walk"],
        "muscles": [],
    }),
]

MOVEMENT_PATTERNS = [p for p, _ in MOVEMENT_PATTERN_RULES] + ["other"]


# ═════════════════════════════════════════════════════════════════════
# TRAINING CONFIG — per-consumer switches
# ═════════════════════════════════════════════════════════════════════

class OneRMMethod(str, Enum):
    BRZYCKI = "brzycki"
    EPLEY = "epley"


class VolumeDisplay(str, Enum):
    KG_TOTAL = "kg_total"
    TONNAGE = "tonnage"


@dataclass(frozen=True)
class TrainingConfig:
    one_rm_method: OneRMMethod = OneRMMethod.BRZYCKI
    volume_display: VolumeDisplay = VolumeDisplay.KG_TOTAL
    include_warmup: bool = False
    lookback_weeks: int = DEFAULT_LOOKBACK_WEEKS
    lookback_months: int = DEFAULT_LOOKBACK_MONTHS


DEFAULT_CONFIG = TrainingConfig()

# External key → field name. camelCase is what the app store persists.
_CONFIG_KEYS = {
    "one_rm_method": "one_rm_method",
    "oneRMMethod": "one_rm_method",
    "oneRmMethod": "one_rm_method",
    "volume_display": "volume_display",
    "volumeDisplay": "volume_display",
    "include_warmup": "include_warmup",
    "includeWarmup": "include_warmup",
    "lookback_weeks": "lookback_weeks",
    "lookbackWeeks": "lookback_weeks",
    "lookback_months": "lookback_months",
    "lookbackMonths": "lookback_months",
}

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _coerce(field: str, value):
    if field == "one_rm_method":
        try:
            return OneRMMethod(str(value).lower())
        except ValueError:
            raise ConfigError(f"one_rm_method must be one of {[m.value for m in OneRMMethod]}, got {value!r}")
    if field == "volume_display":
        try:
            return VolumeDisplay(str(value).lower())
        except ValueError:
            raise ConfigError(f"volume_display must be one of {[d.value for d in VolumeDisplay]}, got {value!r}")
    if field == "include_warmup":
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        raise ConfigError(f"include_warmup must be a boolean, got {value!r}")
    # lookback windows
    if isinstance(value, bool):
        raise ConfigError(f"{field} must be an integer, got {value!r}")
    try:
        n = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{field} must be an integer, got {value!r}")
    if n < 1:
        raise ConfigError(f"{field} must be >= 1, got {n}")
    return n


def load_config(mapping: dict | None = None, base: TrainingConfig = DEFAULT_CONFIG) -> TrainingConfig:
    """
    Build a TrainingConfig from an external mapping.

    Accepts the store's camelCase keys or snake_case. Unknown keys and
    invalid values raise ConfigError instead of being carried along.
    """
    if not mapping:
        return base
    if not isinstance(mapping, dict):
        raise ConfigError(f"config must be a mapping, got {type(mapping).__name__}")
    updates = {}
    for key, value in mapping.items():
        field = _CONFIG_KEYS.get(key)
        if field is None:
            raise ConfigError(f"unknown config key: {key!r}")
        updates[field] = _coerce(field, value)
    return replace(base, **updates)


def config_from_env(environ: dict | None = None) -> TrainingConfig:
    """Read TRAINING_METRICS_* variables on top of the defaults."""
    env = os.environ if environ is None else environ
    prefix = "TRAINING_METRICS_"
    mapping = {}
    for field in ("one_rm_method", "volume_display", "include_warmup", "lookback_weeks", "lookback_months"):
        value = env.get(prefix + field.upper(), "")
        if value != "":
            mapping[field] = value
    return load_config(mapping)
