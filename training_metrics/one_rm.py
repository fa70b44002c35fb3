"""
Training Metrics — 1RM Estimation

Epley, Brzycki and Lombardi estimates from a sub-maximal set, plus the
reverse calculation (working weight for a rep target) and progression
helpers. These only estimate; they never set an athlete's 1RM.

Every formula is trusted for 1..cap reps (default 10, never above 12).
Past the cap the raw weight is returned unchanged rather than an
extrapolated number. Results are rounded half-up to whole units.
"""
from typing import Optional

from training_metrics.config import (
    DEFAULT_BODYWEIGHT,
    DEFAULT_CONFIG,
    LOMBARDI_EXPONENT,
    MIN_PROGRESSION_STEP,
    ONE_RM_MAX_REP_CAP,
    ONE_RM_REP_CAP,
    PROGRESSION_PCT,
    WEIGHT_INCREMENT,
    TrainingConfig,
)
from training_metrics.models import Exercise, SetEntry
from training_metrics.rounding import round_half_up, round_to_increment


FORMULAS = ("epley", "brzycki", "lombardi")


def _rep_cap(cap: int | None) -> int:
    if cap is None:
        return ONE_RM_REP_CAP
    return max(1, min(int(cap), ONE_RM_MAX_REP_CAP))


def _passthrough(weight: float, reps: float, cap: int | None) -> Optional[float]:
    """Shared guards: 0 for empty input, weight itself for singles / beyond cap."""
    if reps <= 0 or weight <= 0:
        return 0
    if reps == 1 or reps > _rep_cap(cap):
        return weight
    return None


# ═════════════════════════════════════════════════════════════════════
# 1. FORMULAS
# ═════════════════════════════════════════════════════════════════════

def epley(weight: float, reps: float, cap: int | None = None) -> float:
    """1RM = weight × (1 + reps/30)"""
    fixed = _passthrough(weight, reps, cap)
    if fixed is not None:
        return fixed
    return round_half_up(weight * (1 + reps / 30))


def brzycki(weight: float, reps: float, cap: int | None = None) -> float:
    """1RM = weight × 36 / (37 − reps). Slightly more conservative than Epley."""
    fixed = _passthrough(weight, reps, cap)
    if fixed is not None:
        return fixed
    # Cap is at most 12, so the denominator never reaches zero
    return round_half_up(weight * 36 / (37 - reps))


def lombardi(weight: float, reps: float, cap: int | None = None) -> float:
    """1RM = weight × reps^0.10"""
    fixed = _passthrough(weight, reps, cap)
    if fixed is not None:
        return fixed
    return round_half_up(weight * reps ** LOMBARDI_EXPONENT)


_FORMULA_FUNCS = {"epley": epley, "brzycki": brzycki, "lombardi": lombardi}


def estimate_one_rm(weight: float, reps: float, formula: str | None = None, cap: int | None = None) -> float:
    """
    Estimate 1RM with a named formula.

    formula=None gives the conservative estimate: the lower of Epley and
    Brzycki, which is what load suggestions should use.
    """
    if formula is None:
        return min(epley(weight, reps, cap), brzycki(weight, reps, cap))
    func = _FORMULA_FUNCS.get(str(getattr(formula, "value", formula)).lower())
    if func is None:
        raise ValueError(f"unknown 1RM formula: {formula!r} (expected one of {FORMULAS})")
    return func(weight, reps, cap)


def estimate_one_rm_average(weight: float, reps: float, cap: int | None = None) -> dict:
    """All three estimates plus their mean, for UIs that show their working."""
    if reps <= 0 or weight <= 0:
        return {"epley": 0, "brzycki": 0, "lombardi": 0, "average": 0}
    e = epley(weight, reps, cap)
    b = brzycki(weight, reps, cap)
    lo = lombardi(weight, reps, cap)
    return {"epley": e, "brzycki": b, "lombardi": lo, "average": round_half_up((e + b + lo) / 3)}


# ═════════════════════════════════════════════════════════════════════
# 2. EFFECTIVE LOAD (BODYWEIGHT + ADDED WEIGHT)
# ═════════════════════════════════════════════════════════════════════

def get_effective_load(weight: float | None, is_bodyweight: bool, athlete_weight: float | None = None) -> float:
    """
    Load that actually moved. For bodyweight exercises that is the athlete's
    weight (70 when unknown) plus any added weight.
    """
    if not is_bodyweight:
        return weight or 0
    bodyweight = athlete_weight or DEFAULT_BODYWEIGHT
    return bodyweight + (weight or 0)


def _set_load_and_reps(s: SetEntry) -> tuple[float, float]:
    weight = s.actual_weight or s.target_weight or 0
    reps = s.actual_reps or s.target_reps or 0
    return weight, reps


def estimate_one_rm_from_set(
    s: SetEntry,
    exercise: Exercise | None = None,
    athlete_weight: float | None = None,
    formula: str | None = None,
) -> float:
    weight, reps = _set_load_and_reps(s)
    if reps <= 0:
        return 0
    load = get_effective_load(weight, exercise.is_bodyweight if exercise else False, athlete_weight)
    return estimate_one_rm(load, reps, formula)


def best_e1rm(
    sets,
    method=None,
    exercise: Exercise | None = None,
    athlete_weight: float | None = None,
    config: TrainingConfig = DEFAULT_CONFIG,
) -> Optional[float]:
    """
    Highest e1RM among completed sets, using the configured formula.

    Warmups count only when the config includes them. None when no set
    has a load and reps to estimate from.
    """
    method = method or config.one_rm_method
    is_bw = exercise.is_bodyweight if exercise else False
    best = None
    for s in sets:
        if not s.is_completed or (s.is_warmup and not config.include_warmup):
            continue
        weight, reps = _set_load_and_reps(s)
        load = get_effective_load(weight, is_bw, athlete_weight)
        if load <= 0 or reps <= 0:
            continue
        value = estimate_one_rm(load, reps, method)
        if best is None or value > best:
            best = value
    return best


def estimate_one_rm_from_sets(
    sets,
    exercise: Exercise | None = None,
    athlete_weight: float | None = None,
) -> dict:
    """Best completed set (by conservative e1RM) with the full formula breakdown."""
    empty = {"epley": 0, "brzycki": 0, "lombardi": 0, "average": 0, "best_set": None}
    is_bw = exercise.is_bodyweight if exercise else False
    best_estimate = 0
    best_set = None
    for s in sets:
        if not s.is_completed:
            continue
        weight, reps = _set_load_and_reps(s)
        if reps <= 0 or reps > ONE_RM_REP_CAP:
            continue
        estimate = estimate_one_rm(get_effective_load(weight, is_bw, athlete_weight), reps)
        if estimate > best_estimate:
            best_estimate = estimate
            best_set = s
    if best_set is None:
        return empty
    weight, reps = _set_load_and_reps(best_set)
    return {
        **estimate_one_rm_average(get_effective_load(weight, is_bw, athlete_weight), reps),
        "best_set": best_set,
    }


# ═════════════════════════════════════════════════════════════════════
# 3. REVERSE CALCULATION & PROGRESSION
# ═════════════════════════════════════════════════════════════════════

def calculate_weight_for_reps(
    one_rm: float,
    target_reps: int,
    intensity_percent: float = 100,
    formula: str = "epley",
    increment: float = WEIGHT_INCREMENT,
) -> float:
    """
    Working weight for a rep target, rounded to the nearest plate increment.

    Inverts Epley by default (1RM / (1 + reps/30)); Brzycki inverts to
    1RM × (37 − reps) / 36.
    """
    if one_rm <= 0 or target_reps <= 0:
        return 0
    if target_reps == 1:
        base = one_rm
    elif str(getattr(formula, "value", formula)).lower() == "brzycki":
        base = one_rm * (37 - min(target_reps, 36)) / 36
    else:
        base = one_rm / (1 + target_reps / 30)
    return round_to_increment(base * intensity_percent / 100, increment)


def recommended_increment(current_one_rm: float) -> float:
    """max(2.5, 2.5% of the 1RM rounded to the nearest 0.5)."""
    if current_one_rm <= 0:
        return MIN_PROGRESSION_STEP
    return max(MIN_PROGRESSION_STEP, round_half_up(current_one_rm * PROGRESSION_PCT * 2) / 2)


def suggest_next_load(last_weight: float, strategy: str = "2.5kg") -> float:
    """
    Next load for a lift. "2.5kg" adds a fixed 2.5; "2.5%" adds 2.5% of the
    last weight but never less than 2.5. Rounded to 0.5.
    """
    if strategy == "2.5kg":
        step = MIN_PROGRESSION_STEP
    elif strategy == "2.5%":
        step = max(MIN_PROGRESSION_STEP, last_weight * PROGRESSION_PCT)
    else:
        raise ValueError(f"unknown progression strategy: {strategy!r}")
    return round_half_up((last_weight + step) * 2) / 2
