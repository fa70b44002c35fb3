"""
Training Metrics — Rounding

Displayed numbers round half-up (112.5 → 113), not to even as the
built-in round() does.
"""
import math


def round_half_up(value: float, ndigits: int = 0) -> float | int:
    """Round half toward +infinity. Returns an int when ndigits == 0."""
    factor = 10 ** ndigits
    rounded = math.floor(value * factor + 0.5) / factor
    return int(rounded) if ndigits == 0 else rounded


def round_to_increment(value: float, increment: float) -> float:
    """Nearest multiple of increment (e.g. 2.5 plates)."""
    if increment <= 0:
        return value
    return round_half_up(value / increment) * increment
