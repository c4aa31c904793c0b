import math


def clamp(value: float, min_value: float, max_value: float) -> float:
    return min(max(value, min_value), max_value)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, ties away from zero (``round`` ties to even)."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def round_to_fixed(value: float, places: int = 8) -> float:
    multiplier = 10.0 ** places
    return math.copysign(math.floor(abs(value) * multiplier + 0.5), value) / multiplier
