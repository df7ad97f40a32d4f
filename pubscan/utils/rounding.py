import math


def round_half_up(value: float) -> int:
    """Round to the nearest integer, ties towards +infinity.

    Python's round() uses banker's rounding; stored figures must match the
    half-up convention (2.5 -> 3, -2.5 -> -2).
    """
    return int(math.floor(value + 0.5))
