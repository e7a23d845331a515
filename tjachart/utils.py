import math

import numpy as np


def clamp(value, lo, hi):
    return min(hi, max(lo, value))


def round_half_up(value):
    """Round to the nearest integer, .5 always going up (not banker's rounding)."""
    return math.floor(value + 0.5)


def median(values):
    if len(values) == 0:
        return 0.0
    return float(np.median(np.asarray(values, dtype=float)))


def index_percentile(sorted_values, fraction):
    """
    Percentile by direct index into an ascending list: sorted_values[floor(n * fraction)].
    Falls back to the last element when the index runs past the end.
    """
    n = len(sorted_values)
    if n == 0:
        return None
    return sorted_values[min(n - 1, int(math.floor(n * fraction)))]


def format_number(value) -> str:
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return repr(value)
