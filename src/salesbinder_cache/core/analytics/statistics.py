"""Descriptive statistics used by the analytics reports.

All functions return full precision and treat empty input as zero.
"""

import math
from collections.abc import Sequence


def mean(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def median(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2:
        return float(ordered[mid])
    return (ordered[mid - 1] + ordered[mid]) / 2


def std_dev(values: Sequence[float], center: float | None = None) -> float:
    """Population standard deviation around ``center`` (the mean by default)."""
    if len(values) < 2:
        return 0.0
    if center is None:
        center = mean(values)
    return math.sqrt(mean([(v - center) ** 2 for v in values]))


def volatility(values: Sequence[float]) -> float:
    """Coefficient of variation: standard deviation over the absolute mean."""
    avg = mean(values)
    if avg == 0:
        return 0.0
    return std_dev(values, avg) / abs(avg)


def growth_rate(earliest: float, latest: float) -> float:
    """Relative change from ``earliest`` to ``latest``.

    Growth from zero counts as 100% when anything was sold, else 0.
    """
    if earliest == 0:
        return 1.0 if latest > 0 else 0.0
    return (latest - earliest) / earliest
