"""Trend direction and momentum over consecutive sales periods."""

from dataclasses import dataclass
from typing import Literal

from salesbinder_cache.core.analytics.statistics import growth_rate, mean, volatility

Direction = Literal["upward", "downward", "stable", "volatile"]
Momentum = Literal["accelerating", "decelerating", "stable"]

VOLATILITY_THRESHOLD = 0.3
GROWTH_THRESHOLD = 0.1
ACCELERATION_THRESHOLD = 0.05


@dataclass(frozen=True)
class PeriodSummary:
    """Sales totals for one period, with the average per month."""

    period: str
    quantity_sold: float
    revenue: float
    avg_monthly: float


@dataclass(frozen=True)
class TrendResult:
    direction: Direction
    growth_rate: float
    momentum: Momentum
    volatility_score: float
    period_changes: tuple[float, ...] = ()


def period_changes(values: list[float]) -> list[float]:
    """Period-over-period relative changes, skipping periods that start at zero."""
    return [
        (current - previous) / previous
        for previous, current in zip(values, values[1:])
        if previous != 0
    ]


def determine_momentum(changes: list[float]) -> Momentum:
    """Classify the average second difference of the period changes."""
    if len(changes) < 2:
        return "stable"
    acceleration = mean([b - a for a, b in zip(changes, changes[1:])])
    if acceleration > ACCELERATION_THRESHOLD:
        return "accelerating"
    if acceleration < -ACCELERATION_THRESHOLD:
        return "decelerating"
    return "stable"


def detect_trend(periods: list[PeriodSummary]) -> TrendResult:
    """Classify the trend across periods ordered oldest to newest."""
    if not periods:
        return TrendResult(direction="stable", growth_rate=0.0, momentum="stable", volatility_score=0.0)

    values = [p.avg_monthly for p in periods]
    growth = growth_rate(values[0], values[-1])
    score = volatility(values)
    changes = period_changes(values)

    direction: Direction
    if score > VOLATILITY_THRESHOLD:
        direction = "volatile"
    elif growth > GROWTH_THRESHOLD:
        direction = "upward"
    elif growth < -GROWTH_THRESHOLD:
        direction = "downward"
    else:
        direction = "stable"

    return TrendResult(
        direction=direction,
        growth_rate=growth,
        momentum=determine_momentum(changes),
        volatility_score=score,
        period_changes=tuple(changes),
    )
