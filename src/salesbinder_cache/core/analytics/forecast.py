"""Naive trend-adjusted demand forecasting."""

from collections.abc import Sequence
from typing import Literal

from salesbinder_cache.core.analytics.statistics import mean

Confidence = Literal["high", "medium", "low"]


def forecast_moving_average(history: Sequence[float], periods: int) -> list[float]:
    """Repeat the historical mean for each future period."""
    return [mean(history)] * max(periods, 0)


def apply_trend_adjustment(forecast: Sequence[float], growth: float) -> list[float]:
    """Scale period ``i`` of a forecast by ``1 + growth * (i + 1)``."""
    return [value * (1 + growth * (i + 1)) for i, value in enumerate(forecast)]


def determine_confidence(volatility: float, data_points: int) -> Confidence:
    if volatility < 0.1 and data_points >= 6:
        return "high"
    if volatility <= 0.2 and data_points >= 3:
        return "medium"
    return "low"
