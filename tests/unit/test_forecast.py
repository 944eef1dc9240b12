"""Tests for demand forecasting."""

import pytest

from salesbinder_cache.core.analytics.forecast import (
    apply_trend_adjustment,
    determine_confidence,
    forecast_moving_average,
)


def test_moving_average_repeats_mean() -> None:
    assert forecast_moving_average([10, 20, 30], 3) == [20, 20, 20]


def test_moving_average_of_no_history_is_zero() -> None:
    assert forecast_moving_average([], 2) == [0, 0]


def test_trend_adjustment_compounds_linearly() -> None:
    assert apply_trend_adjustment([100, 100, 100], 0.1) == pytest.approx([110, 120, 130])


def test_negative_trend_adjustment() -> None:
    assert apply_trend_adjustment([100, 100], -0.25) == pytest.approx([75, 50])


@pytest.mark.parametrize(
    ("volatility", "points", "expected"),
    [
        (0.05, 6, "high"),
        (0.05, 5, "medium"),
        (0.2, 3, "medium"),
        (0.2, 2, "low"),
        (0.5, 12, "low"),
    ],
)
def test_confidence(volatility: float, points: int, expected: str) -> None:
    assert determine_confidence(volatility, points) == expected
