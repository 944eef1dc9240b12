"""Tests for price statistics and discount detection."""

import pytest

from salesbinder_cache.core.analytics.pricing import calculate_price_stats, detect_discounts
from salesbinder_cache.models.document import PriceBucket


def _bucket(price: float, qty: int) -> PriceBucket:
    return PriceBucket(price=price, total_quantity=qty, total_revenue=price * qty)


def test_empty_distribution() -> None:
    stats = calculate_price_stats([])
    assert stats.avg == 0
    assert stats.variance_pct == 0
    assert detect_discounts([]).has_discounts is False


def test_price_stats_weight_average_by_quantity() -> None:
    stats = calculate_price_stats([_bucket(20, 1), _bucket(25, 3)])
    assert stats.min == 20
    assert stats.max == 25
    assert stats.avg == pytest.approx(23.75)
    assert stats.median == pytest.approx(22.5)
    assert stats.std_dev > 0
    assert stats.variance_pct == pytest.approx(stats.std_dev / 23.75 * 100)


def test_single_price_point_has_no_discounts() -> None:
    info = detect_discounts([_bucket(25, 10)])
    assert info.has_discounts is False
    assert info.avg_discount_pct is None
    assert info.discount_frequency == 0
    assert info.mode_price == 25


def test_discount_relative_to_mode_price() -> None:
    info = detect_discounts([_bucket(20, 1), _bucket(25, 3)])
    assert info.has_discounts is True
    assert info.mode_price == 25
    assert info.avg_discount_pct == pytest.approx(20.0)
    assert info.discount_frequency == pytest.approx(0.25)


def test_prices_above_mode_are_not_discounts() -> None:
    info = detect_discounts([_bucket(25, 5), _bucket(30, 1)])
    assert info.has_discounts is False


def test_mode_tie_goes_to_cheapest_price() -> None:
    info = detect_discounts([_bucket(20, 2), _bucket(25, 2)])
    assert info.mode_price == 20
    assert info.has_discounts is False


def test_zero_quantity_distribution_has_no_discounts() -> None:
    info = detect_discounts([PriceBucket(price=10, total_quantity=0, total_revenue=0)])
    assert info.has_discounts is False
