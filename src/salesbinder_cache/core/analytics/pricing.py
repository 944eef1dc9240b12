"""Price distribution statistics and discount detection."""

from collections.abc import Sequence
from dataclasses import dataclass

from salesbinder_cache.core.analytics.statistics import median, std_dev
from salesbinder_cache.models.document import PriceBucket


@dataclass(frozen=True)
class PriceStats:
    min: float
    max: float
    avg: float
    median: float
    std_dev: float
    variance_pct: float


@dataclass(frozen=True)
class DiscountInfo:
    has_discounts: bool
    avg_discount_pct: float | None
    discount_frequency: float
    mode_price: float | None = None


_NO_DISCOUNTS = DiscountInfo(has_discounts=False, avg_discount_pct=None, discount_frequency=0.0)


def calculate_price_stats(distribution: Sequence[PriceBucket]) -> PriceStats:
    """Summarize the price points of a distribution.

    The average is weighted by quantity; median and spread are over the
    distinct price points, with the spread measured around the weighted
    average.
    """
    if not distribution:
        return PriceStats(min=0.0, max=0.0, avg=0.0, median=0.0, std_dev=0.0, variance_pct=0.0)

    prices = [b.price for b in distribution]
    total_quantity = sum(b.total_quantity for b in distribution)
    weighted = sum(b.price * b.total_quantity for b in distribution)
    avg = weighted / total_quantity if total_quantity > 0 else 0.0
    spread = std_dev(prices, avg)

    return PriceStats(
        min=min(prices),
        max=max(prices),
        avg=avg,
        median=median(prices),
        std_dev=spread,
        variance_pct=(spread / abs(avg)) * 100 if avg != 0 else 0.0,
    )


def detect_discounts(distribution: Sequence[PriceBucket]) -> DiscountInfo:
    """Compare every price point against the modal (best-selling) price.

    Units sold below the mode count as discounted. The average discount is
    the forgone revenue as a percentage of what those units would have
    brought at the mode price.
    """
    if not distribution:
        return _NO_DISCOUNTS

    total_quantity = sum(b.total_quantity for b in distribution)
    if total_quantity == 0:
        return _NO_DISCOUNTS

    # First bucket wins ties, i.e. the cheapest of the equally popular prices.
    mode = max(distribution, key=lambda b: b.total_quantity)
    discounted = [b for b in distribution if b.price < mode.price]
    discounted_quantity = sum(b.total_quantity for b in discounted)

    avg_discount_pct: float | None = None
    if discounted and mode.price > 0:
        forgone = sum((mode.price - b.price) * b.total_quantity for b in discounted)
        base_revenue = mode.price * discounted_quantity
        avg_discount_pct = (forgone / base_revenue) * 100 if base_revenue > 0 else 0.0

    return DiscountInfo(
        has_discounts=bool(discounted),
        avg_discount_pct=avg_discount_pct,
        discount_frequency=discounted_quantity / total_quantity,
        mode_price=mode.price,
    )
