"""Stock health and reorder recommendations from recent consumption."""

import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from salesbinder_cache.core.analytics.statistics import mean

RecentTrend = Literal["increasing", "decreasing", "stable"]

CRITICAL_DAYS = 14
LOW_DAYS = 30
MONITOR_DAYS = 45
OVERSTOCK_DAYS = 90
CARRYING_COST_RATE = 0.25


@dataclass(frozen=True)
class StockAssessment:
    status: Literal["critical", "low", "adequate", "overstocked"]
    risk_level: Literal["high", "medium", "low"]
    days_of_stock: int | None
    stock_to_sales_ratio: float | None
    avg_daily_sales: float
    max_daily_sales: float
    recent_trend: RecentTrend
    should_reorder: bool
    suggested_quantity: int | None
    urgency: Literal["immediate", "soon", "monitor"] | None
    rationale: str
    is_overstocked: bool
    excess_units: float
    excess_value: float
    carrying_cost_estimate: float | None


def recent_trend(daily_quantities: Sequence[float]) -> RecentTrend:
    """Compare the second half of the daily sales against the first half."""
    if len(daily_quantities) < 2:
        return "stable"
    half = len(daily_quantities) // 2
    first = mean(daily_quantities[:half])
    second = mean(daily_quantities[half:])
    if second > first * 1.2:
        return "increasing"
    if second < first * 0.8:
        return "decreasing"
    return "stable"


def assess_stock(
    current_stock: float,
    daily_quantities: Sequence[float],
    window_days: int,
    unit_cost: float | None = None,
) -> StockAssessment:
    """Assess stock coverage against average daily sales over a window.

    Args:
        current_stock: Units on hand.
        daily_quantities: Units sold per day that had sales, oldest first.
        window_days: Length of the window the sales were taken from.
        unit_cost: Cost per unit, used to value excess stock.
    """
    total_sold = sum(daily_quantities)
    avg_daily = total_sold / window_days if window_days > 0 else 0.0
    trend = recent_trend(daily_quantities)

    days_of_stock = math.floor(current_stock / avg_daily) if avg_daily > 0 else None
    ratio = current_stock / (avg_daily * 30) if avg_daily > 0 else None

    if days_of_stock is None:
        status, risk = ("adequate", "low") if current_stock > 0 else ("critical", "high")
    elif days_of_stock < CRITICAL_DAYS:
        status, risk = "critical", "high"
    elif days_of_stock < LOW_DAYS:
        status, risk = "low", "medium"
    elif days_of_stock > OVERSTOCK_DAYS and trend == "decreasing":
        status, risk = "overstocked", "medium"
    else:
        status, risk = "adequate", "low"

    should_reorder = False
    suggested: int | None = None
    urgency: Literal["immediate", "soon", "monitor"] | None = None
    rationale = "No reorder needed at this time"
    if days_of_stock is not None:
        if days_of_stock < CRITICAL_DAYS:
            should_reorder, urgency = True, "immediate"
            suggested = math.ceil((LOW_DAYS - days_of_stock) * avg_daily)
            rationale = f"Current stock covers {days_of_stock} days. Critical level - immediate reorder recommended."
        elif days_of_stock < LOW_DAYS:
            should_reorder, urgency = True, "soon"
            suggested = math.ceil((MONITOR_DAYS - days_of_stock) * avg_daily)
            rationale = f"Current stock covers {days_of_stock} days. Low level - reorder within 2 weeks."
        elif days_of_stock < MONITOR_DAYS:
            urgency = "monitor"
            rationale = f"Current stock covers {days_of_stock} days. Monitor stock levels."

    is_overstocked = status == "overstocked"
    excess_units = max(0.0, current_stock - OVERSTOCK_DAYS * avg_daily) if is_overstocked else 0.0
    excess_value = excess_units * unit_cost if unit_cost is not None else 0.0

    return StockAssessment(
        status=status,
        risk_level=risk,
        days_of_stock=days_of_stock,
        stock_to_sales_ratio=ratio,
        avg_daily_sales=avg_daily,
        max_daily_sales=max(daily_quantities, default=0.0),
        recent_trend=trend,
        should_reorder=should_reorder,
        suggested_quantity=suggested,
        urgency=urgency,
        rationale=rationale,
        is_overstocked=is_overstocked,
        excess_units=excess_units,
        excess_value=excess_value,
        carrying_cost_estimate=excess_value * CARRYING_COST_RATE if unit_cost is not None else None,
    )
