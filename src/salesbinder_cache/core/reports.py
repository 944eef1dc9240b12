"""Analytics reports built from cached documents.

Each report runs the store queries for its time window, feeds the rows to
the analytics functions and returns a JSON-ready dict. Rounding happens here
and nowhere below.
"""

import calendar
from collections import defaultdict
from datetime import UTC, date, datetime
from typing import Any

from salesbinder_cache.core.analytics import concentration, forecast, inventory, patterns, pricing
from salesbinder_cache.core.analytics.statistics import growth_rate, mean, volatility
from salesbinder_cache.core.analytics.trends import PeriodSummary, detect_trend
from salesbinder_cache.core.database.store import DocumentStore
from salesbinder_cache.models.document import DocumentKind

DEFAULT_SALES_PERIODS: tuple[int, ...] = (3, 6, 12)
FORECAST_HISTORY_MONTHS = 6
FORECAST_HORIZON = 3
INVENTORY_WINDOW_DAYS = 90


def months_before(day: date, months: int) -> date:
    """Shift a date back by whole calendar months, clamping the day."""
    index = day.year * 12 + day.month - 1 - months
    year, month = divmod(index, 12)
    month += 1
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


def _iso(day: date) -> str:
    return day.isoformat()


def _round(value: float, digits: int) -> float:
    return round(value, digits)


def item_sales_report(
    store: DocumentStore,
    item_id: str,
    *,
    today: date,
    months: tuple[int, ...] = DEFAULT_SALES_PERIODS,
    stale: bool | None = None,
) -> dict[str, Any]:
    """Units sold and revenue over trailing windows, plus latest estimate/PO dates."""
    end = _iso(today)
    sales_periods: dict[str, dict[str, float]] = {}
    for span in months:
        rows = store.line_items_in_period(
            item_id, _iso(months_before(today, span)), end, DocumentKind.INVOICE
        )
        sold = sum(abs(r.quantity) for r in rows)
        revenue = abs(sum(r.quantity * r.unit_price for r in rows))
        sales_periods[f"{span}_months"] = {"sold": sold, "revenue": _round(revenue, 2)}

    state = store.get_cache_state()
    last_sync = (
        datetime.fromtimestamp(state.last_sync_at, tz=UTC).isoformat() if state else "unknown"
    )
    return {
        "item_id": item_id,
        "latest_estimate_date": store.latest_document_date(item_id, DocumentKind.ESTIMATE),
        "latest_po_date": store.latest_document_date(item_id, DocumentKind.PURCHASE_ORDER),
        "sales_periods": sales_periods,
        "cache_freshness": {
            "last_sync": last_sync,
            "stale": stale if stale is not None else state is None,
        },
    }


def trends_report(store: DocumentStore, item_id: str, *, today: date) -> dict[str, Any]:
    """Four quarterly periods over the last 12 months, oldest first."""
    labels = ("months_1_3", "months_4_6", "months_7_9", "months_10_12")
    summaries: list[PeriodSummary] = []
    for i in range(4):
        # i=0 is the oldest quarter.
        period_end = months_before(today, (3 - i) * 3)
        period_start = months_before(period_end, 3)
        rows = store.line_items_in_period(
            item_id, _iso(period_start), _iso(period_end), DocumentKind.INVOICE
        )
        quantity = sum(abs(r.quantity) for r in rows)
        revenue = abs(sum(r.quantity * r.unit_price for r in rows))
        summaries.append(
            PeriodSummary(
                period=labels[i], quantity_sold=quantity, revenue=revenue, avg_monthly=quantity / 3
            )
        )

    trend = detect_trend(summaries)
    return {
        "item_id": item_id,
        "analysis_period": "12 months",
        "periods": [
            {
                "period": s.period,
                "quantity_sold": s.quantity_sold,
                "revenue": _round(s.revenue, 2),
                "avg_monthly": _round(s.avg_monthly, 2),
            }
            for s in summaries
        ],
        "trend": {
            "direction": trend.direction,
            "growth_rate": _round(trend.growth_rate, 3),
            "momentum": trend.momentum,
            "volatility_score": _round(trend.volatility_score, 3),
        },
    }


def pricing_report(store: DocumentStore, item_id: str, *, today: date) -> dict[str, Any]:
    """Price statistics, distribution and discounting over 12 months."""
    buckets = store.sales_by_price_bucket(
        item_id, _iso(months_before(today, 12)), _iso(today), DocumentKind.INVOICE
    )
    total_quantity = sum(b.total_quantity for b in buckets)
    stats = pricing.calculate_price_stats(buckets)
    discounts = pricing.detect_discounts(buckets)

    return {
        "item_id": item_id,
        "period": "12 months",
        "price_stats": {
            "min": _round(stats.min, 2),
            "max": _round(stats.max, 2),
            "avg": _round(stats.avg, 2),
            "median": _round(stats.median, 2),
            "std_dev": _round(stats.std_dev, 2),
            "variance_pct": _round(stats.variance_pct, 1),
        },
        "price_distribution": [
            {
                "price": _round(b.price, 2),
                "quantity": b.total_quantity,
                "revenue": _round(b.total_revenue, 2),
                "frequency_pct": (
                    _round(b.total_quantity / total_quantity * 100, 1) if total_quantity else 0.0
                ),
            }
            for b in buckets
        ],
        "discounts": {
            "has_discounts": discounts.has_discounts,
            "avg_discount_pct": (
                _round(discounts.avg_discount_pct, 1)
                if discounts.avg_discount_pct is not None
                else None
            ),
            "discount_frequency": _round(discounts.discount_frequency, 3),
        },
    }


def customers_report(
    store: DocumentStore, item_id: str, *, today: date, top: int = 10
) -> dict[str, Any]:
    """Top customers and concentration over 12 months."""
    sales = store.sales_by_customer(
        item_id, _iso(months_before(today, 12)), _iso(today), DocumentKind.INVOICE
    )
    shares = concentration.revenue_shares([c.revenue for c in sales])
    segments = concentration.customer_segments(shares)

    return {
        "item_id": item_id,
        "period": "12 months",
        "total_customers": len(sales),
        "total_quantity": sum(c.quantity for c in sales),
        "total_revenue": _round(sum(abs(c.revenue) for c in sales), 2),
        "top_customers": [
            {
                "customer_id": c.customer_id,
                "quantity": c.quantity,
                "revenue": _round(abs(c.revenue), 2),
                "share_pct": _round(share, 1),
                "order_count": c.order_count,
                "avg_order_size": _round(c.quantity / c.order_count, 2) if c.order_count else 0.0,
            }
            for c, share in list(zip(sales, shares))[:top]
        ],
        "concentration": {
            "top_3_share_pct": _round(concentration.top_share(shares, 3), 1),
            "top_5_share_pct": _round(concentration.top_share(shares, 5), 1),
            "herfindahl_index": _round(concentration.herfindahl_index(shares), 3),
        },
        "customer_segments": {
            "large": segments.large,
            "medium": segments.medium,
            "small": segments.small,
        },
    }


def forecast_report(
    store: DocumentStore, item_id: str, *, today: date, unit_price: float = 0.0
) -> dict[str, Any]:
    """Three-month demand forecast from six months of monthly sales."""
    monthly = store.sales_by_calendar_month(
        item_id,
        _iso(months_before(today, FORECAST_HISTORY_MONTHS)),
        _iso(today),
        DocumentKind.INVOICE,
    )
    quantities = [m.quantity for m in monthly]
    avg_monthly = mean(quantities)
    spread = volatility(quantities)
    growth = growth_rate(quantities[0], quantities[-1]) if len(quantities) >= 2 else 0.0

    base = forecast.forecast_moving_average(quantities, FORECAST_HORIZON)
    # Growth is measured across the whole history, so spread it per month.
    adjusted = forecast.apply_trend_adjustment(base, growth / FORECAST_HISTORY_MONTHS)
    confidence = forecast.determine_confidence(spread, len(quantities))

    total_quantity = sum(quantities)
    revenue_per_unit = (
        sum(m.revenue for m in monthly) / total_quantity
        if monthly and avg_monthly > 0 and total_quantity
        else unit_price
    )

    months = []
    for i, value in enumerate(adjusted):
        # months_before with a negative offset moves forward.
        month = months_before(today.replace(day=1), -(i + 1))
        predicted = max(0, round(value))
        months.append(
            {
                "month": month.strftime("%Y-%m"),
                "predicted_quantity": predicted,
                "predicted_revenue": _round(predicted * revenue_per_unit, 2),
                "confidence": confidence,
            }
        )

    return {
        "item_id": item_id,
        "method": "moving_average",
        "historical_period": f"{FORECAST_HISTORY_MONTHS} months",
        "forecast": months,
        "summary": {
            "avg_monthly_sales": _round(avg_monthly, 2),
            "trend_adjustment": _round(growth, 3),
            "volatility": _round(spread, 3),
        },
    }


def patterns_report(store: DocumentStore, item_id: str, *, today: date) -> dict[str, Any]:
    """Order sizes, frequency, cycle time and win rate over 12 months."""
    rows = store.order_pattern_rows(item_id, _iso(months_before(today, 12)), _iso(today))
    summary = patterns.summarize_orders(rows)
    sizes = patterns.size_distribution(
        [r.quantity for r in rows if r.kind == DocumentKind.INVOICE]
    )

    cycle_time: dict[str, Any] | None = None
    win_loss: dict[str, Any] | None = None
    if any(r.kind == DocumentKind.ESTIMATE for r in rows):
        cycle = patterns.calculate_cycle_time(rows)
        wins = patterns.calculate_win_rate(rows, today)
        cycle_time = {
            "avg_estimate_to_invoice_days": _round(cycle.avg_days, 1),
            "median_days": _round(cycle.median_days, 1),
            "conversion_rate": _round(wins.win_rate, 3),
        }
        win_loss = {
            "estimates_created": wins.estimates_created,
            "converted_to_invoice": wins.converted_to_invoice,
            "still_open_estimate": wins.still_open,
            "lost_estimate": wins.lost,
            "win_rate": _round(wins.win_rate, 3),
        }

    return {
        "item_id": item_id,
        "period": "12 months",
        "order_patterns": {
            "total_orders": summary.total_orders,
            "avg_quantity_per_order": _round(summary.avg_quantity, 2),
            "median_quantity_per_order": _round(summary.median_quantity, 2),
            "min_order_size": summary.min_quantity,
            "max_order_size": summary.max_quantity,
            "order_frequency_days": round(summary.avg_days_between_orders),
        },
        "size_distribution": {"small": sizes.small, "medium": sizes.medium, "large": sizes.large},
        "cycle_time": cycle_time,
        "win_loss": win_loss,
    }


def inventory_report(
    store: DocumentStore,
    item_id: str,
    *,
    today: date,
    current_stock: float,
    unit_cost: float | None = None,
) -> dict[str, Any]:
    """Stock health and reorder advice from the last 90 days of invoices."""
    start = date.fromordinal(today.toordinal() - INVENTORY_WINDOW_DAYS)
    rows = store.line_items_in_period(item_id, _iso(start), _iso(today), DocumentKind.INVOICE)

    # line_items_in_period is date-ordered, so the dict keeps days in order.
    per_day: dict[str, float] = defaultdict(float)
    for r in rows:
        per_day[r.issue_date] += abs(r.quantity)

    stock = inventory.assess_stock(
        current_stock, list(per_day.values()), INVENTORY_WINDOW_DAYS, unit_cost
    )
    return {
        "item_id": item_id,
        "current_stock": current_stock,
        "stock_health": {
            "status": stock.status,
            "days_of_stock": stock.days_of_stock,
            "stock_to_sales_ratio": (
                _round(stock.stock_to_sales_ratio, 2)
                if stock.stock_to_sales_ratio is not None
                else None
            ),
            "risk_level": stock.risk_level,
        },
        "consumption": {
            "avg_daily_sales": _round(stock.avg_daily_sales, 2),
            "max_daily_sales": _round(stock.max_daily_sales, 2),
            "recent_trend": stock.recent_trend,
        },
        "reorder_recommendation": {
            "should_reorder": stock.should_reorder,
            "suggested_qty": stock.suggested_quantity,
            "urgency": stock.urgency,
            "rationale": stock.rationale,
        },
        "overstock_assessment": {
            "is_overstocked": stock.is_overstocked,
            "excess_units": round(stock.excess_units),
            "excess_value": _round(stock.excess_value, 2),
            "carrying_cost_estimate": (
                _round(stock.carrying_cost_estimate, 2)
                if stock.carrying_cost_estimate is not None
                else None
            ),
        },
    }
