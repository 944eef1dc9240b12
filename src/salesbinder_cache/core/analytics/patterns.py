"""Order-size patterns, estimate-to-invoice cycle time and win rate."""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date

from salesbinder_cache.core.analytics.statistics import mean, median
from salesbinder_cache.models.document import DocumentKind, OrderPatternRow

# Unconverted estimates older than this are counted as lost.
OPEN_ESTIMATE_DAYS = 30


@dataclass(frozen=True)
class CycleTime:
    avg_days: float
    median_days: float
    matched: int


@dataclass(frozen=True)
class WinRate:
    estimates_created: int
    converted_to_invoice: int
    still_open: int
    lost: int
    win_rate: float


@dataclass(frozen=True)
class OrderSummary:
    total_orders: int
    avg_quantity: float
    median_quantity: float
    min_quantity: int
    max_quantity: int
    avg_days_between_orders: float


@dataclass(frozen=True)
class SizeDistribution:
    small: int
    medium: int
    large: int


def _days_between(start: str, end: str) -> int:
    return abs((date.fromisoformat(end) - date.fromisoformat(start)).days)


def _unique_documents(rows: Iterable[OrderPatternRow], kind: DocumentKind) -> list[OrderPatternRow]:
    """One row per document of ``kind``; an item can appear on several lines."""
    seen: dict[str, OrderPatternRow] = {}
    for row in rows:
        if row.kind == kind and row.document_id not in seen:
            seen[row.document_id] = row
    return list(seen.values())


def _match_invoices(rows: Sequence[OrderPatternRow]) -> list[tuple[OrderPatternRow, OrderPatternRow]]:
    """Pair each estimate with an invoice of the same number and customer."""
    invoices: dict[tuple[int, str], OrderPatternRow] = {}
    for inv in _unique_documents(rows, DocumentKind.INVOICE):
        invoices.setdefault((inv.sequence_number, inv.customer_id), inv)

    pairs = []
    for est in _unique_documents(rows, DocumentKind.ESTIMATE):
        match = invoices.get((est.sequence_number, est.customer_id))
        if match is not None:
            pairs.append((est, match))
    return pairs


def calculate_cycle_time(rows: Sequence[OrderPatternRow]) -> CycleTime:
    """Days from estimate to its matching invoice; zeros when nothing matches."""
    days = [_days_between(est.issue_date, inv.issue_date) for est, inv in _match_invoices(rows)]
    if not days:
        return CycleTime(avg_days=0.0, median_days=0.0, matched=0)
    return CycleTime(avg_days=mean(days), median_days=median(days), matched=len(days))


def calculate_win_rate(rows: Sequence[OrderPatternRow], today: date | None = None) -> WinRate:
    """Share of estimates that turned into invoices.

    Unmatched estimates up to ``OPEN_ESTIMATE_DAYS`` old are still open,
    older ones are lost.
    """
    today = today or date.today()
    estimates = _unique_documents(rows, DocumentKind.ESTIMATE)
    if not estimates:
        return WinRate(estimates_created=0, converted_to_invoice=0, still_open=0, lost=0, win_rate=0.0)

    converted = {est.document_id for est, _inv in _match_invoices(rows)}
    still_open = 0
    lost = 0
    for est in estimates:
        if est.document_id in converted:
            continue
        age = (today - date.fromisoformat(est.issue_date)).days
        if age > OPEN_ESTIMATE_DAYS:
            lost += 1
        else:
            still_open += 1

    return WinRate(
        estimates_created=len(estimates),
        converted_to_invoice=len(converted),
        still_open=still_open,
        lost=lost,
        win_rate=len(converted) / len(estimates),
    )


def summarize_orders(rows: Sequence[OrderPatternRow]) -> OrderSummary:
    """Order size and frequency over invoice lines."""
    invoices = [r for r in rows if r.kind == DocumentKind.INVOICE]
    quantities = [r.quantity for r in invoices]

    dates = sorted(date.fromisoformat(r.issue_date) for r in invoices)
    gaps = [(b - a).days for a, b in zip(dates, dates[1:])]

    return OrderSummary(
        total_orders=len(invoices),
        avg_quantity=mean(quantities),
        median_quantity=median(quantities),
        min_quantity=min(quantities, default=0),
        max_quantity=max(quantities, default=0),
        avg_days_between_orders=mean(gaps),
    )


def size_distribution(quantities: Sequence[float]) -> SizeDistribution:
    """Count orders below half, between, and above double the mean size."""
    avg = mean(quantities)
    small_limit = avg / 2
    large_limit = avg * 2
    return SizeDistribution(
        small=sum(1 for q in quantities if q < small_limit),
        medium=sum(1 for q in quantities if small_limit <= q <= large_limit),
        large=sum(1 for q in quantities if q > large_limit),
    )
