"""Customer concentration metrics."""

from collections.abc import Sequence
from dataclasses import dataclass


@dataclass(frozen=True)
class CustomerSegments:
    large: int
    medium: int
    small: int


def herfindahl_index(shares: Sequence[float]) -> float:
    """Herfindahl-Hirschman index of percentage shares (0-100 each).

    Close to 0 for a fragmented customer base, 1 for a single customer.
    """
    return sum((s / 100) ** 2 for s in shares)


def top_share(shares: Sequence[float], top_n: int) -> float:
    """Combined share of the ``top_n`` largest shares."""
    return sum(sorted(shares, reverse=True)[: max(top_n, 0)])


def revenue_shares(revenues: Sequence[float]) -> list[float]:
    """Each revenue as a percentage of the absolute total."""
    total = sum(abs(r) for r in revenues)
    if total == 0:
        return [0.0 for _ in revenues]
    return [abs(r) / total * 100 for r in revenues]


def customer_segments(shares: Sequence[float]) -> CustomerSegments:
    """Bucket customers by share: large above 10%, small below 3%."""
    return CustomerSegments(
        large=sum(1 for s in shares if s > 10),
        medium=sum(1 for s in shares if 3 <= s <= 10),
        small=sum(1 for s in shares if s < 3),
    )
