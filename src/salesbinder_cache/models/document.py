"""Domain models for the SalesBinder document cache."""

import json
from dataclasses import asdict, dataclass
from enum import IntEnum


class DocumentKind(IntEnum):
    """Kind of sales document.

    The integer values are SalesBinder's ``context_id`` wire values and are
    also what the ``documents.context_id`` column stores.
    """

    ESTIMATE = 4
    INVOICE = 5
    PURCHASE_ORDER = 11

    @property
    def label(self) -> str:
        return self.name.replace("_", " ").title()


@dataclass(frozen=True)
class Document:
    """A sales document header."""

    id: str
    kind: DocumentKind
    sequence_number: int
    issue_date: str
    customer_id: str
    modified_at: int


@dataclass(frozen=True)
class LineItem:
    """One item/quantity/price association on a document."""

    item_id: str
    document_id: str
    quantity: int
    unit_price: float
    id: int | None = None


@dataclass(frozen=True)
class CacheState:
    """Sync metadata stored in the ``cache_meta`` table."""

    last_sync_at: int
    last_full_sync_at: int
    document_count: int
    line_item_count: int
    owner_account: str
    schema_version: int

    def to_json(self) -> str:
        return json.dumps(asdict(self), sort_keys=True)

    @classmethod
    def from_json(cls, raw: str) -> "CacheState":
        data = json.loads(raw)
        return cls(
            last_sync_at=int(data["last_sync_at"]),
            last_full_sync_at=int(data["last_full_sync_at"]),
            document_count=int(data["document_count"]),
            line_item_count=int(data["line_item_count"]),
            owner_account=str(data["owner_account"]),
            schema_version=int(data["schema_version"]),
        )


# --- Analytical query rows ---


@dataclass(frozen=True)
class PeriodLineItem:
    """A line item joined with its document date."""

    issue_date: str
    quantity: int
    unit_price: float
    document_id: str


@dataclass(frozen=True)
class PriceBucket:
    """Quantity and revenue sold at a single price point."""

    price: float
    total_quantity: int
    total_revenue: float


@dataclass(frozen=True)
class CustomerSales:
    """Sales of one item to one customer."""

    customer_id: str
    quantity: int
    revenue: float
    order_count: int


@dataclass(frozen=True)
class MonthlySales:
    """Sales of one item in one calendar month (``YYYY-MM``)."""

    month: str
    quantity: int
    revenue: float


@dataclass(frozen=True)
class OrderPatternRow:
    """A line item with the document fields needed for cycle-time matching."""

    document_id: str
    quantity: int
    unit_price: float
    issue_date: str
    customer_id: str
    kind: DocumentKind
    sequence_number: int
