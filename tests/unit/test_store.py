"""Tests for the SQLite document store."""

import sqlite3
import stat
from pathlib import Path

import pytest

from salesbinder_cache.core.analytics.pricing import detect_discounts
from salesbinder_cache.core.database.store import DocumentStore
from salesbinder_cache.exceptions import StoreError
from salesbinder_cache.models.document import CacheState, DocumentKind, LineItem
from tests.unit.fakes import ITEM, make_document


def _item(doc_id: str, item_id: str = ITEM, qty: int = 1, price: float = 10.0) -> LineItem:
    return LineItem(item_id=item_id, document_id=doc_id, quantity=qty, unit_price=price)


def _state(**overrides: object) -> CacheState:
    values: dict = {
        "last_sync_at": 1000,
        "last_full_sync_at": 900,
        "document_count": 3,
        "line_item_count": 7,
        "owner_account": "acme",
        "schema_version": 1,
    }
    values.update(overrides)
    return CacheState(**values)


# --- Documents ---


def test_upsert_and_get_document(store: DocumentStore) -> None:
    doc = make_document("d1", DocumentKind.ESTIMATE, 42, "2025-01-02", "c1", 123)
    store.upsert_document(doc)
    assert store.get_document("d1") == doc


def test_get_missing_document_is_none(store: DocumentStore) -> None:
    assert store.get_document("missing") is None


def test_upsert_replaces_every_field(store: DocumentStore) -> None:
    store.upsert_document(make_document("d1", number=1, customer_id="old", modified_at=1))
    updated = make_document(
        "d1", DocumentKind.PURCHASE_ORDER, 2, "2025-02-02", "new", modified_at=2
    )
    store.upsert_document(updated)
    assert store.get_document("d1") == updated
    assert store.document_count() == 1


def test_upsert_keeps_line_items(store: DocumentStore) -> None:
    store.save_document(make_document("d1"), [_item("d1")])
    store.upsert_document(make_document("d1", modified_at=2))
    assert len(store.line_items_for_document("d1")) == 1


def test_upsert_documents_batch(store: DocumentStore) -> None:
    store.upsert_documents([make_document("a"), make_document("b"), make_document("c")])
    assert store.document_count() == 3


def test_upsert_documents_batch_is_all_or_nothing(store: DocumentStore) -> None:
    broken = make_document("b", customer_id=None)  # type: ignore[arg-type]

    with pytest.raises(sqlite3.IntegrityError):
        store.upsert_documents([make_document("a"), broken, make_document("c")])

    assert store.document_count() == 0
    assert store.get_document("a") is None


def test_delete_document_cascades_to_line_items(store: DocumentStore) -> None:
    store.save_document(make_document("d1"), [_item("d1"), _item("d1", "other")])
    store.save_document(make_document("d2"), [_item("d2")])

    store.delete_document("d1")

    assert store.get_document("d1") is None
    assert store.line_items_for_document("d1") == []
    assert store.line_item_count() == 1


def test_delete_documents_batch(store: DocumentStore) -> None:
    store.upsert_documents([make_document("a"), make_document("b"), make_document("c")])
    store.delete_documents(["a", "c"])
    assert [d.id for d in store.documents_by_kind(DocumentKind.INVOICE)] == ["b"]


def test_documents_by_kind_filters(store: DocumentStore) -> None:
    store.upsert_document(make_document("inv", DocumentKind.INVOICE))
    store.upsert_document(make_document("est", DocumentKind.ESTIMATE))
    assert [d.id for d in store.documents_by_kind(DocumentKind.ESTIMATE)] == ["est"]


def test_documents_modified_since_is_strict_and_ascending(store: DocumentStore) -> None:
    store.upsert_document(make_document("late", modified_at=300))
    store.upsert_document(make_document("early", modified_at=100))
    store.upsert_document(make_document("mid", modified_at=200))

    assert [d.id for d in store.documents_modified_since(100)] == ["mid", "late"]


# --- Line items ---


def test_replace_line_items_leaves_only_new_set(store: DocumentStore) -> None:
    store.save_document(make_document("d1"), [_item("d1", "a"), _item("d1", "b"), _item("d1", "c")])

    store.replace_line_items("d1", [_item("d1", "x", qty=5)])

    items = store.line_items_for_document("d1")
    assert [(i.item_id, i.quantity) for i in items] == [("x", 5)]


def test_replace_line_items_with_empty_set_clears(store: DocumentStore) -> None:
    store.save_document(make_document("d1"), [_item("d1")])
    store.replace_line_items("d1", [])
    assert store.line_items_for_document("d1") == []


def test_replace_line_items_does_not_touch_other_documents(store: DocumentStore) -> None:
    store.save_document(make_document("d1"), [_item("d1")])
    store.save_document(make_document("d2"), [_item("d2"), _item("d2")])
    store.replace_line_items("d1", [])
    assert len(store.line_items_for_document("d2")) == 2


def test_replace_line_items_rejects_foreign_items_and_rolls_back(store: DocumentStore) -> None:
    store.save_document(make_document("d1"), [_item("d1", "keep")])
    store.upsert_document(make_document("d2"))

    with pytest.raises(ValueError, match="cannot be stored"):
        store.replace_line_items("d1", [_item("d2")])

    assert [i.item_id for i in store.line_items_for_document("d1")] == ["keep"]


def test_line_items_require_existing_document(store: DocumentStore) -> None:
    with pytest.raises(sqlite3.IntegrityError):
        store.insert_line_items([_item("ghost")])


def test_line_items_keep_exact_quantity_and_price(store: DocumentStore) -> None:
    store.save_document(make_document("d1"), [_item("d1", qty=-3, price=19.99)])
    (item,) = store.line_items_for_document("d1")
    assert item.quantity == -3
    assert item.unit_price == 19.99
    assert item.id is not None


# --- Analytical reads ---


def test_price_buckets_and_discounts_for_three_invoices(store: DocumentStore) -> None:
    for doc_id, customer, price in (("i1", "c1", 25.0), ("i2", "c2", 25.0), ("i3", "c3", 20.0)):
        store.save_document(
            make_document(doc_id, DocumentKind.INVOICE, issue_date="2025-03-01", customer_id=customer),
            [_item(doc_id, qty=1, price=price)],
        )

    buckets = store.sales_by_price_bucket(ITEM, "2025-01-01", "2025-12-31", DocumentKind.INVOICE)

    assert [(b.price, b.total_quantity, b.total_revenue) for b in buckets] == [
        (20.0, 1, 20.0),
        (25.0, 2, 50.0),
    ]
    discounts = detect_discounts(buckets)
    assert discounts.has_discounts is True
    assert discounts.mode_price == 25.0
    assert discounts.avg_discount_pct is not None
    assert discounts.avg_discount_pct > 0


def test_line_items_in_period_is_inclusive_and_ordered(populated_store: DocumentStore) -> None:
    rows = populated_store.line_items_in_period(
        ITEM, "2025-03-05", "2025-05-10", DocumentKind.INVOICE
    )
    assert [r.document_id for r in rows] == ["inv3", "inv2", "inv1"]


def test_line_items_in_period_filters_kind(populated_store: DocumentStore) -> None:
    rows = populated_store.line_items_in_period(
        ITEM, "2025-01-01", "2025-12-31", DocumentKind.PURCHASE_ORDER
    )
    assert [(r.document_id, r.quantity) for r in rows] == [("po1", 50)]


def test_sales_by_customer_orders_by_revenue(populated_store: DocumentStore) -> None:
    sales = populated_store.sales_by_customer(
        ITEM, "2025-01-01", "2025-12-31", DocumentKind.INVOICE
    )
    assert [(c.customer_id, c.revenue, c.order_count) for c in sales] == [
        ("cust-a", 50.0, 1),
        ("cust-b", 25.0, 1),
        ("cust-c", 20.0, 1),
    ]


def test_sales_by_calendar_month(populated_store: DocumentStore) -> None:
    months = populated_store.sales_by_calendar_month(
        ITEM, "2025-01-01", "2025-12-31", DocumentKind.INVOICE
    )
    assert [(m.month, m.quantity) for m in months] == [
        ("2025-03", 1),
        ("2025-04", 1),
        ("2025-05", 2),
    ]


def test_order_pattern_rows_cover_estimates_and_invoices(populated_store: DocumentStore) -> None:
    rows = populated_store.order_pattern_rows(ITEM, "2025-01-01", "2025-12-31")
    assert {r.kind for r in rows} == {DocumentKind.ESTIMATE, DocumentKind.INVOICE}
    assert rows[0].document_id == "est2"
    dates = [r.issue_date for r in rows]
    assert dates == sorted(dates, reverse=True)


def test_latest_document_date(populated_store: DocumentStore) -> None:
    assert populated_store.latest_document_date(ITEM, DocumentKind.ESTIMATE) == "2025-06-10"
    assert populated_store.latest_document_date(ITEM, DocumentKind.PURCHASE_ORDER) == "2025-02-01"
    assert populated_store.latest_document_date("nothing", DocumentKind.INVOICE) is None


# --- Metadata ---


def test_cache_state_absent_before_first_sync(store: DocumentStore) -> None:
    assert store.get_cache_state() is None


def test_cache_state_roundtrip(store: DocumentStore) -> None:
    state = _state()
    store.set_cache_state(state)
    assert store.get_cache_state() == state


def test_corrupt_cache_state_raises_store_error(store: DocumentStore) -> None:
    store._conn.execute("INSERT INTO cache_meta (key, value) VALUES ('state', '{not json')")
    store._conn.commit()
    with pytest.raises(StoreError, match="Corrupt"):
        store.get_cache_state()


# --- Files ---


def test_open_creates_owner_only_file(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "cache.db"
    with DocumentStore.open(path) as s:
        s.upsert_document(make_document("d1"))
    assert stat.S_IMODE(path.stat().st_mode) == 0o600

    with DocumentStore.open(path) as s:
        assert s.get_document("d1") is not None


def test_open_uses_wal_journal(tmp_path: Path) -> None:
    with DocumentStore.open(tmp_path / "cache.db") as s:
        assert s._conn.execute("PRAGMA journal_mode").fetchone()[0] == "wal"


def test_for_account_uses_sanitized_name(tmp_path: Path) -> None:
    with DocumentStore.for_account("My Shop/EU", tmp_path) as s:
        assert s.path == tmp_path / "salesbinder-My_Shop_EU.db"
    assert stat.S_IMODE(tmp_path.stat().st_mode) == 0o700


def test_open_rejects_non_database_file(tmp_path: Path) -> None:
    path = tmp_path / "cache.db"
    path.write_bytes(b"this is not sqlite" * 100)
    with pytest.raises(StoreError):
        DocumentStore.open(path)


def test_close_is_idempotent(tmp_path: Path) -> None:
    s = DocumentStore.open(tmp_path / "cache.db")
    s.close()
    s.close()
    assert not s.is_open
