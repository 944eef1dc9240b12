"""Shared test fixtures."""

import sqlite3
from collections.abc import Iterator

import pytest

from salesbinder_cache.core.database.store import DocumentStore
from salesbinder_cache.models.document import LineItem
from tests.unit.fakes import SALES_HISTORY, make_document


@pytest.fixture
def store() -> Iterator[DocumentStore]:
    """Return an empty in-memory store."""
    s = DocumentStore(sqlite3.connect(":memory:"))
    yield s
    s.close()


@pytest.fixture
def populated_store(store: DocumentStore) -> DocumentStore:
    """Return a store holding SALES_HISTORY."""
    for doc_id, kind, number, issue_date, customer, items in SALES_HISTORY:
        store.save_document(
            make_document(doc_id, kind, number, issue_date, customer),
            [LineItem(item_id=i, document_id=doc_id, quantity=q, unit_price=p) for i, q, p in items],
        )
    return store
