"""SQLite-backed local store for SalesBinder documents and line items."""

import json
import os
import sqlite3
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path
from types import TracebackType

from loguru import logger

from salesbinder_cache.config import resolve_cache_path
from salesbinder_cache.core.database.schema import get_metadata, migrate_schema, set_metadata
from salesbinder_cache.exceptions import StoreError
from salesbinder_cache.models.document import (
    CacheState,
    CustomerSales,
    Document,
    DocumentKind,
    LineItem,
    MonthlySales,
    OrderPatternRow,
    PeriodLineItem,
    PriceBucket,
)

_STATE_KEY = "state"

_UPSERT_DOCUMENT_SQL = """\
INSERT INTO documents (doc_id, context_id, doc_number, issue_date, customer_id, modified)
VALUES (?, ?, ?, ?, ?, ?)
ON CONFLICT(doc_id) DO UPDATE SET
    context_id = excluded.context_id,
    doc_number = excluded.doc_number,
    issue_date = excluded.issue_date,
    customer_id = excluded.customer_id,
    modified = excluded.modified
"""

_INSERT_LINE_ITEM_SQL = """\
INSERT INTO item_documents (item_id, doc_id, quantity, price) VALUES (?, ?, ?, ?)
"""

# Shared FROM/WHERE for the per-item analytical reads.
_ITEM_PERIOD_SQL = """\
FROM item_documents i
JOIN documents d ON d.doc_id = i.doc_id
WHERE i.item_id = ?
  AND d.context_id = ?
  AND d.issue_date BETWEEN ? AND ?
"""


def _document_params(doc: Document) -> tuple[str, int, int, str, str, int]:
    return (
        doc.id,
        int(doc.kind),
        doc.sequence_number,
        doc.issue_date,
        doc.customer_id,
        doc.modified_at,
    )


def _row_to_document(row: tuple) -> Document:
    return Document(
        id=row[0],
        kind=DocumentKind(row[1]),
        sequence_number=row[2],
        issue_date=row[3],
        customer_id=row[4],
        modified_at=row[5],
    )


class DocumentStore:
    """Local mirror of remote documents plus sync metadata.

    Owns a single SQLite connection. Writes are local-disk only and every
    multi-statement write runs in one transaction. Quantities and prices are
    returned exactly as stored.
    """

    def __init__(self, conn: sqlite3.Connection, *, path: Path | None = None) -> None:
        self._conn = conn
        self.path = path
        try:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA foreign_keys = ON")
            migrate_schema(conn)
        except sqlite3.DatabaseError as e:
            conn.close()
            msg = f"Cache database {path or ':memory:'} is unreadable: {e}"
            raise StoreError(msg) from e
        except Exception:
            conn.close()
            raise

    @classmethod
    def open(cls, path: Path) -> "DocumentStore":
        """Open (creating if needed) a cache database readable only by its owner."""
        path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        try:
            conn = sqlite3.connect(str(path))
        except sqlite3.Error as e:
            msg = f"Cannot open cache database {path}: {e}"
            raise StoreError(msg) from e
        store = cls(conn, path=path)
        _restrict_permissions(path, 0o600)
        logger.debug("Opened cache database {}", path)
        return store

    @classmethod
    def for_account(cls, account: str, cache_dir: Path | None = None) -> "DocumentStore":
        """Open the cache database belonging to an account."""
        path = resolve_cache_path(account, cache_dir)
        path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        _restrict_permissions(path.parent, 0o700)
        return cls.open(path)

    def __enter__(self) -> "DocumentStore":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        if self.is_open:
            self._conn.close()
            self._conn = None  # type: ignore[assignment]

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        try:
            yield self._conn
            self._conn.commit()
        except Exception:
            self._conn.rollback()
            raise

    # --- Documents ---

    def upsert_document(self, doc: Document) -> None:
        """Insert a document or replace every column of the stored one."""
        with self._transaction() as conn:
            conn.execute(_UPSERT_DOCUMENT_SQL, _document_params(doc))

    def upsert_documents(self, docs: Iterable[Document]) -> None:
        """Upsert many documents, all or nothing."""
        with self._transaction() as conn:
            conn.executemany(_UPSERT_DOCUMENT_SQL, [_document_params(d) for d in docs])

    def delete_document(self, document_id: str) -> None:
        """Delete a document; its line items go with it."""
        with self._transaction() as conn:
            conn.execute("DELETE FROM documents WHERE doc_id = ?", (document_id,))

    def delete_documents(self, document_ids: Iterable[str]) -> None:
        with self._transaction() as conn:
            conn.executemany(
                "DELETE FROM documents WHERE doc_id = ?",
                [(doc_id,) for doc_id in document_ids],
            )

    def get_document(self, document_id: str) -> Document | None:
        row = self._conn.execute(
            "SELECT doc_id, context_id, doc_number, issue_date, customer_id, modified "
            "FROM documents WHERE doc_id = ?",
            (document_id,),
        ).fetchone()
        return _row_to_document(row) if row else None

    def documents_by_kind(self, kind: DocumentKind) -> list[Document]:
        rows = self._conn.execute(
            "SELECT doc_id, context_id, doc_number, issue_date, customer_id, modified "
            "FROM documents WHERE context_id = ? ORDER BY issue_date, doc_id",
            (int(kind),),
        ).fetchall()
        return [_row_to_document(r) for r in rows]

    def documents_modified_since(self, timestamp: int) -> list[Document]:
        """Return documents modified strictly after ``timestamp``, oldest first."""
        rows = self._conn.execute(
            "SELECT doc_id, context_id, doc_number, issue_date, customer_id, modified "
            "FROM documents WHERE modified > ? ORDER BY modified ASC",
            (timestamp,),
        ).fetchall()
        return [_row_to_document(r) for r in rows]

    # --- Line items ---

    def replace_line_items(self, document_id: str, items: Iterable[LineItem]) -> None:
        """Swap the full line-item set of a document in one transaction."""
        with self._transaction() as conn:
            self._replace_line_items(conn, document_id, items)

    def save_document(self, doc: Document, items: Iterable[LineItem]) -> None:
        """Store a document together with its complete line-item set.

        Both writes share one transaction, so readers see either the old
        document and items or the new ones.
        """
        with self._transaction() as conn:
            conn.execute(_UPSERT_DOCUMENT_SQL, _document_params(doc))
            self._replace_line_items(conn, doc.id, items)

    @staticmethod
    def _replace_line_items(
        conn: sqlite3.Connection, document_id: str, items: Iterable[LineItem]
    ) -> None:
        conn.execute("DELETE FROM item_documents WHERE doc_id = ?", (document_id,))
        rows = []
        for item in items:
            if item.document_id != document_id:
                msg = f"Line item for {item.document_id!r} cannot be stored under {document_id!r}"
                raise ValueError(msg)
            rows.append((item.item_id, document_id, item.quantity, item.unit_price))
        conn.executemany(_INSERT_LINE_ITEM_SQL, rows)

    def insert_line_items(self, items: Iterable[LineItem]) -> None:
        """Append line items without touching existing ones."""
        with self._transaction() as conn:
            conn.executemany(
                _INSERT_LINE_ITEM_SQL,
                [(i.item_id, i.document_id, i.quantity, i.unit_price) for i in items],
            )

    def line_items_for_document(self, document_id: str) -> list[LineItem]:
        rows = self._conn.execute(
            "SELECT id, item_id, doc_id, quantity, price FROM item_documents "
            "WHERE doc_id = ? ORDER BY id",
            (document_id,),
        ).fetchall()
        return [
            LineItem(id=r[0], item_id=r[1], document_id=r[2], quantity=r[3], unit_price=r[4])
            for r in rows
        ]

    # --- Analytical reads ---

    def latest_document_date(self, item_id: str, kind: DocumentKind) -> str | None:
        """Most recent issue date of a ``kind`` document carrying ``item_id``."""
        row = self._conn.execute(
            "SELECT MAX(d.issue_date) FROM item_documents i "
            "JOIN documents d ON d.doc_id = i.doc_id "
            "WHERE i.item_id = ? AND d.context_id = ?",
            (item_id, int(kind)),
        ).fetchone()
        return row[0] if row and row[0] else None

    def line_items_in_period(
        self, item_id: str, start_date: str, end_date: str, kind: DocumentKind
    ) -> list[PeriodLineItem]:
        """Line items for an item within an inclusive date range, oldest first."""
        rows = self._conn.execute(
            "SELECT d.issue_date, i.quantity, i.price, i.doc_id "
            + _ITEM_PERIOD_SQL
            + "ORDER BY d.issue_date ASC, i.id ASC",
            (item_id, int(kind), start_date, end_date),
        ).fetchall()
        return [
            PeriodLineItem(issue_date=r[0], quantity=r[1], unit_price=r[2], document_id=r[3])
            for r in rows
        ]

    def sales_by_price_bucket(
        self, item_id: str, start_date: str, end_date: str, kind: DocumentKind
    ) -> list[PriceBucket]:
        """Quantity and revenue per distinct price, cheapest first."""
        rows = self._conn.execute(
            "SELECT i.price, SUM(i.quantity), SUM(i.quantity * i.price) "
            + _ITEM_PERIOD_SQL
            + "GROUP BY i.price ORDER BY i.price ASC",
            (item_id, int(kind), start_date, end_date),
        ).fetchall()
        return [PriceBucket(price=r[0], total_quantity=r[1], total_revenue=r[2]) for r in rows]

    def sales_by_customer(
        self, item_id: str, start_date: str, end_date: str, kind: DocumentKind
    ) -> list[CustomerSales]:
        """Per-customer totals, highest revenue first."""
        rows = self._conn.execute(
            "SELECT d.customer_id, SUM(i.quantity), SUM(i.quantity * i.price) AS revenue, "
            "COUNT(DISTINCT d.doc_id) "
            + _ITEM_PERIOD_SQL
            + "GROUP BY d.customer_id ORDER BY revenue DESC, d.customer_id ASC",
            (item_id, int(kind), start_date, end_date),
        ).fetchall()
        return [
            CustomerSales(customer_id=r[0], quantity=r[1], revenue=r[2], order_count=r[3])
            for r in rows
        ]

    def sales_by_calendar_month(
        self, item_id: str, start_date: str, end_date: str, kind: DocumentKind
    ) -> list[MonthlySales]:
        """Per-month totals keyed ``YYYY-MM``, oldest first."""
        rows = self._conn.execute(
            "SELECT substr(d.issue_date, 1, 7) AS month, SUM(i.quantity), "
            "SUM(i.quantity * i.price) "
            + _ITEM_PERIOD_SQL
            + "GROUP BY month ORDER BY month ASC",
            (item_id, int(kind), start_date, end_date),
        ).fetchall()
        return [MonthlySales(month=r[0], quantity=r[1], revenue=r[2]) for r in rows]

    def order_pattern_rows(
        self, item_id: str, start_date: str, end_date: str
    ) -> list[OrderPatternRow]:
        """Estimate and invoice line items for an item, newest first."""
        rows = self._conn.execute(
            """SELECT d.doc_id, i.quantity, i.price, d.issue_date, d.customer_id,
                      d.context_id, d.doc_number
               FROM item_documents i
               JOIN documents d ON d.doc_id = i.doc_id
               WHERE i.item_id = ?
                 AND d.context_id IN (?, ?)
                 AND d.issue_date BETWEEN ? AND ?
               ORDER BY d.issue_date DESC, i.id ASC""",
            (
                item_id,
                int(DocumentKind.ESTIMATE),
                int(DocumentKind.INVOICE),
                start_date,
                end_date,
            ),
        ).fetchall()
        return [
            OrderPatternRow(
                document_id=r[0],
                quantity=r[1],
                unit_price=r[2],
                issue_date=r[3],
                customer_id=r[4],
                kind=DocumentKind(r[5]),
                sequence_number=r[6],
            )
            for r in rows
        ]

    # --- Counts and metadata ---

    def document_count(self) -> int:
        return int(self._conn.execute("SELECT COUNT(*) FROM documents").fetchone()[0])

    def line_item_count(self) -> int:
        return int(self._conn.execute("SELECT COUNT(*) FROM item_documents").fetchone()[0])

    def get_cache_state(self) -> CacheState | None:
        """Return sync metadata, or None before the first successful sync."""
        raw = get_metadata(self._conn, _STATE_KEY)
        if raw is None:
            return None
        try:
            return CacheState.from_json(raw)
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            msg = f"Corrupt cache state record: {e}"
            raise StoreError(msg) from e

    def set_cache_state(self, state: CacheState) -> None:
        set_metadata(self._conn, _STATE_KEY, state.to_json())


def _restrict_permissions(path: Path, mode: int) -> None:
    try:
        os.chmod(path, mode)
    except OSError as e:
        logger.warning("Could not set permissions {:o} on {}: {}", mode, path, e)
