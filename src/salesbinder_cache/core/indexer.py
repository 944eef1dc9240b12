"""Synchronize remote SalesBinder documents into the local store."""

import re
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, date, datetime
from typing import Any

from loguru import logger

from salesbinder_cache.config import CacheSettings
from salesbinder_cache.core.database.schema import SCHEMA_VERSION
from salesbinder_cache.core.database.store import DocumentStore
from salesbinder_cache.exceptions import PaginationExhausted, RateLimited, SourceError
from salesbinder_cache.models.document import CacheState, Document, DocumentKind, LineItem
from salesbinder_cache.models.sync import SyncOptions, SyncResult, SyncType
from salesbinder_cache.protocols import DocumentPage, DocumentSourceProtocol

_DATE_PREFIX = re.compile(r"^(\d{4}-\d{2}-\d{2})")

SYNC_ORDER: tuple[DocumentKind, ...] = (
    DocumentKind.ESTIMATE,
    DocumentKind.INVOICE,
    DocumentKind.PURCHASE_ORDER,
)


@dataclass
class _RunStats:
    documents: int = 0
    line_items: int = 0
    skipped: int = 0


def _parse_issue_date(value: Any) -> str:
    """Truncate an issue date to ``YYYY-MM-DD``, dropping any time or zone."""
    match = _DATE_PREFIX.match(str(value or ""))
    if not match:
        msg = f"bad issue_date: {value!r}"
        raise ValueError(msg)
    # Reject impossible dates such as 2025-02-30.
    return date.fromisoformat(match.group(1)).isoformat()


def _parse_timestamp(value: Any) -> int:
    """Convert an ISO datetime string or a number into Unix seconds."""
    if isinstance(value, bool):
        msg = f"bad modified value: {value!r}"
        raise ValueError(msg)
    if isinstance(value, int | float):
        return int(value)
    text = str(value).strip()
    if text.isdigit():
        return int(text)
    parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return int(parsed.timestamp())


def normalize_document(raw: dict[str, Any]) -> tuple[Document, list[LineItem]]:
    """Turn a raw API document into a Document and its line items.

    Line items without an ``item_id`` (free-text or service lines) are dropped.

    Raises:
        KeyError: A required field is missing.
        ValueError: A field cannot be parsed.
    """
    doc_id = str(raw["id"])
    if raw["customer_id"] in (None, ""):
        msg = f"missing customer_id on document {doc_id}"
        raise ValueError(msg)
    doc = Document(
        id=doc_id,
        kind=DocumentKind(int(raw["context_id"])),
        sequence_number=int(raw["document_number"]),
        issue_date=_parse_issue_date(raw["issue_date"]),
        customer_id=str(raw["customer_id"]),
        modified_at=_parse_timestamp(raw["modified"]),
    )
    items = [
        LineItem(
            item_id=str(item["item_id"]),
            document_id=doc_id,
            quantity=int(float(item["quantity"])),
            unit_price=float(item["price"]),
        )
        for item in raw.get("document_items") or []
        if item.get("item_id")
    ]
    return doc, items


class DocumentIndexer:
    """Keep a DocumentStore in step with a remote document source.

    Each call to ``sync`` picks a full or delta run from the stored cache
    state; the indexer itself keeps nothing between runs. ``last_sync_at``
    only advances when a run completes, so an interrupted run is retried over
    the same window next time.
    """

    def __init__(
        self,
        source: DocumentSourceProtocol,
        store: DocumentStore,
        account: str,
        settings: CacheSettings | None = None,
        *,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._source = source
        self._store = store
        self.account = account
        self.settings = settings or CacheSettings()
        self._clock = clock
        self._sleep = sleep

    def _now(self) -> int:
        return int(self._clock())

    def needs_full_sync(self) -> bool:
        """True when there is no state, it belongs to another account, or it
        was written under a different schema version."""
        state = self._store.get_cache_state()
        return (
            state is None
            or state.owner_account != self.account
            or state.schema_version != SCHEMA_VERSION
        )

    def is_stale(self) -> bool:
        """True when the cache was never synced or is older than the threshold."""
        state = self._store.get_cache_state()
        if state is None:
            return True
        return self._now() - state.last_sync_at > self.settings.stale_seconds

    def sync(self, options: SyncOptions | None = None) -> SyncResult:
        """Run a full or delta sync and return its summary."""
        options = options or SyncOptions()
        state = self._store.get_cache_state()
        if options.full or self.needs_full_sync():
            if state is not None and state.owner_account != self.account:
                logger.warning(
                    "Cache belongs to account {!r}, expected {!r}; running full sync",
                    state.owner_account,
                    self.account,
                )
            elif state is not None and state.schema_version != SCHEMA_VERSION:
                logger.warning(
                    "Cache state has schema version {}, expected {}; running full sync",
                    state.schema_version,
                    SCHEMA_VERSION,
                )
            return self._full_sync(options)
        return self._delta_sync(options, state)

    def _full_sync(self, options: SyncOptions) -> SyncResult:
        started = self._clock()
        stats = _RunStats()

        for kind in SYNC_ORDER:
            logger.info("Syncing {}s...", kind.label)
            self._sync_kind(kind, None, options, stats)

        now = self._now()
        self._store.set_cache_state(
            CacheState(
                last_sync_at=now,
                last_full_sync_at=now,
                document_count=stats.documents,
                line_item_count=stats.line_items,
                owner_account=self.account,
                schema_version=SCHEMA_VERSION,
            )
        )
        return self._finish(SyncType.FULL, stats, started)

    def _delta_sync(self, options: SyncOptions, state: CacheState) -> SyncResult:
        started = self._clock()
        stats = _RunStats()

        for kind in SYNC_ORDER:
            logger.info("Syncing {}s modified since {}...", kind.label, state.last_sync_at)
            self._sync_kind(kind, state.last_sync_at, options, stats)

        deleted = self._sync_deletions()

        self._store.set_cache_state(
            CacheState(
                last_sync_at=self._now(),
                last_full_sync_at=state.last_full_sync_at,
                document_count=self._store.document_count(),
                line_item_count=self._store.line_item_count(),
                owner_account=state.owner_account,
                schema_version=state.schema_version,
            )
        )
        return self._finish(SyncType.DELTA, stats, started, deleted=deleted)

    def _finish(
        self, sync_type: SyncType, stats: _RunStats, started: float, *, deleted: int = 0
    ) -> SyncResult:
        result = SyncResult(
            type=sync_type,
            documents_processed=stats.documents,
            line_items_processed=stats.line_items,
            documents_skipped=stats.skipped,
            documents_deleted=deleted,
            duration_seconds=max(0.0, self._clock() - started),
        )
        logger.info(
            "{} sync complete: {} documents, {} line items, {} skipped in {}",
            sync_type.value.capitalize(),
            result.documents_processed,
            result.line_items_processed,
            result.documents_skipped,
            result.duration,
        )
        return result

    def _sync_kind(
        self,
        kind: DocumentKind,
        modified_since: int | None,
        options: SyncOptions,
        stats: _RunStats,
    ) -> None:
        page = 1
        while True:
            result = self._fetch_page(kind, page, modified_since)
            if result is None or not result.records:
                break

            for raw in result.records:
                self._process_record(raw, options, stats)

            if not result.has_more:
                break
            page += 1
            self._sleep(self.settings.page_delay)

    def _fetch_page(
        self, kind: DocumentKind, page: int, modified_since: int | None
    ) -> DocumentPage | None:
        """Fetch one list page; None means there are no more pages."""
        try:
            return self._source.list_documents(
                kind,
                page=page,
                page_size=self.settings.page_size,
                modified_since=modified_since,
            )
        except PaginationExhausted:
            logger.debug("{} pages exhausted at page {}", kind.label, page)
            return None
        except Exception as e:
            logger.error("Failed to list {}s page {}: {}", kind.label, page, e)
            raise

    def _process_record(
        self, raw: dict[str, Any], options: SyncOptions, stats: _RunStats
    ) -> None:
        record_id = raw.get("id")
        try:
            full = raw
            if not raw.get("document_items"):
                try:
                    full = self._source.get_document(str(record_id))
                finally:
                    self._sleep(self.settings.record_delay)
            doc, items = normalize_document(full)
        except RateLimited:
            stats.skipped += 1
            return
        except (SourceError, KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping document {}: {}", record_id, e)
            stats.skipped += 1
            return

        self._store.save_document(doc, items)
        stats.documents += 1
        stats.line_items += len(items)
        logger.debug("Stored {} {} ({} line items)", doc.kind.label, doc.id, len(items))

        if options.on_progress:
            options.on_progress(stats.documents, -1)

    def _sync_deletions(self) -> int:
        """Reconcile documents deleted remotely.

        SalesBinder has no deleted-documents log, so nothing is removed here.
        """
        return 0
