"""Tests for auto-update logic."""

from salesbinder_cache.config import CacheSettings
from salesbinder_cache.core.auto_update import ensure_fresh, is_update_needed
from salesbinder_cache.core.database.store import DocumentStore
from salesbinder_cache.core.indexer import DocumentIndexer
from salesbinder_cache.models.document import DocumentKind
from salesbinder_cache.models.sync import SyncType
from tests.unit.fakes import FakeClock, FakeDocumentSource, RecordingSleep, make_raw_document


def _indexer(store: DocumentStore, clock: FakeClock, account: str = "acme") -> DocumentIndexer:
    source = FakeDocumentSource()
    source.add_page(
        DocumentKind.INVOICE,
        [make_raw_document("i1", DocumentKind.INVOICE, 1, "2025-01-01", "c", items=[("x", 1, 1.0)])],
    )
    return DocumentIndexer(
        source, store, account, CacheSettings(stale_seconds=60), clock=clock, sleep=RecordingSleep()
    )


def test_update_needed_when_never_synced(store: DocumentStore) -> None:
    assert is_update_needed(store, _indexer(store, FakeClock()), "acme") is True


def test_update_not_needed_within_threshold(store: DocumentStore) -> None:
    clock = FakeClock()
    indexer = _indexer(store, clock)
    indexer.sync()
    clock.advance(30)
    assert is_update_needed(store, indexer, "acme") is False


def test_update_needed_after_threshold(store: DocumentStore) -> None:
    clock = FakeClock()
    indexer = _indexer(store, clock)
    indexer.sync()
    clock.advance(61)
    assert is_update_needed(store, indexer, "acme") is True


def test_update_needed_for_other_account(store: DocumentStore) -> None:
    clock = FakeClock()
    indexer = _indexer(store, clock)
    indexer.sync()
    assert is_update_needed(store, indexer, "someone-else") is True


def test_ensure_fresh_syncs_empty_cache(store: DocumentStore) -> None:
    result = ensure_fresh(store, _indexer(store, FakeClock()), "acme")
    assert result is not None
    assert result.type == SyncType.FULL
    assert store.document_count() == 1


def test_ensure_fresh_skips_fresh_cache(store: DocumentStore) -> None:
    indexer = _indexer(store, FakeClock())
    indexer.sync()
    assert ensure_fresh(store, indexer, "acme") is None


def test_ensure_fresh_runs_delta_when_stale(store: DocumentStore) -> None:
    clock = FakeClock()
    indexer = _indexer(store, clock)
    indexer.sync()
    clock.advance(120)
    result = ensure_fresh(store, indexer, "acme")
    assert result is not None
    assert result.type == SyncType.DELTA


def test_ensure_fresh_force_runs_full_sync(store: DocumentStore) -> None:
    indexer = _indexer(store, FakeClock())
    indexer.sync()
    result = ensure_fresh(store, indexer, "acme", force=True)
    assert result is not None
    assert result.type == SyncType.FULL


def test_ensure_fresh_cached_only_never_syncs(store: DocumentStore) -> None:
    result = ensure_fresh(store, _indexer(store, FakeClock()), "acme", cached_only=True)
    assert result is None
    assert store.get_cache_state() is None
