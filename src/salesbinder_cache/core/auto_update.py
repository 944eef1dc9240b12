"""Auto-update logic: sync the cache from the API before running analytics."""

from loguru import logger

from salesbinder_cache.core.database.store import DocumentStore
from salesbinder_cache.core.indexer import DocumentIndexer
from salesbinder_cache.models.sync import SyncOptions, SyncResult


def is_update_needed(store: DocumentStore, indexer: DocumentIndexer, account: str) -> bool:
    """Check if the cache needs a sync before it can be trusted.

    Args:
        store: Cache holding the sync metadata.
        indexer: Indexer whose stale threshold applies.
        account: Account the caller is about to query.

    Returns:
        True when the cache was never synced, belongs to another account,
        or is older than the stale threshold.
    """
    state = store.get_cache_state()
    if state is None or state.owner_account != account:
        return True
    return indexer.is_stale()


def ensure_fresh(
    store: DocumentStore,
    indexer: DocumentIndexer,
    account: str,
    *,
    force: bool = False,
    cached_only: bool = False,
) -> SyncResult | None:
    """Sync the cache when it is missing, foreign or stale.

    ``force`` runs a full sync unconditionally; ``cached_only`` skips the
    check entirely. Sync failures propagate so the caller can decide whether
    stale data is acceptable.

    Returns:
        The SyncResult of the sync that ran, or None when nothing ran.
    """
    if cached_only:
        logger.debug("Using cached data without freshness check")
        return None

    if not force and not is_update_needed(store, indexer, account):
        return None

    logger.info("Syncing cache...")
    result = indexer.sync(SyncOptions(full=force))
    logger.info("Sync complete")
    return result
