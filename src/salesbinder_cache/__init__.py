"""Local SQLite cache and sales analytics for SalesBinder documents."""

from salesbinder_cache.api import SalesBinderApi
from salesbinder_cache.core.database.store import DocumentStore
from salesbinder_cache.core.indexer import DocumentIndexer
from salesbinder_cache.protocols import DocumentPage, DocumentSourceProtocol

__all__ = [
    "DocumentIndexer",
    "DocumentPage",
    "DocumentSourceProtocol",
    "DocumentStore",
    "SalesBinderApi",
]
