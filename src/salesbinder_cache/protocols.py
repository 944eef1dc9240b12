"""Protocols for dependency injection in the document indexer."""

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from salesbinder_cache.models.document import DocumentKind


@dataclass(frozen=True)
class DocumentPage:
    """One page of raw document records from the remote source."""

    records: list[dict[str, Any]] = field(default_factory=list)
    has_more: bool = False


@runtime_checkable
class DocumentSourceProtocol(Protocol):
    """Protocol for remote document sources.

    Implementations raise ``PaginationExhausted`` for a page past the end,
    ``RateLimited`` when throttled and ``SourceError`` for other failures.
    """

    def list_documents(
        self,
        kind: DocumentKind,
        *,
        page: int,
        page_size: int,
        modified_since: int | None = None,
    ) -> DocumentPage:
        """Return one page of documents of the given kind."""
        ...

    def get_document(self, document_id: str) -> dict[str, Any]:
        """Return a single document including its line items."""
        ...
