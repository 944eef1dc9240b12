"""Error types for the SalesBinder document cache."""


class SalesBinderCacheError(Exception):
    """Base class for all errors raised by this package."""


class ConfigError(SalesBinderCacheError):
    """Configuration file is missing, insecure, or incomplete."""


class StoreError(SalesBinderCacheError):
    """The local cache database cannot be read or written."""


class SchemaVersionError(StoreError):
    """The cache database was created by an incompatible schema version."""

    def __init__(self, found: int, expected: int) -> None:
        self.found = found
        self.expected = expected
        super().__init__(
            f"Cache schema version {found} is not supported (expected {expected}); "
            "delete the cache file to rebuild it"
        )


class SourceError(SalesBinderCacheError):
    """A call to the remote document source failed."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        self.status = status
        super().__init__(message)


class RateLimited(SourceError):
    """The remote source rejected a request because of its rate limit."""


class PaginationExhausted(SourceError):
    """The requested page lies past the last page of results."""
