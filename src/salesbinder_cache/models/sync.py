"""Options and results for cache synchronization."""

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum


class SyncType(str, Enum):
    FULL = "full"
    DELTA = "delta"


@dataclass(frozen=True)
class SyncOptions:
    """Caller options for a sync run.

    Attributes:
        full: Force a full resync even when a delta would do.
        on_progress: Called with (processed, total) after each stored
            document. ``total`` is -1 because the source does not report it.
    """

    full: bool = False
    on_progress: Callable[[int, int], None] | None = None


@dataclass(frozen=True)
class SyncResult:
    """Summary of a completed sync run."""

    type: SyncType
    documents_processed: int
    line_items_processed: int
    documents_skipped: int
    duration_seconds: float
    documents_deleted: int = 0

    @property
    def duration(self) -> str:
        return f"{self.duration_seconds:.1f}s"
