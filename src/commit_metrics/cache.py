"""Single-slot persistent cache for the last analysis result."""

from datetime import datetime
from typing import Callable, Optional

import structlog
from pydantic import ValidationError

from .config import settings
from .errors import StorageFailure
from .models import AnalysisResult, CacheEntry, utcnow
from .storage import DiskStore, KeyValueStore

logger = structlog.get_logger(__name__)

STORAGE_ERRORS = (StorageFailure, OSError, ValueError, TypeError)


class ResultCache:
    """Keeps exactly one :class:`CacheEntry`, replaced wholesale on write.

    :meth:`read` returns whatever entry is stored; callers compare
    ``entry.repository_id`` with the repository they want. Storage errors are
    logged and treated as an empty cache, never raised.
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        key: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store if store is not None else DiskStore(settings.cache_dir)
        self.key = key or settings.cache_key
        self.clock = clock or utcnow
        self.logger = logger.bind(component="ResultCache")

    def write(self, repository_id: str, result: AnalysisResult) -> bool:
        """Store a result, evicting any previous entry. Returns False on failure."""
        entry = CacheEntry(
            repository_id=repository_id,
            result=result.model_copy(update={"cached": False}),
            fetched_at=self.clock(),
        )
        try:
            self.store.set(self.key, entry.model_dump_json())
        except STORAGE_ERRORS as e:
            self.logger.warning("Cache write failed", repo=repository_id, error=str(e))
            return False
        self.logger.debug("Cached analysis", repo=repository_id)
        return True

    def read(self) -> Optional[CacheEntry]:
        """Return the stored entry, or None if absent or unreadable."""
        try:
            raw = self.store.get(self.key)
        except STORAGE_ERRORS as e:
            self.logger.warning("Cache read failed", error=str(e))
            return None
        if raw is None:
            return None
        try:
            return CacheEntry.model_validate_json(raw)
        except ValidationError as e:
            self.logger.warning("Discarding unreadable cache entry", error=str(e))
            return None

    def invalidate(self) -> None:
        """Drop the stored entry."""
        try:
            self.store.remove(self.key)
        except STORAGE_ERRORS as e:
            self.logger.warning("Cache invalidation failed", error=str(e))

    def is_valid(self, max_age: float) -> bool:
        """True if an entry exists and is at most ``max_age`` seconds old."""
        entry = self.read()
        if entry is None:
            return False
        age = (self.clock() - entry.fetched_at).total_seconds()
        return age <= max_age
