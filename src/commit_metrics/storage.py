"""Synchronous key-value stores backing the result cache."""

import sqlite3
from pathlib import Path
from typing import Dict, Optional, Protocol, Union

import structlog
from diskcache import Cache

from .errors import StorageFailure

logger = structlog.get_logger(__name__)


class KeyValueStore(Protocol):
    """String-to-string store. Any method may raise on quota or I/O errors."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryStore:
    """In-process store with an optional size quota in characters."""

    def __init__(self, quota: Optional[int] = None):
        self.quota = quota
        self._items: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set(self, key: str, value: str) -> None:
        if self.quota is not None:
            used = sum(len(v) for k, v in self._items.items() if k != key)
            if used + len(value) > self.quota:
                raise StorageFailure(f"Storage quota of {self.quota} exceeded")
        self._items[key] = value

    def remove(self, key: str) -> None:
        self._items.pop(key, None)


class DiskStore:
    """Store backed by a :class:`diskcache.Cache` in a directory."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)
        self.cache = Cache(str(self.directory))
        self.logger = logger.bind(component="DiskStore", directory=str(self.directory))

    def get(self, key: str) -> Optional[str]:
        try:
            return self.cache.get(key)
        except sqlite3.Error as e:
            raise StorageFailure(f"Could not read {key!r}: {e}") from e

    def set(self, key: str, value: str) -> None:
        try:
            self.cache.set(key, value)
        except sqlite3.Error as e:
            raise StorageFailure(f"Could not write {key!r}: {e}") from e
        self.logger.debug("Stored value", key=key, size=len(value))

    def remove(self, key: str) -> None:
        try:
            self.cache.delete(key)
        except sqlite3.Error as e:
            raise StorageFailure(f"Could not remove {key!r}: {e}") from e

    def close(self) -> None:
        self.cache.close()
