"""
Memory store implementation for cache_inflight, backed by cachetools.
"""
import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Hashable, Optional

from cachetools import TLRUCache

from ..config import get_default_max_size, normalize_ttl
from ..types import EvictionListener, EvictionStore

logger = logging.getLogger("cache_inflight.stores.memory")


@dataclass
class _StoreEntry:
    value: Any
    ttl_seconds: Optional[float]


def _time_to_use(key: Hashable, entry: _StoreEntry, now: float) -> float:
    if entry.ttl_seconds is None:
        return math.inf
    return now + entry.ttl_seconds


class _EvictingTLRUCache(TLRUCache):
    """TLRUCache that reports capacity evictions."""

    def __init__(
        self,
        maxsize: int,
        timer: Callable[[], float],
        on_evict: Optional[Callable[[Hashable, _StoreEntry], None]],
    ) -> None:
        super().__init__(maxsize, _time_to_use, timer=timer)
        self._on_evict = on_evict

    def popitem(self):
        key, entry = super().popitem()
        if self._on_evict is not None:
            self._on_evict(key, entry)
        return key, entry


class MemoryEvictionStore(EvictionStore):
    """
    In-memory eviction store.

    Least recently used entries are dropped once max_size is reached, and
    entries written with a TTL read as misses once it elapses.
    """

    def __init__(
        self,
        max_size: int = 1000,
        *,
        timer: Callable[[], float] = time.monotonic,
        on_evict: Optional[EvictionListener] = None,
    ) -> None:
        if max_size <= 0:
            raise ValueError(f"max_size must be positive, got {max_size!r}")
        super().__init__()
        self._max_size = max_size
        self._listeners = []
        if on_evict is not None:
            self._listeners.append(on_evict)
        self._cache = _EvictingTLRUCache(max_size, timer, self._handle_evict)

    @property
    def max_size(self) -> int:
        return self._max_size

    def add_eviction_listener(self, listener: EvictionListener) -> Callable[[], None]:
        """Register a capacity eviction listener; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _handle_evict(self, key: Hashable, entry: _StoreEntry) -> None:
        logger.debug(f"evict: key={key!r}, max_size={self._max_size}")
        for listener in list(self._listeners):
            try:
                listener(key, entry.value)
            except Exception:
                logger.warning(f"evict: listener failed for key={key!r}", exc_info=True)

    def get(self, key: Hashable) -> Optional[Any]:
        """Get a live entry, or None on a miss or expiry."""
        entry = self._cache.get(key)
        if entry is None:
            return None
        return entry.value

    def set(self, key: Hashable, value: Any, ttl_seconds: Optional[float] = None) -> None:
        """Store an entry, optionally expiring after ttl_seconds."""
        self._cache[key] = _StoreEntry(value=value, ttl_seconds=normalize_ttl(ttl_seconds))

    def has(self, key: Hashable) -> bool:
        """Check if a live entry exists."""
        return key in self._cache

    def delete(self, key: Hashable) -> bool:
        """Remove an entry."""
        return self._cache.pop(key, None) is not None

    def size(self) -> int:
        """Get current number of live entries."""
        self._cache.expire()
        return len(self._cache)

    def clear(self) -> None:
        """Remove all entries."""
        self._cache.clear()


_default_store: Optional[MemoryEvictionStore] = None
_default_store_lock = threading.Lock()


def get_default_store() -> MemoryEvictionStore:
    """
    Get the process-wide store.

    Created once on first use with capacity from CACHE_INFLIGHT_MAX_SIZE
    (default 1000) and kept for the lifetime of the process.
    """
    global _default_store
    if _default_store is None:
        with _default_store_lock:
            if _default_store is None:
                _default_store = MemoryEvictionStore(get_default_max_size())
                logger.debug(f"get_default_store: created, max_size={_default_store.max_size}")
    return _default_store


def create_memory_eviction_store(
    max_size: int = 1000,
    *,
    timer: Callable[[], float] = time.monotonic,
    on_evict: Optional[EvictionListener] = None,
) -> MemoryEvictionStore:
    """Create a memory eviction store."""
    return MemoryEvictionStore(max_size, timer=timer, on_evict=on_evict)
