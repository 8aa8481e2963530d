"""
Single-flight registry.

Coalesces concurrent requests for the same key into one execution of the
producing operation, and keeps the settled handle discoverable until the
store evicts or expires it.
"""
import asyncio
import inspect
import logging
import threading
import time
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional, Set, TypeVar, Union

from .config import normalize_ttl
from .handle import SharedHandle
from .stores.memory import MemoryEvictionStore, get_default_store
from .types import (
    EvictionStore,
    InflightEvent,
    InflightEventListener,
    InflightEventType,
)

logger = logging.getLogger("cache_inflight.registry")

T = TypeVar("T")

Operation = Callable[[], Union[Awaitable[T], T]]


class InflightRegistry:
    """
    InflightRegistry - at most one execution per key.

    The handle is inserted into the store before the operation starts, so
    callers arriving while it runs join the pending handle instead of
    starting a duplicate. Settled handles stay in the store; only capacity
    eviction or TTL expiry removes them.

    Example:
        registry = InflightRegistry()

        async def load():
            return await http_client.get("/api/data")

        # 50 concurrent callers, 1 call to load()
        handles = [registry.acquire("data", load) for _ in range(50)]
        outcome = await handles[0].wait()
    """

    def __init__(self, store: Optional[EvictionStore] = None) -> None:
        self._store = store if store is not None else get_default_store()
        self._listeners: Set[InflightEventListener] = set()
        self._hits = 0
        self._misses = 0
        self._unsubscribe_evict: Optional[Callable[[], None]] = None

    @property
    def store(self) -> EvictionStore:
        return self._store

    def acquire(
        self,
        key: Hashable,
        operation: Operation,
        ttl_seconds: Optional[float] = None,
    ) -> SharedHandle:
        """
        Get the current handle for key, starting operation on a miss.

        Must be called from a running event loop. Failures raised by
        operation, synchronously or not, settle the handle as FAILED and
        never propagate out of this method.
        """
        ttl = normalize_ttl(ttl_seconds)

        with self._store.lock:
            existing = self._store.get(key)
            if existing is not None:
                existing.subscribers += 1
                self._hits += 1
            else:
                handle = SharedHandle(key)
                self._store.set(key, handle, ttl)
                self._misses += 1

        if existing is not None:
            logger.debug(
                f"acquire: join key={key!r}, state={existing.state.value}, subscribers={existing.subscribers}"
            )
            self._emit(
                InflightEventType.JOIN,
                key,
                {"subscribers": existing.subscribers, "state": existing.state.value},
            )
            return existing

        logger.debug(f"acquire: lead key={key!r}, ttl_seconds={ttl!r}")
        self._emit(InflightEventType.LEAD, key, {"ttl_seconds": ttl})
        self._start(handle, operation)
        return handle

    def _start(self, handle: SharedHandle, operation: Operation) -> None:
        try:
            result = operation()
        except Exception as error:
            logger.debug(f"start: key={handle.key!r} raised synchronously: {error!r}")
            self._settle_failed(handle, error)
            return

        if not inspect.isawaitable(result):
            self._settle_fulfilled(handle, result)
            return

        handle._task = asyncio.ensure_future(self._run(handle, result))

    async def _run(self, handle: SharedHandle, awaitable: Awaitable[Any]) -> None:
        try:
            value = await awaitable
        except asyncio.CancelledError as error:
            self._settle_failed(handle, error)
            raise
        except Exception as error:
            self._settle_failed(handle, error)
        else:
            self._settle_fulfilled(handle, value)

    def _settle_fulfilled(self, handle: SharedHandle, value: Any) -> None:
        handle.fulfill(value)
        duration = time.time() - handle.created_at
        logger.debug(f"settle: key={handle.key!r} fulfilled in {duration:.3f}s")
        self._emit(
            InflightEventType.FULFILLED,
            handle.key,
            {"subscribers": handle.subscribers, "duration_seconds": duration},
        )

    def _settle_failed(self, handle: SharedHandle, error: BaseException) -> None:
        handle.fail(error)
        duration = time.time() - handle.created_at
        logger.debug(f"settle: key={handle.key!r} failed in {duration:.3f}s: {error!r}")
        self._emit(
            InflightEventType.FAILED,
            handle.key,
            {"subscribers": handle.subscribers, "duration_seconds": duration, "error": str(error)},
        )

    def _on_store_evict(self, key: Hashable, value: Any) -> None:
        if not isinstance(value, SharedHandle):
            return
        self._emit(InflightEventType.EVICT, key, {"state": value.state.value})

    def peek(self, key: Hashable) -> Optional[SharedHandle]:
        """Get the current handle for key without joining it."""
        return self._store.get(key)

    def forget(self, key: Hashable, handle: SharedHandle) -> bool:
        """
        Remove handle from the store if it is still the current one for key.

        A newer handle stored under the same key is left alone.
        """
        with self._store.lock:
            if self._store.get(key) is not handle:
                return False
            self._store.delete(key)
        logger.debug(f"forget: key={key!r}, state={handle.state.value}")
        return True

    def get_stats(self) -> Dict[str, int]:
        """Get registry statistics."""
        return {"size": self._store.size(), "hits": self._hits, "misses": self._misses}

    def on(self, listener: InflightEventListener) -> Callable[[], None]:
        """
        Add event listener.

        Eviction events are only tracked while at least one listener is
        attached, and only for stores that report evictions.
        """
        self._listeners.add(listener)
        if self._unsubscribe_evict is None and isinstance(self._store, MemoryEvictionStore):
            self._unsubscribe_evict = self._store.add_eviction_listener(self._on_store_evict)
        return lambda: self.off(listener)

    def off(self, listener: InflightEventListener) -> None:
        """Remove event listener."""
        self._listeners.discard(listener)
        if not self._listeners and self._unsubscribe_evict is not None:
            self._unsubscribe_evict()
            self._unsubscribe_evict = None

    def _emit(self, event_type: InflightEventType, key: Hashable, metadata: Optional[dict] = None) -> None:
        if not self._listeners:
            return
        event = InflightEvent(type=event_type, key=key, timestamp=time.time(), metadata=metadata)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.warning(f"emit: listener failed for {event_type.value} key={key!r}", exc_info=True)

    def clear(self) -> None:
        """Drop every handle from the store. Pending operations still run to completion."""
        self._store.clear()

    def close(self) -> None:
        """Detach listeners. The store is left as is, it may be shared."""
        self._listeners.clear()
        if self._unsubscribe_evict is not None:
            self._unsubscribe_evict()
            self._unsubscribe_evict = None


def create_inflight_registry(store: Optional[EvictionStore] = None) -> InflightRegistry:
    """Create an inflight registry."""
    return InflightRegistry(store)


_default_registry: Optional[InflightRegistry] = None
_default_registry_lock = threading.Lock()


def get_default_registry() -> InflightRegistry:
    """
    Get the process-wide registry over the process-wide store.

    Created once on first use and kept for the lifetime of the process, so
    its stats and listeners cover every call made without an explicit store.
    """
    global _default_registry
    if _default_registry is None:
        with _default_registry_lock:
            if _default_registry is None:
                _default_registry = InflightRegistry(get_default_store())
    return _default_registry
