"""
Types for cache_inflight package.
"""
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from types import TracebackType
from typing import Any, Callable, Dict, Generic, Hashable, Optional, TypeVar

T = TypeVar("T")


class InflightError(Exception):
    """Base error for cache_inflight."""


class HandleStateError(InflightError):
    """Raised when a settled handle is asked to transition again."""


class OperationFailedError(InflightError):
    """Failure carrying a non-exception reason reported by a callback operation."""

    def __init__(self, reason: Any) -> None:
        super().__init__(f"Operation failed: {reason!r}")
        self.reason = reason


class HandleState(str, Enum):
    """Lifecycle states of a shared handle."""

    PENDING = "pending"
    FULFILLED = "fulfilled"
    FAILED = "failed"


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Terminal result of one operation execution."""

    state: HandleState
    value: Optional[T] = None
    error: Optional[BaseException] = None
    traceback: Optional[TracebackType] = field(default=None, repr=False, compare=False)

    @classmethod
    def fulfilled(cls, value: T) -> "Outcome[T]":
        return cls(state=HandleState.FULFILLED, value=value)

    @classmethod
    def failed(cls, error: BaseException) -> "Outcome[T]":
        return cls(state=HandleState.FAILED, error=error, traceback=error.__traceback__)

    @property
    def ok(self) -> bool:
        return self.state is HandleState.FULFILLED

    def unwrap(self) -> T:
        """
        Return the value, or raise the original failure instance.

        The traceback is reset to the one captured at failure time, so
        repeated raises of a retained failure do not keep growing it.
        """
        if self.state is HandleState.FAILED:
            raise self.error.with_traceback(self.traceback)
        return self.value


@dataclass
class InflightOptions:
    """Per-call options for the adapters."""

    cache: Optional["EvictionStore"] = None
    """Store holding shared handles. Defaults to the process-wide store."""

    ttl_seconds: Optional[float] = None
    """How long a handle stays discoverable. None or <= 0 means no expiry."""


class EvictionStore(ABC):
    """
    Bounded key/value store with LRU eviction and optional per-entry TTL.

    Subclasses must call super().__init__() so the store carries the lock
    every registry sharing it uses for lookup-or-create-and-insert.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()

    @property
    def lock(self) -> threading.RLock:
        """Lock guarding lookup-or-create-and-insert across registries."""
        return self._lock

    @abstractmethod
    def get(self, key: Hashable) -> Optional[Any]:
        """Get a live entry, or None on a miss or expiry."""
        pass

    @abstractmethod
    def set(self, key: Hashable, value: Any, ttl_seconds: Optional[float] = None) -> None:
        """Store an entry, optionally expiring after ttl_seconds."""
        pass

    @abstractmethod
    def has(self, key: Hashable) -> bool:
        """Check if a live entry exists."""
        pass

    @abstractmethod
    def delete(self, key: Hashable) -> bool:
        """Remove an entry."""
        pass

    @abstractmethod
    def size(self) -> int:
        """Get current number of live entries."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Remove all entries."""
        pass


class InflightEventType(str, Enum):
    """Event types emitted by the registry."""

    LEAD = "inflight:lead"
    JOIN = "inflight:join"
    FULFILLED = "inflight:fulfilled"
    FAILED = "inflight:failed"
    EVICT = "inflight:evict"


@dataclass
class InflightEvent:
    """Registry event."""

    type: InflightEventType
    key: Hashable
    timestamp: float
    metadata: Optional[Dict[str, Any]] = None


InflightEventListener = Callable[[InflightEvent], None]
"""Event listener type."""

EvictionListener = Callable[[Hashable, Any], None]
"""Called with (key, value) when a store drops an entry for capacity."""
