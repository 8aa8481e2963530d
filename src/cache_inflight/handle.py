"""
Shared handle tracking one operation execution and its outcome.
"""
import asyncio
import concurrent.futures
import threading
import time
from typing import Callable, Generic, Hashable, Optional, TypeVar

from .types import HandleState, HandleStateError, Outcome

T = TypeVar("T")


class SharedHandle(Generic[T]):
    """
    Lifecycle of one operation execution.

    The handle starts PENDING and is settled exactly once, to FULFILLED or
    FAILED. Every caller holding the handle observes the same Outcome.

    The handle is not bound to an event loop: waiters on any loop, in any
    thread, are notified on their own loop.

    Example:
        handle = SharedHandle("user:42")
        handle.fulfill({"id": 42})
        outcome = await handle.wait()
        outcome.unwrap()  # {"id": 42}
    """

    def __init__(self, key: Hashable) -> None:
        self.key = key
        self.created_at = time.time()
        self.subscribers = 1
        self._lock = threading.Lock()
        self._future: concurrent.futures.Future = concurrent.futures.Future()
        self._outcome: Optional[Outcome[T]] = None
        self._task: Optional[asyncio.Task] = None

    def __repr__(self) -> str:
        return f"<SharedHandle key={self.key!r} state={self.state.value} subscribers={self.subscribers}>"

    @property
    def state(self) -> HandleState:
        outcome = self._outcome
        if outcome is None:
            return HandleState.PENDING
        return outcome.state

    @property
    def outcome(self) -> Optional[Outcome[T]]:
        """The terminal outcome, or None while pending."""
        return self._outcome

    def done(self) -> bool:
        return self._outcome is not None

    def fulfill(self, value: T) -> None:
        """Settle the handle with a value."""
        self._settle(Outcome.fulfilled(value))

    def fail(self, error: BaseException) -> None:
        """Settle the handle with a failure."""
        self._settle(Outcome.failed(error))

    def _settle(self, outcome: Outcome[T]) -> None:
        with self._lock:
            if self._outcome is not None:
                raise HandleStateError(
                    f"Handle for key {self.key!r} already {self._outcome.state.value}"
                )
            self._outcome = outcome
        # The future always carries the Outcome, so failures are never
        # reported as unretrieved exceptions.
        self._future.set_result(outcome)

    async def wait(self) -> Outcome[T]:
        """Wait for the terminal outcome. Cancelling the waiter leaves the handle untouched."""
        outcome = self._outcome
        if outcome is not None:
            return outcome
        return await asyncio.shield(asyncio.wrap_future(self._future))

    def add_done_callback(self, fn: Callable[["SharedHandle[T]"], None]) -> None:
        """
        Call fn(handle) on the caller's event loop once the handle is settled.

        Must be called from a running event loop. The call is always
        scheduled, never made inline, even when the handle is already settled.
        """
        loop = asyncio.get_running_loop()
        if self._outcome is not None:
            loop.call_soon(fn, self)
            return
        self._future.add_done_callback(lambda _: loop.call_soon_threadsafe(fn, self))
