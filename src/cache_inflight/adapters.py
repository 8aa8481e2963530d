"""
Calling conventions over the registry.

resolve() hands the shared outcome back as an awaited value or a raised
error; resolve_with_callback() delivers it to a (error, value) completion
function. Both share one InflightRegistry implementation.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Hashable, Optional, TypeVar

from .config import merge_inflight_options
from .handle import SharedHandle
from .registry import InflightRegistry, Operation, get_default_registry
from .types import InflightOptions, OperationFailedError

logger = logging.getLogger("cache_inflight.adapters")

T = TypeVar("T")

Completion = Callable[[Optional[BaseException], Any], None]
"""Node-style completion: called as (error, None) or (None, value)."""

CallbackOperation = Callable[[Completion], None]
"""Work that reports its result by calling the supplied completion once."""


def _registry_for(options: InflightOptions, registry: Optional[InflightRegistry]) -> InflightRegistry:
    if registry is not None:
        return registry
    if options.cache is None:
        return get_default_registry()
    # Registries over the same store share its lock; stats are per registry.
    return InflightRegistry(options.cache)


async def resolve(
    key: Hashable,
    operation: Operation,
    options: Optional[InflightOptions] = None,
    *,
    registry: Optional[InflightRegistry] = None,
) -> Any:
    """
    Run operation once per key and return its shared result.

    Concurrent callers with the same key await the same execution. A failure
    is re-raised to every caller as the same exception instance.

    Args:
        key: Identifier of the unit of work
        operation: Zero-argument callable returning an awaitable
        options: Store and TTL for this call
        registry: Registry to use instead of one built from options.cache
    """
    opts = merge_inflight_options(options)
    handle = _registry_for(opts, registry).acquire(key, operation, opts.ttl_seconds)
    outcome = await handle.wait()
    return outcome.unwrap()


def _from_callback(operation: CallbackOperation) -> Callable[[], Awaitable[Any]]:
    """Turn a callback-shaped operation into one returning a future."""

    def start() -> Awaitable[Any]:
        loop = asyncio.get_running_loop()
        future = loop.create_future()

        def settle(error: Any, value: Any) -> None:
            if future.done():
                logger.warning("completion called more than once, ignoring")
                return
            if not error:
                future.set_result(value)
            elif isinstance(error, BaseException):
                future.set_exception(error)
            else:
                future.set_exception(OperationFailedError(error))

        def done(error: Any = None, value: Any = None) -> None:
            loop.call_soon_threadsafe(settle, error, value)

        operation(done)
        return future

    return start


def _deliver(completion: Completion, handle: SharedHandle) -> None:
    outcome = handle.outcome
    try:
        if outcome.ok:
            completion(None, outcome.value)
        else:
            completion(outcome.error, None)
    except Exception:
        logger.exception(f"completion raised for key={handle.key!r}")


def resolve_with_callback(
    key: Hashable,
    operation: CallbackOperation,
    completion: Completion,
    options: Optional[InflightOptions] = None,
    *,
    registry: Optional[InflightRegistry] = None,
) -> None:
    """
    Callback-style resolve().

    operation receives a done(error, value) function to call once. Every
    caller's completion is invoked with the shared outcome, always from the
    event loop and never before this function returns.

    Any falsy error (None, False, 0, "") counts as success.

    Example:
        def read_config(done):
            executor.submit(load).add_done_callback(
                lambda f: done(f.exception(), None if f.exception() else f.result())
            )

        resolve_with_callback("config", read_config, lambda err, cfg: ...)
    """
    opts = merge_inflight_options(options)
    handle = _registry_for(opts, registry).acquire(
        key, _from_callback(operation), opts.ttl_seconds
    )
    handle.add_done_callback(lambda settled: _deliver(completion, settled))
