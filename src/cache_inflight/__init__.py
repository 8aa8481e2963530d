"""
Request deduplication with single-flight coalescing and short-lived result reuse.
"""
import logging
import os

__version__ = "1.0.0"


def _is_debug_enabled() -> bool:
    """
    Check if debug logging is enabled.
    Logging is ENABLED by default. Disable with DEBUG=false or DEBUG=0.
    """
    debug = os.environ.get("DEBUG", "").lower()
    if debug in ("false", "0"):
        return False
    return True


def _configure_logging() -> None:
    """Configure package logging based on DEBUG environment variable."""
    package_logger = logging.getLogger("cache_inflight")

    if _is_debug_enabled():
        package_logger.setLevel(logging.DEBUG)

        # Avoid duplicate handlers on re-import
        if not package_logger.handlers:
            handler = logging.StreamHandler()
            handler.setLevel(logging.DEBUG)
            handler.setFormatter(logging.Formatter("[%(name)s] %(message)s"))
            package_logger.addHandler(handler)
    else:
        package_logger.setLevel(logging.WARNING)


_configure_logging()

from .types import (  # noqa: E402
    InflightError,
    HandleStateError,
    OperationFailedError,
    HandleState,
    Outcome,
    InflightOptions,
    EvictionStore,
    InflightEventType,
    InflightEvent,
    InflightEventListener,
    EvictionListener,
)
from .config import (  # noqa: E402
    DEFAULT_MAX_SIZE,
    get_default_max_size,
    get_default_ttl_seconds,
    normalize_ttl,
    merge_inflight_options,
)
from .stores import (  # noqa: E402
    MemoryEvictionStore,
    create_memory_eviction_store,
    get_default_store,
)
from .handle import SharedHandle  # noqa: E402
from .registry import InflightRegistry, create_inflight_registry, get_default_registry  # noqa: E402
from .adapters import resolve, resolve_with_callback  # noqa: E402
from .transport import InflightTransport, CachedResponseData, default_request_key  # noqa: E402


__all__ = [
    # Types
    "InflightError",
    "HandleStateError",
    "OperationFailedError",
    "HandleState",
    "Outcome",
    "InflightOptions",
    "EvictionStore",
    "InflightEventType",
    "InflightEvent",
    "InflightEventListener",
    "EvictionListener",
    # Config
    "DEFAULT_MAX_SIZE",
    "get_default_max_size",
    "get_default_ttl_seconds",
    "normalize_ttl",
    "merge_inflight_options",
    # Stores
    "MemoryEvictionStore",
    "create_memory_eviction_store",
    "get_default_store",
    # Registry
    "SharedHandle",
    "InflightRegistry",
    "create_inflight_registry",
    "get_default_registry",
    # Adapters
    "resolve",
    "resolve_with_callback",
    # httpx
    "InflightTransport",
    "CachedResponseData",
    "default_request_key",
]
