"""
Environment-driven defaults and option merging.

Reads CACHE_INFLIGHT_MAX_SIZE for the capacity of the process-wide store
and CACHE_INFLIGHT_TTL_SECONDS for the transport's default retention.
"""
import logging
import os
from typing import Optional

from .types import InflightOptions

logger = logging.getLogger("cache_inflight.config")

DEFAULT_MAX_SIZE = 1000


def get_default_max_size(default: int = DEFAULT_MAX_SIZE) -> int:
    """
    Get the capacity for the process-wide store.

    Args:
        default: Capacity used when CACHE_INFLIGHT_MAX_SIZE is unset or invalid.

    Returns:
        A positive integer capacity.
    """
    raw = os.environ.get("CACHE_INFLIGHT_MAX_SIZE", "")
    if not raw:
        return default
    try:
        result = int(raw)
    except ValueError:
        logger.warning(f"get_default_max_size: invalid CACHE_INFLIGHT_MAX_SIZE={raw!r}, using {default}")
        return default
    if result <= 0:
        logger.warning(f"get_default_max_size: non-positive CACHE_INFLIGHT_MAX_SIZE={raw!r}, using {default}")
        return default
    logger.debug(f"get_default_max_size: CACHE_INFLIGHT_MAX_SIZE={raw!r}, result={result}")
    return result


def get_default_ttl_seconds() -> Optional[float]:
    """Get the default retention from CACHE_INFLIGHT_TTL_SECONDS, if any."""
    raw = os.environ.get("CACHE_INFLIGHT_TTL_SECONDS", "")
    if not raw:
        return None
    try:
        result = normalize_ttl(float(raw))
    except ValueError:
        logger.warning(f"get_default_ttl_seconds: invalid CACHE_INFLIGHT_TTL_SECONDS={raw!r}, ignoring")
        return None
    logger.debug(f"get_default_ttl_seconds: CACHE_INFLIGHT_TTL_SECONDS={raw!r}, result={result!r}")
    return result


def normalize_ttl(ttl_seconds: Optional[float]) -> Optional[float]:
    """Map absent or non-positive TTLs to None (no expiry)."""
    if ttl_seconds is None or ttl_seconds <= 0:
        return None
    return float(ttl_seconds)


def merge_inflight_options(options: Optional[InflightOptions] = None) -> InflightOptions:
    """Merge user options with defaults."""
    if options is None:
        return InflightOptions()

    return InflightOptions(
        cache=options.cache,
        ttl_seconds=normalize_ttl(options.ttl_seconds),
    )
