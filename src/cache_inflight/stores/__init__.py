"""
Store implementations for cache_inflight.
"""
from .memory import (
    MemoryEvictionStore,
    create_memory_eviction_store,
    get_default_store,
)

__all__ = [
    "MemoryEvictionStore",
    "create_memory_eviction_store",
    "get_default_store",
]
