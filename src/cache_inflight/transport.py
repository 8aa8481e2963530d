"""
Inflight transport wrapper for httpx.
"""
import hashlib
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

import httpx

from .config import get_default_ttl_seconds, normalize_ttl
from .registry import InflightRegistry, get_default_registry

logger = logging.getLogger("cache_inflight.transport")

# The shared body is stored decoded, so these no longer describe it.
_STALE_HEADERS = ("content-encoding", "content-length", "transfer-encoding")


@dataclass
class CachedResponseData:
    """Response data shared by coalesced callers."""

    status_code: int
    headers: httpx.Headers
    content: bytes


def default_request_key(request: httpx.Request) -> str:
    """Fingerprint a request from its method, URL and body using SHA-256."""
    hasher = hashlib.sha256()
    hasher.update(request.method.encode())
    hasher.update(str(request.url).encode())
    if request.content:
        hasher.update(request.content)
    return hasher.hexdigest()


class InflightTransport(httpx.AsyncBaseTransport):
    """
    Request coalescing transport wrapper for httpx.

    Identical in-flight requests using one of the coalesced methods share a
    single upstream call. With a TTL, the response is also reused by
    identical requests arriving within that window.

    Example:
        base = httpx.AsyncHTTPTransport()
        transport = InflightTransport(base, ttl_seconds=5)
        client = httpx.AsyncClient(transport=transport)
    """

    def __init__(
        self,
        inner: httpx.AsyncBaseTransport,
        *,
        registry: Optional[InflightRegistry] = None,
        ttl_seconds: Optional[float] = None,
        methods: Optional[List[str]] = None,
        key_generator: Optional[Callable[[httpx.Request], str]] = None,
    ) -> None:
        """
        Create a new InflightTransport.

        Args:
            inner: The wrapped transport to delegate requests to
            registry: Registry holding shared responses. Default: process-wide registry
            ttl_seconds: Reuse window after a successful response. Default:
                CACHE_INFLIGHT_TTL_SECONDS; when neither is set only in-flight
                requests are coalesced
            methods: HTTP methods to coalesce. Default: ["GET", "HEAD"]
            key_generator: Custom request key function
        """
        self._inner = inner
        self._registry = registry or get_default_registry()
        self._ttl_seconds = (
            normalize_ttl(ttl_seconds) if ttl_seconds is not None else get_default_ttl_seconds()
        )
        self._methods = [m.upper() for m in (methods or ["GET", "HEAD"])]
        self._key_generator = key_generator or default_request_key

    @property
    def registry(self) -> InflightRegistry:
        return self._registry

    def supports_coalescing(self, method: str) -> bool:
        """Check if a request method is coalesced."""
        return method.upper() in self._methods

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        """Handle an async HTTP request, coalescing identical safe requests."""
        if not self.supports_coalescing(request.method):
            return await self._inner.handle_async_request(request)

        key = self._key_generator(request)

        async def execute() -> CachedResponseData:
            response = await self._inner.handle_async_request(request)
            content = await response.aread()
            headers = response.headers.copy()
            for name in _STALE_HEADERS:
                headers.pop(name, None)
            return CachedResponseData(
                status_code=response.status_code,
                headers=headers,
                content=content,
            )

        handle = self._registry.acquire(key, execute, self._ttl_seconds)
        if handle.subscribers > 1:
            logger.debug(f"handle_async_request: coalesced {request.method} {request.url}")

        outcome = await handle.wait()
        # Failures are never reused, and without a TTL neither are responses.
        if self._ttl_seconds is None or not outcome.ok:
            self._registry.forget(key, handle)
        data = outcome.unwrap()
        return httpx.Response(
            status_code=data.status_code,
            headers=data.headers,
            content=data.content,
        )

    async def aclose(self) -> None:
        """Close the transport. The registry is left open, it may be shared."""
        await self._inner.aclose()
