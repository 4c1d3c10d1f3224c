"""HTTP client with connection pooling for claudemeter."""

from __future__ import annotations

from contextlib import asynccontextmanager

import httpx

from claudemeter import __version__
from claudemeter.config.settings import get_config

DEFAULT_USER_AGENT = (
    f"Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) claudemeter/{__version__}"
)

# Global HTTP client
_client: httpx.AsyncClient | None = None


def get_timeout_config(timeout: float | None = None) -> httpx.Timeout:
    """Get timeout configuration, defaulting to the polling settings."""
    if timeout is None:
        timeout = get_config().polling.timeout
    return httpx.Timeout(timeout, connect=min(timeout, 10.0))


def create_http_client(timeout: float | None = None) -> httpx.AsyncClient:
    """Create a client with the limits used for polling."""
    limits = httpx.Limits(
        max_connections=4,
        max_keepalive_connections=2,
    )
    return httpx.AsyncClient(
        timeout=get_timeout_config(timeout),
        limits=limits,
        follow_redirects=True,
    )


@asynccontextmanager
async def get_http_client():
    """Get or create the shared HTTP client.

    Usage:
        async with get_http_client() as client:
            response = await client.get(...)
    """
    global _client

    if _client is None or _client.is_closed:
        _client = create_http_client()

    try:
        yield _client
    finally:
        # Don't close - keep for reuse
        pass


async def cleanup() -> None:
    """Close the shared HTTP client.

    Should be called on application shutdown.
    """
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
