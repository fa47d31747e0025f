"""
Shared HTTP client with connection pooling for upstream communication.

Provides a long-lived httpx AsyncClient used by every inbound request to
reach the Chandler AI service. The pool is process-wide and safe for
concurrent use; per-request state (bearer token) travels on each request,
never on the client.

Configuration (see ``chandler_api.config.ServiceSettings``):
    HTTP_MAX_CONNECTIONS, HTTP_MAX_KEEPALIVE: pool limits
    HTTP_TIMEOUT_CONNECT, HTTP_TIMEOUT_READ,
    HTTP_TIMEOUT_WRITE, HTTP_TIMEOUT_POOL: timeouts in seconds
    HTTP2: enable HTTP/2
    UPSTREAM_PROXY: optional outbound proxy
    UPSTREAM_USER_AGENT: User-Agent header

Last Grunted: 10/19/2026 03:30:00 PM UTC
"""
from typing import Optional

import httpx
import structlog

from chandler_api.config import ServiceSettings, get_settings

logger = structlog.get_logger(__name__)


# ============================================================================
# Client Configuration
# ============================================================================

def _create_limits(settings: ServiceSettings) -> httpx.Limits:
    """
    Create connection pool limits configuration.

    Args:
        settings: Service settings holding the pool sizes

    Returns:
        httpx.Limits: Configured connection limits

    Last Grunted: 10/19/2026 03:30:00 PM UTC
    """
    return httpx.Limits(
        max_connections=settings.http_max_connections,
        max_keepalive_connections=settings.http_max_keepalive,
        keepalive_expiry=5.0,
    )


def _create_timeout(settings: ServiceSettings) -> httpx.Timeout:
    """
    Create timeout configuration for HTTP requests.

    Args:
        settings: Service settings holding the timeouts

    Returns:
        httpx.Timeout: Configured timeout settings

    Last Grunted: 10/19/2026 03:30:00 PM UTC
    """
    return httpx.Timeout(
        connect=settings.http_timeout_connect,
        read=settings.http_timeout_read,
        write=settings.http_timeout_write,
        pool=settings.http_timeout_pool,
    )


# ============================================================================
# Client Singleton
# ============================================================================

# Global client instance - initialized lazily
_client: Optional[httpx.AsyncClient] = None


async def get_client() -> httpx.AsyncClient:
    """
    Get the shared HTTP client instance.

    Creates the client on first call (lazy initialization).
    The client is reused across all requests for connection pooling.
    Also used as a FastAPI dependency, so tests can swap it through
    ``app.dependency_overrides``.

    Returns:
        httpx.AsyncClient: Shared client instance

    Note:
        Call close_client() during application shutdown to properly
        release all connections.

    Last Grunted: 10/19/2026 03:30:00 PM UTC
    """
    global _client

    if _client is None:
        settings = get_settings()
        logger.info(
            "http_client.init",
            max_connections=settings.http_max_connections,
            max_keepalive=settings.http_max_keepalive,
            http2=settings.http2,
            proxied=bool(settings.upstream_proxy),
        )
        _client = httpx.AsyncClient(
            limits=_create_limits(settings),
            timeout=_create_timeout(settings),
            http2=settings.http2,
            proxy=settings.upstream_proxy,
            headers={"User-Agent": settings.upstream_user_agent},
            trust_env=False,
        )

    return _client


async def close_client() -> None:
    """
    Close the shared HTTP client and release all connections.

    Should be called during application shutdown to ensure clean
    resource cleanup.

    Last Grunted: 10/19/2026 03:30:00 PM UTC
    """
    global _client

    if _client is not None:
        logger.info("http_client.closing")
        await _client.aclose()
        _client = None
        logger.info("http_client.closed")
