"""
Shared HTTP Client Pool Service

Provides one reusable httpx.AsyncClient for every upstream agency:
- Connection pooling (HTTP/1.1 and HTTP/2)
- Keep-alive configuration
- Default timeouts (each call may still pass its own)

Tests install their own client (e.g. backed by httpx.MockTransport) with
set_http_client().
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from ..config import get_settings

logger = logging.getLogger(__name__)


class HTTPClientPool:
    """Process-wide holder of the shared AsyncClient."""

    _client: Optional[httpx.AsyncClient] = None

    @staticmethod
    def _initialize_client() -> httpx.AsyncClient:
        settings = get_settings()
        limits = httpx.Limits(
            max_connections=100,
            max_keepalive_connections=50,
            keepalive_expiry=5.0,
        )
        timeout = httpx.Timeout(
            timeout=settings.http_timeout,
            connect=10.0,
        )
        client = httpx.AsyncClient(
            limits=limits,
            timeout=timeout,
            http2=True,
            follow_redirects=True,
            headers={"User-Agent": settings.user_agent},
        )
        logger.info(
            f"HTTP Client Pool initialized: max_connections=100, timeout={settings.http_timeout}s"
        )
        return client

    @classmethod
    def get_client(cls) -> httpx.AsyncClient:
        if cls._client is None or cls._client.is_closed:
            cls._client = cls._initialize_client()
        return cls._client

    @classmethod
    def set_client(cls, client: Optional[httpx.AsyncClient]) -> None:
        cls._client = client

    @classmethod
    async def close(cls) -> None:
        if cls._client is not None:
            await cls._client.aclose()
            cls._client = None
            logger.info("HTTP Client Pool closed")


def get_http_client() -> httpx.AsyncClient:
    """Get the shared HTTP client; use instead of creating new AsyncClients."""
    return HTTPClientPool.get_client()


def set_http_client(client: Optional[httpx.AsyncClient]) -> None:
    HTTPClientPool.set_client(client)


async def close_http_pool() -> None:
    """Close the HTTP client pool (called on application shutdown)."""
    await HTTPClientPool.close()
