"""Timeout-bounded HTTP GET with status checking and rate-limit reporting."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import httpx

from ..config import get_settings
from ..exceptions import DecodeError, HttpError
from ..models import RateLimitInfo
from .http_pool import get_http_client
from .rate_limit import extract_rate_limit

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


@dataclass
class FetchResult:
    data: Any
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    rate_limit: Optional[RateLimitInfo] = None


async def fetch(
    url: str,
    headers: Optional[Mapping[str, str]] = None,
    timeout: float = DEFAULT_TIMEOUT,
    params: Optional[Mapping[str, Any]] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> httpx.Response:
    """
    GET a URL, cancelling the call once `timeout` seconds have elapsed.

    Raises:
        HttpError: non-2xx status (status, reason and URL attached), timeout,
            or transport failure (status None)
    """
    http_client = client or get_http_client()
    request_headers = {"User-Agent": get_settings().user_agent, **(headers or {})}

    try:
        response = await asyncio.wait_for(
            http_client.get(url, headers=request_headers, params=params, timeout=timeout),
            timeout=timeout,
        )
    except asyncio.TimeoutError as exc:
        raise HttpError(None, f"Timed out after {timeout:.0f}s", url) from exc
    except httpx.TimeoutException as exc:
        raise HttpError(None, f"Timed out after {timeout:.0f}s", url) from exc
    except httpx.HTTPError as exc:
        raise HttpError(None, f"Transport error: {exc}", url) from exc

    if not response.is_success:
        final_url = str(response.url)
        raise HttpError(response.status_code, response.reason_phrase or "", final_url)

    return response


def _header_map(response: httpx.Response) -> Dict[str, str]:
    return {key.lower(): value for key, value in response.headers.items()}


async def get_json(
    url: str,
    headers: Optional[Mapping[str, str]] = None,
    timeout: float = DEFAULT_TIMEOUT,
    params: Optional[Mapping[str, Any]] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> FetchResult:
    """Fetch and decode a JSON document."""
    merged = {"Accept-Encoding": "gzip", **(headers or {})}
    response = await fetch(url, headers=merged, timeout=timeout, params=params, client=client)
    header_map = _header_map(response)
    final_url = str(response.url)
    try:
        data = response.json()
    except ValueError as exc:
        raise DecodeError(f"Response from {final_url} is not valid JSON: {exc}", fmt="json") from exc
    return FetchResult(
        data=data,
        url=final_url,
        headers=header_map,
        rate_limit=extract_rate_limit(header_map),
    )


async def get_text(
    url: str,
    headers: Optional[Mapping[str, str]] = None,
    timeout: float = DEFAULT_TIMEOUT,
    params: Optional[Mapping[str, Any]] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> FetchResult:
    """Fetch a document as text."""
    response = await fetch(url, headers=headers, timeout=timeout, params=params, client=client)
    header_map = _header_map(response)
    return FetchResult(
        data=response.text,
        url=str(response.url),
        headers=header_map,
        rate_limit=extract_rate_limit(header_map),
    )
