"""Rate-limit header extraction.

Upstream agencies advertise quotas through a mix of standard
(`RateLimit-Limit`), vendor-prefixed (`X-RateLimit-Limit`) and per-window
(`X-RateLimit-Limit-Minute`, `X-RateLimit-Hour-Remaining`) headers, plus
`Retry-After`. This module only reports what the headers say; it never
throttles.
"""
from __future__ import annotations

import logging
import math
import time
from email.utils import parsedate_to_datetime
from typing import Dict, Mapping, Optional

from ..models import RateLimitInfo

logger = logging.getLogger(__name__)

VENDOR_PREFIX = "x-ratelimit-"
STANDARD_PREFIX = "ratelimit-"
CORE_FIELDS = ("limit", "remaining", "reset")


def _parse_numeric(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        parsed = float(value.strip())
    except (TypeError, ValueError):
        return None
    if not math.isfinite(parsed):
        return None
    return int(parsed)


def parse_retry_after(value: Optional[str], now: Optional[float] = None) -> Optional[int]:
    """Convert a Retry-After header (delta-seconds or HTTP-date) to milliseconds."""
    if not value:
        return None
    value = value.strip()
    seconds = _parse_numeric(value)
    if seconds is not None:
        return max(0, seconds * 1000)
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if when is None:
        return None
    current = time.time() if now is None else now
    return max(0, int((when.timestamp() - current) * 1000))


def _lower_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    return {str(key).lower(): value for key, value in headers.items()}


def extract_rate_limit(
    headers: Mapping[str, str],
    now: Optional[float] = None,
) -> Optional[RateLimitInfo]:
    """
    Build a rate-limit snapshot from response headers.

    Args:
        headers: Response headers (any case)
        now: Epoch seconds used to turn an HTTP-date Retry-After into a delta

    Returns:
        RateLimitInfo, or None when no relevant header is present
    """
    lowered = _lower_headers(headers)
    info: Dict[str, object] = {}

    for field in CORE_FIELDS:
        raw = lowered.get(VENDOR_PREFIX + field)
        if raw is None:
            raw = lowered.get(STANDARD_PREFIX + field)
        parsed = _parse_numeric(raw)
        if parsed is not None:
            info[field] = parsed

    window_limits: Dict[str, int] = {}
    window_remaining: Dict[str, int] = {}

    for key, raw in lowered.items():
        if not key.startswith(VENDOR_PREFIX):
            continue
        suffix = key[len(VENDOR_PREFIX):]
        if suffix in CORE_FIELDS:
            continue
        parsed = _parse_numeric(raw)
        if parsed is None:
            continue

        # Both "<field>-<window>" and "<window>-<field>" spellings are in use
        if suffix.startswith("remaining-"):
            window_remaining[suffix[len("remaining-"):]] = parsed
        elif suffix.endswith("-remaining"):
            window_remaining[suffix[: -len("-remaining")]] = parsed
        elif suffix.startswith("limit-"):
            window_limits[suffix[len("limit-"):]] = parsed
        elif suffix.endswith("-limit"):
            window_limits[suffix[: -len("-limit")]] = parsed
        elif suffix.startswith("reset-") or suffix.endswith("-reset"):
            continue
        else:
            window_limits[suffix] = parsed

    if window_limits:
        info["window_limits"] = window_limits
    if window_remaining:
        info["window_remaining"] = window_remaining

    retry_after = parse_retry_after(lowered.get("retry-after"), now=now)
    if retry_after is not None:
        info["retry_after_ms"] = retry_after

    if not info:
        return None

    snapshot = RateLimitInfo(**info)
    if snapshot.remaining == 0 or snapshot.retry_after_ms:
        logger.warning(f"Upstream quota exhausted or throttling requested: {snapshot.model_dump(exclude_none=True)}")
    return snapshot
