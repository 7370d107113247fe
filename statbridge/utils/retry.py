"""Retry utility for upstream calls with linear backoff and a rate-limit floor."""
from __future__ import annotations

import asyncio
import logging
from functools import wraps
from typing import Any, Awaitable, Callable, Tuple, Type, TypeVar

from ..exceptions import HttpError


logger = logging.getLogger(__name__)

T = TypeVar('T')


def is_rate_limit_error(exc: BaseException) -> bool:
    """Recognize HTTP 429 or a 'Too Many Requests' message."""
    if isinstance(exc, HttpError):
        return exc.is_rate_limited
    return "too many requests" in str(exc).lower()


async def fetch_with_retry(
    op: Callable[[], Awaitable[T]],
    tries: int = 3,
    base_delay: float = 0.35,
    rate_limit_floor: float = 2.0,
    exceptions: Tuple[Type[BaseException], ...] = (HttpError,),
) -> T:
    """
    Call an async operation up to `tries` times.

    Args:
        op: Zero-argument coroutine factory
        tries: Maximum number of attempts (default: 3)
        base_delay: Delay unit in seconds; attempt n waits base_delay * n (default: 0.35)
        rate_limit_floor: Per-attempt minimum delay in seconds when the failure
            is a rate-limit signal; attempt n waits at least rate_limit_floor * n
        exceptions: Exception types that are retried. Anything else propagates
            immediately (decode and structure errors are never retried).

    Returns:
        The result of the first successful call

    Raises:
        The last exception if all attempts fail
    """
    if tries < 1:
        raise ValueError("tries must be at least 1")

    last_exception: BaseException | None = None

    for attempt in range(1, tries + 1):
        try:
            return await op()
        except exceptions as exc:
            last_exception = exc

            if attempt >= tries:
                logger.error(f"All {tries} attempts failed. Last error: {exc}")
                break

            delay = base_delay * attempt
            if is_rate_limit_error(exc):
                delay = max(delay, rate_limit_floor * attempt)
                logger.warning(
                    f"Rate limit hit. Attempt {attempt}/{tries}. Retrying after {delay:.2f}s..."
                )
            else:
                logger.warning(
                    f"Attempt {attempt}/{tries} failed: {exc}. Retrying in {delay:.2f}s..."
                )
            await asyncio.sleep(delay)

    raise last_exception  # type: ignore[misc]


def with_retry(
    tries: int = 3,
    base_delay: float = 0.35,
    rate_limit_floor: float = 2.0,
):
    """
    Decorator to add retry logic to async functions.

    Usage:
        @with_retry(tries=3)
        async def fetch_data():
            ...
    """
    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            async def _call():
                return await func(*args, **kwargs)

            return await fetch_with_retry(
                _call,
                tries=tries,
                base_delay=base_delay,
                rate_limit_floor=rate_limit_floor,
            )

        return wrapper
    return decorator
