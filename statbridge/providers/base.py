"""Base provider class with common cached retrieval and outcome handling."""
from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple

from ..config import get_settings
from ..exceptions import DataNotAvailableError, HttpError, StatBridgeError
from ..models import (
    Empty,
    Failure,
    Observation,
    ProviderKey,
    ProviderOutcome,
    Series,
    SeriesSource,
    Success,
)
from ..parsers.periods import infer_freq, normalize_period
from ..routing.country_resolver import CountryResolver
from ..services.cache import TTLCache
from ..services.fetch import FetchResult, get_json
from ..utils.retry import fetch_with_retry

logger = logging.getLogger(__name__)

Years = Tuple[int, int]


class BaseProvider(ABC):
    """Base class for all upstream agencies.

    Provides common functionality:
    - Cached JSON retrieval (one TTLCache per provider instance)
    - Retry with linear backoff through fetch_with_retry
    - Conversion of results and exceptions into Success / Empty / Failure

    Subclasses implement:
    - provider_key property (required)
    - fetch_series method (abstract)
    """

    # Agencies that only publish national figures refuse sub-national geographies
    supports_subnational = False

    def __init__(self, base_url: str, cache_ttl_ms: Optional[int] = None, timeout: Optional[float] = None):
        """Initialize base provider.

        Args:
            base_url: Root of the agency's API
            cache_ttl_ms: Lifetime of cached responses (default: DEFAULT_CACHE_TTL_MS)
            timeout: Request timeout in seconds (default: HTTP_TIMEOUT)
        """
        settings = get_settings()
        self.base_url = base_url.rstrip("/")
        self.cache_ttl_ms = cache_ttl_ms if cache_ttl_ms is not None else settings.default_cache_ttl_ms
        self.timeout = timeout or settings.http_timeout
        self.cache: TTLCache[FetchResult] = TTLCache()

    @property
    @abstractmethod
    def provider_key(self) -> ProviderKey:
        """Return the routing key ('eurostat', 'oecd', 'wb' or 'ilostat')."""
        pass

    @abstractmethod
    async def fetch_series(self, provider_id: Any, geo: Optional[str] = None, years: Optional[Years] = None) -> Series:
        """Fetch one indicator for one geography.

        Args:
            provider_id: Provider-specific identifier or equivalence mapping
            geo: Region code in any supported system
            years: Inclusive (start, end) year range

        Raises:
            DataNotAvailableError: upstream answered but has nothing usable
            HttpError / DecodeError: transport or payload failures
        """
        pass

    async def _cached(
        self,
        cache_params: Dict[str, Any],
        loader: Callable[[], Awaitable[FetchResult]],
    ) -> FetchResult:
        key = TTLCache.make_key(self.provider_key, cache_params)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"{self.provider_key} cache hit: {cache_params.get('url')}")
            return cached

        logger.info(f"{self.provider_key} cache miss: {cache_params.get('url')}")
        result = await loader()
        self.cache.set(key, result, self.cache_ttl_ms)
        return result

    async def _get_json(
        self,
        url: str,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> FetchResult:
        """GET a JSON document through the provider cache, retrying transient failures."""
        settings = get_settings()

        async def _call() -> FetchResult:
            return await get_json(url, headers=headers, params=params, timeout=self.timeout)

        async def _load() -> FetchResult:
            return await fetch_with_retry(
                _call,
                tries=settings.http_retry_tries,
                base_delay=settings.http_retry_base_delay,
                rate_limit_floor=settings.rate_limit_floor,
            )

        return await self._cached({"url": url, "params": dict(params or {})}, _load)

    def _build_series(
        self,
        provider_id: str,
        observations: List[Observation],
        url: str,
        unit: str = "",
        definition: Optional[str] = None,
        method_notes: Optional[str] = None,
    ) -> Series:
        """Normalize period labels, drop NaN cells and wrap the result in a Series."""
        values = [
            Observation(time=normalize_period(obs.time), value=obs.value, geo=obs.geo)
            for obs in observations
            if not math.isnan(obs.value)
        ]
        return Series(
            semantic_id=provider_id,
            unit=unit or "",
            freq=infer_freq(obs.time for obs in values),
            values=values,
            source=SeriesSource(provider=self.provider_key, provider_id=provider_id, url=url),
            definition=definition,
            method_notes=method_notes,
        )

    async def attempt(self, provider_id: Any, geo: Optional[str] = None, years: Optional[Years] = None) -> ProviderOutcome:
        """Run fetch_series and report the result as an outcome value.

        "No data" (empty series, DataNotAvailableError, HTTP 404) becomes Empty;
        every other error becomes Failure carrying the exception class name.
        """
        if not self.supports_subnational and CountryResolver.is_subnational(geo):
            return Empty(reason=f"{self.provider_key} only publishes national data")

        try:
            series = await self.fetch_series(provider_id, geo, years)
        except DataNotAvailableError as e:
            logger.info(f"{self.provider_key}: no data for {provider_id} ({geo}): {e.message}")
            return Empty(reason=e.message)
        except HttpError as e:
            if e.status == 404:
                return Empty(reason=e.message)
            return Failure(message=e.message, error_type=type(e).__name__)
        except StatBridgeError as e:
            logger.warning(f"{self.provider_key}: {type(e).__name__} for {provider_id} ({geo}): {e.message}")
            return Failure(message=e.message, error_type=type(e).__name__)
        except Exception as e:
            logger.exception(f"{self.provider_key}: unexpected error for {provider_id} ({geo})")
            return Failure(message=str(e) or type(e).__name__, error_type=type(e).__name__)

        if series.is_empty:
            return Empty(reason=f"{self.provider_key} returned no observations for {provider_id}")
        return Success(series=series)

    @staticmethod
    def _year_bounds(years: Optional[Years]) -> Tuple[Optional[str], Optional[str]]:
        if not years:
            return None, None
        start, end = years
        return str(min(start, end)), str(max(start, end))
