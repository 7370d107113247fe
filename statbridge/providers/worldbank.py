from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..config import get_settings
from ..exceptions import DataNotAvailableError, DecodeError
from ..models import Observation, Series
from ..routing.region_codes import get_region_crosswalk
from .base import BaseProvider, Years

logger = logging.getLogger(__name__)


class WorldBankProvider(BaseProvider):
    """World Bank Indicators API v2.

    Responses are a two-element JSON array: paging metadata, then the data
    points (newest first). Errors come back as a single-element array
    carrying a "message" list.
    """

    # WorldBank region and aggregate codes (from https://api.worldbank.org/v2/region)
    VALID_REGIONS = {
        "AFE", "AFW", "EAS", "ECS", "LCN", "MEA", "NAC", "SAS", "SSF", "WLD",
        "HIC", "LIC", "LMC", "LMY", "MIC", "UMC",
    }

    @property
    def provider_key(self) -> str:
        return "wb"

    def __init__(self, base_url: Optional[str] = None, cache_ttl_ms: Optional[int] = None, timeout: Optional[float] = None) -> None:
        super().__init__(base_url or get_settings().worldbank_base_url, cache_ttl_ms, timeout)

    def _country_code(self, geo: Optional[str]) -> str:
        if not geo:
            return "WLD"
        code = geo.strip().upper()
        if code in self.VALID_REGIONS:
            return code
        country = get_region_crosswalk().get_country(code)
        if not country:
            raise DataNotAvailableError(f"World Bank has no country for '{geo}'", provider=self.provider_key)
        return country.iso2

    @staticmethod
    def _check_error(payload: Any, indicator: str) -> None:
        if isinstance(payload, list) and payload and isinstance(payload[0], dict) and "message" in payload[0]:
            messages = payload[0]["message"]
            detail = messages[0].get("value", "Unknown error") if isinstance(messages, list) and messages else str(messages)
            raise DataNotAvailableError(f"World Bank API error for {indicator}: {detail}", provider="wb")
        if not isinstance(payload, list):
            raise DecodeError(f"Invalid World Bank response for {indicator}", fmt="json")

    @staticmethod
    def _unit_from_name(indicator_name: str) -> str:
        # "GDP per capita (constant 2015 US$)" -> "constant 2015 US$"
        if "(" in indicator_name and ")" in indicator_name:
            return indicator_name[indicator_name.rfind("(") + 1:indicator_name.rfind(")")]
        if "%" in indicator_name or "percent" in indicator_name.lower():
            return "%"
        return ""

    async def fetch_series(self, provider_id: Any, geo: Optional[str] = None, years: Optional[Years] = None) -> Series:
        indicator = str(provider_id)
        country_code = self._country_code(geo)

        params: Dict[str, Any] = {"format": "json", "per_page": 20000}
        start, end = self._year_bounds(years)
        if start:
            params["date"] = f"{start}:{end}"

        url = f"{self.base_url}/country/{country_code}/indicator/{indicator}"
        result = await self._get_json(url, params=params)
        payload = result.data
        self._check_error(payload, indicator)

        records = payload[1] if len(payload) > 1 and isinstance(payload[1], list) else []
        observations: List[Observation] = []
        for entry in records:
            if not isinstance(entry, dict) or entry.get("value") is None or not entry.get("date"):
                continue
            try:
                value = float(entry["value"])
            except (TypeError, ValueError):
                continue
            country = entry.get("countryiso3code") or (entry.get("country") or {}).get("id")
            observations.append(Observation(time=str(entry["date"]), value=value, geo=country or None))

        if not observations:
            raise DataNotAvailableError(f"No data for {country_code} indicator {indicator}", provider=self.provider_key)

        first = next((entry for entry in records if isinstance(entry, dict)), {})
        indicator_name = (first.get("indicator") or {}).get("value", indicator)
        unit = first.get("unit") or self._unit_from_name(indicator_name)
        return self._build_series(indicator, observations, result.url, unit=unit, definition=indicator_name)
