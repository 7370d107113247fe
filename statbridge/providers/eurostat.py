from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from ..config import get_settings
from ..exceptions import DataNotAvailableError
from ..models import RegionSystem, Series
from ..parsers.documents import JsonStatDataset
from ..parsers.jsonstat import decode_jsonstat
from ..routing.country_resolver import CountryResolver, GeoLevel
from ..routing.region_codes import get_region_crosswalk, guess_region_system
from ..services.equivalence import EurostatMapping
from .base import BaseProvider, Years

logger = logging.getLogger(__name__)


class EurostatProvider(BaseProvider):
    """Eurostat dissemination API (JSON-stat 2.0, statistics/1.0 endpoints)."""

    supports_subnational = True

    # Required extra dimensions for regional datasets; without them the
    # API returns every breakdown in one cube
    REGIONAL_DATASET_DIMENSIONS: Dict[str, Dict[str, str]] = {
        "LFST_R_LFE2EMPRT": {"sex": "T", "age": "Y15-64", "unit": "PC"},
        "LFST_R_LFU3RT": {"sex": "T", "age": "Y15-74", "unit": "PC", "isced11": "TOTAL"},
        "DEMO_R_PJANGRP3": {"sex": "T", "age": "TOTAL"},
    }

    @property
    def provider_key(self) -> str:
        return "eurostat"

    def __init__(self, base_url: Optional[str] = None, cache_ttl_ms: Optional[int] = None, timeout: Optional[float] = None) -> None:
        settings = get_settings()
        super().__init__(
            base_url or settings.eurostat_base_url,
            cache_ttl_ms if cache_ttl_ms is not None else settings.eurostat_cache_ttl_ms,
            timeout,
        )

    def _geo_code(self, geo: str) -> str:
        """Translate a region code to the NUTS spelling Eurostat uses (GR -> EL, 0180 -> SE110)."""
        code = geo.strip().upper()
        system = guess_region_system(code)
        if system == RegionSystem.HIERARCHICAL:
            return code
        mapped = get_region_crosswalk().map_region_code(code, RegionSystem.HIERARCHICAL, system)
        if not mapped:
            raise DataNotAvailableError(f"No Eurostat geography for '{geo}'", provider=self.provider_key)
        return mapped

    def build_query(
        self,
        mapping: EurostatMapping,
        geo: Optional[str] = None,
        years: Optional[Years] = None,
    ) -> tuple[str, Dict[str, str], GeoLevel]:
        """
        Pick the dataset and query parameters for one request.

        Sub-national geographies use the mapping's regional dataset (when it
        has one) together with that dataset's required dimensions.

        Returns:
            (dataset code, query parameters, geography level)
        """
        level = CountryResolver.geo_level(geo)
        dataset = mapping.dataset
        filters: Dict[str, str] = dict(mapping.filters)
        if level != "national" and mapping.regional_dataset:
            dataset = mapping.regional_dataset
            filters = dict(self.REGIONAL_DATASET_DIMENSIONS.get(dataset.upper(), {}))

        params: Dict[str, str] = {"lang": "EN"}
        if geo:
            params["geo"] = self._geo_code(geo)
        start, end = self._year_bounds(years)
        if start:
            params["sinceTimePeriod"] = start
            params["untilTimePeriod"] = end
        params.update(filters)
        return dataset, params, level

    @staticmethod
    def _unit_label(dataset: JsonStatDataset, unit_code: Optional[str]) -> str:
        dimension = dataset.dimension.get("unit")
        if dimension is None:
            return ""
        labels = dimension.category.label or {}
        if unit_code and unit_code in labels:
            return labels[unit_code]
        codes = dimension.category.ordered_codes()
        # A single-unit cube names its unit even when the query did not
        if len(codes) == 1:
            return labels.get(codes[0], codes[0])
        return ""

    async def fetch_series(self, provider_id: Any, geo: Optional[str] = None, years: Optional[Years] = None) -> Series:
        mapping = provider_id if isinstance(provider_id, EurostatMapping) else EurostatMapping(dataset=str(provider_id))
        dataset, params, level = self.build_query(mapping, geo, years)

        url = f"{self.base_url}/data/{dataset}"
        result = await self._get_json(url, params=params)

        observations = decode_jsonstat(result.data, time_dim="time", geo_dim="geo", use_labels=False)
        if not observations:
            raise DataNotAvailableError(
                f"No data found for {params.get('geo', 'all')} in dataset {dataset}",
                provider=self.provider_key,
            )

        document = JsonStatDataset.from_payload(result.data)
        geo_note = f"Regional data from Eurostat at {level} level" if level != "national" else None
        return self._build_series(
            dataset,
            observations,
            result.url,
            unit=self._unit_label(document, params.get("unit")),
            definition=document.label,
            method_notes=geo_note,
        )
