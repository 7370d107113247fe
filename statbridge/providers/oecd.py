from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..config import get_settings
from ..exceptions import DataNotAvailableError, StatBridgeError, UnresolvedStructureError
from ..models import DimensionCode, Observation, RegionSystem, Series
from ..parsers.sdmx_json import SdmxParseResult, parse_sdmx_json, rows_to_observations
from ..routing.region_codes import get_region_crosswalk
from ..services.dsd_cache import DimensionResolver, get_dimension_resolver
from ..services.equivalence import SdmxMapping
from .base import BaseProvider, Years
from .sdmx_client import SdmxClient, build_key_from_template

logger = logging.getLogger(__name__)

UNIT_DIMENSION_IDS = ("UNIT_MEASURE", "UNIT", "MEASURE")


class SdmxDataProvider(BaseProvider):
    """Shared behaviour of the SDMX-JSON agencies (OECD, ILOSTAT).

    The equivalence mapping names the dataflow and a key template; geography
    placeholders ({LOCATION}, {REF_AREA}) are filled with the ISO3 code. When
    the flow's codelists can be resolved, placeholder values are checked
    against them and the codes decorate the decoded observations.
    """

    GEO_PLACEHOLDERS = ("LOCATION", "REF_AREA")

    def __init__(
        self,
        base_url: str,
        cache_ttl_ms: Optional[int] = None,
        timeout: Optional[float] = None,
        client: Optional[SdmxClient] = None,
        resolver: Optional[DimensionResolver] = None,
    ) -> None:
        super().__init__(base_url, cache_ttl_ms, timeout)
        self.client = client or SdmxClient(self.base_url, timeout=self.timeout)
        self.resolver = resolver or get_dimension_resolver(self.base_url, self.provider_key)

    async def _dimension_codes(self, flow: str) -> Dict[str, List[DimensionCode]]:
        try:
            return await self.resolver.resolve(flow)
        except StatBridgeError as e:
            logger.warning(f"{self.provider_key}: codelists for {flow} unavailable, building key unchecked: {e.message}")
            return {}

    def _iso3(self, geo: Optional[str]) -> Optional[str]:
        if not geo:
            return None
        iso3 = get_region_crosswalk().map_region_code(geo, RegionSystem.ISO3)
        if not iso3:
            raise DataNotAvailableError(f"No ISO3 country for '{geo}'", provider=self.provider_key)
        return iso3

    async def build_key(self, mapping: SdmxMapping, geo: Optional[str]) -> str:
        """
        Fill the mapping's key template for one geography.

        Raises:
            DataNotAvailableError: a placeholder has no value, or the geography
                is not in the flow's codelist
        """
        iso3 = self._iso3(geo)
        if not mapping.key_template:
            return "all"

        values: Dict[str, Optional[str]] = dict(mapping.placeholders)
        for placeholder in self.GEO_PLACEHOLDERS:
            values.setdefault(placeholder, iso3)

        codes = await self._dimension_codes(mapping.flow)
        # Older flows call the area dimension LOCATION, current ones REF_AREA
        dimension_map = {p: "REF_AREA" for p in self.GEO_PLACEHOLDERS if p not in codes}
        built = build_key_from_template(mapping.key_template, values, dimensions=codes, dimension_map=dimension_map)
        if built.missing:
            raise DataNotAvailableError(
                f"Key template for {mapping.flow} needs {', '.join(built.missing)}",
                provider=self.provider_key,
            )
        if built.invalid:
            raise DataNotAvailableError(
                f"{', '.join(built.invalid)} value not in the {mapping.flow} codelist (geo={iso3})",
                provider=self.provider_key,
            )
        return built.key

    @staticmethod
    def _unit_of(result: SdmxParseResult) -> str:
        for dimension in result.dimensions:
            if dimension.id.upper() in UNIT_DIMENSION_IDS and len(dimension.codes) == 1:
                code = dimension.codes[0]
                return code.name or code.id
        return ""

    async def _decode(self, mapping: SdmxMapping, payload: Any) -> SdmxParseResult:
        """
        Decode a data response, filling codes the payload does not embed from
        the flow's codelists.

        Raises:
            UnresolvedStructureError: a dimension has no embedded codes and the
                flow's codelists cannot be resolved
        """
        parsed = parse_sdmx_json(payload)
        undecoded = [dimension.id for dimension in parsed.dimensions if not dimension.codes]
        if not undecoded:
            return parsed

        try:
            codes = await self.resolver.resolve(mapping.flow)
        except StatBridgeError as e:
            raise UnresolvedStructureError(
                f"{mapping.flow}: no codes for {', '.join(undecoded)} and codelists unavailable: {e.message}",
                flow_id=mapping.flow,
            ) from e
        return parse_sdmx_json(payload, dimension_codes=codes)

    async def fetch_series(self, provider_id: Any, geo: Optional[str] = None, years: Optional[Years] = None) -> Series:
        mapping = provider_id if isinstance(provider_id, SdmxMapping) else SdmxMapping(flow=str(provider_id))
        key = await self.build_key(mapping, geo)
        start, end = self._year_bounds(years)

        async def _load():
            return await self.client.get_data(mapping.flow, key, start_period=start, end_period=end)

        result = await self._cached(
            {"url": f"{self.base_url}/data/{mapping.flow}/{key}", "start": start, "end": end},
            _load,
        )

        parsed = await self._decode(mapping, result.data)
        observations: List[Observation] = rows_to_observations(parsed)

        iso3 = self._iso3(geo)
        if iso3 and key == "all":
            # Rows whose area cannot be read are not attributed to the requested country
            observations = [obs for obs in observations if obs.geo == iso3]
        if not observations:
            raise DataNotAvailableError(f"No observations in {mapping.flow} for key {key}", provider=self.provider_key)

        return self._build_series(
            str(mapping),
            observations,
            result.url,
            unit=self._unit_of(parsed),
            definition=parsed.title,
        )


class OECDProvider(SdmxDataProvider):
    """OECD Data Explorer SDMX REST API (sdmx.oecd.org)."""

    @property
    def provider_key(self) -> str:
        return "oecd"

    def __init__(self, base_url: Optional[str] = None, cache_ttl_ms: Optional[int] = None, **kwargs) -> None:
        settings = get_settings()
        super().__init__(
            base_url or settings.oecd_base_url,
            cache_ttl_ms if cache_ttl_ms is not None else settings.oecd_cache_ttl_ms,
            **kwargs,
        )
