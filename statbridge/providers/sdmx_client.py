"""
Generic SDMX REST client.

Covers the three calls the providers need: dataflow metadata, data structure
definitions (with their codelists) and data queries. Also home to the
structure-reference parser and the dimension key template builder.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Literal, Mapping, NamedTuple, Optional, Sequence
from urllib.parse import quote

from pydantic import BaseModel, Field

from ..config import get_settings
from ..models import DimensionCode
from ..services.fetch import FetchResult, get_json
from ..utils.retry import fetch_with_retry

logger = logging.getLogger(__name__)

STRUCTURE_ACCEPT = "application/vnd.sdmx.structure+json;version=1.0.0-wd, application/json;q=0.9"
DATA_ACCEPT = "application/vnd.sdmx.data+json;version=1.0.0-wd, application/json;q=0.9"

References = Literal["none", "parents", "children", "descendants", "all"]

# "...DataStructure=OECD.SDD.TPS:DSD_LFS(1.0)" -> agency, id, version
_URN_PATTERN = re.compile(r"=([^:=]+):([^(]+)\(([^)]+)\)$")
_PLACEHOLDER = re.compile(r"\{([^}]+)\}")


class StructureRef(NamedTuple):
    agency_id: str
    id: str
    version: str


def parse_structure_urn(urn: Optional[str]) -> Optional[StructureRef]:
    """
    Parse an SDMX structure or codelist reference.

    Agency, id and version are all required; anything else yields None.
    """
    if not urn or not isinstance(urn, str):
        return None
    match = _URN_PATTERN.search(urn.strip())
    if not match:
        return None
    agency_id, ident, version = (part.strip() for part in match.groups())
    if not agency_id or not ident or not version:
        return None
    return StructureRef(agency_id, ident, version)


class KeyBuildResult(BaseModel):
    key: str
    missing: List[str] = Field(default_factory=list)
    invalid: List[str] = Field(default_factory=list)


def build_key_from_template(
    template: str,
    values: Mapping[str, Optional[str]],
    dimensions: Optional[Mapping[str, Sequence[DimensionCode]]] = None,
    dimension_map: Optional[Mapping[str, str]] = None,
    strict: bool = False,
) -> KeyBuildResult:
    """
    Fill `{PLACEHOLDER}` slots of a dot-separated SDMX key.

    Args:
        template: e.g. "{LOCATION}.UNE_LF_M..Y._T.Y_GE15..M"
        values: Placeholder -> code
        dimensions: Dimension id -> allowed codes; values not in the list are
            reported as invalid (and blanked when strict)
        dimension_map: Placeholder -> dimension id when they differ
        strict: Drop invalid values instead of passing them through

    Returns:
        KeyBuildResult with the key and the missing/invalid placeholder names.
        Segments stay positional: a missing or blanked value leaves an empty
        (wildcard) segment in place.
    """
    dimension_map = dimension_map or {}
    dimensions = dimensions or {}
    missing: List[str] = []
    invalid: List[str] = []

    def _fill(match: re.Match) -> str:
        placeholder = match.group(1).strip()
        value = values.get(placeholder)
        if not value:
            missing.append(placeholder)
            return ""

        dimension_id = dimension_map.get(placeholder, placeholder)
        codes = dimensions.get(dimension_id) or dimensions.get(dimension_id.upper())
        if codes:
            allowed = {code.id for code in codes}
            if value not in allowed:
                invalid.append(placeholder)
                if strict:
                    return ""
        return value

    key = _PLACEHOLDER.sub(_fill, template)
    return KeyBuildResult(key=key, missing=missing, invalid=invalid)


def split_flow_id(flow_id: str) -> tuple[Optional[str], str, Optional[str]]:
    """Split "AGENCY,ID,VERSION" (any part optional) into its components."""
    parts = [part.strip() for part in flow_id.split(",")]
    if len(parts) == 3:
        return parts[0] or None, parts[1], parts[2] or None
    if len(parts) == 2:
        return parts[0] or None, parts[1], None
    return None, flow_id.strip(), None


class SdmxClient:
    """Thin async wrapper around an SDMX 2.1 REST endpoint."""

    def __init__(
        self,
        base_url: str,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
        structure_timeout: Optional[float] = None,
    ) -> None:
        settings = get_settings()
        self.base_url = base_url.rstrip("/")
        self.headers = dict(headers or {})
        self.timeout = timeout or settings.http_timeout
        # Structure endpoints can take a minute on large agencies
        self.structure_timeout = structure_timeout or settings.structure_timeout

    def _url(self, *segments: str) -> str:
        return "/".join([self.base_url, *(quote(segment, safe="@,+.") for segment in segments)])

    async def _get(
        self,
        url: str,
        accept: str,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> FetchResult:
        settings = get_settings()
        headers = {**self.headers, "Accept": accept}

        async def _call() -> FetchResult:
            return await get_json(url, headers=headers, params=params, timeout=timeout or self.timeout)

        return await fetch_with_retry(
            _call,
            tries=settings.http_retry_tries,
            base_delay=settings.http_retry_base_delay,
            rate_limit_floor=settings.rate_limit_floor,
        )

    async def get_dataflow(
        self,
        flow_id: str,
        references: References = "none",
    ) -> FetchResult:
        """Fetch dataflow metadata; "all" agency when the id carries none."""
        agency, ident, version = split_flow_id(flow_id)
        segments = ["dataflow", agency or "all", ident]
        if version:
            segments.append(version)
        params = {"references": references} if references != "none" else None
        return await self._get(self._url(*segments), STRUCTURE_ACCEPT, params=params, timeout=self.structure_timeout)

    async def get_datastructure(
        self,
        agency_id: str,
        structure_id: str,
        version: Optional[str] = None,
        references: References = "descendants",
    ) -> FetchResult:
        segments = ["datastructure", agency_id, structure_id]
        if version:
            segments.append(version)
        params = {"references": references} if references != "none" else None
        return await self._get(self._url(*segments), STRUCTURE_ACCEPT, params=params, timeout=self.structure_timeout)

    async def get_data(
        self,
        flow_id: str,
        key: str,
        start_period: Optional[str] = None,
        end_period: Optional[str] = None,
        dimension_at_observation: Optional[str] = "AllDimensions",
        format: Optional[str] = "jsondata",
        extra_params: Optional[Mapping[str, Any]] = None,
    ) -> FetchResult:
        """
        Fetch observations for one flow and dimension key.

        The default `dimensionAtObservation=AllDimensions` keeps every
        observation in the flat index-keyed map that parse_sdmx_json reads.
        """
        params: Dict[str, Any] = {}
        if format:
            params["format"] = format
        if dimension_at_observation:
            params["dimensionAtObservation"] = dimension_at_observation
        if start_period:
            params["startPeriod"] = start_period
        if end_period:
            params["endPeriod"] = end_period
        for name, value in (extra_params or {}).items():
            if value is not None:
                params[name] = value

        url = self._url("data", flow_id, key or "all")
        logger.info(f"SDMX data request: {url} {params}")
        return await self._get(url, DATA_ACCEPT, params=params)
