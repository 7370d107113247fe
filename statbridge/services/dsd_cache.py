"""
Dimension/codelist resolution for SDMX flows.

SDMX-JSON data responses do not always embed the code list of every
dimension. The resolver recovers them from structural metadata:

1. Fetch the dataflow and read its data structure reference
2. Fetch the data structure definition with its descendant codelists
3. Join each dimension's codelist reference to the fetched codelists,
   falling back to inline dimension values

Results are memoized per flow for the life of the process. Concurrent
requests for the same flow share a single in-flight resolution.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

from ..exceptions import UnresolvedStructureError
from ..models import DimensionCode
from ..providers.sdmx_client import SdmxClient, parse_structure_urn, split_flow_id

logger = logging.getLogger(__name__)

DimensionCodes = Dict[str, List[DimensionCode]]


def _code_from(value: Dict[str, Any]) -> Optional[DimensionCode]:
    ident = value.get("id")
    if ident is None:
        return None
    name = value.get("name")
    if not isinstance(name, str):
        names = value.get("names") or (name if isinstance(name, dict) else {})
        name = names.get("en") if isinstance(names, dict) else None
    return DimensionCode(id=str(ident), name=name)


def _structure_body(document: Any) -> Dict[str, Any]:
    if not isinstance(document, dict):
        return {}
    body = document.get("data")
    return body if isinstance(body, dict) else document


class DimensionResolver:
    """Per-flow memo of dimension code lists with single-flight loading."""

    def __init__(self, client: SdmxClient, name: str = "sdmx"):
        """
        Args:
            client: SDMX REST client for the agency that owns the flows
            name: Label used in log messages
        """
        self.client = client
        self.name = name
        self._resolved: Dict[str, DimensionCodes] = {}
        self._inflight: Dict[str, asyncio.Future] = {}

    async def resolve(self, flow_id: str) -> DimensionCodes:
        """
        Get the code lists of every dimension of a flow.

        Returns:
            Upper-cased dimension id -> codes in declared order

        Raises:
            UnresolvedStructureError: the flow, its structure reference, a
                codelist reference, or a referenced codelist cannot be found
            HttpError: metadata fetch failed after retries
        """
        cached = self._resolved.get(flow_id)
        if cached is not None:
            logger.debug(f"{self.name} structure cache hit: {flow_id}")
            return cached

        task = self._inflight.get(flow_id)
        if task is None:
            logger.info(f"{self.name} structure cache miss: {flow_id}, fetching metadata")
            task = asyncio.ensure_future(self._load(flow_id))
            self._inflight[flow_id] = task
            task.add_done_callback(lambda done, key=flow_id: self._settle(key, done))

        # A cancelled waiter must not cancel the load the others are waiting on
        return await asyncio.shield(task)

    def _settle(self, flow_id: str, task: asyncio.Future) -> None:
        self._inflight.pop(flow_id, None)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(f"{self.name} structure resolution failed for {flow_id}: {exc}")

    async def codes_for(self, flow_id: str, dimension_id: str) -> List[DimensionCode]:
        dimensions = await self.resolve(flow_id)
        return list(dimensions.get(dimension_id.upper(), []))

    def is_resolved(self, flow_id: str) -> bool:
        return flow_id in self._resolved

    def clear(self) -> None:
        self._resolved.clear()

    async def _load(self, flow_id: str) -> DimensionCodes:
        flow = await self._find_flow(flow_id)
        structure_ref = parse_structure_urn(flow.get("structure"))
        if structure_ref is None:
            raise UnresolvedStructureError(
                f"Cannot parse structure reference {flow.get('structure')!r} of flow {flow_id}",
                flow_id=flow_id,
            )

        response = await self.client.get_datastructure(
            structure_ref.agency_id,
            structure_ref.id,
            structure_ref.version,
            references="descendants",
        )
        body = _structure_body(response.data)

        structures = body.get("dataStructures") or []
        try:
            dimensions = structures[0]["dataStructureComponents"]["dimensionList"]["dimensions"]
        except (IndexError, KeyError, TypeError):
            raise UnresolvedStructureError(
                f"Data structure {structure_ref.id} of flow {flow_id} declares no dimensions",
                flow_id=flow_id,
            ) from None

        codelists: Dict[Tuple[str, str], List[DimensionCode]] = {}
        for codelist in body.get("codelists") or []:
            key = (codelist.get("agencyID") or "default", codelist.get("id") or "")
            codelists[key] = [code for code in map(_code_from, codelist.get("codes") or []) if code]

        resolved: DimensionCodes = {}
        for dimension in dimensions:
            dimension_id = str(dimension.get("id", "")).upper()
            enumeration = (dimension.get("localRepresentation") or {}).get("enumeration")
            codes: List[DimensionCode] = []

            if enumeration:
                codelist_ref = parse_structure_urn(enumeration)
                if codelist_ref is None:
                    raise UnresolvedStructureError(
                        f"Cannot parse codelist reference {enumeration!r} of dimension {dimension_id}",
                        flow_id=flow_id,
                    )
                found = codelists.get((codelist_ref.agency_id, codelist_ref.id))
                if found is None:
                    raise UnresolvedStructureError(
                        f"Codelist {codelist_ref.agency_id}:{codelist_ref.id} for dimension "
                        f"{dimension_id} missing from structure response",
                        flow_id=flow_id,
                    )
                codes = list(found)
            else:
                codes = [code for code in map(_code_from, dimension.get("values") or []) if code]

            resolved[dimension_id] = codes

        self._resolved[flow_id] = resolved
        logger.info(f"{self.name} structure resolved for {flow_id}: {len(resolved)} dimensions")
        return resolved

    async def _find_flow(self, flow_id: str) -> Dict[str, Any]:
        response = await self.client.get_dataflow(flow_id)
        body = _structure_body(response.data)
        flows = body.get("dataflows") or []
        agency, ident, _ = split_flow_id(flow_id)

        for flow in flows:
            if flow.get("id") != ident:
                continue
            if agency and flow.get("agencyID") not in (None, agency):
                continue
            if not flow.get("structure"):
                break
            return flow

        raise UnresolvedStructureError(f"Flow {flow_id} missing structure metadata", flow_id=flow_id)


# Global singleton instances, one per agency base URL
_resolvers: Dict[str, DimensionResolver] = {}


def get_dimension_resolver(base_url: str, name: str = "sdmx") -> DimensionResolver:
    """Get the process-wide resolver for an SDMX endpoint."""
    resolver = _resolvers.get(base_url)
    if resolver is None:
        resolver = DimensionResolver(SdmxClient(base_url), name=name)
        _resolvers[base_url] = resolver
    return resolver


def reset_dimension_resolvers() -> None:
    _resolvers.clear()
