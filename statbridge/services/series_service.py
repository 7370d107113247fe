"""
Series Service

Composes the pieces into the one call callers need:

    free-form query -> alias map -> semantic id -> equivalence entry
        -> routing policy (provider fallback) -> enriched Series

Enrichment stamps the canonical semantic id, the equivalence label/unit,
a normalized-unit note, the evaluated provider order and geography codes
spelled the way the request spelled them.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from ..config import get_settings
from ..models import (
    PROVIDER_KEYS,
    Failure,
    ProviderOutcome,
    RegionSystem,
    ResolvedAlias,
    RoutingOutcome,
    Series,
)
from ..providers.base import BaseProvider, Years
from ..providers.registry import get_providers
from ..routing.country_resolver import CountryResolver
from ..routing.policy import RoutingExplanation, RoutingPolicy
from ..routing.region_codes import get_region_crosswalk, guess_region_system
from .equivalence import EquivalenceEntry, EquivalenceTable, get_equivalence
from .indicator_aliases import SemanticAliasMap, get_alias_map
from .units import StandardUnit, normalize_unit

logger = logging.getLogger(__name__)

_COUNTRY_SYSTEMS = (RegionSystem.ISO2, RegionSystem.ISO3, RegionSystem.NUMERIC)


class SeriesService:
    """Alias resolution, provider routing and enrichment for one indicator request."""

    def __init__(
        self,
        equivalence: Optional[EquivalenceTable] = None,
        providers: Optional[Mapping[str, BaseProvider]] = None,
        alias_map: Optional[SemanticAliasMap] = None,
        policy: Optional[RoutingPolicy] = None,
    ):
        self.equivalence = equivalence or get_equivalence()
        self.providers = providers if providers is not None else get_providers()
        self.alias_map = alias_map or get_alias_map()
        self.policy = policy or RoutingPolicy(self.equivalence)
        # Every equivalence id resolves to itself unless an alias already claims its key
        added = self.alias_map.register_canonical_ids(self.equivalence.semantic_ids())
        logger.debug(f"Registered {added} equivalence ids in the alias map")

    def resolve(self, query: str) -> ResolvedAlias:
        return self.alias_map.resolve(query)

    async def get_series(
        self,
        query: str,
        geo: Optional[str] = None,
        years: Optional[Years] = None,
        prefer: Optional[str] = None,
        strict: bool = False,
    ) -> RoutingOutcome:
        """
        Fetch one indicator for one geography.

        Args:
            query: Semantic id or any known alias ("jobless rate", "imr")
            geo: Region code in any supported system (default: DEFAULT_GEO)
            years: Inclusive (start, end) year range
            prefer: Provider key to try first
            strict: Only try `prefer`

        Returns:
            RoutingOutcome. Unknown indicators and unknown providers come back
            with an error and no fetch is attempted.
        """
        geo = (geo or get_settings().default_geo).strip()
        resolved = self.resolve(query)
        semantic_id = resolved.semantic_id

        if prefer and prefer not in PROVIDER_KEYS:
            return RoutingOutcome(errors=[f"Unknown provider '{prefer}'; expected one of {', '.join(PROVIDER_KEYS)}"])

        entry = self.equivalence.get(semantic_id)
        if entry is None:
            logger.info(f"No equivalence entry for '{query}' (resolved to '{semantic_id}')")
            return RoutingOutcome(errors=[f"Unknown indicator '{query}'"])

        if resolved.matched_alias:
            logger.info(f"Resolved alias '{resolved.matched_alias}' -> {semantic_id}")

        async def fetch_fn(provider: str, provider_id: Any) -> ProviderOutcome:
            impl = self.providers.get(provider)
            if impl is None:
                return Failure(message=f"Provider '{provider}' is not configured", error_type="ConfigurationError")
            return await impl.attempt(provider_id, geo, years)

        outcome = await self.policy.route(semantic_id, geo, fetch_fn, prefer=prefer, strict=strict)
        if outcome.series is not None:
            outcome.series = self._enrich(outcome.series, semantic_id, entry, outcome, geo)
        return outcome

    def _enrich(
        self,
        series: Series,
        semantic_id: str,
        entry: EquivalenceEntry,
        outcome: RoutingOutcome,
        geo: str,
    ) -> Series:
        unit = entry.unit or series.unit
        notes: List[str] = []
        if series.method_notes:
            notes.append(series.method_notes)

        normalized = normalize_unit(unit)
        if normalized.unit != StandardUnit.UNKNOWN and normalized.original != normalized.unit.value:
            notes.append(f"Unit normalized: '{unit}' -> {normalized.unit.value}")
        if entry.unit and series.unit and entry.unit != series.unit:
            notes.append(f"Provider unit: {series.unit}")

        notes.append(
            f"Selected provider: {outcome.provider_used}; evaluated order: {' -> '.join(outcome.provider_order)}"
        )

        data = series.model_dump()
        data.update(
            semantic_id=semantic_id,
            unit=unit,
            definition=series.definition or entry.description or entry.label,
            method_notes="; ".join(notes),
            values=[
                {**obs, "geo": self._normalize_geo(obs["geo"], geo)}
                for obs in data["values"]
            ],
        )
        return Series.model_validate(data)

    @staticmethod
    def _normalize_geo(code: Optional[str], requested: str) -> Optional[str]:
        """Spell a national observation geo in the request's coding system ("EL" -> "GR" for an ISO2 request)."""
        if not code:
            return code
        target = guess_region_system(requested)
        if target not in _COUNTRY_SYSTEMS:
            return code
        source = guess_region_system(code)
        if source not in _COUNTRY_SYSTEMS:
            return code
        iso2 = CountryResolver.normalize(code)
        if not iso2:
            return code
        return get_region_crosswalk().map_region_code(iso2, target, RegionSystem.ISO2) or code

    def explain_routing(self, query: str, geo: Optional[str] = None) -> RoutingExplanation:
        """Describe which providers would be tried, in which order, without fetching."""
        semantic_id = self.resolve(query).semantic_id
        return self.policy.explain(semantic_id, geo or get_settings().default_geo)

    def list_semantic_ids(self) -> List[Dict[str, Any]]:
        """Every known indicator with its label, unit, providers and aliases."""
        indicators = []
        for semantic_id in self.equivalence.semantic_ids():
            entry = self.equivalence.get(semantic_id)
            indicators.append({
                "id": semantic_id,
                "label": entry.label,
                "unit": entry.unit,
                "providers": list(entry.provider_ids()),
                "aliases": self.alias_map.aliases_for(semantic_id),
            })
        return indicators


_series_service: Optional[SeriesService] = None


def get_series_service() -> SeriesService:
    """Get the global series service."""
    global _series_service
    if _series_service is None:
        _series_service = SeriesService()
    return _series_service
