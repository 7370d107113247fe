"""
Provider routing and fallback.

Candidate order:
1. Baseline order from the geography (EU member -> Eurostat first,
   otherwise World Bank first)
2. Restricted to providers with a mapping for the semantic id
3. Sub-national geographies move Eurostat to the front when no provider
   is preferred
4. A preferred provider is promoted, or prepended when it has no mapping
5. strict collapses the list to the preferred provider alone

Candidates are then tried one at a time. The first one that returns at
least one observation wins; empty results and failures move on to the next.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, Field

from ..models import (
    Empty,
    Failure,
    PROVIDER_KEYS,
    ProviderAttempt,
    ProviderOutcome,
    RoutingOutcome,
    Series,
    Success,
)
from .country_resolver import CountryResolver

logger = logging.getLogger(__name__)

EU_ORDER = ["eurostat", "oecd", "wb", "ilostat"]
DEFAULT_ORDER = ["wb", "oecd", "eurostat", "ilostat"]

FetchFn = Callable[[str, Any], Awaitable[Union[ProviderOutcome, Series]]]
GeoClassifier = Callable[[Optional[str]], bool]


class CandidatePlan(BaseModel):
    order: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    reason: str = ""


class RoutingExplanation(BaseModel):
    semantic_id: str
    geography: str
    order: List[str]
    reason: str
    mappings: Dict[str, str]
    available_providers: List[str]
    unavailable_providers: List[str]


def baseline_order(geo: Optional[str], classify_geo: GeoClassifier = CountryResolver.is_eu_member) -> List[str]:
    return list(EU_ORDER if geo and classify_geo(geo) else DEFAULT_ORDER)


def plan_candidates(
    provider_mapping: Mapping[str, Any],
    geo: Optional[str] = None,
    prefer: Optional[str] = None,
    strict: bool = False,
    classify_geo: GeoClassifier = CountryResolver.is_eu_member,
) -> CandidatePlan:
    """Build the ordered candidate list for one request."""
    is_eu = bool(geo) and classify_geo(geo)
    base = EU_ORDER if is_eu else DEFAULT_ORDER
    reason = (
        "EU country detected: Eurostat prioritized"
        if is_eu
        else "Non-EU or unspecified: World Bank prioritized"
    )

    if prefer and prefer not in PROVIDER_KEYS:
        return CandidatePlan(
            order=[],
            errors=[f"{prefer}: unknown provider; expected one of {', '.join(PROVIDER_KEYS)}"],
            reason="Preferred provider is not known",
        )

    if strict and prefer:
        if not provider_mapping.get(prefer):
            return CandidatePlan(
                order=[],
                errors=[f"{prefer}: no mapping for this indicator (strict preference)"],
                reason="Strict preference for a provider without a mapping",
            )
        return CandidatePlan(order=[prefer], reason=f"Strict preference: only {prefer}")

    order = [provider for provider in base if provider_mapping.get(provider)]

    if not prefer and "eurostat" in order and CountryResolver.is_subnational(geo):
        order = ["eurostat"] + [p for p in order if p != "eurostat"]
        reason = "Sub-national geography: Eurostat prioritized"

    if prefer:
        order = [prefer] + [p for p in order if p != prefer]
        reason = f"{reason}; {prefer} preferred"

    return CandidatePlan(order=order, reason=reason)


def _as_outcome(result: Union[ProviderOutcome, Series, None]) -> ProviderOutcome:
    if isinstance(result, (Success, Empty, Failure)):
        return result
    if isinstance(result, Series):
        return Success(series=result) if result.values else Empty(reason="no observations")
    return Empty(reason="no result")


async def route(
    semantic_id: str,
    geo: Optional[str],
    prefer: Optional[str],
    strict: bool,
    provider_mapping: Mapping[str, Any],
    fetch_fn: FetchFn,
    classify_geo: GeoClassifier = CountryResolver.is_eu_member,
) -> RoutingOutcome:
    """
    Try candidate providers in order until one returns data.

    Args:
        semantic_id: Canonical indicator id
        geo: Requested geography
        prefer: Provider to try first
        strict: Only try `prefer`
        provider_mapping: Provider -> provider-specific id/mapping
        fetch_fn: async (provider, provider_id) -> Success | Empty | Failure
            (a Series is also accepted; exceptions are recorded as failures)

    Returns:
        RoutingOutcome. Running out of providers is not an error: series is
        None and `errors` lists each failure as "{provider}: {message}".
    """
    plan = plan_candidates(provider_mapping, geo, prefer, strict, classify_geo)
    outcome = RoutingOutcome(provider_order=list(plan.order), errors=list(plan.errors))

    for provider in plan.order:
        # A preferred provider without a mapping is asked for the semantic id itself
        provider_id = provider_mapping.get(provider) or semantic_id
        try:
            result = _as_outcome(await fetch_fn(provider, provider_id))
        except Exception as e:
            result = Failure(message=str(e) or type(e).__name__, error_type=type(e).__name__)

        if isinstance(result, Success) and result.series.values:
            outcome.attempts.append(
                ProviderAttempt(provider=provider, status="success", observations=len(result.series.values))
            )
            outcome.series = result.series
            outcome.provider_used = provider
            logger.info(f"Routing {semantic_id} ({geo}): {provider} returned {len(result.series.values)} observations")
            return outcome

        if isinstance(result, Failure):
            outcome.errors.append(f"{provider}: {result.message}")
            outcome.attempts.append(
                ProviderAttempt(
                    provider=provider,
                    status="error",
                    message=result.message,
                    error_type=result.error_type,
                )
            )
            logger.warning(f"Routing {semantic_id} ({geo}): {provider} failed: {result.message}")
        else:
            reason = result.reason if isinstance(result, Empty) else "no observations"
            outcome.attempts.append(ProviderAttempt(provider=provider, status="empty", message=reason))
            logger.info(f"Routing {semantic_id} ({geo}): {provider} returned no data")

    return outcome


class RoutingPolicy:
    """Routing bound to an equivalence table and a geography classifier."""

    def __init__(self, equivalence, classify_geo: GeoClassifier = CountryResolver.is_eu_member):
        """
        Args:
            equivalence: Object with provider_ids(semantic_id) (EquivalenceTable),
                or a plain mapping of semantic id -> {provider: id}
            classify_geo: Predicate choosing the EU baseline order
        """
        self.equivalence = equivalence
        self.classify_geo = classify_geo

    def provider_ids(self, semantic_id: str) -> Dict[str, Any]:
        if hasattr(self.equivalence, "provider_ids"):
            return self.equivalence.provider_ids(semantic_id)
        mapping = self.equivalence.get(semantic_id) or {}
        return {provider: mapping[provider] for provider in DEFAULT_ORDER if mapping.get(provider)}

    def candidate_order(
        self,
        semantic_id: str,
        geo: Optional[str] = None,
        prefer: Optional[str] = None,
        strict: bool = False,
    ) -> CandidatePlan:
        return plan_candidates(self.provider_ids(semantic_id), geo, prefer, strict, self.classify_geo)

    async def route(
        self,
        semantic_id: str,
        geo: Optional[str],
        fetch_fn: FetchFn,
        prefer: Optional[str] = None,
        strict: bool = False,
    ) -> RoutingOutcome:
        return await route(
            semantic_id,
            geo,
            prefer,
            strict,
            self.provider_ids(semantic_id),
            fetch_fn,
            classify_geo=self.classify_geo,
        )

    def explain(self, semantic_id: str, geo: Optional[str] = None) -> RoutingExplanation:
        """Describe the order a request would use, without fetching anything."""
        mappings = self.provider_ids(semantic_id)
        plan = self.candidate_order(semantic_id, geo)
        base = baseline_order(geo, self.classify_geo)
        return RoutingExplanation(
            semantic_id=semantic_id,
            geography=geo or "not specified",
            order=plan.order,
            reason=plan.reason,
            mappings={provider: str(mapping) for provider, mapping in mappings.items()},
            available_providers=list(mappings),
            unavailable_providers=[provider for provider in base if provider not in mappings],
        )
