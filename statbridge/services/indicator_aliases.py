"""
Indicator Alias System

Maps free-form indicator names ("GDP per capita", "jobless", "gdp-growth")
to canonical semantic ids ("gdp_per_capita_constant", "unemployment_rate").

Provides:
1. A normalization function shared by every lookup
2. SemanticAliasMap built from canonical id -> alias(es) dictionaries
3. Late registration of canonical ids discovered from the equivalence data
"""
from __future__ import annotations

import logging
import re
import threading
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Union

from ..models import ResolvedAlias

logger = logging.getLogger(__name__)

AliasDictionary = Mapping[str, Union[str, List[str]]]

_SEPARATORS = re.compile(r"[\s-]+")
_INVALID = re.compile(r"[^a-z0-9_]+")
_UNDERSCORES = re.compile(r"_+")


def normalize_semantic_id(text: str) -> str:
    """
    Reduce an identifier to its lookup key.

    trim -> lowercase -> whitespace/hyphen runs to "_" -> drop characters
    outside [a-z0-9_] -> collapse "_" runs -> strip leading/trailing "_"
    """
    value = (text or "").strip().lower()
    value = _SEPARATORS.sub("_", value)
    value = _INVALID.sub("", value)
    value = _UNDERSCORES.sub("_", value)
    return value.strip("_")


SOCIOECONOMIC_ALIAS_GROUPS: Dict[str, List[str]] = {
    "gdp_constant_prices": ["gdp", "gdp_growth", "economic_growth"],
    "gdp_per_capita_constant": ["gdp_per_capita", "gdppercapita", "gdp per capita"],
    "unemployment_rate": ["unemployment", "jobless", "joblessness"],
    "employment_rate_15_64": ["employment_rate", "employment"],
    "inflation_cpi": ["inflation", "price_growth", "cpi", "consumer_price_index"],
    "exports_goods_services": ["exports", "trade", "export"],
    "imports_goods_services": ["imports", "import", "trade_balance_imports"],
    "government_debt": ["debt", "public_debt", "sovereign_debt"],
    "research_development": ["r&d", "research", "innovation", "rd"],
    "life_expectancy": ["longevity"],
    "population_density": ["density", "pop_density"],
    "urban_population": ["urbanization", "urban"],
    "rural_population": ["rural"],
    "wage_gap_gender": ["gender_gap", "pay_gap", "wage_gap"],
    "minimum_wage": ["min_wage", "minimum_salary"],
    "foreign_direct_investment": ["fdi", "foreign_investment"],
    "trade_balance": ["net_exports", "trade_surplus"],
}

HEALTH_ALIAS_GROUPS: Dict[str, List[str]] = {
    "life_expectancy_birth_total": ["life_expectancy", "longevity", "life_expectancy_total"],
    "life_expectancy_at_birth": ["life_expectancy_average", "life_expectancy_mean"],
    "imr": ["infant_mortality", "child_mortality"],
    "maternal_mortality_ratio": ["maternal_mortality", "birth_deaths", "mmr"],
}


class SemanticAliasMap(Mapping[str, str]):
    """
    Normalized alias -> canonical id lookup.

    The first writer of a key wins. Canonical ids are inserted before any
    alias, so every canonical id resolves to itself; an alias that collides
    with an existing key is ignored.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, str] = {}
        self._lock = threading.Lock()

    @classmethod
    def build(cls, dictionary: AliasDictionary) -> "SemanticAliasMap":
        alias_map = cls()
        with alias_map._lock:
            for canonical in dictionary:
                alias_map._insert(normalize_semantic_id(canonical), canonical)
            for canonical, aliases in dictionary.items():
                # A canonical id shadowed by an earlier one hands its aliases to the winner
                target = alias_map._entries.get(normalize_semantic_id(canonical), canonical)
                for alias in [aliases] if isinstance(aliases, str) else aliases:
                    alias_map._insert(normalize_semantic_id(alias), target)
        return alias_map

    def _insert(self, key: str, canonical: str) -> bool:
        if not key:
            return False
        existing = self._entries.get(key)
        if existing is not None:
            if existing != canonical:
                logger.debug(f"Alias '{key}' already maps to '{existing}', ignoring '{canonical}'")
            return False
        self._entries[key] = canonical
        return True

    def register_canonical_ids(self, ids: Iterable[str]) -> int:
        """Add self-mappings for ids whose key is still free; returns how many were added."""
        added = 0
        with self._lock:
            for canonical in ids:
                if self._insert(normalize_semantic_id(canonical), canonical):
                    added += 1
        return added

    def resolve(self, text: str) -> ResolvedAlias:
        """
        Resolve free-form input to a canonical id.

        Unknown inputs pass through unchanged. `matched_alias` is the
        normalized input when it differs from the canonical id's own key.
        """
        normalized = normalize_semantic_id(text)
        canonical = self._entries.get(normalized)
        if canonical is None:
            return ResolvedAlias(semantic_id=text, matched_alias=None)
        matched = None if normalize_semantic_id(canonical) == normalized else normalized
        return ResolvedAlias(semantic_id=canonical, matched_alias=matched)

    def aliases_for(self, canonical: str) -> List[str]:
        own = normalize_semantic_id(canonical)
        return sorted(key for key, value in self._entries.items() if value == canonical and key != own)

    def __getitem__(self, key: str) -> str:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(dict(self._entries))

    def __len__(self) -> int:
        return len(self._entries)


def resolve_alias(text: str, alias_map: SemanticAliasMap) -> ResolvedAlias:
    return alias_map.resolve(text)


_default_alias_map: Optional[SemanticAliasMap] = None


def get_alias_map() -> SemanticAliasMap:
    """Get the global alias map (socioeconomic aliases, then health aliases)."""
    global _default_alias_map
    if _default_alias_map is None:
        _default_alias_map = SemanticAliasMap.build({**SOCIOECONOMIC_ALIAS_GROUPS, **HEALTH_ALIAS_GROUPS})
    return _default_alias_map
