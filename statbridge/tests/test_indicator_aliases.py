"""Tests for alias normalization and semantic id resolution."""
from __future__ import annotations

import pytest

from statbridge.services.indicator_aliases import (
    SemanticAliasMap,
    get_alias_map,
    normalize_semantic_id,
    resolve_alias,
)


class TestNormalize:

    def test_equivalent_spellings(self):
        assert normalize_semantic_id("GDP Growth") == normalize_semantic_id("gdp-growth") == normalize_semantic_id("gdp_growth")
        assert normalize_semantic_id("gdp_growth") == "gdp_growth"

    @pytest.mark.parametrize("raw,expected", [
        ("  Life   Expectancy  ", "life_expectancy"),
        ("R&D", "rd"),
        ("__gdp__per--capita__", "gdp_per_capita"),
        ("per 1,000 births", "per_1000_births"),
        ("!!!", ""),
        ("", ""),
    ])
    def test_rules(self, raw, expected):
        assert normalize_semantic_id(raw) == expected


class TestSemanticAliasMap:

    def test_build_and_resolve(self):
        alias_map = SemanticAliasMap.build({"unemployment_rate": ["jobless", "Unemployment"]})

        assert resolve_alias("Jobless", alias_map).semantic_id == "unemployment_rate"
        assert resolve_alias("Jobless", alias_map).matched_alias == "jobless"

        own = resolve_alias("Unemployment Rate", alias_map)
        assert own.semantic_id == "unemployment_rate"
        assert own.matched_alias is None

    def test_single_string_alias(self):
        alias_map = SemanticAliasMap.build({"imr": "infant mortality"})
        assert alias_map.resolve("infant-mortality").semantic_id == "imr"

    def test_unknown_passes_through(self):
        alias_map = SemanticAliasMap.build({"imr": ["infant_mortality"]})
        result = alias_map.resolve("Something Else")
        assert result.semantic_id == "Something Else"
        assert result.matched_alias is None

    def test_first_alias_writer_wins(self):
        alias_map = SemanticAliasMap.build({
            "life_expectancy": ["longevity"],
            "life_expectancy_birth_total": ["life_expectancy", "longevity"],
        })
        assert alias_map.resolve("longevity").semantic_id == "life_expectancy"
        assert alias_map.resolve("life expectancy").semantic_id == "life_expectancy"

    def test_canonical_ids_inserted_before_aliases(self):
        alias_map = SemanticAliasMap.build({
            "trade": ["exports"],
            "exports_goods_services": ["trade"],
        })
        assert alias_map.resolve("trade").semantic_id == "trade"

    def test_register_canonical_ids_never_overrides(self):
        alias_map = SemanticAliasMap.build({"gdp_constant_prices": ["gdp"]})

        added = alias_map.register_canonical_ids(["gdp", "population_total", "population_total"])

        assert added == 1
        assert alias_map.resolve("gdp").semantic_id == "gdp_constant_prices"
        assert alias_map.resolve("Population Total").semantic_id == "population_total"

    def test_empty_aliases_skipped(self):
        alias_map = SemanticAliasMap.build({"imr": ["", "!!!", "infant_mortality"]})
        assert "" not in alias_map
        assert len(alias_map) == 2

    def test_aliases_for(self):
        alias_map = SemanticAliasMap.build({"unemployment_rate": ["jobless", "unemployment"]})
        assert alias_map.aliases_for("unemployment_rate") == ["jobless", "unemployment"]

    def test_mapping_interface(self):
        alias_map = SemanticAliasMap.build({"imr": ["infant_mortality"]})
        assert dict(alias_map) == {"imr": "imr", "infant_mortality": "imr"}


class TestDefaultAliasMap:

    @pytest.mark.parametrize("query", [
        "GDP", "jobless", "Life Expectancy", "longevity", "infant mortality", "R&D",
        "imr", "unemployment_rate", "unknown thing", "maternal-mortality", "trade",
    ])
    def test_resolution_is_idempotent(self, query):
        alias_map = get_alias_map()
        once = alias_map.resolve(query).semantic_id
        assert alias_map.resolve(once).semantic_id == once

    def test_socioeconomic_groups_win_over_health(self):
        alias_map = get_alias_map()
        assert alias_map.resolve("life_expectancy").semantic_id == "life_expectancy"
        assert alias_map.resolve("longevity").semantic_id == "life_expectancy"
        assert alias_map.resolve("infant_mortality").semantic_id == "imr"
        assert alias_map.resolve("cpi").semantic_id == "inflation_cpi"

    def test_every_canonical_id_maps_to_itself(self):
        alias_map = get_alias_map()
        for key, canonical in alias_map.items():
            assert alias_map.resolve(canonical).semantic_id == canonical
