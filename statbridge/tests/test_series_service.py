"""Tests for the series service: alias resolution, routing and enrichment."""
from __future__ import annotations

from typing import List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from statbridge.models import Empty, Failure, Observation, Series, SeriesSource, Success
from statbridge.services.equivalence import EquivalenceTable
from statbridge.services.indicator_aliases import SemanticAliasMap
from statbridge.services.series_service import SeriesService

EQUIVALENCE = {
    "unemployment_rate": {
        "label": "Unemployment rate",
        "unit": "%",
        "description": "Unemployed persons as a share of the labour force",
        "wb": "SL.UEM.TOTL.ZS",
        "eurostat": {"dataset": "une_rt_a", "filters": {"unit": "PC_ACT"}},
    },
    "population_total": {
        "label": "Population on 1 January",
        "unit": "Number",
        "wb": "SP.POP.TOTL",
    },
}


def _series(provider: str, geo: Optional[str], unit: str = "", definition: Optional[str] = None) -> Series:
    return Series(
        semantic_id="upstream-id",
        unit=unit,
        values=[Observation(time="2021", value=8.8, geo=geo), Observation(time="2020", value=8.3, geo=geo)],
        source=SeriesSource(provider=provider, provider_id="upstream-id", url=f"https://{provider}.example.org"),
        definition=definition,
    )


def _provider(outcome) -> MagicMock:
    provider = MagicMock()
    provider.attempt = AsyncMock(return_value=outcome)
    return provider


def _service(**providers) -> SeriesService:
    return SeriesService(
        equivalence=EquivalenceTable.from_dict(EQUIVALENCE),
        providers=providers,
        alias_map=SemanticAliasMap.build({"unemployment_rate": ["jobless", "unemployment"]}),
    )


class TestGetSeries:

    @pytest.mark.asyncio
    async def test_alias_routed_to_eurostat_for_eu_geo(self):
        eurostat = _provider(Success(series=_series("eurostat", "SE", unit="Percentage of active population")))
        wb = _provider(Empty())
        service = _service(eurostat=eurostat, wb=wb)

        outcome = await service.get_series("Jobless", geo="SE", years=(2020, 2021))

        assert outcome.provider_used == "eurostat"
        assert outcome.provider_order == ["eurostat", "wb"]
        wb.attempt.assert_not_awaited()
        mapping, geo, years = eurostat.attempt.await_args.args
        assert mapping.dataset == "une_rt_a"
        assert (geo, years) == ("SE", (2020, 2021))

        series = outcome.series
        assert series.semantic_id == "unemployment_rate"
        assert series.unit == "%"
        assert series.definition == "Unemployed persons as a share of the labour force"
        assert [o.time for o in series.values] == ["2020", "2021"]
        assert "Unit normalized: '%' -> percent" in series.method_notes
        assert "Provider unit: Percentage of active population" in series.method_notes
        assert series.method_notes.endswith("Selected provider: eurostat; evaluated order: eurostat -> wb")

    @pytest.mark.asyncio
    async def test_fallback_and_geo_respelled(self):
        eurostat = _provider(Failure(message="503 Service Unavailable", error_type="HttpError"))
        wb = _provider(Success(series=_series("wb", "SWE", definition="Unemployment, total")))
        service = _service(eurostat=eurostat, wb=wb)

        outcome = await service.get_series("unemployment_rate", geo="SE")

        assert outcome.provider_used == "wb"
        assert outcome.errors == ["eurostat: 503 Service Unavailable"]
        assert {o.geo for o in outcome.series.values} == {"SE"}
        assert outcome.series.definition == "Unemployment, total"

    @pytest.mark.asyncio
    async def test_geo_kept_in_iso3_request(self):
        wb = _provider(Success(series=_series("wb", "SE")))
        service = _service(wb=wb)

        outcome = await service.get_series("unemployment_rate", geo="NOR")

        assert {o.geo for o in outcome.series.values} == {"SWE"}

    @pytest.mark.asyncio
    async def test_default_geography(self):
        eurostat = _provider(Empty())
        wb = _provider(Empty())
        service = _service(eurostat=eurostat, wb=wb)

        outcome = await service.get_series("unemployment_rate")

        assert eurostat.attempt.await_args.args[1] == "SE"
        assert not outcome.found
        assert outcome.errors == []
        assert [a.status for a in outcome.attempts] == ["empty", "empty"]

    @pytest.mark.asyncio
    async def test_unknown_indicator(self):
        wb = _provider(Empty())
        service = _service(wb=wb)

        outcome = await service.get_series("price of tea", geo="US")

        assert outcome.errors == ["Unknown indicator 'price of tea'"]
        assert outcome.provider_order == []
        wb.attempt.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_preferred_provider(self):
        outcome = await _service().get_series("unemployment_rate", geo="US", prefer="imf")
        assert len(outcome.errors) == 1
        assert "imf" in outcome.errors[0]

    @pytest.mark.asyncio
    async def test_strict_preference(self):
        eurostat = _provider(Success(series=_series("eurostat", "US")))
        wb = _provider(Empty())
        service = _service(eurostat=eurostat, wb=wb)

        outcome = await service.get_series("unemployment_rate", geo="US", prefer="wb", strict=True)

        assert outcome.provider_order == ["wb"]
        assert not outcome.found
        eurostat.attempt.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unconfigured_provider_is_failure(self):
        wb = _provider(Success(series=_series("wb", "US")))
        service = _service(wb=wb)

        outcome = await service.get_series("unemployment_rate", geo="SE")

        assert outcome.errors == ["eurostat: Provider 'eurostat' is not configured"]
        assert outcome.attempts[0].error_type == "ConfigurationError"
        assert outcome.provider_used == "wb"


class TestCatalog:

    def test_equivalence_ids_registered_as_canonical(self):
        service = _service()
        assert service.resolve("Population Total").semantic_id == "population_total"
        assert service.resolve("jobless").matched_alias == "jobless"

    def test_explain_routing(self):
        explanation = _service().explain_routing("unemployment", geo="US")

        assert explanation.semantic_id == "unemployment_rate"
        assert explanation.order == ["wb", "eurostat"]
        assert explanation.unavailable_providers == ["oecd", "ilostat"]

    def test_list_semantic_ids(self):
        indicators: List[dict] = _service().list_semantic_ids()

        assert [item["id"] for item in indicators] == ["population_total", "unemployment_rate"]
        unemployment = indicators[1]
        assert unemployment["providers"] == ["eurostat", "wb"]
        assert unemployment["aliases"] == ["jobless", "unemployment"]
        assert unemployment["unit"] == "%"
