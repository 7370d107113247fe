"""Tests for the SDMX REST client, structure references and key templates."""
from __future__ import annotations

import pytest

from statbridge.models import DimensionCode
from statbridge.providers.sdmx_client import (
    SdmxClient,
    StructureRef,
    build_key_from_template,
    parse_structure_urn,
    split_flow_id,
)

from .conftest import json_response


class TestStructureUrn:

    def test_full_urn(self):
        urn = "urn:sdmx:org.sdmx.infomodel.datastructure.DataStructure=OECD.SDD.TPS:DSD_LFS(1.0)"
        assert parse_structure_urn(urn) == StructureRef("OECD.SDD.TPS", "DSD_LFS", "1.0")

    def test_codelist_urn(self):
        ref = parse_structure_urn("urn:sdmx:org.sdmx.infomodel.codelist.Codelist=ILO:CL_AREA(1.0)")
        assert (ref.agency_id, ref.id, ref.version) == ("ILO", "CL_AREA", "1.0")

    @pytest.mark.parametrize("urn", [
        None,
        "",
        "DSD_LFS",
        "urn:...DataStructure=OECD:DSD_LFS",
        "urn:...DataStructure=OECD:DSD_LFS()",
        "urn:...DataStructure=:DSD_LFS(1.0)",
    ])
    def test_incomplete_references(self, urn):
        assert parse_structure_urn(urn) is None


class TestSplitFlowId:

    def test_variants(self):
        assert split_flow_id("OECD.SDD.TPS,DSD_LFS@DF_IALFS_UNE_M,1.0") == ("OECD.SDD.TPS", "DSD_LFS@DF_IALFS_UNE_M", "1.0")
        assert split_flow_id("ILO,DF_UNE") == ("ILO", "DF_UNE", None)
        assert split_flow_id("DF_UNE") == (None, "DF_UNE", None)
        assert split_flow_id(",DF_UNE,") == (None, "DF_UNE", None)


class TestKeyTemplate:

    def test_fills_placeholders(self):
        result = build_key_from_template("{LOCATION}.UNE_LF_M.{FREQ}", {"LOCATION": "SWE", "FREQ": "A"})
        assert result.key == "SWE.UNE_LF_M.A"
        assert result.missing == []
        assert result.invalid == []

    def test_missing_values_leave_wildcard_segments(self):
        result = build_key_from_template("{LOCATION}.{SEX}.{AGE}.A", {"LOCATION": "SWE"})
        assert result.key == "SWE...A"
        assert result.missing == ["SEX", "AGE"]

    def test_existing_wildcards_keep_their_position(self):
        result = build_key_from_template("{REF_AREA}.A..SEX_T", {"REF_AREA": "SWE"})
        assert result.key == "SWE.A..SEX_T"
        assert len(result.key.split(".")) == 4

    def test_invalid_value_reported(self):
        dimensions = {"REF_AREA": [DimensionCode(id="SWE"), DimensionCode(id="NOR")]}

        lenient = build_key_from_template("{REF_AREA}.A", {"REF_AREA": "XXX"}, dimensions=dimensions)
        strict = build_key_from_template("{REF_AREA}.A", {"REF_AREA": "XXX"}, dimensions=dimensions, strict=True)

        assert lenient.key == "XXX.A"
        assert lenient.invalid == ["REF_AREA"]
        assert strict.key == ".A"

    def test_dimension_map(self):
        dimensions = {"REF_AREA": [DimensionCode(id="SWE")]}
        result = build_key_from_template(
            "{LOCATION}", {"LOCATION": "SWE"}, dimensions=dimensions, dimension_map={"LOCATION": "REF_AREA"}
        )
        assert result.invalid == []


class TestSdmxClient:

    @pytest.mark.asyncio
    async def test_get_data_url_and_params(self, install_transport):
        seen = install_transport(lambda request: json_response({"dataSets": []}))
        client = SdmxClient("https://sdmx.example.org/rest/")

        await client.get_data("OECD.SDD.TPS,DSD_LFS@DF_IALFS_UNE_M,1.0", "SWE..A", start_period="2015", end_period="2020")

        request = seen[0]
        assert request.url.path == "/rest/data/OECD.SDD.TPS,DSD_LFS@DF_IALFS_UNE_M,1.0/SWE..A"
        assert request.url.params["startPeriod"] == "2015"
        assert request.url.params["endPeriod"] == "2020"
        assert request.url.params["dimensionAtObservation"] == "AllDimensions"
        assert request.url.params["format"] == "jsondata"
        assert "sdmx.data+json" in request.headers["Accept"]

    @pytest.mark.asyncio
    async def test_empty_key_means_all(self, install_transport):
        seen = install_transport(lambda request: json_response({}))
        await SdmxClient("https://sdmx.example.org/rest").get_data("DF_X", "")
        assert seen[0].url.path.endswith("/data/DF_X/all")

    @pytest.mark.asyncio
    async def test_get_dataflow_path(self, install_transport):
        seen = install_transport(lambda request: json_response({"data": {"dataflows": []}}))
        client = SdmxClient("https://sdmx.example.org/rest")

        await client.get_dataflow("ILO,DF_UNE_DEAP_SEX_AGE_RT,1.0")
        await client.get_dataflow("DF_UNE")

        assert seen[0].url.path == "/rest/dataflow/ILO/DF_UNE_DEAP_SEX_AGE_RT/1.0"
        assert seen[1].url.path == "/rest/dataflow/all/DF_UNE"
        assert "sdmx.structure+json" in seen[0].headers["Accept"]

    @pytest.mark.asyncio
    async def test_get_datastructure_references(self, install_transport):
        seen = install_transport(lambda request: json_response({"data": {}}))
        await SdmxClient("https://sdmx.example.org/rest").get_datastructure("OECD", "DSD_LFS", "1.0")
        assert seen[0].url.path == "/rest/datastructure/OECD/DSD_LFS/1.0"
        assert seen[0].url.params["references"] == "descendants"
