"""Tests for the region code crosswalk and the country resolver."""
from __future__ import annotations

import json

import pytest

from statbridge.exceptions import ConfigurationError
from statbridge.models import RegionSystem
from statbridge.routing.country_resolver import CountryResolver
from statbridge.routing.region_codes import (
    RegionCrosswalk,
    get_region_crosswalk,
    guess_region_system,
    map_region_code,
)


@pytest.fixture(scope="module")
def crosswalk():
    return get_region_crosswalk()


class TestGuessRegionSystem:

    @pytest.mark.parametrize("code,expected", [
        ("SE", RegionSystem.ISO2),
        ("swe", RegionSystem.ISO3),
        ("752", RegionSystem.NUMERIC),
        ("4", RegionSystem.NUMERIC),
        ("0180", RegionSystem.MUNICIPAL),
        ("SE110", RegionSystem.HIERARCHICAL),
        ("SE1", RegionSystem.HIERARCHICAL),
    ])
    def test_shapes(self, code, expected):
        assert guess_region_system(code) == expected


class TestCountryConversion:

    def test_sweden_in_every_country_system(self):
        assert map_region_code("SE", "ISO3") == "SWE"
        assert map_region_code("SWE", RegionSystem.ISO2) == "SE"
        assert map_region_code("SE", RegionSystem.NUMERIC) == "752"
        assert map_region_code("752", RegionSystem.ISO3) == "SWE"
        assert map_region_code("752", "ISO2", source="M49") == "SE"

    def test_iso2_iso3_round_trip_for_every_country(self, crosswalk):
        for country in crosswalk.list_countries():
            iso3 = crosswalk.map_region_code(country.iso2, RegionSystem.ISO3, RegionSystem.ISO2)
            assert iso3 == country.iso3
            assert crosswalk.map_region_code(iso3, RegionSystem.ISO2, RegionSystem.ISO3) == country.iso2

    def test_numeric_codes_are_zero_padded(self):
        assert map_region_code("AF", RegionSystem.NUMERIC) == "004"
        assert map_region_code("4", RegionSystem.ISO2) == "AF"

    def test_same_system_normalizes(self):
        assert map_region_code(" se ", RegionSystem.ISO2, RegionSystem.ISO2) == "SE"
        assert map_region_code("180", RegionSystem.MUNICIPAL, RegionSystem.MUNICIPAL) == "0180"

    def test_unknown_code(self):
        assert map_region_code("ZZ", RegionSystem.ISO3) is None
        assert map_region_code("XX999", RegionSystem.ISO2) is None

    def test_unknown_system_name(self):
        with pytest.raises(ValueError):
            map_region_code("SE", "GEOHASH")


class TestSubnationalConversion:

    def test_greece_uses_el_in_nuts(self):
        assert map_region_code("GR", RegionSystem.HIERARCHICAL) == "EL"
        assert map_region_code("EL", RegionSystem.ISO2, RegionSystem.HIERARCHICAL) == "GR"

    def test_country_without_nuts_root(self):
        assert map_region_code("US", RegionSystem.HIERARCHICAL) is None

    def test_municipality_to_county_region(self):
        assert map_region_code("0180", RegionSystem.HIERARCHICAL) == "SE110"
        assert map_region_code("1480", "NUTS") == "SE232"

    def test_county_region_to_lowest_municipality(self):
        assert map_region_code("SE110", RegionSystem.MUNICIPAL) == "0114"

    def test_municipal_target_needs_county_level_region(self):
        assert map_region_code("SE11", RegionSystem.MUNICIPAL) is None
        assert map_region_code("SE", RegionSystem.MUNICIPAL, RegionSystem.ISO2) is None

    def test_nuts_and_municipality_to_country(self):
        assert map_region_code("SE224", RegionSystem.ISO3) == "SWE"
        assert map_region_code("0180", RegionSystem.ISO2) == "SE"


class TestLookups:

    def test_nuts_tree(self, crosswalk):
        region = crosswalk.lookup_nuts("se110")
        assert region.level == 3
        assert region.county_code == "01"
        assert [child.code for child in crosswalk.list_nuts_children("SE1")] == ["SE11", "SE12"]
        assert all(r.level == 0 for r in crosswalk.list_nuts_regions(level=0))

    def test_municipality_lookups(self, crosswalk):
        assert crosswalk.get_municipality_name("180") == "Stockholm"
        assert crosswalk.get_county_name("1") == "Stockholms län"
        assert {m.county_code for m in crosswalk.list_municipalities("14")} == {"14"}
        assert crosswalk.lookup_municipality("9999") is None


class TestLoading:

    def test_missing_table_is_configuration_error(self, tmp_path):
        with pytest.raises(ConfigurationError):
            RegionCrosswalk(data_dir=tmp_path).get_country("SE")

    def test_custom_tables(self, tmp_path):
        (tmp_path / "countries.json").write_text(
            json.dumps([{"iso2": "se", "iso3": "swe", "m49": 752, "name": "Sweden"}]), encoding="utf-8"
        )
        (tmp_path / "nuts_2024.csv").write_text(
            "code,level,name,iso3,parent,county_code\nSE,0,Sverige,SWE,,\n", encoding="utf-8"
        )
        (tmp_path / "scb_municipalities_2025.csv").write_text(
            "municipality_code,municipality_name,county_code,county_name\n180,Stockholm,1,Stockholms län\n",
            encoding="utf-8",
        )

        crosswalk = RegionCrosswalk(data_dir=tmp_path)

        assert crosswalk.map_region_code("SE", RegionSystem.NUMERIC) == "752"
        assert crosswalk.lookup_municipality("0180").county_code == "01"
        assert crosswalk.map_region_code("NO", RegionSystem.ISO3) is None


class TestCountryResolver:

    @pytest.mark.parametrize("geo,expected", [
        ("SE", "SE"),
        ("swe", "SE"),
        ("752", "SE"),
        ("SE110", "SE"),
        ("0180", "SE"),
        ("EL", "GR"),
        ("EL30", "GR"),
        ("UK", "GB"),
        ("", None),
        (None, None),
        ("ZZZ", None),
        ("ZZ", None),
    ])
    def test_normalize(self, geo, expected):
        assert CountryResolver.normalize(geo) == expected

    def test_membership(self):
        assert CountryResolver.is_eu_member("SE110")
        assert CountryResolver.is_eu_member("EL")
        assert not CountryResolver.is_eu_member("NO")
        assert CountryResolver.is_oecd_member("NOR")
        assert not CountryResolver.is_oecd_member("BR")
        assert not CountryResolver.is_eu_member(None)

    @pytest.mark.parametrize("geo,level", [
        (None, "national"),
        ("SE", "national"),
        ("SWE", "national"),
        ("SE1", "regional"),
        ("SE110", "regional"),
        ("DE21", "regional"),
        ("0180", "local"),
    ])
    def test_geo_level(self, geo, level):
        assert CountryResolver.geo_level(geo) == level
        assert CountryResolver.is_subnational(geo) == (level != "national")
