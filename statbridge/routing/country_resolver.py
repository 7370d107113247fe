"""
Country Resolver - Geography classification used by routing

This module provides:
1. Normalization of any supported region code to an ISO alpha-2 country
2. Region membership checks (is_eu_member, is_oecd_member)
3. Geography level detection (national / regional / local)
"""

from __future__ import annotations

import logging
from typing import FrozenSet, Literal, Optional

from ..models import RegionSystem
from .region_codes import get_region_crosswalk, guess_region_system

logger = logging.getLogger(__name__)

GeoLevel = Literal["national", "regional", "local"]


class CountryResolver:
    """
    Resolves region codes to ISO alpha-2 countries and checks membership.
    """

    # EU member countries (27 members as of 2024, UK left)
    EU_MEMBERS: FrozenSet[str] = frozenset({
        "AT", "BE", "BG", "HR", "CY", "CZ", "DK", "EE", "FI", "FR",
        "DE", "GR", "HU", "IE", "IT", "LV", "LT", "LU", "MT", "NL",
        "PL", "PT", "RO", "SK", "SI", "ES", "SE"
    })

    # OECD member countries (38 members as of 2024)
    OECD_MEMBERS: FrozenSet[str] = frozenset({
        "AU", "AT", "BE", "CA", "CL", "CO", "CR", "CZ", "DK", "EE",
        "FI", "FR", "DE", "GR", "HU", "IS", "IE", "IL", "IT", "JP",
        "KR", "LV", "LT", "LU", "MX", "NL", "NZ", "NO", "PL", "PT",
        "SK", "SI", "ES", "SE", "CH", "TR", "GB", "US"
    })

    # NUTS prefixes that differ from the ISO alpha-2 code
    NUTS_COUNTRY_EXCEPTIONS = {"EL": "GR", "UK": "GB"}

    @classmethod
    def normalize(cls, geo: Optional[str]) -> Optional[str]:
        """
        Normalize a region code to an ISO alpha-2 country code.

        Args:
            geo: ISO2, ISO3, M49, NUTS or SCB municipality code

        Returns:
            ISO alpha-2 code (e.g., "SE") or None if unknown
        """
        if not geo or not geo.strip():
            return None
        code = geo.strip().upper()
        system = guess_region_system(code)
        crosswalk = get_region_crosswalk()

        if system == RegionSystem.HIERARCHICAL:
            prefix = code[:2]
            prefix = cls.NUTS_COUNTRY_EXCEPTIONS.get(prefix, prefix)
            country = crosswalk.get_country(prefix)
            return country.iso2 if country else None

        if system == RegionSystem.ISO2:
            country = crosswalk.get_country(cls.NUTS_COUNTRY_EXCEPTIONS.get(code, code))
            return country.iso2 if country else None
        return crosswalk.map_region_code(code, RegionSystem.ISO2, system)

    @classmethod
    def is_eu_member(cls, geo: Optional[str]) -> bool:
        """Check if a region code lies in an EU member country."""
        iso_code = cls.normalize(geo)
        return iso_code in cls.EU_MEMBERS if iso_code else False

    @classmethod
    def is_oecd_member(cls, geo: Optional[str]) -> bool:
        """Check if a region code lies in an OECD member country."""
        iso_code = cls.normalize(geo)
        return iso_code in cls.OECD_MEMBERS if iso_code else False

    @classmethod
    def geo_level(cls, geo: Optional[str]) -> GeoLevel:
        """
        Classify a code as national, regional (NUTS 1-3) or local (municipality).

        NUTS level-0 codes and unknown hierarchical codes count as national.
        """
        if not geo:
            return "national"
        code = geo.strip().upper()
        system = guess_region_system(code)
        if system == RegionSystem.MUNICIPAL:
            return "local"
        if system == RegionSystem.HIERARCHICAL:
            region = get_region_crosswalk().lookup_nuts(code)
            if region is not None:
                return "national" if region.level == 0 else "regional"
            # Unknown codes shaped like NUTS 1-3 (e.g. "DE21") still count as regional
            return "regional" if len(code) in (3, 4, 5) and code[:2].isalpha() else "national"
        return "national"

    @classmethod
    def is_subnational(cls, geo: Optional[str]) -> bool:
        return cls.geo_level(geo) != "national"
