"""
Region Code Crosswalk

Converts geographic codes between ISO alpha-2, ISO alpha-3, UN M49,
NUTS and Swedish SCB municipality codes. Every conversion pivots through
the ISO3 country code; sub-national targets join through the county
column shared by the NUTS and SCB tables.

Reference tables live in statbridge/data/ and are read once per crosswalk
instance, on first use.
"""

from __future__ import annotations

import csv
import json
import logging
import re
import threading
from pathlib import Path
from typing import Dict, List, Optional, Union

from ..config import get_settings
from ..exceptions import ConfigurationError
from ..models import CountryCode, Municipality, NutsRegion, RegionSystem

logger = logging.getLogger(__name__)

COUNTRIES_FILE = "countries.json"
NUTS_FILE = "nuts_2024.csv"
MUNICIPALITIES_FILE = "scb_municipalities_2025.csv"

# SCB codes only exist inside Sweden
MUNICIPAL_COUNTRY = "SWE"

_COUNTRY_SYSTEMS = (RegionSystem.ISO2, RegionSystem.ISO3, RegionSystem.NUMERIC)

SystemLike = Union[RegionSystem, str]


def _to_system(value: SystemLike) -> RegionSystem:
    if isinstance(value, RegionSystem):
        return value
    text = str(value).strip().upper()
    try:
        return RegionSystem(text)
    except ValueError:
        pass
    try:
        return RegionSystem[text]
    except KeyError:
        raise ValueError(f"Unknown region system: {value}") from None


def guess_region_system(code: str) -> RegionSystem:
    """
    Classify an unlabeled code. Best effort: "SE" is read as ISO2 even though
    it is also a NUTS level-0 code.
    """
    text = code.strip()
    if re.fullmatch(r"\d{4}", text):
        return RegionSystem.MUNICIPAL
    if re.fullmatch(r"\d{1,3}", text):
        return RegionSystem.NUMERIC
    if re.fullmatch(r"[A-Za-z]{2}", text):
        return RegionSystem.ISO2
    if re.fullmatch(r"[A-Za-z]{3}", text):
        return RegionSystem.ISO3
    return RegionSystem.HIERARCHICAL


def _normalize(code: str, system: RegionSystem) -> str:
    text = code.strip()
    if system == RegionSystem.NUMERIC:
        return text.zfill(3)
    if system == RegionSystem.MUNICIPAL:
        return text.zfill(4) if text.isdigit() else text
    return text.upper()


class RegionCrosswalk:
    """Lazily loaded country, NUTS and municipality tables."""

    def __init__(self, data_dir: Optional[Path] = None):
        self.data_dir = Path(data_dir) if data_dir else get_settings().data_dir
        self._lock = threading.Lock()
        self._loaded = False
        self._countries: List[CountryCode] = []
        self._country_index: Dict[str, CountryCode] = {}
        self._nuts: List[NutsRegion] = []
        self._nuts_index: Dict[str, NutsRegion] = {}
        self._municipalities: List[Municipality] = []
        self._municipality_index: Dict[str, Municipality] = {}

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        with self._lock:
            if self._loaded:
                return
            self._load_countries()
            self._load_nuts()
            self._load_municipalities()
            self._loaded = True
            logger.info(
                f"Region tables loaded from {self.data_dir}: {len(self._countries)} countries, "
                f"{len(self._nuts)} NUTS regions, {len(self._municipalities)} municipalities"
            )

    def _read_csv(self, filename: str) -> List[Dict[str, str]]:
        path = self.data_dir / filename
        try:
            with open(path, "r", encoding="utf-8", newline="") as f:
                return [
                    {key.strip(): (value or "").strip() for key, value in row.items()}
                    for row in csv.DictReader(f)
                ]
        except OSError as e:
            raise ConfigurationError(f"Cannot read region table {path}: {e}") from e

    def _load_countries(self) -> None:
        path = self.data_dir / COUNTRIES_FILE
        try:
            with open(path, "r", encoding="utf-8") as f:
                entries = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot read country table {path}: {e}") from e

        for entry in entries:
            country = CountryCode(
                iso2=entry["iso2"].upper(),
                iso3=entry["iso3"].upper(),
                m49=str(entry["m49"]).zfill(3),
                name=entry["name"],
            )
            self._countries.append(country)
            for key in (country.iso2, country.iso3, country.m49):
                self._country_index.setdefault(key, country)

    def _load_nuts(self) -> None:
        for record in self._read_csv(NUTS_FILE):
            region = NutsRegion(
                code=record["code"].upper(),
                level=int(record["level"]),
                name=record["name"],
                iso3=record["iso3"].upper(),
                parent=record.get("parent") or None,
                county_code=record.get("county_code") or None,
            )
            self._nuts.append(region)
            self._nuts_index[region.code] = region

    def _load_municipalities(self) -> None:
        for record in self._read_csv(MUNICIPALITIES_FILE):
            municipality = Municipality(
                code=record["municipality_code"].zfill(4),
                name=record["municipality_name"],
                county_code=record["county_code"].zfill(2),
                county_name=record["county_name"],
            )
            self._municipalities.append(municipality)
            self._municipality_index[municipality.code] = municipality

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_country(self, code: str) -> Optional[CountryCode]:
        """Find a country by ISO2, ISO3 or M49 code."""
        self._ensure_loaded()
        text = code.strip().upper()
        if text.isdigit():
            text = text.zfill(3)
        return self._country_index.get(text)

    def lookup_nuts(self, code: str) -> Optional[NutsRegion]:
        self._ensure_loaded()
        return self._nuts_index.get(code.strip().upper())

    def list_nuts_children(self, parent_code: str) -> List[NutsRegion]:
        self._ensure_loaded()
        parent = parent_code.strip().upper()
        return [region for region in self._nuts if (region.parent or "").upper() == parent]

    def lookup_municipality(self, code: str) -> Optional[Municipality]:
        self._ensure_loaded()
        text = code.strip()
        return self._municipality_index.get(text.zfill(4) if text.isdigit() else text)

    def get_municipality_name(self, code: str) -> Optional[str]:
        municipality = self.lookup_municipality(code)
        return municipality.name if municipality else None

    def get_county_name(self, county_code: str) -> Optional[str]:
        self._ensure_loaded()
        wanted = county_code.strip().zfill(2)
        for municipality in self._municipalities:
            if municipality.county_code == wanted:
                return municipality.county_name
        return None

    def list_countries(self) -> List[CountryCode]:
        self._ensure_loaded()
        return list(self._countries)

    def list_nuts_regions(self, level: Optional[int] = None) -> List[NutsRegion]:
        self._ensure_loaded()
        if level is None:
            return list(self._nuts)
        return [region for region in self._nuts if region.level == level]

    def list_municipalities(self, county_code: Optional[str] = None) -> List[Municipality]:
        self._ensure_loaded()
        if county_code is None:
            return list(self._municipalities)
        wanted = county_code.strip().zfill(2)
        return [m for m in self._municipalities if m.county_code == wanted]

    def nuts_for_county(self, county_code: str) -> Optional[NutsRegion]:
        self._ensure_loaded()
        wanted = county_code.strip().zfill(2)
        for region in self._nuts:
            if region.level == 3 and region.iso3 == MUNICIPAL_COUNTRY and region.county_code == wanted:
                return region
        return None

    def _country_nuts_root(self, iso3: str) -> Optional[NutsRegion]:
        for region in self._nuts:
            if region.level == 0 and region.iso3 == iso3:
                return region
        return None

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def to_iso3(self, code: str, source: Optional[SystemLike] = None) -> Optional[str]:
        source_system = _to_system(source) if source else guess_region_system(code)
        if source_system in _COUNTRY_SYSTEMS:
            country = self.get_country(code)
            return country.iso3 if country else None
        if source_system == RegionSystem.HIERARCHICAL:
            region = self.lookup_nuts(code)
            return region.iso3 if region else None
        return MUNICIPAL_COUNTRY

    def map_region_code(
        self,
        code: str,
        target: SystemLike,
        source: Optional[SystemLike] = None,
    ) -> Optional[str]:
        """
        Convert a region code to another coding system.

        Args:
            code: Code to convert (e.g. "SE", "752", "SE110", "0180")
            target: Target system
            source: Source system; guessed from the code's shape when omitted

        Returns:
            The converted code, or None when there is no counterpart
            (an unknown code, or a country asked for as a municipality)
        """
        target_system = _to_system(target)
        source_system = _to_system(source) if source else guess_region_system(code)

        if source_system == target_system:
            return _normalize(code, target_system)

        iso3 = self.to_iso3(code, source_system)
        if not iso3:
            return None

        if target_system == RegionSystem.ISO3:
            country = self.get_country(iso3)
            return country.iso3 if country else iso3
        if target_system in (RegionSystem.ISO2, RegionSystem.NUMERIC):
            country = self.get_country(iso3)
            if not country:
                return None
            return country.iso2 if target_system == RegionSystem.ISO2 else country.m49

        if target_system == RegionSystem.HIERARCHICAL:
            if source_system == RegionSystem.MUNICIPAL:
                municipality = self.lookup_municipality(code)
                if not municipality:
                    return None
                region = self.nuts_for_county(municipality.county_code)
                return region.code if region else None
            root = self._country_nuts_root(iso3)
            return root.code if root else None

        # Municipal target: only a county-level NUTS region can be joined
        if source_system == RegionSystem.HIERARCHICAL:
            region = self.lookup_nuts(code)
            if not region or region.level != 3 or not region.county_code:
                return None
            candidates = self.list_municipalities(region.county_code)
            if not candidates:
                return None
            return min(candidates, key=lambda m: m.code).code
        return None


_crosswalk: Optional[RegionCrosswalk] = None
_crosswalk_lock = threading.Lock()


def get_region_crosswalk() -> RegionCrosswalk:
    """Get the global crosswalk instance."""
    global _crosswalk
    if _crosswalk is None:
        with _crosswalk_lock:
            if _crosswalk is None:
                _crosswalk = RegionCrosswalk()
    return _crosswalk


def map_region_code(code: str, target: SystemLike, source: Optional[SystemLike] = None) -> Optional[str]:
    return get_region_crosswalk().map_region_code(code, target, source)
