"""
Normalized data model shared by decoders, providers and routing.

Series and Observation are per-request values; everything else here describes
reference data or diagnostics.
"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


ProviderKey = Literal["eurostat", "oecd", "wb", "ilostat"]
PROVIDER_KEYS: tuple[str, ...] = ("eurostat", "oecd", "wb", "ilostat")

Freq = Literal["A", "Q", "M"]


class Observation(BaseModel):
    """A single (time, value, optional geography) data point."""

    time: str
    value: float
    geo: Optional[str] = None


class SeriesSource(BaseModel):
    provider: ProviderKey
    provider_id: str
    url: str


class Series(BaseModel):
    """
    Provider-agnostic time series.

    `values` is kept sorted ascending by time, and no two observations share
    the same (time, geo) pair; the first occurrence of a pair is kept.
    """

    semantic_id: str
    unit: str = ""
    freq: Freq = "A"
    values: List[Observation] = Field(default_factory=list)
    source: SeriesSource
    definition: Optional[str] = None
    method_notes: Optional[str] = None
    retrieved_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("values")
    @classmethod
    def sort_and_deduplicate(cls, values: List[Observation]) -> List[Observation]:
        seen: set[tuple[str, Optional[str]]] = set()
        unique: List[Observation] = []
        for obs in values:
            key = (obs.time, obs.geo)
            if key in seen:
                continue
            seen.add(key)
            unique.append(obs)
        return sorted(unique, key=lambda obs: obs.time)

    @property
    def is_empty(self) -> bool:
        return not self.values


class DimensionCode(BaseModel):
    id: str
    name: Optional[str] = None


class DimensionDescriptor(BaseModel):
    """An observation axis; code order equals declared position."""

    id: str
    codes: List[DimensionCode] = Field(default_factory=list)
    role: Optional[str] = None


class RegionSystem(str, Enum):
    """Geographic coding systems understood by the region crosswalk."""
    ISO2 = "ISO2"
    ISO3 = "ISO3"
    NUMERIC = "M49"             # UN M49 / ISO 3166 numeric
    HIERARCHICAL = "NUTS"       # Eurostat NUTS regions
    MUNICIPAL = "SCB"           # Statistics Sweden municipality codes


class RegionCode(BaseModel):
    system: RegionSystem
    code: str


class CountryCode(BaseModel):
    iso2: str
    iso3: str
    m49: str
    name: str


class NutsRegion(BaseModel):
    code: str
    level: int
    name: str
    iso3: str
    parent: Optional[str] = None
    county_code: Optional[str] = None


class Municipality(BaseModel):
    code: str
    name: str
    county_code: str
    county_name: str


class RateLimitInfo(BaseModel):
    """Rate-limit snapshot extracted from response headers."""

    limit: Optional[int] = None
    remaining: Optional[int] = None
    reset: Optional[int] = None
    window_limits: Optional[Dict[str, int]] = None
    window_remaining: Optional[Dict[str, int]] = None
    retry_after_ms: Optional[int] = None


class ResolvedAlias(BaseModel):
    semantic_id: str
    matched_alias: Optional[str] = None


class ProviderAttempt(BaseModel):
    """What happened when one candidate provider was tried."""

    provider: ProviderKey
    status: Literal["success", "empty", "error", "skipped"]
    message: Optional[str] = None
    error_type: Optional[str] = None
    observations: int = 0


class RoutingOutcome(BaseModel):
    series: Optional[Series] = None
    provider_used: Optional[ProviderKey] = None
    provider_order: List[ProviderKey] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    attempts: List[ProviderAttempt] = Field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.series is not None

    @property
    def malformed_providers(self) -> List[str]:
        """Providers whose response could not be decoded (hard failures)."""
        return [
            attempt.provider
            for attempt in self.attempts
            if attempt.status == "error" and attempt.error_type == "DecodeError"
        ]


class Success(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["success"] = "success"
    series: Series


class Empty(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["empty"] = "empty"
    reason: Optional[str] = None


class Failure(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["failure"] = "failure"
    message: str
    error_type: Optional[str] = None


ProviderOutcome = Union[Success, Empty, Failure]
