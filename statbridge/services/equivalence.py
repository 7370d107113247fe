"""
Indicator Equivalence Service

Loads the semantic id -> provider mapping table from YAML. Each entry names
the indicator and, per provider, where to find it:

    unemployment_rate:
      label: Unemployment rate
      unit: "%"
      wb: SL.UEM.TOTL.ZS
      eurostat:
        dataset: une_rt_a
        filters: {age: Y15-74, sex: T, unit: PC_ACT}
      oecd:
        flow: OECD.SDD.TPS,DSD_LFS@DF_IALFS_UNE_M,1.0
        key_template: "{LOCATION}.UNE_LF_M..."

String values are shorthand for the provider's primary identifier.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from ..config import get_settings
from ..exceptions import ConfigurationError
from ..models import PROVIDER_KEYS

logger = logging.getLogger(__name__)


class EurostatMapping(BaseModel):
    dataset: str
    filters: Dict[str, str] = Field(default_factory=dict)
    regional_dataset: Optional[str] = None

    def __str__(self) -> str:
        return self.dataset


class SdmxMapping(BaseModel):
    flow: str
    key_template: str = ""
    placeholders: Dict[str, str] = Field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.flow}/{self.key_template}" if self.key_template else self.flow


class EquivalenceEntry(BaseModel):
    label: str
    unit: Optional[str] = None
    description: Optional[str] = None
    eurostat: Optional[Union[EurostatMapping, str]] = None
    oecd: Optional[Union[SdmxMapping, str]] = None
    wb: Optional[str] = None
    ilostat: Optional[Union[SdmxMapping, str]] = None

    @field_validator("eurostat", mode="before")
    @classmethod
    def expand_eurostat(cls, v):
        return {"dataset": v} if isinstance(v, str) else v

    @field_validator("oecd", "ilostat", mode="before")
    @classmethod
    def expand_sdmx(cls, v):
        return {"flow": v} if isinstance(v, str) else v

    def mapping_for(self, provider: str) -> Any:
        return getattr(self, provider, None) if provider in PROVIDER_KEYS else None

    def provider_ids(self) -> Dict[str, Any]:
        """Providers that carry this indicator, in canonical key order."""
        return {
            provider: mapping
            for provider in PROVIDER_KEYS
            if (mapping := self.mapping_for(provider))
        }


def validate_equivalence_entry(entry: Any) -> bool:
    """An entry needs a label and at least one provider mapping."""
    if not isinstance(entry, Mapping):
        return False
    has_provider = any(entry.get(provider) for provider in PROVIDER_KEYS)
    return has_provider and bool(entry.get("label"))


class EquivalenceTable:
    """Validated, read-only view over the equivalence data."""

    def __init__(self, entries: Optional[Mapping[str, EquivalenceEntry]] = None):
        self._entries: Dict[str, EquivalenceEntry] = dict(entries or {})

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EquivalenceTable":
        entries: Dict[str, EquivalenceEntry] = {}
        for semantic_id, raw in data.items():
            if not validate_equivalence_entry(raw):
                logger.warning(f"Skipping equivalence entry '{semantic_id}': needs a label and a provider")
                continue
            try:
                entries[str(semantic_id)] = EquivalenceEntry.model_validate(raw)
            except ValidationError as e:
                logger.warning(f"Skipping malformed equivalence entry '{semantic_id}': {e}")
        return cls(entries)

    def get(self, semantic_id: str) -> Optional[EquivalenceEntry]:
        return self._entries.get(semantic_id)

    def provider_ids(self, semantic_id: str) -> Dict[str, Any]:
        entry = self._entries.get(semantic_id)
        return entry.provider_ids() if entry else {}

    def semantic_ids(self) -> List[str]:
        return sorted(self._entries)

    def __contains__(self, semantic_id: object) -> bool:
        return semantic_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def load_equivalence(path: Optional[Path] = None) -> EquivalenceTable:
    """
    Load the equivalence table from YAML.

    Raises:
        ConfigurationError: file unreadable, not valid YAML, or not a mapping
    """
    file_path = Path(path) if path else get_settings().equivalence_path
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigurationError(f"Cannot read equivalence file {file_path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Error parsing {file_path}: {e}") from e

    if not isinstance(data, Mapping):
        raise ConfigurationError(f"Equivalence file {file_path} must contain a mapping")

    table = EquivalenceTable.from_dict(data)
    logger.info(f"Loaded {len(table)} equivalence entries from {file_path.name}")
    return table


_equivalence: Optional[EquivalenceTable] = None


def get_equivalence() -> EquivalenceTable:
    """Get the global equivalence table."""
    global _equivalence
    if _equivalence is None:
        _equivalence = load_equivalence()
    return _equivalence
