"""
Validated intermediate representations of the two cube wire formats.

Both formats arrive as loosely-typed JSON. Parsing them into these models
first means a missing or mistyped field fails fast with DecodeError instead
of surfacing later as a None somewhere inside a decoder.

- Format A: JSON-stat 2.0 (dense, category-indexed), e.g. Eurostat
- Format B: SDMX-JSON 1.0/2.0 (sparse, index-keyed), e.g. OECD, ILOSTAT
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..exceptions import DecodeError


class _Lenient(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


# ---------------------------------------------------------------------------
# Format A: JSON-stat
# ---------------------------------------------------------------------------

class JsonStatCategory(_Lenient):
    index: Union[Dict[str, int], List[str], None] = None
    label: Optional[Dict[str, str]] = None

    def ordered_codes(self) -> List[str]:
        """Codes sorted by declared position."""
        if self.index is None:
            # A single-category dimension may carry only a label
            return list((self.label or {}).keys())
        if isinstance(self.index, list):
            return list(self.index)
        return [code for code, _ in sorted(self.index.items(), key=lambda item: item[1])]

    def ordered_labels(self) -> List[str]:
        """Display labels in position order, falling back to the raw code."""
        labels = self.label or {}
        return [labels.get(code) or code for code in self.ordered_codes()]


class JsonStatDimension(_Lenient):
    label: Optional[str] = None
    category: JsonStatCategory


class JsonStatDataset(_Lenient):
    label: Optional[str] = None
    id: Optional[List[str]] = None
    size: Optional[List[int]] = None
    dimension: Dict[str, JsonStatDimension]
    value: Union[List[Any], Dict[str, Any]] = Field(default_factory=list)
    updated: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "JsonStatDataset":
        """Accept either {"dataset": {...}} or a flat JSON-stat 2.0 document."""
        if not isinstance(payload, dict):
            raise DecodeError("JSON-stat payload must be an object", fmt="jsonstat")
        body = payload.get("dataset") if isinstance(payload.get("dataset"), dict) else payload
        if "dimension" not in body:
            raise DecodeError("JSON-stat payload has no dimension metadata", fmt="jsonstat")
        try:
            return cls.model_validate(body)
        except ValidationError as exc:
            raise DecodeError(f"Malformed JSON-stat payload: {exc}", fmt="jsonstat") from exc

    @property
    def dimension_order(self) -> List[str]:
        return list(self.id) if self.id else list(self.dimension.keys())


# ---------------------------------------------------------------------------
# Format B: SDMX-JSON
# ---------------------------------------------------------------------------

class SdmxValue(_Lenient):
    id: str = Field(validation_alias=AliasChoices("id", "key"))
    name: Optional[str] = None
    names: Optional[Dict[str, str]] = None

    @field_validator("id", mode="before")
    @classmethod
    def stringify_id(cls, v):
        return v if isinstance(v, str) or v is None else str(v)

    @field_validator("name", mode="before")
    @classmethod
    def flatten_name(cls, v):
        # SDMX-JSON 1.0 sometimes localizes "name" itself
        if isinstance(v, dict):
            return v.get("en") or next(iter(v.values()), None)
        return v

    @property
    def display_name(self) -> Optional[str]:
        if self.name:
            return self.name
        if self.names:
            return self.names.get("en") or next(iter(self.names.values()), None)
        return None


class SdmxComponent(_Lenient):
    id: str
    name: Optional[Any] = None
    role: Optional[Union[str, List[str], Dict[str, Any]]] = Field(
        default=None, validation_alias=AliasChoices("role", "roles")
    )
    key_position: Optional[int] = Field(default=None, alias="keyPosition")
    values: List[SdmxValue] = Field(default_factory=list)

    @property
    def role_id(self) -> Optional[str]:
        if isinstance(self.role, str):
            return self.role
        if isinstance(self.role, list) and self.role and isinstance(self.role[0], str):
            return self.role[0]
        if isinstance(self.role, dict):
            first = next(iter(self.role.values()), None)
            return first if isinstance(first, str) else None
        return None


class SdmxDimensionGroups(_Lenient):
    observation: List[SdmxComponent] = Field(default_factory=list)
    series: List[SdmxComponent] = Field(default_factory=list)
    dataset: List[SdmxComponent] = Field(default_factory=list, alias="dataSet")


class SdmxAttributeGroups(_Lenient):
    observation: List[SdmxComponent] = Field(default_factory=list)


class SdmxStructure(_Lenient):
    name: Optional[Any] = None
    dimensions: SdmxDimensionGroups
    attributes: SdmxAttributeGroups = Field(default_factory=SdmxAttributeGroups)

    @property
    def display_name(self) -> Optional[str]:
        if isinstance(self.name, dict):
            return self.name.get("en")
        return self.name


class SdmxDataSet(_Lenient):
    observations: Dict[str, Any] = Field(default_factory=dict)


class SdmxDocument(_Lenient):
    structure: SdmxStructure
    data_sets: List[Optional[SdmxDataSet]] = Field(alias="dataSets")

    @classmethod
    def from_payload(cls, payload: Any) -> "SdmxDocument":
        """Accept the 1.0 layout and the 2.0 layout nested under "data"."""
        if not isinstance(payload, dict):
            raise DecodeError("SDMX-JSON payload must be an object", fmt="sdmx-json")

        body = payload
        if isinstance(payload.get("data"), dict) and "dataSets" in payload["data"]:
            body = payload["data"]

        structure = body.get("structure")
        if structure is None:
            structures = body.get("structures") or []
            structure = structures[0] if structures else None
        if not isinstance(structure, dict) or not isinstance(structure.get("dimensions"), dict):
            raise DecodeError("SDMX-JSON payload has no dimension metadata", fmt="sdmx-json")
        if "dataSets" not in body:
            raise DecodeError("SDMX-JSON payload has no dataSets", fmt="sdmx-json")

        try:
            return cls.model_validate({"structure": structure, "dataSets": body["dataSets"]})
        except ValidationError as exc:
            raise DecodeError(f"Malformed SDMX-JSON payload: {exc}", fmt="sdmx-json") from exc

    @property
    def observations(self) -> Dict[str, Any]:
        if not self.data_sets or self.data_sets[0] is None:
            return {}
        return self.data_sets[0].observations
