"""
SDMX-JSON decoder (Format B).

Observations are stored sparsely as a map from colon-joined positional
indexes ("0:3:1") to either a scalar or `[value, attr_index, ...]`. Each
segment indexes into the code list of the observation dimension at the
same position. Code lists are usually embedded in the structure; when they
are not, they come from the dimension resolver.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..exceptions import DecodeError
from ..models import DimensionCode, DimensionDescriptor, Observation
from .documents import SdmxComponent, SdmxDocument

logger = logging.getLogger(__name__)

TIME_DIMENSION_IDS = ("TIME_PERIOD", "TIME", "PERIOD")
GEO_DIMENSION_IDS = ("REF_AREA", "LOCATION", "GEO", "COUNTRY", "COU")


@dataclass
class SdmxRow:
    key: str
    dimensions: Dict[str, str]
    value: Any
    attributes: Optional[Dict[str, Optional[str]]] = None


@dataclass
class SdmxParseResult:
    dimensions: List[DimensionDescriptor]
    rows: List[SdmxRow] = field(default_factory=list)
    title: Optional[str] = None


def _descriptor(
    component: SdmxComponent,
    dimension_codes: Optional[Mapping[str, Sequence[DimensionCode]]],
) -> DimensionDescriptor:
    codes = [DimensionCode(id=value.id, name=value.display_name) for value in component.values]
    if not codes and dimension_codes:
        resolved = dimension_codes.get(component.id) or dimension_codes.get(component.id.upper())
        codes = list(resolved or [])
    return DimensionDescriptor(id=component.id, codes=codes, role=component.role_id)


def _resolve_attributes(
    raw: Sequence[Any],
    definitions: Sequence[SdmxComponent],
) -> Dict[str, Optional[str]]:
    attributes: Dict[str, Optional[str]] = {}
    for definition, index in zip(definitions, raw):
        if index is None:
            continue
        if isinstance(index, int) and not isinstance(index, bool) and 0 <= index < len(definition.values):
            attributes[definition.id] = definition.values[index].id
        else:
            attributes[definition.id] = str(index)
    return attributes


def parse_sdmx_json(
    payload: Any,
    dimension_codes: Optional[Mapping[str, Sequence[DimensionCode]]] = None,
) -> SdmxParseResult:
    """
    Expand every sparse observation key into a row.

    Args:
        payload: SDMX-JSON 1.0 or 2.0 document
        dimension_codes: Code lists for dimensions whose values are not embedded,
            keyed by dimension id (see DimensionResolver.resolve)

    Raises:
        DecodeError: missing structure, a key segment that is not an integer,
            or a key with more segments than there are dimensions
    """
    document = SdmxDocument.from_payload(payload)
    components = document.structure.dimensions.observation
    if not components:
        raise DecodeError("SDMX-JSON structure declares no observation dimensions", fmt="sdmx-json")

    descriptors = [_descriptor(component, dimension_codes) for component in components]
    attribute_defs = document.structure.attributes.observation

    rows: List[SdmxRow] = []
    for key, raw in document.observations.items():
        segments = key.split(":") if key != "" else []
        if len(segments) > len(descriptors):
            raise DecodeError(
                f"Observation key '{key}' has {len(segments)} segments for {len(descriptors)} dimensions",
                fmt="sdmx-json",
            )

        dims: Dict[str, str] = {}
        for descriptor, segment in zip(descriptors, segments):
            try:
                position = int(segment)
            except ValueError:
                raise DecodeError(f"Observation key '{key}' has non-integer segment '{segment}'", fmt="sdmx-json") from None
            if 0 <= position < len(descriptor.codes):
                dims[descriptor.id] = descriptor.codes[position].id

        if isinstance(raw, list):
            value = raw[0] if raw else None
            attributes = _resolve_attributes(raw[1:], attribute_defs) if len(raw) > 1 else None
        else:
            value = raw
            attributes = None

        rows.append(SdmxRow(key=key, dimensions=dims, value=value, attributes=attributes))

    return SdmxParseResult(dimensions=descriptors, rows=rows, title=document.structure.display_name)


def infer_time_dimension(dimensions: Sequence[DimensionDescriptor]) -> Optional[str]:
    for candidate in TIME_DIMENSION_IDS:
        for dim in dimensions:
            if dim.id.upper() == candidate:
                return dim.id
    for dim in dimensions:
        if dim.role and "time" in dim.role.lower():
            return dim.id
    return dimensions[-1].id if dimensions else None


def infer_geo_dimension(dimensions: Sequence[DimensionDescriptor]) -> Optional[str]:
    for candidate in GEO_DIMENSION_IDS:
        for dim in dimensions:
            if dim.id.upper() == candidate:
                return dim.id
    for dim in dimensions:
        if dim.role and "area" in dim.role.lower():
            return dim.id
    return None


def _numeric(raw: Any) -> Optional[float]:
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
    elif isinstance(raw, str):
        try:
            value = float(raw)
        except ValueError:
            return None
    else:
        return None
    return None if math.isnan(value) else value


def rows_to_observations(
    result: SdmxParseResult,
    time_dim: Optional[str] = None,
    geo_dim: Optional[str] = None,
) -> List[Observation]:
    time_key = time_dim or infer_time_dimension(result.dimensions)
    geo_key = geo_dim or infer_geo_dimension(result.dimensions)

    observations: List[Observation] = []
    dropped = 0
    for row in result.rows:
        time = row.dimensions.get(time_key) if time_key else None
        value = _numeric(row.value)
        if not time or value is None:
            dropped += 1
            continue
        observations.append(
            Observation(time=time, value=value, geo=row.dimensions.get(geo_key) if geo_key else None)
        )

    if dropped:
        logger.debug(f"Dropped {dropped} SDMX rows without a time period or numeric value")
    return observations


def decode_sdmx_json(
    payload: Any,
    time_dim: Optional[str] = None,
    geo_dim: Optional[str] = None,
    dimension_codes: Optional[Mapping[str, Sequence[DimensionCode]]] = None,
) -> List[Observation]:
    """Decode an SDMX-JSON document straight to observations."""
    return rows_to_observations(
        parse_sdmx_json(payload, dimension_codes=dimension_codes),
        time_dim=time_dim,
        geo_dim=geo_dim,
    )


def decode_format_b(doc: Any, time_dim: Optional[str] = None, geo_dim: Optional[str] = None) -> List[Observation]:
    return decode_sdmx_json(doc, time_dim=time_dim, geo_dim=geo_dim)
