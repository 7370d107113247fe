"""Decoders for the JSON-stat and SDMX-JSON cube formats."""
from .jsonstat import JsonStatCube, decode_format_a, decode_jsonstat
from .periods import infer_freq, normalize_period
from .sdmx_json import (
    SdmxParseResult,
    SdmxRow,
    decode_format_b,
    decode_sdmx_json,
    parse_sdmx_json,
    rows_to_observations,
)

__all__ = [
    "JsonStatCube",
    "SdmxParseResult",
    "SdmxRow",
    "decode_format_a",
    "decode_format_b",
    "decode_jsonstat",
    "decode_sdmx_json",
    "infer_freq",
    "normalize_period",
    "parse_sdmx_json",
    "rows_to_observations",
]
