"""
statbridge - one normalized time-series view over Eurostat, OECD, ILOSTAT
and World Bank statistics.
"""

from .parsers.jsonstat import decode_format_a
from .parsers.sdmx_json import decode_format_b
from .routing.policy import route
from .routing.region_codes import map_region_code
from .services.indicator_aliases import resolve_alias
from .services.units import convert_rate, normalize_unit

__version__ = "0.1.0"

__all__ = [
    "convert_rate",
    "decode_format_a",
    "decode_format_b",
    "map_region_code",
    "normalize_unit",
    "resolve_alias",
    "route",
]
