"""
Unit normalization for indicator values.

Upstream agencies spell the same unit many ways ("%", "Percentage",
"per 100 000 inhabitants"). normalize_unit() reduces them to a StandardUnit;
convert_rate() moves values between the rate-like units through a shared
ratio basis.
"""
from __future__ import annotations

import re
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel

from ..exceptions import UnitConversionError


class StandardUnit(str, Enum):
    COUNT = "count"
    PERCENT = "percent"
    PER_1000 = "per_1000"
    PER_100K = "per_100k"
    PER_MILLION = "per_million"
    RATIO = "ratio"
    INDEX = "index"
    UNKNOWN = "unknown"


class NormalizedUnit(BaseModel):
    unit: StandardUnit
    original: Optional[str] = None


UNIT_ALIASES: Dict[str, StandardUnit] = {
    "%": StandardUnit.PERCENT,
    "percent": StandardUnit.PERCENT,
    "per cent": StandardUnit.PERCENT,
    "percentage": StandardUnit.PERCENT,
    "per 1,000": StandardUnit.PER_1000,
    "per 1000": StandardUnit.PER_1000,
    "per 1 000": StandardUnit.PER_1000,
    "per thousand": StandardUnit.PER_1000,
    "per 100,000": StandardUnit.PER_100K,
    "per 100000": StandardUnit.PER_100K,
    "per 100 000": StandardUnit.PER_100K,
    "per 100k": StandardUnit.PER_100K,
    "per 1e5": StandardUnit.PER_100K,
    "per 1,000,000": StandardUnit.PER_MILLION,
    "per 1000000": StandardUnit.PER_MILLION,
    "per 1 000 000": StandardUnit.PER_MILLION,
    "per million": StandardUnit.PER_MILLION,
    "ratio": StandardUnit.RATIO,
    "share": StandardUnit.RATIO,
    "index": StandardUnit.INDEX,
    "index (2015=100)": StandardUnit.INDEX,
    "index (2010=100)": StandardUnit.INDEX,
    "number": StandardUnit.COUNT,
    "count": StandardUnit.COUNT,
    "people": StandardUnit.COUNT,
    "usd": StandardUnit.COUNT,
    "eur": StandardUnit.COUNT,
}

# Value of one unit expressed as a plain ratio
RATE_BASIS: Dict[StandardUnit, float] = {
    StandardUnit.PERCENT: 0.01,
    StandardUnit.PER_1000: 1e-3,
    StandardUnit.PER_100K: 1e-5,
    StandardUnit.PER_MILLION: 1e-6,
    StandardUnit.RATIO: 1.0,
}

# Longest groupings first so "per 1 000 000" is not read as "per 1 000"
_PATTERNS = (
    (re.compile(r"\bper\s*1[\s,]*000[\s,]*000\b"), StandardUnit.PER_MILLION),
    (re.compile(r"\bper\s*100[\s,]*000\b"), StandardUnit.PER_100K),
    (re.compile(r"\bper\s*1[\s,]*000\b"), StandardUnit.PER_1000),
)

UNIT_DESCRIPTIONS: Dict[StandardUnit, str] = {
    StandardUnit.PERCENT: "Percentage values from 0 to 100",
    StandardUnit.PER_1000: "Rate per 1 000 inhabitants",
    StandardUnit.PER_100K: "Rate per 100 000 inhabitants",
    StandardUnit.PER_MILLION: "Rate per 1 000 000 inhabitants",
    StandardUnit.RATIO: "Unitless ratio between 0 and 1",
    StandardUnit.INDEX: "Indexed measure (e.g. 2015 = 100)",
    StandardUnit.COUNT: "Absolute count or sum",
    StandardUnit.UNKNOWN: "Unclassified unit",
}


def _infer_unit(text: str) -> Optional[StandardUnit]:
    if text.endswith("%"):
        return StandardUnit.PERCENT
    for pattern, unit in _PATTERNS:
        if pattern.search(text):
            return unit
    if "index" in text:
        return StandardUnit.INDEX
    return None


def normalize_unit(text: Optional[str]) -> NormalizedUnit:
    """Classify a free-text unit label; `unknown` when nothing matches."""
    if not text:
        return NormalizedUnit(unit=StandardUnit.UNKNOWN)
    key = text.strip().lower()
    unit = UNIT_ALIASES.get(key) or _infer_unit(key)
    return NormalizedUnit(unit=unit or StandardUnit.UNKNOWN, original=text)


def is_rate_unit(unit) -> bool:
    try:
        return StandardUnit(unit) in RATE_BASIS
    except ValueError:
        return False


def convert_rate(value: float, source, target) -> float:
    """
    Convert a value between rate-like units.

    Raises:
        UnitConversionError: either unit is count, index, unknown or not a unit
    """
    if source == target:
        return value
    if not is_rate_unit(source) or not is_rate_unit(target):
        raise UnitConversionError(getattr(source, "value", source), getattr(target, "value", target))
    return value * RATE_BASIS[StandardUnit(source)] / RATE_BASIS[StandardUnit(target)]


def describe_unit(unit) -> str:
    try:
        return UNIT_DESCRIPTIONS[StandardUnit(unit)]
    except ValueError:
        return UNIT_DESCRIPTIONS[StandardUnit.UNKNOWN]
