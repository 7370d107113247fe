"""Time-period label helpers shared by the decoders and providers."""
from __future__ import annotations

import re
from typing import Iterable

_QUARTER = re.compile(r"^(\d{4})-?Q([1-4])$", re.IGNORECASE)
_MONTH = re.compile(r"^(\d{4})-?M?(\d{2})$", re.IGNORECASE)
_YEAR = re.compile(r"^\d{4}$")


def normalize_period(label: str) -> str:
    """
    Bring period labels to one sortable spelling.

    "2020" stays "2020", "2020Q1"/"2020-Q1" become "2020-Q1" and
    "2020M01"/"2020-01" become "2020-01". Anything else is returned as is.
    """
    text = (label or "").strip()
    if _YEAR.match(text):
        return text
    match = _QUARTER.match(text)
    if match:
        return f"{match.group(1)}-Q{match.group(2)}"
    match = _MONTH.match(text)
    if match:
        return f"{match.group(1)}-{match.group(2)}"
    return text


def infer_freq(labels: Iterable[str]) -> str:
    """Guess A/Q/M from the first period label; annual when unknown."""
    for label in labels:
        sample = normalize_period(label)
        if "-Q" in sample:
            return "Q"
        if "-" in sample and len(sample.split("-")[-1]) == 2:
            return "M"
        return "A"
    return "A"
