"""
JSON-stat decoder (Format A).

JSON-stat stores a cube densely: one value per combination of dimension
categories, laid out in row-major order over the dimensions listed in `id`.
For dimension i the stride is the product of the sizes of every dimension
after it, so a linear position p decodes to category index
`(p // stride[i]) % size[i]`.
"""
from __future__ import annotations

import logging
import math
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ..exceptions import DecodeError
from ..models import Observation
from .documents import JsonStatDataset

logger = logging.getLogger(__name__)


def _to_float(raw: Any) -> float:
    """Numeric cast; anything that is not a number becomes NaN."""
    if isinstance(raw, bool):
        return math.nan
    if isinstance(raw, (int, float)):
        return float(raw)
    if isinstance(raw, str):
        try:
            return float(raw)
        except ValueError:
            return math.nan
    return math.nan


def compute_strides(sizes: List[int]) -> List[int]:
    """Row-major strides: stride[i] = product(sizes[i+1:])."""
    strides = [1] * len(sizes)
    for i in range(len(sizes) - 2, -1, -1):
        strides[i] = strides[i + 1] * sizes[i + 1]
    return strides


class JsonStatCube:
    """A validated JSON-stat dataset with its axes resolved."""

    def __init__(self, dataset: JsonStatDataset):
        self.dataset = dataset
        self.dimension_ids: List[str] = dataset.dimension_order

        missing = [dim for dim in self.dimension_ids if dim not in dataset.dimension]
        if missing:
            raise DecodeError(f"Dimensions listed in id have no metadata: {missing}", fmt="jsonstat")

        self.codes: Dict[str, List[str]] = {}
        self.labels: Dict[str, List[str]] = {}
        for dim in self.dimension_ids:
            category = dataset.dimension[dim].category
            self.codes[dim] = category.ordered_codes()
            self.labels[dim] = category.ordered_labels()

        if dataset.size is not None:
            if len(dataset.size) != len(self.dimension_ids):
                raise DecodeError(
                    f"size has {len(dataset.size)} entries but id lists {len(self.dimension_ids)} dimensions",
                    fmt="jsonstat",
                )
            for dim, size in zip(self.dimension_ids, dataset.size):
                if size != len(self.codes[dim]):
                    raise DecodeError(
                        f"Dimension '{dim}' declares size {size} but has {len(self.codes[dim])} categories",
                        fmt="jsonstat",
                    )
            self.sizes = list(dataset.size)
        else:
            self.sizes = [len(self.codes[dim]) for dim in self.dimension_ids]

        self.strides = compute_strides(self.sizes)
        self.total = math.prod(self.sizes) if self.sizes else 0
        self._check_values()

    @classmethod
    def from_payload(cls, payload: Any) -> "JsonStatCube":
        return cls(JsonStatDataset.from_payload(payload))

    def _check_values(self) -> None:
        values = self.dataset.value
        if isinstance(values, list):
            if len(values) != self.total:
                raise DecodeError(
                    f"value has {len(values)} cells but the cube holds {self.total}",
                    fmt="jsonstat",
                )
            return
        for key in values:
            try:
                position = int(key)
            except (TypeError, ValueError):
                raise DecodeError(f"value key '{key}' is not a position", fmt="jsonstat") from None
            if not 0 <= position < self.total:
                raise DecodeError(
                    f"value key {position} is outside the cube (0..{self.total - 1})",
                    fmt="jsonstat",
                )

    def indices(self, position: int) -> List[int]:
        return [(position // stride) % size for stride, size in zip(self.strides, self.sizes)]

    def cells(self) -> Iterator[Tuple[int, Any]]:
        """Yield (position, raw value) for every non-null cell in position order."""
        values = self.dataset.value
        if isinstance(values, list):
            for position, raw in enumerate(values):
                if raw is not None:
                    yield position, raw
        else:
            for position, raw in sorted(((int(k), v) for k, v in values.items()), key=lambda kv: kv[0]):
                if raw is not None:
                    yield position, raw

    def rows(self, use_labels: bool = True) -> Iterator[Tuple[Dict[str, str], Any]]:
        """Yield ({dimension: category}, raw value) for every non-null cell."""
        table = self.labels if use_labels else self.codes
        for position, raw in self.cells():
            coords = {
                dim: table[dim][index]
                for dim, index in zip(self.dimension_ids, self.indices(position))
            }
            yield coords, raw


def decode_jsonstat(
    payload: Any,
    time_dim: str = "time",
    geo_dim: Optional[str] = "geo",
    use_labels: bool = True,
) -> List[Observation]:
    """
    Flatten a JSON-stat document into observations.

    Args:
        payload: Decoded JSON, either {"dataset": {...}} or flat JSON-stat 2.0
        time_dim: Dimension whose category becomes Observation.time
        geo_dim: Dimension whose category becomes Observation.geo; when None or
            absent from the cube every observation gets geo=None
        use_labels: Emit display labels (default) or raw category codes

    Returns:
        One observation per non-null cell. Non-numeric cells are kept with a
        NaN value.

    Raises:
        DecodeError: on any shape mismatch, or when time_dim is not a dimension
    """
    cube = JsonStatCube.from_payload(payload)
    if time_dim not in cube.dimension_ids:
        raise DecodeError(f"Time dimension '{time_dim}' not present in {cube.dimension_ids}", fmt="jsonstat")
    geo_key = geo_dim if geo_dim and geo_dim in cube.dimension_ids else None

    observations = [
        Observation(
            time=coords[time_dim],
            value=_to_float(raw),
            geo=coords[geo_key] if geo_key else None,
        )
        for coords, raw in cube.rows(use_labels=use_labels)
    ]
    logger.debug(f"Decoded {len(observations)} JSON-stat observations from {cube.total} cells")
    return observations


def decode_format_a(doc: Any, time_dim: str = "time", geo_dim: Optional[str] = "geo") -> List[Observation]:
    return decode_jsonstat(doc, time_dim=time_dim, geo_dim=geo_dim)
