"""
Shared pytest fixtures for statbridge tests.

This module provides common fixtures used across all test modules.
Import fixtures from here instead of defining them in individual test files.
"""
from __future__ import annotations

import json
from typing import Any, Callable, Dict, List
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from statbridge.services.dsd_cache import reset_dimension_resolvers
from statbridge.services.http_pool import set_http_client


# ============================================================================
# Environment Fixtures
# ============================================================================

@pytest.fixture(autouse=True)
def reset_singletons():
    """Drop process-wide state that individual tests install."""
    yield
    set_http_client(None)
    reset_dimension_resolvers()


@pytest.fixture
def no_sleep():
    """Make retry backoff instant; the mock records the requested delays."""
    with patch("statbridge.utils.retry.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        yield mock_sleep


# ============================================================================
# HTTP Fixtures
# ============================================================================

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture
def install_transport():
    """Route the shared HTTP client through an httpx.MockTransport handler.

    Returns a function taking the handler; every request seen is appended
    to the returned list.
    """
    def _install(handler: Handler) -> List[httpx.Request]:
        seen: List[httpx.Request] = []

        def _recording(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return handler(request)

        set_http_client(httpx.AsyncClient(transport=httpx.MockTransport(_recording)))
        return seen

    return _install


def json_response(payload: Any, status_code: int = 200, headers: Dict[str, str] | None = None) -> httpx.Response:
    return httpx.Response(
        status_code,
        content=json.dumps(payload).encode(),
        headers={"Content-Type": "application/json", **(headers or {})},
    )


# ============================================================================
# Payload Fixtures
# ============================================================================

@pytest.fixture
def jsonstat_payload() -> Dict[str, Any]:
    """Eurostat-style JSON-stat: one geo, two years, one unit."""
    return {
        "version": "2.0",
        "class": "dataset",
        "label": "Unemployment by sex and age - annual data",
        "id": ["unit", "geo", "time"],
        "size": [1, 1, 2],
        "dimension": {
            "unit": {"category": {"index": {"PC_ACT": 0}, "label": {"PC_ACT": "Percentage of population in the labour force"}}},
            "geo": {"category": {"index": {"SE": 0}, "label": {"SE": "Sweden"}}},
            "time": {"category": {"index": {"2020": 0, "2021": 1}, "label": {"2020": "2020", "2021": "2021"}}},
        },
        "value": {"0": 8.3, "1": 8.8},
    }


@pytest.fixture
def sdmx_payload() -> Dict[str, Any]:
    """SDMX-JSON 1.0 with every dimension at observation level."""
    return {
        "structure": {
            "name": "Unemployment rate",
            "dimensions": {
                "observation": [
                    {"id": "REF_AREA", "values": [{"id": "SWE", "name": "Sweden"}, {"id": "NOR", "name": "Norway"}]},
                    {"id": "UNIT_MEASURE", "values": [{"id": "PT_LF_SUB", "name": "Percentage of labour force"}]},
                    {"id": "TIME_PERIOD", "values": [{"id": "2020"}, {"id": "2021"}, {"id": "2022"}]},
                ]
            },
            "attributes": {"observation": [{"id": "OBS_STATUS", "values": [{"id": "A"}, {"id": "E"}]}]},
        },
        "dataSets": [
            {
                "observations": {
                    "0:0:0": [8.3, 0],
                    "0:0:1": [8.8, 1],
                    "0:0:2": [7.5],
                    "1:0:0": [4.6, 0],
                }
            }
        ],
    }
