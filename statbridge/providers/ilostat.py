from __future__ import annotations

from typing import Optional

from ..config import get_settings
from .oecd import SdmxDataProvider


class ILOSTATProvider(SdmxDataProvider):
    """ILOSTAT SDMX REST API (sdmx.ilo.org). Flows are keyed by ISO3 REF_AREA."""

    @property
    def provider_key(self) -> str:
        return "ilostat"

    def __init__(self, base_url: Optional[str] = None, cache_ttl_ms: Optional[int] = None, **kwargs) -> None:
        super().__init__(base_url or get_settings().ilostat_base_url, cache_ttl_ms, **kwargs)
