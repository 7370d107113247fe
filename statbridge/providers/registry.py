"""Provider registry keyed by routing key."""
from __future__ import annotations

from typing import Dict, Optional

from .base import BaseProvider
from .eurostat import EurostatProvider
from .ilostat import ILOSTATProvider
from .oecd import OECDProvider
from .worldbank import WorldBankProvider


def build_providers() -> Dict[str, BaseProvider]:
    """Instantiate one provider per agency with settings-derived defaults."""
    providers = [EurostatProvider(), OECDProvider(), WorldBankProvider(), ILOSTATProvider()]
    return {provider.provider_key: provider for provider in providers}


_providers: Optional[Dict[str, BaseProvider]] = None


def get_providers() -> Dict[str, BaseProvider]:
    """Get the global provider registry."""
    global _providers
    if _providers is None:
        _providers = build_providers()
    return _providers


def reset_providers() -> None:
    global _providers
    _providers = None
