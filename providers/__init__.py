"""
Provider Adapters Package

Each provider has its own subpackage with:
- api_client.py: REST endpoints and the provider's asset model
- __init__.py: Adapter class implementing ProviderAdapter

Adapters are registered here at import time. Adding a provider means adding
a subpackage and one PROVIDER_REGISTRY entry.
"""

from typing import Dict, Type

from core.provider_interface import ProviderAdapter
from providers.across import AcrossProvider
from providers.cctp import CCTPProvider
from providers.lifi import LiFiProvider
from providers.near_intents import NearIntentsProvider

PROVIDER_REGISTRY: Dict[str, Type[ProviderAdapter]] = {
    LiFiProvider.name: LiFiProvider,
    AcrossProvider.name: AcrossProvider,
    NearIntentsProvider.name: NearIntentsProvider,
    CCTPProvider.name: CCTPProvider,
}

__all__ = ["PROVIDER_REGISTRY", "LiFiProvider", "AcrossProvider", "NearIntentsProvider", "CCTPProvider"]
