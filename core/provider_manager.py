"""
Provider Manager - Central Registry for Provider Adapters

This module provides a centralized manager for all provider adapters.
Adapters are registered at import time in providers.PROVIDER_REGISTRY;
nothing is loaded from remote sources at runtime.

Design Benefits:
    - Single source of truth for available providers
    - Adding a provider means registering one more adapter class
    - Centralized lifecycle management (initialize/shutdown)
    - One Chain Registry shared by every adapter

Example Usage:
    manager = ProviderManager()
    await manager.initialize_all()

    lifi = manager.get_provider("lifi")
    assets = await lifi.get_listed_assets()

    await manager.shutdown_all()
"""

from typing import Dict, Iterable, List, Optional

from core.chain_registry import ChainRegistry
from core.config import settings
from core.errors import UnknownProvider
from core.logging import logger
from core.provider_interface import ProviderAdapter


class ProviderManager:
    """
    Central Manager for Provider Adapters

    Attributes:
        providers: Mapping of provider id to adapter instance
        registry: Chain Registry shared by all adapters

    Example:
        >>> manager = ProviderManager()
        >>> manager.list_providers()
        ['lifi', 'across', 'near-intents', 'cctp']
    """

    def __init__(
        self,
        providers: Optional[Iterable[ProviderAdapter]] = None,
        enabled: Optional[List[str]] = None,
        registry: Optional[ChainRegistry] = None,
    ):
        """
        Create the manager and register adapters.

        Args:
            providers: Adapter instances to register instead of the built-in ones
            enabled: Provider ids to instantiate from the built-in registry
                     (defaults to settings.enabled_providers_list)
            registry: Chain Registry to share (a new one by default)

        Note:
            Adapters are created but not initialized here.
            Call initialize_all() to open their sessions.
        """
        self.registry = registry or ChainRegistry()
        self.providers: Dict[str, ProviderAdapter] = {}

        if providers is not None:
            for adapter in providers:
                self.register(adapter)
        else:
            # Imported here: provider packages import core modules
            from providers import PROVIDER_REGISTRY

            for provider_id in enabled if enabled is not None else settings.enabled_providers_list:
                adapter_cls = PROVIDER_REGISTRY.get(provider_id)
                if adapter_cls is None:
                    logger.warning(
                        f"Provider '{provider_id}' is enabled but not registered. "
                        f"Known providers: {', '.join(PROVIDER_REGISTRY)}"
                    )
                    continue
                self.register(adapter_cls(registry=self.registry))

        logger.info(
            f"ProviderManager initialized with {len(self.providers)} provider(s): "
            f"{', '.join(self.providers.keys())}"
        )

    def register(self, adapter: ProviderAdapter) -> None:
        """Register an adapter instance under its name."""
        self.providers[adapter.name.lower()] = adapter

    # ============================================
    # Provider Retrieval Methods
    # ============================================

    def get_provider(self, name: str) -> ProviderAdapter:
        """
        Get a provider adapter by id.

        Raises:
            UnknownProvider: If no adapter is registered under that id
        """
        name = name.lower()

        if name not in self.providers:
            available = ", ".join(self.providers.keys())
            logger.error(f"Provider '{name}' not found. Available: {available}")
            raise UnknownProvider(
                f"Provider '{name}' is not supported. "
                f"Available providers: {available}"
            )

        return self.providers[name]

    def has_provider(self, name: str) -> bool:
        """Check if a provider is registered (case-insensitive)."""
        return name.lower() in self.providers

    def list_providers(self) -> List[str]:
        """Ids of every registered provider."""
        return list(self.providers.keys())

    # ============================================
    # Lifecycle Management
    # ============================================

    async def initialize_all(self) -> None:
        """
        Initialize every registered provider.

        A provider that fails to initialize is logged and skipped; the others
        still start.
        """
        logger.info("Initializing all providers...")

        for name, provider in self.providers.items():
            try:
                logger.debug(f"Initializing {name}...")
                await provider.initialize()
                logger.info(f"✓ {name} initialized successfully")
            except Exception as e:
                logger.error(f"✗ Failed to initialize {name}: {e}")

        logger.info("All providers initialized")

    async def shutdown_all(self) -> None:
        """Shutdown every provider gracefully."""
        logger.info("Shutting down all providers...")

        for name, provider in self.providers.items():
            try:
                await provider.shutdown()
                logger.debug(f"✓ {name} shut down")
            except Exception as e:
                logger.error(f"✗ Error shutting down {name}: {e}")

        logger.info("All providers shut down")

    # ============================================
    # Health Check Methods
    # ============================================

    async def health_check_all(self) -> Dict[str, bool]:
        """
        Check health status of all providers.

        Returns:
            Dict[str, bool]: provider id -> healthy

        Example:
            >>> await manager.health_check_all()
            {'lifi': True, 'across': True, 'near-intents': False}
        """
        health_status = {}
        for name, provider in self.providers.items():
            try:
                health_status[name] = await provider.health_check()
            except Exception as e:
                logger.error(f"Health check failed for {name}: {e}")
                health_status[name] = False

        return health_status

    # ============================================
    # Capability Queries
    # ============================================

    def get_providers_with_feature(self, feature: str) -> List[str]:
        """
        Ids of providers supporting an operation.

        Example:
            >>> manager.get_providers_with_feature("liquidity")
            ['lifi', 'across']
        """
        supporting = [name for name, provider in self.providers.items() if provider.supports(feature)]
        logger.debug(f"Feature '{feature}' supported by: {', '.join(supporting) or 'none'}")
        return supporting

    def get_provider_capabilities(self, name: str) -> Dict[str, bool]:
        """Copy of a provider's capabilities dict."""
        return self.get_provider(name).capabilities.copy()

    def __repr__(self) -> str:
        return f"<ProviderManager(providers={list(self.providers.keys())})>"

    def __len__(self) -> int:
        return len(self.providers)


# ============================================
# Global Manager Instance (Optional)
# ============================================

_manager: Optional[ProviderManager] = None


def get_manager() -> ProviderManager:
    """
    Get the global ProviderManager instance, created on first call.

    Example:
        >>> from core.provider_manager import get_manager
        >>> lifi = get_manager().get_provider("lifi")
    """
    global _manager
    if _manager is None:
        _manager = ProviderManager()
        logger.debug("Created global ProviderManager instance")
    return _manager
