"""
Configuration Management Module

This module handles loading, validating, and providing access to application configuration
from environment variables (.env file).

Uses Pydantic Settings for automatic validation and type conversion.

Key Features:
- Loads configuration from .env file
- Validates all required settings
- Provides type-safe access to configuration values
- Converts comma-separated strings to lists (providers, liquidity thresholds)
- Handles optional settings with sensible defaults

Usage:
    from core.config import settings

    # Access configuration values
    print(settings.lifi_base_url)
    print(settings.enabled_providers_list)  # Returns a list of strings
"""

from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """
    Application Settings

    This class defines all configuration parameters for the aggregation core.
    Values are automatically loaded from environment variables or .env file.

    Attributes:
        environment: Current environment (development, production)
        debug: Enable debug mode with verbose logging
        log_level: Logging level name
        request_timeout: Default timeout for HTTP requests in seconds
        max_retries: Default retry budget for retryable HTTP failures
        retry_min_delay: First backoff delay in seconds
        retry_max_delay: Upper bound for a single backoff delay in seconds
        max_requests_per_second: Default per-provider rate limit
        chain_directory_url: External chain directory used as registry fallback
        chain_directory_wait: Seconds a cache-miss caller may wait for the shared fetch
        chain_directory_refresh_interval: Minimum age before a populated cache is refetched
        enabled_providers: Comma-separated list of provider ids to register
        provider_timeout: Deadline for a whole provider task inside a snapshot
        liquidity_thresholds_bps: Comma-separated slippage thresholds in basis points
        liquidity_max_iterations: Binary search iteration budget per threshold
        liquidity_convergence_tolerance: Relative bound width that stops the search
        liquidity_default_ceiling_units: Search ceiling in whole tokens when the provider gives no hint
        volume_cache_ttl: Per-provider volume cache time-to-live in seconds
    """

    # ============================================
    # Application Configuration
    # ============================================

    environment: str = Field(
        default="development",
        description="Application environment (development, production)"
    )

    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # ============================================
    # HTTP Client Defaults
    # ============================================

    request_timeout: float = Field(
        default=30.0,
        description="HTTP request timeout in seconds"
    )

    max_retries: int = Field(
        default=3,
        description="Retry budget for 429/5xx/network failures"
    )

    retry_min_delay: float = Field(
        default=1.0,
        description="Initial backoff delay in seconds"
    )

    retry_max_delay: float = Field(
        default=5.0,
        description="Maximum backoff delay in seconds"
    )

    max_requests_per_second: int = Field(
        default=10,
        description="Maximum API requests per second per provider"
    )

    # ============================================
    # Chain Directory (Chain Registry fallback)
    # ============================================

    chain_directory_url: str = Field(
        default="https://chainid.network/chains.json",
        description="Chain directory endpoint (chain id -> name/shortName)"
    )

    chain_directory_wait: float = Field(
        default=2.0,
        description="Seconds an unknown-chain lookup waits for the shared directory fetch"
    )

    chain_directory_refresh_interval: float = Field(
        default=3600.0,
        description="Seconds before a populated directory cache may be refetched on a miss"
    )

    # ============================================
    # Provider Configuration
    # ============================================

    enabled_providers: str = Field(
        default="lifi,across,near-intents,cctp",
        description="Comma-separated list of provider ids"
    )

    provider_timeout: float = Field(
        default=60.0,
        description="Deadline in seconds for one provider's part of a snapshot"
    )

    lifi_base_url: str = Field(
        default="https://li.quest/v1",
        description="Li.Fi API base URL"
    )

    lifi_api_key: str = Field(
        default="",
        description="Li.Fi API key (optional, raises rate limits)"
    )

    across_base_url: str = Field(
        default="https://app.across.to/api",
        description="Across Protocol API base URL"
    )

    near_intents_base_url: str = Field(
        default="https://1click.chaindefuser.com",
        description="NEAR Intents 1Click API base URL"
    )

    near_intents_jwt: str = Field(
        default="",
        description="NEAR Intents 1Click JWT (optional)"
    )

    cctp_base_url: str = Field(
        default="https://iris-api.circle.com",
        description="Circle Iris API base URL (CCTP fees and allowance)"
    )

    defillama_bridges_url: str = Field(
        default="https://bridges.llama.fi",
        description="DefiLlama bridges API base URL"
    )

    defillama_api_url: str = Field(
        default="https://api.llama.fi",
        description="DefiLlama main API base URL"
    )

    # ============================================
    # Liquidity Probe Policy
    # ============================================

    liquidity_thresholds_bps: str = Field(
        default="50,100",
        description="Comma-separated slippage thresholds in basis points"
    )

    liquidity_max_iterations: int = Field(
        default=8,
        description="Binary search iteration budget per threshold"
    )

    liquidity_convergence_tolerance: float = Field(
        default=0.01,
        description="Stop searching once (high - low) / low drops below this value"
    )

    liquidity_default_ceiling_units: int = Field(
        default=1_000_000,
        description="Search ceiling in whole source tokens when no provider hint exists"
    )

    # ============================================
    # Caching Configuration
    # ============================================

    volume_cache_ttl: float = Field(
        default=300.0,
        description="Volume cache TTL in seconds"
    )

    # ============================================
    # Pydantic Settings Configuration
    # ============================================

    model_config = SettingsConfigDict(
        # Look for .env file in the project root
        env_file=".env",
        # Ignore extra fields in .env that aren't defined here
        extra="ignore",
        # Case-insensitive environment variable matching
        case_sensitive=False
    )

    # ============================================
    # Custom Properties
    # ============================================

    @property
    def enabled_providers_list(self) -> List[str]:
        """
        Convert comma-separated provider ids to a list.

        Returns:
            List of provider ids (e.g., ["lifi", "across", "near-intents", "cctp"])

        Example:
            >>> settings.enabled_providers_list
            ['lifi', 'across', 'near-intents', 'cctp']
        """
        return [p.strip().lower() for p in self.enabled_providers.split(",") if p.strip()]

    @property
    def liquidity_thresholds_list(self) -> List[int]:
        """
        Convert comma-separated thresholds to a sorted, de-duplicated list.

        Returns:
            List of thresholds in basis points, ascending

        Example:
            >>> settings.liquidity_thresholds_list
            [50, 100]
        """
        values = {int(t.strip()) for t in self.liquidity_thresholds_bps.split(",") if t.strip()}
        return sorted(values)

    def get_lifi_headers(self) -> dict:
        """Headers for Li.Fi requests, including the API key when configured."""
        headers = {"Accept": "application/json"}
        if self.lifi_api_key:
            headers["x-lifi-api-key"] = self.lifi_api_key
        return headers

    def get_near_intents_headers(self) -> dict:
        """Headers for 1Click requests, including the bearer JWT when configured."""
        headers = {"Accept": "application/json"}
        if self.near_intents_jwt:
            headers["Authorization"] = f"Bearer {self.near_intents_jwt}"
        return headers


# ============================================
# Global Settings Instance
# ============================================

# Create a single instance of settings to be imported throughout the application
settings = Settings()


# ============================================
# Configuration Validation
# ============================================

def validate_configuration(config: Settings = None) -> None:
    """
    Validate critical configuration settings on startup.

    Args:
        config: Settings to validate (defaults to the global instance)

    Raises:
        ValueError: If required configuration is missing or invalid
    """
    # Import logger here to avoid circular import
    # (logging.py imports config.py, so we can't import at module level)
    from core.logging import logger

    config = config or settings

    if not config.enabled_providers_list:
        raise ValueError("ENABLED_PROVIDERS must contain at least one provider")

    try:
        thresholds = config.liquidity_thresholds_list
    except ValueError:
        raise ValueError(
            f"LIQUIDITY_THRESHOLDS_BPS must be comma-separated integers, "
            f"got '{config.liquidity_thresholds_bps}'"
        )
    if not thresholds or any(t <= 0 for t in thresholds):
        raise ValueError("LIQUIDITY_THRESHOLDS_BPS must contain positive basis point values")

    if config.liquidity_max_iterations < 1:
        raise ValueError("LIQUIDITY_MAX_ITERATIONS must be at least 1")

    if not (0 < config.liquidity_convergence_tolerance < 1):
        raise ValueError("LIQUIDITY_CONVERGENCE_TOLERANCE must be between 0 and 1 (exclusive)")

    if config.max_requests_per_second <= 0:
        raise ValueError("MAX_REQUESTS_PER_SECOND must be positive")

    if config.request_timeout <= 0 or config.provider_timeout <= 0:
        raise ValueError("REQUEST_TIMEOUT and PROVIDER_TIMEOUT must be positive")

    if config.max_retries < 0:
        raise ValueError("MAX_RETRIES cannot be negative")

    valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if config.log_level.upper() not in valid_log_levels:
        raise ValueError(
            f"Invalid LOG_LEVEL: '{config.log_level}'. "
            f"Must be one of: {', '.join(valid_log_levels)}"
        )

    logger.info("Configuration validated successfully")
    logger.info(f"Providers: {', '.join(config.enabled_providers_list)}")
    logger.info(f"Liquidity thresholds (bps): {', '.join(str(t) for t in thresholds)}")
    logger.info(f"Chain directory: {config.chain_directory_url}")
    logger.info(f"Log level: {config.log_level.upper()}")
