"""
Circle CCTP REST API Client

This module provides an async client for Circle's Iris API (CCTP fees and
the Fast Transfer allowance) plus the DefiLlama bridge statistics CCTP
volumes are read from.

API Documentation:
    https://developers.circle.com/cctp

Endpoints Used:
    - GET /v2/burn/USDC/fees/{source}/{destination} - Minimum fee per finality level
    - GET /v2/fastBurn/USDC/allowance                - Remaining Fast Transfer allowance
    - GET bridges.llama.fi/bridge/{id}               - Daily/weekly/monthly volume

Usage:
    async with CCTPAPIClient() as client:
        fees = await client.get_fees(0, 3)
        allowance = await client.get_fast_allowance()
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from core.config import settings
from core.http_client import ResilientHttpClient
from core.logging import get_logger

# DefiLlama bridge id for CCTP
DEFILLAMA_BRIDGE_ID = "51"


class CCTPAsset(BaseModel):
    """USDC on one CCTP domain."""

    chainId: int
    address: str
    symbol: str = "USDC"
    decimals: int = Field(default=6, ge=0)


class CCTPFee(BaseModel):
    """Minimum fee for one finality level, in basis points of the amount."""

    finalityThreshold: int
    minimumFee: Decimal = Field(..., ge=0)


class CCTPAPIClient:
    """
    Async client for the Circle Iris API and its DefiLlama bridge stats.

    Example:
        >>> async with CCTPAPIClient() as client:
        ...     fees = await client.get_fees(0, 3)
        ...     print(fees[0].minimumFee)
    """

    def __init__(self, base_url: Optional[str] = None, defillama_url: Optional[str] = None):
        self.base_url = (base_url or settings.cctp_base_url).rstrip("/")
        self.defillama_url = (defillama_url or settings.defillama_bridges_url).rstrip("/")
        self.logger = get_logger(__name__)

        self.http = ResilientHttpClient("cctp", self.base_url, headers={"Accept": "application/json"})
        self.defillama = ResilientHttpClient("cctp-defillama", self.defillama_url)

    # ============================================
    # Context Manager for Session Management
    # ============================================

    async def __aenter__(self):
        await self.http.__aenter__()
        await self.defillama.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.http.__aexit__(exc_type, exc_val, exc_tb)
        await self.defillama.__aexit__(exc_type, exc_val, exc_tb)

    # ============================================
    # API Methods
    # ============================================

    async def get_fees(self, source_domain: int, destination_domain: int) -> List[CCTPFee]:
        """
        Minimum burn fees between two domains.

        Iris Endpoint:
            GET /v2/burn/USDC/fees/{source}/{destination}

        Response Format:
            [{"finalityThreshold": 1000, "minimumFee": 1}, {"finalityThreshold": 2000, "minimumFee": 0}]
            (some deployments wrap the list as {"data": [...]})

        Raises:
            ValueError: If the payload holds no fee entries
        """
        payload = await self.http.get(f"/v2/burn/USDC/fees/{source_domain}/{destination_domain}")
        if isinstance(payload, dict):
            payload = payload.get("data")
        if not isinstance(payload, list) or not payload:
            raise ValueError("Invalid CCTP fees response: expected a non-empty list")
        return [CCTPFee(**entry) for entry in payload]

    async def get_fast_allowance(self) -> Decimal:
        """
        Remaining Fast Transfer allowance in whole USDC.

        Iris Endpoint:
            GET /v2/fastBurn/USDC/allowance

        Response Format:
            {"allowance": 12345678.9, "lastUpdated": "2025-01-01T00:00:00Z"}

        Raises:
            ValueError: If the allowance is missing or not a finite number
        """
        payload = await self.http.get("/v2/fastBurn/USDC/allowance")
        raw = payload.get("allowance") if isinstance(payload, dict) else None
        if raw is None or isinstance(raw, bool):
            raise ValueError("Invalid CCTP allowance response: missing allowance")
        try:
            allowance = Decimal(str(raw))
        except InvalidOperation:
            raise ValueError(f"Invalid CCTP allowance value: {raw}")
        if not allowance.is_finite() or allowance < 0:
            raise ValueError(f"Invalid CCTP allowance value: {raw}")
        return allowance

    async def get_bridge_volumes(self, bridge_id: str = DEFILLAMA_BRIDGE_ID) -> Dict[str, Any]:
        """
        DefiLlama bridge stats.

        DefiLlama Endpoint:
            GET /bridge/{bridge_id}
        """
        data = await self.defillama.get(f"/bridge/{bridge_id}")
        if not isinstance(data, dict) or not isinstance(data.get("lastDailyVolume"), (int, float)):
            raise ValueError("Invalid DefiLlama bridge response: missing lastDailyVolume")
        return data
