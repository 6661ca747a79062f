"""
Across Protocol REST API Client

This module provides an async client for the Across bridge API plus the
DefiLlama bridge statistics Across volumes are read from.

API Documentation:
    https://docs.across.to/reference/api-reference

Endpoints Used:
    - GET /swap/tokens        - Supported tokens per chain
    - GET /suggested-fees     - Relay fee quote for an amount
    - GET /limits             - Min/max deposit for a route
    - GET bridges.llama.fi/bridge/{id} - Daily/weekly/monthly volume

Usage:
    async with AcrossAPIClient() as client:
        tokens = await client.get_tokens()
        fees = await client.get_suggested_fees("0xa0b8...", "0xaf88...", 1, 42161, "1000000")
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from core.config import settings
from core.http_client import ResilientHttpClient
from core.logging import get_logger

# DefiLlama bridge id for Across
DEFILLAMA_BRIDGE_ID = "19"


class AcrossAsset(BaseModel):
    """Token as the Across API lists it."""

    chainId: int
    address: str
    symbol: Optional[str] = None
    decimals: int = Field(..., ge=0)
    name: Optional[str] = None
    logoUrl: Optional[str] = None
    priceUsd: Optional[str] = None


class AcrossLimits(BaseModel):
    """Deposit bounds for one route, in smallest units of the input token."""

    minDeposit: str
    maxDeposit: str
    maxDepositInstant: Optional[str] = None
    maxDepositShortDelay: Optional[str] = None


class AcrossAPIClient:
    """
    Async client for the Across API and its DefiLlama bridge stats.

    Example:
        >>> async with AcrossAPIClient() as client:
        ...     limits = await client.get_limits("0xa0b8...", "0xaf88...", 1, 42161)
        ...     print(limits.maxDeposit)
    """

    def __init__(self, base_url: Optional[str] = None, defillama_url: Optional[str] = None):
        self.base_url = (base_url or settings.across_base_url).rstrip("/")
        self.defillama_url = (defillama_url or settings.defillama_bridges_url).rstrip("/")
        self.logger = get_logger(__name__)

        self.http = ResilientHttpClient("across", self.base_url, headers={"Accept": "application/json"})
        self.defillama = ResilientHttpClient("across-defillama", self.defillama_url)

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

    async def get_tokens(self) -> List[AcrossAsset]:
        """
        Fetch supported tokens, de-duplicated by (chain id, lowercased address).

        Across Endpoint:
            GET /swap/tokens

        Response Format:
            [{"chainId": 1, "address": "0x...", "symbol": "USDC", "decimals": 6, ...}, ...]
        """
        data = await self.http.get("/swap/tokens")
        if not isinstance(data, list):
            raise ValueError("Invalid Across tokens response: expected a list")

        seen = set()
        assets: List[AcrossAsset] = []
        for token in data:
            if token.get("chainId") is None or not token.get("address") or not isinstance(token.get("decimals"), int):
                continue
            key = (int(token["chainId"]), token["address"].lower())
            if key in seen:
                continue
            seen.add(key)
            price = token.get("priceUsd")
            assets.append(AcrossAsset(
                chainId=int(token["chainId"]),
                address=token["address"],
                symbol=token.get("symbol"),
                decimals=token["decimals"],
                name=token.get("name"),
                logoUrl=token.get("logoUrl"),
                priceUsd=str(price) if price is not None else None,
            ))

        self.logger.info(f"Loaded {len(assets)} assets from Across")
        return assets

    async def get_suggested_fees(
        self,
        input_token: str,
        output_token: str,
        origin_chain_id: int,
        destination_chain_id: int,
        amount: str,
    ) -> Dict[str, Any]:
        """
        Relay fee quote for an amount.

        Across Endpoint:
            GET /suggested-fees

        Response Format:
            {"totalRelayFee": {"pct": "...", "total": "1234"}, "timestamp": "...", ...}

        Raises:
            ValueError: If totalRelayFee.total is missing
        """
        fees = await self.http.get("/suggested-fees", params={
            "inputToken": input_token,
            "outputToken": output_token,
            "originChainId": origin_chain_id,
            "destinationChainId": destination_chain_id,
            "amount": amount,
        })
        if not isinstance(fees, dict) or (fees.get("totalRelayFee") or {}).get("total") is None:
            raise ValueError("Invalid Across suggested-fees response: missing totalRelayFee.total")
        return fees

    async def get_limits(
        self,
        input_token: str,
        output_token: str,
        origin_chain_id: int,
        destination_chain_id: int,
    ) -> AcrossLimits:
        """
        Deposit limits for a route.

        Across Endpoint:
            GET /limits
        """
        data = await self.http.get("/limits", params={
            "inputToken": input_token,
            "outputToken": output_token,
            "originChainId": origin_chain_id,
            "destinationChainId": destination_chain_id,
        })
        return AcrossLimits(**data)

    async def get_bridge_volumes(self, bridge_id: str = DEFILLAMA_BRIDGE_ID) -> Dict[str, Any]:
        """
        DefiLlama bridge stats.

        DefiLlama Endpoint:
            GET /bridge/{bridge_id}

        Response Format:
            {"lastDailyVolume": 1.2e7, "weeklyVolume": 8.1e7, "monthlyVolume": 3.4e8, ...}
        """
        data = await self.defillama.get(f"/bridge/{bridge_id}")
        if not isinstance(data, dict) or not isinstance(data.get("lastDailyVolume"), (int, float)):
            raise ValueError("Invalid DefiLlama bridge response: missing lastDailyVolume")
        return data
