"""
Li.Fi REST API Client

This module provides an async client for the Li.Fi aggregation API.
It handles:
- Token listing across every supported chain
- Single-route quotes
- Paged transfer analytics (v2) used for volume windows

Rate limiting, retries and timeouts are delegated to ResilientHttpClient.

API Documentation:
    https://docs.li.fi/

Usage:
    async with LiFiAPIClient() as client:
        tokens = await client.get_tokens()
        quote = await client.get_quote(1, 42161, "0x0000...", "0xaf88...", "1000000000000000000")
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from core.config import settings
from core.http_client import ResilientHttpClient
from core.logging import get_logger


class LiFiAsset(BaseModel):
    """
    Asset as Li.Fi represents it.

    Chain ids are carried as strings, as the /tokens response keys them.
    """

    chainId: str
    address: str
    symbol: Optional[str] = None
    decimals: int = Field(..., ge=0)


class LiFiAPIClient:
    """
    Async client for the Li.Fi API.

    Two HTTP clients share the provider's headers: the v1 API (tokens,
    quotes) and the v2 analytics API (transfers).

    Attributes:
        base_url: v1 API base URL
        analytics_url: v2 API base URL, derived from base_url

    Example:
        >>> async with LiFiAPIClient() as client:
        ...     page = await client.get_transfers(from_timestamp=1700000000, to_timestamp=1700086400)
        ...     print(page.get("hasNext"))
    """

    def __init__(self, base_url: Optional[str] = None, headers: Optional[Dict[str, str]] = None):
        self.base_url = (base_url or settings.lifi_base_url).rstrip("/")
        self.analytics_url = self.base_url.replace("/v1", "/v2")
        headers = headers if headers is not None else settings.get_lifi_headers()
        self.logger = get_logger(__name__)

        self.http = ResilientHttpClient("lifi", self.base_url, headers=headers)
        self.analytics = ResilientHttpClient("lifi-analytics", self.analytics_url, headers=headers)

    # ============================================
    # Context Manager for Session Management
    # ============================================

    async def __aenter__(self):
        await self.http.__aenter__()
        await self.analytics.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.http.__aexit__(exc_type, exc_val, exc_tb)
        await self.analytics.__aexit__(exc_type, exc_val, exc_tb)

    # ============================================
    # API Methods
    # ============================================

    async def get_tokens(self) -> List[LiFiAsset]:
        """
        Fetch every token Li.Fi supports.

        Li.Fi Endpoint:
            GET /tokens

        Response Format:
            {"tokens": {"1": [{"address": "0x...", "symbol": "USDC", "decimals": 6, ...}], ...}}

        Tokens missing an address, symbol or integer decimals are skipped.
        """
        data = await self.http.get("/tokens")
        tokens_by_chain = (data or {}).get("tokens") or {}

        assets: List[LiFiAsset] = []
        skipped = 0
        for chain_id, chain_tokens in tokens_by_chain.items():
            for token in chain_tokens or []:
                if not token.get("address") or not token.get("symbol") or not isinstance(token.get("decimals"), int):
                    skipped += 1
                    continue
                assets.append(LiFiAsset(
                    chainId=str(chain_id),
                    address=token["address"],
                    symbol=token["symbol"],
                    decimals=token["decimals"],
                ))

        if skipped:
            self.logger.warning(f"Skipped {skipped} malformed Li.Fi token(s)")
        self.logger.info(f"Loaded {len(assets)} assets from Li.Fi")
        return assets

    async def get_quote(
        self,
        from_chain: int,
        to_chain: int,
        from_token: str,
        to_token: str,
        from_amount: str,
    ) -> Dict[str, Any]:
        """
        Fetch a quote for one transfer.

        Li.Fi Endpoint:
            GET /quote?fromChain=..&toChain=..&fromToken=..&toToken=..&fromAmount=..

        Returns:
            Raw quote; the amounts live under "estimate"

        Raises:
            ValueError: If the response has no estimate
        """
        quote = await self.http.get("/quote", params={
            "fromChain": from_chain,
            "toChain": to_chain,
            "fromToken": from_token,
            "toToken": to_token,
            "fromAmount": from_amount,
        })
        if not isinstance(quote, dict) or not quote.get("estimate"):
            raise ValueError("Invalid Li.Fi quote response: missing estimate")
        return quote

    async def get_transfers(
        self,
        from_timestamp: int,
        to_timestamp: int,
        limit: int = 1000,
        cursor: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Fetch one page of completed transfers.

        Li.Fi Endpoint:
            GET /v2/analytics/transfers?status=DONE&fromTimestamp=..&toTimestamp=..&limit=..&next=..

        Returns:
            Raw page: {"data": [...], "hasNext": bool, "next": "<cursor>"}
        """
        return await self.analytics.get("/analytics/transfers", params={
            "status": "DONE",
            "fromTimestamp": from_timestamp,
            "toTimestamp": to_timestamp,
            "limit": limit,
            "next": cursor,
        })

    async def ping(self) -> bool:
        """Cheap reachability probe."""
        await self.http.get("/chains")
        return True
