"""
NEAR Intents (1Click) REST API Client

Async client for the 1Click API and the DefiLlama DEX summary that
NEAR Intents volumes are read from.

API Documentation:
    https://docs.near-intents.org/near-intents/integration/distribution-channels/1click-api

Endpoints Used:
    - GET  /v0/tokens                          - Supported tokens
    - POST /v0/quote                           - Quote (always sent with dry=true)
    - GET  api.llama.fi/summary/dexs/near-intents - 24h/7d/30d/all-time volume
"""

import uuid
from datetime import timedelta
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from core.config import settings
from core.http_client import ResilientHttpClient
from core.logging import get_logger
from core.utils.time import current_utc_datetime

# Intents account that receives and refunds dry-run quotes
QUOTE_ACCOUNT = "intents.near"
QUOTE_SLIPPAGE_BPS = 100
QUOTE_DEADLINE = timedelta(hours=2)


class IntentsAsset(BaseModel):
    """Token as the 1Click API lists it."""

    blockchain: str
    intentsAssetId: str
    symbol: Optional[str] = None
    decimals: int = Field(..., ge=0)
    contractAddress: Optional[str] = None
    price: Optional[float] = None
    priceUpdatedAt: Optional[str] = None


class IntentsAPIClient:
    """
    Async client for 1Click and the DefiLlama DEX summary.

    Example:
        >>> async with IntentsAPIClient() as client:
        ...     tokens = await client.get_tokens()
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        defillama_url: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        quote_account: str = QUOTE_ACCOUNT,
    ):
        self.base_url = (base_url or settings.near_intents_base_url).rstrip("/")
        self.defillama_url = (defillama_url or settings.defillama_api_url).rstrip("/")
        self.quote_account = quote_account
        headers = headers if headers is not None else settings.get_near_intents_headers()
        self.logger = get_logger(__name__)

        self.http = ResilientHttpClient("near-intents", self.base_url, headers=headers)
        self.defillama = ResilientHttpClient("near-intents-defillama", self.defillama_url)

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

    async def get_tokens(self) -> List[IntentsAsset]:
        """
        Fetch supported tokens, de-duplicated by (blockchain, assetId).

        1Click Endpoint:
            GET /v0/tokens

        Response Format:
            [{"assetId": "nep141:wrap.near", "blockchain": "near", "symbol": "wNEAR",
              "decimals": 24, "contractAddress": "wrap.near", "price": 2.5, ...}]
        """
        data = await self.http.get("/v0/tokens")
        if not isinstance(data, list):
            raise ValueError("Invalid 1Click tokens response: expected a list")

        seen = set()
        assets: List[IntentsAsset] = []
        for token in data:
            if not token.get("blockchain") or not token.get("assetId") or not isinstance(token.get("decimals"), int):
                continue
            key = (token["blockchain"], token["assetId"])
            if key in seen:
                continue
            seen.add(key)
            assets.append(IntentsAsset(
                blockchain=token["blockchain"],
                intentsAssetId=token["assetId"],
                symbol=token.get("symbol"),
                decimals=token["decimals"],
                contractAddress=token.get("contractAddress"),
                price=token.get("price"),
                priceUpdatedAt=token.get("priceUpdatedAt"),
            ))

        self.logger.info(f"Loaded {len(assets)} assets from 1Click")
        return assets

    async def get_quote(self, origin_asset: str, destination_asset: str, amount: str) -> Dict[str, Any]:
        """
        Dry-run exact-input quote between two intents assets.

        1Click Endpoint:
            POST /v0/quote

        Response Format:
            {"timestamp": "...", "quote": {"amountIn": "...", "amountOut": "...",
              "amountInUsd": "...", "amountOutUsd": "...", ...}}

        Raises:
            ValueError: If the response carries no quote amounts
        """
        body = {
            "dry": True,
            "swapType": "EXACT_INPUT",
            "slippageTolerance": QUOTE_SLIPPAGE_BPS,
            "originAsset": origin_asset,
            "depositType": "INTENTS",
            "destinationAsset": destination_asset,
            "amount": amount,
            "refundTo": self.quote_account,
            "refundType": "INTENTS",
            "recipient": self.quote_account,
            "recipientType": "INTENTS",
            "deadline": (current_utc_datetime() + QUOTE_DEADLINE).isoformat(),
            "sessionId": f"quote-{uuid.uuid4().hex[:12]}",
        }
        response = await self.http.post("/v0/quote", body=body)
        quote = (response or {}).get("quote") or {}
        if quote.get("amountIn") is None or quote.get("amountOut") is None:
            raise ValueError("Invalid 1Click quote response: missing amounts")
        return response

    async def get_dex_summary(self) -> Dict[str, Any]:
        """
        DefiLlama DEX volume summary.

        DefiLlama Endpoint:
            GET /summary/dexs/near-intents

        Response Format:
            {"total24h": 1.1e7, "total7d": 7.9e7, "total30d": 3.3e8, "totalAllTime": 4.2e9, ...}
        """
        data = await self.defillama.get("/summary/dexs/near-intents")
        if not isinstance(data, dict):
            raise ValueError("Invalid DefiLlama DEX summary response")
        return data
