"""
Normalized Data Schemas

This module defines Pydantic models for every data type the aggregation core
produces or consumes. These schemas provide a unified, provider-agnostic format.

Key Principle:
    Regardless of which provider the data comes from (Li.Fi, Across, NEAR Intents...),
    it gets normalized into these schemas keyed by canonical asset identity. This
    keeps results comparable across providers.

Models:
    - ChainDescriptor: numeric chain id <-> canonical slug (+ aliases)
    - AssetIdentity: chain / namespace / reference / asset_id quadruple
    - CanonicalAsset: identity plus advisory metadata (symbol, decimals, ...)
    - Route: ordered (source, destination) pair, generic over the asset type
    - RateQuote: a quote for one notional on one route
    - LiquidityThreshold / LiquidityDepth: max tradeable amount per slippage budget
    - VolumeWindow: USD volume over a time window
    - ProviderSnapshot: everything one provider reported in one aggregation call

Route, RateQuote and LiquidityDepth are generic so the same shape carries
provider-format assets (inside an adapter) and canonical assets (outside).

Amounts are decimal strings in the smallest token unit to stay exact.
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Generic, List, Literal, Optional, TypeVar
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict

from core.identity_codec import encode_asset_id


# ============================================
# Time Windows
# ============================================

TimeWindow = Literal["24h", "7d", "30d", "cumulative"]

TIME_WINDOWS = ("24h", "7d", "30d", "cumulative")

AssetT = TypeVar("AssetT")


def _validate_amount(value: str) -> str:
    """Ensure an amount is a non-negative integer string in smallest units."""
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError):
        raise ValueError(f"Amount must be a decimal string, got {value!r}")
    if amount < 0 or amount != amount.to_integral_value():
        raise ValueError(f"Amount must be a non-negative integer in smallest units, got {value!r}")
    return value


# ============================================
# Chain Descriptor
# ============================================

class ChainDescriptor(BaseModel):
    """
    Static description of one blockchain network.

    Attributes:
        chain_id: Canonical numeric id (EVM chain id, or the primary id used for non-EVM chains)
        slug: Canonical lowercase slug (e.g. "eth", "arb", "sol")
        aliases: Other names that resolve to this chain (e.g. "arbitrum", "arb1")
        alternate_ids: Additional numeric ids some providers use for the same network
        is_evm: True for EVM-compatible chains
    """

    chain_id: int = Field(..., description="Canonical numeric chain id")
    slug: str = Field(..., description="Canonical chain slug", examples=["eth", "arb", "sol"])
    aliases: List[str] = Field(default_factory=list, description="Alternative names")
    alternate_ids: List[int] = Field(default_factory=list, description="Other known numeric ids")
    is_evm: bool = Field(..., description="EVM compatibility flag")

    model_config = ConfigDict(frozen=True)


# ============================================
# Asset Identity
# ============================================

class AssetIdentity(BaseModel):
    """
    Canonical identity of an asset.

    Invariant:
        asset_id == encode(chain, namespace, reference)

    Example:
        >>> AssetIdentity(
        ...     chain="arb",
        ...     namespace="erc20",
        ...     reference="0xaf88d065e77c8cc2239327c5edb3a432268e5831",
        ...     asset_id="1cs_v1:arb:erc20:0xaf88d065e77c8cc2239327c5edb3a432268e5831",
        ... )
    """

    chain: str = Field(..., description="Canonical chain slug")
    namespace: str = Field(..., description="Asset standard tag", examples=["native", "erc20", "spl"])
    reference: str = Field(..., description="Namespace-specific identifier (raw, not percent-encoded)")
    asset_id: str = Field(..., description="Canonical asset identifier string")

    @model_validator(mode="after")
    def check_asset_id(self):
        """Reject identities whose asset_id disagrees with their components."""
        expected = encode_asset_id(self.chain, self.namespace, self.reference)
        if self.asset_id != expected:
            raise ValueError(f"asset_id {self.asset_id!r} does not match components (expected {expected!r})")
        return self


class CanonicalAsset(AssetIdentity):
    """
    Canonical identity plus provider-supplied metadata.

    Metadata is advisory: two providers may disagree on a symbol, but the
    identity fields are authoritative and decide equality across providers.
    """

    symbol: Optional[str] = Field(default=None, description="Ticker symbol")
    decimals: Optional[int] = Field(default=None, ge=0, description="Token decimals")
    chain_id: Optional[int] = Field(default=None, description="Numeric chain id, if known")
    icon_url: Optional[str] = Field(default=None, description="Icon reference")

    def identity(self) -> AssetIdentity:
        """Return the identity fields only."""
        return AssetIdentity(
            chain=self.chain,
            namespace=self.namespace,
            reference=self.reference,
            asset_id=self.asset_id,
        )


# ============================================
# Routes, Rates, Liquidity
# ============================================

class Route(BaseModel, Generic[AssetT]):
    """
    Ordered (source, destination) pair.

    Source and destination may be the same asset (e.g. wrapped vs native bridging).
    """

    source: AssetT
    destination: AssetT


class RateQuote(BaseModel, Generic[AssetT]):
    """
    A single rate quote for one notional on one route.

    Attributes:
        amount_in / amount_out: Smallest-unit integer strings
        effective_rate: amount_out / amount_in normalized for decimal difference
        total_fees_usd: Optional total fees in USD
        quoted_at: When the quote was produced (UTC)
    """

    source: AssetT
    destination: AssetT
    amount_in: str = Field(..., description="Input amount in smallest units")
    amount_out: str = Field(..., description="Output amount in smallest units")
    effective_rate: float = Field(..., ge=0, description="Decimal-normalized amount_out / amount_in")
    total_fees_usd: Optional[float] = Field(default=None, description="Total fees in USD")
    quoted_at: datetime = Field(..., description="Quote timestamp in UTC")

    _check_amounts = field_validator("amount_in", "amount_out")(_validate_amount)

    @property
    def route(self) -> Route:
        return Route(source=self.source, destination=self.destination)


class LiquidityThreshold(BaseModel):
    """Maximum input amount that stays within a slippage budget."""

    slippage_bps: int = Field(..., ge=0, description="Slippage budget in basis points")
    max_amount_in: str = Field(..., description="Maximum input amount in smallest units")

    _check_amount = field_validator("max_amount_in")(_validate_amount)


class LiquidityDepth(BaseModel, Generic[AssetT]):
    """
    Liquidity depth measured for one route.

    Thresholds are kept in ascending slippage order.
    """

    route: Route[AssetT]
    thresholds: List[LiquidityThreshold] = Field(default_factory=list)
    measured_at: datetime = Field(..., description="Measurement timestamp in UTC")

    @field_validator("thresholds")
    @classmethod
    def sort_thresholds(cls, v: List[LiquidityThreshold]) -> List[LiquidityThreshold]:
        """Ensure thresholds are ascending by slippage"""
        return sorted(v, key=lambda t: t.slippage_bps)


# ============================================
# Volumes and Snapshots
# ============================================

class VolumeWindow(BaseModel):
    """USD volume over a time window."""

    window: TimeWindow
    volume_usd: float = Field(..., ge=0, description="Volume in USD")
    measured_at: datetime = Field(..., description="Measurement timestamp in UTC")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "window": "24h",
                "volume_usd": 12500000.0,
                "measured_at": "2024-01-01T12:00:00Z"
            }
        }
    )


class ProviderSnapshot(BaseModel):
    """
    Everything one provider reported during a single aggregation call.

    rates and liquidity stay None when no route was requested, and become
    (possibly empty) lists when routes were requested.
    """

    volumes: List[VolumeWindow] = Field(default_factory=list)
    listed_assets: List[CanonicalAsset] = Field(default_factory=list)
    rates: Optional[List[RateQuote[CanonicalAsset]]] = None
    liquidity: Optional[List[LiquidityDepth[CanonicalAsset]]] = None


class PingResponse(BaseModel):
    """Liveness response."""

    status: Literal["ok"] = "ok"
    timestamp: datetime


CanonicalRoute = Route[CanonicalAsset]
