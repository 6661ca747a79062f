"""
Asset Canonicalizer

Turns any asset-like input into a canonical AssetIdentity, and canonical
assets back into the (chain id, address) pairs most provider APIs expect.

Accepted input shapes:
    1. An existing canonical asset id           ("1cs_v1:eth:native:coin")
    2. Explicit components                      (chain, namespace, reference)
    3. Provider-style chain id + address        (42161, "0xaf88...")

Zero-address normalization is applied to every shape: an erc20 "token" at
0x000...000 is the chain's native coin.

Usage:
    canonicalizer = AssetCanonicalizer(registry)
    identity = await canonicalizer.identity(chain_id=42161, address="0xAF88...")
    asset = canonicalizer.canonical_asset(identity, symbol="USDC", decimals=6, chain_id=42161)
"""

from typing import Optional, Tuple, Union

from core.chain_registry import ZERO_ADDRESS, ChainRegistry, is_zero_address, normalize_slug
from core.errors import AssetConversionError
from core.identity_codec import decode_asset_id, encode_asset_id
from core.namespace_resolver import NATIVE_NAMESPACE, NATIVE_REFERENCE, resolve
from core.schemas import AssetIdentity, CanonicalAsset


def _normalize_native_like(namespace: str, reference: str) -> Tuple[str, str]:
    if namespace == "erc20" and is_zero_address(reference):
        return NATIVE_NAMESPACE, NATIVE_REFERENCE
    return namespace, reference


def build_identity(chain: str, namespace: str, reference: str) -> AssetIdentity:
    """
    Build a normalized AssetIdentity from components.

    Raises:
        MalformedIdentity: If the components cannot be encoded
    """
    chain = normalize_slug(chain)
    namespace, reference = _normalize_native_like((namespace or "").strip().lower(), (reference or "").strip())
    asset_id = encode_asset_id(chain, namespace, reference)
    chain, namespace, reference = decode_asset_id(asset_id)
    return AssetIdentity(chain=chain, namespace=namespace, reference=reference, asset_id=asset_id)


class AssetCanonicalizer:
    """
    Canonicalization bound to a Chain Registry.

    Args:
        registry: Chain Registry used for chain id <-> slug resolution
    """

    def __init__(self, registry: ChainRegistry):
        self.registry = registry

    # ============================================
    # Any input -> AssetIdentity
    # ============================================

    def from_asset_id(self, asset_id: str) -> AssetIdentity:
        """Parse and re-normalize an existing canonical id."""
        chain, namespace, reference = decode_asset_id(asset_id)
        return build_identity(chain, namespace, reference)

    def from_components(self, chain: str, namespace: str, reference: str) -> AssetIdentity:
        return build_identity(chain, namespace, reference)

    def from_slug_address(self, chain: str, address: Optional[str]) -> AssetIdentity:
        """Identity for a chain slug and optional address, namespace decided by the resolver."""
        slug = normalize_slug(chain)
        namespace, reference = resolve(slug, address)
        return build_identity(slug, namespace, reference)

    async def from_chain_address(self, chain_id: Union[int, str], address: Optional[str]) -> AssetIdentity:
        """
        Identity for a provider-style (chain id, address) pair.

        Raises:
            UnresolvedChain: If the chain id is unknown
        """
        slug = await self.registry.slug_for(chain_id)
        return self.from_slug_address(slug, address)

    async def identity(
        self,
        asset_id: Optional[str] = None,
        chain: Optional[str] = None,
        namespace: Optional[str] = None,
        reference: Optional[str] = None,
        chain_id: Optional[Union[int, str]] = None,
        address: Optional[str] = None,
    ) -> AssetIdentity:
        """
        Canonicalize whichever input shape is supplied.

        Precedence: chain_id + address, then explicit components (missing
        components are filled from asset_id), then asset_id alone.

        Raises:
            AssetConversionError: If no complete input shape is supplied
            MalformedIdentity: If asset_id does not parse
            UnresolvedChain: If chain_id is unknown
        """
        if chain_id is not None and address is not None:
            return await self.from_chain_address(chain_id, address)

        if asset_id:
            parsed_chain, parsed_namespace, parsed_reference = decode_asset_id(asset_id)
            chain = chain or parsed_chain
            namespace = namespace or parsed_namespace
            reference = reference or parsed_reference

        if not (chain and namespace and reference):
            raise AssetConversionError(
                "Need either asset_id, or chain + namespace + reference, or chain_id + address"
            )

        return build_identity(chain, namespace, reference)

    # ============================================
    # AssetIdentity -> CanonicalAsset
    # ============================================

    @staticmethod
    def canonical_asset(
        identity: AssetIdentity,
        symbol: Optional[str] = None,
        decimals: Optional[int] = None,
        chain_id: Optional[int] = None,
        icon_url: Optional[str] = None,
    ) -> CanonicalAsset:
        """Attach provider-supplied metadata to an identity."""
        return CanonicalAsset(
            chain=identity.chain,
            namespace=identity.namespace,
            reference=identity.reference,
            asset_id=identity.asset_id,
            symbol=symbol,
            decimals=decimals,
            chain_id=chain_id,
            icon_url=icon_url,
        )

    # ============================================
    # AssetIdentity -> provider (chain id, address)
    # ============================================

    def to_evm_address(self, asset: AssetIdentity) -> Tuple[int, str]:
        """
        Map a canonical EVM asset to (chain id, address).

        The native coin maps to the zero address.

        Raises:
            AssetConversionError: If the asset is not an EVM native coin or erc20 token
            UnresolvedChain: If the chain slug is unknown
        """
        if not self.registry.is_evm(asset.chain):
            raise AssetConversionError(f"Not an EVM chain: {asset.chain}", asset=asset.asset_id)

        chain_id = self.registry.chain_id_for(asset.chain)

        if asset.namespace == NATIVE_NAMESPACE:
            return chain_id, ZERO_ADDRESS
        if asset.namespace == "erc20":
            return chain_id, asset.reference

        raise AssetConversionError(
            f"Unsupported namespace for EVM provider: {asset.namespace}",
            asset=asset.asset_id,
        )
