"""
Namespace Resolver

Decides the asset namespace and reference for a chain slug and an optional
contract address / mint / account id.

Decision table (evaluated in order):
    1. Known non-EVM family:
         address given  -> (family token namespace, address as-is)
         no address     -> (family native namespace, family native sentinel)
    2. EVM default, address given:
         zero address   -> ("native", "coin")
         otherwise      -> ("erc20", address lowercased)
    3. No address       -> ("native", "coin")

Every caller goes through resolve(); the zero address is always treated as
the native coin, never as a literal token contract.

Example:
    >>> resolve("eth", "0x0000000000000000000000000000000000000000")
    NamespaceReference(namespace='native', reference='coin')
    >>> resolve("sol")
    NamespaceReference(namespace='spl', reference='So11111111111111111111111111111111111111112')
"""

from typing import Dict, NamedTuple, Optional

from core.chain_registry import NON_EVM_CHAINS, is_zero_address, normalize_slug


NATIVE_NAMESPACE = "native"
NATIVE_REFERENCE = "coin"

CANONICAL_NAMESPACES = (
    "erc20",
    "erc721",
    "erc1155",
    "spl",
    "nep141",
    "nep171",
    "near-nft",
    "native",
    "aptos-coin",
    "iso4217",
    "stellar-asset",
    "trc20",
    "jetton",
    "token",
)


class NamespaceReference(NamedTuple):
    namespace: str
    reference: str


class FamilyNamespaces(NamedTuple):
    token_namespace: str
    native_namespace: str
    native_reference: str


# Families with their own token standard and native sentinel
FAMILY_NAMESPACES: Dict[str, FamilyNamespaces] = {
    "sol": FamilyNamespaces("spl", "spl", "So11111111111111111111111111111111111111112"),
    "near": FamilyNamespaces("nep141", NATIVE_NAMESPACE, NATIVE_REFERENCE),
    "aptos": FamilyNamespaces("aptos-coin", "aptos-coin", "0x1::aptos_coin::AptosCoin"),
    "stellar": FamilyNamespaces("stellar-asset", "stellar-asset", "native"),
    "tron": FamilyNamespaces("trc20", NATIVE_NAMESPACE, NATIVE_REFERENCE),
    "ton": FamilyNamespaces("jetton", NATIVE_NAMESPACE, NATIVE_REFERENCE),
}

# Remaining non-EVM families share a generic token tag
DEFAULT_NON_EVM_NAMESPACES = FamilyNamespaces("token", NATIVE_NAMESPACE, NATIVE_REFERENCE)


def family_namespaces(slug: str) -> Optional[FamilyNamespaces]:
    """Namespace conventions for a non-EVM slug, or None for EVM-style chains."""
    normalized = normalize_slug(slug)
    if normalized in FAMILY_NAMESPACES:
        return FAMILY_NAMESPACES[normalized]
    if normalized in NON_EVM_CHAINS:
        return DEFAULT_NON_EVM_NAMESPACES
    return None


def resolve(slug: str, address: Optional[str] = None) -> NamespaceReference:
    """
    Resolve namespace and reference for an asset.

    Args:
        slug: Chain slug or alias
        address: Contract address, mint or account id (None/"" for the native asset)

    Returns:
        NamespaceReference: (namespace, reference) pair
    """
    address = address.strip() if address else ""

    family = family_namespaces(slug)
    if family is not None:
        if address:
            return NamespaceReference(family.token_namespace, address)
        return NamespaceReference(family.native_namespace, family.native_reference)

    if not address or is_zero_address(address):
        return NamespaceReference(NATIVE_NAMESPACE, NATIVE_REFERENCE)

    return NamespaceReference("erc20", address.lower())


def is_native(slug: str, namespace: str, reference: str) -> bool:
    """Check whether (namespace, reference) is the native asset of a chain."""
    return resolve(slug) == (namespace, reference)
