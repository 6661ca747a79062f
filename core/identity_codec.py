"""
Canonical Identity Codec

Encodes and decodes the canonical asset identifier ("1cs" id):

    <version>:<chain>:<namespace>:<reference>

    1cs_v1:eth:native:coin
    1cs_v1:arb:erc20:0xaf88d065e77c8cc2239327c5edb3a432268e5831
    1cs_v1:sol:spl:EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v
    1cs_v1:aptos:aptos-coin:0x1%3A%3Aaptos_coin%3A%3AAptosCoin

Wire rules:
    - version, chain and namespace are lowercase [a-z0-9-]
    - references of EVM-style namespaces are lowercased, every other
      reference keeps its case (base58 mints, NEAR account ids...)
    - a reference containing ':' or '%' is percent-encoded so the id
      always has exactly four ':'-separated fields

decode(encode(c, n, r)) == (c, n, r) for every normalized triple, and
encode(*decode(asset_id)) == asset_id for every id produced by encode.
"""

import re
from typing import NamedTuple
from urllib.parse import quote, unquote

from core.errors import MalformedIdentity


VERSION = "1cs_v1"

# Namespaces whose references are hex addresses or sentinels, compared case-insensitively
CASE_INSENSITIVE_NAMESPACES = frozenset({"erc20", "erc721", "erc1155", "native"})

_SEGMENT = re.compile(r"^[a-z0-9-]+$")

# RFC 3986 unreserved characters plus the ones encodeURIComponent leaves alone
_SAFE_CHARS = "-_.!~*'()"


class DecodedIdentity(NamedTuple):
    chain: str
    namespace: str
    reference: str


def _normalize(chain: str, namespace: str, reference: str) -> DecodedIdentity:
    chain = (chain or "").strip().lower()
    namespace = (namespace or "").strip().lower()
    reference = (reference or "").strip()
    if namespace in CASE_INSENSITIVE_NAMESPACES:
        reference = reference.lower()
    return DecodedIdentity(chain, namespace, reference)


def _encode_reference(reference: str) -> str:
    if ":" in reference or "%" in reference:
        return quote(reference, safe=_SAFE_CHARS)
    return reference


def encode_asset_id(chain: str, namespace: str, reference: str) -> str:
    """
    Build a canonical asset id from its components.

    Args:
        chain: Canonical chain slug (e.g. "arb")
        namespace: Asset namespace (e.g. "erc20")
        reference: Raw, unencoded reference (e.g. a contract address)

    Returns:
        str: Canonical asset id

    Raises:
        MalformedIdentity: If a component is empty or contains invalid characters

    Example:
        >>> encode_asset_id("arb", "erc20", "0xAF88d065e77c8cC2239327C5EDb3A432268e5831")
        '1cs_v1:arb:erc20:0xaf88d065e77c8cc2239327c5edb3a432268e5831'
    """
    chain, namespace, reference = _normalize(chain, namespace, reference)
    candidate = f"{VERSION}:{chain}:{namespace}:{reference}"

    if not _SEGMENT.match(chain):
        raise MalformedIdentity(candidate, f"invalid chain {chain!r}")
    if not _SEGMENT.match(namespace):
        raise MalformedIdentity(candidate, f"invalid namespace {namespace!r}")
    if not reference:
        raise MalformedIdentity(candidate, "empty reference")

    return f"{VERSION}:{chain}:{namespace}:{_encode_reference(reference)}"


def decode_asset_id(asset_id: str) -> DecodedIdentity:
    """
    Parse a canonical asset id.

    Args:
        asset_id: Canonical asset id string

    Returns:
        DecodedIdentity: (chain, namespace, reference) with the reference percent-decoded

    Raises:
        MalformedIdentity: On wrong field count, unknown version, invalid or empty fields
    """
    if not isinstance(asset_id, str) or not asset_id:
        raise MalformedIdentity(str(asset_id), "empty or non-string id")

    parts = asset_id.split(":")
    if len(parts) != 4:
        raise MalformedIdentity(asset_id, f"expected 4 fields, got {len(parts)}")

    version, chain, namespace, encoded_reference = parts
    if version != VERSION:
        raise MalformedIdentity(asset_id, f"unsupported version {version!r}")
    if not _SEGMENT.match(chain):
        raise MalformedIdentity(asset_id, f"invalid chain {chain!r}")
    if not _SEGMENT.match(namespace):
        raise MalformedIdentity(asset_id, f"invalid namespace {namespace!r}")
    if not encoded_reference:
        raise MalformedIdentity(asset_id, "empty reference")

    try:
        reference = unquote(encoded_reference, errors="strict")
    except UnicodeDecodeError as e:
        raise MalformedIdentity(asset_id, f"invalid percent-encoding: {e}")

    return DecodedIdentity(chain, namespace, reference)


def is_valid_asset_id(asset_id: str) -> bool:
    """Return True when asset_id decodes without error."""
    try:
        decode_asset_id(asset_id)
    except MalformedIdentity:
        return False
    return True
