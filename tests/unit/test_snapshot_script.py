"""
Unit Tests for the snapshot script's argument parsing

Run with:
    pytest tests/unit/test_snapshot_script.py -v
"""

import pytest

from core.canonicalizer import AssetCanonicalizer
from core.chain_registry import ChainRegistry
from core.errors import MalformedIdentity
from scripts.snapshot import parse_args, parse_route, split_asset

USDC_ETH = "1cs_v1:eth:erc20:0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"
USDC_SOL = "1cs_v1:sol:spl:EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"


async def _no_directory():
    return []


@pytest.fixture
def canonicalizer():
    return AssetCanonicalizer(ChainRegistry(fetcher=_no_directory))


def test_split_asset():
    assert split_asset(f" {USDC_ETH}@6 ") == (USDC_ETH, 6)
    assert split_asset(USDC_ETH) == (USDC_ETH, None)


def test_parse_route(canonicalizer):
    route = parse_route(f"{USDC_ETH}@6,{USDC_SOL}@6", canonicalizer)

    assert route.source.asset_id == USDC_ETH
    assert (route.source.decimals, route.source.chain_id) == (6, 1)
    assert route.destination.asset_id == USDC_SOL
    assert route.destination.chain_id is None


def test_parse_route_needs_two_assets(canonicalizer):
    with pytest.raises(ValueError):
        parse_route(USDC_ETH, canonicalizer)


def test_parse_route_rejects_malformed_id(canonicalizer):
    with pytest.raises(MalformedIdentity):
        parse_route(f"{USDC_ETH},not-an-id", canonicalizer)


def test_parse_args_repeatable_options():
    args = parse_args(["--providers", "lifi", "--window", "24h", "--window", "7d", "--notional", "1000000"])

    assert args.providers == "lifi"
    assert args.window == ["24h", "7d"]
    assert args.notional == ["1000000"]
    assert args.route == []
