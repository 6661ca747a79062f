"""
Unit Tests for the Chain Registry

The directory fallback is exercised with in-process fake fetchers;
no test touches the network.

Run with:
    pytest tests/unit/test_chain_registry.py -v
"""

import asyncio

import pytest

from core.chain_registry import (
    EVM_CHAINS,
    NON_EVM_PRIMARY_IDS,
    ChainRegistry,
    is_zero_address,
    normalize_chain_name,
    normalize_slug,
)
from core.errors import UnresolvedChain


DIRECTORY = [
    {"chainId": 2222, "name": "Kava EVM", "shortName": "kava"},
    {"chainId": 7700, "name": "Canto"},
    {"chainId": "not-a-number", "name": "Broken"},
    {"name": "No Id"},
]


class CountingFetcher:
    """Fake directory fetcher that counts calls and can be slowed down or failed."""

    def __init__(self, entries=None, delay=0.0, error=None):
        self.entries = entries if entries is not None else DIRECTORY
        self.delay = delay
        self.error = error
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.entries


# ============================================
# Static tables
# ============================================

class TestStaticResolution:

    @pytest.mark.asyncio
    async def test_arbitrum_concrete_scenario(self):
        registry = ChainRegistry(fetcher=CountingFetcher())
        assert registry.chain_id_for("arb") == 42161
        assert await registry.slug_for(42161) == "arb"

    @pytest.mark.asyncio
    async def test_every_static_evm_chain_round_trips(self):
        registry = ChainRegistry(fetcher=CountingFetcher())
        for chain_id in EVM_CHAINS:
            assert registry.chain_id_for(await registry.slug_for(chain_id)) == chain_id

    @pytest.mark.asyncio
    async def test_every_non_evm_primary_id_round_trips(self):
        registry = ChainRegistry(fetcher=CountingFetcher())
        for slug, chain_id in NON_EVM_PRIMARY_IDS.items():
            assert await registry.slug_for(chain_id) == slug
            assert registry.chain_id_for(slug) == chain_id

    @pytest.mark.asyncio
    async def test_alternate_non_evm_ids(self):
        registry = ChainRegistry(fetcher=CountingFetcher())
        assert await registry.slug_for(1399811149) == "sol"
        assert await registry.slug_for("8332") == "btc"

    def test_aliases_resolve_to_canonical_id(self):
        registry = ChainRegistry(fetcher=CountingFetcher())
        assert registry.chain_id_for("polygon") == registry.chain_id_for("pol") == 137
        assert registry.chain_id_for("Arbitrum") == 42161
        assert registry.chain_id_for("optimism") == 10

    def test_is_evm(self):
        registry = ChainRegistry(fetcher=CountingFetcher())
        assert registry.is_evm("eth")
        assert registry.is_evm("polygon")
        assert not registry.is_evm("sol")
        assert not registry.is_evm("solana")
        assert not registry.is_evm("unknownchain")

    def test_unknown_slug_raises(self):
        with pytest.raises(UnresolvedChain):
            ChainRegistry(fetcher=CountingFetcher()).chain_id_for("nochain")

    def test_non_evm_without_numeric_id_raises(self):
        with pytest.raises(UnresolvedChain):
            ChainRegistry(fetcher=CountingFetcher()).chain_id_for("sui")

    def test_descriptors_cover_static_tables(self):
        descriptors = ChainRegistry(fetcher=CountingFetcher()).descriptors()
        by_slug = {d.slug: d for d in descriptors}
        assert by_slug["arb"].chain_id == 42161
        assert "arbitrum" in by_slug["arb"].aliases
        assert by_slug["sol"].is_evm is False
        assert 1399811149 in by_slug["sol"].alternate_ids


# ============================================
# Directory fallback
# ============================================

class TestDirectoryFallback:

    @pytest.mark.asyncio
    async def test_unknown_id_resolved_from_directory(self):
        fetcher = CountingFetcher()
        registry = ChainRegistry(fetcher=fetcher, wait_timeout=1.0)

        assert await registry.slug_for(2222) == "kava"
        assert await registry.slug_for(7700) == "canto"
        assert registry.chain_id_for("kava") == 2222
        assert registry.is_evm("canto")
        assert fetcher.calls == 1

    @pytest.mark.asyncio
    async def test_directory_cannot_shadow_static_or_earlier_slugs(self):
        fetcher = CountingFetcher(entries=DIRECTORY + [
            {"chainId": 424242, "name": "Fake Ether", "shortName": "eth"},
            {"chainId": 880001, "name": "Arbitrum"},
            {"chainId": 2223, "name": "Kava Copy", "shortName": "kava"},
        ])
        registry = ChainRegistry(fetcher=fetcher, wait_timeout=1.0)

        assert await registry.slug_for(2222) == "kava"
        for chain_id in (424242, 880001, 2223):
            with pytest.raises(UnresolvedChain):
                await registry.slug_for(chain_id)
        assert registry.chain_id_for("eth") == 1
        assert registry.chain_id_for("kava") == 2222

    @pytest.mark.asyncio
    async def test_concurrent_misses_share_one_fetch(self):
        fetcher = CountingFetcher(delay=0.05)
        registry = ChainRegistry(fetcher=fetcher, wait_timeout=1.0)

        results = await asyncio.gather(*(registry.slug_for(2222) for _ in range(10)))

        assert results == ["kava"] * 10
        assert fetcher.calls == 1

    @pytest.mark.asyncio
    async def test_slow_fetch_does_not_block_caller(self):
        fetcher = CountingFetcher(delay=0.5)
        registry = ChainRegistry(fetcher=fetcher, wait_timeout=0.01)

        with pytest.raises(UnresolvedChain):
            await registry.slug_for(2222)

        # The shared fetch keeps running and serves later callers
        await registry.cache.in_flight
        assert await registry.slug_for(2222) == "kava"
        assert fetcher.calls == 1

    @pytest.mark.asyncio
    async def test_failed_fetch_without_cache_raises(self):
        fetcher = CountingFetcher(error=RuntimeError("directory down"))
        registry = ChainRegistry(fetcher=fetcher, wait_timeout=1.0)

        with pytest.raises(UnresolvedChain):
            await registry.slug_for(2222)
        assert not registry.cache.populated

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_last_good_cache(self):
        fetcher = CountingFetcher()
        registry = ChainRegistry(fetcher=fetcher, wait_timeout=1.0, refresh_interval=0.0)
        assert await registry.slug_for(2222) == "kava"

        fetcher.error = RuntimeError("directory down")
        with pytest.raises(UnresolvedChain):
            await registry.slug_for(999999)

        assert fetcher.calls == 2
        assert await registry.slug_for(2222) == "kava"

    @pytest.mark.asyncio
    async def test_populated_cache_not_refetched_within_interval(self):
        fetcher = CountingFetcher()
        registry = ChainRegistry(fetcher=fetcher, wait_timeout=1.0, refresh_interval=3600)
        await registry.slug_for(2222)

        with pytest.raises(UnresolvedChain):
            await registry.slug_for(999999)
        assert fetcher.calls == 1

    @pytest.mark.asyncio
    async def test_non_numeric_id_raises(self):
        registry = ChainRegistry(fetcher=CountingFetcher())
        with pytest.raises(UnresolvedChain):
            await registry.slug_for("mainnet")


class TestHelpers:

    def test_normalize_slug(self):
        assert normalize_slug(" Ethereum ") == "eth"
        assert normalize_slug("MATIC") == "pol"
        assert normalize_slug("somechain") == "somechain"

    def test_normalize_chain_name(self):
        assert normalize_chain_name("  Kava EVM  Testnet ") == "kava-evm-testnet"
        assert normalize_chain_name("Chain (Beta)!") == "chain-beta"

    def test_is_zero_address(self):
        assert is_zero_address("0x0000000000000000000000000000000000000000")
        assert not is_zero_address("0xaf88d065e77c8cc2239327c5edb3a432268e5831")
        assert not is_zero_address(None)
