#!/usr/bin/env python3
"""
Print a provider snapshot as JSON.

What it does:
- Registers the requested providers and opens their sessions
- Fetches volumes and listed assets for each provider
- For every --route, fetches rates (per --notional) and liquidity depth
- Prints {provider: snapshot} as JSON; failed providers are left out

Routes are two canonical asset ids joined by a comma. Quotes need token
decimals, so each id may carry them after an '@':

Usage:
  python -m scripts.snapshot --providers lifi,across --window 24h --window 7d
  python -m scripts.snapshot --providers across \\
      --route "1cs_v1:eth:erc20:0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48@6,1cs_v1:arb:erc20:0xaf88d065e77c8cc2239327c5edb3a432268e5831@6" \\
      --notional 1000000000
"""

import argparse
import asyncio
import json
import sys
from typing import List, Optional, Tuple

from core.aggregator import AggregationRouter
from core.canonicalizer import AssetCanonicalizer
from core.chain_registry import ChainRegistry
from core.config import settings
from core.logging import setup_logging
from core.provider_manager import ProviderManager
from core.schemas import TIME_WINDOWS, CanonicalAsset, Route


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Print a cross-chain provider snapshot as JSON.")
    p.add_argument("--providers", default=settings.enabled_providers,
                   help="Comma-separated provider ids (default: ENABLED_PROVIDERS)")
    p.add_argument("--window", action="append", choices=TIME_WINDOWS,
                   help="Volume window, repeatable (default: all)")
    p.add_argument("--route", action="append", default=[],
                   help="'<asset_id>[@decimals],<asset_id>[@decimals]', repeatable")
    p.add_argument("--notional", action="append", default=[],
                   help="Quote amount in smallest source units, repeatable (default: one whole token)")
    p.add_argument("--indent", type=int, default=2, help="JSON indent (default: 2)")
    p.add_argument("--log-level", default="WARNING", help="Log level; logs share stdout with the JSON (default: WARNING)")
    return p.parse_args(argv)


def split_asset(value: str) -> Tuple[str, Optional[int]]:
    """
    Split "<asset_id>@<decimals>" into its parts.

    Example:
        >>> split_asset("1cs_v1:eth:native:coin@18")
        ('1cs_v1:eth:native:coin', 18)
    """
    asset_id, sep, decimals = value.strip().rpartition("@")
    if not sep:
        return value.strip(), None
    return asset_id, int(decimals)


def parse_route(value: str, canonicalizer: AssetCanonicalizer) -> Route[CanonicalAsset]:
    """
    Build a canonical route from the --route syntax.

    Raises:
        ValueError: If the value is not two comma-separated assets
        MalformedIdentity: If an asset id does not parse
    """
    parts = value.split(",")
    if len(parts) != 2:
        raise ValueError(f"Route must be '<source>,<destination>', got {value!r}")

    assets = []
    for part in parts:
        asset_id, decimals = split_asset(part)
        identity = canonicalizer.from_asset_id(asset_id)
        chain_id = None
        if canonicalizer.registry.is_evm(identity.chain):
            chain_id = canonicalizer.registry.chain_id_for(identity.chain)
        assets.append(canonicalizer.canonical_asset(identity, decimals=decimals, chain_id=chain_id))

    return Route[CanonicalAsset](source=assets[0], destination=assets[1])


async def run(args: argparse.Namespace) -> int:
    registry = ChainRegistry()
    canonicalizer = AssetCanonicalizer(registry)
    routes = [parse_route(r, canonicalizer) for r in args.route]
    provider_ids = [p.strip().lower() for p in args.providers.split(",") if p.strip()]

    manager = ProviderManager(enabled=provider_ids, registry=registry)
    router = AggregationRouter(manager)

    await manager.initialize_all()
    try:
        snapshot = await router.get_snapshot(
            providers=provider_ids,
            routes=routes or None,
            notionals=args.notional or None,
            windows=args.window,
        )
    finally:
        await manager.shutdown_all()

    output = {name: json.loads(result.model_dump_json()) for name, result in snapshot.items()}
    print(json.dumps(output, indent=args.indent))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(log_level=args.log_level)
    return asyncio.run(run(args))


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\n[Info] Interrupted. Bye.")
        sys.exit(0)
