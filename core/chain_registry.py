"""
Chain Registry

Maps numeric chain ids to canonical chain slugs and back, and classifies
chains as EVM or non-EVM.

Resolution order for slug_for(chain_id):
    1. Static non-EVM id table (networks with several known numeric ids)
    2. Static EVM chain id table
    3. Chain directory cache (chainid.network), if a fetch has completed
    4. Otherwise start (or join) the single in-flight directory fetch, wait for
       it for a bounded time, and raise UnresolvedChain if it still misses

The directory cache is an explicit object owned by the registry instance.
Concurrent misses share one fetch task. A failed refetch keeps the last good
snapshot. Reads of a populated cache never wait on anything.

Usage:
    registry = ChainRegistry()
    slug = await registry.slug_for(42161)     # "arb"
    chain_id = registry.chain_id_for("arbitrum")  # 42161
    registry.is_evm("sol")                    # False
"""

import asyncio
import re
import time
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Union

from core.config import settings
from core.errors import UnresolvedChain
from core.http_client import ResilientHttpClient
from core.logging import get_logger
from core.schemas import ChainDescriptor

logger = get_logger(__name__)


ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Seconds before a failed directory fetch may be attempted again
FAILED_FETCH_RETRY_SECONDS = 60.0


# ============================================
# Static Chain Tables
# ============================================

EVM_CHAINS: Dict[int, str] = {
    # Ethereum Mainnet
    1: "eth",

    # Layer 2s
    42161: "arb",
    42170: "arb-nova",
    10: "op",
    8453: "base",
    7777777: "zora",

    # Polygon
    137: "pol",
    1101: "pol-zkevm",

    # BSC
    56: "bsc",
    204: "opbnb",

    # Avalanche
    43114: "avax",

    # Other EVM chains
    250: "ftm",
    42220: "celo",
    100: "gnosis",
    324: "zksync",
    59144: "linea",
    5000: "mantle",
    534352: "scroll",
    169: "manta",
    34443: "mode",
    81457: "blast",
    1135: "lisk",
    690: "redstone",
    9745: "plasma",
    80094: "bera",
    130: "unichain",
    143: "monad",
    480: "worldchain",
    1868: "soneium",
    57073: "ink",
    232: "gho",
    999: "wan",

    # Testnets
    3: "eth-ropsten",
    4: "eth-rinkeby",
    5: "eth-goerli",
    42: "eth-kovan",
    11155111: "eth-sepolia",
    421614: "arb-sepolia",
    84532: "base-sepolia",
    11155420: "op-sepolia",
    80001: "pol-mumbai",
}

NON_EVM_CHAINS = (
    "sol",
    "near",
    "ton",
    "aptos",
    "sui",
    "btc",
    "tron",
    "stellar",
    "cardano",
    "zec",
    "ltc",
    "doge",
    "xrp",
    "dot",
    "cosmos",
    "osmo",
    "algo",
    "tezos",
)

# Numeric ids providers use for non-EVM networks. The first id listed per
# slug is its primary id and the one chain_id_for returns.
NON_EVM_CHAIN_IDS: Dict[int, str] = {
    # Solana
    34268394551451: "sol",
    1399811149: "sol",
    501000101: "sol",
    1151111081099710: "sol",

    # Bitcoin
    0: "btc",
    8332: "btc",
    20000000000001: "btc",

    # Tron
    728126428: "tron",

    # NEAR
    397: "near",
}

NON_EVM_PRIMARY_IDS: Dict[str, int] = {}
for _chain_id, _slug in NON_EVM_CHAIN_IDS.items():
    NON_EVM_PRIMARY_IDS.setdefault(_slug, _chain_id)

CHAIN_ALIASES: Dict[str, str] = {
    "ethereum": "eth",
    "arbitrum": "arb",
    "arb1": "arb",
    "arbitrum-one": "arb",
    "arbitrum-nova": "arb-nova",
    "optimism": "op",
    "polygon": "pol",
    "matic": "pol",
    "polygon-zkevm": "pol-zkevm",
    "bnb": "bsc",
    "avalanche": "avax",
    "fantom": "ftm",
    "berachain": "bera",
    "arbitrum-sepolia": "arb-sepolia",
    "optimism-sepolia": "op-sepolia",
    "polygon-mumbai": "pol-mumbai",
    "matic-mumbai": "pol-mumbai",
    "mumbai": "pol-mumbai",
    "solana": "sol",
    "bitcoin": "btc",
    "xlm": "stellar",
    "ada": "cardano",
    "polkadot": "dot",
    "atom": "cosmos",
    "osmosis": "osmo",
    "algorand": "algo",
    "xtz": "tezos",
}

CANONICAL_CHAIN_SLUGS = tuple(EVM_CHAINS.values()) + NON_EVM_CHAINS

_EVM_SLUG_TO_ID: Dict[str, int] = {slug: chain_id for chain_id, slug in EVM_CHAINS.items()}

_RESERVED_SLUGS = frozenset(CANONICAL_CHAIN_SLUGS) | frozenset(CHAIN_ALIASES)


# ============================================
# Normalization Helpers
# ============================================

def normalize_slug(name: str) -> str:
    """
    Map any chain name or alias to its canonical slug.

    Unknown names pass through lowercased.

    Example:
        >>> normalize_slug("Arbitrum")
        'arb'
        >>> normalize_slug("somechain")
        'somechain'
    """
    lower = (name or "").strip().lower()
    return CHAIN_ALIASES.get(lower, lower)


def normalize_chain_name(name: str) -> str:
    """
    Turn a chain directory name into a slug.

    Example:
        >>> normalize_chain_name("  Kava EVM  Testnet ")
        'kava-evm-testnet'
    """
    slug = name.lower()
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"[^a-z0-9-]", "", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def is_zero_address(address: Optional[str]) -> bool:
    """Check whether an address is the EVM zero address used as a native-coin placeholder."""
    return bool(address) and address.strip().lower() == ZERO_ADDRESS


def is_non_evm(slug: str) -> bool:
    """Check whether a slug (or alias) names a known non-EVM chain family."""
    return normalize_slug(slug) in NON_EVM_CHAINS


def _to_chain_id(chain_id: Union[int, str]) -> int:
    if isinstance(chain_id, bool):
        raise UnresolvedChain(chain_id)
    try:
        return int(str(chain_id).strip())
    except (TypeError, ValueError):
        raise UnresolvedChain(chain_id)


# ============================================
# Chain Directory Cache
# ============================================

DirectoryFetcher = Callable[[], Awaitable[Iterable[Mapping[str, Any]]]]


class ChainDirectoryCache:
    """
    Snapshot of the external chain directory plus single-flight fetch tracking.

    The snapshot dicts are replaced wholesale on refresh and never mutated,
    so readers always see a consistent view.
    """

    def __init__(self):
        self._by_id: Dict[int, str] = {}
        self._by_slug: Dict[str, int] = {}
        self.fetched_at: Optional[float] = None
        self.last_attempt_at: Optional[float] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def populated(self) -> bool:
        return self.fetched_at is not None

    @property
    def in_flight(self) -> Optional[asyncio.Task]:
        if self._task is not None and not self._task.done():
            return self._task
        return None

    def __len__(self) -> int:
        return len(self._by_id)

    def get(self, chain_id: int) -> Optional[str]:
        return self._by_id.get(chain_id)

    def get_id(self, slug: str) -> Optional[int]:
        return self._by_slug.get(slug)

    def replace(self, entries: Dict[int, str]) -> None:
        """
        Swap in a new snapshot.

        Entries whose slug is a static slug or alias, or repeats an earlier
        entry's slug, are skipped so every cached slug maps back to one id.
        """
        by_id: Dict[int, str] = {}
        by_slug: Dict[str, int] = {}
        for chain_id, slug in entries.items():
            if slug in _RESERVED_SLUGS or slug in by_slug:
                logger.debug(f"Chain directory entry {chain_id} '{slug}' skipped, slug already taken")
                continue
            by_id[chain_id] = slug
            by_slug[slug] = chain_id
        self._by_id = by_id
        self._by_slug = by_slug
        self.fetched_at = time.monotonic()

    def should_fetch(self, refresh_interval: float) -> bool:
        """A miss may start a fetch when nothing is in flight and the last attempt is old enough."""
        if self.in_flight is not None:
            return False
        if self.last_attempt_at is None:
            return True
        age = time.monotonic() - self.last_attempt_at
        if self.populated:
            return age >= refresh_interval
        return age >= min(refresh_interval, FAILED_FETCH_RETRY_SECONDS)

    def start_fetch(self, factory: Callable[[], Awaitable[None]]) -> asyncio.Task:
        """Start the shared fetch task, or return the one already running."""
        task = self.in_flight
        if task is None:
            self.last_attempt_at = time.monotonic()
            task = asyncio.ensure_future(factory())
            self._task = task
        return task


async def fetch_chain_directory(url: Optional[str] = None) -> List[Mapping[str, Any]]:
    """
    Download the chain directory (chain id -> name / shortName).

    Returns:
        list: Raw directory entries
    """
    async with ResilientHttpClient(
        provider="chain-directory",
        base_url=url or settings.chain_directory_url,
        max_retries=1,
    ) as client:
        data = await client.get("")

    if not isinstance(data, list):
        raise ValueError(f"Unexpected chain directory payload: {type(data).__name__}")
    return data


# ============================================
# Chain Registry
# ============================================

class ChainRegistry:
    """
    Chain id <-> slug resolution with a lazily fetched directory fallback.

    Args:
        cache: Directory cache to use (a fresh one by default)
        fetcher: Coroutine function returning raw directory entries
        wait_timeout: Seconds a miss waits for the shared fetch
        refresh_interval: Seconds before a populated cache may be refetched on a miss
    """

    def __init__(
        self,
        cache: Optional[ChainDirectoryCache] = None,
        fetcher: Optional[DirectoryFetcher] = None,
        wait_timeout: Optional[float] = None,
        refresh_interval: Optional[float] = None,
    ):
        self.cache = cache if cache is not None else ChainDirectoryCache()
        self._fetcher = fetcher or fetch_chain_directory
        self.wait_timeout = settings.chain_directory_wait if wait_timeout is None else wait_timeout
        self.refresh_interval = (
            settings.chain_directory_refresh_interval if refresh_interval is None else refresh_interval
        )

    # ============================================
    # Static lookups
    # ============================================

    @staticmethod
    def lookup_static(chain_id: Union[int, str]) -> Optional[str]:
        """Resolve a chain id from the static tables only (no I/O)."""
        try:
            numeric = _to_chain_id(chain_id)
        except UnresolvedChain:
            return None
        if numeric in NON_EVM_CHAIN_IDS:
            return NON_EVM_CHAIN_IDS[numeric]
        return EVM_CHAINS.get(numeric)

    def descriptors(self) -> List[ChainDescriptor]:
        """Describe every statically known chain."""
        aliases_by_slug: Dict[str, List[str]] = {}
        for alias, slug in CHAIN_ALIASES.items():
            aliases_by_slug.setdefault(slug, []).append(alias)

        result = [
            ChainDescriptor(
                chain_id=chain_id,
                slug=slug,
                aliases=sorted(aliases_by_slug.get(slug, [])),
                is_evm=True,
            )
            for chain_id, slug in EVM_CHAINS.items()
        ]
        for slug, primary_id in NON_EVM_PRIMARY_IDS.items():
            result.append(
                ChainDescriptor(
                    chain_id=primary_id,
                    slug=slug,
                    aliases=sorted(aliases_by_slug.get(slug, [])),
                    alternate_ids=[cid for cid, s in NON_EVM_CHAIN_IDS.items() if s == slug and cid != primary_id],
                    is_evm=False,
                )
            )
        return result

    # ============================================
    # Resolution
    # ============================================

    async def slug_for(self, chain_id: Union[int, str]) -> str:
        """
        Resolve a numeric chain id to its canonical slug.

        Args:
            chain_id: Numeric chain id (int or numeric string)

        Returns:
            str: Canonical slug

        Raises:
            UnresolvedChain: If the id is unknown after the directory fallback
        """
        numeric = _to_chain_id(chain_id)

        slug = self.lookup_static(numeric)
        if slug is not None:
            return slug

        slug = self.cache.get(numeric)
        if slug is not None:
            logger.warning(
                f"Chain id {numeric} resolved to '{slug}' via chain directory - "
                f"consider adding it to the static chain table"
            )
            return slug

        task = self.cache.in_flight
        if task is None and self.cache.should_fetch(self.refresh_interval):
            task = self.cache.start_fetch(self._refresh_directory)

        if task is not None:
            try:
                await asyncio.wait_for(asyncio.shield(task), timeout=self.wait_timeout)
            except asyncio.TimeoutError:
                logger.debug(f"Chain directory fetch still running after {self.wait_timeout}s")

            slug = self.cache.get(numeric)
            if slug is not None:
                logger.warning(
                    f"Chain id {numeric} resolved to '{slug}' via chain directory - "
                    f"consider adding it to the static chain table"
                )
                return slug

        logger.warning(f"Unknown chain id {numeric} - add it to the static chain table")
        raise UnresolvedChain(chain_id)

    def chain_id_for(self, slug: str) -> int:
        """
        Resolve a slug or alias to its canonical numeric chain id.

        Raises:
            UnresolvedChain: If the slug is unknown
        """
        normalized = normalize_slug(slug)

        if normalized in _EVM_SLUG_TO_ID:
            return _EVM_SLUG_TO_ID[normalized]
        if normalized in NON_EVM_PRIMARY_IDS:
            return NON_EVM_PRIMARY_IDS[normalized]

        chain_id = self.cache.get_id(normalized)
        if chain_id is not None:
            return chain_id

        if normalized not in NON_EVM_CHAINS:
            logger.warning(f"Unknown chain slug '{slug}' - add it to the static chain table")
        raise UnresolvedChain(slug)

    def is_evm(self, slug: str) -> bool:
        """
        Check whether a slug names an EVM-compatible chain.

        Chains learned from the directory count as EVM (the directory only lists EVM networks).
        """
        normalized = normalize_slug(slug)
        if normalized in NON_EVM_CHAINS:
            return False
        return normalized in _EVM_SLUG_TO_ID or self.cache.get_id(normalized) is not None

    # ============================================
    # Directory refresh
    # ============================================

    async def _refresh_directory(self) -> None:
        """Fetch the directory and swap the cache. Failures keep the previous snapshot."""
        try:
            raw_entries = await self._fetcher()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if self.cache.populated:
                logger.warning(f"Chain directory refresh failed, keeping {len(self.cache)} cached chains: {e}")
            else:
                logger.warning(f"Chain directory fetch failed: {e}")
            return

        entries: Dict[int, str] = {}
        for entry in raw_entries:
            chain_id = entry.get("chainId")
            name = entry.get("name")
            if chain_id is None or not name:
                continue
            try:
                chain_id = int(chain_id)
            except (TypeError, ValueError):
                continue
            slug = normalize_chain_name(entry.get("shortName") or name)
            if slug:
                entries[chain_id] = slug

        self.cache.replace(entries)
        logger.info(f"Cached {len(self.cache)} chains from chain directory")
