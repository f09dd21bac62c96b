"""Uniswap v3 subgraph client — pool TVL used as liquidity depth."""
from __future__ import annotations

import asyncio
import logging
import ssl
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

import aiohttp
import certifi

from ..config import UniswapConfig
from ..errors import FetchTimeout, NetworkError
from ..numeric import to_decimal

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
BACKOFF_BASE_SECONDS = 0.3

_POOL_FIELDS = """
    id
    feeTier
    liquidity
    volumeUSD
    totalValueLockedUSD
    token0 { id symbol name decimals }
    token1 { id symbol name decimals }
"""

POOLS_BY_ID_QUERY = (
    "query PoolsById($ids: [ID!]!) { pools(where: {id_in: $ids}) {"
    + _POOL_FIELDS
    + "} }"
)

TOP_POOLS_QUERY = (
    "query TopPools($first: Int!) { pools(first: $first, "
    "orderBy: totalValueLockedUSD, orderDirection: desc) {"
    + _POOL_FIELDS
    + "} }"
)


@dataclass(frozen=True)
class Pool:
    id: str
    token0_symbol: str
    token1_symbol: str
    fee_tier: str
    total_value_locked_usd: Decimal
    volume_usd: Decimal


def parse_pool(raw: dict[str, Any]) -> Pool:
    return Pool(
        id=str(raw.get("id", "")).lower(),
        token0_symbol=raw.get("token0", {}).get("symbol", ""),
        token1_symbol=raw.get("token1", {}).get("symbol", ""),
        fee_tier=str(raw.get("feeTier", "")),
        total_value_locked_usd=to_decimal(raw.get("totalValueLockedUSD", "0")),
        volume_usd=to_decimal(raw.get("volumeUSD", "0")),
    )


class UniswapGraphClient:
    """Query the Uniswap v3 subgraph with retry and exponential backoff."""

    def __init__(self, config: UniswapConfig) -> None:
        self.graph_url = config.graph_url
        self.pools = {asset: pool.lower() for asset, pool in config.pools.items()}
        self.timeout = config.timeout
        self._headers = {"User-Agent": "origins-recommender"}
        if config.api_key:
            self._headers["Authorization"] = f"Bearer {config.api_key}"

    async def _post(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        """POST a GraphQL request, retrying on non-2xx responses.

        Backoff is 0.3s, 0.9s between attempts; HTTP 400 is not retried.
        """
        payload = {"query": query, "variables": variables}
        ssl_context = ssl.create_default_context(cafile=certifi.where())
        last_status: int | None = None

        for attempt in range(1, MAX_ATTEMPTS + 1):
            logger.debug("Subgraph request to %s (attempt %d)", self.graph_url, attempt)
            try:
                connector = aiohttp.TCPConnector(ssl=ssl_context)
                async with aiohttp.ClientSession(
                    connector=connector, headers=self._headers
                ) as session:
                    async with session.post(
                        self.graph_url,
                        json=payload,
                        timeout=aiohttp.ClientTimeout(total=self.timeout),
                    ) as response:
                        if 200 <= response.status < 300:
                            envelope = await response.json()
                            errors = envelope.get("errors")
                            if errors:
                                msg = errors[0].get("message", "unknown graph error")
                                raise NetworkError(f"Subgraph error: {msg}")
                            data = envelope.get("data")
                            if data is None:
                                raise NetworkError("Subgraph response missing data field")
                            return data
                        last_status = response.status
            except asyncio.TimeoutError as e:
                logger.error("Subgraph request timed out")
                raise FetchTimeout("Uniswap subgraph request timed out") from e
            except aiohttp.ClientError as e:
                logger.error("Subgraph request failed: %s", e)
                raise NetworkError(f"Uniswap subgraph request failed: {e}") from e

            if attempt >= MAX_ATTEMPTS or last_status == 400:
                break
            backoff = BACKOFF_BASE_SECONDS * 3 ** (attempt - 1)
            logger.warning(
                "Subgraph returned HTTP %s, retrying in %.1fs", last_status, backoff
            )
            await asyncio.sleep(backoff)

        raise NetworkError(f"Uniswap subgraph request failed, status={last_status}")

    async def fetch_depths(self, asset_ids: Iterable[str]) -> dict[str, Decimal]:
        """Return pool TVL (USD) per asset for assets with a configured pool."""
        wanted = {a: self.pools[a] for a in asset_ids if a in self.pools}
        if not wanted:
            return {}

        data = await self._post(
            POOLS_BY_ID_QUERY, {"ids": sorted(set(wanted.values()))}
        )
        by_id = {pool.id: pool for pool in map(parse_pool, data.get("pools", []))}

        depths: dict[str, Decimal] = {}
        for asset, pool_id in wanted.items():
            pool = by_id.get(pool_id)
            if pool is None:
                logger.warning("Pool %s for asset %s not found in subgraph", pool_id, asset)
                continue
            depths[asset] = pool.total_value_locked_usd
        return depths

    async def top_pools(self, first: int) -> list[Pool]:
        data = await self._post(TOP_POOLS_QUERY, {"first": first})
        pools = [parse_pool(raw) for raw in data.get("pools", [])]
        logger.info("Fetched %d top pools", len(pools))
        return pools
