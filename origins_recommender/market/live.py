"""Live market data: Pyth prices plus Uniswap pool depths."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Set
from datetime import datetime
from decimal import Decimal

from ..errors import PartialData
from ..models import MarketDataSnapshot, utc_now
from ..oracles import PythOracle, UniswapGraphClient

logger = logging.getLogger(__name__)


class LiveMarketDataProvider:
    """Build a snapshot from live price and depth sources.

    Prices and depths are fetched concurrently. Assets without a price
    produce ``PartialData``; assets without a depth are left for the analyzer
    to fall back on the position's own depth.
    """

    def __init__(
        self,
        oracle: PythOracle,
        depth_source: UniswapGraphClient | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._oracle = oracle
        self._depth_source = depth_source
        self._clock = clock

    async def _fetch_depths(self, asset_ids: Set[str]) -> dict[str, Decimal]:
        if self._depth_source is None:
            return {}
        return await self._depth_source.fetch_depths(asset_ids)

    async def fetch(self, asset_ids: Set[str]) -> MarketDataSnapshot:
        prices, depths = await asyncio.gather(
            self._oracle.fetch_prices(asset_ids),
            self._fetch_depths(asset_ids),
        )
        snapshot = MarketDataSnapshot(
            captured_at=self._clock(), prices=prices, depths=depths
        )

        missing = frozenset(asset_ids) - snapshot.prices.keys()
        if missing:
            logger.warning("No live price for: %s", ", ".join(sorted(missing)))
            raise PartialData(snapshot, missing)
        return snapshot
