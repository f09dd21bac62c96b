"""Pyth Network price oracle service."""
from __future__ import annotations

import asyncio
import logging
import ssl
from collections.abc import Iterable
from decimal import Decimal

import aiohttp
import certifi

from ..config import PythConfig
from ..errors import FetchTimeout, NetworkError

logger = logging.getLogger(__name__)


def parse_price(price_data: dict) -> Decimal:
    """Convert a Hermes ``{"price": "...", "expo": "..."}`` pair to a Decimal.

    Example:
        {"price": "350000000", "expo": "-8"} → Decimal("3.50000000")
    """
    price_raw = int(price_data.get("price", 0))
    expo = int(price_data.get("expo", 0))
    return Decimal(price_raw).scaleb(expo)


class PythOracle:
    """Fetch prices from Pyth Network oracle."""

    def __init__(self, config: PythConfig, timeout: float = 15.0) -> None:
        self.hermes_url = config.hermes_url
        self.price_feeds = dict(config.feeds)
        self.timeout = timeout

    async def fetch_prices(
        self, symbols: Iterable[str] | None = None
    ) -> dict[str, Decimal]:
        """Fetch current prices from Pyth Network.

        Args:
            symbols: Optional symbols to fetch. If None, fetches all
                     configured feeds. Symbols without a configured feed are
                     simply absent from the result.

        Raises:
            NetworkError: on transport failure or a non-200 response.
            FetchTimeout: when Hermes does not answer in time.
        """
        prices: dict[str, Decimal] = {}

        feeds = self.price_feeds
        if symbols is not None:
            wanted = set(symbols)
            feeds = {k: v for k, v in self.price_feeds.items() if k in wanted}

        feed_ids = sorted(set(feeds.values()))
        if not feed_ids:
            return prices

        query_params = "&".join([f"ids[]={fid}" for fid in feed_ids])
        url = f"{self.hermes_url}?{query_params}"

        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        try:
            async with aiohttp.ClientSession(connector=connector) as session:
                async with session.get(
                    url, timeout=aiohttp.ClientTimeout(total=self.timeout)
                ) as response:
                    if response.status != 200:
                        logger.error(
                            "Error fetching prices from Pyth: HTTP %s", response.status
                        )
                        raise NetworkError(f"Pyth Hermes returned HTTP {response.status}")

                    data = await response.json()
        except asyncio.TimeoutError as e:
            logger.error("Timed out fetching prices from Pyth")
            raise FetchTimeout("Pyth Hermes request timed out") from e
        except (aiohttp.ClientError, ConnectionError) as e:
            logger.error("Error fetching prices from Pyth: %s", e)
            raise NetworkError(f"Pyth Hermes request failed: {e}") from e

        # Create reverse mapping from feed ID to asset names
        id_to_assets: dict[str, list[str]] = {}
        for asset, feed_id in feeds.items():
            id_to_assets.setdefault(feed_id.lower().removeprefix("0x"), []).append(asset)

        for item in data.get("parsed", []):
            feed_id = str(item.get("id", "")).lower().removeprefix("0x")
            if feed_id not in id_to_assets:
                continue
            price = parse_price(item.get("price", {}))
            for asset in id_to_assets[feed_id]:
                prices[asset] = price

        logger.info("Fetched %d prices from Pyth Network", len(prices))
        for asset, price in sorted(prices.items()):
            logger.debug("  %s: $%s", asset, price)

        return prices
