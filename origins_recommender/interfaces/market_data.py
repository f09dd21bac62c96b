"""Market data provider protocol — per-cycle snapshot source."""
from collections.abc import Set
from typing import Protocol

from ..models import MarketDataSnapshot


class MarketDataProvider(Protocol):
    """Fetch a snapshot of prices and depths for a set of assets.

    Raises ``NetworkError``, ``FetchTimeout`` or ``PartialData``.
    """

    async def fetch(self, asset_ids: Set[str]) -> MarketDataSnapshot: ...
