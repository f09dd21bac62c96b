"""Collaborator interfaces for the position recommender."""
from .chain import ChainClient
from .market_data import MarketDataProvider
from .notifier import Notifier
from .position_store import PositionStore

__all__ = ["ChainClient", "MarketDataProvider", "Notifier", "PositionStore"]
