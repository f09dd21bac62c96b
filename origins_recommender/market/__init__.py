"""Market data providers."""
from .live import LiveMarketDataProvider
from .replay import ReplayMarketDataProvider, load_replay_provider

__all__ = ["LiveMarketDataProvider", "ReplayMarketDataProvider", "load_replay_provider"]
