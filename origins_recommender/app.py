"""Wire collaborators from configuration into a Scheduler."""
from __future__ import annotations

import logging

from .chains.evm import EvmClient
from .config import AppConfig
from .interfaces import MarketDataProvider, Notifier, PositionStore
from .market import LiveMarketDataProvider, load_replay_provider
from .notifications import EmailNotifier, TelegramNotifier
from .oracles import PythOracle, UniswapGraphClient
from .protocols.origins import OriginsPositionStore
from .services import PositionAnalyzer, RecommendationEngine, Scheduler
from .stores import FilePositionStore

logger = logging.getLogger(__name__)


def build_position_store(config: AppConfig) -> PositionStore:
    if config.positions.source == "file":
        return FilePositionStore(config.positions.path)
    client = EvmClient(config.chain)
    return OriginsPositionStore(client, config.chain, config.positions.origins)


def build_market_data_provider(config: AppConfig) -> MarketDataProvider:
    md = config.market_data
    if md.provider == "replay":
        return load_replay_provider(md.replay_path)

    depth_source = UniswapGraphClient(md.uniswap) if md.uniswap.pools else None
    return LiveMarketDataProvider(PythOracle(md.pyth), depth_source)


def build_notifiers(config: AppConfig) -> list[Notifier]:
    notifiers: list[Notifier] = []
    if config.notifications.telegram.enabled:
        notifiers.append(TelegramNotifier(config.notifications.telegram))
    if config.notifications.email.enabled:
        notifiers.append(EmailNotifier(config.notifications.email))
    return notifiers


def build_scheduler(config: AppConfig) -> Scheduler:
    store = build_position_store(config)
    provider = build_market_data_provider(config)
    notifiers = build_notifiers(config)
    logger.info(
        "Using %s positions, %s market data, %d notifier(s)",
        config.positions.source, config.market_data.provider, len(notifiers),
    )
    return Scheduler(
        store=store,
        provider=provider,
        analyzer=PositionAnalyzer(config.analyzer),
        engine=RecommendationEngine(config.engine),
        config=config.scheduler,
        notifiers=notifiers,
    )
