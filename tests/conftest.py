"""Shared test fixtures and sample data."""
from __future__ import annotations

import textwrap
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

import pytest

from origins_recommender.config import (
    AnalyzerConfig,
    AppConfig,
    ChainConfig,
    EmailConfig,
    EngineConfig,
    NotificationsConfig,
    OriginsConfig,
    PositionsConfig,
    PythConfig,
    SchedulerConfig,
    TelegramConfig,
)
from origins_recommender.models import MarketDataSnapshot, Position, Score

NOW = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

CONTRACT = "0x1234567890abcdef1234567890abcdef12345678"


def make_position(
    position_id: str = "1",
    asset_id: str = "ETH",
    collateral: str = "1",
    debt: str = "0",
    depth: str = "1000000",
    age: timedelta = timedelta(minutes=5),
) -> Position:
    return Position(
        id=position_id,
        asset_id=asset_id,
        collateral_value=Decimal(collateral),
        debt_value=Decimal(debt),
        liquidity_depth=Decimal(depth),
        last_updated=NOW - age,
    )


def make_score(
    position_id: str,
    risk: str,
    liquidity: str,
    notional: str = "1000",
) -> Score:
    return Score(
        position_id=position_id,
        risk_score=Decimal(risk),
        liquidity_score=Decimal(liquidity),
        staleness=timedelta(0),
        notional=Decimal(notional),
    )


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def analyzer_config() -> AnalyzerConfig:
    return AnalyzerConfig()


@pytest.fixture()
def engine_config() -> EngineConfig:
    return EngineConfig()


@pytest.fixture()
def scheduler_config() -> SchedulerConfig:
    return SchedulerConfig(fetch_timeout=1.0, analyze_timeout=1.0, rank_timeout=1.0)


@pytest.fixture()
def sample_chain_config() -> ChainConfig:
    return ChainConfig(
        rpc_url="https://rpc1.example.com",
        backup_rpc_urls=("https://rpc2.example.com",),
        rpc_timeout=10,
        origins_contract_address=CONTRACT,
    )


@pytest.fixture()
def sample_origins_config() -> OriginsConfig:
    return OriginsConfig(
        count_selector="0xaaaaaaaa",
        position_selector="0xbbbbbbbb",
        value_decimals=18,
        token_aliases={"0x82af49447d8a07e3bd95bd0d56f35241523fbab1": "ETH"},
    )


@pytest.fixture()
def sample_app_config(
    sample_chain_config: ChainConfig,
    sample_origins_config: OriginsConfig,
) -> AppConfig:
    return AppConfig(
        chain=sample_chain_config,
        positions=PositionsConfig(source="origins", origins=sample_origins_config),
        notifications=NotificationsConfig(
            telegram=TelegramConfig(
                enabled=True,
                alert_bot_token="fake-alert-token",
                log_bot_token="fake-log-token",
                chat_id="12345",
            ),
            email=EmailConfig(enabled=False),
        ),
    )


@pytest.fixture()
def sample_pyth_config() -> PythConfig:
    return PythConfig(
        hermes_url="https://hermes.example.com/v2/updates/price/latest",
        feeds={"ETH": "aaa111", "BTC": "bbb222", "USDC": "ccc333"},
    )


# ---------------------------------------------------------------------------
# Model fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def snapshot() -> MarketDataSnapshot:
    return MarketDataSnapshot(
        captured_at=NOW,
        prices={"ETH": Decimal("3000"), "BTC": Decimal("95000"), "USDC": Decimal("1")},
        depths={"ETH": Decimal("10000000")},
    )


@pytest.fixture()
def sample_positions() -> list[Position]:
    return [
        # health ratio 1.05 -> risk 0.95 -> Close
        make_position("1", "ETH", collateral="1", debt="2857.142857142857142857142857"),
        # pure supply
        make_position("2", "BTC", collateral="0.5"),
        # health ratio 1.5 -> risk 0.5 -> Rebalance
        make_position("3", "ETH", collateral="2", debt="4000"),
    ]


# ---------------------------------------------------------------------------
# Config YAML fixture
# ---------------------------------------------------------------------------

SAMPLE_YAML = textwrap.dedent("""\
    rpc_url: "https://rpc.example.com"
    backup_rpc_urls: ["https://backup.example.com"]
    rpc_timeout: 10
    origins_contract_address: "0x1234567890abcdef1234567890abcdef12345678"
    position_threshold: 0.5
    max_positions: 5
    recommendation_interval: 60
    max_staleness: 600
    engine:
      w_risk: 0.7
      w_liquidity: 0.3
    analyzer:
      liquidation_ratio: 1.1
      safe_ratio: 2.5
    scheduler:
      fetch_timeout: 5
      allow_partial_data: false
    market_data:
      provider: live
      pyth:
        hermes_url: "https://hermes.example.com"
        feeds: {ETH: "aaa", BTC: "bbb"}
      uniswap:
        pools: {ETH: "0xPOOL"}
    positions:
      source: origins
      origins:
        count_selector: "0xaaaaaaaa"
        position_selector: "0xbbbbbbbb"
        token_aliases: {"0xABCDEF0000000000000000000000000000000001": WBTC}
    notifications:
      telegram:
        enabled: true
        alert_bot_token: "tok1"
        log_bot_token: "tok2"
        chat_id: 999
      email:
        enabled: false
""")


@pytest.fixture()
def sample_yaml_path(tmp_path: Path) -> Path:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(SAMPLE_YAML)
    return cfg_file
