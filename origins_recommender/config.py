"""Configuration loader — reads config.yaml, interpolates env vars, validates."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from .errors import ConfigError
from .numeric import is_valid_address, to_decimal

logger = logging.getLogger(__name__)

# Canonical Arbitrum token addresses mapped to the symbols prices are keyed by.
DEFAULT_TOKEN_ALIASES: dict[str, str] = {
    "0x82af49447d8a07e3bd95bd0d56f35241523fbab1": "ETH",
    "0xaf88d065e77c8cc2239327c5edb3a432268e5831": "USDC",
    "0xff970a61a04b1ca14834a43f5de4533ebddb5cc8": "USDC",
    "0xfd086bc7cd5c481dcc9c85ebe478a1c0b69fcbb9": "USDT",
    "0xda10009cbd5d07dd0cecc66161fc93d7c9000da1": "DAI",
    "0x2f2a2543b76a4166549f7aab2e75bef0aefc5b0f": "BTC",
    "0x912ce59144191c1204e64559fe8253a0e49e6548": "ARB",
}

# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ChainConfig:
    rpc_url: str = ""
    backup_rpc_urls: tuple[str, ...] = ()
    rpc_timeout: int = 30
    origins_contract_address: str = ""

    @property
    def rpc_endpoints(self) -> tuple[str, ...]:
        return (self.rpc_url, *self.backup_rpc_urls)


@dataclass(frozen=True)
class AnalyzerConfig:
    max_staleness: timedelta = timedelta(hours=1)
    liquidation_ratio: Decimal = Decimal("1.0")
    safe_ratio: Decimal = Decimal("2.0")
    depth_epsilon: Decimal = Decimal("1e-18")


@dataclass(frozen=True)
class EngineConfig:
    position_threshold: Decimal = Decimal("0.1")
    max_positions: int = 10
    w_risk: Decimal = Decimal("0.6")
    w_liquidity: Decimal = Decimal("0.4")
    critical_risk_cutoff: Decimal = Decimal("0.9")
    rebalance_risk_cutoff: Decimal = Decimal("0.5")
    open_liquidity_floor: Decimal = Decimal("0.3")


@dataclass(frozen=True)
class SchedulerConfig:
    recommendation_interval: timedelta = timedelta(seconds=300)
    fetch_timeout: float = 30.0
    analyze_timeout: float = 30.0
    rank_timeout: float = 10.0
    emit_timeout: float = 15.0
    allow_partial_data: bool = True


@dataclass(frozen=True)
class PythConfig:
    hermes_url: str = "https://hermes.pyth.network/v2/updates/price/latest"
    feeds: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class UniswapConfig:
    graph_url: str = "https://api.thegraph.com/subgraphs/name/uniswap/uniswap-v3"
    api_key: str = ""
    pools: dict[str, str] = field(default_factory=dict)
    timeout: int = 15


@dataclass(frozen=True)
class MarketDataConfig:
    provider: str = "live"
    replay_path: str = ""
    pyth: PythConfig = field(default_factory=PythConfig)
    uniswap: UniswapConfig = field(default_factory=UniswapConfig)


@dataclass(frozen=True)
class OriginsConfig:
    count_selector: str = ""
    position_selector: str = ""
    value_decimals: int = 18
    token_aliases: dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_TOKEN_ALIASES)
    )


@dataclass(frozen=True)
class PositionsConfig:
    source: str = "origins"
    path: str = ""
    origins: OriginsConfig = field(default_factory=OriginsConfig)


@dataclass(frozen=True)
class TelegramConfig:
    enabled: bool = False
    alert_bot_token: str = ""
    log_bot_token: str = ""
    chat_id: str = ""


@dataclass(frozen=True)
class EmailConfig:
    enabled: bool = False
    alert_email: str = ""
    smtp_server: str = "smtp.gmail.com"
    smtp_port: int = 587
    sender_email: str = ""
    sender_password: str = ""


@dataclass(frozen=True)
class NotificationsConfig:
    telegram: TelegramConfig = field(default_factory=TelegramConfig)
    email: EmailConfig = field(default_factory=EmailConfig)


@dataclass(frozen=True)
class AppConfig:
    chain: ChainConfig = field(default_factory=ChainConfig)
    analyzer: AnalyzerConfig = field(default_factory=AnalyzerConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    market_data: MarketDataConfig = field(default_factory=MarketDataConfig)
    positions: PositionsConfig = field(default_factory=PositionsConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# YAML → dataclass builders
# ---------------------------------------------------------------------------


def _decimal(raw: dict[str, Any], key: str, default: Decimal) -> Decimal:
    if key not in raw:
        return default
    try:
        return to_decimal(raw[key])
    except ValueError as e:
        raise ConfigError(f"'{key}' must be a decimal number: {e}") from e


def _seconds(raw: dict[str, Any], key: str, default: timedelta) -> timedelta:
    if key not in raw:
        return default
    try:
        return timedelta(seconds=float(raw[key]))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"'{key}' must be a number of seconds") from e


def _int(raw: dict[str, Any], key: str, default: int) -> int:
    try:
        return int(raw.get(key, default))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"'{key}' must be an integer") from e


def _float(raw: dict[str, Any], key: str, default: float) -> float:
    try:
        return float(raw.get(key, default))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"'{key}' must be a number") from e


def _build_chain(raw: dict[str, Any]) -> ChainConfig:
    return ChainConfig(
        rpc_url=raw.get("rpc_url", ""),
        backup_rpc_urls=tuple(raw.get("backup_rpc_urls", [])),
        rpc_timeout=_int(raw, "rpc_timeout", 30),
        origins_contract_address=raw.get("origins_contract_address", ""),
    )


def _build_analyzer(top: dict[str, Any], raw: dict[str, Any]) -> AnalyzerConfig:
    defaults = AnalyzerConfig()
    return AnalyzerConfig(
        max_staleness=_seconds(top, "max_staleness", defaults.max_staleness),
        liquidation_ratio=_decimal(raw, "liquidation_ratio", defaults.liquidation_ratio),
        safe_ratio=_decimal(raw, "safe_ratio", defaults.safe_ratio),
        depth_epsilon=_decimal(raw, "depth_epsilon", defaults.depth_epsilon),
    )


def _build_engine(top: dict[str, Any], raw: dict[str, Any]) -> EngineConfig:
    defaults = EngineConfig()
    return EngineConfig(
        position_threshold=_decimal(top, "position_threshold", defaults.position_threshold),
        max_positions=_int(top, "max_positions", defaults.max_positions),
        w_risk=_decimal(raw, "w_risk", defaults.w_risk),
        w_liquidity=_decimal(raw, "w_liquidity", defaults.w_liquidity),
        critical_risk_cutoff=_decimal(
            raw, "critical_risk_cutoff", defaults.critical_risk_cutoff
        ),
        rebalance_risk_cutoff=_decimal(
            raw, "rebalance_risk_cutoff", defaults.rebalance_risk_cutoff
        ),
        open_liquidity_floor=_decimal(
            raw, "open_liquidity_floor", defaults.open_liquidity_floor
        ),
    )


def _build_scheduler(top: dict[str, Any], raw: dict[str, Any]) -> SchedulerConfig:
    defaults = SchedulerConfig()
    return SchedulerConfig(
        recommendation_interval=_seconds(
            top, "recommendation_interval", defaults.recommendation_interval
        ),
        fetch_timeout=_float(raw, "fetch_timeout", defaults.fetch_timeout),
        analyze_timeout=_float(raw, "analyze_timeout", defaults.analyze_timeout),
        rank_timeout=_float(raw, "rank_timeout", defaults.rank_timeout),
        emit_timeout=_float(raw, "emit_timeout", defaults.emit_timeout),
        allow_partial_data=bool(
            raw.get("allow_partial_data", defaults.allow_partial_data)
        ),
    )


def _build_market_data(raw: dict[str, Any]) -> MarketDataConfig:
    pyth_raw = raw.get("pyth", {})
    uni_raw = raw.get("uniswap", {})
    return MarketDataConfig(
        provider=raw.get("provider", "live"),
        replay_path=raw.get("replay_path", ""),
        pyth=PythConfig(
            hermes_url=pyth_raw.get("hermes_url", PythConfig.hermes_url),
            feeds=dict(pyth_raw.get("feeds", {})),
        ),
        uniswap=UniswapConfig(
            graph_url=uni_raw.get("graph_url", UniswapConfig.graph_url),
            api_key=uni_raw.get("api_key", ""),
            pools=dict(uni_raw.get("pools", {})),
            timeout=_int(uni_raw, "timeout", 15),
        ),
    )


def _build_positions(raw: dict[str, Any]) -> PositionsConfig:
    origins_raw = raw.get("origins", {})
    aliases = dict(DEFAULT_TOKEN_ALIASES)
    aliases.update(
        {k.lower(): v for k, v in origins_raw.get("token_aliases", {}).items()}
    )
    return PositionsConfig(
        source=raw.get("source", "origins"),
        path=raw.get("path", ""),
        origins=OriginsConfig(
            count_selector=origins_raw.get("count_selector", ""),
            position_selector=origins_raw.get("position_selector", ""),
            value_decimals=_int(origins_raw, "value_decimals", 18),
            token_aliases=aliases,
        ),
    )


def _build_notifications(raw: dict[str, Any]) -> NotificationsConfig:
    tg = raw.get("telegram", {})
    em = raw.get("email", {})
    return NotificationsConfig(
        telegram=TelegramConfig(
            enabled=bool(tg.get("enabled", False)),
            alert_bot_token=tg.get("alert_bot_token", ""),
            log_bot_token=tg.get("log_bot_token", ""),
            chat_id=str(tg.get("chat_id", "")),
        ),
        email=EmailConfig(
            enabled=bool(em.get("enabled", False)),
            alert_email=em.get("alert_email", ""),
            smtp_server=em.get("smtp_server", "smtp.gmail.com"),
            smtp_port=_int(em, "smtp_port", 587),
            sender_email=em.get("sender_email", ""),
            sender_password=em.get("sender_password", ""),
        ),
    )


def build_config(raw: dict[str, Any]) -> AppConfig:
    """Build and validate an AppConfig from an already-parsed mapping."""
    cfg = AppConfig(
        chain=_build_chain(raw),
        analyzer=_build_analyzer(raw, raw.get("analyzer", {})),
        engine=_build_engine(raw, raw.get("engine", {})),
        scheduler=_build_scheduler(raw, raw.get("scheduler", {})),
        market_data=_build_market_data(raw.get("market_data", {})),
        positions=_build_positions(raw.get("positions", {})),
        notifications=_build_notifications(raw.get("notifications", {})),
    )
    _validate(cfg)
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load and validate application configuration from YAML + .env.

    Args:
        config_path: Path to config.yaml. Defaults to ``config.yaml`` in the
            current working directory.
    """
    load_dotenv()

    config_path = Path(config_path or "config.yaml")

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping")

    cfg = build_config(_interpolate_env(raw))
    logger.info("Configuration loaded from %s", config_path)
    return cfg


def _validate(cfg: AppConfig) -> None:
    """Raise ConfigError on invalid configuration."""
    chain = cfg.chain
    if not chain.rpc_url:
        raise ConfigError("RPC URL cannot be empty")
    if not is_valid_address(chain.origins_contract_address):
        raise ConfigError(
            f"Invalid contract address format: '{chain.origins_contract_address}'"
        )

    eng = cfg.engine
    if eng.position_threshold < 0:
        raise ConfigError("Position threshold must be non-negative")
    if eng.max_positions < 0:
        raise ConfigError("Max positions must be non-negative")
    if eng.w_risk < 0 or eng.w_liquidity < 0:
        raise ConfigError("Engine weights must be non-negative")
    if eng.w_risk + eng.w_liquidity != 1:
        raise ConfigError(
            f"Engine weights must sum to 1 (got {eng.w_risk + eng.w_liquidity})"
        )
    for name in ("critical_risk_cutoff", "rebalance_risk_cutoff", "open_liquidity_floor"):
        value = getattr(eng, name)
        if not 0 <= value <= 1:
            raise ConfigError(f"'{name}' must lie in [0, 1] (got {value})")
    if eng.rebalance_risk_cutoff > eng.critical_risk_cutoff:
        raise ConfigError("rebalance_risk_cutoff must not exceed critical_risk_cutoff")

    ana = cfg.analyzer
    if ana.liquidation_ratio < 1:
        raise ConfigError("liquidation_ratio must be at least 1")
    if ana.safe_ratio <= ana.liquidation_ratio:
        raise ConfigError("safe_ratio must be greater than liquidation_ratio")
    if ana.depth_epsilon <= 0:
        raise ConfigError("depth_epsilon must be positive")
    if ana.max_staleness <= timedelta(0):
        raise ConfigError("max_staleness must be positive")

    sched = cfg.scheduler
    if sched.recommendation_interval <= timedelta(0):
        raise ConfigError("recommendation_interval must be positive")
    for name in ("fetch_timeout", "analyze_timeout", "rank_timeout", "emit_timeout"):
        if getattr(sched, name) <= 0:
            raise ConfigError(f"'{name}' must be positive")

    md = cfg.market_data
    if md.provider not in ("live", "replay"):
        raise ConfigError(f"Unknown market data provider '{md.provider}'")
    if md.provider == "replay" and not md.replay_path:
        raise ConfigError("Replay market data requires 'replay_path'")

    pos = cfg.positions
    if pos.source not in ("origins", "file"):
        raise ConfigError(f"Unknown position source '{pos.source}'")
    if pos.source == "file" and not pos.path:
        raise ConfigError("File position source requires 'path'")
    if pos.source == "origins":
        for name in ("count_selector", "position_selector"):
            selector = getattr(pos.origins, name)
            if not re.fullmatch(r"0x[0-9a-fA-F]{8}", selector):
                raise ConfigError(
                    f"Origins '{name}' must be a 4-byte hex selector (got '{selector}')"
                )
