"""Data models — all frozen (immutable)."""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any


class Action(str, Enum):
    REBALANCE = "Rebalance"
    CLOSE = "Close"
    HOLD = "Hold"
    OPEN = "Open"


class ExclusionReason(str, Enum):
    MISSING_PRICE_DATA = "missing_price_data"
    STALE_INPUT = "stale_input"
    BELOW_THRESHOLD = "below_threshold"


class SchedulerState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    ANALYZING = "analyzing"
    RANKING = "ranking"
    EMITTING = "emitting"
    FAILED = "failed"


class FailureKind(str, Enum):
    FETCH = "fetch"
    STORE = "store"
    TIMEOUT = "timeout"
    INTERNAL = "internal"


@dataclass(frozen=True)
class Position:
    """A collateral/debt pairing held on-chain."""

    id: str
    asset_id: str
    collateral_value: Decimal
    debt_value: Decimal
    liquidity_depth: Decimal
    last_updated: datetime

    def __post_init__(self) -> None:
        for name in ("collateral_value", "debt_value", "liquidity_depth"):
            if getattr(self, name) < 0:
                raise ValueError(f"Position {self.id}: {name} must be non-negative")

    @property
    def is_pure_supply(self) -> bool:
        return self.debt_value == 0


@dataclass(frozen=True)
class MarketDataSnapshot:
    """Prices and liquidity depths captured once per cycle.

    The mappings are copied on construction and exposed read-only, so a
    snapshot can be shared across concurrent analyzer calls.
    """

    captured_at: datetime
    prices: Mapping[str, Decimal] = field(default_factory=dict)
    depths: Mapping[str, Decimal] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for asset_id, price in self.prices.items():
            if price < 0:
                raise ValueError(f"Negative price for asset '{asset_id}'")
        for asset_id, depth in self.depths.items():
            if depth < 0:
                raise ValueError(f"Negative depth for asset '{asset_id}'")
        object.__setattr__(self, "prices", MappingProxyType(dict(self.prices)))
        object.__setattr__(self, "depths", MappingProxyType(dict(self.depths)))

    def price_of(self, asset_id: str) -> Decimal | None:
        return self.prices.get(asset_id)

    def depth_of(self, asset_id: str) -> Decimal | None:
        return self.depths.get(asset_id)

    def restricted_to(self, asset_ids: Iterable[str]) -> MarketDataSnapshot:
        """Return a new snapshot holding only the given assets."""
        wanted = set(asset_ids)
        return MarketDataSnapshot(
            captured_at=self.captured_at,
            prices={k: v for k, v in self.prices.items() if k in wanted},
            depths={k: v for k, v in self.depths.items() if k in wanted},
        )


@dataclass(frozen=True)
class Score:
    """Per-position scoring output.

    ``composite_score`` is left unset by the analyzer and filled in by the
    recommendation engine, which owns the weighting.
    """

    position_id: str
    risk_score: Decimal
    liquidity_score: Decimal
    staleness: timedelta
    notional: Decimal
    asset_id: str = ""
    health_ratio: Decimal | None = None
    composite_score: Decimal | None = None


@dataclass(frozen=True)
class Recommendation:
    position_id: str
    action: Action
    composite_score: Decimal
    rank: int
    risk_score: Decimal
    liquidity_score: Decimal
    reasoning: str = ""


@dataclass(frozen=True)
class PortfolioMetrics:
    """Aggregate view of the positions ranked in one cycle.

    Per-asset maps hold the mean risk and liquidity score of that asset's
    positions. ``concentration_risk`` is the largest position's share of
    the total notional.
    """

    total_notional: Decimal
    risk_by_asset: Mapping[str, Decimal] = field(default_factory=dict)
    liquidity_by_asset: Mapping[str, Decimal] = field(default_factory=dict)
    concentration_risk: Decimal = Decimal(0)

    def __post_init__(self) -> None:
        object.__setattr__(self, "risk_by_asset", MappingProxyType(dict(self.risk_by_asset)))
        object.__setattr__(
            self, "liquidity_by_asset", MappingProxyType(dict(self.liquidity_by_asset))
        )


@dataclass(frozen=True)
class Exclusion:
    """A position left out of ranking, and why."""

    position_id: str
    reason: ExclusionReason
    detail: str = ""


@dataclass(frozen=True)
class CycleResult:
    """Complete output of one recommendation cycle."""

    cycle_id: int
    started_at: datetime
    finished_at: datetime
    snapshot_at: datetime
    evaluated: int
    recommendations: tuple[Recommendation, ...] = ()
    exclusions: tuple[Exclusion, ...] = ()
    metrics: PortfolioMetrics | None = None


@dataclass(frozen=True)
class CycleFailure:
    cycle_id: int
    kind: FailureKind
    stage: SchedulerState
    message: str
    occurred_at: datetime


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> datetime:
    """Coerce a YAML/ISO-8601/unix timestamp into an aware UTC datetime.

    Naive datetimes are taken to be UTC.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    elif isinstance(value, str):
        dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    else:
        raise ValueError(f"Cannot interpret {value!r} as a timestamp")
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
