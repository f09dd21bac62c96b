"""Per-position risk and liquidity scoring."""
from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import timedelta
from decimal import Decimal, localcontext

from ..config import AnalyzerConfig
from ..errors import AnalysisError, MissingPriceData, StaleInput
from ..models import (
    Exclusion,
    ExclusionReason,
    MarketDataSnapshot,
    Position,
    Score,
)
from ..numeric import DECIMAL_CONTEXT, ONE, ZERO, clamp, quantize_score

logger = logging.getLogger(__name__)


class PositionAnalyzer:
    """Score one position against one market snapshot.

    ``score`` is a pure function of its arguments and the analyzer's
    configuration. The snapshot's ``captured_at`` is used as the current
    time, so the same inputs always give the same score.

    Risk curve: the health ratio ``collateral * price / debt`` is mapped
    linearly from ``liquidation_ratio`` (risk 1) to ``safe_ratio`` (risk 0)
    and clamped to [0, 1]. A ratio at or below 1 is always risk 1.
    Pure-supply positions score exactly 0.

    Liquidity: ``1 - clamp(exit_size / max(depth, epsilon))`` where
    ``exit_size`` is the collateral's notional and ``depth`` comes from the
    snapshot, falling back to the position's own reported depth.
    """

    def __init__(self, config: AnalyzerConfig) -> None:
        self._config = config

    def staleness(self, position: Position, snapshot: MarketDataSnapshot) -> timedelta:
        return max(snapshot.captured_at - position.last_updated, timedelta(0))

    def health_ratio(self, position: Position, price: Decimal) -> Decimal | None:
        if position.is_pure_supply:
            return None
        with localcontext(DECIMAL_CONTEXT):
            return position.collateral_value * price / position.debt_value

    def risk_score(self, health_ratio: Decimal | None) -> Decimal:
        if health_ratio is None:
            return ZERO
        if health_ratio <= ONE:
            return ONE
        cfg = self._config
        with localcontext(DECIMAL_CONTEXT):
            span = cfg.safe_ratio - cfg.liquidation_ratio
            return clamp((cfg.safe_ratio - health_ratio) / span)

    def liquidity_score(self, exit_size: Decimal, depth: Decimal) -> Decimal:
        with localcontext(DECIMAL_CONTEXT):
            usage = clamp(exit_size / max(depth, self._config.depth_epsilon))
            return ONE - usage

    def score(self, position: Position, snapshot: MarketDataSnapshot) -> Score:
        """Score a position.

        Raises:
            MissingPriceData: the snapshot has no price for the position's asset.
            StaleInput: the position state is older than ``max_staleness``.
        """
        price = snapshot.price_of(position.asset_id)
        if price is None:
            raise MissingPriceData(position.id, position.asset_id)

        staleness = self.staleness(position, snapshot)
        if staleness > self._config.max_staleness:
            raise StaleInput(position.id, staleness, self._config.max_staleness)

        depth = snapshot.depth_of(position.asset_id)
        if depth is None:
            depth = position.liquidity_depth

        with localcontext(DECIMAL_CONTEXT):
            notional = position.collateral_value * price

        ratio = self.health_ratio(position, price)

        return Score(
            position_id=position.id,
            risk_score=quantize_score(self.risk_score(ratio)),
            liquidity_score=quantize_score(self.liquidity_score(notional, depth)),
            staleness=staleness,
            notional=notional,
            asset_id=position.asset_id,
            health_ratio=ratio,
        )

    def try_score(
        self, position: Position, snapshot: MarketDataSnapshot
    ) -> Score | Exclusion:
        """Score a position, turning an AnalysisError into an Exclusion record."""
        try:
            return self.score(position, snapshot)
        except AnalysisError as e:
            logger.warning("Excluding position %s: %s", e.position_id, e)
            return to_exclusion(e)

    def score_many(
        self, positions: Iterable[Position], snapshot: MarketDataSnapshot
    ) -> tuple[list[Score], list[Exclusion]]:
        """Score a batch. One bad position never blocks the rest."""
        return split_outcomes(self.try_score(p, snapshot) for p in positions)


def to_exclusion(error: AnalysisError) -> Exclusion:
    if isinstance(error, MissingPriceData):
        reason = ExclusionReason.MISSING_PRICE_DATA
    elif isinstance(error, StaleInput):
        reason = ExclusionReason.STALE_INPUT
    else:
        raise TypeError(f"Unhandled analysis error {type(error).__name__}")
    return Exclusion(position_id=error.position_id, reason=reason, detail=str(error))


def split_outcomes(
    outcomes: Iterable[Score | Exclusion],
) -> tuple[list[Score], list[Exclusion]]:
    scores: list[Score] = []
    exclusions: list[Exclusion] = []
    for outcome in outcomes:
        if isinstance(outcome, Score):
            scores.append(outcome)
        else:
            exclusions.append(outcome)
    exclusions.sort(key=lambda e: e.position_id)
    return scores, exclusions
