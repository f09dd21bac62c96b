"""Composite scoring, action assignment, ranking and truncation."""
from __future__ import annotations

import dataclasses
import logging
from collections import defaultdict
from collections.abc import Callable, Iterable, Sequence
from decimal import Decimal, localcontext

from ..config import EngineConfig
from ..models import (
    Action,
    Exclusion,
    ExclusionReason,
    PortfolioMetrics,
    Recommendation,
    Score,
)
from ..numeric import DECIMAL_CONTEXT, ONE, ZERO, quantize_score

logger = logging.getLogger(__name__)

ActionRule = tuple[Callable[[Score], bool], Action, Callable[[Score], str]]


def build_action_rules(config: EngineConfig) -> tuple[ActionRule, ...]:
    """Ordered (predicate, action, reasoning) policy. First match wins."""
    critical = config.critical_risk_cutoff
    rebalance = config.rebalance_risk_cutoff
    open_floor = config.open_liquidity_floor
    return (
        (
            lambda s: s.risk_score >= critical,
            Action.CLOSE,
            lambda s: (
                f"Risk {s.risk_score:.4f} at or above critical cutoff {critical}, "
                "close before liquidation"
            ),
        ),
        (
            lambda s: s.risk_score >= rebalance,
            Action.REBALANCE,
            lambda s: (
                f"Risk {s.risk_score:.4f} at or above rebalance cutoff {rebalance}, "
                "add collateral or repay debt"
            ),
        ),
        (
            lambda s: s.liquidity_score <= open_floor and s.risk_score < rebalance,
            Action.OPEN,
            lambda s: (
                f"Low risk ({s.risk_score:.4f}) and liquidity {s.liquidity_score:.4f} "
                f"at or below {open_floor}, room to add"
            ),
        ),
        (
            lambda s: True,
            Action.HOLD,
            lambda s: "Healthy position, maintain current allocation",
        ),
    )


def ranking_key(score: Score) -> tuple[Decimal, str]:
    """Descending composite, then ascending position id."""
    if score.composite_score is None:
        raise ValueError(f"Position {score.position_id} has no composite score")
    return (-score.composite_score, score.position_id)


class RecommendationEngine:
    """Turn a cycle's scores into a ranked, bounded recommendation list.

    ``rank`` never mutates its input and is independent of input order.
    """

    def __init__(self, config: EngineConfig) -> None:
        self._config = config
        self._rules = build_action_rules(config)

    @property
    def config(self) -> EngineConfig:
        return self._config

    def composite(self, score: Score) -> Decimal:
        """``w_risk * risk + w_liquidity * (1 - liquidity)``; higher needs more attention."""
        cfg = self._config
        with localcontext(DECIMAL_CONTEXT):
            value = (
                cfg.w_risk * score.risk_score
                + cfg.w_liquidity * (ONE - score.liquidity_score)
            )
        return quantize_score(value)

    def decide(self, score: Score) -> tuple[Action, str]:
        """Return the first matching action and its reasoning."""
        for predicate, action, reasoning in self._rules:
            if predicate(score):
                return action, reasoning(score)
        raise ValueError("Action rules must end with a catch-all")

    def assign_action(self, score: Score) -> Action:
        return self.decide(score)[0]

    def partition(
        self, scores: Iterable[Score]
    ) -> tuple[list[Score], list[Exclusion]]:
        """Split scores into eligible ones and below-threshold exclusions."""
        threshold = self._config.position_threshold
        eligible: list[Score] = []
        excluded: list[Exclusion] = []
        for score in scores:
            if score.notional < threshold:
                excluded.append(
                    Exclusion(
                        position_id=score.position_id,
                        reason=ExclusionReason.BELOW_THRESHOLD,
                        detail=f"Notional {score.notional} below threshold {threshold}",
                    )
                )
            else:
                eligible.append(score)
        excluded.sort(key=lambda e: e.position_id)
        return eligible, excluded

    def rank(self, scores: Sequence[Score]) -> list[Recommendation]:
        eligible, _ = self.partition(scores)
        composed = [
            dataclasses.replace(s, composite_score=self.composite(s)) for s in eligible
        ]
        composed.sort(key=ranking_key)

        kept = composed[: self._config.max_positions]
        recommendations = []
        for i, s in enumerate(kept, start=1):
            action, reasoning = self.decide(s)
            recommendations.append(
                Recommendation(
                    position_id=s.position_id,
                    action=action,
                    composite_score=s.composite_score,
                    rank=i,
                    risk_score=s.risk_score,
                    liquidity_score=s.liquidity_score,
                    reasoning=reasoning,
                )
            )

        logger.debug(
            "Ranked %d eligible of %d scores, kept %d",
            len(composed), len(scores), len(recommendations),
        )
        return recommendations

    def metrics(self, scores: Sequence[Score]) -> PortfolioMetrics:
        """Summarize eligible scores: total notional, per-asset means, concentration."""
        by_asset: dict[str, list[Score]] = defaultdict(list)
        for score in scores:
            by_asset[score.asset_id].append(score)

        with localcontext(DECIMAL_CONTEXT):
            total = sum((s.notional for s in scores), ZERO)
            risk_by_asset = {
                asset: quantize_score(sum((s.risk_score for s in group), ZERO) / len(group))
                for asset, group in sorted(by_asset.items())
            }
            liquidity_by_asset = {
                asset: quantize_score(
                    sum((s.liquidity_score for s in group), ZERO) / len(group)
                )
                for asset, group in sorted(by_asset.items())
            }
            if len(scores) == 1:
                concentration = ONE
            elif total > 0:
                concentration = quantize_score(max(s.notional for s in scores) / total)
            else:
                concentration = ZERO

        return PortfolioMetrics(
            total_notional=total,
            risk_by_asset=risk_by_asset,
            liquidity_by_asset=liquidity_by_asset,
            concentration_risk=concentration,
        )
