"""Plain-text rendering of cycle results and failures for notifiers/console."""
from __future__ import annotations

from datetime import datetime

from ..models import Action, CycleFailure, CycleResult, ExclusionReason, PortfolioMetrics

_ACTION_BADGES = {
    Action.CLOSE: "🚨 CLOSE",
    Action.REBALANCE: "⚠️ REBALANCE",
    Action.OPEN: "➕ OPEN",
    Action.HOLD: "✅ HOLD",
}

_EXCLUSION_LABELS = {
    ExclusionReason.MISSING_PRICE_DATA: "no price",
    ExclusionReason.STALE_INPUT: "stale",
    ExclusionReason.BELOW_THRESHOLD: "below threshold",
}


def _ts(dt: datetime) -> str:
    return dt.strftime("%Y-%m-%d %H:%M:%S")


def format_position_id(position_id: str) -> str:
    if len(position_id) > 16:
        return f"{position_id[:10]}...{position_id[-6:]}"
    return position_id


def action_badge(action: Action) -> str:
    return _ACTION_BADGES[action]


def format_metrics(metrics: PortfolioMetrics) -> list[str]:
    lines = [
        f"Portfolio: ${metrics.total_notional:,.2f} · "
        f"Concentration: {metrics.concentration_risk:.2%}"
    ]
    for asset, risk in metrics.risk_by_asset.items():
        liquidity = metrics.liquidity_by_asset[asset]
        lines.append(f"  {asset or '?'}: risk {risk:.4f} · liquidity {liquidity:.4f}")
    return lines


def format_result(result: CycleResult) -> str:
    """Render a completed cycle as a multi-line report."""
    lines = [
        f"📋 Position Recommendations · cycle #{result.cycle_id}",
        "",
    ]

    if result.recommendations:
        for rec in result.recommendations:
            lines.append(
                f"{rec.rank}. {action_badge(rec.action)} · "
                f"{format_position_id(rec.position_id)}\n"
                f"   Score: {rec.composite_score:.4f} · "
                f"Risk: {rec.risk_score:.4f} · Liquidity: {rec.liquidity_score:.4f}"
            )
            if rec.reasoning:
                lines.append(f"   {rec.reasoning}")
    else:
        lines.append("No positions require attention.")

    if result.metrics is not None and result.recommendations:
        lines.append("")
        lines.extend(format_metrics(result.metrics))

    if result.exclusions:
        lines.append("")
        lines.append(f"Excluded ({len(result.exclusions)}):")
        for exc in result.exclusions:
            lines.append(
                f"  - {format_position_id(exc.position_id)}: "
                f"{_EXCLUSION_LABELS[exc.reason]}"
            )

    lines.extend(
        [
            "",
            f"Evaluated {result.evaluated} positions · market data {_ts(result.snapshot_at)} UTC",
            f"{_ts(result.finished_at)} UTC",
        ]
    )
    return "\n".join(lines)


def format_failure(failure: CycleFailure) -> str:
    return (
        f"❌ Cycle #{failure.cycle_id} failed during {failure.stage.value}\n"
        f"\n"
        f"Kind: {failure.kind.value}\n"
        f"{failure.message}\n"
        f"\n"
        f"Previous recommendations remain in effect.\n"
        f"{_ts(failure.occurred_at)} UTC"
    )


def failure_subject(failure: CycleFailure) -> str:
    return f"❌ Recommendation cycle failed ({failure.kind.value})"
