"""Exception hierarchy for the position recommender."""
from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import FailureKind, MarketDataSnapshot, SchedulerState


class RecommenderError(Exception):
    """Base class for all recommender errors."""


class ConfigError(RecommenderError, ValueError):
    """Invalid configuration. Fatal at startup only."""


# ---------------------------------------------------------------------------
# Per-position analysis errors
# ---------------------------------------------------------------------------


class AnalysisError(RecommenderError):
    """A single position could not be scored."""

    def __init__(self, position_id: str, message: str) -> None:
        super().__init__(message)
        self.position_id = position_id


class MissingPriceData(AnalysisError):
    def __init__(self, position_id: str, asset_id: str) -> None:
        super().__init__(
            position_id, f"No price for asset '{asset_id}' in snapshot"
        )
        self.asset_id = asset_id


class StaleInput(AnalysisError):
    def __init__(
        self, position_id: str, staleness: timedelta, max_staleness: timedelta
    ) -> None:
        super().__init__(
            position_id,
            f"Position state is {staleness.total_seconds():.0f}s old "
            f"(max {max_staleness.total_seconds():.0f}s)",
        )
        self.staleness = staleness
        self.max_staleness = max_staleness


# ---------------------------------------------------------------------------
# Collaborator errors
# ---------------------------------------------------------------------------


class FetchError(RecommenderError):
    """Market data could not be fetched."""


class NetworkError(FetchError):
    pass


class FetchTimeout(FetchError):
    pass


class PartialData(FetchError):
    """Some asset ids could not be resolved.

    Carries the snapshot built from whatever did resolve so the caller can
    decide whether to proceed with it.
    """

    def __init__(self, snapshot: MarketDataSnapshot, missing: frozenset[str]) -> None:
        super().__init__(
            f"Unresolved asset ids: {', '.join(sorted(missing))}"
        )
        self.snapshot = snapshot
        self.missing = missing


class StoreError(RecommenderError):
    """Positions could not be listed."""


class CycleError(RecommenderError):
    """A scheduler cycle was aborted."""

    def __init__(
        self,
        kind: FailureKind,
        stage: SchedulerState,
        message: str,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.stage = stage
