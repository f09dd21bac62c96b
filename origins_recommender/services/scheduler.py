"""Recurring recommendation cycles with at most one cycle in flight."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime
from typing import TypeVar

from ..config import SchedulerConfig
from ..errors import CycleError, FetchError, FetchTimeout, PartialData, StoreError
from ..interfaces.market_data import MarketDataProvider
from ..interfaces.notifier import Notifier
from ..interfaces.position_store import PositionStore
from ..models import (
    Action,
    CycleFailure,
    CycleResult,
    FailureKind,
    MarketDataSnapshot,
    Position,
    SchedulerState,
    utc_now,
)
from . import report
from .analyzer import PositionAnalyzer, split_outcomes
from .engine import RecommendationEngine

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Scheduler:
    """Drive fetch → analyze → rank → emit cycles.

    State machine::

        IDLE → FETCHING → ANALYZING → RANKING → EMITTING → IDLE
                  └──────────┴──────────┴──→ FAILED → IDLE

    A tick that arrives while a cycle is in flight is dropped, not queued.
    Each cycle passes its data explicitly from stage to stage; the only
    state kept between cycles is owned here (transition state, last
    result/failure, counters).
    """

    def __init__(
        self,
        store: PositionStore,
        provider: MarketDataProvider,
        analyzer: PositionAnalyzer,
        engine: RecommendationEngine,
        config: SchedulerConfig,
        notifiers: Sequence[Notifier] = (),
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._provider = provider
        self._analyzer = analyzer
        self._engine = engine
        self._config = config
        self._notifiers = list(notifiers)
        self._clock = clock

        self._state = SchedulerState.IDLE
        self._cycle_counter = 0
        self._inflight: asyncio.Task[CycleResult | None] | None = None

        self.last_result: CycleResult | None = None
        self.last_failure: CycleFailure | None = None
        self.dropped_ticks = 0

    @property
    def state(self) -> SchedulerState:
        return self._state

    def _transition(self, new_state: SchedulerState) -> None:
        logger.debug(
            "Cycle #%d: %s -> %s", self._cycle_counter, self._state.value, new_state.value
        )
        self._state = new_state

    # ------------------------------------------------------------------
    # Triggering
    # ------------------------------------------------------------------

    def trigger(self) -> asyncio.Task[CycleResult | None] | None:
        """Start a cycle if idle. Returns the cycle task, or None if the tick was dropped."""
        if self._state is not SchedulerState.IDLE:
            self.dropped_ticks += 1
            logger.warning(
                "Tick dropped: cycle #%d still %s", self._cycle_counter, self._state.value
            )
            return None

        self._cycle_counter += 1
        cycle_id = self._cycle_counter
        self._transition(SchedulerState.FETCHING)
        self._inflight = asyncio.create_task(
            self._run_cycle(cycle_id), name=f"recommendation-cycle-{cycle_id}"
        )
        return self._inflight

    async def run_once(self) -> CycleResult | None:
        """Run a single cycle. Returns None if it was dropped or failed."""
        task = self.trigger()
        if task is None:
            return None
        return await task

    async def run(self, stop: asyncio.Event | None = None) -> None:
        """Fire a tick every ``recommendation_interval`` until ``stop`` is set."""
        stop = stop or asyncio.Event()
        interval = self._config.recommendation_interval.total_seconds()
        loop = asyncio.get_running_loop()
        next_tick = loop.time()

        logger.info("Starting recommendation scheduler (every %.0fs)", interval)
        try:
            while not stop.is_set():
                self.trigger()
                next_tick += interval
                try:
                    await asyncio.wait_for(
                        stop.wait(), timeout=max(0.0, next_tick - loop.time())
                    )
                except asyncio.TimeoutError:
                    pass
        finally:
            await self.shutdown()
            logger.info("Recommendation scheduler stopped")

    async def shutdown(self) -> None:
        """Abandon the in-flight cycle, if any. Nothing partial is emitted."""
        task = self._inflight
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    async def _run_cycle(self, cycle_id: int) -> CycleResult | None:
        try:
            return await self._execute(cycle_id)
        except CycleError as e:
            await self._fail(cycle_id, e)
            return None
        except asyncio.CancelledError:
            logger.warning(
                "Cycle #%d cancelled during %s; nothing emitted", cycle_id, self._state.value
            )
            raise
        except Exception as e:
            logger.exception("Unexpected error in cycle #%d", cycle_id)
            await self._fail(
                cycle_id, CycleError(FailureKind.INTERNAL, self._state, repr(e))
            )
            return None
        finally:
            self._inflight = None
            if self._state is not SchedulerState.IDLE:
                self._transition(SchedulerState.IDLE)

    async def _bounded(self, awaitable: Awaitable[T], timeout: float) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout)
        except asyncio.TimeoutError as e:
            raise CycleError(
                FailureKind.TIMEOUT,
                self._state,
                f"Stage {self._state.value} exceeded {timeout:.1f}s",
            ) from e

    async def _fetch(self) -> tuple[list[Position], MarketDataSnapshot]:
        stage = SchedulerState.FETCHING
        try:
            positions = await self._store.list()
        except StoreError as e:
            raise CycleError(FailureKind.STORE, stage, str(e)) from e

        asset_ids = frozenset(p.asset_id for p in positions)
        try:
            snapshot = await self._provider.fetch(asset_ids)
        except PartialData as e:
            if not self._config.allow_partial_data:
                raise CycleError(FailureKind.FETCH, stage, str(e)) from e
            logger.warning("Proceeding with partial market data: %s", e)
            snapshot = e.snapshot
        except FetchTimeout as e:
            raise CycleError(FailureKind.TIMEOUT, stage, str(e)) from e
        except FetchError as e:
            raise CycleError(FailureKind.FETCH, stage, str(e)) from e

        return positions, snapshot

    async def _execute(self, cycle_id: int) -> CycleResult:
        started_at = self._clock()
        cfg = self._config

        positions, snapshot = await self._bounded(self._fetch(), cfg.fetch_timeout)

        self._transition(SchedulerState.ANALYZING)
        outcomes = await self._bounded(
            asyncio.gather(
                *(
                    asyncio.to_thread(self._analyzer.try_score, p, snapshot)
                    for p in positions
                )
            ),
            cfg.analyze_timeout,
        )
        scores, analysis_exclusions = split_outcomes(outcomes)

        self._transition(SchedulerState.RANKING)
        eligible, below_threshold = self._engine.partition(scores)
        recommendations = await self._bounded(
            asyncio.to_thread(self._engine.rank, eligible), cfg.rank_timeout
        )
        metrics = self._engine.metrics(eligible)

        self._transition(SchedulerState.EMITTING)
        exclusions = sorted(
            [*analysis_exclusions, *below_threshold], key=lambda e: e.position_id
        )
        result = CycleResult(
            cycle_id=cycle_id,
            started_at=started_at,
            finished_at=self._clock(),
            snapshot_at=snapshot.captured_at,
            evaluated=len(positions),
            recommendations=tuple(recommendations),
            exclusions=tuple(exclusions),
            metrics=metrics,
        )
        self.last_result = result
        logger.info(
            "Cycle #%d complete: %d positions, %d recommendations, %d excluded",
            cycle_id, len(positions), len(recommendations), len(exclusions),
        )
        await self._emit(result)

        self._transition(SchedulerState.IDLE)
        return result

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    async def _notify(self, method: str, send: Awaitable[object]) -> None:
        timeout = self._config.emit_timeout
        try:
            await asyncio.wait_for(send, timeout)
        except asyncio.TimeoutError:
            logger.error("Notifier %s timed out after %.1fs", method, timeout)
        except Exception as e:
            logger.error("Notifier %s failed: %s", method, e)

    async def _emit(self, result: CycleResult) -> None:
        message = report.format_result(result)
        silent = not any(r.action is Action.CLOSE for r in result.recommendations)
        for notifier in self._notifiers:
            await self._notify("send_report", notifier.send_report(message, silent=silent))

    async def _fail(self, cycle_id: int, error: CycleError) -> None:
        self._transition(SchedulerState.FAILED)
        failure = CycleFailure(
            cycle_id=cycle_id,
            kind=error.kind,
            stage=error.stage,
            message=str(error),
            occurred_at=self._clock(),
        )
        self.last_failure = failure
        logger.error(
            "Cycle #%d failed during %s (%s): %s",
            cycle_id, failure.stage.value, failure.kind.value, failure.message,
        )

        message = report.format_failure(failure)
        subject = report.failure_subject(failure)
        for notifier in self._notifiers:
            await self._notify("send_alert", notifier.send_alert(message, subject=subject))

        self._transition(SchedulerState.IDLE)
