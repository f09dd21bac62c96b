"""Replay market data from fixture frames — deterministic, no network."""
from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Callable, Sequence, Set
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml

from ..errors import ConfigError, PartialData
from ..models import MarketDataSnapshot, parse_timestamp, utc_now
from ..numeric import to_decimal

logger = logging.getLogger(__name__)

# Placeholder capture time for undated fixture frames; replaced on fetch.
_UNDATED = datetime.min


def parse_frame(raw: dict[str, Any]) -> MarketDataSnapshot:
    """Build a snapshot from a fixture mapping.

    ``captured_at`` is optional; frames without one are stamped with the
    provider's clock each time they are served.
    """
    captured_at = raw.get("captured_at")
    return MarketDataSnapshot(
        captured_at=parse_timestamp(captured_at) if captured_at is not None else _UNDATED,
        prices={k: to_decimal(v) for k, v in (raw.get("prices") or {}).items()},
        depths={k: to_decimal(v) for k, v in (raw.get("depths") or {}).items()},
    )


class ReplayMarketDataProvider:
    """Serve pre-recorded snapshots in order, repeating the last one."""

    def __init__(
        self,
        frames: Sequence[MarketDataSnapshot],
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if not frames:
            raise ValueError("Replay provider needs at least one frame")
        self._frames = tuple(frames)
        self._clock = clock
        self._cursor = 0

    @classmethod
    def from_file(
        cls, path: str | Path, clock: Callable[[], datetime] = utc_now
    ) -> ReplayMarketDataProvider:
        """Load frames from a YAML file with a top-level ``frames`` list."""
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
        frames = [parse_frame(frame) for frame in raw.get("frames", [])]
        logger.info("Loaded %d replay frames from %s", len(frames), path)
        return cls(frames, clock)

    async def fetch(self, asset_ids: Set[str]) -> MarketDataSnapshot:
        frame = self._frames[min(self._cursor, len(self._frames) - 1)]
        self._cursor += 1
        await asyncio.sleep(0)

        if frame.captured_at is _UNDATED:
            frame = dataclasses.replace(frame, captured_at=self._clock())

        snapshot = frame.restricted_to(asset_ids)
        missing = frozenset(asset_ids) - snapshot.prices.keys()
        if missing:
            raise PartialData(snapshot, missing)
        return snapshot


def load_replay_provider(path: str | Path) -> ReplayMarketDataProvider:
    """Load a replay provider at startup, mapping file problems onto ``ConfigError``."""
    try:
        return ReplayMarketDataProvider.from_file(path)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot load replay frames from {path}: {e}") from e
