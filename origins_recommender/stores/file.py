"""YAML file position store — re-read on every cycle."""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

import yaml

from ..errors import StoreError
from ..models import Position, parse_timestamp
from ..numeric import to_decimal

logger = logging.getLogger(__name__)


def parse_position(raw: dict[str, Any]) -> Position:
    """Build a Position from a YAML mapping. Raises ValueError/KeyError on bad input."""
    return Position(
        id=str(raw["id"]),
        asset_id=str(raw["asset_id"]),
        collateral_value=to_decimal(raw["collateral_value"]),
        debt_value=to_decimal(raw.get("debt_value", 0)),
        liquidity_depth=to_decimal(raw.get("liquidity_depth", 0)),
        last_updated=parse_timestamp(raw["last_updated"]),
    )


class FilePositionStore:
    """List positions from a YAML file with a top-level ``positions`` list."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    def _read(self) -> list[Position]:
        with open(self._path) as f:
            raw = yaml.safe_load(f) or {}
        return [parse_position(entry) for entry in raw.get("positions", [])]

    async def list(self) -> list[Position]:
        try:
            positions = await asyncio.to_thread(self._read)
        except (OSError, yaml.YAMLError, KeyError, TypeError, ValueError) as e:
            logger.error("Error reading positions from %s: %s", self._path, e)
            raise StoreError(f"Failed to read positions from {self._path}: {e}") from e

        ids = [p.id for p in positions]
        if len(set(ids)) != len(ids):
            raise StoreError(f"Duplicate position ids in {self._path}")

        logger.info("Loaded %d positions from %s", len(positions), self._path)
        return positions
