"""Position store protocol — supplies positions to evaluate."""
from typing import Protocol

from ..models import Position


class PositionStore(Protocol):
    """Abstract interface for listing current positions. Raises ``StoreError``."""

    async def list(self) -> list[Position]: ...
