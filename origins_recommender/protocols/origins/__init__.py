"""Origins protocol support."""
from .adapter import OriginsPositionStore

__all__ = ["OriginsPositionStore"]
