"""Off-chain position stores."""
from .file import FilePositionStore

__all__ = ["FilePositionStore"]
