"""EVM chain support."""
from .client import EvmClient, RpcError

__all__ = ["EvmClient", "RpcError"]
