"""EVM JSON-RPC client with fallback support."""
import logging
import ssl
from typing import Any

import aiohttp
import certifi

from ...config import ChainConfig

logger = logging.getLogger(__name__)


class RpcError(RuntimeError):
    """Every configured endpoint failed, or the node returned an error."""


class EvmClient:
    """EVM JSON-RPC client with automatic endpoint fallback.

    The endpoint that last answered is remembered and tried first on the
    next call.
    """

    def __init__(self, config: ChainConfig) -> None:
        self.endpoints = [url for url in config.rpc_endpoints if url]
        self.timeout = config.rpc_timeout
        self.current_rpc_index = 0
        self._request_id = 0

    async def rpc_call(self, method: str, params: list[Any]) -> Any:
        """Make RPC call with fallback to alternative endpoints."""
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params,
        }

        ssl_context = ssl.create_default_context(cafile=certifi.where())

        last_error: Exception | None = None
        for attempt in range(len(self.endpoints)):
            rpc_index = (self.current_rpc_index + attempt) % len(self.endpoints)
            rpc_url = self.endpoints[rpc_index]

            try:
                connector = aiohttp.TCPConnector(ssl=ssl_context)
                async with aiohttp.ClientSession(connector=connector) as session:
                    async with session.post(
                        rpc_url,
                        json=payload,
                        timeout=aiohttp.ClientTimeout(total=self.timeout),
                    ) as response:
                        result = await response.json()
                        if "error" in result:
                            raise RpcError(f"RPC Error: {result['error']}")

                        if rpc_index != self.current_rpc_index:
                            logger.info("Switched to RPC endpoint: %s", rpc_url)
                            self.current_rpc_index = rpc_index

                        return result.get("result")
            except Exception as e:
                last_error = e
                logger.warning("RPC endpoint %s failed (%s): %s", rpc_url, method, e)
                if attempt < len(self.endpoints) - 1:
                    logger.info("Trying next endpoint...")
                continue

        raise RpcError(f"All RPC endpoints failed. Last error: {last_error}")

    async def eth_call(self, to: str, data: str, block: str = "latest") -> str:
        """Execute a read-only contract call and return the raw hex result."""
        result = await self.rpc_call("eth_call", [{"to": to, "data": data}, block])
        if not isinstance(result, str) or not result.startswith("0x"):
            raise RpcError(f"Unexpected eth_call result: {result!r}")
        return result

    async def eth_block_number(self) -> int:
        result = await self.rpc_call("eth_blockNumber", [])
        return int(result, 16)
