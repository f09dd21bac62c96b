"""Origins contract position store — lists positions over JSON-RPC."""
from __future__ import annotations

import asyncio
import logging

from ...config import ChainConfig, OriginsConfig
from ...errors import StoreError
from ...interfaces.chain import ChainClient
from ...models import Position
from . import parser

logger = logging.getLogger(__name__)


class OriginsPositionStore:
    """Read every position held by the Origins contract."""

    def __init__(
        self,
        chain_client: ChainClient,
        chain_config: ChainConfig,
        config: OriginsConfig,
    ) -> None:
        self._client = chain_client
        self._contract = chain_config.origins_contract_address
        self._config = config

    async def _position_count(self) -> int:
        result = await self._client.eth_call(
            self._contract, parser.encode_call(self._config.count_selector)
        )
        return parser.decode_uint(result)

    async def _get_position(self, index: int) -> Position:
        result = await self._client.eth_call(
            self._contract,
            parser.encode_call(self._config.position_selector, index),
        )
        return parser.parse_position(
            result, self._config.value_decimals, self._config.token_aliases
        )

    async def list(self) -> list[Position]:
        """Fetch all positions from the contract.

        Raises:
            StoreError: on any RPC or decoding failure. A partial listing is
                never returned.
        """
        try:
            count = await self._position_count()
            logger.info("Origins contract %s reports %d positions", self._contract, count)
            positions = await asyncio.gather(
                *(self._get_position(i) for i in range(count))
            )
        except (RuntimeError, ValueError) as e:
            logger.error("Error listing Origins positions: %s", e)
            raise StoreError(f"Failed to list Origins positions: {e}") from e

        ids = [p.id for p in positions]
        if len(set(ids)) != len(ids):
            raise StoreError("Origins contract returned duplicate position ids")

        return list(positions)
