"""Pure decoding functions for Origins contract call results — no I/O.

``getPosition(uint256)`` returns a static tuple of six 32-byte words::

    (uint256 id, address asset, uint256 collateral, uint256 debt,
     uint256 depth, uint256 lastUpdated)

Amounts are base units scaled by ``value_decimals``; ``lastUpdated`` is a
unix timestamp in seconds.
"""
from __future__ import annotations

from datetime import datetime, timezone

from ...models import Position
from ...numeric import from_base_units

WORD_HEX_LEN = 64
POSITION_WORDS = 6


def encode_call(selector: str, *args: int) -> str:
    """ABI-encode a call with static uint256 arguments.

    Example:
        encode_call("0x12345678", 1) → "0x12345678" + 63 zeros + "1"
    """
    encoded = "".join(f"{arg:064x}" for arg in args)
    return selector.lower() + encoded


def split_words(result: str) -> list[int]:
    """Split a hex call result into 32-byte unsigned words."""
    body = result[2:] if result.startswith("0x") else result
    if len(body) % WORD_HEX_LEN:
        raise ValueError(f"Call result length {len(body)} is not word-aligned")
    return [
        int(body[i : i + WORD_HEX_LEN], 16)
        for i in range(0, len(body), WORD_HEX_LEN)
    ]


def decode_uint(result: str) -> int:
    words = split_words(result)
    if not words:
        raise ValueError("Empty call result")
    return words[0]


def decode_address(word: int) -> str:
    """Lower 20 bytes of a word as a lowercase ``0x`` address."""
    return f"0x{word & ((1 << 160) - 1):040x}"


def resolve_asset_id(address: str, token_aliases: dict[str, str]) -> str:
    """Map a token address to the symbol prices are keyed by, if known."""
    return token_aliases.get(address.lower(), address.lower())


def parse_position(
    result: str,
    value_decimals: int,
    token_aliases: dict[str, str],
) -> Position:
    """Decode a ``getPosition`` result into a Position."""
    words = split_words(result)
    if len(words) < POSITION_WORDS:
        raise ValueError(
            f"getPosition returned {len(words)} words, expected {POSITION_WORDS}"
        )

    position_id, asset_word, collateral, debt, depth, last_updated = words[
        :POSITION_WORDS
    ]

    return Position(
        id=str(position_id),
        asset_id=resolve_asset_id(decode_address(asset_word), token_aliases),
        collateral_value=from_base_units(collateral, value_decimals),
        debt_value=from_base_units(debt, value_decimals),
        liquidity_depth=from_base_units(depth, value_decimals),
        last_updated=datetime.fromtimestamp(last_updated, tz=timezone.utc),
    )
