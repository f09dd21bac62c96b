"""Unit tests for Origins ABI parsing — pure functions, no network."""
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from origins_recommender.protocols.origins.parser import (
    decode_address,
    decode_uint,
    encode_call,
    parse_position,
    resolve_asset_id,
    split_words,
)

WETH = "0x82af49447d8a07e3bd95bd0d56f35241523fbab1"
ALIASES = {WETH: "ETH"}


def _word(value: int) -> str:
    return f"{value:064x}"


def _position_result(
    position_id: int = 7,
    asset: str = WETH,
    collateral: int = 2 * 10**18,
    debt: int = 3000 * 10**18,
    depth: int = 10**24,
    last_updated: int = 1_767_268_800,
) -> str:
    return "0x" + "".join(
        [
            _word(position_id),
            _word(int(asset, 16)),
            _word(collateral),
            _word(debt),
            _word(depth),
            _word(last_updated),
        ]
    )


class TestEncodeCall:
    def test_no_args(self) -> None:
        assert encode_call("0xABCDEF01") == "0xabcdef01"

    def test_uint_arg(self) -> None:
        assert encode_call("0x12345678", 1) == "0x12345678" + "0" * 63 + "1"

    def test_multiple_args(self) -> None:
        data = encode_call("0x12345678", 1, 255)
        assert len(data) == 10 + 128
        assert data.endswith("ff")


class TestWords:
    def test_split(self) -> None:
        assert split_words("0x" + _word(1) + _word(2)) == [1, 2]

    def test_split_without_prefix(self) -> None:
        assert split_words(_word(5)) == [5]

    def test_not_aligned(self) -> None:
        with pytest.raises(ValueError, match="word-aligned"):
            split_words("0x1234")

    def test_decode_uint(self) -> None:
        assert decode_uint("0x" + _word(42)) == 42

    def test_decode_uint_empty(self) -> None:
        with pytest.raises(ValueError, match="Empty"):
            decode_uint("0x")

    def test_decode_address_masks_upper_bits(self) -> None:
        word = (0xFFFF << 160) | int(WETH, 16)
        assert decode_address(word) == WETH


class TestResolveAssetId:
    def test_known_alias(self) -> None:
        assert resolve_asset_id(WETH.upper().replace("0X", "0x"), ALIASES) == "ETH"

    def test_unknown_is_lowercased_address(self) -> None:
        assert resolve_asset_id("0xABC", ALIASES) == "0xabc"


class TestParsePosition:
    def test_parses_all_fields(self) -> None:
        position = parse_position(_position_result(), 18, ALIASES)
        assert position.id == "7"
        assert position.asset_id == "ETH"
        assert position.collateral_value == Decimal(2)
        assert position.debt_value == Decimal(3000)
        assert position.liquidity_depth == Decimal(1_000_000)
        assert position.last_updated == datetime(2026, 1, 1, 12, tzinfo=timezone.utc)

    def test_custom_decimals(self) -> None:
        result = _position_result(collateral=5_000_000, debt=0, depth=0)
        position = parse_position(result, 6, ALIASES)
        assert position.collateral_value == Decimal(5)
        assert position.is_pure_supply

    def test_too_few_words(self) -> None:
        with pytest.raises(ValueError, match="expected 6"):
            parse_position("0x" + _word(1) * 3, 18, ALIASES)
