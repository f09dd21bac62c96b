"""Unit tests for Pyth oracle — price response parsing and error handling."""
from __future__ import annotations

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from origins_recommender.config import PythConfig
from origins_recommender.errors import FetchTimeout, NetworkError
from origins_recommender.oracles.pyth import PythOracle, parse_price


@pytest.fixture()
def oracle(sample_pyth_config: PythConfig) -> PythOracle:
    return PythOracle(sample_pyth_config)


def _make_pyth_response(items: list[dict]) -> dict:
    return {"parsed": items}


def _mock_session(status: int = 200, data: dict | None = None) -> AsyncMock:
    mock_response = AsyncMock()
    mock_response.status = status
    mock_response.json = AsyncMock(return_value=data or {})
    mock_response.__aenter__ = AsyncMock(return_value=mock_response)
    mock_response.__aexit__ = AsyncMock(return_value=None)

    mock_session = AsyncMock()
    mock_session.get = MagicMock(return_value=mock_response)
    mock_session.__aenter__ = AsyncMock(return_value=mock_session)
    mock_session.__aexit__ = AsyncMock(return_value=None)
    return mock_session


class TestParsePrice:
    def test_scales_by_exponent(self) -> None:
        assert parse_price({"price": "350000000", "expo": "-8"}) == Decimal("3.5")

    def test_missing_fields(self) -> None:
        assert parse_price({}) == 0


class TestPythOracleFetchPrices:
    @pytest.mark.asyncio
    async def test_parses_response_correctly(self, oracle: PythOracle) -> None:
        mock_session = _mock_session(
            data=_make_pyth_response(
                [
                    {"id": "aaa111", "price": {"price": "300000000000", "expo": "-8"}},
                    {"id": "bbb222", "price": {"price": "9500000000000", "expo": "-8"}},
                    {"id": "0xccc333", "price": {"price": "100000000", "expo": "-8"}},
                ]
            )
        )

        with patch("origins_recommender.oracles.pyth.aiohttp.ClientSession", return_value=mock_session):
            with patch("origins_recommender.oracles.pyth.aiohttp.TCPConnector"):
                prices = await oracle.fetch_prices()

        assert prices["ETH"] == Decimal(3000)
        assert prices["BTC"] == Decimal(95000)
        assert prices["USDC"] == Decimal(1)
        assert all(isinstance(p, Decimal) for p in prices.values())

    @pytest.mark.asyncio
    async def test_http_error_raises(self, oracle: PythOracle) -> None:
        mock_session = _mock_session(status=500)

        with patch("origins_recommender.oracles.pyth.aiohttp.ClientSession", return_value=mock_session):
            with patch("origins_recommender.oracles.pyth.aiohttp.TCPConnector"):
                with pytest.raises(NetworkError, match="HTTP 500"):
                    await oracle.fetch_prices()

    @pytest.mark.asyncio
    async def test_network_error_raises(self, oracle: PythOracle) -> None:
        mock_session = _mock_session()
        mock_session.get = MagicMock(side_effect=ConnectionError("down"))

        with patch("origins_recommender.oracles.pyth.aiohttp.ClientSession", return_value=mock_session):
            with patch("origins_recommender.oracles.pyth.aiohttp.TCPConnector"):
                with pytest.raises(NetworkError):
                    await oracle.fetch_prices()

    @pytest.mark.asyncio
    async def test_timeout_raises(self, oracle: PythOracle) -> None:
        mock_session = _mock_session()
        mock_session.get = MagicMock(side_effect=asyncio.TimeoutError())

        with patch("origins_recommender.oracles.pyth.aiohttp.ClientSession", return_value=mock_session):
            with patch("origins_recommender.oracles.pyth.aiohttp.TCPConnector"):
                with pytest.raises(FetchTimeout):
                    await oracle.fetch_prices()

    @pytest.mark.asyncio
    async def test_symbol_filter(self, oracle: PythOracle) -> None:
        mock_session = _mock_session(
            data=_make_pyth_response(
                [{"id": "aaa111", "price": {"price": "300000000000", "expo": "-8"}}]
            )
        )

        with patch("origins_recommender.oracles.pyth.aiohttp.ClientSession", return_value=mock_session):
            with patch("origins_recommender.oracles.pyth.aiohttp.TCPConnector"):
                prices = await oracle.fetch_prices(symbols={"ETH", "DOGE"})

        assert set(prices) == {"ETH"}
        url = mock_session.get.call_args[0][0]
        assert "ids[]=aaa111" in url
        assert "bbb222" not in url

    @pytest.mark.asyncio
    async def test_unconfigured_symbols_skip_request(self, oracle: PythOracle) -> None:
        with patch("origins_recommender.oracles.pyth.aiohttp.ClientSession") as session_cls:
            prices = await oracle.fetch_prices(symbols={"DOGE"})
        assert prices == {}
        session_cls.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_feeds_returns_empty(self) -> None:
        oracle = PythOracle(PythConfig(hermes_url="https://x.com", feeds={}))
        prices = await oracle.fetch_prices()
        assert prices == {}
