"""
Unit Tests for Market Data Tools

These tests verify that the tools:
- Validate parameters before any request is made
- Normalize payloads and attach meta to the structured result
- Serve get_tickers_jpy from the freshness cache within its TTL
- Convert every failure into an error ToolResult of the right kind

Run with:
    pytest tests/unit/test_market_tools.py -v
"""

import pytest

from core.errors import (
    ConnectionFailedError,
    HTTPStatusError,
    RequestTimeoutError,
    UpstreamDataError,
    UserError,
)
from core.schemas import ToolResult
from services.market_tools import MarketTools, check_range, resolve_candle_date
from storage.cache import FreshnessCache


# ============================================
# Fakes
# ============================================

class FakeClient:
    """
    Stand-in for BitbankAPIClient.

    `responses` maps method name to the unwrapped data (or an exception to raise).
    Every call is recorded in `calls`.
    """

    def __init__(self, responses, calls):
        self.responses = responses
        self.calls = calls

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def _respond(self, name, *args):
        self.calls.append((name,) + args)
        outcome = self.responses[name]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def get_ticker(self, pair):
        return await self._respond("get_ticker", pair)

    async def get_tickers(self):
        return await self._respond("get_tickers")

    async def get_tickers_jpy(self):
        return await self._respond("get_tickers_jpy")

    async def get_candlestick(self, pair, candle_type, date):
        return await self._respond("get_candlestick", pair, candle_type, date)

    async def get_depth(self, pair):
        return await self._respond("get_depth", pair)

    async def get_transactions(self, pair, date=None):
        return await self._respond("get_transactions", pair, date)


class FakeClock:
    def __init__(self, now=1_704_110_400_000):
        self.now = now

    def __call__(self):
        return self.now


def make_tools(responses, clock=None):
    calls = []
    clock = clock or FakeClock()
    tools = MarketTools(
        client_factory=lambda: FakeClient(responses, calls),
        tickers_jpy_cache=FreshnessCache(ttl_ms=10_000, clock=clock),
        display_timezone="Asia/Tokyo",
    )
    return tools, calls


TICKER = {
    "sell": "15351000",
    "buy": "15349000",
    "open": "15000000",
    "high": "15400000",
    "low": "14950000",
    "last": "15350000",
    "vol": "123.4567",
    "timestamp": 1704110400000,
}


def ticker_row(pair, **overrides):
    row = dict(TICKER, pair=pair)
    row.update(overrides)
    return row


# ============================================
# Tests for Parameter Helpers
# ============================================

class TestParameterHelpers:
    """Tests for check_range and resolve_candle_date"""

    def test_check_range_bounds(self):
        assert check_range("limit", 1, 1, 1000) == 1
        assert check_range("limit", 1000, 1, 1000) == 1000

    @pytest.mark.parametrize("value", [0, 1001, True, "10", 2.5])
    def test_check_range_rejects(self, value):
        with pytest.raises(UserError, match="limit"):
            check_range("limit", value, 1, 1000)

    def test_yearly_type_truncates_full_date(self):
        assert resolve_candle_date("1day", "20240115") == "2024"
        assert resolve_candle_date("4hour", "2023") == "2023"

    def test_fine_type_requires_full_date(self):
        assert resolve_candle_date("1hour", "20240115") == "20240115"
        with pytest.raises(UserError, match="YYYYMMDD"):
            resolve_candle_date("1hour", "2024")

    def test_yearly_type_rejects_garbage(self):
        with pytest.raises(UserError, match="YYYY"):
            resolve_candle_date("1week", "24-01")

    def test_missing_date_uses_default(self):
        assert len(resolve_candle_date("1month", None)) == 4
        assert len(resolve_candle_date("5min", "  ")) == 8


# ============================================
# Tests for Ticker Tools
# ============================================

class TestTickerTools:
    """Tests for get_ticker, get_tickers and get_tickers_jpy"""

    @pytest.mark.asyncio
    async def test_get_ticker(self):
        tools, calls = make_tools({"get_ticker": TICKER})

        result = await tools.get_ticker("BTC/JPY")

        assert result.is_error is False
        assert calls == [("get_ticker", "btc_jpy")]
        normalized = result.structured["normalized"]
        assert normalized["pair"] == "btc_jpy"
        assert normalized["last"] == 15350000.0
        assert normalized["change24hPct"] == pytest.approx(2.3333333, rel=1e-6)
        assert result.structured["raw"] == TICKER
        assert "BTC/JPY" in result.text
        assert "2024/01/01 21:00:00 JST" in result.text

    @pytest.mark.asyncio
    async def test_invalid_pair_makes_no_request(self):
        """Verify a malformed pair is a user error and nothing is fetched"""
        tools, calls = make_tools({"get_ticker": TICKER})

        result = await tools.get_ticker("btc")

        assert result.is_error is True
        assert result.structured["error"]["kind"] == "user"
        assert "btc_jpy" in result.text
        assert calls == []

    @pytest.mark.asyncio
    async def test_get_tickers_meta(self):
        tools, _ = make_tools({"get_tickers": [ticker_row("btc_jpy"), ticker_row("eth_btc")]})

        result = await tools.get_tickers("jpy")

        assert [item["pair"] for item in result.structured["items"]] == ["btc_jpy"]
        meta = result.structured["meta"]
        assert meta["market"] == "jpy"
        assert meta["count"] == 1
        assert meta["fetchedAt"].endswith("Z")

    @pytest.mark.asyncio
    async def test_get_tickers_rejects_unknown_market(self):
        tools, calls = make_tools({"get_tickers": []})

        result = await tools.get_tickers("usd")

        assert result.structured["error"]["kind"] == "user"
        assert calls == []

    @pytest.mark.asyncio
    async def test_get_tickers_jpy_cached_within_ttl(self):
        """Verify a second call within 10s is served from cache with identical items"""
        clock = FakeClock()
        rows = [ticker_row("btc_jpy"), ticker_row("zzz_jpy"), ticker_row("eth_jpy")]
        tools, calls = make_tools({"get_tickers_jpy": rows}, clock)

        first = await tools.get_tickers_jpy()
        clock.now += 5_000
        second = await tools.get_tickers_jpy()

        assert len(calls) == 1
        assert first.structured["meta"]["cached"] is False
        assert second.structured["meta"]["cached"] is True
        assert second.structured["items"] == first.structured["items"]
        assert [item["pair"] for item in first.structured["items"]] == ["btc_jpy", "eth_jpy"]
        assert second.text == "JPY pairs: 2 (cached)"
        assert second.structured["meta"]["capturedAt"] == "2024-01-01T12:00:00.000Z"

    @pytest.mark.asyncio
    async def test_get_tickers_jpy_refetches_after_ttl(self):
        clock = FakeClock()
        tools, calls = make_tools({"get_tickers_jpy": [ticker_row("btc_jpy")]}, clock)

        await tools.get_tickers_jpy()
        clock.now += 11_000
        result = await tools.get_tickers_jpy()

        assert len(calls) == 2
        assert result.structured["meta"]["cached"] is False


# ============================================
# Tests for Candles
# ============================================

class TestCandleTool:
    """Tests for get_candles"""

    ROWS = [[100, 110, 90, 105, 5, 1000], [105, 115, 95, 110, 7, 2000]]

    @pytest.mark.asyncio
    async def test_limit_and_meta(self):
        tools, calls = make_tools({"get_candlestick": {"candlestick": [{"type": "1hour", "ohlcv": self.ROWS}]}})

        result = await tools.get_candles("btc_jpy", "1hour", "20240101", 1)

        assert calls == [("get_candlestick", "btc_jpy", "1hour", "20240101")]
        candles = result.structured["normalized"]
        assert len(candles) == 1
        assert candles[0]["close"] == 110.0
        assert result.structured["meta"] == {"pair": "btc_jpy", "type": "1hour", "date": "20240101", "count": 1}

    @pytest.mark.asyncio
    async def test_yearly_type_uses_year(self):
        tools, calls = make_tools({"get_candlestick": {"candlestick": [{"ohlcv": self.ROWS}]}})

        await tools.get_candles("btc_jpy", "1day", "20240101")

        assert calls == [("get_candlestick", "btc_jpy", "1day", "2024")]

    @pytest.mark.asyncio
    async def test_empty_candles_is_not_error(self):
        tools, _ = make_tools({"get_candlestick": {"candlestick": [{"ohlcv": []}]}})

        result = await tools.get_candles("btc_jpy", "1hour", "20240101")

        assert result.is_error is False
        assert result.text == "No candle data found (btc_jpy/1hour/20240101)"
        assert result.structured["meta"]["count"] == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kwargs", [{"type": "2hour"}, {"limit": 0}, {"limit": 1001}])
    async def test_invalid_parameters(self, kwargs):
        tools, calls = make_tools({"get_candlestick": {}})

        result = await tools.get_candles("btc_jpy", **kwargs)

        assert result.structured["error"]["kind"] == "user"
        assert calls == []


# ============================================
# Tests for Order Book Tools
# ============================================

class TestOrderBookTools:
    """Tests for get_orderbook and get_depth"""

    DEPTH = {
        "bids": [["100", "2"], ["99", "3"], ["98", "1"]],
        "asks": [["101", "1"], ["102", "4"]],
        "timestamp": 1704110400000,
        "sequenceId": "42",
    }

    @pytest.mark.asyncio
    async def test_orderbook_top_n(self):
        tools, _ = make_tools({"get_depth": self.DEPTH})

        result = await tools.get_orderbook("btc_jpy", 2)

        book = result.structured["normalized"]
        assert book["bestBid"] == 100.0
        assert book["bestAsk"] == 101.0
        assert book["mid"] == 100.5
        assert [level["total"] for level in book["bids"]] == [2.0, 5.0]
        assert result.structured["meta"] == {"pair": "btc_jpy", "topN": 2, "count": 4}

    @pytest.mark.asyncio
    async def test_orderbook_range(self):
        tools, _ = make_tools({"get_depth": self.DEPTH})

        result = await tools.get_orderbook("btc_jpy", 201)

        assert result.structured["error"]["kind"] == "user"

    @pytest.mark.asyncio
    async def test_depth_meta(self):
        tools, _ = make_tools({"get_depth": self.DEPTH})

        result = await tools.get_depth("btc_jpy", 500)

        assert result.structured["meta"] == {"pair": "btc_jpy", "maxLevels": 500, "asksCount": 2, "bidsCount": 3}


# ============================================
# Tests for Transactions
# ============================================

class TestTransactionTool:
    """Tests for get_transactions"""

    @staticmethod
    def payload(n_buys, n_sells):
        sides = ["buy"] * n_buys + ["sell"] * n_sells
        return {"transactions": [
            {"transaction_id": i, "side": side, "price": "100", "amount": "0.5", "executed_at": 1000 + i}
            for i, side in enumerate(sides)
        ]}

    @pytest.mark.asyncio
    async def test_summary_meta(self):
        tools, calls = make_tools({"get_transactions": self.payload(6, 4)})

        result = await tools.get_transactions("btc_jpy", 100)

        meta = result.structured["meta"]
        assert calls == [("get_transactions", "btc_jpy", None)]
        assert meta["buys"] == 6
        assert meta["sells"] == 4
        assert meta["buyRatio"] == 60
        assert meta["dominance"] == "buy-dominant"
        assert meta["totalVolume"] == pytest.approx(5.0)
        assert meta["source"] == "latest"

    @pytest.mark.asyncio
    async def test_by_date(self):
        tools, calls = make_tools({"get_transactions": self.payload(5, 5)})

        result = await tools.get_transactions("btc_jpy", 100, "20240101")

        assert calls == [("get_transactions", "btc_jpy", "20240101")]
        assert result.structured["meta"]["dominance"] == "balanced"
        assert result.structured["meta"]["source"] == "by_date"

    @pytest.mark.asyncio
    async def test_bad_date(self):
        tools, calls = make_tools({"get_transactions": self.payload(1, 1)})

        result = await tools.get_transactions("btc_jpy", 100, "2024-01-01")

        assert result.structured["error"]["kind"] == "user"
        assert calls == []


# ============================================
# Tests for the Error Boundary
# ============================================

class TestErrorBoundary:
    """Tests that failures become error results instead of exceptions"""

    @pytest.mark.asyncio
    async def test_upstream_error(self):
        tools, _ = make_tools({"get_ticker": UpstreamDataError("no data available", "btc_jpy")})

        result = await tools.get_ticker("btc_jpy")

        assert result.is_error is True
        assert result.structured["error"]["kind"] == "upstream"
        assert result.text.startswith("Failed to retrieve data:")

    @pytest.mark.asyncio
    async def test_http_status_carries_status(self):
        tools, _ = make_tools({"get_depth": HTTPStatusError(503, "Service Unavailable")})

        result = await tools.get_depth("btc_jpy")

        assert result.structured["error"]["kind"] == "transport"
        assert result.structured["error"]["status"] == 503

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [RequestTimeoutError("timed out"), ConnectionFailedError("refused")])
    async def test_transport_errors(self, error):
        tools, _ = make_tools({"get_tickers": error})

        result = await tools.get_tickers()

        assert result.structured["error"]["kind"] == "transport"
        assert str(error) in result.text

    @pytest.mark.asyncio
    async def test_unexpected_error_is_internal(self):
        tools, _ = make_tools({"get_ticker": KeyError("boom")})

        result = await tools.get_ticker("btc_jpy")

        assert result.structured["error"]["kind"] == "internal"

    @pytest.mark.asyncio
    async def test_unparseable_payload_is_upstream(self):
        tools, _ = make_tools({"get_ticker": dict(TICKER, last="not-a-number")})

        result = await tools.get_ticker("btc_jpy")

        assert result.structured["error"]["kind"] == "upstream"

    def test_to_dict_shape(self):
        assert ToolResult(text="x", structured={"a": 1}).to_dict() == {
            "content": [{"type": "text", "text": "x"}],
            "structuredContent": {"a": 1},
            "isError": False,
        }
