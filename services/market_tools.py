"""
Market Data Tools

The seven tools exposed to agents. Each tool:
    1. validates its parameters (pair, ranges, candle type, dates)
    2. fetches through BitbankAPIClient
    3. normalizes the payload
    4. returns a ToolResult with a text summary and a structured payload

Failures never escape a tool: UserError, UpstreamDataError and
TransportError (and anything unexpected) are converted into an error
ToolResult at the boundary.

Usage:
    tools = get_market_tools()
    result = await tools.get_ticker("btc_jpy")
    print(result.text)
"""

import functools
import re
from typing import Any, Callable, Dict, List, Optional

from core.config import settings
from core.errors import HTTPStatusError, TransportError, UpstreamDataError, UserError
from core.logging import get_logger
from core.pairs import base_currency, ensure_pair, is_jpy_pair
from core.schemas import (
    CANDLE_TYPES,
    YEARLY_CANDLE_TYPES,
    NormalizedTicker,
    OrderBookSnapshot,
    ToolResult,
)
from core.utils.format import (
    format_change,
    format_pair,
    format_price,
    format_trade_volume,
    format_volume,
)
from core.utils.time import current_utc_iso, default_candle_date, to_display_time, to_iso_time
from exchanges.bitbank.api_client import BitbankAPIClient
from exchanges.bitbank import normalizers
from storage.cache import FreshnessCache


TRADE_URL = "https://app.bitbank.cc/trade/{pair}"
SUMMARY_ROWS = 5

logger = get_logger(__name__)


# ============================================
# Error Boundary
# ============================================

def _error_result(kind: str, message: str, **extra: Any) -> ToolResult:
    return ToolResult(
        text=message,
        structured={"error": {"kind": kind, "message": message, **extra}},
        is_error=True,
    )


def tool_boundary(name: str) -> Callable:
    """Convert every failure of the wrapped tool into an error ToolResult."""

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> ToolResult:
            try:
                return await func(*args, **kwargs)
            except UserError as e:
                logger.info(f"{name}: rejected input: {e}")
                return _error_result("user", str(e))
            except UpstreamDataError as e:
                logger.warning(f"{name}: upstream data unavailable: {e}")
                return _error_result("upstream", f"Failed to retrieve data: {e}")
            except HTTPStatusError as e:
                logger.error(f"{name}: {e}")
                return _error_result("transport", f"Error: {e}", status=e.status)
            except TransportError as e:
                logger.error(f"{name}: {e.__class__.__name__}: {e}")
                return _error_result("transport", f"Error: {e}")
            except Exception as e:
                logger.exception(f"{name}: unexpected failure")
                return _error_result("internal", f"Error: {str(e) or e.__class__.__name__}")

        return wrapper

    return decorator


# ============================================
# Parameter Validation
# ============================================

def check_range(name: str, value: Any, low: int, high: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not low <= value <= high:
        raise UserError(f"{name} must be an integer between {low} and {high} (got {value!r})")
    return value


def resolve_candle_date(candle_type: str, date: Optional[str]) -> str:
    """
    Validate or default the date path segment of a candlestick request.

    Yearly-class types take YYYY (a YYYYMMDD value is cut to its year);
    finer types take YYYYMMDD.
    """
    if date is None or str(date).strip() == "":
        return default_candle_date(candle_type)

    date = str(date).strip()
    if candle_type in YEARLY_CANDLE_TYPES:
        if not re.fullmatch(r"\d{4}(\d{4})?", date):
            raise UserError(f"date for {candle_type} must be YYYY (e.g. 2024), got '{date}'")
        return date[:4]

    if not re.fullmatch(r"\d{8}", date):
        raise UserError(f"date for {candle_type} must be YYYYMMDD (e.g. 20240101), got '{date}'")
    return date


def _ticker_line(item: NormalizedTicker) -> str:
    price = format_price(item.last, is_jpy_pair(item.pair))
    return f"{format_pair(item.pair)}: {price} ({format_change(item.change24h_pct)})"


def _list_summary(header: str, items: List[NormalizedTicker]) -> str:
    lines = [header, ""]
    lines.extend(_ticker_line(item) for item in items[:SUMMARY_ROWS])
    if len(items) > SUMMARY_ROWS:
        lines.append(f"... and {len(items) - SUMMARY_ROWS} more pairs")
    return "\n".join(lines)


# ============================================
# Tools
# ============================================

class MarketTools:
    """
    Tool implementations shared by the MCP server and the HTTP API.

    Attributes:
        tickers_jpy_cache: Freshness cache guarding get_tickers_jpy
        tickers_cache_ttl_ms: TTL reserved for get_tickers (not cached yet)

    Notes:
        - A new API client (and HTTP session) is opened per tool call
        - client_factory is injectable for tests
    """

    def __init__(
        self,
        client_factory: Optional[Callable[[], BitbankAPIClient]] = None,
        tickers_jpy_cache: Optional[FreshnessCache] = None,
        display_timezone: Optional[str] = None,
    ):
        self._client_factory = client_factory or BitbankAPIClient
        self.tickers_jpy_cache = tickers_jpy_cache or FreshnessCache(
            ttl_ms=settings.tickers_jpy_cache_ttl_ms, name="tickers_jpy"
        )
        self.tickers_cache_ttl_ms = settings.tickers_cache_ttl_ms
        self.display_timezone = display_timezone or settings.display_timezone

    # ----- tickers -----

    @tool_boundary("get_ticker")
    async def get_ticker(self, pair: str) -> ToolResult:
        """Ticker for one pair."""
        pair = ensure_pair(pair).raise_for_error()

        async with self._client_factory() as client:
            data = await client.get_ticker(pair)
        ticker = normalizers.normalize_ticker(pair, data)

        is_jpy = is_jpy_pair(pair)
        base = base_currency(pair)
        lines = [f"{format_pair(pair)} last: {format_price(ticker.last, is_jpy)}"]
        lines.append(
            f"24h: open {format_price(ticker.open, is_jpy)} / "
            f"high {format_price(ticker.high, is_jpy)} / low {format_price(ticker.low, is_jpy)}"
        )
        if ticker.change24h_pct is not None:
            lines.append(f"24h change: {format_change(ticker.change24h_pct)}")
        lines.append(f"Volume: {format_volume(ticker.volume, base)}")
        if ticker.vol24h_jpy is not None:
            lines.append(f"Volume (JPY): ¥{ticker.vol24h_jpy:,}")
        lines.append(
            f"Bid: {format_price(ticker.buy, is_jpy)} / Ask: {format_price(ticker.sell, is_jpy)} "
            f"(spread: {format_price(ticker.spread, is_jpy)})"
        )
        shown_time = None
        if ticker.timestamp is not None:
            shown_time = to_display_time(ticker.timestamp, self.display_timezone)
        lines.append(f"Time: {shown_time or 'N/A'}")
        lines.append("---")
        lines.append(f"Chart & trading: {TRADE_URL.format(pair=pair)}")

        return ToolResult(
            text="\n".join(lines),
            structured={"normalized": ticker.to_payload(), "raw": data},
        )

    @tool_boundary("get_tickers")
    async def get_tickers(self, market: str = "all") -> ToolResult:
        """Tickers for every pair, optionally JPY-quoted only."""
        if market not in ("all", "jpy"):
            raise UserError(f"market must be 'all' or 'jpy' (got {market!r})")

        async with self._client_factory() as client:
            data = await client.get_tickers()
        items = normalizers.normalize_tickers(data, market)

        return ToolResult(
            text=_list_summary(f"Fetched {len(items)} pairs", items),
            structured={
                "items": [item.to_payload() for item in items],
                "meta": {"market": market, "count": len(items), "fetchedAt": current_utc_iso()},
            },
        )

    @tool_boundary("get_tickers_jpy")
    async def get_tickers_jpy(self) -> ToolResult:
        """Allow-listed JPY tickers, served from the freshness cache when possible."""

        async def load() -> List[NormalizedTicker]:
            async with self._client_factory() as client:
                data = await client.get_tickers_jpy()
            return normalizers.normalize_tickers_jpy(data)

        items, cached = await self.tickers_jpy_cache.get_or_refresh(load)
        payload = [item.to_payload() for item in items]
        captured_at = self.tickers_jpy_cache.entry.captured_at_epoch_ms

        if cached:
            return ToolResult(
                text=f"JPY pairs: {len(items)} (cached)",
                structured={
                    "items": payload,
                    "meta": {"count": len(items), "cached": True, "capturedAt": to_iso_time(captured_at)},
                },
            )

        return ToolResult(
            text=_list_summary(f"Fetched {len(items)} JPY pairs", items),
            structured={
                "items": payload,
                "meta": {"count": len(items), "cached": False, "fetchedAt": to_iso_time(captured_at)},
            },
        )

    # ----- candles -----

    @tool_boundary("get_candles")
    async def get_candles(
        self,
        pair: str,
        type: str = "1day",
        date: Optional[str] = None,
        limit: int = 200,
    ) -> ToolResult:
        """OHLCV candles, oldest first, truncated to the most recent `limit`."""
        pair = ensure_pair(pair).raise_for_error()
        if type not in CANDLE_TYPES:
            raise UserError(f"type must be one of: {', '.join(CANDLE_TYPES)} (got {type!r})")
        limit = check_range("limit", limit, 1, 1000)
        date_param = resolve_candle_date(type, date)

        async with self._client_factory() as client:
            data = await client.get_candlestick(pair, type, date_param)
        candles = normalizers.normalize_candles(data, limit)

        meta = {"pair": pair, "type": type, "date": date_param, "count": len(candles)}
        if not candles:
            return ToolResult(
                text=f"No candle data found ({pair}/{type}/{date_param})",
                structured={"normalized": [], "meta": meta},
            )

        oldest, latest = candles[0], candles[-1]
        period_start = oldest.iso_time.split("T")[0] if oldest.iso_time else "N/A"
        period_end = latest.iso_time.split("T")[0] if latest.iso_time else "N/A"
        lines = [
            f"{format_pair(pair)} [{type}] {len(candles)} candles",
            f"Period: {period_start} to {period_end}",
            f"Latest close: {format_price(latest.close, is_jpy_pair(pair))}",
            "",
            f"Order is oldest first: data[0] is the oldest, data[{len(candles) - 1}] the latest",
        ]

        return ToolResult(
            text="\n".join(lines),
            structured={"normalized": [c.to_payload() for c in candles], "meta": meta},
        )

    # ----- order book -----

    def _side_lines(self, label: str, levels, is_jpy: bool, base: str) -> List[str]:
        lines = [f"{label}: {len(levels)} levels"]
        for level in levels[:SUMMARY_ROWS]:
            lines.append(f"  {format_price(level.price, is_jpy)} - {level.amount:.4f} {base}")
        if len(levels) > SUMMARY_ROWS:
            lines.append(f"  ... and {len(levels) - SUMMARY_ROWS} more levels")
        return lines

    @tool_boundary("get_orderbook")
    async def get_orderbook(self, pair: str, topN: int = 20) -> ToolResult:
        """Top-N levels per side with cumulative totals, spread and mid."""
        pair = ensure_pair(pair).raise_for_error()
        top_n = check_range("topN", topN, 1, 200)

        async with self._client_factory() as client:
            data = await client.get_depth(pair)
        book = normalizers.normalize_orderbook(pair, data, top_n)

        is_jpy = is_jpy_pair(pair)
        base = base_currency(pair)
        lines = [
            f"{format_pair(pair)} order book (top {top_n})",
            f"Mid: {format_price(book.mid, is_jpy)}",
            f"Spread: {format_price(book.spread, is_jpy)}",
            "",
        ]
        lines.extend(self._side_lines("Bids", book.bids, is_jpy, base))
        lines.append("")
        lines.extend(self._side_lines("Asks", book.asks, is_jpy, base))

        return ToolResult(
            text="\n".join(lines),
            structured={
                "normalized": book.to_payload(),
                "meta": {"pair": pair, "topN": top_n, "count": len(book.bids) + len(book.asks)},
            },
        )

    @tool_boundary("get_depth")
    async def get_depth(self, pair: str, maxLevels: int = 200) -> ToolResult:
        """Deeper order book view (up to 500 levels per side)."""
        pair = ensure_pair(pair).raise_for_error()
        max_levels = check_range("maxLevels", maxLevels, 1, 500)

        async with self._client_factory() as client:
            data = await client.get_depth(pair)
        book: OrderBookSnapshot = normalizers.normalize_orderbook(pair, data, max_levels)

        is_jpy = is_jpy_pair(pair)
        lines = [
            f"{format_pair(pair)} depth",
            f"Mid: {format_price(book.mid, is_jpy)}",
            f"Levels: bids {len(book.bids)} / asks {len(book.asks)}",
            f"Time: {book.iso_time or 'N/A'}",
        ]

        return ToolResult(
            text="\n".join(lines),
            structured={
                "normalized": book.to_payload(),
                "meta": {
                    "pair": pair,
                    "maxLevels": max_levels,
                    "asksCount": len(book.asks),
                    "bidsCount": len(book.bids),
                },
            },
        )

    # ----- transactions -----

    @tool_boundary("get_transactions")
    async def get_transactions(self, pair: str, limit: int = 100, date: Optional[str] = None) -> ToolResult:
        """Recent trades (or one day's trades), oldest first, with a buy/sell summary."""
        pair = ensure_pair(pair).raise_for_error()
        limit = check_range("limit", limit, 1, 1000)
        date = str(date).strip() if date is not None else ""
        if date and not re.fullmatch(r"\d{8}", date):
            raise UserError(f"date must be YYYYMMDD (e.g. 20240101), got '{date}'")
        date = date or None

        async with self._client_factory() as client:
            data = await client.get_transactions(pair, date)
        txns = normalizers.normalize_transactions(data, limit)
        summary = normalizers.summarize_transactions(txns)

        is_jpy = is_jpy_pair(pair)
        lines = [f"{format_pair(pair)} recent trades: {len(txns)}"]
        if txns:
            lines.append(f"Latest price: {format_price(txns[-1].price, is_jpy)}")
            lines.append(f"Buys: {summary.buys} / Sells: {summary.sells} ({summary.dominance})")
            lines.append(f"Volume: {format_trade_volume(summary.total_volume)} {base_currency(pair)}")

        return ToolResult(
            text="\n".join(lines),
            structured={
                "normalized": [t.to_payload() for t in txns],
                "meta": {
                    "pair": pair,
                    "count": len(txns),
                    "buys": summary.buys,
                    "sells": summary.sells,
                    "buyRatio": summary.buy_ratio,
                    "dominance": summary.dominance,
                    "totalVolume": summary.total_volume,
                    "source": "by_date" if date else "latest",
                },
            },
        )


# ============================================
# Process-wide Instance
# ============================================

_market_tools: Optional[MarketTools] = None


def get_market_tools() -> MarketTools:
    global _market_tools
    if _market_tools is None:
        _market_tools = MarketTools()
    return _market_tools


def tool_catalog() -> List[Dict[str, Any]]:
    """Tool names with their parameters, for discovery endpoints."""
    return [
        {"name": "get_ticker", "params": {"pair": "e.g. btc_jpy"}},
        {"name": "get_tickers", "params": {"market": "all | jpy (default all)"}},
        {"name": "get_tickers_jpy", "params": {}},
        {
            "name": "get_candles",
            "params": {
                "pair": "e.g. btc_jpy",
                "type": " | ".join(CANDLE_TYPES) + " (default 1day)",
                "date": "YYYY for 4hour and coarser, else YYYYMMDD (optional)",
                "limit": "1-1000 (default 200)",
            },
        },
        {"name": "get_orderbook", "params": {"pair": "e.g. btc_jpy", "topN": "1-200 (default 20)"}},
        {"name": "get_depth", "params": {"pair": "e.g. btc_jpy", "maxLevels": "1-500 (default 200)"}},
        {
            "name": "get_transactions",
            "params": {
                "pair": "e.g. btc_jpy",
                "limit": "1-1000 (default 100)",
                "date": "YYYYMMDD (optional)",
            },
        },
    ]
