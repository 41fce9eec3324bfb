"""
Normalized Data Schemas

This module defines Pydantic models for all market data returned by the tools.

Key Principle:
    bitbank transmits prices and amounts as decimal strings and timestamps as
    millisecond integers. The normalizers convert those into the typed models
    below, so tool consumers always see the same shape regardless of endpoint.

Models:
    - NormalizedTicker: 24h ticker snapshot for one pair
    - NormalizedCandle: One OHLCV row
    - DepthLevel: One order book price level with cumulative amount
    - OrderBookSnapshot: Truncated bids/asks with best prices, spread and mid
    - NormalizedTransaction: One executed trade
    - TransactionSummary: Buy/sell counts, dominance and traded volume
    - CacheEntry: Single-slot cache contents for the JPY tickers endpoint
    - ToolResult: Text summary plus structured payload returned by every tool

Serialization:
    Attributes are snake_case; dumping with by_alias=True yields the camelCase
    keys consumers expect (isoTime, change24hPct, bestBid, ...).
"""

from typing import Any, Dict, FrozenSet, List, Literal, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


CandleType = Literal[
    "1min", "5min", "15min", "30min",
    "1hour", "4hour", "8hour", "12hour",
    "1day", "1week", "1month",
]

CANDLE_TYPES: Tuple[str, ...] = (
    "1min", "5min", "15min", "30min",
    "1hour", "4hour", "8hour", "12hour",
    "1day", "1week", "1month",
)

# Candle types addressed by YYYY instead of YYYYMMDD
YEARLY_CANDLE_TYPES: FrozenSet[str] = frozenset({
    "4hour", "8hour", "12hour", "1day", "1week", "1month",
})

Dominance = Literal["buy-dominant", "sell-dominant", "balanced"]


# ============================================
# Base Model
# ============================================

class MarketModel(BaseModel):
    """Base for normalized records: camelCase aliases, construction by field name."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_payload(self) -> Dict[str, Any]:
        """JSON-compatible dict with camelCase keys."""
        return self.model_dump(by_alias=True, mode="json")


# ============================================
# Ticker Schema
# ============================================

class NormalizedTicker(MarketModel):
    """
    24h Ticker Snapshot

    Attributes:
        pair: Trading pair (e.g. "btc_jpy")
        last, buy, sell, open, high, low: Prices (None when upstream sent null)
        volume: 24h volume in base currency
        timestamp: Upstream timestamp in milliseconds
        iso_time: ISO-8601 UTC string, None when timestamp is unusable
        change24h_pct: (last - open) / open * 100, None when open is 0 or absent
        vol24h_jpy: volume * last in whole yen, only for JPY-quoted pairs
        spread: sell - buy (single-ticker path only)

    Notes:
        - The single-ticker path keeps change24h_pct unrounded and rounds when
          rendering text; the ticker list paths round to 2 decimals when the
          value is computed.
    """

    pair: str
    last: Optional[float] = None
    buy: Optional[float] = None
    sell: Optional[float] = None
    open: Optional[float] = None
    high: Optional[float] = None
    low: Optional[float] = None
    volume: Optional[float] = None
    timestamp: Optional[int] = None
    iso_time: Optional[str] = None
    change24h_pct: Optional[float] = Field(default=None, alias="change24hPct")
    vol24h_jpy: Optional[int] = Field(default=None, alias="vol24hJpy")
    spread: Optional[float] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "pair": "btc_jpy",
                "last": 15350000.0,
                "buy": 15349000.0,
                "sell": 15351000.0,
                "open": 15000000.0,
                "high": 15400000.0,
                "low": 14950000.0,
                "volume": 123.4567,
                "timestamp": 1704110400000,
                "isoTime": "2024-01-01T12:00:00.000Z",
                "change24hPct": 2.3333333333,
                "vol24hJpy": 1895060345,
                "spread": 2000.0
            }
        }
    )


# ============================================
# Candle Schema
# ============================================

class NormalizedCandle(MarketModel):
    """
    One OHLCV row.

    Upstream row layout is [open, high, low, close, volume, timestampMs].
    Lists of candles keep upstream order: index 0 is the oldest.
    """

    open: float
    high: float
    low: float
    close: float
    volume: float
    timestamp: Optional[int] = None
    iso_time: Optional[str] = None


# ============================================
# Order Book Schemas
# ============================================

class DepthLevel(MarketModel):
    """A price level; total is the running amount from the best price outward (8 dp)."""

    price: float
    amount: float
    total: float


class OrderBookSnapshot(MarketModel):
    """
    Order Book View

    bids and asks are truncated to the requested level count before totals,
    best prices, spread and mid are computed. spread and mid are None when
    either side is empty.
    """

    pair: str
    best_bid: Optional[float] = None
    best_ask: Optional[float] = None
    spread: Optional[float] = None
    mid: Optional[float] = None
    bids: List[DepthLevel] = Field(default_factory=list)
    asks: List[DepthLevel] = Field(default_factory=list)
    timestamp: Optional[int] = None
    iso_time: Optional[str] = None
    sequence_id: Optional[str] = None


# ============================================
# Transaction Schemas
# ============================================

class NormalizedTransaction(MarketModel):
    """One executed trade. side is the taker side reported by bitbank."""

    transaction_id: int
    side: Literal["buy", "sell"]
    price: float
    amount: float
    executed_at: Optional[int] = None
    iso_time: Optional[str] = None


class TransactionSummary(MarketModel):
    """
    Aggregate view over a list of trades.

    buy_ratio is the buy share in whole percent (half-up); dominance is
    "buy-dominant" at >= 60, "sell-dominant" at <= 40, else "balanced".
    """

    count: int
    buys: int
    sells: int
    buy_ratio: int
    dominance: Dominance
    total_volume: float


# ============================================
# Cache Entry
# ============================================

class CacheEntry(MarketModel):
    """Contents of the single cache slot. Replaced whole on every refresh."""

    captured_at_epoch_ms: int
    items: List[NormalizedTicker]


# ============================================
# Tool Result
# ============================================

class ToolResult(BaseModel):
    """
    What every tool returns.

    Attributes:
        text: Human-readable summary
        structured: Machine-readable payload (normalized records + meta)
        is_error: True when the call failed; text then explains why
    """

    text: str
    structured: Optional[Dict[str, Any]] = None
    is_error: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content": [{"type": "text", "text": self.text}],
            "structuredContent": self.structured,
            "isError": self.is_error,
        }
