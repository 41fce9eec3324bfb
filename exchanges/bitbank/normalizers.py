"""
bitbank Response Normalizers

Pure functions converting the `data` member of bitbank responses into the
schemas in core.schemas. None of them perform I/O.

Upstream values are treated as untyped input: prices and amounts arrive as
decimal strings and are parsed with Decimal before being turned into floats,
so the transport value is read without loss. A value that cannot be parsed
raises UpstreamDataError naming the field instead of leaking NaN downstream.
Timestamps are the exception: an unusable one becomes None (unknown time).
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, List, Optional, Sequence

from core.errors import UpstreamDataError
from core.pairs import ALLOWED_PAIRS, is_jpy_pair
from core.schemas import (
    DepthLevel,
    NormalizedCandle,
    NormalizedTicker,
    NormalizedTransaction,
    OrderBookSnapshot,
    TransactionSummary,
)
from core.utils.time import to_absolute_time, to_iso_time


BUY_DOMINANT_THRESHOLD = 60
SELL_DOMINANT_THRESHOLD = 40


# ============================================
# Field Parsing
# ============================================

def parse_decimal(value: Any, field: str) -> Decimal:
    """
    Parse a decimal string (or number) from the upstream payload.

    Raises:
        UpstreamDataError: value is missing, not numeric, or not finite
    """
    if value is None or isinstance(value, bool):
        raise UpstreamDataError(f"missing numeric field '{field}'")
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation:
        raise UpstreamDataError(f"unparseable numeric field '{field}': {value!r}") from None
    if not number.is_finite():
        raise UpstreamDataError(f"non-finite numeric field '{field}': {value!r}")
    return number


def parse_optional_decimal(value: Any, field: str) -> Optional[Decimal]:
    """Like parse_decimal, but an absent value (None or "") stays None."""
    if value is None or value == "":
        return None
    return parse_decimal(value, field)


def parse_timestamp(value: Any) -> Optional[int]:
    """Millisecond timestamp as int, None when it is absent or unusable."""
    if to_absolute_time(value) is None:
        return None
    return int(Decimal(str(value).strip()))


def _to_float(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


def _round_half_up(value: Decimal, places: int = 0) -> Decimal:
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def _change_pct(last: Optional[Decimal], open_: Optional[Decimal]) -> Optional[float]:
    if last is None or open_ is None or open_ <= 0:
        return None
    return float((last - open_) / open_ * 100)


# ============================================
# Tickers
# ============================================

def _ticker_fields(row: Any, pair: str) -> dict:
    if not isinstance(row, dict):
        raise UpstreamDataError("ticker entry is not an object", pair)
    return {
        name: parse_optional_decimal(row.get(key), key)
        for name, key in (
            ("last", "last"), ("buy", "buy"), ("sell", "sell"),
            ("open", "open"), ("high", "high"), ("low", "low"), ("volume", "vol"),
        )
    }


def _vol24h_jpy(pair: str, volume: Optional[Decimal], last: Optional[Decimal]) -> Optional[int]:
    if not is_jpy_pair(pair) or volume is None or last is None:
        return None
    return int(_round_half_up(volume * last))


def normalize_ticker(pair: str, data: Any) -> NormalizedTicker:
    """
    Normalize a /{pair}/ticker payload.

    change24h_pct is left unrounded here; the text summary rounds it.

    Example:
        >>> t = normalize_ticker("btc_jpy", {"open": "100", "last": "110", ...})
        >>> t.change24h_pct
        10.0
    """
    f = _ticker_fields(data, pair)
    timestamp = data.get("timestamp")
    spread = None
    if f["sell"] is not None and f["buy"] is not None:
        spread = float(f["sell"] - f["buy"])

    return NormalizedTicker(
        pair=pair,
        last=_to_float(f["last"]),
        buy=_to_float(f["buy"]),
        sell=_to_float(f["sell"]),
        open=_to_float(f["open"]),
        high=_to_float(f["high"]),
        low=_to_float(f["low"]),
        volume=_to_float(f["volume"]),
        timestamp=parse_timestamp(timestamp),
        iso_time=to_iso_time(timestamp),
        change24h_pct=_change_pct(f["last"], f["open"]),
        vol24h_jpy=_vol24h_jpy(pair, f["volume"], f["last"]),
        spread=spread,
    )


def _normalize_ticker_row(row: Any) -> NormalizedTicker:
    pair = row.get("pair") if isinstance(row, dict) else None
    if not isinstance(pair, str) or not pair:
        raise UpstreamDataError("ticker entry without pair", "tickers")
    f = _ticker_fields(row, pair)
    timestamp = row.get("timestamp")
    change = _change_pct(f["last"], f["open"])

    return NormalizedTicker(
        pair=pair,
        last=_to_float(f["last"]),
        buy=_to_float(f["buy"]),
        sell=_to_float(f["sell"]),
        open=_to_float(f["open"]),
        high=_to_float(f["high"]),
        low=_to_float(f["low"]),
        volume=_to_float(f["volume"]),
        timestamp=parse_timestamp(timestamp),
        iso_time=to_iso_time(timestamp),
        # ticker lists round at compute time, unlike normalize_ticker
        change24h_pct=round(change, 2) if change is not None else None,
        vol24h_jpy=_vol24h_jpy(pair, f["volume"], f["last"]),
    )


def _require_list(data: Any, context: str) -> list:
    if not isinstance(data, list):
        raise UpstreamDataError("expected a list of tickers", context)
    return data


def normalize_tickers(data: Any, market: str = "all") -> List[NormalizedTicker]:
    """
    Normalize a /tickers payload.

    Args:
        data: List of ticker rows, each carrying its pair
        market: "all", or "jpy" to keep only pairs quoted in JPY
    """
    items = [_normalize_ticker_row(row) for row in _require_list(data, "tickers")]
    if market == "jpy":
        items = [t for t in items if is_jpy_pair(t.pair)]
    return items


def normalize_tickers_jpy(data: Any) -> List[NormalizedTicker]:
    """
    Normalize a /tickers_jpy payload and drop pairs outside ALLOWED_PAIRS.

    The upstream query is not restricted; unsupported pairs are discarded
    after the fetch.
    """
    rows = _require_list(data, "tickers_jpy")
    for row in rows:
        if not isinstance(row, dict) or not isinstance(row.get("pair"), str):
            raise UpstreamDataError("ticker entry without pair", "tickers_jpy")
    return [_normalize_ticker_row(row) for row in rows if row["pair"] in ALLOWED_PAIRS]


# ============================================
# Candles
# ============================================

def normalize_candles(data: Any, limit: int) -> List[NormalizedCandle]:
    """
    Normalize a /{pair}/candlestick payload.

    Rows keep upstream (oldest first) order and only the last `limit` rows
    are kept. An empty list means bitbank has no candles for the
    date/type; it is not an error.

    Example:
        >>> rows = [[100, 110, 90, 105, 5, 1000], [105, 115, 95, 110, 7, 2000]]
        >>> normalize_candles({"candlestick": [{"ohlcv": rows}]}, 1)[0].close
        110.0
    """
    candlestick = data.get("candlestick") if isinstance(data, dict) else None
    ohlcv = []
    if isinstance(candlestick, list) and candlestick and isinstance(candlestick[0], dict):
        ohlcv = candlestick[0].get("ohlcv") or []
    if not isinstance(ohlcv, list):
        raise UpstreamDataError(f"malformed OHLCV list: {ohlcv!r}")

    rows = ohlcv[-limit:] if limit > 0 else []
    candles = []
    for row in rows:
        if not isinstance(row, (list, tuple)) or len(row) < 6:
            raise UpstreamDataError(f"malformed OHLCV row: {row!r}")
        open_, high, low, close, volume, ts = row[:6]
        candles.append(NormalizedCandle(
            open=float(parse_decimal(open_, "open")),
            high=float(parse_decimal(high, "high")),
            low=float(parse_decimal(low, "low")),
            close=float(parse_decimal(close, "close")),
            volume=float(parse_decimal(volume, "volume")),
            timestamp=parse_timestamp(ts),
            iso_time=to_iso_time(ts),
        ))
    return candles


# ============================================
# Order Book
# ============================================

def cumulative_levels(entries: Iterable[Sequence[Any]], levels: int) -> List[DepthLevel]:
    """
    Truncate to `levels` and attach the running amount total (8 dp).

    Example:
        >>> [l.total for l in cumulative_levels([["100", "2"], ["99", "3"]], 2)]
        [2.0, 5.0]
    """
    result = []
    running = Decimal(0)
    for entry in list(entries)[:levels]:
        if not isinstance(entry, (list, tuple)) or len(entry) < 2:
            raise UpstreamDataError(f"malformed depth level: {entry!r}")
        price = parse_decimal(entry[0], "price")
        amount = parse_decimal(entry[1], "amount")
        running += amount
        result.append(DepthLevel(
            price=float(price),
            amount=float(amount),
            total=float(_round_half_up(running, 8)),
        ))
    return result


def normalize_orderbook(pair: str, data: Any, levels: int) -> OrderBookSnapshot:
    """
    Normalize a /{pair}/depth payload into a truncated order book view.

    Best prices, spread and mid come from the truncated sides, not the full
    book.
    """
    if not isinstance(data, dict):
        raise UpstreamDataError("depth payload is not an object", pair)

    bids = cumulative_levels(data.get("bids") or [], levels)
    asks = cumulative_levels(data.get("asks") or [], levels)

    best_bid = bids[0].price if bids else None
    best_ask = asks[0].price if asks else None
    spread = mid = None
    if best_bid is not None and best_ask is not None:
        spread = best_ask - best_bid
        mid = (best_ask + best_bid) / 2

    timestamp = data.get("timestamp")
    sequence_id = data.get("sequenceId")
    return OrderBookSnapshot(
        pair=pair,
        best_bid=best_bid,
        best_ask=best_ask,
        spread=spread,
        mid=mid,
        bids=bids,
        asks=asks,
        timestamp=parse_timestamp(timestamp),
        iso_time=to_iso_time(timestamp),
        sequence_id=str(sequence_id) if sequence_id is not None else None,
    )


# ============================================
# Transactions
# ============================================

def normalize_transactions(data: Any, limit: int) -> List[NormalizedTransaction]:
    """
    Normalize a /{pair}/transactions payload.

    Upstream order is not trusted: trades are sorted ascending by
    executed_at, then the most recent `limit` are kept. Trades with an
    unusable executed_at sort first, so they are the first to be dropped.
    """
    raw = data.get("transactions") if isinstance(data, dict) else None
    if raw is not None and not isinstance(raw, list):
        raise UpstreamDataError(f"malformed transactions list: {raw!r}")
    txns = []
    for t in raw or []:
        if not isinstance(t, dict):
            raise UpstreamDataError(f"malformed transaction: {t!r}")
        side = t.get("side")
        if side not in ("buy", "sell"):
            raise UpstreamDataError(f"unknown transaction side: {side!r}")
        executed_at = t.get("executed_at")
        txns.append(NormalizedTransaction(
            transaction_id=int(parse_decimal(t.get("transaction_id"), "transaction_id")),
            side=side,
            price=float(parse_decimal(t.get("price"), "price")),
            amount=float(parse_decimal(t.get("amount"), "amount")),
            executed_at=parse_timestamp(executed_at),
            iso_time=to_iso_time(executed_at),
        ))

    txns.sort(key=lambda t: (t.executed_at is not None, t.executed_at or 0))
    return txns[-limit:] if limit > 0 else []


def dominance_label(buy_ratio: int) -> str:
    if buy_ratio >= BUY_DOMINANT_THRESHOLD:
        return "buy-dominant"
    if buy_ratio <= SELL_DOMINANT_THRESHOLD:
        return "sell-dominant"
    return "balanced"


def summarize_transactions(txns: Sequence[NormalizedTransaction]) -> TransactionSummary:
    """
    Buy/sell counts, buy share in whole percent and traded volume.

    Example:
        >>> summary = summarize_transactions(six_buys_four_sells)
        >>> summary.buy_ratio, summary.dominance
        (60, 'buy-dominant')
    """
    buys = sum(1 for t in txns if t.side == "buy")
    sells = sum(1 for t in txns if t.side == "sell")
    total = buys + sells
    buy_ratio = int(_round_half_up(Decimal(buys * 100) / Decimal(total))) if total else 0
    total_volume = sum((Decimal(str(t.amount)) for t in txns), Decimal(0))

    return TransactionSummary(
        count=len(txns),
        buys=buys,
        sells=sells,
        buy_ratio=buy_ratio,
        dominance=dominance_label(buy_ratio),
        total_volume=float(total_volume),
    )
