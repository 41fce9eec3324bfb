"""
bitbank Public REST API Client

This module provides an async HTTP client for the bitbank public API.
It handles:
- Bounded per-attempt timeouts (each attempt is cancelled on expiry)
- Exponential backoff retry for transport failures (timeout, non-2xx, connection)
- The {"success": 1, "data": ...} envelope check, which is never retried
- Per-endpoint timeouts sized to the expected payload

API Documentation:
    https://github.com/bitbankinc/bitbank-api-docs/blob/master/public-api.md

Retry Policy:
    attempts = retries + 1 (default 3)
    wait before retry i = backoff_base * 2**i (0.2s, 0.4s, ...), no jitter
    after the last failure the last error is raised unchanged, so callers can
    tell RequestTimeoutError, HTTPStatusError and ConnectionFailedError apart

Usage:
    async with BitbankAPIClient() as client:
        ticker = await client.get_ticker("btc_jpy")
        depth = await client.get_depth("btc_jpy")
"""

import aiohttp
import asyncio
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from core.config import settings
from core.errors import (
    ConnectionFailedError,
    HTTPStatusError,
    RequestTimeoutError,
    TransportError,
    UpstreamDataError,
)
from core.logging import get_logger, log_api_request, log_api_response
from core.pairs import ensure_pair


class FetchState(str, Enum):
    """States of the bounded retry loop in fetch_json()."""

    ATTEMPTING = "attempting"
    BACKOFF_WAIT = "backoff_wait"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


def unwrap_envelope(payload: Any, context: str = "") -> Any:
    """
    Return payload["data"] when the bitbank envelope reports success.

    Raises:
        UpstreamDataError: success != 1, or the envelope/data is missing

    Example:
        >>> unwrap_envelope({"success": 1, "data": {"last": "1"}})
        {'last': '1'}
    """
    if not isinstance(payload, dict):
        raise UpstreamDataError("malformed response envelope", context)

    success = payload.get("success")
    if isinstance(success, bool) or success != 1:
        data = payload.get("data")
        code = data.get("code") if isinstance(data, dict) else None
        message = "no data available"
        if code is not None:
            message += f" [bitbank error code {code}]"
        raise UpstreamDataError(message, context)

    if payload.get("data") is None:
        raise UpstreamDataError("response has no data", context)

    return payload["data"]


class BitbankAPIClient:
    """
    Async HTTP client for the bitbank public REST API.

    Attributes:
        base_url: API base URL
        retries: Retries after the first attempt
        backoff_base: First backoff delay in seconds
        session: aiohttp ClientSession, created on context enter

    Example:
        >>> async with BitbankAPIClient() as client:
        ...     data = await client.get_candlestick("btc_jpy", "1hour", "20240101")

    Notes:
        - Pairs are validated again here; nothing unvalidated reaches a URL
        - `sleep` is injectable so retry timing can be tested without waiting
    """

    EXCHANGE = "bitbank"

    def __init__(
        self,
        base_url: Optional[str] = None,
        retries: Optional[int] = None,
        backoff_base: Optional[float] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.base_url = (base_url or settings.bitbank_base_url).rstrip("/")
        self.retries = settings.request_retries if retries is None else retries
        self.backoff_base = settings.retry_backoff_base if backoff_base is None else backoff_base
        self._sleep = sleep or asyncio.sleep
        self.logger = get_logger(__name__)
        self.session: Optional[aiohttp.ClientSession] = None

    # ============================================
    # Context Manager for Session Management
    # ============================================

    async def __aenter__(self):
        self.session = aiohttp.ClientSession()
        self.logger.debug("BitbankAPIClient session created")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.session:
            await self.session.close()
            self.session = None
            self.logger.debug("BitbankAPIClient session closed")

    # ============================================
    # HTTP Request Handling with Retry Logic
    # ============================================

    async def _request_once(self, url: str, timeout_ms: int) -> Any:
        """
        Perform a single GET attempt and decode the JSON body.

        Raises:
            RequestTimeoutError: The attempt exceeded timeout_ms and was cancelled
            HTTPStatusError: Status outside 2xx
            ConnectionFailedError: Transport failure or undecodable body
        """
        if not self.session:
            raise RuntimeError("Client session not initialized. Use 'async with' statement.")

        timeout = aiohttp.ClientTimeout(total=timeout_ms / 1000)
        started = time.monotonic()

        try:
            async with self.session.get(url, timeout=timeout) as resp:
                log_api_response(self.EXCHANGE, url, resp.status, time.monotonic() - started)

                if not 200 <= resp.status < 300:
                    raise HTTPStatusError(resp.status, resp.reason or "", url)

                try:
                    return await resp.json(content_type=None)
                except ValueError as e:
                    raise ConnectionFailedError(f"Invalid JSON body from {url}: {e}") from e

        except asyncio.TimeoutError as e:
            raise RequestTimeoutError(f"Request timed out after {timeout_ms}ms: {url}") from e
        except aiohttp.ClientError as e:
            raise ConnectionFailedError(str(e) or e.__class__.__name__) from e

    async def fetch_json(self, url: str, timeout_ms: int = 2500, retries: Optional[int] = None) -> Any:
        """
        GET a URL and return decoded JSON, retrying transport failures.

        Args:
            url: Absolute URL
            timeout_ms: Per-attempt timeout in milliseconds
            retries: Retries after the first attempt (defaults to the client's)

        Returns:
            Decoded JSON body

        Raises:
            TransportError: The error of the last attempt, unchanged
        """
        retries = self.retries if retries is None else retries
        total = retries + 1

        state = FetchState.ATTEMPTING
        attempt = 0
        result: Any = None
        last_error: Optional[TransportError] = None

        while True:
            if state is FetchState.ATTEMPTING:
                log_api_request(self.EXCHANGE, url, attempt + 1)
                try:
                    result = await self._request_once(url, timeout_ms)
                    state = FetchState.SUCCEEDED
                except TransportError as e:
                    last_error = e
                    state = FetchState.BACKOFF_WAIT if attempt < retries else FetchState.EXHAUSTED

            elif state is FetchState.BACKOFF_WAIT:
                delay = self.backoff_base * (2 ** attempt)
                self.logger.warning(
                    f"{last_error.__class__.__name__} on {url}: {last_error}. "
                    f"Retrying in {delay:.1f}s... (attempt {attempt + 1}/{total})"
                )
                await self._sleep(delay)
                attempt += 1
                state = FetchState.ATTEMPTING

            elif state is FetchState.SUCCEEDED:
                self.logger.debug(f"GET {url} - Success (attempt {attempt + 1}/{total})")
                return result

            else:
                self.logger.error(f"GET {url} failed after {total} attempt(s): {last_error}")
                raise last_error

    async def _get(self, path: str, timeout_ms: int, context: str) -> Any:
        """Fetch `path` and return the envelope's data member."""
        payload = await self.fetch_json(f"{self.base_url}{path}", timeout_ms=timeout_ms)
        return unwrap_envelope(payload, context)

    # ============================================
    # API Methods
    # ============================================

    async def get_ticker(self, pair: str) -> Any:
        """
        Fetch the 24h ticker for one pair.

        bitbank Endpoint:
            GET /{pair}/ticker

        Response Format:
            {"success": 1, "data": {"sell": "15351000", "buy": "15349000",
             "high": "...", "low": "...", "open": "...", "last": "...",
             "vol": "123.4567", "timestamp": 1704110400000}}
        """
        pair = ensure_pair(pair).raise_for_error()
        self.logger.info(f"Fetching ticker: {pair}")
        return await self._get(f"/{pair}/ticker", settings.ticker_timeout_ms, pair)

    async def get_tickers(self) -> Any:
        """
        Fetch tickers for every pair.

        bitbank Endpoint:
            GET /tickers  -> data: [{"pair": "btc_jpy", ...ticker fields}, ...]
        """
        self.logger.info("Fetching all tickers")
        return await self._get("/tickers", settings.tickers_timeout_ms, "tickers")

    async def get_tickers_jpy(self) -> Any:
        """
        Fetch tickers for every JPY-quoted pair (unfiltered by allow-list).

        bitbank Endpoint:
            GET /tickers_jpy
        """
        self.logger.info("Fetching JPY tickers")
        return await self._get("/tickers_jpy", settings.tickers_timeout_ms, "tickers_jpy")

    async def get_candlestick(self, pair: str, candle_type: str, date: str) -> Any:
        """
        Fetch candlesticks for one pair, type and date (YYYY or YYYYMMDD).

        bitbank Endpoint:
            GET /{pair}/candlestick/{type}/{date}

        Response Format:
            {"success": 1, "data": {"candlestick": [{"type": "1hour",
             "ohlcv": [["open", "high", "low", "close", "volume", 1704067200000], ...]}]}}
        """
        pair = ensure_pair(pair).raise_for_error()
        self.logger.info(f"Fetching candles: {pair} {candle_type} {date}")
        return await self._get(
            f"/{pair}/candlestick/{candle_type}/{date}",
            settings.candles_timeout_ms,
            f"{pair}/{candle_type}/{date}",
        )

    async def get_depth(self, pair: str) -> Any:
        """
        Fetch the full order book for one pair.

        bitbank Endpoint:
            GET /{pair}/depth

        Response Format:
            {"success": 1, "data": {"asks": [["price", "amount"], ...],
             "bids": [["price", "amount"], ...], "timestamp": 1704110400000,
             "sequenceId": "123456"}}
        """
        pair = ensure_pair(pair).raise_for_error()
        self.logger.info(f"Fetching depth: {pair}")
        return await self._get(f"/{pair}/depth", settings.depth_timeout_ms, pair)

    async def get_transactions(self, pair: str, date: Optional[str] = None) -> Any:
        """
        Fetch recent trades, or the trades of one day (YYYYMMDD).

        bitbank Endpoint:
            GET /{pair}/transactions
            GET /{pair}/transactions/{date}

        Response Format:
            {"success": 1, "data": {"transactions": [{"transaction_id": 1,
             "side": "buy", "price": "15350000", "amount": "0.01",
             "executed_at": 1704110400000}, ...]}}
        """
        pair = ensure_pair(pair).raise_for_error()
        path = f"/{pair}/transactions/{date}" if date else f"/{pair}/transactions"
        self.logger.info(f"Fetching transactions: {pair}" + (f" {date}" if date else ""))
        return await self._get(path, settings.transactions_timeout_ms, f"{pair}/{date}" if date else pair)
