"""
Freshness Cache

A single-slot, time-to-live cache. It guards the JPY tickers endpoint, which
agents tend to poll far more often than the market moves.

Behaviour:
    - get() returns the stored items while now - captured_at < ttl
    - store() replaces the slot whole; entries are never partially updated
    - get_or_refresh() serves a fresh entry or runs the loader and stores its result

Concurrency:
    Two callers that both see a stale slot may both run the loader; the last
    writer wins. No lock is taken: every stored value is at most one TTL old.

The clock is injected (epoch milliseconds) so tests control time directly.
"""

from typing import Awaitable, Callable, List, Optional, Tuple

from core.logging import get_logger
from core.schemas import CacheEntry, NormalizedTicker
from core.utils.time import current_utc_timestamp

logger = get_logger(__name__)


def _wall_clock_ms() -> int:
    return current_utc_timestamp(milliseconds=True)


class FreshnessCache:
    """
    Single-entry TTL cache.

    Attributes:
        ttl_ms: Freshness window in milliseconds
        entry: The stored CacheEntry, None when empty

    Example:
        >>> cache = FreshnessCache(ttl_ms=10_000)
        >>> items, cached = await cache.get_or_refresh(load_jpy_tickers)
    """

    def __init__(self, ttl_ms: int, clock: Optional[Callable[[], int]] = None, name: str = "cache"):
        self.ttl_ms = ttl_ms
        self.name = name
        self._clock = clock or _wall_clock_ms
        self.entry: Optional[CacheEntry] = None

    def get(self) -> Tuple[Optional[List[NormalizedTicker]], bool]:
        """Return (items, True) when a fresh entry exists, else (None, False)."""
        if self.entry is None:
            return None, False
        if self._clock() - self.entry.captured_at_epoch_ms < self.ttl_ms:
            return self.entry.items, True
        return None, False

    def store(self, items: List[NormalizedTicker]) -> CacheEntry:
        """Overwrite the slot with a new entry stamped with the current time."""
        self.entry = CacheEntry(captured_at_epoch_ms=self._clock(), items=list(items))
        logger.debug(f"{self.name}: stored {len(self.entry.items)} item(s) at {self.entry.captured_at_epoch_ms}")
        return self.entry

    def clear(self) -> None:
        self.entry = None

    async def get_or_refresh(
        self, loader: Callable[[], Awaitable[List[NormalizedTicker]]]
    ) -> Tuple[List[NormalizedTicker], bool]:
        """
        Serve the fresh entry or refresh it.

        Returns:
            (items, cached) where cached is True when no load happened

        A failing loader leaves the previous entry untouched.
        """
        items, fresh = self.get()
        if fresh:
            logger.debug(f"{self.name}: hit ({len(items)} item(s))")
            return items, True

        items = await loader()
        return self.store(items).items, False
