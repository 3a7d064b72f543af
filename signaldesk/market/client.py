"""Twelve Data market-data client with caching, pacing, and mock fallback.

Answers three questions — price for a symbol, quotes for a symbol set,
candles for a symbol — and never raises: an unconfigured key, an exhausted
daily budget, an HTTP failure, a vendor error payload, or a malformed
numeric field all resolve to deterministic mock data from
``signaldesk.market.mock_data``, at the smallest granularity possible
(per symbol inside a quote batch).
"""

import functools
import logging
import math
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx

from signaldesk.config import Config
from signaldesk.market.cache import TTLCache
from signaldesk.market.mock_data import mock_candles, mock_price, mock_quote
from signaldesk.market.models import CandleBar, Quote, SymbolInfo
from signaldesk.market.scheduler import RequestScheduler

logger = logging.getLogger("signaldesk.market")

T = TypeVar("T")

_INTERVAL_SECONDS = {
    "1min": 60,
    "5min": 300,
    "15min": 900,
    "30min": 1_800,
    "45min": 2_700,
    "1h": 3_600,
    "2h": 7_200,
    "4h": 14_400,
    "1day": 86_400,
    "1week": 604_800,
}


class VendorError(Exception):
    """The vendor answered, but with an error payload or unusable data."""


def should_use_mock(configured: bool, over_budget: bool) -> bool:
    """Single decision point for the mock data path."""
    return not configured or over_budget


async def with_fallback(
    call: Callable[[], Awaitable[T]],
    fallback: Callable[[], T],
    context: str,
) -> T:
    """Run a vendor *call*; on any exception return ``fallback()`` instead."""
    try:
        return await call()
    except Exception as exc:
        logger.warning("%s failed (%s) — using mock data", context, exc)
        return fallback()


def _to_float(value: Any) -> float:
    """Parse a vendor numeric field, rejecting blanks, NaN and infinities."""
    if value is None or value == "":
        raise ValueError("missing numeric field")
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"non-finite numeric field: {value!r}")
    return number


def _to_price(value: Any) -> float:
    price = _to_float(value)
    if price <= 0:
        raise ValueError(f"non-positive price: {value!r}")
    return price


def _to_volume(value: Any) -> int:
    try:
        return max(0, int(_to_float(value)))
    except (TypeError, ValueError):
        return 0


def _parse_quote(entry: Any, info: SymbolInfo) -> Optional[Quote]:
    """Build a live ``Quote`` from one vendor entry, or ``None`` if unusable."""
    if not isinstance(entry, dict) or entry.get("status") == "error":
        return None
    try:
        price = _to_price(entry.get("close") or entry.get("price"))
        change = _to_float(entry.get("change", 0) or 0)
        change_percent = _to_float(entry.get("percent_change", 0) or 0)
    except (TypeError, ValueError):
        return None
    return Quote(
        symbol=info.symbol,
        name=info.name,
        market=info.market,
        currency=info.currency,
        price=price,
        change=change,
        change_percent=change_percent,
        volume=_to_volume(entry.get("volume")),
        source="live",
    )


def _index_quote_payload(data: Any, batch: list[SymbolInfo]) -> dict[str, Any]:
    """Normalise the three quote response shapes into ``{symbol: entry}``.

    A one-symbol request returns the quote object itself; multi-symbol
    requests return a map keyed by symbol or, on some plans, an array.
    """
    if isinstance(data, list):
        return {
            row["symbol"]: row
            for row in data
            if isinstance(row, dict) and "symbol" in row
        }
    if not isinstance(data, dict):
        return {}
    if len(batch) == 1 and batch[0].symbol not in data:
        return {batch[0].symbol: data}
    return {key: value for key, value in data.items() if isinstance(value, dict)}


def _parse_bar(row: Any) -> Optional[CandleBar]:
    if not isinstance(row, dict):
        return None
    try:
        stamp = datetime.fromisoformat(str(row["datetime"]))
        if stamp.tzinfo is None:
            stamp = stamp.replace(tzinfo=timezone.utc)
        return CandleBar(
            time=int(stamp.timestamp()),
            open=_to_price(row.get("open")),
            high=_to_price(row.get("high")),
            low=_to_price(row.get("low")),
            close=_to_price(row.get("close")),
            volume=_to_volume(row.get("volume")),
        )
    except (KeyError, TypeError, ValueError):
        return None


class MarketDataClient:
    """Cached, rate-limited market-data access with silent mock fallback.

    Each instance owns its scheduler and cache; one instance corresponds to
    one vendor connection.

    Args:
        config: Application configuration.
        scheduler: Optional pre-built scheduler (tests inject a fake clock).
        cache: Optional pre-built cache.
    """

    def __init__(
        self,
        config: Config,
        scheduler: Optional[RequestScheduler] = None,
        cache: Optional[TTLCache] = None,
    ) -> None:
        self._config = config
        self._base_url = config.twelve_data_base_url
        self._api_key = config.twelve_data_api_key
        self._ttl = config.quote_cache_ttl_seconds
        self._batch_size = config.quote_batch_size
        self.scheduler = scheduler or RequestScheduler(
            min_interval=config.request_interval_seconds,
            daily_budget=config.daily_request_budget,
        )
        self.cache = cache if cache is not None else TTLCache()

    # ── State ────────────────────────────────────────────────────────────

    def _use_mock(self) -> bool:
        return should_use_mock(
            self._config.market_data_configured,
            self.scheduler.is_over_daily_limit(),
        )

    @property
    def data_source(self) -> str:
        """``"mock"`` while live data is unavailable, else ``"live"``."""
        return "mock" if self._use_mock() else "live"

    def status(self) -> dict:
        """Return the data-layer state for the status endpoint."""
        return {
            "data_source": self.data_source,
            "configured": self._config.market_data_configured,
            "cache_entries": len(self.cache),
            **self.scheduler.snapshot(),
        }

    # ── HTTP ─────────────────────────────────────────────────────────────

    async def _fetch(self, endpoint: str, params: dict) -> Any:
        """Throttle one GET against the vendor and return decoded JSON.

        Raises ``VendorError`` for ``{"status": "error"}`` payloads and lets
        ``httpx`` errors propagate; callers wrap this in the fallback.
        """
        url = f"{self._base_url}/{endpoint}"
        query = {**params, "apikey": self._api_key}

        async def _call():
            async with httpx.AsyncClient() as client:
                resp = await client.get(url, params=query)
            resp.raise_for_status()
            return resp.json()

        data = await self.scheduler.throttle(_call)
        if isinstance(data, dict) and data.get("status") == "error":
            raise VendorError(data.get("message") or "unknown vendor error")
        return data

    # ── Price ────────────────────────────────────────────────────────────

    async def get_price(self, symbol: str, market: str = "US") -> float:
        """Return the latest price for *symbol*."""
        cached = self.cache.get(f"price:{symbol}")
        if cached is not None:
            return cached
        quote = self.cache.get(f"quote:{symbol}")
        if quote is not None:
            return quote.price

        if self._use_mock():
            return mock_price(symbol, market)

        async def _live() -> float:
            data = await self._fetch("price", {"symbol": symbol})
            if not isinstance(data, dict):
                raise VendorError("unexpected price payload")
            price = _to_price(data.get("price"))
            self.cache.set(f"price:{symbol}", price, self._ttl)
            return price

        return await with_fallback(
            _live, lambda: mock_price(symbol, market), f"Price request for {symbol}"
        )

    # ── Quotes ───────────────────────────────────────────────────────────

    async def get_quotes(self, symbols: list[SymbolInfo]) -> list[Quote]:
        """Return one quote per input item, in input order.

        Cached symbols are served from the cache; the rest are requested in
        batches of ``quote_batch_size``.  Any symbol the vendor omits,
        reports an error for, or returns malformed gets mock data.
        """
        resolved: dict[str, Quote] = {}
        needed: list[SymbolInfo] = []
        seen: set[str] = set()

        for info in symbols:
            if info.symbol in seen:
                continue
            seen.add(info.symbol)
            cached = self.cache.get(f"quote:{info.symbol}")
            if cached is not None:
                resolved[info.symbol] = cached
            else:
                needed.append(info)

        if needed and not self._use_mock():
            for start in range(0, len(needed), self._batch_size):
                batch = needed[start:start + self._batch_size]
                if self.scheduler.is_over_daily_limit():
                    logger.warning(
                        "Daily request budget exhausted — %d symbol(s) use mock data",
                        len(needed) - start,
                    )
                    break
                fetched = await with_fallback(
                    functools.partial(self._fetch_quote_batch, batch),
                    dict,
                    f"Quote batch {','.join(i.symbol for i in batch)}",
                )
                resolved.update(fetched)

        for info in needed:
            if info.symbol not in resolved:
                resolved[info.symbol] = mock_quote(info)

        return [
            replace(
                resolved[info.symbol],
                name=info.name,
                market=info.market,
                currency=info.currency,
            )
            for info in symbols
        ]

    async def _fetch_quote_batch(self, batch: list[SymbolInfo]) -> dict[str, Quote]:
        data = await self._fetch("quote", {"symbol": ",".join(i.symbol for i in batch)})
        entries = _index_quote_payload(data, batch)

        quotes: dict[str, Quote] = {}
        for info in batch:
            quote = _parse_quote(entries.get(info.symbol), info)
            if quote is None:
                logger.debug("No usable quote for %s in batch response", info.symbol)
                continue
            self.cache.set(f"quote:{info.symbol}", quote, self._ttl)
            quotes[info.symbol] = quote
        return quotes

    # ── Candles ──────────────────────────────────────────────────────────

    async def get_candles(
        self,
        symbol: str,
        interval: str = "1day",
        size: int = 90,
        market: str = "US",
    ) -> list[CandleBar]:
        """Return up to *size* bars for *symbol*, ordered oldest-first."""
        interval_seconds = _INTERVAL_SECONDS.get(interval, 86_400)

        def _mock() -> list[CandleBar]:
            return mock_candles(symbol, market, size, interval_seconds)

        if self._use_mock():
            return _mock()

        async def _live() -> list[CandleBar]:
            data = await self._fetch(
                "time_series",
                {"symbol": symbol, "interval": interval, "outputsize": size},
            )
            rows = data.get("values") if isinstance(data, dict) else None
            bars = [bar for bar in map(_parse_bar, rows or []) if bar is not None]
            if not bars:
                raise VendorError("time series contained no usable values")
            # Vendor returns newest-first
            bars.sort(key=lambda bar: bar.time)
            return bars

        return await with_fallback(_live, _mock, f"Candle request for {symbol}")
