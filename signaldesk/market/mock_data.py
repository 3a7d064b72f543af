"""Deterministic synthetic market data — pure functions, no I/O.

Used whenever live data is unavailable (no API key, exhausted daily budget,
vendor failure).  Every value is derived from the symbol string through a
linear-congruential stream, so the same symbol always produces the same
baseline price within a run.  Nothing in this module raises.
"""

import time
from typing import Optional

from signaldesk.market.models import CandleBar, Quote, SymbolInfo, default_currency

_LCG_MULTIPLIER = 1103515245
_LCG_INCREMENT = 12345
_LCG_MODULUS = 2 ** 31


def symbol_seed(symbol: str) -> int:
    """Sum of the symbol's character codes."""
    return sum(ord(ch) for ch in symbol or "")


class SeededStream:
    """Linear-congruential generator yielding floats in ``[0, 1)``."""

    def __init__(self, seed: int) -> None:
        self._state = seed % _LCG_MODULUS

    def next(self) -> float:
        self._state = (self._state * _LCG_MULTIPLIER + _LCG_INCREMENT) % _LCG_MODULUS
        return self._state / _LCG_MODULUS

    def between(self, low: float, high: float) -> float:
        """Return a value in ``[low, high)``."""
        return low + self.next() * (high - low)


def _price_band(symbol: str, market: str) -> tuple[float, float]:
    upper = symbol.upper()
    if market == "CRYPTO":
        if upper.startswith("BTC"):
            return 60_000.0, 100_000.0
        if upper.startswith("ETH"):
            return 2_000.0, 5_000.0
        return 0.2, 200.0
    if market == "INDEX":
        return 1_000.0, 40_000.0
    if market == "COMMODITY":
        if "XAU" in upper:
            return 1_800.0, 3_200.0
        return 10.0, 130.0
    if market == "TR":
        return 10.0, 510.0
    return 30.0, 530.0


def _round_price(value: float) -> float:
    return round(value, 4 if value < 1.0 else 2)


def mock_price(symbol: str, market: str) -> float:
    """Stable pseudo-price for *symbol* inside its market's price band."""
    low, high = _price_band(symbol, market)
    stream = SeededStream(symbol_seed(symbol))
    return _round_price(stream.between(low, high))


def mock_quote(info: SymbolInfo) -> Quote:
    """Synthesize a full quote for *info*.

    The first draw of the seeded stream gives the price (identical to
    :func:`mock_price`), the second the percent change (symmetric, within
    ±3 %), the third the traded volume.
    """
    low, high = _price_band(info.symbol, info.market)
    stream = SeededStream(symbol_seed(info.symbol))
    price = _round_price(stream.between(low, high))
    change_percent = round(stream.between(-3.0, 3.0), 2)
    change = round(price * change_percent / 100.0, 2 if price >= 1.0 else 6)
    volume = int(stream.between(500_000, 50_000_000))
    return Quote(
        symbol=info.symbol,
        name=info.name,
        market=info.market,
        currency=info.currency or default_currency(info.market),
        price=price,
        change=change,
        change_percent=change_percent,
        volume=volume,
        source="mock",
    )


def mock_candles(
    symbol: str,
    market: str = "US",
    count: int = 90,
    interval_seconds: int = 86_400,
    end_time: Optional[int] = None,
) -> list[CandleBar]:
    """Synthesize *count* bars ordered oldest → newest.

    Each bar applies a symmetric multiplicative step (±1.5 %) to the previous
    close, then widens high/low by up to 1 % so that
    ``high >= max(open, close)`` and ``low <= min(open, close)`` always hold.
    """
    if count <= 0:
        return []
    if interval_seconds <= 0:
        interval_seconds = 86_400
    if end_time is None:
        end_time = int(time.time())
    end_time -= end_time % interval_seconds

    base = mock_price(symbol, market)
    digits = 4 if base < 10.0 else 2
    stream = SeededStream(symbol_seed(symbol) + count)
    price = base
    bars: list[CandleBar] = []

    for i in range(count):
        open_ = price
        close = max(open_ * (1.0 + stream.between(-0.015, 0.015)), 10 ** -digits)
        high = max(open_, close) * (1.0 + stream.next() * 0.01)
        low = max(min(open_, close) * (1.0 - stream.next() * 0.01), 10 ** -digits)
        bars.append(
            CandleBar(
                time=end_time - (count - 1 - i) * interval_seconds,
                open=round(open_, digits),
                high=round(high, digits),
                low=round(low, digits),
                close=round(close, digits),
                volume=int(stream.between(100_000, 10_000_000)),
            )
        )
        price = close
    return bars
