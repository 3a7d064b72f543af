"""Technical indicators — RSI, EMA, MACD, SMA, momentum, ATR, ADX, Bollinger,
stochastic.  Pure functions, no I/O.

Price-series functions take a list of closes (oldest first) and degrade to a
neutral value on short input.  Candle functions take ``CandleBar`` lists and
raise ``ValueError`` when there is not enough data.
"""

import math
from dataclasses import dataclass

from signaldesk.market.models import CandleBar


@dataclass(frozen=True)
class MACDResult:
    """MACD line, signal line and histogram (line − signal)."""

    macd: float
    signal: float
    histogram: float


# ── Price-series indicators ──────────────────────────────────────────────


def calculate_rsi(prices: list[float], period: int = 14) -> float:
    """Relative Strength Index from the first *period* deltas.

    Algorithm:
        1. delta = price[i] - price[i-1] for i in 1..period
        2. avg_gain / avg_loss = summed gains / losses ÷ period
        3. RSI = 100 - 100 / (1 + avg_gain / avg_loss)

    Returns 50 (neutral) when fewer than ``period + 1`` prices are given and
    100 when the average loss is zero.
    """
    if len(prices) < period + 1:
        return 50.0

    gains = 0.0
    losses = 0.0
    for i in range(1, period + 1):
        change = prices[i] - prices[i - 1]
        if change > 0:
            gains += change
        else:
            losses -= change

    avg_gain = gains / period
    avg_loss = losses / period
    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + rs)


def calculate_ema(prices: list[float], period: int) -> float:
    """Exponential Moving Average, seeded with the first price.

    ``EMA = (price - EMA_prev) × k + EMA_prev`` with ``k = 2 / (period + 1)``.
    Returns 0 for empty input.
    """
    if not prices:
        return 0.0
    k = 2.0 / (period + 1)
    ema = prices[0]
    for price in prices[1:]:
        ema = (price - ema) * k + ema
    return ema


def calculate_macd(prices: list[float]) -> MACDResult:
    """MACD = EMA12 − EMA26.

    The signal line is the simplified damped value ``macd × 0.9`` rather
    than a 9-period EMA of the MACD line; the evaluator's thresholds are
    calibrated against this shortcut.
    """
    macd = calculate_ema(prices, 12) - calculate_ema(prices, 26)
    signal = macd * 0.9
    return MACDResult(macd=macd, signal=signal, histogram=macd - signal)


def calculate_sma(prices: list[float], period: int) -> float:
    """Simple Moving Average of the last *period* prices.

    With fewer than *period* prices, averages everything available.
    Returns 0 for empty input.
    """
    if not prices:
        return 0.0
    if len(prices) < period:
        return sum(prices) / len(prices)
    window = prices[-period:]
    return sum(window) / period


def calculate_momentum(prices: list[float], period: int = 10) -> float:
    """Percent change between the latest price and the one *period* bars back.

    Uses the oldest available price when the series is shorter.  Returns 0
    when there is nothing to compare.
    """
    if len(prices) < 2:
        return 0.0
    reference = prices[-period - 1] if len(prices) > period else prices[0]
    if reference == 0:
        return 0.0
    return (prices[-1] - reference) / reference * 100.0


# ── Candle indicators ────────────────────────────────────────────────────


def _true_ranges(candles: list[CandleBar]) -> list[float]:
    return [
        max(
            candles[i].high - candles[i].low,
            abs(candles[i].high - candles[i - 1].close),
            abs(candles[i].low - candles[i - 1].close),
        )
        for i in range(1, len(candles))
    ]


def calculate_atr(candles: list[CandleBar], period: int = 14) -> float:
    """Average True Range — simple average of the last *period* true ranges.

    ``TR = max(high - low, |high - prev_close|, |low - prev_close|)``

    Requires at least ``period + 1`` candles.
    """
    if len(candles) < period + 1:
        raise ValueError(
            f"Need at least {period + 1} candles for ATR({period}), "
            f"got {len(candles)}"
        )
    recent = _true_ranges(candles)[-period:]
    return sum(recent) / len(recent)


def calculate_adx(candles: list[CandleBar], period: int = 14) -> float:
    """Latest Average Directional Index (Wilder).

    Algorithm:
        1. +DM / -DM directional movement per bar.
        2. Wilder-smooth +DM, -DM, and TR over *period*.
        3. DX = 100 × |+DI − −DI| / (+DI + −DI)
        4. ADX = Wilder-smoothed DX over *period*.

    Requires at least ``2 × period + 1`` candles.
    """
    min_candles = 2 * period + 1
    if len(candles) < min_candles:
        raise ValueError(
            f"Need at least {min_candles} candles for ADX({period}), "
            f"got {len(candles)}"
        )

    plus_dm: list[float] = []
    minus_dm: list[float] = []
    for prev, bar in zip(candles, candles[1:]):
        up_move = bar.high - prev.high
        down_move = prev.low - bar.low
        plus_dm.append(up_move if up_move > down_move and up_move > 0 else 0.0)
        minus_dm.append(down_move if down_move > up_move and down_move > 0 else 0.0)
    tr = _true_ranges(candles)

    def _dx(s_pdm: float, s_mdm: float, s_tr: float) -> float:
        if s_tr == 0:
            return 0.0
        plus_di = 100.0 * s_pdm / s_tr
        minus_di = 100.0 * s_mdm / s_tr
        di_sum = plus_di + minus_di
        if di_sum == 0:
            return 0.0
        return 100.0 * abs(plus_di - minus_di) / di_sum

    s_pdm = sum(plus_dm[:period])
    s_mdm = sum(minus_dm[:period])
    s_tr = sum(tr[:period])
    dx_values = [_dx(s_pdm, s_mdm, s_tr)]
    for i in range(period, len(tr)):
        s_pdm = s_pdm - s_pdm / period + plus_dm[i]
        s_mdm = s_mdm - s_mdm / period + minus_dm[i]
        s_tr = s_tr - s_tr / period + tr[i]
        dx_values.append(_dx(s_pdm, s_mdm, s_tr))

    adx = sum(dx_values[:period]) / period
    for dx in dx_values[period:]:
        adx = (adx * (period - 1) + dx) / period
    return adx


def calculate_bollinger(
    candles: list[CandleBar],
    period: int = 20,
    std_dev: float = 2.0,
) -> tuple[float, float, float]:
    """Latest Bollinger Bands as ``(upper, middle, lower)``.

    Middle = SMA(close, *period*); upper/lower = middle ± *std_dev* × σ
    (population standard deviation).  Requires at least *period* candles.
    """
    if len(candles) < period:
        raise ValueError(
            f"Need at least {period} candles for Bollinger({period}), "
            f"got {len(candles)}"
        )
    window = [c.close for c in candles[-period:]]
    middle = sum(window) / period
    sigma = math.sqrt(sum((x - middle) ** 2 for x in window) / period)
    return middle + std_dev * sigma, middle, middle - std_dev * sigma


def calculate_stochastic(candles: list[CandleBar], period: int = 14) -> float:
    """Fast stochastic %K over the last *period* candles (0–100).

    Returns 50 when the range is flat.  Requires at least *period* candles.
    """
    if len(candles) < period:
        raise ValueError(
            f"Need at least {period} candles for Stochastic({period}), "
            f"got {len(candles)}"
        )
    window = candles[-period:]
    highest = max(c.high for c in window)
    lowest = min(c.low for c in window)
    if highest == lowest:
        return 50.0
    return (window[-1].close - lowest) / (highest - lowest) * 100.0
