"""Signal synthesizer — price + indicators → BUY / SELL / HOLD signal.

Indicators come from real price history when more than 14 points are
available and from a seeded synthetic set otherwise, so the rest of the
pipeline keeps working before enough history accumulates.  All
"randomness" (synthetic indicators, HOLD confidence, target/stop jitter) is
drawn from a ``SeededStream`` keyed on symbol and price, so an analysis is
reproducible.
"""

import logging
from dataclasses import replace
from typing import Optional

from signaldesk.market.mock_data import SeededStream, symbol_seed
from signaldesk.market.models import CandleBar
from signaldesk.strategy.indicators import (
    calculate_adx,
    calculate_atr,
    calculate_bollinger,
    calculate_ema,
    calculate_macd,
    calculate_momentum,
    calculate_rsi,
    calculate_sma,
    calculate_stochastic,
)
from signaldesk.strategy.models import Signal, TechnicalIndicatorSet, confidence_level
from signaldesk.strategy.narrative import (
    NarrativeProvider,
    build_prompt,
    fallback_narrative,
    generate_narrative,
)

logger = logging.getLogger("signaldesk.strategy")

MIN_HISTORY_POINTS = 15
MIN_CANDLES_FOR_TREND = 29  # ADX(14) needs 2 × 14 + 1 bars

# Weight available to one side: RSI 1 + MACD 1 + SMA50 1 + SMA20 (ADX-gated) 0.5
# + Bollinger 1, rounded up to 5.
_TOTAL_WEIGHT = 5.0
_DOMINANCE_RATIO = 0.6
_MAX_CONFIDENCE = 95.0


def analysis_stream(symbol: str, price: float) -> SeededStream:
    """Seeded stream for one (symbol, price) analysis."""
    return SeededStream(symbol_seed(symbol) * 31 + int(round(price * 100)))


def synthetic_indicators(price: float, stream: SeededStream) -> TechnicalIndicatorSet:
    """Plausible indicator values anchored to *price*."""
    rsi = stream.between(25.0, 80.0)
    macd = stream.between(-1.0, 1.0)
    macd_signal = macd + stream.between(-0.2, 0.2)
    adx = stream.between(15.0, 70.0)
    sma20 = price * stream.between(0.95, 1.05)
    sma50 = price * stream.between(0.90, 1.10)
    sma200 = price * stream.between(0.85, 1.15)
    ema20 = price * stream.between(0.96, 1.04)
    bb_middle = price * stream.between(0.97, 1.03)
    bb_band = bb_middle * 0.02
    return TechnicalIndicatorSet(
        rsi=rsi,
        macd=macd,
        macd_signal=macd_signal,
        macd_histogram=macd - macd_signal,
        sma20=sma20,
        sma50=sma50,
        sma200=sma200,
        ema20=ema20,
        bollinger_upper=bb_middle + bb_band,
        bollinger_middle=bb_middle,
        bollinger_lower=bb_middle - bb_band,
        adx=adx,
        atr=price * 0.015,
        stochastic=stream.between(20.0, 80.0),
        momentum=stream.between(-4.0, 4.0),
    )


def build_indicators(
    price: float,
    stream: SeededStream,
    price_history: Optional[list[float]] = None,
    candles: Optional[list[CandleBar]] = None,
) -> TechnicalIndicatorSet:
    """Start from the synthetic set and override what the data supports.

    More than 14 history points replace RSI, the MACD trio, SMA20, SMA50,
    EMA20 and momentum (SMA200 too with 200+ points).  With at least 29
    candles, ADX, ATR, Bollinger Bands and stochastic are computed as well.
    """
    indicators = synthetic_indicators(price, stream)
    if price_history is None and candles:
        price_history = [bar.close for bar in candles]

    overrides: dict[str, float] = {}
    if price_history and len(price_history) >= MIN_HISTORY_POINTS:
        macd = calculate_macd(price_history)
        overrides.update(
            rsi=calculate_rsi(price_history),
            macd=macd.macd,
            macd_signal=macd.signal,
            macd_histogram=macd.histogram,
            sma20=calculate_sma(price_history, 20),
            sma50=calculate_sma(price_history, 50),
            ema20=calculate_ema(price_history, 20),
            momentum=calculate_momentum(price_history),
        )
        if len(price_history) >= 200:
            overrides["sma200"] = calculate_sma(price_history, 200)

    if candles and len(candles) >= MIN_CANDLES_FOR_TREND:
        upper, middle, lower = calculate_bollinger(candles)
        overrides.update(
            adx=calculate_adx(candles),
            atr=calculate_atr(candles),
            bollinger_upper=upper,
            bollinger_middle=middle,
            bollinger_lower=lower,
            stochastic=calculate_stochastic(candles),
        )

    return replace(indicators, **overrides)


def determine_direction(
    indicators: TechnicalIndicatorSet,
    price: float,
    stream: SeededStream,
) -> tuple[str, float]:
    """Weighted buy-vs-sell vote.

    A side wins when its share of the total possible weight exceeds 0.6;
    confidence is then ``50 + ratio × 50`` (capped at 95).  Otherwise the
    result is HOLD with a confidence in ``[40, 60)``.
    """
    buy = 0.0
    sell = 0.0

    if indicators.rsi < 30:
        buy += 1.0
    elif indicators.rsi > 70:
        sell += 1.0
    elif indicators.rsi < 45:
        buy += 0.5
    elif indicators.rsi > 55:
        sell += 0.5

    if indicators.macd > indicators.macd_signal:
        buy += 1.0
    else:
        sell += 1.0

    if price > indicators.sma50:
        buy += 1.0
    else:
        sell += 1.0

    if indicators.adx > 25:
        if price > indicators.sma20:
            buy += 0.5
        else:
            sell += 0.5

    if price < indicators.bollinger_lower:
        buy += 1.0
    elif price > indicators.bollinger_upper:
        sell += 1.0

    if buy + sell == 0:
        return "HOLD", 50.0

    buy_ratio = buy / _TOTAL_WEIGHT
    sell_ratio = sell / _TOTAL_WEIGHT
    if buy_ratio > _DOMINANCE_RATIO:
        return "BUY", min(_MAX_CONFIDENCE, 50.0 + buy_ratio * 50.0)
    if sell_ratio > _DOMINANCE_RATIO:
        return "SELL", min(_MAX_CONFIDENCE, 50.0 + sell_ratio * 50.0)
    return "HOLD", stream.between(40.0, 60.0)


def price_levels(direction: str, price: float, stream: SeededStream) -> tuple[float, float]:
    """Return ``(target_price, stop_loss)`` for *direction*.

    BUY:  target 5–15 % above, stop 5–8 % below.
    SELL: target 5–10 % below, stop 5–8 % above.
    HOLD: target 2–4 % above, stop 2–4 % below.
    """
    if direction == "BUY":
        target = price * stream.between(1.05, 1.15)
        stop = price * (1.0 - stream.between(0.05, 0.08))
    elif direction == "SELL":
        target = price * (1.0 - stream.between(0.05, 0.10))
        stop = price * stream.between(1.05, 1.08)
    else:
        target = price * stream.between(1.02, 1.04)
        stop = price * (1.0 - stream.between(0.02, 0.04))
    digits = 4 if price >= 1.0 else 8
    return round(target, digits), round(stop, digits)


class SignalSynthesizer:
    """Builds ``Signal`` objects, optionally enriched by a narrative provider.

    Args:
        narrative_provider: Optional language-model backend.  ``None`` means
            the templated narrative is always used.
    """

    def __init__(self, narrative_provider: Optional[NarrativeProvider] = None) -> None:
        self._narrative = narrative_provider

    async def analyze(
        self,
        symbol: str,
        name: str,
        market: str,
        price: float,
        price_history: Optional[list[float]] = None,
        candles: Optional[list[CandleBar]] = None,
        data_source: str = "live",
    ) -> Signal:
        """Analyze one instrument and return its signal."""
        stream = analysis_stream(symbol, price)
        indicators = build_indicators(price, stream, price_history, candles)
        direction, confidence = determine_direction(indicators, price, stream)
        target_price, stop_loss = price_levels(direction, price, stream)

        prompt = build_prompt(
            symbol, name, market, price, direction, indicators, target_price, stop_loss,
        )
        narrative = await generate_narrative(
            self._narrative,
            prompt,
            fallback_narrative(symbol, name, direction, price, indicators),
        )

        logger.debug(
            "%s → %s (confidence %.1f, RSI %.1f, ADX %.1f)",
            symbol, direction, confidence, indicators.rsi, indicators.adx,
        )
        return Signal(
            symbol=symbol,
            name=name,
            market=market,
            direction=direction,
            confidence=confidence,
            confidence_level=confidence_level(confidence),
            price=price,
            target_price=target_price,
            stop_loss=stop_loss,
            reasoning=narrative.reasoning,
            technical_summary=narrative.technical_summary,
            fundamental_summary=narrative.fundamental_summary,
            indicators=indicators,
            data_source=data_source,
        )
