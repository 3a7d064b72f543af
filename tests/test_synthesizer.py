"""Tests for signaldesk.strategy.synthesizer — direction vote, levels, analysis."""

from dataclasses import replace

import pytest

from signaldesk.market.mock_data import SeededStream, mock_candles, mock_price
from signaldesk.market.models import all_default_symbols
from signaldesk.strategy.indicators import calculate_adx, calculate_rsi, calculate_sma
from signaldesk.strategy.models import TechnicalIndicatorSet
from signaldesk.strategy.synthesizer import (
    SignalSynthesizer,
    analysis_stream,
    build_indicators,
    determine_direction,
    price_levels,
    synthetic_indicators,
)


def _indicators(**overrides) -> TechnicalIndicatorSet:
    base = TechnicalIndicatorSet(
        rsi=50.0,
        macd=0.0,
        macd_signal=0.0,
        macd_histogram=0.0,
        sma20=100.0,
        sma50=100.0,
        sma200=100.0,
        ema20=100.0,
        bollinger_upper=110.0,
        bollinger_middle=100.0,
        bollinger_lower=90.0,
        adx=20.0,
        atr=1.5,
        stochastic=50.0,
        momentum=0.0,
    )
    return replace(base, **overrides)


class TestDetermineDirection:
    def test_strong_buy_caps_confidence(self):
        ind = _indicators(rsi=25.0, macd=1.0, macd_signal=0.5, sma50=80.0, sma20=85.0, adx=30.0, bollinger_lower=101.0)
        direction, confidence = determine_direction(ind, 100.0, SeededStream(1))
        assert direction == "BUY"
        assert confidence == pytest.approx(95.0)

    def test_sell_ratio_confidence(self):
        ind = _indicators(rsi=75.0, macd=0.5, macd_signal=1.0, sma50=120.0, sma20=110.0, adx=30.0)
        direction, confidence = determine_direction(ind, 100.0, SeededStream(1))
        assert direction == "SELL"
        assert confidence == pytest.approx(85.0)

    def test_split_vote_is_hold(self):
        ind = _indicators(macd=0.5, macd_signal=1.0, sma50=90.0)
        direction, confidence = determine_direction(ind, 100.0, SeededStream(3))
        assert direction == "HOLD"
        assert 40.0 <= confidence < 60.0

    def test_ratio_must_exceed_threshold(self):
        # buy = 0.5 (RSI) + 1 (MACD) + 1 (SMA50) + 0.5 (SMA20) = 3.0 → exactly 0.6
        ind = _indicators(rsi=40.0, macd=1.0, macd_signal=0.5, sma50=90.0, sma20=95.0, adx=30.0)
        direction, _ = determine_direction(ind, 100.0, SeededStream(5))
        assert direction == "HOLD"


class TestPriceLevels:
    @pytest.mark.parametrize("seed", range(20))
    def test_buy_levels(self, seed):
        target, stop = price_levels("BUY", 100.0, SeededStream(seed))
        assert 105.0 <= target < 115.0
        assert 92.0 < stop <= 95.0

    @pytest.mark.parametrize("seed", range(20))
    def test_sell_levels(self, seed):
        target, stop = price_levels("SELL", 100.0, SeededStream(seed))
        assert 90.0 < target <= 95.0
        assert 105.0 <= stop < 108.0

    def test_hold_levels_bracket_price(self):
        target, stop = price_levels("HOLD", 100.0, SeededStream(9))
        assert stop < 100.0 < target

    def test_sub_unit_price_keeps_precision(self):
        target, stop = price_levels("BUY", 0.25, SeededStream(2))
        assert stop < 0.25 < target
        assert 0.2625 <= target < 0.2875


class TestBuildIndicators:
    def test_without_data_matches_synthetic(self):
        a = build_indicators(150.0, analysis_stream("AAPL", 150.0))
        b = synthetic_indicators(150.0, analysis_stream("AAPL", 150.0))
        assert a == b

    def test_synthetic_ranges(self):
        ind = synthetic_indicators(200.0, SeededStream(42))
        assert 25.0 <= ind.rsi < 80.0
        assert 15.0 <= ind.adx < 70.0
        assert ind.bollinger_upper > ind.bollinger_middle > ind.bollinger_lower
        assert ind.atr == pytest.approx(3.0)

    def test_short_history_ignored(self):
        history = [100.0 + i for i in range(14)]
        with_history = build_indicators(113.0, analysis_stream("X", 113.0), price_history=history)
        without = build_indicators(113.0, analysis_stream("X", 113.0))
        assert with_history == without

    def test_history_overrides_price_indicators(self):
        history = [100.0 + (i % 7) for i in range(40)]
        ind = build_indicators(history[-1], analysis_stream("MSFT", history[-1]), price_history=history)
        assert ind.rsi == pytest.approx(calculate_rsi(history))
        assert ind.sma50 == pytest.approx(calculate_sma(history, 50))
        assert ind.macd_signal == pytest.approx(ind.macd * 0.9)

    def test_candles_override_trend_indicators(self):
        candles = mock_candles("NVDA", "US", count=60, end_time=1_700_000_000)
        price = candles[-1].close
        ind = build_indicators(price, analysis_stream("NVDA", price), candles=candles)
        assert ind.adx == pytest.approx(calculate_adx(candles))
        assert ind.rsi == pytest.approx(calculate_rsi([c.close for c in candles]))
        assert 0.0 <= ind.stochastic <= 100.0


class _StaticProvider:
    def __init__(self, reply: str) -> None:
        self.reply = reply
        self.prompts: list[str] = []

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.reply


class _FailingProvider:
    async def complete(self, prompt: str) -> str:
        raise RuntimeError("model unavailable")


class TestSignalSynthesizer:
    @pytest.mark.asyncio
    async def test_deterministic_for_symbol_and_price(self):
        synth = SignalSynthesizer()
        a = await synth.analyze("AAPL", "Apple Inc.", "US", 187.5)
        b = await synth.analyze("AAPL", "Apple Inc.", "US", 187.5)
        assert (a.direction, a.confidence, a.target_price, a.stop_loss) == (
            b.direction, b.confidence, b.target_price, b.stop_loss,
        )
        assert a.indicators == b.indicators
        assert a.id != b.id

    @pytest.mark.asyncio
    async def test_level_invariants_across_universe(self):
        synth = SignalSynthesizer()
        for info in all_default_symbols():
            price = mock_price(info.symbol, info.market)
            signal = await synth.analyze(info.symbol, info.name, info.market, price)
            assert signal.direction in ("BUY", "SELL", "HOLD")
            assert 0.0 <= signal.confidence <= 95.0
            if signal.direction == "BUY":
                assert signal.target_price > signal.price > signal.stop_loss
            elif signal.direction == "SELL":
                assert signal.target_price < signal.price < signal.stop_loss

    @pytest.mark.asyncio
    async def test_templated_narrative_without_provider(self):
        signal = await SignalSynthesizer().analyze("TSLA", "Tesla Inc.", "US", 250.0)
        assert "Tesla Inc. (TSLA)" in signal.reasoning
        assert signal.technical_summary.startswith("RSI at")
        assert signal.fundamental_summary

    @pytest.mark.asyncio
    async def test_provider_reply_used(self):
        provider = _StaticProvider(
            "reason: Momentum is building.\n"
            "technical: Price above both averages.\n"
            "fundamental: Earnings were solid."
        )
        signal = await SignalSynthesizer(provider).analyze("MSFT", "Microsoft Corp.", "US", 410.0)
        assert signal.reasoning == "Momentum is building."
        assert signal.technical_summary == "Price above both averages."
        assert signal.fundamental_summary == "Earnings were solid."
        assert "Microsoft Corp. (MSFT)" in provider.prompts[0]

    @pytest.mark.asyncio
    async def test_provider_failure_falls_back(self):
        signal = await SignalSynthesizer(_FailingProvider()).analyze("V", "Visa Inc.", "US", 280.0)
        assert "Visa Inc. (V)" in signal.reasoning

    @pytest.mark.asyncio
    async def test_data_source_and_confidence_level(self):
        signal = await SignalSynthesizer().analyze("JPM", "JPMorgan Chase", "US", 190.0, data_source="mock")
        assert signal.data_source == "mock"
        assert signal.confidence_level in ("HIGH", "MEDIUM", "LOW")
