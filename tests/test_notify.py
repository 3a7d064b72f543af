"""Tests for signaldesk.notify.telegram — message formatting and delivery."""

from datetime import datetime, timezone

import httpx
import pytest

from signaldesk.models.trades import RealTrade, SimulatorTrade
from signaldesk.notify.telegram import (
    TelegramNotifier,
    format_signal_message,
    format_status_message,
    format_system_alert,
    format_trade_message,
)
from signaldesk.strategy.models import EvaluationScore, Signal, TechnicalIndicatorSet

_NOW = datetime(2025, 3, 10, 14, 30, tzinfo=timezone.utc)


def _signal(data_source="live", reasoning="Oversold bounce with a MACD crossover.") -> Signal:
    return Signal(
        symbol="AAPL",
        name="Apple <Inc>",
        market="US",
        direction="BUY",
        confidence=82.5,
        confidence_level="HIGH",
        price=187.5,
        target_price=206.25,
        stop_loss=176.25,
        reasoning=reasoning,
        technical_summary="",
        fundamental_summary="",
        indicators=TechnicalIndicatorSet(
            rsi=28.0, macd=0.42, macd_signal=0.38, macd_histogram=0.04,
            sma20=185.0, sma50=180.0, sma200=170.0, ema20=186.0,
            bollinger_upper=195.0, bollinger_middle=185.0, bollinger_lower=175.0,
            adx=33.0, atr=2.8, stochastic=22.0, momentum=3.1,
        ),
        data_source=data_source,
    )


def _score(signal: Signal) -> EvaluationScore:
    return EvaluationScore(
        signal_id=signal.id,
        symbol=signal.symbol,
        direction=signal.direction,
        oscillator_score=20.0,
        trend_confirmation_score=20.0,
        trend_strength_score=16.0,
        alignment_score=20.0,
        momentum_score=13.1,
        total_score=92.35,
        passed=True,
    )


class TestFormatting:
    def test_signal_message(self):
        signal = _signal()
        text = format_signal_message(signal, _score(signal), now=_NOW)
        assert "Strong BUY signal" in text
        assert "Apple &lt;Inc&gt; (AAPL)" in text
        assert "$187.50" in text
        assert "Score:</b> 92/100" in text
        assert "RSI: 28.0" in text
        assert "2025-03-10 14:30 UTC" in text
        assert "mock" not in text

    def test_mock_data_flagged(self):
        signal = _signal(data_source="mock")
        assert "Data source: mock" in format_signal_message(signal, _score(signal), now=_NOW)

    def test_long_reasoning_truncated(self):
        signal = _signal(reasoning="x" * 500)
        text = format_signal_message(signal, _score(signal), now=_NOW)
        assert "x" * 200 + "..." in text
        assert "x" * 201 not in text

    def test_simulator_trade_message(self):
        trade = SimulatorTrade(
            user_id="local", symbol="AAPL", name="Apple Inc.", market="US",
            side="BUY", quantity=53, price=187.5, total=9937.5,
        )
        text = format_trade_message(trade, _signal(), now=_NOW)
        assert "New BUY trade" in text
        assert "🎮 Simulator" in text
        assert "$9,937.50" in text
        assert "Confidence:</b> 82.5%" in text

    def test_real_trade_message_shows_status(self):
        trade = RealTrade(
            user_id="local", symbol="AAPL", side="BUY", quantity=53,
            price=187.5, total=9937.5, status="accepted", broker_order_id="ord-1",
        )
        text = format_trade_message(trade, now=_NOW)
        assert "💰 Real (accepted)" in text
        assert "Target" not in text

    def test_status_message(self):
        text = format_status_message(30, 4, 3, 61.27, True, now=_NOW)
        assert text.startswith("✅")
        assert "Analyses:</b> 30" in text
        assert "Average score:</b> 61.3/100" in text

    def test_status_message_with_error(self):
        text = format_status_message(0, 0, 0, 0.0, False, error="db <locked>", now=_NOW)
        assert text.startswith("❌")
        assert "db &lt;locked&gt;" in text

    def test_system_alert(self):
        assert "Budget exhausted" in format_system_alert("Budget exhausted", now=_NOW)


class TestTelegramNotifier:
    @pytest.mark.asyncio
    async def test_disabled_without_credentials(self, monkeypatch):
        async def _never(self, url, **kwargs):
            raise AssertionError("should not send")

        monkeypatch.setattr(httpx.AsyncClient, "post", _never)
        notifier = TelegramNotifier("", "")
        assert notifier.enabled is False
        assert await notifier.send_message("hi") is False

    @pytest.mark.asyncio
    async def test_successful_send(self, monkeypatch):
        seen = {}

        async def _mock_post(self, url, *, json=None, timeout=None):
            seen.update(url=url, json=json)
            return httpx.Response(
                200, json={"ok": True, "result": {"message_id": 1}},
                request=httpx.Request("POST", url),
            )

        monkeypatch.setattr(httpx.AsyncClient, "post", _mock_post)
        signal = _signal()
        assert await TelegramNotifier("123:abc", "42").send_signal(signal, _score(signal)) is True
        assert seen["url"] == "https://api.telegram.org/bot123:abc/sendMessage"
        assert seen["json"]["chat_id"] == "42"
        assert seen["json"]["parse_mode"] == "HTML"
        assert "Strong BUY signal" in seen["json"]["text"]

    @pytest.mark.asyncio
    async def test_api_rejection_is_false(self, monkeypatch):
        async def _mock_post(self, url, *, json=None, timeout=None):
            return httpx.Response(
                400, json={"ok": False, "description": "chat not found"},
                request=httpx.Request("POST", url),
            )

        monkeypatch.setattr(httpx.AsyncClient, "post", _mock_post)
        assert await TelegramNotifier("123:abc", "42").send_message("hi") is False

    @pytest.mark.asyncio
    async def test_transport_error_is_false(self, monkeypatch):
        async def _mock_post(self, url, *, json=None, timeout=None):
            raise httpx.ConnectTimeout("timed out")

        monkeypatch.setattr(httpx.AsyncClient, "post", _mock_post)
        assert await TelegramNotifier("123:abc", "42").send_system_alert("hi") is False

    @pytest.mark.asyncio
    async def test_non_json_body_is_false(self, monkeypatch):
        async def _mock_post(self, url, *, json=None, timeout=None):
            return httpx.Response(502, text="<html>bad gateway</html>", request=httpx.Request("POST", url))

        monkeypatch.setattr(httpx.AsyncClient, "post", _mock_post)
        assert await TelegramNotifier("123:abc", "42").send_status_update(1, 0, 0, 10.0, True) is False
