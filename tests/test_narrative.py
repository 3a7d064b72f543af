"""Tests for signaldesk.strategy.narrative — prompt, parsing, provider fallback."""

from unittest.mock import AsyncMock

import httpx
import pytest

from signaldesk.strategy.models import TechnicalIndicatorSet
from signaldesk.strategy.narrative import (
    Narrative,
    OpenAINarrativeProvider,
    build_prompt,
    fallback_narrative,
    generate_narrative,
    parse_narrative,
)

_IND = TechnicalIndicatorSet(
    rsi=28.4,
    macd=0.8,
    macd_signal=0.72,
    macd_histogram=0.08,
    sma20=98.0,
    sma50=95.0,
    sma200=90.0,
    ema20=98.5,
    bollinger_upper=105.0,
    bollinger_middle=100.0,
    bollinger_lower=95.0,
    adx=31.2,
    atr=1.5,
    stochastic=25.0,
    momentum=2.0,
)

_FALLBACK = Narrative("fallback reason", "fallback technical", "fallback fundamental")


class TestParseNarrative:
    def test_three_labelled_lines(self):
        parsed = parse_narrative(
            "reason: Oversold bounce likely.\n"
            "technical: RSI below 30.\n"
            "fundamental: Balance sheet is strong."
        )
        assert parsed == Narrative("Oversold bounce likely.", "RSI below 30.", "Balance sheet is strong.")

    def test_labels_case_insensitive_and_bulleted(self):
        parsed = parse_narrative("- Reason: A\n* TECHNICAL: B\nFundamental: C")
        assert parsed == Narrative("A", "B", "C")

    def test_missing_label_rejected(self):
        assert parse_narrative("reason: A\ntechnical: B") is None

    def test_free_text_rejected(self):
        assert parse_narrative("I think you should buy this stock.") is None

    def test_empty_value_rejected(self):
        assert parse_narrative("reason:\ntechnical: B\nfundamental: C") is None


class TestPromptAndFallback:
    def test_prompt_mentions_instrument_and_indicators(self):
        prompt = build_prompt("AAPL", "Apple Inc.", "US", 100.0, "BUY", _IND, 110.0, 94.0)
        assert "Apple Inc. (AAPL)" in prompt
        assert "RSI: 28.4 (oversold)" in prompt
        assert "ADX: 31.2 (strong trend)" in prompt
        assert "Target: 110.00 | Stop loss: 94.00" in prompt

    def test_fallback_text(self):
        narrative = fallback_narrative("AAPL", "Apple Inc.", "BUY", 100.0, _IND)
        assert narrative.reasoning.startswith("Apple Inc. (AAPL) shows a buy signal")
        assert "strong" in narrative.reasoning
        assert "MACD positive" in narrative.technical_summary
        assert "above SMA50" in narrative.technical_summary

    def test_fallback_weak_trend(self):
        weak = TechnicalIndicatorSet(**{**_IND.to_dict(), "adx": 12.0})
        narrative = fallback_narrative("X", "Example", "HOLD", 90.0, weak)
        assert "hold signal" in narrative.reasoning
        assert "wait for confirmation" in narrative.reasoning
        assert "below SMA50" in narrative.technical_summary


class TestGenerateNarrative:
    @pytest.mark.asyncio
    async def test_no_provider_returns_fallback(self):
        assert await generate_narrative(None, "prompt", _FALLBACK) is _FALLBACK

    @pytest.mark.asyncio
    async def test_provider_error_returns_fallback(self):
        provider = AsyncMock()
        provider.complete.side_effect = httpx.ConnectError("down")
        assert await generate_narrative(provider, "prompt", _FALLBACK) is _FALLBACK
        provider.complete.assert_awaited_once_with("prompt")

    @pytest.mark.asyncio
    async def test_malformed_reply_returns_fallback(self):
        provider = AsyncMock()
        provider.complete.return_value = "Buy it."
        assert await generate_narrative(provider, "prompt", _FALLBACK) is _FALLBACK

    @pytest.mark.asyncio
    async def test_well_formed_reply_used(self):
        provider = AsyncMock()
        provider.complete.return_value = "reason: R\ntechnical: T\nfundamental: F"
        assert await generate_narrative(provider, "prompt", _FALLBACK) == Narrative("R", "T", "F")


class TestOpenAIProvider:
    @pytest.mark.asyncio
    async def test_complete_posts_chat_request(self, monkeypatch):
        captured = {}

        async def _mock_post(self, url, *, headers=None, json=None, timeout=None):
            captured.update(url=url, headers=headers, json=json)
            return httpx.Response(
                200,
                json={"choices": [{"message": {"content": "reason: R\ntechnical: T\nfundamental: F"}}]},
                request=httpx.Request("POST", url),
            )

        monkeypatch.setattr(httpx.AsyncClient, "post", _mock_post)
        provider = OpenAINarrativeProvider(api_key="sk-test", model="gpt-4o-mini")

        reply = await provider.complete("hello")

        assert reply.startswith("reason: R")
        assert captured["url"] == "https://api.openai.com/v1/chat/completions"
        assert captured["headers"]["Authorization"] == "Bearer sk-test"
        assert captured["json"]["messages"] == [{"role": "user", "content": "hello"}]

    @pytest.mark.asyncio
    async def test_http_error_raises(self, monkeypatch):
        async def _mock_post(self, url, *, headers=None, json=None, timeout=None):
            return httpx.Response(401, json={"error": "bad key"}, request=httpx.Request("POST", url))

        monkeypatch.setattr(httpx.AsyncClient, "post", _mock_post)
        with pytest.raises(httpx.HTTPStatusError):
            await OpenAINarrativeProvider(api_key="sk-test").complete("hello")
