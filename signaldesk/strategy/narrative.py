"""Narrative enrichment — optional language-model rationale for a signal.

The provider is a plug-in behind ``NarrativeProvider``; it is only built
when an API key is configured.  The templated fallback is always available
and is used whenever the provider is missing, fails, or replies in any
format other than the three labelled lines.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

import httpx

from signaldesk.config import Config
from signaldesk.strategy.models import TechnicalIndicatorSet

logger = logging.getLogger("signaldesk.narrative")

_LABELS = ("reason", "technical", "fundamental")


@dataclass(frozen=True)
class Narrative:
    """Rationale, technical summary and fundamental summary."""

    reasoning: str
    technical_summary: str
    fundamental_summary: str


@runtime_checkable
class NarrativeProvider(Protocol):
    """Interface for free-text completion backends."""

    async def complete(self, prompt: str) -> str:
        """Return the model's reply to *prompt*."""
        ...


class OpenAINarrativeProvider:
    """Chat-completions client for OpenAI-compatible endpoints."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str = "https://api.openai.com/v1",
        max_tokens: int = 250,
        temperature: float = 0.4,
    ) -> None:
        self._url = f"{base_url.rstrip('/')}/chat/completions"
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    async def complete(self, prompt: str) -> str:
        body = {
            "model": self._model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": self._max_tokens,
            "temperature": self._temperature,
        }
        async with httpx.AsyncClient() as client:
            resp = await client.post(self._url, headers=self._headers, json=body, timeout=30.0)
        resp.raise_for_status()
        choices = resp.json().get("choices") or []
        if not choices:
            return ""
        return (choices[0].get("message") or {}).get("content") or ""


def create_narrative_provider(config: Config) -> Optional[NarrativeProvider]:
    """Build the configured provider, or ``None`` when no key is set."""
    if not config.narrative_configured:
        return None
    return OpenAINarrativeProvider(
        api_key=config.openai_api_key,
        model=config.openai_model,
        base_url=config.openai_base_url,
    )


# ── Prompt / parsing ─────────────────────────────────────────────────────


def _rsi_zone(rsi: float) -> str:
    if rsi < 30:
        return "oversold"
    if rsi > 70:
        return "overbought"
    return "neutral"


def build_prompt(
    symbol: str,
    name: str,
    market: str,
    price: float,
    direction: str,
    indicators: TechnicalIndicatorSet,
    target_price: float,
    stop_loss: float,
) -> str:
    """Render the analyst prompt for one signal."""
    trend = "strong trend" if indicators.adx > 25 else "weak trend"
    return (
        "You are an experienced market analyst. Give a short recommendation "
        "for the following instrument.\n\n"
        f"Instrument: {name} ({symbol}) | Market: {market}\n"
        f"Price: {price:.2f} | Signal: {direction}\n\n"
        "Indicators:\n"
        f"- RSI: {indicators.rsi:.1f} ({_rsi_zone(indicators.rsi)})\n"
        f"- MACD: {indicators.macd:.4f} / Signal: {indicators.macd_signal:.4f}"
        f" / Histogram: {indicators.macd_histogram:.4f}\n"
        f"- ADX: {indicators.adx:.1f} ({trend})\n"
        f"- SMA20: {indicators.sma20:.2f} | SMA50: {indicators.sma50:.2f}\n"
        f"- Bollinger: [{indicators.bollinger_lower:.2f} - "
        f"{indicators.bollinger_upper:.2f}]\n"
        f"- Target: {target_price:.2f} | Stop loss: {stop_loss:.2f}\n\n"
        "Answer in exactly this format (3 lines only):\n"
        "reason: [two sentences of analysis]\n"
        "technical: [one sentence technical summary]\n"
        "fundamental: [one sentence fundamental view]"
    )


def parse_narrative(text: str) -> Optional[Narrative]:
    """Extract the three labelled lines, or ``None`` if any is missing."""
    found: dict[str, str] = {}
    for raw_line in (text or "").splitlines():
        line = raw_line.strip().lstrip("-*").strip()
        label, sep, value = line.partition(":")
        key = label.strip().lower()
        if sep and key in _LABELS and key not in found and value.strip():
            found[key] = value.strip()
    if len(found) != len(_LABELS):
        return None
    return Narrative(
        reasoning=found["reason"],
        technical_summary=found["technical"],
        fundamental_summary=found["fundamental"],
    )


def fallback_narrative(
    symbol: str,
    name: str,
    direction: str,
    price: float,
    indicators: TechnicalIndicatorSet,
) -> Narrative:
    """Deterministic templated text built from the indicator values."""
    action = {"BUY": "buy", "SELL": "sell"}.get(direction, "hold")
    reasoning = (
        f"{name} ({symbol}) shows a {action} signal based on RSI "
        f"({indicators.rsi:.1f}) and the MACD crossover. "
    )
    if indicators.adx > 25:
        reasoning += f"The trend is strong (ADX {indicators.adx:.1f}), which supports the signal."
    else:
        reasoning += (
            f"The trend is weak (ADX {indicators.adx:.1f}); wait for confirmation "
            "before acting."
        )
    macd_state = "positive" if indicators.macd > indicators.macd_signal else "negative"
    position = "above" if price > indicators.sma50 else "below"
    technical = (
        f"RSI at {indicators.rsi:.1f}, MACD {macd_state}, price {position} "
        f"SMA50 ({indicators.sma50:.2f})."
    )
    fundamental = "Fundamental picture is in line with the prevailing technical trend."
    return Narrative(reasoning, technical, fundamental)


async def generate_narrative(
    provider: Optional[NarrativeProvider],
    prompt: str,
    fallback: Narrative,
) -> Narrative:
    """Ask *provider* for a narrative; return *fallback* on any failure."""
    if provider is None:
        return fallback
    try:
        reply = await provider.complete(prompt)
    except Exception as exc:
        logger.warning("Narrative provider error, using fallback: %s", exc)
        return fallback
    parsed = parse_narrative(reply)
    if parsed is None:
        logger.warning("Narrative reply not in the expected format, using fallback")
        return fallback
    return parsed
