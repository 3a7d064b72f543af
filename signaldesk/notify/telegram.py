"""Telegram notifier — signal alerts, trade confirmations, run status.

Messages use Telegram's HTML parse mode.  Every send returns ``True`` on
a confirmed delivery and ``False`` otherwise; nothing here raises.
"""

import html
import logging
from datetime import datetime, timezone
from typing import Optional, Union

import httpx

from signaldesk.models.trades import RealTrade, SimulatorTrade
from signaldesk.strategy.models import EvaluationScore, Signal

logger = logging.getLogger("signaldesk.notify")

TELEGRAM_API = "https://api.telegram.org"

_DIRECTION_ICON = {"BUY": "🟢", "SELL": "🔴", "HOLD": "🟡"}
_REASONING_PREVIEW = 200


# ── Formatting ───────────────────────────────────────────────────────────


def _money(value: float) -> str:
    return f"${value:,.2f}"


def _stamp(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%d %H:%M UTC")


def format_signal_message(
    signal: Signal,
    score: EvaluationScore,
    now: Optional[datetime] = None,
) -> str:
    """Strong-signal alert."""
    icon = _DIRECTION_ICON.get(signal.direction, "🟡")
    ind = signal.indicators
    reasoning = html.escape(signal.reasoning[:_REASONING_PREVIEW])
    if len(signal.reasoning) > _REASONING_PREVIEW:
        reasoning += "..."
    lines = [
        f"{icon} <b>Strong {signal.direction} signal!</b>",
        "",
        f"📊 <b>{html.escape(signal.name)} ({html.escape(signal.symbol)})</b>",
        f"💵 <b>Price:</b> {_money(signal.price)}",
        f"🎯 <b>Target:</b> {_money(signal.target_price)}",
        f"🛡️ <b>Stop loss:</b> {_money(signal.stop_loss)}",
        "",
        "📈 <b>Indicators:</b>",
        f"• RSI: {ind.rsi:.1f}",
        f"• MACD: {ind.macd:.4f}",
        f"• ADX: {ind.adx:.1f}",
        "",
        f"⭐ <b>Score:</b> {score.total_score:.0f}/100",
        f"🔥 <b>Confidence:</b> {signal.confidence:.1f}%",
    ]
    if signal.data_source == "mock":
        lines.append("⚠️ <i>Data source: mock</i>")
    lines += ["", "💬 <b>Analysis:</b>", reasoning, "", f"⏰ {_stamp(now)}"]
    return "\n".join(lines)


def format_trade_message(
    trade: Union[SimulatorTrade, RealTrade],
    signal: Optional[Signal] = None,
    now: Optional[datetime] = None,
) -> str:
    """New-trade confirmation for simulated and real trades."""
    icon = _DIRECTION_ICON.get(trade.side, "🟡")
    if isinstance(trade, SimulatorTrade):
        trade_type = "🎮 Simulator"
    else:
        trade_type = f"💰 Real ({html.escape(trade.status)})"
    lines = [
        f"{icon} <b>New {trade.side} trade</b>",
        "",
        f"📊 <b>Symbol:</b> {html.escape(trade.symbol)}",
        f"🔢 <b>Quantity:</b> {trade.quantity}",
        f"💵 <b>Price:</b> {_money(trade.price)}",
        f"💰 <b>Total:</b> {_money(trade.total)}",
        f"🏷️ <b>Type:</b> {trade_type}",
    ]
    if signal is not None:
        lines += [
            "",
            f"🧠 <b>Confidence:</b> {signal.confidence:.1f}%",
            f"📈 <b>Target:</b> {_money(signal.target_price)}",
            f"🛡️ <b>Stop loss:</b> {_money(signal.stop_loss)}",
        ]
    lines += ["", f"⏰ {_stamp(now)}"]
    return "\n".join(lines)


def format_status_message(
    total: int,
    strong: int,
    sent: int,
    avg_score: float,
    success: bool,
    error: Optional[str] = None,
    now: Optional[datetime] = None,
) -> str:
    """Automation run report."""
    lines = [
        f"{'✅' if success else '❌'} <b>Automated analysis report</b>",
        "",
        f"📊 <b>Analyses:</b> {total}",
        f"🔥 <b>Strong signals:</b> {strong}",
        f"📤 <b>Signals sent:</b> {sent}",
        f"⭐ <b>Average score:</b> {avg_score:.1f}/100",
    ]
    if error:
        lines += ["", f"❌ <b>Error:</b> {html.escape(error)}"]
    lines += ["", f"⏰ {_stamp(now)}"]
    return "\n".join(lines)


def format_system_alert(message: str, now: Optional[datetime] = None) -> str:
    return f"⚠️ <b>System alert</b>\n\n{html.escape(message)}\n\n⏰ {_stamp(now)}"


# ── Client ───────────────────────────────────────────────────────────────


class TelegramNotifier:
    """Sends formatted messages to one chat through the Bot API.

    Args:
        bot_token: Bot token from BotFather.
        chat_id: Destination chat.
    """

    def __init__(self, bot_token: str, chat_id: str) -> None:
        self._bot_token = bot_token
        self._chat_id = chat_id

    @property
    def enabled(self) -> bool:
        return bool(self._bot_token and self._chat_id)

    async def send_message(self, text: str) -> bool:
        """Send *text*; ``True`` only when Telegram answers ``ok``."""
        if not self.enabled:
            return False
        url = f"{TELEGRAM_API}/bot{self._bot_token}/sendMessage"
        body = {
            "chat_id": self._chat_id,
            "text": text,
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
        }
        try:
            async with httpx.AsyncClient() as client:
                resp = await client.post(url, json=body, timeout=10.0)
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Telegram send failed: %s", exc)
            return False

        if not isinstance(data, dict) or data.get("ok") is not True:
            logger.warning("Telegram rejected message (HTTP %d)", resp.status_code)
            return False
        return True

    async def send_signal(self, signal: Signal, score: EvaluationScore) -> bool:
        return await self.send_message(format_signal_message(signal, score))

    async def send_trade(
        self,
        trade: Union[SimulatorTrade, RealTrade],
        signal: Optional[Signal] = None,
    ) -> bool:
        return await self.send_message(format_trade_message(trade, signal))

    async def send_status_update(
        self,
        total: int,
        strong: int,
        sent: int,
        avg_score: float,
        success: bool,
        error: Optional[str] = None,
    ) -> bool:
        return await self.send_message(
            format_status_message(total, strong, sent, avg_score, success, error)
        )

    async def send_system_alert(self, message: str) -> bool:
        return await self.send_message(format_system_alert(message))
