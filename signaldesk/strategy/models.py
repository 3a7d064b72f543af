"""Strategy data models — indicator bundles, signals, and evaluation scores."""

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone


DIRECTIONS = ("BUY", "SELL", "HOLD")

HIGH_CONFIDENCE = 78.0
MEDIUM_CONFIDENCE = 58.0


def _new_id() -> str:
    return str(uuid.uuid4())


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def confidence_level(confidence: float) -> str:
    """Map a 0–100 confidence to ``"HIGH"``, ``"MEDIUM"`` or ``"LOW"``."""
    if confidence >= HIGH_CONFIDENCE:
        return "HIGH"
    if confidence >= MEDIUM_CONFIDENCE:
        return "MEDIUM"
    return "LOW"


@dataclass(frozen=True)
class TechnicalIndicatorSet:
    """Indicator values behind one analysis."""

    rsi: float
    macd: float
    macd_signal: float
    macd_histogram: float
    sma20: float
    sma50: float
    sma200: float
    ema20: float
    bollinger_upper: float
    bollinger_middle: float
    bollinger_lower: float
    adx: float
    atr: float
    stochastic: float
    momentum: float

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Signal:
    """A directional trading signal produced by the synthesizer.

    For BUY, ``target_price > price > stop_loss``; for SELL the inverse.
    """

    symbol: str
    name: str
    market: str
    direction: str  # "BUY", "SELL" or "HOLD"
    confidence: float
    confidence_level: str
    price: float
    target_price: float
    stop_loss: float
    reasoning: str
    technical_summary: str
    fundamental_summary: str
    indicators: TechnicalIndicatorSet
    timeframe: str = "1D"
    data_source: str = "live"
    id: str = field(default_factory=_new_id)
    created_at: str = field(default_factory=_utc_now)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class EvaluationScore:
    """Rubric score for one ``Signal``.

    Every field is fixed at creation except ``delivered``, which flips to
    ``True`` once, after the signal was sent to the notification channel.
    """

    signal_id: str
    symbol: str
    direction: str
    oscillator_score: float
    trend_confirmation_score: float
    trend_strength_score: float
    alignment_score: float
    momentum_score: float
    total_score: float
    passed: bool
    delivered: bool = False
    id: str = field(default_factory=_new_id)
    created_at: str = field(default_factory=_utc_now)

    def mark_delivered(self) -> bool:
        """Record a successful delivery.  Returns ``False`` if already set."""
        if self.delivered:
            return False
        self.delivered = True
        return True

    def to_dict(self) -> dict:
        return asdict(self)
