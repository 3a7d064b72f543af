"""Evaluation scorer — five bounded sub-scores plus a confidence adjustment.

Each sub-score lives in [0, 20]; the total adds ``(confidence − 50) / 50 × 5``
and is clamped to [0, 100].  Scoring never performs delivery; the caller
flips ``EvaluationScore.delivered`` after a confirmed send.
"""

from signaldesk.strategy.models import EvaluationScore, Signal

DEFAULT_PASS_THRESHOLD = 75.0

_SUB_SCORE_CAP = 20.0
_HISTOGRAM_MATERIALITY = 0.1
_HISTOGRAM_BONUS = 3.0


def _oscillator_score(direction: str, rsi: float) -> float:
    if direction == "BUY":
        if rsi < 30:
            return 20.0
        if rsi < 40:
            return 15.0
        if rsi < 50:
            return 10.0
        if rsi < 60:
            return 5.0
        return 0.0
    if direction == "SELL":
        if rsi > 70:
            return 20.0
        if rsi > 60:
            return 15.0
        if rsi > 50:
            return 10.0
        if rsi > 40:
            return 5.0
        return 0.0
    return 15.0 if 40 < rsi < 60 else 5.0


def _trend_confirmation_score(signal: Signal) -> float:
    ind = signal.indicators
    if signal.direction == "HOLD":
        return 10.0

    bullish = ind.macd > ind.macd_signal
    agrees = bullish if signal.direction == "BUY" else not bullish
    score = 20.0 if agrees else 5.0

    histogram = ind.macd_histogram
    if abs(histogram) > _HISTOGRAM_MATERIALITY:
        if (signal.direction == "BUY" and histogram > 0) or (
            signal.direction == "SELL" and histogram < 0
        ):
            score = min(_SUB_SCORE_CAP, score + _HISTOGRAM_BONUS)
    return score


def _trend_strength_score(adx: float) -> float:
    if adx > 40:
        return 20.0
    if adx > 30:
        return 16.0
    if adx > 25:
        return 12.0
    if adx > 20:
        return 8.0
    return 4.0


def _alignment_score(signal: Signal) -> float:
    if signal.direction == "HOLD":
        return 10.0
    ind = signal.indicators
    shares = ((ind.sma20, 7.0), (ind.sma50, 7.0), (ind.sma200, 6.0))
    if signal.direction == "BUY":
        return sum(points for average, points in shares if signal.price > average)
    return sum(points for average, points in shares if signal.price < average)


def _momentum_score(direction: str, momentum: float) -> float:
    agrees = (direction == "BUY" and momentum > 0) or (direction == "SELL" and momentum < 0)
    if agrees:
        return min(_SUB_SCORE_CAP, 10.0 + abs(momentum))
    return 5.0


def evaluate(signal: Signal, pass_threshold: float = DEFAULT_PASS_THRESHOLD) -> EvaluationScore:
    """Score *signal* against the five-part rubric.

    Args:
        signal: The signal to score.
        pass_threshold: Minimum total (0–100) for ``passed``.

    Raises:
        ValueError: If *pass_threshold* is outside [0, 100].
    """
    if not 0 <= pass_threshold <= 100:
        raise ValueError(f"pass_threshold must be within [0, 100], got {pass_threshold}")

    ind = signal.indicators
    oscillator = _oscillator_score(signal.direction, ind.rsi)
    confirmation = _trend_confirmation_score(signal)
    strength = _trend_strength_score(ind.adx)
    alignment = _alignment_score(signal)
    momentum = _momentum_score(signal.direction, ind.momentum)

    raw = oscillator + confirmation + strength + alignment + momentum
    confidence_adjustment = (signal.confidence - 50.0) / 50.0 * 5.0
    total = round(max(0.0, min(100.0, raw + confidence_adjustment)), 2)

    return EvaluationScore(
        signal_id=signal.id,
        symbol=signal.symbol,
        direction=signal.direction,
        oscillator_score=oscillator,
        trend_confirmation_score=confirmation,
        trend_strength_score=strength,
        alignment_score=alignment,
        momentum_score=momentum,
        total_score=total,
        passed=total >= pass_threshold,
    )
