"""Trade records and the pipeline result bundle."""

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Optional

from signaldesk.strategy.models import EvaluationScore, Signal


def _new_id() -> str:
    return str(uuid.uuid4())


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class SimulatorTrade:
    """A paper trade booked against the simulated cash balance."""

    user_id: str
    symbol: str
    name: str
    market: str
    side: str  # "BUY" or "SELL"
    quantity: int
    price: float
    total: float
    status: str = "OPEN"  # "OPEN" or "CLOSED"
    signal_id: Optional[str] = None
    id: str = field(default_factory=_new_id)
    created_at: str = field(default_factory=_utc_now)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class RealTrade:
    """Record of an order forwarded (or not) to the brokerage.

    ``status`` is ``"SIMULATED"`` when real trading is off or credentials
    are missing, ``"FAILED"`` when the broker call raised, and the broker's
    own order status otherwise.
    """

    user_id: str
    symbol: str
    side: str
    quantity: int
    price: float
    total: float
    status: str
    broker_order_id: Optional[str] = None
    signal_id: Optional[str] = None
    error: Optional[str] = None
    id: str = field(default_factory=_new_id)
    created_at: str = field(default_factory=_utc_now)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class PipelineResult:
    """Everything one pipeline run produced, plus the final cash balance."""

    signals: list[Signal] = field(default_factory=list)
    scores: list[EvaluationScore] = field(default_factory=list)
    simulated_trades: list[SimulatorTrade] = field(default_factory=list)
    real_trades: list[RealTrade] = field(default_factory=list)
    cash_balance: float = 0.0

    @property
    def strong_signals(self) -> int:
        return sum(1 for s in self.scores if s.passed)

    @property
    def delivered_signals(self) -> int:
        return sum(1 for s in self.scores if s.delivered)

    @property
    def average_score(self) -> float:
        if not self.scores:
            return 0.0
        return sum(s.total_score for s in self.scores) / len(self.scores)
