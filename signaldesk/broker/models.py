"""Broker data models — typed representations of Alpaca v2 API objects."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class AlpacaAccount:
    """Summary of an Alpaca brokerage account."""

    account_id: str
    account_number: str
    status: str
    currency: str
    buying_power: float
    cash: float
    portfolio_value: float
    equity: float
    last_equity: float
    daytrade_count: int


@dataclass(frozen=True)
class AlpacaPosition:
    """An open position."""

    symbol: str
    qty: float
    side: str  # "long" or "short"
    avg_entry_price: float
    current_price: float
    market_value: float
    unrealized_pl: float
    unrealized_plpc: float


@dataclass(frozen=True)
class AlpacaOrder:
    """An order as reported by the broker."""

    order_id: str
    client_order_id: str
    symbol: str
    qty: float
    filled_qty: float
    side: str  # "buy" or "sell"
    type: str
    time_in_force: str
    status: str
    created_at: str
    filled_avg_price: Optional[float] = None


@dataclass(frozen=True)
class OrderRequest:
    """An order request payload."""

    symbol: str
    qty: int
    side: str  # "buy" or "sell"
    type: str = "market"  # "market" or "limit"
    time_in_force: str = "day"  # "day" or "gtc"
    limit_price: Optional[float] = None
