"""Alpaca v2 REST API async client.

Handles all communication with the brokerage: account queries, positions,
order history, order placement and cancellation, and closing positions.
"""

import asyncio
import logging
from typing import Any, Optional

import httpx

from signaldesk.broker.models import AlpacaAccount, AlpacaOrder, AlpacaPosition, OrderRequest

logger = logging.getLogger("signaldesk.broker")

PAPER_BASE_URL = "https://paper-api.alpaca.markets"
LIVE_BASE_URL = "https://api.alpaca.markets"

# Retry settings (reads only)
_MAX_RETRIES = 3
_RETRY_BASE_DELAY = 2.0  # seconds; doubles each attempt
_RETRYABLE_STATUS_CODES = {502, 503, 504, 429}


def _num(value: Any, default: float = 0.0) -> float:
    if value is None or value == "":
        return default
    return float(value)


def _parse_order(o: dict) -> AlpacaOrder:
    filled_avg = o.get("filled_avg_price")
    return AlpacaOrder(
        order_id=o["id"],
        client_order_id=o.get("client_order_id", ""),
        symbol=o["symbol"],
        qty=_num(o.get("qty")),
        filled_qty=_num(o.get("filled_qty")),
        side=o.get("side", ""),
        type=o.get("type", ""),
        time_in_force=o.get("time_in_force", ""),
        status=o.get("status", ""),
        created_at=o.get("created_at", ""),
        filled_avg_price=float(filled_avg) if filled_avg not in (None, "") else None,
    )


class AlpacaClient:
    """Async client wrapping the Alpaca v2 trading API.

    Args:
        api_key: ``APCA-API-KEY-ID`` value.
        secret_key: ``APCA-API-SECRET-KEY`` value.
        mode: ``"PAPER"`` or ``"LIVE"``; selects the base URL.
        base_url: Explicit override of the base URL.
    """

    def __init__(
        self,
        api_key: str,
        secret_key: str,
        mode: str = "PAPER",
        base_url: Optional[str] = None,
    ) -> None:
        if base_url is None:
            base_url = LIVE_BASE_URL if mode.upper() == "LIVE" else PAPER_BASE_URL
        self._base_url = f"{base_url.rstrip('/')}/v2"
        self.mode = mode.upper()
        self._headers = {
            "APCA-API-KEY-ID": api_key,
            "APCA-API-SECRET-KEY": secret_key,
            "Content-Type": "application/json",
        }

    # ── HTTP helpers ─────────────────────────────────────────────────────

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        async with httpx.AsyncClient() as client:
            return await getattr(client, method)(
                url,
                headers=self._headers,
                timeout=30.0,
                **kwargs,
            )

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        **kwargs,
    ) -> httpx.Response:
        """Execute an idempotent request with exponential-backoff retry.

        Retries on transient server errors (502, 503, 504) and rate-limits
        (429).  Non-retryable errors are raised immediately.
        """
        last_exc: Optional[Exception] = None

        for attempt in range(_MAX_RETRIES):
            try:
                resp = await self._send(method, url, **kwargs)

                if resp.status_code in _RETRYABLE_STATUS_CODES:
                    delay = _RETRY_BASE_DELAY * (2 ** attempt)
                    logger.warning(
                        "Alpaca %s %s returned %d — retry %d/%d in %.1fs",
                        method.upper(), url, resp.status_code,
                        attempt + 1, _MAX_RETRIES, delay,
                    )
                    await asyncio.sleep(delay)
                    last_exc = httpx.HTTPStatusError(
                        f"Server error '{resp.status_code}'",
                        request=resp.request,
                        response=resp,
                    )
                    continue

                resp.raise_for_status()
                return resp

            except httpx.TransportError as exc:
                delay = _RETRY_BASE_DELAY * (2 ** attempt)
                logger.warning(
                    "Alpaca %s %s transport error (%s) — retry %d/%d in %.1fs",
                    method.upper(), url, exc,
                    attempt + 1, _MAX_RETRIES, delay,
                )
                last_exc = exc
                await asyncio.sleep(delay)

        raise last_exc  # type: ignore[misc]

    async def _request_once(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Execute a state-changing request exactly once."""
        resp = await self._send(method, url, **kwargs)
        resp.raise_for_status()
        return resp

    # ── Account ──────────────────────────────────────────────────────────

    async def get_account(self) -> AlpacaAccount:
        """Query buying power, cash, and equity for the account."""
        resp = await self._request_with_retry("get", f"{self._base_url}/account")

        acct = resp.json()
        return AlpacaAccount(
            account_id=acct["id"],
            account_number=acct.get("account_number", ""),
            status=acct.get("status", ""),
            currency=acct.get("currency", "USD"),
            buying_power=_num(acct.get("buying_power")),
            cash=_num(acct.get("cash")),
            portfolio_value=_num(acct.get("portfolio_value")),
            equity=_num(acct.get("equity")),
            last_equity=_num(acct.get("last_equity")),
            daytrade_count=int(_num(acct.get("daytrade_count"))),
        )

    # ── Positions ────────────────────────────────────────────────────────

    async def list_positions(self) -> list[AlpacaPosition]:
        """Return all open positions on the account."""
        resp = await self._request_with_retry("get", f"{self._base_url}/positions")

        return [
            AlpacaPosition(
                symbol=p["symbol"],
                qty=_num(p.get("qty")),
                side=p.get("side", "long"),
                avg_entry_price=_num(p.get("avg_entry_price")),
                current_price=_num(p.get("current_price")),
                market_value=_num(p.get("market_value")),
                unrealized_pl=_num(p.get("unrealized_pl")),
                unrealized_plpc=_num(p.get("unrealized_plpc")),
            )
            for p in resp.json()
        ]

    async def close_position(self, symbol: str) -> AlpacaOrder:
        """Liquidate the whole position in *symbol*.

        Returns the closing order.
        """
        resp = await self._request_once("delete", f"{self._base_url}/positions/{symbol}")
        return _parse_order(resp.json())

    # ── Orders ───────────────────────────────────────────────────────────

    async def list_orders(self, status: str = "all", limit: int = 50) -> list[AlpacaOrder]:
        """Return recent orders, newest first.

        Args:
            status: ``"open"``, ``"closed"`` or ``"all"``.
            limit: Maximum number of orders to return.
        """
        resp = await self._request_with_retry(
            "get",
            f"{self._base_url}/orders",
            params={"status": status, "limit": limit},
        )
        return [_parse_order(o) for o in resp.json()]

    async def place_order(self, order: OrderRequest) -> AlpacaOrder:
        """Submit an order.  Not retried: a duplicate submit would double the position."""
        body: dict[str, Any] = {
            "symbol": order.symbol,
            "qty": str(order.qty),
            "side": order.side,
            "type": order.type,
            "time_in_force": order.time_in_force,
        }
        if order.type == "limit" and order.limit_price:
            body["limit_price"] = str(order.limit_price)

        resp = await self._request_once("post", f"{self._base_url}/orders", json=body)

        placed = _parse_order(resp.json())
        logger.info(
            "Alpaca order %s: %s %s x%s (%s)",
            placed.order_id, placed.side, placed.symbol, order.qty, placed.status,
        )
        return placed

    async def cancel_order(self, order_id: str) -> None:
        """Cancel an open order."""
        await self._request_once("delete", f"{self._base_url}/orders/{order_id}")
