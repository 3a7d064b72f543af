"""Trade repository — SQLite CRUD for simulator and real trades."""

from typing import Optional

from signaldesk.models.trades import RealTrade, SimulatorTrade
from signaldesk.repos.db import get_connection


class TradeRepo:
    """Data access layer for trade records.

    Args:
        db_path: Path to the SQLite database file.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    # ── Write ────────────────────────────────────────────────────────────

    def insert_simulator_trade(self, trade: SimulatorTrade) -> str:
        """Insert a simulated trade and return its ``id``."""
        conn = get_connection(self._db_path)
        try:
            conn.execute(
                """
                INSERT INTO simulator_trades
                    (id, user_id, symbol, name, market, side, quantity,
                     price, total, status, signal_id, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    trade.id, trade.user_id, trade.symbol, trade.name,
                    trade.market, trade.side, trade.quantity, trade.price,
                    trade.total, trade.status, trade.signal_id, trade.created_at,
                ),
            )
            conn.commit()
            return trade.id
        finally:
            conn.close()

    def insert_real_trade(self, trade: RealTrade) -> str:
        """Insert a real-trade record and return its ``id``."""
        conn = get_connection(self._db_path)
        try:
            conn.execute(
                """
                INSERT INTO real_trades
                    (id, user_id, symbol, side, quantity, price, total,
                     status, broker_order_id, signal_id, error, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    trade.id, trade.user_id, trade.symbol, trade.side,
                    trade.quantity, trade.price, trade.total, trade.status,
                    trade.broker_order_id, trade.signal_id, trade.error,
                    trade.created_at,
                ),
            )
            conn.commit()
            return trade.id
        finally:
            conn.close()

    def close_simulator_trade(self, trade_id: str) -> None:
        """Mark a simulated trade as closed."""
        conn = get_connection(self._db_path)
        try:
            conn.execute(
                "UPDATE simulator_trades SET status = 'CLOSED' WHERE id = ?",
                (trade_id,),
            )
            conn.commit()
        finally:
            conn.close()

    # ── Read ─────────────────────────────────────────────────────────────

    def get_open_symbols(self, user_id: str) -> set[str]:
        """Symbols with at least one open simulated trade."""
        conn = get_connection(self._db_path)
        try:
            rows = conn.execute(
                "SELECT DISTINCT symbol FROM simulator_trades "
                "WHERE user_id = ? AND status = 'OPEN'",
                (user_id,),
            ).fetchall()
            return {row["symbol"] for row in rows}
        finally:
            conn.close()

    def get_trades(
        self,
        user_id: str,
        kind: str = "simulator",
        limit: int = 20,
        status_filter: Optional[str] = None,
    ) -> dict:
        """Return recent trades of one *kind* (``"simulator"`` or ``"real"``).

        Returns:
            ``{"trades": [...], "total": int}``
        """
        if kind not in ("simulator", "real"):
            raise ValueError(f"kind must be 'simulator' or 'real', got {kind!r}")
        table = "simulator_trades" if kind == "simulator" else "real_trades"

        conn = get_connection(self._db_path)
        try:
            conditions = ["user_id = ?"]
            params: list = [user_id]
            if status_filter:
                conditions.append("status = ?")
                params.append(status_filter)
            where_clause = "WHERE " + " AND ".join(conditions)

            rows = conn.execute(
                f"SELECT * FROM {table} {where_clause} "
                "ORDER BY created_at DESC, rowid DESC LIMIT ?",
                (*params, limit),
            ).fetchall()
            total = conn.execute(
                f"SELECT COUNT(*) FROM {table} {where_clause}", params,
            ).fetchone()[0]

            trades = [dict(row) for row in rows]
            return {"trades": trades, "total": total}
        finally:
            conn.close()
