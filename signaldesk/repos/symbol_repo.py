"""Symbol repository — the tradable-stock catalogue and per-user watchlists."""

from datetime import datetime, timezone
from typing import Optional

from signaldesk.market.models import SymbolInfo
from signaldesk.repos.db import get_connection


def _row_to_info(row) -> SymbolInfo:
    return SymbolInfo(
        symbol=row["symbol"],
        name=row["name"],
        market=row["market"],
        currency=row["currency"],
    )


class StockRepo:
    """Data access layer for the ``stocks`` catalogue.

    Args:
        db_path: Path to the SQLite database file.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def upsert_stocks(self, stocks: list[SymbolInfo]) -> int:
        """Insert or refresh catalogue rows; returns the number written."""
        now = datetime.now(timezone.utc).isoformat()
        conn = get_connection(self._db_path)
        try:
            conn.executemany(
                """
                INSERT INTO stocks (symbol, name, market, currency, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(symbol) DO UPDATE SET
                    name = excluded.name,
                    market = excluded.market,
                    currency = excluded.currency,
                    updated_at = excluded.updated_at
                """,
                [(s.symbol, s.name, s.market, s.currency, now) for s in stocks],
            )
            conn.commit()
            return len(stocks)
        finally:
            conn.close()

    def list_stocks(self, market: Optional[str] = None) -> list[SymbolInfo]:
        """Return catalogue entries, optionally filtered by *market*."""
        conn = get_connection(self._db_path)
        try:
            if market:
                rows = conn.execute(
                    "SELECT * FROM stocks WHERE market = ? ORDER BY symbol",
                    (market,),
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM stocks ORDER BY market, symbol"
                ).fetchall()
            return [_row_to_info(row) for row in rows]
        finally:
            conn.close()


class WatchlistRepo:
    """Data access layer for per-user watchlists.

    Args:
        db_path: Path to the SQLite database file.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def add(self, user_id: str, info: SymbolInfo) -> bool:
        """Add *info* to the watchlist.  Returns ``False`` if already present."""
        conn = get_connection(self._db_path)
        try:
            cur = conn.execute(
                """
                INSERT OR IGNORE INTO watchlist
                    (user_id, symbol, name, market, currency, added_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id, info.symbol, info.name, info.market, info.currency,
                    datetime.now(timezone.utc).isoformat(),
                ),
            )
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()

    def remove(self, user_id: str, symbol: str) -> bool:
        """Remove *symbol*.  Returns ``False`` if it was not listed."""
        conn = get_connection(self._db_path)
        try:
            cur = conn.execute(
                "DELETE FROM watchlist WHERE user_id = ? AND symbol = ?",
                (user_id, symbol),
            )
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()

    def list_symbols(self, user_id: str) -> list[SymbolInfo]:
        """Watchlist entries in the order they were added."""
        conn = get_connection(self._db_path)
        try:
            rows = conn.execute(
                "SELECT * FROM watchlist WHERE user_id = ? ORDER BY id",
                (user_id,),
            ).fetchall()
            return [_row_to_info(row) for row in rows]
        finally:
            conn.close()
