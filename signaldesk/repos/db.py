"""SQLite bootstrap for SignalDesk.

One schema file creates the catalogue, watchlist, signal, score, trade,
settings and log tables.  Every statement in it is ``IF NOT EXISTS``, so
it is re-applied whenever one of the expected tables is missing.
"""

import logging
import pathlib
import sqlite3

logger = logging.getLogger("signaldesk.repos")

_SCHEMA_FILE = (
    pathlib.Path(__file__).resolve().parent.parent.parent
    / "db" / "migrations" / "001_initial_schema.sql"
)

SCHEMA_TABLES = (
    "stocks",
    "watchlist",
    "signals",
    "evaluation_scores",
    "simulator_trades",
    "real_trades",
    "user_settings",
    "system_logs",
)


def missing_tables(conn: sqlite3.Connection) -> list[str]:
    """Return the expected tables that *conn* does not have yet."""
    present = {
        row[0]
        for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
    }
    return [name for name in SCHEMA_TABLES if name not in present]


def init_db(db_path: str) -> None:
    """Create the SignalDesk tables in *db_path* if any are missing.

    The parent directory is created for file-backed databases.
    """
    if db_path != ":memory:":
        pathlib.Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    try:
        missing = missing_tables(conn)
        if missing:
            logger.info("Creating tables in %s: %s", db_path, ", ".join(missing))
            conn.executescript(_SCHEMA_FILE.read_text(encoding="utf-8"))
    finally:
        conn.close()


def get_connection(db_path: str) -> sqlite3.Connection:
    """Open *db_path* with dict-style rows and foreign keys enforced.

    Callers close the connection.
    """
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn
