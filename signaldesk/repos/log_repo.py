"""System log repository — audit trail of pipeline steps."""

import json
from datetime import datetime, timezone
from typing import Optional

from signaldesk.repos.db import get_connection


class LogRepo:
    """Data access layer for the ``system_logs`` table.

    Args:
        db_path: Path to the SQLite database file.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def insert_log(
        self,
        user_id: str,
        level: str,
        category: str,
        message: str,
        details: Optional[dict] = None,
    ) -> int:
        """Append one log row and return its ``id``."""
        conn = get_connection(self._db_path)
        try:
            cur = conn.execute(
                """
                INSERT INTO system_logs
                    (user_id, level, category, message, details, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id, level, category, message,
                    json.dumps(details) if details is not None else None,
                    datetime.now(timezone.utc).isoformat(),
                ),
            )
            conn.commit()
            return cur.lastrowid
        finally:
            conn.close()

    def get_logs(self, user_id: str, limit: int = 50) -> list[dict]:
        """Most recent log rows, newest first."""
        conn = get_connection(self._db_path)
        try:
            rows = conn.execute(
                "SELECT * FROM system_logs WHERE user_id = ? ORDER BY id DESC LIMIT ?",
                (user_id, limit),
            ).fetchall()
        finally:
            conn.close()
        logs = []
        for row in rows:
            item = dict(row)
            item["details"] = json.loads(item["details"]) if item["details"] else None
            logs.append(item)
        return logs
