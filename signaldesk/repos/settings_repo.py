"""Settings repository — one JSON document of ``UserSettings`` per user."""

import json
from dataclasses import asdict
from datetime import datetime, timezone

from signaldesk.models.settings import UserSettings
from signaldesk.repos.db import get_connection


class SettingsRepo:
    """Data access layer for user settings.

    Args:
        db_path: Path to the SQLite database file.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def get(self, user_id: str) -> UserSettings:
        """Stored settings for *user_id*, or defaults if none were saved."""
        conn = get_connection(self._db_path)
        try:
            row = conn.execute(
                "SELECT settings FROM user_settings WHERE user_id = ?",
                (user_id,),
            ).fetchone()
        finally:
            conn.close()
        if row is None:
            return UserSettings()
        return UserSettings.from_dict(json.loads(row["settings"]))

    def save(self, user_id: str, settings: UserSettings) -> None:
        """Insert or replace the settings for *user_id*."""
        conn = get_connection(self._db_path)
        try:
            conn.execute(
                """
                INSERT INTO user_settings (user_id, settings, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    settings = excluded.settings,
                    updated_at = excluded.updated_at
                """,
                (
                    user_id,
                    json.dumps(asdict(settings)),
                    datetime.now(timezone.utc).isoformat(),
                ),
            )
            conn.commit()
        finally:
            conn.close()
