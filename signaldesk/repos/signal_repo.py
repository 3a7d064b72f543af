"""Signal repository — SQLite CRUD for signals and evaluation scores."""

import json
from typing import Optional

from signaldesk.repos.db import get_connection
from signaldesk.strategy.models import EvaluationScore, Signal


class SignalRepo:
    """Data access layer for signals and their evaluation scores.

    Args:
        db_path: Path to the SQLite database file.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    # ── Write ────────────────────────────────────────────────────────────

    def insert_signal(self, signal: Signal, user_id: str) -> str:
        """Insert *signal* and return its ``id``."""
        conn = get_connection(self._db_path)
        try:
            conn.execute(
                """
                INSERT INTO signals
                    (id, user_id, symbol, name, market, direction, confidence,
                     confidence_level, price, target_price, stop_loss,
                     reasoning, technical_summary, fundamental_summary,
                     indicators, timeframe, data_source, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    signal.id, user_id, signal.symbol, signal.name, signal.market,
                    signal.direction, signal.confidence, signal.confidence_level,
                    signal.price, signal.target_price, signal.stop_loss,
                    signal.reasoning, signal.technical_summary,
                    signal.fundamental_summary,
                    json.dumps(signal.indicators.to_dict()),
                    signal.timeframe, signal.data_source, signal.created_at,
                ),
            )
            conn.commit()
            return signal.id
        finally:
            conn.close()

    def insert_score(self, score: EvaluationScore, user_id: str) -> str:
        """Insert *score* and return its ``id``."""
        conn = get_connection(self._db_path)
        try:
            conn.execute(
                """
                INSERT INTO evaluation_scores
                    (id, signal_id, user_id, symbol, direction,
                     oscillator_score, trend_confirmation_score,
                     trend_strength_score, alignment_score, momentum_score,
                     total_score, passed, delivered, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    score.id, score.signal_id, user_id, score.symbol,
                    score.direction, score.oscillator_score,
                    score.trend_confirmation_score, score.trend_strength_score,
                    score.alignment_score, score.momentum_score,
                    score.total_score, int(score.passed), int(score.delivered),
                    score.created_at,
                ),
            )
            conn.commit()
            return score.id
        finally:
            conn.close()

    def mark_delivered(self, score_id: str) -> None:
        """Set the ``delivered`` flag on a stored score."""
        conn = get_connection(self._db_path)
        try:
            conn.execute(
                "UPDATE evaluation_scores SET delivered = 1 WHERE id = ?",
                (score_id,),
            )
            conn.commit()
        finally:
            conn.close()

    # ── Read ─────────────────────────────────────────────────────────────

    def get_signals(
        self,
        user_id: str,
        limit: int = 20,
        direction: Optional[str] = None,
    ) -> dict:
        """Return the most recent signals.

        Returns:
            ``{"signals": [...], "total": int}``
        """
        conn = get_connection(self._db_path)
        try:
            conditions = ["user_id = ?"]
            params: list = [user_id]
            if direction:
                conditions.append("direction = ?")
                params.append(direction)
            where_clause = "WHERE " + " AND ".join(conditions)

            rows = conn.execute(
                f"SELECT * FROM signals {where_clause} "
                "ORDER BY created_at DESC, rowid DESC LIMIT ?",
                (*params, limit),
            ).fetchall()
            total = conn.execute(
                f"SELECT COUNT(*) FROM signals {where_clause}", params,
            ).fetchone()[0]

            signals = []
            for row in rows:
                item = dict(row)
                item["indicators"] = json.loads(item["indicators"] or "{}")
                signals.append(item)
            return {"signals": signals, "total": total}
        finally:
            conn.close()

    def get_scores(
        self,
        user_id: str,
        limit: int = 20,
        passed_only: bool = False,
    ) -> dict:
        """Return the most recent evaluation scores.

        Returns:
            ``{"scores": [...], "total": int}``
        """
        conn = get_connection(self._db_path)
        try:
            where_clause = "WHERE user_id = ?"
            if passed_only:
                where_clause += " AND passed = 1"

            rows = conn.execute(
                f"SELECT * FROM evaluation_scores {where_clause} "
                "ORDER BY created_at DESC, rowid DESC LIMIT ?",
                (user_id, limit),
            ).fetchall()
            total = conn.execute(
                f"SELECT COUNT(*) FROM evaluation_scores {where_clause}", (user_id,),
            ).fetchone()[0]

            scores = []
            for row in rows:
                item = dict(row)
                item["passed"] = bool(item["passed"])
                item["delivered"] = bool(item["delivered"])
                scores.append(item)
            return {"scores": scores, "total": total}
        finally:
            conn.close()
