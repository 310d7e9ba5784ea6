"""SQLite-backed storage for guided truck entry sessions."""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Optional


def _ensure_directory(db_path: Path) -> None:
    if db_path.parent and not db_path.parent.exists():
        db_path.parent.mkdir(parents=True, exist_ok=True)


@dataclass(slots=True)
class WizardSession:
    """Represents one user's progress through the guided entry wizard."""

    user_id: str
    step: str
    data: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def touch(self) -> None:
        self.updated_at = datetime.now(timezone.utc)


class WizardSessionStore:
    """Keeps at most one wizard session per user identifier.

    ``ttl_seconds`` of ``None`` disables pruning: sessions then live until they
    are cancelled, submitted or deleted after a failure.
    """

    def __init__(self, db_path: str, ttl_seconds: int | None = None) -> None:
        self._db_path = Path(db_path)
        self._ttl = ttl_seconds
        _ensure_directory(self._db_path)
        self._ensure_tables()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_tables(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS wizard_sessions (
                    user_id TEXT PRIMARY KEY,
                    step TEXT NOT NULL,
                    data TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )

    def _prune(self) -> None:
        if self._ttl is None:
            return
        threshold = (
            datetime.now(timezone.utc) - timedelta(seconds=self._ttl)
        ).isoformat()
        with self._connect() as conn:
            conn.execute(
                "DELETE FROM wizard_sessions WHERE updated_at < ?",
                (threshold,),
            )

    def create(self, user_id: str, *, step: str) -> WizardSession:
        """Start a fresh session, replacing any existing one for the user."""
        self._prune()
        session = WizardSession(user_id=user_id, step=step)
        self._save_session(session)
        return session

    def get(self, user_id: str) -> Optional[WizardSession]:
        self._prune()
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM wizard_sessions WHERE user_id = ?",
                (user_id,),
            ).fetchone()
        if not row:
            return None
        return self._row_to_session(row)

    def update(self, session: WizardSession) -> WizardSession:
        session.touch()
        self._save_session(session)
        return session

    def delete(self, user_id: str) -> bool:
        """Remove the user's session. Returns whether one existed."""
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM wizard_sessions WHERE user_id = ?",
                (user_id,),
            )
        return cursor.rowcount > 0

    def _save_session(self, session: WizardSession) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO wizard_sessions (user_id, step, data, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    step = excluded.step,
                    data = excluded.data,
                    created_at = excluded.created_at,
                    updated_at = excluded.updated_at
                """,
                (
                    session.user_id,
                    session.step,
                    json.dumps(session.data),
                    session.created_at.isoformat(),
                    session.updated_at.isoformat(),
                ),
            )

    @staticmethod
    def _row_to_session(row: sqlite3.Row) -> WizardSession:
        return WizardSession(
            user_id=row["user_id"],
            step=row["step"],
            data=json.loads(row["data"]) if row["data"] else {},
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )


__all__ = ["WizardSession", "WizardSessionStore"]
