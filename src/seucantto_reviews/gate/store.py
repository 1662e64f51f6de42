"""
Durable storage for access gate attempt history.
"""

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, List

logger = logging.getLogger(__name__)


class AttemptStore:
    """
    SQLite-backed attempt log keyed by (kind, identity).

    The access gate writes review-submission attempts through to this store
    so counts survive a process restart. Each save replaces the identity's
    whole history for that kind inside one transaction.
    """

    def __init__(self, db_path: str = "data/gate.db"):
        """
        Initialize the attempt store.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_database()

    def _init_database(self):
        """Create the attempts table and its index."""
        with self._get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS attempts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    kind TEXT NOT NULL,
                    identity TEXT NOT NULL,
                    attempted_at INTEGER NOT NULL
                )
            """
            )
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_kind_identity ON attempts(kind, identity)"
            )

            conn.commit()
            logger.info(f"Attempt store initialized at {self.db_path}")

    @contextmanager
    def _get_connection(self):
        """Context manager for database connections."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        except Exception as e:
            conn.rollback()
            logger.error(f"Database error: {e}")
            raise
        finally:
            conn.close()

    def load(self, kind: str, identity: str) -> List[int]:
        """
        Load recorded attempts for an identity.

        Returns:
            Attempt timestamps in ascending order
        """
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT attempted_at FROM attempts WHERE kind = ? AND identity = ? "
                "ORDER BY attempted_at",
                (kind, identity),
            )
            return [row["attempted_at"] for row in cursor.fetchall()]

    def load_all(self, kind: str) -> Dict[str, List[int]]:
        """Load every identity's attempts for one kind."""
        history: Dict[str, List[int]] = {}
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT identity, attempted_at FROM attempts WHERE kind = ? "
                "ORDER BY attempted_at",
                (kind,),
            )
            for row in cursor.fetchall():
                history.setdefault(row["identity"], []).append(row["attempted_at"])
        return history

    def save(self, kind: str, identity: str, attempts: List[int]) -> None:
        """Replace the stored attempts for an identity."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "DELETE FROM attempts WHERE kind = ? AND identity = ?", (kind, identity)
            )
            cursor.executemany(
                "INSERT INTO attempts (kind, identity, attempted_at) VALUES (?, ?, ?)",
                [(kind, identity, int(t)) for t in attempts],
            )
            conn.commit()

    def cleanup(self, kind: str, older_than: int) -> int:
        """
        Remove attempts recorded before ``older_than`` (epoch millis).

        Returns:
            Number of rows deleted
        """
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "DELETE FROM attempts WHERE kind = ? AND attempted_at < ?", (kind, older_than)
            )
            deleted = cursor.rowcount
            conn.commit()

        logger.info(f"Cleaned up {deleted} old {kind} attempts")
        return deleted
