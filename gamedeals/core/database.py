# ===== IMPORTS & DEPENDENCIES =====
import os
import sqlite3
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import List

from gamedeals.core.errors import HistoryStoreError
from gamedeals.models.deal import PostRecord

# ===== CONFIGURATION & CONSTANTS =====
logger = logging.getLogger(__name__)


def _to_db_timestamp(value: datetime) -> str:
    """UTC ISO-8601 with fixed precision, so stored timestamps compare correctly as text."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec='microseconds')


# ===== CORE BUSINESS LOGIC =====
class Database:
    """Append-only history of published posts, used to keep reposts outside the repost window."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        directory = os.path.dirname(db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        self._create_tables()
        logger.info(f"[{self.__class__.__name__}] Database initialized at: {self.db_path}")

    def _get_connection(self) -> sqlite3.Connection:
        """Returns a new database connection."""
        return sqlite3.connect(self.db_path)

    def _create_tables(self):
        """Creates required tables if they don't exist."""
        try:
            with self._get_connection() as conn:
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS posted_games (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        external_id TEXT NOT NULL,
                        normalized_title TEXT NOT NULL,
                        price_reference TEXT NOT NULL DEFAULT '0',
                        post_id TEXT,
                        created_at TEXT NOT NULL
                    )
                """)
                conn.execute("CREATE INDEX IF NOT EXISTS idx_posted_games_title ON posted_games (normalized_title, created_at)")
                conn.execute("CREATE INDEX IF NOT EXISTS idx_posted_games_external ON posted_games (external_id, created_at)")
                conn.commit()
        except sqlite3.Error as e:
            raise HistoryStoreError(f"Could not initialize history store at {self.db_path}: {e}") from e
        logger.info(f"[{self.__class__.__name__}] Database tables verified/created.")

    def add_post(self, record: PostRecord) -> None:
        """Appends a post to the history. Raises HistoryStoreError on failure."""
        try:
            with self._get_connection() as conn:
                conn.execute(
                    "INSERT INTO posted_games (external_id, normalized_title, price_reference, post_id, created_at) VALUES (?, ?, ?, ?, ?)",
                    (record.external_id, record.normalized_title, str(record.price_reference), record.post_id, _to_db_timestamp(record.created_at))
                )
                conn.commit()
        except sqlite3.Error as e:
            raise HistoryStoreError(f"Could not record post for '{record.normalized_title}': {e}") from e
        logger.info(f"[{self.__class__.__name__}] Recorded post for '{record.normalized_title}' (external id {record.external_id}).")

    def find_recent_posts(self, key_or_id: str, since: datetime) -> List[PostRecord]:
        """
        Returns posts whose normalized title or external id equals `key_or_id`
        and that were created strictly after `since`.
        """
        try:
            with self._get_connection() as conn:
                cursor = conn.execute(
                    "SELECT external_id, normalized_title, price_reference, post_id, created_at FROM posted_games "
                    "WHERE (normalized_title = ? OR external_id = ?) AND created_at > ? ORDER BY created_at DESC",
                    (key_or_id, key_or_id, _to_db_timestamp(since))
                )
                rows = cursor.fetchall()
        except sqlite3.Error as e:
            raise HistoryStoreError(f"Could not query history for '{key_or_id}': {e}") from e

        return [
            PostRecord(
                external_id=external_id,
                normalized_title=normalized_title,
                price_reference=Decimal(price_reference),
                post_id=post_id,
                created_at=datetime.fromisoformat(created_at),
            )
            for external_id, normalized_title, price_reference, post_id, created_at in rows
        ]
