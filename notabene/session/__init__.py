"""Conversation history persisted in SQLite, one row per launch directory."""

import json
import sqlite3
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiosqlite

from notabene.config import get_config
from notabene.exceptions import HistoryError
from notabene.logging import get_logger

log = get_logger(__name__)


def _utcnow_iso() -> str:
    """Return current UTC timestamp in ISO format."""
    return datetime.now(UTC).isoformat()


def _directory_key(launch_dir: Path | str) -> str:
    return str(Path(launch_dir).expanduser().resolve())


class HistoryStore:
    """Stores ``{role, content}`` records per launch directory."""

    def __init__(self, db_path: Path | str | None = None):
        """Initialize history store.

        Args:
            db_path: Optional database path override
        """
        if db_path is None:
            config = get_config()
            self.db_path = Path(config.history.path).expanduser()
        else:
            self.db_path = Path(db_path).expanduser()

        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._db: aiosqlite.Connection | None = None

    async def _ensure_db(self) -> aiosqlite.Connection:
        """Ensure database is initialized."""
        if self._db is None:
            try:
                self._db = await aiosqlite.connect(str(self.db_path))
                await self._db.execute("""
                    CREATE TABLE IF NOT EXISTS history (
                        launch_directory TEXT PRIMARY KEY,
                        records TEXT NOT NULL DEFAULT '[]',
                        updated_at TEXT NOT NULL
                    )
                """)
                await self._db.commit()
            except sqlite3.Error as e:
                raise HistoryError(f"Cannot open history database {self.db_path}: {e}") from e
        return self._db

    async def load(self, launch_dir: Path | str) -> list[dict[str, Any]]:
        """Load saved records for a directory.

        Args:
            launch_dir: Directory nb was started in

        Returns:
            Saved records, or an empty list when nothing was saved
        """
        db = await self._ensure_db()
        key = _directory_key(launch_dir)
        try:
            async with db.execute(
                "SELECT records FROM history WHERE launch_directory = ?",
                (key,),
            ) as cursor:
                row = await cursor.fetchone()
        except sqlite3.Error as e:
            raise HistoryError(f"Cannot read history: {e}") from e

        if row is None:
            return []
        try:
            records = json.loads(row[0])
        except json.JSONDecodeError:
            log.warning("Discarding unreadable history", launch_directory=key)
            return []
        if not isinstance(records, list):
            return []
        return [record for record in records if isinstance(record, dict)]

    async def save(self, launch_dir: Path | str, records: list[dict[str, Any]]) -> None:
        """Replace the saved records for a directory."""
        db = await self._ensure_db()
        key = _directory_key(launch_dir)
        try:
            await db.execute("""
                INSERT OR REPLACE INTO history (launch_directory, records, updated_at)
                VALUES (?, ?, ?)
            """, (key, json.dumps(records), _utcnow_iso()))
            await db.commit()
        except sqlite3.Error as e:
            raise HistoryError(f"Cannot save history: {e}") from e
        log.debug("History saved", launch_directory=key, messages=len(records))

    async def clear(self, launch_dir: Path | str) -> bool:
        """Delete saved records for a directory.

        Returns:
            True if deleted, False if nothing was saved
        """
        db = await self._ensure_db()
        try:
            cursor = await db.execute(
                "DELETE FROM history WHERE launch_directory = ?",
                (_directory_key(launch_dir),),
            )
            await db.commit()
        except sqlite3.Error as e:
            raise HistoryError(f"Cannot clear history: {e}") from e
        return cursor.rowcount > 0

    async def close(self) -> None:
        """Close the database connection."""
        if self._db:
            await self._db.close()
            self._db = None


__all__ = ["HistoryStore"]
