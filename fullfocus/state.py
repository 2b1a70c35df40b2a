"""
Local preference persistence using SQLite.

Stores the user's alert preferences as small key/value rows:
- Integers (alert lead time)
- String sets (enabled calendar identifiers, JSON encoded)
"""

import json
import logging
from pathlib import Path

import aiosqlite

logger = logging.getLogger(__name__)


class StateDB:
    """
    SQLite-backed key/value store for user preferences.

    Uses async operations for non-blocking I/O. Every write is committed
    before the call returns so values survive a restart.
    """

    def __init__(self, db_path: Path | str):
        self.db_path = db_path
        self._conn: aiosqlite.Connection | None = None

    async def connect(self):
        """Connect to the database and initialize schema."""
        self._conn = await aiosqlite.connect(self.db_path)
        self._conn.row_factory = aiosqlite.Row
        await self._init_schema()

    async def close(self):
        """Close the database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    async def __aenter__(self) -> "StateDB":
        await self.connect()
        return self

    async def __aexit__(self, *args):
        await self.close()

    async def _init_schema(self):
        """Initialize database schema."""
        await self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS preferences (
                key TEXT PRIMARY KEY,
                value TEXT,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );
        """)
        await self._conn.commit()

    async def _read(self, key: str) -> str | None:
        async with self._conn.execute(
            "SELECT value FROM preferences WHERE key = ?", (key,)
        ) as cursor:
            row = await cursor.fetchone()
            return row["value"] if row else None

    async def _write(self, key: str, value: str):
        await self._conn.execute(
            """
            INSERT INTO preferences (key, value, updated_at)
            VALUES (?, ?, CURRENT_TIMESTAMP)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = CURRENT_TIMESTAMP
            """,
            (key, value),
        )
        await self._conn.commit()

    async def read_int(self, key: str, default: int = 0) -> int:
        """Read an integer preference."""
        value = await self._read(key)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            logger.warning(f"Ignoring non-integer value for {key}: {value!r}")
            return default

    async def write_int(self, key: str, value: int):
        """Write an integer preference."""
        await self._write(key, str(int(value)))

    async def read_string_set(self, key: str) -> set[str]:
        """Read a set of strings stored as a JSON blob."""
        value = await self._read(key)
        if not value:
            return set()
        try:
            decoded = json.loads(value)
        except json.JSONDecodeError:
            logger.warning(f"Ignoring undecodable value for {key}")
            return set()
        return {str(item) for item in decoded}

    async def write_string_set(self, key: str, value: set[str] | frozenset[str]):
        """Write a set of strings as a JSON blob."""
        await self._write(key, json.dumps(sorted(value)))
