# ruff: noqa: BLE001
"""Persistent translation cache store.

Stores translation cache entries in a SQLite database with WAL mode. Storage errors never
leave this module: they are logged and returned as failed results or treated as misses.
Timestamps are epoch milliseconds.
"""

from __future__ import annotations

import sqlite3
from dataclasses import replace
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, ClassVar, Final

from models.cache_models import CacheOperationResult, ExpireResult, TranslationCacheEntry
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import AsyncIterator

__all__: list[str] = ["TranslationCacheStore"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

DEFAULT_DB_PATH: Final[Path] = Path("translation_cache.db")
IN_MEMORY_DB: Final[str] = ":memory:"
MS_PER_DAY: Final[int] = 86_400_000

_ENTRY_COLUMNS: Final[str] = (
    "id, source_text, translated_text, target_language, model_id, model_namespace, "
    "created_at, last_accessed_at, access_count, text_hash, size"
)


class TranslationCacheStore:
    """SQLite-backed key/value store for translation cache entries.

    The store owns a single connection. Every data operation is safe to call while the
    store is closed; it then behaves like an empty store whose writes fail.

    Attributes:
        DB_SCHEMA_VERSION (ClassVar[int]): Cache database schema version.
        SCAN_BATCH_SIZE (ClassVar[int]): Rows fetched per round trip by scan_all().
    """

    DB_SCHEMA_VERSION: ClassVar[int] = 1
    SCAN_BATCH_SIZE: ClassVar[int] = 200

    def __init__(self, db_path: str | Path = DEFAULT_DB_PATH) -> None:
        """Initialize the store without opening the database.

        Args:
            db_path (str | Path): Database file, or ":memory:" for a transient store.
        """
        self._db_path: str = str(db_path)
        self._db_conn: sqlite3.Connection | None = None
        logger.debug("TranslationCacheStore instance created for '%s'", self._db_path)

    @property
    def db_path(self) -> str:
        return self._db_path

    @property
    def is_open(self) -> bool:
        return self._db_conn is not None

    async def open(self) -> None:
        """Open the database, enable WAL mode and create missing tables.

        Raises:
            RuntimeError: If the database cannot be opened or initialized.
        """
        if self._db_conn is not None:
            return

        try:
            self._db_conn = sqlite3.connect(self._db_path, check_same_thread=False)
            self._db_conn.execute("PRAGMA journal_mode=WAL")

            self._db_conn.execute(
                """
                CREATE TABLE IF NOT EXISTS translation_cache (
                    id TEXT PRIMARY KEY,
                    source_text TEXT NOT NULL,
                    translated_text TEXT NOT NULL,
                    target_language TEXT NOT NULL,
                    model_id TEXT NOT NULL,
                    model_namespace TEXT NOT NULL,
                    created_at INTEGER NOT NULL,
                    last_accessed_at INTEGER NOT NULL,
                    access_count INTEGER NOT NULL DEFAULT 1,
                    text_hash TEXT NOT NULL,
                    size INTEGER NOT NULL DEFAULT 0
                )
                """
            )
            self._db_conn.execute("CREATE INDEX IF NOT EXISTS idx_namespace ON translation_cache(model_namespace)")
            self._db_conn.execute("CREATE INDEX IF NOT EXISTS idx_created_at ON translation_cache(created_at)")
            self._db_conn.execute("CREATE INDEX IF NOT EXISTS idx_text_hash ON translation_cache(text_hash)")

            self._db_conn.execute(
                """
                CREATE TABLE IF NOT EXISTS cache_metadata (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )
            self._db_conn.execute(
                "INSERT OR IGNORE INTO cache_metadata (key, value) VALUES (?, ?)",
                ("schema_version", str(self.DB_SCHEMA_VERSION)),
            )
            self._db_conn.execute(
                "INSERT OR IGNORE INTO cache_metadata (key, value) VALUES (?, ?)",
                ("last_cleanup", str(self._now_ms())),
            )
            row = self._db_conn.execute(
                "SELECT value FROM cache_metadata WHERE key = ?",
                ("schema_version",),
            ).fetchone()
            if row is not None and row[0] != str(self.DB_SCHEMA_VERSION):
                logger.warning(
                    "Cache DB schema version mismatch (db: %s, expected: %s)",
                    row[0],
                    self.DB_SCHEMA_VERSION,
                )

            self._db_conn.commit()
            logger.info("Cache database opened with WAL mode: %s", self._db_path)
        except sqlite3.Error as err:
            self._close_connection()
            msg: str = f"Cache database initialization failed: {err}"
            logger.critical(msg)
            raise RuntimeError(msg) from err

    async def close(self) -> None:
        """Close the database connection. Closing a closed store does nothing."""
        if self._close_connection():
            logger.info("Cache database closed")

    def _close_connection(self) -> bool:
        if self._db_conn is None:
            return False
        try:
            self._db_conn.close()
        except sqlite3.Error as err:
            logger.error("Error closing cache database: %s", err)
        self._db_conn = None
        return True

    def _now_ms(self) -> int:
        """Get current time as epoch milliseconds."""
        return int(datetime.now(UTC).timestamp() * 1000)

    @staticmethod
    def _row_to_entry(row: tuple) -> TranslationCacheEntry:
        return TranslationCacheEntry(
            id=row[0],
            source_text=row[1],
            translated_text=row[2],
            target_language=row[3],
            model_id=row[4],
            model_namespace=row[5],
            created_at=int(row[6]),
            last_accessed_at=int(row[7]),
            access_count=int(row[8]),
            text_hash=row[9],
            size=int(row[10]),
        )

    async def get(self, key: str) -> TranslationCacheEntry | None:
        """Look up an entry and record the access.

        A hit updates ``last_accessed_at`` and increments ``access_count`` before the
        entry is returned.

        Args:
            key (str): Cache key.

        Returns:
            TranslationCacheEntry | None: The entry with updated counters, or None on miss or error.
        """
        if self._db_conn is None:
            return None

        try:
            row = self._db_conn.execute(
                f"SELECT {_ENTRY_COLUMNS} FROM translation_cache WHERE id = ?",  # noqa: S608
                (key,),
            ).fetchone()
            if row is None:
                logger.debug("Cache miss for key: %s", key[:16])
                return None

            entry: TranslationCacheEntry = self._row_to_entry(row)
            now_ms: int = max(self._now_ms(), entry.last_accessed_at + 1)
            self._db_conn.execute(
                "UPDATE translation_cache SET last_accessed_at = ?, access_count = access_count + 1 WHERE id = ?",
                (now_ms, key),
            )
            self._db_conn.commit()
            entry = replace(entry, last_accessed_at=now_ms, access_count=entry.access_count + 1)
            logger.debug("Cache hit for key: %s (access_count: %d)", key[:16], entry.access_count)

        except sqlite3.Error as err:
            logger.error("Error reading cache entry %s: %s", key[:16], err)
            return None
        else:
            return entry

    async def put(self, entry: TranslationCacheEntry) -> CacheOperationResult:
        """Insert or overwrite an entry.

        The stored copy carries ``size``, the byte length of its serialization; ``entry`` is not modified.

        Args:
            entry (TranslationCacheEntry): Entry to store.

        Returns:
            CacheOperationResult: Success flag and error message.
        """
        if self._db_conn is None:
            return CacheOperationResult(success=False, error="Cache store is not open")

        stored: TranslationCacheEntry = replace(entry, size=replace(entry, size=0).serialized_size())
        try:
            self._db_conn.execute(
                f"INSERT OR REPLACE INTO translation_cache ({_ENTRY_COLUMNS}) "  # noqa: S608
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    stored.id,
                    stored.source_text,
                    stored.translated_text,
                    stored.target_language,
                    stored.model_id,
                    stored.model_namespace,
                    stored.created_at,
                    stored.last_accessed_at,
                    stored.access_count,
                    stored.text_hash,
                    stored.size,
                ),
            )
            self._db_conn.commit()
            logger.debug("Translation cached for key: %s (%d bytes)", stored.id[:16], stored.size)

        except sqlite3.Error as err:
            logger.error("Error writing cache entry %s: %s", stored.id[:16], err)
            return CacheOperationResult(success=False, error=str(err))
        else:
            return CacheOperationResult(success=True)

    async def delete(self, key: str) -> CacheOperationResult:
        """Delete an entry. Deleting a missing key succeeds."""
        return self._execute_write("DELETE FROM translation_cache WHERE id = ?", (key,), f"delete {key[:16]}")

    async def clear(self) -> CacheOperationResult:
        """Delete every entry."""
        return self._execute_write("DELETE FROM translation_cache", (), "clear")

    async def delete_namespace(self, model_namespace: str) -> CacheOperationResult:
        """Delete every entry of one model namespace."""
        return self._execute_write(
            "DELETE FROM translation_cache WHERE model_namespace = ?",
            (model_namespace,),
            f"delete namespace '{model_namespace}'",
        )

    def _execute_write(self, sql: str, params: tuple, action: str) -> CacheOperationResult:
        if self._db_conn is None:
            return CacheOperationResult(success=False, error="Cache store is not open")

        try:
            cursor: sqlite3.Cursor = self._db_conn.execute(sql, params)
            self._db_conn.commit()
            logger.debug("Cache %s: %d rows affected", action, cursor.rowcount)
        except sqlite3.Error as err:
            logger.error("Error during cache %s: %s", action, err)
            return CacheOperationResult(success=False, error=str(err))
        else:
            return CacheOperationResult(success=True)

    async def scan_all(self) -> AsyncIterator[TranslationCacheEntry]:
        """Iterate over all entries, ordered by namespace and creation time.

        Each call starts a fresh scan. A storage error ends the scan early.

        Yields:
            TranslationCacheEntry: Stored entries.
        """
        if self._db_conn is None:
            return

        try:
            cursor: sqlite3.Cursor = self._db_conn.execute(
                f"SELECT {_ENTRY_COLUMNS} FROM translation_cache ORDER BY model_namespace, created_at"  # noqa: S608
            )
            while rows := cursor.fetchmany(self.SCAN_BATCH_SIZE):
                for row in rows:
                    yield self._row_to_entry(row)
        except sqlite3.Error as err:
            logger.error("Error scanning cache entries: %s", err)

    async def expire(self, retention_days: int) -> ExpireResult:
        """Delete entries whose age exceeds the retention window.

        An entry is removed when ``now - created_at > retention_days * 86_400_000``.
        Entries exactly at the boundary are kept.

        Args:
            retention_days (int): Retention window in days.

        Returns:
            ExpireResult: Success flag and the number of removed entries.
        """
        if self._db_conn is None:
            return ExpireResult(success=False, error="Cache store is not open")

        now_ms: int = self._now_ms()
        try:
            cursor: sqlite3.Cursor = self._db_conn.execute(
                "DELETE FROM translation_cache WHERE ? - created_at > ?",
                (now_ms, retention_days * MS_PER_DAY),
            )
            removed: int = max(cursor.rowcount, 0)
            self._db_conn.execute(
                "INSERT OR REPLACE INTO cache_metadata (key, value) VALUES (?, ?)",
                ("last_cleanup", str(now_ms)),
            )
            self._db_conn.commit()
            logger.info("Deleted %d expired translation cache entries", removed)

        except sqlite3.Error as err:
            logger.error("Error during cache expiry: %s", err)
            return ExpireResult(success=False, error=str(err))
        else:
            return ExpireResult(success=True, removed_count=removed)

    async def count(self) -> int:
        if self._db_conn is None:
            return 0
        try:
            row = self._db_conn.execute("SELECT COUNT(*) FROM translation_cache").fetchone()
        except sqlite3.Error as err:
            logger.error("Error counting cache entries: %s", err)
            return 0
        else:
            return int(row[0])

    async def get_metadata(self, key: str) -> str | None:
        """Read a value from the cache_metadata table (``schema_version``, ``last_cleanup``)."""
        if self._db_conn is None:
            return None
        try:
            row = self._db_conn.execute("SELECT value FROM cache_metadata WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as err:
            logger.error("Error reading cache metadata '%s': %s", key, err)
            return None
        else:
            return None if row is None else row[0]

    async def destroy(self) -> CacheOperationResult:
        """Close the store and delete its database files.

        Returns:
            CacheOperationResult: Success flag and error message.
        """
        await self.close()
        if self._db_path == IN_MEMORY_DB:
            return CacheOperationResult(success=True)

        try:
            for suffix in ("", "-wal", "-shm"):
                Path(f"{self._db_path}{suffix}").unlink(missing_ok=True)
            logger.info("Cache database deleted: %s", self._db_path)
        except OSError as err:
            logger.error("Error deleting cache database: %s", err)
            return CacheOperationResult(success=False, error=str(err))
        else:
            return CacheOperationResult(success=True)
