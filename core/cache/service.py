# ruff: noqa: BLE001
"""Translation cache service.

Wraps the persistent store with the runtime cache configuration, hit/miss accounting and
derived statistics. ``CacheServiceManager`` owns the single shared service instance; it is
created once at process start and passed to every consumer.
"""

from __future__ import annotations

import asyncio
import os
import threading
from collections import Counter
from dataclasses import replace
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any, ClassVar, Final

from models.cache_models import (
    CacheConfig,
    CacheOperationResult,
    CacheStatistics,
    ExpireResult,
    TranslationCacheEntry,
)
from utils.logger_utils import LoggerUtils
from utils.string_utils import StringUtils

if TYPE_CHECKING:
    import logging

    from config.loader import ConfigLoader
    from core.cache.store import TranslationCacheStore
    from models.config_models import Config

__all__: list[str] = ["CacheService", "CacheServiceManager", "ServiceState"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

BYTES_PER_MB: Final[int] = 1024 * 1024
MS_PER_DAY: Final[int] = 86_400_000


class ServiceState(StrEnum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


class CacheService:
    """Typed access to the translation cache store.

    No method raises because of a storage failure. Reads degrade to a miss and writes
    to a failed CacheOperationResult, so translation never depends on the cache.

    Args:
        store (TranslationCacheStore): The store this service owns.
        config_loader (ConfigLoader | None): Source of the user's cache preferences.
    """

    MOCK_NAMESPACES: ClassVar[tuple[str, ...]] = ("qwen3:4b", "llama3.2:3b", "gemma3:4b")
    MOCK_LANGUAGES: ClassVar[tuple[str, ...]] = ("zh", "ja", "ko", "fr")

    def __init__(self, store: TranslationCacheStore, config_loader: ConfigLoader | None = None) -> None:
        self._store: TranslationCacheStore = store
        self._config_loader: ConfigLoader | None = config_loader
        self._config: CacheConfig = CacheConfig()
        self._hits: int = 0
        self._misses: int = 0
        self._is_initialized: bool = False

    @property
    def store(self) -> TranslationCacheStore:
        return self._store

    @property
    def is_initialized(self) -> bool:
        return self._is_initialized

    @property
    def hit_rate(self) -> float:
        lookups: int = self._hits + self._misses
        return self._hits / lookups if lookups else 0.0

    async def initialize(self) -> None:
        """Load preferences, open the store and sweep expired entries.

        A store that cannot be opened is logged; the service then runs without persistence.
        """
        logger.info("CacheService initialization started")
        self.load_user_config()
        if self._config_loader is not None:
            self._config_loader.add_listener(self.load_user_config)

        try:
            await self._store.open()
        except RuntimeError as err:
            logger.critical("Cache store unavailable, continuing without cache: %s", err)
        else:
            await self.expire_old_entries()

        self._is_initialized = True
        logger.info(
            "CacheService initialized (enabled: %s, retention: %d days)",
            self._config.enabled,
            self._config.retention_days,
        )

    async def close(self) -> None:
        """Detach from the configuration and close the store."""
        if self._config_loader is not None:
            self._config_loader.remove_listener(self.load_user_config)
        await self._store.close()
        self._is_initialized = False
        logger.info("CacheService closed")

    def load_user_config(self, config: Config | None = None) -> None:
        """Apply the ``[CACHE]`` preferences to the in-memory configuration.

        Args:
            config (Config | None): Configuration to read. None reads the loader's current one.
        """
        if config is None:
            if self._config_loader is None:
                logger.debug("No configuration source, keeping cache config %s", self._config)
                return
            config = self._config_loader.config

        retention_days: int = config.CACHE.RETENTION_DAYS
        if retention_days <= 0:
            logger.warning("Invalid cache retention %d days, using default", retention_days)
            retention_days = CacheConfig.retention_days
        self._config = CacheConfig(enabled=bool(config.CACHE.ENABLED), retention_days=retention_days)
        logger.debug("Cache config loaded: %s", self._config)

    def get_config(self) -> CacheConfig:
        return replace(self._config)

    def update_config(self, *, enabled: bool | None = None, retention_days: int | None = None) -> CacheConfig:
        """Merge the given fields into the current configuration.

        Fields left as None keep their current value.

        Returns:
            CacheConfig: A copy of the updated configuration.
        """
        if enabled is not None:
            self._config.enabled = enabled
        if retention_days is not None:
            if retention_days > 0:
                self._config.retention_days = retention_days
            else:
                logger.warning("Ignoring invalid cache retention of %d days", retention_days)
        logger.info("Cache config updated: %s", self._config)
        return self.get_config()

    async def get_entry(self, cache_key: str) -> TranslationCacheEntry | None:
        """Return the entry for ``cache_key``, or None on miss, error or disabled cache."""
        if not self._config.enabled:
            return None

        try:
            entry: TranslationCacheEntry | None = await self._store.get(cache_key)
        except Exception as err:
            logger.error("Error getting cache entry %s: %s", cache_key[:16], err)
            entry = None

        if entry is None:
            self._misses += 1
        else:
            self._hits += 1
        return entry

    async def set_entry(self, entry: TranslationCacheEntry) -> CacheOperationResult:
        if not self._config.enabled:
            return CacheOperationResult(success=False, error="Cache is disabled")

        try:
            return await self._store.put(entry)
        except Exception as err:
            logger.error("Error setting cache entry %s: %s", entry.id[:16], err)
            return CacheOperationResult(success=False, error=str(err))

    async def delete_entry(self, cache_key: str) -> CacheOperationResult:
        try:
            return await self._store.delete(cache_key)
        except Exception as err:
            logger.error("Error deleting cache entry %s: %s", cache_key[:16], err)
            return CacheOperationResult(success=False, error=str(err))

    async def clear(self) -> CacheOperationResult:
        try:
            result: CacheOperationResult = await self._store.clear()
        except Exception as err:
            logger.error("Error clearing cache: %s", err)
            return CacheOperationResult(success=False, error=str(err))

        if result.success:
            self._hits = self._misses = 0
            logger.info("Translation cache cleared")
        return result

    async def clear_model_namespace(self, model_namespace: str) -> CacheOperationResult:
        """Delete every entry of one model namespace, e.g. "ollama:qwen3:4b"."""
        try:
            result: CacheOperationResult = await self._store.delete_namespace(model_namespace)
        except Exception as err:
            logger.error("Error clearing cache namespace '%s': %s", model_namespace, err)
            return CacheOperationResult(success=False, error=str(err))

        if result.success:
            logger.info("Cleared cache namespace '%s'", model_namespace)
        return result

    async def expire_old_entries(self) -> ExpireResult:
        """Delete entries older than the current retention window."""
        try:
            return await self._store.expire(self._config.retention_days)
        except Exception as err:
            logger.error("Error expiring cache entries: %s", err)
            return ExpireResult(success=False, error=str(err))

    async def get_stats(self) -> CacheStatistics:
        """Aggregate statistics over a full scan of the store.

        Returns:
            CacheStatistics: Statistics; all zero for an empty or unavailable store.
        """
        total_entries: int = 0
        total_size: int = 0
        namespaces: Counter[str] = Counter()
        oldest_entry: int = 0
        newest_entry: int = 0

        try:
            async for entry in self._store.scan_all():
                total_entries += 1
                total_size += entry.size
                namespaces[entry.model_namespace] += 1
                oldest_entry = entry.created_at if not oldest_entry else min(oldest_entry, entry.created_at)
                newest_entry = max(newest_entry, entry.created_at)
        except Exception as err:
            logger.error("Error getting cache statistics: %s", err)
            return CacheStatistics()

        return CacheStatistics(
            total_entries=total_entries,
            total_size_mb=round(total_size / BYTES_PER_MB, 2),
            hit_rate=self.hit_rate,
            model_namespaces=sorted(namespaces),
            namespace_distribution=dict(namespaces),
            oldest_entry=oldest_entry,
            newest_entry=newest_entry,
        )

    async def get_cached_entries(self) -> list[TranslationCacheEntry]:
        """Return all entries ordered by namespace and creation time."""
        try:
            return [entry async for entry in self._store.scan_all()]
        except Exception as err:
            logger.error("Error listing cache entries: %s", err)
            return []

    async def get_debug_info(self) -> dict[str, Any]:
        """Collect diagnostics about the service and the execution context.

        Never raises; on an internal error a minimal structure carrying the error is returned.
        """
        try:
            loop: asyncio.AbstractEventLoop | None
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None

            return {
                "initialized": self._is_initialized,
                "store_open": self._store.is_open,
                "db_path": self._store.db_path,
                "config": self._config.to_dict(),
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": self.hit_rate,
                "last_cleanup": await self._store.get_metadata("last_cleanup"),
                "schema_version": await self._store.get_metadata("schema_version"),
                "process_id": os.getpid(),
                "thread": threading.current_thread().name,
                "event_loop": type(loop).__name__ if loop is not None else None,
            }
        except Exception as err:
            logger.error("Error collecting cache debug info: %s", err)
            return {"initialized": self._is_initialized, "error": str(err)}

    async def destroy_database(self) -> CacheOperationResult:
        """Close the store and delete its database file.

        The service must be initialized again before the cache can be used.
        """
        try:
            result: CacheOperationResult = await self._store.destroy()
        except Exception as err:
            logger.error("Error destroying cache database: %s", err)
            return CacheOperationResult(success=False, error=str(err))

        self._is_initialized = False
        self._hits = self._misses = 0
        return result

    async def insert_test_mock_data(self, count: int = 10, **overrides: Any) -> int:
        """Insert generated entries for diagnostics.

        Entries are spread over several model namespaces and languages, one day apart.

        Args:
            count (int): Number of entries to insert.
            **overrides: Entry fields applied to every generated entry.

        Returns:
            int: Number of entries stored successfully.
        """
        now_ms: int = int(datetime.now(UTC).timestamp() * 1000)
        inserted: int = 0
        for i in range(count):
            model_id: str = self.MOCK_NAMESPACES[i % len(self.MOCK_NAMESPACES)]
            target_language: str = self.MOCK_LANGUAGES[i % len(self.MOCK_LANGUAGES)]
            source_text: str = f"Mock source paragraph {i}"
            cache_key: str = StringUtils.generate_cache_key(source_text, target_language, model_id)
            created_at: int = now_ms - i * MS_PER_DAY
            fields: dict[str, Any] = {
                "id": cache_key,
                "source_text": source_text,
                "translated_text": f"[{target_language}] Mock translation {i}",
                "target_language": target_language,
                "model_id": model_id,
                "model_namespace": StringUtils.generate_model_namespace(model_id),
                "created_at": created_at,
                "last_accessed_at": created_at,
                "access_count": 1,
                "text_hash": StringUtils.generate_text_hash(cache_key),
            }
            fields.update(overrides)
            result: CacheOperationResult = await self.set_entry(TranslationCacheEntry(**fields))
            if result.success:
                inserted += 1
        logger.info("Inserted %d of %d mock cache entries", inserted, count)
        return inserted


class CacheServiceManager:
    """Owns the single CacheService instance between initialize() and reset().

    Concurrent ``initialize`` calls share one initialization and resolve to the same
    instance. ``reset`` closes the store so that the next ``initialize`` builds a new one.
    """

    def __init__(self, config_loader: ConfigLoader | None = None) -> None:
        self._config_loader: ConfigLoader | None = config_loader
        self._instance: CacheService | None = None
        self._pending: asyncio.Task[CacheService] | None = None
        self._state: ServiceState = ServiceState.UNINITIALIZED

    @property
    def state(self) -> ServiceState:
        return self._state

    async def initialize(self, store: TranslationCacheStore) -> CacheService:
        """Create and initialize the service, or return the existing one.

        Args:
            store (TranslationCacheStore): Store for a new service. Ignored when one exists.

        Returns:
            CacheService: The shared instance.
        """
        if self._instance is not None:
            return self._instance

        if self._pending is None:
            self._state = ServiceState.INITIALIZING
            self._pending = asyncio.create_task(self._create(store), name="cache-service-initialize")

        pending: asyncio.Task[CacheService] = self._pending
        try:
            service: CacheService = await asyncio.shield(pending)
        except Exception:
            if self._pending is pending:
                self._pending = None
                self._state = ServiceState.UNINITIALIZED
            raise

        if self._pending is pending:
            self._instance = service
            self._pending = None
            self._state = ServiceState.READY
        return service

    async def _create(self, store: TranslationCacheStore) -> CacheService:
        service = CacheService(store, self._config_loader)
        await service.initialize()
        return service

    def get_instance(self) -> CacheService:
        """Return the shared instance.

        Raises:
            RuntimeError: If the service has not been initialized.
        """
        if self._instance is None:
            msg = "CacheService is not initialized. Call initialize() first."
            raise RuntimeError(msg)
        return self._instance

    async def reset(self) -> None:
        """Close the current instance and return to the uninitialized state."""
        pending: asyncio.Task[CacheService] | None = self._pending
        instance: CacheService | None = self._instance
        self._pending = None
        self._instance = None
        self._state = ServiceState.UNINITIALIZED

        if pending is not None:
            if not pending.done():
                pending.cancel()
            try:
                instance = await pending
            except (asyncio.CancelledError, Exception) as err:
                logger.debug("Pending cache service initialization discarded: %r", err)
        if instance is not None:
            await instance.close()
        logger.info("CacheServiceManager reset")
