"""Translation cache façade used by the translators.

Turns (source text, target language, model) triples into cache entries on the shared
CacheService. Concurrent identical lookups share a single store read.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from core.cache.inflight_manager import InFlightManager
from models.cache_models import CacheKeyComponents, CacheOperationResult, TranslationCacheEntry
from utils.logger_utils import LoggerUtils
from utils.string_utils import DEFAULT_PROVIDER, StringUtils

if TYPE_CHECKING:
    import logging

    from core.cache.service import CacheService, CacheServiceManager

__all__: list[str] = ["TranslationCache"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class TranslationCache:
    """Get and set translations by key components.

    Args:
        service_manager (CacheServiceManager): Owner of the shared CacheService.
        inflight (InFlightManager[str | None] | None): De-duplicates concurrent lookups.
            A private manager is created when omitted.
        provider (str): Provider prefix for model namespaces.
    """

    def __init__(
        self,
        service_manager: CacheServiceManager,
        inflight: InFlightManager[str | None] | None = None,
        provider: str = DEFAULT_PROVIDER,
    ) -> None:
        self._service_manager: CacheServiceManager = service_manager
        self._inflight: InFlightManager[str | None] = inflight if inflight is not None else InFlightManager()
        self._provider: str = provider

    @property
    def inflight(self) -> InFlightManager[str | None]:
        return self._inflight

    def _service(self) -> CacheService | None:
        try:
            return self._service_manager.get_instance()
        except RuntimeError:
            logger.debug("Cache service not initialized; cache bypassed")
            return None

    async def get(self, components: CacheKeyComponents) -> str | None:
        """Look up a cached translation.

        Args:
            components (CacheKeyComponents): Source text, target language and model id.

        Returns:
            str | None: The cached translation, or None on miss.
        """
        service: CacheService | None = self._service()
        if service is None:
            return None
        if not StringUtils.validate_cache_key_components(
            components.source_text, components.target_language, components.model_id
        ):
            return None

        cache_key: str = StringUtils.generate_cache_key(
            components.source_text, components.target_language, components.model_id
        )

        async def lookup() -> str | None:
            entry: TranslationCacheEntry | None = await service.get_entry(cache_key)
            return None if entry is None else entry.translated_text

        try:
            return await self._inflight.share(cache_key, lookup)
        except TimeoutError as err:
            logger.warning("Cache lookup treated as miss: %s", err)
            return None

    async def set(self, components: CacheKeyComponents, translated_text: str) -> CacheOperationResult:
        """Store a translation.

        A translation identical to its source (ignoring case and surrounding whitespace)
        is not stored; the call still succeeds. An empty or blank translation is rejected.

        Args:
            components (CacheKeyComponents): Source text, target language and model id.
            translated_text (str): The complete translation.

        Returns:
            CacheOperationResult: Success flag and error message.
        """
        service: CacheService | None = self._service()
        if service is None:
            return CacheOperationResult(success=False, error="Cache service is not initialized")
        if not StringUtils.validate_cache_key_components(
            components.source_text, components.target_language, components.model_id
        ):
            return CacheOperationResult(success=False, error="Invalid cache key components")

        if not translated_text.strip():
            return CacheOperationResult(success=False, error="Empty translation")
        if translated_text.strip().lower() == components.source_text.strip().lower():
            logger.debug("Skipping cache write: translation equals source text")
            return CacheOperationResult(success=True)

        cache_key: str = StringUtils.generate_cache_key(
            components.source_text, components.target_language, components.model_id
        )
        now_ms: int = int(datetime.now(UTC).timestamp() * 1000)
        entry = TranslationCacheEntry(
            id=cache_key,
            source_text=components.source_text,
            translated_text=translated_text,
            target_language=components.target_language,
            model_id=components.model_id,
            model_namespace=StringUtils.generate_model_namespace(components.model_id, self._provider),
            created_at=now_ms,
            last_accessed_at=now_ms,
            access_count=1,
            text_hash=StringUtils.generate_text_hash(cache_key),
        )

        result: CacheOperationResult = await service.set_entry(entry)
        if not result.success:
            logger.warning("Failed to cache translation %s: %s", cache_key[:16], result.error)
        return result
