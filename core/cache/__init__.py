"""Translation cache package.

Provides the persistent store, the cache service and its manager, and the translation
cache façade used by the translators.
"""

from __future__ import annotations

from core.cache.inflight_manager import InFlightManager
from core.cache.service import CacheService, CacheServiceManager, ServiceState
from core.cache.store import TranslationCacheStore
from core.cache.translation_cache import TranslationCache

__all__: list[str] = [
    "CacheService",
    "CacheServiceManager",
    "InFlightManager",
    "ServiceState",
    "TranslationCache",
    "TranslationCacheStore",
]
