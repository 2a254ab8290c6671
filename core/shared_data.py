"""Shared data management for the translation engine.

This module defines the SharedData class, a centralized container for the services built
once at process start and passed by reference to every consumer: configuration, the cache
service manager, the translation cache, the model engine manager and the translators.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from core.cache.inflight_manager import InFlightManager
from core.cache.service import CacheService, CacheServiceManager
from core.cache.store import TranslationCacheStore
from core.cache.translation_cache import TranslationCache
from core.trans.manager import TransManager
from core.trans.paragraph_translator import ParagraphTranslator
from core.trans.translator import Translator
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

    from config.loader import ConfigLoader
    from models.config_models import Config


__all__: list[str] = ["SharedData"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


@dataclass
class SharedData:
    _config_loader: ConfigLoader = field()
    _cache_service_manager: CacheServiceManager = field(init=False)
    _inflight_manager: InFlightManager[str | None] = field(init=False)
    _translation_cache: TranslationCache = field(init=False)
    _trans_manager: TransManager = field(init=False)
    _paragraph_translator: ParagraphTranslator = field(init=False)
    _translator: Translator = field(init=False)

    async def async_init(self) -> None:
        self._cache_service_manager = CacheServiceManager(self._config_loader)
        self._inflight_manager = InFlightManager()
        self._translation_cache = TranslationCache(self._cache_service_manager, self._inflight_manager)
        self._trans_manager = TransManager(self.config)
        self._paragraph_translator = ParagraphTranslator(self._trans_manager, self._translation_cache)
        self._translator = Translator(self._trans_manager, self._paragraph_translator, self._translation_cache)

    async def start(self) -> None:
        """Configure logging, build the services, open the cache and initialize the model engine."""
        LoggerUtils.from_config(self.config.GENERAL)
        await self.async_init()
        await self._inflight_manager.component_load()
        await self._cache_service_manager.initialize(TranslationCacheStore(self.config.CACHE.DB_PATH))
        await self._trans_manager.initialize()
        self._config_loader.add_listener(self._trans_manager.on_config_reload)
        logger.info("Shared services started")

    async def close(self) -> None:
        """Release the model engine, pending lookups and the cache store."""
        self._config_loader.remove_listener(self._trans_manager.on_config_reload)
        await self._paragraph_translator.wait_pending_writes()
        await self._trans_manager.shutdown_engines()
        await self._inflight_manager.component_teardown()
        await self._cache_service_manager.reset()
        logger.info("Shared services closed")

    @property
    def config(self) -> Config:
        return self._config_loader.config

    @property
    def config_loader(self) -> ConfigLoader:
        return self._config_loader

    @property
    def cache_service_manager(self) -> CacheServiceManager:
        return self._cache_service_manager

    @property
    def cache_service(self) -> CacheService:
        return self._cache_service_manager.get_instance()

    @property
    def translation_cache(self) -> TranslationCache:
        return self._translation_cache

    @property
    def trans_manager(self) -> TransManager:
        return self._trans_manager

    @property
    def paragraph_translator(self) -> ParagraphTranslator:
        return self._paragraph_translator

    @property
    def translator(self) -> Translator:
        return self._translator
