from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from models.cache_models import CacheKeyComponents
from models.translation_models import TranslationUnit
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import asyncio
    import logging
    from collections.abc import AsyncIterator

    from core.cache.translation_cache import TranslationCache
    from core.trans.manager import TransManager
    from core.trans.paragraph_translator import ParagraphTranslator
    from models.translation_models import TranslatorEnv

__all__: list[str] = ["Translator"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


@dataclass(frozen=True)
class _LookupItem:
    idx: int
    text: str
    cached: str | None


class Translator:
    """Cache-aware translation of a list of text units.

    Cached units are served from the cache; the rest go to the paragraph translator as a
    single batch and are cached when finished.

    Args:
        trans_manager (TransManager): Resolves the target language and model per call.
        paragraph_translator (ParagraphTranslator): Translates the cache misses.
        cache (TranslationCache): Translation cache.
    """

    def __init__(
        self,
        trans_manager: TransManager,
        paragraph_translator: ParagraphTranslator,
        cache: TranslationCache,
    ) -> None:
        self._trans_manager: TransManager = trans_manager
        self._paragraph_translator: ParagraphTranslator = paragraph_translator
        self._cache: TranslationCache = cache

    async def translate(
        self, text_list: list[str], abort_signal: asyncio.Event | None = None
    ) -> AsyncIterator[TranslationUnit]:
        """Translate every text, yielding progress indexed by position in ``text_list``.

        Each distinct text receives exactly one ``done=True`` event per occurrence unless the model gives up before
        reaching it. Cached units are emitted after the batch of uncached units. Results are
        mapped back by the first position holding the same text, so duplicate texts all map
        to their first occurrence.

        Args:
            text_list (list[str]): Texts in caller order.
            abort_signal (asyncio.Event | None): Stops the model call and prevents retries.

        Yields:
            TranslationUnit: Progress events.
        """
        env: TranslatorEnv = self._trans_manager.resolve_env()
        logger.debug(
            "Translating %d texts into %s with %s", len(text_list), env.target_language, env.model_id
        )

        items: list[_LookupItem] = []
        for idx, text in enumerate(text_list):
            cached: str | None = await self._cache.get(self._components(text, env))
            items.append(_LookupItem(idx=idx, text=text, cached=cached))

        if all(item.cached is not None for item in items):
            logger.debug("All %d texts served from cache", len(items))
            for item in items:
                yield TranslationUnit(idx=item.idx, text=item.text, translated=item.cached or "", done=True)
            return

        uncached: list[str] = [item.text for item in items if item.cached is None]
        logger.debug("%d of %d texts need translation", len(uncached), len(items))

        async for unit in self._paragraph_translator.translate_paragraphs(
            uncached,
            env.language_name,
            model=env.model_id,
            abort_signal=abort_signal,
            max_retry=env.max_retry,
        ):
            if unit.done:
                await self._cache.set(self._components(unit.text, env), unit.translated)
            yield replace(unit, idx=text_list.index(unit.text))

        for item in items:
            if item.cached is not None:
                yield TranslationUnit(idx=item.idx, text=item.text, translated=item.cached, done=True)

    @staticmethod
    def _components(text: str, env: TranslatorEnv) -> CacheKeyComponents:
        return CacheKeyComponents(source_text=text, target_language=env.target_language, model_id=env.model_id)
