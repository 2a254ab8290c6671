from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import TYPE_CHECKING, Final

from core.trans.prompts import get_language_name
from models.cache_models import CacheKeyComponents
from models.prompt_models import LANGUAGE_NAMES
from models.translation_models import ModelRequest, ObjectChunk, TextDeltaChunk, TranslationSchema, TranslationUnit
from utils.logger_utils import LoggerUtils
from utils.stream_channel import StreamChannel
from utils.string_utils import StringUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import AsyncIterator

    from core.cache.translation_cache import TranslationCache
    from core.trans.interface import ModelInterface
    from core.trans.manager import TransManager
    from models.cache_models import CacheOperationResult
    from models.translation_models import ModelChunk

__all__: list[str] = ["ParagraphTranslator"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

DEFAULT_MAX_RETRY: Final[int] = 3


class ParagraphTranslator:
    """Streams translations of paragraphs from the current model engine.

    Args:
        trans_manager (TransManager): Supplies the engine and the prompt templates.
        cache (TranslationCache | None): Cache for single paragraph translations.
    """

    def __init__(self, trans_manager: TransManager, cache: TranslationCache | None = None) -> None:
        self._trans_manager: TransManager = trans_manager
        self._cache: TranslationCache | None = cache
        self._background_tasks: set[asyncio.Task[CacheOperationResult]] = set()

    @property
    def _engine(self) -> ModelInterface:
        return self._trans_manager.current_engine_instance

    async def translate_paragraphs(
        self,
        paragraphs: list[str],
        target_language: str,
        model: str | None = None,
        abort_signal: asyncio.Event | None = None,
        max_retry: int = DEFAULT_MAX_RETRY,
    ) -> AsyncIterator[TranslationUnit]:
        """Translate paragraphs in one structured model call, streaming progress.

        Every index the model fills with non-empty text is emitted once with ``done=True``, preceded by zero or
        more growing ``done=False`` emissions. If the model stops before the end of the list,
        the untranslated remainder is requested again, at most ``max_retry`` times. Indices
        still missing after that are never emitted.

        Args:
            paragraphs (list[str]): Source paragraphs in order.
            target_language (str): Language code or display name shown to the model.
            model (str | None): Model override. None uses the engine's model.
            abort_signal (asyncio.Event | None): Stops the current call and prevents retries.
            max_retry (int): Additional calls allowed for the untranslated remainder.

        Yields:
            TranslationUnit: Progress events indexed by position in ``paragraphs``.
        """
        language_name: str = LANGUAGE_NAMES.get(target_language, target_language)
        offset: int = 0
        retries_left: int = max(max_retry, 0)

        while offset < len(paragraphs):
            completed: int = 0
            async for unit in self._stream_batch(paragraphs[offset:], language_name, model, abort_signal):
                if unit.done:
                    completed = max(completed, unit.idx + 1)
                yield replace(unit, idx=unit.idx + offset)
            offset += completed

            if offset >= len(paragraphs):
                break
            if abort_signal is not None and abort_signal.is_set():
                logger.info("Translation aborted with %d of %d paragraphs done", offset, len(paragraphs))
                break
            if retries_left <= 0:
                logger.warning(
                    "Retries exhausted with %d of %d paragraphs translated",
                    offset,
                    len(paragraphs),
                )
                break
            retries_left -= 1
            logger.info(
                "Model stopped after %d of %d paragraphs, retrying the remaining %d (%d retries left)",
                offset,
                len(paragraphs),
                len(paragraphs) - offset,
                retries_left,
            )

    async def _stream_batch(
        self,
        paragraphs: list[str],
        language_name: str,
        model: str | None,
        abort_signal: asyncio.Event | None,
    ) -> AsyncIterator[TranslationUnit]:
        """Run one structured call and reconcile its array snapshots.

        The array length tells which index is being generated: the last element is still
        growing, every earlier one is final.
        """
        prompt, system = self._trans_manager.prompts.batch(paragraphs, language_name)
        request = ModelRequest(
            prompt=prompt,
            system=system,
            schema=TranslationSchema,
            abort_signal=abort_signal,
            model=model,
        )
        total: int = len(paragraphs)
        finalized: int = 0
        translation: list[str] = []

        async with StreamChannel(self._engine.stream_object(request), abort_signal=abort_signal) as channel:
            async for chunk in channel:
                snapshot: list[str] | None = self._extract_translation(chunk)
                if snapshot is None or len(snapshot) < len(translation):
                    logger.debug("Skipping unusable chunk: %r", chunk)
                    continue
                translation = snapshot

                superseded: int = min(len(translation) - 1, total)
                while finalized < superseded and translation[finalized]:
                    yield TranslationUnit(
                        idx=finalized, text=paragraphs[finalized], translated=translation[finalized], done=True
                    )
                    finalized += 1
                if finalized < superseded:
                    logger.warning("Model left paragraph %d empty, ending this call", finalized)
                    return

                if len(translation) > total:
                    logger.warning("Model returned %d translations for %d paragraphs", len(translation), total)
                    break

                tail: int = len(translation) - 1
                if tail >= finalized and translation[tail]:
                    yield TranslationUnit(idx=tail, text=paragraphs[tail], translated=translation[tail], done=False)

            if channel.aborted:
                # The element being generated is incomplete.
                return

        # Only a contiguous prefix of non-empty elements is final; the rest is left for the retry.
        while finalized < min(len(translation), total) and translation[finalized]:
            yield TranslationUnit(
                idx=finalized, text=paragraphs[finalized], translated=translation[finalized], done=True
            )
            finalized += 1

    @staticmethod
    def _extract_translation(chunk: ModelChunk) -> list[str] | None:
        if not isinstance(chunk, ObjectChunk):
            return None
        value = chunk.object.get("translation")
        if not isinstance(value, list):
            return None
        return [StringUtils.ensure_str(item) for item in value]

    async def translate_one_paragraph(
        self,
        paragraph: str,
        target_language: str,
        model: str | None = None,
        abort_signal: asyncio.Event | None = None,
    ) -> AsyncIterator[str]:
        """Translate a single paragraph, yielding the growing translation.

        A cached translation is yielded once. Otherwise the running concatenation of the
        model's text deltas is yielded after every delta, and the final text is written to
        the cache in the background.

        Args:
            paragraph (str): Source text.
            target_language (str): Target language code.
            model (str | None): Model override. None uses the engine's model.
            abort_signal (asyncio.Event | None): Stops the model call.

        Yields:
            str: The translation so far; the last value is complete.
        """
        components = CacheKeyComponents(
            source_text=paragraph,
            target_language=target_language,
            model_id=model or self._engine.model_id,
        )
        if self._cache is not None:
            cached: str | None = await self._cache.get(components)
            if cached is not None:
                logger.debug("Single paragraph served from cache")
                yield cached
                return

        prompt, system = self._trans_manager.prompts.single(paragraph, get_language_name(target_language))
        request = ModelRequest(prompt=prompt, system=system, abort_signal=abort_signal, model=model)

        translated: str = ""
        async with StreamChannel(self._engine.stream_text(request), abort_signal=abort_signal) as channel:
            async for chunk in channel:
                if not isinstance(chunk, TextDeltaChunk) or not chunk.text_delta:
                    continue
                translated += chunk.text_delta
                yield translated
            aborted: bool = channel.aborted

        if translated and not aborted and self._cache is not None:
            self._schedule_cache_write(components, translated)

    def _schedule_cache_write(self, components: CacheKeyComponents, translated: str) -> None:
        if self._cache is None:
            return
        task: asyncio.Task[CacheOperationResult] = asyncio.create_task(self._cache.set(components, translated))
        self._background_tasks.add(task)
        task.add_done_callback(self._on_cache_write_done)

    def _on_cache_write_done(self, task: asyncio.Task[CacheOperationResult]) -> None:
        self._background_tasks.discard(task)
        if task.cancelled():
            return
        if (err := task.exception()) is not None:
            logger.error("Background cache write failed: %r", err)
        elif not task.result().success:
            logger.error("Background cache write failed: %s", task.result().error)

    async def wait_pending_writes(self) -> None:
        """Wait until background cache writes have finished."""
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
