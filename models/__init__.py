"""Data models for the page translator.

This package contains dataclass definitions for configuration, cache entries and statistics,
translation events and model chunks, and the prompt templates.
"""

from __future__ import annotations

from models.cache_models import (
    CacheConfig,
    CacheKeyComponents,
    CacheOperationResult,
    CacheStatistics,
    ExpireResult,
    TranslationCacheEntry,
)
from models.config_models import LLM, Cache, Config, General, Translation
from models.translation_models import (
    ModelChunk,
    ModelRequest,
    ObjectChunk,
    TextDeltaChunk,
    TranslationSchema,
    TranslationUnit,
    TranslatorEnv,
)

__all__: list[str] = [
    "LLM",
    "Cache",
    "CacheConfig",
    "CacheKeyComponents",
    "CacheOperationResult",
    "CacheStatistics",
    "Config",
    "ExpireResult",
    "General",
    "ModelChunk",
    "ModelRequest",
    "ObjectChunk",
    "TextDeltaChunk",
    "Translation",
    "TranslationCacheEntry",
    "TranslationSchema",
    "TranslationUnit",
    "TranslatorEnv",
]
