"""Models for translation cache data.

Defines the persisted cache entry, the runtime cache configuration, derived statistics
and the result objects returned by store and service operations instead of exceptions.
Timestamps are epoch milliseconds.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from dataclasses_json import DataClassJsonMixin, LetterCase, dataclass_json

__all__: list[str] = [
    "CacheConfig",
    "CacheKeyComponents",
    "CacheOperationResult",
    "CacheStatistics",
    "ExpireResult",
    "TranslationCacheEntry",
]


@dataclass(frozen=True)
class CacheKeyComponents:
    """The triple a cache key is derived from."""

    source_text: str
    target_language: str
    model_id: str


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass
class TranslationCacheEntry(DataClassJsonMixin):
    """Translation cache entry data.

    Attributes:
        id (str): Cache key (SHA-256 of the normalized key components).
        source_text (str): Original text as supplied by the caller.
        translated_text (str): Translation. Never changes for a given key.
        target_language (str): Target language code.
        model_id (str): Model identifier the translation was produced with.
        model_namespace (str): Namespace grouping entries of one model, e.g. "ollama:qwen3:4b".
        created_at (int): Creation time. Retention is measured from here.
        last_accessed_at (int): Time of the most recent read hit.
        access_count (int): Number of writes and read hits, at least 1.
        text_hash (str): Short hash for indexing and logs.
        size (int): Byte length of the serialized entry at write time.
    """

    id: str
    source_text: str
    translated_text: str
    target_language: str
    model_id: str
    model_namespace: str
    created_at: int
    last_accessed_at: int
    access_count: int = 1
    text_hash: str = ""
    size: int = 0

    def serialized_size(self) -> int:
        """Byte length of the UTF-8 JSON serialization of this entry."""
        return len(self.to_json(ensure_ascii=False).encode("utf-8"))


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass
class CacheConfig(DataClassJsonMixin):
    enabled: bool = True
    retention_days: int = 30


@dataclass
class CacheStatistics:
    """Cache usage statistics.

    Attributes:
        total_entries (int): Total number of cache entries.
        total_size_mb (float): Sum of entry sizes in megabytes.
        hit_rate (float): Ratio of read hits to lookups since initialization.
        model_namespaces (list[str]): Sorted distinct model namespaces.
        namespace_distribution (dict[str, int]): Entry count per namespace.
        oldest_entry (int): Creation time of the oldest entry, 0 if empty.
        newest_entry (int): Creation time of the newest entry, 0 if empty.
    """

    total_entries: int = 0
    total_size_mb: float = 0.0
    hit_rate: float = 0.0
    model_namespaces: list[str] = field(default_factory=list)
    namespace_distribution: dict[str, int] = field(default_factory=dict)
    oldest_entry: int = 0
    newest_entry: int = 0


@dataclass(frozen=True)
class CacheOperationResult:
    success: bool
    error: str | None = None


@dataclass(frozen=True)
class ExpireResult:
    success: bool
    removed_count: int = 0
    error: str | None = None
