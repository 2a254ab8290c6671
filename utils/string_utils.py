from __future__ import annotations

import hashlib
import re
import unicodedata
from typing import Final

__all__: list[str] = ["StringUtils"]

SOURCE_TEXT_LENGTH_LIMIT: Final[int] = 50_000  # Characters. Longer paragraphs are never cached.
TEXT_HASH_LENGTH: Final[int] = 16
DEFAULT_PROVIDER: Final[str] = "ollama"

_KNOWN_PROVIDER_PATTERN: Final[re.Pattern[str]] = re.compile(r"^(ollama|webllm|openai|anthropic|chrome-ai)[/:]")
_LANGUAGE_CODE_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[a-z]{2,3}(-[A-Z]{2})?$")
_EXCESS_NEWLINES_PATTERN: Final[re.Pattern[str]] = re.compile(r"\n{3,}")
_INLINE_BLANKS_PATTERN: Final[re.Pattern[str]] = re.compile(r"[ \t]{2,}")

# Order matters: '&amp;' is decoded last so that '&amp;lt;' stays '&lt;'.
_HTML_ENTITIES: Final[tuple[tuple[str, str], ...]] = (
    ("&nbsp;", " "),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
    ("&amp;", "&"),
)


class StringUtils:
    """String helpers shared by the cache key strategy and the translators."""

    @staticmethod
    def ensure_str(value: str | None) -> str:
        """Return the value as a string, or an empty string for None.

        Whitespace is preserved; model output may legitimately begin or end with blanks.
        """
        if not isinstance(value, str):
            value = str(value) if value is not None else ""
        return value

    @staticmethod
    def normalize_text(text: str) -> str:
        """Normalize source text so that cosmetic variations share one cache entry.

        Applies Unicode NFC, trims, unifies line endings, collapses three or more newlines
        to two, collapses runs of spaces/tabs to one space and decodes common HTML entities.

        Args:
            text (str): Text to normalize.

        Returns:
            str: Normalized text.
        """
        value: str = unicodedata.normalize("NFC", StringUtils.ensure_str(text)).strip()
        value = value.replace("\r\n", "\n").replace("\r", "\n")
        value = _EXCESS_NEWLINES_PATTERN.sub("\n\n", value)
        value = _INLINE_BLANKS_PATTERN.sub(" ", value)
        for entity, char in _HTML_ENTITIES:
            value = value.replace(entity, char)
        return value

    @staticmethod
    def generate_cache_key(source_text: str, target_language: str, model_id: str) -> str:
        """Generate the fingerprint of a (source text, target language, model) triple.

        Args:
            source_text (str): Original text.
            target_language (str): Target language code.
            model_id (str): Model identifier.

        Returns:
            str: SHA-256 hex digest used as the store's primary key.
        """
        key_data: str = "|".join(
            [StringUtils.normalize_text(source_text), target_language.lower(), model_id.lower()]
        )
        return hashlib.sha256(key_data.encode("utf-8")).hexdigest()

    @staticmethod
    def generate_text_hash(cache_key: str) -> str:
        """Short hash used for indexing and log output."""
        return cache_key[:TEXT_HASH_LENGTH]

    @staticmethod
    def generate_model_namespace(model_id: str, provider: str = DEFAULT_PROVIDER) -> str:
        """Derive the namespace that groups cache entries of one model.

        Examples:
            "qwen3:4b"        -> "ollama:qwen3:4b"
            "openai:gpt-4o"   -> "openai:gpt-4o"

        Args:
            model_id (str): Model identifier.
            provider (str): Provider prefix used when the id carries none.

        Returns:
            str: Lower-cased namespace, or an empty string for an empty model id.
        """
        model: str = StringUtils.ensure_str(model_id).strip().lower()
        if not model:
            return ""
        if _KNOWN_PROVIDER_PATTERN.match(model):
            return model
        return f"{provider.lower()}:{model}"

    @staticmethod
    def validate_cache_key_components(source_text: str, target_language: str, model_id: str) -> bool:
        """Check whether a triple may be cached at all.

        Args:
            source_text (str): Original text, at most SOURCE_TEXT_LENGTH_LIMIT characters.
            target_language (str): Language code such as 'ja' or 'zh-TW'.
            model_id (str): Model identifier of 2 to 100 characters.

        Returns:
            bool: True if the triple is eligible for caching.
        """
        if not source_text or not target_language or not model_id:
            return False
        if len(source_text) > SOURCE_TEXT_LENGTH_LIMIT:
            return False
        if not _LANGUAGE_CODE_PATTERN.match(target_language):
            return False
        return 2 <= len(model_id) <= 100
