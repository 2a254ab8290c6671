"""Prompt templates and language display names used by the translators.

Prompts carry a ``{{LANGUAGE}}`` placeholder that is replaced with the display name
of the target language before the model is called.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Final

__all__: list[str] = [
    "DEFAULT_LANGUAGE_NAME",
    "DEFAULT_SINGLE_PARAGRAPH_PROMPT",
    "DEFAULT_TARGET_LANGUAGE",
    "DEFAULT_TRANSLATOR_SYSTEM_PROMPT",
    "LANGUAGE_NAMES",
    "LANGUAGE_PLACEHOLDER",
]

LANGUAGE_PLACEHOLDER: Final[str] = "{{LANGUAGE}}"

DEFAULT_TARGET_LANGUAGE: Final[str] = "zh"
DEFAULT_LANGUAGE_NAME: Final[str] = "English"

# Batch prompt: the model receives a JSON array of HTML strings and answers with an array.
DEFAULT_TRANSLATOR_SYSTEM_PROMPT: Final[str] = (
    "You are a highly skilled translator, you will be provided an html string array in JSON format, "
    "and your task is to translate each string into {{LANGUAGE}}, preserving any html tag. "
    "The result should only contain all strings in JSON array format.\n"
    "Please follow these steps:\n"
    "1. Carefully read and understand the source text.\n"
    "2. Translate the text to {{LANGUAGE}}, ensuring that you maintain the original meaning, "
    "tone, and style as much as possible.\n"
    "3. After translation, format your output as a JSON array format..\n"
    "Ensure that your translation is accurate and reads naturally in the target language. "
    "Pay attention to idiomatic expressions and cultural nuances that may require adaptation."
)

DEFAULT_SINGLE_PARAGRAPH_PROMPT: Final[str] = (
    "You are a highly skilled translator, you will be provided a source text, "
    "and your task is to translate each string into {{LANGUAGE}}, preserving any html tag. "
    "The result should only contain translated text.\n"
    "Please follow these steps:\n"
    "1. Carefully read and understand the source text.\n"
    "2. Translate the text to {{LANGUAGE}}, ensuring that you maintain the original meaning, "
    "tone, and style as much as possible.\n"
    "Ensure that your translation is accurate and reads naturally in the target language. "
    "Pay attention to idiomatic expressions and cultural nuances that may require adaptation."
)

LANGUAGE_NAMES: Final[MappingProxyType[str, str]] = MappingProxyType(
    {
        "en": "English",
        "es": "Español",
        "fr": "Français",
        "de": "Deutsch",
        "pt": "Português",
        "it": "Italiano",
        "ru": "Русский",
        "nl": "Nederlands",
        "ja": "日本語",
        "ko": "한국어",
        "zh": "简体中文",
        "zh-TW": "繁體中文",
        "tr": "Türkçe",
        "vi": "TiếngViệt",
        "th": "ภาษาไทย",
    }
)
