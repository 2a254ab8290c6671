"""Configuration data models for the translation engine.

Each dataclass mirrors one section of the INI file. Field names are the upper-case
option names; the defaults are the values used when an option is missing or invalid.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from models.prompt_models import (
    DEFAULT_SINGLE_PARAGRAPH_PROMPT,
    DEFAULT_TARGET_LANGUAGE,
    DEFAULT_TRANSLATOR_SYSTEM_PROMPT,
)

__all__: list[str] = [
    "LLM",
    "Cache",
    "Config",
    "General",
    "Translation",
]

DEFAULT_RETENTION_DAYS: int = 30
DEFAULT_MAX_RETRY: int = 3


@dataclass
class General:
    DEBUG: bool = False
    LOG_FILE: str = ""
    LOG_LEVEL: str = "INFO"


@dataclass
class LLM:
    ENGINE: str = "ollama"
    ENDPOINT: str = "http://localhost:11434"
    MODEL: str = "qwen3:4b"
    TIMEOUT: float = 120.0  # Seconds. Zero or less disables the timeout.


@dataclass
class Translation:
    TARGET_LANGUAGE: str = DEFAULT_TARGET_LANGUAGE
    MODEL: str = ""  # Overrides LLM.MODEL for translation when set.
    SYSTEM_PROMPT: str = DEFAULT_TRANSLATOR_SYSTEM_PROMPT
    SINGLE_PARAGRAPH_PROMPT: str = DEFAULT_SINGLE_PARAGRAPH_PROMPT
    MAX_RETRY: int = DEFAULT_MAX_RETRY


@dataclass
class Cache:
    ENABLED: bool = True
    RETENTION_DAYS: int = DEFAULT_RETENTION_DAYS
    DB_PATH: str = "translation_cache.db"


@dataclass
class Config:
    GENERAL: General = field(default_factory=General)
    LLM: LLM = field(default_factory=LLM)
    TRANSLATION: Translation = field(default_factory=Translation)
    CACHE: Cache = field(default_factory=Cache)
