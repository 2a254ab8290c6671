"""INI configuration for the page translator.

Values are coerced to the types of the defaults declared in models.config_models. Listeners
registered with ConfigLoader.add_listener() receive every successfully reloaded Config.
"""

from __future__ import annotations

import ast
import asyncio
import configparser
import re
from configparser import ConfigParser
from dataclasses import fields
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeAlias

from models.config_models import DEFAULT_MAX_RETRY, DEFAULT_RETENTION_DAYS, Config
from models.prompt_models import LANGUAGE_NAMES, LANGUAGE_PLACEHOLDER
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Awaitable, Callable

__all__: list[str] = [
    "ConfigFileNotFoundError",
    "ConfigFormatError",
    "ConfigListener",
    "ConfigLoader",
    "ConfigLoaderError",
    "ConfigTypeError",
    "ConfigValueError",
]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

ALLOWED_LLM_ENGINES: list[str] = ["ollama"]

_LANGUAGE_CODE_PATTERN: re.Pattern[str] = re.compile(r"^[a-z]{2,3}(-[A-Z]{2})?$")

ConfigListener: TypeAlias = "Callable[[Config], None] | Callable[[Config], Awaitable[None]]"


class ConfigLoaderError(Exception):
    """An error occurred while processing the configuration file."""


class ConfigFileNotFoundError(ConfigLoaderError):
    """The specified configuration file does not exist."""


class ConfigFormatError(ConfigLoaderError):
    """The configuration file is not formatted correctly."""


class ConfigValueError(ConfigFormatError):
    """The configuration file contains an invalid value."""


class ConfigTypeError(ConfigFormatError):
    """The configuration file contains an invalid type."""


class ConfigLoader:
    """Reads ``page_translator.ini`` into a typed Config and republishes it on reload.

    Unreadable files and malformed values raise; values that parse but make no sense
    (a non-positive retention, a negative retry count) are replaced by their defaults.

    Args:
        config_filename (str): INI file name to load.
        script_name (str): Name of the launching script, mentioned when the file is missing.
        debug (bool): Forces GENERAL.DEBUG on regardless of the file.
    """

    def __init__(self, *, config_filename: str, script_name: str = "", debug: bool = False) -> None:
        self.config_filename: str = config_filename
        self.script_name: str = script_name
        self._force_debug: bool = debug
        self._listeners: list[ConfigListener] = []
        self.config: Config = self._load()

    def _load(self) -> Config:
        if not Path(self.config_filename).exists():
            msg: str = f"Configuration file '{self.config_filename}' not found."
            if self.script_name:
                msg += f" Please create '{self.config_filename}' in the same directory as '{self.script_name}'."
            raise ConfigFileNotFoundError(msg)

        parser = ConfigParser(interpolation=None)
        try:
            parser.read(self.config_filename, encoding="utf-8")
        except configparser.Error as err:
            msg = f"Failed to parse configuration file '{self.config_filename}': {err}"
            raise ConfigFormatError(msg) from None

        config = Config()
        for section in fields(config):
            section_obj: Any = getattr(config, section.name)
            for key in fields(section_obj):
                if not parser.has_option(section.name, key.name):
                    logger.debug("Skipping undefined setting: '%s.%s'", section.name, key.name)
                    continue
                default: Any = getattr(section_obj, key.name)
                setattr(section_obj, key.name, _coerce(parser, section.name, key.name, type(default)))

        if self._force_debug:
            config.GENERAL.DEBUG = True
        self._validate_settings(config)
        return config

    def add_listener(self, callback: ConfigListener) -> None:
        """Register a callback invoked with the new Config after every reload.

        Args:
            callback (ConfigListener): A synchronous or asynchronous callable.
        """
        if callback not in self._listeners:
            self._listeners.append(callback)

    def remove_listener(self, callback: ConfigListener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    async def reload(self) -> Config:
        """Re-read the configuration file and notify listeners.

        The current configuration is kept if the file can no longer be loaded.

        Returns:
            Config: The newly loaded configuration.

        Raises:
            ConfigLoaderError: If the file is missing or malformed.
        """
        try:
            config: Config = self._load()
        except ConfigLoaderError as err:
            logger.error("Reloading configuration failed, keeping previous settings: %s", err)
            raise

        self.config = config
        logger.info("Configuration reloaded from '%s'", self.config_filename)
        for callback in list(self._listeners):
            try:
                result: Awaitable[None] | None = callback(config)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as err:  # noqa: BLE001
                logger.error("Configuration listener %r failed: %r", callback, err)
        return config

    def _validate_settings(self, config: Config) -> None:
        """Check loaded values. Malformed language codes raise; everything else only warns.

        Raises:
            ConfigTypeError: If LLM.ENGINE is not a string.
            ConfigValueError: If TRANSLATION.TARGET_LANGUAGE is not a language code.
        """
        engine: Any = config.LLM.ENGINE
        if not isinstance(engine, str):
            msg: str = f"Unsupported type used for 'LLM.ENGINE': {type(engine)}"
            raise ConfigTypeError(msg)
        if engine not in ALLOWED_LLM_ENGINES:
            logger.warning("Unknown value '%s' is set for 'LLM.ENGINE'", engine)

        language: str = config.TRANSLATION.TARGET_LANGUAGE
        if not _LANGUAGE_CODE_PATTERN.match(language):
            msg = f"'TRANSLATION.TARGET_LANGUAGE' is not a language code: '{language}'"
            raise ConfigValueError(msg)
        if language not in LANGUAGE_NAMES:
            logger.warning("No display name for target language '%s'; prompts will use the default name.", language)

        for key_name in ("SYSTEM_PROMPT", "SINGLE_PARAGRAPH_PROMPT"):
            if LANGUAGE_PLACEHOLDER not in getattr(config.TRANSLATION, key_name):
                logger.warning(
                    "'TRANSLATION.%s' has no %s placeholder; the target language will not be named.",
                    key_name,
                    LANGUAGE_PLACEHOLDER,
                )

        if config.CACHE.RETENTION_DAYS <= 0:
            logger.warning(
                "CACHE.RETENTION_DAYS must be positive, got %d. Using default %d.",
                config.CACHE.RETENTION_DAYS,
                DEFAULT_RETENTION_DAYS,
            )
            config.CACHE.RETENTION_DAYS = DEFAULT_RETENTION_DAYS

        if config.TRANSLATION.MAX_RETRY < 0:
            logger.warning(
                "TRANSLATION.MAX_RETRY must not be negative, got %d. Using default %d.",
                config.TRANSLATION.MAX_RETRY,
                DEFAULT_MAX_RETRY,
            )
            config.TRANSLATION.MAX_RETRY = DEFAULT_MAX_RETRY


def _strip_number(raw: str) -> str:
    for char in ("'", '"', "%"):
        raw = raw.removeprefix(char).removesuffix(char)
    return raw


def _coerce(parser: ConfigParser, section: str, key: str, expected_type: type) -> Any:
    """Read one INI value as the type of the field's default.

    Booleans use ConfigParser's yes/no/on/off rules, numbers tolerate quotes and a trailing
    ``%``, and everything else must be a Python literal such as a quoted string.

    Raises:
        ConfigValueError: If the value cannot be converted.
        ConfigFormatError: If a literal has invalid syntax.
        ConfigTypeError: If a literal has a different type than the field.
    """
    name: str = f"{section}.{key}"
    raw: str = parser.get(section, key)
    try:
        if expected_type is bool:
            return parser.getboolean(section, key)
        if expected_type is int:
            return int(float(_strip_number(raw)))
        if expected_type is float:
            return float(_strip_number(raw))
    except ValueError as err:
        msg: str = f"Invalid value for {name}: {err}"
        raise ConfigValueError(msg) from err

    try:
        value: Any = ast.literal_eval(raw)
    except ValueError as err:
        msg = f"Invalid literal for {name}: {raw}"
        raise ConfigValueError(msg) from err
    except SyntaxError as err:
        msg = f"Invalid literal for {name}: {raw}"
        raise ConfigFormatError(msg) from err

    if not isinstance(value, expected_type):
        msg = f"Expected {expected_type.__name__} for {name}, got {type(value).__name__}"
        raise ConfigTypeError(msg)
    return value
