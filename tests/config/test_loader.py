from __future__ import annotations

import logging
from textwrap import dedent
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock, MagicMock

import pytest

from config.loader import (
    ConfigFileNotFoundError,
    ConfigFormatError,
    ConfigLoader,
    ConfigTypeError,
    ConfigValueError,
)
from models.config_models import DEFAULT_MAX_RETRY, DEFAULT_RETENTION_DAYS
from models.prompt_models import DEFAULT_TRANSLATOR_SYSTEM_PROMPT

if TYPE_CHECKING:
    from pathlib import Path


def _write_ini(tmp_path: Path, content: str) -> Path:
    ini_path: Path = tmp_path / "page_translator.ini"
    ini_path.write_text(dedent(content), encoding="utf-8")
    return ini_path


def test_config_loader_raises_for_missing_file(tmp_path: Path) -> None:
    ini_path: Path = tmp_path / "missing.ini"
    with pytest.raises(ConfigFileNotFoundError, match="same directory as 'test'"):
        ConfigLoader(config_filename=str(ini_path), script_name="test")


def test_empty_file_yields_defaults(tmp_path: Path) -> None:
    ini_path: Path = _write_ini(tmp_path, "")

    loader = ConfigLoader(config_filename=str(ini_path))

    assert loader.config.LLM.ENGINE == "ollama"
    assert loader.config.LLM.MODEL == "qwen3:4b"
    assert loader.config.TRANSLATION.TARGET_LANGUAGE == "zh"
    assert loader.config.TRANSLATION.SYSTEM_PROMPT == DEFAULT_TRANSLATOR_SYSTEM_PROMPT
    assert loader.config.CACHE.ENABLED is True
    assert loader.config.CACHE.RETENTION_DAYS == DEFAULT_RETENTION_DAYS


def test_values_are_coerced_to_field_types(tmp_path: Path) -> None:
    ini_path: Path = _write_ini(
        tmp_path,
        """
        [GENERAL]
        DEBUG = yes
        LOG_LEVEL = "DEBUG"

        [LLM]
        ENDPOINT = "http://127.0.0.1:11434"
        MODEL = "llama3.2:3b"
        TIMEOUT = 30

        [TRANSLATION]
        TARGET_LANGUAGE = "ja"
        MAX_RETRY = "5"

        [CACHE]
        ENABLED = off
        RETENTION_DAYS = 7
        DB_PATH = "cache/translations.db"
        """,
    )

    loader = ConfigLoader(config_filename=str(ini_path))

    assert loader.config.GENERAL.DEBUG is True
    assert loader.config.LLM.ENDPOINT == "http://127.0.0.1:11434"
    assert loader.config.LLM.TIMEOUT == pytest.approx(30.0)
    assert loader.config.TRANSLATION.TARGET_LANGUAGE == "ja"
    assert loader.config.TRANSLATION.MAX_RETRY == 5
    assert loader.config.CACHE.ENABLED is False
    assert loader.config.CACHE.RETENTION_DAYS == 7
    assert loader.config.CACHE.DB_PATH == "cache/translations.db"


def test_debug_override(tmp_path: Path) -> None:
    ini_path: Path = _write_ini(tmp_path, "[GENERAL]\nDEBUG = False\n")

    loader = ConfigLoader(config_filename=str(ini_path), debug=True)

    assert loader.config.GENERAL.DEBUG is True


def test_out_of_range_preferences_fall_back_to_defaults(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level(logging.WARNING)
    ini_path: Path = _write_ini(
        tmp_path,
        """
        [TRANSLATION]
        MAX_RETRY = -1

        [CACHE]
        RETENTION_DAYS = 0
        """,
    )

    loader = ConfigLoader(config_filename=str(ini_path))

    assert loader.config.CACHE.RETENTION_DAYS == DEFAULT_RETENTION_DAYS
    assert loader.config.TRANSLATION.MAX_RETRY == DEFAULT_MAX_RETRY
    assert any("RETENTION_DAYS" in rec.message for rec in caplog.records)
    assert any("MAX_RETRY" in rec.message for rec in caplog.records)


def test_prompt_without_placeholder_only_warns(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING)
    ini_path: Path = _write_ini(
        tmp_path,
        """
        [TRANSLATION]
        SYSTEM_PROMPT = "Translate everything."
        """,
    )

    loader = ConfigLoader(config_filename=str(ini_path))

    assert loader.config.TRANSLATION.SYSTEM_PROMPT == "Translate everything."
    assert any("placeholder" in rec.message for rec in caplog.records)


def test_unknown_engine_only_warns(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING)
    ini_path: Path = _write_ini(tmp_path, '[LLM]\nENGINE = "lmstudio"\n')

    loader = ConfigLoader(config_filename=str(ini_path))

    assert loader.config.LLM.ENGINE == "lmstudio"
    assert any("Unknown value 'lmstudio'" in rec.message for rec in caplog.records)


def test_malformed_language_code_raises_config_value_error(tmp_path: Path) -> None:
    ini_path: Path = _write_ini(tmp_path, '[TRANSLATION]\nTARGET_LANGUAGE = "Chinese"\n')

    with pytest.raises(ConfigValueError):
        ConfigLoader(config_filename=str(ini_path))


def test_invalid_boolean_value_raises_config_value_error(tmp_path: Path) -> None:
    ini_path: Path = _write_ini(tmp_path, "[CACHE]\nENABLED = maybe\n")

    with pytest.raises(ConfigValueError):
        ConfigLoader(config_filename=str(ini_path))


def test_non_string_literal_raises_config_type_error(tmp_path: Path) -> None:
    ini_path: Path = _write_ini(tmp_path, "[LLM]\nMODEL = 42\n")

    with pytest.raises(ConfigTypeError):
        ConfigLoader(config_filename=str(ini_path))


def test_unquoted_string_raises_config_format_error(tmp_path: Path) -> None:
    ini_path: Path = _write_ini(tmp_path, "[LLM]\nENDPOINT = http://localhost:11434\n")

    with pytest.raises(ConfigFormatError):
        ConfigLoader(config_filename=str(ini_path))


def test_duplicate_section_raises_config_format_error(tmp_path: Path) -> None:
    ini_path: Path = _write_ini(tmp_path, "[CACHE]\nENABLED = True\n[CACHE]\nENABLED = False\n")

    with pytest.raises(ConfigFormatError):
        ConfigLoader(config_filename=str(ini_path))


@pytest.mark.asyncio
async def test_reload_notifies_sync_and_async_listeners(tmp_path: Path) -> None:
    ini_path: Path = _write_ini(tmp_path, "[CACHE]\nRETENTION_DAYS = 10\n")
    loader = ConfigLoader(config_filename=str(ini_path))
    sync_listener = MagicMock()
    async_listener = AsyncMock()
    loader.add_listener(sync_listener)
    loader.add_listener(async_listener)
    loader.add_listener(sync_listener)

    ini_path.write_text("[CACHE]\nRETENTION_DAYS = 20\n", encoding="utf-8")
    config = await loader.reload()

    assert loader.config is config
    assert config.CACHE.RETENTION_DAYS == 20
    sync_listener.assert_called_once_with(config)
    async_listener.assert_awaited_once_with(config)


@pytest.mark.asyncio
async def test_removed_listener_is_not_notified(tmp_path: Path) -> None:
    ini_path: Path = _write_ini(tmp_path, "")
    loader = ConfigLoader(config_filename=str(ini_path))
    listener = MagicMock()
    loader.add_listener(listener)
    loader.remove_listener(listener)

    await loader.reload()

    listener.assert_not_called()


@pytest.mark.asyncio
async def test_failing_listener_does_not_stop_others(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.ERROR)
    ini_path: Path = _write_ini(tmp_path, "")
    loader = ConfigLoader(config_filename=str(ini_path))
    failing = MagicMock(side_effect=RuntimeError("boom"))
    listener = MagicMock()
    loader.add_listener(failing)
    loader.add_listener(listener)

    await loader.reload()

    listener.assert_called_once()
    assert any("listener" in rec.message for rec in caplog.records)


@pytest.mark.asyncio
async def test_failed_reload_keeps_previous_config(tmp_path: Path) -> None:
    ini_path: Path = _write_ini(tmp_path, "[CACHE]\nRETENTION_DAYS = 10\n")
    loader = ConfigLoader(config_filename=str(ini_path))
    listener = MagicMock()
    loader.add_listener(listener)
    previous = loader.config

    ini_path.write_text("[CACHE]\nENABLED = maybe\n", encoding="utf-8")
    with pytest.raises(ConfigValueError):
        await loader.reload()

    assert loader.config is previous
    listener.assert_not_called()
