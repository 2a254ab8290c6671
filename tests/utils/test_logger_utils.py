"""Unit tests for utils.logger_utils module."""

from __future__ import annotations

import logging
import warnings
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING

import pytest

from models.config_models import General
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    from pathlib import Path


def test_get_logger_uses_project_namespace() -> None:
    assert LoggerUtils.get_logger("core.cache.store").name == "PageTranslator.core.cache.store"
    assert LoggerUtils.get_logger().name == "PageTranslator"


def test_singleton_configures_handlers_once(tmp_path: Path) -> None:
    first = LoggerUtils(tmp_path / "engine.log")
    second = LoggerUtils(tmp_path / "other.log")

    handlers: list[logging.Handler] = logging.getLogger("PageTranslator").handlers
    assert first is second
    assert sum(isinstance(h, RotatingFileHandler) for h in handlers) == 1


def test_from_config_applies_level_and_file(tmp_path: Path) -> None:
    log_file: Path = tmp_path / "engine.log"

    utils: LoggerUtils = LoggerUtils.from_config(General(LOG_FILE=str(log_file), LOG_LEVEL="warning"))
    LoggerUtils.get_logger("test").warning("written to file")

    assert utils.get_level().name == "WARNING"
    for handler in logging.getLogger("PageTranslator").handlers:
        handler.flush()
    assert "written to file" in log_file.read_text(encoding="utf-8")


def test_debug_flag_overrides_level() -> None:
    utils: LoggerUtils = LoggerUtils.from_config(General(DEBUG=True, LOG_LEVEL="ERROR"))

    assert utils.get_level().value == logging.DEBUG


def test_unknown_level_falls_back_to_info() -> None:
    utils = LoggerUtils(use_null_console=True)
    utils.set_level("VERBOSE")

    assert utils.get_level().value == logging.INFO


def test_initialize_after_configuration_raises() -> None:
    LoggerUtils(use_null_console=True)

    with pytest.raises(RuntimeError, match="already configured"):
        LoggerUtils.initialize("Other")


def test_warnings_are_routed_into_log(caplog: pytest.LogCaptureFixture) -> None:
    LoggerUtils(use_null_console=True)
    caplog.set_level(logging.WARNING, logger="PageTranslator")

    warnings.showwarning("deprecated option", DeprecationWarning, "config.py", 12)

    assert any("config.py:12: DeprecationWarning: deprecated option" in rec.message for rec in caplog.records)


def test_reset_restores_level() -> None:
    LoggerUtils.from_config(General(LOG_LEVEL="ERROR"))

    LoggerUtils.reset()

    assert logging.getLogger("PageTranslator").level == logging.NOTSET
