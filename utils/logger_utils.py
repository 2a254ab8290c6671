from __future__ import annotations

import logging
import sys
import warnings
from logging import Formatter, NullHandler, StreamHandler
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING, ClassVar, Final, NamedTuple, Self, TextIO

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from models.config_models import General

__all__: list[str] = ["LoggerUtils"]

LOG_FILE_MAX_BYTES: Final[int] = 2 * 1024 * 1024
LOG_FILE_BACKUPS: Final[int] = 2

CONSOLE_FORMAT: Final[str] = "%(levelname)s %(message)s"
FILE_FORMAT: Final[str] = "%(asctime)s %(levelname)-8s %(name)-44s %(funcName)s:%(lineno)d\t%(message)s"

DEFAULT_LOG_LEVEL: Final[int] = logging.INFO
DEFAULT_NAMESPACE: Final[str] = "PageTranslator"


class LogLevel(NamedTuple):
    name: str
    value: int


class LoggerUtils:
    """Configures logging once per process under a single namespace logger.

    Modules never configure handlers themselves; they call ``get_logger(__name__)`` at import
    time and inherit whatever the first ``LoggerUtils`` construction attached. Warnings issued
    through the ``warnings`` module are routed into the same log.
    """

    _namespace: ClassVar[str] = DEFAULT_NAMESPACE
    _configured: ClassVar[bool] = False
    _instance: ClassVar[Self | None] = None
    _saved_showwarning: ClassVar[Callable[..., None] | None] = None

    def __new__(cls, *args, **kwargs) -> Self:
        _ = args, kwargs
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, filename: str | Path = "", *, use_null_console: bool = False) -> None:
        """
        Args:
            filename (str | Path): Rotating log file. Empty disables file logging.
            use_null_console (bool): Discard console output, for hosts that own stderr.
        """
        if LoggerUtils._configured:
            return

        self.namespace_logger: logging.Logger = logging.getLogger(self._namespace)
        self.namespace_logger.setLevel(DEFAULT_LOG_LEVEL)

        if use_null_console or sys.stderr is None:
            self._add_handler(NullHandler(), logging.NOTSET, None)
        else:
            self._add_handler(StreamHandler(sys.stderr), logging.WARNING, CONSOLE_FORMAT)

        if str(filename).strip():
            self._open_log_file(str(filename))

        LoggerUtils._saved_showwarning = warnings.showwarning
        warnings.showwarning = self.warning_to_log
        LoggerUtils._configured = True

    @classmethod
    def from_config(cls, general: General) -> LoggerUtils:
        """Configure logging from the ``[GENERAL]`` section; DEBUG wins over LOG_LEVEL."""
        inst: LoggerUtils = cls(general.LOG_FILE)
        inst.set_level("DEBUG" if general.DEBUG else general.LOG_LEVEL)
        return inst

    @classmethod
    def initialize(cls, namespace: str) -> None:
        """Rename the namespace logger. Only allowed before logging is configured.

        Raises:
            RuntimeError: If handlers are already attached.
        """
        if cls._configured:
            msg = "LoggerUtils is already configured. Reinitialization is not allowed."
            raise RuntimeError(msg)
        cls._namespace = namespace

    @classmethod
    def reset(cls) -> None:
        """Detach and close every handler and forget the configured level."""
        namespace_logger: logging.Logger = logging.getLogger(cls._namespace)
        for handler in list(namespace_logger.handlers):
            namespace_logger.removeHandler(handler)
            handler.close()
        namespace_logger.setLevel(logging.NOTSET)
        if cls._saved_showwarning is not None:
            warnings.showwarning = cls._saved_showwarning
            cls._saved_showwarning = None
        cls._configured = False
        cls._instance = None

    def warning_to_log(
        self,
        message: Warning | str,
        category: type[Warning],
        filename: str,
        lineno: int,
        file: TextIO | None = None,
        line: str | None = None,
    ) -> None:
        _ = file, line
        self.namespace_logger.warning("%s:%d: %s: %s", filename, lineno, category.__name__, message)

    def set_level(self, level: str) -> None:
        level_value: int | None = logging.getLevelNamesMapping().get(level.upper())
        if level_value is None:
            self.namespace_logger.warning("Unknown logging level '%s', using INFO", level)
            level_value = DEFAULT_LOG_LEVEL
        self.namespace_logger.setLevel(level_value)

    def get_level(self) -> LogLevel:
        level_value: int = self.namespace_logger.getEffectiveLevel()
        return LogLevel(name=logging.getLevelName(level_value), value=level_value)

    def _open_log_file(self, filename: str) -> None:
        try:
            handler = RotatingFileHandler(
                filename=filename,
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUPS,
                encoding="utf-8",
            )
        except OSError as err:
            self.namespace_logger.error("Cannot open log file '%s', file logging disabled: %s", filename, err)
            return
        self._add_handler(handler, logging.DEBUG, FILE_FORMAT)

    def _add_handler(self, handler: logging.Handler, level: int, fmt: str | None) -> None:
        # RotatingFileHandler subclasses StreamHandler, so compare exact types.
        if any(type(h) is type(handler) for h in self.namespace_logger.handlers):
            handler.close()
            return
        handler.setLevel(level)
        if fmt is not None:
            handler.setFormatter(Formatter(fmt))
        self.namespace_logger.addHandler(handler)

    @staticmethod
    def get_logger(name: str | None = None) -> logging.Logger:
        """Return ``<namespace>.<name>``, or the namespace logger itself when ``name`` is None."""
        namespace: str = LoggerUtils._namespace
        if not namespace:
            return logging.getLogger(name)
        return logging.getLogger(f"{namespace}.{name}" if name else namespace)
