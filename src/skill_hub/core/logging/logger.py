"""Namespaced logger facade.

Call sites pass an event message plus an optional ``data`` mapping; the
mapping is rendered after the message so log lines stay greppable.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping

    from skill_hub.config import LoggerSettings

ROOT_LOGGER_NAME = "skill_hub"


class Logger:
    def __init__(self, namespace: str) -> None:
        self.namespace = namespace
        self._logger = logging.getLogger(namespace)

    def _emit(
        self,
        level: int,
        message: str,
        data: Mapping[str, Any] | None = None,
        exc_info: Any = None,
    ) -> None:
        if not self._logger.isEnabledFor(level):
            return
        if data:
            message = f"{message} {_format_data(data)}"
        self._logger.log(level, message, exc_info=exc_info)

    def debug(self, message: str, data: Mapping[str, Any] | None = None, **kwargs: Any) -> None:
        self._emit(logging.DEBUG, message, data, kwargs.get("exc_info"))

    def info(self, message: str, data: Mapping[str, Any] | None = None, **kwargs: Any) -> None:
        self._emit(logging.INFO, message, data, kwargs.get("exc_info"))

    def warning(self, message: str, data: Mapping[str, Any] | None = None, **kwargs: Any) -> None:
        self._emit(logging.WARNING, message, data, kwargs.get("exc_info"))

    def error(self, message: str, data: Mapping[str, Any] | None = None, **kwargs: Any) -> None:
        self._emit(logging.ERROR, message, data, kwargs.get("exc_info"))


_loggers: dict[str, Logger] = {}


def get_logger(namespace: str) -> Logger:
    logger = _loggers.get(namespace)
    if logger is None:
        logger = Logger(namespace)
        _loggers[namespace] = logger
    return logger


def configure_logging(settings: LoggerSettings) -> None:
    """Attach a rich console handler to the package logger."""
    from rich.logging import RichHandler

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(settings.level.upper())
    for handler in list(root.handlers):
        if isinstance(handler, RichHandler):
            root.removeHandler(handler)
    root.addHandler(
        RichHandler(
            show_path=settings.show_path,
            rich_tracebacks=True,
            markup=False,
        )
    )


def _format_data(data: Mapping[str, Any]) -> str:
    try:
        return json.dumps(dict(data), ensure_ascii=False, default=str, sort_keys=True)
    except TypeError:
        return str(data)
