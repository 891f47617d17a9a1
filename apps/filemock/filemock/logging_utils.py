"""Structured logging helpers for the filemock server."""

from __future__ import annotations

import logging
import sys
from io import StringIO
from typing import Any

import structlog
from rich.console import Console
from rich.text import Text

from .output_config import LogFormat

LOGGER_NAME = "filemock"

# uvicorn logs through the stdlib; keep its access log quiet, requests are logged by us.
_UVICORN_LOGGERS = {"uvicorn": None, "uvicorn.error": None, "uvicorn.access": logging.WARNING}


class RichConsoleRenderer:
    """structlog renderer producing aligned, colored console lines via Rich."""

    _SKIPPED_KEYS = ("color_message", "stack", "exception")

    def __init__(self, width: int = 200) -> None:
        self.width = width
        self.level_styles = {
            "debug": "dim cyan",
            "info": "cyan",
            "warning": "yellow",
            "error": "bold red",
            "critical": "bold white on red",
        }

    def __call__(self, logger: Any, name: str, event_dict: dict[str, Any]) -> str:
        timestamp = event_dict.pop("timestamp", "")
        level = event_dict.pop("level", "info")
        event = str(event_dict.pop("event", ""))
        exception = event_dict.pop("exception", None)

        text = Text()
        text.append(timestamp, style="dim white")
        text.append(" ")
        text.append(f"[{level:<8}]", style=self.level_styles.get(level, "white"))
        text.append(" ")
        text.append(event, style="bold white")

        items = [(key, value) for key, value in sorted(event_dict.items()) if key not in self._SKIPPED_KEYS]
        if items:
            text.append(" " * max(1, 32 - len(event)))
        for index, (key, value) in enumerate(items):
            text.append(f"{key}=", style="dim white")
            text.append(str(value), style=self._value_style(key, value))
            if index < len(items) - 1:
                text.append(" ")
        if exception:
            text.append("\n" + str(exception), style="red")

        buffer = StringIO()
        Console(file=buffer, force_terminal=True, width=self.width, legacy_windows=False).print(text, end="")
        return buffer.getvalue()

    @staticmethod
    def _value_style(key: str, value: Any) -> str:
        if key == "status" and isinstance(value, int):
            if value >= 500:
                return "bold red"
            if value >= 400:
                return "yellow"
            return "green"
        return "bright_cyan"


def configure_logging(log_level: str, log_format: LogFormat = "console") -> structlog.stdlib.BoundLogger:
    """Configure structlog (and the stdlib loggers uvicorn uses) for the server process."""

    normalized_level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=normalized_level,
        stream=sys.stdout,
        format="%(message)s",
        force=True,
    )
    for name, level in _UVICORN_LOGGERS.items():
        logging.getLogger(name).setLevel(level or normalized_level)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", key="timestamp"),
    ]

    if log_format == "console":
        processors.append(structlog.processors.format_exc_info)
        processors.append(RichConsoleRenderer())
    elif log_format == "plain":
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    else:  # json
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(normalized_level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    return structlog.get_logger(LOGGER_NAME)
