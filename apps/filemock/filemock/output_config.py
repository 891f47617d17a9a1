"""Output format and log level selection for the mock server."""

import os
from typing import Literal


LogFormat = Literal["json", "console", "plain"]

ENV_VAR_NAME = "CONSOLE_OUTPUT_FORMAT"
LOG_LEVEL_ENV_VAR = "FILEMOCK_LOG_LEVEL"
DEFAULT_LOG_LEVEL = "INFO"


def get_log_format(cli_override: str | None = None) -> LogFormat:
    """
    Resolve the log format: CLI parameter > environment variable > console.

    The environment variable also accepts the generic output formats
    `auto` and `rich`, both mapped to the colored console renderer.
    """
    if cli_override:
        format_lower = cli_override.lower()
        if format_lower in ("json", "console", "plain"):
            return format_lower  # type: ignore[return-value]

    env_value = os.environ.get(ENV_VAR_NAME)
    if env_value:
        format_lower = env_value.lower()
        if format_lower in ("json", "plain"):
            return format_lower  # type: ignore[return-value]
        if format_lower in ("auto", "rich", "console"):
            return "console"

    return "console"


def get_log_level(cli_override: str | None = None) -> str:
    """Resolve the log level name: CLI parameter > FILEMOCK_LOG_LEVEL > INFO."""
    if cli_override:
        return cli_override.upper()
    return os.environ.get(LOG_LEVEL_ENV_VAR, DEFAULT_LOG_LEVEL).upper()
