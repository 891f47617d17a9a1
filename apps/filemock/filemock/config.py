"""Server configuration models and the YAML/JSON loader."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from .status import DEFAULT_MOCK_FILE

DEFAULT_PORT = 3000
DEFAULT_MOCK_ROOT = Path("mock")
SCENARIO_DIR_NAME = "scenario"


class ServerConfig(BaseModel):
    """One mock server instance: bind address plus the mock tree it serves."""

    name: str = "filemock"
    host: str = "127.0.0.1"
    port: int = Field(default=DEFAULT_PORT, ge=0, le=65535)
    mock_root: Path = DEFAULT_MOCK_ROOT
    scenario_dir: Path | None = None
    default_mock_file: str = DEFAULT_MOCK_FILE

    @property
    def resolved_mock_root(self) -> Path:
        return self.mock_root.expanduser().resolve()

    @property
    def resolved_scenario_dir(self) -> Path:
        if self.scenario_dir is not None:
            return self.scenario_dir.expanduser().resolve()
        return self.resolved_mock_root / SCENARIO_DIR_NAME

    @property
    def base_url(self) -> str:
        host = "localhost" if self.host in {"0.0.0.0", "127.0.0.1"} else self.host
        return f"http://{host}:{self.port}"


class RuntimeConfig(BaseModel):
    servers: list[ServerConfig] = Field(default_factory=list)


def load_config(path: Path) -> RuntimeConfig:
    """Load a runtime configuration file.

    A document without a `servers` key is read as a single server definition.
    """

    payload: Any = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(payload, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    if "servers" not in payload:
        payload = {"servers": [payload]}

    config = RuntimeConfig.model_validate(payload)
    # Relative mock roots are resolved against the config file's directory.
    for server in config.servers:
        if not server.mock_root.is_absolute():
            server.mock_root = path.parent / server.mock_root
        if server.scenario_dir is not None and not server.scenario_dir.is_absolute():
            server.scenario_dir = path.parent / server.scenario_dir
    return config
