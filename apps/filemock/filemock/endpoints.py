"""Scaffolds a new endpoint directory with default mock files."""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .errors import EndpointExistsError
from .models import EndpointStatus
from .routing import STATUS_FILE_NAME, endpoint_directory
from .status import EndpointStatusStore
from .store import FileStore

SUCCESS_FILE_NAME = "success-200.json"
ERROR_FILE_NAME = "unexpected-error-default.json"
EXAMPLE_PARAMETER_VALUE = "123"

_PARAMETER_PATTERN = re.compile(r"\{[^}/]+\}")

DEFAULT_RESPONSES: dict[str, dict[str, Any]] = {
    SUCCESS_FILE_NAME: {"header": [], "body": {"status": "success", "message": "Mock response"}},
    ERROR_FILE_NAME: {"header": [], "body": {"status": "error", "message": "Unexpected error"}},
}


@dataclass
class GeneratedEndpoint:
    path: str
    method: str
    mock_directory: Path
    files_created: list[str] = field(default_factory=list)

    def example_path(self) -> str:
        """Path with every `{param}` replaced by a sample value."""

        return _PARAMETER_PATTERN.sub(EXAMPLE_PARAMETER_VALUE, self.path)


class EndpointFileGenerator:
    def __init__(self, store: FileStore, mock_root: Path, status_store: EndpointStatusStore) -> None:
        self._store = store
        self._mock_root = mock_root
        self._status_store = status_store

    async def generate(self, path: str, method: str) -> GeneratedEndpoint:
        """Create `<mockRoot>/<segments>/<METHOD>/` with a success, an error and a status file."""

        method = method.upper()
        directory = endpoint_directory(self._mock_root, path, method)
        if await self._store.exists(directory):
            raise EndpointExistsError(path, method, str(directory))

        await self._store.ensure_dir(directory)
        status = EndpointStatus(selected=SUCCESS_FILE_NAME, delay_millisecond=0)
        await asyncio.gather(
            *(self._store.write_json(directory / name, payload) for name, payload in DEFAULT_RESPONSES.items()),
            self._status_store.write(path, method, status),
        )
        return GeneratedEndpoint(
            path=path,
            method=method,
            mock_directory=directory,
            files_created=[*DEFAULT_RESPONSES, STATUS_FILE_NAME],
        )
