"""Per-endpoint `status.json` persistence and the in-process status cache."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Any

import structlog

from .models import EndpointStatus
from .routing import STATUS_FILE_NAME, Template, endpoint_directory, template_path
from .store import FileStore

DEFAULT_MOCK_FILE = "successful-operation-200.json"

LOGGER = structlog.get_logger("filemock.status")


def state_key(api_path: str, method: str) -> str:
    return f"{method.upper()}:{api_path}"


def parse_status(payload: Any) -> EndpointStatus | None:
    """Accept a status document only when `selected` names a .json file."""

    if not isinstance(payload, dict):
        return None
    selected = payload.get("selected")
    if not isinstance(selected, str) or not selected.endswith(".json"):
        return None
    delay = payload.get("delayMillisecond")
    if isinstance(delay, bool) or not isinstance(delay, (int, float)):
        delay = None
    return EndpointStatus(selected=selected, delay_millisecond=None if delay is None else int(delay))


class StatusCache:
    """In-memory map of `"<METHOD>:<path>"` to the endpoint's current status.

    Owned by one application instance. Writes through the same process
    update it synchronously; edits made by other processes are not seen.
    """

    def __init__(self) -> None:
        self._entries: dict[str, EndpointStatus] = {}

    def get(self, api_path: str, method: str) -> EndpointStatus | None:
        return self._entries.get(state_key(api_path, method))

    def set(self, api_path: str, method: str, status: EndpointStatus) -> None:
        self._entries[state_key(api_path, method)] = status

    def discard(self, api_path: str, method: str) -> None:
        self._entries.pop(state_key(api_path, method), None)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries


class EndpointStatusStore:
    """Reads and writes `<mockRoot>/<segments>/<METHOD>/status.json`."""

    def __init__(
        self,
        store: FileStore,
        mock_root: Path,
        *,
        cache: StatusCache | None = None,
        default_mock_file: str = DEFAULT_MOCK_FILE,
    ) -> None:
        self._store = store
        self._mock_root = mock_root
        self.cache = cache if cache is not None else StatusCache()
        self.default_mock_file = default_mock_file

    def status_path(self, api_path: str, method: str) -> Path:
        return endpoint_directory(self._mock_root, api_path, method) / STATUS_FILE_NAME

    def default_status(self) -> EndpointStatus:
        return EndpointStatus(selected=self.default_mock_file)

    async def read(self, api_path: str, method: str) -> EndpointStatus | None:
        """Status from disk, or None when missing, unreadable or malformed."""

        try:
            payload = await self._store.read_json(self.status_path(api_path, method))
        except (OSError, ValueError):
            return None
        return parse_status(payload)

    async def write(self, api_path: str, method: str, status: EndpointStatus) -> None:
        """Overwrite the status file and refresh the cache entry."""

        await self._store.write_json(self.status_path(api_path, method), status.as_file_payload())
        self.cache.set(api_path, method, status)

    async def resolve(self, api_path: str, method: str, *, remember: bool = True) -> EndpointStatus:
        """Cached status, falling back to disk and then the default mock file.

        With ``remember=False`` a cache miss is answered without storing the result.
        """

        cached = self.cache.get(api_path, method)
        if cached is not None:
            return cached
        status = await self.read(api_path, method)
        if status is None:
            status = self.default_status()
            LOGGER.debug("status_defaulted", key=state_key(api_path, method), selected=status.selected)
        if remember:
            self.cache.set(api_path, method, status)
        return status

    async def preload(self, templates: Iterable[Template]) -> int:
        """Load every known endpoint's status into the cache."""

        loaded = 0
        for template in templates:
            method = template[-1]
            api_path = template_path(template)
            status = await self.read(api_path, method)
            self.cache.set(api_path, method, status or self.default_status())
            loaded += 1
        return loaded
