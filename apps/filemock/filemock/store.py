"""Async filesystem boundary used by the routing, status and scenario layers."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any


class FileStore:
    """Narrow async wrapper over the local filesystem.

    Blocking calls are pushed to a worker thread so a slow disk never
    stalls the event loop serving other requests.
    """

    async def read_text(self, path: Path) -> str:
        return await asyncio.to_thread(path.read_text, encoding="utf-8")

    async def write_text(self, path: Path, content: str) -> None:
        await asyncio.to_thread(path.write_text, content, encoding="utf-8")

    async def read_json(self, path: Path) -> Any:
        return json.loads(await self.read_text(path))

    async def write_json(self, path: Path, payload: Any) -> None:
        await self.write_text(path, json.dumps(payload, indent=2, ensure_ascii=False) + "\n")

    async def create_json(self, path: Path, payload: Any) -> None:
        """Write a new JSON document; raises FileExistsError when the file is already there."""

        content = json.dumps(payload, indent=2, ensure_ascii=False) + "\n"

        def _create() -> None:
            with path.open("x", encoding="utf-8") as handle:
                handle.write(content)

        await asyncio.to_thread(_create)

    async def list_dir(self, path: Path) -> list[str]:
        """Return entry names sorted by name; raises FileNotFoundError when missing."""

        def _list() -> list[str]:
            return sorted(entry.name for entry in path.iterdir())

        return await asyncio.to_thread(_list)

    async def exists(self, path: Path) -> bool:
        return await asyncio.to_thread(path.exists)

    async def is_dir(self, path: Path) -> bool:
        return await asyncio.to_thread(path.is_dir)

    async def is_file(self, path: Path) -> bool:
        return await asyncio.to_thread(path.is_file)

    async def ensure_dir(self, path: Path) -> None:
        await asyncio.to_thread(path.mkdir, parents=True, exist_ok=True)

    async def remove(self, path: Path) -> None:
        await asyncio.to_thread(path.unlink)
