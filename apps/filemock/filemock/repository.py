"""One-JSON-file-per-scenario persistence."""

from __future__ import annotations

import asyncio
import re
from pathlib import Path

from pydantic import ValidationError

from .errors import (
    DuplicateScenarioError,
    ScenarioCorruptedError,
    ScenarioNotFoundError,
    ScenarioValidationError,
)
from .models import SCENARIO_NAME_PATTERN, Scenario
from .store import FileStore

_SCENARIO_NAME = re.compile(SCENARIO_NAME_PATTERN)


class ScenarioRepository:
    """CRUD over `<scenario_dir>/<name>.json` documents.

    Unlike status files, a scenario file that cannot be parsed raises
    ScenarioCorruptedError instead of reading as absent.
    """

    def __init__(self, store: FileStore, scenario_dir: Path) -> None:
        self._store = store
        self.scenario_dir = scenario_dir

    def file_path(self, name: str) -> Path:
        if not _SCENARIO_NAME.match(name):
            raise ScenarioValidationError("name", "must contain only letters, numbers, and hyphens")
        return self.scenario_dir / f"{name}.json"

    async def save(self, scenario: Scenario) -> None:
        file_path = self.file_path(scenario.name)
        await self._store.ensure_dir(self.scenario_dir)
        try:
            await self._store.create_json(file_path, scenario.as_serializable())
        except FileExistsError as exc:
            raise DuplicateScenarioError(scenario.name) from exc

    async def find_by_name(self, name: str) -> Scenario | None:
        file_path = self.file_path(name)
        if not await self._store.exists(file_path):
            return None
        return await self._load(file_path)

    async def find_all(self) -> list[Scenario]:
        """Every stored scenario, skipping `_`-prefixed metadata files such as `_active.json`."""

        try:
            entries = await self._store.list_dir(self.scenario_dir)
        except OSError:
            return []
        scenario_files = [
            self.scenario_dir / entry
            for entry in entries
            if entry.endswith(".json") and not entry.startswith("_")
        ]
        return list(await asyncio.gather(*(self._load(path) for path in scenario_files)))

    async def exists(self, name: str) -> bool:
        return await self._store.exists(self.file_path(name))

    async def update(self, scenario: Scenario) -> None:
        file_path = self.file_path(scenario.name)
        if not await self._store.exists(file_path):
            raise ScenarioNotFoundError(scenario.name)
        await self._store.write_json(file_path, scenario.as_serializable())

    async def delete(self, name: str) -> None:
        file_path = self.file_path(name)
        if not await self._store.exists(file_path):
            raise ScenarioNotFoundError(name)
        await self._store.remove(file_path)

    async def _load(self, file_path: Path) -> Scenario:
        try:
            payload = await self._store.read_json(file_path)
            return Scenario.model_validate(payload)
        except (ValueError, ValidationError) as exc:
            raise ScenarioCorruptedError(file_path.name, str(exc)) from exc
