"""Pointer file recording which scenario is currently active."""

from __future__ import annotations

from pathlib import Path

from pydantic import ValidationError

from .models import ActiveScenarioReference
from .store import FileStore

ACTIVE_FILE_NAME = "_active.json"


class ActiveScenarioTracker:
    """Reads and overwrites `<scenario_dir>/_active.json`.

    Reads never raise: a missing or damaged pointer means no scenario is active.
    """

    def __init__(self, store: FileStore, scenario_dir: Path) -> None:
        self._store = store
        self.scenario_dir = scenario_dir
        self.active_file = scenario_dir / ACTIVE_FILE_NAME

    async def get_active(self) -> str | None:
        reference = await self._read()
        return reference.active_scenario if reference else None

    async def get_active_reference(self) -> ActiveScenarioReference:
        return await self._read() or ActiveScenarioReference()

    async def set_active(self, name: str) -> None:
        await self._write(ActiveScenarioReference(active_scenario=name))

    async def clear_active(self) -> None:
        await self._write(ActiveScenarioReference(active_scenario=None))

    async def _read(self) -> ActiveScenarioReference | None:
        try:
            payload = await self._store.read_json(self.active_file)
            return ActiveScenarioReference.model_validate(payload)
        except (OSError, ValueError, ValidationError):
            return None

    async def _write(self, reference: ActiveScenarioReference) -> None:
        await self._store.ensure_dir(self.scenario_dir)
        await self._store.write_json(self.active_file, reference.as_serializable())
