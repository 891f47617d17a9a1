"""Pushes a scenario's endpoint configurations into the status files."""

from __future__ import annotations

import asyncio

import structlog

from .models import (
    ApplicationFailure,
    EndpointConfiguration,
    EndpointStatus,
    Scenario,
    ScenarioApplicationResult,
)
from .status import EndpointStatusStore
from .store import FileStore

LOGGER = structlog.get_logger("filemock.applicator")


class ScenarioApplicator:
    """Writes one fresh `status.json` per configuration, concurrently.

    Individual failures are collected, never raised, and writes that did
    succeed are kept: an applied scenario may reference endpoints that
    have since been removed from the mock tree.
    """

    def __init__(self, store: FileStore, status_store: EndpointStatusStore) -> None:
        self._store = store
        self._status_store = status_store

    async def apply(self, scenario: Scenario) -> ScenarioApplicationResult:
        outcomes = await asyncio.gather(
            *(self._apply_endpoint(config) for config in scenario.endpoint_configurations)
        )
        result = ScenarioApplicationResult()
        for config, error in zip(scenario.endpoint_configurations, outcomes):
            if error is None:
                result.successes.append(config.label)
            else:
                result.failures.append(ApplicationFailure(endpoint=config.label, error=error))

        logger = LOGGER.bind(scenario=scenario.name)
        if result.failures:
            logger.warning(
                "scenario_applied_partially",
                successes=len(result.successes),
                failures=[failure.endpoint for failure in result.failures],
            )
        else:
            logger.info("scenario_applied", successes=len(result.successes))
        return result

    async def apply_endpoint(self, config: EndpointConfiguration) -> None:
        """Overwrite one endpoint's status; raises when its directory is missing."""

        status_path = self._status_store.status_path(config.path, config.method)
        if not await self._store.is_dir(status_path.parent):
            raise FileNotFoundError(f"Endpoint directory not found: {config.label}")
        status = EndpointStatus(
            selected=config.selected_mock_file,
            delay_millisecond=config.delay_millisecond,
        )
        await self._status_store.write(config.path, config.method, status)

    async def _apply_endpoint(self, config: EndpointConfiguration) -> str | None:
        try:
            await self.apply_endpoint(config)
        except Exception as exc:  # noqa: BLE001 - reported per endpoint
            return str(exc) or exc.__class__.__name__
        return None
