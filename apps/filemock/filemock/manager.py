"""Scenario lifecycle: validation, persistence, application and activation."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from .applicator import ScenarioApplicator
from .errors import EmptyScenarioError, ScenarioNotFoundError
from .models import (
    CreateScenarioRequest,
    EndpointConfiguration,
    Scenario,
    ScenarioApplicationResult,
    ScenarioMetadata,
    UpdateScenarioRequest,
    ensure_unique_endpoints,
    utc_now,
)
from .repository import ScenarioRepository
from .tracker import ActiveScenarioTracker

LOGGER = structlog.get_logger("filemock.scenarios")


@dataclass
class ScenarioListing:
    scenarios: list[Scenario]
    active_scenario: str | None

    def as_serializable(self) -> dict[str, object]:
        return {
            "scenarios": [scenario.as_serializable() for scenario in self.scenarios],
            "activeScenario": self.active_scenario,
        }


class ScenarioManager:
    """Coordinates repository, applicator and active-scenario tracker.

    Creating or updating a scenario always makes it the active one; there
    is a single global pointer, last write wins.
    """

    def __init__(
        self,
        repository: ScenarioRepository,
        tracker: ActiveScenarioTracker,
        applicator: ScenarioApplicator,
    ) -> None:
        self.repository = repository
        self.tracker = tracker
        self.applicator = applicator

    async def create(self, request: CreateScenarioRequest) -> Scenario:
        _validate_configurations(request.endpoint_configurations)
        now = utc_now()
        scenario = Scenario(
            name=request.name,
            endpoint_configurations=list(request.endpoint_configurations),
            metadata=ScenarioMetadata(created_at=now, last_modified=now, version=1),
        )
        await self.repository.save(scenario)
        await self._apply_and_activate(scenario)
        LOGGER.info("scenario_created", scenario=scenario.name, endpoints=len(scenario.endpoint_configurations))
        return scenario

    async def update(self, name: str, request: UpdateScenarioRequest) -> Scenario:
        _validate_configurations(request.endpoint_configurations)
        existing = await self.repository.find_by_name(name)
        if existing is None:
            raise ScenarioNotFoundError(name)

        metadata = existing.metadata.model_copy(
            update={"last_modified": utc_now(), "version": existing.metadata.version + 1}
        )
        scenario = existing.model_copy(
            update={"endpoint_configurations": list(request.endpoint_configurations), "metadata": metadata}
        )
        await self.repository.update(scenario)
        await self._apply_and_activate(scenario)
        LOGGER.info("scenario_updated", scenario=scenario.name, version=metadata.version)
        return scenario

    async def activate(self, name: str) -> ScenarioApplicationResult:
        """Re-apply a stored scenario and mark it active."""

        scenario = await self.get(name)
        result = await self._apply_and_activate(scenario)
        LOGGER.info("scenario_activated", scenario=name, failures=len(result.failures))
        return result

    async def delete(self, name: str) -> None:
        if not await self.repository.exists(name):
            raise ScenarioNotFoundError(name)
        was_active = await self.tracker.get_active() == name
        await self.repository.delete(name)
        if was_active:
            await self.tracker.clear_active()
        LOGGER.info("scenario_deleted", scenario=name, was_active=was_active)

    async def list(self) -> ScenarioListing:
        scenarios = await self.repository.find_all()
        return ScenarioListing(scenarios=scenarios, active_scenario=await self.tracker.get_active())

    async def get(self, name: str) -> Scenario:
        scenario = await self.repository.find_by_name(name)
        if scenario is None:
            raise ScenarioNotFoundError(name)
        return scenario

    async def _apply_and_activate(self, scenario: Scenario) -> ScenarioApplicationResult:
        result = await self.applicator.apply(scenario)
        await self.tracker.set_active(scenario.name)
        return result


def _validate_configurations(configurations: list[EndpointConfiguration]) -> None:
    if not configurations:
        raise EmptyScenarioError()
    ensure_unique_endpoints(configurations)
