"""Domain errors raised by the scenario and endpoint services."""

from __future__ import annotations


class ScenarioError(RuntimeError):
    """Base class for scenario management failures."""


class ScenarioValidationError(ScenarioError):
    """Raised when a scenario field violates a business rule."""

    def __init__(self, field: str, constraint: str) -> None:
        super().__init__(f"Validation failed for {field}: {constraint}")
        self.field = field
        self.constraint = constraint


class DuplicateScenarioError(ScenarioError):
    """Raised when a scenario with the same name is already stored."""

    def __init__(self, scenario_name: str) -> None:
        super().__init__(f'Scenario with name "{scenario_name}" already exists')
        self.scenario_name = scenario_name


class DuplicateEndpointError(ScenarioError):
    """Raised when one scenario configures the same path + method twice."""

    def __init__(self, path: str, method: str) -> None:
        super().__init__(f"Duplicate endpoint: {method} {path} is already configured in this scenario")
        self.path = path
        self.method = method


class EmptyScenarioError(ScenarioError):
    def __init__(self) -> None:
        super().__init__("Scenario must contain at least one endpoint configuration")


class ScenarioNotFoundError(ScenarioError):
    def __init__(self, scenario_name: str) -> None:
        super().__init__(f'Scenario "{scenario_name}" not found')
        self.scenario_name = scenario_name


class ScenarioCorruptedError(ScenarioError):
    """Raised when a stored scenario document cannot be parsed.

    Kept distinct from ScenarioNotFoundError: a corrupt file is data loss,
    not absence.
    """

    def __init__(self, scenario_file: str, reason: str) -> None:
        super().__init__(f"Scenario file {scenario_file} is corrupted: {reason}")
        self.scenario_file = scenario_file
        self.reason = reason


class EndpointExistsError(RuntimeError):
    """Raised when generating an endpoint whose directory already exists."""

    def __init__(self, path: str, method: str, mock_directory: str) -> None:
        super().__init__(f"Endpoint {method} {path} already exists")
        self.path = path
        self.method = method
        self.mock_directory = mock_directory
