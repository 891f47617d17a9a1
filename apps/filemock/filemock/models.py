"""Pydantic models shared by the mock runtime and its management API."""

from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Annotated, Any, Literal

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .errors import DuplicateEndpointError
from .routing import is_valid_mock_part, path_segments

HttpMethod = Literal["GET", "POST", "PUT", "DELETE", "PATCH"]

MAX_DELAY_MS = 60000
SCENARIO_NAME_PATTERN = r"^[A-Za-z0-9-]+$"
ENDPOINT_PATH_PATTERN = re.compile(r"^/[a-z0-9\-/{}]*$", re.IGNORECASE)
RESERVED_PREFIX = "/_mock/"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def endpoint_label(method: str, path: str) -> str:
    return f"{method} {path}"


def check_mock_path(value: str) -> str:
    """Accept only paths whose every segment maps onto a directory inside the mock root."""

    if not value.startswith("/") or not all(is_valid_mock_part(part) for part in path_segments(value)):
        raise ValueError(
            "Path must start with / and each segment may only contain letters, numbers, "
            "underscores, hyphens, and {braces}"
        )
    return value


MockPath = Annotated[str, AfterValidator(check_mock_path)]


def check_mock_file_name(value: str) -> str:
    if not value.endswith(".json") or "/" in value or "\\" in value or value.startswith("."):
        raise ValueError("Mock file must be a plain .json file name")
    return value


def _upper(value: Any) -> Any:
    return value.upper() if isinstance(value, str) else value


MockFileName = Annotated[str, AfterValidator(check_mock_file_name)]
MockMethod = Annotated[HttpMethod, BeforeValidator(_upper)]


class CamelModel(BaseModel):
    """Base model exchanging camelCase JSON while keeping snake_case attributes."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def as_serializable(self, **kwargs: Any) -> dict[str, Any]:
        """Return a JSON friendly payload using the wire (camelCase) keys."""

        return self.model_dump(mode="json", by_alias=True, **kwargs)


class EndpointConfiguration(CamelModel):
    """Mock file + delay selected for one endpoint inside a scenario."""

    path: MockPath
    method: HttpMethod
    selected_mock_file: MockFileName
    delay_millisecond: int = Field(default=0, ge=0, le=MAX_DELAY_MS)

    @property
    def label(self) -> str:
        return endpoint_label(self.method, self.path)


def ensure_unique_endpoints(configurations: Iterable[EndpointConfiguration]) -> None:
    """Raise DuplicateEndpointError for the first repeated path + method pair."""

    seen: set[str] = set()
    for config in configurations:
        key = f"{config.path}|{config.method}"
        if key in seen:
            raise DuplicateEndpointError(config.path, config.method)
        seen.add(key)


class _ConfigurationList(CamelModel):
    endpoint_configurations: list[EndpointConfiguration]

    @model_validator(mode="after")
    def _no_duplicate_endpoints(self) -> "_ConfigurationList":
        try:
            ensure_unique_endpoints(self.endpoint_configurations)
        except DuplicateEndpointError as exc:
            raise ValueError(str(exc)) from exc
        return self


class CreateScenarioRequest(_ConfigurationList):
    name: str = Field(min_length=1, max_length=50, pattern=SCENARIO_NAME_PATTERN)


class UpdateScenarioRequest(_ConfigurationList):
    pass


class ScenarioMetadata(CamelModel):
    created_at: datetime
    last_modified: datetime
    version: int = Field(ge=1)


class Scenario(CamelModel):
    """Named set of endpoint configurations persisted as `<name>.json`."""

    name: str
    endpoint_configurations: list[EndpointConfiguration]
    metadata: ScenarioMetadata


class ActiveScenarioReference(CamelModel):
    active_scenario: str | None = None
    last_updated: datetime = Field(default_factory=utc_now)


class ApplicationFailure(CamelModel):
    endpoint: str
    error: str


class ScenarioApplicationResult(CamelModel):
    """Outcome of pushing a scenario into the endpoint status files."""

    successes: list[str] = Field(default_factory=list)
    failures: list[ApplicationFailure] = Field(default_factory=list)


class EndpointStatus(CamelModel):
    """Content of an endpoint's `status.json` sidecar."""

    selected: str
    delay_millisecond: int | None = None

    def as_file_payload(self) -> dict[str, Any]:
        return self.as_serializable(exclude_none=True)


class MockResponseFile(BaseModel):
    """Canned response document: `{header: [{key, value}], body}`."""

    header: Any = None
    body: Any = None

    def header_pairs(self) -> list[tuple[str, str]]:
        if not isinstance(self.header, list):
            return []
        pairs: list[tuple[str, str]] = []
        for item in self.header:
            if isinstance(item, dict) and item.get("key") and item.get("value"):
                pairs.append((str(item["key"]), str(item["value"])))
        return pairs


class EndpointSummary(CamelModel):
    path: str
    method: str
    current_mock: str
    available_mocks: list[str] = Field(default_factory=list)
    delay_millisecond: int | None = None


class UpdateMockRequest(CamelModel):
    path: MockPath
    method: MockMethod
    mock_file: MockFileName | None = None
    delay_millisecond: int | None = None


class SetDelayRequest(CamelModel):
    path: MockPath
    method: MockMethod
    delay_millisecond: int = Field(ge=0, le=MAX_DELAY_MS)


class CreateEndpointRequest(CamelModel):
    path: str = Field(min_length=1, max_length=500)
    method: HttpMethod

    @field_validator("path")
    @classmethod
    def _valid_path(cls, value: str) -> str:
        if not ENDPOINT_PATH_PATTERN.match(value) or value.startswith(RESERVED_PREFIX) or "" in path_segments(value):
            raise ValueError(
                "Path must start with / and can only contain letters, numbers, hyphens, "
                "slashes, and {braces} for parameters (the /_mock prefix is reserved)"
            )
        return value
