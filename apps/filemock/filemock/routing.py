"""Maps inbound requests onto endpoint directories in the mock tree."""

from __future__ import annotations

import re
from collections.abc import Collection, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from .store import FileStore

STATUS_FILE_NAME = "status.json"

# Letters, digits, -, _ and {} only; {name} marks a path parameter.
_VALID_MOCK_PART = re.compile(r"^[A-Za-z0-9_\-{}]+$")

Template = tuple[str, ...]


@dataclass(frozen=True)
class MatchResult:
    """Template selected for a request plus the path parameters it bound."""

    template: Template
    params: dict[str, str] = field(default_factory=dict)

    @property
    def method(self) -> str:
        return self.template[-1]

    @property
    def api_path(self) -> str:
        return template_path(self.template)


def is_valid_mock_part(part: str) -> bool:
    return bool(_VALID_MOCK_PART.match(part))


def is_path_parameter(segment: str) -> bool:
    return segment.startswith("{") and segment.endswith("}")


def is_mock_file(name: str) -> bool:
    return name.endswith(".json") and name != STATUS_FILE_NAME


def template_path(template: Sequence[str]) -> str:
    """Render the API path of a template, e.g. ("pet", "{petId}", "GET") -> /pet/{petId}."""

    return "/" + "/".join(template[:-1])


def path_segments(api_path: str) -> list[str]:
    stripped = api_path[1:] if api_path.startswith("/") else api_path
    return stripped.split("/")


def endpoint_directory(mock_root: Path, api_path: str, method: str) -> Path:
    """Directory holding the mock files of one path + method."""

    return mock_root.joinpath(*path_segments(api_path), method.upper())


async def discover_templates(
    store: FileStore,
    mock_root: Path,
    *,
    skip: Collection[str] = (),
) -> list[Template]:
    """Walk the mock tree and return every endpoint template in discovery order.

    A directory is an endpoint (its name is the method segment) when it
    directly holds at least one mock response file. The walk descends into
    every valid directory, endpoints included. ``skip`` names top-level
    entries that are never endpoints, such as the scenario directory.
    """

    async def walk(directory: Path, parts: Template) -> list[Template]:
        try:
            entries = await store.list_dir(directory)
        except FileNotFoundError:
            return []

        results: list[Template] = []
        for entry in entries:
            if not parts and entry in skip:
                continue
            if not is_valid_mock_part(entry):
                continue
            full_path = directory / entry
            if not await store.is_dir(full_path):
                continue
            children = await store.list_dir(full_path)
            if any(is_mock_file(child) for child in children):
                results.append((*parts, entry))
            results.extend(await walk(full_path, (*parts, entry)))
        return results

    return await walk(mock_root, ())


def match_template(
    request_parts: Sequence[str],
    templates: Sequence[Template],
    method: str,
) -> MatchResult | None:
    """Return the first template matching the request segments and method.

    There is no specificity ranking: when ``/pet/{id}`` and ``/pet/status``
    both fit a request, whichever was discovered first wins.
    """

    wanted_method = method.upper()
    for template in templates:
        if len(template) != len(request_parts) + 1:
            continue
        if template[-1].upper() != wanted_method:
            continue

        params: dict[str, str] = {}
        for template_part, request_part in zip(template[:-1], request_parts):
            if is_path_parameter(template_part):
                params[template_part[1:-1]] = request_part
            elif template_part != request_part:
                break
        else:
            return MatchResult(template=template, params=params)
    return None


async def available_mock_files(store: FileStore, endpoint_dir: Path) -> list[str]:
    """Mock response files in an endpoint directory; empty when it is missing."""

    try:
        entries = await store.list_dir(endpoint_dir)
    except OSError:
        return []
    return [entry for entry in entries if is_mock_file(entry)]
