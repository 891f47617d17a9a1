"""Test bootstrap and shared mock-tree fixtures for filemock."""

from __future__ import annotations

import json
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

APP_ROOT = Path(__file__).resolve().parents[1]
if str(APP_ROOT) not in sys.path:
    sys.path.insert(0, str(APP_ROOT))

AddMock = Callable[..., Path]


def write_json(path: Path, payload: Any) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    return path


@pytest.fixture
def add_mock(tmp_path: Path) -> AddMock:
    """Write `<root>/<endpoint>/<file_name>` as a mock response document."""

    def _add(endpoint: str, file_name: str, body: Any = None, header: list[dict[str, str]] | None = None) -> Path:
        return write_json(
            tmp_path / "mock" / endpoint / file_name,
            {"header": header or [], "body": body if body is not None else {"file": file_name}},
        )

    return _add


@pytest.fixture
def mock_root(tmp_path: Path, add_mock: AddMock) -> Path:
    """Pet-store style tree.

    Discovery is name-sorted, so under `pet/` the literal `findByTag` and
    `status` directories are walked before `{petId}`.
    """

    add_mock("pet/{petId}/GET", "successful-operation-200.json", {"id": "from-template"})
    add_mock("pet/{petId}/GET", "not-found-404.json", {"error": "missing"})
    add_mock("pet/status/GET", "successful-operation-200.json", {"status": "available"})
    add_mock("pet/status/GET", "server-error-500.json", {"error": "boom"})
    add_mock("pet/findByTag/GET", "successful-operation-200.json", [{"tag": "dog"}])
    add_mock("user/login/GET", "logged-in-200.json", {"token": "abc"}, header=[{"key": "X-Rate-Limit", "value": "10"}])
    write_json(tmp_path / "mock" / "user/login/GET" / "status.json", {"selected": "logged-in-200.json"})
    add_mock("user/login/POST", "created-201.json", {"ok": True})
    return tmp_path / "mock"
