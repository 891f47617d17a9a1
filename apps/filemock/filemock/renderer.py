"""Loads mock response files and derives the HTTP status from their names."""

from __future__ import annotations

import re
from pathlib import Path

from .models import MockResponseFile
from .store import FileStore

_STATUS_CODE_PATTERN = re.compile(r"-(\d+)\.json$")


def extract_status_code(mock_file_name: str) -> int | None:
    """`success-200.json` -> 200; None when the name carries no status code."""

    match = _STATUS_CODE_PATTERN.search(mock_file_name)
    if not match:
        return None
    return int(match.group(1))


async def read_mock_response(store: FileStore, file_path: Path) -> MockResponseFile:
    payload = await store.read_json(file_path)
    if not isinstance(payload, dict):
        return MockResponseFile(body=payload)
    return MockResponseFile(header=payload.get("header"), body=payload.get("body"))
