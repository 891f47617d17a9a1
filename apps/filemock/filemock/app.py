"""FastAPI application serving mock responses and the `/_mock` management API."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from http import HTTPStatus
from pathlib import Path
from typing import Any

import structlog
from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response

from .applicator import ScenarioApplicator
from .config import ServerConfig
from .endpoints import EndpointFileGenerator
from .errors import (
    DuplicateEndpointError,
    DuplicateScenarioError,
    EmptyScenarioError,
    EndpointExistsError,
    ScenarioCorruptedError,
    ScenarioError,
    ScenarioNotFoundError,
    ScenarioValidationError,
)
from .manager import ScenarioManager
from .models import (
    MAX_DELAY_MS,
    CreateEndpointRequest,
    CreateScenarioRequest,
    MockPath,
    EndpointSummary,
    SetDelayRequest,
    UpdateMockRequest,
    UpdateScenarioRequest,
)
from .renderer import extract_status_code, read_mock_response
from .repository import ScenarioRepository
from .routing import (
    available_mock_files,
    discover_templates,
    endpoint_directory,
    is_valid_mock_part,
    match_template,
    template_path,
)
from .status import EndpointStatusStore
from .store import FileStore
from .tracker import ActiveScenarioTracker

LOGGER = structlog.get_logger("filemock.server")

MANAGEMENT_PREFIX = "/_mock"
SERVED_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]
_RESERVED_PREFIXES = ("_mock/", "api/")
_BODYLESS_STATUSES = {HTTPStatus.NO_CONTENT, HTTPStatus.NOT_MODIFIED}

_SCENARIO_ERROR_STATUS: dict[type[ScenarioError], int] = {
    ScenarioValidationError: 400,
    EmptyScenarioError: 400,
    DuplicateEndpointError: 400,
    DuplicateScenarioError: 409,
    ScenarioNotFoundError: 404,
    ScenarioCorruptedError: 500,
}


@dataclass
class MockServerState:
    """Collaborators owned by one application instance."""

    config: ServerConfig
    mock_root: Path
    store: FileStore
    status_store: EndpointStatusStore
    manager: ScenarioManager
    generator: EndpointFileGenerator
    skipped_entries: tuple[str, ...]

    async def templates(self) -> list[tuple[str, ...]]:
        return await discover_templates(self.store, self.mock_root, skip=self.skipped_entries)


def build_state(config: ServerConfig, store: FileStore | None = None) -> MockServerState:
    store = store or FileStore()
    mock_root = config.resolved_mock_root
    scenario_dir = config.resolved_scenario_dir
    status_store = EndpointStatusStore(store, mock_root, default_mock_file=config.default_mock_file)
    manager = ScenarioManager(
        repository=ScenarioRepository(store, scenario_dir),
        tracker=ActiveScenarioTracker(store, scenario_dir),
        applicator=ScenarioApplicator(store, status_store),
    )
    skipped = (scenario_dir.name,) if scenario_dir.parent == mock_root else ()
    return MockServerState(
        config=config,
        mock_root=mock_root,
        store=store,
        status_store=status_store,
        manager=manager,
        generator=EndpointFileGenerator(store, mock_root, status_store),
        skipped_entries=skipped,
    )


def _error(status: int, error: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status, content={"error": error, **extra})


def _validation_details(exc: RequestValidationError) -> list[dict[str, str]]:
    details = []
    for err in exc.errors():
        location = [str(part) for part in err.get("loc", ()) if part not in ("body", "query")]
        details.append({"field": ".".join(location), "message": str(err.get("msg", "invalid value"))})
    return details


def create_app(config: ServerConfig, *, store: FileStore | None = None) -> FastAPI:
    """Build the application for one mock root; each call gets its own status cache."""

    state = build_state(config, store)
    logger = LOGGER.bind(server=config.name, mock_root=str(state.mock_root))

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        loaded = await state.status_store.preload(await state.templates())
        logger.info("status_preloaded", endpoints=loaded)
        yield

    app = FastAPI(title="filemock", description="File-backed mock API server", lifespan=lifespan)
    app.state.mock = state

    @app.exception_handler(RequestValidationError)
    async def _request_invalid(_: Request, exc: RequestValidationError) -> JSONResponse:
        details = _validation_details(exc)
        summary = "; ".join(f"{item['field'] or 'request'}: {item['message']}" for item in details)
        return _error(400, f"Validation failed: {summary}", details=details)

    @app.exception_handler(ScenarioError)
    async def _scenario_failed(_: Request, exc: ScenarioError) -> JSONResponse:
        status = _SCENARIO_ERROR_STATUS.get(type(exc), 400)
        if status >= 500:
            logger.error("scenario_storage_corrupted", detail=str(exc))
            return _error(status, "Scenario data corrupted", detail=str(exc))
        return _error(status, str(exc))

    app.include_router(_management_router(state, logger))

    @app.api_route("/{full_path:path}", methods=SERVED_METHODS)
    async def serve_mock(request: Request, full_path: str) -> Response:
        if full_path == MANAGEMENT_PREFIX.strip("/") or full_path.startswith(_RESERVED_PREFIXES):
            return _error(404, "API endpoint not found")
        try:
            return await _serve_mock(state, request.method.upper(), full_path, logger)
        except (OSError, ValueError) as exc:
            logger.exception("request_failed", method=request.method, path=request.url.path)
            return _error(500, "Mock server error", detail=str(exc))

    return app


async def _serve_mock(state: MockServerState, method: str, full_path: str, logger: Any) -> Response:
    request_parts = full_path.split("/") if full_path else []
    match = match_template(request_parts, await state.templates(), method)
    if match is not None:
        endpoint_dir = state.mock_root.joinpath(*match.template)
        api_path = match.api_path
    else:
        # Unmatched requests fall back to the literal path, which must stay inside the mock root.
        endpoint_dir = state.mock_root.joinpath(*request_parts, method)
        api_path = "/" + "/".join(request_parts)
        if not all(is_valid_mock_part(part) for part in request_parts):
            logger.warning("request_path_rejected", method=method, path=api_path)
            return _error(404, "Mock file not found", file=str(endpoint_dir), availableFiles=[])

    # Only discovered endpoints are cached; literal fallbacks are looked up each time.
    status = await state.status_store.resolve(api_path, method, remember=match is not None)
    file_path = endpoint_dir / status.selected
    if not await state.store.is_file(file_path):
        logger.warning("mock_file_missing", method=method, path=api_path, mock_file=status.selected)
        return _error(
            404,
            "Mock file not found",
            file=str(file_path),
            availableFiles=await available_mock_files(state.store, endpoint_dir),
        )

    mock = await read_mock_response(state.store, file_path)
    status_code = int(extract_status_code(status.selected) or HTTPStatus.OK)
    delay_ms = status.delay_millisecond or 0
    if delay_ms > 0:
        await asyncio.sleep(delay_ms / 1000)

    headers = dict(mock.header_pairs())
    logger.info(
        "request_served",
        method=method,
        path=api_path,
        params=match.params if match else {},
        mock_file=status.selected,
        status=status_code,
        delay_ms=delay_ms,
    )
    if status_code < HTTPStatus.OK or status_code in _BODYLESS_STATUSES:
        return Response(status_code=status_code, headers=headers)
    return JSONResponse(content=mock.body, status_code=status_code, headers=headers)


def _management_router(state: MockServerState, logger: Any) -> APIRouter:
    router = APIRouter(prefix=MANAGEMENT_PREFIX)
    status_store = state.status_store
    manager = state.manager

    @router.get("/endpoints")
    async def list_endpoints():
        try:
            summaries = []
            for template in await state.templates():
                method = template[-1]
                api_path = template_path(template)
                cached = status_store.cache.get(api_path, method)
                stored = await status_store.read(api_path, method)
                summaries.append(
                    EndpointSummary(
                        path=api_path,
                        method=method,
                        current_mock=cached.selected if cached else status_store.default_mock_file,
                        available_mocks=await available_mock_files(state.store, state.mock_root.joinpath(*template)),
                        delay_millisecond=stored.delay_millisecond if stored else None,
                    )
                )
        except OSError as exc:
            return _error(500, "Failed to get endpoints", detail=str(exc))
        return [summary.as_serializable(exclude_none=True) for summary in summaries]

    @router.post("/endpoints", status_code=201)
    async def create_endpoint(body: CreateEndpointRequest):
        try:
            generated = await state.generator.generate(body.path, body.method)
        except EndpointExistsError as exc:
            return _error(
                409,
                "Endpoint already exists",
                existingEndpoint={"path": exc.path, "method": exc.method, "mockDirectory": exc.mock_directory},
            )
        except OSError as exc:
            return _error(500, "Failed to create endpoint files", detail=str(exc))
        logger.info("endpoint_created", method=generated.method, path=generated.path)
        return {
            "success": True,
            "message": f"Endpoint {generated.method} {generated.path} created successfully",
            "endpoint": {
                "path": generated.path,
                "method": generated.method,
                "filesCreated": generated.files_created,
                "availableAt": f"{state.config.base_url}{generated.example_path()}",
                "mockDirectory": str(generated.mock_directory),
            },
        }

    @router.post("/update")
    async def update_mock(body: UpdateMockRequest):
        try:
            status = await status_store.read(body.path, body.method) or status_store.default_status()
            if body.mock_file:
                mock_path = endpoint_directory(state.mock_root, body.path, body.method) / body.mock_file
                if not await state.store.is_file(mock_path):
                    return _error(400, "Mock file not found", file=str(mock_path))
                status = status.model_copy(update={"selected": body.mock_file})
            if body.delay_millisecond is not None:
                if not 0 <= body.delay_millisecond <= MAX_DELAY_MS:
                    return _error(400, f"Delay must be between 0 and {MAX_DELAY_MS} milliseconds")
                status = status.model_copy(update={"delay_millisecond": body.delay_millisecond})
            await status_store.write(body.path, body.method, status)
        except OSError as exc:
            return _error(500, "Failed to update mock status", detail=str(exc))
        logger.info("status_updated", method=body.method.upper(), path=body.path, selected=status.selected)
        return {
            "success": True,
            "message": "Mock status updated successfully",
            "status": status.as_file_payload(),
        }

    @router.get("/status")
    async def get_status(path: MockPath = Query(), method: str = Query(min_length=1)):
        status = await status_store.read(path, method)
        cached = status_store.cache.get(path, method)
        fallback = cached.selected if cached else status_store.default_mock_file
        return {
            "path": path,
            "method": method,
            "currentMock": status.selected if status else fallback,
            "delayMillisecond": (status.delay_millisecond if status else None) or 0,
        }

    @router.post("/set-delay")
    async def set_delay(body: SetDelayRequest):
        try:
            status = await status_store.read(body.path, body.method) or status_store.default_status()
            status = status.model_copy(update={"delay_millisecond": body.delay_millisecond})
            await status_store.write(body.path, body.method, status)
        except OSError as exc:
            return _error(500, "Failed to set delay", detail=str(exc))
        logger.info("delay_updated", method=body.method.upper(), path=body.path, delay_ms=body.delay_millisecond)
        return {"success": True, "message": f"Delay set to {body.delay_millisecond}ms"}

    @router.post("/scenarios", status_code=201)
    async def create_scenario(body: CreateScenarioRequest):
        scenario = await manager.create(body)
        return {"scenario": scenario.as_serializable(), "message": f'Scenario "{scenario.name}" created and activated'}

    @router.get("/scenarios")
    async def list_scenarios():
        return (await manager.list()).as_serializable()

    @router.get("/scenarios/active")
    async def active_scenario():
        return (await manager.tracker.get_active_reference()).as_serializable()

    @router.get("/scenarios/{name}")
    async def get_scenario(name: str):
        return {"scenario": (await manager.get(name)).as_serializable()}

    @router.put("/scenarios/{name}")
    async def update_scenario(name: str, body: UpdateScenarioRequest):
        scenario = await manager.update(name, body)
        return {"scenario": scenario.as_serializable(), "message": f'Scenario "{name}" updated and activated'}

    @router.delete("/scenarios/{name}")
    async def delete_scenario(name: str):
        await manager.delete(name)
        return {"success": True, "message": f'Scenario "{name}" deleted'}

    @router.put("/scenarios/{name}/activate")
    async def activate_scenario(name: str):
        result = await manager.activate(name)
        message = f'Scenario "{name}" activated'
        if result.failures:
            message += f" ({len(result.failures)} endpoint(s) could not be applied)"
        return {"success": True, "message": message, "applicationResult": result.as_serializable()}

    return router
