"""CLI entrypoint for the filemock server."""

from __future__ import annotations

import asyncio
import signal
import sys
import threading
from pathlib import Path
from typing import Optional

import typer

if __package__ in {None, ""}:
    sys.path.insert(0, str(Path(__file__).resolve().parents[1]))
    __package__ = "filemock"

from .config import DEFAULT_MOCK_ROOT, DEFAULT_PORT, RuntimeConfig, ServerConfig, load_config
from .endpoints import EndpointFileGenerator
from .errors import EndpointExistsError
from .logging_utils import configure_logging
from .models import CreateEndpointRequest
from .output_config import get_log_format, get_log_level
from .routing import discover_templates, template_path
from .server import MockRuntime
from .status import EndpointStatusStore
from .store import FileStore

app = typer.Typer(help="Serve file-backed mock APIs with switchable responses and scenarios.")


def _runtime_config(config: Optional[Path], host: str, port: int, mock_root: Path) -> RuntimeConfig:
    if config is not None:
        return load_config(config)
    return RuntimeConfig(servers=[ServerConfig(host=host, port=port, mock_root=mock_root)])


@app.command()
def serve(
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        exists=True,
        readable=True,
        help="YAML/JSON runtime config describing one or more servers.",
    ),
    host: str = typer.Option("127.0.0.1", help="Bind host when no --config is given."),
    port: int = typer.Option(DEFAULT_PORT, "--port", "-p", help="Port when no --config is given."),
    mock_root: Path = typer.Option(DEFAULT_MOCK_ROOT, help="Mock tree root when no --config is given."),
    log_level: Optional[str] = typer.Option(None, help="Log level (defaults to FILEMOCK_LOG_LEVEL or INFO)."),
    log_format: Optional[str] = typer.Option(None, help="Log format: console, plain or json."),
) -> None:
    """Start the configured mock servers and block until interrupted."""

    logger = configure_logging(get_log_level(log_level), get_log_format(log_format))
    runtime_config = _runtime_config(config, host, port, mock_root)
    if not runtime_config.servers:
        raise typer.BadParameter("Config file does not define any servers")

    stop_event = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: stop_event.set())
    signal.signal(signal.SIGTERM, lambda *_: stop_event.set())

    runtime = MockRuntime(runtime_config)
    try:
        runtime.start()
    except (RuntimeError, ValueError) as exc:
        runtime.stop()
        logger.error("runtime_start_failed", error=str(exc))
        raise typer.Exit(code=1) from exc
    try:
        while not stop_event.is_set():
            stop_event.wait(0.5)
    finally:
        runtime.stop()


@app.command("add-endpoint")
def add_endpoint(
    path: str = typer.Argument(..., help="Endpoint path, e.g. /pet/{petId}."),
    method: str = typer.Argument(..., help="HTTP method: GET, POST, PUT, DELETE or PATCH."),
    mock_root: Path = typer.Option(DEFAULT_MOCK_ROOT, help="Mock tree root."),
) -> None:
    """Scaffold an endpoint directory with default mock and status files."""

    try:
        request = CreateEndpointRequest(path=path, method=method.upper())
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    store = FileStore()
    root = mock_root.resolve()
    generator = EndpointFileGenerator(store, root, EndpointStatusStore(store, root))
    try:
        generated = asyncio.run(generator.generate(request.path, request.method))
    except EndpointExistsError as exc:
        typer.secho(str(exc), fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=1) from exc

    typer.secho(f"Endpoint created -> {generated.mock_directory}", fg=typer.colors.GREEN)
    for name in generated.files_created:
        typer.echo(f"  - {name}")


@app.command()
def endpoints(
    mock_root: Path = typer.Option(DEFAULT_MOCK_ROOT, help="Mock tree root."),
) -> None:
    """List discovered endpoints and their selected mock file."""

    root = mock_root.resolve()
    config = ServerConfig(mock_root=root)
    skip = (config.resolved_scenario_dir.name,)

    async def _collect() -> list[tuple[str, str, str, int | None]]:
        store = FileStore()
        status_store = EndpointStatusStore(store, root)
        rows = []
        for template in await discover_templates(store, root, skip=skip):
            method, api_path = template[-1], template_path(template)
            status = await status_store.read(api_path, method) or status_store.default_status()
            rows.append((method, api_path, status.selected, status.delay_millisecond))
        return rows

    rows = asyncio.run(_collect())
    if not rows:
        typer.secho(f"No endpoints found under {root}", fg=typer.colors.YELLOW)
        return
    for method, api_path, selected, delay in rows:
        suffix = f" (delay {delay}ms)" if delay else ""
        typer.echo(f"{method:<7} {api_path} -> {selected}{suffix}")


def run() -> None:
    """Console_scripts hook."""

    app()


if __name__ == "__main__":  # pragma: no cover
    run()
