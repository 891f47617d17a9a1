"""Server runtime running one or more mock applications on their own ports."""

from __future__ import annotations

import threading
import time
from typing import Any

import structlog
import uvicorn

from .app import MANAGEMENT_PREFIX, create_app
from .config import RuntimeConfig, ServerConfig

LOGGER = structlog.get_logger("filemock.runtime")

STARTUP_TIMEOUT = 5.0
SHUTDOWN_TIMEOUT = 5.0


class MockServerRunner:
    """Runs a single uvicorn server for one mock root in a background thread."""

    def __init__(self, server_config: ServerConfig) -> None:
        self._config = server_config
        self._server: uvicorn.Server | None = None
        self._thread: threading.Thread | None = None
        self._ready = threading.Event()
        self._logger = LOGGER.bind(server=server_config.name, mock_root=str(server_config.resolved_mock_root))

    @property
    def config(self) -> ServerConfig:
        return self._config

    @property
    def port(self) -> int:
        return self._config.port

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and self._ready.is_set()

    def start(self, timeout: float = STARTUP_TIMEOUT) -> None:
        if self.is_running:
            self._logger.warning("server_already_running", port=self.port)
            return

        self._logger.info("server_starting", host=self._config.host, port=self._config.port)
        app = create_app(self._config)
        server = uvicorn.Server(
            uvicorn.Config(
                app,
                host=self._config.host,
                port=self._config.port,
                log_config=None,
                access_log=False,
                lifespan="on",
            )
        )
        thread = threading.Thread(target=server.run, name=f"filemock-{self._config.name}", daemon=True)
        self._server = server
        self._thread = thread
        self._ready.clear()
        thread.start()

        deadline = time.monotonic() + timeout
        while not server.started and thread.is_alive() and time.monotonic() < deadline:
            time.sleep(0.01)
        if not server.started:
            server.should_exit = True
            thread.join(timeout=SHUTDOWN_TIMEOUT)
            self._server = None
            self._thread = None
            raise RuntimeError(
                f"Mock server {self._config.name} failed to start on {self._config.host}:{self._config.port}"
            )

        bound_port = _bound_port(server)
        if bound_port and bound_port != self._config.port:
            self._config = self._config.model_copy(update={"port": bound_port})
        self._ready.set()
        self._logger = self._logger.bind(host=self._config.host, port=self._config.port)
        self._logger.info("server_started", url=self._config.base_url)
        for line in _server_console_summary(self._config):
            print(line)

    def stop(self) -> None:
        if not self._server:
            self._logger.debug("server_not_running")
            return
        self._logger.info("server_stopping")
        try:
            self._server.should_exit = True
        finally:
            if self._thread:
                self._thread.join(timeout=SHUTDOWN_TIMEOUT)
            self._server = None
            self._thread = None
            self._ready.clear()
        self._logger.info("server_stopped")

    def restart(self) -> None:
        self._logger.info("server_restarting")
        self.stop()
        self.start()

    def wait_until_ready(self, timeout: float = 1.0) -> bool:
        return self._ready.wait(timeout=timeout)

    def status(self) -> dict[str, Any]:
        return {
            "name": self._config.name,
            "isRunning": self.is_running,
            "port": self._config.port,
            "mockRoot": str(self._config.resolved_mock_root),
            "url": self._config.base_url,
        }


def _bound_port(server: uvicorn.Server) -> int | None:
    for listener in getattr(server, "servers", None) or []:
        for sock in listener.sockets:
            return sock.getsockname()[1]
    return None


def _server_console_summary(server: ServerConfig) -> list[str]:
    return [
        f"[filemock] {server.name} listening on {server.base_url}",
        f"    mock root:  {server.resolved_mock_root}",
        f"    scenarios:  {server.resolved_scenario_dir}",
        f"    management: {server.base_url}{MANAGEMENT_PREFIX}/endpoints",
    ]


class MockRuntime:
    """Starts all configured servers and manages their lifecycle by port."""

    def __init__(self, config: RuntimeConfig) -> None:
        self._config = config
        self._runners: dict[int, MockServerRunner] = {}
        self._logger = LOGGER.bind(configured_servers=len(config.servers))

    @property
    def runners(self) -> list[MockServerRunner]:
        return list(self._runners.values())

    def start(self) -> None:
        self._logger.info("runtime_starting_servers")
        for server in self._config.servers:
            self.add_server(server)
        self._logger.info("runtime_running", active_servers=len(self._runners))

    def stop(self) -> None:
        self._logger.info("runtime_stopping_servers", active_servers=len(self._runners))
        for runner in self._runners.values():
            runner.stop()
        self._runners.clear()
        self._logger.info("runtime_stopped_servers")

    def add_server(self, server_config: ServerConfig) -> MockServerRunner:
        if server_config.port and server_config.port in self._runners:
            raise ValueError(f"Server on port {server_config.port} already exists")
        runner = MockServerRunner(server_config)
        runner.start()
        runner.wait_until_ready()
        self._runners[runner.port] = runner
        return runner

    def remove_server(self, port: int) -> None:
        runner = self._runners.pop(port, None)
        if runner is None:
            raise ValueError(f"Server on port {port} not found")
        runner.stop()

    def get_server(self, port: int) -> MockServerRunner | None:
        return self._runners.get(port)

    def is_port_in_use(self, port: int) -> bool:
        return port in self._runners

    def all_status(self) -> list[dict[str, Any]]:
        return [runner.status() for runner in self._runners.values()]

    def __enter__(self) -> "MockRuntime":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # pragma: no cover - context helper
        self.stop()
