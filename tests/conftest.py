"""Pytest configuration and shared fixtures for unitorrent tests."""

from __future__ import annotations

import copy
import inspect
import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import pytest
from aiohttp import web

from unitorrent.adapter.factory import clear_version_cache
from unitorrent.adapter.transmission.adapter import TransmissionAdapter


def pytest_configure(config):
    """Register all project markers to avoid warnings when ini isn't loaded."""
    markers = [
        ("unit", "marks tests as unit tests"),
        ("adapter", "marks tests as adapter tests"),
        ("transport", "marks tests as RPC transport tests"),
        ("config", "marks tests as configuration tests"),
        ("cli", "marks tests as CLI tests"),
        ("property", "marks tests as property-based tests"),
        ("observability", "marks tests as logging tests"),
    ]
    for name, desc in markers:
        config.addinivalue_line("markers", f"{name}: {desc}")


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch, tmp_path):
    """Keep UNITORRENT_* variables and config files of the host out of tests."""
    for name in list(os.environ):
        if name.startswith("UNITORRENT_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)


@pytest.fixture(autouse=True)
def _reset_version_cache():
    clear_version_cache()
    yield
    clear_version_cache()


@pytest.fixture(autouse=True)
def cleanup_logging():
    """Clean up logging handlers after each test to prevent closed file errors."""
    yield
    for logger_name in list(logging.Logger.manager.loggerDict.keys()):
        logger = logging.getLogger(logger_name)
        for handler in logger.handlers[:]:
            handler.close()
            logger.removeHandler(handler)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)

    # setup_logging detaches the package logger from the root
    pkg_logger = logging.getLogger("unitorrent")
    pkg_logger.propagate = True
    pkg_logger.setLevel(logging.NOTSET)


class FakeTransport:
    """In-memory stand-in for :class:`RPCTransport`.

    Responses are registered per logical operation: a value (returned for
    every call), a list (consumed one item per call) or a callable taking
    the params. An exception instance in place of a value is raised.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any] | None]] = []
        self.responses: dict[str, Any] = {}
        self.username: str | None = None
        self.password: str | None = None
        self.closed = False

    def on(self, operation: str, response: Any) -> None:
        self.responses[operation] = response

    def params_for(self, operation: str) -> list[dict[str, Any] | None]:
        return [params for op, params in self.calls if op == operation]

    async def call(self, operation: str, params: dict[str, Any] | None = None) -> Any:
        self.calls.append((operation, copy.deepcopy(params)))
        response = self.responses.get(operation, {})
        if isinstance(response, list):
            if not response:
                msg = f"No more responses for {operation}"
                raise AssertionError(msg)
            response = response.pop(0)
        if callable(response):
            response = response(params)
            if inspect.isawaitable(response):
                response = await response
        if isinstance(response, BaseException):
            raise response
        return copy.deepcopy(response)

    @property
    def has_credentials(self) -> bool:
        return bool(self.username or self.password)

    def set_credentials(self, username: str | None, password: str | None) -> None:
        self.username, self.password = username, password

    def clear_credentials(self) -> None:
        self.username = self.password = None

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
async def make_adapter(fake_transport):
    """Factory for adapters wired to ``fake_transport``; closed on teardown."""
    created: list[TransmissionAdapter] = []

    def _make(rpc_semver: str | None = "6.0.0", **kwargs: Any) -> TransmissionAdapter:
        adapter = TransmissionAdapter(
            "http://transmission.test/transmission/rpc",
            rpc_semver=rpc_semver,
            transport=fake_transport,  # type: ignore[arg-type]
            **kwargs,
        )
        created.append(adapter)
        return adapter

    yield _make
    for adapter in created:
        await adapter.close()


@dataclass
class RecordedRequest:
    method: str
    path: str
    headers: dict[str, str]
    body: Any


@dataclass
class RPCServer:
    """Scriptable HTTP server; ``handler`` decides every response."""

    url: str = ""
    requests: list[RecordedRequest] = field(default_factory=list)
    handler: Callable[[RecordedRequest], Awaitable[web.StreamResponse]] | None = None

    @property
    def rpc_url(self) -> str:
        return f"{self.url}/transmission/rpc"


@pytest.fixture
async def rpc_server():
    """Real aiohttp server on an ephemeral port."""
    server = RPCServer()

    async def handle(request: web.Request) -> web.StreamResponse:
        text = await request.text()
        recorded = RecordedRequest(
            method=request.method,
            path=request.path,
            headers=dict(request.headers),
            body=json.loads(text) if text else None,
        )
        server.requests.append(recorded)
        if server.handler is None:
            return web.Response(status=404)
        return await server.handler(recorded)

    app = web.Application()
    app.router.add_route("*", "/{tail:.*}", handle)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", 0)
    await site.start()
    host, port = runner.addresses[0][:2]
    server.url = f"http://{host}:{port}"
    try:
        yield server
    finally:
        await runner.cleanup()
