"""Shared fixtures: a throwaway SQLite-backed API and a sync client wired straight into it."""

from __future__ import annotations

from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient

from api import build_clients
from config import Settings
from errors import NetworkError, ServerError
from models import AppState
from server import create_app
from sync import BulkSynchronizer, EntityReconciler
from transport import Transport


class SleepRecorder:
    """Drop-in for asyncio.sleep that returns immediately and remembers the delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class Notices(list):
    def __call__(self, message: str, level: str) -> None:
        self.append((message, level))

    def messages(self) -> list[str]:
        return [message for message, _ in self]


class AppTransport(Transport):
    """Transport whose HTTP exchange is served in-process by the FastAPI app."""

    def __init__(self, app, **kwargs: Any) -> None:
        super().__init__("http://testserver/api", **kwargs)
        self.app = app
        self.down = False
        self.calls: list[tuple[str, str]] = []
        self.bodies: list[Any] = []

    async def _send(self, method: str, endpoint: str, body: Any = None) -> Any:
        self.calls.append((method, endpoint))
        self.bodies.append(body)
        if self.down:
            raise NetworkError("Failed to fetch: connection refused")
        transport = httpx.ASGITransport(app=self.app, raise_app_exceptions=False)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
            resp = await http.request(method, f"/api{endpoint}", json=body)
        if not resp.is_success:
            raise ServerError.from_status(resp.status_code, resp.reason_phrase)
        return resp.json()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        db_file=tmp_path / "academy-test.db",
        academy_name="Test Academy",
        initial_sync_delay=0,
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def http(app):
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def notices() -> Notices:
    return Notices()


@pytest.fixture
def transport(app, sleeper, notices) -> AppTransport:
    return AppTransport(app, sleep=sleeper, notify=notices)


@pytest.fixture
def api(transport):
    return build_clients(transport)


@pytest.fixture
def state() -> AppState:
    return AppState()


@pytest.fixture
def reconciler(api, state) -> EntityReconciler:
    return EntityReconciler(api, state)


@pytest.fixture
def synchronizer(api, reconciler, state, notices) -> BulkSynchronizer:
    return BulkSynchronizer(api, reconciler, state, notify=notices)
