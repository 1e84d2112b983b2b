"""Tests for the aiohttp request executor: retry, backoff and error mapping."""

from __future__ import annotations

import json

import pytest
from aiohttp import test_utils, web

from errors import NetworkError, NotFoundError, ServerError
from transport import Transport


def flaky_app(failures: int, status: int = 503) -> tuple[web.Application, dict]:
    """App whose /api/ping fails `failures` times before answering."""
    hits = {"count": 0}

    async def ping(request: web.Request) -> web.Response:
        hits["count"] += 1
        if hits["count"] <= failures:
            return web.json_response({"msg": "busy"}, status=status)
        return web.json_response({"ok": True})

    async def echo(request: web.Request) -> web.Response:
        return web.json_response({"method": request.method, "body": await request.text()})

    app = web.Application()
    app.router.add_get("/api/ping", ping)
    app.router.add_route("*", "/api/echo", echo)
    return app, hits


async def failing_send(method: str, endpoint: str, body=None):
    raise NetworkError("Failed to fetch: connection refused")


class TestBackoff:
    def test_delays_double_from_base(self):
        transport = Transport("http://localhost/api", backoff_base=0.5)
        assert [transport.backoff_delay(i) for i in range(3)] == [0.5, 1.0, 2.0]

    def test_max_attempts_is_at_least_one(self):
        assert Transport("http://localhost/api", max_attempts=0).max_attempts == 1

    def test_empty_collaborators_are_kept(self, notices):
        # An empty recorder is falsy but still the caller's choice
        assert not notices
        transport = Transport("http://localhost/api", notify=notices)
        assert transport.notify is notices

    @pytest.mark.asyncio
    async def test_final_failure_reaches_an_empty_notifier(self, notices):
        transport = Transport("http://localhost/api", max_attempts=1, notify=notices)
        transport._send = failing_send
        with pytest.raises(NetworkError):
            await transport.execute("/ping")
        assert len(notices) == 1
        assert notices[0][1] == "error"


class TestExecute:
    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self, sleeper, notices):
        app, hits = flaky_app(failures=2)
        async with test_utils.TestServer(app) as server:
            transport = Transport(str(server.make_url("/api")), sleep=sleeper, notify=notices)
            try:
                result = await transport.execute("/ping")
            finally:
                await transport.close()

        assert result == {"ok": True}
        assert hits["count"] == 3
        assert sleeper.delays == [1.0, 2.0]
        assert notices == []

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts_and_notifies_once(self, sleeper, notices):
        app, hits = flaky_app(failures=10, status=500)
        async with test_utils.TestServer(app) as server:
            transport = Transport(str(server.make_url("/api")), sleep=sleeper, notify=notices)
            try:
                with pytest.raises(ServerError) as excinfo:
                    await transport.execute("/ping")
            finally:
                await transport.close()

        assert excinfo.value.status == 500
        assert hits["count"] == 3
        # No sleep after the final attempt
        assert sleeper.delays == [1.0, 2.0]
        assert len(notices) == 1
        message, level = notices[0]
        assert level == "error"
        assert message.startswith("API Request Failed: API Error: 500")

    @pytest.mark.asyncio
    async def test_404_is_not_found(self, sleeper, notices):
        app, _ = flaky_app(failures=10, status=404)
        async with test_utils.TestServer(app) as server:
            transport = Transport(str(server.make_url("/api")), max_attempts=1, sleep=sleeper, notify=notices)
            try:
                with pytest.raises(NotFoundError):
                    await transport.execute("/ping")
            finally:
                await transport.close()
        assert sleeper.delays == []

    @pytest.mark.asyncio
    async def test_unreachable_server_is_network_error(self, sleeper, notices):
        transport = Transport("http://127.0.0.1:1/api", max_attempts=2, sleep=sleeper, notify=notices)
        try:
            with pytest.raises(NetworkError):
                await transport.execute("/ping")
        finally:
            await transport.close()
        assert sleeper.delays == [1.0]
        assert len(notices) == 1

    @pytest.mark.asyncio
    async def test_body_sent_only_for_post_and_put(self, sleeper):
        app, _ = flaky_app(failures=0)
        async with test_utils.TestServer(app) as server:
            transport = Transport(str(server.make_url("/api")), sleep=sleeper)
            try:
                posted = await transport.execute("/echo", "post", {"name": "Ana"})
                deleted = await transport.execute("/echo", "DELETE", {"name": "Ana"})
            finally:
                await transport.close()

        assert posted["method"] == "POST"
        assert json.loads(posted["body"]) == {"name": "Ana"}
        assert deleted["method"] == "DELETE"
        assert deleted["body"] == ""


class TestProbe:
    @pytest.mark.asyncio
    async def test_probe_is_single_silent_attempt(self, sleeper, notices):
        app, hits = flaky_app(failures=10)
        async with test_utils.TestServer(app) as server:
            transport = Transport(str(server.make_url("/api")), sleep=sleeper, notify=notices)
            try:
                with pytest.raises(ServerError):
                    await transport.probe("/ping")
            finally:
                await transport.close()

        assert hits["count"] == 1
        assert sleeper.delays == []
        assert notices == []
