"""Tests for the RPC transport against a real aiohttp server."""

from __future__ import annotations

import asyncio
import base64
import json

import aiohttp
import pytest
from aiohttp import web

from unitorrent.adapter.transmission.dialect import ACCESSORS, Dialect
from unitorrent.adapter.transmission.transport import (
    SESSION_ID_HEADER,
    RPCTransport,
    SessionState,
)
from unitorrent.exceptions import (
    AuthenticationError,
    RPCError,
    SessionRenegotiationError,
)

pytestmark = [pytest.mark.unit, pytest.mark.transport]


def json_response(body, status=200, headers=None):
    return web.Response(
        text=json.dumps(body),
        status=status,
        headers=headers,
        content_type="application/json",
    )


def conflict(token):
    return web.Response(status=409, headers={SESSION_ID_HEADER: token})


@pytest.fixture
async def transport_factory():
    transports: list[RPCTransport] = []

    def _make(url, dialect=Dialect.LEGACY, **kwargs):
        transport = RPCTransport(url, ACCESSORS[dialect], **kwargs)
        transports.append(transport)
        return transport

    yield _make
    for transport in transports:
        await transport.close()


class TestEnvelopes:
    def test_modern_envelope(self):
        transport = RPCTransport("http://x/rpc", ACCESSORS[Dialect.JSONRPC2])
        first = transport.build_payload("torrent-get", {"fields": ["id"]})
        second = transport.build_payload("session-get", None)
        assert first == {
            "jsonrpc": "2.0",
            "method": "torrent_get",
            "params": {"fields": ["id"]},
            "id": 1,
        }
        assert second == {"jsonrpc": "2.0", "method": "session_get", "id": 2}

    def test_legacy_envelope(self):
        transport = RPCTransport("http://x/rpc", ACCESSORS[Dialect.LEGACY])
        payload = transport.build_payload("torrent-start-now", {"ids": ["a"]})
        assert payload == {
            "method": "torrent-start-now",
            "arguments": {"ids": ["a"]},
            "tag": 1,
        }


class TestCall:
    @pytest.mark.asyncio
    async def test_legacy_success_returns_arguments(self, rpc_server, transport_factory):
        async def handler(request):
            return json_response({"result": "success", "arguments": {"torrents": []}})

        rpc_server.handler = handler
        transport = transport_factory(rpc_server.rpc_url)
        result = await transport.call("torrent-get", {"fields": ["id"]})

        assert result == {"torrents": []}
        assert rpc_server.requests[0].body["method"] == "torrent-get"
        assert rpc_server.requests[0].body["arguments"] == {"fields": ["id"]}

    @pytest.mark.asyncio
    async def test_modern_success_returns_result(self, rpc_server, transport_factory):
        async def handler(request):
            return json_response(
                {"jsonrpc": "2.0", "id": request.body["id"], "result": {"version": "4.1.0"}}
            )

        rpc_server.handler = handler
        transport = transport_factory(rpc_server.rpc_url, Dialect.JSONRPC2)
        assert await transport.call("session-get") == {"version": "4.1.0"}
        assert rpc_server.requests[0].body["method"] == "session_get"

    @pytest.mark.asyncio
    async def test_no_content_returns_none(self, rpc_server, transport_factory):
        async def handler(request):
            return web.Response(status=204)

        rpc_server.handler = handler
        transport = transport_factory(rpc_server.rpc_url, Dialect.JSONRPC2)
        assert await transport.call("torrent-start", {"ids": ["a"]}) is None

    @pytest.mark.asyncio
    async def test_legacy_failure_result(self, rpc_server, transport_factory):
        async def handler(request):
            return json_response({"result": "invalid argument", "arguments": {}})

        rpc_server.handler = handler
        transport = transport_factory(rpc_server.rpc_url)
        with pytest.raises(RPCError) as exc_info:
            await transport.call("torrent-set", {"labels": ["x"]})
        assert exc_info.value.message == "invalid argument"
        assert exc_info.value.code is None

    @pytest.mark.asyncio
    async def test_modern_error_object(self, rpc_server, transport_factory):
        async def handler(request):
            return json_response(
                {
                    "jsonrpc": "2.0",
                    "id": request.body["id"],
                    "error": {
                        "code": -32602,
                        "message": "Invalid params",
                        "data": {"errorString": "labels"},
                    },
                }
            )

        rpc_server.handler = handler
        transport = transport_factory(rpc_server.rpc_url, Dialect.JSONRPC2)
        with pytest.raises(RPCError) as exc_info:
            await transport.call("torrent-set", {"labels": ["x"]})
        assert exc_info.value.code == -32602
        assert exc_info.value.message == "Invalid params: labels"

    @pytest.mark.asyncio
    async def test_other_http_status(self, rpc_server, transport_factory):
        async def handler(request):
            return web.Response(status=500, text="boom")

        rpc_server.handler = handler
        transport = transport_factory(rpc_server.rpc_url)
        with pytest.raises(RPCError) as exc_info:
            await transport.call("session-get")
        assert exc_info.value.code == 500

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403])
    async def test_auth_failures(self, rpc_server, transport_factory, status):
        async def handler(request):
            return web.Response(status=status)

        rpc_server.handler = handler
        transport = transport_factory(rpc_server.rpc_url)
        with pytest.raises(AuthenticationError) as exc_info:
            await transport.call("session-get")
        assert exc_info.value.code == status


class TestSessionRenegotiation:
    @pytest.mark.asyncio
    async def test_conflict_adopts_token_and_retries_once(self, rpc_server, transport_factory):
        async def handler(request):
            if request.headers.get(SESSION_ID_HEADER) != "token-1":
                return conflict("token-1")
            return json_response({"result": "success", "arguments": {"ok": True}})

        rpc_server.handler = handler
        transport = transport_factory(rpc_server.rpc_url)

        assert await transport.call("session-get") == {"ok": True}
        assert len(rpc_server.requests) == 2
        assert transport.session_id == "token-1"
        assert transport.state is SessionState.VALID

        # Later calls reuse the token without a handshake
        await transport.call("session-get")
        assert len(rpc_server.requests) == 3
        assert rpc_server.requests[-1].headers[SESSION_ID_HEADER] == "token-1"

    @pytest.mark.asyncio
    async def test_second_conflict_is_fatal(self, rpc_server, transport_factory):
        tokens = iter(["token-1", "token-2", "token-3"])

        async def handler(request):
            return conflict(next(tokens))

        rpc_server.handler = handler
        transport = transport_factory(rpc_server.rpc_url)

        with pytest.raises(SessionRenegotiationError):
            await transport.call("session-get")
        assert len(rpc_server.requests) == 2

    @pytest.mark.asyncio
    async def test_replayed_request_is_identical(self, rpc_server, transport_factory):
        async def handler(request):
            if SESSION_ID_HEADER not in request.headers:
                return conflict("abc")
            return json_response({"result": "success", "arguments": {}})

        rpc_server.handler = handler
        transport = transport_factory(rpc_server.rpc_url)
        await transport.call("torrent-stop", {"ids": ["h1"]})

        first, second = rpc_server.requests
        assert first.body == second.body


class TestCredentials:
    @pytest.mark.asyncio
    async def test_basic_auth_only_when_configured(self, rpc_server, transport_factory):
        async def handler(request):
            return json_response({"result": "success", "arguments": {}})

        rpc_server.handler = handler
        transport = transport_factory(rpc_server.rpc_url)
        await transport.call("session-get")
        assert "Authorization" not in rpc_server.requests[-1].headers

        transport.set_credentials("user", "secret")
        assert transport.has_credentials
        await transport.call("session-get")
        expected = "Basic " + base64.b64encode(b"user:secret").decode()
        assert rpc_server.requests[-1].headers["Authorization"] == expected

        transport.clear_credentials()
        await transport.call("session-get")
        assert "Authorization" not in rpc_server.requests[-1].headers

    def test_empty_credentials_mean_no_auth(self):
        transport = RPCTransport("http://x/rpc", ACCESSORS[Dialect.LEGACY], "", "")
        assert not transport.has_credentials


class TestTransportFailures:
    @pytest.mark.asyncio
    async def test_connection_errors_are_not_wrapped(self, transport_factory):
        # Nothing listens on port 9 of the loopback interface
        transport = transport_factory("http://127.0.0.1:9/transmission/rpc", timeout=2.0)
        with pytest.raises(aiohttp.ClientError):
            await transport.call("session-get")

    @pytest.mark.asyncio
    async def test_timeouts_are_not_wrapped(self, rpc_server, transport_factory):
        async def handler(request):
            await asyncio.sleep(1.0)
            return json_response({"result": "success"})

        rpc_server.handler = handler
        transport = transport_factory(rpc_server.rpc_url, timeout=0.1)
        with pytest.raises(asyncio.TimeoutError):
            await transport.call("session-get")

    @pytest.mark.asyncio
    async def test_injected_session_is_not_closed(self, rpc_server):
        async with aiohttp.ClientSession() as session:
            transport = RPCTransport(
                rpc_server.rpc_url, ACCESSORS[Dialect.LEGACY], session=session
            )
            await transport.close()
            assert not session.closed

    @pytest.mark.asyncio
    async def test_timeout_applies_to_injected_session(self, rpc_server):
        async def handler(request):
            await asyncio.sleep(1.5)
            return json_response({"result": "success"})

        rpc_server.handler = handler
        async with aiohttp.ClientSession() as session:
            transport = RPCTransport(
                rpc_server.rpc_url, ACCESSORS[Dialect.LEGACY], timeout=0.2, session=session
            )
            with pytest.raises(asyncio.TimeoutError):
                await transport.call("session-get")
            assert not session.closed
