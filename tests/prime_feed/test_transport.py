"""
Tests for the aiohttp transport against a local WebSocket server.

============================================================
TEST PRINCIPLES:
- Listener sees open, messages, then exactly one close or error
- A close frame from the server is reported as remote
- Handshake failures surface as ConnectError
============================================================
"""

import asyncio
from typing import Any, List, Tuple

import pytest
from aiohttp import web, WSMsgType
from aiohttp.test_utils import TestServer

from prime_feed.errors import ConnectError, TransientLinkError
from prime_feed.transport import AiohttpTransport, TransportListener


class RecordingListener(TransportListener):
    def __init__(self, fail_on: str = ""):
        self.events: List[Tuple[Any, ...]] = []
        self.done = asyncio.Event()
        self.fail_on = fail_on

    async def on_open(self) -> None:
        self.events.append(("open",))

    async def on_message(self, text: str) -> None:
        self.events.append(("message", text))
        if text == self.fail_on:
            raise ValueError("listener failure")

    async def on_close(self, code, reason, remote) -> None:
        self.events.append(("close", code, reason, remote))
        self.done.set()

    async def on_error(self, error) -> None:
        self.events.append(("error", error))
        self.done.set()

    def messages(self) -> List[str]:
        return [e[1] for e in self.events if e[0] == "message"]


async def start_server(handler) -> TestServer:
    app = web.Application()
    app.router.add_get("/ws", handler)
    server = TestServer(app)
    await server.start_server()
    return server


async def push_then_close(request):
    ws = web.WebSocketResponse()
    await ws.prepare(request)
    await ws.send_str("first")
    await ws.send_str("second")
    await ws.close(code=4000, message=b"maintenance")
    return ws


async def echo(request):
    ws = web.WebSocketResponse()
    await ws.prepare(request)
    async for msg in ws:
        if msg.type == WSMsgType.TEXT:
            await ws.send_str(f"echo:{msg.data}")
    return ws


class TestAiohttpTransport:
    @pytest.mark.asyncio
    async def test_server_close_is_remote(self):
        server = await start_server(push_then_close)
        listener = RecordingListener()
        transport = AiohttpTransport(listener)
        try:
            await transport.connect(str(server.make_url("/ws")), timeout=5)
            await asyncio.wait_for(listener.done.wait(), timeout=5)
        finally:
            await transport.close()
            await server.close()

        assert listener.events[0] == ("open",)
        assert listener.messages() == ["first", "second"]
        assert listener.events[-1] == ("close", 4000, "maintenance", True)
        assert transport.is_closed

    @pytest.mark.asyncio
    async def test_send_and_client_close(self):
        server = await start_server(echo)
        listener = RecordingListener()
        transport = AiohttpTransport(listener)
        try:
            await transport.connect(str(server.make_url("/ws")), timeout=5)
            await transport.send("ping")

            for _ in range(500):
                if listener.messages():
                    break
                await asyncio.sleep(0.01)

            await transport.close()
            await asyncio.wait_for(listener.done.wait(), timeout=5)
        finally:
            await server.close()

        assert listener.messages() == ["echo:ping"]
        assert listener.events[-1][0] == "close"
        assert listener.events[-1][3] is False
        assert transport.is_closed

    @pytest.mark.asyncio
    async def test_listener_failure_does_not_stop_receiving(self):
        server = await start_server(push_then_close)
        listener = RecordingListener(fail_on="first")
        transport = AiohttpTransport(listener)
        try:
            await transport.connect(str(server.make_url("/ws")), timeout=5)
            await asyncio.wait_for(listener.done.wait(), timeout=5)
        finally:
            await transport.close()
            await server.close()

        assert listener.messages() == ["first", "second"]

    @pytest.mark.asyncio
    async def test_unreachable_endpoint(self):
        server = await start_server(echo)
        uri = str(server.make_url("/ws"))
        await server.close()

        transport = AiohttpTransport(RecordingListener())

        with pytest.raises(ConnectError) as exc_info:
            await transport.connect(uri, timeout=5)

        assert exc_info.value.context["uri"] == uri
        assert transport.is_closed

    @pytest.mark.asyncio
    async def test_send_when_not_connected(self):
        transport = AiohttpTransport(RecordingListener())
        with pytest.raises(TransientLinkError):
            await transport.send("ping")

    @pytest.mark.asyncio
    async def test_single_use(self):
        server = await start_server(echo)
        transport = AiohttpTransport(RecordingListener())
        try:
            await transport.connect(str(server.make_url("/ws")), timeout=5)
            with pytest.raises(RuntimeError):
                await transport.connect(str(server.make_url("/ws")), timeout=5)
        finally:
            await transport.close()
            await server.close()
