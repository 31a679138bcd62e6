"""Pytest configuration and fixtures."""

from __future__ import annotations

import asyncio
import json
import socket
import threading
import time
from typing import Any, Callable
from unittest.mock import MagicMock

import pytest
from aiohttp import WSMsgType, web

from deriws.session import BaseHandlers, SessionState


@pytest.fixture
def client_id():
    """Test client id."""
    return "test_client_id"


@pytest.fixture
def client_secret():
    """Test client secret."""
    return "test_client_secret_789012"


@pytest.fixture
def handlers():
    """Handler double recording every callback."""
    return MagicMock(spec=BaseHandlers)


@pytest.fixture
def state():
    return SessionState()


@pytest.fixture
def sample_book_result():
    """Sample public/get_order_book result."""
    return {
        "instrument_name": "BTC-PERPETUAL",
        "timestamp": 1700000000000,
        "last_price": 43000.5,
        "mark_price": 43001.0,
        "bids": [[43000.0, 1200.0], [42999.5, 800.0]],
        "asks": [[43001.0, 500.0]],
    }


@pytest.fixture
def sample_order():
    """Sample order object as found in private/buy results."""
    return {
        "order_id": "O1",
        "instrument_name": "BTC-PERPETUAL",
        "direction": "buy",
        "amount": 10.0,
        "price": 43000.0,
        "order_type": "limit",
        "order_state": "open",
        "time_in_force": "good_til_cancelled",
    }


def _wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def wait_until():
    """Poll a predicate until true or the timeout elapses."""
    return _wait_until


def default_responder(message: dict[str, Any]) -> dict[str, Any] | None:
    method = message.get("method")
    params = message.get("params", {})
    reply: dict[str, Any] = {"jsonrpc": "2.0", "id": message.get("id")}
    if method == "public/auth":
        reply["result"] = {"access_token": "tok1", "expires_in": 900, "token_type": "bearer"}
    elif method in {"public/subscribe", "public/unsubscribe"}:
        reply["result"] = params.get("channels", [])
    elif method == "private/get_account_summary":
        reply["result"] = {"balance": 1.5, "currency": params.get("currency"), "equity": 1.6}
    elif method == "private/get_positions":
        reply["result"] = []
    else:
        reply["error"] = {"code": -32601, "message": "Method not found"}
    return reply


class FakeVenue:
    """Plain ``ws://`` JSON-RPC server on its own thread and loop."""

    path = "/ws/api/v2"

    def __init__(self, responder: Callable[[dict[str, Any]], dict[str, Any] | None] = default_responder):
        self.responder = responder
        self.received: list[dict[str, Any]] = []
        self.clients: list[web.WebSocketResponse] = []
        self.loop = asyncio.new_event_loop()
        self.thread = threading.Thread(target=self.loop.run_forever, name="fake-venue", daemon=True)
        self.app = web.Application()
        self.app.router.add_get(self.path, self._handle)
        self.runner = web.AppRunner(self.app)
        self.port = 0

    @property
    def uri(self) -> str:
        return f"ws://127.0.0.1:{self.port}{self.path}"

    def methods(self) -> list[str]:
        return [m.get("method") for m in list(self.received)]

    def start(self) -> None:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.bind(("127.0.0.1", 0))
        self.port = sock.getsockname()[1]
        self.thread.start()
        asyncio.run_coroutine_threadsafe(self._start(sock), self.loop).result(5)

    async def _start(self, sock: socket.socket) -> None:
        await self.runner.setup()
        await web.SockSite(self.runner, sock).start()

    async def _handle(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        self.clients.append(ws)
        async for msg in ws:
            if msg.type != WSMsgType.TEXT:
                continue
            message = json.loads(msg.data)
            self.received.append(message)
            reply = self.responder(message)
            if reply is not None:
                await ws.send_str(json.dumps(reply))
        return ws

    def push(self, message: dict[str, Any]) -> None:
        asyncio.run_coroutine_threadsafe(self._push(message), self.loop).result(5)

    async def _push(self, message: dict[str, Any]) -> None:
        for ws in self.clients:
            if not ws.closed:
                await ws.send_str(json.dumps(message))

    def disconnect_clients(self) -> None:
        asyncio.run_coroutine_threadsafe(self._disconnect(), self.loop).result(5)

    async def _disconnect(self) -> None:
        for ws in self.clients:
            await ws.close()

    def stop(self) -> None:
        asyncio.run_coroutine_threadsafe(self.runner.cleanup(), self.loop).result(10)
        self.loop.call_soon_threadsafe(self.loop.stop)
        self.thread.join(5)
        self.loop.close()


@pytest.fixture
def venue():
    server = FakeVenue()
    server.start()
    yield server
    server.stop()


@pytest.fixture
def refused_uri():
    """A ws:// URI on a port nothing listens on."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return f"ws://127.0.0.1:{port}/ws/api/v2"


def auth_only_responder(message: dict[str, Any]) -> dict[str, Any] | None:
    if message.get("method") == "public/auth":
        return default_responder(message)
    return None


@pytest.fixture
def silent_venue():
    """A venue that authenticates but never answers anything else."""
    server = FakeVenue(auth_only_responder)
    server.start()
    yield server
    server.stop()
