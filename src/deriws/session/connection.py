"""WebSocket transport running on a dedicated event-loop thread."""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import ssl
import threading
from typing import Any, Callable

import aiohttp
from yarl import URL

from ..errors import ConnectionSetupError, SendError
from .state import ConnectionState

logger = logging.getLogger(__name__)

CLOSE_MESSAGE = b"Closing Connection"

OpenCallback = Callable[[], None]
MessageCallback = Callable[[str], None]
CloseCallback = Callable[[], None]
FailCallback = Callable[[BaseException], None]
ErrorCallback = Callable[[SendError], None]


def tls_context(verify: bool = True) -> ssl.SSLContext | bool:
    """TLS settings for ``wss`` targets; ``False`` disables verification."""
    if not verify:
        return False
    context = ssl.create_default_context()
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    return context


class ConnectionManager:
    """Owns one WebSocket and the thread whose asyncio loop drives it.

    Open, message, close and fail callbacks run on the loop thread, one at a
    time. A send rejected before it reaches the loop is reported on the
    caller's thread. ``connect`` returns as soon as the thread is
    started; the loop keeps running after a remote close or a failure until
    ``close`` is called.

    States: IDLE -> CONNECTING -> OPEN -> CLOSING -> CLOSED, and
    CONNECTING/OPEN -> FAILED on transport failure (terminal).
    """

    def __init__(
        self,
        *,
        on_open: OpenCallback | None = None,
        on_message: MessageCallback | None = None,
        on_close: CloseCallback | None = None,
        on_fail: FailCallback | None = None,
        on_error: ErrorCallback | None = None,
        heartbeat: float | None = None,
        close_timeout: float = 5.0,
        verify_ssl: bool = True,
    ):
        self.on_open = on_open
        self.on_message = on_message
        self.on_close = on_close
        self.on_fail = on_fail
        self.on_error = on_error
        self.heartbeat = heartbeat
        self.close_timeout = close_timeout
        self.verify_ssl = verify_ssl

        self.uri: str | None = None
        self._lock = threading.RLock()
        self._state = ConnectionState.IDLE
        self._closed = False
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._stop: asyncio.Event | None = None
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._main_task: asyncio.Task[None] | None = None
        self._settled = threading.Event()

    @property
    def state(self) -> ConnectionState:
        with self._lock:
            return self._state

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.OPEN

    def wait_until_open(self, timeout: float | None = None) -> bool:
        """Block until the connect attempt settles; True if the socket is open."""
        self._settled.wait(timeout)
        return self.is_connected

    @property
    def thread(self) -> threading.Thread | None:
        return self._thread

    def _set_state(self, new: ConnectionState) -> ConnectionState:
        with self._lock:
            old = self._state
            self._state = new
        if old is not new:
            logger.debug("Connection state %s -> %s", old.value, new.value)
        return old

    @staticmethod
    def build_target(uri: str) -> URL:
        """Validate ``uri`` and return it as a URL.

        Raises:
            ConnectionSetupError: If the URI is malformed or not ws/wss
        """
        try:
            target = URL(uri)
        except (TypeError, ValueError) as exc:
            raise ConnectionSetupError(f"Malformed URI {uri!r}: {exc}") from exc
        if target.scheme not in {"ws", "wss"}:
            raise ConnectionSetupError(f"Unsupported scheme in {uri!r}, expected ws:// or wss://")
        if not target.host:
            raise ConnectionSetupError(f"No host in {uri!r}")
        return target

    def connect(self, uri: str) -> None:
        """Start connecting to ``uri`` in the background.

        Raises:
            ConnectionSetupError: If the target cannot be built or the manager
                was already used; no thread is started in that case
        """
        with self._lock:
            if self._state is not ConnectionState.IDLE or self._closed:
                raise ConnectionSetupError(f"connect() not allowed in state {self._state.value}")
            try:
                target = self.build_target(uri)
            except ConnectionSetupError as exc:
                logger.error("Connection error: %s", exc)
                raise

            self.uri = str(target)
            self._loop = asyncio.new_event_loop()
            self._stop = asyncio.Event()
            self._state = ConnectionState.CONNECTING
            self._thread = threading.Thread(
                target=self._run_loop,
                args=(target,),
                name="deriws-event-loop",
                daemon=True,
            )
            self._thread.start()
        logger.info("Connecting to %s", self.uri)

    def send(self, data: bytes | str, *, request_id: int | None = None) -> None:
        """Queue one text frame; failures are reported, never raised.

        ``request_id`` is only carried on a resulting :class:`SendError`.
        """
        text = data.decode("utf-8") if isinstance(data, (bytes, bytearray)) else data

        with self._lock:
            state, loop, ws = self._state, self._loop, self._ws
        if state is not ConnectionState.OPEN or loop is None or ws is None:
            self._report(SendError(f"Cannot send, connection is {state.value}", request_id))
            return

        try:
            asyncio.run_coroutine_threadsafe(self._send_text(ws, text, request_id), loop)
        except RuntimeError as exc:
            self._report(SendError(f"Event loop unavailable: {exc}", request_id))

    def close(self) -> None:
        """Close the socket, stop the loop and join its thread. Idempotent.

        Each wait is bounded by ``close_timeout``. If the loop thread is still
        running after the first join, its main task is cancelled and the
        thread joined once more. A thread that survives both joins is left
        behind as a daemon and a warning is logged.
        """
        thread = self._thread
        if thread is not None and threading.current_thread() is thread:
            raise RuntimeError("close() must not be called from the event-loop thread")

        with self._lock:
            if self._closed:
                return
            self._closed = True
            loop, stop = self._loop, self._stop
            graceful = self._state is ConnectionState.OPEN
            if graceful:
                self._set_state(ConnectionState.CLOSING)

        if loop is None or thread is None or stop is None:
            self._settled.set()
            self._set_state(ConnectionState.CLOSED)
            return

        if graceful:
            future = asyncio.run_coroutine_threadsafe(self._close_socket(), loop)
            try:
                future.result(timeout=self.close_timeout)
            except concurrent.futures.TimeoutError:
                logger.warning("Graceful close did not finish within %.1fs", self.close_timeout)
                future.cancel()
            except (aiohttp.ClientError, ConnectionError) as exc:
                logger.error("Close error: %s", exc)

        if not loop.is_closed():
            loop.call_soon_threadsafe(stop.set)
        thread.join(self.close_timeout)
        if thread.is_alive():
            main_task = self._main_task
            if main_task is not None and not loop.is_closed():
                loop.call_soon_threadsafe(main_task.cancel)
            thread.join(self.close_timeout)
        if thread.is_alive():
            logger.warning("Event loop thread still running after %.1fs", 2 * self.close_timeout)

        with self._lock:
            if self._state is not ConnectionState.FAILED:
                self._set_state(ConnectionState.CLOSED)
        self._settled.set()
        logger.info("Connection shut down")

    # event-loop thread

    def _run_loop(self, target: URL) -> None:
        loop = self._loop
        assert loop is not None
        asyncio.set_event_loop(loop)
        try:
            self._main_task = loop.create_task(self._main(target))
            loop.run_until_complete(self._main_task)
        except asyncio.CancelledError:
            logger.warning("Event loop cancelled during shutdown")
        except Exception:
            logger.exception("Event loop terminated unexpectedly")
        finally:
            pending = asyncio.all_tasks(loop)
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()

    async def _main(self, target: URL) -> None:
        assert self._stop is not None
        session_task = asyncio.ensure_future(self._session(target))
        await self._stop.wait()
        if not session_task.done():
            session_task.cancel()
        await asyncio.gather(session_task, return_exceptions=True)

    async def _session(self, target: URL) -> None:
        options: dict[str, Any] = {"heartbeat": self.heartbeat}
        if target.scheme == "wss":
            options["ssl"] = tls_context(self.verify_ssl)

        async with aiohttp.ClientSession() as http:
            try:
                ws = await http.ws_connect(target, **options)
            except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as exc:
                self._handle_fail(exc)
                return

            with self._lock:
                self._ws = ws
            if self.state is ConnectionState.CONNECTING:
                self._set_state(ConnectionState.OPEN)
            logger.info("Connection opened")
            self._settled.set()
            self._invoke("open", self.on_open)

            failure: BaseException | None = None
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    self._invoke("message", self.on_message, msg.data)
                elif msg.type == aiohttp.WSMsgType.BINARY:
                    self._invoke("message", self.on_message, msg.data.decode("utf-8", errors="replace"))
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    failure = ws.exception()
                    break

            with self._lock:
                self._ws = None
            if failure is None and self.state is not ConnectionState.CLOSING:
                failure = ws.exception()

            if failure is not None and self.state is not ConnectionState.CLOSING:
                self._handle_fail(failure)
            else:
                self._handle_close(ws.close_code)

    async def _send_text(self, ws: aiohttp.ClientWebSocketResponse, text: str, request_id: int | None = None) -> None:
        try:
            await ws.send_str(text)
        except (ConnectionError, aiohttp.ClientError) as exc:
            self._report(SendError(f"Send error: {exc}", request_id))
            return
        logger.debug("Sent %d bytes", len(text))

    async def _close_socket(self) -> None:
        ws = self._ws
        if ws is not None and not ws.closed:
            await ws.close(code=aiohttp.WSCloseCode.OK, message=CLOSE_MESSAGE)

    def _handle_fail(self, exc: BaseException) -> None:
        self._set_state(ConnectionState.FAILED)
        logger.error("Connection failed: %s", exc)
        self._settled.set()
        self._invoke("fail", self.on_fail, exc)

    def _handle_close(self, code: int | None) -> None:
        self._set_state(ConnectionState.CLOSED)
        logger.info("Connection closed (code=%s)", code)
        self._invoke("close", self.on_close)

    def _report(self, error: SendError) -> None:
        logger.error("%s", error)
        self._invoke("error", self.on_error, error)

    @staticmethod
    def _invoke(name: str, callback: Callable[..., None] | None, *args: Any) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception("Unhandled error in %s callback", name)
