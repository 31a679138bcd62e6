"""The session object tying transport, auth, routing and subscriptions together."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, Callable

from ..api.requests import EncodedRequest, RequestEncoder
from ..errors import DeriwsError, ParseError, SendError
from .auth import AuthSession
from .connection import ConnectionManager
from .handlers import BaseHandlers, SessionHandlers
from .router import ResponseRouter
from .state import ConnectionState, SessionState
from .subscriptions import SubscriptionRegistry

if TYPE_CHECKING:
    from ..settings import Settings

logger = logging.getLogger(__name__)

SUBSCRIPTION_METHOD = "subscription"


class DeribitSession:
    """One authenticated duplex session with the venue.

    The foreground thread calls ``connect``, ``request``, ``subscribe``,
    ``unsubscribe`` and ``close`` and waits on ``wait_until_authenticated`` /
    ``wait_for_response``. Everything inbound is handled on the event-loop
    thread owned by :class:`ConnectionManager`.

    Only one outstanding request is tracked by the pending-response bit;
    issuing a second request before the first reply arrives is allowed, but
    the first reply of either clears the bit.
    """

    def __init__(
        self,
        handlers: SessionHandlers | None = None,
        *,
        encoder: RequestEncoder | None = None,
        legacy_routing: bool = False,
        heartbeat: float | None = None,
        close_timeout: float = 5.0,
        verify_ssl: bool = True,
        uri: str | None = None,
    ):
        self.handlers: SessionHandlers = handlers or BaseHandlers()
        self.encoder = encoder or RequestEncoder()
        self.uri = uri
        self.state = SessionState()
        self.router = ResponseRouter(self.handlers, self.state, legacy_routing=legacy_routing)
        self.subscriptions = SubscriptionRegistry(self.handlers)
        self.connection = ConnectionManager(
            on_open=self._on_open,
            on_message=self._on_message,
            on_close=self._on_close,
            on_fail=self._on_fail,
            on_error=self._on_send_error,
            heartbeat=heartbeat,
            close_timeout=close_timeout,
            verify_ssl=verify_ssl,
        )
        self._auth_request_callback: Callable[[], None] | None = None
        self._auth_requested = False

    @classmethod
    def from_settings(cls, settings: "Settings", handlers: SessionHandlers | None = None) -> "DeribitSession":
        """Build a session from settings, attaching auth when credentials exist."""
        session = cls(
            handlers,
            legacy_routing=settings.session.legacy_routing,
            heartbeat=settings.connection.heartbeat,
            close_timeout=settings.connection.close_timeout,
            verify_ssl=settings.connection.verify_ssl,
            uri=settings.connection.uri,
        )
        creds = settings.credentials
        if creds is not None:
            AuthSession(
                creds.client_id,
                creds.client_secret.get_secret_value(),
                scope=settings.session.scope,
            ).attach(session)
        return session

    # operations

    def set_auth_request_callback(self, callback: Callable[[], None] | None) -> None:
        self._auth_request_callback = callback

    def connect(self, uri: str | None = None) -> None:
        """Start connecting; returns immediately.

        Raises:
            ConnectionSetupError: If the connection target cannot be built
        """
        target = uri or self.uri
        if not target:
            raise ValueError("No URI given and none configured")
        self.connection.connect(target)

    def send(self, data: bytes | str) -> None:
        """Send an opaque frame without tracking a reply."""
        self.connection.send(data)

    def request(self, request: EncodedRequest, *, await_reply: bool = True) -> None:
        """Send an encoded request, recording the reply kind it expects.

        With ``await_reply`` the pending-response bit is raised right before
        the send so ``wait_for_response`` blocks until a reply arrives.
        """
        if not self.connection.is_connected:
            self.connection.send(request.body, request_id=request.id)
            return
        self.router.track(request)
        if await_reply:
            self.state.mark_waiting()
        logger.debug("Sending %r", request)
        self.connection.send(request.body, request_id=request.id)

    def call(self, request: EncodedRequest, timeout: float | None = None) -> bool:
        """Send ``request`` and block until a reply arrives (or ``timeout``).

        On timeout the reply kind is dropped; a late reply is then routed by
        its shape.
        """
        self.request(request)
        if self.wait_for_response(timeout):
            return True
        self.router.forget(request.id)
        return False

    def subscribe(self, channel: str) -> None:
        self.subscriptions.track(channel)
        self.request(self.encoder.subscribe(channel), await_reply=False)
        logger.info("Subscribed to channel: %s", channel)

    def unsubscribe(self, channel: str) -> None:
        self.subscriptions.untrack(channel)
        self.request(self.encoder.unsubscribe(channel), await_reply=False)
        logger.info("Unsubscribed from channel: %s", channel)

    def close(self) -> None:
        self.connection.close()
        self.state.mark_connection_lost()

    # queries

    @property
    def connection_state(self) -> ConnectionState:
        return self.connection.state

    @property
    def is_connected(self) -> bool:
        return self.connection.is_connected

    @property
    def is_authenticated(self) -> bool:
        return self.state.authenticated

    @property
    def access_token(self) -> str | None:
        return self.state.access_token

    @property
    def is_waiting_for_response(self) -> bool:
        return self.state.waiting_for_response

    @property
    def subscribed_channels(self) -> set[str]:
        return self.subscriptions.channels

    def wait_until_open(self, timeout: float | None = None) -> bool:
        return self.connection.wait_until_open(timeout)

    def wait_until_authenticated(self, timeout: float | None = None) -> bool:
        """Block until authenticated; ``None`` waits forever.

        Returns False on timeout or if the connection is lost first.
        """
        return self.state.wait_until_authenticated(timeout)

    def wait_for_response(self, timeout: float | None = None) -> bool:
        return self.state.wait_for_response(timeout)

    def __enter__(self) -> "DeribitSession":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # event-loop callbacks

    def _on_open(self) -> None:
        callback = self._auth_request_callback
        if callback is not None and not self._auth_requested:
            self._auth_requested = True
            callback()

    def _on_message(self, text: str) -> None:
        try:
            message = json.loads(text)
        except json.JSONDecodeError as exc:
            self._report(ParseError(f"Error parsing JSON response: {exc}"))
            return
        if not isinstance(message, dict):
            self._report(ParseError(f"Expected a JSON object, got {type(message).__name__}"))
            return

        if message.get("method") == SUBSCRIPTION_METHOD:
            self.subscriptions.handle_push(message)
            return

        try:
            self.router.route(message)
        finally:
            if "result" in message or "error" in message:
                self.state.reply_received()

    def _on_close(self) -> None:
        self.state.mark_connection_lost()

    def _on_fail(self, exc: BaseException) -> None:
        self.state.mark_connection_lost()

    def _on_send_error(self, error: SendError) -> None:
        # the request never left, so nothing will answer it
        if error.request_id is not None:
            self.router.forget(error.request_id)
        self.state.reply_received()
        self.handlers.on_error(error)

    def _report(self, error: DeriwsError) -> None:
        logger.error("%s", error)
        self.handlers.on_error(error)
