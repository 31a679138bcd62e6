"""Routing of RPC replies to handlers.

Deribit replies echo the request ``id`` but nothing else that says what was
asked. Two routing modes exist:

* tagged (default): the session records ``id -> ReplyKind`` when it sends a
  request, and the reply is dispatched by that kind. Replies with an unknown
  id fall back to the shape rules below.
* legacy: the shape of ``result`` alone decides, first match wins:

  1. ``access_token``      -> auth
  2. ``balance``           -> account summary
  3. ``order``             -> buy (handler gets ``result["order"]``)
  4. ``order_id``          -> cancel
  5. ``bids`` and ``asks`` -> order book
  6. a list                -> positions

  Modify replies carry ``order_id`` and always hit rule 4, so the modify
  handler is unreachable in legacy mode. Subscribe acknowledgements are lists
  and land on the positions handler.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from ..api.requests import EncodedRequest, ReplyKind
from ..errors import ParseError, RemoteError, UnroutableReply
from .auth import AuthSession
from .handlers import SessionHandlers
from .state import SessionState

logger = logging.getLogger(__name__)

_DICT_KINDS = {
    ReplyKind.AUTH,
    ReplyKind.ACCOUNT_SUMMARY,
    ReplyKind.BUY,
    ReplyKind.CANCEL,
    ReplyKind.ORDER_BOOK,
    ReplyKind.MODIFY,
}


def classify_result(result: Any) -> ReplyKind | None:
    """Apply the legacy shape rules to a ``result`` value."""
    if isinstance(result, dict):
        if "access_token" in result:
            return ReplyKind.AUTH
        if "balance" in result:
            return ReplyKind.ACCOUNT_SUMMARY
        if "order" in result:
            return ReplyKind.BUY
        if "order_id" in result:
            return ReplyKind.CANCEL
        if "bids" in result and "asks" in result:
            return ReplyKind.ORDER_BOOK
        return None
    if isinstance(result, list):
        return ReplyKind.POSITIONS
    return None


def remote_error(error: Any) -> RemoteError:
    if isinstance(error, dict):
        message = error.get("message")
        return RemoteError(
            str(message) if message is not None else "Unknown error",
            code=error.get("code"),
            data=error.get("data"),
        )
    return RemoteError(str(error) if error else "Unknown error")


class ResponseRouter:
    """Dispatches every non-push message to exactly one handler."""

    def __init__(self, handlers: SessionHandlers, state: SessionState, *, legacy_routing: bool = False):
        self.handlers = handlers
        self.state = state
        self.legacy_routing = legacy_routing
        self._expected: dict[int, ReplyKind] = {}
        self._lock = threading.Lock()

    def track(self, request: EncodedRequest) -> None:
        """Remember which kind of reply ``request`` will produce."""
        if self.legacy_routing or request.kind is None:
            return
        with self._lock:
            self._expected[request.id] = request.kind

    def forget(self, request_id: int) -> None:
        with self._lock:
            self._expected.pop(request_id, None)

    @property
    def pending(self) -> dict[int, ReplyKind]:
        with self._lock:
            return dict(self._expected)

    def _take(self, request_id: Any) -> ReplyKind | None:
        if not isinstance(request_id, int) or isinstance(request_id, bool):
            return None
        with self._lock:
            return self._expected.pop(request_id, None)

    def route(self, message: dict[str, Any]) -> ReplyKind | None:
        """Route one decoded reply.

        Returns:
            The kind the reply was dispatched as, or None when it was an
            error or could not be routed
        """
        tagged = self._take(message.get("id"))

        if "result" in message:
            result = message["result"]
            kind = tagged if tagged is not None else classify_result(result)
            if kind is None:
                exc = UnroutableReply(f"no handler for reply id={message.get('id')!r}")
                logger.debug("Dropping reply: %s", exc)
                return None
            if self._dispatch(kind, result):
                return kind
            return None

        if "error" in message:
            err = remote_error(message["error"])
            logger.warning("Remote error for id=%s: %s", message.get("id"), err)
            self.handlers.on_error(err)
            return None

        logger.debug("Dropping message without result or error: %s", message)
        return None

    def _dispatch(self, kind: ReplyKind, result: Any) -> bool:
        if kind in _DICT_KINDS and not isinstance(result, dict):
            self.handlers.on_error(ParseError(f"{kind.value} reply expected an object, got {type(result).__name__}"))
            return False

        if kind is ReplyKind.AUTH:
            if not AuthSession.complete(self.state, result):
                self.handlers.on_error(ParseError("auth reply carries no access_token"))
                return False
            self.handlers.on_auth(result)
        elif kind is ReplyKind.ACCOUNT_SUMMARY:
            self.handlers.on_account_summary(result)
        elif kind is ReplyKind.BUY:
            order = result.get("order", result)
            self.handlers.on_buy(order)
        elif kind is ReplyKind.CANCEL:
            self.handlers.on_cancel(result)
        elif kind is ReplyKind.ORDER_BOOK:
            self.handlers.on_order_book(result)
        elif kind is ReplyKind.MODIFY:
            self.handlers.on_modify(result.get("order", result))
        elif kind is ReplyKind.POSITIONS:
            if not isinstance(result, list):
                self.handlers.on_error(ParseError(f"positions reply expected a list, got {type(result).__name__}"))
                return False
            self.handlers.on_positions(result)
        else:
            channels = result if isinstance(result, list) else [result]
            self.handlers.on_subscription_ack(kind, channels)
        return True
