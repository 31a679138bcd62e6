"""JSON-RPC request builders.

Every builder returns an :class:`EncodedRequest` whose ``body`` is the exact
text frame to put on the wire. The session treats ``body`` as opaque; ``id``
and ``kind`` only feed the reply-kind table used by tagged routing.
"""

from __future__ import annotations

import itertools
import json
import threading
from enum import Enum
from typing import Any

from .signing import SignedPayload


class ReplyKind(str, Enum):
    AUTH = "auth"
    ACCOUNT_SUMMARY = "account_summary"
    BUY = "buy"
    CANCEL = "cancel"
    ORDER_BOOK = "order_book"
    MODIFY = "modify"
    POSITIONS = "positions"
    SUBSCRIBE = "subscribe"
    UNSUBSCRIBE = "unsubscribe"


METHOD_REPLY_KINDS: dict[str, ReplyKind] = {
    "public/auth": ReplyKind.AUTH,
    "private/get_account_summary": ReplyKind.ACCOUNT_SUMMARY,
    "private/buy": ReplyKind.BUY,
    "private/cancel": ReplyKind.CANCEL,
    "public/get_order_book": ReplyKind.ORDER_BOOK,
    "private/edit": ReplyKind.MODIFY,
    "private/get_positions": ReplyKind.POSITIONS,
    "public/subscribe": ReplyKind.SUBSCRIBE,
    "public/unsubscribe": ReplyKind.UNSUBSCRIBE,
}

PRICED_ORDER_TYPES = {"limit", "stop_limit"}
DEFAULT_BOOK_DEPTH = 20


class EncodedRequest:
    """A serialized request plus the metadata needed to route its reply."""

    def __init__(self, request_id: int, method: str, body: bytes):
        self.id = request_id
        self.method = method
        self.body = body

    @property
    def kind(self) -> ReplyKind | None:
        return METHOD_REPLY_KINDS.get(self.method)

    def __repr__(self) -> str:
        return f"EncodedRequest(id={self.id}, method={self.method!r})"


class RequestEncoder:
    """Builds request bodies with a monotonically increasing ``id``.

    Ids are unique per encoder so replies can be matched to the kind of
    request that produced them. The counter is the only state.
    """

    def __init__(self, start_id: int = 1):
        self._ids = itertools.count(start_id)
        self._lock = threading.Lock()

    def _next_id(self) -> int:
        with self._lock:
            return next(self._ids)

    def encode(self, method: str, params: dict[str, Any]) -> EncodedRequest:
        request_id = self._next_id()
        payload = {
            "jsonrpc": "2.0",
            "id": request_id,
            "method": method,
            "params": params,
        }
        return EncodedRequest(request_id, method, json.dumps(payload).encode("utf-8"))

    def authorize(self, client_id: str, signed: SignedPayload, scope: str) -> EncodedRequest:
        return self.encode(
            "public/auth",
            {
                "grant_type": "client_signature",
                "client_id": client_id,
                "timestamp": signed.timestamp,
                "signature": signed.signature,
                "nonce": signed.nonce,
                "scope": scope,
            },
        )

    def account_summary(self, currency: str) -> EncodedRequest:
        return self.encode("private/get_account_summary", {"currency": currency.upper()})

    def buy(
        self,
        instrument: str,
        amount: float,
        order_type: str = "limit",
        price: float | None = None,
        time_in_force: str = "good_til_cancelled",
        label: str = "",
        access_token: str | None = None,
        *,
        post_only: bool = False,
    ) -> EncodedRequest:
        """Build a ``private/buy`` request.

        ``price`` is only sent for limit and stop-limit orders.

        Raises:
            ValueError: If a priced order type has no price
        """
        params: dict[str, Any] = {
            "instrument_name": instrument,
            "amount": amount,
            "type": order_type,
            "label": label,
            "time_in_force": time_in_force,
            "post_only": post_only,
        }
        if access_token:
            params["access_token"] = access_token
        if order_type in PRICED_ORDER_TYPES:
            if price is None:
                raise ValueError(f"{order_type} orders require a price")
            params["price"] = price
        return self.encode("private/buy", params)

    def cancel(self, order_id: str) -> EncodedRequest:
        return self.encode("private/cancel", {"order_id": order_id})

    def order_book(self, instrument: str, depth: int = DEFAULT_BOOK_DEPTH) -> EncodedRequest:
        # 0 means "venue default"
        return self.encode(
            "public/get_order_book",
            {"instrument_name": instrument, "depth": depth or DEFAULT_BOOK_DEPTH},
        )

    def modify(
        self,
        order_id: str,
        amount: float,
        price: float,
        time_in_force: str = "good_til_cancelled",
        *,
        post_only: bool = False,
        reduce_only: bool = False,
    ) -> EncodedRequest:
        return self.encode(
            "private/edit",
            {
                "order_id": order_id,
                "amount": amount,
                "price": price,
                "post_only": post_only,
                "reduce_only": reduce_only,
                "time_in_force": time_in_force,
            },
        )

    def positions(self, currency: str, kind: str = "future") -> EncodedRequest:
        return self.encode("private/get_positions", {"currency": currency.upper(), "kind": kind})

    def subscribe(self, channel: str) -> EncodedRequest:
        return self.encode("public/subscribe", {"channels": [channel]})

    def unsubscribe(self, channel: str) -> EncodedRequest:
        return self.encode("public/unsubscribe", {"channels": [channel]})
