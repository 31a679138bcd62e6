"""State shared between the event-loop thread and foreground callers."""

from __future__ import annotations

import threading
from enum import Enum


class ConnectionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"
    FAILED = "failed"


class SessionState:
    """Access token, authenticated bit and the single pending-response bit.

    Writes happen on the event-loop thread (plus ``mark_waiting`` right before
    a send); reads and waits happen on the foreground thread. One condition
    guards every field so a waiter always sees a consistent snapshot.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._access_token: str | None = None
        self._authenticated = False
        self._waiting = False
        self._lost = False

    @property
    def access_token(self) -> str | None:
        with self._cond:
            return self._access_token

    @property
    def authenticated(self) -> bool:
        with self._cond:
            return self._authenticated

    @property
    def waiting_for_response(self) -> bool:
        with self._cond:
            return self._waiting

    def authenticate(self, token: str) -> None:
        with self._cond:
            self._access_token = token
            self._authenticated = True
            self._cond.notify_all()

    def mark_waiting(self) -> None:
        with self._cond:
            self._waiting = True

    def reply_received(self) -> None:
        with self._cond:
            self._waiting = False
            self._cond.notify_all()

    @property
    def connection_lost(self) -> bool:
        with self._cond:
            return self._lost

    def mark_connection_lost(self) -> None:
        """Release every waiter; no reply can arrive on a dead socket."""
        with self._cond:
            self._lost = True
            self._cond.notify_all()

    def wait_until_authenticated(self, timeout: float | None = None) -> bool:
        with self._cond:
            self._cond.wait_for(lambda: self._authenticated or self._lost, timeout)
            return self._authenticated

    def wait_for_response(self, timeout: float | None = None) -> bool:
        with self._cond:
            self._cond.wait_for(lambda: not self._waiting or self._lost, timeout)
            return not self._waiting
