"""Error taxonomy for the session core."""

from __future__ import annotations

from typing import Any


class DeriwsError(Exception):
    """Base class for all session errors."""


class ConnectionSetupError(DeriwsError):
    """The connection target could not be built (bad URI, transport init)."""


class SendError(DeriwsError):
    """A frame could not be written to the socket."""

    def __init__(self, message: str, request_id: int | None = None):
        super().__init__(message)
        self.request_id = request_id


class ParseError(DeriwsError):
    """An inbound message was malformed or missed a required field."""


class UnroutableReply(DeriwsError):
    """No routing rule matched an inbound reply."""


class RemoteError(DeriwsError):
    """The venue answered with an ``error`` object instead of a ``result``."""

    def __init__(self, message: str = "Unknown error", code: int | None = None, data: Any = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.data = data

    def __str__(self) -> str:
        if self.code is None:
            return self.message
        return f"{self.message} (code {self.code})"
