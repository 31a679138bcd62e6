"""deriws: authenticated WebSocket session for the Deribit JSON-RPC API."""

from .settings import Settings
from .errors import (
    ConnectionSetupError,
    DeriwsError,
    ParseError,
    RemoteError,
    SendError,
    UnroutableReply,
)
from .session import ConnectionState, DeribitSession

__all__ = [
    "Settings",
    "DeribitSession",
    "ConnectionState",
    "DeriwsError",
    "ConnectionSetupError",
    "SendError",
    "ParseError",
    "UnroutableReply",
    "RemoteError",
]
