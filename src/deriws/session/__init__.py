"""Session core: transport, authentication, reply routing and subscriptions."""

from .auth import AuthSession
from .client import DeribitSession
from .connection import ConnectionManager
from .handlers import BaseHandlers, SessionHandlers
from .router import ResponseRouter, classify_result
from .state import ConnectionState, SessionState
from .subscriptions import SubscriptionRegistry, canonicalize

__all__ = [
    "AuthSession",
    "DeribitSession",
    "ConnectionManager",
    "BaseHandlers",
    "SessionHandlers",
    "ResponseRouter",
    "classify_result",
    "ConnectionState",
    "SessionState",
    "SubscriptionRegistry",
    "canonicalize",
]
