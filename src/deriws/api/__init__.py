"""Wire-level collaborators: request encoding, signing and reply models."""

from .models import AccountSummary, BookLevel, Order, OrderBook, Position
from .requests import METHOD_REPLY_KINDS, EncodedRequest, ReplyKind, RequestEncoder
from .signing import SignatureProvider, SignedPayload

__all__ = [
    "AccountSummary",
    "BookLevel",
    "Order",
    "OrderBook",
    "Position",
    "METHOD_REPLY_KINDS",
    "EncodedRequest",
    "ReplyKind",
    "RequestEncoder",
    "SignatureProvider",
    "SignedPayload",
]
