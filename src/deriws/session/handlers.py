"""Handler interface for routed replies and channel updates."""

from __future__ import annotations

from typing import Any, Protocol

from ..api.requests import ReplyKind
from ..errors import DeriwsError


class SessionHandlers(Protocol):
    """Callbacks invoked on the event-loop thread, one at a time."""

    def on_auth(self, result: dict[str, Any]) -> None:
        ...

    def on_account_summary(self, result: dict[str, Any]) -> None:
        ...

    def on_buy(self, order: dict[str, Any]) -> None:
        """Receives ``result["order"]``, not the whole result."""
        ...

    def on_cancel(self, result: dict[str, Any]) -> None:
        ...

    def on_order_book(self, result: dict[str, Any]) -> None:
        ...

    def on_modify(self, result: dict[str, Any]) -> None:
        ...

    def on_positions(self, result: list[Any]) -> None:
        ...

    def on_subscription_ack(self, kind: ReplyKind, channels: list[Any]) -> None:
        """Acknowledgement of ``public/subscribe`` or ``public/unsubscribe``."""
        ...

    def on_ticker(self, channel: str, data: Any) -> None:
        ...

    def on_trades(self, channel: str, data: list[Any]) -> None:
        ...

    def on_book(self, channel: str, data: dict[str, Any]) -> None:
        ...

    def on_update(self, channel: str, data: Any) -> None:
        """Any channel that is not ticker, trades or book."""
        ...

    def on_error(self, error: DeriwsError) -> None:
        """Remote errors, parse errors and send failures."""
        ...


class BaseHandlers:
    """No-op handlers; subclasses override what they care about."""

    def on_auth(self, result: dict[str, Any]) -> None:
        pass

    def on_account_summary(self, result: dict[str, Any]) -> None:
        pass

    def on_buy(self, order: dict[str, Any]) -> None:
        pass

    def on_cancel(self, result: dict[str, Any]) -> None:
        pass

    def on_order_book(self, result: dict[str, Any]) -> None:
        pass

    def on_modify(self, result: dict[str, Any]) -> None:
        pass

    def on_positions(self, result: list[Any]) -> None:
        pass

    def on_subscription_ack(self, kind: ReplyKind, channels: list[Any]) -> None:
        pass

    def on_ticker(self, channel: str, data: Any) -> None:
        pass

    def on_trades(self, channel: str, data: list[Any]) -> None:
        pass

    def on_book(self, channel: str, data: dict[str, Any]) -> None:
        pass

    def on_update(self, channel: str, data: Any) -> None:
        pass

    def on_error(self, error: DeriwsError) -> None:
        pass
