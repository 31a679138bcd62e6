"""Per-channel dedup cache for push notifications."""

from __future__ import annotations

import json
import logging
import threading
from typing import Any

from ..errors import ParseError
from .handlers import SessionHandlers

logger = logging.getLogger(__name__)

# Stored on subscribe; never equal to a canonical payload.
EMPTY_BASELINE = ""


def canonicalize(data: Any) -> str:
    """Serialize ``data`` so equal payloads compare equal regardless of key order."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def channel_name(params: dict[str, Any]) -> str | None:
    channel = params.get("channel")
    if isinstance(channel, str) and channel:
        return channel
    if isinstance(channel, dict):
        name = channel.get("name")
        if isinstance(name, str) and name:
            return name
    return None


class SubscriptionRegistry:
    """Tracks subscribed channels and forwards only changed payloads.

    One entry per channel, removed only by ``untrack``. A push for a channel
    that has no entry is treated as already unsubscribed and dropped, which
    also covers late pushes that race an unsubscribe.
    """

    def __init__(self, handlers: SessionHandlers):
        self.handlers = handlers
        self._last: dict[str, str] = {}
        self._lock = threading.Lock()

    def track(self, channel: str) -> None:
        with self._lock:
            self._last[channel] = EMPTY_BASELINE

    def untrack(self, channel: str) -> bool:
        with self._lock:
            return self._last.pop(channel, None) is not None

    def is_subscribed(self, channel: str) -> bool:
        with self._lock:
            return channel in self._last

    @property
    def channels(self) -> set[str]:
        with self._lock:
            return set(self._last)

    def baseline(self, channel: str) -> str | None:
        with self._lock:
            return self._last.get(channel)

    def handle_push(self, message: dict[str, Any]) -> bool:
        """Process one ``method == "subscription"`` message.

        Returns:
            True when the payload was forwarded to a handler
        """
        params = message.get("params")
        if not isinstance(params, dict):
            self._report(ParseError("subscription message without params object"))
            return False

        channel = channel_name(params)
        if channel is None:
            self._report(ParseError(f"invalid channel in subscription message: {params.get('channel')!r}"))
            return False

        if "data" not in params:
            self._report(ParseError(f"no data field in channel '{channel}'"))
            return False

        data = params["data"]
        canonical = None if data is None else canonicalize(data)
        with self._lock:
            last = self._last.get(channel)
            if last is None:
                logger.debug("Dropping push for unsubscribed channel %s", channel)
                return False
            if last == canonical:
                return False
            if canonical is not None:
                self._last[channel] = canonical

        if canonical is None:
            self._report(ParseError(f"unexpected null data in channel '{channel}'"))
            return False

        self._forward(channel, data)
        return True

    def _forward(self, channel: str, data: Any) -> None:
        if "ticker" in channel:
            if isinstance(data, list):
                self._report(ParseError(f"unexpected data type for ticker channel '{channel}'"))
                return
            self.handlers.on_ticker(channel, data)
        elif "trades" in channel:
            if not isinstance(data, list):
                self._report(ParseError(f"unexpected data type for trades channel '{channel}'"))
                return
            self.handlers.on_trades(channel, data)
        elif "book" in channel:
            if not isinstance(data, dict):
                self._report(ParseError(f"unexpected data type for book channel '{channel}'"))
                return
            self.handlers.on_book(channel, data)
        else:
            self.handlers.on_update(channel, data)

    def _report(self, error: ParseError) -> None:
        logger.error("%s", error)
        self.handlers.on_error(error)
