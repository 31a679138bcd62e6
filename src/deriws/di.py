from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .session import DeribitSession, SessionHandlers

if TYPE_CHECKING:
    from .settings import Settings


@dataclass(slots=True)
class AppContainer:
    settings: "Settings"
    session: DeribitSession


def build_container(settings: "Settings", handlers: SessionHandlers | None = None) -> AppContainer:
    """Build the application container around a single session."""
    return AppContainer(
        settings=settings,
        session=DeribitSession.from_settings(settings, handlers),
    )
