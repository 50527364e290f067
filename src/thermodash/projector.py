"""Derives the user-facing connection status from session events."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from thermodash.models import ConnectFailed, Connected, ConnectionLost

if TYPE_CHECKING:
    from logging import Logger

    from thermodash.models import SessionEvent
    from thermodash.types import StatusState

CONNECT_FAILED_MESSAGE: Final = "Connection error. Check your credentials."
CONNECTION_LOST_MESSAGE: Final = "Connection to the server was lost."
RECONNECTING_MESSAGE: Final = "Connection to the server was lost. Reconnecting..."


@dataclass(frozen=True)
class ConnectionStatus:
    state: StatusState
    message: str | None = None

    @property
    def label(self) -> str:
        return "Connected" if self.state == "connected" else "Disconnected"


class ConnectionStateProjector:
    """Session listener that remembers the last event and projects a status.

    Register with `SessionManager.add_listener(projector)`.
    """

    _last: SessionEvent | None
    _log: Logger

    def __init__(self) -> None:
        self._last = None
        self._log = logging.getLogger("Projector")

    def __call__(self, event: SessionEvent) -> None:
        self._last = event
        self._log.debug("Status is now [bright_cyan]%s[/]", self.status.state)

    @property
    def last_event(self) -> SessionEvent | None:
        return self._last

    @property
    def status(self) -> ConnectionStatus:
        match self._last:
            case Connected():
                return ConnectionStatus("connected")
            case ConnectFailed(retrying=True):
                return ConnectionStatus("disconnected", RECONNECTING_MESSAGE)
            case ConnectFailed():
                return ConnectionStatus("error", CONNECT_FAILED_MESSAGE)
            case ConnectionLost():
                return ConnectionStatus("disconnected", CONNECTION_LOST_MESSAGE)
            case _:  # Disconnected, or no event yet
                return ConnectionStatus("disconnected")
