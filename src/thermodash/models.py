"""
Domain objects shared by the ingestion pipeline.

Data Flow:
    MQTT message -> decode()            -> Sample | Rejected
    Sample       -> DeviceRegistry      -> Device
    paho events  -> SessionManager      -> SessionEvent -> ConnectionStateProjector
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from datetime import datetime

    from thermodash.types import Transport

DEFAULT_TOPIC: Final = "tele/+/SENSOR"
CONNECT_TIMEOUT: Final = 5  # Seconds, enforced by the transport
KEEPALIVE: Final = 60


class SessionState(Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"
    LOSS_DETECTED = "loss_detected"


@dataclass(frozen=True)
class SessionConfig:
    """Everything needed to open one MQTT session.

    Credentials are copied in per login attempt (see `with_credentials`).
    """

    host: str
    port: int
    client_id: str
    topic: str = DEFAULT_TOPIC
    username: str = ""
    password: str = field(default="", repr=False)
    use_tls: bool = True
    transport: Transport = "websockets"
    timeout: int = CONNECT_TIMEOUT
    clean_session: bool = True
    keepalive: int = KEEPALIVE

    def with_credentials(self, username: str, password: str) -> SessionConfig:
        """Return a copy of this config carrying the given credentials."""
        return replace(self, username=username, password=password)


@dataclass(frozen=True)
class Sample:
    """One decoded temperature reading."""

    device_id: str
    temperature: float
    observed_at: datetime


@dataclass(frozen=True)
class Rejected:
    """A message the decoder refused, with a short diagnostic reason."""

    reason: str


@dataclass(frozen=True)
class Device:
    """Last-known reading for a device, as held by the registry."""

    id: str
    temperature: float
    last_update: datetime


# === Session events ===


@dataclass(frozen=True)
class Connected:
    host: str
    port: int
    topic: str


@dataclass(frozen=True)
class ConnectFailed:
    reason: str
    retrying: bool = False


@dataclass(frozen=True)
class ConnectionLost:
    reason: str


@dataclass(frozen=True)
class Disconnected:
    """User-initiated logout."""


type ConnectOutcome = Connected | ConnectFailed
type SessionEvent = Connected | ConnectFailed | ConnectionLost | Disconnected
