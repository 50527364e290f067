import os
import secrets
import sys
from typing import Final, NamedTuple

from dotenv import load_dotenv

from thermodash import __prog__
from thermodash.errors import ConfigError
from thermodash.models import CONNECT_TIMEOUT, DEFAULT_TOPIC, SessionConfig
from thermodash.types import Transport

from .utils import cerr

_PORT_MIN: Final = 1
_PORT_MAX: Final = 65535

_TRUTHY: Final = frozenset({"1", "true", "yes", "on"})
_FALSY: Final = frozenset({"0", "false", "no", "off"})
_TRANSPORTS: Final[dict[str, Transport]] = {"tcp": "tcp", "websockets": "websockets"}


class Settings(NamedTuple):
    mqtt_broker: str
    mqtt_port: int = 8884
    mqtt_topic: str = DEFAULT_TOPIC
    mqtt_client_id: str = f"{__prog__}-client"
    mqtt_transport: Transport = "websockets"
    mqtt_use_tls: bool = True
    mqtt_auto_reconnect: bool = False
    app_port: int = 8000
    app_root_path: str = ""
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.0-flash"
    gemini_timeout: float = 30.0

    def session_config(self) -> SessionConfig:
        """Session config without credentials (added per login)."""
        return SessionConfig(
            host=self.mqtt_broker,
            port=self.mqtt_port,
            client_id=self.mqtt_client_id,
            topic=self.mqtt_topic,
            use_tls=self.mqtt_use_tls,
            transport=self.mqtt_transport,
            timeout=CONNECT_TIMEOUT,
        )


def _ensure_valid_port(name: str, default: int) -> int:
    val = os.getenv(name)
    if val is None or not val.strip():
        return default

    try:
        port = int(val)
    except ValueError as e:
        msg = f"[cyan]{name}[/] is not an integer: {val}"
        raise ConfigError(msg) from e
    else:
        if not (_PORT_MIN <= port <= _PORT_MAX):
            msg = f"[cyan]{name}[/] is out of range: {val}"
            raise ConfigError(msg)

    return port


def _ensure_valid_broker(name: str) -> str:
    val = os.getenv(name)
    if val is None or not val.strip():
        msg = f"[cyan]{name}[/] is not set"
        raise ConfigError(msg)

    return val.strip()


def _ensure_valid_topic(name: str) -> str:
    val = os.getenv(name, DEFAULT_TOPIC).strip() or DEFAULT_TOPIC

    # Device id is taken from the second segment, so that's where the wildcard goes
    parts = val.split("/")
    if len(parts) < 2 or parts[1] != "+":  # noqa: PLR2004
        msg = f"[cyan]{name}[/] must have a '+' wildcard as its second segment: {val}"
        raise ConfigError(msg)

    return val


def _ensure_valid_bool(name: str, default: bool) -> bool:  # noqa: FBT001
    val = os.getenv(name)
    if val is None or not val.strip():
        return default

    lowered = val.strip().lower()
    if lowered in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False

    msg = f"[cyan]{name}[/] is not a boolean: {val}"
    raise ConfigError(msg)


def _ensure_valid_transport(name: str) -> Transport:
    val = os.getenv(name, "websockets").strip().lower() or "websockets"
    if val not in _TRANSPORTS:
        msg = f"[cyan]{name}[/] must be one of {', '.join(_TRANSPORTS)}: {val}"
        raise ConfigError(msg)

    return _TRANSPORTS[val]


def _ensure_valid_root_path(name: str) -> str:
    val = os.getenv(name, "")
    if not val:
        return ""

    if not val.startswith("/"):
        msg = f"[cyan]{name}[/] must start with '/': {val}"
        raise ConfigError(msg)

    if val.endswith("/"):
        msg = f"[cyan]{name}[/] must not end with '/': {val}"
        raise ConfigError(msg)

    return val


def _ensure_valid_timeout(name: str, default: float) -> float:
    val = os.getenv(name)
    if val is None or not val.strip():
        return default

    try:
        timeout = float(val)
    except ValueError as e:
        msg = f"[cyan]{name}[/] is not a number: {val}"
        raise ConfigError(msg) from e

    if timeout <= 0:
        msg = f"[cyan]{name}[/] must be positive: {val}"
        raise ConfigError(msg)

    return timeout


def load_settings() -> Settings:
    """Load `.env`, validate every variable and return the settings.

    All errors are reported together; the process exits with status 1 if any.
    """
    load_dotenv()

    errs: list[str] = []
    values: dict[str, object] = {}

    checks = {
        "mqtt_broker": lambda: _ensure_valid_broker("MQTT_BROKER"),
        "mqtt_port": lambda: _ensure_valid_port("MQTT_PORT", 8884),
        "mqtt_topic": lambda: _ensure_valid_topic("MQTT_TOPIC"),
        "mqtt_transport": lambda: _ensure_valid_transport("MQTT_TRANSPORT"),
        "mqtt_use_tls": lambda: _ensure_valid_bool("MQTT_USE_TLS", True),  # noqa: FBT003
        "mqtt_auto_reconnect": lambda: _ensure_valid_bool("MQTT_AUTO_RECONNECT", False),  # noqa: FBT003
        "app_port": lambda: _ensure_valid_port("APP_PORT", 8000),
        "app_root_path": lambda: _ensure_valid_root_path("APP_ROOT_PATH"),
        "gemini_timeout": lambda: _ensure_valid_timeout("GEMINI_TIMEOUT", 30.0),
    }

    for key, check in checks.items():
        try:
            values[key] = check()
        except ConfigError as e:
            errs.append(str(e))

    if errs:
        cerr.print("".join(f"[bold bright_red]{__prog__}: env-error:[/] {e}\n" for e in errs), end="")
        sys.exit(1)

    return Settings(
        **values,  # type: ignore[arg-type]
        mqtt_client_id=os.getenv("MQTT_CLIENT_ID") or f"{__prog__}-{secrets.token_hex(4)}",
        gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
        gemini_model=os.getenv("GEMINI_MODEL") or "gemini-2.0-flash",
    )
