"""
Telemetry message decoder.

Turns a raw (topic, payload) pair into a `Sample`, or a `Rejected` value when
the message does not carry a usable temperature. Never raises: one malformed
frame must not take down the ingestion pipeline.

Accepted payloads (JSON objects):
    {"temperature": 21.5, ...}
    {"DS18B20": {"Temperature": 19.2, ...}, ...}   (first nested match wins)
"""

from __future__ import annotations

import json
import logging
import math
from json import JSONDecodeError
from typing import TYPE_CHECKING, Any, Final

from thermodash.misc.utils import utc_now
from thermodash.models import Rejected, Sample

if TYPE_CHECKING:
    from datetime import datetime

TEMPERATURE_KEY: Final = "temperature"
NESTED_TEMPERATURE_KEY: Final = "Temperature"

# Topic layout: <prefix>/<device_id>/<suffix>
DEVICE_ID_SEGMENT: Final = 1

_log = logging.getLogger("Decoder")


def decode(topic: str, payload: bytes | str, *, now: datetime | None = None) -> Sample | Rejected:
    """Decode one telemetry message.

    Args:
        topic: MQTT topic the message arrived on
        payload: Raw message payload (UTF-8 bytes or text)

    Keyword Args:
        now: Observation timestamp (defaults to current UTC time)

    Returns:
        Sample on success, Rejected otherwise
    """
    try:
        return _decode(topic, payload, now)
    except Exception as e:  # noqa: BLE001
        return _reject(topic, f"unexpected error: {e!r}")


def device_id_from_topic(topic: str) -> str | None:
    """Return the device id segment of `topic`, or None if absent/empty."""
    parts = topic.split("/")
    if len(parts) <= DEVICE_ID_SEGMENT:
        return None
    return parts[DEVICE_ID_SEGMENT] or None


def find_temperature(data: dict[str, Any]) -> float | None:
    """Resolve the temperature from a decoded payload object.

    Top-level `temperature` first, then the first nested object holding a
    numeric `Temperature`.
    """
    if (temp := _as_number(data.get(TEMPERATURE_KEY))) is not None:
        return temp

    for value in data.values():
        if isinstance(value, dict) and (temp := _as_number(value.get(NESTED_TEMPERATURE_KEY))) is not None:
            return temp

    return None


def _decode(topic: str, payload: bytes | str, now: datetime | None) -> Sample | Rejected:
    device_id = device_id_from_topic(topic)
    if device_id is None:
        return _reject(topic, "no device id in topic")

    try:
        text = payload.decode() if isinstance(payload, bytes) else payload
        data = json.loads(text)
    except (UnicodeDecodeError, JSONDecodeError) as e:
        return _reject(topic, f"malformed payload: {e}")

    if not isinstance(data, dict):
        return _reject(topic, f"expected JSON object, got {type(data).__name__}")

    temperature = find_temperature(data)
    if temperature is None:
        return _reject(topic, "no temperature field")

    return Sample(device_id=device_id, temperature=temperature, observed_at=now or utc_now())


def _as_number(value: object) -> float | None:
    # bool is an int subclass but never a reading
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None

    number = float(value)
    return number if math.isfinite(number) else None


def _reject(topic: str, reason: str) -> Rejected:
    _log.debug("[bright_yellow on grey30][IGNORING][/] Message on %s: %s", topic, reason)
    return Rejected(reason)
