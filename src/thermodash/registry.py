"""
In-memory device registry.

Thread Safety:
    The paho network thread upserts while HTTP handlers take snapshots, so
    every access goes through the registry lock. Snapshots are private copies:
    readers never iterate the live mapping.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from thermodash.models import Device

if TYPE_CHECKING:
    from thermodash.models import Sample

# Point-in-time copy, ordered by device id
type DeviceSnapshot = tuple[Device, ...]


class DeviceRegistry:
    """Maps device id to its last-known reading."""

    _devices: dict[str, Device]
    _lock: threading.Lock

    def __init__(self) -> None:
        self._devices = {}
        self._lock = threading.Lock()

    def upsert(self, sample: Sample) -> Device:
        """Insert or overwrite the entry for `sample.device_id` (last write wins)."""
        device = Device(id=sample.device_id, temperature=sample.temperature, last_update=sample.observed_at)
        with self._lock:
            self._devices[device.id] = device
        return device

    def reset(self) -> None:
        """Drop every device."""
        with self._lock:
            self._devices.clear()

    def snapshot(self) -> DeviceSnapshot:
        """Return all devices ordered by ascending id."""
        with self._lock:
            devices = list(self._devices.values())
        return tuple(sorted(devices, key=lambda d: d.id))

    def get(self, device_id: str) -> Device | None:
        with self._lock:
            return self._devices.get(device_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._devices)

    def __contains__(self, device_id: object) -> bool:
        with self._lock:
            return device_id in self._devices
