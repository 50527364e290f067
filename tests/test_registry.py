from datetime import UTC, datetime, timedelta

from thermodash.models import Device, Sample
from thermodash.registry import DeviceRegistry

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


def sample(device_id: str, temperature: float, offset: int = 0) -> Sample:
    return Sample(device_id=device_id, temperature=temperature, observed_at=T0 + timedelta(seconds=offset))


def test_last_write_wins():
    registry = DeviceRegistry()
    registry.upsert(sample("sensorA", 20.0, offset=0))
    registry.upsert(sample("sensorA", 22.0, offset=1))

    assert registry.get("sensorA") == Device(id="sensorA", temperature=22.0, last_update=T0 + timedelta(seconds=1))
    assert len(registry) == 1


def test_arrival_order_beats_timestamps():
    # No sequence numbers: a delayed sample overwrites a newer one
    registry = DeviceRegistry()
    registry.upsert(sample("sensorA", 22.0, offset=10))
    registry.upsert(sample("sensorA", 20.0, offset=0))

    device = registry.get("sensorA")
    assert device is not None
    assert device.temperature == 20.0


def test_snapshot_sorted_by_id():
    registry = DeviceRegistry()
    for dev_id in ("kitchen", "attic", "garage", "Basement"):
        registry.upsert(sample(dev_id, 20.0))

    assert [d.id for d in registry.snapshot()] == ["Basement", "attic", "garage", "kitchen"]


def test_snapshot_is_idempotent_and_restartable():
    registry = DeviceRegistry()
    registry.upsert(sample("b", 1.0))
    registry.upsert(sample("a", 2.0))

    snap = registry.snapshot()
    assert list(snap) == list(snap)
    assert registry.snapshot() == snap


def test_snapshot_is_point_in_time():
    registry = DeviceRegistry()
    registry.upsert(sample("a", 1.0))
    snap = registry.snapshot()

    registry.upsert(sample("b", 2.0))
    registry.reset()

    assert [d.id for d in snap] == ["a"]


def test_reset_clears_everything():
    registry = DeviceRegistry()
    registry.upsert(sample("a", 1.0))
    registry.upsert(sample("b", 2.0))

    registry.reset()

    assert len(registry) == 0
    assert registry.snapshot() == ()
    assert "a" not in registry
    assert registry.get("a") is None


def test_contains():
    registry = DeviceRegistry()
    registry.upsert(sample("a", 1.0))
    assert "a" in registry
    assert "b" not in registry
