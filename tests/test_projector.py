import pytest

from thermodash.models import ConnectFailed, Connected, ConnectionLost, Disconnected
from thermodash.projector import (
    CONNECT_FAILED_MESSAGE,
    CONNECTION_LOST_MESSAGE,
    RECONNECTING_MESSAGE,
    ConnectionStateProjector,
    ConnectionStatus,
)


def test_initial_status_is_disconnected():
    projector = ConnectionStateProjector()
    assert projector.last_event is None
    assert projector.status == ConnectionStatus("disconnected")


@pytest.mark.parametrize(
    ("event", "expected"),
    [
        (Connected("broker", 8884, "tele/+/SENSOR"), ConnectionStatus("connected")),
        (ConnectFailed("Not authorized"), ConnectionStatus("error", CONNECT_FAILED_MESSAGE)),
        (ConnectFailed("unable to reach broker", retrying=True), ConnectionStatus("disconnected", RECONNECTING_MESSAGE)),
        (ConnectionLost("Unspecified error"), ConnectionStatus("disconnected", CONNECTION_LOST_MESSAGE)),
        (Disconnected(), ConnectionStatus("disconnected")),
    ],
)
def test_status_follows_last_event(event, expected):
    projector = ConnectionStateProjector()
    projector(event)
    assert projector.status == expected


def test_only_last_event_matters():
    projector = ConnectionStateProjector()
    projector(ConnectFailed("bad password"))
    projector(Connected("broker", 8884, "tele/+/SENSOR"))
    assert projector.status.state == "connected"
    assert projector.status.message is None


def test_error_message_is_generic():
    # Broker reason is for the logs, never shown to the user
    projector = ConnectionStateProjector()
    projector(ConnectFailed("Bad user name or password"))
    assert projector.status.message == CONNECT_FAILED_MESSAGE


def test_labels():
    assert ConnectionStatus("connected").label == "Connected"
    assert ConnectionStatus("disconnected").label == "Disconnected"
    assert ConnectionStatus("error", "x").label == "Disconnected"
