from unittest.mock import MagicMock

from thermodash.reconnect import Backoff, ReconnectTimer


def test_backoff_doubles_up_to_cap():
    backoff = Backoff(initial=1, maximum=30)
    assert [backoff.next_delay() for _ in range(7)] == [1, 2, 4, 8, 16, 30, 30]

    backoff.reset()
    assert backoff.next_delay() == 1


def test_schedule_starts_daemon_timer_with_next_delay():
    timer_factory = MagicMock()
    callback = MagicMock()
    retry = ReconnectTimer(Backoff(initial=0.5), timer_factory=timer_factory)

    assert retry.schedule(callback) == 0.5
    assert retry.schedule(callback) == 1.0

    timer_factory.assert_called_with(1.0, callback)
    timer = timer_factory.return_value
    assert timer.daemon is True
    assert timer.start.call_count == 2
    assert retry.pending


def test_cancel_only_reports_pending_timer():
    timer_factory = MagicMock()
    retry = ReconnectTimer(Backoff(), timer_factory=timer_factory)

    assert not retry.cancel()

    retry.schedule(MagicMock())
    assert retry.cancel()
    timer_factory.return_value.cancel.assert_called_once()
    assert not retry.pending


def test_fired_timer_is_no_longer_pending():
    retry = ReconnectTimer(Backoff(), timer_factory=MagicMock())
    retry.schedule(MagicMock())

    retry.fired()

    assert not retry.pending
    assert not retry.cancel()
