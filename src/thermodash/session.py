"""
MQTT session lifecycle.

State machine:
    IDLE -> CONNECTING -> CONNECTED -> (DISCONNECTING | LOSS_DETECTED) -> IDLE
                       -> IDLE (connect failed / cancelled by disconnect)

Thread Safety:
    paho delivers callbacks on its network thread while connect()/disconnect()
    are called from HTTP handlers. State and the client handle are guarded by
    `_lock`. The transport is closed and listeners are notified only after the
    lock is released (loop_stop() joins the network thread, which may itself
    be waiting on the lock).
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from typing import TYPE_CHECKING, Any, ClassVar, Final

from paho.mqtt.client import Client, ConnectFlags, DisconnectFlags, MQTTMessage
from paho.mqtt.enums import CallbackAPIVersion, MQTTErrorCode, MQTTProtocolVersion

from thermodash.decoder import decode
from thermodash.errors import SessionStateError
from thermodash.models import (
    ConnectFailed,
    Connected,
    ConnectionLost,
    Disconnected,
    Rejected,
    SessionState,
)
from thermodash.reconnect import ReconnectTimer

if TYPE_CHECKING:
    from collections.abc import Callable
    from logging import Logger

    from paho.mqtt.properties import Properties
    from paho.mqtt.reasoncodes import ReasonCode

    from thermodash.models import ConnectOutcome, SessionConfig, SessionEvent
    from thermodash.reconnect import Backoff, TimerFactory
    from thermodash.registry import DeviceRegistry

    type Listener = Callable[[SessionEvent], None]
    type ClientFactory = Callable[[SessionConfig], Client]

CANCELLED_REASON: Final = "cancelled by disconnect"
UNREACHABLE_REASON: Final = "unable to reach broker"


def make_client(config: SessionConfig) -> Client:
    """Build a paho client for one session (never reconnects on its own)."""
    client = Client(
        callback_api_version=CallbackAPIVersion.VERSION2,
        client_id=config.client_id,
        clean_session=config.clean_session,
        protocol=MQTTProtocolVersion.MQTTv311,
        transport=config.transport,
        reconnect_on_failure=False,
    )
    client.connect_timeout = config.timeout

    if config.username:
        client.username_pw_set(config.username, config.password)

    if config.use_tls:
        client.tls_set()

    return client


class SessionManager:
    """Owns the MQTT client handle and drives the session state machine.

    Decoded samples are written to `registry`; the registry is reset on every
    teardown (user disconnect or connection loss).
    """

    SUBSCRIBE_QOS: ClassVar = 0

    registry: DeviceRegistry

    _log: Logger
    _lock: threading.RLock
    _state: SessionState
    _config: SessionConfig | None
    _client: Client | None
    _pending: Future[ConnectOutcome] | None
    _listeners: list[Listener]
    _retry: ReconnectTimer | None
    _reconnecting: bool

    def __init__(
        self,
        registry: DeviceRegistry,
        *,
        client_factory: ClientFactory = make_client,
        backoff: Backoff | None = None,
        timer_factory: TimerFactory = threading.Timer,
    ) -> None:
        self.registry = registry

        self._client_factory = client_factory
        self._log = logging.getLogger("SessionManager")
        self._lock = threading.RLock()
        self._state = SessionState.IDLE
        self._config = None
        self._client = None
        self._pending = None
        self._listeners = []
        self._retry = ReconnectTimer(backoff, timer_factory=timer_factory) if backoff is not None else None
        self._reconnecting = False

    # ==================== Public API ====================

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def config(self) -> SessionConfig | None:
        return self._config

    @property
    def reconnect_pending(self) -> bool:
        return self._retry is not None and self._retry.pending

    def add_listener(self, listener: Listener) -> None:
        """Register a callback for session events."""
        self._listeners.append(listener)

    def connect(self, config: SessionConfig) -> Future[ConnectOutcome]:
        """Start a connection attempt.

        Returns:
            Future resolved with Connected or ConnectFailed

        Raises:
            SessionStateError: Session is not idle (no second transport is opened)
        """
        with self._lock:
            self._ensure_idle()
            self._cancel_reconnect()
            self._reconnecting = False
            return self._start(config)

    def disconnect(self) -> None:
        """Tear down the session (best effort) and return to IDLE.

        Resolves an in-flight connect attempt with ConnectFailed.
        """
        with self._lock:
            had_timer = self._cancel_reconnect()
            self._reconnecting = False

            if self._state not in (SessionState.CONNECTING, SessionState.CONNECTED):
                if not had_timer:
                    self._log.debug("Disconnect requested while %s, nothing to do", self._state.value)
                    return
                self._config = None
                stale = None
            else:
                self._transition(SessionState.DISCONNECTING)
                self._settle(ConnectFailed(CANCELLED_REASON))
                self._config = None
                stale = self._teardown()

        self._close(stale)
        self._log.info("Logged out")
        self._emit(Disconnected())

    # ==================== Connection Handling ====================

    def _start(self, config: SessionConfig) -> Future[ConnectOutcome]:
        """Open a transport for `config`. Caller holds `_lock`."""

        self._ensure_idle()

        future: Future[ConnectOutcome] = Future()
        client = self._client_factory(config)
        self._bind(client)

        self._config = config
        self._client = client
        self._pending = future
        self._transition(SessionState.CONNECTING)

        self._log.debug(
            "Connecting to MQTT broker [bright_magenta]%s:%d[/] as %s",
            config.host,
            config.port,
            config.client_id,
        )
        try:
            client.connect_async(config.host, config.port, keepalive=config.keepalive)
            if (rc := client.loop_start()) != MQTTErrorCode.MQTT_ERR_SUCCESS:
                msg = f"network loop failed to start (rc={rc})"
                raise OSError(msg)
        except (OSError, ValueError) as e:
            self._fail(client, str(e))

        return future

    def _ensure_idle(self) -> None:
        if self._state is not SessionState.IDLE:
            msg = f"cannot connect while {self._state.value}"
            raise SessionStateError(msg)

    def _fail(self, client: Client, reason: str) -> None:
        """Resolve the current connect attempt as failed (ignored for stale clients)."""

        with self._lock:
            if client is not self._client or self._state is not SessionState.CONNECTING:
                return

            retry = self._reconnecting
            event = ConnectFailed(reason, retrying=retry)
            self._settle(event)
            if not retry:
                self._config = None
            stale = self._teardown()

        self._close(stale)
        self._log.error("MQTT connect failed: %s", reason)
        self._emit(event)

        if retry:
            self._schedule_reconnect()

    def _lose(self, client: Client, reason: str) -> None:
        """Handle an unsolicited connection loss while CONNECTED."""

        with self._lock:
            if client is not self._client or self._state is not SessionState.CONNECTED:
                return

            self._transition(SessionState.LOSS_DETECTED)
            retry = self._retry is not None
            self._reconnecting = retry
            if not retry:
                self._config = None
            stale = self._teardown()

        self._close(stale)
        self._log.warning("MQTT connection lost: %s", reason)
        self._emit(ConnectionLost(reason))

        if retry:
            self._schedule_reconnect()

    def _teardown(self) -> Client | None:
        """Drop the client handle, reset the registry and go IDLE. Caller holds `_lock`.

        Returns:
            The detached client, to be closed via `_close()` outside the lock
        """
        client, self._client = self._client, None
        self.registry.reset()
        self._transition(SessionState.IDLE)
        return client

    def _close(self, client: Client | None) -> None:
        """Best-effort transport shutdown; failures are logged, never raised."""

        if client is None:
            return

        try:
            rc = client.disconnect()
            if rc not in (MQTTErrorCode.MQTT_ERR_SUCCESS, MQTTErrorCode.MQTT_ERR_NO_CONN):
                self._log.debug("MQTT disconnect returned rc=%s", rc)
            client.loop_stop()
        except Exception as e:  # noqa: BLE001
            self._log.warning("Error while closing MQTT transport: %s", e)

    def _settle(self, outcome: ConnectOutcome) -> None:
        """Resolve the pending connect future, if any. Caller holds `_lock`."""

        future, self._pending = self._pending, None
        if future is not None and not future.done():
            future.set_result(outcome)

    def _transition(self, new: SessionState) -> None:
        self._log.debug("Session [dim]%s[/] -> [bright_cyan]%s[/]", self._state.value, new.value)
        self._state = new

    # ==================== Reconnect Policy ====================

    def _schedule_reconnect(self) -> None:
        with self._lock:
            if self._retry is None or self._config is None or not self._reconnecting:
                return

            delay = self._retry.schedule(self._reconnect)

        self._log.info("Reconnecting in %.1fs", delay)

    def _reconnect(self) -> None:
        with self._lock:
            if self._retry is not None:
                self._retry.fired()
            if not self._reconnecting or self._config is None:
                return

            try:
                self._start(self._config)
            except SessionStateError as e:
                self._log.debug("Skipping reconnect: %s", e)

    def _cancel_reconnect(self) -> bool:
        """Cancel a pending reconnect timer. Caller holds `_lock`. Returns True if one was pending."""

        return self._retry is not None and self._retry.cancel()

    # ==================== Listeners ====================

    def _emit(self, event: SessionEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                self._log.exception("Session listener failed on %s", type(event).__name__)

    ############################################### Paho MQTT Callbacks ################################################

    def _bind(self, client: Client) -> None:
        client.on_connect = self._on_connect
        client.on_connect_fail = self._on_connect_fail
        client.on_disconnect = self._on_disconnect
        client.on_message = self._on_message

    def _on_connect(
        self,
        client: Client,
        userdata: Any,  # noqa: ANN401
        connect_flags: ConnectFlags,
        reason_code: ReasonCode,
        properties: Properties | None = None,
    ) -> None:
        """Handle CONNACK: subscribe on success, fail the attempt otherwise."""

        _ = userdata, connect_flags, properties
        if reason_code.is_failure:
            self._fail(client, str(reason_code))
            return

        with self._lock:
            if client is not self._client or self._state is not SessionState.CONNECTING or self._config is None:
                return

            config = self._config
            self._transition(SessionState.CONNECTED)
            self._reconnecting = False
            if self._retry is not None:
                self._retry.backoff.reset()

            self._subscribe(client, config.topic)
            event = Connected(host=config.host, port=config.port, topic=config.topic)
            self._settle(event)

        self._log.info("Connected to [bright_magenta]%s:%d[/]", config.host, config.port)
        self._emit(event)

    def _on_connect_fail(self, client: Client, userdata: Any) -> None:  # noqa: ANN401
        """Handle a transport-level failure before CONNACK (DNS, TLS, timeout)."""

        _ = userdata
        self._fail(client, UNREACHABLE_REASON)

    def _on_disconnect(
        self,
        client: Client,
        userdata: Any,  # noqa: ANN401
        disconnect_flags: DisconnectFlags,
        reason_code: ReasonCode,
        properties: Properties | None = None,
    ) -> None:
        """Handle transport closure reported by paho."""

        _ = userdata, disconnect_flags, properties
        if not reason_code.is_failure:
            self._log.debug("MQTT disconnected cleanly: %s", reason_code)
            return

        if self._state is SessionState.CONNECTING:
            self._fail(client, str(reason_code))
        else:
            self._lose(client, str(reason_code))

    def _on_message(self, client: Client, userdata: Any, message: MQTTMessage) -> None:  # noqa: ANN401
        """Decode an incoming message and upsert the sample."""

        _ = userdata
        result = decode(message.topic, message.payload)
        if isinstance(result, Rejected):
            return

        with self._lock:
            if client is not self._client or self._state is not SessionState.CONNECTED:
                self._log.debug("Dropping message on %s: session not connected", message.topic)
                return
            self.registry.upsert(result)

    def _subscribe(self, client: Client, topic: str) -> None:
        self._log.debug("Subscribing to topic: [bright_green]%s[/]", topic)
        res, _ = client.subscribe(topic, qos=SessionManager.SUBSCRIBE_QOS)

        if res != MQTTErrorCode.MQTT_ERR_SUCCESS:
            self._log.error("MQTT subscribe failed with rc=%s", res)
            return

        self._log.info("Subscribed to topic: [bright_green]%s[/]", topic)
