"""
Base streaming transport for threaded WebSocket connections.

Uses websocket-client's blocking WebSocket with a receive loop in a
dedicated thread. One logical connection per instance:

    DISCONNECTED -> CONNECTING -> CONNECTED -> DISCONNECTED
                 -> RECONNECTING (fixed delay) -> CONNECTING -> ...

STOPPED is terminal and only reached through stop().
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable, Optional, Union

import orjson
import websocket

from ..errors import TransportError
from ..types import ConnectionState

logger = logging.getLogger(__name__)

ConnectionCallback = Callable[[], None]
ErrorCallback = Callable[[Exception], None]


def _default_ws_factory() -> websocket.WebSocket:
    return websocket.WebSocket(enable_multithread=True, skip_utf8_validation=True)


class StreamTransport(ABC):
    """
    Base class for a reconnecting WebSocket stream.

    Provides:
    - connect / send / subscribe / disconnect
    - run() loop with fixed-delay, unbounded reconnection
    - Keepalive pings independent of message traffic
    - Desired subscription set, replayed on every connect
    - Connect / disconnect / error listeners

    Subclasses build the subscribe message and handle inbound payloads.
    Inbound payloads are handled on the transport thread, one at a time,
    in arrival order.
    """

    def __init__(
        self,
        ws_url: str,
        name: str = "WS",
        reconnect_interval: float = 5.0,
        ping_interval: float = 20.0,
        ping_timeout: float = 10.0,
        connect_timeout: float = 10.0,
        recv_timeout: float = 1.0,
        ws_factory: Optional[Callable[[], Any]] = None,
    ):
        self._ws_url = ws_url
        self._name = name
        self._reconnect_interval = reconnect_interval
        self._ping_interval = ping_interval
        self._ping_timeout = ping_timeout
        self._connect_timeout = connect_timeout
        self._recv_timeout = recv_timeout
        self._ws_factory = ws_factory or _default_ws_factory

        # Connection state
        self._ws: Optional[Any] = None
        self._state = ConnectionState.DISCONNECTED
        self._state_lock = threading.Lock()
        self._send_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._drop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._serving = False
        self._reconnect_count = 0

        # Keepalive
        self._last_ping_at = 0.0
        self._ping_outstanding_since: Optional[float] = None

        # Desired subscriptions (insertion ordered)
        self._subscribed: dict[str, None] = {}
        self._sub_lock = threading.RLock()

        # Listeners
        self._connect_listeners: list[ConnectionCallback] = []
        self._disconnect_listeners: list[ConnectionCallback] = []
        self._error_listeners: list[ErrorCallback] = []

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        """Current lifecycle state."""
        return self._state

    @property
    def connected(self) -> bool:
        """Check if connected."""
        return self._state == ConnectionState.CONNECTED

    @property
    def stopped(self) -> bool:
        """Check if stop() has been called."""
        return self._stop_event.is_set()

    @property
    def reconnect_count(self) -> int:
        """Number of reconnection attempts."""
        return self._reconnect_count

    @property
    def subscribed_assets(self) -> list[str]:
        """Desired subscription set, in subscription order."""
        with self._sub_lock:
            return list(self._subscribed)

    @property
    def is_running(self) -> bool:
        """Check if the background thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    # ------------------------------------------------------------------
    # Listener registration
    # ------------------------------------------------------------------

    def on_connect(self, callback: ConnectionCallback) -> ConnectionCallback:
        self._connect_listeners.append(callback)
        return callback

    def on_disconnect(self, callback: ConnectionCallback) -> ConnectionCallback:
        self._disconnect_listeners.append(callback)
        return callback

    def on_error(self, callback: ErrorCallback) -> ErrorCallback:
        self._error_listeners.append(callback)
        return callback

    def _notify(self, listeners: list[Callable], *args) -> None:
        """Call every listener; one failing listener never blocks the rest."""
        for listener in list(listeners):
            try:
                listener(*args)
            except Exception as e:
                logger.error(f"{self._name}: Listener {getattr(listener, '__name__', listener)} failed: {e}")

    def _report_error(self, error: Exception) -> None:
        if not self._stop_event.is_set():
            logger.warning(f"{self._name}: {error}")
        self._notify(self._error_listeners, error)

    def _set_state(self, state: ConnectionState) -> None:
        with self._state_lock:
            # STOPPED is terminal
            if self._state == ConnectionState.STOPPED:
                return
            self._state = state

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    def connect(self) -> bool:
        """
        Open the connection and replay desired subscriptions.

        Returns:
            True if connected, False on failure (reported to error listeners)
        """
        if self._stop_event.is_set():
            return False
        if self.connected:
            return True

        self._set_state(ConnectionState.CONNECTING)
        logger.info(f"{self._name}: Connecting to {self._ws_url[:60]}...")

        ws = self._ws_factory()
        try:
            ws.connect(self._ws_url, timeout=self._connect_timeout)
        except Exception as e:
            self._set_state(ConnectionState.DISCONNECTED)
            self._report_error(TransportError(f"Connect failed: {e}"))
            return False

        self._ws = ws
        self._drop_event.clear()
        self._last_ping_at = time.monotonic()
        self._ping_outstanding_since = None

        # Replay is written before CONNECTED becomes visible
        with self._sub_lock:
            self._resubscribe(ws)
            self._set_state(ConnectionState.CONNECTED)
        logger.info(f"{self._name}: Connected")

        self._on_connect()
        self._notify(self._connect_listeners)
        return True

    def disconnect(self) -> None:
        """
        Close the current connection.

        Inside run() with auto-reconnect the loop reconnects after the
        reconnect delay; use stop() to end the loop.
        """
        self._drop_event.set()
        if not self._serving:
            self._close_connection()

    def _close_connection(self) -> None:
        """Close the socket and fire disconnect listeners once per connection."""
        with self._state_lock:
            ws, self._ws = self._ws, None
        if ws is None:
            return

        try:
            ws.close()
        except Exception as e:
            logger.debug(f"{self._name}: Error closing socket: {e}")

        self._set_state(ConnectionState.DISCONNECTED)
        if not self._stop_event.is_set():
            logger.info(f"{self._name}: Disconnected")
        self._on_disconnect()
        self._notify(self._disconnect_listeners)

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    def send(self, message: Union[dict, list, bytes, str]) -> bool:
        """
        Send a message on the live connection.

        dict/list messages are JSON encoded. A send failure drops the
        connection so the run loop reconnects.

        Returns:
            True if written to the socket
        """
        ws = self._ws
        if ws is None or not self.connected:
            logger.debug(f"{self._name}: Not connected, message not sent")
            return False
        return self._write(ws, message)

    def _write(self, ws: Any, message: Union[dict, list, bytes, str]) -> bool:
        if isinstance(message, (dict, list)):
            data = orjson.dumps(message)
        else:
            data = message

        try:
            with self._send_lock:
                ws.send(data)
            return True
        except Exception as e:
            self._report_error(TransportError(f"Send failed: {e}"))
            self._drop_event.set()
            return False

    def subscribe(self, asset_ids: Iterable[str], replace: bool = False) -> bool:
        """
        Add assets to the desired subscription set.

        While disconnected the request is recorded and replayed on the next
        connect. With replace=True the previous set is discarded first.

        Returns:
            False for an empty request or a failed send, True otherwise
        """
        ids = [str(a) for a in asset_ids if a]
        if not ids:
            return False

        with self._sub_lock:
            if replace:
                self._subscribed.clear()
            for asset_id in ids:
                self._subscribed[asset_id] = None
            if replace:
                self._on_subscriptions_replaced(ids)

        if not self.connected:
            logger.info(f"{self._name}: Subscription for {len(ids)} assets deferred until connected")
            return True

        return self.send(self._build_subscribe_message(ids))

    def _resubscribe(self, ws: Any) -> None:
        """Send the full desired set on a fresh socket. Caller holds _sub_lock."""
        ids = list(self._subscribed)
        if not ids:
            logger.warning(f"{self._name}: No assets configured, skipping subscribe")
            return
        if self._write(ws, self._build_subscribe_message(ids)):
            logger.info(f"{self._name}: Subscribed to {len(ids)} assets")

    # ------------------------------------------------------------------
    # Run loop
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start run(auto_reconnect=True) in a background thread."""
        if self._stop_event.is_set():
            logger.warning(f"{self._name}: Stopped transports cannot be restarted")
            return
        if self._thread and self._thread.is_alive():
            logger.warning(f"{self._name}: Already running")
            return

        self._thread = threading.Thread(
            target=self.run,
            kwargs={"auto_reconnect": True},
            name=f"{self._name}-thread",
            daemon=True,
        )
        self._thread.start()
        logger.info(f"{self._name}: Started background thread")

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the run loop and release the connection. Safe to call repeatedly."""
        if self._state == ConnectionState.STOPPED:
            return

        logger.info(f"{self._name}: Stopping...")
        self._stop_event.set()

        thread = self._thread
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning(f"{self._name}: Thread did not stop in time")

        self._close_connection()
        with self._state_lock:
            self._state = ConnectionState.STOPPED
        logger.info(f"{self._name}: Stopped")

    def run(self, auto_reconnect: bool = True) -> None:
        """
        Connect, serve, and reconnect until stopped.

        Connect failures and dropped connections never end the loop while
        auto_reconnect is set; the loop waits reconnect_interval seconds
        between attempts with no retry limit.
        """
        while not self._stop_event.is_set():
            if self.connect():
                self._serve()
                self._close_connection()

            if self._stop_event.is_set() or not auto_reconnect:
                break

            self._reconnect_count += 1
            self._set_state(ConnectionState.RECONNECTING)
            logger.warning(f"{self._name}: Reconnecting in {self._reconnect_interval:.1f}s")
            self._stop_event.wait(timeout=self._reconnect_interval)

        logger.info(f"{self._name}: Run loop exited")

    def _serve(self) -> None:
        """Receive loop for one connection."""
        ws = self._ws
        if ws is None:
            return

        self._serving = True
        try:
            while not self._stop_event.is_set() and not self._drop_event.is_set():
                if not self._keepalive(ws):
                    break

                try:
                    # Timeout so stop and keepalive are checked periodically
                    ws.settimeout(self._recv_timeout)
                    opcode, data = ws.recv_data(control_frame=True)
                except websocket.WebSocketTimeoutException:
                    continue
                except websocket.WebSocketConnectionClosedException:
                    logger.info(f"{self._name}: Connection closed")
                    break
                except Exception as e:
                    self._report_error(TransportError(f"Receive failed: {e}"))
                    break

                if opcode == websocket.ABNF.OPCODE_CLOSE:
                    logger.info(f"{self._name}: Received close frame")
                    break
                elif opcode == websocket.ABNF.OPCODE_PING:
                    self._pong(ws, data)
                elif opcode == websocket.ABNF.OPCODE_PONG:
                    self._ping_outstanding_since = None
                elif opcode in (websocket.ABNF.OPCODE_TEXT, websocket.ABNF.OPCODE_BINARY):
                    self._dispatch_message(data)
        finally:
            self._serving = False

    def _keepalive(self, ws: Any) -> bool:
        """
        Send a ping every ping_interval seconds.

        Returns:
            False if the connection should be treated as lost
        """
        now = time.monotonic()

        if (
            self._ping_outstanding_since is not None
            and now - self._ping_outstanding_since > self._ping_timeout
        ):
            self._report_error(TransportError("Keepalive timed out"))
            return False

        if now - self._last_ping_at < self._ping_interval:
            return True

        try:
            with self._send_lock:
                ws.ping()
        except Exception as e:
            self._report_error(TransportError(f"Keepalive failed: {e}"))
            return False

        self._last_ping_at = now
        if self._ping_outstanding_since is None:
            self._ping_outstanding_since = now
        return True

    def _pong(self, ws: Any, data: bytes) -> None:
        try:
            with self._send_lock:
                ws.pong(data)
        except Exception as e:
            self._report_error(TransportError(f"Pong failed: {e}"))
            self._drop_event.set()

    def _dispatch_message(self, data: Union[bytes, str]) -> None:
        try:
            self._handle_message(data)
        except Exception as e:
            logger.error(f"{self._name}: Message handler error: {e}")

    # ------------------------------------------------------------------
    # Subclass hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def _build_subscribe_message(self, asset_ids: list[str]) -> dict:
        """Wire message subscribing to asset_ids. Override in subclass."""
        pass

    @abstractmethod
    def _handle_message(self, data: Union[bytes, str]) -> None:
        """Handle an inbound text/binary payload. Override in subclass."""
        pass

    def _on_subscriptions_replaced(self, asset_ids: list[str]) -> None:
        """Called under the subscription lock after subscribe(replace=True). Override if needed."""
        pass

    def _on_connect(self) -> None:
        """Called after successful connection. Override if needed."""
        pass

    def _on_disconnect(self) -> None:
        """Called after disconnection. Override if needed."""
        pass
