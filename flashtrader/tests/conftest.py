"""Shared fixtures: an in-memory WebSocket and a polling helper."""

import queue
import threading
import time

import orjson
import pytest
import websocket


class FakeWebSocket:
    """
    Stand-in for websocket.WebSocket.

    Frames pushed with push()/push_frame() are returned by recv_data();
    drop() makes the next recv_data() raise a closed-connection error.
    """

    def __init__(self, fail_connect: bool = False):
        self.fail_connect = fail_connect
        self.url = None
        self.connect_options = {}
        self.sent: list = []
        self.pings = 0
        self.pongs: list = []
        self.closed = False
        self.fail_ping = False
        self._timeout = 1.0
        self._inbox: queue.Queue = queue.Queue()
        self._lock = threading.Lock()

    # websocket.WebSocket surface

    def connect(self, url, **options):
        if self.fail_connect:
            raise ConnectionRefusedError("connection refused")
        self.url = url
        self.connect_options = options

    def settimeout(self, timeout):
        self._timeout = timeout

    def recv_data(self, control_frame=False):
        if self.closed:
            raise websocket.WebSocketConnectionClosedException("socket is already closed")
        try:
            item = self._inbox.get(timeout=min(self._timeout, 0.02))
        except queue.Empty:
            raise websocket.WebSocketTimeoutException("timed out")
        if item is None:
            raise websocket.WebSocketConnectionClosedException("closed by peer")
        return item

    def send(self, data):
        if self.closed:
            raise websocket.WebSocketConnectionClosedException("socket is already closed")
        with self._lock:
            self.sent.append(data)

    def ping(self, payload=""):
        if self.fail_ping:
            raise BrokenPipeError("broken pipe")
        self.pings += 1

    def pong(self, payload=""):
        self.pongs.append(payload)

    def close(self, **options):
        self.closed = True

    # Test helpers

    def push(self, payload):
        """Queue a text frame; dicts and lists are JSON encoded."""
        if isinstance(payload, (dict, list)):
            payload = orjson.dumps(payload)
        self._inbox.put((websocket.ABNF.OPCODE_TEXT, payload))

    def push_frame(self, opcode, data=b""):
        self._inbox.put((opcode, data))

    def drop(self):
        self._inbox.put(None)

    @property
    def sent_json(self) -> list:
        with self._lock:
            return [orjson.loads(m) for m in self.sent]


class FakeSocketFactory:
    """Creates FakeWebSockets and remembers them in creation order."""

    def __init__(self):
        self.sockets: list[FakeWebSocket] = []
        self.failures_remaining = 0

    def __call__(self) -> FakeWebSocket:
        fail = self.failures_remaining > 0
        if fail:
            self.failures_remaining -= 1
        ws = FakeWebSocket(fail_connect=fail)
        self.sockets.append(ws)
        return ws

    @property
    def last(self) -> FakeWebSocket:
        return self.sockets[-1]

    @property
    def connected_sockets(self) -> list[FakeWebSocket]:
        return [ws for ws in self.sockets if ws.url is not None]


@pytest.fixture
def ws_factory():
    """Factory producing in-memory sockets."""
    return FakeSocketFactory()


@pytest.fixture
def wait_until():
    """Poll a predicate until it is true or a timeout expires."""

    def _wait_until(predicate, timeout: float = 2.0, interval: float = 0.01) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(interval)
        return predicate()

    return _wait_until
