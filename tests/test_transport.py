import logging
import threading

import pytest
from socketio.exceptions import ConnectionError as SocketConnectError, SocketIOError

from server import transport
from server.transport import INBOUND_EVENTS, SocketTransport

URL = "http://localhost:8000?token=tok"


class StubClient:
    """Stands in for socketio.Client; connect() can be held open or made to fail."""

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.handlers = {}
        self.emitted = []
        self.urls = []
        self.connected = False
        self.disconnects = 0
        self.gate = None
        self.fail = None

    def on(self, event, handler):
        self.handlers[event] = handler

    def connect(self, url, transports=None):
        self.urls.append(url)
        if self.gate is not None:
            self.gate.wait(2.0)
        if self.fail is not None:
            raise self.fail
        self.connected = True

    def emit(self, event, data=None):
        self.emitted.append((event, data))

    def disconnect(self):
        self.disconnects += 1
        self.connected = False


@pytest.fixture(autouse=True)
def stub_client(monkeypatch):
    monkeypatch.setattr(transport.socketio, "Client", StubClient)


@pytest.fixture
def events():
    return []


@pytest.fixture
def sock(events):
    return SocketTransport(lambda *args: events.append(args))


def finish_connect(sock):
    sock._t.join(2.0)
    assert not sock._t.is_alive()


def test_client_does_not_reconnect_on_its_own(sock):
    assert sock._sio.kwargs["reconnection"] is False


def test_server_events_are_relayed(sock, events):
    assert set(INBOUND_EVENTS) <= set(sock._sio.handlers)
    sock._sio.handlers["connect"]()
    sock._sio.handlers["serialport:read"]("ok")
    sock._sio.handlers["error"]("bad token")
    sock._sio.handlers["disconnect"]()
    assert events == [
        ("connect",),
        ("serialport:read", "ok"),
        ("error", "bad token"),
        ("close",),
    ]


def test_emit_sends_arguments_as_one_tuple(sock):
    sock.emit("command", "/dev/ttyACM0", "gcode", "G21")
    sock.emit("open", "/dev/ttyACM0", {"baudrate": 115200, "controllerType": "Grbl"})
    assert sock._sio.emitted == [
        ("command", ("/dev/ttyACM0", "gcode", "G21")),
        ("open", ("/dev/ttyACM0", {"baudrate": 115200, "controllerType": "Grbl"})),
    ]


def test_emit_failure_is_logged(sock, caplog):
    def refuse(event, data=None):
        raise SocketIOError("not connected")

    sock._sio.emit = refuse
    with caplog.at_level(logging.ERROR, logger="cncpad.transport"):
        sock.emit("write", "/dev/ttyACM0", "\x85")
    assert "emit write failed" in caplog.text


def test_connect_uses_websocket_url(sock):
    sock.connect(URL)
    finish_connect(sock)
    assert sock._sio.urls == [URL]
    assert sock._sio.connected


def test_failed_connect_reports_error(sock, events):
    sock._sio.fail = SocketConnectError("connection refused")
    sock.connect(URL)
    finish_connect(sock)
    assert events == [("error", "connection refused")]


def test_failed_connect_after_close_is_quiet(sock, events):
    sock._sio.fail = SocketConnectError("connection refused")
    sock._sio.gate = threading.Event()
    sock.connect(URL)
    sock.close()
    sock._sio.gate.set()
    finish_connect(sock)
    assert events == []


def test_close_disconnects_live_session_once(sock):
    sock.connect(URL)
    finish_connect(sock)
    sock.close()
    sock.close()
    assert sock._sio.disconnects == 1
    assert not sock._sio.connected


def test_close_during_connect_drops_late_session(sock):
    sock._sio.gate = threading.Event()
    sock.connect(URL)
    sock.close()
    sock._sio.gate.set()
    finish_connect(sock)
    assert not sock._sio.connected
    assert sock._sio.disconnects == 1
