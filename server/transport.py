"""Transports to the control server

`SocketTransport` speaks socket.io to the real server. `SimulatedTransport`
answers in-process so the whole pipeline can run without a server or a
machine. Both report inbound traffic through `on_event(name, *args)`, which
may be called from any thread.
"""
import logging
import threading

import socketio
from socketio.exceptions import ConnectionError as SocketConnectError, SocketIOError

LOG = logging.getLogger("cncpad.transport")

INBOUND_EVENTS = (
    "serialport:open",
    "serialport:close",
    "serialport:error",
    "serialport:read",
    "serialport:write",
    "controller:settings",
    "controller:state",
    "workflow:state",
)


class SocketTransport:
    def __init__(self, on_event, logger=None):
        self._on_event = on_event
        self.log = logger or LOG
        self._t = None
        self._lock = threading.Lock()
        self._closed = False
        self._live = False
        # reconnection is driven by the connection manager
        self._sio = socketio.Client(reconnection=False, logger=False, engineio_logger=False)
        self._sio.on("connect", self._relay("connect"))
        self._sio.on("disconnect", self._relay("close"))
        self._sio.on("error", self._relay("error"))
        for name in INBOUND_EVENTS:
            self._sio.on(name, self._relay(name))

    def _relay(self, name):
        def handler(*args):
            self._on_event(name, *args)
        return handler

    def connect(self, url: str):
        self._t = threading.Thread(target=self._connect, args=(url,), name="SocketConnect", daemon=True)
        self._t.start()

    def _connect(self, url):
        try:
            self._sio.connect(url, transports=["websocket"])
        except SocketConnectError as e:
            if not self._closed:
                self.log.warning("socket connect failed: %s", e)
                self._on_event("error", str(e))
            return
        with self._lock:
            if not self._closed:
                self._live = True
                return
        # closed while the handshake was in flight
        self.log.debug("dropping session opened after close")
        self._sio.disconnect()

    def emit(self, event: str, *args):
        try:
            self._sio.emit(event, args)
        except SocketIOError as e:
            self.log.error("emit %s failed: %s", event, e)

    def close(self):
        with self._lock:
            self._closed = True
            live = self._live
            self._live = False
        if live and self._sio.connected:
            self._sio.disconnect()


class SimulatedTransport:
    def __init__(self, on_event, logger=None):
        self._on_event = on_event
        self.log = logger or LOG

    def connect(self, url: str):
        self.log.info("simulating connection to %s", url.split("?", 1)[0])
        self._on_event("connect")

    def emit(self, event: str, *args):
        if event == "open":
            port, opts = args[0], args[1] if len(args) > 1 else {}
            self.log.info("simulated open of %s %s", port, opts)
            self._on_event("serialport:open", {"port": port, **opts})
        elif event == "command" and len(args) >= 2:
            directive = args[1]
            if directive == "gcode":
                line = args[2]
                self.log.info("Gcode %s", line)
                self._on_event("serialport:write", line + "\n")
                self._on_event("serialport:read", "ok")
            else:
                self.log.info("Command %s", directive)
        elif event == "write":
            self.log.info("Write %r", args[1] if len(args) > 1 else None)
        else:
            self.log.warning("unknown message %s %s", event, args)

    def close(self):
        self.log.info("simulated connection closed")
