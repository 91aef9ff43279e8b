"""Connection manager for the control server and its serial port

Keeps the session to the control server alive for as long as a keypad is
attached:

- no keypad: wait for one to be attached
- keypad attached: connect the socket, then keep asking the server to open
  the serial port until it confirms
- socket error or close: drop everything and connect again
- keypad removed: drop everything and wait

All state changes happen on the dispatcher thread. Transport callbacks are
posted there and tagged with the session they belong to, so traffic from a
transport that has since been replaced is ignored.
"""
import logging
from collections import defaultdict
from functools import partial

from core.state import ConnectionState
from server.auth import generate_access_token
from server.transport import SimulatedTransport, SocketTransport

LOG = logging.getLogger("cncpad.connector")

SERIAL_OPEN_RETRY_S = 2.0
RECONNECT_DELAY_S = 2.0


class ConnectionManager:
    def __init__(self, reader, options, dispatcher, transport_factory=None, token_factory=None, logger=None):
        self.reader = reader
        self.options = options
        self.dispatcher = dispatcher
        self.log = logger or LOG
        self.state = ConnectionState()
        if transport_factory is None:
            transport_factory = SimulatedTransport if options.simulate else SocketTransport
        self._transport_factory = transport_factory
        self._token_factory = token_factory or self._default_token
        self._subs = defaultdict(list)
        self._transport = None
        self._session = 0
        self._serial_timer = None
        self._reconnect_timer = None
        self._handlers = {
            "connect": self._on_connect,
            "error": self._on_error,
            "close": self._on_close,
            "serialport:open": self._on_serial_open,
            "serialport:close": self._on_serial_close,
            "serialport:error": self._on_serial_error,
            "serialport:read": self._on_serial_read,
            "serialport:write": self._on_serial_write,
            "controller:settings": self._on_observed("controller:settings"),
            "controller:state": self._on_observed("controller:state"),
            "workflow:state": self._on_observed("workflow:state"),
        }

        if not reader.is_attached():
            self.log.info("waiting for a numpad to be connected")
        reader.subscribe("attach", lambda *_: dispatcher.post(self._on_attach))
        reader.subscribe("remove", lambda *_: dispatcher.post(self._on_remove))

    @property
    def server(self) -> str:
        return f"ws://{self.options.socket_address}:{self.options.socket_port}"

    @property
    def serial_connected(self) -> bool:
        return self.state.serial_open and self._transport is not None

    def _default_token(self) -> str:
        return generate_access_token(self.options.secret, self.options.access_token_lifetime)

    # -- pub/sub -----------------------------------------------------------

    def subscribe(self, message: str, callback):
        self._subs[message].append(callback)
        self.log.debug("ready to listen for message '%s'", message)

    def _publish(self, message: str, *args):
        for cb in list(self._subs.get(message, ())):
            try:
                cb(*args)
            except Exception:
                self.log.exception("subscriber for '%s' failed", message)

    # -- outbound ----------------------------------------------------------

    def transmit(self, line: str) -> bool:
        return self.command("gcode", line)

    def command(self, directive: str, *args) -> bool:
        if not self.serial_connected:
            self.log.debug("serial port not open; dropped %s %s", directive, args)
            return False
        self._transport.emit("command", self.options.port, directive, *args)
        return True

    def write(self, data: str) -> bool:
        """Write raw bytes to the serial port ahead of anything queued."""
        if not self.serial_connected:
            self.log.debug("serial port not open; dropped write %r", data)
            return False
        self._transport.emit("write", self.options.port, data)
        return True

    # -- session -----------------------------------------------------------

    def connect_server(self):
        self._cancel_reconnect()
        self._drop_session()
        self._session += 1
        on_event = partial(self._from_transport, self._session)
        self._transport = self._transport_factory(on_event)
        self.log.info("attempting connect to %s", self.server)
        token = self._token_factory()
        url = f"http://{self.options.socket_address}:{self.options.socket_port}?token={token}"
        self._transport.connect(url)

    def open_serial(self):
        """Ask the server to open the port, and keep asking until it does."""
        self._cancel_serial_timer()
        self._request_serial_open()

    def _request_serial_open(self):
        self._serial_timer = None
        if self._transport is None or self.state.serial_open:
            return
        self.log.info("sending open request for %s at baud rate %s", self.options.port, self.options.baudrate)
        self._serial_timer = self.dispatcher.call_later(SERIAL_OPEN_RETRY_S, self._request_serial_open)
        self._transport.emit("open", self.options.port, {
            "baudrate": int(self.options.baudrate),
            "controllerType": self.options.controller_type,
        })

    def shutdown(self):
        self._cancel_reconnect()
        self._drop_session()

    def _drop_session(self):
        self._cancel_serial_timer()
        if self._transport is not None:
            try:
                self._transport.close()
            except Exception:
                self.log.exception("error closing socket")
        self._transport = None
        self._session += 1
        self.state.socket_connected = False
        self.state.serial_open = False

    def _schedule_reconnect(self):
        self._cancel_reconnect()
        if not self.state.device_attached:
            return
        self.log.info("attempting reconnect to %s", self.server)
        self._reconnect_timer = self.dispatcher.call_later(RECONNECT_DELAY_S, self._reconnect)

    def _reconnect(self):
        self._reconnect_timer = None
        if self.state.device_attached:
            self.connect_server()

    def _cancel_serial_timer(self):
        if self._serial_timer is not None:
            self._serial_timer.cancel()
            self._serial_timer = None

    def _cancel_reconnect(self):
        if self._reconnect_timer is not None:
            self._reconnect_timer.cancel()
            self._reconnect_timer = None

    # -- inbound -----------------------------------------------------------

    def _from_transport(self, session, name, *args):
        self.dispatcher.post(self._on_transport_event, session, name, *args)

    def _on_transport_event(self, session, name, *args):
        if session != self._session:
            self.log.debug("ignoring '%s' from a closed session", name)
            return
        handler = self._handlers.get(name)
        if handler is not None:
            handler(*args)
        self._publish(name, *args)

    def _on_attach(self):
        if self.state.device_attached:
            return
        self.state.device_attached = True
        self.connect_server()

    def _on_remove(self):
        self.state.device_attached = False
        self.shutdown()
        self.log.info("waiting for a numpad to be connected")

    def _on_connect(self, *_):
        self.state.socket_connected = True
        self.log.info("connected to %s", self.server)
        self.open_serial()

    def _on_error(self, *args):
        self.log.error("error from %s, killing connection: %s", self.server, args[0] if args else "")
        self._drop_session()
        self._schedule_reconnect()

    def _on_close(self, *_):
        self.log.info("%s closed the connection", self.server)
        self._drop_session()
        self._schedule_reconnect()

    def _on_serial_open(self, *_):
        self._cancel_serial_timer()
        self.state.serial_open = True
        self.log.info("connection to %s successful", self.options.port)

    def _on_serial_close(self, *_):
        self.state.serial_open = False
        self.log.info("connection closed to %s", self.options.port)
        if self.state.socket_connected:
            self.open_serial()

    def _on_serial_error(self, *args):
        self.state.serial_open = False
        self.log.error("error opening serial port %s: %s", self.options.port, args[0] if args else "")
        if self.state.socket_connected:
            self.open_serial()

    def _on_serial_read(self, data=None, *_):
        self.log.debug("read from serial port: %s", data)

    def _on_serial_write(self, data=None, *_):
        self.log.debug("write to serial port: %s", data)

    def _on_observed(self, name):
        def handler(*args):
            self.log.debug("%s %s", name, args)
        return handler
