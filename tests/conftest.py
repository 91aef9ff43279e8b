import pytest

from core.scheduler import Dispatcher
from core.state import Options
from server.connector import ConnectionManager


class FakeClock:
    def __init__(self, t=1000.0):
        self.t = t

    def __call__(self):
        return self.t

    def advance(self, seconds):
        self.t += seconds


class FakeTransport:
    """Records what the pendant emits; tests push server events with fire()."""

    def __init__(self, on_event):
        self.on_event = on_event
        self.url = None
        self.emitted = []
        self.closed = False

    def connect(self, url):
        self.url = url

    def emit(self, event, *args):
        self.emitted.append((event,) + args)

    def close(self):
        self.closed = True

    def fire(self, name, *args):
        self.on_event(name, *args)

    def events(self, name):
        return [e for e in self.emitted if e[0] == name]

    def gcode(self):
        return [e[3] for e in self.emitted if e[0] == "command" and e[2] == "gcode"]


class FakeReader:
    def __init__(self, attached=False):
        self._attached = attached
        self._subs = {"attach": [], "remove": [], "use": []}

    def start(self):
        pass

    def stop(self):
        pass

    def subscribe(self, event, callback):
        self._subs[event].append(callback)

    def is_attached(self):
        return self._attached

    def attach(self):
        self._attached = True
        for cb in list(self._subs["attach"]):
            cb()

    def remove(self):
        self._attached = False
        for cb in list(self._subs["remove"]):
            cb()


class RecordingConnection:
    """Stands in for ConnectionManager when only the adapter output matters."""

    def __init__(self, connected=True):
        self.serial_connected = connected
        self.lines = []
        self.directives = []
        self.writes = []
        self.subs = {}

    def transmit(self, line):
        self.lines.append(line)
        return self.serial_connected

    def command(self, directive, *args):
        self.directives.append((directive,) + args)
        return self.serial_connected

    def write(self, data):
        self.writes.append(data)
        return self.serial_connected

    def subscribe(self, message, callback):
        self.subs.setdefault(message, []).append(callback)

    def publish(self, message, *args):
        for cb in self.subs.get(message, []):
            cb(*args)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def dispatcher(clock):
    return Dispatcher(clock=clock)


@pytest.fixture
def pump(clock, dispatcher):
    """Advance the fake clock by `ms` and run whatever became due."""
    def _pump(ms=0):
        if ms:
            clock.advance(ms / 1000.0)
        dispatcher.run_pending()
    return _pump


@pytest.fixture
def options():
    return Options(port="/dev/ttyACM0", secret="s3cret", z_probe_thickness=1.56)


@pytest.fixture
def reader():
    return FakeReader()


@pytest.fixture
def transports():
    return []


@pytest.fixture
def connector(reader, options, dispatcher, transports):
    def factory(on_event):
        t = FakeTransport(on_event)
        transports.append(t)
        return t
    return ConnectionManager(reader, options, dispatcher, transport_factory=factory, token_factory=lambda: "tok")


@pytest.fixture
def ready(connector, reader, transports, pump):
    """A connector with the pad attached, the socket up and the serial port open."""
    reader.attach()
    pump()
    transports[-1].fire("connect")
    pump()
    transports[-1].fire("serialport:open", {"port": "/dev/ttyACM0"})
    pump()
    assert connector.serial_connected
    return connector
