"""Continuous jog scheduler

The controller only takes discrete moves, so continuous motion is built
from a stream of small relative jogs, one per tick, each with the feedrate
that covers its distance in exactly one tick. At most one jog is ever
waiting for its acknowledgment; while it waits, the tick polls at half
the interval instead of sending.
"""
import logging
import re

from core.state import JogState, MotionIntent

LOG = logging.getLogger("cncpad.jog")

DEFAULT_INTERVAL_MS = 150
ACK_POLL_FACTOR = 0.5
STALL_WARN_POLLS = 20

# Grbl error 15: jog target exceeds machine travel, the jog was ignored
_TRAVEL_LIMIT_RE = re.compile(r"^error:15\b")


class JogScheduler:
    def __init__(self, adapter, connection, dispatcher, mapper, jog_speed=2000.0,
                 interval_ms=DEFAULT_INTERVAL_MS, mode="continuous", logger=None):
        if interval_ms <= 0:
            raise ValueError("jog interval must be positive")
        self.adapter = adapter
        self.connection = connection
        self.dispatcher = dispatcher
        self.mapper = mapper
        self.jog_speed = float(jog_speed)
        self.interval_ms = float(interval_ms)
        self.mode = mode
        self.log = logger or LOG
        self.state = JogState()
        self.intent = MotionIntent()
        self._timer = None
        self._stalled_polls = 0

        connection.subscribe("serialport:read", self._on_serial_read)
        connection.subscribe("serialport:open", self._on_serial_open)

    @property
    def jog_step(self) -> float:
        """mm covered per tick at the configured jog speed."""
        return self.jog_speed * self.interval_ms / 60000.0

    @property
    def jogging(self) -> bool:
        return self._timer is not None

    def feedrate_for(self, distance: float) -> float:
        return distance * 60000.0 / self.interval_ms

    # -- key input ---------------------------------------------------------

    def on_key(self, event):
        action = self.mapper.map(event)
        self.log.debug("key 0x%02x step %s -> %s", event.key, self.state.step_size, action.kind)

        if action.kind == "idle":
            self.intent = MotionIntent()
            if self.state.jog_active:
                self.stop()
            return
        if action.kind == "unknown":
            self.intent = MotionIntent()
            return

        if action.kind == "stop":
            # stop resets the whole jog state, previous_key included
            self.stop()
            return

        self.state.previous_key = event.key
        self.intent = MotionIntent()

        if action.kind == "step":
            self.state.step_size = action.step_size
            self.log.info("step size set to %s mm", action.step_size)
        elif action.kind == "command":
            self._run_commands(action.commands)
        elif action.kind == "move":
            if self.mode == "step":
                dx, dy, dz = (c * self.state.step_size for c in action.direction)
                self.adapter.move_relative(dx, dy, dz)
                return
            dx, dy, dz = (c * self.jog_step for c in action.direction)
            self.intent = MotionIntent(dx, dy, dz)
            self._start()

    def _run_commands(self, commands):
        for name, args in commands:
            try:
                getattr(self.adapter, name)(*args)
            except (TypeError, ValueError) as e:
                self.log.error("command %s%s failed: %s", name, args, e)

    # -- timer -------------------------------------------------------------

    def _start(self):
        if self._timer is not None:
            return
        self.state.jog_active = True
        self.log.debug("smooth jogging starting")
        self._schedule(self.interval_ms)

    def _schedule(self, delay_ms):
        self._timer = self.dispatcher.call_later(delay_ms / 1000.0, self._tick)

    def _tick(self):
        self._timer = None
        if not self.state.jog_active:
            return
        delay_ms = self.interval_ms
        if self.state.ack_pending:
            delay_ms = self.interval_ms * ACK_POLL_FACTOR
            self._stalled_polls += 1
            if self._stalled_polls % STALL_WARN_POLLS == 0:
                self.log.warning("no acknowledgment for last jog after %d polls", self._stalled_polls)
        elif self.intent.is_zero():
            pass
        elif not self.connection.serial_connected:
            self.log.debug("serial port not open; holding jog")
        else:
            self._send_jog()
        self._schedule(delay_ms)

    def _send_jog(self):
        i = self.intent
        dist = i.distance()
        feed = self.feedrate_for(dist)
        lines = self.adapter.jog_to(i.dx, i.dy, i.dz, feed)
        self.state.acks_expected = max(1, int(lines or 1))
        self.state.ack_pending = True
        self._stalled_polls = 0
        self.log.debug("jog x=%s y=%s z=%s; distance=%s at %s mm/min", i.dx, i.dy, i.dz, dist, feed)

    def stop(self):
        """Cancel the tick and any motion already accepted by the controller."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self.adapter.stop()
        self.intent = MotionIntent()
        self.state = JogState(step_size=self.state.step_size)
        self._stalled_polls = 0
        self.log.debug("smooth jogging stopped")

    # -- acknowledgments ---------------------------------------------------

    def _clear_ack(self):
        self.state.ack_pending = False
        self.state.acks_expected = 0
        self._stalled_polls = 0

    def _on_serial_read(self, data=None, *_):
        if not self.state.ack_pending or not isinstance(data, str):
            return
        text = data.strip()
        if text.startswith("ok"):
            self.state.acks_expected -= 1
            if self.state.acks_expected <= 0:
                self.log.debug("received %s, jog acknowledged", text)
                self._clear_ack()
        elif _TRAVEL_LIMIT_RE.match(text):
            self.log.info("jog exceeds machine travel; ignored by controller")
            self._clear_ack()

    def _on_serial_open(self, *_):
        # a freshly opened port has nothing outstanding
        self._clear_ack()
