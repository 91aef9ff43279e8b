"""Base controller adapter

Renders motion and utility commands as G-code lines or named directives and
hands them to the connection. The base class is not abstract: it renders
conservative relative moves that any dialect accepts, and dialect
subclasses override what they can do better.
"""
import logging

LOG = logging.getLogger("cncpad.gcode")

JOG_CANCEL = "\x85"  # realtime jog-cancel byte
AXES = ("X", "Y", "Z")


def fmt(value: float) -> str:
    return f"{float(value):.4f}"


class ControllerAdapter:
    name = "generic"

    # adapter methods a key binding may invoke
    COMMANDS = frozenset({
        "home", "probe", "unlock", "zero_work_offset", "move_to_work_home",
        "move_to_work_origin", "move_to_machine_home", "move_to_return_position",
        "move_to_probe_position", "record_home", "record_return",
        "cyclestart", "feedhold", "pause", "resume", "reset", "start", "controller_stop",
        "coolant_flood_on", "coolant_mist_on", "coolant_off", "spindle_on", "spindle_off",
    })

    def __init__(self, connection, options, logger=None):
        self.connection = connection
        self.options = options
        self.log = logger or LOG
        self.feedrate = float(options.default_feedrate)
        self.zsafepos = float(options.z_safe_pos)
        self.probe_distance = float(options.probe_distance)
        self.probe_feedrate = float(options.probe_feedrate)
        self.retraction_distance = float(options.retraction_distance)
        self.probe_thickness = float(options.z_probe_thickness)

    # -- transmission ------------------------------------------------------

    def send_gcode(self, line: str) -> bool:
        self.log.debug("gcode %s", line)
        return self.connection.transmit(line)

    def send_directive(self, directive: str, *args) -> bool:
        self.log.debug("command %s", directive)
        return self.connection.command(directive, *args)

    # -- motion ------------------------------------------------------------

    def jog_to(self, dx: float, dy: float, dz: float, feedrate: float = None) -> int:
        """Relative jog. Returns how many lines were sent (each earns one ack)."""
        return self.move_relative(dx, dy, dz, feedrate)

    def move_relative(self, dx: float, dy: float, dz: float, feedrate: float = None) -> int:
        f = self.feedrate if feedrate is None else feedrate
        self.send_gcode("G21")
        self.send_gcode(f"G91 G0 X{fmt(dx)} Y{fmt(dy)} Z{fmt(dz)} F{fmt(f)}")
        self.send_gcode("G90")
        return 3

    def move_to_machine_home(self):
        self.send_gcode(f"G53 G0 G90 Z{fmt(self.zsafepos)}")
        self.send_gcode("G28")

    def move_to_return_position(self):
        self.send_gcode(f"G53 G0 G90 Z{fmt(self.zsafepos)}")
        self.send_gcode("G30")

    def move_to_work_home(self):
        """Move to X0 Y0 of the G54 work frame, leaving Z alone."""
        self.send_gcode("G54 G0 G90 X0 Y0")

    def move_to_work_origin(self):
        """Lift to the safe machine Z, then move to X0 Y0 of the work frame."""
        self.send_gcode(f"G53 G0 G90 Z{fmt(self.zsafepos)}")
        self.send_gcode("G54 G0 G90 X0 Y0")

    def move_to_probe_position(self):
        # only dialects that report probe results know where that was
        pass

    # -- setup -------------------------------------------------------------

    def home(self):
        self.send_directive("homing")

    def probe(self):
        dz = self.probe_thickness + 0.001
        self.send_gcode("G91")
        self.send_gcode(f"G38.2 Z-{fmt(self.probe_distance)} F{fmt(self.probe_feedrate)}")
        self.send_gcode(f"G10 L20 P1 Z{fmt(dz)}")
        self.send_gcode(f"G0 Z{fmt(self.retraction_distance)}")
        self.send_gcode("G90")

    def unlock(self):
        self.send_directive("unlock")

    def set_work_offset(self, axis: str, value: float):
        axis = axis.upper()
        if axis not in AXES:
            raise ValueError(f"unknown axis {axis!r}")
        self.send_gcode(f"G10 L20 P1 {axis}{fmt(value)}")

    def zero_work_offset(self, axis: str):
        self.set_work_offset(axis, 0.0)

    def record_home(self):
        self.send_gcode("G28.1")

    def record_return(self):
        self.send_gcode("G30.1")

    # -- controller directives ---------------------------------------------

    def stop(self):
        """Cancel motion immediately, bypassing the command queue."""
        self.log.debug("jog cancel")
        self.connection.write(JOG_CANCEL)

    def controller_stop(self):
        self.send_directive("stop")

    def cyclestart(self):
        self.send_directive("cyclestart")

    def feedhold(self):
        self.send_directive("feedhold")

    def pause(self):
        self.send_directive("pause")

    def resume(self):
        self.send_directive("resume")

    def reset(self):
        self.send_directive("reset")

    def start(self):
        self.send_directive("start")

    # -- accessories -------------------------------------------------------

    def coolant_flood_on(self):
        self.send_gcode("M8")

    def coolant_mist_on(self):
        self.send_gcode("M7")

    def coolant_off(self):
        self.send_gcode("M9")

    def spindle_on(self, speed=1000):
        self.send_gcode(f"M3 S{int(float(speed))}")

    def spindle_off(self):
        self.send_gcode("M5")
