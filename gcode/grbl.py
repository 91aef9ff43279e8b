"""Grbl controller adapter

Uses Grbl's `$J=` jog class for continuous jogging and completes Z probing
from the `[PRB:...]` report the controller prints after a probe cycle.
"""
import logging

from gcode.probe import ProbeRecord
from gcode.sender import ControllerAdapter, fmt

LOG = logging.getLogger("cncpad.grbl")

# keep jogs slightly slower than the tick rate so the planner never runs dry
JOG_FEED_SCALE = 0.98


class GrblAdapter(ControllerAdapter):
    name = "grbl"

    def __init__(self, connection, options, logger=None):
        super().__init__(connection, options, logger=logger or LOG)
        self.probe_record = ProbeRecord(logger=self.log)
        self.connection.subscribe("serialport:read", self._on_serial_read)

    def _on_serial_read(self, line, *_):
        if not isinstance(line, str) or not ProbeRecord.is_valid_string(line):
            return
        self.log.info("probe report %s", line.strip())
        was_success = self.probe_record.success
        if not self.probe_record.update_from_string(line):
            return
        if self.probe_record.success and not was_success:
            self._apply_probe_result()

    def _apply_probe_result(self):
        rec = self.probe_record
        self.log.info("probe contact at X%s Y%s Z%s", rec.x, rec.y, rec.z)
        # contact Z less the plate thickness becomes the new work Z
        dz = rec.z - self.probe_thickness
        self.send_gcode("G91")
        self.set_work_offset("Z", dz)
        self.send_gcode(f"G0 Z{fmt(self.retraction_distance)}")
        self.send_gcode("G90")

    def jog_to(self, dx, dy, dz, feedrate=None):
        f = (self.feedrate if feedrate is None else feedrate) * JOG_FEED_SCALE
        self.send_gcode(f"$J=G21 G91 X{fmt(dx)} Y{fmt(dy)} Z{fmt(dz)} F{fmt(f)}")
        return 1

    def probe(self):
        # forget the previous contact; the offset is applied from the report
        self.probe_record.success = False
        self.send_gcode("G91")
        self.send_gcode(f"G38.2 Z-{fmt(self.probe_distance)} F{fmt(self.probe_feedrate)}")
        self.send_gcode("G90")

    def move_to_probe_position(self):
        rec = self.probe_record
        if not rec.success:
            self.log.info("no successful probe recorded yet")
            return
        self.send_gcode(f"G53 G0 G90 Z{fmt(self.zsafepos)}")
        self.send_gcode(f"G54 G0 G90 X{fmt(rec.x)} Y{fmt(rec.y)}")
