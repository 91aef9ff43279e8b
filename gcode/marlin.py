"""Marlin controller adapter

Marlin has no incremental jog class, so jogging uses the base relative move.
"""
from gcode.sender import ControllerAdapter


class MarlinAdapter(ControllerAdapter):
    name = "marlin"

    def home(self):
        self.send_gcode("G28 X Y")

    def probe(self):
        # touch plate wired as the Z endstop
        self.send_gcode("G28 Z")
