"""Grbl probe-result record ([PRB:x,y,z:s])"""
import logging
import re

LOG = logging.getLogger("cncpad.probe")

_PRB_RE = re.compile(r"^\[PRB:([^,:\]]*),([^,:\]]*),([^,:\]]*):(\d)\]$")
# coordinates are plain decimals: no nan, inf or digit separators
_NUMBER_RE = re.compile(r"^[-+]?(?:\d+(?:\.\d*)?|\.\d+)$")


class ProbeRecord:
    """Last probe contact reported by the controller.

    All four fields are written together or not at all.
    """

    def __init__(self, logger=None):
        self.x = 0.0
        self.y = 0.0
        self.z = 0.0
        self.success = False
        self.log = logger or LOG

    @staticmethod
    def is_valid_string(line: str) -> bool:
        return _PRB_RE.match(line.strip()) is not None

    def update_from_string(self, line: str) -> bool:
        """Update from a PRB line. Returns True if the record changed."""
        m = _PRB_RE.match(line.strip())
        if m is None:
            self.log.error("not a probe record: %r", line)
            return False
        fields = m.group(1, 2, 3)
        if not all(_NUMBER_RE.match(v) for v in fields):
            self.log.error("malformed probe coordinates in %r", line)
            return False
        x, y, z = (float(v) for v in fields)
        self.x, self.y, self.z = x, y, z
        self.success = m.group(4) != "0"
        return True

    def __repr__(self):
        return f"ProbeRecord(x={self.x}, y={self.y}, z={self.z}, success={self.success})"
