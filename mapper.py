"""Mapping engine: load YAML key profiles and map KeyEvent -> KeyAction

A target string describes what a key does, in the same spirit as the
`axis:`/`button:`/`key:` targets of a joystick profile:

    jog:+X-Y                 standing motion in a compass direction
    step:0.1                 change the sticky step size
    command:home             one-shot adapter command
    command:zero_work_offset:X command:zero_work_offset:Y
    stop                     cancel jogging
"""
import logging
import re
from dataclasses import dataclass
from typing import Optional, Tuple

import yaml

from core.keycodes import KeyCode, key_from_name
from core.state import KeyEvent
from gcode.sender import ControllerAdapter

LOG = logging.getLogger("cncpad.mapper")

STEP_SIZES = (0.1, 1.0, 10.0)

DEFAULT_BINDINGS = {
    KeyCode.KP_MINUS: "jog:+Z",
    KeyCode.KP_PLUS: "jog:-Z",
    KeyCode.KP_4: "jog:-X",
    KeyCode.KP_6: "jog:+X",
    KeyCode.KP_8: "jog:+Y",
    KeyCode.KP_2: "jog:-Y",
    KeyCode.KP_1: "jog:-X-Y",
    KeyCode.KP_9: "jog:+X+Y",
    KeyCode.KP_3: "jog:+X-Y",
    KeyCode.KP_7: "jog:-X+Y",
    KeyCode.KP_5: "command:move_to_work_home",
    KeyCode.TAB: "command:zero_work_offset:X command:zero_work_offset:Y command:zero_work_offset:Z",
    KeyCode.NUMLOCK: "command:zero_work_offset:X command:zero_work_offset:Y",
    KeyCode.KP_0: "command:unlock",
    KeyCode.KP_PERIOD: "command:probe",
    KeyCode.KP_ENTER: "command:home",
    KeyCode.KP_DIVIDE: "step:0.1",
    KeyCode.KP_MULTIPLY: "step:1",
    KeyCode.BACKSPACE: "step:10",
    KeyCode.ESCAPE: "stop",
}

_DIRECTION_RE = re.compile(r"([+-])([XYZ])")


@dataclass(frozen=True)
class KeyAction:
    kind: str  # "move" | "step" | "command" | "stop" | "idle" | "unknown"
    direction: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    step_size: Optional[float] = None
    commands: Tuple[Tuple[str, Tuple[str, ...]], ...] = ()


IDLE = KeyAction("idle")
UNKNOWN = KeyAction("unknown")


class KeyMotionMapper:
    def __init__(self, profile: Optional[dict] = None, z_factor: float = 0.5):
        self.profile = profile or {}
        self.z_factor = float(z_factor)
        self._actions = {}
        for key, target in DEFAULT_BINDINGS.items():
            self._actions[int(key)] = self._parse_target(target)
        for name, target in (self.profile.get("keys") or {}).items():
            try:
                key = key_from_name(name)
            except (KeyError, ValueError):
                LOG.warning("skipping binding for unknown key %r", name)
                continue
            if target in (None, "", "none"):
                self._actions.pop(key, None)
                continue
            self._actions[key] = self._parse_target(str(target))

    @classmethod
    def load_profile(cls, path: str, z_factor: float = 0.5):
        with open(path, "r", encoding="utf-8") as f:
            profile = yaml.safe_load(f) or {}
        LOG.info("loaded key profile %s", path)
        return cls(profile, z_factor=z_factor)

    @staticmethod
    def _command_tokens(tgt: str):
        """Return (name, args) pairs from a target like 'command:home command:zero_work_offset:X'."""
        commands = []
        for token in tgt.split():
            if not token.startswith("command:"):
                raise ValueError(f"bad command token {token!r}")
            parts = token.split(":")[1:]
            name, args = parts[0], tuple(parts[1:])
            if name not in ControllerAdapter.COMMANDS:
                raise ValueError(f"unknown adapter command {name!r}")
            commands.append((name, args))
        return tuple(commands)

    def _parse_target(self, tgt: str) -> KeyAction:
        tgt = tgt.strip()
        if tgt == "stop":
            return KeyAction("stop")
        if tgt.startswith("step:"):
            size = float(tgt.split(":", 1)[1])
            if size not in STEP_SIZES:
                raise ValueError(f"step size must be one of {STEP_SIZES}, got {size}")
            return KeyAction("step", step_size=size)
        if tgt.startswith("jog:"):
            expr = tgt.split(":", 1)[1]
            if not expr or _DIRECTION_RE.sub("", expr):
                raise ValueError(f"bad jog direction {expr!r}")
            vec = {"X": 0.0, "Y": 0.0, "Z": 0.0}
            for sign, axis in _DIRECTION_RE.findall(expr):
                vec[axis] = 1.0 if sign == "+" else -1.0
            vec["Z"] *= self.z_factor
            return KeyAction("move", direction=(vec["X"], vec["Y"], vec["Z"]))
        if tgt.startswith("command:"):
            return KeyAction("command", commands=self._command_tokens(tgt))
        raise ValueError(f"unknown key target {tgt!r}")

    def map(self, event: KeyEvent) -> KeyAction:
        if event.idle:
            return IDLE
        action = self._actions.get(event.key, UNKNOWN)
        LOG.debug("key 0x%02x -> %s", event.key, action.kind)
        return action
