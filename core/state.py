"""State models and lightweight DTOs"""
import math
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class Modifiers:
    l_control: bool = False
    l_shift: bool = False
    l_alt: bool = False
    l_meta: bool = False
    r_control: bool = False
    r_shift: bool = False
    r_alt: bool = False
    r_meta: bool = False


@dataclass(frozen=True)
class KeyEvent:
    key: int = 0
    modifiers: Modifiers = field(default_factory=Modifiers)

    @property
    def idle(self) -> bool:
        return self.key == 0


@dataclass
class MotionIntent:
    dx: float = 0.0  # mm per tick
    dy: float = 0.0
    dz: float = 0.0

    def is_zero(self) -> bool:
        return self.dx == 0 and self.dy == 0 and self.dz == 0

    def distance(self) -> float:
        return math.sqrt(self.dx * self.dx + self.dy * self.dy + self.dz * self.dz)


@dataclass
class JogState:
    step_size: float = 1.0
    previous_key: Optional[int] = None
    jog_active: bool = False
    ack_pending: bool = False
    acks_expected: int = 0  # lines of the last jog still waiting for "ok"


@dataclass
class ConnectionState:
    device_attached: bool = False
    socket_connected: bool = False
    serial_open: bool = False


@dataclass
class Options:
    port: str = ""
    baudrate: int = 115200
    controller_type: str = "Grbl"
    secret: Optional[str] = None
    socket_address: str = "localhost"
    socket_port: int = 8000
    access_token_lifetime: str = "30d"
    vendor_id: Optional[int] = None
    product_id: Optional[int] = None
    z_probe_thickness: float = 19.5
    default_feedrate: float = 2000.0
    simulate: bool = False
    verbose: int = 0
    jog_interval_ms: int = 150
    jog_mode: str = "continuous"
    z_speed_factor: float = 0.5
    probe_distance: float = 50.0
    probe_feedrate: float = 120.0
    retraction_distance: float = 3.0
    z_safe_pos: float = -5.0
    profile: Optional[str] = None
