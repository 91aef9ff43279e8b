"""Controller dialect registry"""
from core.errors import ConfigError
from gcode.grbl import GrblAdapter
from gcode.marlin import MarlinAdapter

ADAPTERS = {
    "grbl": GrblAdapter,
    "marlin": MarlinAdapter,
}


def create_adapter(options, connection, logger=None):
    key = (options.controller_type or "").strip().lower()
    try:
        cls = ADAPTERS[key]
    except KeyError:
        raise ConfigError(
            f"controller type {options.controller_type!r} unknown; expected one of {sorted(ADAPTERS)}"
        ) from None
    return cls(connection, options, logger=logger)
