"""Option files and their merge with command-line arguments

Option files are YAML mappings of `Options` field names. They are read in
order, later files overriding earlier ones; any value given on the command
line overrides them all.
"""
import dataclasses
import logging
import os

import yaml

from core.errors import ConfigError
from core.state import Options

LOG = logging.getLogger("cncpad.config")

DEFAULT_CONFIG_PATHS = ("/etc/cncpad.yaml", "~/.cncpad.yaml")
SIMULATED_PORT = "dummyPort"
JOG_MODES = ("continuous", "step")

_INT_FIELDS = {"baudrate", "socket_port", "jog_interval_ms", "verbose"}
_HEX_FIELDS = {"vendor_id", "product_id"}
_FLOAT_FIELDS = {
    "z_probe_thickness", "default_feedrate", "z_speed_factor", "probe_distance",
    "probe_feedrate", "retraction_distance", "z_safe_pos",
}
_BOOL_FIELDS = {"simulate"}


def load_yaml_options(path) -> dict:
    path = os.path.expanduser(path)
    if not os.path.exists(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"cannot read options file {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"options file {path} must contain a mapping")
    LOG.info("loaded options from %s", path)
    return data


def file_options(paths=DEFAULT_CONFIG_PATHS) -> dict:
    merged = {}
    for path in paths:
        if path:
            merged.update(load_yaml_options(path))
    return merged


def _coerce(name, value):
    try:
        if name in _HEX_FIELDS:
            return value if isinstance(value, int) else int(str(value), 0)
        if name in _INT_FIELDS:
            return int(value)
        if name in _FLOAT_FIELDS:
            return float(value)
        if name in _BOOL_FIELDS:
            if isinstance(value, str):
                return value.strip().lower() in ("1", "true", "yes", "on")
            return bool(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"bad value for {name}: {value!r}") from e
    return value


def build_options(cli: dict, files: dict) -> Options:
    known = {f.name for f in dataclasses.fields(Options)}
    merged = {}
    for key, value in files.items():
        name = str(key).replace("-", "_")
        if name not in known:
            LOG.warning("ignoring unknown option %r in options file", key)
            continue
        merged[name] = value
    for name, value in cli.items():
        if name in known and value is not None:
            merged[name] = value
    options = Options(**{name: _coerce(name, value) for name, value in merged.items() if value is not None})

    if options.jog_mode not in JOG_MODES:
        raise ConfigError(f"jog mode must be one of {JOG_MODES}, got {options.jog_mode!r}")
    if options.jog_interval_ms <= 0:
        raise ConfigError("jog interval must be positive")
    if not options.port:
        if not options.simulate:
            raise ConfigError("no serial port specified; use --port (see --list)")
        LOG.info("simulating with dummy port %s", SIMULATED_PORT)
        options.port = SIMULATED_PORT
    return options


def load_options(cli: dict, config_path=None) -> Options:
    paths = list(DEFAULT_CONFIG_PATHS)
    if config_path:
        if not os.path.exists(os.path.expanduser(config_path)):
            raise ConfigError(f"options file {config_path} not found")
        paths.append(config_path)
    return build_options(cli, file_options(paths))
