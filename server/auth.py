"""Access tokens for the control server's socket API"""
import json
import logging
import os
import re
import time

import jwt

from core.errors import ConfigError

LOG = logging.getLogger("cncpad.auth")

SIMULATED_SECRET = "dummySecret"
TOKEN_PAYLOAD = {"id": "", "name": "cncpad"}

_UNITS = {"s": 1, "m": 60, "h": 3600, "d": 86400, "w": 604800}
_LIFETIME_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([smhdw]?)\s*$", re.IGNORECASE)


def parse_lifetime(text) -> int:
    """'30d' -> seconds. A bare number is seconds."""
    m = _LIFETIME_RE.match(str(text))
    if not m:
        raise ConfigError(f"bad access token lifetime {text!r}")
    value, unit = m.groups()
    return int(float(value) * _UNITS[(unit or "s").lower()])


def generate_access_token(secret: str, lifetime="30d", payload=None, now=None) -> str:
    issued = int(time.time() if now is None else now)
    claims = dict(TOKEN_PAYLOAD if payload is None else payload)
    claims["iat"] = issued
    claims["exp"] = issued + parse_lifetime(lifetime)
    return jwt.encode(claims, secret, algorithm="HS256")


def cncrc_path() -> str:
    return os.path.join(os.path.expanduser("~"), ".cncrc")


def resolve_secret(options, rc_path=None) -> str:
    """Find the server secret: options, then $CNCJS_SECRET, then ~/.cncrc."""
    if options.secret:
        return options.secret
    env = os.environ.get("CNCJS_SECRET")
    if env:
        return env
    path = rc_path or cncrc_path()
    if not os.path.exists(path):
        if options.simulate:
            LOG.info("no secret config file at %s; simulating with a dummy secret", path)
            return SIMULATED_SECRET
        raise ConfigError(f"no secret config file at {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            secret = json.load(f).get("secret")
    except (OSError, ValueError) as e:
        raise ConfigError(f"cannot read secret from {path}: {e}") from e
    if not secret:
        if options.simulate:
            return SIMULATED_SECRET
        raise ConfigError(f"{path} has no 'secret' entry")
    LOG.info("found secret config file at %s", path)
    return secret
