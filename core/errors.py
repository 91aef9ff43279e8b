"""Exception types raised by configuration and device collaborators"""


class PendantError(Exception):
    pass


class ConfigError(PendantError):
    pass


class DeviceNotFoundError(PendantError):
    pass
