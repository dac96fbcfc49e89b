"""Error taxonomy for db-tunnel.

Every error is terminal: the CLI reports it together with the step that
failed and exits non-zero. Nothing below the CLI catches these.
"""


class DbTunnelError(Exception):
    """Base class for all db-tunnel failures."""

    step: str = "db-tunnel"


class ConfigNotFound(DbTunnelError):
    """Configuration file is missing or unreadable."""

    step = "load config"


class ConfigParseError(DbTunnelError):
    """Configuration file does not match the expected schema."""

    step = "load config"


class ProfileNotFound(DbTunnelError):
    """Requested profile is not present in the configuration."""

    step = "lookup profile"


class SecretFetchError(DbTunnelError):
    """Secret store could not return the requested secret."""

    step = "fetch secret"


class SecretWriteError(DbTunnelError):
    """Secret store rejected the write."""

    step = "store secret"


class TunnelError(DbTunnelError):
    """SSH tunnel failed to start or died before the forward was ready."""

    step = "open tunnel"


class ClientError(DbTunnelError):
    """SQL client failed to start or exited non-zero."""

    step = "launch client"

    def __init__(self, message: str, returncode: int | None = None):
        super().__init__(message)
        self.returncode = returncode


__all__ = [
    "ClientError",
    "ConfigNotFound",
    "ConfigParseError",
    "DbTunnelError",
    "ProfileNotFound",
    "SecretFetchError",
    "SecretWriteError",
    "TunnelError",
]
