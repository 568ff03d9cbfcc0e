"""Exception hierarchy for sshdock."""


class SshdockError(Exception):
    """Base class for all sshdock errors."""


class ConfigError(SshdockError, ValueError):
    """Configuration is missing, unparseable, or unusable.

    The only error allowed to terminate the process, and only at startup.
    """


class CommandError(SshdockError):
    """An external command (nmcli, systemctl) could not be run or failed."""


class TransportError(SshdockError):
    """Querying or acquiring an OS-level facility failed."""
