"""Error types shared across wacli.

Everything a user can meaningfully act on derives from WacliError. The daemon
turns these into ``success=false`` responses; the CLI prints them and exits 1.
"""

from typing import Optional


class WacliError(Exception):
    """Base class for expected, user-facing failures."""


class ConfigError(WacliError):
    """Configuration is missing or invalid."""


class ValidationError(WacliError):
    """A request or argument failed validation."""


class UnknownCommandError(ValidationError):
    """A daemon request named a command outside the supported set."""

    def __init__(self, command: str):
        self.command = command
        super().__init__(f"unknown command: {command}")


class SessionError(WacliError):
    """The messaging session is unavailable or rejected an operation."""


class StoreLockedError(WacliError):
    """Another process holds the exclusive store lock."""

    def __init__(self, store_dir: str, holder_pid: Optional[int] = None):
        self.store_dir = store_dir
        self.holder_pid = holder_pid
        holder = f" (pid {holder_pid})" if holder_pid else ""
        super().__init__(
            f"store {store_dir} is locked by another wacli process{holder}; "
            "is `wacli sync` running?"
        )
