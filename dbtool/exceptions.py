"""
Exception hierarchy for dbtool.

Every error carries the process exit code the CLI reports for it.
"""

from typing import Optional


class DbToolError(Exception):
    """Base class for all dbtool errors."""
    exit_code = 1


class ConfigurationError(DbToolError):
    """Invalid or conflicting options."""
    exit_code = 1


class ConnectionResolutionError(DbToolError):
    """The requested transport could not be set up."""
    exit_code = 3


class ContainerNotFoundError(ConnectionResolutionError):
    """No running container matches the requested name or id."""

    def __init__(self, container: str):
        super().__init__(f"Docker container '{container}' not found")
        self.container = container


class CommandExecutionError(DbToolError):
    """An external command exited with a non-zero status."""
    exit_code = 4

    def __init__(
        self,
        message: str,
        returncode: Optional[int] = None,
        stderr: str = ""
    ):
        detail = stderr.strip()
        super().__init__(f"{message}: {detail}" if detail else message)
        self.returncode = returncode
        self.stderr = stderr


class QueryParseError(CommandExecutionError):
    """mysql --xml output could not be parsed."""


class SelfUpdateError(DbToolError):
    """Base class for self-update failures."""
    exit_code = 5


class NetworkError(SelfUpdateError):
    """Release API or download request failed."""


class AssetNotFoundError(SelfUpdateError):
    """The latest release has no asset for this platform."""


class UpdateApplyError(SelfUpdateError):
    """The downloaded binary could not replace the running executable."""
