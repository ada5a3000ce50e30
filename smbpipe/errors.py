"""
Exceptions raised by smbpipe.

smbclient has no explicit success marker, so failures are derived from the text it
prints. Every exception carries the path that caused it (where known) and the raw
output lines it was classified from, which makes unrecognized failures diagnosable.
"""

from typing import Iterable, List, Optional


class Error(Exception):
    """Base class of all smbpipe errors."""

    def __init__(
        self, message: str = "", path: str = "", output: Optional[Iterable[str]] = None
    ) -> None:
        """Instantiate the error with the offending path and raw client output."""
        super().__init__(message or path)

        self.message = message
        self.path = path
        self.output: List[str] = list(output or [])

    def __str__(self) -> str:
        if self.message and self.path:
            return f"{self.message}: {self.path}"
        else:
            return self.message or self.path


class ConnectionError(Error):
    """The client could not be started, authenticated, or died during a call."""


class AuthenticationError(ConnectionError):
    """The server rejected the credentials."""


class InvalidHostError(ConnectionError):
    """The host or share could not be reached."""


class CommandError(Error):
    """A command failed for a reason without a more specific classification."""


class NotFoundError(CommandError):
    """The path does not exist."""


class AlreadyExistsError(CommandError):
    """The target path already exists."""


class AccessDeniedError(CommandError):
    """Permission to access the path was denied."""


class NotEmptyError(CommandError):
    """The directory still contains entries."""


class InvalidTypeError(CommandError):
    """The path exists but is of the wrong kind (file vs. directory)."""
