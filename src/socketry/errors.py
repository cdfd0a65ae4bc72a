"""
Error hierarchy for socketry.

Configuration errors are caller bugs and are raised before any OS call.
Socket errors carry the OS error code and message of the failed call.
"""

from contextlib import contextmanager
from typing import Iterator, Optional


class SocketryError(Exception):
    """Base exception for all socketry errors."""


class ConfigurationError(SocketryError):
    """Raised for disallowed URI schemes or invalid context values."""


class SocketError(SocketryError):
    """Raised when an OS-level socket operation fails."""

    def __init__(
        self,
        message: str,
        code: int = 0,
        uri: Optional[str] = None,
        strerror: str = "",
    ):
        super().__init__(message)
        self.code = code
        self.uri = uri
        self.strerror = strerror


class ConnectError(SocketError):
    """Raised when an outbound connection cannot be established."""


class ClosedError(SocketError):
    """Raised when writing to a socket that has been closed or ended."""


class OperationCancelledError(SocketryError):
    """Raised when the caller's cancellation fires before completion.

    Args:
        reason: Optional exception describing why the operation was cancelled,
            e.g. a TimeoutError for timeout based cancellations.
    """

    def __init__(self, reason: Optional[BaseException] = None):
        message = "The operation was cancelled"
        if reason is not None:
            message += f": {reason}"
        super().__init__(message)
        self.reason = reason


@contextmanager
def translate_os_errors(message: str, uri: Optional[str] = None) -> Iterator[None]:
    """Convert any OSError raised inside the block into a SocketError.

    Args:
        message: Prefix for the resulting error message.
        uri: Optional URI to attach to the error.

    Raises:
        SocketError: If the block raised an OSError.
    """
    try:
        yield
    except OSError as exc:
        code = exc.errno or 0
        strerror = exc.strerror or str(exc)
        raise SocketError(
            f"{message}. Errno: {code}; {strerror}", code=code, uri=uri, strerror=strerror
        ) from exc
