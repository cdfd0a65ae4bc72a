"""
Socket wrappers over non-blocking OS sockets.

Each wrapper owns its OS socket exclusively from construction on and closes it
at most once. Blocking operations suspend the calling task until the OS
reports readiness, through ``anyio.wait_readable`` / ``anyio.wait_writable``.
"""

import socket
from types import TracebackType
from typing import Any, Optional, Protocol, Type, runtime_checkable

import anyio

from socketry.concurrency import Cancellation, open_cancel_scope
from socketry.config import DEFAULT_CHUNK_SIZE
from socketry.errors import ClosedError, SocketError
from socketry.uri import format_address


@runtime_checkable
class Socket(Protocol):
    """A duplex byte stream."""

    async def read(
        self, cancellation: Optional[Cancellation] = None, limit: Optional[int] = None
    ) -> Optional[bytes]:
        """Read the next chunk, or None once the stream is closed."""
        ...

    async def write(self, data: bytes) -> None:
        """Write all of ``data`` to the stream."""
        ...

    def end(self) -> None:
        """Close the writing side of the stream."""
        ...

    def close(self) -> None:
        """Close the stream."""
        ...

    def is_closed(self) -> bool:
        ...

    @property
    def local_address(self) -> str:
        ...

    @property
    def remote_address(self) -> str:
        ...


class ResourceBase:
    """Shared ownership and readiness handling for wrapped OS sockets."""

    def __init__(self, sock: socket.socket, chunk_size: int = DEFAULT_CHUNK_SIZE):
        sock.setblocking(False)
        self._socket = sock
        self._chunk_size = chunk_size
        self._closed = False
        self._waiters = 0
        self._local_address = self._address_of(sock.getsockname)

    def _address_of(self, getter) -> str:
        try:
            return format_address(self._socket.family, getter())
        except OSError:
            return ""

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def local_address(self) -> str:
        return self._local_address

    def fileno(self) -> int:
        return self._socket.fileno()

    def is_closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Close the underlying socket. Calling it again has no effect.

        Tasks waiting on the socket are woken and observe the closure.
        """
        if self._closed:
            return

        self._closed = True
        if self._waiters:
            anyio.notify_closing(self._socket)
        self._socket.close()

    async def _wait(self, waiter) -> None:
        self._waiters += 1
        try:
            await waiter(self._socket)
        finally:
            self._waiters -= 1


class ResourceSocket(ResourceBase):
    """A connected stream socket.

    Args:
        sock: A connected OS socket; it is switched to non-blocking mode.
        chunk_size: Default maximum number of bytes returned by ``read``.
        tls_context: TLS settings kept for a later upgrade of the connection.
    """

    def __init__(
        self,
        sock: socket.socket,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        tls_context: Any = None,
    ):
        super().__init__(sock, chunk_size)
        self.tls_context = tls_context
        self._remote_address = self._address_of(sock.getpeername)
        self._readable = True
        self._writable = True

    @classmethod
    def from_client_socket(
        cls,
        sock: socket.socket,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        tls_context: Any = None,
    ) -> "ResourceSocket":
        return cls(sock, chunk_size=chunk_size, tls_context=tls_context)

    @property
    def remote_address(self) -> str:
        return self._remote_address

    def is_readable(self) -> bool:
        return self._readable and not self._closed

    def is_writable(self) -> bool:
        return self._writable and not self._closed

    async def read(
        self, cancellation: Optional[Cancellation] = None, limit: Optional[int] = None
    ) -> Optional[bytes]:
        """Read up to ``limit`` bytes (the chunk size by default).

        Args:
            cancellation: Optional cancellation aborting the pending read.
            limit: Maximum number of bytes to return.

        Returns:
            The bytes read, or None at end of stream or once the socket is closed.

        Raises:
            SocketError: If the OS reports a read failure.
            OperationCancelledError: If the cancellation is requested.
        """
        if not self.is_readable():
            return None

        limit = limit or self._chunk_size
        with open_cancel_scope(cancellation):
            while True:
                try:
                    data = self._socket.recv(limit)
                except BlockingIOError:
                    try:
                        await self._wait(anyio.wait_readable)
                    except anyio.ClosedResourceError:
                        return None
                    continue
                except OSError as e:
                    if self._closed:
                        return None
                    self.close()
                    raise SocketError(
                        f"Failed to read from socket: {e.strerror or e}",
                        code=e.errno or 0,
                        strerror=e.strerror or "",
                    ) from e

                if not data:
                    self._readable = False
                    if not self._writable:
                        self.close()
                    return None
                return data

    async def write(self, data: bytes) -> None:
        """Write all of ``data``, suspending while the OS buffer is full.

        Raises:
            ClosedError: If the socket is closed or its writing side ended.
            SocketError: If the OS reports a write failure.
        """
        if not self.is_writable():
            raise ClosedError("The socket was closed before writing completed")

        view = memoryview(data)
        while view:
            try:
                sent = self._socket.send(view)
            except BlockingIOError:
                try:
                    await self._wait(anyio.wait_writable)
                except anyio.ClosedResourceError as e:
                    raise ClosedError("The socket was closed before writing completed") from e
                continue
            except OSError as e:
                if self._closed:
                    raise ClosedError("The socket was closed before writing completed") from e
                self.close()
                raise SocketError(
                    f"Failed to write to socket: {e.strerror or e}",
                    code=e.errno or 0,
                    strerror=e.strerror or "",
                ) from e
            view = view[sent:]

    def end(self) -> None:
        """Shut down the writing side; the peer reads end of stream."""
        if not self.is_writable():
            return

        self._writable = False
        try:
            self._socket.shutdown(socket.SHUT_WR)
        except OSError:
            # Peer already gone
            self.close()
            return

        if not self._readable:
            self.close()

    def close(self) -> None:
        self._readable = False
        self._writable = False
        super().close()

    async def __aenter__(self) -> "ResourceSocket":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"<{type(self).__name__} local={self._local_address!r} "
            f"remote={self._remote_address!r} closed={self._closed}>"
        )
