"""
Listening server and datagram socket wrappers.
"""

import socket
from typing import Any, Optional, Tuple, Union

import anyio

from socketry.concurrency import Cancellation, open_cancel_scope
from socketry.config import DEFAULT_CHUNK_SIZE
from socketry.errors import ClosedError, SocketError
from socketry.resource_socket import ResourceBase, ResourceSocket
from socketry.uri import format_address, parse_address


class ResourceSocketServer(ResourceBase):
    """A listening stream socket producing ResourceSocket clients.

    Args:
        sock: A bound and listening OS socket.
        chunk_size: Chunk size given to accepted clients.
        tls_context: Server TLS settings handed to accepted clients.
    """

    def __init__(
        self,
        sock: socket.socket,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        tls_context: Any = None,
    ):
        super().__init__(sock, chunk_size)
        self.tls_context = tls_context

    @property
    def address(self) -> str:
        return self._local_address

    async def accept(self, cancellation: Optional[Cancellation] = None) -> Optional[ResourceSocket]:
        """Wait for the next client connection.

        Returns:
            The accepted client, or None once the server is closed.

        Raises:
            SocketError: If the OS reports an accept failure.
            OperationCancelledError: If the cancellation is requested.
        """
        if self._closed:
            return None

        with open_cancel_scope(cancellation):
            while True:
                try:
                    client, _ = self._socket.accept()
                except BlockingIOError:
                    try:
                        await self._wait(anyio.wait_readable)
                    except anyio.ClosedResourceError:
                        return None
                    continue
                except OSError as e:
                    if self._closed:
                        return None
                    raise SocketError(
                        f"Failed to accept client on {self.address}: {e.strerror or e}",
                        code=e.errno or 0,
                        strerror=e.strerror or "",
                    ) from e

                return ResourceSocket.from_client_socket(
                    client, chunk_size=self._chunk_size, tls_context=self.tls_context
                )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} address={self.address!r} closed={self._closed}>"


Address = Union[str, Tuple[str, int]]


class ResourceDatagramSocket(ResourceBase):
    """A bound datagram socket."""

    @property
    def address(self) -> str:
        return self._local_address

    async def receive(
        self, cancellation: Optional[Cancellation] = None, limit: Optional[int] = None
    ) -> Optional[Tuple[str, bytes]]:
        """Receive the next datagram.

        Args:
            cancellation: Optional cancellation aborting the pending receive.
            limit: Maximum datagram size, the chunk size by default.

        Returns:
            A ``(sender address, payload)`` tuple, or None once the socket is closed.
        """
        if self._closed:
            return None

        limit = limit or self._chunk_size
        with open_cancel_scope(cancellation):
            while True:
                try:
                    data, sender = self._socket.recvfrom(limit)
                except BlockingIOError:
                    try:
                        await self._wait(anyio.wait_readable)
                    except anyio.ClosedResourceError:
                        return None
                    continue
                except OSError as e:
                    if self._closed:
                        return None
                    raise SocketError(
                        f"Failed to receive datagram on {self.address}: {e.strerror or e}",
                        code=e.errno or 0,
                        strerror=e.strerror or "",
                    ) from e

                return format_address(self._socket.family, sender), data

    async def send(self, address: Address, data: bytes) -> None:
        """Send a datagram to ``address`` (``"host:port"`` or a ``(host, port)`` tuple).

        Raises:
            ClosedError: If the socket is closed.
            SocketError: If the OS reports a send failure.
        """
        if self._closed:
            raise ClosedError("The datagram socket is closed")

        if isinstance(address, str):
            endpoint = parse_address(address)
            address = (endpoint.host, endpoint.port)

        while True:
            try:
                self._socket.sendto(data, address)
                return
            except BlockingIOError:
                try:
                    await self._wait(anyio.wait_writable)
                except anyio.ClosedResourceError as e:
                    raise ClosedError("The datagram socket is closed") from e
            except OSError as e:
                if self._closed:
                    raise ClosedError("The datagram socket is closed") from e
                raise SocketError(
                    f"Failed to send datagram to {address}: {e.strerror or e}",
                    code=e.errno or 0,
                    strerror=e.strerror or "",
                ) from e

    def __repr__(self) -> str:
        return f"<{type(self).__name__} address={self.address!r} closed={self._closed}>"
