"""
Immutable socket contexts.

A context carries the options used to create a socket. Contexts are never
mutated; the ``with_*`` methods return modified copies.
"""

import dataclasses
import os
import socket
from dataclasses import dataclass, field
from typing import List, NamedTuple, Optional

from socketry.config import get_config
from socketry.errors import ConfigurationError
from socketry.tls import ClientTlsContext, ServerTlsContext

_INET_FAMILIES = (socket.AF_INET, socket.AF_INET6)


class SocketOption(NamedTuple):
    """Arguments for a single ``socket.setsockopt`` call."""

    level: int
    name: int
    value: int


def _default(key: str):
    return field(default_factory=lambda: get_config(key))


def _check_chunk_size(chunk_size: int) -> None:
    if chunk_size < 1:
        raise ConfigurationError(f"Invalid chunk size ({chunk_size}), must be greater than 0")


@dataclass(frozen=True)
class BindContext:
    """Options for listening servers and bound datagram sockets."""

    chunk_size: int = _default("chunk_size")
    backlog: int = _default("backlog")
    reuse_address: bool = True
    reuse_port: bool = False
    broadcast: bool = False
    tcp_no_delay: bool = False
    tls_context: Optional[ServerTlsContext] = None

    def __post_init__(self):
        _check_chunk_size(self.chunk_size)
        if self.backlog < 0:
            raise ConfigurationError(f"Invalid backlog ({self.backlog}), must be 0 or greater")

    def with_chunk_size(self, chunk_size: int) -> "BindContext":
        return dataclasses.replace(self, chunk_size=chunk_size)

    def with_backlog(self, backlog: int) -> "BindContext":
        return dataclasses.replace(self, backlog=backlog)

    def with_reuse_address(self, enabled: bool = True) -> "BindContext":
        return dataclasses.replace(self, reuse_address=enabled)

    def with_reuse_port(self, enabled: bool = True) -> "BindContext":
        return dataclasses.replace(self, reuse_port=enabled)

    def with_broadcast(self, enabled: bool = True) -> "BindContext":
        return dataclasses.replace(self, broadcast=enabled)

    def with_tcp_no_delay(self, enabled: bool = True) -> "BindContext":
        return dataclasses.replace(self, tcp_no_delay=enabled)

    def with_tls_context(self, tls_context: Optional[ServerTlsContext]) -> "BindContext":
        return dataclasses.replace(self, tls_context=tls_context)

    def to_socket_options(self, family: int, kind: int) -> List[SocketOption]:
        """Translate the context into ``setsockopt`` arguments for a new socket.

        Args:
            family: Address family of the socket, e.g. ``socket.AF_INET``.
            kind: ``socket.SOCK_STREAM`` or ``socket.SOCK_DGRAM``.

        Returns:
            The options to apply before binding.
        """
        options = []
        inet = family in _INET_FAMILIES

        # SO_REUSEADDR on Windows allows stealing a bound port
        if self.reuse_address and inet and os.name != "nt":
            options.append(SocketOption(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1))
        if self.reuse_port and inet and hasattr(socket, "SO_REUSEPORT"):
            options.append(SocketOption(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1))
        if self.broadcast and kind == socket.SOCK_DGRAM:
            options.append(SocketOption(socket.SOL_SOCKET, socket.SO_BROADCAST, 1))
        if self.tcp_no_delay and inet and kind == socket.SOCK_STREAM:
            options.append(SocketOption(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1))

        return options


@dataclass(frozen=True)
class ConnectContext:
    """Options for outbound connections."""

    connect_timeout: float = _default("connect_timeout")
    max_attempts: int = _default("max_attempts")
    bind_to: Optional[str] = None
    tcp_no_delay: bool = False
    dns_type_restriction: Optional[int] = None
    chunk_size: int = _default("chunk_size")
    tls_context: Optional[ClientTlsContext] = None

    def __post_init__(self):
        _check_chunk_size(self.chunk_size)
        if self.connect_timeout <= 0:
            raise ConfigurationError(
                f"Invalid connect timeout ({self.connect_timeout}), must be greater than 0"
            )
        if self.max_attempts < 1:
            raise ConfigurationError(
                f"Invalid max attempts ({self.max_attempts}), must be greater than 0"
            )
        if self.dns_type_restriction not in (None, *_INET_FAMILIES):
            raise ConfigurationError("DNS type restriction must be AF_INET, AF_INET6 or None")

    def with_connect_timeout(self, timeout: float) -> "ConnectContext":
        return dataclasses.replace(self, connect_timeout=timeout)

    def with_max_attempts(self, attempts: int) -> "ConnectContext":
        return dataclasses.replace(self, max_attempts=attempts)

    def with_bind_to(self, bind_to: Optional[str]) -> "ConnectContext":
        return dataclasses.replace(self, bind_to=bind_to)

    def with_tcp_no_delay(self, enabled: bool = True) -> "ConnectContext":
        return dataclasses.replace(self, tcp_no_delay=enabled)

    def with_dns_type_restriction(self, family: Optional[int]) -> "ConnectContext":
        return dataclasses.replace(self, dns_type_restriction=family)

    def with_chunk_size(self, chunk_size: int) -> "ConnectContext":
        return dataclasses.replace(self, chunk_size=chunk_size)

    def with_tls_context(self, tls_context: Optional[ClientTlsContext]) -> "ConnectContext":
        return dataclasses.replace(self, tls_context=tls_context)

    def to_socket_options(self, family: int) -> List[SocketOption]:
        """Translate the context into ``setsockopt`` arguments for a stream socket."""
        if self.tcp_no_delay and family in _INET_FAMILIES:
            return [SocketOption(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)]
        return []
