"""
Creation of listening servers and bound datagram sockets.

Both operations resolve the URI scheme, attempt the OS calls with failures
captured structurally, then either raise SocketError or wrap the socket.
"""

import os
import socket
from typing import Optional, Tuple

from socketry.context import BindContext
from socketry.errors import SocketError
from socketry.server import ResourceDatagramSocket, ResourceSocketServer
from socketry.telemetry import get_telemetry
from socketry.uri import parse_uri, resolve_scheme

_tracer, _logger = get_telemetry("socketry.bind")


def _resolve_local(uri: str, kind: int) -> Tuple[int, object]:
    endpoint = parse_uri(uri)
    if endpoint.scheme == "unix":
        return socket.AF_UNIX, endpoint.path

    if endpoint.port is None:
        raise ValueError(f"Missing port in {uri!r}")

    family, _, _, _, address = socket.getaddrinfo(
        endpoint.host, endpoint.port, type=kind, flags=socket.AI_PASSIVE
    )[0]
    return family, address


def _create_bound_socket(
    uri: str, context: BindContext, kind: int, description: str
) -> socket.socket:
    sock: Optional[socket.socket] = None
    code = 0
    message = ""

    try:
        family, address = _resolve_local(uri, kind)
        sock = socket.socket(family, kind)
        for option in context.to_socket_options(family, kind):
            sock.setsockopt(*option)
        sock.bind(address)
        if kind == socket.SOCK_STREAM:
            sock.listen(context.backlog)
        code = sock.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)
        if code:
            message = os.strerror(code)
    except (OSError, ValueError) as e:
        if sock is not None:
            sock.close()
            sock = None
        code = getattr(e, "errno", None) or 0
        message = getattr(e, "strerror", None) or str(e)

    # A socket may exist alongside a pending error, so both are checked
    if sock is None or code:
        if sock is not None:
            sock.close()
        _logger.debug(f"{description}.bind_failed", uri=uri, code=code, error=message)
        raise SocketError(
            f"Could not create {description} {uri}: [Error: #{code}] {message}",
            code=code,
            uri=uri,
            strerror=message,
        )

    return sock


def listen(uri: str, context: Optional[BindContext] = None) -> ResourceSocketServer:
    """Listen for client connections on the given address.

    TLS is not negotiated here; accepted clients carry ``context.tls_context``
    for a later upgrade.

    Args:
        uri: URI in ``scheme://host:port`` format. TCP is assumed if no scheme
            is present; ``unix:///path`` binds a unix domain socket.
        context: Options for the listening socket.

    Returns:
        The listening server.

    Raises:
        ConfigurationError: If a scheme other than tcp or unix is given.
        SocketError: If binding to the address failed.
    """
    context = context or BindContext()
    uri = resolve_scheme(uri, "tcp", ("tcp", "unix"), "server creation")

    with _tracer.start_as_current_span("socketry.listen", attributes={"uri": uri}):
        sock = _create_bound_socket(uri, context, socket.SOCK_STREAM, "server")
        server = ResourceSocketServer(sock, context.chunk_size, context.tls_context)
        _logger.info("server.listening", uri=uri, address=server.address)

    return server


def bind(uri: str, context: Optional[BindContext] = None) -> ResourceDatagramSocket:
    """Create a datagram socket bound to the given address.

    Args:
        uri: URI in ``scheme://host:port`` format. UDP is assumed if no scheme
            is present.
        context: Options for the bound socket.

    Returns:
        The bound datagram socket.

    Raises:
        ConfigurationError: If a scheme other than udp is given.
        SocketError: If binding to the address failed.
    """
    context = context or BindContext()
    uri = resolve_scheme(uri, "udp", ("udp",), "datagram creation")

    with _tracer.start_as_current_span("socketry.bind", attributes={"uri": uri}):
        sock = _create_bound_socket(uri, context, socket.SOCK_DGRAM, "datagram")
        datagram = ResourceDatagramSocket(sock, context.chunk_size)
        _logger.info("datagram.bound", uri=uri, address=datagram.address)

    return datagram
