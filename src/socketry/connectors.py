"""
Connector strategies turning a URI into a connected socket.
"""

import errno
import ipaddress
import os
import socket
from typing import Awaitable, Callable, List, Optional, Protocol, Tuple, runtime_checkable

import anyio

from socketry.concurrency import Cancellation, open_cancel_scope
from socketry.context import ConnectContext
from socketry.errors import ConfigurationError, ConnectError
from socketry.resource_socket import ResourceSocket
from socketry.telemetry import get_telemetry
from socketry.uri import Endpoint, format_address, parse_address, parse_uri, resolve_scheme

Target = Tuple[int, object]
Resolver = Callable[..., Awaitable[list]]

_CONNECT_PENDING = {errno.EINPROGRESS, errno.EWOULDBLOCK, errno.EAGAIN}


@runtime_checkable
class Connector(Protocol):
    """Strategy establishing outbound connections."""

    async def connect(
        self,
        uri: str,
        context: Optional[ConnectContext] = None,
        cancellation: Optional[Cancellation] = None,
    ) -> ResourceSocket:
        """Connect to ``uri``.

        Raises:
            ConnectError: If the connection cannot be established.
            OperationCancelledError: If the cancellation is requested first.
        """
        ...


class DnsConnector:
    """Default connector resolving host names before connecting.

    Every resolved address is tried in order, each with its own connect
    timeout; the whole address list is retried up to ``max_attempts`` times.

    Args:
        resolver: Coroutine function with the signature of
            ``anyio.getaddrinfo``, used for host name resolution.
    """

    def __init__(self, resolver: Optional[Resolver] = None):
        self._resolver = resolver or anyio.getaddrinfo
        self._tracer, self._logger = get_telemetry("socketry.connector")

    async def connect(
        self,
        uri: str,
        context: Optional[ConnectContext] = None,
        cancellation: Optional[Cancellation] = None,
    ) -> ResourceSocket:
        context = context or ConnectContext()
        uri = resolve_scheme(uri, "tcp", ("tcp", "unix"), "connecting")

        with self._tracer.start_as_current_span("socketry.connect", attributes={"uri": uri}):
            with open_cancel_scope(cancellation):
                return await self._connect(uri, context)

    async def _connect(self, uri: str, context: ConnectContext) -> ResourceSocket:
        try:
            endpoint = parse_uri(uri)
        except ValueError as e:
            raise ConnectError(f"Invalid URI {uri}: {e}", uri=uri) from e

        targets = await self._resolve(endpoint, uri, context)

        failures: List[str] = []
        for attempt in range(1, context.max_attempts + 1):
            for family, address in targets:
                readable = format_address(family, address)
                try:
                    with anyio.fail_after(context.connect_timeout):
                        sock = await self._open(family, address, context)
                except TimeoutError:
                    reason = f"connection to {readable} timed out after {context.connect_timeout}s"
                except OSError as e:
                    reason = f"connection to {readable} failed: {e.strerror or e}"
                else:
                    self._logger.debug("connect.established", uri=uri, address=readable, attempt=attempt)
                    return ResourceSocket.from_client_socket(
                        sock, chunk_size=context.chunk_size, tls_context=context.tls_context
                    )

                failures.append(reason)
                self._logger.debug("connect.attempt_failed", uri=uri, attempt=attempt, reason=reason)

        self._logger.warning("connect.failed", uri=uri, attempts=context.max_attempts)
        raise ConnectError(
            f"Connection to {uri} failed after {context.max_attempts} attempt(s); "
            f"previous attempts: {'; '.join(failures)}",
            uri=uri,
        )

    async def _resolve(self, endpoint: Endpoint, uri: str, context: ConnectContext) -> List[Target]:
        if endpoint.scheme == "unix":
            return [(socket.AF_UNIX, endpoint.path)]

        if endpoint.port is None:
            raise ConfigurationError(f"A port is required to connect to {uri}")

        try:
            ip = ipaddress.ip_address(endpoint.host)
        except ValueError:
            pass
        else:
            family = socket.AF_INET6 if ip.version == 6 else socket.AF_INET
            if context.dns_type_restriction not in (None, family):
                raise ConnectError(f"Address {endpoint.host} does not match the DNS type restriction", uri=uri)
            return [(family, (endpoint.host, endpoint.port))]

        try:
            infos = await self._resolver(
                endpoint.host,
                endpoint.port,
                family=context.dns_type_restriction or socket.AF_UNSPEC,
                type=socket.SOCK_STREAM,
            )
        except OSError as e:
            raise ConnectError(
                f"DNS resolution for {endpoint.host} failed: {e.strerror or e}",
                code=e.errno or 0,
                uri=uri,
            ) from e

        targets: List[Target] = []
        for family, _, _, _, address in infos:
            target = (family, address)
            if target not in targets:
                targets.append(target)

        if not targets:
            raise ConnectError(f"DNS resolution for {endpoint.host} returned no addresses", uri=uri)
        return targets

    async def _open(self, family: int, address, context: ConnectContext) -> socket.socket:
        sock = socket.socket(family, socket.SOCK_STREAM)
        try:
            sock.setblocking(False)
            for option in context.to_socket_options(family):
                sock.setsockopt(*option)
            if context.bind_to and family != getattr(socket, "AF_UNIX", None):
                local = parse_address(context.bind_to)
                sock.bind((local.host, local.port or 0))

            code = sock.connect_ex(address)
            if code in _CONNECT_PENDING:
                await anyio.wait_writable(sock)
                code = sock.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)
            if code:
                raise OSError(code, os.strerror(code))
        except BaseException:
            sock.close()
            raise

        return sock
