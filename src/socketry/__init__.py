"""
socketry: socket establishment on top of AnyIO.

Turns a URI and a context into a listening server, a bound datagram socket,
an outbound connection or a connected local socket pair.
"""

from socketry.binding import bind, listen
from socketry.concurrency import (
    Cancellation,
    CompositeCancellation,
    DeferredCancellation,
    NullCancellation,
    TimeoutCancellation,
)
from socketry.config import DEFAULT_CHUNK_SIZE
from socketry.connectors import Connector, DnsConnector
from socketry.context import BindContext, ConnectContext, SocketOption
from socketry.errors import (
    ClosedError,
    ConfigurationError,
    ConnectError,
    OperationCancelledError,
    SocketError,
    SocketryError,
)
from socketry.pair import create_pair
from socketry.registry import ConnectorRegistry, connect, connector, get_connector_registry
from socketry.resource_socket import ResourceSocket, Socket
from socketry.server import ResourceDatagramSocket, ResourceSocketServer
from socketry.tls import (
    Certificate,
    ClientTlsContext,
    ServerTlsContext,
    has_tls_alpn_support,
    has_tls_security_level_support,
)

__version__ = "0.1.0"

__all__ = [
    "listen",
    "bind",
    "connect",
    "connector",
    "create_pair",
    "has_tls_alpn_support",
    "has_tls_security_level_support",
    "BindContext",
    "ConnectContext",
    "SocketOption",
    "Connector",
    "DnsConnector",
    "ConnectorRegistry",
    "get_connector_registry",
    "Socket",
    "ResourceSocket",
    "ResourceSocketServer",
    "ResourceDatagramSocket",
    "Cancellation",
    "DeferredCancellation",
    "TimeoutCancellation",
    "NullCancellation",
    "CompositeCancellation",
    "Certificate",
    "ClientTlsContext",
    "ServerTlsContext",
    "SocketryError",
    "ConfigurationError",
    "SocketError",
    "ConnectError",
    "ClosedError",
    "OperationCancelledError",
    "DEFAULT_CHUNK_SIZE",
]
