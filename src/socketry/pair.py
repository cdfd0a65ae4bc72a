"""Connected local socket pairs."""

import socket
import sys
from typing import Tuple

from socketry.config import DEFAULT_CHUNK_SIZE
from socketry.errors import translate_os_errors
from socketry.resource_socket import ResourceSocket
from socketry.telemetry import LoggingFacade

_logger = LoggingFacade("socketry.pair")

# Windows has no usable AF_UNIX socketpair, a loopback TCP pair is used instead
PAIR_FAMILY = socket.AF_INET if sys.platform == "win32" else socket.AF_UNIX


def create_pair(chunk_size: int = DEFAULT_CHUNK_SIZE) -> Tuple[ResourceSocket, ResourceSocket]:
    """Create a pair of connected stream sockets.

    Args:
        chunk_size: Chunk size of both sockets.

    Returns:
        Both ends of the connection, in creation order.

    Raises:
        SocketError: If creating the sockets fails.
    """
    with translate_os_errors("Failed to create socket pair"):
        first, second = socket.socketpair(PAIR_FAMILY, socket.SOCK_STREAM)

    pair = (
        ResourceSocket.from_client_socket(first, chunk_size=chunk_size),
        ResourceSocket.from_client_socket(second, chunk_size=chunk_size),
    )
    _logger.debug("pair.created", family=PAIR_FAMILY.name, chunk_size=chunk_size)
    return pair
