"""
URI handling for socketry.

URIs take the form ``scheme://host:port``, ``scheme://[v6addr]:port`` or
``unix:///path/to/socket``. The scheme is optional and defaulted per call site.
"""

import socket
from typing import Any, Iterable, NamedTuple, Optional
from urllib.parse import urlsplit

from socketry.errors import ConfigurationError


class Endpoint(NamedTuple):
    """A parsed socket URI."""

    scheme: str
    host: Optional[str]
    port: Optional[int]
    path: Optional[str]


def resolve_scheme(uri: str, default: str, allowed: Iterable[str], purpose: str) -> str:
    """Apply the default scheme to a URI or reject a disallowed one.

    Args:
        uri: The URI as given by the caller.
        default: Scheme prepended when the URI carries none.
        allowed: Schemes accepted at this call site.
        purpose: Used in the error message, e.g. "server creation".

    Returns:
        The URI with an explicit scheme.

    Raises:
        ConfigurationError: If the URI carries a scheme that is not allowed.
    """
    scheme, separator, _ = uri.partition("://")
    if not separator:
        return f"{default}://{uri}"

    allowed = tuple(allowed)
    if scheme not in allowed:
        if len(allowed) == 1:
            names = f"{allowed[0]} scheme"
        else:
            names = " and ".join((", ".join(allowed[:-1]), allowed[-1])) + " schemes"
        raise ConfigurationError(f"Only {names} allowed for {purpose}")

    return uri


def parse_uri(uri: str) -> Endpoint:
    """Split a URI with an explicit scheme into its endpoint parts.

    Raises:
        ValueError: If the address part is malformed.
    """
    scheme, separator, rest = uri.partition("://")
    if not separator:
        raise ValueError(f"Missing scheme in {uri!r}")

    if scheme == "unix":
        if not rest:
            raise ValueError("Missing socket path")
        return Endpoint(scheme, None, None, rest)

    parts = urlsplit(uri)
    host = parts.hostname
    if not host:
        raise ValueError(f"Missing host in {uri!r}")
    # Raises ValueError for out of range or non-numeric ports
    port = parts.port

    return Endpoint(scheme, host, port, None)


def format_address(family: int, address: Any) -> str:
    """Render a socket address as ``host:port``, ``[v6]:port`` or a path."""
    if family == getattr(socket, "AF_UNIX", None):
        if isinstance(address, bytes):
            address = address.decode(errors="replace")
        return address or ""

    host, port = address[0], address[1]
    if family == socket.AF_INET6:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def parse_address(address: str) -> Endpoint:
    """Parse a bare ``host:port`` address, as used for ``bind_to`` and datagram peers."""
    return parse_uri(f"tcp://{address}")
