"""
Tests for listen and bind.
"""

import errno
import socket
from unittest.mock import MagicMock

import pytest

from socketry import binding
from socketry.binding import bind, listen
from socketry.context import BindContext
from socketry.errors import ConfigurationError, SocketError
from socketry.server import ResourceDatagramSocket, ResourceSocketServer
from socketry.tls import ServerTlsContext


@pytest.fixture
def no_os_calls(monkeypatch):
    """Fixture failing the test if a socket is created."""
    factory = MagicMock(side_effect=AssertionError("socket created"))
    monkeypatch.setattr(binding.socket, "socket", factory)
    return factory


def test_listen_ephemeral_port():
    """Test listening on an OS assigned port."""
    server = listen("tcp://127.0.0.1:0")
    try:
        assert isinstance(server, ResourceSocketServer)
        host, port = server.address.rsplit(":", 1)
        assert host == "127.0.0.1"
        assert int(port) > 0
        assert not server.is_closed()
    finally:
        server.close()


def test_listen_without_scheme_uses_tcp():
    """Test that a scheme-less URI is treated as TCP."""
    server = listen("127.0.0.1:0")
    try:
        assert server.address.startswith("127.0.0.1:")
    finally:
        server.close()


def test_listen_address_in_use():
    """Test that a second server on the same address fails."""
    server = listen("tcp://127.0.0.1:0")
    try:
        with pytest.raises(SocketError) as exc_info:
            listen(f"tcp://{server.address}")
        error = exc_info.value
        assert error.code == errno.EADDRINUSE
        assert error.uri == f"tcp://{server.address}"
        assert str(error).startswith(f"Could not create server tcp://{server.address}: [Error: #")
    finally:
        server.close()


def test_listen_rejects_scheme_before_os_call(no_os_calls):
    """Test that disallowed schemes fail before any socket is created."""
    with pytest.raises(ConfigurationError):
        listen("ftp://host:1")
    with pytest.raises(ConfigurationError):
        listen("udp://127.0.0.1:0")
    no_os_calls.assert_not_called()


def test_bind_rejects_scheme_before_os_call(no_os_calls):
    """Test that datagram sockets only accept udp."""
    with pytest.raises(ConfigurationError) as exc_info:
        bind("tcp://host:1")
    assert str(exc_info.value) == "Only udp scheme allowed for datagram creation"
    no_os_calls.assert_not_called()


def test_listen_malformed_address():
    """Test that malformed addresses surface as SocketError with code 0."""
    with pytest.raises(SocketError) as exc_info:
        listen("tcp://127.0.0.1:notaport")
    assert exc_info.value.code == 0

    with pytest.raises(SocketError):
        listen("tcp://127.0.0.1")


def test_listen_fails_on_pending_socket_error(monkeypatch):
    """Test that a created socket with a nonzero error code is a failure."""
    created = []

    class ErrorSocket(socket.socket):
        def getsockopt(self, *args):
            if args[:2] == (socket.SOL_SOCKET, socket.SO_ERROR):
                return errno.EACCES
            return super().getsockopt(*args)

    def factory(*args, **kwargs):
        sock = ErrorSocket(*args, **kwargs)
        created.append(sock)
        return sock

    monkeypatch.setattr(binding.socket, "socket", factory)

    with pytest.raises(SocketError) as exc_info:
        listen("tcp://127.0.0.1:0")

    assert exc_info.value.code == errno.EACCES
    assert created and created[0].fileno() == -1


def test_listen_applies_context():
    """Test that the context configures the server without being mutated."""
    tls = ServerTlsContext()
    context = BindContext(chunk_size=1024, backlog=4, tls_context=tls)
    server = listen("tcp://127.0.0.1:0", context)
    try:
        assert server.chunk_size == 1024
        assert server.tls_context is tls
        assert context == BindContext(chunk_size=1024, backlog=4, tls_context=tls)
    finally:
        server.close()


@pytest.mark.skipif(not hasattr(socket, "AF_UNIX"), reason="requires unix sockets")
def test_listen_unix(tmp_path):
    """Test listening on a unix domain socket."""
    path = str(tmp_path / "server.sock")
    server = listen(f"unix://{path}")
    try:
        assert server.address == path
    finally:
        server.close()


def test_bind_udp():
    """Test binding a datagram socket."""
    datagram = bind("udp://127.0.0.1:0")
    try:
        assert isinstance(datagram, ResourceDatagramSocket)
        assert datagram.address.startswith("127.0.0.1:")
    finally:
        datagram.close()


def test_bind_failure_logged_at_debug(monkeypatch):
    """Test that bind failures are reported by the raised error, logging only at debug."""
    mock_logger = MagicMock()
    monkeypatch.setattr(binding, "_logger", mock_logger)

    exclusive = BindContext(reuse_address=False)
    datagram = bind("udp://127.0.0.1:0", exclusive)
    server = listen("tcp://127.0.0.1:0")
    try:
        with pytest.raises(SocketError):
            bind(f"udp://{datagram.address}", exclusive)
        with pytest.raises(SocketError):
            listen(f"tcp://{server.address}")
    finally:
        datagram.close()
        server.close()

    events = [call.args[0] for call in mock_logger.debug.call_args_list]
    assert events == ["datagram.bind_failed", "server.bind_failed"]
    mock_logger.error.assert_not_called()


def test_bind_without_scheme_uses_udp():
    """Test that a scheme-less URI is treated as UDP."""
    datagram = bind("127.0.0.1:0")
    try:
        assert datagram._socket.type == socket.SOCK_DGRAM
    finally:
        datagram.close()


def test_close_is_idempotent():
    """Test that closing twice has no effect."""
    server = listen("tcp://127.0.0.1:0")
    server.close()
    server.close()
    assert server.is_closed()
