"""
Registry of the active connector per runtime.

A runtime is the running event loop (asyncio) or run (trio). Connectors are
kept in a weak mapping keyed by the runtime object itself, so an entry goes
away together with its runtime without explicit cleanup.
"""

import asyncio
import threading
import weakref
from typing import Callable, Optional

import sniffio

from socketry.concurrency import Cancellation
from socketry.connectors import Connector, DnsConnector
from socketry.context import ConnectContext
from socketry.resource_socket import ResourceSocket
from socketry.telemetry import LoggingFacade

_logger = LoggingFacade("socketry.registry")


class _ThreadRuntime:
    """Stands in for the runtime when no event loop is running in a thread."""


_thread_state = threading.local()


def current_runtime() -> object:
    """Return an object identifying the runtime driving the current call.

    Callbacks scheduled on a running asyncio loop are keyed by that loop, the
    same as its tasks. Outside of a running event loop, a placeholder unique
    to the current OS thread is returned.
    """
    try:
        library = sniffio.current_async_library()
    except sniffio.AsyncLibraryNotFoundError:
        library = None

    if library == "trio":
        import trio

        return trio.lowlevel.current_trio_token()

    # sniffio only reports asyncio from inside a task
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        pass

    runtime = getattr(_thread_state, "runtime", None)
    if runtime is None:
        runtime = _thread_state.runtime = _ThreadRuntime()
    return runtime


class ConnectorRegistry:
    """Holds at most one connector per runtime.

    Args:
        factory: Creates the connector used when none has been set for a runtime.
    """

    def __init__(self, factory: Callable[[], Connector] = DnsConnector):
        self._factory = factory
        self._connectors: "weakref.WeakKeyDictionary[object, Connector]" = (
            weakref.WeakKeyDictionary()
        )

    def get(self, runtime: Optional[object] = None) -> Connector:
        """Get the connector of a runtime, creating the default one if needed.

        Args:
            runtime: The runtime to look up, the current one by default.

        Returns:
            The connector instance.
        """
        if runtime is None:
            runtime = current_runtime()

        connector = self._connectors.get(runtime)
        if connector is None:
            connector = self._connectors[runtime] = self._factory()
            _logger.debug("connector.created", connector=type(connector).__name__)
        return connector

    def set(self, connector: Connector, runtime: Optional[object] = None) -> Connector:
        """Replace the connector of a runtime.

        Args:
            connector: The connector to use from now on.
            runtime: The runtime to update, the current one by default.

        Returns:
            The given connector.
        """
        if runtime is None:
            runtime = current_runtime()

        self._connectors[runtime] = connector
        _logger.debug("connector.replaced", connector=type(connector).__name__)
        return connector

    def __len__(self) -> int:
        return len(self._connectors)

    def __contains__(self, runtime: object) -> bool:
        return runtime in self._connectors


_registry = ConnectorRegistry()


def get_connector_registry() -> ConnectorRegistry:
    """Get the process-wide connector registry."""
    return _registry


def connector(replacement: Optional[Connector] = None) -> Connector:
    """Set or access the connector of the current runtime.

    Args:
        replacement: If given, becomes the connector of the current runtime.

    Returns:
        The connector of the current runtime.
    """
    registry = get_connector_registry()
    if replacement is not None:
        return registry.set(replacement)
    return registry.get()


async def connect(
    uri: str,
    context: Optional[ConnectContext] = None,
    cancellation: Optional[Cancellation] = None,
) -> ResourceSocket:
    """Establish a socket connection to the given URI.

    Args:
        uri: URI in ``scheme://host:port`` format. TCP is assumed if no scheme
            is present.
        context: Options for the connection.
        cancellation: Optional cancellation aborting the attempt.

    Returns:
        The connected socket.

    Raises:
        ConnectError: If the connection cannot be established.
        OperationCancelledError: If the cancellation is requested first.
    """
    return await connector().connect(uri, context, cancellation)
