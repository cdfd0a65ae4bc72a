"""
Tests for the ConnectorRegistry and the connector/connect functions.
"""

import asyncio
import gc
import threading

import pytest

from socketry.connectors import Connector, DnsConnector
from socketry.context import ConnectContext
from socketry.errors import ConnectError
from socketry.registry import (
    ConnectorRegistry,
    connect,
    connector,
    current_runtime,
    get_connector_registry,
)
from tests.conftest import MockConnector


class Runtime:
    """Stand-in runtime object."""


def test_registry_init():
    """Test ConnectorRegistry initialization."""
    registry = ConnectorRegistry()
    assert len(registry) == 0


def test_registry_creates_default_connector_once():
    """Test lazy creation of the default connector."""
    registry = ConnectorRegistry()
    runtime = Runtime()

    first = registry.get(runtime)
    assert isinstance(first, DnsConnector)
    assert registry.get(runtime) is first
    assert runtime in registry


def test_registry_factory():
    """Test a custom default connector factory."""
    created = []

    def factory():
        created.append(MockConnector())
        return created[-1]

    registry = ConnectorRegistry(factory)
    runtime = Runtime()
    assert registry.get(runtime) is created[0]
    registry.get(runtime)
    assert len(created) == 1


def test_registry_set_overwrites():
    """Test that set replaces the connector unconditionally."""
    registry = ConnectorRegistry()
    runtime = Runtime()
    registry.get(runtime)

    first, second = MockConnector(), MockConnector()
    assert registry.set(first, runtime) is first
    assert registry.get(runtime) is first
    assert registry.set(second, runtime) is second
    assert registry.get(runtime) is second


def test_registry_separates_runtimes():
    """Test that each runtime gets its own connector."""
    registry = ConnectorRegistry()
    runtime_a, runtime_b = Runtime(), Runtime()

    replacement = MockConnector()
    registry.set(replacement, runtime_a)

    assert registry.get(runtime_a) is replacement
    assert registry.get(runtime_b) is not replacement
    assert len(registry) == 2


def test_registry_does_not_keep_runtimes_alive():
    """Test that entries disappear with their runtime."""
    registry = ConnectorRegistry()
    runtime = Runtime()
    registry.get(runtime)
    assert len(registry) == 1

    del runtime
    gc.collect()

    assert len(registry) == 0


def test_current_runtime_outside_event_loop():
    """Test the per-thread placeholder used without a running loop."""
    assert current_runtime() is current_runtime()

    other = []
    thread = threading.Thread(target=lambda: other.append(current_runtime()))
    thread.start()
    thread.join()

    assert other[0] is not current_runtime()


@pytest.mark.anyio
async def test_current_runtime_is_running_loop():
    """Test that the running asyncio loop identifies the runtime."""
    assert current_runtime() is asyncio.get_running_loop()


def test_get_connector_registry_is_shared():
    """Test that the process-wide registry is a singleton."""
    assert get_connector_registry() is get_connector_registry()


@pytest.mark.anyio
async def test_connector_returns_same_instance(fresh_registry):
    """Test that the default connector is cached per runtime."""
    first = connector()
    assert isinstance(first, DnsConnector)
    assert isinstance(first, Connector)
    assert connector() is first


@pytest.mark.anyio
async def test_connector_replacement(fresh_registry, mock_connector):
    """Test that a replacement is returned by subsequent calls."""
    connector()
    assert connector(mock_connector) is mock_connector
    assert connector() is mock_connector


def test_connector_per_event_loop(fresh_registry):
    """Test that separate event loops get separate connectors."""

    async def current():
        return connector()

    loop_a = asyncio.new_event_loop()
    loop_b = asyncio.new_event_loop()
    try:
        connector_a = loop_a.run_until_complete(current())
        connector_b = loop_b.run_until_complete(current())
        assert connector_a is not connector_b
        assert loop_a.run_until_complete(current()) is connector_a
    finally:
        loop_a.close()
        loop_b.close()


def test_connector_shared_by_tasks_and_loop_callbacks(fresh_registry):
    """Test that loop callbacks and tasks on one loop share a connector."""
    loop = asyncio.new_event_loop()
    from_callback = []

    def callback():
        from_callback.append((connector(), current_runtime()))

    async def in_task():
        loop.call_soon(callback)
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        return connector()

    try:
        from_task = loop.run_until_complete(in_task())
        callback_connector, callback_runtime = from_callback[0]
        assert callback_runtime is loop
        assert callback_connector is from_task
    finally:
        loop.close()


def test_replacement_visible_from_loop_callbacks(fresh_registry, mock_connector):
    """Test that a replacement set in a task is used by callbacks on the same loop."""
    loop = asyncio.new_event_loop()
    seen = []

    async def in_task():
        connector(mock_connector)
        loop.call_soon(lambda: seen.append(connector()))
        await asyncio.sleep(0)
        await asyncio.sleep(0)

    try:
        loop.run_until_complete(in_task())
    finally:
        loop.close()

    assert seen == [mock_connector]


@pytest.mark.anyio
async def test_connect_delegates(fresh_registry, mock_connector):
    """Test that connect passes its arguments to the current connector."""
    connector(mock_connector)
    context = ConnectContext()
    cancellation = object()

    result = await connect("example.com:80", context, cancellation)

    assert result is mock_connector.result
    assert mock_connector.calls == [("example.com:80", context, cancellation)]


@pytest.mark.anyio
async def test_connect_propagates_failure(fresh_registry):
    """Test that connector failures are not wrapped."""
    error = ConnectError("refused")
    connector(MockConnector(raise_on_connect=error))

    with pytest.raises(ConnectError) as exc_info:
        await connect("127.0.0.1:1")

    assert exc_info.value is error
