"""
Pytest configuration for socketry tests.

This module contains fixtures and configuration for pytest.
"""

from typing import Optional

import pytest

from socketry import registry as registry_module
from socketry.registry import ConnectorRegistry


class MockConnector:
    """Connector double recording its calls."""

    def __init__(self, result=None, raise_on_connect: Optional[BaseException] = None):
        self.result = result
        self.raise_on_connect = raise_on_connect
        self.calls = []

    async def connect(self, uri, context=None, cancellation=None):
        self.calls.append((uri, context, cancellation))
        if self.raise_on_connect:
            raise self.raise_on_connect
        return self.result


@pytest.fixture
def mock_connector():
    """Fixture providing a mock connector."""
    return MockConnector(result=object())


@pytest.fixture
def fresh_registry(monkeypatch):
    """Fixture replacing the process-wide connector registry for one test."""
    registry = ConnectorRegistry()
    monkeypatch.setattr(registry_module, "_registry", registry)
    return registry


# Anyio Backend Selection - only use asyncio
@pytest.fixture(params=["asyncio"])
def anyio_backend(request):
    """Fixture to run tests with different anyio backends."""
    return request.param


def pytest_configure(config):
    """Register custom marks with pytest."""
    config.addinivalue_line("markers", "integration: tests using real OS sockets")
