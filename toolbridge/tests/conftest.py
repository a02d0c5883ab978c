"""Pytest configuration and shared fixtures for testing."""

import pytest

from toolbridge.tests.helpers import FakeClientFactory


@pytest.fixture
def client_factory() -> FakeClientFactory:
    """Client factory producing in-memory clients."""
    return FakeClientFactory()
