"""Pytest configuration and shared fixtures for testing."""

import sys

import pytest

from autodev.configuration.config import Settings
from autodev.domain.model.mcp.server import ServerDescriptor
from autodev.infrastructure.mcp.registry import ServerRegistry

FAKE_PROVIDER_MODULE = "autodev.tests.fixtures.fake_provider"


def fake_descriptor(name: str = "fake", *options: str) -> ServerDescriptor:
    """Descriptor launching the fake provider with the current interpreter."""
    return ServerDescriptor(
        name=name,
        command=sys.executable,
        args=("-m", FAKE_PROVIDER_MODULE, *options),
    )


@pytest.fixture
def test_settings() -> Settings:
    """Settings with short timeouts for subprocess tests."""
    return Settings(
        mcp_tool_call_timeout=10.0,
        mcp_startup_timeout=15.0,
        mcp_terminate_grace_period=2.0,
    )


@pytest.fixture
def fake_provider():
    """Factory for fake provider descriptors."""
    return fake_descriptor


@pytest.fixture
async def registry(test_settings):
    """Server registry cleaned up after the test."""
    registry = ServerRegistry(settings=test_settings)
    yield registry
    await registry.cleanup()
