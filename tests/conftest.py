"""Shared pytest fixtures for gcpmock tests.

A single FastAPI app is created per test session to avoid duplicate
Prometheus metric registration errors (the instrumentator registers
collectors in the global prometheus_client registry).

The lifespan does not run under ``ASGITransport``, so every test installs
its own fresh ``MemoryStore`` on ``app.state``.
"""

import pytest
from httpx import ASGITransport, AsyncClient

from gcpmock.config import GcpMockConfig, ProjectConfig, ServerConfig
from gcpmock.server import create_app
from gcpmock.store.memory import MemoryStore

BASE_URL = "http://testserver"
PROJECT = "test-project"
PROJECT_NUMBER = 424242


@pytest.fixture(scope="session")
def config() -> GcpMockConfig:
    """Create a test configuration with a fixed project identity."""
    return GcpMockConfig(
        server=ServerConfig(host="127.0.0.1", port=8099, base_url=BASE_URL),
        project=ProjectConfig(id=PROJECT, number=PROJECT_NUMBER),
    )


@pytest.fixture(scope="session")
def app(config: GcpMockConfig):
    """Create a single test FastAPI application for the whole session."""
    return create_app(config)


@pytest.fixture
def store(config: GcpMockConfig) -> MemoryStore:
    """A fresh, empty store configured like the test app."""
    return MemoryStore(
        base_url=config.base_url,
        project_id=config.project.id,
        project_number=config.project.number,
    )


@pytest.fixture
async def client(app, store) -> AsyncClient:
    """Create an async test client backed by a fresh store.

    The previous store (if any) is restored afterwards so tests never see
    each other's resources.
    """
    old_store = getattr(app.state, "store", None)
    app.state.store = store

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url=BASE_URL) as ac:
        yield ac

    app.state.store = old_store
