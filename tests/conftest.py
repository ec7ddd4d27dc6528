"""
Swiftly: Test Configuration (conftest.py)
==========================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy:
    settings        Settings for the test environment (no database, fixed secret)
    make_kernel     factory: Swiftly kernel with chosen plugins and settings
    kernel          bare kernel: no plugins, no core routes
    serve           factory: async context yielding an httpx client for a kernel
    client          httpx client for `kernel`

httpx's ASGITransport does not run the lifespan, so `serve` calls
`kernel.startup()` / `kernel.shutdown()` itself.
"""

import os
from contextlib import asynccontextmanager

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# ══════════════════════════════════════════════════════════════════════════
# Environment Setup
# ══════════════════════════════════════════════════════════════════════════

# Set BEFORE importing swiftly: swiftly.main builds its module-level app
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = ""
os.environ["JWT_SECRET"] = "test-secret-not-real"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["RATE_LIMIT_ENABLED"] = "false"

from swiftly.config import Settings  # noqa: E402
from swiftly.main import Swiftly, create_app  # noqa: E402

TEST_SECRET = "test-secret-not-real"


# ══════════════════════════════════════════════════════════════════════════
# Settings & Kernel
# ══════════════════════════════════════════════════════════════════════════

def build_settings(**overrides) -> Settings:
    values = {
        "environment": "test",
        "database_url": "",
        "jwt_secret": TEST_SECRET,
        "log_level": "WARNING",
        "rate_limit_enabled": False,
        "core_routes_enabled": False,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings():
    return build_settings()


@pytest.fixture
def settings_factory():
    """Build Settings with overrides: settings_factory(environment="production")."""
    return build_settings


@pytest.fixture
def make_kernel():
    """
    Factory for kernels.

    Usage:
        kernel = make_kernel(plugins=[...], environment="production")
    """

    def factory(plugins=(), core_routes=None, **overrides):
        return Swiftly(
            settings=build_settings(**overrides),
            plugins=plugins,
            core_routes=core_routes,
        )

    return factory


@pytest.fixture
def kernel(make_kernel):
    return make_kernel()


# ══════════════════════════════════════════════════════════════════════════
# HTTP Clients
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def serve():
    """
    Async context manager that starts a kernel and yields a client for it.

    Usage:
        async with serve(kernel) as client:
            response = await client.get("/ping")
    """

    @asynccontextmanager
    async def factory(kernel):
        await kernel.startup()
        transport = ASGITransport(app=create_app(kernel))
        try:
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                yield client
        finally:
            await kernel.shutdown()

    return factory


@pytest_asyncio.fixture
async def client(kernel, serve):
    async with serve(kernel) as http:
        yield http
