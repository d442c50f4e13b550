"""
JBin Backend — Test Configuration (conftest.py)
=================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Every app under test gets its own Settings pointing at a temporary
       SQLite file, so tests never share state or touch ./data.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── make_settings: Factory for isolated Settings instances
    ├── make_verifier: Factory for scripted bot verifiers
    ├── db_url: URL of a temporary SQLite database
    ├── blob_store: Opened BlobStore on db_url
    ├── client_factory: Builds app + runs lifespan + yields an AsyncClient
    └── test_client: client_factory() with default test settings
"""

import os
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Set before any app import so the module-level Settings is inert
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["RECAPTCHA_SECRET_KEY"] = ""
os.environ["RECAPTCHA_SITE_KEY"] = ""

from app.config import Settings  # noqa: E402
from app.services.blob_store import BlobStore  # noqa: E402
from app.services.verification_base import BotVerifier, VerificationResult  # noqa: E402


class FakeVerifier(BotVerifier):
    """Scripted verifier: returns `result` and records every call."""

    def __init__(self, result: Optional[VerificationResult] = None):
        self.result = result or VerificationResult(success=True, score=0.9, reason="ok")
        self.calls = []
        self.closed = False

    async def verify(self, token, remote_ip=None):
        self.calls.append((token, remote_ip))
        return self.result

    async def aclose(self):
        self.closed = True


@pytest.fixture
def make_verifier():
    """
    Factory for FakeVerifier instances.

    Usage:
        verifier = make_verifier(VerificationResult(success=False, reason="rejected"))
    """
    def _make(result: Optional[VerificationResult] = None) -> FakeVerifier:
        return FakeVerifier(result)

    return _make


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'blobs.db'}"


@pytest.fixture
def make_settings(tmp_path):
    """
    Factory for Settings isolated from the environment and any .env file.

    Usage:
        settings = make_settings(create_limit_max=2)
    """
    def _make(**overrides) -> Settings:
        values = {
            "data_dir": str(tmp_path / "data"),
            "log_level": "WARNING",
            "recaptcha_secret_key": "",
            "recaptcha_site_key": "",
            "umami_url": "",
            "umami_website_id": "",
            "cors_origins": "",
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


@pytest_asyncio.fixture
async def blob_store(db_url) -> AsyncIterator[BlobStore]:
    store = BlobStore(db_url)
    await store.open()
    try:
        yield store
    finally:
        await store.close()


@pytest.fixture
def client_factory(make_settings):
    """
    Builds an isolated app and an AsyncClient bound to it.

    ASGITransport does not run the lifespan, so it is entered explicitly;
    leaving the context closes the store and the verifier.

    Usage:
        async with client_factory(create_limit_max=1) as client:
            response = await client.post("/api/blobs", json={"json": 1})
    """
    from app.main import create_app

    @asynccontextmanager
    async def _client(verifier: Optional[BotVerifier] = None, **overrides):
        app = create_app(settings=make_settings(**overrides), verifier=verifier)
        async with app.router.lifespan_context(app):
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                yield client

    return _client


@pytest_asyncio.fixture
async def test_client(client_factory) -> AsyncIterator[AsyncClient]:
    """
    HTTPX AsyncClient for the default test app.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/api/health")
            assert response.status_code == 200
    """
    async with client_factory() as client:
        yield client
