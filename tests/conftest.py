"""Shared test fixtures for Skywriter."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import pytest
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from backend.config import Settings
from backend.main import create_app
from cli.remote_client import RemoteStoreClient

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Iterator
    from pathlib import Path

TEST_SYNC_TOKEN = "test-sync-token-with-at-least-32-characters"
AUTH_HEADERS = {"Authorization": f"Bearer {TEST_SYNC_TOKEN}"}


@asynccontextmanager
async def create_test_client(settings: Settings) -> AsyncGenerator[AsyncClient]:
    """Create an async HTTP client bound to a fresh app.

    ASGITransport does not run the lifespan, so the file root must already exist.
    """
    app = create_app(settings)
    settings.validate_runtime_security()

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def tmp_file_root(tmp_path: Path) -> Path:
    """Create an empty remote store root."""
    root = tmp_path / "remote"
    root.mkdir()
    return root


@pytest.fixture
def local_root(tmp_path: Path) -> Path:
    """Create an empty local working directory."""
    root = tmp_path / "local"
    root.mkdir()
    return root


@pytest.fixture
def test_settings(tmp_file_root: Path) -> Settings:
    """Create test settings with a temporary file root."""
    return Settings(
        _env_file=None,
        sync_token=TEST_SYNC_TOKEN,
        debug=True,
        file_root=tmp_file_root,
    )


@pytest.fixture
async def client(test_settings: Settings) -> AsyncGenerator[AsyncClient]:
    """Unauthenticated async client for the remote store app."""
    async with create_test_client(test_settings) as ac:
        yield ac


@pytest.fixture
def remote_store(test_settings: Settings) -> Iterator[RemoteStoreClient]:
    """A RemoteStoreClient talking to an in-process remote store."""
    http_client = TestClient(create_app(test_settings), headers=AUTH_HEADERS)
    with RemoteStoreClient("http://testserver", TEST_SYNC_TOKEN, client=http_client) as remote:
        yield remote
