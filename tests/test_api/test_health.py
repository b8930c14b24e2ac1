"""Tests for the health endpoint."""

from __future__ import annotations

import shutil
from typing import TYPE_CHECKING

import pytest

from backend import __version__

if TYPE_CHECKING:
    from pathlib import Path

    from httpx import AsyncClient


@pytest.mark.asyncio
async def test_health_needs_no_token(client: AsyncClient) -> None:
    resp = await client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "version": __version__, "file_root": "ok"}


@pytest.mark.asyncio
async def test_health_reports_missing_root(client: AsyncClient, tmp_file_root: Path) -> None:
    shutil.rmtree(tmp_file_root)
    resp = await client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "degraded"
    assert resp.json()["file_root"] == "missing"


@pytest.mark.asyncio
async def test_missing_root_fails_file_requests_generically(
    client: AsyncClient, tmp_file_root: Path
) -> None:
    from tests.conftest import AUTH_HEADERS

    shutil.rmtree(tmp_file_root)
    resp = await client.get("/api/info/dir", headers=AUTH_HEADERS)
    assert resp.status_code == 500
    assert resp.json() == {"detail": "Internal server error"}
    assert str(tmp_file_root) not in resp.text
