"""Shared API dependencies: settings, file root, shared-secret auth."""

from __future__ import annotations

import asyncio
import secrets
from pathlib import Path
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from backend.config import Settings
from backend.exceptions import InternalServerError

security = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    """Get application settings from app state."""
    settings: Settings = request.app.state.settings
    return settings


def get_store_lock(request: Request) -> asyncio.Lock:
    """Get the lock that serializes writes into this app's file root."""
    lock: asyncio.Lock = request.app.state.store_lock
    return lock


def get_file_root(settings: Annotated[Settings, Depends(get_settings)]) -> Path:
    """Get the resolved root directory of the file store."""
    root = settings.file_root.resolve()
    if not root.is_dir():
        raise InternalServerError(f"File root is not a directory: {root}")
    return root


async def require_token(
    settings: Annotated[Settings, Depends(get_settings)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)] = None,
) -> None:
    """Require the shared sync token. Raises 401 for a missing or wrong token."""
    if credentials is None or not secrets.compare_digest(
        credentials.credentials.encode("utf-8"), settings.sync_token.encode("utf-8")
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
