"""Health check endpoint."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from backend import __version__
from backend.api.deps import get_settings
from backend.config import Settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    version: str
    file_root: str


@router.get("/api/health", response_model=HealthResponse)
async def health_check(
    settings: Annotated[Settings, Depends(get_settings)],
) -> HealthResponse:
    """Health check endpoint for monitoring and load balancers."""
    root_status = "ok"
    if not settings.file_root.is_dir():
        logger.warning("Health check: file root %s is not a directory", settings.file_root)
        root_status = "missing"

    return HealthResponse(
        status="ok" if root_status == "ok" else "degraded",
        version=__version__,
        file_root=root_status,
    )
