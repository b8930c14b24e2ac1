"""Remote store endpoints: fingerprints, content download, content upload."""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from pathlib import Path
from typing import Annotated

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from fastapi.responses import FileResponse
from pydantic import BaseModel

from backend.api.deps import get_file_root, get_settings, get_store_lock, require_token
from backend.config import Settings
from backend.exceptions import PathError, PathErrorKind
from backend.filesystem.file_info import FileInfo

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["files"], dependencies=[Depends(require_token)])

_UPLOAD_CHUNK_SIZE = 1024 * 1024


def _resolve_safe_path(file_root: Path, identity: str) -> Path:
    """Resolve an identity within file_root, raising 400 on traversal attempts."""
    target = identity.lstrip("/")
    full_path = (file_root / target).resolve()
    if not full_path.is_relative_to(file_root.resolve()):
        raise HTTPException(status_code=400, detail=f"Invalid file path: {identity}")
    return full_path


# ── Schemas ──────────────────────────────────────────


class FileInfoResponse(BaseModel):
    """Fingerprint of one file, path relative to the queried root."""

    path: str
    seconds: int
    digest: str
    exists: bool

    @classmethod
    def from_info(cls, info: FileInfo) -> FileInfoResponse:
        return cls(path=info.path, seconds=info.seconds, digest=info.digest, exists=info.exists)


# ── Endpoints ────────────────────────────────────────


@router.get("/info/file/{identity:path}", response_model=FileInfoResponse)
async def get_file_info(
    identity: str,
    file_root: Annotated[Path, Depends(get_file_root)],
) -> FileInfoResponse:
    """Fingerprint a single file. A missing file reports ``exists: false``."""
    full_path = _resolve_safe_path(file_root, identity)
    info = await asyncio.to_thread(FileInfo.from_path, full_path)
    return FileInfoResponse.from_info(info.rebase(file_root))


@router.get("/info/dir/{identity:path}", response_model=list[FileInfoResponse])
async def get_dir_info(
    identity: str,
    file_root: Annotated[Path, Depends(get_file_root)],
) -> list[FileInfoResponse]:
    """Fingerprint every file below a directory, paths relative to it."""
    full_path = _resolve_safe_path(file_root, identity)
    infos = await asyncio.to_thread(FileInfo.from_directory, full_path)
    return [FileInfoResponse.from_info(info.rebase(full_path)) for info in infos]


@router.get("/info/dir", response_model=list[FileInfoResponse])
async def get_root_dir_info(
    file_root: Annotated[Path, Depends(get_file_root)],
) -> list[FileInfoResponse]:
    """Fingerprint the whole store."""
    return await get_dir_info("", file_root)


@router.get("/file/{identity:path}")
async def get_file(
    identity: str,
    file_root: Annotated[Path, Depends(get_file_root)],
) -> FileResponse:
    """Serve a file's raw bytes."""
    full_path = _resolve_safe_path(file_root, identity)
    if not full_path.exists():
        raise PathError(identity, PathErrorKind.NOT_FOUND)
    if not full_path.is_file():
        raise PathError(identity, PathErrorKind.NOT_A_FILE)
    if not os.access(full_path, os.R_OK):
        raise PathError(identity, PathErrorKind.UNREADABLE)

    return FileResponse(full_path, media_type="application/octet-stream")


@router.put(
    "/file/{identity:path}",
    response_model=FileInfoResponse,
    status_code=status.HTTP_201_CREATED,
)
async def put_file(
    identity: str,
    file: Annotated[UploadFile, File()],
    file_root: Annotated[Path, Depends(get_file_root)],
    settings: Annotated[Settings, Depends(get_settings)],
    store_lock: Annotated[asyncio.Lock, Depends(get_store_lock)],
) -> FileInfoResponse:
    """Create or fully overwrite a file, creating missing parent directories."""
    full_path = _resolve_safe_path(file_root, identity)
    if full_path == file_root or full_path.is_dir():
        raise PathError(identity, PathErrorKind.NOT_A_FILE)

    async with store_lock:
        try:
            full_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.error("Cannot create parent directory for %s: %s", identity, exc)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Cannot create parent directory",
            ) from exc

        await _write_upload(file, full_path, identity, settings.max_upload_size)

    logger.info("Stored %s", identity.lstrip("/"))
    info = await asyncio.to_thread(FileInfo.from_path, full_path)
    return FileInfoResponse.from_info(info.rebase(file_root))


async def _write_upload(upload: UploadFile, full_path: Path, identity: str, limit: int) -> None:
    """Stream an upload into a temporary sibling and rename it into place."""
    try:
        fd, tmp_name = tempfile.mkstemp(dir=full_path.parent, prefix=".skywriter-", suffix=".part")
    except OSError as exc:
        raise HTTPException(
            status_code=500, detail=f"File I/O error writing {identity}"
        ) from exc

    tmp_path = Path(tmp_name)
    try:
        written = 0
        with os.fdopen(fd, "wb") as out:
            while chunk := await upload.read(_UPLOAD_CHUNK_SIZE):
                written += len(chunk)
                if written > limit:
                    raise HTTPException(
                        status_code=413, detail=f"File too large (max {limit} bytes): {identity}"
                    )
                out.write(chunk)
        os.replace(tmp_path, full_path)
    except OSError as exc:
        tmp_path.unlink(missing_ok=True)
        raise HTTPException(
            status_code=500, detail=f"File I/O error writing {identity}"
        ) from exc
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
