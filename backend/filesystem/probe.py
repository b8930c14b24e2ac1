"""Content digest and modification-time probing for a single path."""

from __future__ import annotations

import hashlib
import logging
import os
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, BinaryIO

from backend.exceptions import PathError, PathErrorKind

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class ProbePolicy(StrEnum):
    """What to do when a file exists but cannot be hashed."""

    RAISE = "raise"
    """Raise ``PathError``; directory passes log and skip the file."""

    SENTINEL = "sentinel"
    """Report an empty digest and keep going."""


@dataclass(frozen=True)
class Fingerprint:
    digest: str
    seconds: int


def sha256_digest(stream: BinaryIO, chunk_size: int = CHUNK_SIZE) -> str:
    """Compute the lowercase hex SHA-256 of a binary stream."""
    sha = hashlib.sha256()
    for chunk in iter(lambda: stream.read(chunk_size), b""):
        sha.update(chunk)
    return sha.hexdigest()


def digest_path(path: Path, chunk_size: int = CHUNK_SIZE) -> str:
    """Compute SHA-256 hash of a file."""
    with open(path, "rb") as f:
        return sha256_digest(f, chunk_size)


def modified_seconds(path: Path) -> int:
    """Whole seconds since the epoch of the last modification, 0 if unknown."""
    try:
        mtime = os.stat(path).st_mtime
    except OSError:
        return 0
    if mtime < 0:
        return 0
    return int(mtime)


def probe_path(path: Path, policy: ProbePolicy = ProbePolicy.RAISE) -> Fingerprint:
    """Fingerprint the content and timestamp of an existing file."""
    try:
        digest = digest_path(path)
    except OSError as exc:
        if policy is ProbePolicy.SENTINEL:
            logger.debug("Cannot hash %s, reporting empty digest: %s", path, exc)
            digest = ""
        else:
            raise PathError(str(path), PathErrorKind.UNREADABLE, exc.strerror or str(exc)) from exc
    return Fingerprint(digest=digest, seconds=modified_seconds(path))
