"""Push and pull: whole-file transfers between the local and remote stores."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from backend.exceptions import PathError, PathErrorKind
from backend.filesystem.file_info import FileInfo

if TYPE_CHECKING:
    from typing import BinaryIO

logger = logging.getLogger(__name__)


@runtime_checkable
class RemoteStore(Protocol):
    """Operations the sync client needs from the remote store."""

    def fetch_file_info(self, identity: str) -> FileInfo:
        """Fingerprint one remote file."""
        ...

    def fetch_dir_info(self, identity: str) -> list[FileInfo]:
        """Fingerprint a remote subtree, paths relative to it."""
        ...

    def fetch_content(self, identity: str, destination: BinaryIO) -> int:
        """Stream a remote file's bytes into ``destination``."""
        ...

    def store_content(self, identity: str, source: BinaryIO) -> FileInfo:
        """Create or overwrite a remote file."""
        ...


def push(remote: RemoteStore, local_path: Path, identity: str) -> FileInfo:
    """Send ``local_path``'s bytes to ``identity``. Returns the remote fingerprint."""
    try:
        source = open(local_path, "rb")
    except FileNotFoundError as exc:
        raise PathError(str(local_path), PathErrorKind.NOT_FOUND) from exc
    except OSError as exc:
        raise PathError(str(local_path), PathErrorKind.UNREADABLE, exc.strerror or "") from exc

    with source:
        info = remote.store_content(identity, source)
    logger.debug("Pushed %s -> %s", local_path, identity)
    return info


def pull(remote: RemoteStore, identity: str, local_path: Path) -> FileInfo:
    """Write ``identity``'s bytes to ``local_path``. Returns the local fingerprint.

    The content lands in a temporary sibling first, so a failed transfer
    leaves any existing local file untouched.
    """
    if local_path.is_dir():
        raise PathError(str(local_path), PathErrorKind.NOT_A_FILE)
    try:
        local_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=local_path.parent, prefix=f".{local_path.name}.", suffix=".part"
        )
    except OSError as exc:
        detail = exc.strerror or ""
        raise PathError(str(local_path.parent), PathErrorKind.UNREADABLE, detail) from exc

    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as out:
            remote.fetch_content(identity, out)
        # mkstemp creates 0600 files; keep the mode of the file being replaced.
        mode = local_path.stat().st_mode & 0o7777 if local_path.exists() else 0o644
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, local_path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise

    logger.debug("Pulled %s -> %s", identity, local_path)
    return FileInfo.from_path(local_path)
