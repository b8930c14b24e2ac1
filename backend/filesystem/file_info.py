"""FileInfo: the fingerprint of one path, and its constructors."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any

from backend.exceptions import PathError, PathErrorKind
from backend.filesystem.probe import ProbePolicy, probe_path
from backend.filesystem.walker import walk_dir

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

logger = logging.getLogger(__name__)

_HEX_DIGEST = re.compile(r"^[0-9a-f]{64}$")


@dataclass(frozen=True)
class FileInfo:
    """State of a single path at probe time.

    ``path`` starts out as the probed path and becomes the root-relative
    identity after :meth:`rebase`. A missing path always carries
    ``seconds == 0`` and ``digest == ""``.
    """

    path: str
    seconds: int
    digest: str
    exists: bool

    @classmethod
    def missing(cls, path: str) -> FileInfo:
        return cls(path=path, seconds=0, digest="", exists=False)

    @classmethod
    def from_path(cls, path: Path, policy: ProbePolicy = ProbePolicy.RAISE) -> FileInfo:
        """Fingerprint ``path``; a missing path is not an error, a directory is."""
        if not path.exists():
            return cls.missing(str(path))
        if not path.is_file():
            raise PathError(str(path), PathErrorKind.NOT_A_FILE)
        fingerprint = probe_path(path, policy)
        return cls(
            path=str(path),
            seconds=fingerprint.seconds,
            digest=fingerprint.digest,
            exists=True,
        )

    @classmethod
    def from_directory(
        cls, root: Path, policy: ProbePolicy = ProbePolicy.RAISE
    ) -> list[FileInfo]:
        """Fingerprint every regular file below ``root``.

        Paths are left as discovered; callers rebase them onto ``root``.
        Files that fail to probe are logged and left out. A root that exists
        but cannot be listed raises ``PathError`` rather than reading as empty.
        """
        if not root.exists():
            return []
        if not root.is_dir():
            raise PathError(str(root), PathErrorKind.NOT_A_DIRECTORY)

        try:
            file_paths = list(walk_dir(root))
        except OSError as exc:
            raise PathError(
                str(root), PathErrorKind.UNREADABLE, exc.strerror or str(exc)
            ) from exc

        infos: list[FileInfo] = []
        for file_path in file_paths:
            try:
                info = cls.from_path(file_path, policy)
            except PathError as exc:
                logger.warning("Skipping %s: %s", file_path, exc)
                continue
            if info.exists:
                infos.append(info)
        return infos

    @classmethod
    def from_wire(cls, data: Mapping[str, Any]) -> FileInfo:
        """Build a FileInfo from its JSON form, normalizing digest case."""
        try:
            path = data["path"]
            seconds = int(data["seconds"])
            digest = str(data["digest"]).lower()
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"Malformed file info: {data!r}") from exc
        if not isinstance(path, str):
            raise ValueError(f"File info path must be a string: {path!r}")
        exists = data.get("exists", bool(digest))
        if not isinstance(exists, bool):
            raise ValueError(f"File info exists flag must be a boolean: {exists!r}")

        if seconds < 0:
            raise ValueError(f"Negative modification time for {path}")
        if not exists and (seconds != 0 or digest):
            raise ValueError(f"Missing file {path} carries a fingerprint")
        if digest and not _HEX_DIGEST.match(digest):
            raise ValueError(f"Invalid SHA-256 digest for {path}: {digest}")
        return cls(path=path, seconds=seconds, digest=digest, exists=exists)

    def to_wire(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "seconds": self.seconds,
            "digest": self.digest,
            "exists": self.exists,
        }

    def rebase(self, root: Path | str) -> FileInfo:
        """Return a copy whose path is relative to ``root``, slash-separated.

        Raises ValueError if the path does not lie under ``root``.
        """
        relative = Path(self.path).relative_to(Path(root))
        return replace(self, path=relative.as_posix())


def index_by_path(infos: Iterable[FileInfo]) -> dict[str, FileInfo]:
    """Key a directory fingerprint by identity."""
    index: dict[str, FileInfo] = {}
    for info in infos:
        if info.path in index:
            raise ValueError(f"Duplicate identity in directory fingerprint: {info.path}")
        index[info.path] = info
    return index
