"""Recursive enumeration of regular files under a directory."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)


def walk_dir(root: Path) -> Iterator[Path]:
    """Yield every regular file below ``root``.

    Symbolic links are never followed or reported. An ``OSError`` from
    listing ``root`` itself propagates; subdirectories and entries that
    cannot be read are skipped so that one bad subtree only shortens the
    result.
    """
    with os.scandir(root) as it:
        entries = list(it)
    yield from _walk_entries(entries)


def _walk_subdir(path: Path) -> Iterator[Path]:
    try:
        with os.scandir(path) as it:
            entries = list(it)
    except OSError as exc:
        logger.debug("Skipping unreadable directory %s: %s", path, exc)
        return
    yield from _walk_entries(entries)


def _walk_entries(entries: list[os.DirEntry[str]]) -> Iterator[Path]:
    for entry in entries:
        try:
            if entry.is_symlink():
                continue
            is_dir = entry.is_dir(follow_symlinks=False)
            is_file = not is_dir and entry.is_file(follow_symlinks=False)
        except OSError as exc:
            logger.debug("Skipping unreadable entry %s: %s", entry.path, exc)
            continue
        if is_dir:
            yield from _walk_subdir(Path(entry.path))
        elif is_file:
            yield Path(entry.path)
