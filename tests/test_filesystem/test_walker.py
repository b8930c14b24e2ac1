"""Tests for recursive directory walking."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING
from unittest.mock import patch

import pytest

from backend.filesystem.walker import walk_dir

if TYPE_CHECKING:
    from pathlib import Path


def _relative(root: Path) -> set[str]:
    return {p.relative_to(root).as_posix() for p in walk_dir(root)}


def test_walk_returns_every_regular_file(tmp_path: Path) -> None:
    (tmp_path / "sub" / "deeper").mkdir(parents=True)
    (tmp_path / "a.txt").write_text("a")
    (tmp_path / "sub" / "b.txt").write_text("b")
    (tmp_path / "sub" / "deeper" / "c.bin").write_bytes(b"\x00")

    assert _relative(tmp_path) == {"a.txt", "sub/b.txt", "sub/deeper/c.bin"}


def test_walk_skips_directories_and_empty_dirs(tmp_path: Path) -> None:
    (tmp_path / "empty").mkdir()
    assert _relative(tmp_path) == set()


def test_walk_skips_symlinks(tmp_path: Path) -> None:
    outside = tmp_path / "outside"
    outside.mkdir()
    (outside / "secret.txt").write_text("s")
    root = tmp_path / "root"
    root.mkdir()
    (root / "real.txt").write_text("r")
    (root / "link.txt").symlink_to(outside / "secret.txt")
    (root / "linkdir").symlink_to(outside, target_is_directory=True)

    assert _relative(root) == {"real.txt"}


def test_walk_missing_root_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        list(walk_dir(tmp_path / "absent"))


def test_walk_skips_unreadable_subdirectory(tmp_path: Path) -> None:
    (tmp_path / "ok").mkdir()
    (tmp_path / "ok" / "a.txt").write_text("a")
    (tmp_path / "locked").mkdir()
    (tmp_path / "locked" / "b.txt").write_text("b")

    real_scandir = os.scandir

    def guarded_scandir(path: Path):
        if str(path).endswith("locked"):
            raise PermissionError(13, "Permission denied", str(path))
        return real_scandir(path)

    with patch("backend.filesystem.walker.os.scandir", side_effect=guarded_scandir):
        assert _relative(tmp_path) == {"ok/a.txt"}


def test_walk_unreadable_root_raises(tmp_path: Path) -> None:
    (tmp_path / "a.txt").write_text("a")

    with (
        patch(
            "backend.filesystem.walker.os.scandir",
            side_effect=PermissionError(13, "Permission denied", str(tmp_path)),
        ),
        pytest.raises(PermissionError),
    ):
        list(walk_dir(tmp_path))
