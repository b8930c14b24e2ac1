"""Tests for the FileInfo model."""

from __future__ import annotations

import hashlib
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from backend.exceptions import PathError, PathErrorKind
from backend.filesystem.file_info import FileInfo, index_by_path
from backend.filesystem.probe import ProbePolicy, probe_path

_DIGEST_A = hashlib.sha256(b"a").hexdigest()


class TestFromPath:
    def test_missing_path_is_not_an_error(self, tmp_path: Path) -> None:
        path = tmp_path / "ghost.txt"
        assert FileInfo.from_path(path) == FileInfo(
            path=str(path), seconds=0, digest="", exists=False
        )

    def test_directory_is_not_a_file(self, tmp_path: Path) -> None:
        with pytest.raises(PathError) as exc_info:
            FileInfo.from_path(tmp_path)
        assert exc_info.value.kind == PathErrorKind.NOT_A_FILE

    def test_regular_file(self, tmp_path: Path) -> None:
        path = tmp_path / "notes.txt"
        path.write_bytes(b"a")
        os.utime(path, (1234, 1234))
        info = FileInfo.from_path(path)
        assert info.exists is True
        assert info.digest == _DIGEST_A
        assert info.seconds == 1234
        assert info.path == str(path)

    def test_each_probe_reads_current_content(self, tmp_path: Path) -> None:
        path = tmp_path / "notes.txt"
        path.write_bytes(b"v1")
        first = FileInfo.from_path(path)
        path.write_bytes(b"v2")
        second = FileInfo.from_path(path)
        assert first.digest != second.digest
        assert second.digest == hashlib.sha256(b"v2").hexdigest()


class TestFromDirectory:
    def test_missing_root_is_empty(self, tmp_path: Path) -> None:
        assert FileInfo.from_directory(tmp_path / "absent") == []

    def test_file_root_is_not_a_directory(self, tmp_path: Path) -> None:
        path = tmp_path / "file.txt"
        path.write_text("x")
        with pytest.raises(PathError) as exc_info:
            FileInfo.from_directory(path)
        assert exc_info.value.kind == PathErrorKind.NOT_A_DIRECTORY

    def test_recursive_tree_rebases_to_relative_paths(self, tmp_path: Path) -> None:
        root = tmp_path / "root"
        (root / "sub").mkdir(parents=True)
        (root / "a.txt").write_text("a")
        (root / "sub" / "b.txt").write_text("b")

        infos = FileInfo.from_directory(root)
        assert {info.path for info in infos} == {str(root / "a.txt"), str(root / "sub" / "b.txt")}
        assert {info.rebase(root).path for info in infos} == {"a.txt", "sub/b.txt"}
        assert all(info.exists for info in infos)

    def test_unreadable_file_is_skipped(self, tmp_path: Path) -> None:
        root = tmp_path / "root"
        root.mkdir()
        (root / "good.txt").write_text("good")
        (root / "bad.txt").write_text("bad")

        def flaky_probe(path: Path, policy: ProbePolicy = ProbePolicy.RAISE):
            if path.name == "bad.txt":
                raise PathError(str(path), PathErrorKind.UNREADABLE)
            return probe_path(path, policy)

        with patch("backend.filesystem.file_info.probe_path", side_effect=flaky_probe):
            infos = FileInfo.from_directory(root)
        assert [info.rebase(root).path for info in infos] == ["good.txt"]

    def test_unreadable_root_is_not_an_empty_directory(self, tmp_path: Path) -> None:
        root = tmp_path / "root"
        root.mkdir()
        (root / "a.txt").write_text("a")

        with (
            patch(
                "backend.filesystem.walker.os.scandir",
                side_effect=PermissionError(13, "Permission denied", str(root)),
            ),
            pytest.raises(PathError) as exc_info,
        ):
            FileInfo.from_directory(root)
        assert exc_info.value.kind == PathErrorKind.UNREADABLE
        assert exc_info.value.path == str(root)

    def test_backslash_in_name_survives_rebase_and_wire(self, tmp_path: Path) -> None:
        root = tmp_path / "root"
        root.mkdir()
        (root / "a\\b.txt").write_text("x")

        (info,) = FileInfo.from_directory(root)
        rebased = info.rebase(root)
        assert rebased.path == "a\\b.txt"
        assert FileInfo.from_wire(rebased.to_wire()) == rebased


class TestRebase:
    def test_rebase_returns_new_instance(self, tmp_path: Path) -> None:
        path = str(tmp_path / "x" / "y.txt")
        info = FileInfo(path=path, seconds=5, digest=_DIGEST_A, exists=True)
        rebased = info.rebase(tmp_path)
        assert rebased.path == "x/y.txt"
        assert info.path == str(tmp_path / "x" / "y.txt")
        assert (rebased.seconds, rebased.digest, rebased.exists) == (5, _DIGEST_A, True)

    def test_rebase_outside_root_raises(self, tmp_path: Path) -> None:
        info = FileInfo.missing("/elsewhere/file.txt")
        with pytest.raises(ValueError):
            info.rebase(tmp_path)


class TestWireFormat:
    def test_uppercase_digest_is_normalized(self) -> None:
        info = FileInfo.from_wire(
            {"path": "a.txt", "seconds": 10, "digest": _DIGEST_A.upper(), "exists": True}
        )
        assert info.digest == _DIGEST_A

    def test_round_trip(self) -> None:
        info = FileInfo(path="sub/b.txt", seconds=42, digest=_DIGEST_A, exists=True)
        assert FileInfo.from_wire(info.to_wire()) == info

    def test_exists_inferred_when_absent(self) -> None:
        info = FileInfo.from_wire({"path": "a.txt", "seconds": 3, "digest": _DIGEST_A})
        assert info.exists is True
        missing = FileInfo.from_wire({"path": "a.txt", "seconds": 0, "digest": ""})
        assert missing.exists is False

    def test_missing_file_with_fingerprint_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            FileInfo.from_wire({"path": "a.txt", "seconds": 5, "digest": "", "exists": False})

    @pytest.mark.parametrize(
        "data",
        [
            {"seconds": 1, "digest": _DIGEST_A},
            {"path": "a.txt", "seconds": "soon", "digest": _DIGEST_A},
            {"path": "a.txt", "seconds": 1, "digest": "not-hex", "exists": True},
            {"path": "a.txt", "seconds": -1, "digest": _DIGEST_A, "exists": True},
            {"path": 7, "seconds": 1, "digest": _DIGEST_A, "exists": True},
            {"path": "a.txt", "seconds": 1, "digest": _DIGEST_A, "exists": "false"},
            {"path": "a.txt", "seconds": 0, "digest": "", "exists": 0},
        ],
    )
    def test_malformed_wire_data(self, data: dict[str, object]) -> None:
        with pytest.raises(ValueError):
            FileInfo.from_wire(data)


def test_index_by_path_rejects_duplicates() -> None:
    infos = [FileInfo.missing("a.txt"), FileInfo.missing("a.txt")]
    with pytest.raises(ValueError, match="Duplicate"):
        index_by_path(infos)
