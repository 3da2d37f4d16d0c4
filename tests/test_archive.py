"""
Tests for jarpack.io.archive and jarpack.io.files modules.

Tests archive handling including:
- Distribution extraction with executable metadata
- Corrupt archives and traversal attempts
- tar.gz creation
- Tree copy with symlinks and permissions
"""

from __future__ import annotations

import json
import os
import stat
import tarfile
import zipfile

import pytest

from jarpack.exceptions import PackagingError
from jarpack.io.archive import create_tar_gz, extract_distribution
from jarpack.io.files import copy_tree, recreate_dir, safe_delete, safe_move

pytestmark = pytest.mark.unit


def _zip(path, entries: dict[str, bytes]):
    with zipfile.ZipFile(path, "w") as zf:
        for name, data in entries.items():
            zf.writestr(name, data)
    return path


class TestExtractDistribution:
    """Tests for extract_distribution()."""

    def test_extracts_and_marks_executables(self, tmp_path):
        """Test that files listed in .metadata become executable."""
        archive = _zip(
            tmp_path / "dist.zip",
            {
                "Launcher/bin/Launcher": b"#!/bin/sh\n",
                "Launcher/lib/runtime/release": b"x",
                ".metadata": json.dumps(
                    {"executables": ["Launcher/bin/Launcher"]}
                ).encode(),
            },
        )
        dest = tmp_path / "out"

        marked = extract_distribution(archive, dest)

        assert marked == ["Launcher/bin/Launcher"]
        launcher = dest / "Launcher/bin/Launcher"
        assert launcher.stat().st_mode & stat.S_IXUSR
        assert not (dest / ".metadata").exists()
        assert not os.access(dest / "Launcher/lib/runtime/release", os.X_OK)

    def test_missing_listed_executable_warns(self, tmp_path, recording_logger):
        """Test that a listed but absent executable is a warning."""
        archive = _zip(
            tmp_path / "dist.zip",
            {"a.txt": b"x", ".metadata": b'{"executables": ["bin/nope"]}'},
        )

        extract_distribution(archive, tmp_path / "out")

        assert any("bin/nope" in w for w in recording_logger.warnings("DIST"))

    def test_corrupt_archive_raises(self, tmp_path):
        """Test that a non-zip file raises PackagingError."""
        bad = tmp_path / "bad.zip"
        bad.write_bytes(b"not a zip")

        with pytest.raises(PackagingError, match="Corrupt archive"):
            extract_distribution(bad, tmp_path / "out")

    def test_invalid_metadata_raises(self, tmp_path):
        """Test that unparsable metadata raises PackagingError."""
        archive = _zip(tmp_path / "dist.zip", {".metadata": b"{not json"})

        with pytest.raises(PackagingError, match="Invalid .metadata"):
            extract_distribution(archive, tmp_path / "out")

    def test_path_traversal_rejected(self, tmp_path):
        """Test that entries escaping the destination are refused."""
        archive = _zip(tmp_path / "evil.zip", {"../escape.txt": b"x"})

        with pytest.raises(PackagingError, match="escapes"):
            extract_distribution(archive, tmp_path / "out")

        assert not (tmp_path / "escape.txt").exists()


class TestTarGz:
    """Tests for create_tar_gz()."""

    def test_archive_has_directory_as_root(self, tmp_path):
        """Test that the directory is the single top-level entry."""
        source = tmp_path / "MyApp"
        (source / "lib").mkdir(parents=True)
        (source / "lib" / "a.jar").write_bytes(b"jar")
        (source / "MyApp").write_text("#!/bin/bash\n")
        os.chmod(source / "MyApp", 0o755)

        archive = create_tar_gz(source, tmp_path / "out.tar.gz")

        with tarfile.open(archive) as tar:
            names = set(tar.getnames())
            launcher = tar.getmember("MyApp/MyApp")
        assert names == {"MyApp", "MyApp/lib", "MyApp/lib/a.jar", "MyApp/MyApp"}
        assert launcher.mode & stat.S_IXUSR


class TestFiles:
    """Tests for the file helpers."""

    def test_copy_tree_keeps_symlinks_and_modes(self, tmp_path):
        """Test that symlinks stay symlinks and modes are preserved."""
        src = tmp_path / "src"
        (src / "sub").mkdir(parents=True)
        (src / "run.sh").write_text("x")
        os.chmod(src / "run.sh", 0o750)
        (src / "sub" / "data").write_text("d")
        (src / "link").symlink_to("run.sh")

        copy_tree(src, tmp_path / "dst")

        dst = tmp_path / "dst"
        assert (dst / "link").is_symlink()
        assert os.readlink(dst / "link") == "run.sh"
        assert stat.S_IMODE((dst / "run.sh").stat().st_mode) == 0o750
        assert (dst / "sub" / "data").read_text() == "d"

    def test_safe_move_replaces_destination(self, tmp_path):
        """Test that safe_move overwrites an existing destination tree."""
        (tmp_path / "a").mkdir()
        (tmp_path / "a" / "new").write_text("new")
        (tmp_path / "b").mkdir()
        (tmp_path / "b" / "old").write_text("old")

        safe_move(tmp_path / "a", tmp_path / "b")

        assert not (tmp_path / "a").exists()
        assert (tmp_path / "b" / "new").exists()
        assert not (tmp_path / "b" / "old").exists()

    def test_recreate_dir_and_safe_delete(self, tmp_path):
        """Test that recreate_dir empties and safe_delete tolerates absence."""
        target = tmp_path / "out"
        target.mkdir()
        (target / "stale").write_text("x")

        recreate_dir(target)

        assert list(target.iterdir()) == []
        safe_delete(target)
        safe_delete(target)
        assert not target.exists()
