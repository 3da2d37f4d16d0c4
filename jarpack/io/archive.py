# Copyright 2025 Roger Cibrian
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Archive handling for base distributions and generic packages.

Base distributions are zip files. Zip entries carry no reliable Unix
permissions, so each distribution ships a `.metadata` JSON entry listing
the files that must be executable:

    {"executables": ["Launcher/bin/Launcher", "Launcher/lib/runtime/bin/java"]}

The metadata entry itself is not extracted.
"""

from __future__ import annotations

import json
from pathlib import Path
import stat
import tarfile
import zipfile

from jarpack.exceptions import PackagingError

METADATA_ENTRY = ".metadata"

_EXEC_BITS = stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH


def make_executable(path: Path) -> None:
    """Add execute permission for owner, group and others."""
    mode = path.stat().st_mode
    path.chmod(mode | _EXEC_BITS)


def _safe_target(dest: Path, name: str) -> Path:
    """Resolve an archive member name under 'dest', refusing escapes."""
    target = (dest / name).resolve()
    if target != dest and dest not in target.parents:
        raise PackagingError(f"Archive entry escapes destination: {name}")
    return target


def extract_distribution(zip_path: Path, dest: Path) -> list[str]:
    """Extract a base distribution zip and apply its executable metadata.

    Args:
        zip_path: The distribution archive.
        dest: Extraction directory (created if missing).

    Returns:
        The executable paths listed in the metadata (relative to dest).

    Raises:
        PackagingError: If the archive is corrupt, its metadata is not valid
            JSON, or an entry would land outside dest.
    """
    from jarpack.logging import get_global_logger

    logger = get_global_logger()
    dest = Path(dest).resolve()
    dest.mkdir(parents=True, exist_ok=True)
    executables: list[str] = []

    try:
        with zipfile.ZipFile(zip_path) as zf:
            for info in zf.infolist():
                if info.filename == METADATA_ENTRY:
                    try:
                        meta = json.loads(zf.read(info).decode("utf-8"))
                    except ValueError as err:
                        raise PackagingError(
                            f"Invalid {METADATA_ENTRY} in {zip_path}: {err}"
                        ) from err
                    executables = list(meta.get("executables", []))
                    continue
                target = _safe_target(dest, info.filename)
                if info.is_dir():
                    target.mkdir(parents=True, exist_ok=True)
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                with zf.open(info) as src, target.open("wb") as out:
                    while chunk := src.read(1024 * 1024):
                        out.write(chunk)
    except zipfile.BadZipFile as err:
        raise PackagingError(f"Corrupt archive {zip_path}: {err}") from err

    for rel in executables:
        target = _safe_target(dest, rel)
        if target.is_file():
            make_executable(target)
        else:
            logger.warning("DIST", f"Listed executable not found: {rel}")

    logger.verbose(
        "DIST",
        f"Extracted {zip_path.name} ({len(executables)} executable(s) marked)",
    )
    return executables


def create_tar_gz(source_dir: Path, archive_path: Path) -> Path:
    """Archive a directory as gzip-compressed tar.

    The directory itself is the single top-level entry of the archive.
    Symlinks are stored as symlinks and permissions are preserved.

    Args:
        source_dir: Directory to archive.
        archive_path: Output file.

    Returns:
        archive_path.
    """
    with tarfile.open(archive_path, "w:gz") as tar:
        tar.add(source_dir, arcname=source_dir.name)
    return archive_path
