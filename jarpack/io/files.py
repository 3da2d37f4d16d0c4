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

"""Filesystem helpers shared by the packaging stages."""

from __future__ import annotations

from pathlib import Path
import shutil


def copy_tree(source: Path, dest: Path) -> None:
    """Copy the contents of 'source' into 'dest'.

    Symlinks are copied as symlinks; permissions and timestamps are kept.
    Existing files in dest are overwritten.
    """
    dest.mkdir(parents=True, exist_ok=True)
    for entry in source.iterdir():
        target = dest / entry.name
        if entry.is_symlink():
            safe_delete(target)
            target.symlink_to(entry.readlink())
        elif entry.is_dir():
            shutil.copytree(entry, target, symlinks=True, dirs_exist_ok=True)
        else:
            shutil.copy2(entry, target)


def safe_delete(path: Path) -> None:
    """Remove a file, symlink or directory tree if it exists."""
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.is_dir():
        shutil.rmtree(path)


def safe_move(source: Path, dest: Path) -> None:
    """Move 'source' to 'dest', replacing whatever is at 'dest'."""
    if source.resolve() == dest.resolve():
        return
    safe_delete(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)
    shutil.move(str(source), str(dest))


def recreate_dir(path: Path) -> Path:
    """Delete 'path' if present and create it empty."""
    safe_delete(path)
    path.mkdir(parents=True)
    return path
