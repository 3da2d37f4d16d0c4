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

"""Ownership of every temporary directory created during a packaging run.

Each stage that needs scratch space (container working directories, icon
conversion, template extraction, installer resources) asks the registry for
a directory and hands it back when it is done. Whatever is still recorded
when the run ends, normally or not, is removed by release_all().

Design Principles:
    - One registry per run, created by the caller and injected; never global
    - The ledger is guarded by a lock; filesystem deletion happens outside it
    - Release is idempotent: an already released or vanished directory is
      not an error
    - Deletion failures are logged and never raised

Example:
    Scoped usage:
        ```python
        from jarpack.runtime import TempRegistry

        with TempRegistry() as registry:
            work = registry.create("icon-", "-convert")
            ...
            registry.release(work)
        # anything not released is removed here
        ```
"""

from __future__ import annotations

from pathlib import Path
import shutil
import tempfile
import threading


class TempRegistry:
    """Ledger of live temporary directories.

    Args:
        base_dir: Parent directory for created directories. Defaults to the
            system temporary directory.
    """

    def __init__(self, base_dir: Path | None = None) -> None:
        self._base_dir = Path(base_dir) if base_dir is not None else None
        self._lock = threading.Lock()
        self._live: list[Path] = []

    def create(self, prefix: str = "jarpack-", suffix: str = "-temp") -> Path:
        """Create a uniquely named directory and record it.

        Args:
            prefix: Directory name prefix.
            suffix: Directory name suffix.

        Returns:
            Absolute path of the new directory.
        """
        from jarpack.logging import get_global_logger

        logger = get_global_logger()
        if self._base_dir is not None:
            self._base_dir.mkdir(parents=True, exist_ok=True)
        path = Path(
            tempfile.mkdtemp(prefix=prefix, suffix=suffix, dir=self._base_dir)
        ).resolve()
        with self._lock:
            self._live.append(path)
        logger.debug("TEMP", f"Created {path}")
        return path

    def release(self, path: Path) -> bool:
        """Delete a recorded directory and drop it from the ledger.

        Args:
            path: A path previously returned by create().

        Returns:
            True if the path was recorded and is now released, False if it
            was not (or no longer) recorded.
        """
        path = Path(path).resolve()
        with self._lock:
            try:
                self._live.remove(path)
            except ValueError:
                return False
        self._delete(path)
        return True

    def release_all(self) -> int:
        """Delete every recorded directory.

        Safe to call repeatedly; a call on an empty registry does nothing.

        Returns:
            Number of directories that were released.
        """
        from jarpack.logging import get_global_logger

        with self._lock:
            pending = list(reversed(self._live))
            self._live.clear()
        if pending:
            get_global_logger().verbose(
                "TEMP", f"Cleaning up {len(pending)} temporary folder(s)"
            )
        for path in pending:
            self._delete(path)
        return len(pending)

    def live(self) -> list[Path]:
        """Snapshot of the directories currently recorded."""
        with self._lock:
            return list(self._live)

    def __len__(self) -> int:
        with self._lock:
            return len(self._live)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, Path)):
            return False
        with self._lock:
            return Path(path).resolve() in self._live

    def __enter__(self) -> TempRegistry:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release_all()

    @staticmethod
    def _delete(path: Path) -> None:
        from jarpack.logging import get_global_logger

        logger = get_global_logger()
        if not path.exists() and not path.is_symlink():
            logger.debug("TEMP", f"Already gone: {path}")
            return
        try:
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            else:
                path.unlink()
            logger.debug("TEMP", f"Deleted {path}")
        except OSError as err:
            logger.warning("TEMP", f"Failed to delete {path}: {err}")
