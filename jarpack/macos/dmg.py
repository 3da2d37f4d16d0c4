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

"""macOS disk image assembly on a Linux host.

A DMG is built by formatting a sparse file as HFS+ inside the builder
container, attaching it to a loop device with udisksctl, copying the app
bundle (and optionally the contents of a template image) onto the mounted
volume, detaching it, and compressing the result with `dmg`.

State Machine:
    IDLE -> TEMPLATE_ACQUIRED -> IMAGE_CREATED -> MOUNTED
    IDLE -> SCRATCH_CREATED -> MOUNTED
    MOUNTED -> CONTENT_MERGED -> UNMOUNTED -> COMPRESSED -> DONE
    MOUNTED -> UNMOUNTED (merge failed; the error propagates afterwards)
    UNMOUNTED -> DONE (compression disabled)
    any -> IDLE (template processing failed; assembly restarts from scratch)

Design Principles:
    - A template that cannot be used (missing, wrong type, unreadable,
      unmountable) or whose processing fails degrades to scratch assembly
      with a warning
    - Every successful loop attach has exactly one detach and every
      successful mount exactly one unmount, whatever fails in between
    - Teardown failures are logged, never raised
    - udisksctl output parsing lives in small functions that raise
      ToolOutputError when the expected pattern is absent

Example:
    ```python
    from jarpack.macos.dmg import DiskImageBuilder

    builder = DiskImageBuilder(context, volume_name="MyApp")
    builder.build(
        app_bundle=Path("dist/mac-x64/MyApp.app"),
        dmg_path=Path("dist/mac-x64/MyApp-1.0.0.dmg"),
        template=Path("assets/template.zip"),
    )
    print(builder.history)
    ```
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
import re
import shlex
import shutil
import zipfile
from typing import TYPE_CHECKING

from jarpack.exceptions import PackagingError, ToolOutputError
from jarpack.io.files import copy_tree, safe_delete, safe_move
from jarpack.runtime.process import ToolInvocation

if TYPE_CHECKING:
    from jarpack.context import BuildContext
    from jarpack.runtime.container import ContainerRunner

_LOOP_RE = re.compile(r"Mapped file .* as (/dev/loop\d+)")
_MOUNT_RE = re.compile(r"Mounted .* at (.*)$", re.MULTILINE)

# HFS+ journal files are never copied out of a template.
_JOURNAL_PREFIX = ".journal"


class DmgState(Enum):
    IDLE = "idle"
    TEMPLATE_ACQUIRED = "template_acquired"
    SCRATCH_CREATED = "scratch_created"
    IMAGE_CREATED = "image_created"
    MOUNTED = "mounted"
    CONTENT_MERGED = "content_merged"
    UNMOUNTED = "unmounted"
    COMPRESSED = "compressed"
    DONE = "done"


_TRANSITIONS: dict[DmgState, frozenset[DmgState]] = {
    DmgState.IDLE: frozenset({DmgState.TEMPLATE_ACQUIRED, DmgState.SCRATCH_CREATED}),
    DmgState.TEMPLATE_ACQUIRED: frozenset({DmgState.IMAGE_CREATED}),
    DmgState.SCRATCH_CREATED: frozenset({DmgState.MOUNTED}),
    DmgState.IMAGE_CREATED: frozenset({DmgState.MOUNTED}),
    DmgState.MOUNTED: frozenset({DmgState.CONTENT_MERGED, DmgState.UNMOUNTED}),
    DmgState.CONTENT_MERGED: frozenset({DmgState.UNMOUNTED}),
    DmgState.UNMOUNTED: frozenset({DmgState.COMPRESSED, DmgState.DONE}),
    DmgState.COMPRESSED: frozenset({DmgState.DONE}),
    DmgState.DONE: frozenset(),
}


@dataclass(frozen=True)
class MountedVolume:
    """A loop-attached, mounted disk image.

    Attributes:
        loop_device: The attached loop device (e.g., /dev/loop3).
        block_device: The device that was mounted (loop device or its
            first partition).
        mount_point: Where the filesystem is mounted.
    """

    loop_device: str
    block_device: str
    mount_point: Path


# -------------------------------
# Output parsing
# -------------------------------


def parse_loop_device(output: str) -> str:
    """Extract the loop device from `udisksctl loop-setup` output.

    Raises:
        ToolOutputError: If no loop device is reported.
    """
    match = _LOOP_RE.search(output)
    if not match:
        raise ToolOutputError(f"Could not determine loop device from: {output!r}")
    return match.group(1)


def parse_mount_point(output: str) -> Path:
    """Extract the mount point from `udisksctl mount` output.

    Raises:
        ToolOutputError: If no mount point is reported.
    """
    match = _MOUNT_RE.search(output)
    mount_point = match.group(1).strip().rstrip(".") if match else ""
    if not mount_point:
        raise ToolOutputError(f"Could not determine mount point from: {output!r}")
    return Path(mount_point)


def find_partition(lsblk_output: str, loop_device: str) -> str | None:
    """Return the first partition device of 'loop_device' if lsblk lists one."""
    name = loop_device.removeprefix("/dev/")
    if f"{name}p1" in lsblk_output:
        return f"{loop_device}p1"
    return None


# -------------------------------
# Mount lifecycle
# -------------------------------


def _teardown(context: BuildContext, argv: tuple[str, ...]) -> None:
    from jarpack.logging import get_global_logger

    logger = get_global_logger()
    try:
        result = context.execute(ToolInvocation(argv))
    except PackagingError as err:
        logger.warning("DMG", f"{' '.join(argv)} failed: {err}")
        return
    if not result.ok:
        logger.warning(
            "DMG",
            f"{' '.join(argv)} exited with {result.exit_code}: {result.stderr.strip()}",
        )


@contextmanager
def mounted_image(
    context: BuildContext,
    image: Path,
    *,
    read_only: bool = False,
    probe_partition: bool = False,
) -> Iterator[MountedVolume]:
    """Attach and mount a disk image for the duration of the block.

    Args:
        context: Build context used to run udisksctl and lsblk.
        image: Disk image file.
        read_only: Attach the loop device read-only.
        probe_partition: Mount the first partition when the image has one.

    Yields:
        The mounted volume.

    Raises:
        PackagingError: If attaching or mounting fails.
        ToolOutputError: If udisksctl output cannot be parsed.
    """
    from jarpack.logging import get_global_logger

    logger = get_global_logger()
    setup_argv = ["udisksctl", "loop-setup"]
    if read_only:
        setup_argv.append("-r")
    setup_argv += ["-f", str(image)]
    result = context.execute(ToolInvocation(tuple(setup_argv)))
    if not result.ok:
        raise PackagingError(
            f"Failed to attach {image.name} (exit {result.exit_code}): "
            f"{result.stderr.strip()}"
        )
    loop_device = parse_loop_device(result.stdout)
    logger.verbose("DMG", f"Attached {image.name} as {loop_device}")
    try:
        block_device = loop_device
        if probe_partition:
            listing = context.execute(
                ToolInvocation(("lsblk", "-n", "-o", "NAME", loop_device))
            )
            if listing.ok:
                partition = find_partition(listing.stdout, loop_device)
                block_device = partition or loop_device
        result = context.execute(
            ToolInvocation(("udisksctl", "mount", "-b", block_device))
        )
        if not result.ok:
            raise PackagingError(
                f"Failed to mount {block_device} (exit {result.exit_code}): "
                f"{result.stderr.strip()}"
            )
        try:
            mount_point = parse_mount_point(result.stdout)
            logger.verbose("DMG", f"Mounted {block_device} at {mount_point}")
            yield MountedVolume(loop_device, block_device, mount_point)
        finally:
            _teardown(context, ("udisksctl", "unmount", "-b", block_device))
    finally:
        _teardown(context, ("udisksctl", "loop-delete", "-b", loop_device))


# -------------------------------
# Content handling
# -------------------------------


def copy_volume_entries(mount_point: Path, dest: Path) -> int:
    """Copy the top-level entries of a mounted volume, skipping journals.

    Returns:
        Number of entries copied.
    """
    from jarpack.logging import get_global_logger

    logger = get_global_logger()
    dest.mkdir(parents=True, exist_ok=True)
    copied = 0
    for entry in sorted(mount_point.iterdir()):
        if entry.name.startswith(_JOURNAL_PREFIX):
            continue
        target = dest / entry.name
        try:
            if entry.is_symlink():
                target.symlink_to(entry.readlink())
            elif entry.is_dir():
                shutil.copytree(entry, target, symlinks=True)
            else:
                shutil.copy2(entry, target)
        except OSError as err:
            logger.warning("DMG", f"Skipping template entry {entry.name}: {err}")
            continue
        copied += 1
    return copied


def merge_content(
    mount_point: Path, app_bundle: Path, template_dir: Path | None = None
) -> None:
    """Lay out the volume: template entries, the bundle, /Applications link."""
    if template_dir is not None:
        copy_tree(template_dir, mount_point)
    for existing in mount_point.glob("*.app"):
        safe_delete(existing)
    shutil.copytree(app_bundle, mount_point / app_bundle.name, symlinks=True)
    link = mount_point / "Applications"
    safe_delete(link)
    link.symlink_to("/Applications")


# -------------------------------
# Builder
# -------------------------------


class DiskImageBuilder:
    """Assembles one DMG, tracking its progress as a state machine.

    Args:
        context: Build context.
        volume_name: HFS+ volume label.
    """

    def __init__(self, context: BuildContext, volume_name: str) -> None:
        self._context = context
        self._volume_name = volume_name
        self.state = DmgState.IDLE
        self.history: list[DmgState] = [DmgState.IDLE]
        self.used_template = False

    def _advance(self, new_state: DmgState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise PackagingError(
                f"Illegal disk image transition {self.state.value} -> {new_state.value}"
            )
        self.state = new_state
        self.history.append(new_state)

    def build(
        self,
        app_bundle: Path,
        dmg_path: Path,
        template: Path | None = None,
        compress: bool = True,
    ) -> Path:
        """Build the disk image.

        Args:
            app_bundle: The .app directory to ship.
            dmg_path: Final DMG location.
            template: Optional template (.dmg, or .zip containing one).
            compress: Compress the image; otherwise ship it uncompressed.

        Returns:
            dmg_path.

        Raises:
            PackagingError: If image creation, mounting, merging or
                compression fails on the scratch path.
        """
        from jarpack.logging import get_global_logger

        logger = get_global_logger()
        template_work: Path | None = None
        template_dir: Path | None = None

        if template is not None:
            try:
                template_work, template_dir = self._acquire_template(template)
                self._advance(DmgState.TEMPLATE_ACQUIRED)
                self.used_template = True
            except (PackagingError, OSError, zipfile.BadZipFile) as err:
                logger.warning(
                    "DMG", f"Template unusable, building from scratch: {err}"
                )

        try:
            if self.used_template:
                try:
                    self._assemble(app_bundle, dmg_path, template_dir, compress)
                except (PackagingError, OSError) as err:
                    logger.warning(
                        "DMG",
                        f"Template processing failed, building from scratch: {err}",
                    )
                    self._restart()
                    self._assemble(app_bundle, dmg_path, None, compress)
            else:
                self._assemble(app_bundle, dmg_path, None, compress)
        finally:
            if template_work is not None:
                self._context.registry.release(template_work)

        logger.verbose("DMG", f"Disk image ready: {dmg_path}")
        return dmg_path

    def _restart(self) -> None:
        self.state = DmgState.IDLE
        self.history.append(DmgState.IDLE)
        self.used_template = False

    def _assemble(
        self,
        app_bundle: Path,
        dmg_path: Path,
        template_dir: Path | None,
        compress: bool,
    ) -> None:
        with self._context.new_runner() as runner:
            image = runner.working_dir / f"{dmg_path.stem}-uncompressed.dmg"
            self._create_image(runner, image)
            self._advance(
                DmgState.IMAGE_CREATED if self.used_template
                else DmgState.SCRATCH_CREATED
            )

            try:
                with mounted_image(self._context, image) as volume:
                    self._advance(DmgState.MOUNTED)
                    merge_content(volume.mount_point, app_bundle, template_dir)
                    self._advance(DmgState.CONTENT_MERGED)
            finally:
                if self.state in (DmgState.MOUNTED, DmgState.CONTENT_MERGED):
                    self._advance(DmgState.UNMOUNTED)

            if compress:
                self._compress(runner, image, dmg_path)
                self._advance(DmgState.COMPRESSED)
            else:
                safe_move(image, dmg_path)
            self._advance(DmgState.DONE)

    def _acquire_template(self, template: Path) -> tuple[Path, Path]:
        """Copy a template's volume contents into a registry temp dir.

        Returns:
            (work_dir, contents_dir); work_dir must be released by the caller.
        """
        from jarpack.logging import get_global_logger

        logger = get_global_logger()
        if not template.is_file():
            raise PackagingError(f"DMG template not found: {template}")
        suffix = template.suffix.lower()
        if suffix not in (".dmg", ".zip"):
            raise PackagingError(f"DMG template must be .dmg or .zip: {template}")

        work = self._context.registry.create("dmg-template-", "-extract")
        try:
            image = template
            if suffix == ".zip":
                extracted = work / "archive"
                with zipfile.ZipFile(template) as zf:
                    zf.extractall(extracted)
                images = sorted(extracted.rglob("*.dmg"))
                if not images:
                    raise PackagingError(f"No .dmg found inside {template.name}")
                image = images[0]
            contents = work / "contents"
            with mounted_image(
                self._context, image, read_only=True, probe_partition=True
            ) as volume:
                count = copy_volume_entries(volume.mount_point, contents)
            logger.verbose("DMG", f"Template provided {count} entries")
            return work, contents
        except BaseException:
            self._context.registry.release(work)
            raise

    def _create_image(self, runner: ContainerRunner, image: Path) -> None:
        size = self._context.settings.dmg_size_mb * 1024 * 1024
        with image.open("wb") as f:
            f.truncate(size)
        command = (
            f"mkfs.hfsplus -v {shlex.quote(self._volume_name)} "
            f"{shlex.quote(image.name)}"
        )
        result = self._context.execute(runner.invoke(command))
        if not result.ok:
            raise PackagingError(
                f"mkfs.hfsplus failed (exit {result.exit_code}): "
                f"{result.stderr.strip()}"
            )

    def _compress(
        self, runner: ContainerRunner, image: Path, dmg_path: Path
    ) -> None:
        compressed = runner.working_dir / dmg_path.name
        command = f"dmg {shlex.quote(image.name)} {shlex.quote(compressed.name)}"
        result = self._context.execute(runner.invoke(command))
        if not result.ok or not compressed.is_file():
            raise PackagingError(
                f"DMG compression failed (exit {result.exit_code}): "
                f"{result.stderr.strip()}"
            )
        safe_move(compressed, dmg_path)
        image.unlink(missing_ok=True)
