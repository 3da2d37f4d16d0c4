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

"""Linux targets: an AppImage built from the populated AppDir.

The install directory doubles as the AppDir. It receives a desktop entry,
the application icon and an `AppRun` symlink to the launcher, and is then
handed to the AppImage builder inside the container.
"""

from __future__ import annotations

from pathlib import Path
import re
import shlex
import shutil
from typing import TYPE_CHECKING

from jarpack.exceptions import PackagingError
from jarpack.icons import IconSet, IconStandardizer
from jarpack.io.archive import make_executable
from jarpack.io.files import copy_tree, safe_delete
from jarpack.targets.base import Configurator, Target

if TYPE_CHECKING:
    from jarpack.descriptor import ApplicationDescriptor

APPIMAGE_BUILDER = "/opt/appimage/AppRun"


def compact_name(name: str) -> str:
    """Lower-case alphanumeric form of the name, e.g. 'My App' -> 'myapp'."""
    return re.sub(r"[^a-z0-9]", "", name.lower())


def desktop_entry(name: str) -> str:
    cname = compact_name(name)
    return (
        "[Desktop Entry]\n"
        "Type=Application\n"
        f"Name={name}\n"
        f"Exec={cname} %u\n"
        "Categories=Development;\n"
        f"Comment={name} application\n"
        f"Icon={cname}\n"
    )


class LinuxConfigurator(Configurator):
    """Shared AppImage logic; subclasses fix the architecture."""

    architecture: str
    payload_relative_path = "lib/app"

    def executable_relative_path(self, app_name: str) -> str:
        return f"bin/{app_name}"

    def post_process(
        self, output_dir: Path, descriptor: ApplicationDescriptor
    ) -> list[Path]:
        from jarpack.logging import get_global_logger

        logger = get_global_logger()
        name = descriptor.name
        cname = compact_name(name)
        app_dir = output_dir / self.install_dir_name(name)

        (app_dir / f"{cname}.desktop").write_text(desktop_entry(name), encoding="utf-8")

        icons = IconSet(IconStandardizer(self.context, name), descriptor)
        icon = icons.app()
        if icon is not None:
            shutil.copy2(icon, app_dir / f"{cname}.png")
            logger.verbose("LINUX", f"Copied icon as {cname}.png")

        app_run = app_dir / "AppRun"
        safe_delete(app_run)
        app_run.symlink_to(self.executable_relative_path(name))

        logger.verbose("LINUX", f"Creating AppImage for {name} ({self.architecture})")
        artifact = output_dir / f"{name}-{descriptor.version}-{self.architecture}.AppImage"
        with self.context.new_runner() as runner:
            copy_tree(app_dir, runner.working_dir / name)
            command = (
                f"export VERSION={shlex.quote(descriptor.version)} "
                f"ARCH={self.architecture} && "
                f"{APPIMAGE_BUILDER} {shlex.quote(name)}"
            )
            result = self.context.execute(runner.invoke(command))
            if not result.ok:
                raise PackagingError(
                    f"AppImage creation failed with exit code {result.exit_code}"
                )
            produced = sorted(runner.working_dir.glob("*.AppImage"))
            if not produced:
                raise PackagingError("No AppImage file found after creation")
            shutil.copy2(produced[0], artifact)
        make_executable(artifact)
        logger.verbose("LINUX", f"AppImage created: {artifact.name}")
        return [artifact]


class LinuxArm64Configurator(LinuxConfigurator):
    target = Target.LINUX_ARM64
    architecture = "aarch64"


class LinuxX64Configurator(LinuxConfigurator):
    target = Target.LINUX_X64
    architecture = "x86_64"
