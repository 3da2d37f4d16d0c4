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

"""macOS target: an app bundle, optionally signed, shipped in a DMG.

Post-processing Steps:
    1. Convert the app (and document) icon to ICNS
    2. Rewrite Info.plist and .jpackage.xml for the application
    3. Sign the bundle (skipped with a warning without credentials)
    4. Build the DMG, from the template when one is usable
    5. Sign and notarize the DMG (only when the bundle was signed)
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from jarpack.icons import IconSet, IconStandardizer
from jarpack.macos.bundle import (
    convert_to_icns,
    write_info_plist,
    write_jpackage_state,
)
from jarpack.macos.dmg import DiskImageBuilder
from jarpack.macos.signing import SigningPipeline
from jarpack.targets.base import Configurator, Target

if TYPE_CHECKING:
    from jarpack.descriptor import ApplicationDescriptor


class MacX64Configurator(Configurator):
    target = Target.MAC_X64
    payload_relative_path = "Contents/app"

    def install_dir_name(self, app_name: str) -> str:
        return f"{app_name}.app"

    def executable_relative_path(self, app_name: str) -> str:
        return f"Contents/MacOS/{app_name}"

    def post_process(
        self, output_dir: Path, descriptor: ApplicationDescriptor
    ) -> list[Path]:
        from jarpack.logging import get_global_logger

        logger = get_global_logger()
        name = descriptor.name
        app_dir = output_dir / self.install_dir_name(name)
        contents = app_dir / "Contents"
        resources = contents / "Resources"

        icons = IconSet(IconStandardizer(self.context, name), descriptor)
        app_icon = icons.app()
        if app_icon is not None:
            convert_to_icns(self.context, app_icon, resources / f"{name}.icns")

        document_icns: str | None = None
        if descriptor.document_extensions:
            doc_icon = icons.document()
            doc_target = resources / f"{name}-document.icns"
            if doc_icon is not None and convert_to_icns(
                self.context, doc_icon, doc_target
            ):
                document_icns = doc_target.name

        write_info_plist(contents, descriptor, document_icon=document_icns)
        write_jpackage_state(app_dir, descriptor)

        signer = SigningPipeline(self.context, descriptor)
        report = signer.sign_bundle(app_dir)
        if not report.skipped:
            logger.verbose("MAC", f"Signed {len(report.signed)} item(s)")

        artifacts = [app_dir]
        if descriptor.skip_dmg:
            logger.verbose("MAC", "DMG creation skipped")
            return artifacts

        dmg_path = output_dir / f"{name}-{descriptor.version}.dmg"
        builder = DiskImageBuilder(self.context, name)
        builder.build(
            app_dir,
            dmg_path,
            template=descriptor.dmg_template,
            compress=descriptor.dmg_compress,
        )
        artifacts.append(dmg_path)

        if not report.skipped:
            signer.sign_disk_image(dmg_path)
            signer.notarize(dmg_path)
        return artifacts
