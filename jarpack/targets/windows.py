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

"""Windows target: an Inno Setup installer around the native launcher.

Post-processing Steps:
    1. Convert the installer, app and document icons to multi-size ICO
    2. Embed the app icon and a VERSIONINFO resource into <name>.exe with
       ResourceHacker
    3. Generate installer.iss (with file associations when document
       extensions are configured)
    4. Compile it with Inno Setup and copy the result to
       <name>-<version>-x64.exe

Steps 1 and 2 degrade: a failure is logged and the installer is built
without the icon or version resource. A failure in step 4 fails the target.
"""

from __future__ import annotations

from datetime import date
from pathlib import Path
import shlex
import shutil
from typing import TYPE_CHECKING
import uuid

from jarpack.exceptions import NoToolchainAvailableError, PackagingError
from jarpack.icons import IconSet, IconStandardizer
from jarpack.io.files import copy_tree, safe_move
from jarpack.targets.base import Configurator, Target

if TYPE_CHECKING:
    from jarpack.descriptor import ApplicationDescriptor
    from jarpack.runtime import ContainerRunner

ICO_SIZES = "256,128,64,48,32,16"

# Namespace for installer AppIds, so the same name always yields the same id.
_APP_ID_NAMESPACE = uuid.UUID("6f1f6a0e-5c4b-4d0e-9a57-2b1c8e3f4a10")


def ico_command(source: str, output: str) -> str:
    return (
        f"convert {shlex.quote(source)} -resize 256x256 "
        f"-define icon:auto-resize={ICO_SIZES} {shlex.quote(output)}"
    )


def parse_numeric_version(version: str) -> tuple[int, int, int]:
    """Major, minor and patch of a version like '2.1.3-beta'.

    Missing or non-numeric parts default to 1, 0 and 0.
    """
    parts = version.split("-")[0].split(".")
    numbers = []
    for index, default in enumerate((1, 0, 0)):
        try:
            numbers.append(int(parts[index]))
        except (IndexError, ValueError):
            numbers.append(default)
    return numbers[0], numbers[1], numbers[2]


def installer_app_id(name: str) -> str:
    """Stable upper-case GUID for the installer's AppId."""
    return str(uuid.uuid5(_APP_ID_NAMESPACE, name)).upper()


def version_info_rc(descriptor: ApplicationDescriptor, year: int | None = None) -> str:
    """Render the VERSIONINFO resource script for <name>.exe."""
    major, minor, patch = parse_numeric_version(descriptor.version)
    name = descriptor.name
    version = descriptor.version
    year = year or date.today().year
    return f"""// Generated by jarpack
1 VERSIONINFO
FILEVERSION {major},{minor},{patch},0
PRODUCTVERSION {major},{minor},{patch},0
FILEOS 0x40004
FILETYPE 0x1
{{
BLOCK "StringFileInfo"
{{
\tBLOCK "040904B0"
\t{{
\t\tVALUE "CompanyName", "{name}"
\t\tVALUE "FileDescription", "{name}"
\t\tVALUE "FileVersion", "{version}"
\t\tVALUE "InternalName", "{name}.exe"
\t\tVALUE "LegalCopyright", "Copyright © {year}"
\t\tVALUE "OriginalFilename", "{name}.exe"
\t\tVALUE "ProductName", "{name}"
\t\tVALUE "ProductVersion", "{version}"
\t}}
}}

BLOCK "VarFileInfo"
{{
\tVALUE "Translation", 0x0409 0x04B0
}}
}}
"""


def inno_setup_script(
    descriptor: ApplicationDescriptor, has_icon: bool, has_document_icon: bool
) -> str:
    """Render installer.iss.

    Args:
        descriptor: Application being packaged.
        has_icon: Whether install.ico sits next to the script.
        has_document_icon: Whether document.ico sits next to the script.
    """
    lines = [
        f'#define AppName "{descriptor.name}"',
        f'#define AppVersion "{descriptor.version}"',
        "",
        "[Setup]",
        f"AppId={{{{{installer_app_id(descriptor.name)}}}",
        "AppName={#AppName}",
        "AppVersion={#AppVersion}",
        "AppPublisher={#AppName}",
        "DefaultDirName={commonpf}\\{#AppName}",
        "DefaultGroupName={#AppName}",
        "OutputDir=.",
        "OutputBaseFilename={#AppName}",
        "Compression=lzma2",
        "SolidCompression=yes",
        "WizardStyle=modern",
        "DisableReadyPage=yes",
        "DisableWelcomePage=no",
        "UninstallDisplayIcon={app}\\{#AppName}.exe",
        "CreateAppDir=yes",
        "UsePreviousAppDir=no",
        "WizardResizable=no",
        "ShowLanguageDialog=no",
        "ArchitecturesInstallIn64BitMode=x64compatible",
        "ArchitecturesAllowed=x64compatible",
    ]
    if has_icon:
        lines.append("SetupIconFile=install.ico")
    if descriptor.document_extensions:
        lines.append("ChangesAssociations=yes")

    lines += [
        "",
        "[Messages]",
        "WelcomeLabel1=Welcome to the [name] Setup Wizard",
        "WelcomeLabel2=This will install [name/ver] on your computer.%n%n"
        "It is recommended that you close all other applications before continuing.",
        "ClickNext=Click Next to continue.",
        "FinishedHeadingLabel=[name] has been successfully installed",
        "",
        "[Files]",
        'Source: "app\\*"; DestDir: "{app}"; '
        "Flags: ignoreversion recursesubdirs createallsubdirs",
    ]
    if has_document_icon:
        lines.append('Source: "document.ico"; DestDir: "{app}"; Flags: ignoreversion')

    lines += [
        "",
        "[UninstallDelete]",
        'Type: dirifempty; Name: "{app}\\app"',
        'Type: dirifempty; Name: "{app}\\runtime"',
        'Type: dirifempty; Name: "{app}"',
        "",
        "[Icons]",
        'Name: "{group}\\{#AppName}"; Filename: "{app}\\{#AppName}.exe"; '
        'WorkingDir: "{app}"',
        'Name: "{group}\\Uninstall {#AppName}"; Filename: "{uninstallexe}"',
        'Name: "{autodesktop}\\{#AppName}"; Filename: "{app}\\{#AppName}.exe"',
        "",
    ]

    if descriptor.document_extensions:
        lines.append("[Registry]")
        for ext in descriptor.document_extensions:
            lines.append(
                f'Root: HKCR; Subkey: ".{ext}"; ValueType: string; ValueName: ""; '
                'ValueData: "{#AppName}"; Flags: uninsdeletevalue'
            )
        lines.append(
            'Root: HKCR; Subkey: "{#AppName}"; ValueType: string; ValueName: ""; '
            f'ValueData: "{descriptor.document_display_name}"; Flags: uninsdeletekey'
        )
        if has_document_icon:
            lines.append(
                'Root: HKCR; Subkey: "{#AppName}\\DefaultIcon"; ValueType: string; '
                'ValueName: ""; ValueData: "{app}\\document.ico,0"; '
                "Flags: uninsdeletekey"
            )
        lines.append(
            'Root: HKCR; Subkey: "{#AppName}\\shell\\open\\command"; '
            'ValueType: string; ValueName: ""; '
            'ValueData: """{app}\\{#AppName}.exe"" ""%1"""; Flags: uninsdeletekey'
        )
        lines.append("")

    lines += [
        "[Run]",
        'Filename: "{app}\\{#AppName}.exe"; Description: "Launch {#AppName}"; '
        "Flags: nowait postinstall skipifsilent",
    ]
    return "\n".join(lines) + "\n"


class WindowsX64Configurator(Configurator):
    target = Target.WINDOWS_X64
    architecture = "x64"
    payload_relative_path = "app"

    def executable_relative_path(self, app_name: str) -> str:
        return f"{app_name}.exe"

    def post_process(
        self, output_dir: Path, descriptor: ApplicationDescriptor
    ) -> list[Path]:
        from jarpack.logging import get_global_logger

        logger = get_global_logger()
        name = descriptor.name
        app_dir = output_dir / self.install_dir_name(name)
        res_dir = self.context.registry.create("installer-", "-res")
        try:
            icons = IconSet(IconStandardizer(self.context, name), descriptor)
            self._convert_icons(res_dir, icons, descriptor)
            has_icon = (res_dir / "install.ico").is_file()
            has_document_icon = (res_dir / "document.ico").is_file()

            exe = app_dir / self.executable_relative_path(name)
            if exe.is_file():
                self._update_executable(exe, res_dir, descriptor)
            else:
                logger.warning("WINDOWS", f"Launcher not found: {exe}")

            (res_dir / "installer.iss").write_text(
                inno_setup_script(descriptor, has_icon, has_document_icon),
                encoding="utf-8",
            )
            installer = self._compile_installer(output_dir, res_dir, app_dir, descriptor)
        finally:
            self.context.registry.release(res_dir)
        logger.verbose("WINDOWS", f"Windows installer created: {installer.name}")
        return [installer]

    # -------------------------------
    # Steps
    # -------------------------------

    def _convert_icons(
        self, res_dir: Path, icons: IconSet, descriptor: ApplicationDescriptor
    ) -> None:
        """Write install.ico, app.ico and document.ico into res_dir.

        Each distinct PNG is converted once. A missing app ICO falls back to
        the installer ICO.
        """
        from jarpack.logging import get_global_logger

        logger = get_global_logger()
        slots = [("install", icons.installer()), ("app", icons.app())]
        if descriptor.document_extensions:
            slots.append(("document", icons.document()))

        converted: dict[Path, Path] = {}
        try:
            with self.context.new_runner() as runner:
                for slot, png in slots:
                    if png is None:
                        continue
                    output = res_dir / f"{slot}.ico"
                    if png in converted:
                        shutil.copy2(converted[png], output)
                        continue
                    if self._png_to_ico(runner, png, output):
                        converted[png] = output
                    else:
                        logger.warning("WINDOWS", f"Could not convert {slot} icon to ICO")
        except NoToolchainAvailableError:
            raise
        except PackagingError as err:
            logger.warning("WINDOWS", f"Icon conversion failed: {err}")

        app_ico = res_dir / "app.ico"
        install_ico = res_dir / "install.ico"
        if not app_ico.is_file() and install_ico.is_file():
            shutil.copy2(install_ico, app_ico)

    def _png_to_ico(self, runner: ContainerRunner, png: Path, output: Path) -> bool:
        source = f"{output.stem}-source{png.suffix.lower()}"
        shutil.copy2(png, runner.working_dir / source)
        result = self.context.execute(runner.invoke(ico_command(source, output.name)))
        produced = runner.working_dir / output.name
        if not result.ok or not produced.is_file():
            return False
        shutil.copy2(produced, output)
        return True

    def _update_executable(
        self, exe: Path, res_dir: Path, descriptor: ApplicationDescriptor
    ) -> None:
        """Embed the app icon and a VERSIONINFO resource into the launcher."""
        from jarpack.logging import get_global_logger

        logger = get_global_logger()
        name = descriptor.name
        with self.context.new_runner() as runner:
            work = runner.working_dir
            shutil.copy2(exe, work / exe.name)

            def rh(args: str, label: str) -> bool:
                result = self.context.execute(runner.invoke(f"resourcehacker {args}"))
                if not result.ok:
                    logger.warning(
                        "WINDOWS", f"ResourceHacker could not {label} (exit {result.exit_code})"
                    )
                return result.ok

            exe_arg = shlex.quote(exe.name)
            app_ico = res_dir / "app.ico"
            if app_ico.is_file():
                shutil.copy2(app_ico, work / "app.ico")
                if rh(
                    f"-open {exe_arg} -save {exe_arg} -action addoverwrite "
                    "-res app.ico -mask ICONGROUP,MAINICON",
                    "embed the icon",
                ):
                    logger.verbose("WINDOWS", f"Embedded icon into {exe.name}")

            (work / "version.rc").write_text(version_info_rc(descriptor), encoding="utf-8")
            clean = shlex.quote(f"{name}_clean.exe")
            new = f"{name}_new.exe"
            if (
                rh("-open version.rc -save version.res -action compile",
                   "compile version.rc")
                and rh(f"-open {exe_arg} -save {clean} -action delete "
                       "-mask VERSIONINFO,,", "remove the old version info")
                and rh(f"-open {clean} -save {shlex.quote(new)} -action add "
                       "-res version.res", "embed the version info")
                and (work / new).is_file()
            ):
                safe_move(work / new, work / exe.name)
                logger.verbose(
                    "WINDOWS", f"Updated version info in {exe.name} to {descriptor.version}"
                )

            shutil.copy2(work / exe.name, exe)

    def _compile_installer(
        self,
        output_dir: Path,
        res_dir: Path,
        app_dir: Path,
        descriptor: ApplicationDescriptor,
    ) -> Path:
        with self.context.new_runner() as runner:
            copy_tree(res_dir, runner.working_dir)
            copy_tree(app_dir, runner.working_dir / "app")
            result = self.context.execute(runner.invoke("innosetup installer.iss"))
            if not result.ok:
                raise PackagingError(
                    f"Windows installer creation failed with exit code {result.exit_code}"
                )
            produced = runner.working_dir / f"{descriptor.name}.exe"
            if not produced.is_file():
                raise PackagingError("No installer file found after creation")
            installer = (
                output_dir
                / f"{descriptor.name}-{descriptor.version}-{self.architecture}.exe"
            )
            shutil.copy2(produced, installer)
        return installer
