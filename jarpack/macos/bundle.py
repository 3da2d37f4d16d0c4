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

"""App bundle metadata for the macOS target.

The base distribution ships a generic `Launcher.app`. After it is renamed,
its Info.plist and `.jpackage.xml` still describe the launcher; this module
rewrites them for the application and converts the icon to ICNS.
"""

from __future__ import annotations

from datetime import date
from pathlib import Path
import plistlib
import shlex
import shutil
from typing import TYPE_CHECKING, Any
import xml.etree.ElementTree as ET

from jarpack.exceptions import NoToolchainAvailableError, PackagingError

if TYPE_CHECKING:
    from jarpack.context import BuildContext
    from jarpack.descriptor import ApplicationDescriptor


def bundle_identifier(name: str) -> str:
    return f"com.{name.lower()}.{name}"


def _default_plist(descriptor: ApplicationDescriptor) -> dict[str, Any]:
    return {
        "LSMinimumSystemVersion": "10.9",
        "CFBundleDevelopmentRegion": "English",
        "CFBundleAllowMixedLocalizations": True,
        "CFBundleInfoDictionaryVersion": "6.0",
        "CFBundlePackageType": "APPL",
        "CFBundleSignature": "????",
        "LSApplicationCategoryType": "Unknown",
        "NSHumanReadableCopyright": f"Copyright © {date.today().year}",
        "NSHighResolutionCapable": "true",
    }


def write_info_plist(
    contents_dir: Path,
    descriptor: ApplicationDescriptor,
    document_icon: str | None = None,
) -> Path:
    """Update (or create) Contents/Info.plist for the application.

    Args:
        contents_dir: The bundle's Contents directory.
        descriptor: Application being packaged.
        document_icon: ICNS file name for associated documents, if any.

    Returns:
        Path of the written plist.
    """
    from jarpack.logging import get_global_logger

    logger = get_global_logger()
    plist_path = contents_dir / "Info.plist"
    if plist_path.is_file():
        with plist_path.open("rb") as f:
            try:
                data = plistlib.load(f)
            except plistlib.InvalidFileException as err:
                raise PackagingError(f"Unreadable Info.plist: {err}") from err
        logger.verbose("MAC", "Updating Info.plist")
    else:
        data = _default_plist(descriptor)
        logger.verbose("MAC", "Info.plist not found in base distribution, creating one")

    name = descriptor.name
    data.update(
        {
            "CFBundleExecutable": name,
            "CFBundleName": name,
            "CFBundleIdentifier": bundle_identifier(name),
            "CFBundleIconFile": f"{name}.icns",
            "CFBundleShortVersionString": descriptor.version,
            "CFBundleVersion": descriptor.version,
        }
    )
    if descriptor.document_extensions:
        doc_type: dict[str, Any] = {
            "CFBundleTypeName": descriptor.document_display_name,
            "CFBundleTypeRole": "Editor",
            "CFBundleTypeExtensions": list(descriptor.document_extensions),
        }
        if document_icon:
            doc_type["CFBundleTypeIconFile"] = document_icon
        data["CFBundleDocumentTypes"] = [doc_type]

    contents_dir.mkdir(parents=True, exist_ok=True)
    with plist_path.open("wb") as f:
        plistlib.dump(data, f)
    return plist_path


def write_jpackage_state(app_dir: Path, descriptor: ApplicationDescriptor) -> Path:
    """Update (or create) the bundle's .jpackage.xml."""
    path = app_dir / ".jpackage.xml"
    if path.is_file():
        try:
            tree = ET.parse(path)
        except ET.ParseError as err:
            raise PackagingError(f"Unreadable .jpackage.xml: {err}") from err
        root = tree.getroot()
    else:
        root = ET.Element("jpackage-state", {"version": "15.0.1", "platform": "macOS"})
        tree = ET.ElementTree(root)
    for tag, value in (
        ("app-version", descriptor.version),
        ("main-launcher", descriptor.name),
    ):
        element = root.find(tag)
        if element is None:
            element = ET.SubElement(root, tag)
        element.text = value
    tree.write(path, encoding="utf-8", xml_declaration=True)
    return path


def convert_to_icns(context: BuildContext, png: Path, target: Path) -> bool:
    """Convert a standardized PNG to ICNS with iconconvert.

    Returns:
        True on success; False (with a warning) on failure.

    Raises:
        NoToolchainAvailableError: If no container engine is installed.
    """
    from jarpack.logging import get_global_logger

    logger = get_global_logger()
    try:
        with context.new_runner() as runner:
            shutil.copy2(png, runner.working_dir / "icon.png")
            command = f"iconconvert icon.png {shlex.quote(target.name)}"
            result = context.execute(runner.invoke(command))
            produced = runner.working_dir / target.name
            if not result.ok or not produced.is_file():
                logger.warning(
                    "MAC", f"ICNS conversion failed (exit {result.exit_code})"
                )
                return False
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(produced, target)
    except NoToolchainAvailableError:
        raise
    except PackagingError as err:
        logger.warning("MAC", f"ICNS conversion failed: {err}")
        return False
    logger.verbose("MAC", f"Created {target.name}")
    return True
