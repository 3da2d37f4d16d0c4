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

"""JAR manifest lookup.

Only the main section of META-INF/MANIFEST.MF is read: parsing stops at the
first empty line. A line starting with a single space continues the previous
value. Lines without a "name:" prefix are ignored. When a key is declared
more than once, the first declaration wins.

Example:
    ```python
    from jarpack.io.manifest import read_manifest_attribute

    main_class = read_manifest_attribute(Path("app.jar"), "Main-Class")
    ```
"""

from __future__ import annotations

from pathlib import Path
import zipfile

from jarpack.exceptions import ConfigError

MANIFEST_ENTRY = "META-INF/MANIFEST.MF"


def parse_manifest(text: str) -> dict[str, str]:
    """Parse the main section of a manifest.

    Args:
        text: Manifest file content.

    Returns:
        Attribute names mapped to their (trimmed) values.
    """
    attributes: dict[str, str] = {}
    current: str | None = None
    for raw in text.splitlines():
        if raw == "":
            break
        if raw.startswith(" "):
            if current is not None:
                attributes[current] += raw[1:]
            continue
        colon = raw.find(":")
        if colon <= 0:
            current = None
            continue
        key = raw[:colon].strip()
        if key in attributes:
            # later duplicate: ignore it and its continuation lines
            current = None
            continue
        attributes[key] = raw[colon + 1 :].strip()
        current = key
    return {key: value.strip() for key, value in attributes.items()}


def read_manifest(jar_path: Path) -> dict[str, str]:
    """Read and parse the manifest of a jar.

    Raises:
        ConfigError: If the jar cannot be opened or has no manifest.
    """
    try:
        with zipfile.ZipFile(jar_path) as jar:
            try:
                data = jar.read(MANIFEST_ENTRY)
            except KeyError as err:
                raise ConfigError(f"No manifest found in {jar_path.name}") from err
    except (OSError, zipfile.BadZipFile) as err:
        raise ConfigError(f"Cannot read {jar_path}: {err}") from err
    return parse_manifest(data.decode("utf-8", errors="replace"))


def read_manifest_attribute(jar_path: Path, key: str) -> str | None:
    """Look up one main-section attribute, or None if absent or empty."""
    value = read_manifest(jar_path).get(key)
    return value or None
