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

"""Application descriptor construction.

The descriptor is the immutable description of the application being
packaged: where its jars live, which one is the primary payload, the entry
point read from that jar's manifest, and every option that influences the
per-target output.

Primary payload selection:
    - An explicit `mainjar` must name a top-level .jar in the source dir
    - Otherwise the source dir must contain exactly one top-level .jar

The descriptor is built once per invocation and then shared read-only by
all concurrently running targets.

Example:
    ```python
    from jarpack.config import load_effective_config
    from jarpack.descriptor import ApplicationDescriptor

    cfg = load_effective_config(overrides={"app": {"source": "build/libs"}})
    descriptor = ApplicationDescriptor.from_config(cfg)
    print(descriptor.name, descriptor.main_class)
    ```
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from jarpack.exceptions import ConfigError
from jarpack.io.manifest import read_manifest_attribute

DEFAULT_VERSION = "1.0.0"
MAIN_CLASS_KEY = "Main-Class"


def find_primary_payload(
    source_dir: Path, mainjar: str | None = None
) -> tuple[str, tuple[str, ...]]:
    """Identify the primary payload among the top-level jars of source_dir.

    Args:
        source_dir: Directory holding the application jars.
        mainjar: Explicit primary payload file name, if any.

    Returns:
        (primary, auxiliary) where auxiliary holds the other jar names in
        sorted order.

    Raises:
        ConfigError: If no jar is found, several are found without an
            explicit choice, or the explicit choice does not exist.
    """
    if not source_dir.is_dir():
        raise ConfigError(f"Source directory not found: {source_dir}")
    jars = sorted(
        p.name for p in source_dir.iterdir() if p.is_file() and p.suffix == ".jar"
    )
    if mainjar:
        if mainjar not in jars:
            raise ConfigError(f"Primary payload {mainjar} not found in {source_dir}")
        primary = mainjar
    elif not jars:
        raise ConfigError(f"No payload found in {source_dir}")
    elif len(jars) > 1:
        raise ConfigError(
            f"Multiple payloads found in {source_dir}: {', '.join(jars)}. "
            "Select one with --mainjar."
        )
    else:
        primary = jars[0]
    return primary, tuple(j for j in jars if j != primary)


def _optional_path(value: Any) -> Path | None:
    if value in (None, ""):
        return None
    return Path(str(value)).expanduser()


def _split_extensions(value: Any) -> tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        items = value.split(",")
    else:
        items = [str(v) for v in value]
    return tuple(e.strip().lstrip(".") for e in items if e.strip())


@dataclass(frozen=True)
class ApplicationDescriptor:
    """Everything known about the application being packaged.

    Attributes:
        source_dir: Directory holding the compiled application files.
        primary_payload: File name of the jar carrying the entry point.
        auxiliary_payloads: Other top-level jars, sorted.
        name: Application name.
        version: Application version.
        main_class: Entry-point class from the primary payload manifest.
        icon: Application icon input.
        install_icon: Installer icon input (falls back to the app icon).
        document_icon: Icon for associated documents.
        document_extensions: Associated file extensions, without dots.
        document_name: Display name of the associated document type.
        p12_file: Signing certificate (PKCS#12).
        p12_password_file: File containing the certificate password.
        notary_json: Notarization API key file.
        signing_enabled: Whether macOS signing runs at all.
        dmg_template: DMG template (.dmg or .zip containing one).
        dmg_compress: Whether the final DMG is compressed.
        skip_dmg: Whether DMG creation is skipped.
    """

    source_dir: Path
    primary_payload: str
    auxiliary_payloads: tuple[str, ...]
    name: str
    version: str
    main_class: str
    icon: Path | None = None
    install_icon: Path | None = None
    document_icon: Path | None = None
    document_extensions: tuple[str, ...] = ()
    document_name: str | None = None
    p12_file: Path | None = None
    p12_password_file: Path | None = None
    notary_json: Path | None = None
    signing_enabled: bool = False
    dmg_template: Path | None = None
    dmg_compress: bool = True
    skip_dmg: bool = False

    @classmethod
    def from_config(cls, cfg: dict[str, Any]) -> ApplicationDescriptor:
        """Build a descriptor from the merged configuration.

        Raises:
            ConfigError: If the source dir, payload or manifest is invalid,
                or document extensions are given without a document icon.
        """
        from jarpack.logging import get_global_logger

        logger = get_global_logger()
        app = cfg.get("app", {})
        signing = cfg.get("signing", {})
        dmg = cfg.get("dmg", {})

        if not app.get("source"):
            raise ConfigError("No source directory given (app.source / --source)")
        source_dir = Path(app["source"]).expanduser().resolve()

        primary, auxiliary = find_primary_payload(source_dir, app.get("mainjar"))
        logger.verbose("CONFIG", f"Primary payload: {primary}")

        main_class = read_manifest_attribute(source_dir / primary, MAIN_CLASS_KEY)
        if not main_class:
            raise ConfigError(f"{MAIN_CLASS_KEY} not found in manifest of {primary}")

        extensions = _split_extensions(app.get("document_extensions"))
        document_icon = _optional_path(app.get("document_icon"))
        if extensions and document_icon is None:
            raise ConfigError(
                "A document icon is required when document extensions are set"
            )

        return cls(
            source_dir=source_dir,
            primary_payload=primary,
            auxiliary_payloads=auxiliary,
            name=app.get("name") or Path(primary).stem,
            version=str(app.get("version") or DEFAULT_VERSION),
            main_class=main_class,
            icon=_optional_path(app.get("icon")),
            install_icon=_optional_path(app.get("install_icon")),
            document_icon=document_icon,
            document_extensions=extensions,
            document_name=app.get("document_name"),
            p12_file=_optional_path(signing.get("p12_file")),
            p12_password_file=_optional_path(signing.get("p12_password_file")),
            notary_json=_optional_path(signing.get("notary_json")),
            signing_enabled=bool(signing.get("enabled", False)),
            dmg_template=_optional_path(dmg.get("template")),
            dmg_compress=bool(dmg.get("compress", True)),
            skip_dmg=bool(dmg.get("skip", False)),
        )

    @property
    def classpath(self) -> list[str]:
        """Payload file names in launch order: primary first."""
        return [self.primary_payload, *self.auxiliary_payloads]

    @property
    def document_display_name(self) -> str:
        return self.document_name or self.name

    def launcher_config(self) -> str:
        """Render the native launcher's configuration file."""
        lines = ["[Application]", f"app.mainclass={self.main_class}"]
        lines += [f"app.classpath=$APPDIR/{jar}" for jar in self.classpath]
        lines += [
            "",
            "[JavaOptions]",
            f"java-options=-Djpackage.app-version={self.version}",
        ]
        return "\n".join(lines) + "\n"
