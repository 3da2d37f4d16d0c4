"""
Configuration loading and merging for jarpack.

This module implements a three-layer configuration system: built-in
defaults, an optional project file (jarpack.yaml), and command-line
overrides. Each layer is deep-merged on top of the previous one.

Configuration Layers
--------------------
1. **Built-in defaults** (DEFAULT_CONFIG)
   - Download URLs for the base distributions and the default icon
   - Cache directory, builder image, DMG size, icon size
   - Always present

2. **Project file** (jarpack.yaml, or the path given with --config)
   - Application settings (source dir, name, version, icons, documents)
   - Targets, output directory, signing and DMG settings
   - Optional; the working directory's jarpack.yaml is used when present

3. **Command-line overrides**
   - Same structure as the project file; None values are ignored so an
     unset flag never masks a configured value

Merge Behavior
--------------
The loader performs deep merging with "last wins" semantics:
  - **Dicts**: Recursively merged (keys from overlay override base)
  - **Lists**: Completely replaced (NOT appended/extended)
  - **Scalars**: Overwritten (strings, numbers, booleans)

Path Resolution
---------------
Relative paths in the project file are resolved against the PROJECT FILE
location, so a project can be built from any working directory. Currently
resolved paths:
  - app.source, app.icon, app.install_icon, app.document_icon
  - signing.p12_file, signing.p12_password_file, signing.notary_json
  - dmg.template
  - output

Paths given on the command line stay relative to the working directory.

Error Handling
--------------
- ConfigError: YAML parse errors, empty files, non-mapping documents,
  missing explicit config file
- All errors are chained with "from err" for better debugging

Examples
--------
Basic usage:

    >>> from pathlib import Path
    >>> from jarpack.config import load_effective_config
    >>> cfg = load_effective_config(Path("jarpack.yaml"))
    >>> print(cfg["app"]["name"])
    MyApp

With command-line overrides:

    >>> cfg = load_effective_config(
    ...     None,
    ...     overrides={"app": {"source": "build/libs", "version": "2.1.0"}},
    ... )
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from jarpack.exceptions import ConfigError

DEFAULT_CONFIG_NAME = "jarpack.yaml"

FILEREPO_URL = "https://github.com/teras/KPacker/releases/download/filerepo"

DEFAULT_CONFIG: dict[str, Any] = {
    "app": {
        "source": None,
        "name": None,
        "version": None,
        "mainjar": None,
        "icon": None,
        "install_icon": None,
        "document_icon": None,
        "document_extensions": None,
        "document_name": None,
    },
    "targets": [],
    "output": "dist",
    "signing": {
        "enabled": False,
        "p12_file": None,
        "p12_password_file": None,
        "notary_json": None,
    },
    "dmg": {
        "template": None,
        "compress": True,
        "skip": False,
    },
    "defaults": {
        "cache_dir": "~/.cache/jarpack",
        "container_image": "docker.io/teras/appimage-builder",
        "remove_temp": True,
        "dmg_size_mb": 200,
        "icon_size": 512,
        "default_icon_url": f"{FILEREPO_URL}/default_icon.png",
        "distributions": {
            "linux-arm64": f"{FILEREPO_URL}/linux_arm64_template.zip",
            "linux-x64": f"{FILEREPO_URL}/linux_x64_template.zip",
            "mac-x64": f"{FILEREPO_URL}/mac_x64_template.zip",
            "windows-x64": f"{FILEREPO_URL}/windows_x64_template.zip",
        },
    },
}

# (section, key) pairs holding filesystem paths in the project file.
_PATH_FIELDS: tuple[tuple[str | None, str], ...] = (
    ("app", "source"),
    ("app", "icon"),
    ("app", "install_icon"),
    ("app", "document_icon"),
    ("signing", "p12_file"),
    ("signing", "p12_password_file"),
    ("signing", "notary_json"),
    ("dmg", "template"),
    (None, "output"),
)


# -------------------------------
# Data types
# -------------------------------


@dataclass(frozen=True)
class Settings:
    """Tool-level settings shared by every target of a run.

    Attributes:
        cache_dir: Root of the download cache.
        container_image: Builder image used for all containerized tools.
        distributions: Target slug to base distribution URL.
        default_icon_url: Icon used when the application supplies none.
        dmg_size_mb: Size of the scratch HFS+ image.
        icon_size: Edge length of standardized icons, in pixels.
        remove_temp: Whether temporary folders are removed at the end.
    """

    cache_dir: Path
    container_image: str
    distributions: dict[str, str]
    default_icon_url: str
    dmg_size_mb: int = 200
    icon_size: int = 512
    remove_temp: bool = True

    @classmethod
    def from_config(cls, cfg: dict[str, Any]) -> Settings:
        defaults = cfg.get("defaults", {})
        return cls(
            cache_dir=Path(defaults["cache_dir"]).expanduser(),
            container_image=defaults["container_image"],
            distributions=dict(defaults.get("distributions", {})),
            default_icon_url=defaults["default_icon_url"],
            dmg_size_mb=int(defaults.get("dmg_size_mb", 200)),
            icon_size=int(defaults.get("icon_size", 512)),
            remove_temp=bool(defaults.get("remove_temp", True)),
        )

    def distribution_cache_path(self, url: str) -> Path:
        """Cache location of a downloaded base distribution."""
        return self.cache_dir / "jres" / url.rsplit("/", 1)[-1]

    def icon_cache_path(self) -> Path:
        """Cache location of the default icon."""
        return self.cache_dir / "icons" / self.default_icon_url.rsplit("/", 1)[-1]


# -------------------------------
# YAML helpers
# -------------------------------


def _load_yaml_file(p: Path) -> Any:
    """
    Load a YAML file and return the parsed Python object.

    Raises:
      ConfigError - when the file does not exist, is empty, or is invalid YAML
    """
    if not p.exists():
        raise ConfigError(f"Config file not found: {p}")
    try:
        with p.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as err:
        raise ConfigError(f"Error parsing YAML: {p}: {err}") from err
    if data is None:
        raise ConfigError(f"YAML file is empty: {p}")
    return data


# -------------------------------
# Merge logic
# -------------------------------


def _deep_merge_dicts(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """
    Deep-merge two dicts with "overlay wins".

    Rules:
      - dict + dict -> deep merge
      - list + list -> overlay REPLACES base (not concatenated)
      - everything else -> overlay overwrites base

    This function does not mutate inputs; returns a new dict.
    """
    result: dict[str, Any] = dict(base)
    for k, v in overlay.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge_dicts(result[k], v)
        else:
            result[k] = v
    return result


def _drop_none(data: dict[str, Any]) -> dict[str, Any]:
    """Recursively remove keys whose value is None."""
    cleaned: dict[str, Any] = {}
    for k, v in data.items():
        if isinstance(v, dict):
            cleaned[k] = _drop_none(v)
        elif v is not None:
            cleaned[k] = v
    return cleaned


# -------------------------------
# Path resolution
# -------------------------------


def _resolve_known_paths(cfg: dict[str, Any], base_dir: Path) -> None:
    """
    Resolve relative path fields of a project file against 'base_dir'.

    Only the fields listed in _PATH_FIELDS are touched. Modifies cfg in place.
    """
    for section, key in _PATH_FIELDS:
        holder = cfg if section is None else cfg.get(section)
        if not isinstance(holder, dict):
            continue
        raw_path = holder.get(key)
        if isinstance(raw_path, str) and raw_path:
            p = Path(raw_path).expanduser()
            if not p.is_absolute():
                holder[key] = str((base_dir / p).resolve())


# -------------------------------
# Public API
# -------------------------------


def load_effective_config(
    config_path: Path | None = None,
    *,
    overrides: dict[str, Any] | None = None,
    search_dir: Path | None = None,
) -> dict[str, Any]:
    """
    Load and merge the effective configuration.

    Steps
      1) Start from DEFAULT_CONFIG.
      2) Locate the project file: 'config_path' if given, else
         jarpack.yaml in 'search_dir' (default: working directory) if present.
      3) Resolve the project file's relative paths against its directory.
      4) Merge: defaults -> project file -> overrides.

    Returns
      A merged configuration dict.

    Raises
      ConfigError on YAML errors, non-mapping documents, or a missing
      explicitly requested config file.
    """
    from jarpack.logging import get_global_logger

    logger = get_global_logger()
    merged: dict[str, Any] = copy.deepcopy(DEFAULT_CONFIG)
    layers_merged = 1

    if config_path is None:
        candidate = (search_dir or Path.cwd()) / DEFAULT_CONFIG_NAME
        if candidate.is_file():
            config_path = candidate

    if config_path is not None:
        config_path = Path(config_path).resolve()
        logger.verbose("CONFIG", f"Loading: {config_path}")
        project = _load_yaml_file(config_path)
        if not isinstance(project, dict):
            raise ConfigError(
                f"Top-level YAML must be a mapping (dict): {config_path}"
            )
        _resolve_known_paths(project, config_path.parent)
        merged = _deep_merge_dicts(merged, project)
        layers_merged += 1

    if overrides:
        merged = _deep_merge_dicts(merged, _drop_none(overrides))
        layers_merged += 1

    logger.verbose("CONFIG", f"Deep merged {layers_merged} layer(s)")
    logger.debug(
        "CONFIG",
        "Effective configuration:\n"
        + yaml.safe_dump(merged, default_flow_style=False, sort_keys=False),
    )
    return merged
