"""
Configuration management for jarpack.

This package loads the layered configuration (built-in defaults, project
YAML file, command-line overrides) and exposes the tool-level Settings.

Public API:

load_effective_config : function
    Load and merge the effective configuration.
Settings : dataclass
    Tool-level settings derived from the merged configuration.

Example:
    from jarpack.config import Settings, load_effective_config

    cfg = load_effective_config()
    settings = Settings.from_config(cfg)
"""

from .loader import DEFAULT_CONFIG, Settings, load_effective_config

__all__ = ["DEFAULT_CONFIG", "Settings", "load_effective_config"]
