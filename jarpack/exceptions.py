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

"""Exception hierarchy for jarpack.

This module defines a custom exception hierarchy that allows library users
to distinguish between different types of errors:

- ConfigError: Configuration-related errors (YAML parse, payload discovery,
  manifest lookup, missing required options)
- NetworkError: Download-related errors (base distributions, default icon)
- PackagingError: Build-related errors (tool failures, missing outputs)

PackagingError is further refined for the failures the packaging engine
needs to tell apart:

- ToolchainError: An external tool could not be started at all
- NoToolchainAvailableError: Neither docker nor podman is installed
- ToolOutputError: A tool ran but its output lacked the expected pattern
- TargetBuildError: Wraps any failure of a single target build

All exceptions inherit from JarpackError, allowing users to catch all
jarpack errors with a single except clause if needed.

Example:
    Catching specific error types:
        ```python
        from jarpack.exceptions import ConfigError, TargetBuildError

        try:
            result = package_target(out_dir, descriptor, configurator)
        except ConfigError as e:
            print(f"Configuration error: {e}")
        except TargetBuildError as e:
            print(f"{e.target} failed: {e}")
        ```
"""

from __future__ import annotations

__all__ = [
    "JarpackError",
    "ConfigError",
    "NetworkError",
    "PackagingError",
    "ToolchainError",
    "NoToolchainAvailableError",
    "ToolOutputError",
    "TargetBuildError",
]


class JarpackError(Exception):
    """Base exception for all jarpack errors."""

    pass


class ConfigError(JarpackError):
    """Raised for configuration-related errors.

    This exception is raised when there are problems with:

    - YAML parsing (syntax errors, invalid structure)
    - Primary payload discovery (none found, several found, missing)
    - Missing Main-Class entry in the payload manifest
    - Missing options that other options depend on (document icon)

    Configuration errors are raised before any packaging work begins.
    """

    pass


class NetworkError(JarpackError):
    """Raised for network/download-related errors.

    This exception is raised when a base distribution or the default icon
    cannot be downloaded after retries.
    """

    pass


class PackagingError(JarpackError):
    """Raised for packaging/build-related errors.

    This exception is raised when there are problems with:

    - External tools exiting with a non-zero status on a required step
    - Expected output files missing after a tool ran
    - Illegal state transitions during disk image assembly
    """

    pass


class ToolchainError(PackagingError):
    """Raised when an external tool cannot be started."""

    pass


class NoToolchainAvailableError(ToolchainError):
    """Raised when no container engine (docker or podman) is installed."""

    pass


class ToolOutputError(PackagingError):
    """Raised when tool output does not contain the expected pattern.

    Example:
        ```python
        try:
            device = parse_loop_device("nothing useful here")
        except ToolOutputError as e:
            print(f"Unexpected output: {e}")
        ```
    """

    pass


class TargetBuildError(PackagingError):
    """Raised when the build of one target fails.

    Attributes:
        target: Slug of the target that failed (e.g., "mac-x64").
    """

    def __init__(self, target: str, message: str) -> None:
        super().__init__(f"[{target}] {message}")
        self.target = target
