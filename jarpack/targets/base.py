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

"""Target variants and the configurator base class.

A configurator describes the layout of one target's output (where the
install directory, the launcher binary and the application payload live)
and performs the target-specific post-processing that turns the populated
install directory into the final artifacts.

Layout contract (used by jarpack.build.manager):

- install_dir_name(name): directory created under the output dir
- executable_relative_path(name): launcher binary, relative to install dir
- payload_relative_path: where the application jars go, relative to
  install dir
- bundles_runtime: whether a base distribution (native launcher plus JVM
  runtime) is fetched and extracted first
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from jarpack.exceptions import ConfigError

if TYPE_CHECKING:
    from jarpack.context import BuildContext
    from jarpack.descriptor import ApplicationDescriptor

# Name of the launcher shipped in every base distribution.
BASE_LAUNCHER_NAME = "Launcher"


class Target(Enum):
    """Closed set of supported target variants."""

    GENERIC = "generic"
    LINUX_ARM64 = "linux-arm64"
    LINUX_X64 = "linux-x64"
    MAC_X64 = "mac-x64"
    WINDOWS_X64 = "windows-x64"

    @classmethod
    def parse(cls, value: str) -> Target:
        """Look up a target by slug (case-insensitive).

        Raises:
            ConfigError: If the slug is unknown.
        """
        normalized = value.strip().lower().replace("_", "-")
        for target in cls:
            if target.value == normalized:
                return target
        valid = ", ".join(t.value for t in cls)
        raise ConfigError(f"Unknown target '{value}'. Valid targets: {valid}")


class Configurator:
    """Base class for per-target configurators.

    Args:
        context: Build context shared by the run.
    """

    target: Target
    bundles_runtime: bool = True
    payload_relative_path: str = "app"

    def __init__(self, context: BuildContext) -> None:
        self.context = context

    def fetch_base_distribution(self) -> Path:
        """Return the cached base distribution archive for this target.

        Raises:
            ConfigError: If no distribution URL is configured.
            NetworkError: If the download fails.
        """
        settings = self.context.settings
        url = settings.distributions.get(self.target.value)
        if not url:
            raise ConfigError(
                f"No base distribution configured for target {self.target.value}"
            )
        return self.context.fetch(url, settings.distribution_cache_path(url))

    def install_dir_name(self, app_name: str) -> str:
        return app_name

    def executable_relative_path(self, app_name: str) -> str:
        raise NotImplementedError

    def post_process(
        self, output_dir: Path, descriptor: ApplicationDescriptor
    ) -> list[Path]:
        """Turn the populated install directory into the target's artifacts.

        Args:
            output_dir: The target's output directory.
            descriptor: Application being packaged.

        Returns:
            The produced artifact paths.
        """
        raise NotImplementedError
