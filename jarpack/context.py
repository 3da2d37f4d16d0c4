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

"""Shared collaborators for one packaging run.

A BuildContext carries the registry, the tool settings, the function used
to execute external processes and the factory that creates container
runners. Every stage receives it explicitly, so tests can substitute the
executor and the runner factory without touching the real toolchain.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from jarpack.config import Settings
from jarpack.io.download import fetch_cached
from jarpack.runtime import (
    ContainerRunner,
    ProcessResult,
    TempRegistry,
    ToolInvocation,
    run_and_capture,
    select_runner,
)

Executor = Callable[[ToolInvocation], ProcessResult]
RunnerFactory = Callable[[TempRegistry, str], ContainerRunner]


@dataclass
class BuildContext:
    """Collaborators shared by every target of a run.

    Attributes:
        registry: Owner of every temporary directory.
        settings: Tool-level settings.
        executor: Runs an invocation to completion.
        runner_factory: Creates a ContainerRunner for (registry, image).
    """

    registry: TempRegistry
    settings: Settings
    executor: Executor = run_and_capture
    runner_factory: RunnerFactory = select_runner

    def new_runner(self) -> ContainerRunner:
        """Create a container runner with a fresh working directory.

        Raises:
            NoToolchainAvailableError: If no container engine is installed.
        """
        return self.runner_factory(self.registry, self.settings.container_image)

    def execute(self, invocation: ToolInvocation) -> ProcessResult:
        """Run an invocation through the configured executor."""
        return self.executor(invocation)

    def fetch(self, url: str, location: Path) -> Path:
        """Return a cached download of 'url'."""
        return fetch_cached(url, location)
