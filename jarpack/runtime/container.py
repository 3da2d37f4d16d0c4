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

"""Containerized toolchain selection and command wrapping.

All image, icon, signing and installer tools run inside a single builder
image. This module picks the container engine (docker first, then podman)
and turns a shell command into a full engine invocation with a private,
registry-owned working directory mounted at /work.

Example:
    ```python
    from jarpack.runtime import TempRegistry, select_runner

    registry = TempRegistry()
    with select_runner(registry) as runner:
        (runner.working_dir / "in.png").write_bytes(data)
        invocation = runner.invoke("convert in.png out.ico")
    ```
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
import os
from pathlib import Path
import shutil

from jarpack.exceptions import NoToolchainAvailableError
from jarpack.runtime.process import ToolInvocation
from jarpack.runtime.registry import TempRegistry

DEFAULT_IMAGE = "docker.io/teras/appimage-builder"

# Probed in this order.
ENGINES = ("docker", "podman")

# Checked when the engine is not on PATH.
COMMON_LOCATIONS = ("/usr/bin", "/usr/local/bin", "/opt/bin", "/bin")

# Mount point of the runner's working directory inside the container.
WORK_MOUNT = "/work"


def find_engine(
    which: Callable[[str], str | None] = shutil.which,
    locations: tuple[str, ...] = COMMON_LOCATIONS,
) -> str | None:
    """Locate a container engine executable.

    Args:
        which: PATH lookup function.
        locations: Extra directories to probe when PATH lookup fails.

    Returns:
        Path of the first engine found, or None.
    """
    for engine in ENGINES:
        found = which(engine)
        if found:
            return found
        for location in locations:
            candidate = Path(location) / engine
            if candidate.is_file() and os.access(candidate, os.X_OK):
                return str(candidate)
    return None


class ContainerRunner:
    """Runs shell commands inside the builder image.

    The working directory is created through the registry on construction
    and returned to it by release(). Files placed there are visible to the
    container at /work, which is also the container's working directory.

    Args:
        engine: Container engine executable (docker or podman).
        registry: Registry that owns the working directory.
        image: Builder image reference.
    """

    def __init__(
        self, engine: str, registry: TempRegistry, image: str = DEFAULT_IMAGE
    ) -> None:
        self.engine = engine
        self.image = image
        self._registry = registry
        self.working_dir = registry.create("container-", "-work")

    def invoke(
        self, command: str, mounts: Sequence[tuple[Path, str]] | None = None
    ) -> ToolInvocation:
        """Wrap a shell command in a container invocation.

        Args:
            command: Shell command executed with `sh -c` inside the container.
            mounts: Extra (host path, container path) binds.

        Returns:
            The ToolInvocation to hand to a process executor.
        """
        argv = [
            self.engine,
            "run",
            "--rm",
            "-v",
            f"{self.working_dir}:{WORK_MOUNT}",
        ]
        for host_path, container_path in mounts or ():
            argv += ["-v", f"{Path(host_path).resolve()}:{container_path}"]
        argv += ["-w", WORK_MOUNT, self.image, "sh", "-c", command]
        return ToolInvocation(tuple(argv))

    def release(self) -> None:
        """Return the working directory to the registry."""
        self._registry.release(self.working_dir)

    def __enter__(self) -> ContainerRunner:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


def select_runner(
    registry: TempRegistry,
    image: str = DEFAULT_IMAGE,
    which: Callable[[str], str | None] = shutil.which,
    locations: tuple[str, ...] = COMMON_LOCATIONS,
) -> ContainerRunner:
    """Create a runner for the first available container engine.

    Args:
        registry: Registry that will own the runner's working directory.
        image: Builder image reference.
        which: PATH lookup function.
        locations: Extra directories to probe.

    Returns:
        A ContainerRunner bound to docker or, failing that, podman.

    Raises:
        NoToolchainAvailableError: If neither engine is installed.
    """
    from jarpack.logging import get_global_logger

    engine = find_engine(which, locations)
    if engine is None:
        raise NoToolchainAvailableError(
            "No container engine found. Install docker or podman."
        )
    get_global_logger().debug("CONTAINER", f"Using engine: {engine}")
    return ContainerRunner(engine, registry, image)
