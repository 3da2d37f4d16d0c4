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

"""Core orchestration for jarpack.

This module ties configuration, the application descriptor and the
multi-target build together into a single call used by the CLI.

Design Principles:

- Configuration errors are raised before any target starts
- Every temporary folder belongs to one TempRegistry, released at the end
  unless temp removal is disabled
- Target failures are reported in the result, not raised

Example:
    Programmatic usage:
        ```python
        from pathlib import Path
        from jarpack.core import package_application

        run = package_application(
            Path("jarpack.yaml"),
            overrides={"targets": ["generic", "linux-x64"]},
        )
        for outcome in run.fanout.outcomes:
            print(outcome.target, outcome.status)
        ```

"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from jarpack.build import package_all
from jarpack.config import Settings, load_effective_config
from jarpack.context import BuildContext, Executor, RunnerFactory
from jarpack.descriptor import ApplicationDescriptor
from jarpack.exceptions import ConfigError
from jarpack.logging import get_global_logger
from jarpack.results import PackagingRun
from jarpack.runtime import TempRegistry
from jarpack.targets import Target


def resolve_targets(values: list[str] | None) -> list[Target]:
    """Parse target slugs, keeping request order and dropping duplicates.

    Raises:
        ConfigError: If no target is given or a slug is unknown.
    """
    if not values:
        raise ConfigError("No targets given (targets / --target)")
    if isinstance(values, str):
        values = [values]
    return list(dict.fromkeys(Target.parse(str(v)) for v in values))


def package_application(
    config_path: Path | None = None,
    *,
    overrides: dict[str, Any] | None = None,
    registry: TempRegistry | None = None,
    executor: Executor | None = None,
    runner_factory: RunnerFactory | None = None,
    keep_temp: bool = False,
) -> PackagingRun:
    """Package an application for every configured target.

    Args:
        config_path: Project file; jarpack.yaml in the working directory is
            used when None and present.
        overrides: Command-line values layered over the project file.
        registry: Registry owning the run's temporary folders. A new one is
            created when None.
        executor: Process executor override (tests).
        runner_factory: Container runner factory override (tests).
        keep_temp: Keep temporary folders for inspection.

    Returns:
        PackagingRun with the per-target outcomes.

    Raises:
        ConfigError: If the configuration or the application is invalid.
    """
    logger = get_global_logger()

    logger.step(1, 3, "Loading configuration...")
    cfg = load_effective_config(config_path, overrides=overrides)
    targets = resolve_targets(cfg.get("targets"))
    settings = Settings.from_config(cfg)

    logger.step(2, 3, "Reading application...")
    descriptor = ApplicationDescriptor.from_config(cfg)
    logger.verbose(
        "CONFIG",
        f"{descriptor.name} {descriptor.version} ({descriptor.main_class})",
    )

    registry = registry if registry is not None else TempRegistry()
    context = BuildContext(registry=registry, settings=settings)
    if executor is not None:
        context.executor = executor
    if runner_factory is not None:
        context.runner_factory = runner_factory

    output_root = Path(cfg.get("output") or "dist").expanduser().resolve()
    logger.step(3, 3, f"Packaging {len(targets)} target(s)...")
    try:
        fanout = package_all(output_root, descriptor, targets, context)
    finally:
        if keep_temp or not settings.remove_temp:
            logger.verbose(
                "TEMP", f"Keeping {len(registry)} temporary folder(s)"
            )
        else:
            registry.release_all()

    return PackagingRun(
        app_name=descriptor.name,
        version=descriptor.version,
        primary_payload=descriptor.primary_payload,
        output_root=output_root,
        fanout=fanout,
    )
