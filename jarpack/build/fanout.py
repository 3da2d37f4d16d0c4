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

"""Concurrent packaging of several targets.

Every requested target is packaged on its own worker thread into the
disjoint directory `<output_root>/<target-slug>`. Targets never share
output paths, so they need no coordination beyond the locks held by the
registry and the download cache.

A failing target does not cancel the others; each runs to completion and
its outcome is reported individually.
"""

from __future__ import annotations

from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from jarpack.build.manager import package_target
from jarpack.context import BuildContext
from jarpack.descriptor import ApplicationDescriptor
from jarpack.exceptions import JarpackError
from jarpack.results import FanOutResult, TargetOutcome
from jarpack.targets import Target, make_configurator


def _run_one(
    target: Target,
    output_root: Path,
    descriptor: ApplicationDescriptor,
    context: BuildContext,
) -> TargetOutcome:
    from jarpack.logging import get_global_logger

    logger = get_global_logger()
    output_dir = output_root / target.value
    try:
        result = package_target(
            output_dir, descriptor, make_configurator(target, context)
        )
    except JarpackError as err:
        logger.warning("BUILD", f"Target {target.value} failed: {err}")
        return TargetOutcome(
            target=target.value,
            status="failed",
            output_dir=output_dir,
            error=str(err),
        )
    return TargetOutcome(
        target=target.value,
        status="success",
        output_dir=result.output_dir,
        artifacts=result.artifacts,
    )


def package_all(
    output_root: Path,
    descriptor: ApplicationDescriptor,
    targets: Iterable[Target],
    context: BuildContext,
) -> FanOutResult:
    """Package every target concurrently.

    Args:
        output_root: Parent of the per-target output directories.
        descriptor: Application being packaged.
        targets: Targets to build; duplicates are built once.
        context: Build context shared by all targets.

    Returns:
        FanOutResult with one outcome per target, in request order.
    """
    from jarpack.logging import get_global_logger

    logger = get_global_logger()
    unique = list(dict.fromkeys(targets))
    if not unique:
        return FanOutResult(outcomes=())

    output_root = Path(output_root).resolve()
    output_root.mkdir(parents=True, exist_ok=True)
    logger.verbose(
        "BUILD", f"Packaging {len(unique)} target(s): {', '.join(t.value for t in unique)}"
    )

    with ThreadPoolExecutor(
        max_workers=len(unique), thread_name_prefix="jarpack-target"
    ) as pool:
        futures = [
            pool.submit(_run_one, target, output_root, descriptor, context)
            for target in unique
        ]
        outcomes = tuple(f.result() for f in futures)

    return FanOutResult(outcomes=outcomes)
