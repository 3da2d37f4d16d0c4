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

"""Public API return types for jarpack.

This module defines dataclasses for return values from public API functions.
These types represent the results of packaging a single target, of fanning
out over several targets, and of the macOS signing pipeline.

All dataclasses are frozen (immutable) to prevent accidental mutation of
return values.

Example:
    Using result types:
        ```python
        from jarpack.build import package_all

        result = package_all(Path("dist"), descriptor, targets, context)
        for outcome in result.failed:
            print(f"{outcome.target}: {outcome.error}")
        ```

Note:
    Only public API return types belong in this module. Domain types
    (like ApplicationDescriptor or MountedVolume) remain co-located with
    their related logic.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class PackageResult:
    """Result from packaging one target.

    Attributes:
        target: Target slug (e.g., "linux-x64").
        output_dir: Directory the target was built into.
        install_dir: The application directory (or bundle) inside output_dir.
            May no longer exist for targets that archive and remove it.
        artifacts: Distributable files produced by the target.
        status: Always "success" for a completed build.
    """

    target: str
    output_dir: Path
    install_dir: Path
    artifacts: tuple[Path, ...]
    status: str = "success"


@dataclass(frozen=True)
class TargetOutcome:
    """Outcome of one target within a multi-target run.

    Attributes:
        target: Target slug.
        status: "success" or "failed".
        output_dir: Directory the target was built into.
        artifacts: Produced files (empty when failed).
        error: Error message when failed, otherwise None.
    """

    target: str
    status: str
    output_dir: Path
    artifacts: tuple[Path, ...] = ()
    error: str | None = None


@dataclass(frozen=True)
class FanOutResult:
    """Result from packaging several targets concurrently.

    Attributes:
        outcomes: One outcome per requested target, in request order.
    """

    outcomes: tuple[TargetOutcome, ...]

    @property
    def succeeded(self) -> list[TargetOutcome]:
        return [o for o in self.outcomes if o.status == "success"]

    @property
    def failed(self) -> list[TargetOutcome]:
        return [o for o in self.outcomes if o.status != "success"]


@dataclass(frozen=True)
class SigningReport:
    """Result from signing a macOS bundle or disk image.

    Attributes:
        signed: Paths signed successfully, in signing order.
        failed: Paths whose signing command failed.
        unverified: Paths that were signed but failed verification.
        skipped: True when signing did not run (disabled or missing
            credentials).
    """

    signed: tuple[Path, ...] = ()
    failed: tuple[Path, ...] = ()
    unverified: tuple[Path, ...] = ()
    skipped: bool = False


@dataclass(frozen=True)
class PackagingRun:
    """Result from a complete packaging invocation.

    Attributes:
        app_name: Name of the packaged application.
        version: Version of the packaged application.
        primary_payload: Jar carrying the entry point.
        output_root: Parent of the per-target output directories.
        fanout: Per-target outcomes.
    """

    app_name: str
    version: str
    primary_payload: str
    output_root: Path
    fanout: FanOutResult

    @property
    def ok(self) -> bool:
        return not self.fanout.failed
