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

"""Packaging orchestration for a single target.

Build Process:
    1. Recreate the target's output directory
    2. Lay out the install directory: extract the base distribution and
       rename its launcher (runtime-bundling targets), or create an empty
       one (generic)
    3. Write the launcher configuration (<name>.cfg) into the payload dir
    4. Copy the application files into the payload dir
    5. Run the target's post-processing to produce the artifacts

Directory Structure (linux-x64 example):
    dist/linux-x64/
      MyApp/
        bin/MyApp
        lib/app/MyApp.cfg
        lib/app/myapp.jar
        lib/runtime/...
      MyApp-1.0.0-x86_64.AppImage

Example:
    ```python
    from pathlib import Path
    from jarpack.build import package_target
    from jarpack.targets import Target, make_configurator

    result = package_target(
        Path("dist/linux-x64"),
        descriptor,
        make_configurator(Target.LINUX_X64, context),
    )
    print(result.artifacts)
    ```
"""

from __future__ import annotations

from pathlib import Path

from jarpack.descriptor import ApplicationDescriptor
from jarpack.exceptions import ConfigError, PackagingError, TargetBuildError
from jarpack.io.archive import extract_distribution
from jarpack.io.files import copy_tree, recreate_dir, safe_move
from jarpack.results import PackageResult
from jarpack.targets.base import BASE_LAUNCHER_NAME, Configurator


def _layout_from_distribution(
    output_dir: Path, descriptor: ApplicationDescriptor, configurator: Configurator
) -> Path:
    """Extract the base distribution and rename its launcher for the app."""
    from jarpack.logging import get_global_logger

    logger = get_global_logger()
    archive = configurator.fetch_base_distribution()
    logger.verbose("BUILD", f"Extracting base distribution {archive.name}")
    extract_distribution(archive, output_dir)

    name = descriptor.name
    base_dir = output_dir / configurator.install_dir_name(BASE_LAUNCHER_NAME)
    install_dir = output_dir / configurator.install_dir_name(name)
    if not base_dir.is_dir():
        raise PackagingError(
            f"Base distribution has no {base_dir.name} directory"
        )
    safe_move(base_dir, install_dir)

    base_exe = install_dir / configurator.executable_relative_path(BASE_LAUNCHER_NAME)
    app_exe = install_dir / configurator.executable_relative_path(name)
    if not base_exe.is_file():
        raise PackagingError(
            f"Base distribution has no launcher at "
            f"{configurator.executable_relative_path(BASE_LAUNCHER_NAME)}"
        )
    safe_move(base_exe, app_exe)
    logger.verbose("BUILD", f"Launcher renamed to {app_exe.name}")
    return install_dir


def package_target(
    output_dir: Path, descriptor: ApplicationDescriptor, configurator: Configurator
) -> PackageResult:
    """Build every artifact of one target.

    Args:
        output_dir: Directory owned by this target; it is deleted and
            recreated.
        descriptor: Application being packaged.
        configurator: Layout and post-processing of the target.

    Returns:
        PackageResult with the produced artifacts.

    Raises:
        ConfigError: If the target's configuration is invalid.
        TargetBuildError: If any other step fails. The original error is
            chained as __cause__.
    """
    from jarpack.logging import get_global_logger

    logger = get_global_logger()
    slug = configurator.target.value
    output_dir = Path(output_dir).resolve()

    try:
        logger.verbose("BUILD", f"[{slug}] Preparing {output_dir}")
        recreate_dir(output_dir)

        if configurator.bundles_runtime:
            install_dir = _layout_from_distribution(output_dir, descriptor, configurator)
        else:
            install_dir = output_dir / configurator.install_dir_name(descriptor.name)
            install_dir.mkdir(parents=True)

        payload_dir = recreate_dir(install_dir / configurator.payload_relative_path)
        if configurator.bundles_runtime:
            (payload_dir / f"{descriptor.name}.cfg").write_text(
                descriptor.launcher_config(), encoding="utf-8"
            )

        logger.verbose("BUILD", f"[{slug}] Copying application files")
        copy_tree(descriptor.source_dir, payload_dir)

        logger.verbose("BUILD", f"[{slug}] Post-processing")
        artifacts = configurator.post_process(output_dir, descriptor)
    except (ConfigError, TargetBuildError):
        raise
    except Exception as err:
        raise TargetBuildError(slug, str(err) or type(err).__name__) from err

    logger.verbose("BUILD", f"[{slug}] Done: {', '.join(a.name for a in artifacts)}")
    return PackageResult(
        target=slug,
        output_dir=output_dir,
        install_dir=install_dir,
        artifacts=tuple(artifacts),
    )
