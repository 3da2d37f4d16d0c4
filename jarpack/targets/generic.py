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

"""Generic target: a launcher script plus the jars, as a tar.gz.

No runtime is bundled; the launcher expects `java` on PATH.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from jarpack.exceptions import ConfigError
from jarpack.io.archive import create_tar_gz, make_executable
from jarpack.io.files import safe_delete
from jarpack.targets.base import Configurator, Target

if TYPE_CHECKING:
    from jarpack.descriptor import ApplicationDescriptor


def launcher_script(main_class: str) -> str:
    """Bash launcher running main_class with every jar in lib/ on the classpath."""
    return (
        "#!/bin/bash\n"
        'SCRIPT_DIR="$(cd "$(dirname "${BASH_SOURCE[0]}")" && pwd)"\n'
        f'exec java -cp "$SCRIPT_DIR/lib/*" {main_class} "$@"\n'
    )


class GenericConfigurator(Configurator):
    target = Target.GENERIC
    bundles_runtime = False
    payload_relative_path = "lib"

    def fetch_base_distribution(self) -> Path:
        raise ConfigError(
            "The generic target bundles no runtime and has no base distribution"
        )

    def executable_relative_path(self, app_name: str) -> str:
        return app_name

    def post_process(
        self, output_dir: Path, descriptor: ApplicationDescriptor
    ) -> list[Path]:
        from jarpack.logging import get_global_logger

        logger = get_global_logger()
        install_dir = output_dir / self.install_dir_name(descriptor.name)

        launcher = install_dir / self.executable_relative_path(descriptor.name)
        launcher.write_text(launcher_script(descriptor.main_class), encoding="utf-8")
        make_executable(launcher)
        logger.verbose("GENERIC", f"Wrote launcher script {launcher.name}")

        archive = output_dir / f"{descriptor.name}-{descriptor.version}-generic.tar.gz"
        create_tar_gz(install_dir, archive)
        safe_delete(install_dir)
        logger.verbose("GENERIC", f"Created {archive.name}")
        return [archive]
