"""Per-target configurators for jarpack.

Each Target maps to exactly one Configurator class through an explicit
dispatch table; there is no import-time registration.

Public API:

Target : enum
    The supported target variants.
make_configurator : function
    Create the configurator for a target.

Example:
    from jarpack.targets import Target, make_configurator

    configurator = make_configurator(Target.LINUX_X64, context)
    print(configurator.install_dir_name("MyApp"))
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import Configurator, Target
from .generic import GenericConfigurator
from .linux import LinuxArm64Configurator, LinuxX64Configurator
from .macos import MacX64Configurator
from .windows import WindowsX64Configurator

if TYPE_CHECKING:
    from jarpack.context import BuildContext

_CONFIGURATORS: dict[Target, type[Configurator]] = {
    Target.GENERIC: GenericConfigurator,
    Target.LINUX_ARM64: LinuxArm64Configurator,
    Target.LINUX_X64: LinuxX64Configurator,
    Target.MAC_X64: MacX64Configurator,
    Target.WINDOWS_X64: WindowsX64Configurator,
}


def make_configurator(target: Target, context: BuildContext) -> Configurator:
    """Create the configurator handling 'target'."""
    return _CONFIGURATORS[target](context)


__all__ = ["Configurator", "Target", "make_configurator"]
