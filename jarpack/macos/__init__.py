"""macOS packaging stages for jarpack.

Modules:

bundle : module
    Info.plist / .jpackage.xml rewriting and ICNS conversion.
dmg : module
    Disk image assembly state machine.
signing : module
    Code signing and notarization with rcodesign.
"""

from .dmg import DiskImageBuilder, DmgState, MountedVolume
from .signing import SigningPipeline

__all__ = ["DiskImageBuilder", "DmgState", "MountedVolume", "SigningPipeline"]
