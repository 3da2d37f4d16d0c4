"""
Packaging orchestration for jarpack.

This package builds the per-target output: it lays out the install
directory from the base distribution, installs the application files and
runs the target's post-processing. Several targets are built concurrently.

Public API:

package_target : function
    Build every artifact of one target.
package_all : function
    Build several targets concurrently, one worker per target.

Example:
    from pathlib import Path
    from jarpack.build import package_all
    from jarpack.targets import Target

    result = package_all(
        Path("dist"), descriptor, [Target.GENERIC, Target.LINUX_X64], context
    )
    for outcome in result.outcomes:
        print(outcome.target, outcome.status)
"""

from .fanout import package_all
from .manager import package_target

__all__ = ["package_all", "package_target"]
