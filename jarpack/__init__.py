"""
jarpack - JVM application packager

A Python-based CLI tool that turns a directory of compiled JVM application
files (jars) into distributable native artifacts for several platforms.

jarpack provides:
  - A generic tar.gz with a launcher script
  - Linux AppImages (x86_64 and aarch64)
  - macOS app bundles in a DMG, optionally signed and notarized
  - Windows installers built with Inno Setup
  - Concurrent multi-target builds with guaranteed temp cleanup

Quick Start
-----------
Package the jars in build/libs for Linux:

    $ jarpack package --source build/libs --name MyApp -t linux-x64

For full CLI documentation:

    $ jarpack --help

Package Structure
-----------------
cli : module
    Command-line interface with argparse.
core : module
    High-level orchestration function.
config : package
    YAML configuration loading and merging.
runtime : package
    Temp registry, process execution and container toolchain.
targets : package
    Per-target layout and post-processing.
build : package
    Single-target orchestration and multi-target fan-out.
macos : package
    Bundle metadata, disk images and code signing.
io : package
    Downloads, archives, file helpers and JAR manifests.

Public API
----------
    from jarpack.core import package_application
    from jarpack.config import load_effective_config
    from jarpack.build import package_all, package_target

Project Information
-------------------
Author: Roger Cibrian
License: Apache-2.0
"""

__version__ = "0.1.0"
__author__ = "Roger Cibrian"
__license__ = "Apache-2.0"
__description__ = "Package JVM applications into native artifacts"

from jarpack.config import load_effective_config
from jarpack.core import package_application

__all__ = [
    "__version__",
    "__author__",
    "__license__",
    "__description__",
    "load_effective_config",
    "package_application",
]
