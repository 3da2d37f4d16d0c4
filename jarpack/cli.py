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

"""Command-line interface for jarpack.

This module provides the main CLI entry point for the jarpack tool, which
packages a directory of JVM application jars into native artifacts.

Commands:

    package: Build the artifacts of one or more targets
    targets: List the supported targets

Example:
    Package for Linux and Windows:
        ```bash
        $ jarpack package --source build/libs --name MyApp --version 1.2.0 \\
            -t linux-x64 -t windows-x64 --out dist
        ```

    Use a project file:
        ```bash
        $ jarpack package --config jarpack.yaml
        ```

    Enable verbose output:
        ```bash
        $ jarpack package --config jarpack.yaml --verbose
        ```

Exit Codes:

- 0: Success (every target built)
- 1: Error (configuration error, or at least one target failed)

Note:
    Temporary folders are removed when the run ends, including on SIGTERM
    and interpreter exit, unless --keep-temp is given. Verbose mode shows
    full tracebacks on errors.

"""

from __future__ import annotations

import argparse
import atexit
from importlib.metadata import version
from pathlib import Path
import signal
import sys
from typing import Any

from jarpack.core import package_application
from jarpack.exceptions import JarpackError
from jarpack.logging import get_logger, set_global_logger
from jarpack.runtime import TempRegistry
from jarpack.targets import Target


def _on_sigterm(signum: int, frame: Any) -> None:
    raise SystemExit(128 + signum)


def build_overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Translate parsed arguments into a configuration overlay.

    Unset options are None and therefore never mask project file values.
    """
    return {
        "app": {
            "source": args.source,
            "name": args.name,
            "version": args.app_version,
            "mainjar": args.mainjar,
            "icon": args.icon,
            "install_icon": args.install_icon,
            "document_icon": args.document_icon,
            "document_extensions": args.document_extensions,
            "document_name": args.document_name,
        },
        "targets": args.targets,
        "output": args.out,
        "signing": {
            "enabled": args.enable_signing,
            "p12_file": args.p12_file,
            "p12_password_file": args.p12_pass,
            "notary_json": args.notary_json,
        },
        "dmg": {
            "template": args.dmg_template,
            "compress": args.dmg_compress,
            "skip": args.skip_dmg,
        },
    }


def cmd_package(args: argparse.Namespace) -> int:
    """Handler for 'jarpack package' command.

    Loads the configuration, reads the application descriptor and builds
    every requested target concurrently. Temporary folders are owned by a
    single registry that is released when the command ends.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Exit code (0 if every target succeeded, 1 otherwise).
    """
    # Configure global logger
    logger = get_logger(verbose=args.verbose, debug=args.debug)
    set_global_logger(logger)

    config_path = Path(args.config).resolve() if args.config else None
    if config_path is not None and not config_path.exists():
        print(f"Error: Config file not found: {config_path}")
        return 1

    registry = TempRegistry()
    if not args.keep_temp:
        atexit.register(registry.release_all)
    previous_handler = signal.signal(signal.SIGTERM, _on_sigterm)

    try:
        run = package_application(
            config_path,
            overrides=build_overrides(args),
            registry=registry,
            keep_temp=args.keep_temp,
        )
    except JarpackError as err:
        print(f"Error: {err}")
        if args.verbose or args.debug:
            import traceback

            traceback.print_exc()
        return 1
    finally:
        signal.signal(signal.SIGTERM, previous_handler)

    # Display results
    print("=" * 70)
    print("PACKAGE RESULTS")
    print("=" * 70)
    print(f"App Name:        {run.app_name}")
    print(f"Version:         {run.version}")
    print(f"Main Jar:        {run.primary_payload}")
    print(f"Output:          {run.output_root}")
    print()
    for outcome in run.fanout.outcomes:
        print(f"  [{outcome.status.upper()}] {outcome.target}")
        for artifact in outcome.artifacts:
            print(f"      {artifact}")
        if outcome.error:
            print(f"      {outcome.error}")
    print("=" * 70)

    failed = run.fanout.failed
    print()
    if failed:
        print(f"[FAILED] {len(failed)} of {len(run.fanout.outcomes)} target(s) failed.")
        return 1
    print("[SUCCESS] All targets packaged successfully!")
    return 0


def cmd_targets(args: argparse.Namespace) -> int:
    """Handler for 'jarpack targets' command."""
    for target in Target:
        print(target.value)
    return 0


def main() -> None:
    """Main entry point for the jarpack CLI.

    This function is registered as the 'jarpack' console script in
    pyproject.toml.
    """
    parser = argparse.ArgumentParser(
        prog="jarpack",
        description="jarpack - package JVM applications into native artifacts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"jarpack {version('jarpack')}",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        help="Available commands",
        required=True,
    )

    # 'package' command
    parser_package = subparsers.add_parser(
        "package",
        help="Package the application for one or more targets",
        description="Build native artifacts (tar.gz, AppImage, DMG, installer) "
        "from a directory of application jars.",
    )
    parser_package.add_argument(
        "--config",
        default=None,
        help="Project file (default: ./jarpack.yaml when present)",
    )
    parser_package.add_argument(
        "--source", default=None, help="Directory holding the application jars"
    )
    parser_package.add_argument("--name", default=None, help="Application name")
    parser_package.add_argument(
        "--version",
        dest="app_version",
        default=None,
        help="Application version (default: 1.0.0)",
    )
    parser_package.add_argument(
        "--mainjar",
        default=None,
        help="Jar carrying Main-Class (required when the source has several)",
    )
    parser_package.add_argument(
        "-t",
        "--target",
        dest="targets",
        action="append",
        choices=[t.value for t in Target],
        default=None,
        help="Target to build (repeatable)",
    )
    parser_package.add_argument(
        "--out", default=None, help="Output directory (default: ./dist)"
    )
    parser_package.add_argument("--icon", default=None, help="Application icon")
    parser_package.add_argument(
        "--install-icon", default=None, help="Installer icon (default: app icon)"
    )
    parser_package.add_argument(
        "--document-icon",
        default=None,
        help="Icon for associated documents (required with --document-extensions)",
    )
    parser_package.add_argument(
        "--document-extensions",
        default=None,
        help='Comma-separated extensions to associate (e.g., "txt,md")',
    )
    parser_package.add_argument(
        "--document-name",
        default=None,
        help="Display name of the associated document type",
    )
    parser_package.add_argument(
        "--p12-file", default=None, help="Signing certificate (PKCS#12)"
    )
    parser_package.add_argument(
        "--p12-pass", default=None, help="File containing the certificate password"
    )
    parser_package.add_argument(
        "--notary-json", default=None, help="Notarization API key file"
    )
    parser_package.add_argument(
        "--enable-signing",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Sign (and notarize) the macOS artifacts",
    )
    parser_package.add_argument(
        "--dmg-template",
        default=None,
        help="DMG template (.dmg, or .zip containing one)",
    )
    parser_package.add_argument(
        "--dmg-compress",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Compress the DMG (default: yes)",
    )
    parser_package.add_argument(
        "--skip-dmg",
        action="store_true",
        default=None,
        help="Build the app bundle only",
    )
    parser_package.add_argument(
        "--keep-temp",
        action="store_true",
        help="Keep temporary folders for inspection",
    )
    parser_package.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show progress and high-level status updates",
    )
    parser_package.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Show detailed debugging output (implies --verbose)",
    )
    parser_package.set_defaults(func=cmd_package)

    # 'targets' command
    parser_targets = subparsers.add_parser(
        "targets",
        help="List supported targets",
        description="Print the slug of every supported target.",
    )
    parser_targets.set_defaults(func=cmd_targets)

    args = parser.parse_args()
    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
