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

"""Code signing and notarization of macOS artifacts with rcodesign.

rcodesign runs inside the builder container, so signing works from a Linux
host. The certificate, its password file and the notary API key are bind
mounted into the container next to the artifacts.

Signing Order:
    1. Native libraries (.dylib, .jnilib, .so), without hardened runtime
    2. Mach-O executables (extensionless files with a Mach-O magic), with
       hardened runtime
    3. The bundle itself, with hardened runtime

Embedded code must be signed before the bundle that seals it. Every signing
call is followed by `rcodesign verify`. A failed signature or verification
is logged and recorded in the SigningReport; the remaining items are still
processed.

Preconditions:
    - Signing must be enabled and both the certificate and the password
      file must exist; otherwise signing is skipped with a warning
    - Notarization additionally needs the notary API key file

Example:
    ```python
    from jarpack.macos.signing import SigningPipeline

    pipeline = SigningPipeline(context, descriptor)
    report = pipeline.sign_bundle(Path("dist/mac-x64/MyApp.app"))
    if not report.skipped:
        pipeline.sign_disk_image(Path("dist/mac-x64/MyApp-1.0.0.dmg"))
        pipeline.notarize(Path("dist/mac-x64/MyApp-1.0.0.dmg"))
    ```
"""

from __future__ import annotations

from pathlib import Path
import shlex
from typing import TYPE_CHECKING

from jarpack.exceptions import NoToolchainAvailableError, PackagingError
from jarpack.results import SigningReport

if TYPE_CHECKING:
    from jarpack.context import BuildContext
    from jarpack.descriptor import ApplicationDescriptor

TIMESTAMP_URL = "http://timestamp.apple.com/ts01"

LIBRARY_SUFFIXES = (".dylib", ".jnilib", ".so")

MACHO_MAGICS = frozenset(
    {
        bytes.fromhex("cffaedfe"),
        bytes.fromhex("cefaedfe"),
        bytes.fromhex("cafebabe"),
    }
)

_DATA_MOUNT = "/data"
_CERTS_MOUNT = "/certs"
_SECRETS_MOUNT = "/secrets"
_CONFIG_MOUNT = "/config"


def is_macho(path: Path) -> bool:
    """True if the file starts with a Mach-O (or universal) magic number."""
    try:
        with path.open("rb") as f:
            return f.read(4) in MACHO_MAGICS
    except OSError:
        return False


def find_signable_binaries(bundle: Path) -> tuple[list[Path], list[Path]]:
    """Enumerate the embedded code of a bundle.

    Args:
        bundle: The .app directory.

    Returns:
        (libraries, executables), each sorted by path. Symlinks are skipped.
    """
    libraries: list[Path] = []
    executables: list[Path] = []
    for path in sorted(bundle.rglob("*")):
        if path.is_symlink() or not path.is_file():
            continue
        name = path.name.lower()
        if name.endswith(LIBRARY_SUFFIXES):
            libraries.append(path)
        elif "." not in name and is_macho(path):
            executables.append(path)
    return libraries, executables


class SigningPipeline:
    """Signs and notarizes the macOS artifacts of one application.

    Args:
        context: Build context.
        descriptor: Application carrying the signing options.
    """

    def __init__(
        self, context: BuildContext, descriptor: ApplicationDescriptor
    ) -> None:
        self._context = context
        self._descriptor = descriptor

    def credentials_available(self) -> bool:
        """True if signing is enabled and both credential files exist."""
        from jarpack.logging import get_global_logger

        logger = get_global_logger()
        d = self._descriptor
        if not d.signing_enabled:
            logger.verbose("SIGN", "Signing disabled")
            return False
        missing = [
            label
            for label, path in (
                ("certificate", d.p12_file),
                ("certificate password file", d.p12_password_file),
            )
            if path is None or not path.is_file()
        ]
        if missing:
            logger.warning(
                "SIGN", f"Missing {' and '.join(missing)}, skipping code signing"
            )
            return False
        return True

    def sign_bundle(self, bundle: Path) -> SigningReport:
        """Sign every embedded binary, then the bundle itself.

        Args:
            bundle: The .app directory.

        Returns:
            SigningReport listing signed paths in signing order.

        Raises:
            NoToolchainAvailableError: If no container engine is installed.
        """
        from jarpack.logging import get_global_logger

        logger = get_global_logger()
        if not self.credentials_available():
            return SigningReport(skipped=True)

        libraries, executables = find_signable_binaries(bundle)
        logger.verbose(
            "SIGN",
            f"Signing {len(libraries)} librar(y/ies) and "
            f"{len(executables)} executable(s) in {bundle.name}",
        )
        plan = [(p, False) for p in libraries]
        plan += [(p, True) for p in executables]
        plan.append((bundle, True))

        signed: list[Path] = []
        failed: list[Path] = []
        unverified: list[Path] = []
        for path, hardened in plan:
            if not self._sign(path, bundle.parent, hardened):
                failed.append(path)
                continue
            signed.append(path)
            if not self._verify(path, bundle.parent):
                unverified.append(path)

        if failed or unverified:
            logger.warning(
                "SIGN",
                f"{len(failed)} signing failure(s), "
                f"{len(unverified)} verification failure(s) in {bundle.name}",
            )
        return SigningReport(
            signed=tuple(signed), failed=tuple(failed), unverified=tuple(unverified)
        )

    def sign_disk_image(self, dmg: Path) -> SigningReport:
        """Sign a finished disk image (no hardened runtime)."""
        if not self.credentials_available():
            return SigningReport(skipped=True)
        if not self._sign(dmg, dmg.parent, hardened=False):
            return SigningReport(failed=(dmg,))
        verified = self._verify(dmg, dmg.parent)
        return SigningReport(signed=(dmg,), unverified=() if verified else (dmg,))

    def notarize(self, artifact: Path) -> bool:
        """Submit an artifact for notarization and staple the ticket.

        Returns:
            True if notarization succeeded; False if it was skipped or failed.
        """
        from jarpack.logging import get_global_logger

        logger = get_global_logger()
        key_file = self._descriptor.notary_json
        if key_file is None or not key_file.is_file():
            logger.warning("SIGN", "Notary API key file missing, skipping notarization")
            return False

        command = (
            f"rcodesign notary-submit --api-key-file "
            f"{shlex.quote(f'{_CONFIG_MOUNT}/{key_file.name}')} --staple "
            f"{shlex.quote(f'{_DATA_MOUNT}/{artifact.name}')}"
        )
        mounts = [(artifact.parent, _DATA_MOUNT), (key_file.parent, _CONFIG_MOUNT)]
        ok = self._run(command, mounts, f"notarize {artifact.name}")
        if ok:
            logger.verbose("SIGN", f"Notarized and stapled {artifact.name}")
        return ok

    def _container_path(self, path: Path, root: Path) -> str:
        return f"{_DATA_MOUNT}/{path.relative_to(root).as_posix()}"

    def _sign(self, path: Path, root: Path, hardened: bool) -> bool:
        d = self._descriptor
        if d.p12_file is None or d.p12_password_file is None:
            raise PackagingError("Signing requires a p12 file and a password file")
        parts = [
            "rcodesign",
            "sign",
            "--p12-file",
            f"{_CERTS_MOUNT}/{d.p12_file.name}",
            "--p12-password-file",
            f"{_SECRETS_MOUNT}/{d.p12_password_file.name}",
            "--timestamp-url",
            TIMESTAMP_URL,
            "--for-notarization",
        ]
        if hardened:
            parts += ["--code-signature-flags", "runtime"]
        parts.append(self._container_path(path, root))
        mounts = [
            (root, _DATA_MOUNT),
            (d.p12_file.parent, _CERTS_MOUNT),
            (d.p12_password_file.parent, _SECRETS_MOUNT),
        ]
        return self._run(shlex.join(parts), mounts, f"sign {path.name}")

    def _verify(self, path: Path, root: Path) -> bool:
        command = shlex.join(["rcodesign", "verify", self._container_path(path, root)])
        return self._run(command, [(root, _DATA_MOUNT)], f"verify {path.name}")

    def _run(
        self, command: str, mounts: list[tuple[Path, str]], label: str
    ) -> bool:
        from jarpack.logging import get_global_logger

        logger = get_global_logger()
        try:
            with self._context.new_runner() as runner:
                result = self._context.execute(runner.invoke(command, mounts))
        except NoToolchainAvailableError:
            raise
        except PackagingError as err:
            logger.warning("SIGN", f"Could not {label}: {err}")
            return False
        if not result.ok:
            logger.warning(
                "SIGN",
                f"Failed to {label} (exit {result.exit_code}): {result.stderr.strip()}",
            )
            return False
        logger.debug("SIGN", f"OK: {label}")
        return True
