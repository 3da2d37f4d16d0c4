"""
Pytest configuration and shared fixtures for jarpack tests.

This module provides reusable fixtures and test utilities used across
the test suite, most importantly FakeToolchain: a process executor double
that plays the part of the container tools (ImageMagick, rcodesign,
ResourceHacker, Inno Setup, the AppImage builder, ...) and of udisksctl,
so whole targets can be packaged without Docker.
"""

from __future__ import annotations

import json
from pathlib import Path
import plistlib
import re
import shlex
import shutil
import threading
from typing import Any
import zipfile

import pytest
import yaml

from jarpack.config import DEFAULT_CONFIG, Settings
from jarpack.context import BuildContext
from jarpack.logging import SilentLogger, get_global_logger, set_global_logger
from jarpack.runtime import ContainerRunner, ProcessResult, TempRegistry, ToolInvocation

MACHO_BYTES = bytes.fromhex("cffaedfe") + b"\x00" * 60

# -------------------------------
# Logging
# -------------------------------


class RecordingLogger(SilentLogger):
    """Logger that keeps every message for assertions."""

    def __init__(self) -> None:
        self.records: list[tuple[str, str, str]] = []
        self._lock = threading.Lock()

    def _add(self, level: str, prefix: str, message: str) -> None:
        with self._lock:
            self.records.append((level, prefix, message))

    def step(self, step: int, total: int, message: str) -> None:
        self._add("step", "STEP", message)

    def warning(self, prefix: str, message: str) -> None:
        self._add("warning", prefix, message)

    def verbose(self, prefix: str, message: str) -> None:
        self._add("verbose", prefix, message)

    def debug(self, prefix: str, message: str) -> None:
        self._add("debug", prefix, message)

    def warnings(self, prefix: str | None = None) -> list[str]:
        return [
            m
            for level, p, m in self.records
            if level == "warning" and (prefix is None or p == prefix)
        ]


@pytest.fixture
def recording_logger():
    """Install a RecordingLogger as the global logger for one test."""
    previous = get_global_logger()
    logger = RecordingLogger()
    set_global_logger(logger)
    yield logger
    set_global_logger(previous)


# -------------------------------
# Fake toolchain
# -------------------------------


class FakeToolchain:
    """Executor double for container and udisksctl invocations.

    Container invocations are recognized by their `-v host:container` binds;
    the shell command after `sh -c` is split on `&&` and every step is
    simulated against the host directories behind the binds.

    Attributes:
        calls: Every argv received, in order.
        commands: Every container shell command, in order.
        events: Loop/mount lifecycle events ("attach", "mount", "unmount",
            "detach").
        volume_seed: Image file name -> {entry name: bytes}, copied onto the
            volume when that image is mounted.
    """

    def __init__(self, root: Path) -> None:
        self.root = root
        self.calls: list[tuple[str, ...]] = []
        self.commands: list[str] = []
        self.events: list[str] = []
        self.volume_seed: dict[str, dict[str, bytes]] = {}
        self._failures: list[tuple[str, int]] = []
        self._loops: dict[str, Path] = {}
        self._counter = 0
        self._lock = threading.Lock()

    def fail_on(self, fragment: str, exit_code: int = 1) -> None:
        """Make every invocation containing 'fragment' exit with exit_code."""
        self._failures.append((fragment, exit_code))

    def sign_targets(self) -> list[str]:
        """Container paths passed to `rcodesign sign`, in call order."""
        return [
            shlex.split(c)[-1] for c in self.commands if c.startswith("rcodesign sign")
        ]

    def __call__(self, invocation: ToolInvocation) -> ProcessResult:
        argv = tuple(invocation.argv)
        with self._lock:
            self.calls.append(argv)
        joined = " ".join(argv)
        for fragment, code in self._failures:
            if fragment in joined:
                return ProcessResult(code, "", f"simulated failure: {fragment}")
        if argv[0] in ("udisksctl", "lsblk"):
            return self._host(argv)
        return self._container(argv)

    # Host tools

    def _host(self, argv: tuple[str, ...]) -> ProcessResult:
        with self._lock:
            if argv[0] == "lsblk":
                name = argv[-1].removeprefix("/dev/")
                return ProcessResult(0, f"{name}\n", "")
            action = argv[1]
            if action == "loop-setup":
                image = Path(argv[-1])
                loop = f"/dev/loop{self._counter}"
                self._counter += 1
                self._loops[loop] = image
                self.events.append("attach")
                return ProcessResult(0, f"Mapped file {image} as {loop}.\n", "")
            if action == "mount":
                device = argv[-1]
                loop = re.sub(r"(?<=\d)p\d+$", "", device)
                mount_point = self.root / "volumes" / Path(device).name
                mount_point.mkdir(parents=True, exist_ok=True)
                image = self._loops.get(loop)
                if image is not None:
                    for entry, data in self.volume_seed.get(image.name, {}).items():
                        (mount_point / entry).write_bytes(data)
                self.events.append("mount")
                return ProcessResult(0, f"Mounted {device} at {mount_point}.\n", "")
            if action == "unmount":
                self.events.append("unmount")
                return ProcessResult(0, "", "")
            if action == "loop-delete":
                self.events.append("detach")
                return ProcessResult(0, "", "")
        return ProcessResult(2, "", f"unknown udisksctl action {action}")

    # Container tools

    def _container(self, argv: tuple[str, ...]) -> ProcessResult:
        binds: dict[str, Path] = {}
        for i, arg in enumerate(argv):
            if arg == "-v":
                host, ctr = argv[i + 1].rsplit(":", 1)
                binds[ctr] = Path(host)
        command = argv[-1]
        with self._lock:
            self.commands.append(command)
        work = binds["/work"]
        env: dict[str, str] = {}
        for segment in command.split("&&"):
            tokens = shlex.split(segment)
            if not tokens:
                continue
            code = self._simulate(tokens, binds, work, env)
            if code != 0:
                return ProcessResult(code, "", f"{tokens[0]} failed")
        return ProcessResult(0, "", "")

    @staticmethod
    def _resolve(token: str, binds: dict[str, Path], work: Path) -> Path:
        for ctr, host in binds.items():
            if token == ctr or token.startswith(ctr + "/"):
                return host / token[len(ctr) :].lstrip("/")
        return work / token

    def _simulate(
        self,
        tokens: list[str],
        binds: dict[str, Path],
        work: Path,
        env: dict[str, str],
    ) -> int:
        tool = tokens[0]
        path = lambda t: self._resolve(t, binds, work)  # noqa: E731
        if tool == "export":
            env.update(t.split("=", 1) for t in tokens[1:])
            return 0
        if tool == "rsvg-convert":
            out = tokens[tokens.index("--output") + 1]
            path(out).write_bytes(b"PNG-from-svg")
            return 0
        if tool == "convert":
            path(tokens[-1]).write_bytes(b"IMG:" + tokens[-1].encode())
            return 0
        if tool == "iconconvert":
            path(tokens[2]).write_bytes(b"icns")
            return 0
        if tool == "mkfs.hfsplus":
            return 0 if path(tokens[-1]).is_file() else 1
        if tool == "dmg":
            shutil.copyfile(path(tokens[1]), path(tokens[2]))
            return 0
        if tool == "rcodesign":
            return 0
        if tool == "resourcehacker":
            src = path(tokens[tokens.index("-open") + 1])
            dst = path(tokens[tokens.index("-save") + 1])
            if "compile" in tokens:
                dst.write_bytes(b"RES")
            elif src.is_file():
                if src != dst:
                    shutil.copyfile(src, dst)
            else:
                return 1
            return 0
        if tool == "/opt/appimage/AppRun":
            appdir = path(tokens[1])
            if not (appdir / "AppRun").is_symlink():
                return 1
            arch = env.get("ARCH", "x86_64")
            (work / f"{tokens[1]}-{arch}.AppImage").write_bytes(b"appimage")
            return 0
        if tool == "innosetup":
            script = path(tokens[1]).read_text(encoding="utf-8")
            name = re.search(r'#define AppName "(.*)"', script).group(1)
            (work / f"{name}.exe").write_bytes(b"installer")
            return 0
        return 127


@pytest.fixture
def fake_tools(tmp_test_dir: Path) -> FakeToolchain:
    return FakeToolchain(tmp_test_dir / "fake")


def fake_runner_factory(registry: TempRegistry, image: str) -> ContainerRunner:
    return ContainerRunner("docker", registry, image)


@pytest.fixture
def runner_factory():
    """Runner factory creating docker runners without probing PATH."""
    return fake_runner_factory


# -------------------------------
# Settings and context
# -------------------------------


@pytest.fixture
def tmp_test_dir(tmp_path: Path) -> Path:
    """
    Provide a temporary directory for test artifacts.

    Automatically cleaned up after test completion.
    """
    return tmp_path


@pytest.fixture
def settings(tmp_test_dir: Path) -> Settings:
    """Settings with a private cache and the default icon pre-cached."""
    s = Settings(
        cache_dir=tmp_test_dir / "cache",
        container_image="example/builder",
        distributions={
            slug: f"https://example.com/dist/{slug.replace('-', '_')}_template.zip"
            for slug in ("linux-arm64", "linux-x64", "mac-x64", "windows-x64")
        },
        default_icon_url="https://example.com/default_icon.png",
        dmg_size_mb=1,
        icon_size=64,
    )
    icon = s.icon_cache_path()
    icon.parent.mkdir(parents=True, exist_ok=True)
    icon.write_bytes(b"default-icon")
    return s


@pytest.fixture
def registry(tmp_test_dir: Path):
    reg = TempRegistry(base_dir=tmp_test_dir / "temp")
    yield reg
    reg.release_all()


@pytest.fixture
def build_context(registry: TempRegistry, settings: Settings, fake_tools) -> BuildContext:
    return BuildContext(
        registry=registry,
        settings=settings,
        executor=fake_tools,
        runner_factory=fake_runner_factory,
    )


# -------------------------------
# Application inputs
# -------------------------------


def write_jar(path: Path, main_class: str | None = "com.example.Main", extra: str = "") -> Path:
    """Write a minimal jar with a manifest."""
    manifest = "Manifest-Version: 1.0\r\n"
    if main_class:
        manifest += f"Main-Class: {main_class}\r\n"
    manifest += extra + "\r\n"
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr("META-INF/MANIFEST.MF", manifest)
        zf.writestr("com/example/Main.class", b"\xca\xfe\xba\xbe")
    return path


@pytest.fixture
def create_jar():
    """
    Factory fixture for writing minimal jars.

    Usage:
        jar = create_jar(tmp_path / "app.jar", main_class="org.demo.App")
    """
    return write_jar


@pytest.fixture
def app_source(tmp_test_dir: Path) -> Path:
    """Source dir with one jar, two other files and one subdirectory."""
    src = tmp_test_dir / "src"
    write_jar(src / "myapp.jar")
    (src / "README.txt").write_text("readme")
    (src / "app.properties").write_text("key=value")
    write_jar(src / "libs" / "dep.jar", main_class=None)
    return src


@pytest.fixture
def app_config(app_source: Path) -> dict[str, Any]:
    """Merged-configuration shaped dict for the sample application."""
    cfg = yaml.safe_load(yaml.safe_dump(DEFAULT_CONFIG))
    cfg["app"].update({"source": str(app_source), "name": "MyApp", "version": "2.1.0"})
    return cfg


_DIST_LAYOUTS: dict[str, dict[str, bytes]] = {
    "linux": {
        "Launcher/bin/Launcher": b"#!/bin/sh\n",
        "Launcher/lib/runtime/release": b"JAVA_VERSION=21",
        "Launcher/lib/app/Launcher.cfg": b"[Application]\n",
    },
    "mac": {
        "Launcher.app/Contents/MacOS/Launcher": MACHO_BYTES,
        "Launcher.app/Contents/Info.plist": plistlib.dumps(
            {"CFBundleExecutable": "Launcher", "CFBundleName": "Launcher"}
        ),
        "Launcher.app/Contents/runtime/Contents/Home/lib/libjli.dylib": b"lib",
        "Launcher.app/Contents/runtime/Contents/Home/lib/libjava.dylib": b"lib",
        "Launcher.app/Contents/app/Launcher.cfg": b"[Application]\n",
    },
    "windows": {
        "Launcher/Launcher.exe": b"MZ",
        "Launcher/runtime/bin/java.dll": b"MZ",
        "Launcher/app/Launcher.cfg": b"[Application]\n",
    },
}


@pytest.fixture
def install_distribution(settings: Settings):
    """
    Factory fixture placing a base distribution zip in the download cache.

    Usage:
        zip_path = install_distribution("linux-x64")
    """

    def _install(slug: str) -> Path:
        url = settings.distributions[slug]
        location = settings.distribution_cache_path(url)
        location.parent.mkdir(parents=True, exist_ok=True)
        layout = _DIST_LAYOUTS[slug.split("-")[0]]
        executables = [
            name for name in layout if "/bin/Launcher" in name or "MacOS/" in name
        ]
        with zipfile.ZipFile(location, "w") as zf:
            for name, data in layout.items():
                zf.writestr(name, data)
            zf.writestr(".metadata", json.dumps({"executables": executables}))
        return location

    return _install


@pytest.fixture
def create_yaml_file(tmp_test_dir: Path):
    """
    Factory fixture for creating temporary YAML files.

    Usage:
        yaml_path = create_yaml_file("jarpack.yaml", {"key": "value"})
    """

    def _create(filename: str, data: dict[str, Any]) -> Path:
        path = tmp_test_dir / filename
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as f:
            yaml.dump(data, f)
        return path

    return _create
