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

"""External process execution for jarpack.

Every external tool (container engine, udisksctl, lsblk) is driven through
this module. A ProcessHandle is created un-started so callers can attach
output listeners before any output can be produced; listeners receive raw
byte chunks from a reader thread per stream.

Guarantees:
    - wait_for() returns only after the process exited AND both reader
      threads drained their pipes, so every chunk has been delivered
    - Registering a listener after completion raises RuntimeError
    - A non-zero exit code is a result, not an error; callers decide
    - No implicit timeout: a hung tool blocks its caller

Example:
    Stream output while waiting:
        ```python
        from jarpack.runtime.process import ToolInvocation, run

        handle = run(ToolInvocation(("lsblk", "-n", "-o", "NAME", "/dev/loop0")))
        handle.add_stdout_listener(lambda chunk: print(chunk.decode(), end=""))
        exit_code = handle.wait_for()
        ```

    Capture everything:
        ```python
        from jarpack.runtime.process import ToolInvocation, run_and_capture

        result = run_and_capture(ToolInvocation(("udisksctl", "status")))
        if result.ok:
            print(result.stdout)
        ```
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
import shlex
import subprocess
import threading
from typing import IO

from jarpack.exceptions import ToolchainError

OutputListener = Callable[[bytes], None]

# Bytes per read from a child pipe.
READ_CHUNK = 64 * 1024


@dataclass(frozen=True)
class ToolInvocation:
    """An external command line plus optional working directory.

    Attributes:
        argv: Program and arguments.
        cwd: Working directory for the process, or None to inherit.
    """

    argv: tuple[str, ...]
    cwd: Path | None = None

    def display(self) -> str:
        """Shell-quoted rendering for logs."""
        return shlex.join(self.argv)


@dataclass(frozen=True)
class ProcessResult:
    """Exit status and captured output of a finished process.

    Attributes:
        exit_code: Process exit status.
        stdout: Captured standard output (UTF-8, undecodable bytes replaced).
        stderr: Captured standard error.
    """

    exit_code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class ProcessHandle:
    """A single external process with incremental output observation.

    Args:
        invocation: The command to run.
    """

    def __init__(self, invocation: ToolInvocation) -> None:
        self.invocation = invocation
        self._lock = threading.Lock()
        self._stdout_listeners: list[OutputListener] = []
        self._stderr_listeners: list[OutputListener] = []
        self._proc: subprocess.Popen[bytes] | None = None
        self._readers: list[threading.Thread] = []
        self._exit_code: int | None = None

    @property
    def completed(self) -> bool:
        return self._exit_code is not None

    @property
    def exit_code(self) -> int | None:
        return self._exit_code

    def add_stdout_listener(self, listener: OutputListener) -> None:
        """Register a callback for standard output chunks."""
        self._add_listener(self._stdout_listeners, listener)

    def add_stderr_listener(self, listener: OutputListener) -> None:
        """Register a callback for standard error chunks."""
        self._add_listener(self._stderr_listeners, listener)

    def _add_listener(
        self, listeners: list[OutputListener], listener: OutputListener
    ) -> None:
        with self._lock:
            if self._exit_code is not None:
                raise RuntimeError(
                    f"process already completed: {self.invocation.display()}"
                )
            listeners.append(listener)

    def start(self) -> None:
        """Launch the process. Calling start() twice has no effect.

        Raises:
            ToolchainError: If the executable cannot be started.
        """
        from jarpack.logging import get_global_logger

        if self._proc is not None:
            return
        logger = get_global_logger()
        logger.debug("PROC", f"Running: {self.invocation.display()}")
        try:
            self._proc = subprocess.Popen(
                list(self.invocation.argv),
                cwd=self.invocation.cwd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as err:
            raise ToolchainError(
                f"failed to start {self.invocation.argv[0]}: {err}"
            ) from err

        assert self._proc.stdout is not None and self._proc.stderr is not None
        self._readers = [
            threading.Thread(
                target=self._pump,
                args=(self._proc.stdout, self._stdout_listeners),
                daemon=True,
            ),
            threading.Thread(
                target=self._pump,
                args=(self._proc.stderr, self._stderr_listeners),
                daemon=True,
            ),
        ]
        for reader in self._readers:
            reader.start()

    def wait_for(self) -> int:
        """Block until the process exits and all output is delivered.

        Starts the process first if start() was not called.

        Returns:
            The exit code.
        """
        if self._exit_code is not None:
            return self._exit_code
        self.start()
        assert self._proc is not None
        code = self._proc.wait()
        for reader in self._readers:
            reader.join()
        with self._lock:
            self._exit_code = code
        return code

    def _pump(self, stream: IO[bytes], listeners: list[OutputListener]) -> None:
        from jarpack.logging import get_global_logger

        try:
            for chunk in iter(lambda: stream.read1(READ_CHUNK), b""):
                with self._lock:
                    current = list(listeners)
                for listener in current:
                    try:
                        listener(chunk)
                    except Exception as err:
                        get_global_logger().warning(
                            "PROC", f"Output listener failed: {err}"
                        )
        finally:
            stream.close()


def run(invocation: ToolInvocation) -> ProcessHandle:
    """Prepare an external process without starting it.

    Args:
        invocation: The command to run.

    Returns:
        An un-started ProcessHandle; attach listeners, then call wait_for().
    """
    return ProcessHandle(invocation)


class _LineLogger:
    """Forwards complete output lines to the debug logger."""

    def __init__(self, prefix: str) -> None:
        self._prefix = prefix
        self._pending = b""

    def __call__(self, chunk: bytes) -> None:
        from jarpack.logging import get_global_logger

        self._pending += chunk
        *lines, self._pending = self._pending.split(b"\n")
        for line in lines:
            get_global_logger().debug(
                self._prefix, line.decode("utf-8", errors="replace").rstrip()
            )


def run_and_capture(invocation: ToolInvocation) -> ProcessResult:
    """Run a process to completion and capture its output.

    Output lines are also forwarded to the debug logger as they arrive.

    Args:
        invocation: The command to run.

    Returns:
        ProcessResult with exit code and decoded output.

    Raises:
        ToolchainError: If the executable cannot be started.
    """
    out = bytearray()
    err = bytearray()
    handle = run(invocation)
    handle.add_stdout_listener(out.extend)
    handle.add_stderr_listener(err.extend)
    handle.add_stdout_listener(_LineLogger("PROC"))
    handle.add_stderr_listener(_LineLogger("PROC"))
    code = handle.wait_for()
    return ProcessResult(
        exit_code=code,
        stdout=out.decode("utf-8", errors="replace"),
        stderr=err.decode("utf-8", errors="replace"),
    )
