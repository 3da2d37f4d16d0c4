"""
Tests for jarpack.runtime.process module.

Tests external process execution including:
- Exit codes and captured output
- Incremental output listeners
- Listener registration after completion
- Tools that cannot be started

These tests run real `sh` processes.
"""

from __future__ import annotations

import pytest

from jarpack.exceptions import ToolchainError
from jarpack.runtime.process import (
    ProcessResult,
    ToolInvocation,
    run,
    run_and_capture,
)

# All tests in this file are unit tests (fast, mocked)
pytestmark = pytest.mark.unit


class TestRun:
    """Tests for ProcessHandle."""

    def test_listeners_receive_output(self):
        """Test that stdout and stderr reach their listeners."""
        out: list[bytes] = []
        err: list[bytes] = []
        handle = run(ToolInvocation(("sh", "-c", "echo hello; echo oops >&2")))
        handle.add_stdout_listener(out.append)
        handle.add_stderr_listener(err.append)

        handle.start()
        code = handle.wait_for()

        assert code == 0
        assert b"".join(out) == b"hello\n"
        assert b"".join(err) == b"oops\n"

    def test_nonzero_exit_code(self):
        """Test that the exit code is reported."""
        handle = run(ToolInvocation(("sh", "-c", "exit 3")))
        handle.start()

        assert handle.wait_for() == 3
        assert handle.completed
        assert handle.exit_code == 3

    def test_listener_after_completion_raises(self):
        """Test that listeners cannot be added once the process finished."""
        handle = run(ToolInvocation(("sh", "-c", "true")))
        handle.start()
        handle.wait_for()

        with pytest.raises(RuntimeError):
            handle.add_stdout_listener(lambda chunk: None)

    def test_failing_listener_does_not_break_process(self):
        """Test that a listener raising an error does not stop other listeners."""

        def broken(chunk: bytes) -> None:
            raise ValueError("listener bug")

        received: list[bytes] = []
        handle = run(ToolInvocation(("sh", "-c", "echo data")))
        handle.add_stdout_listener(broken)
        handle.add_stdout_listener(received.append)
        handle.start()

        assert handle.wait_for() == 0
        assert b"".join(received) == b"data\n"

    def test_missing_executable_raises_toolchain_error(self):
        """Test that an unstartable tool raises ToolchainError."""
        handle = run(ToolInvocation(("definitely-not-a-real-tool-xyz",)))

        with pytest.raises(ToolchainError):
            handle.start()

    def test_working_directory(self, tmp_path):
        """Test that the invocation's cwd is honored."""
        result = run_and_capture(ToolInvocation(("sh", "-c", "pwd -P"), cwd=tmp_path))

        assert result.stdout.strip() == str(tmp_path.resolve())


class TestRunAndCapture:
    """Tests for run_and_capture()."""

    def test_captures_both_streams(self):
        """Test that stdout and stderr are captured as text."""
        result = run_and_capture(
            ToolInvocation(("sh", "-c", "printf 'a\\nb\\n'; printf 'e' >&2; exit 1"))
        )

        assert isinstance(result, ProcessResult)
        assert result.exit_code == 1
        assert not result.ok
        assert result.stdout == "a\nb\n"
        assert result.stderr == "e"

    def test_large_output_is_complete(self):
        """Test that output larger than one read chunk is fully captured."""
        result = run_and_capture(
            ToolInvocation(("sh", "-c", "yes x | head -n 100000"))
        )

        assert result.ok
        assert result.stdout.count("x\n") == 100000

    def test_display_quotes_arguments(self):
        """Test that display() produces a shell-safe string."""
        inv = ToolInvocation(("convert", "my icon.png", "out.png"))

        assert inv.display() == "convert 'my icon.png' out.png"
