"""Runtime primitives for jarpack.

This package owns the ephemeral resources and external processes every
packaging stage depends on.

Modules:

registry : module
    TempRegistry, the ledger of live temporary directories.
process : module
    External process execution with incremental output listeners.
container : module
    Container engine selection and command wrapping.
"""

from .container import ContainerRunner, find_engine, select_runner
from .process import (
    ProcessHandle,
    ProcessResult,
    ToolInvocation,
    run,
    run_and_capture,
)
from .registry import TempRegistry

__all__ = [
    "ContainerRunner",
    "ProcessHandle",
    "ProcessResult",
    "TempRegistry",
    "ToolInvocation",
    "find_engine",
    "run",
    "run_and_capture",
    "select_runner",
]
