"""pysh: launch external commands, tee their streams, and track them.

Re-exports public symbols so callers can write::

    from pysh import Shell, SpawnOptions
"""

from pysh.capture import CaptureAllocator
from pysh.context import ContextStack
from pysh.errors import (
    AllocationExhausted,
    DirectoryNotFound,
    PidAcquisitionFailure,
    PyshError,
    SpawnFailure,
)
from pysh.models import ContextFrame, ProcessHandle, RunResult, SpawnOptions
from pysh.pump import StreamPump, pump
from pysh.registry import ProcessRegistry
from pysh.shell import Shell, get_shell
from pysh.spawner import Spawner

__version__ = "0.1.0"

__all__ = [
    "AllocationExhausted",
    "CaptureAllocator",
    "ContextFrame",
    "ContextStack",
    "DirectoryNotFound",
    "PidAcquisitionFailure",
    "ProcessHandle",
    "ProcessRegistry",
    "PyshError",
    "RunResult",
    "Shell",
    "SpawnFailure",
    "SpawnOptions",
    "Spawner",
    "StreamPump",
    "get_shell",
    "pump",
]
