"""High-level entry points for running and managing external commands."""

import io
import sys
import threading
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import BinaryIO, Optional, TextIO, Union

from pysh.capture import CaptureAllocator
from pysh.config import Settings, get_settings
from pysh.context import ContextStack
from pysh.log import configure_logging
from pysh.models import InputSource, ProcessHandle, RunResult, SpawnOptions
from pysh.pid import PidProbe
from pysh.registry import ProcessRegistry
from pysh.spawner import Spawner

Sinks = Union[BinaryIO, Sequence[BinaryIO], None]


def _with_sink(sinks: Sinks, extra: BinaryIO) -> list[BinaryIO]:
    return [*SpawnOptions.create(out=sinks).out, extra]


class Shell:
    """
    A context stack, a process registry and a spawner sharing one set of
    settings.

    Example:
        >>> shell = Shell()
        >>> shell.output("echo", "foo")
        'foo\\n'
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        context: Optional[ContextStack] = None,
        registry: Optional[ProcessRegistry] = None,
        allocator: Optional[CaptureAllocator] = None,
        probe: Optional[PidProbe] = None,
    ) -> None:
        self.settings = settings or get_settings()
        configure_logging(self.settings)
        self.context = context or ContextStack()
        self.registry = registry or ProcessRegistry()
        self.allocator = allocator or CaptureAllocator(self.settings.capture_dir)
        self.spawner = Spawner(
            self.context,
            self.registry,
            self.allocator,
            probe=probe,
            shell=self.settings.shell,
            buffer_size=self.settings.buffer_size,
        )

    # Running commands

    def spawn(self, *command: str, out: Sinks = None, err: Sinks = None, input: Optional[InputSource] = None) -> ProcessHandle:
        """Start ``command`` and return its handle without waiting."""
        return self.spawner.spawn(SpawnOptions.create(out=out, err=err, input=input), command)

    def run(self, *command: str, out: Sinks = None, err: Sinks = None, input: Optional[InputSource] = None) -> int:
        """Run ``command`` to completion and return its exit code."""
        return self.spawn(*command, out=out, err=err, input=input).wait()

    def capture(self, *command: str, input: Optional[InputSource] = None, encoding: str = "utf-8") -> RunResult:
        """Run ``command``, collecting its stdout and stderr in memory."""
        out = io.BytesIO()
        err = io.BytesIO()
        exit_code = self.run(*command, out=out, err=err, input=input)
        return RunResult(
            exit=exit_code,
            out=out.getvalue().decode(encoding, errors="replace"),
            err=err.getvalue().decode(encoding, errors="replace"),
        )

    def output(self, *command: str, out: Sinks = None, input: Optional[InputSource] = None, encoding: str = "utf-8") -> str:
        """Run ``command`` and return its stdout as text."""
        buffer = io.BytesIO()
        self.run(*command, out=_with_sink(out, buffer), input=input)
        return buffer.getvalue().decode(encoding, errors="replace")

    def system(self, *command: str, input: Optional[InputSource] = None, stream: Optional[TextIO] = None) -> int:
        """Run ``command``, print what it wrote, and return its exit code."""
        result = self.capture(*command, input=input)
        target = stream or sys.stdout
        target.write(result.out)
        target.write(result.err)
        return result.exit

    # Process table

    def ps(self) -> list[ProcessHandle]:
        """Handles of the processes that are still running."""
        return self.registry.live()

    def print_ps(self, stream: Optional[TextIO] = None) -> None:
        target = stream or sys.stdout
        for handle in self.ps():
            print(f"{handle.pid} {handle}", file=target)

    def kill(self, *pids: int) -> list[int]:
        """Terminate the given processes; unknown PIDs are ignored."""
        return self.registry.kill(pids)

    def clear_dead_processes(self) -> list[ProcessHandle]:
        return self.registry.purge()

    # Working directory and environment

    def working_dir(self) -> Path:
        return self.context.working_directory()

    def cd(self, target: Path | str | None = None) -> Path:
        return self.context.change_directory(target)

    def pushd(self, target: Path | str) -> Path:
        return self.context.push_directory(target)

    def popd(self) -> Path:
        return self.context.pop_directory()

    def push_env(self, overlay: Mapping[str, str]) -> dict[str, str]:
        return self.context.push_environment(overlay)

    def pop_env(self) -> dict[str, str]:
        return self.context.pop_environment()

    def env(self) -> dict[str, str]:
        return self.context.env()

    def rel_path(self, *parts: str) -> Path:
        return self.context.relative_path(*parts)


_shell: Optional[Shell] = None
_shell_lock = threading.Lock()


def get_shell() -> Shell:
    """Get the process-wide Shell (created on first use)."""
    global _shell
    with _shell_lock:
        if _shell is None:
            _shell = Shell()
        return _shell
