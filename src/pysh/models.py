"""Data models for pysh."""

import io
import subprocess
import threading
from collections.abc import Mapping, Sequence
from concurrent.futures import Future
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import BinaryIO, Optional, Union

InputSource = Union[BinaryIO, bytes, str]


@dataclass(slots=True, frozen=True)
class ContextFrame:
    """Immutable snapshot of where and with what overlay a process launches."""

    working_directory: Path
    environment: Mapping[str, str]


def _as_sinks(value: Union[BinaryIO, Sequence[BinaryIO], None]) -> tuple[BinaryIO, ...]:
    if value is None:
        return ()
    if isinstance(value, (list, tuple)):
        return tuple(value)
    return (value,)


@dataclass(slots=True, frozen=True)
class SpawnOptions:
    """
    Redirections for one spawn.

    ``out`` and ``err`` receive copies of the child's stdout and stderr in
    addition to the audit capture. ``input`` is fed to the child's stdin:
    a binary stream, raw bytes, or text (encoded as UTF-8).
    """

    out: tuple[BinaryIO, ...] = ()
    err: tuple[BinaryIO, ...] = ()
    input: Optional[InputSource] = None

    @classmethod
    def create(
        cls,
        out: Union[BinaryIO, Sequence[BinaryIO], None] = None,
        err: Union[BinaryIO, Sequence[BinaryIO], None] = None,
        input: Optional[InputSource] = None,
    ) -> "SpawnOptions":
        """Build options from single sinks or sequences of sinks."""
        return cls(out=_as_sinks(out), err=_as_sinks(err), input=input)

    def input_stream(self) -> Optional[BinaryIO]:
        """The input as a readable binary stream, or None."""
        if self.input is None:
            return None
        if isinstance(self.input, str):
            return io.BytesIO(self.input.encode("utf-8"))
        if isinstance(self.input, (bytes, bytearray, memoryview)):
            return io.BytesIO(bytes(self.input))
        return self.input


@dataclass(eq=False)
class ProcessHandle:
    """
    One spawned process and its eventual outcome.

    Only the exit watcher mutates a handle, and only once: it sets
    ``end_time`` and resolves ``exit_status``.
    """

    pid: Optional[int]
    arguments: tuple[str, ...]
    working_directory: Path
    process: subprocess.Popen = field(repr=False)
    start_time: datetime = field(default_factory=datetime.now)
    end_time: Optional[datetime] = None
    exit_status: "Future[int]" = field(default_factory=Future, repr=False)
    capture_directory: Optional[Path] = None
    _finish_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def command_name(self) -> str:
        return Path(self.arguments[0]).name if self.arguments else ""

    @property
    def is_finished(self) -> bool:
        return self.exit_status.done()

    @property
    def exit_code(self) -> Optional[int]:
        """Exit code if finished, otherwise None."""
        if not self.exit_status.done() or self.exit_status.exception() is not None:
            return None
        return self.exit_status.result()

    def wait(self, timeout: float | None = None) -> int:
        """Block until the exit code is known and all output has been flushed."""
        return self.exit_status.result(timeout=timeout)

    def _finish(self, exit_code: int) -> bool:
        """Record termination. Returns False if it was already recorded."""
        with self._finish_lock:
            if self.exit_status.done():
                return False
            self.end_time = datetime.now()
            self.exit_status.set_result(exit_code)
            return True

    def _fail(self, error: BaseException) -> bool:
        with self._finish_lock:
            if self.exit_status.done():
                return False
            self.end_time = datetime.now()
            self.exit_status.set_exception(error)
            return True

    def __str__(self) -> str:
        if self.exit_status.done():
            end = str(self.end_time)
            exit_text = "error" if self.exit_code is None else str(self.exit_code)
        else:
            end = f"Executing as of {datetime.now()}"
            exit_text = "--"
        return (
            f"{{:pid {self.pid} :start-time {self.start_time} :end-time {end} "
            f":exit {exit_text} :work-dir {self.working_directory} :args {list(self.arguments)!r}}}"
        )


@dataclass(slots=True, frozen=True)
class HandleSnapshot:
    """Immutable view of a handle, enriched with OS statistics when live."""

    pid: Optional[int]
    command_line: str
    working_directory: str
    start_time: datetime
    end_time: Optional[datetime]
    exit_code: Optional[int]
    status: str  # psutil status for live processes, 'done' once finished
    cpu_percent: float
    memory_rss: int  # Bytes
    threads: int


@dataclass(slots=True, frozen=True)
class RunResult:
    """Captured outcome of a command run to completion."""

    exit: int
    out: str
    err: str
