"""Launching processes and wiring up their streams."""

import json
import os
import subprocess
import threading
from collections.abc import Sequence
from pathlib import Path
from typing import BinaryIO, Optional

from pysh.capture import CaptureAllocator
from pysh.context import ContextStack
from pysh.errors import SpawnFailure
from pysh.log import get_logger
from pysh.models import ProcessHandle, SpawnOptions
from pysh.pid import PidProbe, acquire_pid, default_probe
from pysh.pump import BUFFER_SIZE, StreamPump
from pysh.registry import ProcessRegistry

logger = get_logger(__name__)

CAPTURE_NAMES = ("stdout", "stderr", "stdin", "command")
CAPTURE_CATEGORY = "proc"


def capture_dir_name(arguments: Sequence[str], pid: Optional[int]) -> str:
    """Name of a process's capture directory: ``<program>-<pid>``."""
    return f"{Path(arguments[0]).name}-{pid if pid is not None else 'unknown'}"


class Spawner:
    """
    Starts commands through ``<shell> -s`` and tees their streams.

    Every process gets an audit capture (stdout, stderr, stdin and a command
    record) regardless of caller redirections, and is registered before
    ``spawn`` returns.
    """

    def __init__(
        self,
        context: ContextStack,
        registry: ProcessRegistry,
        allocator: CaptureAllocator,
        probe: Optional[PidProbe] = None,
        shell: str = "bash",
        buffer_size: int = BUFFER_SIZE,
    ) -> None:
        self._context = context
        self._registry = registry
        self._allocator = allocator
        self._probe = probe or default_probe()
        self._shell = shell
        self._buffer_size = buffer_size

    def spawn(self, options: SpawnOptions, command: Sequence[str]) -> ProcessHandle:
        """
        Launch ``command`` and return immediately.

        The working directory and environment are snapshotted from the
        context stack at call time. Completion is observed through the
        handle's ``exit_status`` future, which resolves only after stdout
        and stderr have been flushed to every destination.

        Raises:
            ValueError: ``command`` is empty.
            SpawnFailure: The OS could not start the shell.
            AllocationExhausted: No capture directory could be reserved; the
                child is terminated and nothing is registered.
            OSError: A capture file could not be opened or written; likewise
                the child is terminated and nothing is registered.
        """
        arguments = tuple(str(arg) for arg in command)
        if not arguments:
            raise ValueError("command must contain at least the program to run")
        logger.debug(f"Calling: {list(arguments)!r}")

        frame = self._context.frame()
        environment = {**os.environ, **frame.environment}
        try:
            process = subprocess.Popen(
                [self._shell, "-s", *arguments],
                cwd=frame.working_directory,
                env=environment,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as exc:
            raise SpawnFailure(arguments, exc) from exc

        try:
            process.stdin.write(self._probe.preamble.encode("ascii"))
            process.stdin.flush()
        except BrokenPipeError:
            logger.warning(f"Shell exited before reading the preamble for {list(arguments)!r}")
        pid = acquire_pid(process, self._probe)

        try:
            stdout_sink, stderr_sink, stdin_sink, command_path = self._open_captures(
                arguments, pid, frame.working_directory
            )
        except BaseException:
            self._abandon(process)
            raise

        handle = ProcessHandle(
            pid=pid,
            arguments=arguments,
            working_directory=frame.working_directory,
            process=process,
            capture_directory=command_path.parent,
        )

        output_pumps = [
            StreamPump(
                process.stdout,
                [stdout_sink, *options.out],
                owned=[stdout_sink],
                name=f"{pid}-stdout",
                buffer_size=self._buffer_size,
            ).start(),
            StreamPump(
                process.stderr,
                [stderr_sink, *options.err],
                owned=[stderr_sink],
                name=f"{pid}-stderr",
                buffer_size=self._buffer_size,
            ).start(),
        ]
        self._feed_stdin(process, options, stdin_sink, pid)

        threading.Thread(
            target=self._watch_exit,
            args=(handle, output_pumps),
            daemon=True,
            name=f"exit-{pid}",
        ).start()

        self._registry.register(handle)
        logger.info(f"PID: {pid} started via {list(arguments)!r}")
        return handle

    def _open_captures(
        self, arguments: Sequence[str], pid: Optional[int], working_directory: Path
    ) -> tuple[BinaryIO, BinaryIO, BinaryIO, Path]:
        """Open the stream captures and write the command record; nothing stays open on failure."""
        paths = self._allocator.reserve_files(
            CAPTURE_NAMES,
            category=CAPTURE_CATEGORY,
            dir_name=capture_dir_name(arguments, pid),
        )
        opened: list[BinaryIO] = []
        try:
            for path in paths[:3]:
                opened.append(open(path, "wb"))
            paths[3].write_text(f"{json.dumps(list(arguments))}\n{working_directory}\n", encoding="utf-8")
        except OSError:
            for sink in opened:
                sink.close()
            raise
        return opened[0], opened[1], opened[2], paths[3]

    def _feed_stdin(self, process: subprocess.Popen, options: SpawnOptions, stdin_sink: BinaryIO, pid: Optional[int]) -> None:
        source = options.input_stream()
        if source is None:
            for stream in (process.stdin, stdin_sink):
                try:
                    stream.close()
                except OSError:
                    pass  # Child already gone
            return
        StreamPump(
            source,
            [process.stdin, stdin_sink],
            owned=[process.stdin, stdin_sink],
            name=f"{pid}-stdin",
            buffer_size=self._buffer_size,
        ).start()

    @staticmethod
    def _watch_exit(handle: ProcessHandle, pumps: Sequence[StreamPump]) -> None:
        try:
            for output_pump in pumps:
                output_pump.join()
            exit_code = handle.process.wait()
        except Exception as exc:
            logger.severe(f"PID: {handle.pid} could not be waited on: {exc!r}")
            handle._fail(exc)
            return
        handle._finish(exit_code)
        logger.info(f"PID: {handle.pid} exited with {exit_code}")

    @staticmethod
    def _abandon(process: subprocess.Popen) -> None:
        process.kill()
        for stream in (process.stdin, process.stdout, process.stderr):
            try:
                stream.close()
            except OSError:
                pass
        process.wait()
