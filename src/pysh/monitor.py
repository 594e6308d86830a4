"""Registry monitoring engine for the pysh viewer."""

import shlex
import threading
from dataclasses import dataclass
from queue import Queue
from typing import Optional

import psutil

from pysh.models import HandleSnapshot, ProcessHandle
from pysh.registry import ProcessRegistry


@dataclass(slots=True)
class RegistrySnapshot:
    """Snapshot of every handle in a registry."""

    handles: list[HandleSnapshot]
    live_count: int
    finished_count: int


def _lookup(pid: int, processes: Optional[dict[int, psutil.Process]]) -> psutil.Process:
    if processes is None:
        return psutil.Process(pid)
    proc = processes.get(pid)
    if proc is None:
        proc = processes[pid] = psutil.Process(pid)
    return proc


def snapshot_handle(
    handle: ProcessHandle,
    processes: Optional[dict[int, psutil.Process]] = None,
) -> HandleSnapshot:
    """
    Build a HandleSnapshot, asking psutil about the process while it runs.

    Processes that vanish or deny access mid-poll fall back to zeroed
    statistics.

    Args:
        handle: The handle to describe.
        processes: PID => psutil.Process cache shared between polls. CPU
            usage is measured since the previous call on the same Process
            object, so without a cache it always reads 0.0.
    """
    status = "done"
    cpu_percent = 0.0
    memory_rss = 0
    threads = 0

    if not handle.is_finished and handle.pid is not None:
        status = "?"
        try:
            proc = _lookup(handle.pid, processes)
            with proc.oneshot():
                status = proc.status()
                cpu_percent = proc.cpu_percent()
                memory_rss = proc.memory_info().rss
                threads = proc.num_threads()
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            # Exited between the check and the query
            if processes is not None:
                processes.pop(handle.pid, None)
    elif not handle.is_finished:
        status = "?"

    return HandleSnapshot(
        pid=handle.pid,
        command_line=shlex.join(handle.arguments),
        working_directory=str(handle.working_directory),
        start_time=handle.start_time,
        end_time=handle.end_time,
        exit_code=handle.exit_code,
        status=status,
        cpu_percent=cpu_percent,
        memory_rss=memory_rss,
        threads=threads,
    )


class RegistryMonitor:
    """
    Polls a ProcessRegistry and pushes RegistrySnapshots to a queue.

    Runs in a separate daemon thread.
    """

    def __init__(
        self,
        registry: ProcessRegistry,
        update_queue: Queue[RegistrySnapshot],
        poll_rate: float = 2.0,
    ) -> None:
        """
        Initialize the RegistryMonitor.

        Args:
            registry: Registry to watch.
            update_queue: Thread-safe queue to push updates to.
            poll_rate: How often to poll (in seconds). Default 2.0s.
        """
        self._registry = registry
        self._queue = update_queue
        self._poll_rate = max(0.1, poll_rate)
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._processes: dict[int, psutil.Process] = {}
        self._processes_lock = threading.Lock()

    @property
    def poll_rate(self) -> float:
        """Get the current poll rate."""
        return self._poll_rate

    @poll_rate.setter
    def poll_rate(self, value: float) -> None:
        """Set the poll rate."""
        self._poll_rate = max(0.1, value)  # Minimum 0.1 seconds

    @property
    def is_running(self) -> bool:
        """Check if the monitor thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the monitoring thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name="RegistryMonitor",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the monitoring thread.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _poll_loop(self) -> None:
        """Main polling loop running in the background thread."""
        while not self._stop_event.is_set():
            self._queue.put(self.collect_snapshot())
            self._stop_event.wait(timeout=self._poll_rate)

    def collect_snapshot(self) -> RegistrySnapshot:
        """Collect a snapshot of the registry."""
        with self._processes_lock:
            tracked = self._registry.list()
            live_pids = {handle.pid for handle in tracked if not handle.is_finished}
            for pid in self._processes.keys() - live_pids:
                del self._processes[pid]
            handles = [snapshot_handle(handle, self._processes) for handle in tracked]
        finished = sum(1 for snapshot in handles if snapshot.status == "done")
        return RegistrySnapshot(
            handles=handles,
            live_count=len(handles) - finished,
            finished_count=finished,
        )
