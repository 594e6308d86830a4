"""Shared table of spawned processes."""

from __future__ import annotations

import threading
from collections.abc import Iterable

from pysh.log import get_logger
from pysh.models import ProcessHandle

logger = get_logger(__name__)


class ProcessRegistry:
    """
    PID => ProcessHandle for recently spawned and still running processes.

    Thread-safe; every mutation happens under one lock. Handles whose PID
    could not be acquired are tracked but cannot be killed by PID.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._by_pid: dict[int, ProcessHandle] = {}
        self._anonymous: list[ProcessHandle] = []

    def register(self, handle: ProcessHandle) -> None:
        with self._lock:
            if handle.pid is None:
                self._anonymous.append(handle)
            else:
                self._by_pid[handle.pid] = handle

    def list(self) -> list[ProcessHandle]:
        """Snapshot of every tracked handle, finished or not."""
        with self._lock:
            return [*self._by_pid.values(), *self._anonymous]

    def live(self) -> list[ProcessHandle]:
        return [handle for handle in self.list() if not handle.is_finished]

    def get(self, pid: int) -> ProcessHandle | None:
        with self._lock:
            return self._by_pid.get(pid)

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_pid) + len(self._anonymous)

    def __contains__(self, pid: object) -> bool:
        with self._lock:
            return pid in self._by_pid

    def kill(self, pids: Iterable[int]) -> list[int]:
        """
        Request termination of the unfinished processes among ``pids``.

        Unknown and already finished PIDs are ignored. Does not wait, and
        leaves the entries in place until ``purge``.

        Returns:
            The PIDs that were signalled.
        """
        wanted = set(pids)
        with self._lock:
            targets = [
                handle for pid, handle in self._by_pid.items() if pid in wanted and not handle.is_finished
            ]
        signalled = []
        for handle in targets:
            try:
                handle.process.terminate()
            except ProcessLookupError:
                continue
            logger.info(f"Terminating PID: {handle.pid}")
            signalled.append(handle.pid)
        return signalled

    def purge(self) -> list[ProcessHandle]:
        """Remove and return every handle whose exit status is resolved."""
        with self._lock:
            dead = {pid: handle for pid, handle in self._by_pid.items() if handle.is_finished}
            dead_anonymous = [handle for handle in self._anonymous if handle.is_finished]
            for handle in (*dead.values(), *dead_anonymous):
                logger.debug(f"Clearing {handle}")
            for pid in dead:
                del self._by_pid[pid]
            self._anonymous = [
                handle for handle in self._anonymous if not any(handle is gone for gone in dead_anonymous)
            ]
        return [*dead.values(), *dead_anonymous]
