"""pysh - Textual viewer for the process registry."""

import argparse
import shlex
from enum import Enum
from queue import Empty, Queue
from typing import Optional

from textual.app import App, ComposeResult
from textual.containers import Container
from textual.widgets import DataTable, Footer, Static

from pysh.models import HandleSnapshot
from pysh.monitor import RegistryMonitor, RegistrySnapshot
from pysh.shell import Shell, get_shell


class SortKey(Enum):
    """Sort keys for the handle table."""

    START = "start"
    PID = "pid"
    CPU = "cpu"
    MEM = "mem"


def format_bytes(size: int) -> str:
    """Format bytes as human-readable string."""
    for unit in ["B", "K", "M", "G", "T"]:
        if size < 1024:
            return f"{size:5.1f}{unit}" if unit != "B" else f"{size:5d}{unit}"
        size = size / 1024
    return f"{size:.1f}P"


def row_key(handle: HandleSnapshot) -> str:
    """Stable table key; handles without a PID are keyed by start time and command."""
    if handle.pid is not None:
        return str(handle.pid)
    return f"anon-{handle.start_time.isoformat()}-{handle.command_line}"


class RegistrySummary(Static):
    """Header line with live and finished counts."""

    DEFAULT_CSS = """
    RegistrySummary {
        height: auto;
        padding: 0 1;
        background: $surface;
    }
    """

    def update_counts(self, snapshot: RegistrySnapshot) -> None:
        self.update(f"Live: {snapshot.live_count}  Finished: {snapshot.finished_count}")


class HandleTable(Container):
    """Container for the handle data table."""

    DEFAULT_CSS = """
    HandleTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize HandleTable."""
        super().__init__(*args, **kwargs)
        self._current_keys: set[str] = set()
        self._sort_key: SortKey = SortKey.START
        self._sort_reverse: bool = True  # Newest first

    @property
    def sort_key(self) -> SortKey:
        """Get current sort key."""
        return self._sort_key

    def cycle_sort(self) -> SortKey:
        """Cycle to the next sort key and return it."""
        keys = list(SortKey)
        self._sort_key = keys[(keys.index(self._sort_key) + 1) % len(keys)]
        self._sort_reverse = self._sort_key is not SortKey.PID
        return self._sort_key

    def compose(self) -> ComposeResult:
        """Compose the handle table."""
        yield DataTable(id="handle-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#handle-table", DataTable)
        table.cursor_type = "row"

        table.add_column("PID", key="pid", width=8)
        table.add_column("S", key="status", width=9)
        table.add_column("EXIT", key="exit", width=5)
        table.add_column("CPU%", key="cpu", width=7)
        table.add_column("RES", key="rss", width=8)
        table.add_column("START", key="start", width=9)
        table.add_column("DIR", key="dir", width=24)
        table.add_column("Command", key="command")

    def selected_pid(self) -> Optional[int]:
        """PID of the row under the cursor, if it has one."""
        table = self.query_one("#handle-table", DataTable)
        if table.row_count == 0:
            return None
        key = table.coordinate_to_cell_key(table.cursor_coordinate).row_key.value
        return int(key) if key and key.isdigit() else None

    def update_handles(self, handles: list[HandleSnapshot]) -> None:
        """Update rows in place, adding and removing as handles come and go."""
        table = self.query_one("#handle-table", DataTable)
        ordered = self._sort_handles(handles)
        new_keys = {row_key(handle) for handle in ordered}

        for key in self._current_keys - new_keys:
            try:
                table.remove_row(key)
            except Exception:
                pass  # Row may not exist

        for handle in ordered:
            key = row_key(handle)
            cells = self._cells(handle)
            if key in self._current_keys:
                for column, value in zip(("pid", "status", "exit", "cpu", "rss", "start", "dir", "command"), cells):
                    table.update_cell(key, column, value)
            else:
                table.add_row(*cells, key=key)

        self._current_keys = new_keys

    @staticmethod
    def _cells(handle: HandleSnapshot) -> tuple[str, ...]:
        return (
            "-" if handle.pid is None else str(handle.pid),
            handle.status,
            "--" if handle.exit_code is None else str(handle.exit_code),
            f"{handle.cpu_percent:5.1f}",
            format_bytes(handle.memory_rss),
            handle.start_time.strftime("%H:%M:%S"),
            handle.working_directory[-24:],
            handle.command_line[:60],
        )

    def _sort_handles(self, handles: list[HandleSnapshot]) -> list[HandleSnapshot]:
        """Sort handles based on the current sort key."""
        key_func = {
            SortKey.START: lambda h: h.start_time,
            SortKey.PID: lambda h: h.pid if h.pid is not None else -1,
            SortKey.CPU: lambda h: h.cpu_percent,
            SortKey.MEM: lambda h: h.memory_rss,
        }
        return sorted(handles, key=key_func[self._sort_key], reverse=self._sort_reverse)


class PyshApp(App):
    """Registry viewer application."""

    TITLE = "pysh"
    SUB_TITLE = "Spawned processes"

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("k", "kill", "Kill"),
        ("p", "purge", "Purge finished"),
        ("f6", "sort", "Sort"),
    ]

    def __init__(self, shell: Optional[Shell] = None, poll_rate: Optional[float] = None) -> None:
        """Initialize the PyshApp."""
        super().__init__()
        self._shell = shell or get_shell()
        self._update_queue: Queue[RegistrySnapshot] = Queue()
        self._monitor = RegistryMonitor(
            self._shell.registry,
            self._update_queue,
            poll_rate=poll_rate if poll_rate is not None else self._shell.settings.poll_rate,
        )

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield RegistrySummary("Loading...", id="summary")
        yield HandleTable()
        yield Footer()

    def on_mount(self) -> None:
        """Start the registry monitor when the app is mounted."""
        self._monitor.start()
        self.set_interval(0.5, self._check_for_updates)

    def on_unmount(self) -> None:
        self._monitor.stop()

    def _check_for_updates(self) -> None:
        """Drain the queue and show the most recent snapshot."""
        snapshot = None
        while True:
            try:
                snapshot = self._update_queue.get_nowait()
            except Empty:
                break
        if snapshot is not None:
            self.show_snapshot(snapshot)

    def show_snapshot(self, snapshot: RegistrySnapshot) -> None:
        self.query_one("#summary", RegistrySummary).update_counts(snapshot)
        self.query_one(HandleTable).update_handles(snapshot.handles)

    def refresh_now(self) -> None:
        """Redraw from the registry without waiting for the next poll."""
        self.show_snapshot(self._monitor.collect_snapshot())

    def action_sort(self) -> None:
        """Cycle through sort keys."""
        new_sort_key = self.query_one(HandleTable).cycle_sort()
        self.notify(f"Sort: {new_sort_key.value.upper()}")
        self.refresh_now()

    def action_kill(self) -> None:
        """Terminate the selected process."""
        pid = self.query_one(HandleTable).selected_pid()
        if pid is None:
            self.notify("No killable process selected")
            return
        if self._shell.kill(pid):
            self.notify(f"Terminated {pid}")
        self.refresh_now()

    def action_purge(self) -> None:
        """Drop finished processes from the registry."""
        removed = self._shell.clear_dead_processes()
        self.notify(f"Cleared {len(removed)} finished")
        self.refresh_now()

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._monitor.stop()
        self.exit()


def main(argv: Optional[list[str]] = None) -> None:
    """Entry point: spawn each COMMAND, then watch them in the viewer."""
    parser = argparse.ArgumentParser(prog="pysh", description=__doc__)
    parser.add_argument("commands", nargs="*", metavar="COMMAND", help="command line to spawn, e.g. 'sleep 5'")
    parser.add_argument("--poll-rate", type=float, default=None, help="seconds between registry polls")
    args = parser.parse_args(argv)

    shell = get_shell()
    for command in args.commands:
        words = shlex.split(command)
        if words:
            shell.spawn(*words)

    PyshApp(shell, poll_rate=args.poll_rate).run()


if __name__ == "__main__":
    main()
