"""Exception types for pysh."""

from collections.abc import Sequence
from pathlib import Path


class PyshError(Exception):
    """Base class for all pysh errors."""


class SpawnFailure(PyshError):
    """The operating system could not start the requested command."""

    def __init__(self, command: Sequence[str], error: OSError) -> None:
        self.command = tuple(command)
        self.error = error
        super().__init__(f"Could not start {list(self.command)!r}: {error}")


class DirectoryNotFound(PyshError, FileNotFoundError):
    """A working directory change targeted a path that is not a directory."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        super().__init__(f"No such directory: {self.path}")


class AllocationExhausted(PyshError):
    """Every candidate capture name was already taken."""

    def __init__(self, names: object, category: str) -> None:
        self.names = names
        self.category = category
        super().__init__(f"Couldn't reserve a unique capture target for {names!r} in {category!r}")


class PidAcquisitionFailure(PyshError):
    """The child's PID could not be determined. Never fatal to a spawn."""
