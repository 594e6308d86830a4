"""Reservation of uniquely named capture directories and files."""

import datetime
import itertools
from collections.abc import Callable, Iterator, Sequence
from pathlib import Path
from typing import Optional, Union

from pysh.config import get_settings
from pysh.errors import AllocationExhausted

NameSource = Union[str, Sequence[str], Callable[[], Optional[str]]]


def unique_names(prefix: str) -> Iterator[str]:
    """Yield ``prefix``, ``prefix2``, ``prefix3``, ... forever."""
    # Suffixes start at 2 so the second candidate reads as the second copy
    yield prefix
    for suffix in itertools.count(2):
        yield f"{prefix}{suffix}"


def _names(source: NameSource) -> Iterator[str]:
    if callable(source):
        return iter(source, None)
    if isinstance(source, str):
        return unique_names(source)
    return iter(list(source))


def _date_parts(today: datetime.date) -> tuple[str, str]:
    return f"{today.year}-{today.month}", str(today.day)


class CaptureAllocator:
    """
    Hands out capture directories laid out as
    ``<root>/<category>/<YYYY-M>/<D>/<name>``.

    Names come from a name source: a string prefix (unlimited), a sequence of
    names (finite), or a callable returning the next name or None.
    """

    def __init__(self, root: Path | str | None = None) -> None:
        self._root = Path(root) if root is not None else None

    @property
    def root(self) -> Path:
        """Root capture directory; read from settings when not fixed."""
        if self._root is not None:
            return self._root
        return get_settings().capture_dir

    def day_directory(self, category: str, today: datetime.date | None = None) -> Path:
        month, day = _date_parts(today or datetime.date.today())
        return self.root / category / month / day

    def reserve_directory(
        self,
        category: str = "anonymous",
        name: NameSource = "anonymous",
        fail_if_exists: bool = False,
    ) -> Path:
        """
        Reserve a capture directory.

        Args:
            category: First path component below the root.
            name: Name source for the leaf directory.
            fail_if_exists: When False an existing directory is re-used;
                when True the next name is tried until one can be created.

        Raises:
            AllocationExhausted: The name source ran out.
            NotADirectoryError: A candidate exists but is a file.
        """
        parent = self.day_directory(category)
        parent.mkdir(parents=True, exist_ok=True)
        for candidate in _names(name):
            directory = parent / candidate
            if directory.exists():
                if not directory.is_dir():
                    raise NotADirectoryError(f"{directory} is not a directory!")
                if not fail_if_exists:
                    return directory
                continue
            try:
                directory.mkdir()
            except FileExistsError:
                # Lost a race with another reservation
                if fail_if_exists:
                    continue
            return directory
        raise AllocationExhausted(name, category)

    def reserve_files(
        self,
        names: Sequence[NameSource],
        category: str = "anonymous",
        dir_name: NameSource = "anonymous",
        fail_if_exists: bool = True,
    ) -> list[Path]:
        """
        Reserve one file per entry of ``names`` inside a capture directory.

        The directory itself is always re-used if present. Each file is
        created empty; with ``fail_if_exists`` an existing file is skipped in
        favour of the next name from its source.
        """
        directory = self.reserve_directory(category=category, name=dir_name, fail_if_exists=False)
        return [self._reserve_file(directory, source, category, fail_if_exists) for source in names]

    @staticmethod
    def _reserve_file(directory: Path, source: NameSource, category: str, fail_if_exists: bool) -> Path:
        for candidate in _names(source):
            path = directory / candidate
            try:
                with open(path, "x"):
                    pass
            except FileExistsError:
                if fail_if_exists:
                    continue
            return path
        raise AllocationExhausted(source, category)
