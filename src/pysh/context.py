"""Working directory and environment stacks, independent of the host process."""

import os
import threading
from collections.abc import Mapping
from pathlib import Path

from pysh.errors import DirectoryNotFound
from pysh.log import get_logger
from pysh.models import ContextFrame

logger = get_logger(__name__)


class ContextStack:
    """
    Where, and with what environment, the next process is launched.

    Directories and environment overlays live on two stacks whose bottom
    entries are the initial frame; neither can be popped below it. Nothing
    here touches ``os.chdir`` or ``os.environ``.
    """

    def __init__(self, initial_directory: Path | str | None = None) -> None:
        start = Path(initial_directory) if initial_directory is not None else Path(os.getcwd())
        if not start.is_dir():
            raise DirectoryNotFound(start)
        self._lock = threading.RLock()
        self._directories: list[Path] = [start.resolve()]
        self._environments: list[dict[str, str]] = [{}]

    def working_directory(self) -> Path:
        with self._lock:
            return self._directories[-1]

    def env(self) -> dict[str, str]:
        """The environment overlay in effect (not including inherited variables)."""
        with self._lock:
            return dict(self._environments[-1])

    def child_environment(self) -> dict[str, str]:
        """The inherited environment with the current overlay applied."""
        merged = dict(os.environ)
        merged.update(self.env())
        return merged

    def frame(self) -> ContextFrame:
        """Snapshot of the current directory and overlay."""
        with self._lock:
            return ContextFrame(self._directories[-1], dict(self._environments[-1]))

    @property
    def depth(self) -> int:
        with self._lock:
            return len(self._directories)

    def relative_path(self, *parts: str | os.PathLike) -> Path:
        """Build a path below the current working directory."""
        return self.working_directory().joinpath(*parts)

    def _resolve(self, target: Path | str | None) -> Path:
        if target is None:
            target = Path.home()
        path = self.working_directory() / Path(target).expanduser()
        if not path.is_dir():
            raise DirectoryNotFound(target)
        return path.resolve()

    def change_directory(self, target: Path | str | None = None) -> Path:
        """
        Replace the current frame's directory.

        Relative paths are resolved against the current working directory;
        None means the home directory.

        Raises:
            DirectoryNotFound: ``target`` is not an existing directory. The
                stack is left as it was.
        """
        with self._lock:
            directory = self._resolve(target)
            self._directories[-1] = directory
        logger.debug(f"cd {directory}")
        return directory

    def push_directory(self, target: Path | str) -> Path:
        """Remember the current directory, then change to ``target``."""
        with self._lock:
            directory = self._resolve(target)
            self._directories.append(directory)
        logger.debug(f"pushd {directory}")
        return directory

    def pop_directory(self) -> Path:
        """Return to the most recently pushed directory. No-op at the bottom."""
        with self._lock:
            if len(self._directories) > 1:
                self._directories.pop()
            return self._directories[-1]

    def push_environment(self, overlay: Mapping[str, str]) -> dict[str, str]:
        """Push the current overlay updated with ``overlay``."""
        with self._lock:
            merged = dict(self._environments[-1])
            merged.update({str(key): str(value) for key, value in overlay.items()})
            self._environments.append(merged)
            return dict(merged)

    def pop_environment(self) -> dict[str, str]:
        with self._lock:
            if len(self._environments) > 1:
                self._environments.pop()
            return dict(self._environments[-1])
