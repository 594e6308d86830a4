"""Copying one byte stream to many sinks."""

import threading
from collections.abc import Sequence
from typing import BinaryIO

from pysh.log import get_logger

logger = get_logger(__name__)

BUFFER_SIZE = 8096


class StreamPump:
    """
    Copies ``source`` to every destination until end of stream.

    Each chunk reaches every destination before the next read. A destination
    that fails is logged and dropped; the rest keep receiving data so the
    source is always drained. On completion all destinations are flushed and
    those listed in ``owned`` are closed.
    """

    def __init__(
        self,
        source: BinaryIO,
        destinations: Sequence[BinaryIO],
        owned: Sequence[BinaryIO] = (),
        name: str = "stream",
        buffer_size: int = BUFFER_SIZE,
    ) -> None:
        self._source = source
        self._destinations = list(destinations)
        self._owned = list(owned)
        self._name = name
        self._buffer_size = buffer_size
        self._thread: threading.Thread | None = None
        self.bytes_copied = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> "StreamPump":
        """Run the pump on a daemon thread."""
        if self._thread is None:
            self._thread = threading.Thread(target=self.run, daemon=True, name=f"pump-{self._name}")
            self._thread.start()
        return self

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout=timeout)

    def run(self) -> int:
        """Pump until end of stream. Returns the number of bytes read."""
        read = getattr(self._source, "read1", None) or self._source.read
        live = list(self._destinations)
        try:
            while True:
                try:
                    chunk = read(self._buffer_size)
                except (OSError, ValueError) as exc:
                    logger.severe(f"{self._name}: reading source failed: {exc!r}")
                    break
                if not chunk:
                    break
                self.bytes_copied += len(chunk)
                for dest in list(live):
                    try:
                        dest.write(chunk)
                    except (OSError, ValueError) as exc:
                        logger.warning(f"{self._name}: dropping destination {dest!r}: {exc!r}")
                        live.remove(dest)
        finally:
            self._finish()
        return self.bytes_copied

    def _finish(self) -> None:
        for dest in self._destinations:
            try:
                if not getattr(dest, "closed", False):
                    dest.flush()
            except (OSError, ValueError) as exc:
                logger.warning(f"{self._name}: flush of {dest!r} failed: {exc!r}")
        for dest in self._owned:
            try:
                dest.close()
            except (OSError, ValueError) as exc:
                logger.warning(f"{self._name}: close of {dest!r} failed: {exc!r}")


def pump(
    source: BinaryIO,
    destinations: Sequence[BinaryIO],
    owned: Sequence[BinaryIO] = (),
    buffer_size: int = BUFFER_SIZE,
) -> int:
    """Copy ``source`` to ``destinations`` on the calling thread."""
    return StreamPump(source, destinations, owned=owned, buffer_size=buffer_size).run()
