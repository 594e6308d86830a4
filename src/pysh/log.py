"""Asynchronous logging for pysh.

Callers hand ``(level, message)`` pairs to a bounded queue; a daemon consumer
thread forwards them to the standard ``logging`` machinery. Producers never
block: when the queue is full the record goes straight to
``logging.lastResort`` instead.
"""

import logging
import os
import threading
import time
from logging.handlers import RotatingFileHandler
from queue import Empty, Full, Queue
from typing import Optional

from pysh.config import Settings, get_settings

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "severe": logging.ERROR,
}

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_configured_dirs: set[str] = set()
_configure_lock = threading.Lock()


def level_number(level: str) -> int:
    """Map a level name to a ``logging`` level, rejecting unknown names."""
    try:
        return LEVELS[level]
    except KeyError:
        raise ValueError(f"Unknown level: {level!r}") from None


def configure_logging(settings: Settings) -> Optional[logging.Logger]:
    """
    Install rotating file and console handlers on the ``pysh`` logger.

    The log directory is created if absent. Calling this again for the same
    directory does nothing.

    Returns:
        The configured logger, or None when configuration is disabled.
    """
    if not settings.configure_logging:
        return None

    logger = logging.getLogger("pysh")
    log_dir = settings.log_dir
    with _configure_lock:
        if str(log_dir) in _configured_dirs:
            return logger

        log_dir.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_dir / f"pysh-{os.getpid()}.log",
            maxBytes=500_000,
            backupCount=1000,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))

        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.WARNING)
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT))

        logger.addHandler(file_handler)
        logger.addHandler(console_handler)
        logger.setLevel(logging.DEBUG)
        _configured_dirs.add(str(log_dir))
    return logger


class LogDispatcher:
    """
    Bounded work queue with a dedicated consumer thread.

    ``submit`` never blocks and never raises for delivery problems; records
    that cannot be queued, or that a handler fails on, are passed to
    ``logging.lastResort``.
    """

    def __init__(self, maxsize: int = 10_000) -> None:
        """
        Initialize the LogDispatcher.

        Args:
            maxsize: Capacity of the queue before records overflow.
        """
        self._queue: Queue[logging.LogRecord] = Queue(maxsize=maxsize)
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self.dropped = 0

    @property
    def is_running(self) -> bool:
        """Check if the consumer thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the consumer thread."""
        with self._lock:
            if self.is_running:
                return

            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._consume_loop,
                daemon=True,
                name="LogDispatcher",
            )
            self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the consumer thread once the queue has drained.

        Args:
            timeout: How long to wait for the thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def flush(self, timeout: float = 5.0) -> bool:
        """Wait until every queued record has been handled. Returns False on timeout."""
        deadline = time.monotonic() + timeout
        while self._queue.unfinished_tasks:
            if time.monotonic() >= deadline:
                return False
            time.sleep(0.01)
        return True

    def submit(self, name: str, level: str, message: str) -> None:
        """Queue a message for the logger called ``name``."""
        record = logging.getLogger(name).makeRecord(
            name, level_number(level), "(pysh)", 0, message, None, None
        )
        if not self.is_running:
            self.start()
        try:
            self._queue.put_nowait(record)
        except Full:
            self.dropped += 1
            self._fallback(record)

    def _consume_loop(self) -> None:
        """Main loop running in the consumer thread."""
        while not (self._stop_event.is_set() and self._queue.empty()):
            try:
                record = self._queue.get(timeout=0.1)
            except Empty:
                continue
            try:
                logger = logging.getLogger(record.name)
                if logger.isEnabledFor(record.levelno):
                    logger.handle(record)
            except Exception:
                self._fallback(record)
            finally:
                self._queue.task_done()

    @staticmethod
    def _fallback(record: logging.LogRecord) -> None:
        if logging.lastResort is not None:
            logging.lastResort.handle(record)


_dispatcher: Optional[LogDispatcher] = None
_dispatcher_lock = threading.Lock()


def get_dispatcher() -> LogDispatcher:
    """Get the process-wide dispatcher, creating it on first use."""
    global _dispatcher
    with _dispatcher_lock:
        if _dispatcher is None:
            _dispatcher = LogDispatcher(maxsize=get_settings().log_queue_size)
        return _dispatcher


class ChannelLogger:
    """A logger name bound to the shared dispatcher."""

    def __init__(self, name: str, dispatcher: Optional[LogDispatcher] = None) -> None:
        self.name = name
        self._dispatcher = dispatcher

    def log(self, level: str, message: str) -> None:
        dispatcher = self._dispatcher or get_dispatcher()
        dispatcher.submit(self.name, level, message)

    def debug(self, message: str) -> None:
        self.log("debug", message)

    def info(self, message: str) -> None:
        self.log("info", message)

    def warning(self, message: str) -> None:
        self.log("warning", message)

    def severe(self, message: str) -> None:
        self.log("severe", message)


def get_logger(name: str) -> ChannelLogger:
    """Get a ChannelLogger for ``name`` (normally ``__name__``)."""
    return ChannelLogger(name)


def log(level: str, message: str, name: str = "pysh") -> None:
    """Queue ``message`` at ``level`` without blocking the caller."""
    get_logger(name).log(level, message)
