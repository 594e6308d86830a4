"""Finding the OS-level PID of a command launched through the shell indirection.

The command runs as ``bash -s <command...>``; a short preamble written to the
shell's stdin ends with ``exec "$@"`` so the shell process is replaced by the
command and keeps its PID. Probes differ in how they learn that PID.
"""

import subprocess
from typing import Optional, Protocol

import psutil

from pysh.errors import PidAcquisitionFailure
from pysh.log import get_logger

logger = get_logger(__name__)

EXEC_LINE = 'exec "$@"\n'


class PidProbe(Protocol):
    """Strategy for learning the PID of the exec'd command."""

    preamble: str

    def acquire(self, process: subprocess.Popen) -> int:
        """Return the PID or raise PidAcquisitionFailure."""
        ...


class ShellEchoProbe:
    """The shell prints ``$$`` on stderr before exec'ing the command."""

    preamble = "echo $$ 1>&2\n" + EXEC_LINE

    def acquire(self, process: subprocess.Popen) -> int:
        # Exactly one line; the rest of stderr belongs to the command
        line = process.stderr.readline()
        try:
            return int(line.strip())
        except ValueError:
            raise PidAcquisitionFailure(f"Expected a PID on stderr, got {line!r}") from None


class PsutilProbe:
    """
    The Popen PID, validated with psutil.

    ``exec`` keeps the shell's PID, so the PID Popen reports is the
    command's. psutil only confirms the PID still names a process
    that has not been reaped.
    """

    preamble = EXEC_LINE

    def acquire(self, process: subprocess.Popen) -> int:
        try:
            proc = psutil.Process(process.pid)
            return proc.pid
        except (psutil.NoSuchProcess, psutil.AccessDenied) as exc:
            raise PidAcquisitionFailure(str(exc)) from exc


def default_probe() -> PidProbe:
    return ShellEchoProbe()


def acquire_pid(process: subprocess.Popen, probe: PidProbe) -> Optional[int]:
    """Run ``probe``; a failure is logged and yields None."""
    try:
        return probe.acquire(process)
    except PidAcquisitionFailure as exc:
        logger.warning(f"PID acquisition failed: {exc}")
        return None
