"""systemd service control and logind sleep inhibitors."""

import ctypes
import signal
import subprocess
from enum import Enum

import structlog

from sshdock.errors import CommandError, TransportError

log = structlog.get_logger()

INHIBITOR_WHO = "sshdock"

# From linux/prctl.h
PR_SET_PDEATHSIG = 1


def _die_with_parent() -> None:
    """Ask the kernel to SIGTERM this child when its parent exits.

    Runs in the forked child before exec. Best-effort: on non-Linux systems
    the call is unavailable and the child simply outlives an abrupt crash.
    """
    try:
        libc = ctypes.CDLL(None)
        libc.prctl(PR_SET_PDEATHSIG, signal.SIGTERM)
    except (OSError, AttributeError):
        pass


class StateChange(Enum):
    """Outcome of asking for a service to be in some state."""

    CHANGED = "changed"  # This call moved the service into the requested state
    UNCHANGED = "unchanged"  # Service was already in the requested state


def run_command_status(args: list[str]) -> None:
    """Run a command, raising CommandError unless it exits successfully."""
    try:
        result = subprocess.run(args, capture_output=True)
    except OSError as e:
        raise CommandError(f"failed to run {args[0]}: {e}") from e

    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        raise CommandError(f"{args[0]} {args[1:]} exited with status {result.returncode}: {stderr}")


class SystemdServices:
    """Start, stop and query systemd units with systemctl.

    All operations are idempotent and safe to repeat.
    """

    def is_active(self, service: str) -> bool:
        """Return True if the unit is active."""
        try:
            result = subprocess.run(
                ["systemctl", "is-active", "--quiet", service],
                capture_output=True,
            )
        except OSError as e:
            raise CommandError(f"failed to run systemctl: {e}") from e
        return result.returncode == 0

    def start(self, service: str) -> StateChange:
        """Ensure the unit is running."""
        if self.is_active(service):
            return StateChange.UNCHANGED
        run_command_status(["systemctl", "start", service])
        return StateChange.CHANGED

    def stop(self, service: str) -> StateChange:
        """Ensure the unit is stopped."""
        if not self.is_active(service):
            return StateChange.UNCHANGED
        run_command_status(["systemctl", "stop", service])
        return StateChange.CHANGED


class SleepInhibitor:
    """A held logind inhibitor lock.

    The lock lives as long as the `systemd-inhibit` child process, which is
    started with a parent-death signal so an abrupt exit of the daemon also
    drops it. release() is one-shot: later calls do nothing.
    """

    def __init__(self, proc: subprocess.Popen, what: str):
        self._proc: subprocess.Popen | None = proc
        self.what = what

    @property
    def released(self) -> bool:
        return self._proc is None

    def release(self) -> None:
        """Terminate the inhibitor process, killing it if it lingers."""
        proc, self._proc = self._proc, None
        if proc is None:
            return
        try:
            proc.terminate()
            proc.wait(timeout=5.0)
        except ProcessLookupError:
            pass  # Process already exited
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.wait()
        log.info("inhibitor_released", what=self.what)


class LogindInhibitors:
    """Acquire sleep inhibitors through `systemd-inhibit`."""

    def __init__(self, startup_grace: float = 0.2):
        # A refused lock makes systemd-inhibit exit almost immediately
        self.startup_grace = startup_grace

    def acquire(self, what: str, reason: str) -> SleepInhibitor:
        """Take a blocking inhibitor lock on the colon-joined targets in `what`.

        Raises:
            TransportError: If the inhibitor could not be started or logind refused it.
        """
        args = [
            "systemd-inhibit",
            f"--what={what}",
            f"--who={INHIBITOR_WHO}",
            f"--why={reason}",
            "--mode=block",
            "sleep",
            "infinity",
        ]
        try:
            proc = subprocess.Popen(
                args,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                preexec_fn=_die_with_parent,
            )
        except OSError as e:
            raise TransportError(f"failed to run systemd-inhibit: {e}") from e

        try:
            returncode = proc.wait(timeout=self.startup_grace)
        except subprocess.TimeoutExpired:
            # Still running: the lock is held
            if proc.stderr is not None:
                proc.stderr.close()
            log.info("inhibitor_acquired", what=what, pid=proc.pid)
            return SleepInhibitor(proc, what)

        stderr = b""
        if proc.stderr is not None:
            stderr = proc.stderr.read()
            proc.stderr.close()
        message = stderr.decode("utf-8", errors="replace").strip()
        raise TransportError(f"systemd-inhibit exited with status {returncode}: {message}")
