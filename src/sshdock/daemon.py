"""Background daemon for sshdock."""

import asyncio
import os
import signal
from dataclasses import dataclass
from pathlib import Path

import psutil
import structlog

from sshdock.config import Config
from sshdock.errors import CommandError, ConfigError, TransportError
from sshdock.logging import configure
from sshdock.matcher import match_profile
from sshdock.power import is_on_ac_power
from sshdock.state import ReconciliationEngine
from sshdock.wifi import WifiSnapshot, detect_active_wifi

log = structlog.get_logger()


@dataclass
class DaemonState:
    """Runtime state of the daemon."""

    tick_count: int = 0

    def update_tick(self) -> None:
        """Update state after a tick."""
        self.tick_count += 1


def sample_wifi() -> WifiSnapshot | None:
    """Current Wi-Fi association; a failed query counts as no network."""
    try:
        return detect_active_wifi()
    except CommandError as e:
        log.warning("wifi_query_failed", error=str(e))
        return None


def sample_ac_power() -> bool:
    """Current AC state; a failed query counts as running on battery."""
    try:
        return is_on_ac_power()
    except TransportError as e:
        log.warning("ac_power_query_failed", error=str(e))
        return False


def read_running_pid(pid_path: Path) -> int | None:
    """Return the PID of a live sshdock daemon recorded in pid_path, else None.

    Verifies not just that a process with the PID exists, but that it's
    actually sshdock. A PID file naming anything else is stale and removed.
    """
    if not pid_path.exists():
        return None

    try:
        pid = int(pid_path.read_text().strip())
    except ValueError:
        log.warning("pid_file_invalid", reason="not a number")
        pid_path.unlink(missing_ok=True)
        return None

    try:
        proc = psutil.Process(pid)
        cmdline_str = " ".join(proc.cmdline()).lower()
    except psutil.NoSuchProcess:
        log.warning("pid_file_stale", reason="process not found", pid=pid)
        pid_path.unlink(missing_ok=True)
        return None
    except psutil.AccessDenied:
        # Can't inspect process - assume it's running to be safe
        log.warning("pid_check_access_denied", pid=pid)
        return pid

    if "sshdock" in cmdline_str:
        return pid

    log.warning("pid_file_stale", reason="different process", pid=pid, actual_process=proc.name())
    pid_path.unlink(missing_ok=True)
    return None


class Daemon:
    """Polls the environment and drives the reconciliation engine."""

    def __init__(self, config: Config, engine: ReconciliationEngine | None = None):
        self.config = config
        self.state = DaemonState()
        self.engine = engine or ReconciliationEngine()

        self._shutdown_event = asyncio.Event()
        self._pid_written = False
        self._skipped_idx: int | None = None  # Profile last skipped for lack of AC

    async def start(self) -> None:
        """Start the daemon and run until a shutdown signal arrives."""
        from importlib.metadata import version

        log.info("daemon_starting", version=version("sshdock"))

        networks = self.config.networks
        if not networks:
            raise ConfigError("configuration must declare at least one network profile")
        log.info(
            "daemon_config",
            profiles=len(networks),
            poll_interval=self.config.poll_interval,
            ssh_service=self.config.ssh_service,
        )

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, lambda s=sig: self._handle_signal(s))

        running_pid = read_running_pid(self.config.pid_path)
        if running_pid is not None:
            log.error("daemon_already_running", pid=running_pid)
            raise RuntimeError(f"Daemon is already running (PID {running_pid})")

        self._write_pid_file()

        log.info("daemon_started")

        await self._main_loop()

    async def stop(self) -> None:
        """Release everything held and stop gracefully."""
        log.info("daemon_stopping")

        self.engine.clear()
        self._remove_pid_file()

        log.info("daemon_stopped")

    def _handle_signal(self, sig: signal.Signals) -> None:
        """Handle shutdown signals. Only flags; the loop does the teardown."""
        log.info("signal_received", signal=sig.name)
        self._shutdown_event.set()

    def _write_pid_file(self) -> None:
        """Write PID file."""
        self.config.pid_path.parent.mkdir(parents=True, exist_ok=True)
        self.config.pid_path.write_text(str(os.getpid()))
        self._pid_written = True
        log.debug("pid_file_written", path=str(self.config.pid_path))

    def _remove_pid_file(self) -> None:
        """Remove PID file if this daemon wrote it."""
        if self._pid_written:
            self.config.pid_path.unlink(missing_ok=True)
            self._pid_written = False
            log.debug("pid_file_removed")

    def tick(self) -> None:
        """Sample the environment once and reconcile.

        Combines the two environment facts: a matched profile that requires
        AC power is treated as unmatched while on battery.
        """
        ac_online = sample_ac_power()
        snapshot = sample_wifi()
        networks = self.config.networks

        idx = match_profile(snapshot, networks)
        if idx is None:
            self._skipped_idx = None
            self.engine.clear()
            return

        profile = networks[idx]
        if profile.require_ac_power and not ac_online:
            if self._skipped_idx != idx:
                log.info("profile_skipped_on_battery", profile=profile.display_name)
                self._skipped_idx = idx
            self.engine.clear()
            return

        self._skipped_idx = None
        self.engine.apply(idx, profile, self.config)

    async def _main_loop(self) -> None:
        """Tick at the configured interval until shutdown is requested.

        The shutdown flag is only observed between ticks; a tick in progress
        always completes.
        """
        heartbeat_ticks = self.config.logging.heartbeat_ticks
        interval = self.config.poll_interval

        while not self._shutdown_event.is_set():
            try:
                self.tick()
            except Exception as e:
                log.exception("tick_failed", error=str(e))

            self.state.update_tick()
            if heartbeat_ticks and self.state.tick_count % heartbeat_ticks == 0:
                active = self.engine.active
                log.info(
                    "daemon_heartbeat",
                    ticks=self.state.tick_count,
                    active_profile=active.profile_name if active else None,
                )

            try:
                await asyncio.wait_for(self._shutdown_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass  # Normal timeout, continue to next tick


async def run_daemon(config: Config | None = None, verbose: bool = False) -> None:
    """Run the daemon until shutdown.

    Args:
        config: Optional config, loads from file if not provided
        verbose: Log at debug level
    """
    if config is None:
        config = Config.load()

    configure(config, verbose=verbose)

    daemon = Daemon(config)

    try:
        await daemon.start()
    except ConfigError:
        raise
    except Exception as e:
        log.exception("daemon_crashed", error=str(e))
        raise
    finally:
        await daemon.stop()
