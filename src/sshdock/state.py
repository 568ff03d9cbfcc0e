"""Reconciliation of the matched profile against what is currently applied.

The engine is the only stateful component. It is either idle or holds exactly
one ActiveContext, and only apply() and clear() change that. Resource failures
are logged and leave the corresponding handle absent; neither operation raises.
"""

from dataclasses import dataclass

import structlog

from sshdock.config import Config, NetworkProfile
from sshdock.errors import CommandError, TransportError
from sshdock.system import LogindInhibitors, SleepInhibitor, StateChange, SystemdServices

log = structlog.get_logger()


class ServiceHandle:
    """A remote-access service brought up for the active profile.

    `stop_on_release` is True only when this process started the service and
    the profile asks for it to be stopped on disconnect.
    """

    def __init__(self, services: SystemdServices, service_name: str, stop_on_release: bool):
        self._services: SystemdServices | None = services
        self.service_name = service_name
        self.stop_on_release = stop_on_release

    @property
    def released(self) -> bool:
        return self._services is None

    def release(self) -> None:
        """Stop the service if this handle owns it. One-shot."""
        services, self._services = self._services, None
        if services is None or not self.stop_on_release:
            return
        try:
            change = services.stop(self.service_name)
        except CommandError as e:
            log.warning("service_stop_failed", service=self.service_name, error=str(e))
            return
        if change is StateChange.CHANGED:
            log.info("service_stopped", service=self.service_name)
        else:
            log.info("service_already_stopped", service=self.service_name)


@dataclass
class ActiveContext:
    """Resources held on behalf of the currently applied profile."""

    profile_idx: int
    profile_name: str
    ssh: ServiceHandle | None = None
    inhibitor: SleepInhibitor | None = None

    def release(self) -> None:
        """Release every held handle."""
        log.info("profile_left", profile=self.profile_name)
        if self.ssh is not None:
            self.ssh.release()
        if self.inhibitor is not None:
            self.inhibitor.release()


class ReconciliationEngine:
    """Converge held resources onto the profile matched this tick."""

    def __init__(
        self,
        services: SystemdServices | None = None,
        inhibitors: LogindInhibitors | None = None,
    ):
        self.services = services or SystemdServices()
        self.inhibitors = inhibitors or LogindInhibitors()
        self._active: ActiveContext | None = None

    @property
    def active(self) -> ActiveContext | None:
        """The applied context, or None when idle."""
        return self._active

    @property
    def active_index(self) -> int | None:
        return self._active.profile_idx if self._active else None

    def apply(self, idx: int, profile: NetworkProfile, config: Config) -> None:
        """Make `profile` (at position `idx` in config.networks) the applied one.

        Re-applying the already active index does nothing. Otherwise the old
        context is cleared first, then each resource is acquired best-effort.
        """
        if self._active is not None and self._active.profile_idx == idx:
            return

        self.clear()
        log.info("profile_matched", profile=profile.display_name, index=idx)

        ssh = self._start_service(profile, config) if profile.enable_ssh else None

        inhibitor = None
        what = profile.inhibitor_targets()
        if what is not None:
            reason = f"active profile '{profile.display_name}'"
            try:
                inhibitor = self.inhibitors.acquire(what, reason)
            except TransportError as e:
                log.error("inhibitor_acquire_failed", what=what, error=str(e))

        self._active = ActiveContext(
            profile_idx=idx,
            profile_name=profile.display_name,
            ssh=ssh,
            inhibitor=inhibitor,
        )

    def clear(self) -> None:
        """Release the active context, if any, and return to idle."""
        ctx, self._active = self._active, None
        if ctx is not None:
            ctx.release()

    def _start_service(self, profile: NetworkProfile, config: Config) -> ServiceHandle | None:
        service = profile.service_name(config)
        try:
            change = self.services.start(service)
        except CommandError as e:
            log.error("service_start_failed", service=service, error=str(e))
            return None

        if change is StateChange.CHANGED:
            log.info("service_started", service=service)
            return ServiceHandle(self.services, service, profile.stop_ssh_on_disconnect)
        log.info("service_already_active", service=service)
        return ServiceHandle(self.services, service, stop_on_release=False)
