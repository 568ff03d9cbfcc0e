"""Shared test fixtures for sshdock."""

from pathlib import Path
from typing import Iterator

import pytest

from sshdock.config import Config, NetworkProfile
from sshdock.errors import CommandError, TransportError
from sshdock.state import ReconciliationEngine
from sshdock.system import StateChange


class FakeServices:
    """Records systemctl-style calls against an in-memory set of running units."""

    def __init__(self, running: set[str] | None = None):
        self.running = set(running or ())
        self.calls: list[tuple[str, str]] = []
        self.fail_start = False
        self.fail_stop = False

    def is_active(self, service: str) -> bool:
        self.calls.append(("is_active", service))
        return service in self.running

    def start(self, service: str) -> StateChange:
        self.calls.append(("start", service))
        if self.fail_start:
            raise CommandError(f"systemctl start {service} failed")
        if service in self.running:
            return StateChange.UNCHANGED
        self.running.add(service)
        return StateChange.CHANGED

    def stop(self, service: str) -> StateChange:
        self.calls.append(("stop", service))
        if self.fail_stop:
            raise CommandError(f"systemctl stop {service} failed")
        if service not in self.running:
            return StateChange.UNCHANGED
        self.running.discard(service)
        return StateChange.CHANGED


class FakeInhibitor:
    def __init__(self, what: str, reason: str):
        self.what = what
        self.reason = reason
        self.release_count = 0

    def release(self) -> None:
        self.release_count += 1


class FakeInhibitors:
    """Hands out FakeInhibitor handles and remembers them."""

    def __init__(self):
        self.acquired: list[FakeInhibitor] = []
        self.fail = False

    def acquire(self, what: str, reason: str) -> FakeInhibitor:
        if self.fail:
            raise TransportError("logind refused the lock")
        handle = FakeInhibitor(what, reason)
        self.acquired.append(handle)
        return handle

    @property
    def held(self) -> list[FakeInhibitor]:
        return [h for h in self.acquired if h.release_count == 0]


def make_profile(ssid: str = "Home", **kwargs) -> NetworkProfile:
    """Create a NetworkProfile for testing."""
    return NetworkProfile(ssid=ssid, **kwargs)


@pytest.fixture
def services() -> FakeServices:
    return FakeServices()


@pytest.fixture
def inhibitors() -> FakeInhibitors:
    return FakeInhibitors()


@pytest.fixture
def engine(services: FakeServices, inhibitors: FakeInhibitors) -> ReconciliationEngine:
    return ReconciliationEngine(services=services, inhibitors=inhibitors)


@pytest.fixture
def config_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Point $SSHDOCK_CONFIG at a (not yet created) file in tmp_path."""
    path = tmp_path / "config.toml"
    monkeypatch.setenv("SSHDOCK_CONFIG", str(path))
    yield path


@pytest.fixture
def home_config() -> Config:
    """A config with a single, ungated Home profile."""
    return Config(networks=[make_profile("Home", require_ac_power=False)])
