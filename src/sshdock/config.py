"""Configuration system for sshdock."""

import os
from dataclasses import dataclass, field
from pathlib import Path

import tomlkit

from sshdock.errors import ConfigError

DEFAULT_POLL_INTERVAL_SECS = 5
DEFAULT_SSH_SERVICE = "sshd.service"

_LEVELS = {"debug", "info", "warning", "error"}


@dataclass(frozen=True)
class NetworkProfile:
    """A rule mapping an observed Wi-Fi network to the side effects to apply.

    Profiles are immutable and live in a fixed ordered list; the first match wins.
    """

    ssid: str
    name: str | None = None
    bssid: str | None = None
    interface: str | None = None
    enable_ssh: bool = True
    stop_ssh_on_disconnect: bool = True
    prevent_lid_sleep: bool = True
    prevent_idle_sleep: bool = True
    require_ac_power: bool = True
    ssh_service: str | None = None  # Overrides Config.ssh_service

    @property
    def display_name(self) -> str:
        """Human-readable label: the explicit name, else the SSID."""
        return self.name or self.ssid

    def service_name(self, config: "Config") -> str:
        """Return the remote-access service this profile manages."""
        return self.ssh_service or config.ssh_service

    def inhibitor_targets(self) -> str | None:
        """Return the colon-joined logind inhibitor targets, or None if none apply.

        Tokens are sorted and de-duplicated so the result does not depend on
        the order flags appear in the config file.
        """
        parts = set()
        if self.prevent_lid_sleep:
            parts.add("handle-lid-switch")
        if self.prevent_idle_sleep:
            parts.add("sleep")
        if not parts:
            return None
        return ":".join(sorted(parts))


@dataclass
class LoggingConfig:
    """Daemon logging configuration."""

    level: str = "info"
    max_bytes: int = 5 * 1024 * 1024  # Max log file size (5MB)
    backup_count: int = 3  # Number of rotated log files to keep
    heartbeat_ticks: int = 60  # Log heartbeat every N ticks (0 disables)


@dataclass
class Config:
    """Main configuration container."""

    poll_interval_secs: int = DEFAULT_POLL_INTERVAL_SECS
    ssh_service: str = DEFAULT_SSH_SERVICE
    networks: list[NetworkProfile] = field(default_factory=list)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def poll_interval(self) -> float:
        """Seconds between reconciliation ticks."""
        return float(self.poll_interval_secs)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "sshdock"

    @property
    def config_path(self) -> Path:
        """Path to config file, honoring $SSHDOCK_CONFIG."""
        override = os.environ.get("SSHDOCK_CONFIG")
        if override:
            return Path(override)
        return self.config_dir / "config.toml"

    @property
    def state_dir(self) -> Path:
        """State directory for logs."""
        return Path.home() / ".local" / "state" / "sshdock"

    @property
    def log_path(self) -> Path:
        """Daemon log path (JSON Lines)."""
        return self.state_dir / "daemon.log"

    @property
    def runtime_dir(self) -> Path:
        """Runtime directory for the PID file, cleared on reboot."""
        xdg_runtime = os.environ.get("XDG_RUNTIME_DIR")
        if xdg_runtime:
            return Path(xdg_runtime) / "sshdock"
        return Path(f"/tmp/sshdock-{os.getuid()}")

    @property
    def pid_path(self) -> Path:
        """PID file path."""
        return self.runtime_dir / "daemon.pid"

    def save(self, path: Path | None = None) -> None:
        """Save config to TOML file."""
        path = path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)

        doc = tomlkit.document()
        doc.add("poll_interval_secs", self.poll_interval_secs)
        doc.add("ssh_service", self.ssh_service)
        doc.add(tomlkit.nl())

        log_table = tomlkit.table()
        log_table.add("level", self.logging.level)
        log_table.add("max_bytes", self.logging.max_bytes)
        log_table.add("backup_count", self.logging.backup_count)
        log_table.add("heartbeat_ticks", self.logging.heartbeat_ticks)
        doc.add("logging", log_table)

        networks = tomlkit.aot()
        for profile in self.networks:
            networks.append(_profile_to_table(profile))
        if self.networks:
            doc.add(tomlkit.nl())
            doc.add("networks", networks)

        path.write_text(tomlkit.dumps(doc), encoding="utf-8")

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values.

        Raises:
            ConfigError: If the file cannot be read or parsed, or holds invalid values.
        """
        defaults = cls()
        path = path or defaults.config_path
        if not path.exists():
            return defaults

        try:
            with open(path, encoding="utf-8") as f:
                data = tomlkit.load(f).unwrap()
        except OSError as e:
            raise ConfigError(f"failed to read {path}: {e}") from e
        except UnicodeDecodeError as e:
            raise ConfigError(f"failed to decode {path}: {e}") from e
        except tomlkit.exceptions.TOMLKitError as e:
            raise ConfigError(f"failed to parse {path}: {e}") from e

        poll_interval_secs = _get(data, "poll_interval_secs", int, defaults.poll_interval_secs)
        if poll_interval_secs < 0:
            raise ConfigError(f"poll_interval_secs must be >= 0, got {poll_interval_secs}")
        if poll_interval_secs == 0:
            poll_interval_secs = DEFAULT_POLL_INTERVAL_SECS

        raw_networks = data.get("networks", [])
        if not isinstance(raw_networks, list):
            raise ConfigError("networks must be an array of tables ([[networks]])")

        return cls(
            poll_interval_secs=poll_interval_secs,
            ssh_service=_get(data, "ssh_service", str, defaults.ssh_service),
            networks=[_load_profile(entry, i) for i, entry in enumerate(raw_networks)],
            logging=_load_logging_config(data.get("logging", {})),
        )


def _get(data: dict, key: str, kind: type, default, where: str = ""):
    """Fetch an optional key, checking its TOML type."""
    value = data.get(key, default)
    # bool is an int subclass; don't let `true` pass as a number
    if value is not None and (
        not isinstance(value, kind) or (kind is int and isinstance(value, bool))
    ):
        raise ConfigError(
            f"{where}{key} must be of type {kind.__name__}, got {type(value).__name__}"
        )
    return value


def _load_profile(data: object, index: int) -> NetworkProfile:
    """Load a single [[networks]] entry."""
    where = f"networks[{index}]."
    if not isinstance(data, dict):
        raise ConfigError(f"networks[{index}] must be a table")

    ssid = _get(data, "ssid", str, None, where)
    if not ssid:
        raise ConfigError(f"{where}ssid is required")

    d = NetworkProfile(ssid=ssid)
    return NetworkProfile(
        ssid=ssid,
        name=_get(data, "name", str, d.name, where),
        bssid=_get(data, "bssid", str, d.bssid, where),
        interface=_get(data, "interface", str, d.interface, where),
        enable_ssh=_get(data, "enable_ssh", bool, d.enable_ssh, where),
        stop_ssh_on_disconnect=_get(
            data, "stop_ssh_on_disconnect", bool, d.stop_ssh_on_disconnect, where
        ),
        prevent_lid_sleep=_get(data, "prevent_lid_sleep", bool, d.prevent_lid_sleep, where),
        prevent_idle_sleep=_get(data, "prevent_idle_sleep", bool, d.prevent_idle_sleep, where),
        require_ac_power=_get(data, "require_ac_power", bool, d.require_ac_power, where),
        ssh_service=_get(data, "ssh_service", str, d.ssh_service, where),
    )


def _load_logging_config(data: object) -> LoggingConfig:
    """Load the [logging] table."""
    if not isinstance(data, dict):
        raise ConfigError("logging must be a table")
    d = LoggingConfig()
    where = "logging."

    level = _get(data, "level", str, d.level, where).lower()
    if level not in _LEVELS:
        raise ConfigError(f"Invalid logging.level: {level!r}. Must be one of {sorted(_LEVELS)}")

    heartbeat_ticks = _get(data, "heartbeat_ticks", int, d.heartbeat_ticks, where)
    if heartbeat_ticks < 0:
        raise ConfigError(f"logging.heartbeat_ticks must be >= 0, got {heartbeat_ticks}")

    return LoggingConfig(
        level=level,
        max_bytes=_get(data, "max_bytes", int, d.max_bytes, where),
        backup_count=_get(data, "backup_count", int, d.backup_count, where),
        heartbeat_ticks=heartbeat_ticks,
    )


def _profile_to_table(profile: NetworkProfile) -> tomlkit.items.Table:
    """Convert a profile to a tomlkit table, omitting unset optional fields."""
    table = tomlkit.table()
    table.add("ssid", profile.ssid)
    for key in ("name", "bssid", "interface", "ssh_service"):
        value = getattr(profile, key)
        if value is not None:
            table.add(key, value)
    table.add("enable_ssh", profile.enable_ssh)
    table.add("stop_ssh_on_disconnect", profile.stop_ssh_on_disconnect)
    table.add("prevent_lid_sleep", profile.prevent_lid_sleep)
    table.add("prevent_idle_sleep", profile.prevent_idle_sleep)
    table.add("require_ac_power", profile.require_ac_power)
    return table
