"""Tests for configuration system."""

import pytest

from sshdock.config import Config, LoggingConfig, NetworkProfile
from sshdock.errors import ConfigError


def test_config_defaults():
    """Config has correct defaults."""
    config = Config()
    assert config.poll_interval_secs == 5
    assert config.poll_interval == 5.0
    assert config.ssh_service == "sshd.service"
    assert config.networks == []
    assert config.logging.level == "info"


def test_logging_config_defaults():
    config = LoggingConfig()
    assert config.max_bytes == 5 * 1024 * 1024
    assert config.backup_count == 3
    assert config.heartbeat_ticks == 60


def test_network_profile_defaults():
    """Every toggle defaults to on."""
    profile = NetworkProfile(ssid="Home")
    assert profile.enable_ssh is True
    assert profile.stop_ssh_on_disconnect is True
    assert profile.prevent_lid_sleep is True
    assert profile.prevent_idle_sleep is True
    assert profile.require_ac_power is True
    assert profile.display_name == "Home"


def test_display_name_prefers_name():
    assert NetworkProfile(ssid="Home", name="house").display_name == "house"


def test_service_name_override():
    config = Config(ssh_service="ssh.service")
    assert NetworkProfile(ssid="Home").service_name(config) == "ssh.service"
    assert NetworkProfile(ssid="Home", ssh_service="x.service").service_name(config) == "x.service"


@pytest.mark.parametrize(
    "lid,idle,expected",
    [
        (True, True, "handle-lid-switch:sleep"),
        (True, False, "handle-lid-switch"),
        (False, True, "sleep"),
        (False, False, None),
    ],
)
def test_inhibitor_targets(lid, idle, expected):
    profile = NetworkProfile(ssid="Home", prevent_lid_sleep=lid, prevent_idle_sleep=idle)
    assert profile.inhibitor_targets() == expected


def test_config_path_honors_env(config_file):
    """$SSHDOCK_CONFIG overrides the default config location."""
    assert Config().config_path == config_file


def test_config_paths(monkeypatch):
    monkeypatch.delenv("SSHDOCK_CONFIG", raising=False)
    monkeypatch.setenv("XDG_RUNTIME_DIR", "/run/user/1000")
    config = Config()
    assert config.config_path.name == "config.toml"
    assert "sshdock" in str(config.config_dir)
    assert config.log_path.name == "daemon.log"
    assert str(config.pid_path) == "/run/user/1000/sshdock/daemon.pid"


def test_config_load_missing_file_returns_defaults(tmp_path):
    config = Config.load(tmp_path / "nonexistent.toml")
    assert config.networks == []
    assert config.poll_interval_secs == 5


def test_config_load_reads_values(tmp_path):
    """Config.load() reads top-level keys, networks and logging."""
    config_path = tmp_path / "config.toml"
    config_path.write_text("""
poll_interval_secs = 10
ssh_service = "ssh.service"

[logging]
level = "DEBUG"

[[networks]]
ssid = "Home"
name = "house"
bssid = "AA:BB:CC:DD:EE:FF"
require_ac_power = false

[[networks]]
ssid = "Office"
interface = "wlan1"
enable_ssh = false
ssh_service = "dropbear.service"
""")

    config = Config.load(config_path)
    assert config.poll_interval_secs == 10
    assert config.ssh_service == "ssh.service"
    assert config.logging.level == "debug"
    assert config.logging.heartbeat_ticks == 60  # Default preserved
    assert len(config.networks) == 2

    home, office = config.networks
    assert home.display_name == "house"
    assert home.bssid == "AA:BB:CC:DD:EE:FF"
    assert home.require_ac_power is False
    assert home.enable_ssh is True
    assert office.interface == "wlan1"
    assert office.enable_ssh is False
    assert office.service_name(config) == "dropbear.service"


def test_zero_poll_interval_uses_default(tmp_path):
    config_path = tmp_path / "config.toml"
    config_path.write_text("poll_interval_secs = 0\n")
    assert Config.load(config_path).poll_interval_secs == 5


def test_invalid_toml_raises_config_error(tmp_path):
    config_path = tmp_path / "config.toml"
    config_path.write_text("[[networks]\nssid = ")
    with pytest.raises(ConfigError, match="failed to parse"):
        Config.load(config_path)


def test_invalid_utf8_raises_config_error(tmp_path):
    """A Latin-1 encoded SSID is not valid UTF-8 TOML."""
    config_path = tmp_path / "config.toml"
    config_path.write_bytes(b'[[networks]]\nssid = "Caf\xe9"\n')
    with pytest.raises(ConfigError, match="failed to decode"):
        Config.load(config_path)


def test_non_ascii_ssid_roundtrips(tmp_path):
    config_path = tmp_path / "config.toml"
    Config(networks=[NetworkProfile(ssid="Café Wi-Fi")]).save(config_path)

    loaded = Config.load(config_path)

    assert loaded.networks[0].ssid == "Café Wi-Fi"


def test_missing_ssid_raises_config_error(tmp_path):
    config_path = tmp_path / "config.toml"
    config_path.write_text('[[networks]]\nname = "nameless"\n')
    with pytest.raises(ConfigError, match=r"networks\[0\]\.ssid is required"):
        Config.load(config_path)


def test_wrong_type_raises_config_error(tmp_path):
    config_path = tmp_path / "config.toml"
    config_path.write_text('[[networks]]\nssid = "Home"\nenable_ssh = "yes"\n')
    with pytest.raises(ConfigError, match="enable_ssh must be of type bool"):
        Config.load(config_path)


def test_bool_is_not_an_int(tmp_path):
    config_path = tmp_path / "config.toml"
    config_path.write_text("poll_interval_secs = true\n")
    with pytest.raises(ConfigError, match="poll_interval_secs"):
        Config.load(config_path)


def test_invalid_log_level_raises_config_error(tmp_path):
    config_path = tmp_path / "config.toml"
    config_path.write_text('[logging]\nlevel = "loud"\n')
    with pytest.raises(ConfigError, match="Invalid logging.level"):
        Config.load(config_path)


def test_config_error_is_value_error():
    assert issubclass(ConfigError, ValueError)


def test_config_save_roundtrips_profiles(tmp_path):
    """Config.save() writes networks that Config.load() reads back."""
    config_path = tmp_path / "sub" / "config.toml"
    config = Config(
        poll_interval_secs=7,
        networks=[
            NetworkProfile(ssid="Home", bssid="aa:bb:cc:dd:ee:ff", require_ac_power=False),
            NetworkProfile(ssid="Cafe", enable_ssh=False),
        ],
    )
    config.save(config_path)

    content = config_path.read_text()
    assert "[[networks]]" in content
    assert "name =" not in content  # Unset optionals are omitted

    loaded = Config.load(config_path)
    assert loaded.poll_interval_secs == 7
    assert loaded.networks == config.networks
