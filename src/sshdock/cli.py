"""CLI commands for sshdock."""

import click

from sshdock.errors import ConfigError


def _load_config():
    """Load config, turning ConfigError into a clean CLI failure."""
    from sshdock.config import Config

    try:
        return Config.load()
    except ConfigError as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.version_option(package_name="sshdock")
def main() -> None:
    """Toggle SSH and sleep inhibitors based on the Wi-Fi network you're on."""
    pass


@main.command()
@click.option("--verbose", "-v", is_flag=True, help="Log at debug level")
def daemon(verbose: bool) -> None:
    """Run the reconciliation daemon."""
    import asyncio

    from sshdock.daemon import run_daemon

    config = _load_config()
    try:
        asyncio.run(run_daemon(config, verbose=verbose))
    except ConfigError as e:
        raise click.ClickException(str(e)) from e
    except RuntimeError as e:
        raise click.ClickException(str(e)) from e


@main.command()
def check() -> None:
    """Show what the daemon would do right now, without doing it."""
    from sshdock import logging as out
    from sshdock.errors import CommandError, TransportError
    from sshdock.matcher import match_profile
    from sshdock.power import is_on_ac_power
    from sshdock.wifi import detect_active_wifi

    config = _load_config()

    try:
        snapshot = detect_active_wifi()
    except CommandError as e:
        out.error(f"Wi-Fi query failed: {e}", out.Icon.FAIL)
        snapshot = None
    out.wifi_status(snapshot)

    try:
        on_ac: bool | None = is_on_ac_power()
    except TransportError as e:
        out.warn(f"Power query failed: {e}")
        on_ac = None
    out.power_status(on_ac)

    if not config.networks:
        out.warn(f"No network profiles configured in {config.config_path}")
        return

    idx = match_profile(snapshot, config.networks)
    if idx is None:
        out.no_profile_matched()
        return

    profile = config.networks[idx]
    if profile.require_ac_power and not on_ac:
        out.profile_skipped_on_battery(profile)
    else:
        out.profile_matched(idx, profile, config)


@main.command()
def status() -> None:
    """Quick health check."""
    from sshdock import logging as out
    from sshdock.daemon import read_running_pid

    config = _load_config()
    out.daemon_status(read_running_pid(config.pid_path))
    click.echo(f"Log: {config.log_path}")


@main.group()
def config() -> None:
    """Manage configuration."""
    pass


@config.command("show")
def config_show() -> None:
    """Display current configuration."""
    cfg = _load_config()

    click.echo(f"Config file: {cfg.config_path}")
    click.echo(f"Exists: {cfg.config_path.exists()}")
    click.echo()
    click.echo(f"poll_interval_secs = {cfg.poll_interval_secs}")
    click.echo(f"ssh_service = {cfg.ssh_service}")
    click.echo()
    click.echo("[logging]")
    click.echo(f"  level = {cfg.logging.level}")
    click.echo(f"  heartbeat_ticks = {cfg.logging.heartbeat_ticks}")

    if not cfg.networks:
        click.echo()
        click.echo("No network profiles configured.")
        return

    for idx, profile in enumerate(cfg.networks):
        click.echo()
        click.echo(f"[networks.{idx}] {profile.display_name}")
        click.echo(f"  ssid = {profile.ssid}")
        if profile.bssid:
            click.echo(f"  bssid = {profile.bssid}")
        if profile.interface:
            click.echo(f"  interface = {profile.interface}")
        click.echo(f"  enable_ssh = {profile.enable_ssh} ({profile.service_name(cfg)})")
        click.echo(f"  stop_ssh_on_disconnect = {profile.stop_ssh_on_disconnect}")
        click.echo(f"  inhibit = {profile.inhibitor_targets() or 'none'}")
        click.echo(f"  require_ac_power = {profile.require_ac_power}")


@config.command("init")
@click.option("--ssid", default=None, help="Add a profile for this network")
@click.option("--force", is_flag=True, help="Overwrite an existing config file")
def config_init(ssid: str | None, force: bool) -> None:
    """Write a config file with defaults."""
    from sshdock import logging as out
    from sshdock.config import Config, NetworkProfile

    cfg = Config()
    if cfg.config_path.exists() and not force:
        raise click.ClickException(f"{cfg.config_path} already exists (use --force to overwrite)")

    if ssid:
        cfg.networks.append(NetworkProfile(ssid=ssid))
    cfg.save()
    out.config_created(str(cfg.config_path))


@config.command("edit")
def config_edit() -> None:
    """Open config file in editor."""
    import os
    import subprocess

    from sshdock.config import Config

    cfg = Config()

    # Create config if it doesn't exist
    if not cfg.config_path.exists():
        cfg.save()
        click.echo(f"Created default config at {cfg.config_path}")

    editor = os.environ.get("EDITOR", "nano")
    subprocess.run([editor, str(cfg.config_path)])
