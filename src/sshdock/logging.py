"""Centralized logging for sshdock.

This module provides:
1. Icon vocabulary (Icon class namespace)
2. Rich console helpers for interactive CLI output
3. Structlog configuration for the daemon (configure)

Daemon events go through structlog to a JSON Lines file and a human-readable
console stream. The Rich helpers are for one-shot CLI commands only.
"""

from __future__ import annotations

import logging
import logging.handlers
from typing import TYPE_CHECKING

import structlog
from rich.console import Console
from rich.markup import escape

if TYPE_CHECKING:
    from sshdock.config import Config, NetworkProfile
    from sshdock.wifi import WifiSnapshot

_console = Console(highlight=False)


# ─────────────────────────────────────────────────────────────────────────────
# Icons
# ─────────────────────────────────────────────────────────────────────────────


class Icon:
    """Icon vocabulary for console output."""

    OK = "[bold green]✓[/]"
    FAIL = "[bold red]✗[/]"
    SKIP = "[yellow]⏸[/]"
    WIFI = "📶"
    PLUG = "🔌"
    BATTERY = "🔋"
    RUNNING = "[green]⬤[/]"
    STOPPED = "[red]⬤[/]"


# ─────────────────────────────────────────────────────────────────────────────
# Core Functions
# ─────────────────────────────────────────────────────────────────────────────

_LEVEL_STYLES = {
    "info": "",
    "warn": "[yellow]warning:[/] ",
    "error": "[bold red]error:[/] ",
}


def log(level: str, msg: str, icon: str = "") -> None:
    """Print a message to the console.

    Args:
        level: Log level (info, warn, error)
        msg: Message to print (can include Rich markup)
        icon: Optional leading icon (e.g., Icon.OK)
    """
    icon_part = f"{icon} " if icon else ""
    _console.print(f"{icon_part}{_LEVEL_STYLES.get(level, '')}{msg}")


def info(msg: str, icon: str = "") -> None:
    log("info", msg, icon)


def warn(msg: str, icon: str = "") -> None:
    log("warn", msg, icon)


def error(msg: str, icon: str = "") -> None:
    log("error", msg, icon)


# ─────────────────────────────────────────────────────────────────────────────
# Domain Helpers
# ─────────────────────────────────────────────────────────────────────────────


def wifi_status(snapshot: WifiSnapshot | None) -> None:
    """Show the current Wi-Fi association."""
    if snapshot is None:
        info("Wi-Fi: [dim]not associated[/]", Icon.WIFI)
        return
    extra = []
    if snapshot.bssid:
        extra.append(f"bssid {snapshot.bssid}")
    if snapshot.device:
        extra.append(f"on {snapshot.device}")
    suffix = f" [dim]({', '.join(extra)})[/]" if extra else ""
    info(f"Wi-Fi: [cyan]{escape(snapshot.ssid)}[/]{suffix}", Icon.WIFI)


def power_status(on_ac: bool | None) -> None:
    """Show the AC power state; None means it could not be read."""
    if on_ac is None:
        warn("Power: unknown [dim](treated as battery)[/]", Icon.BATTERY)
    elif on_ac:
        info("Power: [green]AC[/]", Icon.PLUG)
    else:
        info("Power: [yellow]battery[/]", Icon.BATTERY)


def profile_matched(idx: int, profile: NetworkProfile, config: Config) -> None:
    """Show the profile that would be applied and what it would do."""
    name = escape(profile.display_name)
    info(f"Profile [bold]{name}[/] [dim](#{idx})[/] would be applied", Icon.OK)
    if profile.enable_ssh:
        stop = "stopped on disconnect" if profile.stop_ssh_on_disconnect else "left running"
        info(f"  service [cyan]{profile.service_name(config)}[/] started, {stop}")
    what = profile.inhibitor_targets()
    if what:
        info(f"  inhibitor [cyan]{what}[/]")


def profile_skipped_on_battery(profile: NetworkProfile) -> None:
    """Show a matched profile that AC gating would skip."""
    name = escape(profile.display_name)
    info(f"Profile [bold]{name}[/] matched but requires AC power", Icon.SKIP)


def no_profile_matched() -> None:
    info("No profile matches [dim](resources would be released)[/]")


def daemon_status(pid: int | None) -> None:
    if pid is not None:
        info(f"Daemon: running [dim](PID {pid})[/]", Icon.RUNNING)
    else:
        info("Daemon: stopped", Icon.STOPPED)


def config_created(path: str) -> None:
    info(f"Created config at [cyan]{path}[/]", Icon.OK)


# ─────────────────────────────────────────────────────────────────────────────
# Structlog Configuration
# ─────────────────────────────────────────────────────────────────────────────


def _add_source(source: str) -> structlog.types.Processor:
    """Create a processor that adds a source field to log events."""

    def processor(
        logger: structlog.types.WrappedLogger,
        method_name: str,
        event_dict: structlog.types.EventDict,
    ) -> structlog.types.EventDict:
        event_dict["source"] = source
        return event_dict

    return processor


def configure(config: Config, verbose: bool = False) -> None:
    """Configure structlog with dual output: console + JSON file.

    Console output uses human-readable format with colors.
    File output uses JSON Lines format for machine parsing.

    Args:
        config: Application config with paths and [logging] settings
        verbose: Force debug level regardless of config
    """
    level = logging.DEBUG if verbose else getattr(logging, config.logging.level.upper())

    # Ensure state directory exists for log file
    config.state_dir.mkdir(parents=True, exist_ok=True)

    file_handler = logging.handlers.RotatingFileHandler(
        config.log_path,
        maxBytes=config.logging.max_bytes,
        backupCount=config.logging.backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
                structlog.processors.add_log_level,
                _add_source("daemon"),
                structlog.processors.format_exc_info,
            ],
        )
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.dev.ConsoleRenderer(),
            foreign_pre_chain=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="%H:%M:%S", utc=False),
                structlog.processors.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
            ],
        )
    )

    stdlib_root = logging.getLogger()
    stdlib_root.setLevel(level)
    stdlib_root.handlers.clear()
    stdlib_root.addHandler(file_handler)
    stdlib_root.addHandler(console_handler)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="%H:%M:%S", utc=False),
            structlog.processors.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
