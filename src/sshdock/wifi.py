"""Active Wi-Fi association detection via NetworkManager."""

import os
import subprocess
from dataclasses import dataclass

import structlog

from sshdock.errors import CommandError

log = structlog.get_logger()

NMCLI_FIELDS = "ACTIVE,SSID,BSSID,DEVICE"


@dataclass(frozen=True)
class WifiSnapshot:
    """The observed wireless association at one polling instant."""

    ssid: str
    bssid: str | None = None
    device: str | None = None


def detect_active_wifi() -> WifiSnapshot | None:
    """Return the active Wi-Fi association, or None if not associated.

    Raises:
        CommandError: If nmcli cannot be run or exits with an error.
    """
    output = run_nmcli(["-t", "-f", NMCLI_FIELDS, "dev", "wifi"])
    return parse_nmcli_wifi(output)


def parse_nmcli_wifi(output: str) -> WifiSnapshot | None:
    """Pick the active row out of `nmcli -t -f ACTIVE,SSID,BSSID,DEVICE dev wifi`."""
    for raw_line in output.splitlines():
        if not raw_line.strip():
            continue
        fields = parse_nmcli_line(raw_line)
        if fields[0] != "yes":
            continue

        ssid = fields[1] if len(fields) > 1 else ""
        if not ssid:
            # Associated to a hidden network; nothing to match against
            return None
        bssid = fields[2] if len(fields) > 2 and fields[2] else None
        device = fields[3] if len(fields) > 3 and fields[3] else None
        return WifiSnapshot(ssid=ssid, bssid=bssid, device=device)

    return None


def parse_nmcli_line(line: str) -> list[str]:
    """Split one line of nmcli terse output into fields.

    nmcli separates fields with ':' and escapes literal ':' and '\\' with a
    backslash (BSSIDs always contain escaped colons).
    """
    fields = []
    current: list[str] = []
    escaped = False
    for ch in line:
        if escaped:
            current.append(ch)
            escaped = False
        elif ch == "\\":
            escaped = True
        elif ch == ":":
            fields.append("".join(current))
            current = []
        else:
            current.append(ch)
    fields.append("".join(current))
    return fields


def run_nmcli(args: list[str]) -> str:
    """Run nmcli with a C locale and return its stdout."""
    env = {**os.environ, "LC_ALL": "C", "LANG": "C"}
    try:
        result = subprocess.run(
            ["nmcli", *args],
            capture_output=True,
            env=env,
        )
    except OSError as e:
        raise CommandError(f"failed to run nmcli: {e}") from e

    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        raise CommandError(f"nmcli {args} failed: {stderr}")

    log.debug("nmcli_ran", args=args)
    return result.stdout.decode("utf-8", errors="replace")
