"""AC power detection."""

import psutil
import structlog

from sshdock.errors import TransportError

log = structlog.get_logger()


def is_on_ac_power() -> bool:
    """Return True if the machine is running from mains power.

    Machines without a battery are always on mains.

    Raises:
        TransportError: If the power supply state cannot be determined.
    """
    try:
        battery = psutil.sensors_battery()
    except (OSError, RuntimeError) as e:
        raise TransportError(f"failed to query power supply: {e}") from e

    if battery is None:
        log.debug("no_battery_found")
        return True
    if battery.power_plugged is None:
        raise TransportError("power supply did not report plug state")
    return bool(battery.power_plugged)
