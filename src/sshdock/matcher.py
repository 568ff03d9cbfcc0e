"""Profile matching: which configured network profile applies to a snapshot."""

from collections.abc import Sequence

from sshdock.config import NetworkProfile
from sshdock.wifi import WifiSnapshot


def profile_matches(profile: NetworkProfile, snapshot: WifiSnapshot) -> bool:
    """Return True if the snapshot satisfies every constraint of the profile.

    SSID and interface compare exactly; BSSID compares case-insensitively.
    An unset constraint matches anything, but a set one requires the snapshot
    to carry that field.
    """
    if profile.ssid != snapshot.ssid:
        return False
    if profile.interface is not None and profile.interface != snapshot.device:
        return False
    if profile.bssid is not None:
        if snapshot.bssid is None or profile.bssid.lower() != snapshot.bssid.lower():
            return False
    return True


def match_profile(
    snapshot: WifiSnapshot | None, profiles: Sequence[NetworkProfile]
) -> int | None:
    """Return the index of the first matching profile, or None.

    Declaration order is the tie-break: earlier profiles win.
    """
    if snapshot is None:
        return None
    for idx, profile in enumerate(profiles):
        if profile_matches(profile, snapshot):
            return idx
    return None
