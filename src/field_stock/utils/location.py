"""Best-effort device location for stamping history entries.

A transfer never waits on, or fails because of, location lookup: any
error here yields an empty ``GeoStamp``.

Device support:
- Windows: System.Device.Location via PowerShell
- Linux: GeoClue2 ``where-am-i``
"""

import logging
import re
import subprocess
import sys
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class LocationError(Exception):
    """The device location could not be determined."""


@dataclass
class LocationFix:
    latitude: float
    longitude: float
    accuracy: Optional[float] = None  # metres


@dataclass
class GeoStamp:
    """Location fields written into a history entry."""
    address: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class LocationProvider(Protocol):
    def current_fix(self) -> LocationFix: ...


# (latitude, longitude) -> human-readable address
ReverseGeocoder = Callable[[float, float], str]


def capture_geolocation(provider: Optional[LocationProvider],
                        geocoder: Optional[ReverseGeocoder] = None
                        ) -> GeoStamp:
    """Ask the provider for a fix and the geocoder for an address.

    Missing collaborators or failures degrade to empty fields.
    """
    if provider is None:
        return GeoStamp()
    try:
        fix = provider.current_fix()
    except Exception as e:
        logger.info("Location unavailable: %s", e)
        return GeoStamp()

    stamp = GeoStamp(latitude=fix.latitude, longitude=fix.longitude)
    if geocoder is not None:
        try:
            stamp.address = geocoder(fix.latitude, fix.longitude) or ""
        except Exception as e:
            logger.info("Reverse geocoding failed: %s", e)
    return stamp


# ── Device provider ─────────────────────────────────────────────

_ANSI_ESCAPES = re.compile(
    r"\x1b\].*?\x07"
    r"|\x1b\[[0-9;]*[A-Za-z]"
    r"|\x1b[^[\]].?"
)


class DeviceLocationProvider:
    """Reads the OS location service through a platform helper process."""

    def __init__(self, timeout_seconds: int = 15):
        self.timeout_seconds = timeout_seconds

    def current_fix(self) -> LocationFix:
        if sys.platform == "win32":
            return self._fix_windows()
        if sys.platform.startswith("linux"):
            return self._fix_linux()
        raise LocationError(f"No location support on {sys.platform}")

    def _run(self, args: list[str]) -> str:
        try:
            result = subprocess.run(
                args, capture_output=True, text=True,
                timeout=self.timeout_seconds,
            )
        except FileNotFoundError:
            raise LocationError(f"{args[0]} is not installed")
        except subprocess.TimeoutExpired:
            raise LocationError("Location request timed out")
        if result.returncode != 0:
            raise LocationError(f"{args[0]} exited with {result.returncode}")
        return result.stdout

    def _fix_windows(self) -> LocationFix:
        script = (
            "Add-Type -AssemblyName System.Device; "
            "$w = New-Object System.Device.Location.GeoCoordinateWatcher; "
            "$w.Start(); $elapsed = 0; "
            "while ($w.Status -ne 'Ready' -and $elapsed -lt 10) "
            "{ Start-Sleep -Milliseconds 500; $elapsed += 0.5 }; "
            "if ($w.Status -eq 'Ready') { "
            "$c = $w.Position.Location; "
            "Write-Output \"$($c.Latitude),$($c.Longitude),"
            "$($c.HorizontalAccuracy)\" } "
            "else { Write-Output 'FAILED' }; $w.Stop()"
        )
        output = _ANSI_ESCAPES.sub(
            "", self._run(["powershell", "-NoProfile", "-Command", script])
        ).strip()
        return parse_windows_fix(output)

    def _fix_linux(self) -> LocationFix:
        return parse_where_am_i(self._run(["where-am-i", "-t", "10"]))


def parse_windows_fix(output: str) -> LocationFix:
    """Parse ``lat,lon[,accuracy]`` printed by the PowerShell helper."""
    fields = output.split(",")
    if output == "FAILED" or len(fields) < 2:
        raise LocationError("Location service not ready")
    try:
        accuracy = float(fields[2]) if len(fields) > 2 else None
        return LocationFix(float(fields[0]), float(fields[1]), accuracy)
    except ValueError as e:
        raise LocationError(f"Could not parse location output: {e}")


def parse_where_am_i(output: str) -> LocationFix:
    """Parse the ``Latitude:`` / ``Longitude:`` / ``Accuracy:`` lines."""
    values = {}
    for line in output.splitlines():
        key, sep, rest = line.strip().partition(":")
        if sep and key in ("Latitude", "Longitude", "Accuracy"):
            number = re.match(r"\s*(-?[0-9.]+)", rest)
            if number:
                values[key] = float(number.group(1))
    if "Latitude" not in values or "Longitude" not in values:
        raise LocationError("GeoClue2 could not determine location")
    return LocationFix(
        values["Latitude"], values["Longitude"], values.get("Accuracy")
    )
