"""Tests for best-effort geolocation."""

import subprocess
from unittest.mock import patch

import pytest

from field_stock.utils import location
from field_stock.utils.location import (
    DeviceLocationProvider,
    GeoStamp,
    LocationError,
    LocationFix,
    capture_geolocation,
    parse_where_am_i,
    parse_windows_fix,
)


class _Provider:
    def __init__(self, fix=None, error=None):
        self.fix = fix
        self.error = error

    def current_fix(self):
        if self.error:
            raise self.error
        return self.fix


class TestCaptureGeolocation:
    def test_no_provider(self):
        assert capture_geolocation(None) == GeoStamp()

    def test_fix_and_address(self):
        stamp = capture_geolocation(
            _Provider(LocationFix(39.7, -104.9)),
            lambda lat, lon: f"{lat},{lon}",
        )
        assert stamp == GeoStamp("39.7,-104.9", 39.7, -104.9)

    def test_provider_failure_gives_empty_stamp(self):
        stamp = capture_geolocation(_Provider(error=LocationError("off")))
        assert stamp == GeoStamp()

    def test_geocoder_failure_keeps_coordinates(self):
        def broken(lat, lon):
            raise RuntimeError("quota")

        stamp = capture_geolocation(_Provider(LocationFix(1.0, 2.0)), broken)
        assert stamp.address == ""
        assert stamp.latitude == 1.0


class TestParsers:
    def test_windows_fix(self):
        fix = parse_windows_fix("39.74,-104.99,25")
        assert fix == LocationFix(39.74, -104.99, 25.0)

    def test_windows_without_accuracy(self):
        assert parse_windows_fix("1.5,2.5").accuracy is None

    @pytest.mark.parametrize("output", ["FAILED", "", "abc,def"])
    def test_windows_failure(self, output):
        with pytest.raises(LocationError):
            parse_windows_fix(output)

    def test_where_am_i(self):
        output = (
            "Client object: /org/freedesktop/GeoClue2/Client/1\n"
            "New location:\n"
            "Latitude:    39.739200°\n"
            "Longitude:   -104.990300°\n"
            "Accuracy:    30.000000 meters\n"
        )
        fix = parse_where_am_i(output)
        assert fix.latitude == pytest.approx(39.7392)
        assert fix.longitude == pytest.approx(-104.9903)
        assert fix.accuracy == pytest.approx(30.0)

    def test_where_am_i_no_fix(self):
        with pytest.raises(LocationError):
            parse_where_am_i("Client object: /org/freedesktop/GeoClue2\n")


class TestDeviceLocationProvider:
    def test_linux_runs_where_am_i(self, monkeypatch):
        monkeypatch.setattr(location.sys, "platform", "linux")
        done = subprocess.CompletedProcess(
            [], 0, stdout="Latitude: 1.0°\nLongitude: 2.0°\n", stderr=""
        )
        with patch("field_stock.utils.location.subprocess.run",
                   return_value=done) as run:
            fix = DeviceLocationProvider().current_fix()
        assert run.call_args.args[0][0] == "where-am-i"
        assert (fix.latitude, fix.longitude) == (1.0, 2.0)

    def test_missing_helper(self, monkeypatch):
        monkeypatch.setattr(location.sys, "platform", "linux")
        with patch("field_stock.utils.location.subprocess.run",
                   side_effect=FileNotFoundError):
            with pytest.raises(LocationError, match="not installed"):
                DeviceLocationProvider().current_fix()

    def test_helper_exit_code(self, monkeypatch):
        monkeypatch.setattr(location.sys, "platform", "linux")
        done = subprocess.CompletedProcess([], 1, stdout="", stderr="denied")
        with patch("field_stock.utils.location.subprocess.run",
                   return_value=done):
            with pytest.raises(LocationError):
                DeviceLocationProvider().current_fix()

    def test_unsupported_platform(self, monkeypatch):
        monkeypatch.setattr(location.sys, "platform", "darwin")
        with pytest.raises(LocationError, match="darwin"):
            DeviceLocationProvider().current_fix()
