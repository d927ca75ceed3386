"""Tests for distance estimation and report formatting."""

import uuid
from datetime import datetime

import pytest

from adv_report import format_report, rssi_to_distance
from ble_scanrecord import ManufacturerData, ScanResult, ServiceData

NOW = datetime(2024, 5, 1, 13, 4, 5, 123456)


class TestRssiToDistance:
    """Tests for the log-distance estimate."""

    def test_zero_means_no_reading(self):
        assert rssi_to_distance(0) == 0

    def test_calibration_point(self):
        assert rssi_to_distance(-59) == pytest.approx(1.0)

    def test_ten_metres(self):
        assert rssi_to_distance(-79) == pytest.approx(10.0)

    def test_floor(self):
        """Strong or positive readings never go below 0.1 m."""
        assert rssi_to_distance(-20) == pytest.approx(0.1)
        assert rssi_to_distance(5) == pytest.approx(0.1)
        assert rssi_to_distance(127) == pytest.approx(0.1)

    def test_lower_bound_for_nonzero(self):
        for rssi in list(range(-128, 0)) + list(range(1, 128)):
            assert rssi_to_distance(rssi) >= 0.1

    def test_monotonic_non_increasing(self):
        readings = [rssi_to_distance(r) for r in range(-128, 0)]
        assert all(a >= b for a, b in zip(readings, readings[1:]))
        readings = [rssi_to_distance(r) for r in range(1, 128)]
        assert all(a >= b for a, b in zip(readings, readings[1:]))


class TestFormatReport:
    """Tests for the console report."""

    def test_minimal_report(self, result):
        report = format_report(result, now=NOW)
        assert report == (
            "=== [13:04:05.123] ===\n"
            "Address: AA:BB:CC:DD:EE:FF\n"
            "RSSI: -59 dBm\n"
            "Estimated Distance: 1.00m\n"
            "\n"
        )

    def test_no_optional_sections(self, result):
        lines = format_report(result, now=NOW).splitlines()
        assert len(lines) == 5
        assert lines[-1] == ""
        for label in ("Local Name", "Manufacturer Data", "Service Data", "Raw Advertisement Data"):
            assert not any(line.startswith(label) for line in lines)

    def test_manufacturer_data(self):
        res = ScanResult(
            address="11:22:33:44:55:66",
            rssi=-70,
            manufacturer_data=(ManufacturerData(company_id=0x004C, data=bytes([0x02, 0x15])),),
        )
        lines = format_report(res, now=NOW).splitlines()
        assert "Manufacturer Data:" in lines
        assert "  Company ID: 0x004c" in lines
        assert "  Data: 0215" in lines

    def test_full_report_order(self):
        svc = uuid.UUID("0000feaa-0000-1000-8000-00805f9b34fb")
        res = ScanResult(
            address="AA:BB:CC:DD:EE:FF",
            rssi=-79,
            local_name="Keg",
            manufacturer_data=(
                ManufacturerData(0x0059, b"\xAB"),
                ManufacturerData(0x004C, b""),
            ),
            service_data=(ServiceData(svc, b"\x00\xFF"),),
            raw=b"\x02\x01\x06",
        )
        assert format_report(res, now=NOW) == (
            "=== [13:04:05.123] ===\n"
            "Address: AA:BB:CC:DD:EE:FF\n"
            "RSSI: -79 dBm\n"
            "Estimated Distance: 10.00m\n"
            "Local Name: Keg\n"
            "Manufacturer Data:\n"
            "  Company ID: 0x0059\n"
            "  Data: ab\n"
            "  Company ID: 0x004c\n"
            "  Data: \n"
            "Service Data:\n"
            "  Service UUID: 0000feaa-0000-1000-8000-00805f9b34fb\n"
            "  Data: 00ff\n"
            "Raw Advertisement Data: 020106\n"
            "\n"
        )

    def test_zero_rssi_distance(self):
        res = ScanResult(address="AA:BB:CC:DD:EE:FF", rssi=0)
        assert "Estimated Distance: 0.00m" in format_report(res, now=NOW)

    def test_default_timestamp(self, result):
        header = format_report(result).splitlines()[0]
        assert header.startswith("=== [") and header.endswith("] ===")
        assert len(header) == len("=== [13:04:05.123] ===")

    def test_reconstructed_raw_is_labelled(self):
        res = ScanResult(address="AA:BB:CC:DD:EE:FF", rssi=-59, raw=b"\x02\x09\x41", raw_reconstructed=True)
        lines = format_report(res, now=NOW).splitlines()
        assert "Raw Advertisement Data (reconstructed): 020941" in lines
        assert not any(line.startswith("Raw Advertisement Data:") for line in lines)
