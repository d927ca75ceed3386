"""Pytest configuration and fixtures."""

import asyncio

import pytest

from ble_scanrecord import ScanResult


class FakeRadio:
    """In-memory stand-in for BleakRadio.

    scan() delivers the preloaded results, runs the optional on_scan hook,
    then either fails with scan_error, returns (ends_cleanly) or waits for
    stop_scan().
    """

    def __init__(self, results=(), enable_error=None, scan_error=None,
                 stop_error=None, ends_cleanly=False, on_scan=None):
        self.results = list(results)
        self.enable_error = enable_error
        self.scan_error = scan_error
        self.stop_error = stop_error
        self.ends_cleanly = ends_cleanly
        self.on_scan = on_scan
        self.enabled = False
        self.stop_calls = 0
        self.deliver = None
        self._stopped = None

    async def enable(self):
        if self.enable_error is not None:
            raise self.enable_error
        self.enabled = True

    async def scan(self, deliver):
        self.deliver = deliver
        self._stopped = asyncio.Event()
        for result in self.results:
            deliver(result)
        if self.on_scan is not None:
            self.on_scan(self)
        if self.scan_error is not None:
            raise self.scan_error
        if self.ends_cleanly:
            return
        await self._stopped.wait()

    async def stop_scan(self):
        self.stop_calls += 1
        if self.stop_error is not None:
            raise self.stop_error
        self._stopped.set()


@pytest.fixture
def make_radio():
    """Factory for fake radios."""
    return FakeRadio


@pytest.fixture
def result():
    """Bare scan result with no optional fields."""
    return ScanResult(address="AA:BB:CC:DD:EE:FF", rssi=-59)
