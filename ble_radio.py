"""
Radio side of the sniffer: error taxonomy and the bleak-backed driver.
"""

from __future__ import annotations
import asyncio
import logging
import uuid
from typing import Callable, Optional

from bleak import BleakScanner
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData

from ble_scanrecord import (
    ManufacturerData, ScanResult, ServiceData, build_advertisement, encode_ad_structures,
)

logger = logging.getLogger(__name__)


class SnifferError(Exception):
    """Base class for fatal sniffer failures."""


class AdapterError(SnifferError):
    """The Bluetooth adapter could not be enabled."""


class ScanError(SnifferError):
    """The driver's scan ended abnormally."""


class StopError(SnifferError):
    """The driver failed to stop an active scan."""


def _received_advertisement(adv: AdvertisementData) -> Optional[bytes]:
    # BlueZ hands the received AD structures over as {ad_type: value}
    for item in adv.platform_data or ():
        if isinstance(item, dict) and item.get("AdvertisingData"):
            return encode_ad_structures(
                (int(ad_type), bytes(value)) for ad_type, value in item["AdvertisingData"].items()
            )
    return None


def scan_result_from_bleak(device: BLEDevice, adv: AdvertisementData) -> ScanResult:
    manufacturer_data = tuple(
        ManufacturerData(company_id=cid, data=bytes(v))
        for cid, v in (adv.manufacturer_data or {}).items()
    )
    service_data = tuple(
        ServiceData(uuid=uuid.UUID(str(k)), data=bytes(v))
        for k, v in (adv.service_data or {}).items()
    )
    raw = _received_advertisement(adv)
    reconstructed = raw is None
    if reconstructed:
        raw = build_advertisement(
            local_name=adv.local_name,
            service_uuids=[uuid.UUID(str(u)) for u in (adv.service_uuids or [])],
            tx_power=adv.tx_power,
            manufacturer_data=manufacturer_data,
            service_data=service_data,
        )
    return ScanResult(
        address=device.address,
        rssi=adv.rssi,
        local_name=adv.local_name or "",
        manufacturer_data=manufacturer_data,
        service_data=service_data,
        raw=raw,
        raw_reconstructed=reconstructed and bool(raw),
    )


class BleakRadio:
    """Scan-only driver handle over a single BleakScanner.

    enable() starts the scanner, since bleak only touches the adapter on
    start(). Advertisements heard before scan() are discarded; from scan()
    until stop_scan() each one is converted to a ScanResult and handed to
    the deliver callback.
    """

    def __init__(self, scanning_mode: str = "active"):
        self.scanning_mode = scanning_mode
        self._scanner: Optional[BleakScanner] = None
        self._deliver: Optional[Callable[[ScanResult], None]] = None
        self._stopped = asyncio.Event()

    async def enable(self):
        self._scanner = BleakScanner(
            detection_callback=self._detection_callback,
            scanning_mode=self.scanning_mode,
        )
        await self._scanner.start()
        logger.debug("BleakScanner started (%s)", self.scanning_mode)

    def _detection_callback(self, device: BLEDevice, advertisement_data: AdvertisementData):
        if self._deliver is None:
            return
        self._deliver(scan_result_from_bleak(device, advertisement_data))

    async def scan(self, deliver: Callable[[ScanResult], None]):
        if self._scanner is None:
            raise RuntimeError("radio not enabled")
        self._deliver = deliver
        await self._stopped.wait()

    async def stop_scan(self):
        try:
            await self._scanner.stop()
            logger.debug("BleakScanner stopped")
        finally:
            self._deliver = None
            self._stopped.set()
