#!/usr/bin/env python3
"""
BLE advertisement sniffer
- Prints every advertisement heard: address, RSSI, estimated distance,
  local name, manufacturer/service data and raw AD bytes.
- Optional case-insensitive address filter (-addr aa:bb).
- Runs until SIGINT/SIGTERM, then stops the scan cleanly.
"""

import argparse
import asyncio
import logging
import signal
import sys

from adv_report import format_report
from ble_radio import AdapterError, BleakRadio, ScanError, StopError
from ble_scanrecord import ScanResult

logger = logging.getLogger(__name__)

IDLE = "idle"
SCANNING = "scanning"
CANCELLING = "cancelling"
STOPPED = "stopped"


class BluetoothSniffer:
    """Routes scan results from an enabled radio through the address filter to stdout.

    Build it with create(), which enables the radio first.
    """

    def __init__(self, radio, filter_addr: str = ""):
        self.radio = radio
        self.filter_addr = (filter_addr or "").lower()
        self.state = IDLE
        self.reported = 0
        self.dropped = 0

    @classmethod
    async def create(cls, radio, filter_addr: str = ""):
        try:
            await radio.enable()
        except Exception as e:
            raise AdapterError(f"failed to enable bluetooth: {e}") from e
        return cls(radio, filter_addr)

    def matches(self, address: str) -> bool:
        return not self.filter_addr or self.filter_addr in address.lower()

    def handle(self, result: ScanResult) -> bool:
        """Report one result if it passes the address filter."""
        if not self.matches(result.address):
            return False
        # single write per report so output never interleaves
        print(format_report(result), end="", flush=True)
        self.reported += 1
        return True

    async def start(self, cancelled: asyncio.Event):
        print("Starting Bluetooth advertisement scanner...")
        if self.filter_addr:
            print(f"Filtering devices containing address: {self.filter_addr}")
        print("Press Ctrl+C to stop\n", flush=True)

        results: "asyncio.Queue[ScanResult]" = asyncio.Queue()
        scan_task = asyncio.ensure_future(self.radio.scan(results.put_nowait))
        cancel_task = asyncio.ensure_future(cancelled.wait())
        self.state = SCANNING
        try:
            while True:
                get_task = asyncio.ensure_future(results.get())
                done, _ = await asyncio.wait(
                    {get_task, scan_task, cancel_task},
                    return_when=asyncio.FIRST_COMPLETED,
                )
                if cancelled.is_set():
                    get_task.cancel()
                    if get_task in done:
                        self.dropped += 1
                    self.dropped += results.qsize()
                    break
                if get_task in done:
                    self.handle(get_task.result())
                    continue
                get_task.cancel()
                if scan_task in done:
                    self.state = STOPPED
                    err = scan_task.exception()
                    if err is not None:
                        raise ScanError(f"scanning failed: {err}") from err
                    logger.debug("scan ended on its own after %d reports", self.reported)
                    return
        finally:
            cancel_task.cancel()

        await self._stop(scan_task)

    async def _stop(self, scan_task: asyncio.Future):
        self.state = CANCELLING
        try:
            await self.radio.stop_scan()
        except Exception as e:
            self.state = STOPPED
            scan_task.cancel()
            raise StopError(f"failed to stop scanning: {e}") from e

        if not scan_task.done():
            scan_task.cancel()
        outcome, = await asyncio.gather(scan_task, return_exceptions=True)
        if isinstance(outcome, Exception):
            logger.debug("scan task ended with %r after stop", outcome)
        self.state = STOPPED
        logger.debug("stopped: %d reported, %d dropped after cancel", self.reported, self.dropped)


def parse_args(argv=None):
    ap = argparse.ArgumentParser(description="Print BLE advertisements heard nearby until interrupted.")
    ap.add_argument("-addr", "--addr", dest="addr", default="",
                    help="Filter devices by address (partial match, case insensitive)")
    return ap.parse_args(argv)


def _install_signal_handlers(cancelled: asyncio.Event):
    loop = asyncio.get_running_loop()

    def _on_signal():
        if not cancelled.is_set():
            print("\nShutting down...", flush=True)
        cancelled.set()

    installed = []
    previous = []
    for signame in ("SIGINT", "SIGTERM"):
        if not hasattr(signal, signame):
            continue
        signum = getattr(signal, signame)
        try:
            loop.add_signal_handler(signum, _on_signal)
            installed.append(signum)
        except NotImplementedError:
            # no loop signal support (Windows): route through the C handler
            previous.append((signum, signal.getsignal(signum)))
            signal.signal(signum, lambda *_: loop.call_soon_threadsafe(_on_signal))
    return installed, previous


async def run(filter_addr: str = "", radio=None):
    cancelled = asyncio.Event()
    installed, previous = _install_signal_handlers(cancelled)
    try:
        sniffer = await BluetoothSniffer.create(radio if radio is not None else BleakRadio(), filter_addr)
        await sniffer.start(cancelled)
    finally:
        loop = asyncio.get_running_loop()
        for signum in installed:
            loop.remove_signal_handler(signum)
        for signum, handler in previous:
            signal.signal(signum, handler)


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s: %(message)s")
    try:
        asyncio.run(run(args.addr))
    except AdapterError as e:
        logger.error("Failed to create bluetooth sniffer: %s", e)
        return 1
    except (ScanError, StopError) as e:
        logger.error("Failed to start sniffer: %s", e)
        return 1
    print("Bluetooth sniffer stopped.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
