from __future__ import annotations
from datetime import datetime
from typing import List, Optional

from ble_scanrecord import ScanResult

TX_POWER = -59.0      # dBm at 1 metre
PATH_LOSS = 2.0       # free-space exponent
MIN_DISTANCE = 0.1    # metres


def rssi_to_distance(rssi: int) -> float:
    """Estimate distance in metres from RSSI with the log-distance path loss model.

    distance = 10 ^ ((TX_POWER - rssi) / (10 * PATH_LOSS)), floored at MIN_DISTANCE.
    An RSSI of 0 means "no reading" and maps to 0.
    """
    if rssi == 0:
        return 0.0
    distance = 10 ** ((TX_POWER - rssi) / (10 * PATH_LOSS))
    return max(MIN_DISTANCE, distance)


def _timestamp(now: datetime) -> str:
    return now.strftime("%H:%M:%S.") + f"{now.microsecond // 1000:03d}"


def format_report(result: ScanResult, now: Optional[datetime] = None) -> str:
    """Render one scan result as the multi-line console report, blank line included."""
    now = now or datetime.now()
    lines: List[str] = [
        f"=== [{_timestamp(now)}] ===",
        f"Address: {result.address}",
        f"RSSI: {result.rssi} dBm",
        f"Estimated Distance: {rssi_to_distance(result.rssi):.2f}m",
    ]

    if result.local_name:
        lines.append(f"Local Name: {result.local_name}")

    if result.manufacturer_data:
        lines.append("Manufacturer Data:")
        for md in result.manufacturer_data:
            lines.append(f"  Company ID: 0x{md.company_id:04x}")
            lines.append(f"  Data: {md.data.hex()}")

    if result.service_data:
        lines.append("Service Data:")
        for sd in result.service_data:
            lines.append(f"  Service UUID: {sd.uuid}")
            lines.append(f"  Data: {sd.data.hex()}")

    if result.raw:
        label = "Raw Advertisement Data (reconstructed)" if result.raw_reconstructed else "Raw Advertisement Data"
        lines.append(f"{label}: {result.raw.hex()}")

    return "\n".join(lines) + "\n\n"
