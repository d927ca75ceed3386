from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple
import uuid
import struct

BT_BASE_UUID = uuid.UUID("00000000-0000-1000-8000-00805F9B34FB")

# AD Type constants
_AD_UUID16_COMPLETE            = 0x03
_AD_UUID32_COMPLETE            = 0x05
_AD_UUID128_COMPLETE           = 0x07
_AD_LOCAL_NAME_COMPLETE        = 0x09
_AD_TX_POWER                   = 0x0A
_AD_SERVICE_DATA_16            = 0x16
_AD_SERVICE_DATA_32            = 0x20
_AD_SERVICE_DATA_128           = 0x21
_AD_MANUFACTURER_SPECIFIC_DATA = 0xFF

_BASE_SUFFIX = BT_BASE_UUID.int & ((1 << 96) - 1)


@dataclass(frozen=True)
class ManufacturerData:
    company_id: int
    data: bytes


@dataclass(frozen=True)
class ServiceData:
    uuid: uuid.UUID
    data: bytes


@dataclass(frozen=True)
class ScanResult:
    """One observed advertisement, as handed over by the radio driver."""
    address: str
    rssi: int
    local_name: str = ""
    manufacturer_data: Tuple[ManufacturerData, ...] = ()
    service_data: Tuple[ServiceData, ...] = ()
    raw: bytes = b""
    # raw rebuilt from parsed fields rather than received
    raw_reconstructed: bool = False


def _short_uuid(u: uuid.UUID) -> Optional[int]:
    # 16/32-bit value if u sits on the Bluetooth Base UUID, else None
    if u.int & ((1 << 96) - 1) != _BASE_SUFFIX:
        return None
    return u.int >> 96

def _uuid_to_le_128(u: uuid.UUID) -> bytes:
    """Inverse of the AD payload layout: 128-bit UUIDs travel little-endian."""
    lo = u.int & ((1 << 64) - 1)
    hi = u.int >> 64
    return struct.pack("<QQ", lo, hi)

def _ad(ad_type: int, value: bytes) -> bytes:
    if len(value) > 254:
        raise ValueError(f"AD type 0x{ad_type:02x} value too long ({len(value)} bytes)")
    return bytes((len(value) + 1, ad_type)) + value

def encode_ad_structures(fields: Iterable[Tuple[int, bytes]]) -> bytes:
    """Concatenate (ad_type, value) pairs as [len][type][value] AD structures."""
    return b"".join(_ad(ad_type, value) for ad_type, value in fields)

def _encode_uuid_lists(uuids: Iterable[uuid.UUID]) -> bytes:
    u16: List[bytes] = []
    u32: List[bytes] = []
    u128: List[bytes] = []
    for u in uuids:
        short = _short_uuid(u)
        if short is None:
            u128.append(_uuid_to_le_128(u))
        elif short <= 0xFFFF:
            u16.append(struct.pack("<H", short))
        else:
            u32.append(struct.pack("<I", short))
    out = b""
    if u16:
        out += _ad(_AD_UUID16_COMPLETE, b"".join(u16))
    if u32:
        out += _ad(_AD_UUID32_COMPLETE, b"".join(u32))
    if u128:
        out += _ad(_AD_UUID128_COMPLETE, b"".join(u128))
    return out

def _encode_service_data(sd: ServiceData) -> bytes:
    short = _short_uuid(sd.uuid)
    if short is None:
        return _ad(_AD_SERVICE_DATA_128, _uuid_to_le_128(sd.uuid) + sd.data)
    if short <= 0xFFFF:
        return _ad(_AD_SERVICE_DATA_16, struct.pack("<H", short) + sd.data)
    return _ad(_AD_SERVICE_DATA_32, struct.pack("<I", short) + sd.data)

def build_advertisement(
    local_name: Optional[str] = None,
    service_uuids: Iterable[uuid.UUID] = (),
    tx_power: Optional[int] = None,
    manufacturer_data: Iterable[ManufacturerData] = (),
    service_data: Iterable[ServiceData] = (),
) -> bytes:
    """Serialise already-parsed advertisement fields into AD structures.

    Not every bleak backend hands out the on-air payload, so the raw bytes
    shown for a result are rebuilt from the fields the driver parsed. Field
    order: name, TX power, service UUIDs, service data, manufacturer data.
    """
    out = b""
    if local_name:
        out += _ad(_AD_LOCAL_NAME_COMPLETE, local_name.encode("utf-8"))
    if tx_power is not None:
        out += _ad(_AD_TX_POWER, struct.pack("b", tx_power))
    out += _encode_uuid_lists(service_uuids)
    for sd in service_data:
        out += _encode_service_data(sd)
    for md in manufacturer_data:
        out += _ad(_AD_MANUFACTURER_SPECIFIC_DATA, struct.pack("<H", md.company_id) + md.data)
    return out
