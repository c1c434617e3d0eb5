"""
Sonar Manufacturer Payload Decoder
===================================

Decodes the manufacturer-specific data field of a BLE advertisement
into a vendor id, vendor name and (for a few vendors) a device-type tag.

Payload layout::

    byte 0-1   Company Identifier Code, little-endian
    byte 2     vendor-defined type byte (only interpreted for vendors
               with a known sub-type table)
    byte 3..   vendor-defined

Reference:
    Bluetooth SIG. (2023). Core Specification Supplement v11,
    Part A, Section 1.4: Manufacturer Specific Data.
"""

from __future__ import annotations

from typing import Iterable, Optional

from shared.logger import SonarLogger

from sonar.core.catalog import DeviceCatalog
from sonar.core.models import ManufacturerInfo

logger = SonarLogger("sonar.parsers.manufacturer")

MIN_PAYLOAD_BYTES = 2


def swap_bytes(hex4: str) -> str:
    """Swap the two bytes of a four-hex-digit string (``"4c00"`` -> ``"004c"``)."""
    return hex4[2:4] + hex4[0:2]


def unknown_vendor_name(vendor_id: str) -> str:
    return f"Unknown ({vendor_id})"


def decode_manufacturer_data(
    data: Optional[bytes],
    catalog: DeviceCatalog,
) -> Optional[ManufacturerInfo]:
    """Decode a raw manufacturer-data payload.

    Args:
        data: Raw payload bytes, company id first. May be ``None``.
        catalog: Vendor and sub-type tables.

    Returns:
        The decoded info, or ``None`` when fewer than two bytes are
        present. An id missing from the vendor table yields
        ``vendor_name="Unknown (<id>)"`` and ``known_vendor=False``.
    """
    if not data or len(data) < MIN_PAYLOAD_BYTES:
        return None

    raw_hex = bytes(data).hex()
    vendor_id = swap_bytes(raw_hex[0:4])

    vendor_name = catalog.vendor_name(vendor_id)
    known = vendor_name is not None
    if not known:
        vendor_name = unknown_vendor_name(vendor_id)

    device_type: Optional[str] = None
    if len(raw_hex) > 4:
        type_code = raw_hex[4:6]
        lookup = catalog.subtype_table(vendor_id)
        if lookup:
            device_type = lookup.get(type_code)

    return ManufacturerInfo(
        vendor_id=vendor_id,
        vendor_name=vendor_name,
        device_type=device_type,
        raw_hex=raw_hex,
        known_vendor=known,
    )


def decode_manufacturer_entries(
    entries: Iterable[Optional[bytes]],
    catalog: DeviceCatalog,
) -> Optional[ManufacturerInfo]:
    """Decode every manufacturer-data entry of one advertisement.

    The first entry that resolves a device type wins; otherwise the
    first decodable entry is used.
    """
    first: Optional[ManufacturerInfo] = None
    for data in entries:
        info = decode_manufacturer_data(data, catalog)
        if info is None:
            continue
        if info.device_type is not None:
            return info
        if first is None:
            first = info
    return first
