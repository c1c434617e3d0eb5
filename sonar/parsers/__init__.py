"""
Sonar Parsers
==============

Pure decoders for advertisement payloads.

Modules:
    manufacturer  -- Manufacturer-specific data (vendor id, sub-type)
    services      -- Service identifier names and type tags
"""

from sonar.parsers.manufacturer import (
    decode_manufacturer_data,
    decode_manufacturer_entries,
    swap_bytes,
)
from sonar.parsers.services import (
    infer_type_from_services,
    resolve_service_name,
    resolve_service_names,
)

__all__ = [
    "decode_manufacturer_data",
    "decode_manufacturer_entries",
    "swap_bytes",
    "infer_type_from_services",
    "resolve_service_name",
    "resolve_service_names",
]
