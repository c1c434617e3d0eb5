"""
Sonar Service Tag Resolver
===========================

Resolves advertised GATT service identifiers to human names and infers
a semantic device-type tag from them.  Identifiers arrive either as
16-bit short forms (``"180d"``, ``"0x180D"``) or as longer strings.
For long identifiers the first four hex digits are tried, which covers
stacks that report vendor 128-bit UUIDs with the 16-bit alias up front.

Reference:
    Bluetooth SIG. (2023). Assigned Numbers. Section 3.4: GATT Services.
"""

from __future__ import annotations

from typing import Optional, Sequence

from sonar.core.catalog import DeviceCatalog

# Short identifiers are at most this long (``"0000180d"`` included)
_SHORT_FORM_MAX_LEN = 8

# Bluetooth Base UUID 0000xxxx-0000-1000-8000-00805F9B34FB, minus the alias
BLUETOOTH_BASE_SUFFIX = "00001000800000805f9b34fb"


def _lookup_keys(uuid: str) -> list[str]:
    """Table keys to try for *uuid*, most specific first."""
    keys: list[str] = []
    compact = uuid.replace("-", "").lower()
    if len(uuid) <= _SHORT_FORM_MAX_LEN:
        short = compact[2:] if compact.startswith("0x") else compact
        if len(short) == 8 and short.startswith("0000"):
            short = short[4:]
        keys.append(short)
    elif len(compact) == 32 and compact[8:] == BLUETOOTH_BASE_SUFFIX:
        keys.append(compact[4:8])
    if len(uuid) >= _SHORT_FORM_MAX_LEN:
        keys.append(compact[:4])
    return keys


def resolve_service_name(uuid: str, catalog: DeviceCatalog) -> str:
    """Return the human name for *uuid*, or *uuid* unchanged when unknown."""
    for key in _lookup_keys(uuid):
        name = catalog.service_names.get(key)
        if name:
            return name
    return uuid


def resolve_service_names(uuids: Sequence[str], catalog: DeviceCatalog) -> list[str]:
    """Resolve every identifier, preserving order and unresolved entries."""
    return [resolve_service_name(u, catalog) for u in uuids]


def infer_type_from_services(
    uuids: Sequence[str],
    catalog: DeviceCatalog,
) -> Optional[str]:
    """Tag of the first identifier (in list order) found in the tag table."""
    for uuid in uuids:
        for key in _lookup_keys(uuid):
            tag = catalog.service_tags.get(key)
            if tag:
                return tag
    return None
