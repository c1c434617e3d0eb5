"""
Sonar Core
===========

Domain models, lookup catalog, tracking store, session lifecycle and
orchestration engine for Sonar.

The engine and session are imported from their modules directly
(``sonar.core.engine``, ``sonar.core.session``); this package only
re-exports the models.
"""

from sonar.core.models import (
    AdvertisementEvent,
    BandChangeNotice,
    CorrelationGroup,
    DetectionNotice,
    DeviceRecord,
    DeviceSnapshot,
    ManufacturerInfo,
    NewDeviceNotice,
    ProximityBand,
    SessionReport,
    TypeStat,
    VendorSection,
)

__all__ = [
    "AdvertisementEvent",
    "BandChangeNotice",
    "CorrelationGroup",
    "DetectionNotice",
    "DeviceRecord",
    "DeviceSnapshot",
    "ManufacturerInfo",
    "NewDeviceNotice",
    "ProximityBand",
    "SessionReport",
    "TypeStat",
    "VendorSection",
]
