from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional

import pytest

from sonar.analyzers.distance import distance_band
from sonar.core.catalog import DeviceCatalog
from sonar.core.models import AdvertisementEvent, DeviceRecord, ManufacturerInfo

T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

APPLE = ManufacturerInfo(vendor_id="004c", vendor_name="Apple", raw_hex="4c00")


@pytest.fixture(scope="session")
def catalog() -> DeviceCatalog:
    return DeviceCatalog.load()


@pytest.fixture
def make_record() -> Callable[..., DeviceRecord]:
    def _make(
        identifier: str,
        *,
        name: Optional[str] = None,
        tags: Iterable[str] = (),
        rssi_max: int = -60,
        detections: int = 1,
        info: Optional[ManufacturerInfo] = APPLE,
    ) -> DeviceRecord:
        return DeviceRecord(
            identifier=identifier,
            address=identifier,
            name=name or "Unknown device",
            has_name=name is not None,
            rssi=rssi_max,
            rssi_min=rssi_max,
            rssi_max=rssi_max,
            info=info,
            stats_key=info.stats_key if info else "Unknown",
            tags=set(tags),
            band=distance_band(rssi_max),
            detections=detections,
            first_seen=T0,
            last_seen=T0,
        )

    return _make


@pytest.fixture
def make_event() -> Callable[..., AdvertisementEvent]:
    counter = {"n": 0}

    def _make(
        identifier: str = "AA:BB:CC:DD:EE:01",
        *,
        rssi: int = -60,
        name: Optional[str] = None,
        payload: Optional[str] = None,
        services: Iterable[str] = (),
        address: Optional[str] = None,
    ) -> AdvertisementEvent:
        counter["n"] += 1
        return AdvertisementEvent(
            identifier=identifier,
            address=address if address is not None else identifier,
            rssi=rssi,
            name=name,
            manufacturer_data=bytes.fromhex(payload) if payload else None,
            service_uuids=list(services),
            observed_at=T0 + timedelta(seconds=counter["n"]),
        )

    return _make
