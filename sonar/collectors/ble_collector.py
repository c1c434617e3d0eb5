"""
Sonar BLE Collector
====================

Live advertisement source backed by Bleak.  Every advertisement Bleak
reports is converted into one :class:`AdvertisementEvent` and handed
to a sink callable (normally :meth:`ScanSession.ingest`).

Bleak already splits manufacturer-specific data into
``{company_id: payload}``.  The company id is written back in front of
the payload as two little-endian bytes so the payload decoder sees the
advertisement exactly as it went over the air.

References:
    - Bleak Documentation. https://bleak.readthedocs.io/
    - Bluetooth SIG. (2023). Core Specification v5.4. Vol 3, Part C,
      Section 11: Advertising and Scan Response Data Format.
"""

from __future__ import annotations

import asyncio
import re
from typing import Any, Callable, Optional

from shared.errors import CollectorError
from shared.logger import SonarLogger

from sonar.core.models import AdvertisementEvent, utcnow

logger = SonarLogger("sonar.collectors.ble")

EventSink = Callable[[AdvertisementEvent], Any]

_MAC_RE = re.compile(r"^[0-9A-Fa-f]{2}(:[0-9A-Fa-f]{2}){5}$")


def build_event(device: Any, advertisement_data: Any) -> AdvertisementEvent:
    """Convert one Bleak detection into a single advertisement event.

    The first manufacturer-data entry becomes ``manufacturer_data``; any
    further entries go to ``extra_manufacturer_data`` and are decoded
    together with it.

    Args:
        device: Bleak ``BLEDevice``.
        advertisement_data: Bleak ``AdvertisementData``.
    """
    identifier = str(device.address)
    # CoreBluetooth hides hardware addresses behind per-host UUIDs
    address = identifier.upper() if _MAC_RE.match(identifier) else None
    name = getattr(advertisement_data, "local_name", None) or None
    rssi = getattr(advertisement_data, "rssi", None)
    if rssi is None:
        rssi = -127
    services = [str(u) for u in (getattr(advertisement_data, "service_uuids", None) or [])]
    observed_at = utcnow()

    payloads = [
        int(company_id).to_bytes(2, byteorder="little") + bytes(data)
        for company_id, data in (
            getattr(advertisement_data, "manufacturer_data", None) or {}
        ).items()
    ]

    return AdvertisementEvent(
        identifier=identifier,
        address=address,
        rssi=int(rssi),
        name=name,
        manufacturer_data=payloads[0] if payloads else None,
        extra_manufacturer_data=payloads[1:],
        service_uuids=services,
        observed_at=observed_at,
    )


class BLECollector:
    """Live BLE scanner feeding advertisement events into a sink.

    Usage::

        collector = BLECollector()
        await collector.run(session.ingest, duration=60.0)

    The scan ends when *duration* elapses or *stop_event* is set,
    whichever comes first.  ``duration=None`` scans until stopped.
    """

    def __init__(self) -> None:
        self.events_delivered = 0

    async def run(
        self,
        sink: EventSink,
        duration: Optional[float] = None,
        stop_event: Optional[asyncio.Event] = None,
    ) -> None:
        """Scan and deliver events until the duration or stop event ends it.

        Raises:
            CollectorError: Bleak is not installed or the adapter could
                not be started.
        """
        try:
            from bleak import BleakScanner
        except ImportError as exc:
            raise CollectorError(
                "Live scanning requires the 'bleak' package. "
                "Install with: pip install bleak"
            ) from exc

        stop_event = stop_event or asyncio.Event()

        def _callback(device: Any, advertisement_data: Any) -> None:
            sink(build_event(device, advertisement_data))
            self.events_delivered += 1

        try:
            scanner = BleakScanner(detection_callback=_callback)
            await scanner.start()
        except Exception as exc:
            raise CollectorError(f"Could not start BLE scanner: {exc}") from exc

        logger.info("BLE scan started", duration=duration)
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=duration)
        except asyncio.TimeoutError:
            logger.debug("Scan duration elapsed")
        finally:
            await scanner.stop()
            logger.info("BLE scan stopped", events=self.events_delivered)
