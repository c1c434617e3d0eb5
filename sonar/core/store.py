"""
Sonar Device Tracking Store
============================

Owns one :class:`DeviceRecord` per identifier for the lifetime of a
scan session and turns each decoded advertisement into edge-triggered
notifications.

Per-identifier lifecycle::

    Unseen --first event--> New --repeat events--> Tracked
                                  \\-- Unnamed -> Named (one way)
                                  \\-- band change (edge, re-emitted)

Records are never removed.  Tags only grow, RSSI bounds are running
extrema and the detection counter rises by exactly one per event.

The store does no locking of its own; :class:`sonar.core.session.ScanSession`
serialises calls to :meth:`DeviceStore.apply`.
"""

from __future__ import annotations

from typing import Callable, Optional, Sequence, Union

from shared.errors import SessionClosedError
from shared.logger import SonarLogger

from sonar.analyzers.distance import distance_band
from sonar.core.models import (
    AdvertisementEvent,
    BandChangeNotice,
    DetectionNotice,
    DeviceRecord,
    ManufacturerInfo,
    NewDeviceNotice,
)

logger = SonarLogger("sonar.core.store")

Notice = Union[NewDeviceNotice, BandChangeNotice, DetectionNotice]
Listener = Callable[[Notice], None]

UNNAMED_DEVICE = "Unknown device"


class DeviceStore:
    """Identifier-keyed record map with notification listeners.

    Usage::

        store = DeviceStore()
        store.on_new_device(lambda n: print(n.snapshot.display_name))
        store.apply(event, info, services)
    """

    def __init__(self) -> None:
        self._records: dict[str, DeviceRecord] = {}
        self._new_listeners: list[Listener] = []
        self._band_listeners: list[Listener] = []
        self._detection_listeners: list[Listener] = []
        self._frozen = False

    # ------------------------------------------------------------------
    # Listener registration
    # ------------------------------------------------------------------

    def on_new_device(self, listener: Callable[[NewDeviceNotice], None]) -> None:
        self._new_listeners.append(listener)

    def on_band_change(self, listener: Callable[[BandChangeNotice], None]) -> None:
        self._band_listeners.append(listener)

    def on_detection(self, listener: Callable[[DetectionNotice], None]) -> None:
        self._detection_listeners.append(listener)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def apply(
        self,
        event: AdvertisementEvent,
        info: Optional[ManufacturerInfo],
        services: Sequence[str],
    ) -> list[Notice]:
        """Fold one decoded advertisement into its record.

        Args:
            event: The raw advertisement.
            info: Decoded manufacturer info (after any service-tag
                fallback), or ``None``.
            services: Resolved service names for this event.

        Returns:
            Notices emitted for this event, in emission order.

        Raises:
            SessionClosedError: The store has been frozen.
        """
        if self._frozen:
            raise SessionClosedError("device store is frozen; session already finalized")

        record = self._records.get(event.identifier)
        if record is None:
            notices: list[Notice] = [self._create(event, info, services)]
        else:
            notices = self._update(record, event, info, services)

        for notice in notices:
            self._emit(notice)
        return notices

    def _create(
        self,
        event: AdvertisementEvent,
        info: Optional[ManufacturerInfo],
        services: Sequence[str],
    ) -> NewDeviceNotice:
        record = DeviceRecord(
            identifier=event.identifier,
            address=event.resolved_address,
            name=event.name if event.has_name else UNNAMED_DEVICE,
            has_name=event.has_name,
            rssi=event.rssi,
            rssi_min=event.rssi,
            rssi_max=event.rssi,
            info=info,
            stats_key=info.stats_key if info else "Unknown",
            tags={info.device_type} if info and info.device_type else set(),
            services=list(services),
            band=distance_band(event.rssi),
            first_seen=event.observed_at,
            last_seen=event.observed_at,
        )
        self._records[record.identifier] = record
        logger.debug("New identifier", identifier=record.identifier, named=record.has_name)
        return NewDeviceNotice(snapshot=record.snapshot())

    def _update(
        self,
        record: DeviceRecord,
        event: AdvertisementEvent,
        info: Optional[ManufacturerInfo],
        services: Sequence[str],
    ) -> list[Notice]:
        notices: list[Notice] = []

        record.rssi = event.rssi
        record.rssi_min = min(record.rssi_min, event.rssi)
        record.rssi_max = max(record.rssi_max, event.rssi)
        record.detections += 1
        record.last_seen = max(record.last_seen, event.observed_at)

        upgraded = event.has_name and not record.has_name
        if upgraded:
            record.name = event.name or UNNAMED_DEVICE
            record.has_name = True

        previous = record.band
        record.band = distance_band(event.rssi)

        if info is not None:
            if info.device_type:
                record.tags.add(info.device_type)
            if record.info is None or (info.device_type and not record.info.device_type):
                record.info = info
                record.stats_key = info.stats_key

        if services and not record.services:
            record.services = list(services)

        # Snapshot after every field above is current
        if upgraded:
            notices.append(NewDeviceNotice(snapshot=record.snapshot(), upgraded=True))

        if record.band != previous:
            notices.append(
                BandChangeNotice(
                    identifier=record.identifier,
                    display_name=record.display_name,
                    previous=previous,
                    current=record.band,
                    rssi=event.rssi,
                )
            )

        notices.append(
            DetectionNotice(
                identifier=record.identifier,
                display_name=event.name if event.has_name else UNNAMED_DEVICE,
                rssi=event.rssi,
                detections=record.detections,
            )
        )
        return notices

    def _emit(self, notice: Notice) -> None:
        if isinstance(notice, NewDeviceNotice):
            listeners = self._new_listeners
        elif isinstance(notice, BandChangeNotice):
            listeners = self._band_listeners
        else:
            listeners = self._detection_listeners

        for listener in listeners:
            try:
                listener(notice)
            except Exception:
                logger.exception(
                    "Listener raised; notification dropped",
                    listener=getattr(listener, "__qualname__", repr(listener)),
                    notice=type(notice).__name__,
                )

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    def freeze(self) -> None:
        """Reject all further mutation."""
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, identifier: str) -> Optional[DeviceRecord]:
        return self._records.get(identifier)

    def records(self) -> list[DeviceRecord]:
        """All records in first-seen order."""
        return list(self._records.values())

    @property
    def named_count(self) -> int:
        return sum(1 for r in self._records.values() if r.has_name)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._records
