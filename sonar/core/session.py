"""
Sonar Scan Session
===================

One scan run, from the first advertisement to the final report.

A :class:`ScanSession` owns the :class:`DeviceStore`, the set of vendor
ids missing from the vendor table and the global detection counter.
Event delivery may come from a radio callback thread, so
:meth:`ScanSession.ingest` runs under a lock.  :meth:`ScanSession.finalize`
takes the same lock, freezes the store and builds the report exactly
once; later calls return the cached report.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from datetime import datetime
from typing import Callable, Optional

from shared.errors import CorrelationConsistencyError, SessionClosedError
from shared.logger import SonarLogger

from sonar.analyzers.correlation import RSSI_TOLERANCE_DB, IdentityCorrelator
from sonar.analyzers.rules import rules_for_vendor
from sonar.core.catalog import DeviceCatalog
from sonar.core.models import (
    AdvertisementEvent,
    BandChangeNotice,
    DetectionNotice,
    DeviceRecord,
    NewDeviceNotice,
    SessionReport,
    TypeStat,
    VendorSection,
    utcnow,
)
from sonar.core.store import DeviceStore, Notice
from sonar.parsers.manufacturer import decode_manufacturer_entries
from sonar.parsers.services import infer_type_from_services, resolve_service_names

logger = SonarLogger("sonar.core.session")


class ScanSession:
    """Decode, track and finally correlate the advertisements of one run.

    Args:
        catalog: Lookup tables for payload and service decoding.
        family_vendor: Vendor name whose records go through correlation.
        tolerance_db: RSSI tolerance for the correlation pass.
        clock: Time source, UTC-aware. Overridable for tests.
    """

    def __init__(
        self,
        catalog: Optional[DeviceCatalog] = None,
        *,
        family_vendor: str = "Apple",
        tolerance_db: int = RSSI_TOLERANCE_DB,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.catalog = catalog or DeviceCatalog.load()
        self.family_vendor = family_vendor
        self.tolerance_db = tolerance_db
        self._clock = clock
        self.started_at = clock()
        self.store = DeviceStore()
        self._unknown_vendor_ids: dict[str, None] = {}
        self._detections = 0
        self._lock = threading.Lock()
        self._report: Optional[SessionReport] = None
        self._failure: Optional[CorrelationConsistencyError] = None
        self._finalized = False

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def on_new_device(self, listener: Callable[[NewDeviceNotice], None]) -> None:
        self.store.on_new_device(listener)

    def on_band_change(self, listener: Callable[[BandChangeNotice], None]) -> None:
        self.store.on_band_change(listener)

    def on_detection(self, listener: Callable[[DetectionNotice], None]) -> None:
        self.store.on_detection(listener)

    # ------------------------------------------------------------------
    # Ingest
    # ------------------------------------------------------------------

    def ingest(self, event: AdvertisementEvent) -> list[Notice]:
        """Decode *event* and apply it to the store.

        Raises:
            SessionClosedError: The session has already been finalized.
        """
        info = decode_manufacturer_entries(event.manufacturer_entries, self.catalog)
        if info is not None and info.device_type is None:
            tag = infer_type_from_services(event.service_uuids, self.catalog)
            if tag:
                info = info.model_copy(update={"device_type": tag})
        services = resolve_service_names(event.service_uuids, self.catalog)

        with self._lock:
            if self._finalized:
                raise SessionClosedError("session already finalized")
            self._detections += 1
            if info is not None and not info.known_vendor:
                if info.vendor_id not in self._unknown_vendor_ids:
                    logger.debug("Unknown vendor id", vendor_id=info.vendor_id)
                self._unknown_vendor_ids[info.vendor_id] = None
            return self.store.apply(event, info, services)

    @property
    def detections(self) -> int:
        return self._detections

    @property
    def unknown_vendor_ids(self) -> list[str]:
        """Vendor ids missing from the table, in first-seen order."""
        return list(self._unknown_vendor_ids)

    @property
    def finalized(self) -> bool:
        return self._finalized

    # ------------------------------------------------------------------
    # Finalize
    # ------------------------------------------------------------------

    def finalize(self) -> SessionReport:
        """Freeze the store and build the session report (idempotent).

        A correlation fault is raised once and re-raised on later calls;
        the report is never rebuilt.
        """
        with self._lock:
            if self._failure is not None:
                raise self._failure
            if self._report is not None:
                logger.debug("finalize() called again; returning cached report")
                return self._report

            self._finalized = True
            self.store.freeze()
            try:
                with logger.timed("session finalize"):
                    self._report = self._build_report()
            except CorrelationConsistencyError as exc:
                self._failure = exc
                raise
            logger.info(
                "Session finalized",
                identifiers=len(self._report.records),
                detections=self._report.total_detections,
                family_devices=len(self._report.family_groups),
            )
            return self._report

    def _build_report(self) -> SessionReport:
        records = self.store.records()

        stats: dict[str, TypeStat] = {}
        for record in records:
            stat = stats.setdefault(record.stats_key, TypeStat(key=record.stats_key))
            stat.devices += 1
            stat.detections += record.detections
        type_stats = sorted(stats.values(), key=lambda s: -s.detections)

        by_vendor: dict[str, list[DeviceRecord]] = defaultdict(list)
        unidentified: list[DeviceRecord] = []
        for record in records:
            if record.info is None or not record.info.known_vendor:
                unidentified.append(record)
            else:
                by_vendor[record.info.vendor_name].append(record)

        family_groups = []
        rules = rules_for_vendor(self.family_vendor)
        family_records = by_vendor.get(self.family_vendor, [])
        if family_records and rules is None:
            logger.warning(
                "No correlation rules for vendor family; reporting it ungrouped",
                vendor=self.family_vendor,
            )
        elif family_records:
            correlator = IdentityCorrelator(rules, self.tolerance_db)
            family_groups = correlator.correlate(family_records)
            family_groups.sort(key=lambda g: -g.total_hits)
            del by_vendor[self.family_vendor]

        sections = [
            VendorSection(vendor_name=name, records=_by_detections(members))
            for name, members in by_vendor.items()
        ]
        sections.sort(key=lambda s: -s.total_detections)

        return SessionReport(
            started_at=self.started_at,
            finished_at=self._clock(),
            total_detections=self._detections,
            records=records,
            type_stats=type_stats,
            family_name=self.family_vendor,
            family_groups=family_groups,
            vendor_sections=sections,
            unidentified=_by_detections(unidentified),
            unknown_vendor_ids=self.unknown_vendor_ids,
        )


def _by_detections(records: list[DeviceRecord]) -> list[DeviceRecord]:
    return sorted(records, key=lambda r: -r.detections)
