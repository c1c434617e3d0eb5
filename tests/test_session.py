from __future__ import annotations

import threading

import pytest

from shared.errors import CorrelationConsistencyError, SessionClosedError
from sonar.analyzers.correlation import IdentityCorrelator
from sonar.core.catalog import DeviceCatalog
from sonar.core.models import NewDeviceNotice
from sonar.core.session import ScanSession


def test_ingest_decodes_vendor_and_subtype(catalog: DeviceCatalog, make_event) -> None:
    session = ScanSession(catalog)
    session.ingest(make_event("id-1", payload="4c000c0e00"))

    record = session.store.get("id-1")
    assert record is not None
    assert record.info is not None and record.info.vendor_name == "Apple"
    assert record.tags == {"Handoff"}


def test_service_tag_fills_missing_subtype(catalog: DeviceCatalog, make_event) -> None:
    session = ScanSession(catalog)
    session.ingest(make_event("id-1", payload="4c00ff01", services=["fd44"]))

    record = session.store.get("id-1")
    assert record is not None
    assert record.info is not None and record.info.device_type == "Find My Network"
    assert record.tags == {"Find My Network"}
    assert record.services == ["Apple Find My Network"]


def test_service_tag_not_used_without_payload(catalog: DeviceCatalog, make_event) -> None:
    session = ScanSession(catalog)
    session.ingest(make_event("id-1", services=["180d"]))

    record = session.store.get("id-1")
    assert record is not None
    assert record.info is None
    assert record.tags == set()
    assert record.services == ["Heart Rate"]


def test_unknown_vendor_ids_are_collected_once(catalog: DeviceCatalog, make_event) -> None:
    session = ScanSession(catalog)
    session.ingest(make_event("a", payload="cdab01"))
    session.ingest(make_event("b", payload="cdab02"))
    session.ingest(make_event("c", payload="3412"))

    assert session.unknown_vendor_ids == ["abcd", "1234"]
    assert session.detections == 3


def test_finalize_groups_by_vendor(catalog: DeviceCatalog, make_event) -> None:
    session = ScanSession(catalog)
    session.ingest(make_event("phone", name="Kim's Phone", rssi=-60, payload="4c000c00"))
    for _ in range(3):
        session.ingest(make_event("shadow", rssi=-65, payload="4c001200"))
    session.ingest(make_event("galaxy", name="Galaxy S24", payload="750001"))
    session.ingest(make_event("galaxy", payload="750001"))
    session.ingest(make_event("nordic", payload="590001"))
    session.ingest(make_event("mystery", payload="cdab01"))
    session.ingest(make_event("silent"))

    report = session.finalize()

    assert report.total_detections == 9
    assert len(report.records) == 6
    assert report.family_name == "Apple"
    assert len(report.family_groups) == 1
    group = report.family_groups[0]
    assert group.identifiers == ["phone", "shadow"]
    assert group.tags == {"Handoff", "Find My"}
    assert group.total_hits == 4
    assert [s.vendor_name for s in report.vendor_sections] == [
        "Samsung Electronics Co. Ltd.",
        "Nordic Semiconductor ASA",
    ]
    assert {r.identifier for r in report.unidentified} == {"mystery", "silent"}
    assert report.unknown_vendor_ids == ["abcd"]
    assert report.named_count == 2
    assert report.family_identifier_count == 2
    stats = {s.key: (s.devices, s.detections) for s in report.type_stats}
    assert stats["Apple - Find My"] == (1, 3)
    assert stats["Unknown"] == (1, 1)
    assert report.type_stats[0].key == "Apple - Find My"


def test_finalize_is_idempotent(catalog: DeviceCatalog, make_event) -> None:
    session = ScanSession(catalog)
    session.ingest(make_event("id-1", payload="4c001000"))

    first = session.finalize()
    second = session.finalize()

    assert first is second
    assert session.finalized


def test_failed_finalize_is_not_rerun(
    catalog: DeviceCatalog, make_event, monkeypatch: pytest.MonkeyPatch
) -> None:
    calls: list[int] = []

    def _broken(self, records):
        calls.append(len(records))
        raise CorrelationConsistencyError("broken", duplicated=[], missing=["id-1"])

    monkeypatch.setattr(IdentityCorrelator, "correlate", _broken)
    session = ScanSession(catalog)
    session.ingest(make_event("id-1", payload="4c001000"))

    with pytest.raises(CorrelationConsistencyError) as first:
        session.finalize()
    with pytest.raises(CorrelationConsistencyError) as second:
        session.finalize()

    assert first.value is second.value
    assert calls == [1]
    assert session.finalized
    with pytest.raises(SessionClosedError):
        session.ingest(make_event("id-1"))


def test_ingest_after_finalize_is_rejected(catalog: DeviceCatalog, make_event) -> None:
    session = ScanSession(catalog)
    session.ingest(make_event("id-1"))
    session.finalize()

    with pytest.raises(SessionClosedError):
        session.ingest(make_event("id-1"))
    assert session.detections == 1


def test_family_without_rules_is_reported_as_vendor(catalog: DeviceCatalog, make_event) -> None:
    session = ScanSession(catalog, family_vendor="Google")
    session.ingest(make_event("g", payload="e00001"))

    report = session.finalize()

    assert report.family_groups == []
    assert [s.vendor_name for s in report.vendor_sections] == ["Google"]


def test_listeners_receive_notices(catalog: DeviceCatalog, make_event) -> None:
    session = ScanSession(catalog)
    seen: list[NewDeviceNotice] = []
    session.on_new_device(seen.append)

    session.ingest(make_event("id-1"))
    session.ingest(make_event("id-1", name="Named"))

    assert [n.upgraded for n in seen] == [False, True]


def test_concurrent_ingest_counts_every_event(catalog: DeviceCatalog, make_event) -> None:
    session = ScanSession(catalog)
    events = [make_event(f"id-{i % 5}", payload="4c001000") for i in range(200)]

    def _feed(chunk):
        for event in chunk:
            session.ingest(event)

    threads = [threading.Thread(target=_feed, args=(events[i::4],)) for i in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    report = session.finalize()
    assert report.total_detections == 200
    assert sum(r.detections for r in report.records) == 200
