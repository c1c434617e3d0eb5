from __future__ import annotations

import random
from collections import Counter

import pytest

from shared.errors import CorrelationConsistencyError
from sonar.analyzers.correlation import IdentityCorrelator, correlate_records
from sonar.analyzers.rules import APPLE_RULES

ALL_TAGS = [
    "AirPlay Source",
    "AirPlay Target",
    "Handoff",
    "Nearby",
    "Hey Siri",
    "AirPods",
    "Find My",
    "Find My Network",
    "HomeKit",
]


def test_named_anchor_absorbs_nearby_locator(make_record) -> None:
    phone = make_record("p1", name="Kim's Phone", tags={"Handoff"}, rssi_max=-60, detections=10)
    locator = make_record("u1", tags={"Find My"}, rssi_max=-65, detections=3)

    groups = correlate_records([phone, locator])

    assert len(groups) == 1
    group = groups[0]
    assert group.name == "Kim's Phone"
    assert group.tags == {"Handoff", "Find My"}
    assert group.total_hits == 13
    assert group.identifiers == ["p1", "u1"]
    assert group.label == "iPhone / iPad"


def test_forbidden_pair_blocks_absorption(make_record) -> None:
    mac = make_record("m1", name="Kim's Mac", tags={"AirPlay Source"}, rssi_max=-60, detections=5)
    buds = make_record("u1", tags={"AirPods"}, rssi_max=-62, detections=4)

    groups = correlate_records([mac, buds])

    assert len(groups) == 2
    assert {frozenset(g.identifiers) for g in groups} == {frozenset({"m1"}), frozenset({"u1"})}
    by_id = {g.identifiers[0]: g for g in groups}
    assert by_id["m1"].label == "Mac / HomePod"
    assert by_id["u1"].label == "AirPods"


def test_forbidden_pair_blocks_eligible_candidate(make_record) -> None:
    tv = make_record(
        "t1", name="Living Room", tags={"AirPlay Target", "Nearby"}, rssi_max=-60, detections=8
    )
    handoff = make_record("u1", tags={"Handoff"}, rssi_max=-61, detections=3)
    locator = make_record("u2", tags={"Find My"}, rssi_max=-62, detections=2)
    assert handoff.tags <= APPLE_RULES.absorbable_for(tv.tags)
    assert not APPLE_RULES.compatible(tv.tags, handoff.tags)

    groups = correlate_records([tv, handoff, locator])

    assert [g.identifiers for g in groups] == [["t1", "u2"], ["u1"]]
    assert groups[0].tags == {"AirPlay Target", "Nearby", "Find My"}
    assert groups[1].tags == {"Handoff"}


def test_rssi_tolerance_is_inclusive(make_record) -> None:
    phone = make_record("p1", name="Phone", tags={"Handoff"}, rssi_max=-60)
    edge = make_record("u1", tags={"Nearby"}, rssi_max=-70)
    far = make_record("u2", tags={"Find My"}, rssi_max=-71)

    groups = correlate_records([phone, edge, far])

    assert groups[0].identifiers == ["p1", "u1"]
    assert [g.identifiers for g in groups[1:]] == [["u2"]]


def test_candidate_tags_must_all_be_eligible(make_record) -> None:
    phone = make_record("p1", name="Phone", tags={"Handoff"}, rssi_max=-60)
    mixed = make_record("u1", tags={"Nearby", "Hey Siri"}, rssi_max=-60)

    groups = correlate_records([phone, mixed])

    assert [g.identifiers for g in groups] == [["p1"], ["u1"]]


def test_same_name_records_merge_into_one_anchor(make_record) -> None:
    a = make_record("a", name="Desk", tags={"Nearby"}, rssi_max=-55, detections=2)
    b = make_record("b", name="Desk", tags={"Handoff"}, rssi_max=-50, detections=7)

    groups = correlate_records([a, b])

    assert len(groups) == 1
    assert groups[0].identifiers == ["b", "a"]
    assert groups[0].rssi_max == -50
    assert groups[0].total_hits == 9


def test_same_name_with_clashing_tags_stays_apart(make_record) -> None:
    a = make_record("a", name="Kim", tags={"AirPods"}, detections=5)
    b = make_record("b", name="Kim", tags={"Handoff"}, detections=3)

    groups = correlate_records([a, b])

    assert [g.identifiers for g in groups] == [["a"], ["b"]]


def test_anchors_processed_by_total_detections(make_record) -> None:
    small = make_record("s", name="Small", tags={"Nearby"}, rssi_max=-60, detections=2)
    big = make_record("b", name="Big", tags={"Handoff"}, rssi_max=-60, detections=20)
    shared = make_record("u", tags={"Find My"}, rssi_max=-60)

    groups = correlate_records([small, big, shared])

    assert groups[0].name == "Big"
    assert groups[0].identifiers == ["b", "u"]
    assert groups[1].identifiers == ["s"]


def test_unnamed_active_record_collects_locators(make_record) -> None:
    active = make_record("a", tags={"Nearby"}, rssi_max=-70)
    near_locator = make_record("l1", tags={"Find My"}, rssi_max=-75)
    far_locator = make_record("l2", tags={"Find My Network"}, rssi_max=-95)

    groups = correlate_records([near_locator, active, far_locator])

    assert [g.identifiers for g in groups] == [["a", "l1"], ["l2"]]
    assert groups[0].name is None
    assert groups[0].label == "iPhone / iPad"
    assert groups[1].label == "AirTag"


def test_cluster_tolerance_measured_from_seed(make_record) -> None:
    active = make_record("a", tags={"Handoff"}, rssi_max=-70)
    strong = make_record("l1", tags={"Find My"}, rssi_max=-60)
    weaker = make_record("l2", tags={"Find My"}, rssi_max=-80)

    groups = correlate_records([active, strong, weaker])

    assert groups[0].identifiers == ["a", "l1", "l2"]
    assert groups[0].rssi_max == -60


def test_active_records_never_merge_with_each_other(make_record) -> None:
    buds = make_record("a", tags={"AirPods"}, rssi_max=-50)
    phone = make_record("b", tags={"Nearby"}, rssi_max=-50)

    groups = correlate_records([buds, phone])

    assert [g.identifiers for g in groups] == [["a"], ["b"]]


def test_empty_input_yields_no_groups() -> None:
    assert correlate_records([]) == []


def _random_records(make_record, rng: random.Random, count: int):
    records = []
    for idx in range(count):
        tags: set[str] = set()
        for tag in rng.sample(ALL_TAGS, rng.randint(0, 2)):
            if APPLE_RULES.compatible(tags, {tag}):
                tags.add(tag)
        name = rng.choice([None, None, None, "Phone", "Mac", "Buds"])
        records.append(
            make_record(
                f"id-{idx}",
                name=name,
                tags=tags,
                rssi_max=rng.randint(-100, -30),
                detections=rng.randint(1, 30),
            )
        )
    return records


@pytest.mark.parametrize("seed", range(25))
def test_output_partitions_input(make_record, seed: int) -> None:
    rng = random.Random(seed)
    records = _random_records(make_record, rng, rng.randint(1, 40))

    groups = correlate_records(records)

    members = Counter(i for g in groups for i in g.identifiers)
    assert all(n == 1 for n in members.values())
    assert set(members) == {r.identifier for r in records}
    assert sum(g.total_hits for g in groups) == sum(r.detections for r in records)


@pytest.mark.parametrize("seed", range(25))
def test_groups_never_contain_forbidden_pairs(make_record, seed: int) -> None:
    rng = random.Random(1000 + seed)
    records = _random_records(make_record, rng, rng.randint(1, 40))

    for group in correlate_records(records):
        for a, b in APPLE_RULES.incompatible_pairs:
            assert not (a in group.tags and b in group.tags), (group.identifiers, group.tags)


def test_output_is_deterministic(make_record) -> None:
    rng = random.Random(7)
    records = _random_records(make_record, rng, 30)

    first = [(g.name, g.identifiers, g.label) for g in correlate_records(records)]
    second = [(g.name, g.identifiers, g.label) for g in correlate_records(records)]

    assert first == second


def test_partition_fault_is_fatal(make_record, monkeypatch: pytest.MonkeyPatch) -> None:
    records = [make_record("a", tags={"Find My"}), make_record("b", tags={"Find My"}, rssi_max=-99)]
    correlator = IdentityCorrelator()
    monkeypatch.setattr(correlator, "_residual_phase", lambda locators, assigned: [])

    with pytest.raises(CorrelationConsistencyError) as exc_info:
        correlator.correlate(records)

    assert set(exc_info.value.missing) == {"a", "b"}
