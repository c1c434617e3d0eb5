from __future__ import annotations

import pytest

from sonar.analyzers.labels import infer_device_label


@pytest.mark.parametrize(
    ("tags", "name", "expected"),
    [
        ({"AirPlay Source", "Handoff"}, None, "Mac"),
        ({"AirPlay Source"}, None, "Mac / HomePod"),
        ({"AirPlay Target", "Hey Siri"}, None, "HomePod"),
        ({"AirPlay Target"}, None, "Apple TV / HomePod"),
        ({"Handoff", "Find My"}, None, "iPhone / iPad"),
        ({"Hey Siri"}, None, "HomePod"),
        ({"HomeKit"}, None, "HomeKit Device"),
        ({"Find My Network"}, None, "AirTag"),
        ({"Nearby", "Find My"}, None, "iPhone / iPad"),
        ({"Nearby"}, None, "iPhone / iPad / Watch"),
        ({"Find My"}, None, "Find My Accessory"),
        ({"iBeacon"}, None, "iBeacon"),
        ({"AirPods", "Find My"}, None, "AirPods"),
        (set(), None, "Apple Device"),
        ({"AirDrop"}, None, "Apple Device"),
    ],
)
def test_tag_rules(tags: set[str], name: str | None, expected: str) -> None:
    assert infer_device_label(tags, name) == expected


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("Kim's AirPods Pro", "AirPods"),
        ("Kim's Apple Watch", "Apple Watch"),
        ("Kim's iPhone", "iPhone"),
        ("Kim's iPad", "iPad"),
        ("Kim's MacBook Air", "Mac"),
        ("Office iMac", "Mac"),
        ("Kitchen HomePod", "HomePod"),
        ("Living Room Apple TV", "Apple TV"),
    ],
)
def test_name_hints(name: str, expected: str) -> None:
    assert infer_device_label(set(), name) == expected


def test_name_hints_win_over_tag_rules() -> None:
    assert infer_device_label({"AirPlay Source", "Handoff"}, "Kim's iPhone") == "iPhone"
    assert infer_device_label({"Nearby"}, "WATCH") == "Apple Watch"


def test_wearable_tag_wins_even_with_unrelated_name() -> None:
    assert infer_device_label({"AirPods"}, "Kim's iPhone") == "AirPods"
