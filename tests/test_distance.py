from __future__ import annotations

import pytest

from sonar.analyzers.distance import distance_band
from sonar.core.models import ProximityBand


@pytest.mark.parametrize(
    ("rssi", "expected"),
    [
        (-45, "0-2m"),
        (-55, "2-10m"),
        (-95, "30m+"),
        (-49, "0-2m"),
        (-50, "2-10m"),
        (-70, "10-30m"),
        (-71, "10-30m"),
        (-90, "30m+"),
        (-89, "10-30m"),
        (20, "0-2m"),
        (-127, "30m+"),
    ],
)
def test_distance_band_thresholds(rssi: int, expected: str) -> None:
    assert distance_band(rssi).value == expected


def test_distance_band_is_monotonic_over_the_rssi_range() -> None:
    ranks = [distance_band(x).rank for x in range(10, -131, -1)]
    assert ranks == sorted(ranks)
    assert {distance_band(x) for x in range(10, -131, -1)} == set(ProximityBand)
