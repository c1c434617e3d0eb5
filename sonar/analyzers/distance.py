"""
Sonar Distance Estimator
=========================

Maps a single RSSI reading onto one of four coarse proximity bands.
The mapping is a pure step function: no smoothing, no hysteresis.

    RSSI > -50 dBm         -> "0-2m"
    -70 < RSSI <= -50 dBm  -> "2-10m"
    -90 < RSSI <= -70 dBm  -> "10-30m"
    RSSI <= -90 dBm        -> "30m+"

The thresholds are deliberately coarse; BLE RSSI varies by several dB
between consecutive advertisements of a stationary device.

Reference:
    Rappaport, T. S. (2002). Wireless Communications: Principles and
    Practice (2nd ed.). Prentice Hall. Chapter 4: Log-distance path loss.
"""

from __future__ import annotations

from sonar.core.models import ProximityBand

# Lower (exclusive) bound of each band, nearest first
BAND_THRESHOLDS: tuple[tuple[int, ProximityBand], ...] = (
    (-50, ProximityBand.IMMEDIATE),
    (-70, ProximityBand.NEAR),
    (-90, ProximityBand.FAR),
)


def distance_band(rssi: int) -> ProximityBand:
    """Classify *rssi* (dBm) into its proximity band."""
    for threshold, band in BAND_THRESHOLDS:
        if rssi > threshold:
            return band
    return ProximityBand.REMOTE
