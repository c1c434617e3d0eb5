"""
Sonar Collectors
=================

Advertisement sources for Sonar.

Modules:
    ble_collector  -- Live BLE advertisement scanning via Bleak
    replay         -- JSON-lines capture replay
"""

from sonar.collectors.ble_collector import BLECollector
from sonar.collectors.replay import ReplayCollector

__all__ = [
    "BLECollector",
    "ReplayCollector",
]
