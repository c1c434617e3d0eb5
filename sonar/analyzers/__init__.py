"""
Sonar Analyzers
================

Modules:
    distance     -- RSSI to proximity band
    rules        -- Vendor-family rule tables
    labels       -- Device type label inference
    correlation  -- Multi-identifier correlation into physical devices
"""

from sonar.analyzers.correlation import IdentityCorrelator, correlate_records
from sonar.analyzers.distance import distance_band
from sonar.analyzers.labels import infer_device_label
from sonar.analyzers.rules import APPLE_RULES, FamilyRules, rules_for_vendor

__all__ = [
    "IdentityCorrelator",
    "correlate_records",
    "distance_band",
    "infer_device_label",
    "APPLE_RULES",
    "FamilyRules",
    "rules_for_vendor",
]
