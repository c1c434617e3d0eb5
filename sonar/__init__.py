"""
Sonar -- BLE Device Identity Resolver
======================================

Sonar listens to Bluetooth Low Energy advertisements and builds a
best-effort identity model of the devices around it: which vendor and
device class each identifier belongs to, how close it is, and which
rotating identifiers most likely come from the same physical device.

Modules:
    core.models     -- Pydantic domain models
    core.catalog    -- Vendor, sub-type and service lookup tables
    core.store      -- Per-identifier tracking state machine
    core.session    -- Scan session lifecycle and report building
    core.engine     -- Orchestration of collectors, session and output
    parsers         -- Manufacturer payload and service decoding
    analyzers       -- Distance bands, label inference, correlation
    collectors      -- Live BLE (Bleak) and JSON-lines replay sources
    output          -- Console and JSON report output
    cli             -- Click-based command-line interface

References:
    - Bluetooth SIG. (2023). Bluetooth Core Specification v5.4.
    - Celosia, G., & Cunche, M. (2020). Discontinued Privacy: Personal
      Data Leaks in Apple Bluetooth-Low-Energy Continuity Protocols.
      PoPETs 2020(1).
"""

__version__ = "1.0.0"
__tool__ = "Sonar"
__description__ = "BLE Device Identity Resolver"
