"""
Sonar Core Data Models
=======================

Pydantic-based domain models for the Sonar device identity resolver:
advertisement events, decoded manufacturer information, per-identifier
device records, correlation groups and the end-of-session report.

References:
    - Bluetooth SIG. (2023). Core Specification v5.4. Vol 3, Part C:
      Generic Access Profile.
    - Celosia, G., & Cunche, M. (2020). Discontinued Privacy: Personal
      Data Leaks in Apple Bluetooth-Low-Energy Continuity Protocols.
      PoPETs 2020(1).
    - Pydantic v2 Documentation. https://docs.pydantic.dev/latest/
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class ProximityBand(str, enum.Enum):
    """Coarse distance band derived from a single RSSI reading.

    Members are declared nearest first; :attr:`rank` gives that order.
    """

    IMMEDIATE = "0-2m"
    NEAR = "2-10m"
    FAR = "10-30m"
    REMOTE = "30m+"

    @property
    def rank(self) -> int:
        return list(ProximityBand).index(self)


# ---------------------------------------------------------------------------
# Advertisement Event
# ---------------------------------------------------------------------------


class AdvertisementEvent(BaseModel):
    """One received advertisement, as delivered by a collector.

    Attributes:
        identifier: Stable hardware address, or a session-scoped surrogate
            id when the radio stack hides the address.
        address: Hardware address when known.
        rssi: Signal strength in dBm.
        name: Advertised local name, if any.
        manufacturer_data: Raw manufacturer-specific data including the
            two little-endian company-id bytes.
        extra_manufacturer_data: Further manufacturer-data entries of the
            same advertisement, same layout.
        service_uuids: Advertised service identifiers, in received order.
        observed_at: Reception timestamp (UTC).
    """

    model_config = ConfigDict(frozen=True)

    identifier: str
    address: Optional[str] = None
    rssi: int
    name: Optional[str] = None
    manufacturer_data: Optional[bytes] = None
    extra_manufacturer_data: list[bytes] = Field(default_factory=list)
    service_uuids: list[str] = Field(default_factory=list)
    observed_at: datetime = Field(default_factory=utcnow)

    @field_validator("identifier")
    @classmethod
    def _identifier_non_empty(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("identifier must be non-empty")
        return value

    @field_validator("observed_at")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def has_name(self) -> bool:
        """Whether the event carries a non-blank local name."""
        return bool(self.name and self.name.strip())

    @property
    def manufacturer_entries(self) -> list[bytes]:
        """All manufacturer-data entries, primary entry first."""
        entries = [self.manufacturer_data] if self.manufacturer_data else []
        return entries + [e for e in self.extra_manufacturer_data if e]

    @property
    def resolved_address(self) -> str:
        """Hardware address, or a short form of the identifier."""
        if self.address and self.address.lower() != "unknown":
            return self.address
        return self.identifier[:8]


# ---------------------------------------------------------------------------
# Manufacturer Info
# ---------------------------------------------------------------------------


class ManufacturerInfo(BaseModel):
    """Vendor identity decoded from a manufacturer-data payload.

    Attributes:
        vendor_id: Four lowercase hex digits, canonical (big-endian) order.
        vendor_name: Resolved vendor name or ``"Unknown (<id>)"``.
        device_type: Sub-type tag, only for allow-listed vendors.
        raw_hex: The full payload as lowercase hex.
        known_vendor: Whether ``vendor_name`` came from the vendor table.
    """

    model_config = ConfigDict(frozen=True)

    vendor_id: str
    vendor_name: str
    device_type: Optional[str] = None
    raw_hex: str = ""
    known_vendor: bool = True

    @property
    def stats_key(self) -> str:
        if self.device_type:
            return f"{self.vendor_name} - {self.device_type}"
        return self.vendor_name


# ---------------------------------------------------------------------------
# Device Record
# ---------------------------------------------------------------------------


class DeviceRecord(BaseModel):
    """Accumulated state for one identifier during one scan session.

    Owned and mutated exclusively by :class:`sonar.core.store.DeviceStore`.
    Consumers receive :class:`DeviceSnapshot` copies instead.
    """

    model_config = ConfigDict(validate_assignment=False)

    identifier: str
    address: str
    name: str = "Unknown device"
    has_name: bool = False
    rssi: int
    rssi_min: int
    rssi_max: int
    info: Optional[ManufacturerInfo] = None
    stats_key: str = "Unknown"
    tags: set[str] = Field(default_factory=set)
    services: list[str] = Field(default_factory=list)
    band: ProximityBand
    detections: int = 1
    first_seen: datetime = Field(default_factory=utcnow)
    last_seen: datetime = Field(default_factory=utcnow)

    @property
    def display_name(self) -> str:
        return self.name if self.has_name else f"[{self.address}]"

    @property
    def vendor_name(self) -> Optional[str]:
        return self.info.vendor_name if self.info else None

    def snapshot(self) -> DeviceSnapshot:
        """Return an immutable point-in-time copy of this record."""
        return DeviceSnapshot(
            identifier=self.identifier,
            name=self.name if self.has_name else None,
            address=self.address,
            vendor_name=self.info.vendor_name if self.info else None,
            vendor_id=self.info.vendor_id if self.info else None,
            device_type=self.info.device_type if self.info else None,
            rssi=self.rssi,
            rssi_min=self.rssi_min,
            rssi_max=self.rssi_max,
            band=self.band,
            services=list(self.services),
            tags=sorted(self.tags),
            detections=self.detections,
            first_seen=self.first_seen,
            last_seen=self.last_seen,
        )


class DeviceSnapshot(BaseModel):
    """Frozen copy of a :class:`DeviceRecord` handed to listeners and reports."""

    model_config = ConfigDict(frozen=True)

    identifier: str
    name: Optional[str] = None
    address: str
    vendor_name: Optional[str] = None
    vendor_id: Optional[str] = None
    device_type: Optional[str] = None
    rssi: int
    rssi_min: int
    rssi_max: int
    band: ProximityBand
    services: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    detections: int
    first_seen: datetime
    last_seen: datetime
    timestamp: datetime = Field(default_factory=utcnow)

    @property
    def display_name(self) -> str:
        return self.name or f"[{self.address}]"


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


class NewDeviceNotice(BaseModel):
    """Emitted on first sighting and on the unnamed-to-named upgrade."""

    model_config = ConfigDict(frozen=True)

    snapshot: DeviceSnapshot
    upgraded: bool = False


class BandChangeNotice(BaseModel):
    """Emitted when a tracked record moves to a different proximity band."""

    model_config = ConfigDict(frozen=True)

    identifier: str
    display_name: str
    previous: ProximityBand
    current: ProximityBand
    rssi: int


class DetectionNotice(BaseModel):
    """Emitted for every repeat sighting; consumed by debug output only."""

    model_config = ConfigDict(frozen=True)

    identifier: str
    display_name: str
    rssi: int
    detections: int


# ---------------------------------------------------------------------------
# Correlation Group
# ---------------------------------------------------------------------------


class CorrelationGroup(BaseModel):
    """Records believed to originate from one physical device.

    Attributes:
        name: Anchor display name, ``None`` for unnamed clusters.
        members: Member records, anchor(s) first, in absorption order.
        tags: Union of every member's tags.
        rssi_max: Strongest reading across members.
        total_hits: Sum of member detection counts.
        label: Human label from device type inference.
    """

    name: Optional[str] = None
    members: list[DeviceRecord] = Field(default_factory=list)
    tags: set[str] = Field(default_factory=set)
    rssi_max: int = -127
    total_hits: int = 0
    label: str = ""

    @classmethod
    def seed(cls, record: DeviceRecord, name: Optional[str] = None) -> CorrelationGroup:
        return cls(
            name=name,
            members=[record],
            tags=set(record.tags),
            rssi_max=record.rssi_max,
            total_hits=record.detections,
        )

    def absorb(self, record: DeviceRecord) -> None:
        self.members.append(record)
        self.tags |= record.tags
        self.total_hits += record.detections
        self.rssi_max = max(self.rssi_max, record.rssi_max)

    @property
    def band(self) -> ProximityBand:
        """Proximity band of the strongest member reading."""
        from sonar.analyzers.distance import distance_band

        return distance_band(self.rssi_max)

    @property
    def id_count(self) -> int:
        return len(self.members)

    @property
    def identifiers(self) -> list[str]:
        return [m.identifier for m in self.members]


# ---------------------------------------------------------------------------
# Session Report
# ---------------------------------------------------------------------------


class TypeStat(BaseModel):
    """Device count and detections for one stats key (vendor or vendor - type)."""

    key: str
    devices: int = 0
    detections: int = 0


class VendorSection(BaseModel):
    """All records of one identified vendor outside the correlated family."""

    vendor_name: str
    records: list[DeviceRecord] = Field(default_factory=list)

    @property
    def total_detections(self) -> int:
        return sum(r.detections for r in self.records)


class SessionReport(BaseModel):
    """Everything the reporting layer needs after a session ends.

    Attributes:
        started_at: Session start.
        finished_at: Finalization time.
        total_detections: Advertisements processed (all identifiers).
        records: Every tracked record, in first-seen order.
        type_stats: Per stats-key counts, most detections first.
        family_name: Vendor whose records were correlated.
        family_groups: Correlation output, most hits first.
        vendor_sections: Other identified vendors, most detections first.
        unidentified: Records without a resolved vendor.
        unknown_vendor_ids: Vendor ids missing from the vendor table.
    """

    started_at: datetime
    finished_at: datetime
    total_detections: int = 0
    records: list[DeviceRecord] = Field(default_factory=list)
    type_stats: list[TypeStat] = Field(default_factory=list)
    family_name: str = "Apple"
    family_groups: list[CorrelationGroup] = Field(default_factory=list)
    vendor_sections: list[VendorSection] = Field(default_factory=list)
    unidentified: list[DeviceRecord] = Field(default_factory=list)
    unknown_vendor_ids: list[str] = Field(default_factory=list)

    @property
    def elapsed_seconds(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()

    @property
    def named_count(self) -> int:
        return sum(1 for r in self.records if r.has_name)

    @property
    def unnamed_count(self) -> int:
        return len(self.records) - self.named_count

    @property
    def family_identifier_count(self) -> int:
        return sum(g.id_count for g in self.family_groups)
