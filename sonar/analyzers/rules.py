"""
Sonar Vendor-Family Rule Tables
================================

Static heuristics for a vendor family whose devices emit several
overlapping advertisement types from rotating addresses.  Three tables
drive the correlation pass and the label inference:

    - absorb rules: which tags an unnamed record may contribute to a
      named anchor, chosen by the anchor's role (first match wins)
    - incompatible pairs: tags that never coexist on one device
    - label rules: name/tag combinations mapped to a human label
      (first match wins)

The Apple tables follow the Continuity message types documented by
Celosia & Cunche and by the furiousMAC project.

References:
    - Celosia, G., & Cunche, M. (2020). Discontinued Privacy: Personal
      Data Leaks in Apple Bluetooth-Low-Energy Continuity Protocols.
      PoPETs 2020(1).
    - Martin, J., et al. (2019). Handoff All Your Privacy: A Review of
      Apple's Bluetooth Low Energy Continuity Protocol. PoPETs 2019(4).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

# ---------------------------------------------------------------------------
# Apple Continuity tags
# ---------------------------------------------------------------------------

STREAM_SOURCE = "AirPlay Source"
STREAM_SINK = "AirPlay Target"
CONTINUITY = "Handoff"
PROXIMITY = "Nearby"
VOICE_TRIGGER = "Hey Siri"
WEARABLE_AUDIO = "AirPods"
LOCATOR = "Find My"
LOCATOR_NETWORK = "Find My Network"
HOMEKIT = "HomeKit"
IBEACON = "iBeacon"


@dataclass(frozen=True, slots=True)
class AbsorbRule:
    """Tags an anchor with any of *roles* may absorb from unnamed records."""

    role: str
    triggers: frozenset[str]
    absorbable: frozenset[str]

    def matches(self, tags: Iterable[str]) -> bool:
        return not self.triggers.isdisjoint(tags)


@dataclass(frozen=True, slots=True)
class LabelRule:
    """Matches when the name contains any of *names* or all of *tags* are present."""

    label: str
    names: tuple[str, ...] = ()
    tags: frozenset[str] = frozenset()

    def matches(self, tags: set[str], lowered_name: str) -> bool:
        if any(n in lowered_name for n in self.names):
            return True
        return bool(self.tags) and self.tags <= tags


@dataclass(frozen=True, slots=True)
class FamilyRules:
    """Complete rule set for one vendor family."""

    vendor_name: str
    generic_label: str
    locator_tags: frozenset[str]
    absorb_rules: tuple[AbsorbRule, ...]
    incompatible_pairs: tuple[tuple[str, str], ...]
    label_rules: tuple[LabelRule, ...] = field(default_factory=tuple)

    def absorbable_for(self, tags: Iterable[str]) -> frozenset[str]:
        """Absorb-eligibility set for an anchor carrying *tags*."""
        tags = set(tags)
        for rule in self.absorb_rules:
            if rule.matches(tags):
                return rule.absorbable
        return frozenset()

    def role_for(self, tags: Iterable[str]) -> Optional[str]:
        tags = set(tags)
        for rule in self.absorb_rules:
            if rule.matches(tags):
                return rule.role
        return None

    def compatible(self, *tag_sets: Iterable[str]) -> bool:
        """True when the union of *tag_sets* contains no forbidden pair."""
        combined: set[str] = set()
        for tags in tag_sets:
            combined.update(tags)
        return not any(a in combined and b in combined for a, b in self.incompatible_pairs)

    def is_locator_only(self, tags: Iterable[str]) -> bool:
        """Every tag is a locator tag (vacuously true for an empty set)."""
        return all(t in self.locator_tags for t in tags)


APPLE_RULES = FamilyRules(
    vendor_name="Apple",
    generic_label="Apple Device",
    locator_tags=frozenset({LOCATOR, LOCATOR_NETWORK}),
    absorb_rules=(
        AbsorbRule("stream-source", frozenset({STREAM_SOURCE}),
                   frozenset({CONTINUITY, PROXIMITY, VOICE_TRIGGER})),
        AbsorbRule("wearable-audio", frozenset({WEARABLE_AUDIO}), frozenset({LOCATOR})),
        AbsorbRule("mobile-continuity", frozenset({CONTINUITY}), frozenset({PROXIMITY, LOCATOR})),
        AbsorbRule("mobile-proximity", frozenset({PROXIMITY}), frozenset({CONTINUITY, LOCATOR})),
        AbsorbRule("media-sink", frozenset({STREAM_SINK}), frozenset({PROXIMITY, VOICE_TRIGGER})),
        AbsorbRule("locator", frozenset({LOCATOR, LOCATOR_NETWORK}), frozenset()),
    ),
    incompatible_pairs=(
        (STREAM_SOURCE, STREAM_SINK),
        (STREAM_SOURCE, WEARABLE_AUDIO),
        (STREAM_SINK, WEARABLE_AUDIO),
        (STREAM_SINK, CONTINUITY),
        (WEARABLE_AUDIO, CONTINUITY),
        (WEARABLE_AUDIO, PROXIMITY),
    ),
    label_rules=(
        # Name hints first
        LabelRule("AirPods", names=("airpods",), tags=frozenset({WEARABLE_AUDIO})),
        LabelRule("Apple Watch", names=("apple watch", "watch")),
        LabelRule("iPhone", names=("iphone",)),
        LabelRule("iPad", names=("ipad",)),
        LabelRule("Mac", names=("macbook", "imac")),
        LabelRule("HomePod", names=("homepod",)),
        LabelRule("Apple TV", names=("apple tv",)),
        # Tag combinations, most specific first
        LabelRule("Mac", tags=frozenset({STREAM_SOURCE, CONTINUITY})),
        LabelRule("Mac / HomePod", tags=frozenset({STREAM_SOURCE})),
        LabelRule("HomePod", tags=frozenset({STREAM_SINK, VOICE_TRIGGER})),
        LabelRule("Apple TV / HomePod", tags=frozenset({STREAM_SINK})),
        LabelRule("iPhone / iPad", tags=frozenset({CONTINUITY})),
        LabelRule("HomePod", tags=frozenset({VOICE_TRIGGER})),
        LabelRule("HomeKit Device", tags=frozenset({HOMEKIT})),
        LabelRule("AirTag", tags=frozenset({LOCATOR_NETWORK})),
        LabelRule("iPhone / iPad", tags=frozenset({PROXIMITY, LOCATOR})),
        LabelRule("iPhone / iPad / Watch", tags=frozenset({PROXIMITY})),
        LabelRule("Find My Accessory", tags=frozenset({LOCATOR})),
        LabelRule("iBeacon", tags=frozenset({IBEACON})),
    ),
)

FAMILY_RULES: dict[str, FamilyRules] = {
    APPLE_RULES.vendor_name: APPLE_RULES,
}


def rules_for_vendor(vendor_name: str) -> Optional[FamilyRules]:
    return FAMILY_RULES.get(vendor_name)
