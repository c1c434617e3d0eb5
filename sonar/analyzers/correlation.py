"""
Sonar Identity Correlation Engine
==================================

Estimates which ephemeral BLE identifiers belong to one physical device.
Devices of a single vendor family rotate their addresses and split
their traffic over several advertisement types (e.g. an iPhone emits
Handoff, Nearby and Find My frames, often from different addresses).
This module folds those records back into physical-device groups.

Algorithm (greedy, three ordered phases, each record assigned once):

    1. Named anchors.  Named records are merged by exact name (records
       whose tags clash with an anchor of the same name start their own
       anchor).  Anchors
       are processed by total detections (descending).  Each anchor
       absorbs unnamed records whose tags are all absorb-eligible for
       the anchor's role, whose peak RSSI is within the tolerance of
       the anchor's and which introduce no incompatible tag pair.
    2. Unnamed active clusters.  Each remaining record with a
       non-locator tag seeds a group and absorbs nearby locator-only
       records that stay tag-compatible.
    3. Residual locators.  Leftover locator-only records become
       singleton groups.

Iteration order is stable: records are visited in the order they were
first seen and ties in detection count keep that order.  The result is
deterministic but not a globally optimal assignment.

References:
    - Becker, J. K., Li, D., & Starobinski, D. (2019). Tracking
      Anonymized Bluetooth Devices. PoPETs 2019(3), 50-65.
    - Celosia, G., & Cunche, M. (2020). Discontinued Privacy: Personal
      Data Leaks in Apple Bluetooth-Low-Energy Continuity Protocols.
      PoPETs 2020(1).
"""

from __future__ import annotations

from collections import Counter
from typing import Iterable, Sequence

from shared.errors import CorrelationConsistencyError
from shared.logger import SonarLogger

from sonar.analyzers.labels import infer_device_label
from sonar.analyzers.rules import APPLE_RULES, FamilyRules
from sonar.core.models import CorrelationGroup, DeviceRecord

logger = SonarLogger("sonar.analyzers.correlation")

RSSI_TOLERANCE_DB = 10


def _within(rssi: int, reference: int, tolerance: int) -> bool:
    return abs(rssi - reference) <= tolerance


class IdentityCorrelator:
    """Partition one vendor family's records into physical-device groups.

    Args:
        rules: Rule tables for the vendor family.
        tolerance_db: Maximum peak-RSSI gap for two records to count as
            co-located.
    """

    def __init__(
        self,
        rules: FamilyRules = APPLE_RULES,
        tolerance_db: int = RSSI_TOLERANCE_DB,
    ) -> None:
        self.rules = rules
        self.tolerance_db = tolerance_db

    def correlate(self, records: Sequence[DeviceRecord]) -> list[CorrelationGroup]:
        """Run all three phases and return labelled groups.

        Groups come back in phase order (anchors, active clusters,
        residual locators); callers sort for display.

        Raises:
            CorrelationConsistencyError: The output is not an exact
                partition of *records*.
        """
        records = list(records)
        if not records:
            return []

        with logger.operation("correlate"):
            assigned: set[str] = set()
            unnamed = [r for r in records if not r.has_name]

            groups = self._anchor_phase(records, unnamed, assigned)
            remaining = [r for r in unnamed if r.identifier not in assigned]
            actives = [r for r in remaining if not self.rules.is_locator_only(r.tags)]
            locators = [r for r in remaining if self.rules.is_locator_only(r.tags)]

            groups.extend(self._cluster_phase(actives, locators, assigned))
            groups.extend(self._residual_phase(locators, assigned))

            for group in groups:
                group.label = infer_device_label(group.tags, group.name, self.rules)

            self._verify_partition(records, groups)
            logger.info(
                "Correlated %d identifiers into %d devices",
                len(records),
                len(groups),
                vendor=self.rules.vendor_name,
            )
        return groups

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def _anchor_phase(
        self,
        records: list[DeviceRecord],
        unnamed: list[DeviceRecord],
        assigned: set[str],
    ) -> list[CorrelationGroup]:
        anchors: list[CorrelationGroup] = []
        named = sorted((r for r in records if r.has_name), key=lambda r: -r.detections)
        for record in named:
            assigned.add(record.identifier)
            # Same name but a forbidden tag pair: two devices sharing a name
            group = next(
                (
                    g for g in anchors
                    if g.name == record.name and self.rules.compatible(g.tags, record.tags)
                ),
                None,
            )
            if group is None:
                anchors.append(CorrelationGroup.seed(record, name=record.name))
            else:
                group.absorb(record)

        ordered = sorted(anchors, key=lambda g: -g.total_hits)
        for group in ordered:
            eligible = self.rules.absorbable_for(group.tags)
            for candidate in unnamed:
                if candidate.identifier in assigned:
                    continue
                if not _within(candidate.rssi_max, group.rssi_max, self.tolerance_db):
                    continue
                if not candidate.tags <= eligible:
                    continue
                if not self.rules.compatible(group.tags, candidate.tags):
                    continue
                group.absorb(candidate)
                assigned.add(candidate.identifier)
                logger.debug(
                    "Anchor absorbed identifier",
                    anchor=group.name,
                    role=self.rules.role_for(group.tags),
                    identifier=candidate.identifier,
                )
        return ordered

    def _cluster_phase(
        self,
        actives: list[DeviceRecord],
        locators: list[DeviceRecord],
        assigned: set[str],
    ) -> list[CorrelationGroup]:
        groups: list[CorrelationGroup] = []
        for seed in actives:
            if seed.identifier in assigned:
                continue
            assigned.add(seed.identifier)
            group = CorrelationGroup.seed(seed)
            # Tolerance is measured from the seeding record
            reference = seed.rssi_max
            for shadow in locators:
                if shadow.identifier in assigned:
                    continue
                if not _within(shadow.rssi_max, reference, self.tolerance_db):
                    continue
                if not self.rules.compatible(group.tags, shadow.tags):
                    continue
                group.absorb(shadow)
                assigned.add(shadow.identifier)
            groups.append(group)
        return groups

    def _residual_phase(
        self,
        locators: list[DeviceRecord],
        assigned: set[str],
    ) -> list[CorrelationGroup]:
        groups: list[CorrelationGroup] = []
        for record in locators:
            if record.identifier in assigned:
                continue
            assigned.add(record.identifier)
            groups.append(CorrelationGroup.seed(record))
        return groups

    # ------------------------------------------------------------------
    # Consistency
    # ------------------------------------------------------------------

    @staticmethod
    def _verify_partition(
        records: Iterable[DeviceRecord],
        groups: Iterable[CorrelationGroup],
    ) -> None:
        expected = [r.identifier for r in records]
        seen = Counter(i for g in groups for i in g.identifiers)
        duplicated = sorted(i for i, n in seen.items() if n > 1)
        missing = sorted(set(expected) - set(seen))
        extra = sorted(set(seen) - set(expected))
        if duplicated or missing or extra:
            logger.critical(
                "Correlation output is not a partition of its input",
                duplicated=duplicated,
                missing=missing,
                extra=extra,
            )
            raise CorrelationConsistencyError(
                "correlation produced an inconsistent partition",
                duplicated=duplicated + extra,
                missing=missing,
            )


def correlate_records(
    records: Sequence[DeviceRecord],
    rules: FamilyRules = APPLE_RULES,
    tolerance_db: int = RSSI_TOLERANCE_DB,
) -> list[CorrelationGroup]:
    """Convenience wrapper around :class:`IdentityCorrelator`."""
    return IdentityCorrelator(rules, tolerance_db).correlate(records)
