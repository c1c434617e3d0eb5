"""
Sonar Report Generator
=======================

Writes the end-of-session :class:`SessionReport` as structured JSON for
downstream tooling (diffing two scans, feeding a dashboard, refreshing
the vendor table from ``unknown_vendor_ids``).
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from shared.logger import SonarLogger

from sonar import __version__
from sonar.core.models import CorrelationGroup, DeviceRecord, SessionReport

logger = SonarLogger("sonar.output.report")


def _record_dict(record: DeviceRecord) -> dict[str, Any]:
    return record.snapshot().model_dump(mode="json", exclude={"timestamp"})


def _group_dict(group: CorrelationGroup) -> dict[str, Any]:
    return {
        "label": group.label,
        "name": group.name,
        "tags": sorted(group.tags),
        "rssi_max": group.rssi_max,
        "distance": group.band.value,
        "total_hits": group.total_hits,
        "identifiers": group.identifiers,
    }


class SonarReportGenerator:
    """Serialise session reports.

    Usage::

        SonarReportGenerator().generate_json(report, "output/scan.json")
    """

    def build(self, report: SessionReport) -> dict[str, Any]:
        """Return the report as a JSON-ready dictionary."""
        return {
            "tool": "sonar",
            "version": __version__,
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "started_at": report.started_at.isoformat(),
            "finished_at": report.finished_at.isoformat(),
            "summary": {
                "elapsed_seconds": round(report.elapsed_seconds, 3),
                "devices": len(report.records),
                "named": report.named_count,
                "unnamed": report.unnamed_count,
                "detections": report.total_detections,
                "family": report.family_name,
                "family_physical_devices": len(report.family_groups),
                "family_identifiers": report.family_identifier_count,
            },
            "type_stats": [s.model_dump(mode="json") for s in report.type_stats],
            "family_groups": [_group_dict(g) for g in report.family_groups],
            "vendors": {
                section.vendor_name: [_record_dict(r) for r in section.records]
                for section in report.vendor_sections
            },
            "unidentified": [_record_dict(r) for r in report.unidentified],
            "devices": [_record_dict(r) for r in report.records],
            "unknown_vendor_ids": list(report.unknown_vendor_ids),
        }

    def generate_json(self, report: SessionReport, output_path: str | Path) -> str:
        """Write the JSON report and return its absolute path."""
        output = Path(output_path)
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(
            json.dumps(self.build(report), indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
        logger.info("JSON report generated", path=str(output))
        return str(output.resolve())
