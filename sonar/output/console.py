"""
Sonar Console Output
=====================

Rich-based rendering for Sonar: live notice lines while scanning and
the end-of-session summary tables.

Live output depends on the display mode:

    watch   one line per new-device notice (first sighting or name
            upgrade), nothing else
    normal  named arrivals, name upgrades and band changes
    debug   as normal, plus unnamed arrivals and every repeat detection

References:
    - Rich library: https://github.com/Textualize/rich
"""

from __future__ import annotations

from typing import Optional

from shared.console import SonarConsole

from sonar import __description__, __tool__, __version__
from sonar.analyzers.distance import distance_band
from sonar.core.models import (
    BandChangeNotice,
    DetectionNotice,
    DeviceRecord,
    NewDeviceNotice,
    SessionReport,
)


def _services_cell(record: DeviceRecord) -> str:
    return ", ".join(record.services) if record.services else "-"


class SonarConsoleOutput:
    """Console presentation for scan sessions.

    Usage::

        output = SonarConsoleOutput(console, watch=False, debug=True)
        session.on_new_device(output.on_new_device)
        ...
        output.display_summary(report)
    """

    def __init__(
        self,
        console: Optional[SonarConsole] = None,
        *,
        watch: bool = False,
        debug: bool = False,
    ) -> None:
        self._console = console or SonarConsole()
        self.watch = watch
        self.debug = debug

    def display_banner(self, duration_minutes: float = 0.0, source: str = "") -> None:
        self._console.banner(__tool__.upper(), __description__, version=__version__)
        span = f"for {duration_minutes:g} min" if duration_minutes > 0 else "until Ctrl+C"
        if source:
            span = f"from {source}"
        mode = " (watch mode)" if self.watch else " (debug mode)" if self.debug else ""
        self._console.info(f"Scanning {span}{mode}...")
        self._console.blank()

    # ------------------------------------------------------------------
    # Live notices
    # ------------------------------------------------------------------

    def on_new_device(self, notice: NewDeviceNotice) -> None:
        snap = notice.snapshot
        distance = distance_band(snap.rssi).value
        if self.watch:
            parts = [snap.display_name]
            if snap.vendor_name:
                parts.append(snap.vendor_name)
                if snap.device_type:
                    parts.append(snap.device_type)
            parts.append(distance)
            self._console.line(
                f"  [{snap.timestamp.isoformat()}] {' | '.join(parts)}", style="sonar.new"
            )
        elif snap.name:
            self._console.line(f"  + {snap.name} {distance}", style="sonar.new")
        elif self.debug and not notice.upgraded:
            vendor = snap.vendor_name or "Unknown"
            self._console.line(
                f"  + [unnamed] {vendor} {snap.address} {distance}", style="sonar.dim"
            )

    def on_band_change(self, notice: BandChangeNotice) -> None:
        if self.watch:
            return
        self._console.line(
            f"  ~ {notice.display_name} {notice.previous.value} -> {notice.current.value}",
            style="sonar.change",
        )

    def on_detection(self, notice: DetectionNotice) -> None:
        if not self.debug or self.watch:
            return
        self._console.line(
            f"    ~ {notice.display_name} {notice.rssi} dBm (detection #{notice.detections})",
            style="sonar.debug",
        )

    @staticmethod
    def status_text(devices: int, named: int, detections: int, elapsed: float) -> str:
        return (
            f"Scanning... {devices} devices found ({named} named) | "
            f"{detections} detections | {elapsed:.0f}s elapsed"
        )

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------

    def display_summary(self, report: SessionReport) -> None:
        """Render every summary table for a finalized session."""
        self._console.blank()
        self._console.section("SCAN SUMMARY")

        self._console.table(
            "Device types",
            ["Type", "Devices", "Detections"],
            [(s.key, s.devices, s.detections) for s in report.type_stats],
        )

        self.display_family(report)

        for section in report.vendor_sections:
            self.display_vendor_table(section.vendor_name, section.records)

        self._console.table(
            "Unidentified",
            ["#", "Name", "Signal", "Dist", "Hits", "Services"],
            [
                (
                    idx,
                    r.display_name,
                    f"{r.rssi_max} dBm",
                    distance_band(r.rssi_max).value,
                    r.detections,
                    _services_cell(r),
                )
                for idx, r in enumerate(report.unidentified, start=1)
            ],
            max_widths={1: 28, 5: 30},
        )

        self._console.divider()
        self._console.line(
            f"  {len(report.records)} devices ({report.named_count} named, "
            f"{report.unnamed_count} unknown) | {report.total_detections} detections | "
            f"{report.elapsed_seconds:.1f}s scan",
            style="sonar.highlight",
        )

        if report.unknown_vendor_ids:
            self._console.blank()
            self._console.warning(
                "Unknown manufacturer IDs (run 'sonar vendors merge' or add to manufacturers.json):"
            )
            for vendor_id in report.unknown_vendor_ids:
                self._console.line(f'    "{vendor_id}": "Manufacturer name",')
        self._console.blank()

    def display_family(self, report: SessionReport) -> None:
        """Correlated physical-device table for the vendor family."""
        if not report.family_groups:
            return
        self._console.table(
            f"{report.family_name} (estimated physical devices)",
            ["#", "Device", "Name", "Signals", "Dist", "Hits", "IDs"],
            [
                (
                    idx,
                    g.label,
                    g.name or "[unnamed]",
                    " + ".join(sorted(g.tags)),
                    g.band.value,
                    g.total_hits,
                    g.id_count,
                )
                for idx, g in enumerate(report.family_groups, start=1)
            ],
            max_widths={2: 28, 3: 35},
        )
        self._console.line(
            f"  {len(report.family_groups)} physical devices from "
            f"{report.family_identifier_count} BLE identifiers",
            style="sonar.info",
        )

    def display_vendor_table(self, vendor_name: str, records: list[DeviceRecord]) -> None:
        self._console.table(
            vendor_name,
            ["#", "Name", "Type", "Signal", "Dist", "Hits", "Services"],
            [
                (
                    idx,
                    r.display_name,
                    (r.info.device_type if r.info else None) or "-",
                    f"{r.rssi_max} dBm",
                    distance_band(r.rssi_max).value,
                    r.detections,
                    _services_cell(r),
                )
                for idx, r in enumerate(records, start=1)
            ],
            max_widths={1: 28, 6: 30},
        )
