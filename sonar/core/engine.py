"""
Sonar Engine
=============

Central orchestration for Sonar.  Wires an advertisement source to a
:class:`ScanSession` and the console output, then produces the final
report.

Pipeline:
    1. Collection: live BLE scan (Bleak) or JSON-lines replay
    2. Tracking: every event is decoded and folded into the store
    3. Correlation: once, when the session ends
    4. Output: summary tables and an optional JSON report

A session ends when its duration elapses, the capture runs out or the
user interrupts it.  Every path goes through :meth:`ScanSession.finalize`,
which runs the correlation pass only once.
"""

from __future__ import annotations

import asyncio
import signal
import time
from pathlib import Path
from typing import Any, Optional

from shared.config import SonarConfig
from shared.console import SonarConsole
from shared.logger import SonarLogger

from sonar.collectors.ble_collector import BLECollector
from sonar.collectors.replay import ReplayCollector
from sonar.core.catalog import DeviceCatalog
from sonar.core.models import SessionReport
from sonar.core.session import ScanSession
from sonar.output.console import SonarConsoleOutput
from sonar.output.report import SonarReportGenerator

logger = SonarLogger("sonar.core.engine")


class SonarEngine:
    """Run scan sessions from a live radio or a capture file.

    Usage::

        engine = SonarEngine(config)
        report = await engine.scan(duration_minutes=2)
        report = engine.replay("capture.jsonl", debug=True)
    """

    def __init__(
        self,
        config: Optional[SonarConfig] = None,
        console: Optional[SonarConsole] = None,
        catalog: Optional[DeviceCatalog] = None,
    ) -> None:
        """Initialise the engine.

        Args:
            config: Sonar configuration. Uses defaults if None.
            console: SonarConsole for output. Creates new if None.
            catalog: Lookup tables. Loaded from the configured paths
                (or the packaged defaults) if None.
        """
        self._config = config or SonarConfig()
        self._console = console or SonarConsole()
        self._catalog = catalog or DeviceCatalog.load(
            self._config.sonar.devices_path,
            self._config.sonar.manufacturers_path,
        )
        self._report_gen = SonarReportGenerator()

    def new_session(self) -> ScanSession:
        return ScanSession(
            self._catalog,
            family_vendor=self._config.sonar.family_vendor,
            tolerance_db=self._config.sonar.rssi_tolerance_db,
        )

    def _attach_output(self, session: ScanSession, watch: bool, debug: bool) -> SonarConsoleOutput:
        output = SonarConsoleOutput(self._console, watch=watch, debug=debug)
        session.on_new_device(output.on_new_device)
        session.on_band_change(output.on_band_change)
        session.on_detection(output.on_detection)
        return output

    # ------------------------------------------------------------------
    # Live scan
    # ------------------------------------------------------------------

    async def scan(
        self,
        duration_minutes: Optional[float] = None,
        watch: bool = False,
        debug: bool = False,
        output_path: Optional[str] = None,
        collector: Optional[BLECollector] = None,
    ) -> SessionReport:
        """Scan live BLE traffic and return the finalized report.

        Args:
            duration_minutes: Scan length; ``None`` uses the configured
                default and ``0`` scans until interrupted.
            watch: Print only new-device lines.
            debug: Also print unnamed arrivals and repeat detections.
            output_path: Optional JSON report path.
            collector: Alternative collector instance.

        Raises:
            CollectorError: The radio could not be used.
        """
        if duration_minutes is None:
            duration_minutes = self._config.sonar.scan_minutes
        duration = duration_minutes * 60 if duration_minutes > 0 else None

        session = self.new_session()
        output = self._attach_output(session, watch, debug)
        output.display_banner(duration_minutes)

        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, stop_event.set)
            handler_installed = True
        except (NotImplementedError, RuntimeError):
            handler_installed = False

        collector = collector or BLECollector()
        try:
            if watch or debug:
                await collector.run(session.ingest, duration=duration, stop_event=stop_event)
            else:
                with self._console.status("Scanning...") as status:
                    self._track_status(session, status)
                    await collector.run(session.ingest, duration=duration, stop_event=stop_event)
        except (KeyboardInterrupt, asyncio.CancelledError):
            logger.info("Scan interrupted")
        finally:
            if handler_installed:
                loop.remove_signal_handler(signal.SIGINT)

        return self._finish(session, output, output_path)

    def _track_status(self, session: ScanSession, status: Any) -> None:
        started = time.monotonic()

        def _update(_notice: Any) -> None:
            status.update(
                SonarConsoleOutput.status_text(
                    len(session.store),
                    session.store.named_count,
                    session.detections,
                    time.monotonic() - started,
                )
            )

        session.on_new_device(_update)
        session.on_detection(_update)

    # ------------------------------------------------------------------
    # Replay
    # ------------------------------------------------------------------

    def replay(
        self,
        path: str | Path,
        watch: bool = False,
        debug: bool = False,
        output_path: Optional[str] = None,
    ) -> SessionReport:
        """Feed a JSON-lines capture through a session.

        Raises:
            CollectorError: The capture file cannot be opened.
        """
        session = self.new_session()
        output = self._attach_output(session, watch, debug)
        output.display_banner(source=str(path))

        collector = ReplayCollector(path)
        try:
            for event in collector.events():
                session.ingest(event)
        except KeyboardInterrupt:
            logger.info("Replay interrupted")

        if collector.skipped:
            self._console.warning(f"Skipped {collector.skipped} malformed capture line(s)")
        return self._finish(session, output, output_path)

    # ------------------------------------------------------------------
    # Finalization
    # ------------------------------------------------------------------

    def _finish(
        self,
        session: ScanSession,
        output: SonarConsoleOutput,
        output_path: Optional[str],
    ) -> SessionReport:
        report = session.finalize()
        output.display_summary(report)
        if output_path:
            written = self._report_gen.generate_json(report, output_path)
            self._console.success(f"JSON report written to {written}")
        return report
