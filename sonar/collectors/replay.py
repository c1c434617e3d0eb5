"""
Sonar Replay Collector
=======================

Offline advertisement source: reads a JSON-lines capture and yields
one :class:`AdvertisementEvent` per line, in file order.

Line format::

    {"id": "AA:BB:CC:DD:EE:FF", "address": "AA:BB:CC:DD:EE:FF",
     "rssi": -61, "name": "Kim's Phone",
     "manufacturer_data": "4c001005...", "service_uuids": ["fd44"],
     "observed_at": "2026-01-01T12:00:00+00:00"}

Only ``id`` and ``rssi`` are required.  Blank lines are ignored;
malformed lines are logged and skipped.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterator

from pydantic import ValidationError

from shared.errors import CollectorError
from shared.logger import SonarLogger

from sonar.core.models import AdvertisementEvent

logger = SonarLogger("sonar.collectors.replay")


def parse_line(data: dict[str, Any]) -> AdvertisementEvent:
    """Build an event from one decoded capture line.

    Raises:
        ValueError: A field is missing or has the wrong shape.
    """
    if not isinstance(data, dict):
        raise ValueError("capture line must be a JSON object")
    payload = data.get("manufacturer_data")
    fields: dict[str, Any] = {
        "identifier": data["id"],
        "address": data.get("address"),
        "rssi": data["rssi"],
        "name": data.get("name"),
        "manufacturer_data": bytes.fromhex(payload) if payload else None,
        "service_uuids": data.get("service_uuids") or [],
    }
    if data.get("observed_at"):
        fields["observed_at"] = data["observed_at"]
    return AdvertisementEvent(**fields)


class ReplayCollector:
    """Yield advertisement events from a JSON-lines capture file.

    Attributes:
        skipped: Malformed lines skipped during the last iteration.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.skipped = 0

    def events(self) -> Iterator[AdvertisementEvent]:
        """Iterate the capture in file order.

        Raises:
            CollectorError: The capture file cannot be opened.
        """
        self.skipped = 0
        try:
            fh = open(self.path, "r", encoding="utf-8")
        except OSError as exc:
            raise CollectorError(f"Cannot open capture {self.path}: {exc}") from exc

        with fh:
            for lineno, line in enumerate(fh, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    event = parse_line(json.loads(line))
                except (json.JSONDecodeError, KeyError, TypeError, ValueError, ValidationError) as exc:
                    self.skipped += 1
                    logger.warning(
                        "Skipping malformed capture line",
                        path=str(self.path),
                        line=lineno,
                        error=str(exc),
                    )
                    continue
                yield event

        if self.skipped:
            logger.info("Replay finished with skipped lines", skipped=self.skipped)

    def __iter__(self) -> Iterator[AdvertisementEvent]:
        return self.events()
