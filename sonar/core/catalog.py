"""
Sonar Device Catalog
=====================

Lookup tables consumed by the payload decoders:

    - vendor-name table: canonical 4-hex-digit company id -> vendor name
    - vendor sub-type tables: company id -> {one-byte code -> type tag},
      present only for an allow-listed set of vendors
    - service-name table: 16-bit service id -> human name
    - service-tag table: 16-bit service id -> semantic type tag

Defaults ship as JSON under ``sonar/data``.  Callers may point at
their own files (for example a vendor table refreshed from the
Bluetooth SIG company identifier list).

References:
    - Bluetooth SIG. (2023). Assigned Numbers. Section 7.1: Company
      Identifiers.
    - Nordic Semiconductor. bluetooth-numbers-database (company_ids.json).
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable, Optional

from pydantic import BaseModel, Field

from shared.errors import CatalogError
from shared.logger import SonarLogger

logger = SonarLogger("sonar.core.catalog")

DATA_DIR: Path = Path(__file__).resolve().parent.parent / "data"
DEFAULT_DEVICES_PATH: Path = DATA_DIR / "devices.json"
DEFAULT_MANUFACTURERS_PATH: Path = DATA_DIR / "manufacturers.json"

# Vendors whose payload sub-type byte is resolved.  Everyone else keeps
# ``device_type=None`` rather than being guessed at.
SUBTYPE_VENDOR_IDS: frozenset[str] = frozenset({"004c", "0075", "00e0", "0006", "038f"})


def _read_json(path: Path) -> Any:
    try:
        with open(path, "r", encoding="utf-8") as fh:
            return json.load(fh)
    except FileNotFoundError as exc:
        raise CatalogError(f"Catalog file not found: {path}", path=str(path)) from exc
    except json.JSONDecodeError as exc:
        raise CatalogError(f"Malformed JSON in {path}: {exc}", path=str(path)) from exc


def _lower_keys(table: Any, *, what: str, path: Path) -> dict[str, str]:
    if not isinstance(table, dict):
        raise CatalogError(f"{what} in {path} must be a JSON object", path=str(path))
    return {str(k).lower(): str(v) for k, v in table.items()}


class DeviceCatalog(BaseModel):
    """Immutable bundle of every lookup table used during decoding."""

    vendors: dict[str, str] = Field(default_factory=dict)
    subtypes: dict[str, dict[str, str]] = Field(default_factory=dict)
    service_names: dict[str, str] = Field(default_factory=dict)
    service_tags: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def load(
        cls,
        devices_path: str | Path | None = None,
        manufacturers_path: str | Path | None = None,
    ) -> DeviceCatalog:
        """Load the catalog from JSON files.

        Args:
            devices_path: File with ``subtypes``, ``serviceNames`` and
                ``serviceTags`` objects. Defaults to the packaged copy.
            manufacturers_path: File mapping vendor id to vendor name.
                Defaults to the packaged copy.

        Raises:
            CatalogError: A file is missing, unreadable or malformed.
        """
        dev_path = Path(devices_path) if devices_path else DEFAULT_DEVICES_PATH
        mfr_path = Path(manufacturers_path) if manufacturers_path else DEFAULT_MANUFACTURERS_PATH

        devices = _read_json(dev_path)
        if not isinstance(devices, dict):
            raise CatalogError(f"{dev_path} must contain a JSON object", path=str(dev_path))

        raw_subtypes = devices.get("subtypes", {})
        if not isinstance(raw_subtypes, dict):
            raise CatalogError(f"subtypes in {dev_path} must be a JSON object", path=str(dev_path))
        subtypes: dict[str, dict[str, str]] = {}
        for vendor_id, table in raw_subtypes.items():
            vendor_id = str(vendor_id).lower()
            if vendor_id not in SUBTYPE_VENDOR_IDS:
                logger.warning(
                    "Ignoring sub-type table for vendor %s (not allow-listed)", vendor_id
                )
                continue
            subtypes[vendor_id] = _lower_keys(table, what=f"subtypes.{vendor_id}", path=dev_path)

        catalog = cls(
            vendors=_lower_keys(_read_json(mfr_path), what="vendor table", path=mfr_path),
            subtypes=subtypes,
            service_names=_lower_keys(
                devices.get("serviceNames", {}), what="serviceNames", path=dev_path
            ),
            service_tags=_lower_keys(
                devices.get("serviceTags", {}), what="serviceTags", path=dev_path
            ),
        )
        logger.debug(
            "Catalog loaded",
            vendors=len(catalog.vendors),
            subtype_vendors=sorted(catalog.subtypes),
            services=len(catalog.service_names),
        )
        return catalog

    def vendor_name(self, vendor_id: str) -> Optional[str]:
        return self.vendors.get(vendor_id.lower())

    def subtype_table(self, vendor_id: str) -> Optional[dict[str, str]]:
        """Sub-type table for an allow-listed vendor, else ``None``."""
        vendor_id = vendor_id.lower()
        if vendor_id not in SUBTYPE_VENDOR_IDS:
            return None
        return self.subtypes.get(vendor_id)


# ---------------------------------------------------------------------------
# Vendor database merge
# ---------------------------------------------------------------------------


def merge_vendor_database(
    source_entries: Iterable[dict[str, Any]],
    existing: dict[str, str],
) -> tuple[dict[str, str], int]:
    """Merge a Bluetooth SIG company list into an existing vendor table.

    *source_entries* uses the Nordic ``company_ids.json`` shape:
    ``[{"code": 76, "name": "Apple, Inc."}, ...]``.  Entries already
    present in *existing* win, so hand-curated names survive a refresh.

    Returns:
        ``(merged_table, number_of_new_ids)``.
    """
    updated: dict[str, str] = {}
    for entry in source_entries:
        try:
            code = int(entry["code"])
            name = str(entry["name"])
        except (KeyError, TypeError, ValueError):
            logger.debug("Skipping malformed vendor entry", entry=entry)
            continue
        updated[f"{code:04x}"] = name

    existing_lower = {k.lower(): v for k, v in existing.items()}
    merged = {**updated, **existing_lower}
    return merged, len(merged) - len(existing_lower)


def update_vendor_file(
    source_path: str | Path,
    target_path: str | Path = DEFAULT_MANUFACTURERS_PATH,
) -> tuple[int, int]:
    """Merge a local company-id export into a vendor table file.

    Returns:
        ``(total_vendors, new_vendors)``.

    Raises:
        CatalogError: The source file is missing or malformed.
    """
    source_path = Path(source_path)
    target_path = Path(target_path)

    source = _read_json(source_path)
    if not isinstance(source, list):
        raise CatalogError(
            f"{source_path} must contain a JSON array of company entries",
            path=str(source_path),
        )

    existing: dict[str, str] = {}
    if target_path.exists():
        existing = _lower_keys(_read_json(target_path), what="vendor table", path=target_path)

    merged, added = merge_vendor_database(source, existing)
    target_path.parent.mkdir(parents=True, exist_ok=True)
    with open(target_path, "w", encoding="utf-8") as fh:
        json.dump(dict(sorted(merged.items())), fh, indent=2, ensure_ascii=False)
        fh.write("\n")

    logger.info("Vendor table updated", path=str(target_path), total=len(merged), added=added)
    return len(merged), added
