"""
Sonar Configuration Management
===============================

Configuration for the Sonar device identity resolver using Python
dataclasses and TOML-based persistence.

Architecture follows the Twelve-Factor App methodology for configuration
management (Wiggins, 2011), separating config from code.

References:
    - Wiggins, A. (2011). The Twelve-Factor App. https://12factor.net/
    - TOML v1.0.0 Specification. https://toml.io/en/v1.0.0
"""

from __future__ import annotations

import tomllib
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional

from shared.errors import ConfigError

# ---------------------------------------------------------------------------
# Default configuration file path relative to the project root
# ---------------------------------------------------------------------------
_DEFAULT_CONFIG_PATH: Path = Path(__file__).resolve().parent.parent / "sonar.toml"


# ========================== Tool-Specific Config ===========================


@dataclass(frozen=False, slots=True)
class ScanConfig:
    """Configuration for Sonar scanning and identity correlation.

    Attributes:
        scan_minutes: Default live scan duration; ``0`` scans until interrupted.
        watch: Default to watch mode (only new-device lines are printed).
        rssi_tolerance_db: Proximity tolerance used by the correlation pass.
        family_vendor: Vendor name whose records go through correlation.
        devices_path: Optional override for the sub-type / service tables.
        manufacturers_path: Optional override for the vendor-name table.
    """

    scan_minutes: float = 0.0
    watch: bool = False
    rssi_tolerance_db: int = 10
    family_vendor: str = "Apple"
    devices_path: Optional[str] = None
    manufacturers_path: Optional[str] = None


# =========================== Global Settings ===============================


@dataclass(frozen=False, slots=True)
class GlobalConfig:
    """Global logging settings."""

    log_level: str = "WARNING"
    log_file: Optional[str] = None
    log_json: bool = False
    debug: bool = False


# =========================== Master Config =================================


@dataclass(frozen=False, slots=True)
class SonarConfig:
    """Master configuration aggregating global and scan settings.

    Usage:
        >>> config = SonarConfig.load()                  # from default path
        >>> config = SonarConfig.load("custom.toml")     # from custom path
        >>> config.sonar.rssi_tolerance_db
        10
    """

    global_settings: GlobalConfig = field(default_factory=GlobalConfig)
    sonar: ScanConfig = field(default_factory=ScanConfig)

    # ------------------------------------------------------------------ #
    #  TOML Loading
    # ------------------------------------------------------------------ #

    @classmethod
    def load(cls, path: str | Path | None = None) -> SonarConfig:
        """Load configuration from a TOML file.

        If *path* is ``None`` the loader looks for ``sonar.toml`` in the
        project root.  Missing keys fall back to dataclass defaults.

        Args:
            path: Filesystem path to a TOML configuration file.

        Returns:
            A fully-populated :class:`SonarConfig` instance.

        Raises:
            FileNotFoundError: If the specified path does not exist
                *and* was explicitly provided by the caller.
            ConfigError: If the file is not valid TOML or a value has
                the wrong type.
        """
        config_path = Path(path) if path is not None else _DEFAULT_CONFIG_PATH

        if not config_path.exists():
            if path is not None:
                raise FileNotFoundError(
                    f"Configuration file not found: {config_path}"
                )
            return cls()

        try:
            with open(config_path, "rb") as fh:
                raw: dict[str, Any] = tomllib.load(fh)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid TOML in {config_path}: {exc}") from exc

        config = cls(
            global_settings=cls._build_section(GlobalConfig, raw.get("global", {})),
            sonar=cls._build_section(ScanConfig, raw.get("sonar", {})),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Reject values the scanner cannot work with."""
        if not isinstance(self.sonar.rssi_tolerance_db, int):
            raise ConfigError("sonar.rssi_tolerance_db must be an integer")
        if not isinstance(self.sonar.scan_minutes, (int, float)):
            raise ConfigError("sonar.scan_minutes must be a number")
        if self.sonar.rssi_tolerance_db < 0:
            raise ConfigError("sonar.rssi_tolerance_db must be >= 0")
        if self.sonar.scan_minutes < 0:
            raise ConfigError("sonar.scan_minutes must be >= 0")
        if not self.sonar.family_vendor:
            raise ConfigError("sonar.family_vendor must be non-empty")

    # ------------------------------------------------------------------ #
    #  Serialisation helpers
    # ------------------------------------------------------------------ #

    def to_dict(self) -> dict[str, Any]:
        """Serialise the entire configuration tree to a plain dictionary."""
        return asdict(self)

    @staticmethod
    def _build_section(cls: type, data: dict[str, Any]) -> Any:
        """Instantiate a dataclass *cls* using only the keys it declares.

        Unknown keys in the TOML source are ignored so that
        forward-compatible config files do not break older code.
        """
        if not isinstance(data, dict):
            raise ConfigError(f"Section for {cls.__name__} must be a table")
        valid_keys = {f.name for f in cls.__dataclass_fields__.values()}  # type: ignore[attr-defined]
        filtered = {k: v for k, v in data.items() if k in valid_keys}
        return cls(**filtered)
