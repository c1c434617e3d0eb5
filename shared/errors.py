"""
Sonar Exception Hierarchy
==========================

Every error Sonar raises on purpose derives from :class:`SonarError`.
Soft decoding failures (short payloads, unknown vendors, unknown
service identifiers) are *not* errors and never reach this module.
"""

from __future__ import annotations


class SonarError(Exception):
    """Base exception for all Sonar errors."""


class ConfigError(SonarError):
    """Invalid configuration file or value."""


class CatalogError(SonarError):
    """A lookup table (vendor, sub-type or service table) could not be loaded."""

    def __init__(self, message: str, *, path: str = "") -> None:
        self.path = path
        super().__init__(message)


class CollectorError(SonarError):
    """The advertisement source could not be started or read."""


class SessionClosedError(SonarError):
    """An event was delivered to a session that has already been finalized."""


class CorrelationConsistencyError(SonarError):
    """Internal fault: the correlation pass did not partition its input.

    Raised when a record is assigned to two groups or left unassigned.
    This indicates a bug, not a recoverable condition.
    """

    def __init__(
        self,
        message: str,
        *,
        duplicated: list[str] | None = None,
        missing: list[str] | None = None,
    ) -> None:
        self.duplicated = duplicated or []
        self.missing = missing or []
        super().__init__(message)
