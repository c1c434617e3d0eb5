"""
Sonar Shared Module
===================

Configuration, console, logging and error types used by every Sonar
component.
"""

from shared.config import SonarConfig
from shared.errors import SonarError

__all__ = ["SonarConfig", "SonarError"]
