"""
Sonar Output
=============

Modules:
    console  -- Rich-based console display
    report   -- JSON report generation
"""

from sonar.output.console import SonarConsoleOutput
from sonar.output.report import SonarReportGenerator

__all__ = [
    "SonarConsoleOutput",
    "SonarReportGenerator",
]
