"""
Report Generation Module

Renders scan results for the command line. JSON and CSV exports are
produced by DetectionEngine.export_findings.
"""

from .base_reporter import BaseReporter
from .text_reporter import TextReporter

__all__ = [
    'BaseReporter',
    'TextReporter',
]
