"""
Base Reporter Module

Provides abstract base class for report generators.
"""

from abc import ABC, abstractmethod
from collections import Counter
from typing import List, Dict, Any, Optional, Tuple
from pathlib import Path
from datetime import datetime

from ..detectors.base_detector import Finding, Severity


class BaseReporter(ABC):
    """
    Abstract base class for report generators.

    All report formats must inherit from this class and implement
    the required abstract methods.
    """

    def __init__(self, title: str = "Log Threat Analysis Report"):
        """
        Initialize reporter.

        Args:
            title: Report title
        """
        self.title = title
        self.generated_at = datetime.now()

    @abstractmethod
    def generate(
        self,
        findings: List[Finding],
        stats: Dict[str, Any],
        output_path: Optional[Path] = None
    ) -> str:
        """
        Generate the report.

        Args:
            findings: Findings to report, most severe first
            stats: Parse statistics and scan summary
            output_path: Optional file path to save report

        Returns:
            Report content as string
        """
        pass

    def _get_severity_summary(self, findings: List[Finding]) -> Dict[str, int]:
        """Get count of findings by severity level."""
        summary = {severity.value: 0 for severity in Severity}
        for finding in findings:
            summary[finding.severity.value] += 1
        return summary

    def _get_detector_summary(self, findings: List[Finding]) -> Dict[str, int]:
        """Get count of findings by detector."""
        return dict(Counter(f.detector for f in findings))

    def _get_top_sources(self, findings: List[Finding], limit: int = 10) -> List[Tuple[str, int]]:
        """Get top source addresses by finding count."""
        counts = Counter(f.source_ip for f in findings if f.source_ip)
        return counts.most_common(limit)
