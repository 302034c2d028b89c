"""
Text Report Generator

Generates formatted text reports for terminal display with
ANSI color support for severity highlighting.
"""

import re
from typing import List, Dict, Any, Optional
from pathlib import Path

from .base_reporter import BaseReporter
from ..detectors.base_detector import Finding, Severity

ANSI_ESCAPE = re.compile(r'\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])')

DETAILS_PER_LEVEL = 15


class TextReporter(BaseReporter):
    """
    Generates text reports for terminal display.

    Sections: summary, severity distribution, per-detector counts
    (including failed detectors), top sources and finding details.
    """

    COLORS = {
        'high': Severity.HIGH.color,
        'medium': Severity.MEDIUM.color,
        'low': Severity.LOW.color,
        'RESET': '\033[0m',
        'BOLD': '\033[1m',
        'HEADER': '\033[95m',    # Magenta
    }

    def __init__(self, title: str = "Log Threat Analysis Report", use_colors: bool = True):
        """
        Initialize text reporter.

        Args:
            title: Report title
            use_colors: Enable ANSI color output
        """
        super().__init__(title)
        self.use_colors = use_colors

    def _color(self, text: str, color: str) -> str:
        """Apply color to text if colors enabled."""
        if not self.use_colors:
            return text
        return f"{self.COLORS.get(color, '')}{text}{self.COLORS['RESET']}"

    def generate(
        self,
        findings: List[Finding],
        stats: Dict[str, Any],
        output_path: Optional[Path] = None
    ) -> str:
        """Generate text report."""
        sections = [
            self._generate_header(stats),
            self._generate_summary(findings, stats),
            self._generate_severity_section(findings),
            self._generate_detector_section(findings, stats),
            self._generate_top_sources(findings),
            self._generate_finding_details(findings),
            self._generate_footer(stats),
        ]
        report = '\n\n'.join('\n'.join(section) for section in sections)

        if output_path:
            output_path = Path(output_path)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            with open(output_path, 'w') as f:
                f.write(self.strip_colors(report))

        return report

    def _rule(self, char: str = "=", width: int = 80) -> str:
        return self._color(char * width, 'HEADER')

    def _generate_header(self, stats: Dict[str, Any]) -> List[str]:
        lines = [
            self._rule(),
            self._color(f"  {self.title}", 'BOLD'),
            f"  Generated: {self.generated_at.strftime('%Y-%m-%d %H:%M:%S')}",
        ]
        if stats.get('source'):
            lines.append(f"  Source: {stats['source']}")
        lines.append(self._rule())
        return lines

    def _generate_summary(self, findings: List[Finding], stats: Dict[str, Any]) -> List[str]:
        parse = stats.get('parse') or {}
        severity = self._get_severity_summary(findings)

        lines = [
            self._color("  SUMMARY", 'BOLD'),
            self._rule("-", 40),
            f"  Log Format: {parse.get('format') or 'unknown'}",
            f"  Lines Processed: {parse.get('lines_processed', 0):,}",
            f"  Records Parsed: {parse.get('lines_parsed', 0):,} "
            f"({parse.get('success_rate', 0):.1f}%)",
            f"  Lines Skipped: {parse.get('parse_errors', 0):,}",
            "",
        ]
        for level in Severity:
            lines.append(f"  {self._color(f'{level.value.upper()}: {severity[level.value]}', level.value)}")
        lines.append("")
        lines.append(f"  {self._color(f'TOTAL FINDINGS: {len(findings)}', 'BOLD')}")
        return lines

    def _generate_severity_section(self, findings: List[Finding]) -> List[str]:
        """Generate severity breakdown with visual bar."""
        lines = [
            self._color("  SEVERITY DISTRIBUTION", 'BOLD'),
            self._rule("-", 40),
        ]

        severity = self._get_severity_summary(findings)
        total = max(sum(severity.values()), 1)

        for level in Severity:
            count = severity[level.value]
            pct = count / total * 100
            bar = '#' * int(pct / 2)
            lines.append(
                f"  {self._color(f'{level.value.upper():8}', level.value)} "
                f"[{self._color(bar.ljust(50), level.value)}] "
                f"{count:4} ({pct:5.1f}%)"
            )

        return lines

    def _generate_detector_section(self, findings: List[Finding], stats: Dict[str, Any]) -> List[str]:
        lines = [
            self._color("  DETECTORS", 'BOLD'),
            self._rule("-", 40),
        ]

        summary = stats.get('summary') or {}
        counts = summary.get('counts') or self._get_detector_summary(findings)
        for identifier, count in counts.items():
            lines.append(f"  {identifier:30} {count:5}")

        for identifier, message in (summary.get('failed') or {}).items():
            lines.append(f"  {identifier:30} {self._color('FAILED', 'high')}  {message}")

        if not counts and not summary.get('failed'):
            lines.append("  No detectors were run")

        return lines

    def _generate_top_sources(self, findings: List[Finding]) -> List[str]:
        lines = [
            self._color("  TOP SOURCES", 'BOLD'),
            self._rule("-", 40),
        ]

        sources = self._get_top_sources(findings)
        for ip, count in sources:
            lines.append(f"  {ip:20} {count:5} findings")

        if not sources:
            lines.append("  No suspicious sources identified")

        return lines

    def _generate_finding_details(self, findings: List[Finding]) -> List[str]:
        lines = [
            self._color("  FINDINGS", 'BOLD'),
            self._rule("-", 40),
        ]

        if not findings:
            lines.append("  No threats detected")
            return lines

        for level in Severity:
            level_findings = [f for f in findings if f.severity is level]
            if not level_findings:
                continue

            lines.append("")
            lines.append(self._color(
                f"  [{level.value.upper()}] FINDINGS ({len(level_findings)})", level.value
            ))
            for finding in level_findings[:DETAILS_PER_LEVEL]:
                lines.append("")
                lines.append(self._format_finding(finding))

            if len(level_findings) > DETAILS_PER_LEVEL:
                lines.append("")
                lines.append(
                    f"  ... and {len(level_findings) - DETAILS_PER_LEVEL} more "
                    f"{level.value} findings"
                )

        return lines

    def _format_finding(self, finding: Finding) -> str:
        """Format a single finding for display."""
        timestamp = finding.timestamp.strftime('%Y-%m-%d %H:%M:%S') if finding.timestamp else 'N/A'
        lines = [
            f"  {self._color('Detector:', 'BOLD')} {finding.detector}",
            f"  {self._color('Line:', 'BOLD')} {finding.line_number or 'N/A'}",
            f"  {self._color('Time:', 'BOLD')} {timestamp}",
            f"  {self._color('Source IP:', 'BOLD')} {finding.source_ip or 'N/A'}",
            f"  {self._color('Description:', 'BOLD')} {finding.description}",
        ]
        if finding.evidence:
            lines.append(f"  {self._color('Evidence:', 'BOLD')} {finding.evidence}")
        return '\n'.join(lines)

    def _generate_footer(self, stats: Dict[str, Any]) -> List[str]:
        summary = stats.get('summary') or {}
        return [
            self._rule(),
            "  Report generated by Log Threat Analyzer",
            f"  Scan completed in {summary.get('duration_seconds', 0):.2f} seconds",
            self._rule(),
        ]

    @staticmethod
    def strip_colors(text: str) -> str:
        """Remove ANSI color codes from text."""
        return ANSI_ESCAPE.sub('', text)
