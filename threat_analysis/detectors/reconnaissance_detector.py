"""
Reconnaissance Detectors

Detects the scanning phase that usually precedes exploitation:
- Requests made by known attack and scanning tools
- Forced browsing, where one source probes many missing resources

MITRE ATT&CK References:
- T1595.002: Active Scanning - Vulnerability Scanning
- T1595.003: Active Scanning - Wordlist Scanning
"""

import re
from collections import defaultdict
from datetime import timedelta
from typing import Optional, List, Dict, Sequence

from .base_detector import (
    BaseDetector, RecordDetector, Finding, Severity, DetectorConfig, densest_window
)
from ..parsers.base_parser import LogRecord


class SuspiciousUserAgentDetector(RecordDetector):
    """
    Flags requests whose user agent names an attack tool.

    Only records whose grammar captures a user agent are inspected, so
    Common Log Format lines never produce an "empty user agent" finding.
    """

    TOOL_SIGNATURES = {
        'high': [
            r'sqlmap', r'nikto', r'nmap', r'masscan', r'zgrab', r'acunetix',
            r'nessus', r'openvas', r'w3af', r'havij', r'hydra', r'dirbuster',
            r'gobuster', r'dirb\b', r'wfuzz', r'ffuf', r'wpscan', r'nuclei',
            r'burp', r'metasploit', r'jndi:',
        ],
        'medium': [
            r'zmeu', r'morfeus', r'\bcensys', r'netsparker', r'appscan',
            r'whatweb', r'skipfish',
        ],
        'low': [
            r'python-requests', r'python-urllib', r'\bcurl/', r'\bwget/',
            r'go-http-client', r'libwww-perl', r'scrapy',
        ],
    }

    def __init__(self, config: Optional[DetectorConfig] = None):
        super().__init__(
            name="suspicious_user_agent",
            description="Detects requests made by attack tools and scanners",
            config=config
        )
        self._signatures = {
            tier: [re.compile(p, re.IGNORECASE) for p in patterns]
            for tier, patterns in self.TOOL_SIGNATURES.items()
        }

    def analyze_entry(self, record: LogRecord) -> Optional[Finding]:
        if not record.is_web_request:
            return None

        user_agent = record.fields.get('user_agent')
        if user_agent is None:
            return None

        if not user_agent.strip() or user_agent.strip() == '-':
            return self._finding(
                record, Severity.LOW,
                "Request with empty user agent",
                evidence=record.message,
                tool=None,
            )

        for tier in ('high', 'medium', 'low'):
            for pattern in self._signatures[tier]:
                match = pattern.search(user_agent)
                if match:
                    tool = match.group().strip('/:').lower()
                    return self._finding(
                        record, tier,
                        f"Request from known scanning tool '{tool}'",
                        evidence=user_agent,
                        tool=tool,
                    )
        return None


class ErrorEnumerationDetector(BaseDetector):
    """
    Detects forced browsing: many 404 responses for one source inside a
    sliding window. One finding per source, pointing at the last request
    of its densest burst.
    """

    DEFAULT_CONFIG = {
        'threshold': 20,             # 404s within the window before alert
        'time_window_minutes': 5,
    }

    NOT_FOUND = 404

    def __init__(self, config: Optional[DetectorConfig] = None):
        super().__init__(
            name="error_enumeration",
            description="Detects forced browsing through bursts of 404 responses",
            config=config
        )

    def analyze(self, records: Sequence[LogRecord]) -> List[Finding]:
        misses: Dict[str, List[LogRecord]] = defaultdict(list)
        for record in records:
            if record.source_ip and record.is_web_request and \
                    record.status_code == self.NOT_FOUND:
                misses[record.source_ip].append(record)

        threshold = self.config.get('threshold', 20)
        window = timedelta(minutes=self.config.get('time_window_minutes', 5))
        findings = []

        for source_ip, attempts in misses.items():
            if len(attempts) < threshold:
                continue
            burst = densest_window(attempts, window)
            if len(burst) < threshold:
                continue

            count = len(burst)
            if count >= threshold * 5:
                severity = Severity.HIGH
            elif count >= threshold * 2:
                severity = Severity.MEDIUM
            else:
                severity = Severity.LOW

            paths = sorted({r.path for r in burst if r.path})
            findings.append(self._finding(
                burst[-1], severity,
                f"Forced browsing detected: {count} not-found responses for {source_ip}",
                request_count=count,
                distinct_paths=len(paths),
                sample_paths=paths[:10],
                first_line=burst[0].line_number,
            ))

        findings.sort(key=lambda f: f.line_number or 0)
        return findings
