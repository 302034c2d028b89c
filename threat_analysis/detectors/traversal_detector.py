"""
Directory Traversal Attack Detector

Detects path traversal and local file inclusion (LFI) attempts
that aim to access files outside the web root.

Attack Vectors Detected:
- Classic traversal (../, ..\\)
- URL encoded and double encoded traversal (%2e%2e%2f, %252e...)
- Overlong UTF-8 encoding bypass
- Null byte injection
- Sensitive file access attempts

MITRE ATT&CK References:
- T1083: File and Directory Discovery
- T1005: Data from Local System
"""

import re
from collections import Counter
from dataclasses import replace
from urllib.parse import unquote
from typing import Optional, List, Dict, Sequence, Tuple

from .base_detector import RecordDetector, Finding, Severity, DetectorConfig
from ..parsers.base_parser import LogRecord


class DirectoryTraversalDetector(RecordDetector):
    """
    Detects directory traversal and LFI attacks.

    Requests that reached a sensitive file with a successful response are
    escalated, and so are all findings from a source that keeps trying.
    """

    DEFAULT_CONFIG = {'repeat_offender_threshold': 5}

    # Checked against the raw (still encoded) path
    ENCODED_PATTERNS = [
        r'%252e%252e(?:%252f|%255c)',
        r'%c0%ae',
        r'%e0%80%ae',
        r'%c0%af',
        r'%c1%9c',
        r'%00',
    ]

    # Sensitive files commonly targeted
    SENSITIVE_FILES = {
        'critical': [
            r'/etc/(?:passwd|shadow|master\.passwd)',
            r'\.ssh/(?:id_rsa|id_dsa|authorized_keys)',
            r'/\.env(?:$|[?#])',
            r'\.git/(?:config|head)',
            r'\.htpasswd',
            r'windows/system32/config/sam',
            r'(?:boot|win)\.ini',
        ],
        'high': [
            r'(?:httpd|nginx|php)\.(?:conf|ini)',
            r'wp-config\.php',
            r'(?:database|secrets)\.yml',
            r'/var/log/',
            r'/proc/(?:self|\d+)/',
        ],
        'medium': [
            r'/etc/(?:hosts|hostname|resolv\.conf|issue)',
            r'\.htaccess',
            r'web\.config',
        ],
    }

    # Response codes that indicate successful traversal
    SUCCESS_CODES = {200, 206, 304}

    def __init__(self, config: Optional[DetectorConfig] = None):
        """Initialize traversal detector."""
        super().__init__(
            name="directory_traversal",
            description="Detects directory traversal and LFI attacks",
            config=config
        )
        self._encoded_patterns = [re.compile(p, re.IGNORECASE) for p in self.ENCODED_PATTERNS]
        self._sensitive_patterns: Dict[str, List[re.Pattern]] = {
            level: [re.compile(p, re.IGNORECASE) for p in patterns]
            for level, patterns in self.SENSITIVE_FILES.items()
        }

    def analyze(self, records: Sequence[LogRecord]) -> List[Finding]:
        """Analyze records, then escalate repeat offenders."""
        findings = super().analyze(records)

        attempts = Counter(f.source_ip for f in findings if f.source_ip)
        threshold = self.config.get('repeat_offender_threshold', 5)

        result = []
        for finding in findings:
            if (finding.source_ip and attempts[finding.source_ip] >= threshold
                    and finding.severity is not Severity.HIGH):
                finding = replace(
                    finding,
                    severity=Severity.HIGH,
                    description=finding.description + " (Multiple traversal attempts from same IP)"
                )
            result.append(finding)
        return result

    def analyze_entry(self, record: LogRecord) -> Optional[Finding]:
        """Analyze single record for traversal."""
        if not record.is_web_request or not record.path:
            return None

        raw = record.path
        decoded = self._decode_path(raw)

        traversal = self._detect_traversal(raw, decoded)
        sensitive = self._detect_sensitive_file(decoded)

        if not traversal and not sensitive:
            return None

        successful = record.status_code in self.SUCCESS_CODES
        if sensitive:
            tier, target_file = sensitive
        else:
            tier, target_file = 'medium', decoded

        # Escalate if the server answered successfully
        if successful and tier != 'critical':
            tier = 'critical' if tier == 'high' else 'high'

        attack_type = "Directory traversal" if traversal else "Sensitive file access"
        description = f"{attack_type} attempt: {target_file[:100]}"
        if successful:
            description = f"SUCCESSFUL {description}"

        return self._finding(
            record, tier, description,
            evidence=raw,
            target_file=target_file,
            traversal_detected=traversal,
            successful=successful,
            status_code=record.status_code,
        )

    def _decode_path(self, path: str) -> str:
        """Decode path with multiple encoding layers."""
        decoded = path
        for _ in range(5):
            new_decoded = unquote(decoded)
            if new_decoded == decoded:
                break
            decoded = new_decoded

        return decoded.replace('\\', '/').replace('\x00', '')

    def _detect_traversal(self, raw: str, decoded: str) -> bool:
        """Check for traversal sequences before and after decoding."""
        if '../' in decoded or '/..' in decoded:
            return True
        return any(p.search(raw) for p in self._encoded_patterns)

    def _detect_sensitive_file(self, path: str) -> Optional[Tuple[str, str]]:
        """
        Check for sensitive file access.

        Returns:
            Tuple of (tier, matched_file) or None
        """
        for level in ('critical', 'high', 'medium'):
            for pattern in self._sensitive_patterns[level]:
                match = pattern.search(path)
                if match:
                    return (level, match.group())
        return None
