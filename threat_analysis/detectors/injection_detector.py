"""
Injection Attack Detectors

Detects injection attacks in web server logs:
- SQL Injection (SQLi)
- Cross-Site Scripting (XSS)
- OS Command Injection

Each request's URL, referer and user agent are URL-decoded (several
passes, for double encoding) and matched against signature tables
ordered from most to least severe.

MITRE ATT&CK References:
- T1190: Exploit Public-Facing Application
- T1059: Command and Scripting Interpreter
"""

import re
from collections import Counter
from dataclasses import replace
from urllib.parse import unquote_plus
from typing import Optional, List, Dict, Sequence, Tuple

from .base_detector import RecordDetector, Finding, Severity, DetectorConfig
from ..parsers.base_parser import LogRecord

TIERS = ('critical', 'high', 'medium', 'low')


def decode_payload(payload: str, passes: int = 3) -> str:
    """URL-decode repeatedly until stable, normalise whitespace, lower-case."""
    decoded = payload
    for _ in range(passes):
        new_decoded = unquote_plus(decoded)
        if new_decoded == decoded:
            break
        decoded = new_decoded

    decoded = re.sub(r'\s+', ' ', decoded)
    return decoded.lower()


class SignatureDetector(RecordDetector):
    """
    Matches request fields against a tiered signature table.

    Subclasses provide PATTERNS ({tier: [regex, ...]}) and LABEL.
    """

    PATTERNS: Dict[str, List[str]] = {}
    LABEL = "Injection"
    INSPECTED_FIELDS = ('path', 'referer', 'user_agent')

    def __init__(self, name: str, description: str, config: Optional[DetectorConfig] = None):
        super().__init__(name, description, config)
        self._compiled: Dict[str, List[re.Pattern]] = {
            tier: [re.compile(p, re.IGNORECASE) for p in self.PATTERNS.get(tier, [])]
            for tier in TIERS
        }

    def _decode(self, content: str) -> str:
        return decode_payload(content)

    def _targets(self, record: LogRecord) -> List[Tuple[str, str]]:
        targets = []
        for name in self.INSPECTED_FIELDS:
            value = record.fields.get(name)
            if value and value != '-':
                targets.append((value, 'url' if name == 'path' else name))
        return targets

    def _match(self, content: str) -> Optional[Tuple[str, str, str]]:
        """
        Find the most severe signature in content.

        Returns:
            Tuple of (tier, pattern_name, matched_text) or None
        """
        for tier in TIERS:
            for i, pattern in enumerate(self._compiled[tier]):
                match = pattern.search(content)
                if match:
                    return (tier, f"{tier}_{i}", match.group())
        return None

    def analyze_entry(self, record: LogRecord) -> Optional[Finding]:
        if not record.is_web_request:
            return None

        for content, source in self._targets(record):
            detection = self._match(self._decode(content))
            if detection:
                tier, pattern, matched = detection
                excerpt = matched if len(matched) <= 50 else matched[:50] + '...'
                return self._finding(
                    record, tier,
                    f"{self.LABEL} attempt detected in {source}: '{excerpt}'",
                    evidence=content,
                    pattern_matched=pattern,
                    injection_point=source,
                )
        return None


class SQLInjectionDetector(SignatureDetector):
    """
    Detects SQL injection attempts in web server logs.

    Sources with several attempts are treated as a sustained campaign
    and all of their findings are raised to HIGH.
    """

    DEFAULT_CONFIG = {'campaign_threshold': 3}
    LABEL = "SQL injection"

    PATTERNS = {
        'critical': [
            # Union-based injection
            r"union\s+(?:all\s+)?select",
            # Stacked queries
            r";\s*(?:drop|delete|truncate|update|insert)\s+",
            r";\s*exec(?:ute)?\s*\(",
            # Data exfiltration
            r"into\s+(?:out|dump)file",
            r"load_file\s*\(",
            # Schema enumeration
            r"information_schema\.",
            r"sys\.(?:tables|columns|objects)",
            r"sqlite_master",
        ],
        'high': [
            # Boolean-based blind injection
            r"['\"]\s*(?:and|or)\s+['\"]?[\w]+['\"]?\s*(?:=|<|>|like)\s*['\"]?[\w]+",
            r"\b(?:and|or)\s+\d+\s*=\s*\d+",
            # Time-based blind injection
            r"(?:sleep|benchmark|pg_sleep)\s*\(",
            r"waitfor\s+delay",
            # Error-based injection
            r"(?:extractvalue|updatexml)\s*\(",
            # Comment terminated quote
            r"['\"]\s*(?:--|#|/\*)",
        ],
        'medium': [
            r"['\"]\s*;?\s*(?:select|insert|update|delete|drop)\s+",
            r"(?:%27|&#39;|')\s*(?:or|and|union)\b",
            r"char\s*\(\s*\d+\s*(?:,\s*\d+\s*)*\)",
            r"\b(?:concat|group_concat|substring|ascii|hex|unhex)\s*\(",
        ],
        'low': [
            r"(?:order|group)\s+by\s+\d+",
            r"having\s+\d+\s*=\s*\d+",
        ],
    }

    def __init__(self, config: Optional[DetectorConfig] = None):
        super().__init__(
            name="sql_injection",
            description="Detects SQL injection attempts in web requests",
            config=config
        )

    def _decode(self, content: str) -> str:
        decoded = decode_payload(content)
        # Hex literals (0x...) used to smuggle keywords
        return re.sub(
            r'0x((?:[0-9a-f]{2})+)',
            lambda m: bytes.fromhex(m.group(1)).decode('utf-8', errors='ignore'),
            decoded
        )

    def analyze(self, records: Sequence[LogRecord]) -> List[Finding]:
        findings = super().analyze(records)

        per_source = Counter(f.source_ip for f in findings if f.source_ip)
        threshold = self.config.get('campaign_threshold', 3)

        escalated = []
        for finding in findings:
            if (finding.source_ip and per_source[finding.source_ip] >= threshold
                    and finding.severity is not Severity.HIGH):
                finding = replace(
                    finding,
                    severity=Severity.HIGH,
                    description=finding.description + " (Part of sustained attack campaign)"
                )
            escalated.append(finding)
        return escalated


class XSSDetector(SignatureDetector):
    """
    Detects Cross-Site Scripting (XSS) attempts.

    Identifies reflected and stored XSS payloads in request fields,
    including HTML-entity obfuscation.
    """

    LABEL = "XSS"

    PATTERNS = {
        'critical': [
            r"<script[^>]*>",
            r"javascript\s*:",
            r"vbscript\s*:",
            r"<(?:img|svg|body|iframe)[^>]+on\w+\s*=",
        ],
        'high': [
            r"\bon(?:load|error|click|mouseover|focus)\s*=",
            r"data\s*:\s*text/html",
            r"document\s*\.\s*(?:cookie|write|location)",
            r"window\s*\.\s*(?:location|open)",
            r"\b(?:alert|prompt|confirm|eval)\s*\(",
        ],
        'medium': [
            r"<(?:iframe|frame|object|embed|applet|form|meta)\b",
            r"expression\s*\(",
            r"-moz-binding\s*:",
        ],
        'low': [
            r"<[a-z]+[^>]*>",
        ],
    }

    HTML_ENTITIES = {
        '&lt;': '<', '&gt;': '>', '&quot;': '"', '&apos;': "'",
        '&#x3c;': '<', '&#x3e;': '>', '&#60;': '<', '&#62;': '>',
        '&amp;': '&',
    }

    def __init__(self, config: Optional[DetectorConfig] = None):
        super().__init__(
            name="xss",
            description="Detects Cross-Site Scripting attempts",
            config=config
        )

    def _decode(self, content: str) -> str:
        decoded = decode_payload(content)
        for entity, char in self.HTML_ENTITIES.items():
            decoded = decoded.replace(entity, char)
        return decoded


class CommandInjectionDetector(SignatureDetector):
    """Detects OS command injection attempts in request fields."""

    LABEL = "Command injection"

    SHELL_COMMANDS = r"(?:cat|ls|id|whoami|uname|wget|curl|nc|ncat|bash|sh|rm|chmod|ping|nslookup|python|perl)"

    PATTERNS = {
        'critical': [
            r"(?:;|\||&&|\|\|)\s*" + SHELL_COMMANDS + r"\b",
            r"`[^`]+`",
            r"\$\([^)]+\)",
            r"/bin/(?:ba)?sh\b",
            r"\b(?:cmd\.exe|powershell(?:\.exe)?)\b",
        ],
        'high': [
            r"\b(?:wget|curl)\s+(?:-\S+\s+)*https?://",
            r"\bnc\s+(?:-\S+\s+)*\d{1,3}(?:\.\d{1,3}){3}\s+\d+",
            r"/etc/(?:passwd|shadow)\s*(?:;|\||$)",
        ],
        'medium': [
            r"\$\{ifs\}",
            r"\b(?:system|exec|passthru|shell_exec|popen)\s*\(",
        ],
    }

    def __init__(self, config: Optional[DetectorConfig] = None):
        super().__init__(
            name="command_injection",
            description="Detects OS command injection attempts in web requests",
            config=config
        )
