"""
Syslog Parser

Parses standard syslog format (RFC 3164 and RFC 5424) entries.

RFC 3164 (BSD syslog):
    <priority>timestamp hostname process[pid]: message

RFC 5424:
    <priority>version timestamp hostname app-name procid msgid structured-data msg

Examples:
    Jan 15 10:23:45 webserver sshd[12345]: Accepted publickey for user from 192.168.1.50
    <34>1 2024-01-15T10:23:45.003Z webserver sshd 12345 - - Accepted publickey for user
"""

import re
from datetime import datetime
from typing import Optional, Dict, Any

from .base_parser import BaseParser, LogRecord


def parse_bsd_timestamp(ts_str: str, year: int) -> Optional[datetime]:
    """Parse a year-less 'Jan 15 10:23:45' timestamp in the given year."""
    try:
        return datetime.strptime(f"{year} {ts_str}", "%Y %b %d %H:%M:%S")
    except ValueError:
        return None


class SyslogParser(BaseParser):
    """
    Parser for syslog format logs.

    Handles both RFC 3164 (traditional BSD syslog) and RFC 5424
    (modern syslog protocol) formats. Extracts facility, severity,
    and structured data when available.
    """

    generic = True

    # Syslog facility codes
    FACILITIES = {
        0: 'kern', 1: 'user', 2: 'mail', 3: 'daemon',
        4: 'auth', 5: 'syslog', 6: 'lpr', 7: 'news',
        8: 'uucp', 9: 'cron', 10: 'authpriv', 11: 'ftp',
        12: 'ntp', 13: 'security', 14: 'console', 15: 'solaris-cron',
        16: 'local0', 17: 'local1', 18: 'local2', 19: 'local3',
        20: 'local4', 21: 'local5', 22: 'local6', 23: 'local7',
    }

    # Syslog severity levels
    SEVERITIES = {
        0: 'emergency', 1: 'alert', 2: 'critical', 3: 'error',
        4: 'warning', 5: 'notice', 6: 'info', 7: 'debug',
    }

    RFC3164_PATTERN = re.compile(
        r'^(?:<(?P<priority>\d{1,3})>)?'                    # Optional priority
        r'(?P<timestamp>\w{3}\s+\d{1,2}\s+\d{2}:\d{2}:\d{2})\s+'  # Timestamp
        r'(?P<hostname>\S+)\s+'                              # Hostname
        r'(?P<process>[^\s:\[]+)(?:\[(?P<pid>\d+)\])?:\s*'  # Process[pid]:
        r'(?P<message>.*)$'                                  # Message
    )

    RFC5424_PATTERN = re.compile(
        r'^<(?P<priority>\d{1,3})>'                         # Priority
        r'(?P<version>\d+)\s+'                              # Version
        r'(?P<timestamp>\S+)\s+'                            # ISO timestamp
        r'(?P<hostname>\S+)\s+'                             # Hostname
        r'(?P<appname>\S+)\s+'                              # App name
        r'(?P<procid>\S+)\s+'                               # Process ID
        r'(?P<msgid>\S+)\s+'                                # Message ID
        r'(?P<structured>(?:\[.*?\])+|-)\s*'                # Structured data
        r'(?P<message>.*)$'                                 # Message
    )

    # Minimal syslog: timestamp, host, message
    SIMPLE_PATTERN = re.compile(
        r'^(?P<timestamp>\w{3}\s+\d{1,2}\s+\d{2}:\d{2}:\d{2})\s+'
        r'(?P<hostname>\S+)\s+'
        r'(?P<message>.*)$'
    )

    IP_PATTERNS = [
        re.compile(r'from\s+(\d{1,3}(?:\.\d{1,3}){3})'),
        re.compile(r'(?:src|SRC|rhost)=(\d{1,3}(?:\.\d{1,3}){3})'),
        re.compile(r'\b(\d{1,3}(?:\.\d{1,3}){3})\b'),
    ]

    USER_PATTERNS = [
        re.compile(r'\buser[=:\s]+([\w.-]+)', re.IGNORECASE),
        re.compile(r'\bUSER=(\S+)'),
        re.compile(r'\bfor\s+([\w.-]+)\s+from\b'),
    ]

    RFC5424_TIMESTAMP_FORMATS = [
        "%Y-%m-%dT%H:%M:%S.%f%z",
        "%Y-%m-%dT%H:%M:%S%z",
        "%Y-%m-%dT%H:%M:%S.%f",
        "%Y-%m-%dT%H:%M:%S",
    ]

    def __init__(self, reference_year: Optional[int] = None):
        """
        Initialize syslog parser.

        Args:
            reference_year: Year assumed for RFC 3164 timestamps, which
                carry none (defaults to the current year)
        """
        super().__init__("syslog")
        self.reference_year = reference_year or datetime.now().year

    def matches(self, line: str) -> bool:
        return bool(
            self.RFC5424_PATTERN.match(line) or
            self.RFC3164_PATTERN.match(line) or
            self.SIMPLE_PATTERN.match(line)
        )

    def _decode_priority(self, priority: int) -> Dict[str, Any]:
        """
        Decode syslog priority into facility and severity.

        Priority = Facility * 8 + Severity
        """
        facility_code = priority // 8
        severity_code = priority % 8

        return {
            'facility': self.FACILITIES.get(facility_code, 'unknown'),
            'severity': self.SEVERITIES.get(severity_code, 'unknown'),
        }

    def _parse_rfc5424_timestamp(self, ts_str: str) -> Optional[datetime]:
        """Parse RFC 5424 ISO timestamp."""
        ts_str = ts_str.replace('Z', '+0000')
        for fmt in self.RFC5424_TIMESTAMP_FORMATS:
            try:
                return datetime.strptime(ts_str, fmt)
            except ValueError:
                continue
        return None

    def _extract_ip(self, message: str) -> Optional[str]:
        for pattern in self.IP_PATTERNS:
            match = pattern.search(message)
            if match:
                return match.group(1)
        return None

    def _extract_user(self, message: str) -> Optional[str]:
        for pattern in self.USER_PATTERNS:
            match = pattern.search(message)
            if match:
                return match.group(1)
        return None

    def parse_line(self, line: str, line_number: int = 0) -> Optional[LogRecord]:
        """
        Parse a single syslog line.

        Attempts RFC 5424 first, then RFC 3164, then simple format.
        """
        match = self.RFC5424_PATTERN.match(line)
        if match:
            groups = match.groupdict()
            return self._build(
                line, line_number,
                timestamp=self._parse_rfc5424_timestamp(groups['timestamp']),
                message=groups.get('message') or '',
                extra={
                    'hostname': groups.get('hostname'),
                    'process': groups.get('appname'),
                    'pid': self._dash_to_none(groups.get('procid')),
                    'msgid': self._dash_to_none(groups.get('msgid')),
                    'structured_data': self._dash_to_none(groups.get('structured')),
                    **self._decode_priority(int(groups['priority'])),
                }
            )

        match = self.RFC3164_PATTERN.match(line)
        if match:
            groups = match.groupdict()
            priority = int(groups['priority']) if groups.get('priority') else 13
            return self._build(
                line, line_number,
                timestamp=parse_bsd_timestamp(groups['timestamp'], self.reference_year),
                message=groups.get('message') or '',
                extra={
                    'hostname': groups.get('hostname'),
                    'process': groups.get('process'),
                    'pid': groups.get('pid'),
                    **self._decode_priority(priority),
                }
            )

        match = self.SIMPLE_PATTERN.match(line)
        if match:
            groups = match.groupdict()
            return self._build(
                line, line_number,
                timestamp=parse_bsd_timestamp(groups['timestamp'], self.reference_year),
                message=groups.get('message') or '',
                extra={'hostname': groups.get('hostname')}
            )

        return None

    def _build(
        self,
        line: str,
        line_number: int,
        timestamp: Optional[datetime],
        message: str,
        extra: Dict[str, Any]
    ) -> LogRecord:
        return LogRecord(
            line_number=line_number,
            timestamp=timestamp,
            source_ip=self._extract_ip(message),
            message=message,
            log_type=self.log_type,
            raw_line=line,
            fields={'user': self._extract_user(message), **extra},
        )
