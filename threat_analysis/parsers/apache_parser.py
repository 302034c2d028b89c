"""
Apache Access Log Parser

Parses Apache Combined Log Format and Common Log Format entries.

Combined Log Format:
    %h %l %u %t "%r" %>s %b "%{Referer}i" "%{User-Agent}i"

Example:
    192.168.1.100 - admin [10/Oct/2023:13:55:36 -0700] "GET /admin HTTP/1.1" 200 2326 "-" "Mozilla/5.0"
"""

import re
from datetime import datetime
from typing import Optional

from .base_parser import BaseParser, LogRecord


class ApacheParser(BaseParser):
    """
    Parser for Apache access logs in Combined and Common formats.

    Extracts client address, user, request line and response details
    for security analysis.
    """

    # Regex pattern for Apache Combined Log Format
    COMBINED_PATTERN = re.compile(
        r'^(?P<ip>[\d.]+|[\da-fA-F:]+)\s+'           # Client IP (IPv4 or IPv6)
        r'(?P<ident>\S+)\s+'                          # Ident (usually -)
        r'(?P<user>\S+)\s+'                           # User (or -)
        r'\[(?P<timestamp>[^\]]+)\]\s+'               # Timestamp [dd/Mon/yyyy:HH:MM:SS zone]
        r'"(?P<method>[A-Za-z]+)\s+'                  # HTTP Method
        r'(?P<path>\S+)\s*'                           # Request path
        r'(?P<protocol>[^"]*)"\s+'                    # Protocol
        r'(?P<status>\d{3})\s+'                       # Status code
        r'(?P<size>\S+)'                              # Response size
        r'(?:\s+"(?P<referer>[^"]*)"\s+'              # Referer (optional)
        r'"(?P<useragent>[^"]*)")?'                   # User-Agent (optional)
    )

    # Timestamp format in Apache logs
    TIMESTAMP_FORMAT = "%d/%b/%Y:%H:%M:%S %z"

    def __init__(self):
        """Initialize Apache log parser."""
        super().__init__("apache")

    def matches(self, line: str) -> bool:
        return bool(self.COMBINED_PATTERN.match(line))

    def parse_line(self, line: str, line_number: int = 0) -> Optional[LogRecord]:
        """
        Parse a single Apache access log line.

        Args:
            line: Raw Apache log line
            line_number: Position of the line in the payload

        Returns:
            LogRecord if parsing successful, None otherwise
        """
        match = self.COMBINED_PATTERN.match(line)
        if not match:
            return None

        groups = match.groupdict()
        method = groups['method'].upper()
        path = groups['path']
        size = groups.get('size') or '-'

        return LogRecord(
            line_number=line_number,
            timestamp=self._parse_timestamp(groups['timestamp']),
            source_ip=groups['ip'],
            message=f"{method} {path}",
            log_type=self.log_type,
            raw_line=line,
            fields={
                'method': method,
                'path': path,
                'protocol': groups.get('protocol') or None,
                'status': int(groups['status']),
                'size': int(size) if size.isdecimal() else 0,
                'user': self._dash_to_none(groups.get('user')),
                'ident': self._dash_to_none(groups.get('ident')),
                'referer': self._dash_to_none(groups.get('referer')),
                'user_agent': groups.get('useragent'),
            }
        )

    def _parse_timestamp(self, ts_str: str) -> Optional[datetime]:
        try:
            return datetime.strptime(ts_str, self.TIMESTAMP_FORMAT)
        except ValueError:
            # Try without timezone
            try:
                return datetime.strptime(ts_str.rsplit(' ', 1)[0], "%d/%b/%Y:%H:%M:%S")
            except ValueError:
                return None
