"""
Nginx Log Parser

Parses Nginx access logs in the default combined format, plus the
Nginx error log format.

Default Nginx Combined Format:
    $remote_addr - $remote_user [$time_local] "$request" $status $body_bytes_sent "$http_referer" "$http_user_agent"

Example:
    10.0.0.1 - - [01/Jan/2024:12:00:00 +0000] "GET /api/users HTTP/1.1" 200 1234 "-" "curl/7.68.0"
"""

import re
from datetime import datetime
from typing import Optional

from .base_parser import BaseParser, LogRecord


class NginxParser(BaseParser):
    """
    Parser for Nginx access and error logs.

    Handles the optional trailing X-Forwarded-For field so the original
    client is reported when Nginx sits behind a proxy.
    """

    # Regex pattern for Nginx combined log format
    NGINX_PATTERN = re.compile(
        r'^(?P<ip>[\d.]+|[\da-fA-F:]+)\s+'           # Remote address
        r'-\s+'                                        # Separator
        r'(?P<user>\S+)\s+'                           # Remote user
        r'\[(?P<timestamp>[^\]]+)\]\s+'               # Time local
        r'"(?P<request>[^"]*)"\s+'                    # Request line
        r'(?P<status>\d{3})\s+'                       # Status code
        r'(?P<bytes>\d+|-)\s*'                        # Body bytes sent
        r'(?:"(?P<referer>[^"]*)"\s*)?'               # HTTP referer
        r'(?:"(?P<useragent>[^"]*)")?'                # HTTP user agent
        r'(?:\s+"(?P<forwarded>[^"]*)")?'             # X-Forwarded-For (optional)
    )

    # Error log format
    ERROR_PATTERN = re.compile(
        r'^(?P<timestamp>\d{4}/\d{2}/\d{2}\s+\d{2}:\d{2}:\d{2})\s+'
        r'\[(?P<level>\w+)\]\s+'
        r'(?P<pid>\d+)#(?P<tid>\d+):\s*'
        r'(?:\*(?P<cid>\d+)\s+)?'
        r'(?P<message>.+)$'
    )

    CLIENT_PATTERN = re.compile(r'client:\s*([\da-fA-F.:]+)')

    TIMESTAMP_FORMAT = "%d/%b/%Y:%H:%M:%S %z"
    ERROR_TIMESTAMP_FORMAT = "%Y/%m/%d %H:%M:%S"

    def __init__(self):
        """Initialize Nginx log parser."""
        super().__init__("nginx")

    def matches(self, line: str) -> bool:
        return bool(self.NGINX_PATTERN.match(line) or self.ERROR_PATTERN.match(line))

    def parse_line(self, line: str, line_number: int = 0) -> Optional[LogRecord]:
        """
        Parse a single Nginx log line.

        Attempts to parse as access log first, then falls back to error log.
        """
        match = self.NGINX_PATTERN.match(line)
        if match:
            return self._parse_access_log(match, line, line_number)

        match = self.ERROR_PATTERN.match(line)
        if match:
            return self._parse_error_log(match, line, line_number)

        return None

    def _parse_access_log(self, match: re.Match, raw_line: str, line_number: int) -> LogRecord:
        """Parse access log format match."""
        groups = match.groupdict()

        try:
            timestamp = datetime.strptime(groups['timestamp'], self.TIMESTAMP_FORMAT)
        except ValueError:
            timestamp = None

        # Parse request line
        request = groups.get('request') or ''
        request_parts = request.split()
        method = request_parts[0].upper() if request_parts else None
        path = request_parts[1] if len(request_parts) > 1 else None
        protocol = request_parts[2] if len(request_parts) > 2 else None

        bytes_sent = groups.get('bytes') or '0'

        # First address in X-Forwarded-For is the original client
        client_ip = groups.get('ip')
        forwarded = self._dash_to_none(groups.get('forwarded'))
        if forwarded:
            client_ip = forwarded.split(',')[0].strip()

        return LogRecord(
            line_number=line_number,
            timestamp=timestamp,
            source_ip=client_ip,
            message=request,
            log_type=self.log_type,
            raw_line=raw_line,
            fields={
                'method': method,
                'path': path,
                'protocol': protocol,
                'status': int(groups['status']),
                'size': int(bytes_sent) if bytes_sent.isdecimal() else 0,
                'user': self._dash_to_none(groups.get('user')),
                'referer': self._dash_to_none(groups.get('referer')),
                'user_agent': groups.get('useragent'),
                'original_ip': groups.get('ip'),
                'x_forwarded_for': forwarded,
            }
        )

    def _parse_error_log(self, match: re.Match, raw_line: str, line_number: int) -> LogRecord:
        """Parse error log format match."""
        groups = match.groupdict()

        try:
            timestamp = datetime.strptime(groups['timestamp'], self.ERROR_TIMESTAMP_FORMAT)
        except ValueError:
            timestamp = None

        message = groups.get('message') or ''
        ip_match = self.CLIENT_PATTERN.search(message)

        return LogRecord(
            line_number=line_number,
            timestamp=timestamp,
            source_ip=ip_match.group(1) if ip_match else None,
            message=message,
            log_type=f"{self.log_type}_error",
            raw_line=raw_line,
            fields={
                'level': groups.get('level'),
                'pid': groups.get('pid'),
                'tid': groups.get('tid'),
                'connection_id': groups.get('cid'),
            }
        )
