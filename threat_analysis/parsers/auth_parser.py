"""
Authentication Log Parser

Parses Linux authentication logs (auth.log, secure) for security events:
SSH logins, sudo usage and PAM session/authentication messages.

Example entries:
    Jan 15 10:23:45 server sshd[12345]: Failed password for invalid user admin from 192.168.1.100 port 22 ssh2
    Jan 15 10:24:00 server sshd[12346]: Accepted publickey for ubuntu from 10.0.0.5 port 52341 ssh2
"""

import re
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any

from .base_parser import BaseParser, LogRecord
from .syslog_parser import parse_bsd_timestamp


class AuthEventType(Enum):
    """Types of authentication events."""
    SSH_SUCCESS = "ssh_success"
    SSH_FAILURE = "ssh_failure"
    SSH_INVALID_USER = "ssh_invalid_user"
    SUDO_SUCCESS = "sudo_success"
    SUDO_FAILURE = "sudo_failure"
    SESSION_OPEN = "session_open"
    SESSION_CLOSE = "session_close"
    PAM_AUTH_FAILURE = "pam_auth_failure"
    OTHER = "other"


class AuthLogParser(BaseParser):
    """
    Parser for Linux authentication logs.

    Classifies each line into an AuthEventType and a success flag so that
    detectors can count failed logins without re-reading the message.
    """

    BASE_PATTERN = re.compile(
        r'^(?P<timestamp>\w{3}\s+\d{1,2}\s+\d{2}:\d{2}:\d{2})\s+'
        r'(?P<hostname>\S+)\s+'
        r'(?P<process>[^\s:\[]+)(?:\[(?P<pid>\d+)\])?:\s*'
        r'(?P<message>.*)$'
    )

    AUTH_PROCESSES = ('sshd', 'sudo', 'su', 'login', 'systemd-logind', 'cron', 'polkitd')

    SSH_PATTERNS = {
        'accepted_password': re.compile(
            r'Accepted password for (?P<user>\S+) from (?P<ip>[\da-fA-F.:]+) port (?P<port>\d+)'
        ),
        'accepted_publickey': re.compile(
            r'Accepted publickey for (?P<user>\S+) from (?P<ip>[\da-fA-F.:]+) port (?P<port>\d+)'
        ),
        'failed_invalid_user': re.compile(
            r'Failed password for invalid user (?P<user>\S+) from (?P<ip>[\da-fA-F.:]+) port (?P<port>\d+)'
        ),
        'failed_password': re.compile(
            r'Failed password for (?P<user>\S+) from (?P<ip>[\da-fA-F.:]+) port (?P<port>\d+)'
        ),
        'invalid_user': re.compile(
            r'Invalid user (?P<user>\S+) from (?P<ip>[\da-fA-F.:]+)'
        ),
        'too_many_failures': re.compile(
            r'Disconnecting.*: Too many authentication failures'
        ),
    }

    SUDO_PATTERNS = {
        'sudo_incorrect': re.compile(
            r'(?P<user>\S+)\s+:\s+\d+ incorrect password attempts?'
        ),
        'sudo_failure': re.compile(
            r'(?P<user>\S+)\s+:\s+.*authentication failure'
        ),
        'sudo_command': re.compile(
            r'(?P<user>\S+)\s+:\s+TTY=(?P<tty>\S+)\s+;\s+PWD=(?P<pwd>\S+)\s+;\s+'
            r'USER=(?P<target_user>\S+)\s+;\s+COMMAND=(?P<command>.+)$'
        ),
    }

    PAM_PATTERNS = {
        'session_opened': re.compile(
            r'pam_unix\([^)]+\):\s+session opened for user (?P<user>[^\s(]+)'
        ),
        'session_closed': re.compile(
            r'pam_unix\([^)]+\):\s+session closed for user (?P<user>[^\s(]+)'
        ),
        'auth_failure': re.compile(
            r'pam_unix\([^)]+\):\s+authentication failure.*?(?:rhost=(?P<ip>[\da-fA-F.:]+))?\s*'
            r'(?:user=(?P<user>\S+))?$'
        ),
    }

    def __init__(self, reference_year: Optional[int] = None):
        """Initialize authentication log parser."""
        super().__init__("auth")
        self.reference_year = reference_year or datetime.now().year

    def matches(self, line: str) -> bool:
        match = self.BASE_PATTERN.match(line)
        if not match:
            return False
        process = match.group('process').lower()
        message = match.group('message')
        return process in self.AUTH_PROCESSES or 'pam_' in message

    def _classify_event(self, process: str, message: str) -> Dict[str, Any]:
        """Classify the authentication event type and extract details."""
        result = {
            'event_type': AuthEventType.OTHER,
            'user': None,
            'source_ip': None,
            'port': None,
            'success': None,
            'details': {},
        }
        process = process.lower()

        if process == 'sshd':
            for event_name, pattern in self.SSH_PATTERNS.items():
                match = pattern.search(message)
                if not match:
                    continue
                groups = match.groupdict()
                result['user'] = groups.get('user')
                result['source_ip'] = groups.get('ip')
                result['port'] = int(groups['port']) if groups.get('port') else None

                if event_name.startswith('accepted'):
                    result['event_type'] = AuthEventType.SSH_SUCCESS
                    result['success'] = True
                    result['details']['auth_method'] = event_name.split('_', 1)[1]
                elif event_name in ('failed_invalid_user', 'invalid_user'):
                    result['event_type'] = AuthEventType.SSH_INVALID_USER
                    result['success'] = False
                else:
                    result['event_type'] = AuthEventType.SSH_FAILURE
                    result['success'] = False
                break

        elif process == 'sudo':
            for event_name, pattern in self.SUDO_PATTERNS.items():
                match = pattern.search(message)
                if not match:
                    continue
                groups = match.groupdict()
                result['user'] = groups.get('user')

                if event_name == 'sudo_command':
                    result['event_type'] = AuthEventType.SUDO_SUCCESS
                    result['success'] = True
                    result['details']['target_user'] = groups.get('target_user')
                    result['details']['command'] = groups.get('command')
                else:
                    result['event_type'] = AuthEventType.SUDO_FAILURE
                    result['success'] = False
                break

        if result['event_type'] is AuthEventType.OTHER:
            for event_name, pattern in self.PAM_PATTERNS.items():
                match = pattern.search(message)
                if not match:
                    continue
                groups = match.groupdict()
                result['user'] = groups.get('user')

                if event_name == 'session_opened':
                    result['event_type'] = AuthEventType.SESSION_OPEN
                    result['success'] = True
                elif event_name == 'session_closed':
                    result['event_type'] = AuthEventType.SESSION_CLOSE
                else:
                    result['event_type'] = AuthEventType.PAM_AUTH_FAILURE
                    result['source_ip'] = groups.get('ip')
                    result['success'] = False
                break

        return result

    def parse_line(self, line: str, line_number: int = 0) -> Optional[LogRecord]:
        """
        Parse a single authentication log line.

        Lines from processes that are not authentication related are
        left to the generic syslog grammar.
        """
        if not self.matches(line):
            return None

        groups = self.BASE_PATTERN.match(line).groupdict()
        message = groups.get('message') or ''
        process = groups.get('process') or ''
        event = self._classify_event(process, message)

        return LogRecord(
            line_number=line_number,
            timestamp=parse_bsd_timestamp(groups['timestamp'], self.reference_year),
            source_ip=event['source_ip'],
            message=message,
            log_type=self.log_type,
            raw_line=line,
            fields={
                'user': event['user'],
                'hostname': groups.get('hostname'),
                'process': process,
                'pid': groups.get('pid'),
                'event_type': event['event_type'].value,
                'success': event['success'],
                'port': event['port'],
                **event['details'],
            }
        )
