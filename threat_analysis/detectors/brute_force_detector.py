"""
Brute Force Attack Detector

Detects password guessing by counting failed authentications per source
inside a sliding time window. Failures come from auth logs (sshd, sudo,
PAM) and from web logs (HTTP 401/403).

A source that also targets several accounts is reported as credential
stuffing; a successful login from the same source after the burst marks
the attack as a likely compromise.

MITRE ATT&CK References:
- T1110.001: Brute Force - Password Guessing
- T1110.004: Brute Force - Credential Stuffing
"""

from collections import defaultdict
from datetime import timedelta
from typing import Optional, List, Dict, Sequence

from .base_detector import BaseDetector, Finding, Severity, DetectorConfig, densest_window
from ..parsers.base_parser import LogRecord


class BruteForceDetector(BaseDetector):
    """Detects brute force and credential stuffing attacks."""

    DEFAULT_CONFIG = {
        'failed_attempts_threshold': 5,      # Failed attempts before alert
        'time_window_minutes': 10,           # Sliding window for counting attempts
        'credential_stuffing_threshold': 3,  # Different accounts from same source
    }

    FAILED_HTTP_CODES = {401, 403}
    FAILURE_MARKERS = ('failed password', 'authentication failure', 'invalid user')

    def __init__(self, config: Optional[DetectorConfig] = None):
        super().__init__(
            name="brute_force",
            description="Detects brute force and credential stuffing attacks",
            config=config
        )

    def is_failed_auth(self, record: LogRecord) -> bool:
        """Check if record represents a failed authentication."""
        if record.log_type == 'auth':
            return record.fields.get('success') is False
        if record.is_web_request:
            return record.status_code in self.FAILED_HTTP_CODES
        return any(marker in record.message.lower() for marker in self.FAILURE_MARKERS)

    def is_successful_auth(self, record: LogRecord) -> bool:
        """Check if record represents successful authentication."""
        if record.log_type == 'auth':
            return record.fields.get('success') is True
        return 'accepted password' in record.message.lower() or \
            'accepted publickey' in record.message.lower()

    def analyze(self, records: Sequence[LogRecord]) -> List[Finding]:
        """
        Group failures by source and report sources whose densest window
        reaches the threshold. One finding per source.
        """
        failures: Dict[str, List[LogRecord]] = defaultdict(list)
        successes: Dict[str, List[LogRecord]] = defaultdict(list)

        for record in records:
            if not record.source_ip:
                continue
            if self.is_failed_auth(record):
                failures[record.source_ip].append(record)
            elif self.is_successful_auth(record):
                successes[record.source_ip].append(record)

        threshold = self.config.get('failed_attempts_threshold', 5)
        window = timedelta(minutes=self.config.get('time_window_minutes', 10))
        findings = []

        for source_ip, attempts in failures.items():
            if len(attempts) < threshold:
                continue

            burst = densest_window(attempts, window)
            if len(burst) < threshold:
                continue

            last = burst[-1]
            compromised = any(s.line_number > last.line_number for s in successes[source_ip])
            findings.append(self._create_finding(source_ip, burst, compromised))

        findings.sort(key=lambda f: f.line_number or 0)
        return findings

    def _create_finding(
        self,
        source_ip: str,
        burst: List[LogRecord],
        compromised: bool
    ) -> Finding:
        """Create finding for one attacking source."""
        attempt_count = len(burst)
        users = sorted({r.user for r in burst if r.user})
        stuffing = len(users) >= self.config.get('credential_stuffing_threshold', 3)

        if compromised or attempt_count >= 50:
            severity = Severity.HIGH
        elif attempt_count >= 20 or stuffing:
            severity = Severity.MEDIUM
        else:
            severity = Severity.LOW

        if stuffing:
            description = (
                f"Credential stuffing detected: {attempt_count} failed logins "
                f"from {source_ip} across {len(users)} accounts"
            )
        else:
            target = users[0] if users else 'unknown'
            description = (
                f"Brute force attack detected: {attempt_count} failed login attempts "
                f"from {source_ip} targeting user '{target}'"
            )
        if compromised:
            description += " - SUCCESSFUL LOGIN DETECTED AFTER ATTACK"

        return self._finding(
            burst[-1], severity, description,
            attempt_count=attempt_count,
            targeted_users=users[:20],
            compromised=compromised,
            first_line=burst[0].line_number,
        )
