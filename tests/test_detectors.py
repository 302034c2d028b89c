"""
Unit tests for threat detectors.
"""

import unittest
from dataclasses import FrozenInstanceError
from datetime import datetime, timedelta
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from threat_analysis.parsers.base_parser import LogRecord
from threat_analysis.detectors.base_detector import (
    DetectorConfig, Finding, Severity, MAX_EVIDENCE, densest_window
)
from threat_analysis.detectors.brute_force_detector import BruteForceDetector
from threat_analysis.detectors.injection_detector import (
    SQLInjectionDetector, XSSDetector, CommandInjectionDetector
)
from threat_analysis.detectors.traversal_detector import DirectoryTraversalDetector
from threat_analysis.detectors.reconnaissance_detector import (
    SuspiciousUserAgentDetector, ErrorEnumerationDetector
)

BASE_TIME = datetime(2024, 1, 15, 10, 0, 0)
BROWSER = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 Chrome/120.0 Safari/537.36"


def web_record(path, source_ip="192.168.1.50", status=200, line_number=1,
               timestamp=BASE_TIME, user_agent=BROWSER, referer=None, log_type="apache"):
    return LogRecord(
        line_number=line_number,
        timestamp=timestamp,
        source_ip=source_ip,
        message=f"GET {path}",
        log_type=log_type,
        raw_line="...",
        fields={
            'method': 'GET',
            'path': path,
            'status': status,
            'referer': referer,
            'user_agent': user_agent,
        },
    )


def auth_record(source_ip, user, success, line_number, timestamp):
    return LogRecord(
        line_number=line_number,
        timestamp=timestamp,
        source_ip=source_ip,
        message=f"{'Accepted' if success else 'Failed'} password for {user} from {source_ip}",
        log_type="auth",
        raw_line="...",
        fields={'user': user, 'success': success, 'event_type': 'ssh_failure'},
    )


class TestSeverityAndFinding(unittest.TestCase):
    """Tests for the severity enum and Finding dataclass."""

    def test_known_values(self):
        self.assertIs(Severity("high"), Severity.HIGH)
        self.assertIs(Severity("LOW"), Severity.LOW)
        self.assertIs(Severity.parse(" Medium "), Severity.MEDIUM)

    def test_unknown_defaults_to_medium(self):
        self.assertIs(Severity("bogus"), Severity.MEDIUM)
        self.assertIs(Severity.parse(None), Severity.MEDIUM)
        self.assertIs(Severity(42), Severity.MEDIUM)

    def test_critical_maps_to_high(self):
        self.assertIs(Severity("critical"), Severity.HIGH)

    def test_finding_coerces_severity(self):
        finding = Finding(detector="x", severity="whatever", description="d")
        self.assertIs(finding.severity, Severity.MEDIUM)
        self.assertEqual(len(finding.finding_id), 12)

    def test_finding_is_frozen(self):
        finding = Finding(detector="x", severity=Severity.LOW, description="d")
        with self.assertRaises(FrozenInstanceError):
            finding.severity = Severity.HIGH

    def test_evidence_is_truncated(self):
        record = web_record("/?q=" + "a" * 500 + "<script>")
        finding = XSSDetector().analyze_entry(record)
        self.assertEqual(len(finding.evidence), MAX_EVIDENCE)


class TestDensestWindow(unittest.TestCase):

    def test_finds_largest_burst(self):
        times = [0, 1, 2, 30, 31, 32, 33]
        records = [
            auth_record("1.1.1.1", "root", False, i + 1, BASE_TIME + timedelta(minutes=t))
            for i, t in enumerate(times)
        ]
        burst = densest_window(records, timedelta(minutes=5))
        self.assertEqual([r.line_number for r in burst], [4, 5, 6, 7])

    def test_missing_timestamps_use_all_records(self):
        records = [auth_record("1.1.1.1", "root", False, i, None) for i in range(1, 4)]
        self.assertEqual(len(densest_window(records, timedelta(minutes=1))), 3)


class TestBruteForceDetector(unittest.TestCase):
    """Tests for brute force detector."""

    def setUp(self):
        self.detector = BruteForceDetector()

    def test_detect_brute_force(self):
        """Test detection of brute force attack."""
        records = [
            auth_record("45.33.32.156", "admin", False, i + 1, BASE_TIME + timedelta(seconds=i))
            for i in range(10)
        ]

        findings = self.detector.analyze(records)

        self.assertEqual(len(findings), 1)
        self.assertEqual(findings[0].detector, "brute_force")
        self.assertEqual(findings[0].source_ip, "45.33.32.156")
        self.assertEqual(findings[0].severity, Severity.LOW)
        self.assertEqual(findings[0].metadata['attempt_count'], 10)
        self.assertEqual(findings[0].line_number, 10)

    def test_detect_credential_stuffing(self):
        """Test detection of credential stuffing."""
        users = ["john", "jane", "admin", "root", "test"]
        records = [
            auth_record("77.88.55.66", user, False, i + 1, BASE_TIME + timedelta(seconds=i))
            for i, user in enumerate(users)
        ]

        findings = self.detector.analyze(records)

        self.assertEqual(len(findings), 1)
        self.assertIn("Credential stuffing", findings[0].description)
        self.assertEqual(findings[0].severity, Severity.MEDIUM)

    def test_success_after_attack_is_high(self):
        records = [
            auth_record("45.33.32.156", "root", False, i + 1, BASE_TIME + timedelta(seconds=i))
            for i in range(6)
        ]
        records.append(auth_record("45.33.32.156", "root", True, 7, BASE_TIME + timedelta(seconds=10)))

        findings = self.detector.analyze(records)

        self.assertEqual(findings[0].severity, Severity.HIGH)
        self.assertTrue(findings[0].metadata['compromised'])

    def test_failures_outside_window_ignored(self):
        records = [
            auth_record("45.33.32.156", "root", False, i + 1, BASE_TIME + timedelta(minutes=5 * i))
            for i in range(5)
        ]
        self.assertEqual(self.detector.analyze(records), [])

    def test_web_unauthorized_responses(self):
        records = [
            web_record("/login", source_ip="203.0.113.7", status=401, line_number=i + 1,
                       timestamp=BASE_TIME + timedelta(seconds=i))
            for i in range(5)
        ]
        findings = self.detector.analyze(records)
        self.assertEqual(len(findings), 1)
        self.assertEqual(findings[0].source_ip, "203.0.113.7")

    def test_threshold_from_config(self):
        detector = BruteForceDetector(DetectorConfig(failed_attempts_threshold=2))
        records = [
            auth_record("10.0.0.9", "root", False, i + 1, BASE_TIME + timedelta(seconds=i))
            for i in range(2)
        ]
        self.assertEqual(len(detector.analyze(records)), 1)
        self.assertEqual(detector.config.get('time_window_minutes'), 10)


class TestSQLInjectionDetector(unittest.TestCase):
    """Tests for SQL injection detector."""

    def setUp(self):
        self.detector = SQLInjectionDetector()

    def test_detect_union_injection(self):
        """Test detection of UNION-based SQL injection."""
        record = web_record("/search?q=1'+UNION+SELECT+username,password+FROM+users--",
                            source_ip="45.33.32.156")

        finding = self.detector.analyze_entry(record)

        self.assertIsNotNone(finding)
        self.assertEqual(finding.detector, "sql_injection")
        self.assertEqual(finding.severity, Severity.HIGH)
        self.assertEqual(finding.metadata['injection_point'], "url")

    def test_detect_boolean_injection(self):
        """Test detection of boolean-based SQL injection."""
        record = web_record("/users?id=1'+OR+'1'='1")

        finding = self.detector.analyze_entry(record)

        self.assertIsNotNone(finding)
        self.assertEqual(finding.severity, Severity.HIGH)

    def test_detect_in_user_agent(self):
        record = web_record("/", user_agent="' union select 1,2--")
        finding = self.detector.analyze_entry(record)
        self.assertEqual(finding.metadata['injection_point'], "user_agent")

    def test_odd_length_hex_does_not_fail(self):
        record = web_record("/color?c=0xabc")
        self.assertIsNone(self.detector.analyze_entry(record))

    def test_hex_encoded_keywords(self):
        # 0x756e696f6e2073656c656374 == "union select"
        record = web_record("/item?id=1+0x756e696f6e2073656c656374")
        self.assertIsNotNone(self.detector.analyze_entry(record))

    def test_no_false_positive(self):
        """Test that normal requests don't trigger findings."""
        record = web_record("/api/users?page=1&limit=10")
        self.assertIsNone(self.detector.analyze_entry(record))

    def test_non_web_record_ignored(self):
        record = auth_record("1.2.3.4", "root' or 1=1", False, 1, BASE_TIME)
        self.assertIsNone(self.detector.analyze_entry(record))

    def test_campaign_escalation(self):
        records = [
            web_record(f"/x?q=char({65 + i},66)", source_ip="198.51.100.1", line_number=i + 1)
            for i in range(3)
        ]
        findings = self.detector.analyze(records)

        self.assertEqual(len(findings), 3)
        for finding in findings:
            self.assertEqual(finding.severity, Severity.HIGH)
            self.assertIn("campaign", finding.description)

    def test_below_campaign_threshold_keeps_severity(self):
        findings = self.detector.analyze([web_record("/x?q=char(65,66)")])
        self.assertEqual(findings[0].severity, Severity.MEDIUM)

    def test_input_not_mutated(self):
        records = (web_record("/search?q=1'+UNION+SELECT+1--"),)
        before = records[0].to_dict()
        first = self.detector.analyze(records)
        second = self.detector.analyze(records)

        self.assertEqual(records[0].to_dict(), before)
        self.assertEqual(first, second)


class TestXSSDetector(unittest.TestCase):
    """Tests for XSS detector."""

    def setUp(self):
        self.detector = XSSDetector()

    def test_detect_script_tag(self):
        """Test detection of script tag injection."""
        record = web_record("/search?q=<script>alert('XSS')</script>", source_ip="103.45.67.89")

        finding = self.detector.analyze_entry(record)

        self.assertIsNotNone(finding)
        self.assertEqual(finding.detector, "xss")
        self.assertEqual(finding.severity, Severity.HIGH)

    def test_detect_event_handler(self):
        """Test detection of event handler injection."""
        record = web_record("/profile?name=<img+src=x+onerror=alert(1)>")

        finding = self.detector.analyze_entry(record)

        self.assertIsNotNone(finding)
        self.assertEqual(finding.detector, "xss")

    def test_detect_entity_encoded(self):
        record = web_record("/q?x=%26lt%3Bscript%26gt%3B")
        finding = self.detector.analyze_entry(record)
        self.assertEqual(finding.severity, Severity.HIGH)

    def test_plain_request(self):
        self.assertIsNone(self.detector.analyze_entry(web_record("/index.html")))


class TestCommandInjectionDetector(unittest.TestCase):
    """Tests for command injection detector."""

    def setUp(self):
        self.detector = CommandInjectionDetector()

    def test_detect_chained_command(self):
        record = web_record("/ping?host=127.0.0.1;cat+/etc/passwd")
        finding = self.detector.analyze_entry(record)

        self.assertIsNotNone(finding)
        self.assertEqual(finding.detector, "command_injection")
        self.assertEqual(finding.severity, Severity.HIGH)

    def test_detect_function_call(self):
        record = web_record("/run?f=system('uptime')")
        finding = self.detector.analyze_entry(record)
        self.assertEqual(finding.severity, Severity.MEDIUM)

    def test_browser_user_agent_is_clean(self):
        self.assertIsNone(self.detector.analyze_entry(web_record("/about")))


class TestDirectoryTraversalDetector(unittest.TestCase):
    """Tests for directory traversal detector."""

    def setUp(self):
        self.detector = DirectoryTraversalDetector()

    def test_detect_basic_traversal(self):
        """Test detection of basic directory traversal."""
        record = web_record("/files/../../../etc/passwd", source_ip="185.220.101.45")

        finding = self.detector.analyze_entry(record)

        self.assertIsNotNone(finding)
        self.assertEqual(finding.detector, "directory_traversal")
        self.assertEqual(finding.severity, Severity.HIGH)
        self.assertTrue(finding.metadata['traversal_detected'])

    def test_detect_encoded_traversal(self):
        """Test detection of URL-encoded traversal."""
        record = web_record("/files?path=%2e%2e%2f%2e%2e%2f%2e%2e%2fetc%2fpasswd")

        finding = self.detector.analyze_entry(record)

        self.assertIsNotNone(finding)
        self.assertEqual(finding.evidence, "/files?path=%2e%2e%2f%2e%2e%2f%2e%2e%2fetc%2fpasswd")

    def test_detect_sensitive_file(self):
        """Test detection of sensitive file access."""
        record = web_record("/.env", log_type="nginx")

        finding = self.detector.analyze_entry(record)

        self.assertIsNotNone(finding)
        self.assertIn("Sensitive file access", finding.description)

    def test_unsuccessful_plain_traversal_is_medium(self):
        record = web_record("/static/../index.html", status=404)
        finding = self.detector.analyze_entry(record)
        self.assertEqual(finding.severity, Severity.MEDIUM)

    def test_successful_plain_traversal_is_escalated(self):
        record = web_record("/static/../index.html", status=200)
        finding = self.detector.analyze_entry(record)
        self.assertEqual(finding.severity, Severity.HIGH)
        self.assertTrue(finding.description.startswith("SUCCESSFUL"))

    def test_repeat_offender_escalation(self):
        records = [
            web_record(f"/static/../page{i}.html", source_ip="10.9.8.7", status=404, line_number=i + 1)
            for i in range(5)
        ]
        findings = self.detector.analyze(records)

        self.assertEqual(len(findings), 5)
        self.assertTrue(all(f.severity is Severity.HIGH for f in findings))


class TestSuspiciousUserAgentDetector(unittest.TestCase):
    """Tests for scanner user agent detector."""

    def setUp(self):
        self.detector = SuspiciousUserAgentDetector()

    def test_detect_sqlmap(self):
        record = web_record("/", user_agent="sqlmap/1.7.2#stable (https://sqlmap.org)")
        finding = self.detector.analyze_entry(record)

        self.assertEqual(finding.severity, Severity.HIGH)
        self.assertEqual(finding.metadata['tool'], "sqlmap")

    def test_detect_nmap_in_compatible_string(self):
        ua = "Mozilla/5.0 (compatible; Nmap Scripting Engine; https://nmap.org/book/nse.html)"
        finding = self.detector.analyze_entry(web_record("/", user_agent=ua))
        self.assertEqual(finding.metadata['tool'], "nmap")

    def test_scripting_client_is_low(self):
        finding = self.detector.analyze_entry(web_record("/", user_agent="curl/7.68.0"))
        self.assertEqual(finding.severity, Severity.LOW)

    def test_empty_user_agent_is_low(self):
        for ua in ("-", "", "  "):
            finding = self.detector.analyze_entry(web_record("/", user_agent=ua))
            self.assertEqual(finding.severity, Severity.LOW)
            self.assertIn("empty user agent", finding.description)

    def test_missing_user_agent_field_ignored(self):
        self.assertIsNone(self.detector.analyze_entry(web_record("/", user_agent=None)))

    def test_browser_is_clean(self):
        self.assertIsNone(self.detector.analyze_entry(web_record("/")))


class TestErrorEnumerationDetector(unittest.TestCase):
    """Tests for forced browsing detector."""

    def setUp(self):
        self.detector = ErrorEnumerationDetector()

    def _probes(self, count, spacing_seconds=1, source_ip="192.0.2.44", status=404):
        return [
            web_record(f"/admin{i}.php", source_ip=source_ip, status=status, line_number=i + 1,
                       timestamp=BASE_TIME + timedelta(seconds=i * spacing_seconds))
            for i in range(count)
        ]

    def test_detect_forced_browsing(self):
        findings = self.detector.analyze(self._probes(25))

        self.assertEqual(len(findings), 1)
        self.assertEqual(findings[0].source_ip, "192.0.2.44")
        self.assertEqual(findings[0].metadata['request_count'], 25)
        self.assertEqual(findings[0].severity, Severity.LOW)

    def test_large_burst_is_high(self):
        findings = self.detector.analyze(self._probes(100))
        self.assertEqual(findings[0].severity, Severity.HIGH)

    def test_below_threshold(self):
        self.assertEqual(self.detector.analyze(self._probes(19)), [])

    def test_spread_out_requests_ignored(self):
        self.assertEqual(self.detector.analyze(self._probes(25, spacing_seconds=60)), [])

    def test_successful_requests_not_counted(self):
        self.assertEqual(self.detector.analyze(self._probes(30, status=200)), [])

    def test_threshold_from_config(self):
        detector = ErrorEnumerationDetector(DetectorConfig(threshold=3))
        self.assertEqual(len(detector.analyze(self._probes(3))), 1)


if __name__ == '__main__':
    unittest.main()
