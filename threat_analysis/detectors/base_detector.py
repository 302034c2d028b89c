"""
Base Detector Module

Provides the abstract base class for all threat detectors and the
Finding dataclass that every detector returns.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional, List, Dict, Any, Sequence, Union
import hashlib

from ..parsers.base_parser import LogRecord


class Severity(Enum):
    """
    Finding severity.

    Closed set of three levels. Anything unknown or missing becomes
    MEDIUM, both through Severity(value) and Severity.parse(value).
    """
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    def __str__(self):
        return self.value

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value == lowered:
                    return member
            if lowered == 'critical':
                return cls.HIGH
        return cls.MEDIUM

    @classmethod
    def parse(cls, value: Union["Severity", str, None]) -> "Severity":
        if isinstance(value, cls):
            return value
        return cls(value)

    @property
    def rank(self) -> int:
        """Sort key, higher is more severe."""
        return {Severity.HIGH: 3, Severity.MEDIUM: 2, Severity.LOW: 1}[self]

    @property
    def color(self) -> str:
        """Return ANSI color code for the severity."""
        colors = {
            Severity.HIGH: "\033[91m",    # Red
            Severity.MEDIUM: "\033[93m",  # Yellow
            Severity.LOW: "\033[92m",     # Green
        }
        return colors.get(self, "\033[0m")


@dataclass(frozen=True)
class Finding:
    """
    One detector-reported issue.

    Attributes:
        detector: Identifier of the detector that produced it
        severity: Severity level (unknown values coerced to MEDIUM)
        description: Human-readable description
        line_number: Line of the triggering record in the payload
        source_ip: Source address of the triggering record
        timestamp: Timestamp of the triggering record
        evidence: Offending field value (truncated)
        metadata: Additional detector-specific data
        finding_id: Stable identifier derived from the fields above
    """
    detector: str
    severity: Severity
    description: str
    line_number: Optional[int] = None
    source_ip: Optional[str] = None
    timestamp: Optional[datetime] = None
    evidence: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False)
    finding_id: str = field(default="", init=False)

    def __post_init__(self):
        object.__setattr__(self, 'severity', Severity.parse(self.severity))
        hash_content = f"{self.detector}{self.line_number}{self.source_ip}{self.description}"
        object.__setattr__(
            self, 'finding_id', hashlib.sha256(hash_content.encode()).hexdigest()[:12]
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert finding to dictionary for serialization."""
        return {
            'finding_id': self.finding_id,
            'detector': self.detector,
            'severity': self.severity.value,
            'description': self.description,
            'line_number': self.line_number,
            'source_ip': self.source_ip,
            'timestamp': self.timestamp.isoformat() if self.timestamp else None,
            'evidence': self.evidence,
            'metadata': self.metadata,
        }


# Signature tiers used by the pattern tables, mapped onto Severity
TIER_SEVERITY = {
    'critical': Severity.HIGH,
    'high': Severity.HIGH,
    'medium': Severity.MEDIUM,
    'low': Severity.LOW,
}

MAX_EVIDENCE = 200


def comparable_time(timestamp: datetime) -> datetime:
    """Naive UTC datetime, so aware and naive timestamps can be compared."""
    if timestamp.tzinfo is not None:
        return timestamp.astimezone(timezone.utc).replace(tzinfo=None)
    return timestamp


def densest_window(records: List[LogRecord], window: timedelta) -> List[LogRecord]:
    """
    Largest run of records whose timestamps fit in window, in line order.

    If any record lacks a timestamp the window cannot be applied and all
    records are returned.
    """
    if any(r.timestamp is None for r in records):
        return list(records)

    timed = sorted(records, key=lambda r: comparable_time(r.timestamp))
    best_start, best_end = 0, 0
    start = 0
    for end in range(len(timed)):
        end_time = comparable_time(timed[end].timestamp)
        while end_time - comparable_time(timed[start].timestamp) > window:
            start += 1
        if end + 1 - start > best_end - best_start:
            best_start, best_end = start, end + 1

    return sorted(timed[best_start:best_end], key=lambda r: r.line_number)


class DetectorConfig:
    """
    Configuration container for detector parameters.

    Allows customization of detection thresholds and behavior
    without modifying detector code.
    """

    def __init__(self, **kwargs):
        for key, value in kwargs.items():
            setattr(self, key, value)

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value with default."""
        return getattr(self, key, default)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {k: v for k, v in self.__dict__.items() if not k.startswith('_')}


class BaseDetector(ABC):
    """
    Abstract base class for threat detectors.

    A detector is a pure function of the record sequence: analyze() must
    not mutate its input or keep state between calls, so that one
    instance can be invoked concurrently with every other detector.
    """

    DEFAULT_CONFIG: Dict[str, Any] = {}

    def __init__(self, name: str, description: str, config: Optional[DetectorConfig] = None):
        """
        Initialize the detector.

        Args:
            name: Unique identifier for the detector
            description: Human-readable description of what the detector finds
            config: Threshold overrides (merged over DEFAULT_CONFIG)
        """
        self.name = name
        self.description = description
        settings = dict(self.DEFAULT_CONFIG)
        if config is not None:
            settings.update(config.to_dict())
        self.config = DetectorConfig(**settings)

    @abstractmethod
    def analyze(self, records: Sequence[LogRecord]) -> List[Finding]:
        """
        Analyze log records for threats.

        Args:
            records: Parsed log records in file order

        Returns:
            List of Finding objects for detected threats
        """
        pass

    def __call__(self, records: Sequence[LogRecord]) -> List[Finding]:
        return self.analyze(records)

    def _finding(
        self,
        record: LogRecord,
        tier: Union[Severity, str],
        description: str,
        evidence: str = "",
        **metadata: Any
    ) -> Finding:
        """Build a Finding pointing at record."""
        if isinstance(tier, Severity):
            severity = tier
        else:
            severity = TIER_SEVERITY.get(tier, Severity.MEDIUM)

        return Finding(
            detector=self.name,
            severity=severity,
            description=description,
            line_number=record.line_number,
            source_ip=record.source_ip,
            timestamp=record.timestamp,
            evidence=(evidence or record.message)[:MAX_EVIDENCE],
            metadata=metadata,
        )


class RecordDetector(BaseDetector):
    """Detector that judges each record on its own."""

    def analyze(self, records: Sequence[LogRecord]) -> List[Finding]:
        findings = []
        for record in records:
            finding = self.analyze_entry(record)
            if finding is not None:
                findings.append(finding)
        return findings

    @abstractmethod
    def analyze_entry(self, record: LogRecord) -> Optional[Finding]:
        """
        Analyze a single record.

        Returns:
            Finding if a threat is detected, None otherwise
        """
        pass
