"""
Base Parser Module

Provides the abstract base class for all log grammars and the LogRecord
dataclass that gives every parsed line the same shape regardless of format.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Optional, List, Dict, Any, Mapping


@dataclass(frozen=True)
class LogRecord:
    """
    One parsed line of a log payload.

    Records are immutable once built so that every detector can read the
    same sequence concurrently.

    Attributes:
        line_number: 1-based line position in the decoded payload
        timestamp: When the event occurred (None if absent or unparseable)
        source_ip: Client or origin address (if present)
        message: Request line or free-form log message
        fields: Additional format-specific values (read-only)
        log_type: Grammar that produced the record (apache, nginx, ...)
        raw_line: Original unparsed line
    """
    line_number: int
    timestamp: Optional[datetime]
    source_ip: Optional[str] = None
    message: str = ""
    fields: Mapping[str, Any] = field(default_factory=dict)
    log_type: str = "unknown"
    raw_line: str = ""

    def __post_init__(self):
        object.__setattr__(self, 'fields', MappingProxyType(dict(self.fields)))

    @property
    def user(self) -> Optional[str]:
        return self.fields.get('user')

    @property
    def method(self) -> Optional[str]:
        return self.fields.get('method')

    @property
    def path(self) -> Optional[str]:
        return self.fields.get('path')

    @property
    def status_code(self) -> Optional[int]:
        return self.fields.get('status')

    @property
    def is_web_request(self) -> bool:
        return self.log_type in ('apache', 'nginx')

    def to_dict(self) -> Dict[str, Any]:
        """Convert record to dictionary for serialization."""
        return {
            'line_number': self.line_number,
            'timestamp': self.timestamp.isoformat() if self.timestamp else None,
            'source_ip': self.source_ip,
            'message': self.message,
            'fields': dict(self.fields),
            'log_type': self.log_type,
        }


class BaseParser(ABC):
    """
    Abstract base class for log grammars.

    A grammar turns one line into a LogRecord or says it does not
    recognise the line. It never raises for malformed input.
    """

    # Generic grammars accept lines that specific grammars also match;
    # they are only tried after every specific grammar.
    generic = False

    def __init__(self, log_type: str):
        """
        Initialize the parser.

        Args:
            log_type: Identifier for the log format (e.g., 'apache', 'nginx')
        """
        self.log_type = log_type

    @abstractmethod
    def parse_line(self, line: str, line_number: int = 0) -> Optional[LogRecord]:
        """
        Parse a single log line into a LogRecord.

        Args:
            line: Raw log line to parse (already stripped)
            line_number: Position of the line in the payload

        Returns:
            LogRecord if the line matches this grammar, None otherwise
        """
        pass

    @abstractmethod
    def matches(self, line: str) -> bool:
        """Cheap check whether a line looks like this grammar."""
        pass

    def detect_format(self, sample_lines: List[str]) -> float:
        """
        Score how well sample lines match this grammar.

        Args:
            sample_lines: Sample of non-empty log lines

        Returns:
            Fraction of sample lines recognised (0.0 - 1.0)
        """
        if not sample_lines:
            return 0.0

        hits = sum(1 for line in sample_lines if self.matches(line))
        return hits / len(sample_lines)

    @staticmethod
    def _dash_to_none(value: Optional[str]) -> Optional[str]:
        if value in (None, '', '-'):
            return None
        return value
