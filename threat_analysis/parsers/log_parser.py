"""
Log Parser

Turns decoded log text into an ordered tuple of LogRecords. The grammar
that best matches a sample of the payload is tried first on every line;
the remaining grammars act as fallbacks so mixed files still parse.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, Tuple

from .base_parser import BaseParser, LogRecord
from .apache_parser import ApacheParser
from .nginx_parser import NginxParser
from .syslog_parser import SyslogParser
from .auth_parser import AuthLogParser
from ..errors import EmptyResultError

logger = logging.getLogger(__name__)

SAMPLE_SIZE = 20
MAX_EXCERPT = 200


@dataclass
class ParseResult:
    """
    Outcome of parsing one payload.

    Attributes:
        records: Parsed records in original line order
        skipped: Unparseable lines (line_number, excerpt, reason)
        format: Grammar selected from the sample
        lines_processed: Non-empty, non-comment lines seen
    """
    records: Tuple[LogRecord, ...]
    skipped: List[Dict[str, Any]] = field(default_factory=list)
    format: Optional[str] = None
    lines_processed: int = 0

    def __len__(self):
        return len(self.records)

    def get_stats(self) -> Dict[str, Any]:
        """Parsing metrics for display."""
        return {
            'format': self.format,
            'lines_processed': self.lines_processed,
            'lines_parsed': len(self.records),
            'parse_errors': len(self.skipped),
            'success_rate': (len(self.records) / self.lines_processed * 100)
                            if self.lines_processed > 0 else 0,
        }


class LogParser:
    """
    Parses heterogeneous log text into structured records.

    Parsing is total over text: malformed lines are recorded in
    ParseResult.skipped and never abort the parse. Only a payload that
    yields no record at all is an error.
    """

    def __init__(self, grammars: Optional[List[BaseParser]] = None, reference_year: Optional[int] = None):
        """
        Args:
            grammars: Grammars in tie-break order (defaults to auth,
                apache, nginx, syslog)
            reference_year: Year for timestamps that carry none
        """
        self.grammars = grammars or [
            AuthLogParser(reference_year),
            ApacheParser(),
            NginxParser(),
            SyslogParser(reference_year),
        ]

    def detect_format(self, lines: List[str]) -> Optional[BaseParser]:
        """Pick the grammar that recognises most of the sample lines."""
        sample = lines[:SAMPLE_SIZE]
        best, best_score = None, 0.0
        for grammar in self.grammars:
            score = grammar.detect_format(sample)
            if score > best_score:
                best, best_score = grammar, score
        return best

    def parse(self, text: str) -> ParseResult:
        """
        Parse text into records.

        Args:
            text: Decoded log payload

        Returns:
            ParseResult with records in file order

        Raises:
            EmptyResultError: if no line could be parsed
        """
        numbered = []
        for line_number, line in enumerate(text.splitlines(), 1):
            line = line.strip()
            if not line or line.startswith('#'):
                continue
            numbered.append((line_number, line))

        preferred = self.detect_format([line for _, line in numbered])
        order = self.grammars
        if preferred is not None:
            order = [preferred] + [g for g in self.grammars if g is not preferred]
        order = sorted(order, key=lambda g: g.generic)

        records: List[LogRecord] = []
        skipped: List[Dict[str, Any]] = []

        for line_number, line in numbered:
            record = None
            for grammar in order:
                record = grammar.parse_line(line, line_number)
                if record is not None:
                    break

            if record is None:
                skipped.append({
                    'line_number': line_number,
                    'line': line[:MAX_EXCERPT],
                    'reason': 'no matching log format',
                })
            else:
                records.append(record)

        result = ParseResult(
            records=tuple(records),
            skipped=skipped,
            format=preferred.log_type if preferred else None,
            lines_processed=len(numbered),
        )

        if not result.records:
            raise EmptyResultError(
                f"No log records could be parsed from {len(numbered)} line(s)"
            )

        if skipped:
            logger.info(
                "Skipped %d unparseable line(s) of %d", len(skipped), len(numbered)
            )
        logger.debug("Parsed %d record(s) as %s", len(records), result.format)
        return result
