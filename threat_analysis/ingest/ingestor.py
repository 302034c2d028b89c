"""
Ingestor

Composes upload validation, archive resolution and log parsing into the
single ingest operation. Any failure aborts the whole ingest; nothing
partial is returned.
"""

import logging
from typing import Optional

from ..parsers.log_parser import LogParser, ParseResult
from .archive import ArchiveResolver
from .validation import validate_upload, format_file_size

logger = logging.getLogger(__name__)


class Ingestor:
    """Bytes in, ordered log records out."""

    def __init__(
        self,
        resolver: Optional[ArchiveResolver] = None,
        parser: Optional[LogParser] = None
    ):
        self.resolver = resolver or ArchiveResolver()
        self.parser = parser or LogParser()

    def ingest(
        self,
        file_bytes: bytes,
        file_name: str,
        size_bytes: Optional[int] = None
    ) -> ParseResult:
        """
        Validate, decompress and parse an upload.

        Args:
            file_bytes: Raw uploaded bytes
            file_name: Declared file name
            size_bytes: Declared size (defaults to len(file_bytes))

        Returns:
            ParseResult with records in file order

        Raises:
            IngestError: any validation, archive or parse failure
        """
        if size_bytes is None:
            size_bytes = len(file_bytes)

        validate_upload(file_name, size_bytes)
        logger.info("Ingesting %s (%s)", file_name, format_file_size(size_bytes))

        text = self.resolver.resolve(file_bytes, file_name, size_bytes)
        result = self.parser.parse(text)

        logger.info(
            "Parsed %d record(s) from %s (format: %s, skipped: %d)",
            len(result.records), file_name, result.format, len(result.skipped)
        )
        return result
