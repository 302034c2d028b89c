"""
Error Taxonomy

Every failure the analyzer reports derives from ThreatAnalysisError.
Ingestion errors abort the whole ingest; detection errors are contained
to the detector that raised them.
"""

from typing import Optional


class ThreatAnalysisError(Exception):
    """Base class for all analyzer errors."""


class IngestError(ThreatAnalysisError):
    """An uploaded artifact could not be turned into log records."""


class ValidationError(IngestError):
    """File extension not allowed or declared size over the limit."""


class EmptyArchiveError(IngestError):
    """Archive holds no file entries."""


class EmptyPayloadError(IngestError):
    """Extracted or decoded text is empty or whitespace only."""


class EmptyResultError(IngestError):
    """Parsing non-empty text produced zero records."""


class CorruptArchiveError(IngestError):
    """A .zip upload whose bytes are not a readable archive."""


class DemoFetchError(IngestError):
    """The demo dataset could not be downloaded."""


class UnknownDetectorError(ThreatAnalysisError, KeyError):
    """Lookup of a detector identifier that is not registered."""

    def __init__(self, identifier: str):
        super().__init__(identifier)
        self.identifier = identifier

    def __str__(self):
        return f"Unknown detector: {self.identifier!r}"


class DetectionError(ThreatAnalysisError):
    """
    A single detector invocation failed.

    Attributes:
        identifier: Detector that failed
        cause: Original exception raised by the detector, if any
        timed_out: True when the detector exceeded its time budget
    """

    def __init__(
        self,
        identifier: str,
        message: str,
        cause: Optional[BaseException] = None,
        timed_out: bool = False
    ):
        super().__init__(message)
        self.identifier = identifier
        self.cause = cause
        self.timed_out = timed_out
