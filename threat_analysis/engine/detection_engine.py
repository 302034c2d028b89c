"""
Detection Engine

Owns one analysis session: the currently ingested record set, the
per-detector results and the scan-in-progress flags. Detectors run on a
thread pool so that several can be fired at once and each one can be
given up on after a timeout.

Every ingestion starts a new generation. A scan remembers the generation
it read its records from and its findings are committed only if that is
still the current one; results of a scan overtaken by a re-ingestion are
discarded.
"""

import csv
import io
import json
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FutureTimeout, as_completed
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..config import Config, DEMO_DATASET_URL
from ..detectors.base_detector import Finding, Severity
from ..detectors.registry import DetectorRegistry, build_default_registry
from ..errors import DetectionError, IngestError
from ..ingest.demo import DEMO_FILE_NAME, fetch_demo_dataset
from ..ingest.ingestor import Ingestor
from ..notifications import NotificationCenter, Notifier
from ..parsers.base_parser import LogRecord
from ..parsers.log_parser import LogParser, ParseResult
from .scan_state import ScanState

logger = logging.getLogger(__name__)

EXPORT_FIELDS = [
    'finding_id', 'detector', 'severity', 'line_number', 'timestamp',
    'source_ip', 'description', 'evidence',
]


@dataclass
class ScanSummary:
    """
    Aggregate outcome of scan_all.

    Attributes:
        total_findings: Sum of the per-detector counts
        counts: Findings per detector that completed, in registry order
        by_severity: Findings per severity level across all detectors
        failed: Detector identifier -> failure message
        skipped: Detectors that were already being scanned
        generation: Record-set generation the scan ran against
        duration_seconds: Wall-clock duration
        stale: True when a re-ingestion overtook the scan
    """
    total_findings: int
    counts: Dict[str, int]
    by_severity: Dict[str, int]
    failed: Dict[str, str] = field(default_factory=dict)
    skipped: List[str] = field(default_factory=list)
    generation: int = 0
    duration_seconds: float = 0.0
    stale: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_findings': self.total_findings,
            'counts': dict(self.counts),
            'by_severity': dict(self.by_severity),
            'failed': dict(self.failed),
            'skipped': list(self.skipped),
            'generation': self.generation,
            'duration_seconds': round(self.duration_seconds, 3),
            'stale': self.stale,
        }


class DetectionEngine:
    """
    Scan orchestrator for one session.

    Results map every registered identifier to a tuple of findings, or to
    None while that detector has not been scanned against the current
    record set. The key set never changes.
    """

    def __init__(
        self,
        registry: Optional[DetectorRegistry] = None,
        config: Optional[Config] = None,
        ingestor: Optional[Ingestor] = None,
        notifiers: Iterable[Notifier] = ()
    ):
        """
        Initialize the engine.

        Args:
            registry: Detector registry (defaults to the built-in detectors)
            config: Settings (defaults to built-in defaults)
            ingestor: Upload pipeline (defaults to one built from config)
            notifiers: Handlers receiving user notifications
        """
        self.config = config or Config()
        self.registry = registry if registry is not None else build_default_registry(self.config)

        scan_settings = self.config.get('scan') or {}
        self.timeout: Optional[float] = scan_settings.get('detector_timeout_seconds')
        max_workers = scan_settings.get('max_workers') or 2 * max(1, len(self.registry))

        if ingestor is None:
            parser_settings = self.config.get('parser') or {}
            ingestor = Ingestor(parser=LogParser(reference_year=parser_settings.get('reference_year')))
        self.ingestor = ingestor

        self.notifications = NotificationCenter()
        for notifier in notifiers:
            self.notifications.add_handler(notifier)

        self.state = ScanState(self.registry)
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='detector')
        self._lock = threading.Lock()

        # Session state, replaced as a whole on every ingestion
        self._generation = 0
        self._parse_result: Optional[ParseResult] = None
        self._records: Optional[Tuple[LogRecord, ...]] = None
        self._results: Dict[str, Optional[Tuple[Finding, ...]]] = dict.fromkeys(self.registry)
        self._failures: Dict[str, DetectionError] = {}
        # Timed-out invocations whose threads are still running
        self._abandoned: Dict[str, Future] = {}

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self) -> None:
        """Stop the detector pool; abandoned detectors are not waited for."""
        self._executor.shutdown(wait=False, cancel_futures=True)

    # ------------------------------------------------------------------
    # Session state
    # ------------------------------------------------------------------

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    @property
    def records(self) -> Tuple[LogRecord, ...]:
        with self._lock:
            return self._records or ()

    @property
    def parse_result(self) -> Optional[ParseResult]:
        with self._lock:
            return self._parse_result

    @property
    def has_records(self) -> bool:
        with self._lock:
            return self._records is not None

    @property
    def results(self) -> Dict[str, Optional[List[Finding]]]:
        """Snapshot of identifier -> findings (None = not yet scanned)."""
        with self._lock:
            return {
                identifier: list(findings) if findings is not None else None
                for identifier, findings in self._results.items()
            }

    @property
    def failures(self) -> Dict[str, DetectionError]:
        """Detectors whose latest scan failed, with the error."""
        with self._lock:
            return dict(self._failures)

    def list_detectors(self) -> List[Dict[str, str]]:
        return self.registry.list_detectors()

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def ingest(
        self,
        file_bytes: bytes,
        file_name: str,
        size_bytes: Optional[int] = None
    ) -> ParseResult:
        """
        Ingest an upload and make it the current record set.

        On failure nothing is published and the previous session is kept.

        Raises:
            IngestError: validation, archive or parse failure
        """
        try:
            result = self.ingestor.ingest(file_bytes, file_name, size_bytes)
        except IngestError as e:
            self.notifications.error(f"Failed to load {file_name}: {e}")
            raise

        with self._lock:
            self._generation += 1
            self._parse_result = result
            self._records = result.records
            self._results = dict.fromkeys(self.registry)
            self._failures = {}
            generation = self._generation

        logger.debug("Published generation %d (%d records)", generation, len(result.records))
        self.notifications.success(
            f"File {file_name} loaded successfully: {len(result.records)} record(s)"
        )
        return result

    def load_demo(self) -> ParseResult:
        """Download the demo archive and ingest it like an upload."""
        demo_settings = self.config.get('demo') or {}
        self.notifications.info("Loading demo dataset...")
        try:
            payload = fetch_demo_dataset(
                url=demo_settings.get('url') or DEMO_DATASET_URL,
                timeout=demo_settings.get('timeout_seconds', 30),
            )
        except IngestError as e:
            self.notifications.error(f"Failed to load demo dataset: {e}")
            raise
        return self.ingest(payload, DEMO_FILE_NAME)

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    def scan_one(self, identifier: str) -> Optional[List[Finding]]:
        """
        Run one detector against the current records.

        Returns:
            The detector's findings, or None when the call was a no-op
            (nothing ingested, or that detector is already running) or its
            findings were discarded because a new file was ingested meanwhile

        Raises:
            UnknownDetectorError: identifier is not registered
            DetectionError: the detector raised or timed out, or a previous
                timed-out invocation is still running; its previous findings
                are kept
        """
        spec = self.registry[identifier]
        if not self.has_records:
            self.notifications.warning(f"No logs loaded; {identifier} scan skipped")
            return None

        findings = self._scan(identifier)
        if findings is not None:
            self.notifications.success(
                f"{spec.name} scan complete: {len(findings)} finding(s)"
            )
        return findings

    def scan_all(self) -> Optional[ScanSummary]:
        """
        Run every registered detector concurrently and aggregate.

        A failing detector is reported in ScanSummary.failed and
        contributes nothing to the totals; the others are unaffected.

        Returns:
            ScanSummary, or None when nothing is ingested or a full scan
            is already running
        """
        if not self.has_records:
            self.notifications.warning("No logs loaded; nothing to scan")
            return None
        if not self.state.try_begin_all():
            logger.info("Full scan already in progress, ignoring request")
            return None

        started = time.monotonic()
        generation = self.generation
        collected: Dict[str, List[Finding]] = {}
        failed: Dict[str, str] = {}
        skipped: List[str] = []

        try:
            workers = max(1, len(self.registry))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix='scan-all') as pool:
                futures = {
                    pool.submit(self._scan, identifier): identifier
                    for identifier in self.registry
                }
                for future in as_completed(futures):
                    identifier = futures[future]
                    try:
                        findings = future.result()
                    except DetectionError as e:
                        failed[identifier] = str(e)
                        continue
                    if findings is None:
                        skipped.append(identifier)
                    else:
                        collected[identifier] = findings
        finally:
            self.state.end_all()

        stale = self.generation != generation
        if stale:
            logger.info("Scan of generation %d overtaken by a new ingestion", generation)
            collected = {}

        summary = self._summarize(collected, failed, skipped, generation, stale)
        summary.duration_seconds = time.monotonic() - started

        message = (
            f"Scan complete: {summary.total_findings} finding(s) "
            f"from {len(summary.counts)} detector(s)"
        )
        if failed:
            message += f", {len(failed)} failed"
        self.notifications.success(message)
        return summary

    def _scan(self, identifier: str) -> Optional[List[Finding]]:
        """
        Flag, invoke and commit one detector. The flag is cleared on every
        path, including failure and timeout.
        """
        spec = self.registry[identifier]
        with self._lock:
            records, generation = self._records, self._generation
        if records is None:
            return None

        if not self.state.try_begin(identifier):
            logger.debug("Scan of %s already in progress, ignoring request", identifier)
            return None

        try:
            findings = self._invoke(identifier, spec, records)
            if not self._commit(identifier, generation, findings):
                return None
            return findings
        except DetectionError as error:
            self._record_failure(generation, error)
            raise
        finally:
            self.state.end(identifier)

    def _invoke(self, identifier: str, spec, records: Tuple[LogRecord, ...]) -> List[Finding]:
        with self._lock:
            previous = self._abandoned.get(identifier)
            if previous is not None and previous.done():
                del self._abandoned[identifier]
                previous = None
        if previous is not None:
            raise DetectionError(
                identifier,
                f"Detector '{identifier}' is still running from a timed-out scan",
                timed_out=True,
            )

        future = self._executor.submit(spec, records)
        try:
            result = future.result(timeout=self.timeout)
        except FutureTimeout:
            if not future.cancel():
                with self._lock:
                    self._abandoned[identifier] = future
            raise DetectionError(
                identifier,
                f"Detector '{identifier}' timed out after {self.timeout}s",
                timed_out=True,
            ) from None
        except Exception as e:
            raise DetectionError(
                identifier, f"Detector '{identifier}' failed: {e}", cause=e
            ) from e

        findings = list(result)
        for finding in findings:
            if not isinstance(finding, Finding):
                raise DetectionError(
                    identifier,
                    f"Detector '{identifier}' returned {type(finding).__name__}, expected Finding",
                )
        return findings

    def _commit(self, identifier: str, generation: int, findings: List[Finding]) -> bool:
        with self._lock:
            if generation != self._generation:
                logger.info(
                    "Discarding stale %s results (generation %d, current %d)",
                    identifier, generation, self._generation
                )
                return False
            self._results[identifier] = tuple(findings)
            self._failures.pop(identifier, None)
        logger.debug("%s: %d finding(s)", identifier, len(findings))
        return True

    def _record_failure(self, generation: int, error: DetectionError) -> None:
        logger.error(
            "Detector %s failed", error.identifier,
            exc_info=error.cause
        )
        with self._lock:
            if generation == self._generation:
                self._failures[error.identifier] = error
        self.notifications.error(str(error))

    def _summarize(
        self,
        collected: Dict[str, List[Finding]],
        failed: Dict[str, str],
        skipped: List[str],
        generation: int,
        stale: bool
    ) -> ScanSummary:
        counts = {
            identifier: len(collected[identifier])
            for identifier in self.registry if identifier in collected
        }
        by_severity = {severity.value: 0 for severity in Severity}
        for findings in collected.values():
            for finding in findings:
                by_severity[finding.severity.value] += 1

        return ScanSummary(
            total_findings=sum(counts.values()),
            counts=counts,
            by_severity=by_severity,
            failed={i: failed[i] for i in self.registry if i in failed},
            skipped=[i for i in self.registry if i in skipped],
            generation=generation,
            stale=stale,
        )

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def all_findings(self) -> List[Finding]:
        """Current findings of every detector, most severe first."""
        findings = [
            finding
            for detector_findings in self.results.values() if detector_findings
            for finding in detector_findings
        ]
        findings.sort(key=lambda f: (-f.severity.rank, f.line_number or 0, f.detector))
        return findings

    def export_findings(self, format: str = 'json', findings: Optional[List[Finding]] = None) -> str:
        """
        Export current findings.

        Args:
            format: Output format ('json' or 'csv')
            findings: Subset to export (defaults to all_findings())

        Returns:
            Formatted finding data
        """
        if findings is None:
            findings = self.all_findings()

        if format == 'json':
            return json.dumps(
                [finding.to_dict() for finding in findings],
                indent=2,
                default=str
            )

        elif format == 'csv':
            output = io.StringIO()
            writer = csv.DictWriter(output, fieldnames=EXPORT_FIELDS, extrasaction='ignore')
            writer.writeheader()
            for finding in findings:
                writer.writerow(finding.to_dict())
            return output.getvalue()

        else:
            raise ValueError(f"Unsupported format: {format}")
