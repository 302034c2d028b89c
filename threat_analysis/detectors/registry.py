"""
Detector Registry

Fixed, immutable mapping from detector identifier to detector. The
registry is built once at start-up from DETECTOR_TABLE; nothing can be
added or removed afterwards.

Each entry also carries a display name and a "source" text: a short
human-readable account of the detector's logic, kept alongside the
detector rather than derived from its code.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Dict, Iterator, List, Mapping, Optional, Sequence

from .base_detector import BaseDetector, DetectorConfig, Finding
from .brute_force_detector import BruteForceDetector
from .injection_detector import SQLInjectionDetector, XSSDetector, CommandInjectionDetector
from .traversal_detector import DirectoryTraversalDetector
from .reconnaissance_detector import SuspiciousUserAgentDetector, ErrorEnumerationDetector
from ..errors import UnknownDetectorError
from ..parsers.base_parser import LogRecord

DetectorFunction = Callable[[Sequence[LogRecord]], List[Finding]]


@dataclass(frozen=True)
class DetectorSpec:
    """
    One registered detector.

    Attributes:
        identifier: Stable key used to address the detector
        name: Display name
        description: One-line summary
        source: Human-readable description of the detection logic
        function: Pure callable mapping records to findings
    """
    identifier: str
    name: str
    description: str
    source: str
    function: DetectorFunction

    def __call__(self, records: Sequence[LogRecord]) -> List[Finding]:
        return list(self.function(records))

    def to_dict(self) -> Dict[str, str]:
        return {
            'identifier': self.identifier,
            'name': self.name,
            'description': self.description,
            'source': self.source,
        }


# (identifier, display name, detector class, source text), in registration order
DETECTOR_TABLE = (
    (
        'sql_injection', 'SQL Injection', SQLInjectionDetector,
        "URL-decode the request URL, referer and user agent (up to 3 passes) and\n"
        "expand 0x hex literals. Match tiered SQL signatures: UNION SELECT,\n"
        "stacked queries, INTO OUTFILE and schema probes are high; boolean and\n"
        "time-based blind payloads and quote-comment endings are high; stray\n"
        "quotes with SQL keywords and string functions are medium; ORDER BY n\n"
        "probing is low. Sources with 3 or more hits are raised to high.",
    ),
    (
        'xss', 'Cross-Site Scripting', XSSDetector,
        "URL-decode request fields and expand HTML entities. <script> tags,\n"
        "javascript:/vbscript: URLs and tags with inline event handlers are\n"
        "high; bare on*= handlers, document.cookie and alert()/eval() calls are\n"
        "high; embedded frames and CSS expressions are medium; any other HTML\n"
        "tag is low.",
    ),
    (
        'directory_traversal', 'Directory Traversal', DirectoryTraversalDetector,
        "Decode the request path until stable and look for ../ sequences, plus\n"
        "double-encoded, overlong UTF-8 and null-byte forms in the raw path.\n"
        "Requests naming sensitive files (/etc/passwd, .env, .git/config, ...)\n"
        "are graded by file. A 200/206/304 response raises the severity, and a\n"
        "source with 5 or more attempts is reported high.",
    ),
    (
        'command_injection', 'Command Injection', CommandInjectionDetector,
        "URL-decode request fields and look for shell metacharacters (; | &&\n"
        "` $()) chained to common commands, direct shell paths and\n"
        "cmd.exe/powershell as high; wget/curl of remote URLs and netcat\n"
        "callbacks as high; ${IFS} tricks and system()/exec() calls as medium.",
    ),
    (
        'brute_force', 'Brute Force', BruteForceDetector,
        "Collect failed authentications per source: auth-log failures and HTTP\n"
        "401/403 responses. Report a source when 5 or more failures fall inside\n"
        "a 10 minute window. Many targeted accounts mark credential stuffing\n"
        "(medium); 50+ attempts or a later successful login from the same\n"
        "source is high.",
    ),
    (
        'suspicious_user_agent', 'Suspicious User Agent', SuspiciousUserAgentDetector,
        "Match the user agent of each web request against known tools:\n"
        "sqlmap, nikto, nmap, masscan, gobuster, wpscan, nuclei and similar\n"
        "scanners are high, lesser-known scanners medium, scripting HTTP\n"
        "clients (curl, wget, python-requests) low. An empty user agent is low.",
    ),
    (
        'error_enumeration', 'Error Enumeration', ErrorEnumerationDetector,
        "Count 404 responses per source. Report a source when 20 or more fall\n"
        "inside a 5 minute window (forced browsing). Twice the threshold is\n"
        "medium, five times is high.",
    ),
)


class DetectorRegistry(Mapping):
    """Read-only mapping of identifier -> DetectorSpec, in registration order."""

    def __init__(self, specs: Sequence[DetectorSpec]):
        entries: Dict[str, DetectorSpec] = {}
        for spec in specs:
            if spec.identifier in entries:
                raise ValueError(f"Duplicate detector identifier: {spec.identifier}")
            entries[spec.identifier] = spec
        self._entries = MappingProxyType(entries)

    def __getitem__(self, identifier: str) -> DetectorSpec:
        try:
            return self._entries[identifier]
        except KeyError:
            raise UnknownDetectorError(identifier) from None

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, identifier: str, default=None) -> DetectorSpec:
        """Look up a detector; unknown identifiers always raise."""
        return self[identifier]

    @property
    def identifiers(self) -> List[str]:
        return list(self._entries)

    def source_of(self, identifier: str) -> str:
        return self[identifier].source

    def list_detectors(self) -> List[Dict[str, str]]:
        """Identifier, name, description and source text of every detector."""
        return [spec.to_dict() for spec in self._entries.values()]


def build_default_registry(config=None) -> DetectorRegistry:
    """
    Build the registry of built-in detectors.

    Args:
        config: Optional Config; its `detectors` section overrides thresholds
    """
    specs = []
    for identifier, name, detector_cls, source in DETECTOR_TABLE:
        settings = config.detector_settings(identifier) if config is not None else {}
        detector: BaseDetector = detector_cls(DetectorConfig(**settings))
        specs.append(DetectorSpec(
            identifier=identifier,
            name=name,
            description=detector.description,
            source=source,
            function=detector,
        ))
    return DetectorRegistry(specs)


def registry_from_functions(
    functions: Mapping[str, DetectorFunction],
    sources: Optional[Mapping[str, str]] = None
) -> DetectorRegistry:
    """Registry of plain callables, e.g. for embedding custom detectors."""
    sources = sources or {}
    return DetectorRegistry([
        DetectorSpec(
            identifier=identifier,
            name=identifier.replace('_', ' ').title(),
            description=(function.__doc__ or '').strip().split('\n')[0],
            source=sources.get(identifier, ''),
            function=function,
        )
        for identifier, function in functions.items()
    ])
