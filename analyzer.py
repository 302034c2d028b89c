#!/usr/bin/env python3
"""
Log Threat Analyzer - Main CLI Entry Point

Ingests a server-log upload (.log, .txt, .zip or .gz), runs the threat
detectors over the parsed records and reports the findings.

Usage:
    python analyzer.py <log_file> [options]
    python analyzer.py --demo

Examples:
    python analyzer.py access.log
    python analyzer.py server_logs.zip --detectors sql_injection,xss
    python analyzer.py access.log.gz --output-format json --output findings.json
    python analyzer.py --demo --severity high
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from threat_analysis import __version__
from threat_analysis.config import Config
from threat_analysis.detectors.base_detector import Finding, Severity
from threat_analysis.detectors.registry import build_default_registry
from threat_analysis.engine.detection_engine import DetectionEngine, ScanSummary
from threat_analysis.errors import DetectionError, IngestError, UnknownDetectorError
from threat_analysis.notifications import Notification, NotificationLevel
from threat_analysis.reporters.text_reporter import TextReporter

logger = logging.getLogger("analyzer")

NOTIFICATION_COLORS = {
    NotificationLevel.INFO: '\033[94m',
    NotificationLevel.SUCCESS: '\033[92m',
    NotificationLevel.WARNING: '\033[93m',
    NotificationLevel.ERROR: '\033[91m',
}

NOTIFICATION_PREFIX = {
    NotificationLevel.INFO: '[*]',
    NotificationLevel.SUCCESS: '[+]',
    NotificationLevel.WARNING: '[!]',
    NotificationLevel.ERROR: '[-]',
}


class ConsoleNotifier:
    """Prints notifications to stderr."""

    def __init__(self, use_colors: bool = True, stream=None):
        self.use_colors = use_colors
        self.stream = stream or sys.stderr

    def handle(self, notification: Notification) -> None:
        text = f"{NOTIFICATION_PREFIX[notification.level]} {notification.message}"
        if self.use_colors:
            text = f"{NOTIFICATION_COLORS[notification.level]}{text}\033[0m"
        print(text, file=self.stream)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Log Threat Analyzer - Detect threats in server logs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s access.log                            Analyze a plain log file
  %(prog)s server_logs.zip                       Analyze the log inside an archive
  %(prog)s access.log --detectors xss,sql_injection
  %(prog)s --demo                                Analyze the demo dataset
  %(prog)s --list-detectors                      Show available detectors

Accepted uploads: .log, .txt, .zip, .gz (up to 100 MB)

Supported log formats (auto-detected):
  apache    - Apache access logs (Combined/Common format)
  nginx     - Nginx access and error logs
  syslog    - Standard syslog format (RFC 3164/5424)
  auth      - Linux authentication logs (auth.log, secure)
        """
    )

    parser.add_argument(
        'input',
        nargs='?',
        help='Log file or archive to analyze'
    )

    parser.add_argument(
        '--demo',
        action='store_true',
        help='Download and analyze the demo server_logs.zip dataset'
    )

    parser.add_argument(
        '--detectors',
        type=str,
        help='Comma-separated list of detectors to run (default: all)'
    )

    parser.add_argument(
        '--list-detectors',
        action='store_true',
        help='List available detectors and exit'
    )

    parser.add_argument(
        '--show-source',
        metavar='DETECTOR',
        help="Print a detector's logic description and exit"
    )

    parser.add_argument(
        '--output', '-o',
        type=str,
        help='Output file path for report'
    )

    parser.add_argument(
        '--output-format',
        choices=['text', 'json', 'csv'],
        default='text',
        help='Report format (default: text)'
    )

    parser.add_argument(
        '--severity',
        choices=['high', 'medium', 'low'],
        default='low',
        help='Minimum severity level to report (default: low)'
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        help='YAML configuration file'
    )

    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (default: from config, INFO)'
    )

    parser.add_argument(
        '--no-color',
        action='store_true',
        help='Disable colored output'
    )

    parser.add_argument(
        '--quiet', '-q',
        action='store_true',
        help='Suppress progress output'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'Log Threat Analyzer v{__version__}'
    )

    return parser.parse_args(argv)


def configure_logging(config: Config, level: Optional[str] = None, quiet: bool = False):
    settings = config.get('logging') or {}
    if quiet and level is None:
        level = 'WARNING'
    logging.basicConfig(
        level=getattr(logging, (level or settings.get('level') or 'INFO').upper(), logging.INFO),
        format=settings.get('format') or "%(asctime)s [ANALYZER] %(levelname)s %(message)s",
        stream=sys.stderr,
    )


def list_detectors(config: Config) -> int:
    registry = build_default_registry(config)
    for entry in registry.list_detectors():
        print(f"  {entry['identifier']:24} {entry['description']}")
    return 0


def show_source(config: Config, identifier: str) -> int:
    registry = build_default_registry(config)
    try:
        spec = registry[identifier]
    except UnknownDetectorError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(f"{spec.name} ({spec.identifier})")
    print(spec.source)
    return 0


def run_scans(engine: DetectionEngine, identifiers: Optional[List[str]]) -> ScanSummary:
    """Run all detectors, or only the selected ones one at a time."""
    if not identifiers:
        return engine.scan_all()

    counts, failed = {}, {}
    for identifier in identifiers:
        try:
            findings = engine.scan_one(identifier)
        except DetectionError as e:
            failed[identifier] = str(e)
            continue
        if findings is not None:
            counts[identifier] = len(findings)

    selected = [f for f in engine.all_findings() if f.detector in counts]
    by_severity = {severity.value: 0 for severity in Severity}
    for finding in selected:
        by_severity[finding.severity.value] += 1
    return ScanSummary(
        total_findings=sum(counts.values()),
        counts=counts,
        by_severity=by_severity,
        failed=failed,
        generation=engine.generation,
    )


def filter_findings(findings: List[Finding], minimum: str) -> List[Finding]:
    min_rank = Severity.parse(minimum).rank
    return [f for f in findings if f.severity.rank >= min_rank]


def run_analysis(args: argparse.Namespace, config: Config) -> int:
    """Ingest, scan and report."""
    identifiers = None
    if args.detectors:
        identifiers = [d.strip() for d in args.detectors.split(',') if d.strip()]

    notifiers = [] if args.quiet else [ConsoleNotifier(use_colors=not args.no_color)]

    with DetectionEngine(config=config, notifiers=notifiers) as engine:
        if identifiers:
            unknown = [i for i in identifiers if i not in engine.registry]
            if unknown:
                print(f"Error: {UnknownDetectorError(unknown[0])}", file=sys.stderr)
                return 1

        try:
            if args.demo:
                source = "server_logs.zip (demo)"
                engine.load_demo()
            else:
                input_path = Path(args.input)
                if not input_path.is_file():
                    print(f"Error: Input file not found: {input_path}", file=sys.stderr)
                    return 1
                source = str(input_path)
                engine.ingest(input_path.read_bytes(), input_path.name, input_path.stat().st_size)
        except IngestError as e:
            logger.debug("Ingestion failed", exc_info=True)
            print(f"Error: {e}", file=sys.stderr)
            return 1

        summary = run_scans(engine, identifiers)
        findings = engine.all_findings()
        if identifiers:
            findings = [f for f in findings if f.detector in identifiers]
        reported = filter_findings(findings, args.severity)

        if args.output_format == 'text':
            reporter = TextReporter(use_colors=not args.no_color and not args.output)
            stats = {
                'source': source,
                'parse': engine.parse_result.get_stats() if engine.parse_result else {},
                'summary': summary.to_dict() if summary else {},
            }
            output = reporter.generate(reported, stats, Path(args.output) if args.output else None)
        else:
            output = engine.export_findings(args.output_format, reported)
            if args.output:
                output_path = Path(args.output)
                output_path.parent.mkdir(parents=True, exist_ok=True)
                output_path.write_text(output)

        if args.output:
            if not args.quiet:
                print(f"Report saved to: {args.output}", file=sys.stderr)
        else:
            print(output)

        failed = bool(summary and summary.failed)
        # Non-zero when high-severity threats were found
        high = any(f.severity is Severity.HIGH for f in findings)
        return 1 if high or failed else 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    config = Config(args.config)
    configure_logging(config, args.log_level, args.quiet)

    if args.list_detectors:
        return list_detectors(config)

    if args.show_source:
        return show_source(config, args.show_source)

    if not args.demo and not args.input:
        print("Error: No input file specified. Use --demo for demo mode.", file=sys.stderr)
        print("Run with --help for usage information.", file=sys.stderr)
        return 1

    return run_analysis(args, config)


if __name__ == '__main__':
    sys.exit(main())
