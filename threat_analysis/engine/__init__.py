"""
Scan Engine

Session orchestration: ingestion, per-detector and full scans, scan
progress flags and result export.
"""

from .scan_state import ScanState
from .detection_engine import DetectionEngine, ScanSummary

__all__ = [
    'ScanState',
    'DetectionEngine',
    'ScanSummary',
]
