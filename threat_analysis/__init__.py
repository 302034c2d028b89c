"""
Log Threat Analyzer - ingest server logs and scan them for attack patterns.

This package turns an uploaded log artifact (plain text or a compressed
archive) into structured records and runs a registry of independent
threat detectors over them.
"""

__version__ = "1.0.0"
__author__ = "Security Research Team"
