"""
Threat Detectors Module

Provides specialized detectors for various attack patterns:
- SQL injection, cross-site scripting and command injection
- Directory traversal and sensitive file access
- Brute force and credential stuffing
- Scanner user agents and forced browsing

and the immutable registry that addresses them by identifier.
"""

from .base_detector import BaseDetector, RecordDetector, DetectorConfig, Severity, Finding
from .brute_force_detector import BruteForceDetector
from .injection_detector import SQLInjectionDetector, XSSDetector, CommandInjectionDetector
from .traversal_detector import DirectoryTraversalDetector
from .reconnaissance_detector import SuspiciousUserAgentDetector, ErrorEnumerationDetector
from .registry import (
    DetectorSpec, DetectorRegistry, build_default_registry, registry_from_functions
)

__all__ = [
    'BaseDetector',
    'RecordDetector',
    'DetectorConfig',
    'Severity',
    'Finding',
    'BruteForceDetector',
    'SQLInjectionDetector',
    'XSSDetector',
    'CommandInjectionDetector',
    'DirectoryTraversalDetector',
    'SuspiciousUserAgentDetector',
    'ErrorEnumerationDetector',
    'DetectorSpec',
    'DetectorRegistry',
    'build_default_registry',
    'registry_from_functions',
]
