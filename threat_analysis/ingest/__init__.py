"""
Ingestion Module

Validation, archive resolution and the combined ingest operation that
turns an uploaded artifact into parsed log records.
"""

from .validation import ALLOWED_EXTENSIONS, MAX_FILE_SIZE, validate_upload
from .archive import ArchiveResolver
from .demo import fetch_demo_dataset, DEMO_FILE_NAME
from .ingestor import Ingestor

__all__ = [
    'ALLOWED_EXTENSIONS',
    'MAX_FILE_SIZE',
    'validate_upload',
    'ArchiveResolver',
    'fetch_demo_dataset',
    'DEMO_FILE_NAME',
    'Ingestor',
]
