"""Domain models for the WMS spreadsheet import pipeline.

Raw input (RawSheet, InputDocument), validation findings (Diagnostic), the
normalized entities plugins produce, and the results returned to callers.
"""

from .diagnostic import Diagnostic, Severity
from .entities import ImportMetadata, NormalizedCollections
from .error_record import ErrorRecord
from .import_result import ImportResult, ImportStats, ImportStatus, LoadStats, ValidationReport
from .input_document import FileMetadata, InputDocument, RawSheet

__all__ = [
    # Input
    "RawSheet",
    "FileMetadata",
    "InputDocument",
    # Findings
    "Diagnostic",
    "Severity",
    "ErrorRecord",
    # Normalized output
    "ImportMetadata",
    "NormalizedCollections",
    # Results
    "ImportResult",
    "ImportStats",
    "ImportStatus",
    "LoadStats",
    "ValidationReport",
]
