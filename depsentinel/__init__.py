"""depsentinel — dependency vulnerability scanner."""

from depsentinel.engines.dependency_scanner import list_supported_manifest_filenames
from depsentinel.errors import DepSentinelError
from depsentinel.scanner import ScanOptions, ScanResult, scan

__version__ = "0.1.0"

__all__ = [
    "DepSentinelError",
    "ScanOptions",
    "ScanResult",
    "list_supported_manifest_filenames",
    "scan",
]
