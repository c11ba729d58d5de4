"""
IdScan - Scan Backend Package

This package handles all communication with the scanner backend:
- Scan creation through the scan-domain edge function
- Snapshot reads of scans and their per-domain results
- Realtime push subscriptions for progress and new results
"""

from .backend import ScanBackend, Unsubscribe
from .client import (
    RetryConfig,
    ScanConfigurationError,
    ScanNotFoundError,
    ScanTransportError,
    ScanValidationError,
    ScannerAPIError,
    ScannerError,
    SupabaseScanClient,
)
from .realtime import SupabaseRealtime, extract_record

__all__ = [
    # Interface
    "ScanBackend",
    "Unsubscribe",

    # Client
    "RetryConfig",
    "SupabaseScanClient",

    # Errors
    "ScannerError",
    "ScanConfigurationError",
    "ScanValidationError",
    "ScanTransportError",
    "ScannerAPIError",
    "ScanNotFoundError",

    # Realtime
    "SupabaseRealtime",
    "extract_record",
]
