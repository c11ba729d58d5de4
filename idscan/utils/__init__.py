"""Utility modules for the IdScan Revenue Impact Engine."""

from .config import (
    Settings,
    create_scanner_client,
    load_settings,
    validate_scanner_settings,
)
from .domains import (
    DEFAULT_DOMAIN_LIMIT,
    normalize_domain,
    parse_domain_file,
    parse_domains,
)

__all__ = [
    "Settings",
    "create_scanner_client",
    "load_settings",
    "validate_scanner_settings",
    # Domain input
    "DEFAULT_DOMAIN_LIMIT",
    "normalize_domain",
    "parse_domain_file",
    "parse_domains",
]
