"""
DNS Server Logging Module

This module provides structured logging for the DNS server with per-request
query/response lines and request tracking.
"""

from .dns_logger import (
    DNSRequestLogger,
    DNSRequestTracker,
    extract_dns_info,
)
from .logger import (
    StructuredLogger,
    get_logger,
    log_exception,
    setup_logging,
)

__all__ = [
    # Core logging
    "StructuredLogger",
    "setup_logging",
    "get_logger",
    "log_exception",
    # DNS-specific logging
    "DNSRequestLogger",
    "DNSRequestTracker",
    "extract_dns_info",
]
