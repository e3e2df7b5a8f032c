"""
Configuration Validators

This module provides validation functions for DNS server configuration parameters.
"""

import ipaddress
import re
from pathlib import Path
from typing import List

MAX_TTL = 0xFFFFFFFF


def validate_bind_address(address: str) -> bool:
    """Validate bind address format (IPv4 literal)."""
    if not address:
        return False

    try:
        ipaddress.IPv4Address(address)
        return True
    except ValueError:
        return False


def validate_boolean(value) -> bool:
    """Validate boolean value."""
    return isinstance(value, bool)


def validate_file_path(path: str) -> bool:
    """Validate file path format."""
    if not path:
        return False

    try:
        Path(path)
        return True
    except (TypeError, ValueError):
        return False


def validate_log_level(level: str) -> bool:
    """Validate log level."""
    valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    return isinstance(level, str) and level.upper() in valid_levels


def validate_positive_float(value: float) -> bool:
    """Validate positive float."""
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0


def validate_positive_int(value: int) -> bool:
    """Validate positive integer."""
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def validate_ttl(value: int) -> bool:
    """Validate a record TTL (unsigned 32-bit)."""
    return (
        isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= MAX_TTL
    )


def validate_port(port: int) -> bool:
    """Validate port number."""
    return isinstance(port, int) and 1 <= port <= 65535


def validate_record_type(record_type: str) -> bool:
    """Validate a record type mnemonic (any single token, e.g. A, CAA, TYPE65)."""
    return isinstance(record_type, str) and bool(
        re.match(r"^[A-Za-z0-9-]+$", record_type)
    )


def validate_domain(domain: str) -> bool:
    """Validate a domain name (labels of letters, digits, hyphens, underscores)."""
    if not isinstance(domain, str) or not domain:
        return False

    labels = domain.rstrip(".").split(".")
    return all(re.match(r"^[A-Za-z0-9_-]{1,63}$", label) for label in labels)


def validate_server_address(address: str) -> bool:
    """Validate server address format (IP:port or IP)."""
    if not address:
        return False

    if address.count(":") == 1:
        host, port_str = address.rsplit(":", 1)
        try:
            port = int(port_str)
            if not validate_port(port):
                return False
        except ValueError:
            return False
    else:
        host = address

    try:
        ipaddress.IPv4Address(host)
        return True
    except ValueError:
        return False


def validate_upstream_servers(servers: List[str]) -> bool:
    """Validate list of upstream servers."""
    if not isinstance(servers, list) or not servers:
        return False

    for server in servers:
        if not validate_server_address(server):
            return False

    return True
