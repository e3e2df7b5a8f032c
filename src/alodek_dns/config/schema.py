"""
DNS Server Configuration Schema

Configuration sections for the listener, upstream forwarding, the initial
record set, logging and the admin HTTP API.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from .validators import (
    MAX_TTL,
    validate_bind_address,
    validate_boolean,
    validate_domain,
    validate_file_path,
    validate_log_level,
    validate_port,
    validate_positive_float,
    validate_positive_int,
    validate_record_type,
    validate_ttl,
    validate_upstream_servers,
)


@dataclass
class ServerConfig:
    """Server configuration section."""

    bind_address: str = "127.0.0.1"
    dns_port: int = 53
    web_port: int = 8080
    upstream_timeout: float = 5.0
    shutdown_timeout: float = 6.0
    console_enabled: bool = True

    def __post_init__(self) -> None:
        """Validate server configuration."""
        if not validate_bind_address(self.bind_address):
            raise ValueError(f"Invalid bind address: {self.bind_address}")

        if not validate_port(self.dns_port):
            raise ValueError(f"Invalid DNS port: {self.dns_port}")

        if not validate_port(self.web_port):
            raise ValueError(f"Invalid web port: {self.web_port}")

        if not validate_positive_float(self.upstream_timeout):
            raise ValueError(
                f"Upstream timeout must be positive: {self.upstream_timeout}"
            )

        if not validate_positive_float(self.shutdown_timeout):
            raise ValueError(
                f"Shutdown timeout must be positive: {self.shutdown_timeout}"
            )

        if not validate_boolean(self.console_enabled):
            raise ValueError(
                f"Console enabled must be boolean: {self.console_enabled}"
            )


@dataclass
class RecordConfig:
    """A statically configured DNS record."""

    domain: str
    type: str = "A"
    value: str = "127.0.0.1"
    ttl: int = 300

    def __post_init__(self) -> None:
        """Validate record configuration."""
        if not validate_domain(self.domain):
            raise ValueError(f"Invalid record domain: {self.domain}")

        if not validate_record_type(self.type):
            raise ValueError(f"Invalid record type for {self.domain}: {self.type}")

        if not isinstance(self.value, str) or not self.value:
            raise ValueError(f"Record value must be a non-empty string: {self.value}")

        if not validate_ttl(self.ttl):
            raise ValueError(f"Record TTL must be between 0 and {MAX_TTL}: {self.ttl}")

        self.type = self.type.upper()


DEFAULT_RECORDS = [
    ("gis-ctf.local", "127.0.0.1"),
    ("api.gis-ctf.local", "127.0.0.1"),
    ("backend.gis-ctf.local", "127.0.0.1"),
    ("team1.gis-ctf.local", "192.168.1.101"),
    ("team2.gis-ctf.local", "192.168.1.102"),
    ("team3.gis-ctf.local", "192.168.1.103"),
    ("team4.gis-ctf.local", "192.168.1.104"),
    ("team5.gis-ctf.local", "192.168.1.105"),
]


def default_records() -> List[RecordConfig]:
    """Built-in record set used when no configuration file is present."""
    return [
        RecordConfig(domain=domain, type="A", value=value, ttl=300)
        for domain, value in DEFAULT_RECORDS
    ]


@dataclass
class LoggingConfig:
    """Logging configuration section."""

    level: str = "INFO"
    format: str = "console"
    file: Optional[str] = None
    max_size_mb: int = 100
    backup_count: int = 5
    enable_request_logging: bool = True

    def __post_init__(self) -> None:
        """Validate logging configuration."""
        if not validate_log_level(self.level):
            raise ValueError(f"Invalid log level: {self.level}")

        if self.format not in ["console", "json"]:
            raise ValueError(f"Invalid log format: {self.format}")

        if self.file is not None and not validate_file_path(self.file):
            raise ValueError(f"Invalid log file path: {self.file}")

        if not validate_positive_int(self.max_size_mb):
            raise ValueError(f"Max size MB must be positive: {self.max_size_mb}")

        if not validate_positive_int(self.backup_count):
            raise ValueError(f"Backup count must be positive: {self.backup_count}")

        if not validate_boolean(self.enable_request_logging):
            raise ValueError(
                f"Enable request logging must be boolean: {self.enable_request_logging}"
            )


@dataclass
class WebConfig:
    """Admin HTTP API configuration section."""

    enabled: bool = False
    cors_enabled: bool = True
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    def __post_init__(self) -> None:
        """Validate web configuration."""
        if not validate_boolean(self.enabled):
            raise ValueError(f"Web enabled must be boolean: {self.enabled}")

        if not validate_boolean(self.cors_enabled):
            raise ValueError(f"CORS enabled must be boolean: {self.cors_enabled}")

        if not isinstance(self.cors_origins, list):
            raise ValueError(f"CORS origins must be a list: {self.cors_origins}")


@dataclass
class DNSServerConfig:
    """Main DNS server configuration."""

    server: ServerConfig = field(default_factory=ServerConfig)
    upstream_servers: List[str] = field(
        default_factory=lambda: ["8.8.8.8", "1.1.1.1"]
    )
    records: List[RecordConfig] = field(default_factory=default_records)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    web: WebConfig = field(default_factory=WebConfig)

    def __post_init__(self) -> None:
        """Validate the entire configuration."""
        if not validate_upstream_servers(self.upstream_servers):
            raise ValueError(f"Invalid upstream servers: {self.upstream_servers}")

        if self.web.enabled and self.server.dns_port == self.server.web_port:
            raise ValueError("DNS port and web port cannot be the same")


def create_default_config() -> DNSServerConfig:
    """Create a default configuration instance."""
    return DNSServerConfig()
