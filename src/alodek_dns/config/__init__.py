"""
DNS Server Configuration Module
"""

from .loader import ConfigLoader, ConfigLoadResult, ConfigSource, load_config_from_file
from .schema import (
    DNSServerConfig,
    LoggingConfig,
    RecordConfig,
    ServerConfig,
    WebConfig,
    create_default_config,
    default_records,
)

__all__ = [
    "ConfigLoader",
    "ConfigLoadResult",
    "ConfigSource",
    "load_config_from_file",
    "DNSServerConfig",
    "LoggingConfig",
    "RecordConfig",
    "ServerConfig",
    "WebConfig",
    "create_default_config",
    "default_records",
]
