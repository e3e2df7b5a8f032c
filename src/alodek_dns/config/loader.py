"""Configuration loader for the DNS server.

This module handles loading configuration from YAML/JSON files and
environment variables. Whether a file was actually read or the built-in
defaults were used is reported explicitly through ``ConfigLoadResult``.
"""

import json
import os
from dataclasses import asdict, dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .schema import (
    DNSServerConfig,
    LoggingConfig,
    RecordConfig,
    ServerConfig,
    WebConfig,
    create_default_config,
)

ENV_PREFIX = "ALODEK_DNS_"


class ConfigSource(Enum):
    """Where the loaded configuration came from."""

    FILE = "file"
    DEFAULTS = "defaults"


@dataclass
class ConfigLoadResult:
    """Outcome of a configuration load."""

    config: DNSServerConfig
    source: ConfigSource
    path: Optional[str] = None
    reason: Optional[str] = None

    @property
    def uses_defaults(self) -> bool:
        return self.source is ConfigSource.DEFAULTS


class ConfigLoader:
    """Configuration loader for file and environment sources."""

    def __init__(self, config_file: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_file: Path to configuration file (YAML or JSON)
        """
        self.config_file = config_file
        self._result: Optional[ConfigLoadResult] = None

    def load(self) -> ConfigLoadResult:
        """Load configuration from file and environment variables.

        A missing file is not an error: the defaults are used and the result
        says so. A file that exists but cannot be parsed or validated is.

        Raises:
            ValueError: If configuration is invalid
            yaml.YAMLError: If YAML parsing fails
            json.JSONDecodeError: If JSON parsing fails
        """
        config_dict = self._get_default_config_dict()
        source = ConfigSource.DEFAULTS
        reason = None

        if self.config_file is None:
            reason = "no configuration file given"
        elif not Path(self.config_file).exists():
            reason = f"configuration file not found: {self.config_file}"
        else:
            file_config = self._load_from_file(self.config_file)
            config_dict = self._merge_configs(config_dict, file_config)
            source = ConfigSource.FILE

        config_dict = self._apply_env_overrides(config_dict)

        self._result = ConfigLoadResult(
            config=self._dict_to_config(config_dict),
            source=source,
            path=self.config_file,
            reason=reason,
        )
        return self._result

    def load_config(self) -> DNSServerConfig:
        """Load configuration and return only the config object."""
        return self.load().config

    def get_config(self) -> Optional[DNSServerConfig]:
        """Get current configuration."""
        return self._result.config if self._result else None

    def get_result(self) -> Optional[ConfigLoadResult]:
        """Get the result of the last load."""
        return self._result

    def _load_from_file(self, file_path: str) -> Dict[str, Any]:
        """Load configuration from YAML or JSON file.

        Args:
            file_path: Path to configuration file

        Returns:
            Configuration dictionary

        Raises:
            ValueError: If file format is not supported
            yaml.YAMLError: If YAML parsing fails
            json.JSONDecodeError: If JSON parsing fails
        """
        path = Path(file_path)

        with open(path, "r", encoding="utf-8") as f:
            content = f.read()

        if path.suffix.lower() in [".yaml", ".yml"]:
            result = yaml.safe_load(content)
        elif path.suffix.lower() == ".json":
            result = json.loads(content)
        else:
            # Try YAML first, then JSON
            try:
                result = yaml.safe_load(content)
            except yaml.YAMLError:
                try:
                    result = json.loads(content)
                except json.JSONDecodeError:
                    raise ValueError(f"Unsupported file format: {file_path}")

        return result if isinstance(result, dict) else {}

    def _get_default_config_dict(self) -> Dict[str, Any]:
        """Get default configuration as dictionary."""
        return asdict(create_default_config())

    def _dict_to_config(self, config_dict: Dict[str, Any]) -> DNSServerConfig:
        """Convert dictionary to configuration object.

        Raises:
            ValueError: If configuration is invalid
        """
        try:
            records = [
                RecordConfig(**entry) for entry in config_dict.get("records") or []
            ]

            return DNSServerConfig(
                server=ServerConfig(**config_dict.get("server", {})),
                upstream_servers=config_dict.get("upstream_servers", []),
                records=records,
                logging=LoggingConfig(**config_dict.get("logging", {})),
                web=WebConfig(**config_dict.get("web", {})),
            )
        except TypeError as e:
            raise ValueError(f"Invalid configuration: {e}") from e

    def _merge_configs(
        self, base: Dict[str, Any], override: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Merge two configuration dictionaries.

        Args:
            base: Base configuration dictionary
            override: Override configuration dictionary

        Returns:
            Merged configuration dictionary
        """
        result = base.copy()

        for key, value in override.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = self._merge_configs(result[key], value)
            else:
                result[key] = value

        return result

    def _apply_env_overrides(self, config_dict: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides to configuration.

        Environment variables use the format ALODEK_DNS_<SECTION>_<KEY>
        For example: ALODEK_DNS_SERVER_DNS_PORT=5353

        Args:
            config_dict: Base configuration dictionary

        Returns:
            Configuration dictionary with environment overrides applied
        """
        for env_key, env_value in os.environ.items():
            if not env_key.startswith(ENV_PREFIX):
                continue

            key_parts = env_key[len(ENV_PREFIX) :].lower().split("_")
            if len(key_parts) < 2:
                continue

            section = key_parts[0]
            config_key = "_".join(key_parts[1:])

            if section == "upstream" and config_key == "servers":
                # Comma-separated list
                config_dict["upstream_servers"] = [
                    s.strip() for s in env_value.split(",") if s.strip()
                ]
            elif isinstance(config_dict.get(section), dict):
                config_dict[section][config_key] = self._convert_env_value(env_value)

        return config_dict

    def _convert_env_value(self, value: str) -> Any:
        """Convert environment variable value to appropriate Python type.

        Args:
            value: Environment variable value as string

        Returns:
            Converted value
        """
        if value.lower() in ("true", "yes", "on"):
            return True
        elif value.lower() in ("false", "no", "off"):
            return False

        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        return value


def load_config_from_file(config_file: Optional[str] = None) -> ConfigLoadResult:
    """Convenience function to load configuration.

    Args:
        config_file: Path to configuration file

    Returns:
        Result carrying the config and whether defaults were used
    """
    return ConfigLoader(config_file).load()
