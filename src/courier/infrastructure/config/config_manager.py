"""Configuration manager for loading and validating .courier.yml"""

import copy
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import ValidationError

from courier.domain.config import AppConfig, HttpClientConfig, RetryConfig

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".courier.yml"

# Environment variable -> config path
ENV_OVERRIDES = {
    "HTTPCLIENT_URL": ("httpclient", "url"),
    "HTTPCLIENT_URL_EXPRESSION": ("httpclient", "url_expression"),
    "HTTPCLIENT_HTTP_METHOD": ("httpclient", "http_method"),
    "HTTPCLIENT_HTTP_METHOD_EXPRESSION": ("httpclient", "http_method_expression"),
    "HTTPCLIENT_BODY": ("httpclient", "body"),
    "HTTPCLIENT_BODY_EXPRESSION": ("httpclient", "body_expression"),
    "HTTPCLIENT_HEADERS_EXPRESSION": ("httpclient", "headers_expression"),
    "HTTPCLIENT_EXPECTED_RESPONSE_TYPE": ("httpclient", "expected_response_type"),
    "HTTPCLIENT_REPLY_EXPRESSION": ("httpclient", "reply_expression"),
    "HTTPCLIENT_TIMEOUT": ("httpclient", "timeout"),
    "HTTPCLIENT_RETRY_ENABLED": ("httpclient", "retry", "enabled"),
    "HTTPCLIENT_RETRY_MAX_ATTEMPTS": ("httpclient", "retry", "max_attempts"),
    "HTTPCLIENT_RETRY_INITIAL_INTERVAL": ("httpclient", "retry", "initial_interval"),
    "HTTPCLIENT_RETRY_MULTIPLIER": ("httpclient", "retry", "multiplier"),
    "HTTPCLIENT_RETRY_MAX_INTERVAL": ("httpclient", "retry", "max_interval"),
}

_CAMEL_RE = re.compile(r"(?<=[a-z0-9])([A-Z])")


class ConfigurationError(Exception):
    """Configuration validation error."""

    pass


def normalize_key(key: str) -> str:
    """Normalize kebab-case and camelCase keys to snake_case

    Examples: ``max-attempts``, ``maxAttempts`` and ``max_attempts`` all
    become ``max_attempts``.
    """
    return _CAMEL_RE.sub(r"_\1", key).replace("-", "_").lower()


class ConfigManager:
    """Manages configuration from .courier.yml and environment variables

    Loads configuration with validation using Pydantic models. Configuration priority:
    1. Default values (defined in Pydantic models)
    2. .courier.yml file (searched from current directory)
    3. Environment variables (HTTPCLIENT_*)
    4. CLI arguments (handled by CLI layer)
    """

    def __init__(self, config_path: Optional[Union[Path, str]] = None):
        """Initialize config manager

        Args:
            config_path: Path to .courier.yml (searches from current dir if None)

        Raises:
            ConfigurationError: If the file cannot be read or validation fails
        """
        # Convert to Path if string
        if isinstance(config_path, str):
            config_path = Path(config_path)
        self.config_path = config_path or self._find_config_file()
        try:
            self.config: AppConfig = self._load_config()
        except ValidationError as e:
            # Format validation errors for user
            errors = []
            for error in e.errors():
                field = ".".join(str(x) for x in error["loc"]) or "httpclient"
                msg = error["msg"]
                errors.append(f"  - {field}: {msg}")
            raise ConfigurationError(
                "Configuration validation failed:\n" + "\n".join(errors)
            ) from e

    def _find_config_file(self) -> Optional[Path]:
        """Find .courier.yml file starting from current directory

        Returns:
            Path to config file or None if not found
        """
        current = Path.cwd()
        for parent in [current] + list(current.parents):
            config_file = parent / CONFIG_FILE_NAME
            if config_file.exists():
                logger.info(f"Found config file: {config_file}")
                return config_file
        logger.debug(f"No {CONFIG_FILE_NAME} found, using defaults and environment")
        return None

    def _load_config(self) -> AppConfig:
        """Load configuration from file and validate with Pydantic

        Returns:
            Validated AppConfig instance

        Raises:
            ConfigurationError: If the file cannot be parsed
            ValidationError: If configuration is invalid
        """
        config_dict: Dict[str, Any] = {"httpclient": {}}

        if self.config_path and self.config_path.exists():
            try:
                with open(self.config_path, "r", encoding="utf-8") as f:
                    file_config = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                raise ConfigurationError(
                    f"Failed to load config from {self.config_path}: {e}"
                ) from e
            if not isinstance(file_config, dict):
                raise ConfigurationError(
                    f"Config file {self.config_path} must contain a mapping"
                )
            config_dict = self._merge_config(config_dict, self._normalize(file_config))
            logger.info(f"Loaded configuration from {self.config_path}")

        # Override with environment variables
        config_dict = self._apply_env_overrides(config_dict)

        # Validate and create AppConfig
        return AppConfig(**config_dict)

    def _normalize(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively normalize mapping keys (the static body is left untouched)"""
        result = {}
        for key, value in config.items():
            norm = normalize_key(str(key))
            if isinstance(value, dict) and norm != "body":
                value = self._normalize(value)
            result[norm] = value
        return result

    def _merge_config(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge configuration dictionaries

        Args:
            base: Base configuration
            override: Override configuration

        Returns:
            Merged configuration
        """
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value
        return result

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides

        Args:
            config: Configuration dictionary

        Returns:
            Configuration with env overrides applied
        """
        config = copy.deepcopy(config)
        for env_name, path in ENV_OVERRIDES.items():
            value = os.getenv(env_name)
            if value is None or value == "":
                continue
            section = config
            for key in path[:-1]:
                if not isinstance(section.get(key), dict):
                    section[key] = {}
                section = section[key]
            section[path[-1]] = value
            logger.debug(f"Config override from {env_name}")
        return config

    def get_httpclient_config(self) -> HttpClientConfig:
        """Get HTTP client configuration

        Returns:
            HTTP client configuration model
        """
        return self.config.httpclient

    def get_retry_config(self) -> RetryConfig:
        """Get retry configuration

        Returns:
            Retry configuration model
        """
        return self.config.httpclient.retry

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by key (supports dot notation)

        Args:
            key: Configuration key (e.g., "httpclient.retry.max-attempts")
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        value = self.config.model_dump()
        for k in key.split("."):
            k = normalize_key(k)
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value
