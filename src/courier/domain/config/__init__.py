"""Configuration models with Pydantic validation."""

from courier.domain.config.app import AppConfig
from courier.domain.config.httpclient import HttpClientConfig
from courier.domain.config.retry import RetryConfig

__all__ = [
    "AppConfig",
    "HttpClientConfig",
    "RetryConfig",
]
