"""Configuration models with Pydantic validation."""

from civitai_sdk.domain.config.app import AppConfig
from civitai_sdk.domain.config.client import ClientConfig
from civitai_sdk.domain.config.limits import LimitsConfig
from civitai_sdk.domain.config.retry import RetryConfig

__all__ = [
    "AppConfig",
    "ClientConfig",
    "LimitsConfig",
    "RetryConfig",
]
