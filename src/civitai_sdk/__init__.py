"""CivitAI API client"""

from civitai_sdk.application.air_mapping import convert_model_to_air, convert_version_to_air
from civitai_sdk.application.client import CivitAIClient
from civitai_sdk.domain.air import AIR, AIRCollection, AIREcosystem, AIRSource, AIRType, parse_air
from civitai_sdk.domain.config import AppConfig, ClientConfig, LimitsConfig, RetryConfig
from civitai_sdk.domain.errors import (
    AIRError,
    AIRFormatError,
    AIRValidationError,
    APIError,
    CivitAIError,
    InvalidParameterError,
    RequestCancelledError,
    ResponseDecodeError,
    ResponseSizeExceededError,
    RetriesExhaustedError,
    TransportError,
)
from civitai_sdk.domain.models.params import CreatorParams, ImageParams, SearchParams, TagParams
from civitai_sdk.infrastructure.cancellation import CancelToken
from civitai_sdk.version import __version__

__all__ = [
    "AIR",
    "AIRCollection",
    "AIREcosystem",
    "AIRError",
    "AIRFormatError",
    "AIRSource",
    "AIRType",
    "AIRValidationError",
    "APIError",
    "AppConfig",
    "CancelToken",
    "CivitAIClient",
    "CivitAIError",
    "ClientConfig",
    "CreatorParams",
    "ImageParams",
    "InvalidParameterError",
    "LimitsConfig",
    "RequestCancelledError",
    "ResponseDecodeError",
    "ResponseSizeExceededError",
    "RetriesExhaustedError",
    "RetryConfig",
    "SearchParams",
    "TagParams",
    "TransportError",
    "__version__",
    "convert_model_to_air",
    "convert_version_to_air",
    "parse_air",
]
