"""Main application configuration model."""

from pydantic import BaseModel, ConfigDict, Field

from civitai_sdk.domain.config.client import ClientConfig
from civitai_sdk.domain.config.limits import LimitsConfig
from civitai_sdk.domain.config.retry import RetryConfig


class AppConfig(BaseModel):
    """Main application configuration.

    This is the root configuration model that aggregates all configuration sections.
    Validation is performed at load time to fail fast on configuration errors.

    Attributes:
        client: Endpoint, timeout and header configuration
        limits: Response size limits
        retry: Retry logic configuration
    """

    client: ClientConfig = Field(default_factory=ClientConfig)
    limits: LimitsConfig = Field(default_factory=LimitsConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)

    model_config = ConfigDict(
        validate_assignment=True,  # Validate on attribute assignment
        extra="forbid",  # Reject unknown fields
        json_schema_extra={
            "example": {
                "client": {
                    "base_url": "https://civitai.com/api/v1",
                    "timeout": 30.0,
                },
                "limits": {
                    "max_response_size": 10485760,
                },
                "retry": {
                    "max_retries": 3,
                    "base_delay": 1.0,
                    "max_delay": 30.0,
                },
            }
        },
    )
