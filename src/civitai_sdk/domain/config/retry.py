"""Retry configuration model."""

from pydantic import BaseModel, Field, model_validator


class RetryConfig(BaseModel):
    """Configuration for retry logic.

    Attributes:
        max_retries: Retries after the first attempt (0 = a single attempt)
        base_delay: Backoff delay in seconds before the first retry
        max_delay: Upper bound for any single backoff delay in seconds
    """

    max_retries: int = Field(3, ge=0, le=10)
    base_delay: float = Field(1.0, ge=0.0)  # Allow 0 for tests
    max_delay: float = Field(30.0, ge=0.0)

    @model_validator(mode="after")
    def _check_delay_order(self) -> "RetryConfig":
        if self.base_delay > self.max_delay:
            raise ValueError("base_delay must not exceed max_delay")
        return self
