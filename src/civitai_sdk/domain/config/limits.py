"""Response limits configuration model."""

from pydantic import BaseModel, Field

DEFAULT_MAX_RESPONSE_SIZE = 10 * 1024 * 1024


class LimitsConfig(BaseModel):
    """Configuration for response limits.

    Attributes:
        max_response_size: Ceiling in bytes for any decoded (decompressed) response body
    """

    max_response_size: int = Field(DEFAULT_MAX_RESPONSE_SIZE, gt=0)
