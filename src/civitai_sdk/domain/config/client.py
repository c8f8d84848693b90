"""HTTP client configuration model."""

from typing import Dict

from pydantic import BaseModel, Field, field_validator

from civitai_sdk.version import __version__

DEFAULT_BASE_URL = "https://civitai.com/api/v1"
DEFAULT_USER_AGENT = f"civitai-sdk-python/{__version__}"


class ClientConfig(BaseModel):
    """Configuration for the API client.

    Attributes:
        base_url: API root, without trailing slash
        timeout: Per-attempt socket timeout in seconds
        user_agent: User-Agent header sent with every request
        default_headers: Extra headers sent with every request
    """

    base_url: str = DEFAULT_BASE_URL
    timeout: float = Field(30.0, gt=0.0)
    user_agent: str = DEFAULT_USER_AGENT
    default_headers: Dict[str, str] = Field(default_factory=dict)

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if not value.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return value
