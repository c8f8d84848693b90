"""Structured error payload returned by the API on non-2xx responses"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from civitai_sdk.domain.errors import APIError


class APIErrorPayload(BaseModel):
    """Error body as sent by the server.

    Every field is optional: the decoder only needs the body to be a JSON object.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    status_code: Optional[int] = Field(None, alias="statusCode")
    code: str = ""
    message: str = ""
    error: str = ""
    details: str = ""
    timestamp: str = ""
    path: str = ""

    def to_exception(self, status_code: int) -> APIError:
        """Build the APIError for a response with the given HTTP status"""
        return APIError(
            status_code=status_code,
            code=self.code,
            message=self.message or self.error,
            details=self.details,
            error=self.error,
            timestamp=self.timestamp,
            path=self.path,
        )
