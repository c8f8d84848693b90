"""Exception hierarchy shared by the request pipeline and the AIR parser."""

from typing import Optional


class CivitAIError(Exception):
    """Base class for every error raised by the client"""

    pass


class TransportError(CivitAIError):
    """Non-retryable network failure.

    The original exception is kept as ``__cause__``.
    """

    pass


class RequestCancelledError(CivitAIError):
    """The caller cancelled the request or its deadline expired"""

    def __init__(self, reason: str = "request cancelled"):
        super().__init__(reason)
        self.reason = reason


class RetriesExhaustedError(CivitAIError):
    """Every attempt failed with a retryable error.

    Attributes:
        attempts: Total number of attempts made
        last_error: Exception raised by the last attempt (None if it was a status failure)
        last_status: HTTP status of the last attempt (None if it was a transport failure)
    """

    def __init__(
        self,
        attempts: int,
        last_error: Optional[BaseException] = None,
        last_status: Optional[int] = None,
        last_reason: str = "",
    ):
        self.attempts = attempts
        self.last_error = last_error
        self.last_status = last_status
        if last_status is not None:
            last = f"HTTP {last_status}: {last_reason}" if last_reason else f"HTTP {last_status}"
        else:
            last = str(last_error)
        super().__init__(f"request failed after {attempts} attempts: {last}")


class APIError(CivitAIError):
    """Non-2xx response from the API.

    Carries the server-provided code/message when the body was a structured
    error payload, otherwise only the status code and reason phrase.
    """

    def __init__(
        self,
        status_code: int,
        message: str,
        code: str = "",
        details: str = "",
        error: str = "",
        timestamp: str = "",
        path: str = "",
    ):
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details
        self.error = error
        self.timestamp = timestamp
        self.path = path
        super().__init__(self._format())

    def _format(self) -> str:
        if self.code and self.details:
            return f"CivitAI API error [{self.code}]: {self.message} - {self.details}"
        if self.code:
            return f"CivitAI API error [{self.code}]: {self.message}"
        if self.details:
            return f"CivitAI API error {self.status_code}: {self.message} - {self.details}"
        return f"CivitAI API error {self.status_code}: {self.message}"

    def is_rate_limit_error(self) -> bool:
        return self.status_code == 429

    def is_not_found_error(self) -> bool:
        return self.status_code == 404

    def is_authentication_error(self) -> bool:
        return self.status_code == 401

    def is_forbidden_error(self) -> bool:
        return self.status_code == 403

    def is_server_error(self) -> bool:
        return 500 <= self.status_code < 600

    def is_client_error(self) -> bool:
        return 400 <= self.status_code < 500


class ResponseSizeExceededError(CivitAIError):
    """Response payload was cut off by the configured size ceiling"""

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"response size exceeded maximum allowed size of {limit} bytes")


class ResponseDecodeError(CivitAIError):
    """Response body is not valid JSON, does not fit the target shape, or uses an unsupported encoding"""

    pass


class InvalidParameterError(CivitAIError, ValueError):
    """Endpoint input rejected before any request was made"""

    pass


class AIRError(ValueError):
    """Base class for AIR identifier errors"""

    pass


class AIRFormatError(AIRError):
    """String does not match the AIR grammar"""

    pass


class AIRValidationError(AIRError):
    """AIR matches the grammar but a field is missing or outside its vocabulary"""

    pass
