"""Cancellation signal shared between a caller and a running request"""

from __future__ import annotations

import threading
import time
from typing import Optional

from civitai_sdk.domain.errors import RequestCancelledError


class CancelToken:
    """Thread-safe cancel flag with an optional deadline.

    A token is created per logical operation and may be cancelled from any
    thread. The deadline bounds the total time of the operation across all
    attempts and backoff waits.
    """

    def __init__(self, timeout: Optional[float] = None):
        """Initialize token

        Args:
            timeout: Seconds from now until the deadline (None = no deadline)
        """
        self._event = threading.Event()
        self._reason = ""
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self, reason: str = "request cancelled") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    @property
    def done(self) -> bool:
        return self.cancelled or self.expired

    def remaining(self) -> Optional[float]:
        """Seconds until the deadline, None when there is no deadline"""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def reason(self) -> str:
        if self.cancelled:
            return self._reason
        if self.expired:
            return "deadline exceeded"
        return ""

    def raise_if_done(self) -> None:
        """Raises RequestCancelledError if the token was cancelled or its deadline passed"""
        if self.done:
            raise RequestCancelledError(self.reason())

    def sleep(self, seconds: float) -> None:
        """Wait for ``seconds`` unless cancelled or the deadline arrives first

        Raises:
            RequestCancelledError: If the wait was interrupted
        """
        self.raise_if_done()
        remaining = self.remaining()
        if remaining is not None and remaining < seconds:
            # The deadline fires before the wait ends
            self._event.wait(remaining)
            self.raise_if_done()
            raise RequestCancelledError("deadline exceeded")
        if self._event.wait(max(0.0, seconds)):
            self.raise_if_done()
