"""Retry classification and backoff calculation.

The predicates decide whether a failed attempt is worth repeating; the
backoff calculator doubles as a tenacity wait strategy.
"""

from __future__ import annotations

import random
import ssl
from typing import Optional, Protocol

import requests
from tenacity import RetryCallState

from civitai_sdk.domain.errors import RequestCancelledError

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

JITTER_FRACTION = 0.25

# Substrings of transient network failures that surface as plain exceptions
_TRANSIENT_MARKERS = (
    "timeout",
    "timed out",
    "connection refused",
    "no such host",
    "name or service not known",
    "temporary failure",
    "network is unreachable",
    "connection reset",
)


class RandomSource(Protocol):
    def random(self) -> float: ...


def is_retryable_transport_failure(exception: Optional[BaseException]) -> bool:
    """Check if a failed round-trip should be retried.

    Timeouts, refused/reset connections, unreachable hosts and DNS failures
    are transient. Cancellation, TLS failures and errors that are not network
    errors at all never are.
    """
    if exception is None:
        return False
    if isinstance(exception, RequestCancelledError):
        return False
    # requests.exceptions.SSLError subclasses requests.exceptions.ConnectionError
    if isinstance(exception, (requests.exceptions.SSLError, ssl.SSLError)):
        return False
    if isinstance(exception, (requests.exceptions.Timeout, requests.exceptions.ConnectionError)):
        return True
    if isinstance(exception, (TimeoutError, ConnectionError)):
        return True
    if not isinstance(exception, (OSError, requests.exceptions.RequestException)):
        return False
    message = str(exception).lower()
    return any(marker in message for marker in _TRANSIENT_MARKERS)


def is_retryable_status(status_code: int) -> bool:
    """Only rate limiting (429) and 500/502/503/504 are retried"""
    return status_code in RETRYABLE_STATUS_CODES


class BackoffCalculator:
    """Exponential backoff with +/-25% jitter, capped at ``max_delay``.

    ``delay = base_delay * 2**attempt``, perturbed by jitter, clamped to
    ``[0, max_delay]``.
    """

    def __init__(
        self,
        base_delay: float,
        max_delay: float,
        rng: Optional[RandomSource] = None,
    ):
        if base_delay < 0:
            raise ValueError("base_delay must be >= 0")
        if base_delay > max_delay:
            raise ValueError("base_delay must not exceed max_delay")
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._rng: RandomSource = rng if rng is not None else random.Random()

    def delay(self, attempt: int) -> float:
        """Delay in seconds before retrying after the given 0-based attempt"""
        if attempt < 0:
            raise ValueError("attempt must be >= 0")
        if self.base_delay == 0:
            return 0.0
        try:
            raw = self.base_delay * (2 ** attempt)
        except OverflowError:
            return self.max_delay
        jitter = raw * JITTER_FRACTION * (2 * self._rng.random() - 1)
        return min(self.max_delay, max(0.0, raw + jitter))

    def __call__(self, retry_state: RetryCallState) -> float:
        # tenacity numbers attempts from 1
        return self.delay(retry_state.attempt_number - 1)
