"""Shared HTTP request execution (requests + tenacity retry/backoff).

Every API call goes through ``RequestExecutor.execute``. One execution is a
small state machine driven by tenacity::

    ATTEMPTING -> SUCCESS | RETRY_WAIT | EXHAUSTED | FATAL_ERROR
    RETRY_WAIT -> ATTEMPTING (after a cancellable backoff wait)

``next_state`` is the single transition function; tenacity supplies the
attempt counter and the last outcome through ``RetryCallState``.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional

import requests
from tenacity import RetryCallState, Retrying, stop_after_attempt

from civitai_sdk.domain.config.retry import RetryConfig
from civitai_sdk.domain.errors import (
    CivitAIError,
    RequestCancelledError,
    RetriesExhaustedError,
    TransportError,
)
from civitai_sdk.infrastructure.cancellation import CancelToken
from civitai_sdk.infrastructure.retry import (
    BackoffCalculator,
    RandomSource,
    is_retryable_status,
    is_retryable_transport_failure,
)

logger = logging.getLogger(__name__)


class ExecutionState(str, Enum):
    ATTEMPTING = "attempting"
    SUCCESS = "success"
    RETRY_WAIT = "retry_wait"
    EXHAUSTED = "exhausted"
    FATAL_ERROR = "fatal_error"


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to retry and how long to wait in between.

    ``max_retries`` counts retries, not attempts: a policy of 0 performs
    exactly one attempt.
    """

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0")
        if self.base_delay > self.max_delay:
            raise ValueError("base_delay must not exceed max_delay")

    @property
    def total_attempts(self) -> int:
        return self.max_retries + 1

    @classmethod
    def from_config(cls, config: RetryConfig) -> "RetryPolicy":
        return cls(
            max_retries=config.max_retries,
            base_delay=config.base_delay,
            max_delay=config.max_delay,
        )


@dataclass(frozen=True)
class RequestAttempt:
    """One HTTP round-trip of an execution"""

    method: str
    url: str
    body: Optional[bytes]
    index: int


class RequestExecutor:
    """Runs requests with retry, backoff and cancellation.

    Safe to share between threads: every ``execute`` call builds its own
    tenacity controller, so attempt counters are never shared.
    """

    def __init__(
        self,
        session: requests.Session,
        policy: Optional[RetryPolicy] = None,
        *,
        timeout: float = 30.0,
        headers: Optional[Dict[str, str]] = None,
        rng: Optional[RandomSource] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        """Initialize executor

        Args:
            session: Session used to dispatch requests (connection pooling)
            policy: Retry policy (defaults to 3 retries, 1s..30s backoff)
            timeout: Per-attempt socket timeout in seconds
            headers: Headers added to every request
            rng: Random source for backoff jitter
            sleep: Replacement for the backoff wait; the cancel token is still
                checked before and after it
        """
        self.session = session
        self.policy = policy or RetryPolicy()
        self.timeout = timeout
        self.headers = dict(headers or {})
        self.backoff = BackoffCalculator(self.policy.base_delay, self.policy.max_delay, rng)
        self._sleep = sleep

    def next_state(self, retry_state: RetryCallState) -> ExecutionState:
        """Classify the outcome of the attempt that just finished"""
        outcome = retry_state.outcome
        if outcome is None:
            return ExecutionState.ATTEMPTING

        if outcome.failed:
            if not is_retryable_transport_failure(outcome.exception()):
                return ExecutionState.FATAL_ERROR
        elif not is_retryable_status(outcome.result().status_code):
            return ExecutionState.SUCCESS

        if retry_state.attempt_number >= self.policy.total_attempts:
            return ExecutionState.EXHAUSTED
        return ExecutionState.RETRY_WAIT

    def execute(
        self,
        method: str,
        url: str,
        body: Optional[bytes] = None,
        *,
        cancel: Optional[CancelToken] = None,
    ) -> requests.Response:
        """Send a request, retrying transient failures

        Args:
            method: HTTP method
            url: Fully-qualified URL including the encoded query string
            body: Optional request body
            cancel: Cancel token / deadline for the whole execution

        Returns:
            Live response with a non-retryable status; the caller must close it

        Raises:
            RequestCancelledError: If cancelled or past the deadline
            TransportError: On a non-retryable network failure
            RetriesExhaustedError: If every attempt failed
        """
        token = cancel or CancelToken()
        counter = itertools.count()

        def attempt() -> requests.Response:
            return self._send(RequestAttempt(method, url, body, next(counter)), token)

        def wait(seconds: float) -> None:
            if self._sleep is None:
                token.sleep(seconds)
                return
            token.raise_if_done()
            self._sleep(seconds)
            token.raise_if_done()

        def exhausted(retry_state: RetryCallState) -> requests.Response:
            error = self._exhausted_error(method, url, retry_state)
            raise error from error.last_error

        retrying = Retrying(
            stop=stop_after_attempt(self.policy.total_attempts),
            wait=self.backoff,
            retry=self._should_retry,
            after=self._release_response,
            before_sleep=self._log_retry,
            retry_error_callback=exhausted,
            sleep=wait,
        )

        try:
            return retrying(attempt)
        except CivitAIError:
            raise
        except Exception as e:
            logger.error(f"HTTP {method} {url} failed: {e}")
            raise TransportError(f"failed to execute request: {e}") from e

    def _send(self, attempt: RequestAttempt, token: CancelToken) -> requests.Response:
        token.raise_if_done()

        timeout = self.timeout
        remaining = token.remaining()
        if remaining is not None:
            if remaining <= 0:
                raise RequestCancelledError("deadline exceeded")
            timeout = min(timeout, remaining)

        headers = dict(self.headers)
        if attempt.body is not None:
            headers.setdefault("Content-Type", "application/json")

        logger.debug(f"HTTP {attempt.method} {attempt.url} (attempt {attempt.index + 1}/{self.policy.total_attempts})")
        try:
            response = self.session.request(
                attempt.method,
                attempt.url,
                data=attempt.body,
                headers=headers,
                timeout=timeout,
                stream=True,
            )
        except requests.exceptions.RequestException as e:
            if token.done:
                raise RequestCancelledError(token.reason()) from e
            raise

        if token.done:
            response.close()
            raise RequestCancelledError(token.reason())
        return response

    def _should_retry(self, retry_state: RetryCallState) -> bool:
        return self.next_state(retry_state) in (ExecutionState.RETRY_WAIT, ExecutionState.EXHAUSTED)

    def _release_response(self, retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome
        if outcome is not None and not outcome.failed:
            outcome.result().close()

    def _log_retry(self, retry_state: RetryCallState) -> None:
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            f"HTTP request failed (attempt {retry_state.attempt_number}/{self.policy.total_attempts}): "
            f"{_describe(retry_state)}. Retrying in {delay:.2f}s..."
        )

    def _exhausted_error(self, method: str, url: str, retry_state: RetryCallState) -> RetriesExhaustedError:
        outcome = retry_state.outcome
        attempts = retry_state.attempt_number
        logger.error(f"HTTP {method} {url} failed after {attempts} attempts: {_describe(retry_state)}")
        if outcome.failed:
            return RetriesExhaustedError(attempts, last_error=outcome.exception())
        response = outcome.result()
        return RetriesExhaustedError(
            attempts,
            last_status=response.status_code,
            last_reason=response.reason or "",
        )


def _describe(retry_state: RetryCallState) -> str:
    outcome = retry_state.outcome
    if outcome is None:
        return "no outcome"
    if outcome.failed:
        return str(outcome.exception())
    response = outcome.result()
    return f"HTTP {response.status_code} {response.reason or ''}".rstrip()
