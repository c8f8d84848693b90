from __future__ import annotations

import io
import json
import threading
import time
from unittest.mock import Mock

import pytest
import requests

from civitai_sdk.domain.config import RetryConfig
from civitai_sdk.domain.errors import (
    RequestCancelledError,
    RetriesExhaustedError,
    TransportError,
)
from civitai_sdk.infrastructure.cancellation import CancelToken
from civitai_sdk.infrastructure.http_client import ExecutionState, RequestExecutor, RetryPolicy

URL = "https://civitai.test/api/v1/models"


class FixedRandom:
    def random(self) -> float:
        return 0.5  # no jitter


def _make_response(status_code: int, payload: dict | None = None, reason: str = "") -> requests.Response:
    r = requests.Response()
    r.status_code = status_code
    r.reason = reason
    r.url = URL
    if payload is None:
        payload = {}
    r.raw = io.BytesIO(json.dumps(payload).encode("utf-8"))
    r.headers["Content-Type"] = "application/json"
    return r


def _make_executor(responses, *, max_retries: int = 3, base_delay: float = 1.0, max_delay: float = 30.0, **kwargs):
    session = Mock(spec=requests.Session)
    session.request.side_effect = responses
    sleeps = []
    kwargs.setdefault("sleep", sleeps.append)
    executor = RequestExecutor(
        session,
        RetryPolicy(max_retries=max_retries, base_delay=base_delay, max_delay=max_delay),
        rng=FixedRandom(),
        **kwargs,
    )
    return executor, session, sleeps


def test_fail_twice_then_succeed_makes_three_attempts():
    first = _make_response(503, reason="Service Unavailable")
    second = _make_response(502, reason="Bad Gateway")
    ok = _make_response(200, {"items": []})
    executor, session, sleeps = _make_executor([first, second, ok])

    resp = executor.execute("GET", URL)

    assert resp is ok
    assert session.request.call_count == 3
    assert sleeps == [pytest.approx(1.0), pytest.approx(2.0)]
    # Retryable responses are released before the next attempt
    assert first.raw.closed
    assert second.raw.closed
    assert not ok.raw.closed


def test_always_500_exhausts_after_max_retries_plus_one():
    executor, session, sleeps = _make_executor(
        [_make_response(500, reason="Internal Server Error") for _ in range(3)], max_retries=2
    )

    with pytest.raises(RetriesExhaustedError) as exc_info:
        executor.execute("GET", URL)

    assert session.request.call_count == 3
    assert len(sleeps) == 2
    assert exc_info.value.attempts == 3
    assert exc_info.value.last_status == 500
    assert str(exc_info.value) == "request failed after 3 attempts: HTTP 500: Internal Server Error"


def test_zero_retries_means_single_attempt():
    executor, session, sleeps = _make_executor([_make_response(429)], max_retries=0)

    with pytest.raises(RetriesExhaustedError) as exc_info:
        executor.execute("GET", URL)

    assert session.request.call_count == 1
    assert sleeps == []
    assert exc_info.value.attempts == 1


def test_does_not_retry_on_401():
    unauthorized = _make_response(401, {"error": "unauthorized"})
    executor, session, sleeps = _make_executor([unauthorized])

    resp = executor.execute("GET", URL)

    assert resp is unauthorized
    assert session.request.call_count == 1
    assert sleeps == []


def test_retries_timeouts_until_exhausted():
    errors = [requests.exceptions.ReadTimeout("read timed out") for _ in range(4)]
    executor, session, sleeps = _make_executor(errors)

    with pytest.raises(RetriesExhaustedError) as exc_info:
        executor.execute("GET", URL)

    assert session.request.call_count == 4
    assert sleeps == [pytest.approx(1.0), pytest.approx(2.0), pytest.approx(4.0)]
    assert exc_info.value.last_error is errors[-1]
    assert exc_info.value.__cause__ is errors[-1]
    assert "4 attempts" in str(exc_info.value)


def test_connection_error_then_success():
    ok = _make_response(200)
    executor, session, _ = _make_executor([requests.exceptions.ConnectionError("Connection refused"), ok])

    assert executor.execute("GET", URL) is ok
    assert session.request.call_count == 2


def test_non_retryable_transport_error_is_wrapped():
    cause = requests.exceptions.InvalidURL("Invalid URL 'nope'")
    executor, session, sleeps = _make_executor([cause])

    with pytest.raises(TransportError) as exc_info:
        executor.execute("GET", "nope")

    assert session.request.call_count == 1
    assert sleeps == []
    assert exc_info.value.__cause__ is cause
    assert "attempts" not in str(exc_info.value)


@pytest.mark.parametrize(
    "cause",
    [
        requests.exceptions.SSLError("certificate verify failed: self signed certificate"),
        TypeError("request() got an unexpected keyword argument 'timeout'"),
    ],
)
def test_tls_and_programming_errors_fail_on_first_attempt(cause):
    executor, session, sleeps = _make_executor([cause, cause, cause, cause])

    with pytest.raises(TransportError) as exc_info:
        executor.execute("GET", URL)

    assert session.request.call_count == 1
    assert sleeps == []
    assert exc_info.value.__cause__ is cause
    assert "attempts" not in str(exc_info.value)


def test_request_sent_with_headers_and_stream():
    executor, session, _ = _make_executor([_make_response(200)], headers={"User-Agent": "tests/1.0"}, timeout=12.0)

    executor.execute("POST", URL, body=b"{}")

    _, kwargs = session.request.call_args
    assert session.request.call_args[0] == ("POST", URL)
    assert kwargs["headers"]["User-Agent"] == "tests/1.0"
    assert kwargs["headers"]["Content-Type"] == "application/json"
    assert kwargs["data"] == b"{}"
    assert kwargs["timeout"] == 12.0
    assert kwargs["stream"] is True


def test_per_attempt_timeout_bounded_by_deadline():
    executor, session, _ = _make_executor([_make_response(200)], timeout=30.0)

    executor.execute("GET", URL, cancel=CancelToken(timeout=2.0))

    _, kwargs = session.request.call_args
    assert 0 < kwargs["timeout"] <= 2.0


def test_cancelled_token_skips_network():
    executor, session, _ = _make_executor([_make_response(200)])
    token = CancelToken()
    token.cancel("caller gave up")

    with pytest.raises(RequestCancelledError, match="caller gave up"):
        executor.execute("GET", URL, cancel=token)

    session.request.assert_not_called()


def test_cancel_during_backoff_returns_promptly():
    """Cancelling while waiting between attempts aborts the wait"""
    session = Mock(spec=requests.Session)
    session.request.side_effect = lambda *a, **kw: _make_response(503)
    executor = RequestExecutor(session, RetryPolicy(max_retries=3, base_delay=10.0, max_delay=30.0))
    token = CancelToken()
    timer = threading.Timer(0.05, token.cancel)
    timer.start()

    started = time.monotonic()
    try:
        with pytest.raises(RequestCancelledError):
            executor.execute("GET", URL, cancel=token)
    finally:
        timer.cancel()

    assert time.monotonic() - started < 2.0
    assert session.request.call_count == 1


def test_deadline_during_backoff_raises_cancelled_not_exhausted():
    session = Mock(spec=requests.Session)
    session.request.side_effect = lambda *a, **kw: _make_response(500)
    executor = RequestExecutor(session, RetryPolicy(max_retries=5, base_delay=5.0, max_delay=30.0))

    started = time.monotonic()
    with pytest.raises(RequestCancelledError, match="deadline exceeded"):
        executor.execute("GET", URL, cancel=CancelToken(timeout=0.1))

    assert time.monotonic() - started < 2.0


def test_cancel_while_request_in_flight_closes_response():
    token = CancelToken()
    late = _make_response(200)

    def fake_request(*args, **kwargs):
        token.cancel()
        return late

    session = Mock(spec=requests.Session)
    session.request.side_effect = fake_request
    executor = RequestExecutor(session, RetryPolicy())

    with pytest.raises(RequestCancelledError):
        executor.execute("GET", URL, cancel=token)

    assert late.raw.closed


def test_transport_error_after_cancel_is_reported_as_cancellation():
    token = CancelToken()

    def fake_request(*args, **kwargs):
        token.cancel("shutting down")
        raise requests.exceptions.ConnectionError("Connection reset by peer")

    session = Mock(spec=requests.Session)
    session.request.side_effect = fake_request
    executor = RequestExecutor(session, RetryPolicy())

    with pytest.raises(RequestCancelledError, match="shutting down"):
        executor.execute("GET", URL, cancel=token)

    assert session.request.call_count == 1


def test_next_state_transitions():
    executor = RequestExecutor(Mock(spec=requests.Session), RetryPolicy(max_retries=1))

    def state(attempt_number, response=None, error=None):
        retry_state = Mock()
        retry_state.attempt_number = attempt_number
        retry_state.outcome.failed = error is not None
        retry_state.outcome.exception.return_value = error
        retry_state.outcome.result.return_value = response
        return executor.next_state(retry_state)

    assert state(1, _make_response(200)) is ExecutionState.SUCCESS
    assert state(1, _make_response(404)) is ExecutionState.SUCCESS
    assert state(1, _make_response(503)) is ExecutionState.RETRY_WAIT
    assert state(2, _make_response(503)) is ExecutionState.EXHAUSTED
    assert state(1, error=requests.exceptions.ConnectTimeout()) is ExecutionState.RETRY_WAIT
    assert state(2, error=requests.exceptions.ConnectTimeout()) is ExecutionState.EXHAUSTED
    assert state(1, error=RequestCancelledError()) is ExecutionState.FATAL_ERROR
    assert state(1, error=requests.exceptions.InvalidSchema("bad scheme")) is ExecutionState.FATAL_ERROR


def test_retry_policy_from_config():
    policy = RetryPolicy.from_config(RetryConfig(max_retries=5, base_delay=0.5, max_delay=8.0))
    assert policy == RetryPolicy(max_retries=5, base_delay=0.5, max_delay=8.0)
    assert policy.total_attempts == 6


def test_retry_policy_rejects_invalid_values():
    with pytest.raises(ValueError):
        RetryPolicy(max_retries=-1)
    with pytest.raises(ValueError):
        RetryPolicy(base_delay=10.0, max_delay=1.0)
